"""Core configuration, constants and errors.

Import what you need from `newsrss.core.config`, `newsrss.core.constants` and
`newsrss.core.errors` to avoid heavy side effects at import time.
"""

__all__ = ["config", "constants", "errors"]

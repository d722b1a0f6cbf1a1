"""Notification delivery."""

__all__ = ["discord_notifier"]

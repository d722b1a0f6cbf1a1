"""Article text acquisition: direct HTTP fetch and the remote browser client."""

__all__ = ["article_fetcher", "article_fetcher_config", "article_fetcher_utils", "chrome_client"]

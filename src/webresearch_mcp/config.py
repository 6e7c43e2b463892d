from functools import lru_cache
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Environment-driven configuration for the MCP server."""

    # Browser
    WEBRESEARCH_HEADLESS: bool = True
    WEBRESEARCH_VIEWPORT_WIDTH: int = 1920
    WEBRESEARCH_VIEWPORT_HEIGHT: int = 1080
    WEBRESEARCH_USER_AGENT: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/119.0.0.0 Safari/537.36"
    )

    # Search engine landing page and the domain the consent cookie is scoped to
    WEBRESEARCH_SEARCH_ENGINE_URL: str = "https://www.google.com"
    WEBRESEARCH_CONSENT_COOKIE_DOMAIN: str = ".google.com"

    # Navigation timeouts (seconds)
    WEBRESEARCH_NAVIGATION_TIMEOUT: float = 15.0
    WEBRESEARCH_BODY_WAIT_TIMEOUT: float = 3.0
    WEBRESEARCH_NETWORK_IDLE_TIMEOUT: float = 5.0
    WEBRESEARCH_SEARCH_INPUT_TIMEOUT: float = 5.0
    WEBRESEARCH_SEARCH_SUBMIT_TIMEOUT: float = 30.0

    # Content-quality gate. The landing profile applies to the search engine home
    # page, which is known-good but carries very little text.
    WEBRESEARCH_MIN_CONTENT_WORDS: int = 1000
    WEBRESEARCH_MIN_LANDING_WORDS: int = 10

    # Retry policy (flat delay between attempts)
    WEBRESEARCH_RETRY_ATTEMPTS: int = 3
    WEBRESEARCH_RETRY_DELAY: float = 1.0
    WEBRESEARCH_SEARCH_INPUT_RETRY_DELAY: float = 2.0

    # Session limits
    WEBRESEARCH_MAX_RESULTS: int = 100
    WEBRESEARCH_MAX_CONTENT_LENGTH: int = 100_000

    # Screenshots
    WEBRESEARCH_SCREENSHOT_MAX_BYTES: int = 500_000
    # Unset: a private temp directory is created on first use
    WEBRESEARCH_SCREENSHOT_DIR: str | None = None

    # Seconds allowed for browser/screenshot cleanup before the process force-exits
    WEBRESEARCH_SHUTDOWN_TIMEOUT: float = 5.0

    # Logging
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        extra = "ignore"


@lru_cache
def get_settings() -> Settings:
    """Return a cached Settings instance."""
    return Settings()


# Convenience instance for modules that import `settings` directly.
settings: Settings = get_settings()

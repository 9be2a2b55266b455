from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Application
    app_name: str = "Beacon SEO Toolkit"
    debug: bool = False
    log_level: str = "INFO"

    # Redis / Celery
    celery_broker_url: str = "redis://localhost:6379/0"
    celery_result_backend: str = "redis://localhost:6379/1"

    # Fetching
    http_timeout: float = 15.0
    max_redirects: int = 5
    user_agent: str = "Mozilla/5.0 (compatible; BeaconSEO/1.0; +https://example.com/bot)"

    # Deadlines (seconds)
    analysis_deadline: float = 30.0
    probe_timeout: float = 10.0
    secondary_fetch_timeout: float = 10.0

    # Link scanning
    link_check_concurrency: int = 10
    max_links_to_check: int = 200
    link_check_skip_domains: list[str] = [
        "facebook.com",
        "twitter.com",
        "x.com",
        "instagram.com",
        "linkedin.com",
        "youtube.com",
    ]

    # Competitor analysis
    competitor_concurrency: int = 3
    max_competitors: int = 5

    # External data providers
    enable_keyword_suggestions: bool = True
    dataforseo_login: str | None = None
    dataforseo_password: str | None = None

    # Usage limits (per user, per process)
    seo_tools_limit: int = 100


settings = Settings()

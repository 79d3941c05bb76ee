from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional, List


class Settings(BaseSettings):
    # Supabase
    supabase_url: str = ""
    supabase_key: str = ""
    supabase_service_role_key: Optional[str] = None  # Required for webhooks and background refresh (bypasses RLS)

    # Identity provider (Clerk)
    clerk_jwks_url: str = ""
    clerk_issuer: Optional[str] = None
    clerk_webhook_secret: Optional[str] = None

    # Stripe
    stripe_secret_key: Optional[str] = None
    stripe_webhook_secret: Optional[str] = None
    stripe_price_inspiration_monthly: Optional[str] = None
    stripe_price_inspiration_yearly: Optional[str] = None
    stripe_price_growth_monthly: Optional[str] = None
    stripe_price_growth_yearly: Optional[str] = None
    stripe_trial_period_days: int = 3

    # ScrapeCreators
    scrapecreators_api_key: Optional[str] = None
    scrapecreators_base_url: str = "https://api.scrapecreators.com"
    scrape_cache_ttl_seconds: int = 300
    scrape_timeout_seconds: float = 30.0

    # Resend
    resend_api_key: Optional[str] = None
    mail_from: str = "Narra <noreply@usenarra.com>"

    # Authorization cache
    auth_cache_ttl_seconds: int = 30 * 60

    # Profile refresh
    refresh_fetch_count: int = 10
    refresh_post_limit: int = 7
    refresh_max_attempts: int = 3
    refresh_retry_interval_seconds: int = 300
    refresh_scheduler_enabled: bool = False

    # Usage
    usage_warning_ratio: float = 0.8

    # App
    app_name: str = "narra-backend"
    app_url: str = "http://localhost:3000"
    debug: bool = False
    environment: str = "development"  # development | staging | production
    log_level: str = "INFO"
    cors_origins: str = "http://localhost:3000,http://127.0.0.1:3000"
    rate_limit: str = "100/minute"  # slowapi format, e.g. "100/minute"
    rate_limit_enabled: bool = True

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def get_cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    def get_price_id(self, plan_id: str, billing_period: str) -> Optional[str]:
        """Stripe price id for a plan/billing period pair, None when not configured"""
        return getattr(self, f"stripe_price_{plan_id}_{billing_period}", None)

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        env_prefix="",  # No prefix needed
        extra="ignore"
    )


settings = Settings()

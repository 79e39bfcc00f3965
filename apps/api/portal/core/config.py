"""Application configuration with environment variables."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Environment
    ENV: str = "dev"

    # App Version (format: a.bc.de - major.feature.patch)
    VERSION: str = "0.01.00"

    # Database
    DATABASE_URL: str

    # Session Token (issued after identity provider sign-in)
    JWT_SECRET: str = "change-this-in-production"
    JWT_SECRET_PREVIOUS: str = ""  # Set during rotation, clear after
    JWT_EXPIRES_HOURS: int = 8

    # CORS
    CORS_ORIGINS: str = "http://localhost:5173"

    # Frontend (links in emails + notifications)
    FRONTEND_URL: str = "https://portal.amjadhazli.com"

    # Internal scheduled endpoints (cron jobs)
    INTERNAL_SECRET: str = ""  # Secret for /internal/scheduled/* endpoints

    # Error Tracking (optional, set in production)
    SENTRY_DSN: str = ""

    # Transactional email (Resend)
    RESEND_API_KEY: str = ""  # Empty = email disabled ("Email not configured")
    EMAIL_FROM: str = "Amjad & Hazli <portal@amjadhazli.com>"
    RESEND_TIMEOUT_SECONDS: float = 20.0

    # Branding used by email templates
    BRAND_NAME: str = "Amjad & Hazli"
    BRAND_LEGAL_NAME: str = "Amjad & Hazli PLT (LLP0016803-LGN)"
    BRAND_TAGLINE: str = "Chartered Accountants & Tax Advisors"

    # Object storage (S3-compatible)
    S3_BUCKET: str = "portal-documents"
    S3_REGION: str = ""
    S3_ENDPOINT_URL: str = ""
    S3_URL_STYLE: str = ""  # "path" or "virtual"
    AWS_ACCESS_KEY_ID: str = ""
    AWS_SECRET_ACCESS_KEY: str = ""
    STORAGE_URL_TTL_SECONDS: int = 3600
    MAX_UPLOAD_BYTES: int = 25 * 1024 * 1024  # 25MB

    # Scheduled jobs
    TASK_REMINDER_LOOKAHEAD_DAYS: int = 1
    INVOICE_DUE_SOON_DAYS: int = 3
    NOTIFICATION_RETENTION_DAYS: int = 30

    # Worker
    WORKER_POLL_INTERVAL: int = 10
    WORKER_BATCH_SIZE: int = 10

    # Rate Limiting (requests per minute)
    RATE_LIMIT_API: int = 60
    RATE_LIMIT_UPLOAD: int = 20

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS_ORIGINS into a list."""
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @property
    def jwt_secrets(self) -> list[str]:
        """Returns list of valid secrets (current first, then previous if set)."""
        secrets = [self.JWT_SECRET]
        if self.JWT_SECRET_PREVIOUS:
            secrets.append(self.JWT_SECRET_PREVIOUS)
        return secrets

    @property
    def portal_url(self) -> str:
        return self.FRONTEND_URL.rstrip("/")

    @property
    def cookie_secure(self) -> bool:
        """Secure cookies only in production."""
        return self.ENV != "dev"


settings = Settings()

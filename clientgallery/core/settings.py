from typing import Tuple

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Database (set via .env; any SQLAlchemy URL)
    DATABASE_URL: str = "sqlite:///./clientgallery.db"
    DB_ECHO: bool = False

    # Security
    SECRET_KEY: str = "CHANGE_THIS_TO_A_SECRET_KEY"
    PASSWORD_HASH_ROUNDS: int = 12  # bcrypt work factor
    ADMIN_SESSION_MINUTES: int = 60 * 24
    GALLERY_ACCESS_TTL_SECONDS: int = 24 * 60 * 60  # client access token lifetime

    # App/Base URL
    BASE_URL: str = "http://localhost:8000"
    COOKIE_SECURE: bool = False  # override to True in prod; or auto-detected from BASE_URL

    # Logging
    LOG_LEVEL: str = "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL
    LOG_JSON: bool = True
    LOG_FILE: str = "logs/app.log"
    LOG_MAX_BYTES: int = 5_000_000  # 5 MB
    LOG_BACKUP_COUNT: int = 5

    # Sentry
    SENTRY_DSN: str = ""
    SENTRY_TRACES_SAMPLE_RATE: float = 0.0

    # Storage backend: "local" or "s3"
    STORAGE_BACKEND: str = "local"
    STORAGE_ROOT: str = "storage/galleries"
    AWS_REGION: str = ""
    AWS_ACCESS_KEY_ID: str = ""  # Optional; uses IAM role on EC2
    AWS_SECRET_ACCESS_KEY: str = ""  # Optional; uses IAM role on EC2
    S3_GALLERIES_BUCKET: str = ""

    # Upload/ingestion
    MAX_UPLOAD_BYTES: int = 10 * 1024 * 1024  # 10 MB per file
    ALLOWED_UPLOAD_MIME_TYPES: Tuple[str, ...] = ("image/jpeg", "image/png", "image/webp")
    FULL_MAX_DIMENSION: int = 2000
    FULL_QUALITY: int = 90
    THUMBNAIL_SIZE: int = 400
    THUMBNAIL_QUALITY: int = 80
    WATERMARK_TEXT: str = ""  # empty disables watermarked copies
    WATERMARK_OPACITY: int = 96  # 0-255

    # Gallery defaults
    DEFAULT_DOWNLOAD_LIMIT: int = 50
    DEFAULT_EXPIRY_MONTHS: int = 12

    # Rate limiting
    VERIFY_RATE_LIMIT_ATTEMPTS: int = 10
    VERIFY_RATE_LIMIT_WINDOW_SECONDS: int = 15 * 60
    RATE_LIMIT_LOGIN_ATTEMPTS: int = 5
    RATE_LIMIT_LOGIN_WINDOW_SECONDS: int = 15 * 60
    # Comma-separated proxy addresses whose X-Forwarded-For is trusted; empty trusts none
    FORWARDED_ALLOW_IPS: str = ""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


settings = Settings()

if settings.SECRET_KEY == "CHANGE_THIS_TO_A_SECRET_KEY" or not settings.SECRET_KEY:
    # Do not crash imports in tools and tests; make the problem loud instead.
    import warnings

    warnings.warn(
        "SECRET_KEY is not configured. Set it in .env before deploying; "
        "gallery access tokens are signed with it."
    )

# Auto-detect secure cookies when running under HTTPS
if not settings.COOKIE_SECURE and str(settings.BASE_URL).lower().startswith("https"):
    settings.COOKIE_SECURE = True

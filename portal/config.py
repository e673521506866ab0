"""
Settings for the Translation Order Portal, read from ``.env`` or the process
environment.

Anything that would make the service unsafe or unreachable when guessed
(environment, secret key, MongoDB location, CORS origins, the public base
URL) has no default: ``Settings()`` raises a validation error naming the
missing variable and the app does not start.
"""

from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


PACKAGE_DIR = Path(__file__).resolve().parent

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _split_csv(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


class Settings(BaseSettings):
    """Portal settings. Field names map to upper-case environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # --- Service -------------------------------------------------------------
    app_name: str = "TranslationOrderPortal"
    app_version: str = "1.0.0"
    environment: str
    debug: bool = False
    host: str = "0.0.0.0"
    port: int = 8000
    app_base_url: str  # links in outgoing emails point here

    # --- Sessions and tokens -------------------------------------------------
    secret_key: str
    session_cookie_name: str = "session_id"
    session_ttl_hours: int = 168
    email_verification_ttl_hours: int = 24
    password_reset_ttl_hours: int = 1

    # --- MongoDB -------------------------------------------------------------
    mongodb_uri: str
    mongodb_database: str
    mongodb_transactions_enabled: bool = False  # replica set only

    # --- Credits and pricing -------------------------------------------------
    registration_free_credits: int = 5000
    deduct_credits_on_submission: bool = False
    pricing_config_path: str = str(PACKAGE_DIR / "pricing" / "pricing.yaml")

    # --- Uploads -------------------------------------------------------------
    max_file_size: int = 10 * 1024 * 1024
    upload_dir: str = "./uploads"

    # --- HTTP ----------------------------------------------------------------
    rate_limiting_enabled: bool = True
    cors_origins: str
    cors_credentials: bool = True
    cors_methods: str = "GET,POST,PUT,PATCH,DELETE,OPTIONS"
    cors_headers: str = "*"

    # --- Logging -------------------------------------------------------------
    log_level: str = "INFO"
    log_file: str = "./logs/portal.log"

    # --- Email (SMTP unset: messages are written to the log instead) ---------
    email_enabled: bool = True
    email_from: str = "noreply@translation-portal.local"
    email_from_name: str = "Translation Portal"
    email_template_dir: str = str(PACKAGE_DIR / "templates" / "email")
    smtp_host: Optional[str] = None
    smtp_port: int = 587
    smtp_username: Optional[str] = None
    smtp_password: Optional[str] = None
    smtp_use_tls: bool = True
    smtp_use_ssl: bool = False
    smtp_timeout: int = 30

    @field_validator('cors_origins')
    @classmethod
    def parse_cors_origins(cls, v):
        origins = _split_csv(v or "")
        if not origins:
            raise ValueError("CORS_ORIGINS must list at least one origin")
        return origins

    @field_validator('cors_methods')
    @classmethod
    def parse_cors_methods(cls, v):
        return [method.upper() for method in _split_csv(v)]

    @field_validator('smtp_port')
    @classmethod
    def check_smtp_port(cls, v):
        if v < 1 or v > 65535:
            raise ValueError(f"SMTP_PORT out of range: {v}")
        return v

    @field_validator('app_base_url')
    @classmethod
    def strip_trailing_slash(cls, v):
        return v.rstrip('/')

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def is_development(self) -> bool:
        return self.environment.lower() == "development"

    @property
    def smtp_configured(self) -> bool:
        """SMTP delivery needs a host and credentials."""
        return bool(self.smtp_host and self.smtp_username and self.smtp_password)

    def is_test_mode(self) -> bool:
        """Tests only ever run against a database whose name ends in ``_test``."""
        return self.mongodb_database.endswith('_test')

    @property
    def log_config(self) -> dict:
        """
        ``logging.config.dictConfig`` settings: stdout plus ``LOG_FILE``.

        Production writes one JSON object per line (python-json-logger);
        other environments use plain text.
        """
        formatter = "json" if self.is_production else "plain"
        return {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "plain": {"format": LOG_FORMAT, "datefmt": "%Y-%m-%d %H:%M:%S"},
                "json": {
                    "()": "pythonjsonlogger.jsonlogger.JsonFormatter",
                    "format": "%(asctime)s %(name)s %(levelname)s %(message)s",
                },
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": formatter,
                    "stream": "ext://sys.stdout",
                },
                "logfile": {
                    "class": "logging.FileHandler",
                    "formatter": formatter,
                    "filename": self.log_file,
                    "encoding": "utf-8",
                },
            },
            "loggers": {
                # driver chatter stays out of the application log
                "pymongo": {"level": "WARNING"},
                "multipart": {"level": "WARNING"},
            },
            "root": {"level": self.log_level.upper(), "handlers": ["console", "logfile"]},
        }

    def ensure_directories(self) -> None:
        """Create the upload tree and the log directory if they are missing."""
        upload_root = Path(self.upload_dir)
        for directory in (upload_root, upload_root / "translations", upload_root / "assets"):
            directory.mkdir(parents=True, exist_ok=True)
        if self.log_file:
            Path(self.log_file).parent.mkdir(parents=True, exist_ok=True)


@lru_cache()
def get_settings() -> Settings:
    return Settings()


settings = get_settings()

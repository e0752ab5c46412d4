"""
config/settings.py — Configuration of the VerifiedVA marketplace client.
"""
import os
import sys
import logging
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # === BACKEND ===
    # Project URL of the managed backend, e.g. https://<ref>.supabase.co
    backend_url: str = Field(default="")
    # Public (anon) key sent with every request; row-level security does the rest
    backend_anon_key: str = Field(default="")
    # Serverless email function
    email_api_url: str = Field(default="https://verifiedva.vercel.app/api/send-email")
    request_timeout: float = 30.0

    # === CREDENTIALS (console entry point only) ===
    user_email: str = Field(default="")
    user_password: str = Field(default="")

    # === PATHS ===
    base_dir: Path = Path(__file__).parent.parent
    data_dir: Path = base_dir / "data"
    logs_dir: Path = base_dir / "logs"

    # === INTERVIEWS ===
    slot_minutes: int = 30
    booking_horizon_days: int = 28

    # === MESSAGING ===
    message_poll_interval: float = 3.0

    log_level: str = "INFO"
    use_file_logging: bool = True

    model_config = {"case_sensitive": False}

    @field_validator("backend_url", mode="before")
    @classmethod
    def validate_backend_url(cls, v):
        url = (v or os.getenv("BACKEND_URL", "")).strip().rstrip("/")
        if not url:
            print("❌ BACKEND_URL is not set!", file=sys.stderr)
        return url

    @field_validator("backend_anon_key", mode="before")
    @classmethod
    def validate_anon_key(cls, v):
        return (v or os.getenv("BACKEND_ANON_KEY", "")).strip()

    @field_validator("log_level", mode="before")
    @classmethod
    def validate_log_level(cls, v):
        return (v or "INFO").upper()


settings = Settings()
logger = logging.getLogger(__name__)


def setup_logging():
    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)]
    )
    if settings.use_file_logging:
        try:
            settings.logs_dir.mkdir(parents=True, exist_ok=True)
            fh = logging.FileHandler(settings.logs_dir / "client.log", encoding="utf-8")
            fh.setFormatter(logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
            ))
            logging.getLogger().addHandler(fh)
        except OSError as e:
            logger.warning(f"⚠️ File logging unavailable: {e}")


def ensure_dirs():
    for d in [settings.data_dir, settings.logs_dir]:
        d.mkdir(parents=True, exist_ok=True)

from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict
from pydantic import field_validator, model_validator
from typing import Annotated, Any
import json
from pathlib import Path
import os


def _split_list(v: Any) -> Any:
    """Parse a comma-separated or JSON list from the environment."""
    if isinstance(v, str):
        try:
            parsed = json.loads(v)
            if isinstance(parsed, list):
                return parsed
        except json.JSONDecodeError:
            pass
        return [s.strip() for s in v.split(",") if s.strip()]
    return v


class Settings(BaseSettings):
    model_config = SettingsConfigDict(extra="ignore", case_sensitive=True)

    API_PREFIX: str = "/api"

    # CORS origins for the JSON API (the funnel pages are same-origin)
    CORS_ORIGINS: Annotated[list[str], NoDecode] = ["http://localhost:3000", "http://127.0.0.1:3000"]
    CORS_ALLOW_ALL: bool = False

    # SendGrid delivery. Key and from-address are required at first send;
    # leaving them empty is only valid for processes that never send mail.
    SENDGRID_API_KEY: str = ""
    SENDGRID_FROM_EMAIL: str = ""
    SENDGRID_API_URL: str = "https://api.sendgrid.com/v3/mail/send"
    EMAIL_TIMEOUT: float = 8.0
    # Delays between attempts; the number of attempts is len + 1
    EMAIL_RETRY_DELAYS_MS: Annotated[list[int], NoDecode] = [300, 900]

    # Fallback owner routing for tenants that do not declare their own inbox
    OWNER_EMAIL: str = ""
    PUSHOVER_BCC_EMAIL: str = ""
    DEFAULT_CONTACT_PHONE: str = "+18016516326"

    # Submission rate limiting, keyed by tenant + client IP
    RATE_LIMIT_PER_MINUTE: int = 5
    RATE_LIMIT_PER_HOUR: int = 30
    RATE_LIMIT_MAX_KEYS: int = 10000

    # Redis is optional; empty/none/disabled keeps counters and caches in memory
    REDIS_URL: str = ""

    # Geocoding (backend proxy + server-side measurement)
    GOOGLE_MAPS_API_KEY: str = ""
    GEOCODE_TIMEOUT: float = 3.0

    # Measurement surface debounce after a shape completes
    DRAW_RESUME_COOLDOWN_MS: int = 300

    LOG_LEVEL: str = "INFO"

    @field_validator("CORS_ORIGINS", "EMAIL_RETRY_DELAYS_MS", mode="before")
    def split_lists(cls, v: Any) -> Any:
        return _split_list(v)

    @field_validator(
        "SENDGRID_API_KEY",
        "SENDGRID_FROM_EMAIL",
        "OWNER_EMAIL",
        "PUSHOVER_BCC_EMAIL",
        "GOOGLE_MAPS_API_KEY",
        "REDIS_URL",
        mode="before",
    )
    def strip_whitespace(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip()
        return v

    @field_validator("EMAIL_RETRY_DELAYS_MS")
    def non_negative_delays(cls, v: list[int]) -> list[int]:
        return [max(0, int(d)) for d in v]

    @model_validator(mode="after")
    def allow_all_if_requested(self) -> "Settings":
        if self.CORS_ALLOW_ALL:
            self.CORS_ORIGINS = ["*"]
        return self


def load_settings() -> "Settings":
    return Settings(_env_file=os.getenv("ENV_FILE", str(Path(__file__).resolve().parents[3] / ".env")))


settings = load_settings()

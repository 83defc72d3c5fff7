"""
Pydantic model for application configuration.
Provides robust validation for all settings.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator

from asmr_dl.media.downloader import DEFAULT_USER_AGENT
from asmr_dl.notify.webhook import DEFAULT_USERNAME

DEFAULT_LEDGER_NAME = "failed-download.txt"


class AppConfig(BaseModel):
    """A validated configuration model for the application."""

    model_config = ConfigDict(validate_assignment=True, str_strip_whitespace=True)

    # Download Settings
    output_dir: str = "downloads"
    max_workers: int = 8
    user_agent: str = DEFAULT_USER_AGENT
    connect_timeout: float = 15
    read_timeout: float = 90
    verify_audio: bool = False

    # Failure Recovery
    ledger_path: str = DEFAULT_LEDGER_NAME
    max_retry: int = 3
    backoff_seconds: float = 10
    fix_after_download: bool = True

    # Notifications
    webhook_url: str = ""
    webhook_username: str = DEFAULT_USERNAME

    # Internal fields not loaded from INI file
    config_path: str = Field("", repr=False)
    source_urls: list[str] = Field(default_factory=list, repr=False)

    @field_validator("max_workers")
    @classmethod
    def validate_workers(cls, v: int) -> int:
        """Ensures a reasonable number of workers."""
        if v < 1 or v > 32:
            raise ValueError("Max workers must be between 1 and 32.")
        return v

    @field_validator("max_retry")
    @classmethod
    def validate_max_retry(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Max retry must be a positive integer.")
        return v

    @field_validator("backoff_seconds", "connect_timeout", "read_timeout")
    @classmethod
    def validate_non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("Durations cannot be negative.")
        return v

    @field_validator("webhook_url")
    @classmethod
    def validate_webhook_url(cls, v: str) -> str:
        """Accepts an empty value (notifications disabled) or an http(s) URL."""
        if v and not v.startswith(("http://", "https://")):
            raise ValueError("Webhook URL must start with http:// or https://.")
        return v

    @field_validator("output_dir", "ledger_path")
    @classmethod
    def validate_paths(cls, v: str) -> str:
        if not v:
            raise ValueError("Path settings cannot be empty.")
        if "|" in v:
            raise ValueError("Paths cannot contain '|' (used as ledger separator).")
        return v

    @classmethod
    def get_ini_keys(cls) -> set[str]:
        """Returns a set of all keys that are expected in the INI file."""
        internal_fields = {"config_path", "source_urls"}
        return {key for key in cls.model_fields if key not in internal_fields}

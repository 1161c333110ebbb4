"""Settings for structure order collection.

Everything comes from env vars (a .env file in the working directory is
picked up too). Settings are checked when they are loaded and again at the
start of every pass."""

import os
from datetime import timedelta
from typing import Dict, Tuple

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from helpers.constants import (
    ACCOUNT_ID_ENV_VAR,
    API_VERSION_ENV_VAR,
    BASE_URL_ENV_VAR,
    COMMIT_TIMEOUT_ENV_VAR,
    DATABASE_URL_ENV_VAR,
    DEFAULT_API_VERSION,
    DEFAULT_BASE_URL,
    DEFAULT_COMMIT_TIMEOUT_SECONDS,
    DEFAULT_DATABASE_URL,
    DEFAULT_EXPIRY_WINDOW_MINUTES,
    DEFAULT_LOCK_TIMEOUT_SECONDS,
    DEFAULT_MAX_PAGE_WORKERS,
    DEFAULT_POLL_MINUTES,
    DEFAULT_REQUEST_TIMEOUT_SECONDS,
    EXPIRY_WINDOW_ENV_VAR,
    GATHER_ENABLED_ENV_VAR,
    LOCK_TIMEOUT_ENV_VAR,
    MAX_PAGE_WORKERS_ENV_VAR,
    POLL_MINUTES_ENV_VAR,
    REQUEST_TIMEOUT_ENV_VAR,
    VENUE_ID_ENV_VAR,
)
from helpers.errors import ConfigurationError
from helpers.types.auth import AccountId
from helpers.types.common import URL
from helpers.types.orders import VenueId

TRUTHY = ("true", "1", "yes", "y")

# Env var -> config field
_ENV_FIELDS: Dict[str, str] = {
    VENUE_ID_ENV_VAR: "venue_id",
    ACCOUNT_ID_ENV_VAR: "account_id",
    POLL_MINUTES_ENV_VAR: "poll_minutes",
    EXPIRY_WINDOW_ENV_VAR: "expiry_window_minutes",
    BASE_URL_ENV_VAR: "base_url",
    API_VERSION_ENV_VAR: "api_version",
    REQUEST_TIMEOUT_ENV_VAR: "request_timeout_seconds",
    COMMIT_TIMEOUT_ENV_VAR: "commit_timeout_seconds",
    MAX_PAGE_WORKERS_ENV_VAR: "max_page_workers",
    LOCK_TIMEOUT_ENV_VAR: "lock_timeout_seconds",
    DATABASE_URL_ENV_VAR: "database_url",
}


class CollectorConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    enabled: bool = False
    venue_id: VenueId | None = None
    account_id: AccountId | None = None
    poll_minutes: int = DEFAULT_POLL_MINUTES
    # Tolerance around the polling interval when deciding whether a
    # disappeared order expired. Too small counts expiries as fills, too
    # large swallows real fills
    expiry_window_minutes: int = DEFAULT_EXPIRY_WINDOW_MINUTES
    base_url: URL = DEFAULT_BASE_URL
    api_version: URL = DEFAULT_API_VERSION
    request_timeout_seconds: float = DEFAULT_REQUEST_TIMEOUT_SECONDS
    commit_timeout_seconds: float = DEFAULT_COMMIT_TIMEOUT_SECONDS
    max_page_workers: int = DEFAULT_MAX_PAGE_WORKERS
    lock_timeout_seconds: float = DEFAULT_LOCK_TIMEOUT_SECONDS
    database_url: str = DEFAULT_DATABASE_URL

    @field_validator(
        "poll_minutes",
        "request_timeout_seconds",
        "commit_timeout_seconds",
        "max_page_workers",
        "lock_timeout_seconds",
    )
    @classmethod
    def _positive(cls, v):
        if v <= 0:
            raise ValueError(f"must be positive, got {v}")
        return v

    @field_validator("expiry_window_minutes")
    @classmethod
    def _non_negative(cls, v: int):
        if v < 0:
            raise ValueError(f"must not be negative, got {v}")
        return v

    @field_validator("database_url")
    @classmethod
    def _non_empty(cls, v: str):
        if not v.strip():
            raise ValueError("must not be empty")
        return v

    @property
    def expiry_window(self) -> timedelta:
        return timedelta(minutes=self.expiry_window_minutes)

    @property
    def poll_interval(self) -> timedelta:
        return timedelta(minutes=self.poll_minutes)

    @classmethod
    def from_env(cls, **overrides) -> "CollectorConfig":
        """Builds the config from env vars. Empty env vars count as unset.
        Raises ConfigurationError if a value does not validate"""
        load_dotenv()
        values: Dict[str, object] = {}
        for env_var, field_name in _ENV_FIELDS.items():
            raw = os.environ.get(env_var, "").strip()
            if raw:
                values[field_name] = raw
        values["enabled"] = (
            os.environ.get(GATHER_ENABLED_ENV_VAR, "").strip().lower() in TRUTHY
        )
        values.update(overrides)
        try:
            return cls(**values)  # type:ignore[arg-type]
        except ValidationError as e:
            raise ConfigurationError(f"Invalid collector settings: {e}") from e

    def validate_for_pass(
        self, venue_id: VenueId | None = None
    ) -> Tuple[VenueId, AccountId]:
        """Returns the venue and account a pass should use.

        An explicit venue_id wins over the configured one"""
        venue_id = venue_id or self.venue_id
        if venue_id is None:
            raise ConfigurationError(f"{VENUE_ID_ENV_VAR} is not configured")
        if self.account_id is None:
            raise ConfigurationError(f"{ACCOUNT_ID_ENV_VAR} is not configured")
        return VenueId(venue_id), self.account_id

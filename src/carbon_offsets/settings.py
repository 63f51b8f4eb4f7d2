"""Environment-backed settings primitives for :mod:`carbon_offsets`."""

from __future__ import annotations

from pydantic import Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

__all__ = ["CarbonOffsetsSettings", "get_settings"]

DEFAULT_REMOTE_TIMEOUT_SECONDS = 8.0
DEFAULT_HISTORY_LIMIT = 100
DEFAULT_PRUNE_INTERVAL_SECONDS = 3600.0
DEFAULT_POLL_INTERVAL_SECONDS = 2.0


class CarbonOffsetsSettings(BaseSettings):
    """Expose environment-derived configuration knobs for carbon offsets.

    All environment access goes through this class so that the remote
    authority credential is only ever supplied at runtime and never shipped
    with the package.

    Attributes:
        climatiq_api_key: Bearer token for the remote estimation authority.
            When unset the remote path reports itself unavailable and every
            estimate is produced by the local heuristic.
        climatiq_base_url: Base URL of the remote estimation authority.
        remote_timeout_seconds: Upper bound for a single remote estimate.
        store_path: Path to the JSON document backing the offset ledger.
        history_limit: Maximum number of offset events kept for display.
        prune_interval_seconds: Cadence of the retention pruning loop.
        poll_interval_seconds: Cadence of the display mirror reconcile loop.
        random_seed: Optional seed for the heuristic jitter source.
    """

    climatiq_api_key: str | None = Field(default=None, alias="CLIMATIQ_API_KEY")
    climatiq_base_url: str = Field(
        default="https://beta3.api.climatiq.io", alias="CLIMATIQ_BASE_URL"
    )
    remote_timeout_seconds: float = Field(
        default=DEFAULT_REMOTE_TIMEOUT_SECONDS, alias="CARBON_OFFSETS_REMOTE_TIMEOUT"
    )
    store_path: str | None = Field(default=None, alias="CARBON_OFFSETS_STORE_PATH")
    history_limit: int = Field(
        default=DEFAULT_HISTORY_LIMIT, alias="CARBON_OFFSETS_HISTORY_LIMIT"
    )
    prune_interval_seconds: float = Field(
        default=DEFAULT_PRUNE_INTERVAL_SECONDS, alias="CARBON_OFFSETS_PRUNE_INTERVAL"
    )
    poll_interval_seconds: float = Field(
        default=DEFAULT_POLL_INTERVAL_SECONDS, alias="CARBON_OFFSETS_POLL_INTERVAL"
    )
    random_seed: int | None = Field(default=None, alias="CARBON_OFFSETS_RANDOM_SEED")

    model_config = SettingsConfigDict(env_file=None, extra="ignore")

    @field_validator("remote_timeout_seconds", mode="before")
    @classmethod
    def _parse_timeout(cls, value: object) -> float:
        """Parse the remote timeout while tolerating malformed input.

        Args:
            value: Raw environment value.

        Returns:
            Parsed positive float, otherwise the default timeout.
        """

        parsed = _to_optional_float(value)
        if parsed is None or parsed <= 0:
            return DEFAULT_REMOTE_TIMEOUT_SECONDS
        return parsed

    @field_validator("prune_interval_seconds", "poll_interval_seconds", mode="before")
    @classmethod
    def _parse_interval(cls, value: object, info: ValidationInfo) -> float:
        """Parse loop intervals, falling back to defaults on malformed input."""

        field_name = info.field_name
        default = (
            DEFAULT_PRUNE_INTERVAL_SECONDS
            if field_name == "prune_interval_seconds"
            else DEFAULT_POLL_INTERVAL_SECONDS
        )
        parsed = _to_optional_float(value)
        if parsed is None or parsed <= 0:
            return default
        return parsed

    @field_validator("history_limit", mode="before")
    @classmethod
    def _parse_history_limit(cls, value: object) -> int:
        """Parse the history cap; non-positive or malformed values use the default."""

        parsed = _to_optional_int(value)
        if parsed is None or parsed <= 0:
            return DEFAULT_HISTORY_LIMIT
        return parsed

    @field_validator("random_seed", mode="before")
    @classmethod
    def _parse_seed(cls, value: object) -> int | None:
        return _to_optional_int(value)

    @field_validator("climatiq_api_key", "store_path", mode="before")
    @classmethod
    def _blank_to_none(cls, value: object) -> str | None:
        """Treat empty environment variables as unset."""

        if value is None:
            return None
        text = str(value).strip()
        return text or None


def _to_optional_float(value: object) -> float | None:
    if value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def _to_optional_int(value: object) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def get_settings() -> CarbonOffsetsSettings:
    """Return a :class:`CarbonOffsetsSettings` instance.

    Returns:
        Settings parsed from environment variables.
    """

    return CarbonOffsetsSettings()

"""Pydantic models describing the public carbon-offsets wire schemas.

Every payload that crosses a surface boundary (scan surface, estimation
authority, display surface) is one of the models below. Field names are
snake_case in Python and camelCase on the wire.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError
from pydantic import field_validator
from pydantic.alias_generators import to_camel

from carbon_offsets.errors import MessageDecodeError
from carbon_offsets.impact import donated_usd, trees_equivalent
from carbon_offsets.models import MINIMUM_CARBON_KG

__all__ = [
    "AggregateStats",
    "AutoOffset",
    "CalculateCarbon",
    "CarbonResult",
    "GetRecentOffsets",
    "GetStats",
    "InboundMessage",
    "ManualOffset",
    "OffsetCompleted",
    "OffsetEvent",
    "OffsetKind",
    "OffsetRequest",
    "OutboundMessage",
    "PageSignal",
    "RecentOffsets",
    "SetAutoOffset",
    "SHOPPING_SITES",
    "StatsReply",
    "StatsUpdated",
    "decode_message",
    "decode_outbound",
    "encode_message",
]

OffsetKind = Literal["manual", "auto"]

SHOPPING_SITES: tuple[str, ...] = (
    "amazon",
    "ebay",
    "walmart",
    "target",
    "bestbuy",
    "etsy",
    "aliexpress",
    "shopify",
    "apple",
    "nike",
    "adidas",
)


class _WireModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="forbid",
    )

    def to_wire(self) -> dict[str, object]:
        """Return a JSON-serialisable payload using wire (camelCase) names."""

        return self.model_dump(mode="json", by_alias=True)


class PageSignal(_WireModel):
    """Product and price hints scraped from a single page scan."""

    model_config = ConfigDict(extra="ignore")

    site_host: str = Field(
        default="",
        description="Hostname of the scanned page (for example 'www.amazon.com').",
    )
    products: tuple[str, ...] = Field(
        default=(),
        description="Candidate product names in document order; first is primary.",
    )
    prices: tuple[float, ...] = Field(
        default=(),
        description="Candidate observed prices in document order.",
    )

    @property
    def primary_product(self) -> str | None:
        """Return the first candidate product name, if any."""

        return self.products[0] if self.products else None

    def is_shopping_page(self) -> bool:
        """Return whether the scan looks like a shopping page."""

        host = self.site_host.lower()
        if any(site in host for site in SHOPPING_SITES):
            return True
        return bool(self.products or self.prices)


class OffsetEvent(_WireModel):
    """Immutable record of a single offset action."""

    id: str = Field(..., min_length=1, description="Creation-ordered identifier.")
    kind: OffsetKind = Field(..., description="Whether a user or auto-trigger fired.")
    carbon_kg: float = Field(
        ...,
        ge=MINIMUM_CARBON_KG,
        allow_inf_nan=False,
        description="Offset carbon mass in kilograms of CO2e.",
    )
    site_host: str = Field(default="", description="Host the purchase came from.")
    product_label: str = Field(default="", description="Best-effort product name.")
    created_at: datetime = Field(..., description="Creation timestamp (UTC).")
    sourced_from_remote: bool = Field(
        default=False,
        description="True when the remote authority produced the carbon value.",
    )
    url: str | None = Field(default=None, description="Page URL when known.")

    @field_validator("created_at")
    @classmethod
    def _ensure_aware(cls, value: datetime) -> datetime:
        """Interpret naive timestamps as UTC."""

        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class AggregateStats(BaseModel):
    """Lifetime offset counters owned by a single ledger.

    The counters only ever grow; pruning the event history does not touch
    them.
    """

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="ignore"
    )

    total_carbon_kg: float = Field(default=0.0, ge=0.0)
    total_trees_equivalent: float = Field(default=0.0, ge=0.0)
    total_offset_count: int = Field(default=0, ge=0)
    total_donated_usd: float = Field(default=0.0, ge=0.0)

    def fold(self, carbon_kg: float) -> None:
        """Add a single offset of ``carbon_kg`` to the counters."""

        self.total_carbon_kg += carbon_kg
        self.total_trees_equivalent += trees_equivalent(carbon_kg)
        self.total_offset_count += 1
        self.total_donated_usd += donated_usd(carbon_kg)

    def snapshot(self) -> AggregateStats:
        """Return an independent copy of the counters."""

        return self.model_copy()

    def to_wire(self) -> dict[str, object]:
        """Return a JSON-serialisable payload using wire (camelCase) names."""

        return self.model_dump(mode="json", by_alias=True)


class OffsetRequest(_WireModel):
    """Fields shared by manual and automatic offset requests."""

    carbon_kg: float = Field(..., gt=0.0, allow_inf_nan=False)
    site_host: str = ""
    product_label: str | None = None
    sourced_from_remote: bool = False
    url: str | None = None


class ManualOffset(OffsetRequest):
    """User pressed the offset button for the current page."""

    action: Literal["manualOffset"] = "manualOffset"


class AutoOffset(OffsetRequest):
    """A checkout action fired while auto-offset is enabled."""

    action: Literal["autoOffset"] = "autoOffset"


class GetRecentOffsets(_WireModel):
    action: Literal["getRecentOffsets"] = "getRecentOffsets"


class SetAutoOffset(_WireModel):
    action: Literal["setAutoOffset"] = "setAutoOffset"
    enabled: bool


class GetStats(_WireModel):
    action: Literal["getStats"] = "getStats"


class CalculateCarbon(_WireModel):
    """Ask the estimation authority for a remote estimate of ``signal``."""

    action: Literal["calculateCarbon"] = "calculateCarbon"
    signal: PageSignal


class OffsetCompleted(_WireModel):
    action: Literal["offsetCompleted"] = "offsetCompleted"
    event: OffsetEvent


class StatsUpdated(_WireModel):
    action: Literal["statsUpdated"] = "statsUpdated"
    stats: AggregateStats


class RecentOffsets(_WireModel):
    action: Literal["recentOffsets"] = "recentOffsets"
    offsets: tuple[OffsetEvent, ...] = ()


class StatsReply(_WireModel):
    action: Literal["stats"] = "stats"
    stats: AggregateStats


class CarbonResult(_WireModel):
    """Reply to :class:`CalculateCarbon`; ``carbon_kg`` is ``None`` on failure."""

    action: Literal["carbonResult"] = "carbonResult"
    carbon_kg: float | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.carbon_kg is not None


InboundMessage = Annotated[
    Union[
        ManualOffset,
        AutoOffset,
        GetRecentOffsets,
        SetAutoOffset,
        GetStats,
        CalculateCarbon,
    ],
    Field(discriminator="action"),
]

OutboundMessage = Annotated[
    Union[OffsetCompleted, StatsUpdated, RecentOffsets, StatsReply, CarbonResult],
    Field(discriminator="action"),
]

_INBOUND_ADAPTER: TypeAdapter[InboundMessage] = TypeAdapter(InboundMessage)
_OUTBOUND_ADAPTER: TypeAdapter[OutboundMessage] = TypeAdapter(OutboundMessage)


def _load_payload(payload: str | bytes | dict[str, object]) -> dict[str, object]:
    if isinstance(payload, dict):
        return payload
    try:
        data = json.loads(payload)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise MessageDecodeError("Message payload is not valid JSON") from exc
    if not isinstance(data, dict):
        raise MessageDecodeError("Message payload must be a JSON object")
    return data


def decode_message(payload: str | bytes | dict[str, object]) -> InboundMessage:
    """Decode a message addressed to the estimation authority.

    Args:
        payload: Raw JSON text/bytes or an already parsed mapping.

    Returns:
        The concrete inbound message model.

    Raises:
        MessageDecodeError: If the payload is not a known, well-formed message.
    """

    data = _load_payload(payload)
    try:
        return _INBOUND_ADAPTER.validate_python(data)
    except ValidationError as exc:
        raise MessageDecodeError(
            f"Unrecognised inbound message: {data.get('action')!r}"
        ) from exc


def decode_outbound(payload: str | bytes | dict[str, object]) -> OutboundMessage:
    """Decode a notification or reply emitted by the estimation authority."""

    data = _load_payload(payload)
    try:
        return _OUTBOUND_ADAPTER.validate_python(data)
    except ValidationError as exc:
        raise MessageDecodeError(
            f"Unrecognised outbound message: {data.get('action')!r}"
        ) from exc


def encode_message(message: _WireModel) -> str:
    """Serialise ``message`` to compact wire JSON."""

    return json.dumps(message.to_wire(), separators=(",", ":"))

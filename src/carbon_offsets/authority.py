"""Message handling for the estimation authority surface."""

from __future__ import annotations

import logging

from carbon_offsets.errors import EstimationError
from carbon_offsets.estimation.service import CarbonEstimationService
from carbon_offsets.ledger.ledger import OffsetLedger
from carbon_offsets.schemas import (
    AutoOffset,
    CalculateCarbon,
    CarbonResult,
    GetRecentOffsets,
    GetStats,
    InboundMessage,
    ManualOffset,
    OutboundMessage,
    RecentOffsets,
    SetAutoOffset,
    StatsReply,
    decode_message,
    encode_message,
)

LOGGER = logging.getLogger(__name__)

__all__ = ["OffsetAuthority"]


class OffsetAuthority:
    """Route inbound messages to the ledger and the estimation service.

    Offset requests and preference changes produce no reply; queries return
    the matching reply model.
    """

    def __init__(self, ledger: OffsetLedger, service: CarbonEstimationService) -> None:
        self._ledger = ledger
        self._service = service

    @property
    def ledger(self) -> OffsetLedger:
        return self._ledger

    def handle(self, message: InboundMessage) -> OutboundMessage | None:
        """Handle a decoded inbound message."""

        if isinstance(message, (ManualOffset, AutoOffset)):
            self._ledger.record_offset(
                "auto" if isinstance(message, AutoOffset) else "manual",
                message.carbon_kg,
                site_host=message.site_host,
                product_label=message.product_label,
                sourced_from_remote=message.sourced_from_remote,
                url=message.url,
            )
            return None
        if isinstance(message, GetRecentOffsets):
            return RecentOffsets(offsets=tuple(self._ledger.recent_window()))
        if isinstance(message, SetAutoOffset):
            self._ledger.set_auto_offset(message.enabled)
            return None
        if isinstance(message, GetStats):
            return StatsReply(stats=self._ledger.get_stats())
        if isinstance(message, CalculateCarbon):
            return self._calculate(message)
        raise TypeError(f"Unhandled message type: {type(message).__name__}")

    def handle_raw(self, payload: str | bytes) -> str | None:
        """Decode ``payload``, handle it and encode the reply, if any.

        Raises:
            MessageDecodeError: If ``payload`` is not a known message.
        """

        reply = self.handle(decode_message(payload))
        return encode_message(reply) if reply is not None else None

    def _calculate(self, message: CalculateCarbon) -> CarbonResult:
        try:
            estimate = self._service.estimate_remote(message.signal)
        except EstimationError as exc:
            LOGGER.warning(
                "Remote calculation failed",
                extra={
                    "site_host": message.signal.site_host,
                    "error_type": type(exc).__name__,
                },
            )
            return CarbonResult(error=type(exc).__name__)
        return CarbonResult(carbon_kg=estimate.carbon_kg)

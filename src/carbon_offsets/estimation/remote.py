"""Client for the remote spend-based emission estimation API (Climatiq)."""

from __future__ import annotations

import logging
import math

import httpx

from carbon_offsets.errors import RemoteMalformed, RemoteUnavailable
from carbon_offsets.models import EmissionFactor
from carbon_offsets.settings import CarbonOffsetsSettings, get_settings

LOGGER = logging.getLogger(__name__)

__all__ = ["ClimatiqClient", "KG_PER_TONNE"]

KG_PER_TONNE = 1000.0


class ClimatiqClient:
    """Submit spend-based estimates to the remote emission factor authority.

    The API credential is resolved from an explicit ``api_key`` or from
    :class:`~carbon_offsets.settings.CarbonOffsetsSettings`; it is never
    bundled with the package.
    """

    def __init__(
        self,
        base_url: str | None = None,
        *,
        api_key: str | None = None,
        timeout_seconds: float | None = None,
        settings: CarbonOffsetsSettings | None = None,
    ) -> None:
        self._settings = settings
        settings_obj = settings or get_settings()
        self._base = (base_url or settings_obj.climatiq_base_url).rstrip("/")
        self._explicit_key = api_key
        self._timeout = (
            timeout_seconds
            if timeout_seconds is not None
            else settings_obj.remote_timeout_seconds
        )

    @property
    def configured(self) -> bool:
        """Return whether an API credential is available."""

        return bool(self._resolve_api_key())

    @property
    def timeout_seconds(self) -> float:
        return self._timeout

    def estimate_tonnes(
        self, factor: EmissionFactor, price_usd: float, currency: str = "usd"
    ) -> float:
        """Return the emissions for ``price_usd`` spent under ``factor``.

        Args:
            factor: Emission factor resolved from the purchase category.
            price_usd: Spend amount.
            currency: Spend currency code understood by the authority.

        Returns:
            Emissions in tonnes of CO2e as reported by the authority.

        Raises:
            RemoteUnavailable: On missing credentials, transport failures,
                timeouts or non-2xx replies.
            RemoteMalformed: When the body is not JSON or ``co2e`` is not a
                finite, non-negative number.
        """

        api_key = self._resolve_api_key()
        if not api_key:
            raise RemoteUnavailable("Remote estimation API key is not configured")

        url = f"{self._base}/estimate"
        headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }
        body = {
            "emission_factor": factor.to_request(),
            "parameters": {"money": float(price_usd), "money_unit": currency},
        }
        try:
            with httpx.Client(timeout=self._timeout) as client:
                response = client.post(url, headers=headers, json=body)
                response.raise_for_status()
                payload = response.json()
        except httpx.HTTPStatusError as exc:
            LOGGER.warning(
                "Remote estimate HTTP error",
                extra={
                    "factor_id": factor.factor_id,
                    "status_code": exc.response.status_code,
                    "url": url,
                },
            )
            raise RemoteUnavailable(
                f"Remote estimate failed with HTTP {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            LOGGER.warning(
                "Remote estimate transport error",
                extra={"factor_id": factor.factor_id, "url": url},
                exc_info=exc,
            )
            raise RemoteUnavailable(f"Remote estimate transport error: {exc}") from exc
        except (ValueError, TypeError) as exc:
            LOGGER.warning(
                "Remote estimate response parsing error",
                extra={"factor_id": factor.factor_id, "url": url},
                exc_info=exc,
            )
            raise RemoteMalformed("Remote estimate body is not valid JSON") from exc
        except Exception as exc:  # pragma: no cover - unexpected client failure
            LOGGER.warning(
                "Remote estimate unexpected error",
                extra={"factor_id": factor.factor_id, "url": url},
                exc_info=exc,
            )
            raise RemoteUnavailable(f"Remote estimate failed: {exc}") from exc

        if not isinstance(payload, dict):
            raise RemoteMalformed("Remote estimate body is not a JSON object")

        raw = payload.get("co2e")
        if isinstance(raw, bool):
            raise RemoteMalformed("Remote estimate returned a boolean co2e")
        try:
            tonnes = float(raw)  # type: ignore[arg-type]
        except (TypeError, ValueError) as exc:
            LOGGER.warning(
                "Remote estimate returned non-numeric co2e",
                extra={"factor_id": factor.factor_id, "url": url, "value": raw},
            )
            raise RemoteMalformed(f"Remote estimate co2e is not numeric: {raw!r}") from exc

        if not math.isfinite(tonnes) or tonnes < 0:
            raise RemoteMalformed(f"Remote estimate co2e out of range: {tonnes!r}")
        return tonnes

    def estimate_kg(
        self, factor: EmissionFactor, price_usd: float, currency: str = "usd"
    ) -> float:
        """Return :meth:`estimate_tonnes` converted to kilograms."""

        return self.estimate_tonnes(factor, price_usd, currency) * KG_PER_TONNE

    def _resolve_api_key(self) -> str | None:
        if self._explicit_key:
            return self._explicit_key
        settings_obj = self._settings or get_settings()
        return settings_obj.climatiq_api_key

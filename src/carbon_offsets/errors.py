"""Exception hierarchy for :mod:`carbon_offsets`."""

from __future__ import annotations

__all__ = [
    "CarbonOffsetsError",
    "EstimationError",
    "MessageDecodeError",
    "NoProductSignal",
    "PersistenceUnavailable",
    "RemoteMalformed",
    "RemoteUnavailable",
]


class CarbonOffsetsError(RuntimeError):
    """Base class for all carbon-offsets failures."""


class EstimationError(CarbonOffsetsError):
    """Raised when the remote estimation path cannot produce a value.

    Callers are expected to fall back to the local heuristic estimator.
    """


class RemoteUnavailable(EstimationError):
    """Raised on transport errors, timeouts, non-2xx replies or missing credentials."""


class RemoteMalformed(EstimationError):
    """Raised when the remote authority replies with an unusable body."""


class NoProductSignal(EstimationError):
    """Raised when the remote path is asked to price a page without products."""


class PersistenceUnavailable(CarbonOffsetsError):
    """Raised by key-value stores when a bucket cannot be read or written."""


class MessageDecodeError(ValueError):
    """Raised when a transport payload does not match any known message."""

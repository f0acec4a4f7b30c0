"""Error taxonomy shared by the harvester federation engine."""

from __future__ import annotations

from typing import Any


class HarvesterError(RuntimeError):
    """Base error for the harvester."""


class ConfigError(HarvesterError):
    """Raised at start-up when the configuration or its referenced files are unusable."""


class NotOnboardedError(HarvesterError):
    """Raised when no bearer token is held for the hub."""


class NetworkError(HarvesterError):
    """Raised for transport failures talking to the hub."""


class ProtocolError(HarvesterError):
    """Raised when the hub answers with a non-200 status or a malformed body."""

    def __init__(self, message: str, *, status_code: int | None = None, payload: Any | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload


class AuthError(ProtocolError):
    """Raised when the hub keeps rejecting the bearer token after a rotation."""


class VerificationError(HarvesterError):
    """Raised when a bundle signature cannot be verified."""


class InvalidSignatureError(VerificationError):
    """Raised when the signature does not match the payload."""


class ChainError(VerificationError):
    """Raised when the signing certificate does not chain to a trust anchor."""


class UpstreamError(HarvesterError):
    """Raised when the local identity server cannot be reached or misbehaves."""


# errors a sync tick logs and retries on the next tick
TRANSIENT_ERRORS: tuple[type[HarvesterError], ...] = (
    NotOnboardedError,
    NetworkError,
    ProtocolError,
    UpstreamError,
)

__all__ = [
    "HarvesterError",
    "ConfigError",
    "NotOnboardedError",
    "NetworkError",
    "ProtocolError",
    "AuthError",
    "VerificationError",
    "InvalidSignatureError",
    "ChainError",
    "UpstreamError",
    "TRANSIENT_ERRORS",
]

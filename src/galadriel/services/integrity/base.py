"""Contracts for signing outbound bundles and verifying inbound ones."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Protocol, Sequence

from cryptography import x509

__all__ = ["Clock", "SystemClock", "Signer", "Verifier"]


class Clock(Protocol):
    def now(self) -> datetime: ...


class SystemClock:
    """Wall clock in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class Signer(Protocol):
    def sign(self, payload: bytes) -> tuple[bytes | None, list[x509.Certificate]]:
        """Return the signature over ``SHA-256(payload)`` and the signing chain, leaf first."""
        ...


class Verifier(Protocol):
    def verify(self, payload: bytes, signature: bytes | None, chain: Sequence[x509.Certificate]) -> None:
        """Raise :class:`~galadriel.services.errors.VerificationError` unless the signature is trusted."""
        ...

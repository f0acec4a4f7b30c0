from __future__ import annotations

from typing import Sequence

from cryptography import x509

__all__ = ["NoOpSigner", "NoOpVerifier"]


class NoOpSigner:
    """Development signer: publishes bundles unsigned."""

    def sign(self, payload: bytes) -> tuple[bytes | None, list[x509.Certificate]]:
        return None, []


class NoOpVerifier:
    """Development verifier: accepts every bundle."""

    def verify(self, payload: bytes, signature: bytes | None, chain: Sequence[x509.Certificate]) -> None:
        return None

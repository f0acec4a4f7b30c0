"""Trust domain names and the bundle entity exchanged with the hub."""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Mapping

from galadriel.services.crypto.pki import calculate_digest

__all__ = [
    "Bundle",
    "FederatedBundleState",
    "parse_trust_domain",
    "states_equal",
]

# trust domain -> SHA-256 digest of the bundle the hub holds for it
FederatedBundleState = dict[str, bytes]

_TRUST_DOMAIN_RE = re.compile(r"^[a-z0-9._-]+$")


def parse_trust_domain(value: str) -> str:
    """Validate a trust domain name; raises ``ValueError`` for anything else."""

    if not isinstance(value, str) or not value:
        raise ValueError("trust domain is missing")
    if "://" in value or "/" in value:
        raise ValueError(f"trust domain {value!r} must not contain a scheme or path")
    if not _TRUST_DOMAIN_RE.match(value):
        raise ValueError(f"trust domain {value!r} contains invalid characters")
    return value


def states_equal(left: Mapping[str, bytes] | None, right: Mapping[str, bytes] | None) -> bool:
    left = left or {}
    right = right or {}
    if left.keys() != right.keys():
        return False
    return all(bytes(left[key]) == bytes(right[key]) for key in left)


@dataclass(frozen=True, slots=True)
class Bundle:
    trust_domain: str
    data: bytes
    digest: bytes
    signature: bytes | None = None
    # concatenated DER, leaf first
    signing_certificate: bytes | None = None

    def __post_init__(self) -> None:
        if self.signature and not self.signing_certificate:
            raise ValueError(f"bundle for {self.trust_domain} carries a signature without a signing certificate")

    @classmethod
    def create(
        cls,
        trust_domain: str,
        data: bytes,
        *,
        signature: bytes | None = None,
        signing_certificate: bytes | None = None,
    ) -> "Bundle":
        return cls(
            trust_domain=trust_domain,
            data=data,
            digest=calculate_digest(data),
            signature=signature or None,
            signing_certificate=signing_certificate or None,
        )

    def digest_matches(self) -> bool:
        return calculate_digest(self.data) == self.digest

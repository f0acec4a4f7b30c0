"""Relationship records exchanged with the hub's administrative endpoints."""
from __future__ import annotations

import re
import uuid
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Mapping

from galadriel.services.bundle import parse_trust_domain

__all__ = ["ConsentStatus", "Relationship"]


class _StrEnum(str, Enum):
    """Simple ``str``-backed enum compatible with Python 3.10."""

    def __str__(self) -> str:  # pragma: no cover - convenience for logging only
        return str(self.value)


class ConsentStatus(_StrEnum):
    APPROVED = "approved"
    DENIED = "denied"
    PENDING = "pending"


_FRACTION = re.compile(r"\.(\d+)")


def _parse_time(value: Any) -> datetime | None:
    if not value:
        return None
    text = str(value)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    # fromisoformat before 3.11 takes exactly 3 or 6 fractional digits
    text = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text, count=1)
    return datetime.fromisoformat(text)


def _format_time(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


@dataclass(slots=True)
class Relationship:
    id: uuid.UUID
    trust_domain_a_id: uuid.UUID | None
    trust_domain_b_id: uuid.UUID | None
    trust_domain_a_consent: ConsentStatus
    trust_domain_b_consent: ConsentStatus
    trust_domain_a_name: str | None = None
    trust_domain_b_name: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_json(cls, payload: Mapping[str, Any]) -> "Relationship":
        """Build from the hub's JSON shape; raises ``ValueError`` on malformed fields."""

        if not isinstance(payload, Mapping):
            raise ValueError("relationship must be a JSON object")
        try:
            rel_id = uuid.UUID(str(payload["id"]))
        except KeyError as exc:
            raise ValueError("relationship id is missing") from exc

        def _uuid(key: str) -> uuid.UUID | None:
            value = payload.get(key)
            return uuid.UUID(str(value)) if value else None

        def _name(key: str) -> str | None:
            value = payload.get(key)
            return parse_trust_domain(value) if value else None

        return cls(
            id=rel_id,
            trust_domain_a_id=_uuid("trust_domain_a_id"),
            trust_domain_b_id=_uuid("trust_domain_b_id"),
            trust_domain_a_consent=ConsentStatus(payload.get("trust_domain_a_consent") or ConsentStatus.PENDING),
            trust_domain_b_consent=ConsentStatus(payload.get("trust_domain_b_consent") or ConsentStatus.PENDING),
            trust_domain_a_name=_name("trust_domain_a_name"),
            trust_domain_b_name=_name("trust_domain_b_name"),
            created_at=_parse_time(payload.get("created_at")),
            updated_at=_parse_time(payload.get("updated_at")),
        )

    def console_string(self) -> str:
        a = self.trust_domain_a_name or self.trust_domain_a_id or "-"
        b = self.trust_domain_b_name or self.trust_domain_b_id or "-"
        return (
            f"ID: {self.id}\n"
            f"Trust Domain A: {a} ({self.trust_domain_a_consent.value})\n"
            f"Trust Domain B: {b} ({self.trust_domain_b_consent.value})"
        )

    def to_json(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "trust_domain_a_id": str(self.trust_domain_a_id) if self.trust_domain_a_id else None,
            "trust_domain_b_id": str(self.trust_domain_b_id) if self.trust_domain_b_id else None,
            "trust_domain_a_name": self.trust_domain_a_name,
            "trust_domain_b_name": self.trust_domain_b_name,
            "trust_domain_a_consent": self.trust_domain_a_consent.value,
            "trust_domain_b_consent": self.trust_domain_b_consent.value,
            "created_at": _format_time(self.created_at),
            "updated_at": _format_time(self.updated_at),
        }

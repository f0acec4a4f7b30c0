"""SPIFFE bundle documents (JWKS) as produced and consumed by the identity server."""
from __future__ import annotations

import base64
import json
from dataclasses import dataclass, field
from typing import Any, Mapping

from cryptography import x509
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa

from .models import Bundle

__all__ = ["SpiffeBundle", "X509_SVID_USE", "JWT_SVID_USE"]

X509_SVID_USE = "x509-svid"
JWT_SVID_USE = "jwt-svid"

_CURVES: dict[str, type[ec.EllipticCurve]] = {
    "P-256": ec.SECP256R1,
    "P-384": ec.SECP384R1,
    "P-521": ec.SECP521R1,
}


def _b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def _b64url_decode(value: str) -> bytes:
    return base64.urlsafe_b64decode(value + "=" * (-len(value) % 4))


def _optional_int(document: Mapping[str, Any], key: str, trust_domain: str) -> int | None:
    value = document.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{key} of bundle for {trust_domain} must be an integer")
    return value


def _int_bytes(value: int, size: int | None = None) -> bytes:
    size = size or max(1, (value.bit_length() + 7) // 8)
    return value.to_bytes(size, "big")


def _public_key_jwk(public_key: Any) -> dict[str, str]:
    if isinstance(public_key, rsa.RSAPublicKey):
        numbers = public_key.public_numbers()
        return {"kty": "RSA", "n": _b64url(_int_bytes(numbers.n)), "e": _b64url(_int_bytes(numbers.e))}
    if isinstance(public_key, ec.EllipticCurvePublicKey):
        numbers = public_key.public_numbers()
        size = (public_key.curve.key_size + 7) // 8
        crv = {curve().name: name for name, curve in _CURVES.items()}.get(public_key.curve.name)
        if crv is None:
            raise ValueError(f"unsupported curve {public_key.curve.name}")
        return {"kty": "EC", "crv": crv, "x": _b64url(_int_bytes(numbers.x, size)), "y": _b64url(_int_bytes(numbers.y, size))}
    raise ValueError(f"unsupported public key type {type(public_key).__name__}")


def _jwk_public_key(jwk: Mapping[str, Any]) -> Any:
    kty = jwk.get("kty")
    if kty == "RSA":
        n = int.from_bytes(_b64url_decode(jwk["n"]), "big")
        e = int.from_bytes(_b64url_decode(jwk["e"]), "big")
        return rsa.RSAPublicNumbers(e, n).public_key()
    if kty == "EC":
        curve = _CURVES.get(jwk.get("crv", ""))
        if curve is None:
            raise ValueError(f"unsupported curve {jwk.get('crv')!r}")
        x = int.from_bytes(_b64url_decode(jwk["x"]), "big")
        y = int.from_bytes(_b64url_decode(jwk["y"]), "big")
        return ec.EllipticCurvePublicNumbers(x, y, curve()).public_key()
    raise ValueError(f"unsupported key type {kty!r}")


def _spki(public_key: Any) -> bytes:
    return public_key.public_bytes(serialization.Encoding.DER, serialization.PublicFormat.SubjectPublicKeyInfo)


@dataclass(frozen=True)
class SpiffeBundle:
    """Authorities of one trust domain, compared by value."""

    trust_domain: str
    # DER encoded CA certificates
    x509_authorities: tuple[bytes, ...] = ()
    # key id -> SubjectPublicKeyInfo DER
    jwt_authorities: Mapping[str, bytes] = field(default_factory=dict)
    # seconds
    refresh_hint: int | None = None
    sequence_number: int | None = None

    def marshal(self) -> bytes:
        keys: list[dict[str, Any]] = []
        for der in self.x509_authorities:
            cert = x509.load_der_x509_certificate(der)
            entry = {"use": X509_SVID_USE}
            entry.update(_public_key_jwk(cert.public_key()))
            entry["x5c"] = [base64.b64encode(der).decode("ascii")]
            keys.append(entry)
        for key_id in sorted(self.jwt_authorities):
            public_key = serialization.load_der_public_key(self.jwt_authorities[key_id])
            entry = {"use": JWT_SVID_USE, "kid": key_id}
            entry.update(_public_key_jwk(public_key))
            keys.append(entry)

        document: dict[str, Any] = {"keys": keys}
        if self.sequence_number is not None:
            document["spiffe_sequence"] = self.sequence_number
        if self.refresh_hint is not None:
            document["spiffe_refresh_hint"] = self.refresh_hint
        return json.dumps(document, separators=(",", ":")).encode("utf-8")

    @classmethod
    def parse(cls, trust_domain: str, data: bytes) -> "SpiffeBundle":
        """Parse a JWKS bundle document; raises ``ValueError`` on malformed input."""

        try:
            document = json.loads(data)
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise ValueError(f"bundle for {trust_domain} is not valid JSON: {exc}") from exc
        if not isinstance(document, dict):
            raise ValueError(f"bundle for {trust_domain} must be a JSON object")

        x509_authorities: list[bytes] = []
        jwt_authorities: dict[str, bytes] = {}
        keys = document.get("keys")
        if keys is None:
            keys = []
        if not isinstance(keys, list):
            raise ValueError(f"keys of bundle for {trust_domain} must be a list")
        for index, jwk in enumerate(keys):
            if not isinstance(jwk, dict):
                raise ValueError(f"key entry {index} is not an object")
            use = jwk.get("use")
            try:
                if use == X509_SVID_USE:
                    x5c = jwk.get("x5c") or []
                    if len(x5c) != 1:
                        raise ValueError("expected a single x5c certificate")
                    der = base64.b64decode(x5c[0], validate=True)
                    x509.load_der_x509_certificate(der)
                    x509_authorities.append(der)
                elif use == JWT_SVID_USE:
                    key_id = jwk.get("kid")
                    if not key_id:
                        raise ValueError("missing key id")
                    jwt_authorities[key_id] = _spki(_jwk_public_key(jwk))
                else:
                    raise ValueError(f"unsupported use {use!r}")
            except (KeyError, TypeError, ValueError) as exc:
                raise ValueError(f"key entry {index} of bundle for {trust_domain}: {exc}") from exc

        refresh_hint = _optional_int(document, "spiffe_refresh_hint", trust_domain)
        sequence_number = _optional_int(document, "spiffe_sequence", trust_domain)
        return cls(
            trust_domain=trust_domain,
            x509_authorities=tuple(x509_authorities),
            jwt_authorities=jwt_authorities,
            refresh_hint=refresh_hint or None,
            sequence_number=sequence_number or None,
        )

    def to_bundle(self) -> Bundle:
        return Bundle.create(self.trust_domain, self.marshal())

from __future__ import annotations

import hashlib
from datetime import datetime
from pathlib import Path
from typing import Sequence, Union

from cryptography import x509
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, padding, rsa
from cryptography.hazmat.primitives.asymmetric.utils import Prehashed

PrivateKey = Union[rsa.RSAPrivateKey, ec.EllipticCurvePrivateKey]
PublicKey = Union[rsa.RSAPublicKey, ec.EllipticCurvePublicKey]

KEY_TYPES = ("rsa-2048", "rsa-4096", "ec-p256", "ec-p384")
DEFAULT_KEY_TYPE = "rsa-2048"
MAX_CHAIN_DEPTH = 10


def generate_key(key_type: str = DEFAULT_KEY_TYPE) -> PrivateKey:
    if key_type == "rsa-2048":
        return rsa.generate_private_key(public_exponent=65537, key_size=2048)
    if key_type == "rsa-4096":
        return rsa.generate_private_key(public_exponent=65537, key_size=4096)
    if key_type == "ec-p256":
        return ec.generate_private_key(ec.SECP256R1())
    if key_type == "ec-p384":
        return ec.generate_private_key(ec.SECP384R1())
    raise ValueError(f"unknown key type {key_type!r}")


def load_certificates(path: Path | str) -> list[x509.Certificate]:
    """Load every PEM certificate in ``path``; raises ``ValueError`` when there is none."""

    data = Path(path).read_bytes()
    certs = x509.load_pem_x509_certificates(data)
    if not certs:
        raise ValueError(f"no certificates found in {path}")
    return certs


def load_private_key(path: Path | str) -> PrivateKey:
    key = serialization.load_pem_private_key(Path(path).read_bytes(), password=None)
    if not isinstance(key, (rsa.RSAPrivateKey, ec.EllipticCurvePrivateKey)):
        raise ValueError("private key must be RSA or EC")
    return key


def public_key_bytes(key: PublicKey) -> bytes:
    return key.public_bytes(serialization.Encoding.DER, serialization.PublicFormat.SubjectPublicKeyInfo)


def key_matches_certificate(cert: x509.Certificate, key: PrivateKey) -> bool:
    return public_key_bytes(cert.public_key()) == public_key_bytes(key.public_key())


def is_self_signed(cert: x509.Certificate) -> bool:
    try:
        cert.verify_directly_issued_by(cert)
    except (ValueError, TypeError, InvalidSignature):
        return False
    return True


def calculate_digest(data: bytes) -> bytes:
    return hashlib.sha256(data).digest()


def sign_digest(key: PrivateKey, digest: bytes) -> bytes:
    """Sign a precomputed SHA-256 digest (PKCS#1 v1.5 for RSA, ECDSA for EC)."""

    if isinstance(key, rsa.RSAPrivateKey):
        return key.sign(digest, padding.PKCS1v15(), Prehashed(hashes.SHA256()))
    return key.sign(digest, ec.ECDSA(Prehashed(hashes.SHA256())))


def verify_digest(key: PublicKey, signature: bytes, digest: bytes) -> None:
    """Raise ``InvalidSignature`` unless ``signature`` matches ``digest``."""

    if isinstance(key, rsa.RSAPublicKey):
        key.verify(signature, digest, padding.PKCS1v15(), Prehashed(hashes.SHA256()))
    elif isinstance(key, ec.EllipticCurvePublicKey):
        key.verify(signature, digest, ec.ECDSA(Prehashed(hashes.SHA256())))
    else:
        raise InvalidSignature("unsupported signing key type")


def encode_chain(chain: Sequence[x509.Certificate]) -> bytes:
    return b"".join(cert.public_bytes(serialization.Encoding.DER) for cert in chain)


def split_der(data: bytes) -> list[bytes]:
    """Split concatenated DER certificates into their individual encodings."""

    out: list[bytes] = []
    offset = 0
    while offset < len(data):
        if data[offset] != 0x30 or offset + 2 > len(data):
            raise ValueError("malformed DER certificate sequence")
        length = data[offset + 1]
        header = 2
        if length & 0x80:
            count = length & 0x7F
            if count == 0 or count > 4 or offset + 2 + count > len(data):
                raise ValueError("malformed DER length")
            length = int.from_bytes(data[offset + 2 : offset + 2 + count], "big")
            header += count
        end = offset + header + length
        if end > len(data):
            raise ValueError("truncated DER certificate")
        out.append(data[offset:end])
        offset = end
    return out


def parse_chain(data: bytes | None) -> list[x509.Certificate]:
    if not data:
        return []
    return [x509.load_der_x509_certificate(der) for der in split_der(data)]


def _is_ca(cert: x509.Certificate) -> bool:
    try:
        constraints = cert.extensions.get_extension_for_class(x509.BasicConstraints).value
    except x509.ExtensionNotFound:
        return False
    return constraints.ca


def _issued_by(cert: x509.Certificate, issuer: x509.Certificate) -> bool:
    try:
        cert.verify_directly_issued_by(issuer)
    except (ValueError, TypeError, InvalidSignature):
        return False
    return True


def _check_validity(cert: x509.Certificate, now: datetime) -> None:
    if now < cert.not_valid_before_utc or now > cert.not_valid_after_utc:
        raise ValueError(f"certificate {cert.subject.rfc4514_string()} is not valid at {now.isoformat()}")


def build_chain(
    leaf: x509.Certificate,
    intermediates: Sequence[x509.Certificate],
    roots: Sequence[x509.Certificate],
    now: datetime,
) -> list[x509.Certificate]:
    """Return the verified path ``[leaf, ..., root]``; raise ``ValueError`` when none exists."""

    _check_validity(leaf, now)
    path = [leaf]
    available = list(intermediates)
    current = leaf
    while len(path) <= MAX_CHAIN_DEPTH:
        for root in roots:
            if _is_ca(root) and _issued_by(current, root):
                _check_validity(root, now)
                path.append(root)
                return path
        for candidate in available:
            if _is_ca(candidate) and _issued_by(current, candidate):
                _check_validity(candidate, now)
                available.remove(candidate)
                path.append(candidate)
                current = candidate
                break
        else:
            raise ValueError(f"no trusted issuer found for {current.subject.rfc4514_string()}")
    raise ValueError("certificate chain too long")


__all__ = [
    "PrivateKey",
    "PublicKey",
    "KEY_TYPES",
    "DEFAULT_KEY_TYPE",
    "generate_key",
    "load_certificates",
    "load_private_key",
    "public_key_bytes",
    "key_matches_certificate",
    "is_self_signed",
    "calculate_digest",
    "sign_digest",
    "verify_digest",
    "encode_chain",
    "split_der",
    "parse_chain",
    "build_chain",
]

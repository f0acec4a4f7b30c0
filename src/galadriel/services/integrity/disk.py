"""Bundle signing with one-shot keys certified by a CA kept on disk, and the matching verifier."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Sequence

from cryptography import x509
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.x509.oid import NameOID

from galadriel.config.const import DEFAULT_SIGNING_CERT_TTL, SIGNING_CERT_COMMON_NAME
from galadriel.services.crypto.pki import (
    DEFAULT_KEY_TYPE,
    KEY_TYPES,
    PrivateKey,
    build_chain,
    calculate_digest,
    generate_key,
    is_self_signed,
    key_matches_certificate,
    load_certificates,
    load_private_key,
    sign_digest,
    verify_digest,
)
from galadriel.services.errors import ChainError, ConfigError, InvalidSignatureError, VerificationError

from .base import Clock, SystemClock

__all__ = ["DiskSigner", "DiskSignerConfig", "DiskVerifier", "DiskVerifierConfig"]

_log = logging.getLogger("galadriel.integrity")


@dataclass(slots=True)
class DiskSignerConfig:
    ca_cert_path: str
    ca_private_key_path: str
    trust_bundle_path: str | None = None
    # seconds
    signing_cert_ttl: float = DEFAULT_SIGNING_CERT_TTL
    key_type: str = DEFAULT_KEY_TYPE


@dataclass(slots=True)
class DiskVerifierConfig:
    trust_bundle_path: str


class DiskSigner:
    """Signs each payload with a fresh key whose certificate is issued by the configured CA.

    A compromised signing key is only useful for one sync cycle, and its
    certificate expires after ``signing_cert_ttl``.
    """

    def __init__(self, clock: Clock | None = None) -> None:
        self._clock = clock or SystemClock()
        self._ca_cert: x509.Certificate | None = None
        self._ca_key: PrivateKey | None = None
        self._ca_self_signed = False
        self._intermediates: list[x509.Certificate] = []
        self._ttl = timedelta(seconds=DEFAULT_SIGNING_CERT_TTL)
        self._key_type = DEFAULT_KEY_TYPE

    def configure(self, config: DiskSignerConfig) -> None:
        if not config.ca_cert_path:
            raise ConfigError("signer CA certificate path is required")
        if not config.ca_private_key_path:
            raise ConfigError("signer CA private key path is required")
        if config.signing_cert_ttl is None or config.signing_cert_ttl <= 0:
            raise ConfigError("signing certificate TTL must be positive")
        if config.key_type not in KEY_TYPES:
            raise ConfigError(f"unsupported signing key type {config.key_type!r}")

        try:
            ca_chain = load_certificates(config.ca_cert_path)
        except (OSError, ValueError) as exc:
            raise ConfigError(f"unable to load signer CA certificate: {exc}") from exc
        try:
            ca_key = load_private_key(config.ca_private_key_path)
        except (OSError, ValueError, TypeError) as exc:
            raise ConfigError(f"unable to load signer CA private key: {exc}") from exc

        ca_cert = ca_chain[0]
        if not key_matches_certificate(ca_cert, ca_key):
            raise ConfigError("signer CA private key does not match the CA certificate")

        intermediates: list[x509.Certificate] = []
        if not config.trust_bundle_path:
            if not is_self_signed(ca_cert):
                raise ConfigError("signer CA certificate must be self-signed when no trust bundle is configured")
        else:
            try:
                anchors = load_certificates(config.trust_bundle_path)
            except (OSError, ValueError) as exc:
                raise ConfigError(f"unable to load signer trust bundle: {exc}") from exc
            try:
                build_chain(ca_cert, ca_chain[1:], anchors, self._clock.now())
            except ValueError as exc:
                raise ConfigError(f"signer CA certificate does not chain to the trust bundle: {exc}") from exc
            intermediates = ca_chain[1:]

        self._ca_cert = ca_cert
        self._ca_key = ca_key
        self._ca_self_signed = is_self_signed(ca_cert)
        self._intermediates = intermediates
        self._ttl = timedelta(seconds=config.signing_cert_ttl)
        self._key_type = config.key_type
        _log.debug("disk signer configured", extra={"ca_subject": ca_cert.subject.rfc4514_string()})

    def sign(self, payload: bytes) -> tuple[bytes | None, list[x509.Certificate]]:
        if self._ca_cert is None or self._ca_key is None:
            raise ConfigError("disk signer is not configured")

        now = self._clock.now()
        key = generate_key(self._key_type)
        cert = (
            x509.CertificateBuilder()
            .subject_name(x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, SIGNING_CERT_COMMON_NAME)]))
            .issuer_name(self._ca_cert.subject)
            .public_key(key.public_key())
            .serial_number(x509.random_serial_number())
            .not_valid_before(now)
            .not_valid_after(now + self._ttl)
            .add_extension(x509.BasicConstraints(ca=False, path_length=None), critical=True)
            .add_extension(
                x509.KeyUsage(
                    digital_signature=True,
                    content_commitment=False,
                    key_encipherment=False,
                    data_encipherment=False,
                    key_agreement=False,
                    key_cert_sign=False,
                    crl_sign=False,
                    encipher_only=False,
                    decipher_only=False,
                ),
                critical=True,
            )
            .sign(private_key=self._ca_key, algorithm=hashes.SHA256())
        )

        signature = sign_digest(key, calculate_digest(payload))

        chain = [cert]
        if not self._ca_self_signed:
            chain.append(self._ca_cert)
        chain.extend(self._intermediates)
        return signature, chain


class DiskVerifier:
    """Verifies bundle signatures against trust anchors loaded from disk."""

    def __init__(self, clock: Clock | None = None) -> None:
        self._clock = clock or SystemClock()
        self._anchors: list[x509.Certificate] = []

    def configure(self, config: DiskVerifierConfig) -> None:
        if not config.trust_bundle_path:
            raise ConfigError("verifier trust bundle path is required")
        try:
            anchors = load_certificates(config.trust_bundle_path)
        except (OSError, ValueError) as exc:
            raise ConfigError(f"unable to load verifier trust bundle: {exc}") from exc
        if not anchors:
            raise ConfigError("verifier trust bundle is empty")
        self._anchors = anchors

    def verify(self, payload: bytes, signature: bytes | None, chain: Sequence[x509.Certificate]) -> None:
        if not self._anchors:
            raise ConfigError("disk verifier is not configured")
        if not chain or chain[0] is None:
            raise VerificationError("chain missing")
        if not signature:
            raise InvalidSignatureError("signature missing")

        leaf = chain[0]
        try:
            build_chain(leaf, list(chain[1:]), self._anchors, self._clock.now())
        except ValueError as exc:
            raise ChainError(f"failed to verify chain: {exc}") from exc

        try:
            verify_digest(leaf.public_key(), signature, calculate_digest(payload))
        except InvalidSignature as exc:
            raise InvalidSignatureError("invalid signature") from exc

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from cryptography.x509.oid import NameOID

from galadriel.services.bundle import SpiffeBundle


@dataclass
class TestCA:
    __test__ = False

    cert: x509.Certificate
    key: rsa.RSAPrivateKey | ec.EllipticCurvePrivateKey

    @property
    def der(self) -> bytes:
        return self.cert.public_bytes(serialization.Encoding.DER)


def _make_ca(
    common_name: str,
    *,
    issuer: TestCA | None = None,
    not_before: datetime | None = None,
    not_after: datetime | None = None,
) -> TestCA:
    now = datetime.now(timezone.utc)
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    subject = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    builder = (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(issuer.cert.subject if issuer else subject)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(not_before or now - timedelta(days=1))
        .not_valid_after(not_after or now + timedelta(days=30))
        .add_extension(x509.BasicConstraints(ca=True, path_length=None), critical=True)
        .add_extension(
            x509.KeyUsage(
                digital_signature=True,
                content_commitment=False,
                key_encipherment=False,
                data_encipherment=False,
                key_agreement=False,
                key_cert_sign=True,
                crl_sign=True,
                encipher_only=False,
                decipher_only=False,
            ),
            critical=True,
        )
    )
    cert = builder.sign(private_key=issuer.key if issuer else key, algorithm=hashes.SHA256())
    return TestCA(cert=cert, key=key)


@pytest.fixture()
def make_ca() -> Callable[..., TestCA]:
    return _make_ca


@pytest.fixture()
def root_ca() -> TestCA:
    return _make_ca("Galadriel Test Root CA")


@pytest.fixture()
def pem_file(tmp_path: Path) -> Callable[..., Path]:
    def _write(name: str, *certs: x509.Certificate) -> Path:
        path = tmp_path / name
        path.write_bytes(b"".join(cert.public_bytes(serialization.Encoding.PEM) for cert in certs))
        return path

    return _write


@pytest.fixture()
def key_file(tmp_path: Path) -> Callable[..., Path]:
    def _write(name: str, key) -> Path:
        path = tmp_path / name
        path.write_bytes(
            key.private_bytes(
                serialization.Encoding.PEM,
                serialization.PrivateFormat.TraditionalOpenSSL,
                serialization.NoEncryption(),
            )
        )
        return path

    return _write


@pytest.fixture()
def spiffe_bundle() -> Callable[..., SpiffeBundle]:
    """Build a bundle document for ``trust_domain`` with a fresh X.509 authority."""

    def _build(trust_domain: str, *, sequence_number: int | None = 1, jwt: bool = False) -> SpiffeBundle:
        authority = _make_ca(f"{trust_domain} authority")
        jwt_authorities = {}
        if jwt:
            jwt_key = ec.generate_private_key(ec.SECP256R1())
            jwt_authorities["kid-1"] = jwt_key.public_key().public_bytes(
                serialization.Encoding.DER, serialization.PublicFormat.SubjectPublicKeyInfo
            )
        return SpiffeBundle(
            trust_domain=trust_domain,
            x509_authorities=(authority.der,),
            jwt_authorities=jwt_authorities,
            refresh_hint=300,
            sequence_number=sequence_number,
        )

    return _build

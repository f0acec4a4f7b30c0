from __future__ import annotations

import hashlib
from datetime import datetime, timedelta, timezone

import pytest
from cryptography.exceptions import InvalidSignature

from galadriel.services.crypto.pki import (
    build_chain,
    calculate_digest,
    encode_chain,
    generate_key,
    is_self_signed,
    key_matches_certificate,
    load_certificates,
    parse_chain,
    sign_digest,
    split_der,
    verify_digest,
)


def test_split_der_recovers_each_certificate(root_ca, make_ca) -> None:
    other = make_ca("Other", issuer=root_ca)

    parts = split_der(root_ca.der + other.der)

    assert parts == [root_ca.der, other.der]
    assert parse_chain(encode_chain([other.cert, root_ca.cert])) == [other.cert, root_ca.cert]


def test_parse_chain_of_nothing_is_empty() -> None:
    assert parse_chain(None) == []
    assert parse_chain(b"") == []


@pytest.mark.parametrize("data", [b"\x04\x01\x00", b"\x30\x82\x10", b"\x30\x05\x00"])
def test_split_der_rejects_malformed_input(data) -> None:
    with pytest.raises(ValueError):
        split_der(data)


def test_truncated_chain_is_rejected(root_ca) -> None:
    with pytest.raises(ValueError):
        parse_chain(root_ca.der[:-10])


def test_digest_is_sha256() -> None:
    assert calculate_digest(b"bundle") == hashlib.sha256(b"bundle").digest()


@pytest.mark.parametrize("key_type", ["rsa-2048", "ec-p256"])
def test_sign_and_verify_digest(key_type) -> None:
    key = generate_key(key_type)
    digest = calculate_digest(b"payload")

    signature = sign_digest(key, digest)

    verify_digest(key.public_key(), signature, digest)
    with pytest.raises(InvalidSignature):
        verify_digest(key.public_key(), signature, calculate_digest(b"other"))


def test_unknown_key_type() -> None:
    with pytest.raises(ValueError):
        generate_key("dsa-1024")


def test_key_and_issuer_helpers(root_ca, make_ca) -> None:
    intermediate = make_ca("Intermediate", issuer=root_ca)

    assert key_matches_certificate(root_ca.cert, root_ca.key)
    assert not key_matches_certificate(root_ca.cert, intermediate.key)
    assert is_self_signed(root_ca.cert)
    assert not is_self_signed(intermediate.cert)


def test_build_chain_orders_leaf_to_root(root_ca, make_ca) -> None:
    intermediate = make_ca("Intermediate", issuer=root_ca)
    leaf = make_ca("Leaf", issuer=intermediate)
    now = datetime.now(timezone.utc)

    path = build_chain(leaf.cert, [intermediate.cert], [root_ca.cert], now)

    assert path == [leaf.cert, intermediate.cert, root_ca.cert]
    with pytest.raises(ValueError):
        build_chain(leaf.cert, [], [root_ca.cert], now)


def test_build_chain_rejects_expired_anchor(make_ca) -> None:
    now = datetime.now(timezone.utc)
    root = make_ca("Old Root", not_before=now - timedelta(days=10), not_after=now - timedelta(days=1))
    leaf = make_ca("Leaf", issuer=root)

    with pytest.raises(ValueError, match="not valid"):
        build_chain(leaf.cert, [], [root.cert], now)


def test_load_certificates_requires_content(tmp_path, pem_file, root_ca) -> None:
    empty = tmp_path / "empty.pem"
    empty.write_bytes(b"")

    with pytest.raises(ValueError):
        load_certificates(empty)
    assert load_certificates(pem_file("ca.pem", root_ca.cert)) == [root_ca.cert]

from __future__ import annotations

import pytest

from galadriel.services.bundle import Bundle, SpiffeBundle
from galadriel.services.bundlemanager import SpireBundleSynchronizer
from galadriel.services.crypto.pki import parse_chain
from galadriel.services.errors import NetworkError
from galadriel.services.integrity import (
    DiskSigner,
    DiskSignerConfig,
    DiskVerifier,
    DiskVerifierConfig,
    NoOpSigner,
)


class _FakeStore:
    def __init__(self, bundle: SpiffeBundle) -> None:
        self.bundle = bundle

    def get_local_bundle(self) -> SpiffeBundle:
        return self.bundle


class _FakeHub:
    def __init__(self) -> None:
        self.published: list[Bundle] = []
        self.failures: list[Exception] = []

    def publish_bundle(self, bundle: Bundle) -> None:
        if self.failures:
            raise self.failures.pop(0)
        self.published.append(bundle)


class _CountingSigner:
    def __init__(self) -> None:
        self.calls = 0

    def sign(self, payload: bytes):
        self.calls += 1
        return None, []


def test_unchanged_bundle_is_published_once(spiffe_bundle) -> None:
    local = spiffe_bundle("example.org")
    store, hub, signer = _FakeStore(local), _FakeHub(), _CountingSigner()
    syncer = SpireBundleSynchronizer(store, hub, signer)

    syncer.sync_once()
    store.bundle = SpiffeBundle.parse("example.org", local.marshal())
    syncer.sync_once()

    assert len(hub.published) == 1
    assert signer.calls == 1
    assert syncer.last_local_bundle == local


def test_changed_bundle_is_republished(spiffe_bundle) -> None:
    store, hub = _FakeStore(spiffe_bundle("example.org")), _FakeHub()
    syncer = SpireBundleSynchronizer(store, hub, NoOpSigner())

    first = store.bundle
    syncer.sync_once()
    store.bundle = spiffe_bundle("example.org", sequence_number=2)
    syncer.sync_once()

    assert [b.data for b in hub.published] == [first.marshal(), store.bundle.marshal()]


def test_failed_publish_is_retried(spiffe_bundle) -> None:
    store, hub = _FakeStore(spiffe_bundle("example.org")), _FakeHub()
    hub.failures.append(NetworkError("unreachable"))
    syncer = SpireBundleSynchronizer(store, hub, NoOpSigner())

    with pytest.raises(NetworkError):
        syncer.sync_once()
    assert syncer.last_local_bundle is None

    syncer.sync_once()
    assert len(hub.published) == 1


def test_unsigned_bundle_without_signer(spiffe_bundle) -> None:
    store, hub = _FakeStore(spiffe_bundle("example.org")), _FakeHub()

    SpireBundleSynchronizer(store, hub, NoOpSigner()).sync_once()

    published = hub.published[0]
    assert published.signature is None
    assert published.signing_certificate is None
    assert published.digest_matches()


def test_signed_bundle_verifies_on_the_peer(spiffe_bundle, root_ca, pem_file, key_file) -> None:
    signer = DiskSigner()
    signer.configure(
        DiskSignerConfig(
            ca_cert_path=str(pem_file("ca.pem", root_ca.cert)),
            ca_private_key_path=str(key_file("ca.key", root_ca.key)),
        )
    )
    verifier = DiskVerifier()
    verifier.configure(DiskVerifierConfig(trust_bundle_path=str(pem_file("anchors.pem", root_ca.cert))))
    store, hub = _FakeStore(spiffe_bundle("example.org", jwt=True)), _FakeHub()

    SpireBundleSynchronizer(store, hub, signer).sync_once()

    published = hub.published[0]
    assert published.trust_domain == "example.org"
    assert published.data == store.bundle.marshal()
    verifier.verify(published.data, published.signature, parse_chain(published.signing_certificate))

from __future__ import annotations

import logging
import threading
from typing import Iterable

from cryptography import x509

from galadriel.config.const import DEFAULT_FEDERATED_BUNDLES_POLL_INTERVAL
from galadriel.services.bundle import Bundle, FederatedBundleState, SpiffeBundle, states_equal
from galadriel.services.crypto.pki import parse_chain
from galadriel.services.errors import TRANSIENT_ERRORS, VerificationError
from galadriel.services.hub import HubClient
from galadriel.services.integrity import Verifier
from galadriel.services.spire import BundleStore, DeleteStatus, SetStatus

__all__ = ["FederatedBundlesSynchronizer"]

_log = logging.getLogger("galadriel.federated_syncer")


class FederatedBundlesSynchronizer:
    """Mirrors the peer bundles the hub approves for us into the identity server.

    One tick lists what the identity server holds, reports it to the hub,
    installs verified updates, and dissociates trust domains the hub no
    longer lists. The hub's state is cached so an unchanged state costs no
    identity-server mutation.
    """

    def __init__(
        self,
        store: BundleStore,
        hub: HubClient,
        verifier: Verifier,
        *,
        interval: float = DEFAULT_FEDERATED_BUNDLES_POLL_INTERVAL,
    ) -> None:
        self._store = store
        self._hub = hub
        self._verifier = verifier
        self._interval = interval
        self._last_seen: FederatedBundleState | None = None

    @property
    def last_seen_digests(self) -> FederatedBundleState | None:
        return None if self._last_seen is None else dict(self._last_seen)

    def run(self, stop: threading.Event) -> None:
        _log.info("federated bundles synchronizer started")
        while not stop.wait(self._interval):
            try:
                self.sync_once()
            except TRANSIENT_ERRORS as exc:
                _log.error("failed to sync federated bundles with the hub", extra={"error": str(exc)})
        _log.info("federated bundles synchronizer stopped")

    def sync_once(self) -> None:
        _log.debug("synchronizing federated bundles with the hub")
        local_view = [bundle.to_bundle() for bundle in self._store.list_federated_bundles()]
        updates, new_state = self._hub.sync_bundles(local_view)

        if self._last_seen is not None and states_equal(self._last_seen, new_state):
            _log.debug("federated bundles have not changed")
            return

        to_set = [bundle for bundle in (self._accept(update) for update in updates) if bundle is not None]
        if to_set:
            self._log_set_statuses(self._store.set_federated_bundles(to_set))

        to_delete = [bundle.trust_domain for bundle in local_view if bundle.trust_domain not in new_state]
        if to_delete:
            self._log_delete_statuses(self._store.delete_federated_bundles(to_delete))

        self._last_seen = dict(new_state)

    def _accept(self, update: Bundle) -> SpiffeBundle | None:
        extra = {"trust_domain": update.trust_domain}
        if not update.digest_matches():
            _log.error("bundle digest does not match its content, skipping", extra=extra)
            return None
        try:
            chain: list[x509.Certificate] = parse_chain(update.signing_certificate)
        except ValueError as exc:
            _log.error("failed to parse signing certificate chain, skipping", extra={**extra, "error": str(exc)})
            return None
        try:
            self._verifier.verify(update.data, update.signature, chain)
        except VerificationError as exc:
            _log.error("failed to verify bundle, skipping", extra={**extra, "error": str(exc)})
            return None
        try:
            return SpiffeBundle.parse(update.trust_domain, update.data)
        except ValueError as exc:
            _log.error("failed to parse bundle, skipping", extra={**extra, "error": str(exc)})
            return None

    @staticmethod
    def _log_set_statuses(statuses: Iterable[SetStatus]) -> None:
        for status in statuses:
            if status.ok:
                _log.info("federated bundle set", extra={"trust_domain": status.trust_domain})
            else:
                _log.error(
                    "failed setting federated bundle",
                    extra={"trust_domain": status.trust_domain, "code": status.code, "status": status.message},
                )

    @staticmethod
    def _log_delete_statuses(statuses: Iterable[DeleteStatus]) -> None:
        for status in statuses:
            if status.ok:
                _log.info("federated bundle deleted", extra={"trust_domain": status.trust_domain})
            else:
                _log.error(
                    "failed deleting federated bundle",
                    extra={"trust_domain": status.trust_domain, "code": status.code, "status": status.message},
                )

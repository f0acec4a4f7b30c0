from __future__ import annotations

import logging
import threading

from galadriel.config.const import DEFAULT_SPIRE_BUNDLE_POLL_INTERVAL
from galadriel.services.bundle import Bundle, SpiffeBundle
from galadriel.services.crypto.pki import encode_chain
from galadriel.services.errors import TRANSIENT_ERRORS
from galadriel.services.hub import HubClient
from galadriel.services.integrity import Signer
from galadriel.services.spire import BundleStore

__all__ = ["SpireBundleSynchronizer"]

_log = logging.getLogger("galadriel.spire_syncer")


class SpireBundleSynchronizer:
    """Publishes the local trust domain's bundle to the hub whenever it changes."""

    def __init__(
        self,
        store: BundleStore,
        hub: HubClient,
        signer: Signer,
        *,
        interval: float = DEFAULT_SPIRE_BUNDLE_POLL_INTERVAL,
    ) -> None:
        self._store = store
        self._hub = hub
        self._signer = signer
        self._interval = interval
        self._last_local_bundle: SpiffeBundle | None = None

    @property
    def last_local_bundle(self) -> SpiffeBundle | None:
        return self._last_local_bundle

    def run(self, stop: threading.Event) -> None:
        _log.info("local bundle synchronizer started")
        while not stop.wait(self._interval):
            try:
                self.sync_once()
            except TRANSIENT_ERRORS as exc:
                _log.error("failed to publish local bundle", extra={"error": str(exc)})
        _log.info("local bundle synchronizer stopped")

    def sync_once(self) -> None:
        _log.debug("checking the identity server for a new bundle")
        current = self._store.get_local_bundle()
        if self._last_local_bundle is not None and self._last_local_bundle == current:
            return

        _log.debug("new local bundle", extra={"trust_domain": current.trust_domain})
        self._hub.publish_bundle(self._prepare(current))
        self._last_local_bundle = current

    def _prepare(self, current: SpiffeBundle) -> Bundle:
        data = current.marshal()
        signature, chain = self._signer.sign(data)
        return Bundle.create(
            current.trust_domain,
            data,
            signature=signature,
            signing_certificate=encode_chain(chain) if chain else None,
        )

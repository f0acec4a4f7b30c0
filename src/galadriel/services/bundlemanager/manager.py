from __future__ import annotations

import functools
import logging
import threading
from dataclasses import dataclass

from galadriel.config.const import (
    DEFAULT_FEDERATED_BUNDLES_POLL_INTERVAL,
    DEFAULT_SPIRE_BUNDLE_POLL_INTERVAL,
    DEFAULT_TOKEN_ROTATION_INTERVAL,
)
from galadriel.services.hub import HubClient
from galadriel.services.integrity import Signer, Verifier
from galadriel.services.spire import BundleStore
from galadriel.services.tasks import run_tasks

from .federated import FederatedBundlesSynchronizer
from .local import SpireBundleSynchronizer

__all__ = ["BundleManager", "BundleManagerConfig"]

_log = logging.getLogger("galadriel.bundle_manager")


@dataclass(slots=True)
class BundleManagerConfig:
    federated_bundles_poll_interval: float = DEFAULT_FEDERATED_BUNDLES_POLL_INTERVAL
    spire_bundle_poll_interval: float = DEFAULT_SPIRE_BUNDLE_POLL_INTERVAL
    token_rotation_interval: float = DEFAULT_TOKEN_ROTATION_INTERVAL


class BundleManager:
    """Runs the federated synchronizer, the local synchronizer and the token rotator together."""

    def __init__(
        self,
        store: BundleStore,
        hub: HubClient,
        signer: Signer,
        verifier: Verifier,
        config: BundleManagerConfig | None = None,
    ) -> None:
        config = config or BundleManagerConfig()
        self._hub = hub
        self._token_rotation_interval = config.token_rotation_interval
        self.federated = FederatedBundlesSynchronizer(
            store, hub, verifier, interval=config.federated_bundles_poll_interval
        )
        self.local = SpireBundleSynchronizer(store, hub, signer, interval=config.spire_bundle_poll_interval)

    def run(self, stop: threading.Event) -> None:
        """Block until ``stop`` is set or one of the loops fails; re-raises that failure."""

        _log.info("bundle manager started")
        try:
            run_tasks(
                stop,
                self.federated.run,
                self.local.run,
                functools.partial(self._hub.run_token_rotation, interval=self._token_rotation_interval),
            )
        finally:
            _log.info("bundle manager stopped")

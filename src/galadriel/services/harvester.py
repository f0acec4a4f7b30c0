"""Harvester process runtime: start-up sequence, admin socket and the bundle engine."""
from __future__ import annotations

import logging
import os
import socket
import threading
from pathlib import Path

import httpx
import uvicorn
from fastapi import FastAPI

from galadriel.apps.api.admin import create_admin_app
from galadriel.services.bundlemanager import BundleManager, BundleManagerConfig
from galadriel.services.errors import NotOnboardedError
from galadriel.services.harvester_config import HarvesterConfig, build_signer, build_verifier
from galadriel.services.hub import HubClient
from galadriel.services.integrity import Clock
from galadriel.services.spire import SpireServerClient

__all__ = ["AdminServer", "Harvester"]

_log = logging.getLogger("galadriel.harvester")


class AdminServer:
    """Serves the admin FastAPI app on a UNIX socket from a background thread.

    The socket is bound here and restricted to its owner before uvicorn
    starts listening on it.
    """

    def __init__(self, app: FastAPI, socket_path: str) -> None:
        self._socket_path = Path(socket_path)
        self._server = uvicorn.Server(uvicorn.Config(app, log_config=None, lifespan="off", access_log=False))
        self._socket: socket.socket | None = None
        self._thread: threading.Thread | None = None

    @property
    def socket_path(self) -> Path:
        return self._socket_path

    def start(self) -> None:
        self._socket_path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
        if self._socket_path.exists():
            self._socket_path.unlink()
        sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        try:
            sock.bind(str(self._socket_path))
            os.chmod(self._socket_path, 0o600)
        except OSError:
            sock.close()
            raise
        self._socket = sock
        self._thread = threading.Thread(
            target=self._server.run, kwargs={"sockets": [sock]}, name="galadriel-admin-api", daemon=True
        )
        self._thread.start()
        _log.info("admin API listening", extra={"socket": str(self._socket_path)})

    def stop(self) -> None:
        self._server.should_exit = True
        if self._thread is not None:
            self._thread.join(timeout=10)
            self._thread = None
        if self._socket is not None:
            self._socket.close()
            self._socket = None
        try:
            self._socket_path.unlink()
        except FileNotFoundError:
            pass


class Harvester:
    """Wires configuration into the engine.

    :meth:`start` performs every start-up step (integrity configuration,
    enrollment, first token rotation, identity-server channel, admin socket)
    and raises on the first failure. :meth:`run` then blocks in the bundle
    manager until ``stop`` is set or a loop fails.
    """

    def __init__(
        self,
        config: HarvesterConfig,
        *,
        join_token: str | None = None,
        clock: Clock | None = None,
        hub_transport: httpx.BaseTransport | None = None,
        serve_admin: bool = True,
    ) -> None:
        self._config = config
        self._join_token = join_token or config.harvester.join_token or None
        self._clock = clock
        self._hub_transport = hub_transport
        self._serve_admin = serve_admin
        self._hub: HubClient | None = None
        self._spire: SpireServerClient | None = None
        self._admin: AdminServer | None = None
        self._manager: BundleManager | None = None

    @property
    def hub(self) -> HubClient | None:
        return self._hub

    def start(self) -> None:
        settings = self._config.harvester
        signer = build_signer(self._config.integrity, self._clock)
        verifier = build_verifier(self._config.integrity, self._clock)

        os.makedirs(settings.data_dir, exist_ok=True)
        self._hub = HubClient(
            trust_domain=settings.trust_domain,
            server_address=settings.server_address,
            trust_bundle_path=settings.server_trust_bundle_path,
            data_dir=settings.data_dir,
            legacy_token_quotes=settings.server_legacy_token_quotes,
            transport=self._hub_transport,
        )
        if self._join_token:
            self._hub.enroll(self._join_token)
        if not self._hub.is_onboarded():
            raise NotOnboardedError("harvester is not onboarded to the hub, a join token is required")
        _log.debug("requesting a new bearer token")
        self._hub.rotate_token()

        self._spire = SpireServerClient(settings.spire_socket_path)

        if self._serve_admin:
            self._admin = AdminServer(create_admin_app(self._hub), settings.admin_socket_path)
            self._admin.start()

        self._manager = BundleManager(
            self._spire,
            self._hub,
            signer,
            verifier,
            BundleManagerConfig(
                federated_bundles_poll_interval=settings.federated_bundles_poll_interval,
                spire_bundle_poll_interval=settings.spire_bundle_poll_interval,
                token_rotation_interval=settings.token_rotation_interval,
            ),
        )
        _log.info("harvester started", extra={"trust_domain": settings.trust_domain})

    def run(self, stop: threading.Event) -> None:
        if self._manager is None:
            raise RuntimeError("harvester is not started")
        self._manager.run(stop)

    def close(self) -> None:
        if self._admin is not None:
            self._admin.stop()
            self._admin = None
        if self._spire is not None:
            self._spire.close()
            self._spire = None
        if self._hub is not None:
            self._hub.close()
            self._hub = None
        _log.info("harvester stopped")

# src/galadriel/services/hub/client.py
from __future__ import annotations

import base64
import binascii
import logging
import ssl
import threading
import uuid
from pathlib import Path
from typing import Any, Mapping, Sequence

import httpx

from galadriel.config.const import (
    DEFAULT_TOKEN_ROTATION_INTERVAL,
    GALADRIEL_SERVER_NAME,
    HTTPS_SCHEME,
    HUB_CALL_TIMEOUT,
    JSON_CONTENT_TYPE,
)
from galadriel.services.bundle import Bundle, FederatedBundleState, parse_trust_domain
from galadriel.services.errors import (
    TRANSIENT_ERRORS,
    AuthError,
    ConfigError,
    NetworkError,
    NotOnboardedError,
    ProtocolError,
)

from .models import ConsentStatus, Relationship
from .token_store import TokenStore

__all__ = ["HubClient"]

_log = logging.getLogger("galadriel.hub")

_AUTH_FAILURES = (401, 403)


def _b64encode(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def _b64decode(value: Any, field: str) -> bytes:
    if not isinstance(value, str):
        raise ProtocolError(f"{field} must be a base64 string")
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ProtocolError(f"{field} is not valid base64: {exc}") from exc


def _optional_b64decode(value: Any, field: str) -> bytes | None:
    if value is None or value == "":
        return None
    return _b64decode(value, field) or None


def _trust_domain(value: Any) -> str:
    try:
        return parse_trust_domain(value)
    except ValueError as exc:
        raise ProtocolError(f"hub returned an invalid trust domain: {exc}") from exc


class HubClient:
    """HTTPS client for the hub (Galadriel Server) harvester API.

    The client owns the bearer token: it is read under a shared lock when a
    request is assembled and replaced by :meth:`enroll` and
    :meth:`rotate_token`. A request rejected with 401/403 triggers a single
    rotation followed by one retry.
    """

    def __init__(
        self,
        *,
        trust_domain: str,
        server_address: str,
        trust_bundle_path: Path | str,
        data_dir: Path | str,
        legacy_token_quotes: bool = False,
        timeout: float = HUB_CALL_TIMEOUT,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        if not server_address:
            raise ConfigError("hub server address is required")
        if not trust_bundle_path:
            raise ConfigError("hub trust bundle path is required")
        if not data_dir:
            raise ConfigError("data dir is required")
        try:
            self._trust_domain = parse_trust_domain(trust_domain)
        except ValueError as exc:
            raise ConfigError(str(exc)) from exc

        try:
            tls_context = ssl.create_default_context(cafile=str(trust_bundle_path))
        except (OSError, ssl.SSLError) as exc:
            raise ConfigError(f"unable to load hub trust bundle {trust_bundle_path}: {exc}") from exc

        try:
            Path(data_dir).mkdir(parents=True, exist_ok=True)
            self._tokens = TokenStore(data_dir)
        except OSError as exc:
            raise ConfigError(f"data dir {data_dir} is not usable: {exc}") from exc

        self._legacy_token_quotes = legacy_token_quotes
        self._rotation_lock = threading.Lock()
        self._client = httpx.Client(
            base_url=f"{HTTPS_SCHEME}://{server_address}",
            verify=tls_context,
            timeout=timeout,
            transport=transport,
        )

    # ------------------------------------------------------------------
    # lifecycle
    # ------------------------------------------------------------------
    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "HubClient":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    @property
    def trust_domain(self) -> str:
        return self._trust_domain

    def is_onboarded(self) -> bool:
        return bool(self._tokens.get())

    # ------------------------------------------------------------------
    # transport
    # ------------------------------------------------------------------
    def _send(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, Any] | None = None,
        json: Any | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> httpx.Response:
        try:
            return self._client.request(
                method,
                path,
                params=params,
                json=json,
                headers=headers,
                extensions={"sni_hostname": GALADRIEL_SERVER_NAME},
            )
        except httpx.HTTPError as exc:
            raise NetworkError(f"{method} {path} failed: {exc}") from exc

    def _auth_headers(self) -> dict[str, str]:
        token = self._tokens.get()
        if not token:
            raise NotOnboardedError("harvester is not onboarded to the hub")
        return {"Authorization": f"Bearer {token}", "Content-Type": JSON_CONTENT_TYPE}

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, Any] | None = None,
        json: Any | None = None,
        retry_auth: bool = True,
    ) -> httpx.Response:
        response = self._send(method, path, params=params, json=json, headers=self._auth_headers())
        if response.status_code in _AUTH_FAILURES:
            if not retry_auth:
                raise AuthError(
                    f"{method} {path} rejected the bearer token",
                    status_code=response.status_code,
                    payload=response.text,
                )
            _log.debug("bearer token rejected, rotating before retry", extra={"path": path})
            self.rotate_token()
            return self._request(method, path, params=params, json=json, retry_auth=False)
        if response.status_code != 200:
            raise ProtocolError(
                f"{method} {path} returned HTTP {response.status_code}",
                status_code=response.status_code,
                payload=response.text,
            )
        return response

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise ProtocolError(
                f"hub returned malformed JSON: {exc}",
                status_code=response.status_code,
                payload=response.text,
            ) from exc

    def _sanitize_token(self, raw: Any) -> str:
        if not isinstance(raw, str):
            raise ProtocolError("hub response carries no token")
        token = raw.strip()
        if '"' in token:
            if not self._legacy_token_quotes:
                raise ProtocolError("hub returned a quoted token")
            token = token.replace('"', "").strip()
        return token

    # ------------------------------------------------------------------
    # token lifecycle
    # ------------------------------------------------------------------
    def enroll(self, join_token: str) -> None:
        """Exchange a one-time join token for the first bearer token."""

        _log.info("onboarding harvester", extra={"trust_domain": self._trust_domain})
        path = f"/trust-domain/{self._trust_domain}/onboard"
        response = self._send("POST", path, params={"join_token": join_token})
        if response.status_code != 200:
            raise NotOnboardedError(f"onboarding failed with HTTP {response.status_code}: {response.text}")
        payload = self._json(response)
        raw = payload.get("token") if isinstance(payload, Mapping) else None
        if not raw or not isinstance(raw, str) or not raw.strip():
            raise NotOnboardedError("empty token in onboard response")
        self._tokens.set(self._sanitize_token(raw))
        _log.info("connected to hub", extra={"trust_domain": self._trust_domain})

    def rotate_token(self) -> None:
        with self._rotation_lock:
            response = self._request("GET", f"/trust-domain/{self._trust_domain}/jwt", retry_auth=False)
            payload = self._json(response)
            raw = payload.get("token") if isinstance(payload, Mapping) else None
            token = self._sanitize_token(raw)
            if not token:
                raise ProtocolError("bearer token could not be renewed", status_code=response.status_code)
            self._tokens.set(token)
        _log.info("bearer token rotated")

    def run_token_rotation(self, stop: threading.Event, interval: float = DEFAULT_TOKEN_ROTATION_INTERVAL) -> None:
        _log.info("token rotator started")
        while not stop.wait(interval):
            _log.debug("requesting a new bearer token")
            try:
                self.rotate_token()
            except TRANSIENT_ERRORS as exc:
                _log.error("failed to rotate bearer token", extra={"error": str(exc)})
        _log.info("token rotator stopped")

    # ------------------------------------------------------------------
    # bundles
    # ------------------------------------------------------------------
    def sync_bundles(self, local_view: Sequence[Bundle]) -> tuple[list[Bundle], FederatedBundleState]:
        """Report the digests installed locally; return the updates and the authoritative state."""

        body = {"state": {bundle.trust_domain: _b64encode(bundle.digest) for bundle in local_view}}
        response = self._request("POST", f"/trust-domain/{self._trust_domain}/bundle-sync", json=body)
        payload = self._json(response)
        if not isinstance(payload, Mapping):
            raise ProtocolError("bundle sync response must be a JSON object", status_code=response.status_code)

        raw_updates = payload.get("updates") or {}
        raw_state = payload.get("state") or {}
        if not isinstance(raw_updates, Mapping) or not isinstance(raw_state, Mapping):
            raise ProtocolError("bundle sync response has malformed updates or state", status_code=response.status_code)

        updates = [self._decode_update(td, item) for td, item in raw_updates.items()]
        state: FederatedBundleState = {
            _trust_domain(td): _b64decode(digest, f"state digest for {td}") for td, digest in raw_state.items()
        }
        _log.debug("bundle sync completed", extra={"updates": len(updates), "peers": len(state)})
        return updates, state

    @staticmethod
    def _decode_update(trust_domain: Any, item: Any) -> Bundle:
        td = _trust_domain(trust_domain)
        if not isinstance(item, Mapping):
            raise ProtocolError(f"update for {td} must be a JSON object")
        data = item.get("trust_bundle")
        if not isinstance(data, str):
            raise ProtocolError(f"update for {td} has no trust bundle")
        try:
            return Bundle(
                trust_domain=td,
                data=data.encode("utf-8"),
                digest=_b64decode(item.get("digest"), f"digest for {td}"),
                signature=_optional_b64decode(item.get("signature"), f"signature for {td}"),
                signing_certificate=_optional_b64decode(item.get("signing_certificate"), f"signing certificate for {td}"),
            )
        except ValueError as exc:
            raise ProtocolError(str(exc)) from exc

    def publish_bundle(self, bundle: Bundle) -> None:
        body: dict[str, Any] = {
            "trust_bundle": bundle.data.decode("utf-8"),
            "digest": _b64encode(bundle.digest),
            "trust_domain": bundle.trust_domain,
        }
        if bundle.signature:
            body["signature"] = _b64encode(bundle.signature)
        if bundle.signing_certificate:
            body["signing_certificate"] = _b64encode(bundle.signing_certificate)
        self._request("PUT", f"/trust-domain/{self._trust_domain}/bundle", json=body)
        _log.info("bundle published", extra={"trust_domain": bundle.trust_domain})

    # ------------------------------------------------------------------
    # relationships
    # ------------------------------------------------------------------
    def get_relationships(self, consent_status: ConsentStatus | str | None = None) -> list[Relationship]:
        params: dict[str, str] = {}
        if consent_status:
            params["consentStatus"] = ConsentStatus(consent_status).value
        response = self._request("GET", f"/trust-domain/{self._trust_domain}/relationships", params=params)
        payload = self._json(response)
        if not isinstance(payload, list):
            raise ProtocolError("relationships response must be a JSON list", status_code=response.status_code)
        try:
            return [Relationship.from_json(item) for item in payload]
        except ValueError as exc:
            raise ProtocolError(f"malformed relationship: {exc}", status_code=response.status_code) from exc

    def update_relationship(self, relationship_id: uuid.UUID | str, consent_status: ConsentStatus | str) -> Relationship:
        """Set this trust domain's consent on a relationship; raises ``ValueError`` on bad input."""

        if not consent_status:
            raise ValueError("consent status cannot be empty")
        status = ConsentStatus(consent_status)
        rel_id = uuid.UUID(str(relationship_id))
        response = self._request(
            "PATCH",
            f"/trust-domain/{self._trust_domain}/relationships/{rel_id}",
            json={"consent_status": status.value},
        )
        try:
            return Relationship.from_json(self._json(response))
        except ValueError as exc:
            raise ProtocolError(f"malformed relationship: {exc}", status_code=response.status_code) from exc

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Any, Callable, Protocol, Sequence

import grpc

from galadriel.config.const import DEFAULT_SPIRE_SOCKET_PATH, LIST_FEDERATED_BUNDLES_PAGE_SIZE, SPIRE_CALL_TIMEOUT
from galadriel.services.bundle import SpiffeBundle, parse_trust_domain
from galadriel.services.errors import UpstreamError

from . import proto

__all__ = ["BundleStore", "DeleteStatus", "SetStatus", "SpireServerClient", "socket_target"]

_log = logging.getLogger("galadriel.spire")

# grpc.StatusCode.OK
STATUS_OK = 0


@dataclass(frozen=True, slots=True)
class SetStatus:
    trust_domain: str
    code: int
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.code == STATUS_OK


@dataclass(frozen=True, slots=True)
class DeleteStatus:
    trust_domain: str
    code: int
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.code == STATUS_OK


class BundleStore(Protocol):
    """The four bundle operations the synchronizers need from the identity server."""

    def get_local_bundle(self) -> SpiffeBundle: ...

    def list_federated_bundles(self) -> list[SpiffeBundle]: ...

    def set_federated_bundles(self, bundles: Sequence[SpiffeBundle]) -> list[SetStatus]: ...

    def delete_federated_bundles(self, trust_domains: Sequence[str]) -> list[DeleteStatus]: ...


def socket_target(path: str) -> str:
    if os.path.isabs(path):
        return f"unix://{path}"
    return f"unix:{path}"


def bundle_from_proto(message: Any) -> SpiffeBundle:
    try:
        trust_domain = parse_trust_domain(message.trust_domain)
    except ValueError as exc:
        raise UpstreamError(f"identity server returned an invalid trust domain: {exc}") from exc
    jwt_authorities: dict[str, bytes] = {}
    for key in message.jwt_authorities:
        if not key.key_id:
            raise UpstreamError(f"identity server returned a JWT authority without key id for {trust_domain}")
        jwt_authorities[key.key_id] = bytes(key.public_key)
    return SpiffeBundle(
        trust_domain=trust_domain,
        x509_authorities=tuple(bytes(cert.asn1) for cert in message.x509_authorities),
        jwt_authorities=jwt_authorities,
        refresh_hint=message.refresh_hint or None,
        sequence_number=message.sequence_number or None,
    )


def bundle_to_proto(bundle: SpiffeBundle) -> Any:
    message = proto.Bundle(
        trust_domain=bundle.trust_domain,
        refresh_hint=bundle.refresh_hint or 0,
        sequence_number=bundle.sequence_number or 0,
    )
    for der in bundle.x509_authorities:
        message.x509_authorities.add(asn1=der)
    for key_id in sorted(bundle.jwt_authorities):
        message.jwt_authorities.add(key_id=key_id, public_key=bundle.jwt_authorities[key_id])
    return message


class SpireServerClient:
    """Client for the SPIRE Server bundle API over its local UNIX socket.

    Holds one channel for the lifetime of the harvester. Every call carries a
    deadline of ``timeout`` seconds and any RPC failure surfaces as
    :class:`UpstreamError`.
    """

    def __init__(
        self,
        socket_path: str = DEFAULT_SPIRE_SOCKET_PATH,
        *,
        timeout: float = SPIRE_CALL_TIMEOUT,
        channel: grpc.Channel | None = None,
    ) -> None:
        self._channel = channel or grpc.insecure_channel(socket_target(socket_path))
        self._timeout = timeout
        self._get_bundle = self._method("GetBundle", proto.GetBundleRequest, proto.Bundle)
        self._list_federated = self._method(
            "ListFederatedBundles", proto.ListFederatedBundlesRequest, proto.ListFederatedBundlesResponse
        )
        self._batch_set = self._method(
            "BatchSetFederatedBundle", proto.BatchSetFederatedBundleRequest, proto.BatchSetFederatedBundleResponse
        )
        self._batch_delete = self._method(
            "BatchDeleteFederatedBundle", proto.BatchDeleteFederatedBundleRequest, proto.BatchDeleteFederatedBundleResponse
        )

    def _method(self, name: str, request_cls: Any, response_cls: Any) -> Callable[..., Any]:
        return self._channel.unary_unary(
            proto.method_path(name),
            request_serializer=request_cls.SerializeToString,
            response_deserializer=response_cls.FromString,
        )

    def _call(self, name: str, method: Callable[..., Any], request: Any) -> Any:
        try:
            return method(request, timeout=self._timeout)
        except grpc.RpcError as exc:
            code = exc.code() if hasattr(exc, "code") else None
            details = exc.details() if hasattr(exc, "details") else str(exc)
            raise UpstreamError(f"identity server {name} failed: {code}: {details}") from exc

    def close(self) -> None:
        self._channel.close()

    def __enter__(self) -> "SpireServerClient":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def get_local_bundle(self) -> SpiffeBundle:
        response = self._call("GetBundle", self._get_bundle, proto.GetBundleRequest())
        return bundle_from_proto(response)

    def list_federated_bundles(self) -> list[SpiffeBundle]:
        result: list[SpiffeBundle] = []
        page_token = ""
        while True:
            request = proto.ListFederatedBundlesRequest(
                page_size=LIST_FEDERATED_BUNDLES_PAGE_SIZE,
                page_token=page_token,
            )
            response = self._call("ListFederatedBundles", self._list_federated, request)
            result.extend(bundle_from_proto(item) for item in response.bundles)
            if not response.next_page_token:
                break
            page_token = response.next_page_token
        _log.debug("listed federated bundles", extra={"count": len(result)})
        return result

    def set_federated_bundles(self, bundles: Sequence[SpiffeBundle]) -> list[SetStatus]:
        if not bundles:
            return []
        request = proto.BatchSetFederatedBundleRequest()
        for bundle in bundles:
            request.bundle.append(bundle_to_proto(bundle))
        response = self._call("BatchSetFederatedBundle", self._batch_set, request)

        statuses: list[SetStatus] = []
        for index, item in enumerate(response.results):
            trust_domain = item.bundle.trust_domain if item.HasField("bundle") else ""
            if not trust_domain and index < len(bundles):
                trust_domain = bundles[index].trust_domain
            statuses.append(SetStatus(trust_domain, item.status.code, item.status.message))
        return statuses

    def delete_federated_bundles(self, trust_domains: Sequence[str]) -> list[DeleteStatus]:
        if not trust_domains:
            return []
        request = proto.BatchDeleteFederatedBundleRequest(
            trust_domains=list(trust_domains),
            mode=proto.DELETE_MODE_DISSOCIATE,
        )
        response = self._call("BatchDeleteFederatedBundle", self._batch_delete, request)
        return [DeleteStatus(item.trust_domain, item.status.code, item.status.message) for item in response.results]

"""Message classes for the SPIRE Server bundle API.

The schema is assembled from descriptors at import time so the wire format
matches ``spire/api/types/*.proto`` and ``spire/api/server/bundle/v1/bundle.proto``
without shipping generated modules. Only the fields the harvester reads or
writes are declared; unknown fields received from the server are preserved
by protobuf and ignored here.
"""
from __future__ import annotations

from google.protobuf import descriptor_pb2, descriptor_pool, message_factory

__all__ = [
    "SERVICE_NAME",
    "DELETE_MODE_DISSOCIATE",
    "Bundle",
    "X509Certificate",
    "JWTKey",
    "Status",
    "GetBundleRequest",
    "ListFederatedBundlesRequest",
    "ListFederatedBundlesResponse",
    "BatchSetFederatedBundleRequest",
    "BatchSetFederatedBundleResponse",
    "BatchDeleteFederatedBundleRequest",
    "BatchDeleteFederatedBundleResponse",
    "method_path",
]

TYPES_PACKAGE = "spire.api.types"
BUNDLE_PACKAGE = "spire.api.server.bundle.v1"
SERVICE_NAME = f"{BUNDLE_PACKAGE}.Bundle"

# BatchDeleteFederatedBundleRequest.Mode
DELETE_MODE_RESTRICT = 0
DELETE_MODE_DELETE = 1
DELETE_MODE_DISSOCIATE = 2

_F = descriptor_pb2.FieldDescriptorProto


def _field(message, name: str, number: int, kind: int, *, repeated: bool = False, type_name: str | None = None) -> None:
    field = message.field.add()
    field.name = name
    field.number = number
    field.type = kind
    field.label = _F.LABEL_REPEATED if repeated else _F.LABEL_OPTIONAL
    if type_name:
        field.type_name = type_name


def _types_file() -> descriptor_pb2.FileDescriptorProto:
    proto = descriptor_pb2.FileDescriptorProto(name="spire/api/types/bundle.proto", package=TYPES_PACKAGE, syntax="proto3")

    cert = proto.message_type.add(name="X509Certificate")
    _field(cert, "asn1", 1, _F.TYPE_BYTES)

    jwt_key = proto.message_type.add(name="JWTKey")
    _field(jwt_key, "public_key", 1, _F.TYPE_BYTES)
    _field(jwt_key, "key_id", 2, _F.TYPE_STRING)
    _field(jwt_key, "expires_at", 3, _F.TYPE_INT64)

    bundle = proto.message_type.add(name="Bundle")
    _field(bundle, "trust_domain", 1, _F.TYPE_STRING)
    _field(bundle, "x509_authorities", 2, _F.TYPE_MESSAGE, repeated=True, type_name=f".{TYPES_PACKAGE}.X509Certificate")
    _field(bundle, "jwt_authorities", 3, _F.TYPE_MESSAGE, repeated=True, type_name=f".{TYPES_PACKAGE}.JWTKey")
    _field(bundle, "refresh_hint", 4, _F.TYPE_INT64)
    _field(bundle, "sequence_number", 5, _F.TYPE_UINT64)

    status = proto.message_type.add(name="Status")
    _field(status, "code", 1, _F.TYPE_INT32)
    _field(status, "message", 2, _F.TYPE_STRING)
    return proto


def _bundle_api_file() -> descriptor_pb2.FileDescriptorProto:
    proto = descriptor_pb2.FileDescriptorProto(
        name="spire/api/server/bundle/v1/bundle.proto",
        package=BUNDLE_PACKAGE,
        syntax="proto3",
        dependency=["spire/api/types/bundle.proto"],
    )
    bundle_type = f".{TYPES_PACKAGE}.Bundle"
    status_type = f".{TYPES_PACKAGE}.Status"

    proto.message_type.add(name="GetBundleRequest")

    list_req = proto.message_type.add(name="ListFederatedBundlesRequest")
    _field(list_req, "page_size", 2, _F.TYPE_INT32)
    _field(list_req, "page_token", 3, _F.TYPE_STRING)

    list_resp = proto.message_type.add(name="ListFederatedBundlesResponse")
    _field(list_resp, "bundles", 1, _F.TYPE_MESSAGE, repeated=True, type_name=bundle_type)
    _field(list_resp, "next_page_token", 2, _F.TYPE_STRING)

    set_req = proto.message_type.add(name="BatchSetFederatedBundleRequest")
    _field(set_req, "bundle", 1, _F.TYPE_MESSAGE, repeated=True, type_name=bundle_type)

    set_resp = proto.message_type.add(name="BatchSetFederatedBundleResponse")
    set_result = set_resp.nested_type.add(name="Result")
    _field(set_result, "status", 1, _F.TYPE_MESSAGE, type_name=status_type)
    _field(set_result, "bundle", 2, _F.TYPE_MESSAGE, type_name=bundle_type)
    _field(
        set_resp,
        "results",
        1,
        _F.TYPE_MESSAGE,
        repeated=True,
        type_name=f".{BUNDLE_PACKAGE}.BatchSetFederatedBundleResponse.Result",
    )

    del_req = proto.message_type.add(name="BatchDeleteFederatedBundleRequest")
    mode = del_req.enum_type.add(name="Mode")
    mode.value.add(name="RESTRICT", number=DELETE_MODE_RESTRICT)
    mode.value.add(name="DELETE", number=DELETE_MODE_DELETE)
    mode.value.add(name="DISSOCIATE", number=DELETE_MODE_DISSOCIATE)
    _field(del_req, "trust_domains", 1, _F.TYPE_STRING, repeated=True)
    _field(
        del_req,
        "mode",
        2,
        _F.TYPE_ENUM,
        type_name=f".{BUNDLE_PACKAGE}.BatchDeleteFederatedBundleRequest.Mode",
    )

    del_resp = proto.message_type.add(name="BatchDeleteFederatedBundleResponse")
    del_result = del_resp.nested_type.add(name="Result")
    _field(del_result, "status", 1, _F.TYPE_MESSAGE, type_name=status_type)
    _field(del_result, "trust_domain", 2, _F.TYPE_STRING)
    _field(
        del_resp,
        "results",
        1,
        _F.TYPE_MESSAGE,
        repeated=True,
        type_name=f".{BUNDLE_PACKAGE}.BatchDeleteFederatedBundleResponse.Result",
    )
    return proto


_POOL = descriptor_pool.DescriptorPool()
_POOL.Add(_types_file())
_POOL.Add(_bundle_api_file())


def _message(full_name: str):
    return message_factory.GetMessageClass(_POOL.FindMessageTypeByName(full_name))


X509Certificate = _message(f"{TYPES_PACKAGE}.X509Certificate")
JWTKey = _message(f"{TYPES_PACKAGE}.JWTKey")
Bundle = _message(f"{TYPES_PACKAGE}.Bundle")
Status = _message(f"{TYPES_PACKAGE}.Status")
GetBundleRequest = _message(f"{BUNDLE_PACKAGE}.GetBundleRequest")
ListFederatedBundlesRequest = _message(f"{BUNDLE_PACKAGE}.ListFederatedBundlesRequest")
ListFederatedBundlesResponse = _message(f"{BUNDLE_PACKAGE}.ListFederatedBundlesResponse")
BatchSetFederatedBundleRequest = _message(f"{BUNDLE_PACKAGE}.BatchSetFederatedBundleRequest")
BatchSetFederatedBundleResponse = _message(f"{BUNDLE_PACKAGE}.BatchSetFederatedBundleResponse")
BatchDeleteFederatedBundleRequest = _message(f"{BUNDLE_PACKAGE}.BatchDeleteFederatedBundleRequest")
BatchDeleteFederatedBundleResponse = _message(f"{BUNDLE_PACKAGE}.BatchDeleteFederatedBundleResponse")


def method_path(name: str) -> str:
    """Full gRPC method path, e.g. ``/spire.api.server.bundle.v1.Bundle/GetBundle``."""

    return f"/{SERVICE_NAME}/{name}"

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

import yaml

from galadriel.config.const import (
    DEFAULT_ADMIN_SOCKET_PATH,
    DEFAULT_FEDERATED_BUNDLES_POLL_INTERVAL,
    DEFAULT_LOG_LEVEL,
    DEFAULT_SIGNING_CERT_TTL,
    DEFAULT_SPIRE_BUNDLE_POLL_INTERVAL,
    DEFAULT_SPIRE_SOCKET_PATH,
    DEFAULT_TOKEN_ROTATION_INTERVAL,
)
from galadriel.services.bundle import parse_trust_domain
from galadriel.services.crypto.pki import DEFAULT_KEY_TYPE, KEY_TYPES
from galadriel.services.errors import ConfigError
from galadriel.services.integrity import (
    Clock,
    DiskSigner,
    DiskSignerConfig,
    DiskVerifier,
    DiskVerifierConfig,
    NoOpSigner,
    NoOpVerifier,
    Signer,
    Verifier,
)

__all__ = [
    "HarvesterConfig",
    "HarvesterSettings",
    "IntegrityConfig",
    "SignerSettings",
    "VerifierSettings",
    "build_signer",
    "build_verifier",
    "load_config",
    "parse_config",
    "parse_duration",
]

SIGNER_TYPES = ("disk", "noop")
LOG_FORMATS = ("text", "json")

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|s|m|h)")
_UNIT_SECONDS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}


def parse_duration(value: Any, key: str) -> float:
    """Seconds from an int/float or a string such as ``30s``, ``2m`` or ``1h30m``."""

    if isinstance(value, bool):
        raise ConfigError(f"{key}: expected a duration, got {value!r}")
    if isinstance(value, (int, float)):
        seconds = float(value)
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text.isdigit():
            seconds = float(text)
        else:
            parts = _DURATION_PART.findall(text)
            if not parts or "".join(n + u for n, u in parts) != text:
                raise ConfigError(f"{key}: invalid duration {value!r}")
            seconds = sum(float(n) * _UNIT_SECONDS[u] for n, u in parts)
    else:
        raise ConfigError(f"{key}: expected a duration, got {value!r}")
    if seconds <= 0:
        raise ConfigError(f"{key}: duration must be positive")
    return seconds


@dataclass
class HarvesterSettings:
    trust_domain: str
    server_address: str
    server_trust_bundle_path: str
    data_dir: str
    server_legacy_token_quotes: bool = False
    join_token: str = ""
    spire_socket_path: str = DEFAULT_SPIRE_SOCKET_PATH
    admin_socket_path: str = DEFAULT_ADMIN_SOCKET_PATH
    federated_bundles_poll_interval: float = DEFAULT_FEDERATED_BUNDLES_POLL_INTERVAL
    spire_bundle_poll_interval: float = DEFAULT_SPIRE_BUNDLE_POLL_INTERVAL
    token_rotation_interval: float = DEFAULT_TOKEN_ROTATION_INTERVAL
    log_level: str = DEFAULT_LOG_LEVEL
    log_format: str = "text"


@dataclass
class SignerSettings:
    type: str = "disk"
    ca_cert_path: str = ""
    ca_private_key_path: str = ""
    trust_bundle_path: str = ""
    signing_cert_ttl: float = DEFAULT_SIGNING_CERT_TTL
    key_type: str = DEFAULT_KEY_TYPE


@dataclass
class VerifierSettings:
    type: str = "disk"
    trust_bundle_path: str = ""


@dataclass
class IntegrityConfig:
    allow_insecure: bool = False
    signer: SignerSettings = field(default_factory=SignerSettings)
    verifier: VerifierSettings = field(default_factory=VerifierSettings)


@dataclass
class HarvesterConfig:
    harvester: HarvesterSettings
    integrity: IntegrityConfig = field(default_factory=IntegrityConfig)


def _section(data: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    value = data.get(key)
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ConfigError(f"{key}: expected a mapping")
    return value


def _string(data: Mapping[str, Any], key: str, prefix: str, default: str = "", *, required: bool = False) -> str:
    value = data.get(key)
    if value is None or value == "":
        if required:
            raise ConfigError(f"{prefix}.{key} is required")
        return default
    if not isinstance(value, (str, int, float)) or isinstance(value, bool):
        raise ConfigError(f"{prefix}.{key}: expected a string")
    return str(value)


def _bool(data: Mapping[str, Any], key: str, prefix: str) -> bool:
    value = data.get(key, False)
    if value is None:
        return False
    if not isinstance(value, bool):
        raise ConfigError(f"{prefix}.{key}: expected true or false")
    return value


def _duration(data: Mapping[str, Any], key: str, prefix: str, default: float) -> float:
    value = data.get(key)
    if value is None or value == "":
        return default
    return parse_duration(value, f"{prefix}.{key}")


def _parse_harvester(raw: Mapping[str, Any]) -> HarvesterSettings:
    p = "harvester"
    trust_domain = _string(raw, "trust_domain", p, required=True)
    try:
        parse_trust_domain(trust_domain)
    except ValueError as exc:
        raise ConfigError(f"{p}.trust_domain: {exc}") from exc

    log_format = _string(raw, "log_format", p, "text").lower()
    if log_format not in LOG_FORMATS:
        raise ConfigError(f"{p}.log_format must be one of {', '.join(LOG_FORMATS)}")

    return HarvesterSettings(
        trust_domain=trust_domain,
        server_address=_string(raw, "server_address", p, required=True),
        server_trust_bundle_path=_string(raw, "server_trust_bundle_path", p, required=True),
        data_dir=_string(raw, "data_dir", p, required=True),
        server_legacy_token_quotes=_bool(raw, "server_legacy_token_quotes", p),
        join_token=_string(raw, "join_token", p),
        spire_socket_path=_string(raw, "spire_socket_path", p, DEFAULT_SPIRE_SOCKET_PATH),
        admin_socket_path=_string(raw, "admin_socket_path", p, DEFAULT_ADMIN_SOCKET_PATH),
        federated_bundles_poll_interval=_duration(
            raw, "federated_bundles_poll_interval", p, DEFAULT_FEDERATED_BUNDLES_POLL_INTERVAL
        ),
        spire_bundle_poll_interval=_duration(raw, "spire_bundle_poll_interval", p, DEFAULT_SPIRE_BUNDLE_POLL_INTERVAL),
        token_rotation_interval=_duration(raw, "token_rotation_interval", p, DEFAULT_TOKEN_ROTATION_INTERVAL),
        log_level=_string(raw, "log_level", p, DEFAULT_LOG_LEVEL).upper(),
        log_format=log_format,
    )


def _parse_integrity(raw: Mapping[str, Any]) -> IntegrityConfig:
    signer_raw = _section(raw, "signer")
    verifier_raw = _section(raw, "verifier")

    signer = SignerSettings(
        type=_string(signer_raw, "type", "integrity.signer", "disk").lower(),
        ca_cert_path=_string(signer_raw, "ca_cert_path", "integrity.signer"),
        ca_private_key_path=_string(signer_raw, "ca_private_key_path", "integrity.signer"),
        trust_bundle_path=_string(signer_raw, "trust_bundle_path", "integrity.signer"),
        signing_cert_ttl=_duration(signer_raw, "signing_cert_ttl", "integrity.signer", DEFAULT_SIGNING_CERT_TTL),
        key_type=_string(signer_raw, "key_type", "integrity.signer", DEFAULT_KEY_TYPE).lower(),
    )
    if signer.type not in SIGNER_TYPES:
        raise ConfigError(f"integrity.signer.type must be one of {', '.join(SIGNER_TYPES)}")
    if signer.key_type not in KEY_TYPES:
        raise ConfigError(f"integrity.signer.key_type must be one of {', '.join(KEY_TYPES)}")

    verifier = VerifierSettings(
        type=_string(verifier_raw, "type", "integrity.verifier", "disk").lower(),
        trust_bundle_path=_string(verifier_raw, "trust_bundle_path", "integrity.verifier"),
    )
    if verifier.type not in SIGNER_TYPES:
        raise ConfigError(f"integrity.verifier.type must be one of {', '.join(SIGNER_TYPES)}")

    return IntegrityConfig(
        allow_insecure=_bool(raw, "allow_insecure", "integrity"),
        signer=signer,
        verifier=verifier,
    )


def parse_config(data: Any) -> HarvesterConfig:
    if not isinstance(data, Mapping):
        raise ConfigError("configuration must be a mapping")
    harvester_raw = _section(data, "harvester")
    if not harvester_raw:
        raise ConfigError("harvester section is required")
    return HarvesterConfig(
        harvester=_parse_harvester(harvester_raw),
        integrity=_parse_integrity(_section(data, "integrity")),
    )


def load_config(path: Path | str) -> HarvesterConfig:
    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"unable to read config file {path}: {exc}") from exc
    try:
        data = yaml.safe_load(text) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"config file {path} is not valid YAML: {exc}") from exc
    return parse_config(data)


def build_signer(config: IntegrityConfig, clock: Clock | None = None) -> Signer:
    settings = config.signer
    if settings.type == "noop":
        if not config.allow_insecure:
            raise ConfigError("noop signer requires integrity.allow_insecure")
        return NoOpSigner()
    signer = DiskSigner(clock)
    signer.configure(
        DiskSignerConfig(
            ca_cert_path=settings.ca_cert_path,
            ca_private_key_path=settings.ca_private_key_path,
            trust_bundle_path=settings.trust_bundle_path or None,
            signing_cert_ttl=settings.signing_cert_ttl,
            key_type=settings.key_type,
        )
    )
    return signer


def build_verifier(config: IntegrityConfig, clock: Clock | None = None) -> Verifier:
    settings = config.verifier
    if settings.type == "noop":
        if not config.allow_insecure:
            raise ConfigError("noop verifier requires integrity.allow_insecure")
        return NoOpVerifier()
    verifier = DiskVerifier(clock)
    verifier.configure(DiskVerifierConfig(trust_bundle_path=settings.trust_bundle_path))
    return verifier

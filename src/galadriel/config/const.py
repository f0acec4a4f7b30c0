# src/galadriel/config/const.py
from __future__ import annotations

# Hub (Galadriel Server) connection
GALADRIEL_SERVER_NAME: str = "galadriel-server"
HTTPS_SCHEME: str = "https"
JSON_CONTENT_TYPE: str = "application/json"

# Subject CN of the one-shot bundle signing certificates
SIGNING_CERT_COMMON_NAME: str = "galadriel"

# Persistence
TOKEN_FILE_NAME: str = "jwt-token"

# Intervals and deadlines (seconds)
DEFAULT_FEDERATED_BUNDLES_POLL_INTERVAL: float = 120.0
DEFAULT_SPIRE_BUNDLE_POLL_INTERVAL: float = 60.0
DEFAULT_TOKEN_ROTATION_INTERVAL: float = 300.0
DEFAULT_SIGNING_CERT_TTL: float = 3600.0
SPIRE_CALL_TIMEOUT: float = 10.0
HUB_CALL_TIMEOUT: float = 120.0

# Identity server (SPIRE Server) bundle API
DEFAULT_SPIRE_SOCKET_PATH: str = "/tmp/spire-server/private/api.sock"
LIST_FEDERATED_BUNDLES_PAGE_SIZE: int = 100

# Local administrative API
DEFAULT_ADMIN_SOCKET_PATH: str = "/tmp/galadriel-harvester/api.sock"

DEFAULT_LOG_LEVEL: str = "INFO"

"""Client side of the hub (Galadriel Server) harvester API."""

from .client import HubClient
from .models import ConsentStatus, Relationship
from .token_store import TokenStore

__all__ = ["ConsentStatus", "HubClient", "Relationship", "TokenStore"]

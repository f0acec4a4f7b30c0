"""Bundle data model shared by the synchronizers, the hub client and the identity-server adapter."""
from .models import Bundle, FederatedBundleState, parse_trust_domain, states_equal
from .spiffe import SpiffeBundle

__all__ = [
    "Bundle",
    "FederatedBundleState",
    "SpiffeBundle",
    "parse_trust_domain",
    "states_equal",
]

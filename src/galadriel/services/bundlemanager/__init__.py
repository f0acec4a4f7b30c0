"""Bundle federation engine: the two synchronizers and their supervisor."""

from .federated import FederatedBundlesSynchronizer
from .local import SpireBundleSynchronizer
from .manager import BundleManager, BundleManagerConfig

__all__ = [
    "BundleManager",
    "BundleManagerConfig",
    "FederatedBundlesSynchronizer",
    "SpireBundleSynchronizer",
]

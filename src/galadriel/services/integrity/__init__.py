"""Bundle signing and signature verification."""

from .base import Clock, Signer, SystemClock, Verifier
from .disk import DiskSigner, DiskSignerConfig, DiskVerifier, DiskVerifierConfig
from .noop import NoOpSigner, NoOpVerifier

__all__ = [
    "Clock",
    "Signer",
    "SystemClock",
    "Verifier",
    "DiskSigner",
    "DiskSignerConfig",
    "DiskVerifier",
    "DiskVerifierConfig",
    "NoOpSigner",
    "NoOpVerifier",
]

"""Adapter for the local SPIRE Server bundle API."""

from .client import BundleStore, DeleteStatus, SetStatus, SpireServerClient

__all__ = ["BundleStore", "DeleteStatus", "SetStatus", "SpireServerClient"]

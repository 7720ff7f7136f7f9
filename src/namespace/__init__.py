"""Namespace lookup and opt-in gating."""

from .client import KubeNamespaceClient, NamespaceClient, StaticNamespaceClient
from .gate import NamespaceContext, NamespaceGate

__all__ = [
    "KubeNamespaceClient",
    "NamespaceClient",
    "NamespaceContext",
    "NamespaceGate",
    "StaticNamespaceClient",
]

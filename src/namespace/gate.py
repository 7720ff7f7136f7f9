from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict

from src.common.config import WebhookConfig
from src.common.errors import NamespaceLookupError

from .client import NamespaceClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NamespaceContext:
    name: str
    labels: Dict[str, str] = field(default_factory=dict)
    enabled: bool = False
    allow_net_admin: bool = False
    allow_host_path: bool = False

    @classmethod
    def from_labels(cls, name: str, labels: Dict[str, str], config: WebhookConfig) -> "NamespaceContext":
        return cls(
            name=name,
            labels=dict(labels),
            enabled=labels.get(config.admission_label) == "true",
            allow_net_admin=labels.get(config.net_admin_label) == "true",
            allow_host_path=labels.get(config.host_path_label) == "true",
        )


class NamespaceGate:
    """Decides whether the engine acts on a namespace and derives its capability flags."""

    def __init__(self, client: NamespaceClient, config: WebhookConfig) -> None:
        self.client = client
        self.config = config

    def resolve(self, name: str) -> NamespaceContext:
        try:
            labels = self.client.get_namespace(name)
        except NamespaceLookupError:
            raise
        except Exception as exc:  # noqa: BLE001 - any collaborator failure fails closed
            raise NamespaceLookupError(f"namespace lookup for {name!r} failed: {exc}") from exc
        context = NamespaceContext.from_labels(name, labels, self.config)
        if not context.enabled:
            logger.debug("namespace %s has no %s=true label; skipping", name, self.config.admission_label)
        return context


__all__ = ["NamespaceContext", "NamespaceGate"]

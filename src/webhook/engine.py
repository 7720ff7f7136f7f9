from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from src.common.config import WebhookConfig
from src.common.errors import DecodeError, NamespaceLookupError, PatchConflict
from src.common.kinds import normalise_kind
from src.mutator.rules import mutate
from src.namespace.client import NamespaceClient
from src.namespace.gate import NamespaceContext, NamespaceGate
from src.patcher.synthesizer import synthesize
from src.resource.adapter import decode
from src.resource.model import ResourceView
from src.validator.field import ViolationRecord, aggregate
from src.validator.rules import validate

logger = logging.getLogger(__name__)

JSON_PATCH = "JSONPatch"


class Intent(str, Enum):
    MUTATE = "mutate"
    VALIDATE = "validate"


@dataclass(frozen=True)
class DecisionRequest:
    intent: Intent
    kind: str
    namespace: str
    object: Any
    uid: str = ""


@dataclass
class Decision:
    allowed: bool
    patch: List[Dict[str, Any]] = field(default_factory=list)
    message: Optional[str] = None
    violations: List[ViolationRecord] = field(default_factory=list)

    @property
    def patch_type(self) -> Optional[str]:
        return JSON_PATCH if self.patch else None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"allowed": self.allowed}
        if self.patch:
            data["patchType"] = JSON_PATCH
            data["patch"] = self.patch
        if self.message:
            data["message"] = self.message
        if self.violations:
            data["violations"] = [violation.to_dict() for violation in self.violations]
        return data


class AdmissionEngine:
    """Runs one decision: decode, gate on the namespace, then mutate or validate."""

    def __init__(self, config: WebhookConfig, namespace_client: NamespaceClient) -> None:
        self.config = config
        self.gate = NamespaceGate(namespace_client, config)

    def decide(self, request: DecisionRequest) -> Decision:
        kind = normalise_kind(request.kind)
        if kind is None:
            logger.debug("kind %s is not handled; allowing unchanged", request.kind)
            return Decision(allowed=True)
        try:
            view = decode(request.object, kind)
        except DecodeError as exc:
            logger.warning("%s %s/%s denied: %s", request.intent.value, request.namespace, kind.value, exc)
            return Decision(allowed=False, message=str(exc))

        namespace_name = request.namespace or view.metadata.namespace or ""
        try:
            namespace = self.gate.resolve(namespace_name)
        except NamespaceLookupError as exc:
            logger.warning("%s %s/%s denied: %s", request.intent.value, namespace_name, kind.value, exc)
            return Decision(allowed=False, message=str(exc))
        if not namespace.enabled:
            return Decision(allowed=True)

        if request.intent is Intent.MUTATE:
            decision = self._mutate(view, namespace)
        else:
            decision = self._validate(view, namespace)
        logger.info(
            "%s %s %s/%s: allowed=%s patch_ops=%d violations=%d",
            request.intent.value,
            kind.value,
            namespace_name,
            view.metadata.name or "<unnamed>",
            decision.allowed,
            len(decision.patch),
            len(decision.violations),
        )
        return decision

    def _mutate(self, view: ResourceView, namespace: NamespaceContext) -> Decision:
        ops = mutate(view, namespace, self.config)
        try:
            patch = synthesize(ops, view.source)
        except PatchConflict as exc:
            logger.error("patch conflict for %s/%s: %s", namespace.name, view.metadata.name, exc)
            return Decision(allowed=False, message=f"internal patch conflict: {exc}")
        return Decision(allowed=True, patch=patch)

    def _validate(self, view: ResourceView, namespace: NamespaceContext) -> Decision:
        violations = validate(view, namespace, self.config)
        if not violations:
            return Decision(allowed=True)
        return Decision(allowed=False, message=aggregate(violations), violations=violations)


__all__ = ["AdmissionEngine", "Decision", "DecisionRequest", "Intent", "JSON_PATCH"]

from __future__ import annotations

from typing import Any, Callable, Dict, List, Sequence, Tuple

from src.common.config import WebhookConfig, is_affirmative
from src.common.pointer import Address
from src.namespace.gate import NamespaceContext
from src.patcher.operations import PatchOperation, add
from src.resource.classify import is_network_function, is_project_member, primary_container_index
from src.resource.model import ContainerSpec, ResourceRequirements, ResourceView, SecurityDescriptor
from src.resource.quantity import is_zero_quantity

from .sidecar import build_capture_volume, build_sidecar

MutationRule = Callable[[ResourceView, NamespaceContext, WebhookConfig], List[PatchOperation]]

DROP_ALL = ["ALL"]
RUNTIME_DEFAULT = "RuntimeDefault"


def sanitize_label_value(value: str) -> str:
    """Label values may not contain ``/``; ``10.60.0.0/24`` becomes ``10.60.0.0-24``."""

    return value.replace("/", "-")


def scaffold_labels(view: ResourceView, namespace: NamespaceContext, config: WebhookConfig) -> List[PatchOperation]:
    ops: List[PatchOperation] = []
    if not view.metadata.present:
        ops.append(add(view.metadata_address, {}))
    if view.metadata.labels is None:
        ops.append(add(view.labels_address, {}))
    return ops


def project_labels(view: ResourceView, namespace: NamespaceContext, config: WebhookConfig) -> List[PatchOperation]:
    if namespace.name != config.project_namespace:
        return []
    labels = view.metadata.labels or {}
    ops: List[PatchOperation] = []
    for key, value in (
        (config.project_label_key, config.project_label_value),
        (config.part_of_label_key, config.part_of_label_value),
    ):
        if key not in labels:
            ops.append(add(view.labels_address.child(key), value))
    return ops


def propagate_annotations(
    view: ResourceView, namespace: NamespaceContext, config: WebhookConfig
) -> List[PatchOperation]:
    if not view.metadata.annotations or not is_project_member(view, namespace.name, config):
        return []
    labels = view.metadata.labels or {}
    ops: List[PatchOperation] = []
    for key in config.propagated_annotations:
        value = view.metadata.annotations.get(key)
        if not value:
            continue
        if key.endswith("-cidr"):
            value = sanitize_label_value(value)
        if labels.get(key) == value:
            continue
        ops.append(add(view.labels_address.child(key), value))
    return ops


def harden_containers(view: ResourceView, namespace: NamespaceContext, config: WebhookConfig) -> List[PatchOperation]:
    ops: List[PatchOperation] = []
    for field_name, containers in view.container_groups():
        base = view.spec_address.child(field_name)
        for idx, container in enumerate(containers):
            container_path = base.child(idx)
            ops.extend(_security_defaults(container.security, container_path.child("securityContext")))
            ops.extend(_resource_defaults(container.resources, container_path.child("resources"), config))
    return ops


def _security_defaults(security: SecurityDescriptor | None, path: Address) -> List[PatchOperation]:
    if security is None:
        return [
            add(
                path,
                {
                    "allowPrivilegeEscalation": False,
                    "capabilities": {"drop": list(DROP_ALL)},
                    "seccompProfile": {"type": RUNTIME_DEFAULT},
                },
            )
        ]
    ops: List[PatchOperation] = []
    if security.allow_privilege_escalation is None:
        ops.append(add(path.child("allowPrivilegeEscalation"), False))
    if security.capabilities is None:
        ops.append(add(path.child("capabilities"), {"drop": list(DROP_ALL)}))
    elif not security.capabilities.drop:
        ops.append(add(path.child("capabilities", "drop"), list(DROP_ALL)))
    if not security.seccomp_present:
        ops.append(add(path.child("seccompProfile"), {"type": RUNTIME_DEFAULT}))
    elif not security.seccomp_type:
        ops.append(add(path.child("seccompProfile", "type"), RUNTIME_DEFAULT))
    return ops


def _resource_defaults(resources: ResourceRequirements, path: Address, config: WebhookConfig) -> List[PatchOperation]:
    if resources.requests is None and resources.limits is None:
        value = {"requests": config.default_requests, "limits": config.default_limits}
        if not resources.present:
            return [add(path, value)]
        return [add(path.child(scope), block) for scope, block in value.items()]

    ops: List[PatchOperation] = []
    scopes: Tuple[Tuple[str, Dict[str, Any] | None, Dict[str, str], Callable[[str], Any]], ...] = (
        ("requests", resources.requests, config.default_requests, resources.request),
        ("limits", resources.limits, config.default_limits, resources.limit),
    )
    for scope, block, defaults, lookup in scopes:
        if block is None:
            ops.append(add(path.child(scope), dict(defaults)))
            continue
        for resource, default in defaults.items():
            if is_zero_quantity(lookup(resource)):
                ops.append(add(path.child(scope, resource), default))
    return ops


def default_nf_ports(view: ResourceView, namespace: NamespaceContext, config: WebhookConfig) -> List[PatchOperation]:
    if not is_network_function(view, config):
        return []
    idx = primary_container_index(view, config)
    if idx is None:
        return []
    container = view.pod_spec.containers[idx]
    ports_path = view.spec_address.child("containers", idx, "ports")
    wanted = [
        {"name": name, "containerPort": number, "protocol": protocol}
        for name, number, protocol in config.nf_ports
    ]
    if not container.ports:
        return [add(ports_path, wanted)]
    return [
        add(ports_path.append(), port)
        for port in wanted
        if not container.declares_port(port["containerPort"], port["protocol"])
    ]


def inject_capture_sidecar(
    view: ResourceView, namespace: NamespaceContext, config: WebhookConfig
) -> List[PatchOperation]:
    if not is_network_function(view, config):
        return []
    if not is_affirmative(view.metadata.annotation(config.tcpdump_annotation)):
        return []
    if _has_container(view.pod_spec.containers, config.sidecar_name):
        return []
    ops = [add(view.spec_address.child("containers").append(), build_sidecar(config, view.metadata.annotations))]
    volumes_path = view.spec_address.child("volumes")
    volume = build_capture_volume(config)
    if not view.pod_spec.volumes_present:
        ops.append(add(volumes_path, [volume]))
    elif not any(existing.name == config.capture_volume_name for existing in view.pod_spec.volumes):
        ops.append(add(volumes_path.append(), volume))
    return ops


def _has_container(containers: Sequence[ContainerSpec], name: str) -> bool:
    return any(container.name == name for container in containers)


MUTATION_RULES: Tuple[MutationRule, ...] = (
    scaffold_labels,
    project_labels,
    propagate_annotations,
    harden_containers,
    default_nf_ports,
    inject_capture_sidecar,
)


def mutate(view: ResourceView, namespace: NamespaceContext, config: WebhookConfig) -> List[PatchOperation]:
    """Run every mutation rule in order and concatenate their operations."""

    ops: List[PatchOperation] = []
    for rule in MUTATION_RULES:
        ops.extend(rule(view, namespace, config))
    return ops


__all__ = [
    "MUTATION_RULES",
    "default_nf_ports",
    "harden_containers",
    "inject_capture_sidecar",
    "mutate",
    "project_labels",
    "propagate_annotations",
    "sanitize_label_value",
    "scaffold_labels",
]

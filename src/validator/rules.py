from __future__ import annotations

import ipaddress
import json
import re
from typing import Callable, Iterator, List, Tuple

from src.common.config import WebhookConfig, is_affirmative
from src.namespace.gate import NamespaceContext
from src.resource.classify import claims_project_identity, is_network_function
from src.resource.model import ContainerSpec, ResourceView, VolumeSource
from src.resource.quantity import is_zero_quantity

from .field import FieldPath, ViolationRecord, forbidden, invalid, required

ValidationRule = Callable[[ResourceView, NamespaceContext, WebhookConfig], List[ViolationRecord]]

ELEVATED_CAPABILITIES = ("NET_ADMIN", "NET_RAW")

PORT_SEPARATORS = re.compile(r"[,;\s]+")
PORT_TOKEN = re.compile(r"[0-9]+")
CIDR_LITERAL = re.compile(r"(?<![0-9.])[0-9]{1,3}(?:\.[0-9]{1,3}){3}/[0-9]{1,3}(?![0-9])")


def _template_path(view: ResourceView) -> FieldPath:
    return FieldPath(view.base.parts)


def _annotation_path(view: ResourceView, key: str) -> FieldPath:
    return _template_path(view).child("metadata", "annotations").key(key)


def _each_container(view: ResourceView) -> Iterator[Tuple[FieldPath, ContainerSpec]]:
    spec_path = _template_path(view).child("spec")
    for field_name, containers in view.container_groups():
        base = spec_path.child(field_name)
        for idx, container in enumerate(containers):
            yield base.index(idx), container


def registry_of(image: str) -> str:
    idx = image.find("/")
    return image[:idx] if idx > 0 else image


def is_allowed_registry(image: str, allowed: Tuple[str, ...]) -> bool:
    registry = registry_of(image).lower()
    for candidate in allowed:
        entry = candidate.strip().lower()
        if not entry:
            continue
        if registry == entry or registry.startswith(entry):
            return True
    return False


def check_namespace_identity(
    view: ResourceView, namespace: NamespaceContext, config: WebhookConfig
) -> List[ViolationRecord]:
    if claims_project_identity(view, config) and namespace.name != config.project_namespace:
        return [forbidden(FieldPath.of("metadata", "namespace"), f"must be {json.dumps(config.project_namespace)}")]
    return []


def check_host_network(view: ResourceView, namespace: NamespaceContext, config: WebhookConfig) -> List[ViolationRecord]:
    if view.pod_spec.host_network:
        return [forbidden(_template_path(view).child("spec", "hostNetwork"), "hostNetwork not allowed")]
    return []


def check_container_resources(
    view: ResourceView, namespace: NamespaceContext, config: WebhookConfig
) -> List[ViolationRecord]:
    errors: List[ViolationRecord] = []
    for path, container in _each_container(view):
        resources = container.resources
        quantities = {
            ("requests", "cpu"): resources.request("cpu"),
            ("requests", "memory"): resources.request("memory"),
            ("limits", "cpu"): resources.limit("cpu"),
            ("limits", "memory"): resources.limit("memory"),
        }
        if any(is_zero_quantity(value) for value in quantities.values()):
            errors.append(required(path.child("resources"), "requests/limits cpu+memory required"))
            continue
        for resource in ("cpu", "memory"):
            if quantities[("limits", resource)] < quantities[("requests", resource)]:
                raw_limit = (resources.limits or {}).get(resource)
                errors.append(
                    invalid(
                        path.child("resources", "limits", resource),
                        str(raw_limit),
                        f"must be >= requests.{resource}",
                    )
                )
    return errors


def check_image_tags(view: ResourceView, namespace: NamespaceContext, config: WebhookConfig) -> List[ViolationRecord]:
    if not config.deny_latest_tag:
        return []
    errors: List[ViolationRecord] = []
    for path, container in _each_container(view):
        image = container.image
        if not image:
            continue
        if image.endswith(":latest"):
            errors.append(forbidden(path.child("image"), "image tag ':latest' is forbidden; use pinned tag or digest"))
        elif ":" not in image:
            errors.append(forbidden(path.child("image"), "image has no tag; use pinned tag or digest"))
    return errors


def check_image_registries(
    view: ResourceView, namespace: NamespaceContext, config: WebhookConfig
) -> List[ViolationRecord]:
    errors: List[ViolationRecord] = []
    for path, container in _each_container(view):
        if container.image and not is_allowed_registry(container.image, config.allowed_registries):
            errors.append(
                forbidden(path.child("image"), f"image registry {registry_of(container.image)!r} not allowed")
            )
    return errors


def check_privileged(view: ResourceView, namespace: NamespaceContext, config: WebhookConfig) -> List[ViolationRecord]:
    errors: List[ViolationRecord] = []
    for path, container in _each_container(view):
        if container.security is not None and container.security.privileged is True:
            errors.append(forbidden(path.child("securityContext", "privileged"), "privileged is forbidden"))
    return errors


def check_capabilities(view: ResourceView, namespace: NamespaceContext, config: WebhookConfig) -> List[ViolationRecord]:
    if namespace.allow_net_admin:
        return []
    errors: List[ViolationRecord] = []
    for path, container in _each_container(view):
        security = container.security
        if security is None or security.capabilities is None:
            continue
        add_path = path.child("securityContext", "capabilities", "add")
        for idx, capability in enumerate(security.capabilities.add):
            normalised = capability.strip().upper()
            if normalised in ELEVATED_CAPABILITIES:
                errors.append(
                    forbidden(
                        add_path.index(idx),
                        f"{normalised} requires namespace label {config.net_admin_label}=true",
                    )
                )
    return errors


def check_host_path_volumes(
    view: ResourceView, namespace: NamespaceContext, config: WebhookConfig
) -> List[ViolationRecord]:
    if namespace.allow_host_path:
        return []
    volumes_path = _template_path(view).child("spec", "volumes")
    return [
        forbidden(
            volumes_path.index(idx).child("hostPath"),
            f"hostPath volumes require namespace label {config.host_path_label}=true",
        )
        for idx, volume in enumerate(view.pod_spec.volumes)
        if volume.source is VolumeSource.HOST_PATH
    ]


def check_required_ports(
    view: ResourceView, namespace: NamespaceContext, config: WebhookConfig
) -> List[ViolationRecord]:
    value = view.metadata.annotation(config.required_ports_annotation)
    if not value or not value.strip():
        return []
    path = _annotation_path(view, config.required_ports_annotation)
    errors: List[ViolationRecord] = []
    ports: List[int] = []
    for token in PORT_SEPARATORS.split(value.strip()):
        if not token:
            continue
        if not PORT_TOKEN.fullmatch(token) or not 1 <= int(token) <= 65535:
            errors.append(invalid(path, token, "must be a port number between 1 and 65535"))
            continue
        if int(token) not in ports:
            ports.append(int(token))
    serving = list(view.pod_spec.containers)
    serving.extend(c for c in view.pod_spec.init_containers if c.is_native_sidecar)
    declared = {port.number for container in serving for port in container.ports}
    for port in ports:
        if port not in declared:
            errors.append(forbidden(path, f"port {port} is not declared by any container"))
    return errors


def check_network_attachments(
    view: ResourceView, namespace: NamespaceContext, config: WebhookConfig
) -> List[ViolationRecord]:
    if not config.network_validation:
        return []
    if not is_affirmative(view.metadata.annotation(config.validate_networks_annotation)):
        return []
    value = view.metadata.annotation(config.networks_annotation)
    if not value:
        return []
    path = _annotation_path(view, config.networks_annotation)
    errors: List[ViolationRecord] = []
    for match in CIDR_LITERAL.finditer(value):
        literal = match.group(0)
        try:
            address = ipaddress.IPv4Interface(literal).ip
        except ValueError:
            errors.append(invalid(path, literal, "not a valid CIDR"))
            continue
        if address not in config.data_cidr:
            errors.append(forbidden(path, f"IP {address} not in {config.data_cidr}"))
    return errors


def check_nf_addresses(view: ResourceView, namespace: NamespaceContext, config: WebhookConfig) -> List[ViolationRecord]:
    if not is_network_function(view, config):
        return []
    value = view.metadata.annotation(config.nf_networks_annotation)
    if not value or not value.strip():
        return []
    path = _annotation_path(view, config.nf_networks_annotation)
    errors: List[ViolationRecord] = []
    for entry in value.split(","):
        entry = entry.strip()
        if not entry:
            continue
        name, sep, cidr = entry.partition("@")
        name, cidr = name.strip(), cidr.strip()
        if not sep or not name or "/" not in cidr:
            errors.append(invalid(path, entry, "must be name@ip/prefix"))
            continue
        try:
            address = ipaddress.IPv4Interface(cidr).ip
        except ValueError:
            errors.append(invalid(path, entry, "not a valid IPv4 address/prefix"))
            continue
        if address not in config.data_cidr:
            errors.append(forbidden(path, f"{name}: IP {address} not in {config.data_cidr}"))
    return errors


VALIDATION_RULES: Tuple[ValidationRule, ...] = (
    check_namespace_identity,
    check_host_network,
    check_container_resources,
    check_image_tags,
    check_image_registries,
    check_privileged,
    check_capabilities,
    check_host_path_volumes,
    check_required_ports,
    check_network_attachments,
    check_nf_addresses,
)


def validate(view: ResourceView, namespace: NamespaceContext, config: WebhookConfig) -> List[ViolationRecord]:
    """Run every validation rule and return all violations; no rule short-circuits another."""

    violations: List[ViolationRecord] = []
    for rule in VALIDATION_RULES:
        violations.extend(rule(view, namespace, config))
    return violations


__all__ = [
    "VALIDATION_RULES",
    "check_capabilities",
    "check_container_resources",
    "check_host_network",
    "check_host_path_volumes",
    "check_image_registries",
    "check_image_tags",
    "check_namespace_identity",
    "check_network_attachments",
    "check_nf_addresses",
    "check_privileged",
    "check_required_ports",
    "is_allowed_registry",
    "registry_of",
    "validate",
]

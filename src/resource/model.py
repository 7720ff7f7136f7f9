from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from src.common.kinds import WorkloadKind
from src.common.pointer import Address
from src.resource.quantity import parse_quantity


class VolumeSource(str, Enum):
    EMPTY_DIR = "empty-dir"
    HOST_PATH = "host-path"
    OTHER = "other"


@dataclass(frozen=True)
class PortSpec:
    number: int
    name: Optional[str] = None
    protocol: str = "TCP"


@dataclass(frozen=True)
class ResourceRequirements:
    """Requests and limits as declared. ``None`` means the map itself is absent."""

    present: bool = False
    requests: Optional[Dict[str, Any]] = None
    limits: Optional[Dict[str, Any]] = None

    def request(self, resource: str) -> Optional[Decimal]:
        return _quantity(self.requests, resource)

    def limit(self, resource: str) -> Optional[Decimal]:
        return _quantity(self.limits, resource)


@dataclass(frozen=True)
class Capabilities:
    add: Tuple[str, ...] = ()
    drop: Tuple[str, ...] = ()


@dataclass(frozen=True)
class SecurityDescriptor:
    allow_privilege_escalation: Optional[bool] = None
    privileged: Optional[bool] = None
    capabilities: Optional[Capabilities] = None
    seccomp_present: bool = False
    seccomp_type: Optional[str] = None


@dataclass(frozen=True)
class VolumeMount:
    name: str
    mount_path: str


@dataclass(frozen=True)
class ContainerSpec:
    name: str
    image: str = ""
    ports: Tuple[PortSpec, ...] = ()
    resources: ResourceRequirements = field(default_factory=ResourceRequirements)
    security: Optional[SecurityDescriptor] = None
    volume_mounts: Tuple[VolumeMount, ...] = ()
    restart_policy: Optional[str] = None

    @property
    def is_native_sidecar(self) -> bool:
        """Init containers with ``restartPolicy: Always`` keep running beside the main containers."""

        return self.restart_policy == "Always"

    def declares_port(self, number: int, protocol: Optional[str] = None) -> bool:
        for port in self.ports:
            if port.number != number:
                continue
            if protocol is None or port.protocol.upper() == protocol.upper():
                return True
        return False


@dataclass(frozen=True)
class VolumeSpec:
    name: str
    source: VolumeSource = VolumeSource.OTHER
    host_path: Optional[str] = None


@dataclass(frozen=True)
class ObjectMeta:
    name: Optional[str] = None
    namespace: Optional[str] = None
    labels: Optional[Dict[str, str]] = None
    annotations: Optional[Dict[str, str]] = None
    present: bool = True

    def label(self, key: str) -> Optional[str]:
        return (self.labels or {}).get(key)

    def annotation(self, key: str) -> Optional[str]:
        return (self.annotations or {}).get(key)


@dataclass(frozen=True)
class PodSpec:
    containers: Tuple[ContainerSpec, ...] = ()
    init_containers: Tuple[ContainerSpec, ...] = ()
    volumes: Tuple[VolumeSpec, ...] = ()
    volumes_present: bool = False
    host_network: bool = False


@dataclass(frozen=True)
class ResourceView:
    """Canonical view of a workload, whatever shape it was submitted in.

    ``base`` is the address of the pod template inside the submitted document
    (the root for a bare Pod); every patch path is built from it.
    """

    kind: WorkloadKind
    metadata: ObjectMeta
    pod_spec: PodSpec
    base: Address
    source: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @property
    def metadata_address(self) -> Address:
        return self.base.child("metadata")

    @property
    def labels_address(self) -> Address:
        return self.metadata_address.child("labels")

    @property
    def spec_address(self) -> Address:
        return self.base.child("spec")

    @property
    def is_template(self) -> bool:
        return bool(self.base.parts)

    def container_groups(self) -> Tuple[Tuple[str, Tuple[ContainerSpec, ...]], ...]:
        """Container lists in evaluation order, keyed by their field name."""

        return (
            ("containers", self.pod_spec.containers),
            ("initContainers", self.pod_spec.init_containers),
        )


def _quantity(block: Optional[Dict[str, Any]], resource: str) -> Optional[Decimal]:
    if not block or resource not in block:
        return None
    return parse_quantity(block[resource])


__all__ = [
    "Capabilities",
    "ContainerSpec",
    "ObjectMeta",
    "PodSpec",
    "PortSpec",
    "ResourceRequirements",
    "ResourceView",
    "SecurityDescriptor",
    "VolumeMount",
    "VolumeSource",
    "VolumeSpec",
]

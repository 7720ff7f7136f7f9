from __future__ import annotations

import copy
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, Union

import yaml

from src.common.errors import DecodeError, UnsupportedKind
from src.common.kinds import WorkloadKind, normalise_kind
from src.common.pointer import ROOT, Address
from src.resource.model import (
    Capabilities,
    ContainerSpec,
    ObjectMeta,
    PodSpec,
    PortSpec,
    ResourceRequirements,
    ResourceView,
    SecurityDescriptor,
    VolumeMount,
    VolumeSource,
    VolumeSpec,
)
from src.resource.quantity import parse_quantity

RawDocument = Union[bytes, str, Mapping[str, Any]]

TEMPLATE_ADDRESS = Address(("spec", "template"))
CRON_TEMPLATE_ADDRESS = Address(("spec", "jobTemplate", "spec", "template"))


def load_document(raw: RawDocument) -> Dict[str, Any]:
    """Decode raw bytes or text (JSON or YAML) into a single mapping."""

    if isinstance(raw, Mapping):
        return copy.deepcopy(dict(raw))
    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise DecodeError(f"document is not UTF-8: {exc}") from exc
    if not isinstance(raw, str):
        raise DecodeError(f"unsupported document type: {type(raw).__name__}")
    try:
        documents = [doc for doc in yaml.safe_load_all(raw) if doc is not None]
    except yaml.YAMLError as exc:
        raise DecodeError(f"document is not valid JSON or YAML: {exc}") from exc
    if not documents:
        raise DecodeError("document is empty")
    if len(documents) > 1:
        raise DecodeError("expected a single document")
    document = documents[0]
    if not isinstance(document, dict):
        raise DecodeError("document must be a mapping")
    return document


def decode(raw: RawDocument, kind: Union[str, WorkloadKind]) -> ResourceView:
    """Decode a submitted document of the declared kind into a ResourceView."""

    workload_kind = kind if isinstance(kind, WorkloadKind) else normalise_kind(kind)
    if workload_kind is None:
        raise UnsupportedKind(f"unsupported kind: {kind}")
    document = load_document(raw)
    declared = document.get("kind")
    if isinstance(declared, str) and declared and normalise_kind(declared) is not workload_kind:
        raise DecodeError(f"decode {workload_kind.value}: document kind is {declared}")
    extractor = _EXTRACTORS[workload_kind]
    try:
        metadata_obj, spec_obj, base, metadata_present = extractor(document)
        metadata = _decode_metadata(metadata_obj, metadata_present)
        pod_spec = _decode_pod_spec(spec_obj)
    except DecodeError as exc:
        raise DecodeError(f"decode {workload_kind.value}: {exc}") from exc
    if metadata.namespace is None and workload_kind is not WorkloadKind.POD:
        outer = _mapping(document.get("metadata"), "metadata")
        metadata = ObjectMeta(
            name=metadata.name or _optional_str(outer.get("name"), "metadata.name"),
            namespace=_optional_str(outer.get("namespace"), "metadata.namespace"),
            labels=metadata.labels,
            annotations=metadata.annotations,
            present=metadata.present,
        )
    return ResourceView(
        kind=workload_kind,
        metadata=metadata,
        pod_spec=pod_spec,
        base=base,
        source=document,
    )


Extraction = Tuple[Any, Any, Address, bool]


def _extract_pod(document: Dict[str, Any]) -> Extraction:
    return document.get("metadata"), document.get("spec"), ROOT, "metadata" in document


def _extract_template(document: Dict[str, Any]) -> Extraction:
    spec = _mapping(document.get("spec"), "spec")
    template = _required_mapping(spec.get("template"), "spec.template")
    return template.get("metadata"), template.get("spec"), TEMPLATE_ADDRESS, "metadata" in template


def _extract_cron_template(document: Dict[str, Any]) -> Extraction:
    spec = _mapping(document.get("spec"), "spec")
    job_template = _required_mapping(spec.get("jobTemplate"), "spec.jobTemplate")
    job_spec = _required_mapping(job_template.get("spec"), "spec.jobTemplate.spec")
    template = _required_mapping(job_spec.get("template"), "spec.jobTemplate.spec.template")
    return template.get("metadata"), template.get("spec"), CRON_TEMPLATE_ADDRESS, "metadata" in template


_EXTRACTORS: Dict[WorkloadKind, Callable[[Dict[str, Any]], Extraction]] = {
    WorkloadKind.POD: _extract_pod,
    WorkloadKind.DEPLOYMENT: _extract_template,
    WorkloadKind.STATEFUL_SET: _extract_template,
    WorkloadKind.DAEMON_SET: _extract_template,
    WorkloadKind.REPLICA_SET: _extract_template,
    WorkloadKind.JOB: _extract_template,
    WorkloadKind.CRON_JOB: _extract_cron_template,
}


def _decode_metadata(raw: Any, present: bool) -> ObjectMeta:
    metadata = _mapping(raw, "metadata")
    return ObjectMeta(
        name=_optional_str(metadata.get("name"), "metadata.name"),
        namespace=_optional_str(metadata.get("namespace"), "metadata.namespace"),
        labels=_string_map(metadata.get("labels"), "metadata.labels"),
        annotations=_string_map(metadata.get("annotations"), "metadata.annotations"),
        present=present and raw is not None,
    )


def _decode_pod_spec(raw: Any) -> PodSpec:
    spec = _mapping(raw, "spec")
    host_network = spec.get("hostNetwork", False)
    if host_network is None:
        host_network = False
    if not isinstance(host_network, bool):
        raise DecodeError("spec.hostNetwork must be a boolean")
    if spec.get("containers") is None:
        raise DecodeError("spec.containers is required")
    raw_volumes = spec.get("volumes")
    return PodSpec(
        containers=_decode_containers(spec.get("containers"), "spec.containers"),
        init_containers=_decode_containers(spec.get("initContainers"), "spec.initContainers"),
        volumes=tuple(
            _decode_volume(item, f"spec.volumes[{idx}]") for idx, item in enumerate(_list(raw_volumes, "spec.volumes"))
        ),
        volumes_present=bool(raw_volumes),
        host_network=host_network,
    )


def _decode_containers(raw: Any, where: str) -> Tuple[ContainerSpec, ...]:
    containers: List[ContainerSpec] = []
    seen = set()
    for idx, item in enumerate(_list(raw, where)):
        container = _decode_container(item, f"{where}[{idx}]")
        if container.name in seen:
            raise DecodeError(f"{where}[{idx}].name: duplicate container name {container.name!r}")
        seen.add(container.name)
        containers.append(container)
    return tuple(containers)


def _decode_container(raw: Any, where: str) -> ContainerSpec:
    container = _mapping(raw, where)
    name = container.get("name")
    if not isinstance(name, str) or not name:
        raise DecodeError(f"{where}.name is required")
    image = _optional_str(container.get("image"), f"{where}.image") or ""
    ports = tuple(
        _decode_port(item, f"{where}.ports[{idx}]")
        for idx, item in enumerate(_list(container.get("ports"), f"{where}.ports"))
    )
    mounts = []
    for idx, item in enumerate(_list(container.get("volumeMounts"), f"{where}.volumeMounts")):
        mount = _mapping(item, f"{where}.volumeMounts[{idx}]")
        mounts.append(VolumeMount(name=str(mount.get("name", "")), mount_path=str(mount.get("mountPath", ""))))
    return ContainerSpec(
        name=name,
        image=image,
        ports=ports,
        resources=_decode_resources(container.get("resources"), f"{where}.resources"),
        security=_decode_security(container.get("securityContext"), f"{where}.securityContext"),
        volume_mounts=tuple(mounts),
        restart_policy=_optional_str(container.get("restartPolicy"), f"{where}.restartPolicy"),
    )


def _decode_port(raw: Any, where: str) -> PortSpec:
    port = _mapping(raw, where)
    number = port.get("containerPort")
    if isinstance(number, bool) or not isinstance(number, int):
        raise DecodeError(f"{where}.containerPort must be an integer")
    protocol = port.get("protocol") or "TCP"
    return PortSpec(
        number=number,
        name=_optional_str(port.get("name"), f"{where}.name"),
        protocol=str(protocol).upper(),
    )


def _decode_resources(raw: Any, where: str) -> ResourceRequirements:
    if raw is None:
        return ResourceRequirements()
    resources = _mapping(raw, where)
    blocks: Dict[str, Optional[Dict[str, Any]]] = {}
    for scope in ("requests", "limits"):
        block = resources.get(scope)
        if block is None:
            blocks[scope] = None
            continue
        block = _mapping(block, f"{where}.{scope}")
        for resource, value in block.items():
            try:
                parse_quantity(value)
            except ValueError as exc:
                raise DecodeError(f"{where}.{scope}.{resource}: {exc}") from exc
        blocks[scope] = dict(block)
    return ResourceRequirements(present=True, requests=blocks["requests"], limits=blocks["limits"])


def _decode_security(raw: Any, where: str) -> Optional[SecurityDescriptor]:
    if raw is None:
        return None
    security = _mapping(raw, where)
    capabilities = None
    raw_caps = security.get("capabilities")
    if raw_caps is not None:
        caps = _mapping(raw_caps, f"{where}.capabilities")
        capabilities = Capabilities(
            add=tuple(str(cap) for cap in _list(caps.get("add"), f"{where}.capabilities.add")),
            drop=tuple(str(cap) for cap in _list(caps.get("drop"), f"{where}.capabilities.drop")),
        )
    raw_seccomp = security.get("seccompProfile")
    seccomp_type = None
    if raw_seccomp is not None:
        seccomp = _mapping(raw_seccomp, f"{where}.seccompProfile")
        seccomp_type = _optional_str(seccomp.get("type"), f"{where}.seccompProfile.type")
    return SecurityDescriptor(
        allow_privilege_escalation=_optional_bool(
            security.get("allowPrivilegeEscalation"), f"{where}.allowPrivilegeEscalation"
        ),
        privileged=_optional_bool(security.get("privileged"), f"{where}.privileged"),
        capabilities=capabilities,
        seccomp_present=raw_seccomp is not None,
        seccomp_type=seccomp_type or None,
    )


def _decode_volume(raw: Any, where: str) -> VolumeSpec:
    volume = _mapping(raw, where)
    name = volume.get("name")
    if not isinstance(name, str) or not name:
        raise DecodeError(f"{where}.name is required")
    if volume.get("hostPath") is not None:
        host_path = _mapping(volume["hostPath"], f"{where}.hostPath")
        return VolumeSpec(
            name=name,
            source=VolumeSource.HOST_PATH,
            host_path=_optional_str(host_path.get("path"), f"{where}.hostPath.path"),
        )
    if "emptyDir" in volume:
        return VolumeSpec(name=name, source=VolumeSource.EMPTY_DIR)
    return VolumeSpec(name=name, source=VolumeSource.OTHER)


def _mapping(value: Any, where: str) -> Dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise DecodeError(f"{where} must be an object")
    return value


def _required_mapping(value: Any, where: str) -> Dict[str, Any]:
    if value is None:
        raise DecodeError(f"{where} is required")
    return _mapping(value, where)


def _list(value: Any, where: str) -> List[Any]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise DecodeError(f"{where} must be a list")
    return value


def _optional_str(value: Any, where: str) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise DecodeError(f"{where} must be a string")
    return value


def _optional_bool(value: Any, where: str) -> Optional[bool]:
    if value is None or isinstance(value, bool):
        return value
    raise DecodeError(f"{where} must be a boolean")


def _string_map(value: Any, where: str) -> Optional[Dict[str, str]]:
    if value is None:
        return None
    mapping = _mapping(value, where)
    result: Dict[str, str] = {}
    for key, item in mapping.items():
        if not isinstance(key, str) or not isinstance(item, str):
            raise DecodeError(f"{where} must map strings to strings")
        result[key] = item
    return result


__all__ = ["decode", "load_document", "CRON_TEMPLATE_ADDRESS", "TEMPLATE_ADDRESS"]

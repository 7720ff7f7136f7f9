from __future__ import annotations

import ipaddress
import os
from dataclasses import dataclass, field, fields
from ipaddress import IPv4Network
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

import yaml

from src.common.errors import ConfigError
from src.resource.quantity import parse_quantity

ANNOTATION_PREFIX = "5g.kkarczmarek.dev/"

DEFAULT_PROPAGATED_ANNOTATIONS = (
    f"{ANNOTATION_PREFIX}slice-id",
    f"{ANNOTATION_PREFIX}sst",
    f"{ANNOTATION_PREFIX}sd",
    f"{ANNOTATION_PREFIX}dnn",
    f"{ANNOTATION_PREFIX}ue-pool-cidr",
    f"{ANNOTATION_PREFIX}n6-cidr",
)

_TRUE_VALUES = {"true", "1", "yes", "on"}
_FALSE_VALUES = {"false", "0", "no", "off"}

_ENV_FIELDS = {
    "default_cpu_request": "DEFAULT_CPU_REQUEST",
    "default_mem_request": "DEFAULT_MEM_REQUEST",
    "default_cpu_limit": "DEFAULT_CPU_LIMIT",
    "default_mem_limit": "DEFAULT_MEM_LIMIT",
    "project_label_value": "PROJECT_LABEL_VALUE",
    "part_of_label_value": "PARTOF_LABEL_VALUE",
    "project_namespace": "PROJECT_NAMESPACE",
    "data_cidr": "DATA_CIDR",
    "allowed_registries": "ALLOWED_REGISTRIES",
    "deny_latest_tag": "DENY_LATEST_TAG",
    "network_validation": "NETWORK_VALIDATION",
    "tcpdump_image": "TCPDUMP_IMAGE",
    "admission_label": "ADMISSION_LABEL",
    "kubernetes_api_url": "KUBERNETES_API_URL",
    "namespace_timeout_seconds": "NAMESPACE_TIMEOUT_SECONDS",
    "tls_cert_file": "TLS_CERT_FILE",
    "tls_key_file": "TLS_KEY_FILE",
}

# Older deployments name the namespace variable after the project.
_ENV_ALIASES = {
    "project_namespace": ("FREE5GC_NAMESPACE",),
}


def is_affirmative(value: Any) -> bool:
    """True for ``true``/``1``/``yes``/``on`` in any case."""

    if isinstance(value, bool):
        return value
    if not isinstance(value, str):
        return False
    return value.strip().lower() in _TRUE_VALUES


@dataclass(frozen=True)
class WebhookConfig:
    """Process-wide policy configuration. Built once at startup and never mutated."""

    default_cpu_request: str = "50m"
    default_mem_request: str = "128Mi"
    default_cpu_limit: str = "500m"
    default_mem_limit: str = "512Mi"

    project_label_key: str = "project"
    project_label_value: str = "free5gc"
    part_of_label_key: str = "app.kubernetes.io/part-of"
    part_of_label_value: str = "free5gc"
    project_namespace: str = "free5gc"
    propagated_annotations: Tuple[str, ...] = DEFAULT_PROPAGATED_ANNOTATIONS

    data_cidr: IPv4Network = field(default_factory=lambda: IPv4Network("192.168.50.0/24"))
    allowed_registries: Tuple[str, ...] = ("ghcr.io", "public.ecr.aws", "docker.io")
    deny_latest_tag: bool = True
    network_validation: bool = True

    admission_label: str = f"{ANNOTATION_PREFIX}admission"
    net_admin_label: str = "allow-netadmin"
    host_path_label: str = "allow-hostpath"

    nf_label_key: str = "nf"
    nf_label_value: str = "upf"
    nf_name_label_key: str = "app.kubernetes.io/name"
    nf_name_label_value: str = "free5gc-upf"
    nf_container_name: str = "upf"
    nf_ports: Tuple[Tuple[str, int, str], ...] = (("pfcp", 8805, "UDP"), ("gtpu", 2152, "UDP"))

    tcpdump_image: str = "docker.io/corfr/tcpdump:latest"
    tcpdump_annotation: str = f"{ANNOTATION_PREFIX}tcpdump-enabled"
    sidecar_name: str = "tcpdump-sidecar"
    capture_volume_name: str = "tcpdump-data"
    capture_mount_path: str = "/data"

    required_ports_annotation: str = f"{ANNOTATION_PREFIX}required-ports"
    validate_networks_annotation: str = f"{ANNOTATION_PREFIX}validate-networks"
    networks_annotation: str = "k8s.v1.cni.cncf.io/networks"
    nf_networks_annotation: str = "5g-networks"

    kubernetes_api_url: str = "https://kubernetes.default.svc"
    namespace_timeout_seconds: float = 5.0
    tls_cert_file: str = "/tls/tls.crt"
    tls_key_file: str = "/tls/tls.key"

    def __post_init__(self) -> None:
        for name in ("default_cpu_request", "default_mem_request", "default_cpu_limit", "default_mem_limit"):
            value = getattr(self, name)
            try:
                quantity = parse_quantity(value)
            except ValueError as exc:
                raise ConfigError(f"{name}: {exc}") from exc
            if quantity <= 0:
                raise ConfigError(f"{name} must be positive, got {value!r}")
        if not isinstance(self.data_cidr, IPv4Network):
            raise ConfigError(f"data_cidr must be an IPv4 network, got {self.data_cidr!r}")
        if not self.allowed_registries:
            raise ConfigError("allowed_registries must list at least one registry")
        if self.namespace_timeout_seconds <= 0:
            raise ConfigError("namespace_timeout_seconds must be positive")

    @property
    def default_requests(self) -> Dict[str, str]:
        return {"cpu": self.default_cpu_request, "memory": self.default_mem_request}

    @property
    def default_limits(self) -> Dict[str, str]:
        return {"cpu": self.default_cpu_limit, "memory": self.default_mem_limit}

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> "WebhookConfig":
        known = {f.name: f for f in fields(cls)}
        unknown = sorted(set(values) - set(known))
        if unknown:
            raise ConfigError(f"Unknown configuration keys: {', '.join(unknown)}")
        kwargs = {name: _coerce(name, value) for name, value in values.items()}
        return cls(**kwargs)

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        overrides: Optional[Mapping[str, Any]] = None,
    ) -> "WebhookConfig":
        """Build configuration from ``overrides`` with non-empty environment variables on top."""

        environ = os.environ if environ is None else environ
        values: Dict[str, Any] = dict(overrides or {})
        for name, env_name in _ENV_FIELDS.items():
            for candidate in (env_name,) + _ENV_ALIASES.get(name, ()):
                raw = environ.get(candidate)
                if raw:
                    values[name] = raw
                    break
        return cls.from_mapping(values)


def load_config(path: Optional[Path] = None, environ: Optional[Mapping[str, str]] = None) -> WebhookConfig:
    overrides: Dict[str, Any] = {}
    if path is not None:
        try:
            with path.open("r", encoding="utf-8") as handle:
                data = yaml.safe_load(handle) or {}
        except FileNotFoundError as exc:
            raise ConfigError(f"Config file not found: {path}") from exc
        except yaml.YAMLError as exc:
            raise ConfigError(f"Config file {path} is not valid YAML: {exc}") from exc
        if not isinstance(data, dict):
            raise ConfigError("Config file must contain a mapping")
        overrides.update(data)
    return WebhookConfig.from_env(environ=environ, overrides=overrides)


def _coerce(name: str, value: Any) -> Any:
    if name == "data_cidr":
        if isinstance(value, IPv4Network):
            return value
        try:
            return ipaddress.IPv4Network(str(value).strip(), strict=False)
        except ValueError as exc:
            raise ConfigError(f"data_cidr: {exc}") from exc
    if name in {"deny_latest_tag", "network_validation"}:
        if isinstance(value, bool):
            return value
        lowered = str(value).strip().lower()
        if lowered in _TRUE_VALUES:
            return True
        if lowered in _FALSE_VALUES:
            return False
        raise ConfigError(f"{name} must be a boolean, got {value!r}")
    if name in {"allowed_registries", "propagated_annotations"}:
        items = value.split(",") if isinstance(value, str) else list(value)
        return tuple(str(item).strip() for item in items if str(item).strip())
    if name == "nf_ports":
        try:
            return tuple((str(port_name), int(number), str(protocol).upper()) for port_name, number, protocol in value)
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"nf_ports must be (name, number, protocol) triples: {exc}") from exc
    if name == "namespace_timeout_seconds":
        try:
            return float(value)
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"{name} must be a number, got {value!r}") from exc
    return str(value)


__all__ = ["ANNOTATION_PREFIX", "WebhookConfig", "is_affirmative", "load_config"]

"""Packet-capture sidecar injected into network-function workloads."""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional

from src.common.config import ANNOTATION_PREFIX, WebhookConfig

CAPTURE_ARGS = ("-i", "any", "-w", "/data/trace.pcap")

# Environment variable -> annotation carrying slice / addressing details.
SLICE_ENV = (
    ("UPF_SLICE_ID", f"{ANNOTATION_PREFIX}slice-id"),
    ("UPF_SST", f"{ANNOTATION_PREFIX}sst"),
    ("UPF_SD", f"{ANNOTATION_PREFIX}sd"),
    ("UPF_DNN", f"{ANNOTATION_PREFIX}dnn"),
    ("UPF_UE_POOL_CIDR", f"{ANNOTATION_PREFIX}ue-pool-cidr"),
    ("UPF_N6_CIDR", f"{ANNOTATION_PREFIX}n6-cidr"),
)


def build_sidecar(config: WebhookConfig, annotations: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    env: List[Dict[str, str]] = []
    for env_name, annotation in SLICE_ENV:
        value = (annotations or {}).get(annotation)
        if value:
            env.append({"name": env_name, "value": value})

    container: Dict[str, Any] = {
        "name": config.sidecar_name,
        "image": config.tcpdump_image,
        "imagePullPolicy": "IfNotPresent",
        "args": list(CAPTURE_ARGS),
        "securityContext": {
            "allowPrivilegeEscalation": False,
            "capabilities": {
                "drop": ["ALL"],
                "add": ["NET_ADMIN", "NET_RAW"],
            },
            "seccompProfile": {"type": "RuntimeDefault"},
        },
        "volumeMounts": [
            {"name": config.capture_volume_name, "mountPath": config.capture_mount_path},
        ],
        "resources": {
            "requests": config.default_requests,
            "limits": config.default_limits,
        },
    }
    if env:
        container["env"] = env
    return container


def build_capture_volume(config: WebhookConfig) -> Dict[str, Any]:
    return {"name": config.capture_volume_name, "emptyDir": {}}


__all__ = ["build_capture_volume", "build_sidecar"]

"""Workload classification shared by the mutation and validation rules."""

from __future__ import annotations

from typing import Optional

from src.common.config import WebhookConfig

from .model import ResourceView


def claims_project_identity(view: ResourceView, config: WebhookConfig) -> bool:
    return view.metadata.label(config.part_of_label_key) == config.part_of_label_value


def is_project_member(view: ResourceView, namespace: str, config: WebhookConfig) -> bool:
    if namespace == config.project_namespace:
        return True
    if claims_project_identity(view, config):
        return True
    return view.metadata.label(config.project_label_key) == config.project_label_value


def is_network_function(view: ResourceView, config: WebhookConfig) -> bool:
    if view.metadata.label(config.nf_label_key) == config.nf_label_value:
        return True
    if view.metadata.label(config.nf_name_label_key) == config.nf_name_label_value:
        return True
    return any(container.name == config.nf_container_name for container in view.pod_spec.containers)


def primary_container_index(view: ResourceView, config: WebhookConfig) -> Optional[int]:
    """Index of the container named by convention, else the first container."""

    containers = view.pod_spec.containers
    if not containers:
        return None
    for idx, container in enumerate(containers):
        if container.name == config.nf_container_name:
            return idx
    return 0


__all__ = [
    "claims_project_identity",
    "is_network_function",
    "is_project_member",
    "primary_container_index",
]

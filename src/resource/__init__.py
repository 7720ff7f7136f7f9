"""Canonical resource views over submitted workload documents."""

from .adapter import decode, load_document
from .model import ContainerSpec, ObjectMeta, PodSpec, ResourceView, VolumeSource, VolumeSpec

__all__ = [
    "ContainerSpec",
    "ObjectMeta",
    "PodSpec",
    "ResourceView",
    "VolumeSource",
    "VolumeSpec",
    "decode",
    "load_document",
]

"""Shared helpers for normalising workload kinds across components."""

from __future__ import annotations

from enum import Enum
from functools import lru_cache
from typing import Optional


class WorkloadKind(str, Enum):
    POD = "Pod"
    DEPLOYMENT = "Deployment"
    STATEFUL_SET = "StatefulSet"
    DAEMON_SET = "DaemonSet"
    REPLICA_SET = "ReplicaSet"
    JOB = "Job"
    CRON_JOB = "CronJob"


_KIND_NORMALISATION_MAP = {
    # Bare pods
    "pod": WorkloadKind.POD,
    "pods": WorkloadKind.POD,
    "po": WorkloadKind.POD,
    # apps/v1 controllers
    "deployment": WorkloadKind.DEPLOYMENT,
    "deployments": WorkloadKind.DEPLOYMENT,
    "deploy": WorkloadKind.DEPLOYMENT,
    "statefulset": WorkloadKind.STATEFUL_SET,
    "statefulsets": WorkloadKind.STATEFUL_SET,
    "sts": WorkloadKind.STATEFUL_SET,
    "daemonset": WorkloadKind.DAEMON_SET,
    "daemonsets": WorkloadKind.DAEMON_SET,
    "ds": WorkloadKind.DAEMON_SET,
    "replicaset": WorkloadKind.REPLICA_SET,
    "replicasets": WorkloadKind.REPLICA_SET,
    "rs": WorkloadKind.REPLICA_SET,
    # batch/v1
    "job": WorkloadKind.JOB,
    "jobs": WorkloadKind.JOB,
    "cronjob": WorkloadKind.CRON_JOB,
    "cronjobs": WorkloadKind.CRON_JOB,
    "cj": WorkloadKind.CRON_JOB,
}


@lru_cache(maxsize=None)
def normalise_kind(kind: Optional[str]) -> Optional[WorkloadKind]:
    """Map a raw kind or resource name to the canonical workload kind, if handled."""

    key = (kind or "").strip().lower()
    if not key:
        return None
    return _KIND_NORMALISATION_MAP.get(key)


__all__ = ["WorkloadKind", "normalise_kind"]

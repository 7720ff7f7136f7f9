from __future__ import annotations

import ssl
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

import httpx

from src.common.config import WebhookConfig
from src.common.errors import NamespaceLookupError

SERVICE_ACCOUNT_DIR = Path("/var/run/secrets/kubernetes.io/serviceaccount")


class NamespaceClient:
    """Collaborator interface: fetch the labels of a namespace by name."""

    def get_namespace(self, name: str) -> Dict[str, str]:  # pragma: no cover - interface
        raise NotImplementedError


class StaticNamespaceClient(NamespaceClient):
    """Serves namespace labels from an in-memory snapshot (offline review, tests)."""

    def __init__(self, namespaces: Mapping[str, Mapping[str, str]]) -> None:
        self._namespaces = {name: dict(labels) for name, labels in namespaces.items()}

    def get_namespace(self, name: str) -> Dict[str, str]:
        if name not in self._namespaces:
            raise NamespaceLookupError(f'namespaces "{name}" not found')
        return dict(self._namespaces[name])


class KubeNamespaceClient(NamespaceClient):
    """Reads namespaces from the Kubernetes API with the pod's service account."""

    def __init__(
        self,
        base_url: str,
        *,
        token: Optional[str] = None,
        verify: Union[bool, ssl.SSLContext] = True,
        timeout_seconds: float = 5.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.verify = verify
        self.timeout = timeout_seconds
        self._transport = transport

    def get_namespace(self, name: str) -> Dict[str, str]:
        if not name:
            raise NamespaceLookupError("namespace name is empty")
        url = f"{self.base_url}/api/v1/namespaces/{name}"
        try:
            with httpx.Client(
                timeout=self.timeout,
                headers=self._build_headers(),
                verify=self.verify,
                transport=self._transport,
            ) as client:
                response = client.get(url)
                response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as exc:
            if exc.response.status_code == 404:
                raise NamespaceLookupError(f'namespaces "{name}" not found') from exc
            raise NamespaceLookupError(
                f"namespace lookup for {name!r} returned HTTP {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise NamespaceLookupError(f"namespace lookup for {name!r} failed: {exc}") from exc
        except ValueError as exc:
            raise NamespaceLookupError(f"namespace lookup for {name!r} returned invalid JSON") from exc
        return self._extract_labels(data, name)

    def _build_headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    @staticmethod
    def _extract_labels(data: Any, name: str) -> Dict[str, str]:
        if not isinstance(data, dict):
            raise NamespaceLookupError(f"namespace {name!r} response is not an object")
        metadata = data.get("metadata")
        if not isinstance(metadata, dict):
            raise NamespaceLookupError(f"namespace {name!r} response has no metadata")
        labels = metadata.get("labels") or {}
        if not isinstance(labels, dict):
            raise NamespaceLookupError(f"namespace {name!r} labels are malformed")
        return {str(key): str(value) for key, value in labels.items()}

    @classmethod
    def in_cluster(
        cls,
        config: WebhookConfig,
        service_account_dir: Path = SERVICE_ACCOUNT_DIR,
    ) -> "KubeNamespaceClient":
        token_path = service_account_dir / "token"
        ca_path = service_account_dir / "ca.crt"
        token = token_path.read_text(encoding="utf-8").strip() if token_path.exists() else None
        verify: Union[bool, ssl.SSLContext] = True
        if ca_path.exists():
            verify = ssl.create_default_context(cafile=str(ca_path))
        return cls(
            config.kubernetes_api_url,
            token=token,
            verify=verify,
            timeout_seconds=config.namespace_timeout_seconds,
        )


__all__ = ["KubeNamespaceClient", "NamespaceClient", "StaticNamespaceClient"]

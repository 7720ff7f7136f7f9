from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Dict, List, Optional

import typer
import yaml

from src.common.config import WebhookConfig, load_config
from src.common.errors import ConfigError
from src.namespace.client import KubeNamespaceClient, StaticNamespaceClient

from .engine import AdmissionEngine, DecisionRequest, Intent

app = typer.Typer(help="Admission webhook that hardens and validates free5gc workloads.")


def _configure_logging(level: str) -> None:
    logging.basicConfig(level=level.upper(), format="%(levelname)s: %(message)s")


def _load(config_path: Optional[Path]) -> WebhookConfig:
    try:
        return load_config(config_path)
    except ConfigError as exc:
        raise typer.BadParameter(str(exc)) from exc


def _parse_labels(pairs: List[str]) -> Dict[str, str]:
    labels: Dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key.strip():
            raise typer.BadParameter(f"Namespace labels must be key=value, got {pair!r}")
        labels[key.strip()] = value.strip()
    return labels


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", help="Address to bind."),
    port: int = typer.Option(8443, help="Port to listen on."),
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Optional YAML file with configuration overrides (environment wins).",
    ),
    tls: bool = typer.Option(True, help="Serve HTTPS with TLS_CERT_FILE / TLS_KEY_FILE."),
    log_level: str = typer.Option(os.getenv("LOG_LEVEL", "INFO"), help="Logging level."),
) -> None:
    import uvicorn

    from .server import create_app

    _configure_logging(log_level)
    webhook_config = _load(config)
    engine = AdmissionEngine(webhook_config, KubeNamespaceClient.in_cluster(webhook_config))
    ssl_options = {}
    if tls:
        ssl_options = {"ssl_certfile": webhook_config.tls_cert_file, "ssl_keyfile": webhook_config.tls_key_file}
    logging.info("starting webhook server on %s:%d", host, port)
    uvicorn.run(create_app(engine), host=host, port=port, log_level=log_level.lower(), **ssl_options)


@app.command()
def review(
    manifest: Path = typer.Argument(..., help="Manifest (YAML or JSON) to evaluate."),
    intent: Intent = typer.Option(Intent.VALIDATE, "--intent", "-i", help="mutate or validate."),
    namespace: Optional[str] = typer.Option(
        None,
        "--namespace",
        "-n",
        help="Namespace to evaluate in (defaults to metadata.namespace, then 'default').",
    ),
    ns_labels: Optional[List[str]] = typer.Option(
        None,
        "--ns-label",
        help="Namespace label key=value standing in for the cluster lookup (repeatable).",
    ),
    opt_in: bool = typer.Option(True, help="Add the admission opt-in label to the namespace."),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Optional YAML configuration file."),
    log_level: str = typer.Option("WARNING", help="Logging level."),
) -> None:
    _configure_logging(log_level)
    webhook_config = _load(config)
    try:
        document = yaml.safe_load(manifest.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as exc:
        raise typer.BadParameter(f"Failed to read manifest {manifest}: {exc}") from exc
    if not isinstance(document, dict):
        raise typer.BadParameter("Manifest must contain a single object")

    metadata = document.get("metadata") if isinstance(document.get("metadata"), dict) else {}
    namespace_name = namespace or metadata.get("namespace") or "default"
    labels = _parse_labels(ns_labels or [])
    if opt_in:
        labels.setdefault(webhook_config.admission_label, "true")

    engine = AdmissionEngine(webhook_config, StaticNamespaceClient({namespace_name: labels}))
    decision = engine.decide(
        DecisionRequest(
            intent=intent,
            kind=str(document.get("kind", "")),
            namespace=namespace_name,
            object=document,
        )
    )
    typer.echo(json.dumps(decision.to_dict(), indent=2))
    if not decision.allowed:
        raise typer.Exit(code=1)


if __name__ == "__main__":  # pragma: no cover
    app()

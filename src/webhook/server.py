from __future__ import annotations

import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI, HTTPException, status
from fastapi.responses import PlainTextResponse

from src.common.config import WebhookConfig, load_config
from src.namespace.client import KubeNamespaceClient

from .engine import AdmissionEngine, Decision, Intent
from .envelope import AdmissionReview, build_review, to_decision_request

logger = logging.getLogger(__name__)


def create_app(engine: Optional[AdmissionEngine] = None) -> FastAPI:
    app = FastAPI(
        title="5G Admission Webhook",
        description="Mutating and validating admission webhook for free5gc workloads.",
        version="0.1.0",
    )
    if engine is not None:
        app.dependency_overrides[get_engine] = lambda: engine

    @app.get("/healthz", response_class=PlainTextResponse)
    def healthz() -> str:
        return "ok"

    @app.post("/mutate")
    def mutate_review(review: AdmissionReview, engine: AdmissionEngine = Depends(get_engine)) -> Dict[str, Any]:
        return _handle(review, Intent.MUTATE, engine)

    @app.post("/validate")
    def validate_review(review: AdmissionReview, engine: AdmissionEngine = Depends(get_engine)) -> Dict[str, Any]:
        return _handle(review, Intent.VALIDATE, engine)

    return app


def _handle(review: AdmissionReview, intent: Intent, engine: AdmissionEngine) -> Dict[str, Any]:
    if review.request is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="AdmissionReview.request is required")
    request = review.request
    if request.object is None:
        # DELETE and CONNECT carry no object to evaluate.
        logger.debug("%s %s without object; allowing", intent.value, request.operation)
        return build_review(review, Decision(allowed=True))
    decision = engine.decide(to_decision_request(request, intent))
    return build_review(review, decision)


@lru_cache()
def get_config() -> WebhookConfig:
    config_path = os.getenv("WEBHOOK_CONFIG_FILE")
    return load_config(Path(config_path) if config_path else None)


@lru_cache()
def get_engine() -> AdmissionEngine:
    config = get_config()
    return AdmissionEngine(config, KubeNamespaceClient.in_cluster(config))


app = create_app()


__all__ = ["app", "create_app", "get_config", "get_engine"]

from __future__ import annotations

import base64
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from src.patcher.synthesizer import to_json

from .engine import Decision, DecisionRequest, Intent

ADMISSION_API_VERSION = "admission.k8s.io/v1"


class GroupVersionKind(BaseModel):
    group: str = ""
    version: str = ""
    kind: str


class AdmissionRequest(BaseModel):
    model_config = ConfigDict(extra="allow")

    uid: str = Field(..., description="Identifier echoed back in the response")
    kind: GroupVersionKind = Field(..., description="Kind of the submitted object")
    namespace: Optional[str] = Field(default=None, description="Namespace of the submitted object")
    operation: Optional[str] = Field(default=None, description="CREATE, UPDATE, DELETE or CONNECT")
    object: Optional[Dict[str, Any]] = Field(default=None, description="The submitted object")


class AdmissionReview(BaseModel):
    model_config = ConfigDict(extra="allow")

    apiVersion: str = ADMISSION_API_VERSION
    kind: str = "AdmissionReview"
    request: Optional[AdmissionRequest] = None
    response: Optional[Dict[str, Any]] = None


def to_decision_request(request: AdmissionRequest, intent: Intent) -> DecisionRequest:
    return DecisionRequest(
        intent=intent,
        kind=request.kind.kind,
        namespace=request.namespace or "",
        object=request.object,
        uid=request.uid,
    )


def build_response(uid: str, decision: Decision) -> Dict[str, Any]:
    response: Dict[str, Any] = {"uid": uid, "allowed": decision.allowed}
    if decision.patch:
        response["patchType"] = decision.patch_type
        response["patch"] = base64.b64encode(to_json(decision.patch)).decode("ascii")
    if decision.message:
        response["status"] = {"message": decision.message}
    return response


def build_review(review: AdmissionReview, decision: Decision) -> Dict[str, Any]:
    uid = review.request.uid if review.request is not None else ""
    return {
        "apiVersion": review.apiVersion or ADMISSION_API_VERSION,
        "kind": "AdmissionReview",
        "response": build_response(uid, decision),
    }


__all__ = [
    "ADMISSION_API_VERSION",
    "AdmissionRequest",
    "AdmissionReview",
    "GroupVersionKind",
    "build_response",
    "build_review",
    "to_decision_request",
]

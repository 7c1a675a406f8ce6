"""AdmissionReview envelope handling."""

import json
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

ADMISSION_API_VERSION = "admission.k8s.io/v1"
CREATE = "CREATE"


class ReviewDecodeError(ValueError):
    """Raised when a payload is not a usable AdmissionReview."""


class GroupVersionKind(BaseModel):
    """Kind of the object under review."""

    group: str = ""
    version: str = ""
    kind: str


class AdmissionRequest(BaseModel):
    """The subset of an admission request the webhook reads."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    uid: str
    kind: GroupVersionKind
    operation: str
    name: str = ""
    namespace: str = ""
    object_: Optional[Dict[str, Any]] = Field(default=None, alias="object")


class AdmissionReview(BaseModel):
    """Incoming ``AdmissionReview`` with its request."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    api_version: str = Field(default=ADMISSION_API_VERSION, alias="apiVersion")
    kind: str = "AdmissionReview"
    request: AdmissionRequest


def parse_review(body: Union[bytes, str]) -> AdmissionReview:
    """Decode a raw request body as an AdmissionReview.

    Raises:
        ReviewDecodeError: If the body is not JSON, is malformed, or has no
            request.
    """
    try:
        return AdmissionReview.model_validate_json(body)
    except ValidationError as e:
        raise ReviewDecodeError(f"failed to unmarshal admission review; {e}") from e


def request_uid(body: Union[bytes, str]) -> str:
    """Best-effort uid lookup in a body that failed validation."""
    try:
        payload = json.loads(body)
    except ValueError:
        return ""
    if isinstance(payload, dict) and isinstance(payload.get("request"), dict):
        return str(payload["request"].get("uid") or "")
    return ""


def build_review_response(
    uid: str,
    allowed: bool,
    message: str,
    api_version: str = ADMISSION_API_VERSION,
) -> Dict[str, Any]:
    """Render the AdmissionReview sent back to the API server."""
    return {
        "apiVersion": api_version,
        "kind": "AdmissionReview",
        "response": {
            "uid": uid,
            "allowed": allowed,
            "status": {
                "code": 200 if allowed else 403,
                "message": message,
            },
        },
    }

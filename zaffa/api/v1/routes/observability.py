import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Request
from pydantic import BaseModel, ConfigDict, Field

from zaffa.observability import get_request_id, log_structured, sanitize_payload, sanitize_str

router = APIRouter()

STORE_OPERATIONS = "^(get|list|create|update|delete|write)$"


class ErrorReportPayload(BaseModel):
    """A failure seen by a checklist client.

    ``kind="permission"`` marks a rejected read or write on a household
    resource; ``operation`` and ``path`` say which one.
    """

    model_config = ConfigDict(extra="allow")
    message: str = Field(..., min_length=1, max_length=2000)
    kind: Optional[str] = Field(None, max_length=32)
    operation: Optional[str] = Field(None, pattern=STORE_OPERATIONS)
    path: Optional[str] = Field(None, max_length=512)
    details: Optional[Dict[str, Any]] = None
    stack: Optional[str] = None


@router.post("/error-report", status_code=202)
def report_error(payload: ErrorReportPayload, request: Request) -> Dict[str, str]:
    data = sanitize_payload(payload.model_dump(exclude_none=True))
    if payload.kind == "permission":
        log_structured(
            logging.WARNING,
            "client_permission_denied",
            operation=payload.operation,
            resource=sanitize_str(payload.path, 512),
            payload=data,
        )
    else:
        log_structured(logging.ERROR, "client_error_report", path=request.url.path, payload=data)
    return {"status": "accepted", "request_id": get_request_id(request)}

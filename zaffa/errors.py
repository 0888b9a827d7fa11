from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import HTTPException, status
from fastapi.exceptions import RequestValidationError

ERROR_CODES = {
    "validation": "VALIDATION_ERROR",
    "http": "HTTP_ERROR",
    "unauthenticated": "UNAUTHENTICATED",
    "permission": "PERMISSION_DENIED",
    "not_found": "NOT_FOUND",
    "business_rule": "BUSINESS_RULE_VIOLATION",
    "internal": "INTERNAL_ERROR",
}

_STATUS_CODES = {
    status.HTTP_401_UNAUTHORIZED: ERROR_CODES["unauthenticated"],
    status.HTTP_403_FORBIDDEN: ERROR_CODES["permission"],
    status.HTTP_404_NOT_FOUND: ERROR_CODES["not_found"],
    status.HTTP_409_CONFLICT: ERROR_CODES["business_rule"],
    status.HTTP_422_UNPROCESSABLE_ENTITY: ERROR_CODES["validation"],
}


def make_error_payload(code: str, message: str, details: Optional[Any] = None) -> Dict[str, Any]:
    return {
        "error": {
            "code": code,
            "message": message,
            "details": details,
        }
    }


def format_validation_details(exc: RequestValidationError) -> List[Dict[str, Any]]:
    formatted: List[Dict[str, Any]] = []
    for err in exc.errors():
        formatted.append(
            {
                "loc": err.get("loc"),
                "msg": err.get("msg"),
                "type": err.get("type"),
            }
        )
    return formatted


def http_error_payload(exc: HTTPException) -> Dict[str, Any]:
    message = exc.detail if isinstance(exc.detail, str) else "HTTP error"
    code = _STATUS_CODES.get(exc.status_code, ERROR_CODES["http"])
    return make_error_payload(
        code,
        message,
        {"status_code": exc.status_code},
    )

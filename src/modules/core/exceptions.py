"""Domain error base class and the standardized API error envelope.

Services raise subclasses of ``DomainError``; they never build HTTP
responses.  ``standardized_exception_handler`` (wired as DRF's
``EXCEPTION_HANDLER``) translates both domain errors and DRF's own
exceptions into a single shape::

    {
        "type": "client_error" | "validation_error" | "server_error",
        "errors": [{"code": "...", "detail": "...", "attr": null}]
    }

Domain errors may contribute extra top-level keys (e.g. ``current_status``
for an invalid transition) through ``DomainError.extra``.
"""

from __future__ import annotations

from typing import Any, Dict, Iterator, Optional

import structlog
from rest_framework import exceptions, status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = structlog.get_logger(__name__)


class DomainError(Exception):
    """Base class for every business-rule violation raised by a service."""

    code = "domain_error"

    def __init__(self, message: str = "", **extra: Any) -> None:
        super().__init__(message)
        self.extra: Dict[str, Any] = extra


class NotFound(DomainError):
    """The referenced entity does not exist."""

    code = "not_found"


class Forbidden(DomainError):
    """The actor is not allowed to perform the operation on this entity."""

    code = "forbidden"


HTTP_STATUS_BY_CODE: Dict[str, int] = {
    "not_found": status.HTTP_404_NOT_FOUND,
    "forbidden": status.HTTP_403_FORBIDDEN,
    "invalid_transition": status.HTTP_409_CONFLICT,
    "insufficient_stock": status.HTTP_409_CONFLICT,
    "concurrency_conflict": status.HTTP_409_CONFLICT,
    "missing_reason": status.HTTP_400_BAD_REQUEST,
    "missing_transporter": status.HTTP_400_BAD_REQUEST,
    "invalid_order": status.HTTP_400_BAD_REQUEST,
}


def standardized_exception_handler(exc: Exception, context: Dict[str, Any]) -> Optional[Response]:
    if isinstance(exc, DomainError):
        http_status = HTTP_STATUS_BY_CODE.get(exc.code, status.HTTP_400_BAD_REQUEST)
        body: Dict[str, Any] = {
            "type": "client_error",
            "errors": [{"code": exc.code, "detail": str(exc), "attr": None}],
        }
        body.update(_jsonable(exc.extra))
        logger.info("api.domain_error", code=exc.code, detail=str(exc))
        return Response(body, status=http_status)

    response = exception_handler(exc, context)
    if response is None:
        # Unexpected failure: Django's 500 handling and logging take over.
        return None

    error_type = (
        "validation_error"
        if isinstance(exc, exceptions.ValidationError)
        else "client_error"
        if response.status_code < 500
        else "server_error"
    )
    response.data = {
        "type": error_type,
        "errors": list(_flatten(response.data)),
    }
    return response


def _flatten(detail: Any, attr: Optional[str] = None) -> Iterator[Dict[str, Any]]:
    if isinstance(detail, dict):
        for key, value in detail.items():
            if key == "detail" and attr is None:
                yield from _flatten(value, None)
                continue
            child = key if attr is None else f"{attr}.{key}"
            if key == "non_field_errors":
                child = attr
            yield from _flatten(value, child)
    elif isinstance(detail, list):
        for item in detail:
            yield from _flatten(item, attr)
    else:
        yield {
            "code": getattr(detail, "code", "error"),
            "detail": str(detail),
            "attr": attr,
        }


def _jsonable(extra: Dict[str, Any]) -> Dict[str, Any]:
    return {key: str(value) if value is not None else None for key, value in extra.items()}

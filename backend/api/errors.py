"""Gestion standardisée des erreurs API avec enveloppes d'erreur.

Ce module traduit les erreurs du domaine (NotFound, InvalidInput, UpstreamFailure,
StorageFailure) en réponses HTTP avec une enveloppe commune `{code, message, trace_id, details}`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from backend.core.http_constants import (
    HTTP_BAD_GATEWAY,
    HTTP_BAD_REQUEST,
    HTTP_INTERNAL_SERVER_ERROR,
    HTTP_METHOD_NOT_ALLOWED,
    HTTP_NOT_FOUND,
    HTTP_UNPROCESSABLE,
)
from backend.domain.errors import (
    GenerationError,
    InvalidInput,
    NotFound,
    StorageFailure,
    UpstreamFailure,
)

log = logging.getLogger(__name__)


@dataclass
class ErrorEnvelope:
    """Enveloppe d'erreur commune des réponses API."""

    code: str
    message: str
    trace_id: str | None = None
    details: dict[str, Any] | None = None


class ErrorCodes:
    """Codes d'erreur exposés par l'API."""

    BAD_REQUEST = "BAD_REQUEST"
    NOT_FOUND = "NOT_FOUND"
    METHOD_NOT_ALLOWED = "METHOD_NOT_ALLOWED"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"
    UPSTREAM_FAILURE = "UPSTREAM_FAILURE"
    STORAGE_FAILURE = "STORAGE_FAILURE"


# Erreur du domaine -> (statut HTTP, code)
DOMAIN_STATUS: dict[type[GenerationError], tuple[int, str]] = {
    NotFound: (HTTP_NOT_FOUND, ErrorCodes.NOT_FOUND),
    InvalidInput: (HTTP_BAD_REQUEST, ErrorCodes.BAD_REQUEST),
    UpstreamFailure: (HTTP_BAD_GATEWAY, ErrorCodes.UPSTREAM_FAILURE),
    StorageFailure: (HTTP_INTERNAL_SERVER_ERROR, ErrorCodes.STORAGE_FAILURE),
}

HTTP_CODES = {
    HTTP_BAD_REQUEST: ErrorCodes.BAD_REQUEST,
    HTTP_NOT_FOUND: ErrorCodes.NOT_FOUND,
    HTTP_METHOD_NOT_ALLOWED: ErrorCodes.METHOD_NOT_ALLOWED,
    HTTP_UNPROCESSABLE: ErrorCodes.VALIDATION_ERROR,
}


def create_error_response(
    status_code: int,
    code: str,
    message: str,
    trace_id: str | None = None,
    details: dict[str, Any] | None = None,
) -> JSONResponse:
    """Construit la réponse JSON d'erreur."""
    envelope = ErrorEnvelope(code=code, message=message, trace_id=trace_id, details=details)
    return JSONResponse(
        status_code=status_code,
        content={
            "code": envelope.code,
            "message": envelope.message,
            "trace_id": envelope.trace_id,
            **({"details": envelope.details} if envelope.details else {}),
        },
    )


def extract_trace_id(request: Request) -> str | None:
    """Identifiant de trace: en-tête `X-Request-ID`, sinon celui posé par le middleware."""
    trace_id = request.headers.get("X-Request-ID")
    if trace_id:
        return trace_id
    return getattr(request.state, "request_id", None)


def status_for(exc: GenerationError) -> tuple[int, str]:
    """Statut HTTP et code d'une erreur du domaine (sous-classes incluses)."""
    for kind, mapping in DOMAIN_STATUS.items():
        if isinstance(exc, kind):
            return mapping
    return HTTP_INTERNAL_SERVER_ERROR, ErrorCodes.INTERNAL_ERROR


def handle_generation_error(request: Request, exc: GenerationError) -> JSONResponse:
    """Erreur du domaine -> statut HTTP correspondant (4xx journalisé en warning)."""
    trace_id = extract_trace_id(request)
    status_code, code = status_for(exc)
    log.log(
        logging.WARNING if status_code < HTTP_INTERNAL_SERVER_ERROR else logging.ERROR,
        "Generation error",
        extra={
            "code": code,
            "error_message": exc.message,
            "status_code": status_code,
            "trace_id": trace_id,
            "path": request.url.path,
        },
    )
    return create_error_response(status_code, code, exc.message, trace_id, exc.details)


def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Corps de requête invalide (422) avec la liste des champs en erreur."""
    trace_id = extract_trace_id(request)
    errors = [
        {"loc": list(e.get("loc", ())), "msg": e.get("msg", ""), "type": e.get("type", "")}
        for e in exc.errors()
    ]
    log.warning(
        "Request validation failed",
        extra={"trace_id": trace_id, "path": request.url.path, "errors": len(errors)},
    )
    return create_error_response(
        HTTP_UNPROCESSABLE,
        ErrorCodes.VALIDATION_ERROR,
        "invalid request body",
        trace_id,
        {"errors": errors},
    )


def handle_http_exception(request: Request, exc: HTTPException) -> JSONResponse:
    """HTTPException (routes inconnues, méthodes refusées) avec l'enveloppe commune."""
    trace_id = extract_trace_id(request)
    code = HTTP_CODES.get(exc.status_code, "HTTP_ERROR")
    log.warning(
        "HTTP exception",
        extra={"code": code, "status_code": exc.status_code, "trace_id": trace_id},
    )
    return create_error_response(exc.status_code, code, str(exc.detail), trace_id)


def handle_generic_exception(request: Request, exc: Exception) -> JSONResponse:
    """Erreur inattendue: 500 sans détail interne dans la réponse."""
    trace_id = extract_trace_id(request)
    log.error(
        "Unexpected error",
        extra={
            "code": ErrorCodes.INTERNAL_ERROR,
            "trace_id": trace_id,
            "exception_type": type(exc).__name__,
        },
        exc_info=True,
    )
    return create_error_response(
        HTTP_INTERNAL_SERVER_ERROR,
        ErrorCodes.INTERNAL_ERROR,
        "An unexpected error occurred",
        trace_id,
    )


def register_error_handlers(app: FastAPI) -> None:
    """Branche les gestionnaires d'erreurs sur l'application."""
    app.add_exception_handler(GenerationError, handle_generation_error)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_exception_handler(HTTPException, handle_http_exception)
    app.add_exception_handler(Exception, handle_generic_exception)

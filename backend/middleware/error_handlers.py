#!/usr/bin/env python3
"""
Error Handlers for the Feed Formulation Records service
Turns domain errors and request validation errors into structured responses
"""

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from core.formulation.exceptions import FormulationError, ValidationFailed
from core.formulation.validation import field_errors_from_pydantic
from middleware.logging_config import get_logger

logger = get_logger("error_handlers")


def create_error_response(error: FormulationError) -> JSONResponse:
    """
    Build the caller-facing failure payload

    Shape: ``{"success": false, "error": kind, "message": ..., "detail"?: ...,
    "validation_errors"?: {field: [messages]}}``
    """
    return JSONResponse(status_code=error.http_status, content=error.to_dict())


async def formulation_error_handler(request: Request, exc: FormulationError) -> JSONResponse:
    if exc.http_status >= status.HTTP_500_INTERNAL_SERVER_ERROR:
        logger.error(f"{exc.kind} on {request.method} {request.url.path}: {exc.message}")
    else:
        logger.warning(
            f"{exc.kind} on {request.method} {request.url.path}: {exc.message}"
            f"{' | ' + exc.detail if exc.detail else ''}"
        )
    return create_error_response(exc)


async def request_validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    field_errors = field_errors_from_pydantic(exc.errors())
    logger.warning(f"Validation error on {request.method} {request.url.path}: {field_errors}")
    return create_error_response(ValidationFailed(field_errors))


def register_exception_handlers(app: FastAPI):
    """Attach the structured error handlers to ``app``"""
    app.add_exception_handler(FormulationError, formulation_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)

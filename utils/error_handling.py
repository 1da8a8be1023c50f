"""
Error handling utilities for the route API.
Every error leaves the service as JSON with a plain `error` message, a machine
readable `code` and the request id, so the browser client can show `body.error`.
"""

import logging
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class ErrorCode:
    """Error codes returned by the route API."""

    # 400
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_COORDINATES = "INVALID_COORDINATES"
    INVALID_TIME_FORMAT = "INVALID_TIME_FORMAT"
    MISSING_PARAMETER = "MISSING_PARAMETER"
    INVALID_SEARCH_QUERY = "INVALID_SEARCH_QUERY"

    # 404
    NO_RESULTS_FOUND = "NO_RESULTS_FOUND"

    # 500
    SYSTEM_ERROR = "SYSTEM_ERROR"
    EXTERNAL_SERVICE_ERROR = "EXTERNAL_SERVICE_ERROR"


STATUS_BY_CODE = {
    ErrorCode.VALIDATION_ERROR: 400,
    ErrorCode.INVALID_COORDINATES: 400,
    ErrorCode.INVALID_TIME_FORMAT: 400,
    ErrorCode.MISSING_PARAMETER: 400,
    ErrorCode.INVALID_SEARCH_QUERY: 400,
    ErrorCode.NO_RESULTS_FOUND: 404,
    ErrorCode.SYSTEM_ERROR: 500,
    ErrorCode.EXTERNAL_SERVICE_ERROR: 500,
}


class ErrorDetail:
    """One offending field, or extra context for a server-side failure."""

    def __init__(
        self,
        field: Optional[str] = None,
        value: Any = None,
        constraint: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None
    ):
        self.field = field
        self.value = value
        self.constraint = constraint
        self.extra = extra or {}

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        if self.field:
            out["field"] = self.field
        if self.value is not None:
            out["value"] = str(self.value)
        if self.constraint:
            out["constraint"] = self.constraint
        out.update(self.extra)
        return out


DetailsType = Union[ErrorDetail, List[ErrorDetail], None]


class StandardizedError:
    """An error body ready to be serialized, with its HTTP status derived from the code."""

    def __init__(self, code: str, message: str, details: DetailsType = None, request_id: Optional[str] = None):
        self.code = code
        self.message = message
        self.details = details
        self.request_id = request_id or str(uuid.uuid4())
        self.timestamp = datetime.now().isoformat()

    @property
    def status_code(self) -> int:
        return STATUS_BY_CODE.get(self.code, 500)

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "error": self.message,
            "code": self.code,
            "request_id": self.request_id,
            "timestamp": self.timestamp,
        }
        if isinstance(self.details, list):
            body["details"] = [d.to_dict() for d in self.details]
        elif self.details is not None:
            body["details"] = self.details.to_dict()
        return body

    def to_http_exception(self) -> HTTPException:
        return HTTPException(status_code=self.status_code, detail=self.to_dict())


def missing_parameter_error(fields: List[str]) -> StandardizedError:
    """Error for absent query parameters, worded "origin and destination required"."""
    return StandardizedError(
        code=ErrorCode.MISSING_PARAMETER,
        message=f"{' and '.join(fields)} required",
        details=[ErrorDetail(field=f, constraint="required") for f in fields],
    )


def request_validation_error(exc: RequestValidationError, request_id: Optional[str] = None) -> StandardizedError:
    """Fold FastAPI's request validation errors into a single 400 body."""
    details = []
    for err in exc.errors():
        location = ".".join(str(part) for part in err["loc"])
        details.append(ErrorDetail(field=location, value=err.get("input"), constraint=err["msg"]))

    if len(details) == 1:
        message = f"{details[0].field}: {details[0].constraint}"
    else:
        message = f"{len(details)} invalid request parameters"

    return StandardizedError(ErrorCode.VALIDATION_ERROR, message, details, request_id)


class ErrorHandler:
    """
    Raises HTTPExceptions carrying a standardized body.

    Handlers call these instead of building HTTPExceptions themselves; every
    method raises and never returns.
    """

    def __init__(self, include_debug_info: bool = False):
        self.include_debug_info = include_debug_info

    def handle_validation_error(self, field: str, value: Any, message: str, code: str = ErrorCode.VALIDATION_ERROR):
        error = StandardizedError(code, message, ErrorDetail(field=field, value=value, constraint=message))
        raise error.to_http_exception()

    def handle_missing_parameters(self, fields: List[str]):
        raise missing_parameter_error(fields).to_http_exception()

    def handle_not_found(self, resource_type: str, query: str):
        error = StandardizedError(
            ErrorCode.NO_RESULTS_FOUND,
            f"No {resource_type} found for '{query}'",
            ErrorDetail(field=resource_type, value=query),
        )
        raise error.to_http_exception()

    def handle_upstream_error(self, service: str, original_error: Exception):
        """The upstream message is safe to show; it never carries the API key."""
        logger.error("Upstream error in %s: %s", service, original_error, exc_info=True)
        error = StandardizedError(
            ErrorCode.EXTERNAL_SERVICE_ERROR,
            str(original_error) or "internal error",
            ErrorDetail(extra={"service": service}),
        )
        raise error.to_http_exception()

    def handle_system_error(self, component: str, original_error: Exception):
        logger.error("System error in %s: %s", component, original_error, exc_info=True)
        detail = ErrorDetail(extra={"component": component})
        if self.include_debug_info:
            detail.extra["debug_info"] = str(original_error)
        error = StandardizedError(ErrorCode.SYSTEM_ERROR, f"System error in {component} component", detail)
        raise error.to_http_exception()


error_handler = ErrorHandler()


def get_request_id(request: Request) -> str:
    return request.headers.get("X-Request-ID") or str(uuid.uuid4())


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Stamp the request id on standardized bodies; wrap anything else (404 routes, 405) in one."""
    request_id = get_request_id(request)
    headers = dict(exc.headers or {})
    headers["X-Request-ID"] = request_id

    if isinstance(exc.detail, dict) and "error" in exc.detail:
        content = {**exc.detail, "request_id": request_id}
    else:
        code = ErrorCode.SYSTEM_ERROR if exc.status_code >= 500 else ErrorCode.VALIDATION_ERROR
        content = StandardizedError(code, str(exc.detail), request_id=request_id).to_dict()

    return JSONResponse(status_code=exc.status_code, content=content, headers=headers)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Request validation failures are reported as 400, not FastAPI's default 422."""
    request_id = get_request_id(request)
    error = request_validation_error(exc, request_id)
    return JSONResponse(status_code=400, content=error.to_dict(), headers={"X-Request-ID": request_id})


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    request_id = get_request_id(request)
    logger.error("Unhandled exception for request %s: %s", request_id, exc, exc_info=True)

    # Never expose internals here
    error = StandardizedError(
        ErrorCode.SYSTEM_ERROR,
        "internal error",
        ErrorDetail(extra={"component": "global_handler"}),
        request_id,
    )
    return JSONResponse(status_code=500, content=error.to_dict(), headers={"X-Request-ID": request_id})


def register_exception_handlers(app) -> None:
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, global_exception_handler)

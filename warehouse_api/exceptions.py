"""
RFC 7807 Problem Details exception handling.

Every inventory failure is a typed exception carrying a stable error code and
structured context (attempted amount, available quantity, ids). The API layer
renders them as "Problem Details for HTTP APIs" responses; translating codes
into human-readable messages is left to the client.

See: https://datatracker.ietf.org/doc/html/rfc7807
"""

from decimal import Decimal
from typing import Optional, Dict, Any, List
from enum import Enum
from pydantic import BaseModel, Field
from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
import logging
import traceback
import uuid
from datetime import datetime, timezone

from warehouse_api.middleware.correlation import get_request_id

logger = logging.getLogger(__name__)

PROBLEM_TYPE_BASE = "https://warehouse.local/problems"


def _get_trace_id() -> str:
    """Get trace ID from correlation context or generate a new one."""
    request_id = get_request_id()
    if request_id and request_id != "unknown":
        return request_id
    return str(uuid.uuid4())[:12]


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def _jsonable(value: Any) -> Any:
    """Context values are emitted as JSON; decimals keep their exact digits."""
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


class ErrorCode(str, Enum):
    """Stable error codes for the warehouse API."""

    # Authentication
    UNAUTHORIZED = "AUTH_001"

    # Validation
    VALIDATION_ERROR = "VAL_001"
    INVALID_CURSOR = "VAL_002"

    # Inventory rules
    INVALID_AMOUNT = "INV_001"
    INSUFFICIENT_STOCK = "INV_002"
    UNKNOWN_TRANSACTION_TYPE = "INV_003"
    UNIT_MISMATCH = "INV_004"
    SAME_LOCATION_TRANSFER = "INV_005"

    # Resource
    NOT_FOUND = "RES_001"
    ALREADY_EXISTS = "RES_002"
    CONCURRENT_MODIFICATION = "RES_003"
    TARGET_NOT_FOUND = "RES_005"

    # Storage
    DATABASE_ERROR = "EXT_004"

    # Server
    INTERNAL_ERROR = "SRV_001"


class ProblemDetail(BaseModel):
    """
    RFC 7807 Problem Details response schema.

    Attributes:
        type: URI reference identifying the problem type
        title: Short, human-readable summary
        status: HTTP status code
        detail: Short explanation specific to this occurrence
        instance: URI reference identifying this specific occurrence
        code: Machine-readable error code for client handling
        context: Structured data about the failure (amounts, ids)
        timestamp: ISO 8601 timestamp of when the error occurred
        trace_id: Request identifier for correlating with logs
        errors: List of field-level validation errors (for 422)
    """

    type: str = Field(default="about:blank")
    title: str
    status: int
    detail: str
    instance: Optional[str] = None
    code: str
    context: Optional[Dict[str, Any]] = None
    timestamp: str
    trace_id: str
    errors: Optional[List[Dict[str, Any]]] = None

    model_config = {
        "json_schema_extra": {
            "example": {
                "type": f"{PROBLEM_TYPE_BASE}/inv-002",
                "title": "Conflict",
                "status": 409,
                "detail": "Insufficient stock",
                "instance": "/api/v2/inventory/transactions",
                "code": "INV_002",
                "context": {"inventory_id": 7, "requested": "70", "available": "60"},
                "timestamp": "2026-01-29T10:30:00Z",
                "trace_id": "abc123def456",
            }
        }
    }


class WarehouseException(HTTPException):
    """
    Base exception for the warehouse API with RFC 7807 support.

    Usage:
        raise WarehouseException(
            status_code=404,
            code=ErrorCode.NOT_FOUND,
            detail="Inventory record not found",
            context={"inventory_id": 123},
        )
    """

    def __init__(
        self,
        status_code: int,
        code: ErrorCode,
        detail: str,
        title: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        instance: Optional[str] = None,
        errors: Optional[List[Dict[str, Any]]] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        self.code = code
        self.title = title or self._default_title(status_code)
        self.context = context or {}
        self.instance = instance
        self.errors = errors
        self.trace_id = _get_trace_id()
        self.timestamp = _utc_timestamp()

        super().__init__(status_code=status_code, detail=detail, headers=headers)

    def __str__(self) -> str:
        return f"{self.code.value}: {self.detail}"

    @staticmethod
    def _default_title(status_code: int) -> str:
        """Get default title based on status code."""
        titles = {
            400: "Bad Request",
            401: "Unauthorized",
            403: "Forbidden",
            404: "Not Found",
            409: "Conflict",
            422: "Validation Error",
            500: "Internal Server Error",
            503: "Service Unavailable",
        }
        return titles.get(status_code, "Error")

    def to_problem_detail(self, instance: Optional[str] = None) -> ProblemDetail:
        """Convert to RFC 7807 ProblemDetail."""
        return ProblemDetail(
            type=f"{PROBLEM_TYPE_BASE}/{self.code.value.lower().replace('_', '-')}",
            title=self.title,
            status=self.status_code,
            detail=self.detail,
            instance=self.instance or instance,
            code=self.code.value,
            context=_jsonable(self.context) or None,
            timestamp=self.timestamp,
            trace_id=self.trace_id,
            errors=self.errors,
        )


# Inventory business and validation errors

class InvalidAmount(WarehouseException):
    """Amount is non-positive where positive is required, negative, or malformed."""

    def __init__(self, amount: Any, reason: str):
        super().__init__(
            status_code=422,
            code=ErrorCode.INVALID_AMOUNT,
            detail="Invalid amount",
            context={"amount": amount, "reason": reason},
        )


class InsufficientStock(WarehouseException):
    """Removal would take the quantity below zero."""

    def __init__(self, requested: Decimal, available: Decimal, inventory_id: Optional[int] = None):
        context = {"requested": requested, "available": available}
        if inventory_id is not None:
            context["inventory_id"] = inventory_id
        super().__init__(
            status_code=409,
            code=ErrorCode.INSUFFICIENT_STOCK,
            detail="Insufficient stock",
            context=context,
        )


class UnknownTransactionType(WarehouseException):
    def __init__(self, transaction_type: Any):
        super().__init__(
            status_code=422,
            code=ErrorCode.UNKNOWN_TRANSACTION_TYPE,
            detail="Unknown transaction type",
            context={"transaction_type": str(transaction_type)},
        )


class UnitMismatch(WarehouseException):
    """No unit conversion is performed; units must match exactly."""

    def __init__(self, expected: str, actual: str, inventory_id: Optional[int] = None):
        context = {"expected": expected, "actual": actual}
        if inventory_id is not None:
            context["inventory_id"] = inventory_id
        super().__init__(
            status_code=422,
            code=ErrorCode.UNIT_MISMATCH,
            detail="Unit mismatch",
            context=context,
        )


class SameLocationTransfer(WarehouseException):
    def __init__(self, inventory_id: int, shelf_id: int):
        super().__init__(
            status_code=422,
            code=ErrorCode.SAME_LOCATION_TRANSFER,
            detail="Transfer target is the source shelf",
            context={"inventory_id": inventory_id, "shelf_id": shelf_id},
        )


class InvalidCursor(WarehouseException):
    def __init__(self, cursor: str):
        super().__init__(
            status_code=422,
            code=ErrorCode.INVALID_CURSOR,
            detail="Invalid pagination cursor",
            context={"cursor": cursor},
        )


class RecordNotFound(WarehouseException):
    """Resource not found (404)."""

    def __init__(self, resource: str, resource_id: Any):
        super().__init__(
            status_code=404,
            code=ErrorCode.NOT_FOUND,
            detail=f"{resource} not found",
            context={"resource": resource, "id": resource_id},
        )


class TargetNotFound(WarehouseException):
    """Transfer destination shelf does not exist."""

    def __init__(self, shelf_id: int):
        super().__init__(
            status_code=404,
            code=ErrorCode.TARGET_NOT_FOUND,
            detail="Target shelf not found",
            context={"shelf_id": shelf_id},
        )


class RecordAlreadyExists(WarehouseException):
    """An initial placement hit a location that already holds the batch."""

    def __init__(self, inventory_id: int, product_id: int, shelf_id: int, batch_number: Optional[str]):
        super().__init__(
            status_code=409,
            code=ErrorCode.ALREADY_EXISTS,
            detail="Inventory record already exists",
            context={
                "inventory_id": inventory_id,
                "product_id": product_id,
                "shelf_id": shelf_id,
                "batch_number": batch_number,
            },
        )


class ConcurrentModification(WarehouseException):
    """Another writer changed the record first; the caller may retry from a fresh read."""

    def __init__(self, context: Optional[Dict[str, Any]] = None):
        super().__init__(
            status_code=409,
            code=ErrorCode.CONCURRENT_MODIFICATION,
            detail="Concurrent modification",
            context=context,
        )


class Unauthenticated(WarehouseException):
    """Authentication required (401)."""

    def __init__(self, detail: str = "Authentication required"):
        super().__init__(
            status_code=401,
            code=ErrorCode.UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


class PersistenceFailure(WarehouseException):
    """Storage failed; the unit of work was rolled back."""

    def __init__(self, operation: str, error: Exception):
        super().__init__(
            status_code=503,
            code=ErrorCode.DATABASE_ERROR,
            detail="Storage failure",
            context={"operation": operation, "error": type(error).__name__},
        )


# Exception handlers for FastAPI

def create_problem_response(
    status_code: int,
    code: ErrorCode,
    detail: str,
    request: Request,
    errors: Optional[List[Dict[str, Any]]] = None,
    trace_id: Optional[str] = None,
    allowed_origins: Optional[List[str]] = None,
) -> JSONResponse:
    """Create a RFC 7807 compliant JSON response with CORS headers."""
    problem = ProblemDetail(
        type=f"{PROBLEM_TYPE_BASE}/{code.value.lower().replace('_', '-')}",
        title=WarehouseException._default_title(status_code),
        status=status_code,
        detail=detail,
        instance=str(request.url.path),
        code=code.value,
        timestamp=_utc_timestamp(),
        trace_id=trace_id or _get_trace_id(),
        errors=errors,
    )

    response = JSONResponse(
        status_code=status_code,
        content=problem.model_dump(exclude_none=True),
        media_type="application/problem+json",
    )
    _add_cors_headers(response, request, allowed_origins)
    return response


def _add_cors_headers(response: JSONResponse, request: Request, allowed_origins: Optional[List[str]]) -> None:
    if allowed_origins:
        origin = request.headers.get("origin", "")
        if origin in allowed_origins:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Access-Control-Allow-Credentials"] = "true"
            response.headers["Vary"] = "Origin"


async def warehouse_exception_handler(
    request: Request,
    exc: WarehouseException,
    allowed_origins: Optional[List[str]] = None,
) -> JSONResponse:
    """Handle WarehouseException with RFC 7807 response."""
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        f"WarehouseException: {exc.code.value} - {exc.detail}",
        extra={
            "trace_id": exc.trace_id,
            "status_code": exc.status_code,
            "path": request.url.path,
        },
    )

    response = JSONResponse(
        status_code=exc.status_code,
        content=exc.to_problem_detail(instance=str(request.url.path)).model_dump(exclude_none=True),
        media_type="application/problem+json",
        headers=exc.headers,
    )
    _add_cors_headers(response, request, allowed_origins)
    return response


def create_exception_handlers(allowed_origins: List[str]):
    """
    Create exception handlers with configured allowed origins for CORS.

    Usage in main.py:
        handlers = create_exception_handlers(allowed_origins)
        app.add_exception_handler(WarehouseException, handlers["warehouse"])
        app.add_exception_handler(RequestValidationError, handlers["validation"])
        app.add_exception_handler(Exception, handlers["generic"])
    """

    async def handle_warehouse_exception(request: Request, exc: WarehouseException) -> JSONResponse:
        return await warehouse_exception_handler(request, exc, allowed_origins)

    async def handle_http_exception(
        request: Request,
        exc: StarletteHTTPException
    ) -> JSONResponse:
        """Handle standard HTTPException with RFC 7807 response."""
        code_map = {
            400: ErrorCode.VALIDATION_ERROR,
            401: ErrorCode.UNAUTHORIZED,
            404: ErrorCode.NOT_FOUND,
            409: ErrorCode.CONCURRENT_MODIFICATION,
            422: ErrorCode.VALIDATION_ERROR,
            500: ErrorCode.INTERNAL_ERROR,
            503: ErrorCode.DATABASE_ERROR,
        }

        code = code_map.get(exc.status_code, ErrorCode.INTERNAL_ERROR)

        return create_problem_response(
            status_code=exc.status_code,
            code=code,
            detail=str(exc.detail),
            request=request,
            allowed_origins=allowed_origins,
        )

    async def handle_validation_exception(
        request: Request,
        exc: RequestValidationError
    ) -> JSONResponse:
        """Handle Pydantic validation errors with field-level details."""
        errors = []
        for error in exc.errors():
            errors.append({
                "field": ".".join(str(loc) for loc in error["loc"]),
                "message": error["msg"],
                "type": error["type"],
            })

        return create_problem_response(
            status_code=422,
            code=ErrorCode.VALIDATION_ERROR,
            detail="Request validation failed",
            request=request,
            errors=errors,
            allowed_origins=allowed_origins,
        )

    async def handle_generic_exception(
        request: Request,
        exc: Exception
    ) -> JSONResponse:
        """Handle unexpected exceptions with RFC 7807 response."""
        trace_id = _get_trace_id()

        logger.error(
            f"Unhandled exception: {exc}",
            extra={"trace_id": trace_id, "path": request.url.path},
        )
        logger.error(traceback.format_exc())

        # Don't expose internal details in production
        from warehouse_api.config import settings
        detail = str(exc) if settings.DEBUG else "An unexpected error occurred"

        return create_problem_response(
            status_code=500,
            code=ErrorCode.INTERNAL_ERROR,
            detail=detail,
            request=request,
            trace_id=trace_id,
            allowed_origins=allowed_origins,
        )

    return {
        "warehouse": handle_warehouse_exception,
        "http": handle_http_exception,
        "validation": handle_validation_exception,
        "generic": handle_generic_exception,
    }

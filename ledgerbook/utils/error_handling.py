"""
Error Handling Module for Ledgerbook

This module provides centralized error handling with:
- Custom exception hierarchy (input errors vs. storage errors)
- Chart-of-accounts import errors
- Standardized error responses
- Error logging for the HTTP surface
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Union
from uuid import UUID
import logging

from fastapi import FastAPI, Request, HTTPException, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import (
    SQLAlchemyError,
    IntegrityError,
    OperationalError,
    DataError,
)
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger("ledgerbook.errors")


class ErrorCode(str, Enum):
    """Standardized error codes for the application"""

    # Validation Errors (4xx)
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_INPUT = "INVALID_INPUT"
    UNBALANCED_TRANSACTION = "UNBALANCED_TRANSACTION"
    PLACEHOLDER_POSTING = "PLACEHOLDER_POSTING"

    # Chart of accounts import
    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"
    DECODE_FAILED = "DECODE_FAILED"
    DUPLICATE_CODE = "DUPLICATE_CODE"
    MISSING_PARENT = "MISSING_PARENT"
    CYCLIC_HIERARCHY = "CYCLIC_HIERARCHY"
    ROOT_CONFLICT = "ROOT_CONFLICT"

    # Resource Errors (404/409)
    NOT_FOUND = "NOT_FOUND"
    LEDGER_NOT_FOUND = "LEDGER_NOT_FOUND"
    ACCOUNT_NOT_FOUND = "ACCOUNT_NOT_FOUND"
    RESOURCE_CONFLICT = "RESOURCE_CONFLICT"
    LEDGER_IN_USE = "LEDGER_IN_USE"
    LEDGER_ARCHIVED = "LEDGER_ARCHIVED"

    # Storage Errors (500)
    STORAGE_ERROR = "STORAGE_ERROR"
    DATA_INTEGRITY_ERROR = "DATA_INTEGRITY_ERROR"
    CONNECTION_ERROR = "CONNECTION_ERROR"

    # Internal Errors (500)
    INTERNAL_ERROR = "INTERNAL_ERROR"


class AppException(Exception):
    """Base exception for all application exceptions"""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: Optional[Dict[str, Any]] = None,
        field: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.field = field
        self.original_error = original_error
        self.timestamp = datetime.now(timezone.utc)
        super().__init__(self.message)

    @property
    def is_input_error(self) -> bool:
        """True for caller-input failures, False for storage/internal ones."""
        return self.status_code < 500

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for JSON response"""
        result = {
            "code": self.code.value,
            "message": self.message,
            "timestamp": self.timestamp.isoformat(),
        }
        if self.field:
            result["field"] = self.field
        if self.details:
            result["details"] = self.details
        return result


# ============================================================================
# Validation Exceptions
# ============================================================================

class ValidationException(AppException):
    """Base validation exception"""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        code: ErrorCode = ErrorCode.VALIDATION_ERROR,
        status_code: int = status.HTTP_422_UNPROCESSABLE_ENTITY,
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=status_code,
            details=details,
            field=field,
        )


# ============================================================================
# Chart of Accounts Import Exceptions
# ============================================================================

class ChartImportError(ValidationException):
    """Base class for chart-of-accounts import failures"""


class ResourceNotFoundError(ChartImportError):
    """The chart source could not be located"""

    def __init__(self, resource: str):
        super().__init__(
            message=f"Chart of accounts resource '{resource}' was not found",
            code=ErrorCode.RESOURCE_NOT_FOUND,
            status_code=status.HTTP_404_NOT_FOUND,
            details={"resource": resource},
        )


class DecodeFailedError(ChartImportError):
    """The chart source is malformed or contains no rows"""

    def __init__(self, reason: str = "no rows", errors: Optional[List[Dict[str, Any]]] = None):
        details: Dict[str, Any] = {"reason": reason}
        if errors:
            details["errors"] = errors
        super().__init__(
            message=f"Chart of accounts could not be decoded: {reason}",
            code=ErrorCode.DECODE_FAILED,
            details=details,
        )


class DuplicateCodeError(ChartImportError):
    """Two rows share the same normalized account code"""

    def __init__(self, codes: List[str]):
        super().__init__(
            message=f"Duplicate account codes in chart: {', '.join(codes)}",
            field="code",
            code=ErrorCode.DUPLICATE_CODE,
            status_code=status.HTTP_409_CONFLICT,
            details={"codes": codes},
        )


class MissingParentError(ChartImportError):
    """A row references a parent code that does not resolve"""

    def __init__(self, code: str, parent_code: str):
        super().__init__(
            message=f"Account '{code}' references unknown parent '{parent_code}'",
            field="parentCode",
            code=ErrorCode.MISSING_PARENT,
            details={"code": code, "parent_code": parent_code},
        )


class CyclicHierarchyError(ChartImportError):
    """The resulting parent links would not form a tree"""

    def __init__(self, codes: List[str]):
        super().__init__(
            message=f"Account hierarchy contains a cycle through: {' -> '.join(codes)}",
            code=ErrorCode.CYCLIC_HIERARCHY,
            details={"codes": codes},
        )


class RootConflictError(ChartImportError):
    """The import would leave more than one account without a parent"""

    def __init__(self, root_code: str, parentless: List[str]):
        super().__init__(
            message=(
                f"Root account '{root_code}' would not be the only parentless account; "
                f"also parentless: {', '.join(parentless)}"
            ),
            code=ErrorCode.ROOT_CONFLICT,
            status_code=status.HTTP_409_CONFLICT,
            details={"root_code": root_code, "parentless": parentless},
        )


# ============================================================================
# Resource Exceptions
# ============================================================================

class NotFoundException(AppException):
    """Resource not found exception"""

    def __init__(
        self,
        resource_type: str,
        resource_id: Optional[Union[str, UUID]] = None,
        message: Optional[str] = None,
        code: ErrorCode = ErrorCode.NOT_FOUND,
    ):
        if message is None:
            if resource_id:
                message = f"{resource_type} with ID '{resource_id}' not found"
            else:
                message = f"{resource_type} not found"
        super().__init__(
            code=code,
            message=message,
            status_code=status.HTTP_404_NOT_FOUND,
            details={"resource_type": resource_type, "resource_id": str(resource_id) if resource_id else None},
        )


class LedgerNotFoundError(NotFoundException):
    """Ledger not found"""

    def __init__(self, ledger_id: Union[str, UUID]):
        super().__init__(
            resource_type="Ledger",
            resource_id=ledger_id,
            code=ErrorCode.LEDGER_NOT_FOUND,
        )


class AccountNotFoundError(NotFoundException):
    """Account not found"""

    def __init__(self, account_id: Union[str, UUID]):
        super().__init__(
            resource_type="Account",
            resource_id=account_id,
            code=ErrorCode.ACCOUNT_NOT_FOUND,
        )


class ConflictException(AppException):
    """Resource conflict exception"""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.RESOURCE_CONFLICT,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=status.HTTP_409_CONFLICT,
            details=details,
        )


class LedgerInUseError(ConflictException):
    """The ledger is the currently active one and cannot be deleted"""

    def __init__(self, ledger_id: Union[str, UUID]):
        super().__init__(
            message=f"Ledger '{ledger_id}' is currently active and cannot be deleted",
            code=ErrorCode.LEDGER_IN_USE,
            details={"ledger_id": str(ledger_id)},
        )


class LedgerArchivedError(ConflictException):
    """The ledger is archived and read-only"""

    def __init__(self, ledger_id: Union[str, UUID]):
        super().__init__(
            message=f"Ledger '{ledger_id}' is archived and read-only",
            code=ErrorCode.LEDGER_ARCHIVED,
            details={"ledger_id": str(ledger_id)},
        )


# ============================================================================
# Storage Exceptions
# ============================================================================

class StorageError(AppException):
    """Fetch or save failure in the persistence layer"""

    def __init__(
        self,
        message: str = "A storage error occurred",
        code: ErrorCode = ErrorCode.STORAGE_ERROR,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            original_error=original_error,
        )


# ============================================================================
# Exception Handlers
# ============================================================================

def create_error_response(
    code: ErrorCode,
    message: str,
    status_code: int,
    details: Optional[Dict[str, Any]] = None,
    field: Optional[str] = None,
) -> JSONResponse:
    """Create a standardized error response"""
    content = {
        "detail": {
            "code": code.value,
            "message": message,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
    }
    if field:
        content["detail"]["field"] = field
    if details:
        content["detail"]["details"] = details

    return JSONResponse(status_code=status_code, content=content)


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handle AppException"""
    log = logger.warning if exc.is_input_error else logger.error
    log(
        f"AppException: {exc.code.value} - {exc.message}",
        extra={
            "code": exc.code.value,
            "path": request.url.path,
            "method": request.method,
            "details": exc.details,
        },
        exc_info=exc.original_error,
    )

    return create_error_response(
        code=exc.code,
        message=exc.message,
        status_code=exc.status_code,
        details=exc.details,
        field=exc.field,
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle HTTPException"""
    code_map = {
        400: ErrorCode.INVALID_INPUT,
        404: ErrorCode.NOT_FOUND,
        409: ErrorCode.RESOURCE_CONFLICT,
        422: ErrorCode.VALIDATION_ERROR,
        500: ErrorCode.INTERNAL_ERROR,
    }

    error_code = code_map.get(exc.status_code, ErrorCode.INTERNAL_ERROR)
    message = exc.detail if isinstance(exc.detail, str) else str(exc.detail)

    logger.warning(
        f"HTTPException: {exc.status_code} - {message}",
        extra={"path": request.url.path, "method": request.method},
    )

    return create_error_response(
        code=error_code,
        message=message,
        status_code=exc.status_code,
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle Pydantic validation errors"""
    errors = []
    for error in exc.errors():
        field = ".".join(str(loc) for loc in error["loc"])
        errors.append({
            "field": field,
            "message": error["msg"],
            "type": error["type"],
        })

    logger.warning(
        f"ValidationError: {len(errors)} validation errors",
        extra={"path": request.url.path, "method": request.method, "errors": errors},
    )

    return create_error_response(
        code=ErrorCode.VALIDATION_ERROR,
        message="Request validation failed",
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        details={"errors": errors},
    )


async def sqlalchemy_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """Handle SQLAlchemy errors"""
    error_message = "A database error occurred"
    error_code = ErrorCode.STORAGE_ERROR
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    if isinstance(exc, IntegrityError):
        error_message = "Data integrity constraint violated"
        error_code = ErrorCode.DATA_INTEGRITY_ERROR
        error_str = str(exc.orig).lower() if exc.orig else ""
        if "unique" in error_str or "duplicate" in error_str:
            error_message = "A record with this value already exists"
            error_code = ErrorCode.RESOURCE_CONFLICT
            status_code = status.HTTP_409_CONFLICT
    elif isinstance(exc, OperationalError):
        error_message = "Database operation failed"
        error_code = ErrorCode.CONNECTION_ERROR
    elif isinstance(exc, DataError):
        error_message = "Invalid data format for database"
        status_code = status.HTTP_422_UNPROCESSABLE_ENTITY

    logger.error(
        f"SQLAlchemyError: {type(exc).__name__} - {str(exc)}",
        extra={"path": request.url.path, "method": request.method},
        exc_info=True,
    )

    return create_error_response(
        code=error_code,
        message=error_message,
        status_code=status_code,
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unhandled exceptions"""
    logger.critical(
        f"UnhandledException: {type(exc).__name__} - {str(exc)}",
        extra={"path": request.url.path, "method": request.method},
        exc_info=True,
    )

    return create_error_response(
        code=ErrorCode.INTERNAL_ERROR,
        message="An unexpected error occurred. Please try again later.",
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI application"""
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(SQLAlchemyError, sqlalchemy_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

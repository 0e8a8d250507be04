"""
Error Handling Module for LedgerCore

This module provides centralized error handling with:
- Custom exception hierarchy
- Ledger and statement specific errors
- Standardized error responses
- Database error handling
"""

from datetime import date, datetime, timezone
from decimal import Decimal
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

logger = logging.getLogger("ledgercore.errors")


class ErrorCode(str, Enum):
    """Standardized error codes for the application"""

    # Validation Errors
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_INPUT = "INVALID_INPUT"
    INVALID_DATE_RANGE = "INVALID_DATE_RANGE"
    INVALID_FISCAL_YEAR = "INVALID_FISCAL_YEAR"
    DATE_OUT_OF_RANGE = "DATE_OUT_OF_RANGE"
    INSUFFICIENT_LINES = "INSUFFICIENT_LINES"
    UNBALANCED_ENTRY = "UNBALANCED_ENTRY"
    ACCOUNT_IS_GROUP = "ACCOUNT_IS_GROUP"

    # Resource Errors
    NOT_FOUND = "NOT_FOUND"
    COMPANY_NOT_FOUND = "COMPANY_NOT_FOUND"
    ACCOUNT_NOT_FOUND = "ACCOUNT_NOT_FOUND"
    FISCAL_YEAR_NOT_FOUND = "FISCAL_YEAR_NOT_FOUND"
    ENTRY_NOT_FOUND = "ENTRY_NOT_FOUND"
    STATEMENT_RUN_NOT_FOUND = "STATEMENT_RUN_NOT_FOUND"
    RESOURCE_CONFLICT = "RESOURCE_CONFLICT"
    DUPLICATE_ENTRY = "DUPLICATE_ENTRY"
    DUPLICATE_ACCOUNT_CODE = "DUPLICATE_ACCOUNT_CODE"
    DUPLICATE_SOURCE_POSTING = "DUPLICATE_SOURCE_POSTING"

    # Business Logic Errors
    BUSINESS_RULE_VIOLATION = "BUSINESS_RULE_VIOLATION"
    FISCAL_YEAR_LOCKED = "FISCAL_YEAR_LOCKED"
    ALREADY_POSTED = "ALREADY_POSTED"
    NOT_POSTED = "NOT_POSTED"
    ALREADY_REVERSED = "ALREADY_REVERSED"
    CANNOT_EDIT_POSTED = "CANNOT_EDIT_POSTED"
    HAS_CHILDREN = "HAS_CHILDREN"
    ACCOUNT_HAS_POSTINGS = "ACCOUNT_HAS_POSTINGS"
    SYSTEM_ACCOUNT_PROTECTED = "SYSTEM_ACCOUNT_PROTECTED"
    INCOMPLETE_STATEMENT_DATA = "INCOMPLETE_STATEMENT_DATA"
    ACCOUNT_HAS_OPENING_BALANCE = "ACCOUNT_HAS_OPENING_BALANCE"

    # Database Errors (500)
    DATABASE_ERROR = "DATABASE_ERROR"
    CONNECTION_ERROR = "CONNECTION_ERROR"
    DATA_INTEGRITY_ERROR = "DATA_INTEGRITY_ERROR"

    # Internal Errors (500)
    INTERNAL_ERROR = "INTERNAL_ERROR"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    MISSING_SYSTEM_ACCOUNT = "MISSING_SYSTEM_ACCOUNT"


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
# Base Families
# ============================================================================

class ValidationException(AppException):
    """Base validation exception"""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        code: ErrorCode = ErrorCode.VALIDATION_ERROR,
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details=details,
            field=field,
        )


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


class ConflictException(AppException):
    """Resource conflict exception"""

    def __init__(
        self,
        message: str,
        resource_type: Optional[str] = None,
        code: ErrorCode = ErrorCode.RESOURCE_CONFLICT,
        details: Optional[Dict[str, Any]] = None,
    ):
        _details = details or {}
        if resource_type:
            _details["resource_type"] = resource_type
        super().__init__(
            code=code,
            message=message,
            status_code=status.HTTP_409_CONFLICT,
            details=_details,
        )


class BusinessRuleException(AppException):
    """Business rule violation exception"""

    def __init__(
        self,
        message: str,
        rule: Optional[str] = None,
        code: ErrorCode = ErrorCode.BUSINESS_RULE_VIOLATION,
        details: Optional[Dict[str, Any]] = None,
    ):
        _details = details or {}
        if rule:
            _details["violated_rule"] = rule
        super().__init__(
            code=code,
            message=message,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details=_details,
        )


class ConfigurationException(AppException):
    """The company's setup cannot support the requested operation"""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.CONFIGURATION_ERROR,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            details=details,
        )


# ============================================================================
# Entry Validation Exceptions
# ============================================================================

class InvalidFiscalYearError(ValidationException):
    """Fiscal year missing or owned by another company"""

    def __init__(self, fiscal_year_id: Optional[Union[str, UUID]] = None):
        super().__init__(
            message="Invalid fiscal year",
            field="fiscal_year_id",
            code=ErrorCode.INVALID_FISCAL_YEAR,
            details={"fiscal_year_id": str(fiscal_year_id) if fiscal_year_id else None},
        )


class DateOutOfRangeError(ValidationException):
    """Entry date outside the fiscal year"""

    def __init__(self, entry_date: date, start_date: date, end_date: date):
        super().__init__(
            message=f"Entry date {entry_date} is outside the fiscal year ({start_date} to {end_date})",
            field="entry_date",
            code=ErrorCode.DATE_OUT_OF_RANGE,
            details={
                "entry_date": entry_date.isoformat(),
                "start_date": start_date.isoformat(),
                "end_date": end_date.isoformat(),
            },
        )


class InsufficientLinesError(ValidationException):
    """Fewer than two lines"""

    def __init__(self, line_count: int):
        super().__init__(
            message="A journal entry needs at least 2 lines",
            field="lines",
            code=ErrorCode.INSUFFICIENT_LINES,
            details={"line_count": line_count},
        )


class UnbalancedEntryError(ValidationException):
    """Debits and credits differ by more than the tolerance"""

    def __init__(self, total_debit: Decimal, total_credit: Decimal):
        super().__init__(
            message=f"Debits ({total_debit}) and credits ({total_credit}) must be equal",
            field="lines",
            code=ErrorCode.UNBALANCED_ENTRY,
            details={
                "total_debit": str(total_debit),
                "total_credit": str(total_credit),
                "difference": str(total_debit - total_credit),
            },
        )


class AccountIsGroupError(ValidationException):
    """Group accounts cannot receive postings"""

    def __init__(self, account_id: Union[str, UUID], account_code: Optional[str] = None):
        super().__init__(
            message=f"Account {account_code or account_id} is a group account and cannot receive postings",
            field="account_id",
            code=ErrorCode.ACCOUNT_IS_GROUP,
            details={"account_id": str(account_id), "account_code": account_code},
        )


# ============================================================================
# Resource Exceptions
# ============================================================================

class CompanyNotFoundError(NotFoundException):
    """Company not found"""

    def __init__(self, company_id: Union[str, UUID]):
        super().__init__(
            resource_type="Company",
            resource_id=company_id,
            code=ErrorCode.COMPANY_NOT_FOUND,
        )


class AccountNotFoundError(NotFoundException):
    """Account not found in the company's chart"""

    def __init__(self, account_id: Union[str, UUID]):
        super().__init__(
            resource_type="Account",
            resource_id=account_id,
            code=ErrorCode.ACCOUNT_NOT_FOUND,
        )


class FiscalYearNotFoundError(NotFoundException):
    """Fiscal year not found"""

    def __init__(self, fiscal_year_id: Optional[Union[str, UUID]] = None, message: Optional[str] = None):
        super().__init__(
            resource_type="Fiscal year",
            resource_id=fiscal_year_id,
            message=message,
            code=ErrorCode.FISCAL_YEAR_NOT_FOUND,
        )


class EntryNotFoundError(NotFoundException):
    """Journal entry not found"""

    def __init__(self, entry_id: Optional[Union[str, UUID]] = None, message: Optional[str] = None):
        super().__init__(
            resource_type="Journal entry",
            resource_id=entry_id,
            message=message,
            code=ErrorCode.ENTRY_NOT_FOUND,
        )


class DuplicateAccountCodeError(ConflictException):
    """Account code already used in this company"""

    def __init__(self, code: str):
        super().__init__(
            message=f"Account code '{code}' already exists",
            resource_type="Account",
            code=ErrorCode.DUPLICATE_ACCOUNT_CODE,
            details={"code": code},
        )


class DuplicateSourcePostingError(ConflictException):
    """A live entry already exists for the source document"""

    def __init__(self, source_type: str, source_id: Union[str, UUID], entry_number: str):
        super().__init__(
            message=f"{source_type} {source_id} is already posted as {entry_number}",
            resource_type="Journal entry",
            code=ErrorCode.DUPLICATE_SOURCE_POSTING,
            details={"source_type": source_type, "source_id": str(source_id), "entry_number": entry_number},
        )


# ============================================================================
# Ledger State Exceptions
# ============================================================================

class FiscalYearLockedError(BusinessRuleException):
    """Fiscal year is locked"""

    def __init__(self, fiscal_year_name: str):
        super().__init__(
            message=f"Fiscal year {fiscal_year_name} is locked",
            rule="FISCAL_YEAR_OPEN",
            code=ErrorCode.FISCAL_YEAR_LOCKED,
            details={"fiscal_year": fiscal_year_name},
        )


class AlreadyPostedError(BusinessRuleException):
    """Entry is already posted"""

    def __init__(self, entry_number: str):
        super().__init__(
            message=f"Entry {entry_number} is already posted",
            rule="DRAFT_REQUIRED",
            code=ErrorCode.ALREADY_POSTED,
            details={"entry_number": entry_number},
        )


class NotPostedError(BusinessRuleException):
    """Only posted entries can be reversed"""

    def __init__(self, entry_number: str):
        super().__init__(
            message=f"Entry {entry_number} is not posted; only posted entries can be reversed",
            rule="POSTED_REQUIRED",
            code=ErrorCode.NOT_POSTED,
            details={"entry_number": entry_number},
        )


class AlreadyReversedError(BusinessRuleException):
    """Entry has already been reversed"""

    def __init__(self, entry_number: str):
        super().__init__(
            message=f"Entry {entry_number} has already been reversed",
            rule="SINGLE_REVERSAL",
            code=ErrorCode.ALREADY_REVERSED,
            details={"entry_number": entry_number},
        )


class CannotEditPostedError(BusinessRuleException):
    """Posted entries are immutable"""

    def __init__(self, entry_number: str):
        super().__init__(
            message=f"Entry {entry_number} is posted and cannot be modified; reverse it instead",
            rule="POSTED_IMMUTABLE",
            code=ErrorCode.CANNOT_EDIT_POSTED,
            details={"entry_number": entry_number},
        )


class HasChildrenError(BusinessRuleException):
    """Account has child accounts"""

    def __init__(self, account_code: str, child_count: int):
        super().__init__(
            message=f"Account {account_code} has {child_count} child account(s) and cannot be deleted",
            rule="LEAF_DELETE_ONLY",
            code=ErrorCode.HAS_CHILDREN,
            details={"account_code": account_code, "child_count": child_count},
        )


class AccountHasPostingsError(BusinessRuleException):
    """Account is referenced by journal lines"""

    def __init__(self, account_code: str, message: Optional[str] = None):
        super().__init__(
            message=message or f"Account {account_code} has journal postings",
            rule="UNPOSTED_ACCOUNT_REQUIRED",
            code=ErrorCode.ACCOUNT_HAS_POSTINGS,
            details={"account_code": account_code},
        )


class AccountHasOpeningBalanceError(BusinessRuleException):
    """Group accounts carry no opening balance of their own"""

    def __init__(self, account_code: str, message: Optional[str] = None):
        super().__init__(
            message=message or f"Account {account_code} has an opening balance",
            rule="GROUP_WITHOUT_OPENING_BALANCE",
            code=ErrorCode.ACCOUNT_HAS_OPENING_BALANCE,
            details={"account_code": account_code},
        )


class SystemAccountProtectedError(BusinessRuleException):
    """System accounts cannot be deleted"""

    def __init__(self, account_code: str):
        super().__init__(
            message=f"Account {account_code} is a system account and cannot be deleted",
            rule="SYSTEM_ACCOUNT",
            code=ErrorCode.SYSTEM_ACCOUNT_PROTECTED,
            details={"account_code": account_code},
        )


class IncompleteStatementDataError(BusinessRuleException):
    """Strict statement generation found balances with no mapping"""

    def __init__(self, unmapped: List[Dict[str, Any]]):
        codes = ", ".join(item["code"] for item in unmapped)
        super().__init__(
            message=f"Accounts with balances have no statement mapping: {codes}",
            rule="COMPLETE_MAPPING",
            code=ErrorCode.INCOMPLETE_STATEMENT_DATA,
            details={"unmapped_accounts": unmapped},
        )


class MissingSystemAccountError(ConfigurationException):
    """Control account expected by an automatic posting is not in the chart"""

    def __init__(self, account_code: str, purpose: Optional[str] = None):
        message = f"System account {account_code} is not configured for this company"
        if purpose:
            message = f"{message} (needed for {purpose})"
        super().__init__(
            message=message,
            code=ErrorCode.MISSING_SYSTEM_ACCOUNT,
            details={"account_code": account_code, "purpose": purpose},
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
    logger.error(
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
    error_code = ErrorCode.DATABASE_ERROR
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    if isinstance(exc, IntegrityError):
        error_message = "Data integrity constraint violated"
        error_code = ErrorCode.DATA_INTEGRITY_ERROR
        error_str = str(exc.orig).lower() if exc.orig else ""
        if "unique" in error_str or "duplicate" in error_str:
            error_message = "A record with this value already exists"
            error_code = ErrorCode.DUPLICATE_ENTRY
            status_code = status.HTTP_409_CONFLICT
        elif "foreign key" in error_str:
            error_message = "Referenced record does not exist"
            status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
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


__all__ = [
    # Base
    "AppException",
    "ErrorCode",
    "ValidationException",
    "NotFoundException",
    "ConflictException",
    "BusinessRuleException",
    "ConfigurationException",

    # Entry validation
    "InvalidFiscalYearError",
    "DateOutOfRangeError",
    "InsufficientLinesError",
    "UnbalancedEntryError",
    "AccountIsGroupError",

    # Resource
    "CompanyNotFoundError",
    "AccountNotFoundError",
    "FiscalYearNotFoundError",
    "EntryNotFoundError",
    "DuplicateAccountCodeError",
    "DuplicateSourcePostingError",

    # Ledger state
    "FiscalYearLockedError",
    "AlreadyPostedError",
    "NotPostedError",
    "AlreadyReversedError",
    "CannotEditPostedError",
    "HasChildrenError",
    "AccountHasPostingsError",
    "SystemAccountProtectedError",
    "IncompleteStatementDataError",
    "MissingSystemAccountError",

    # Handlers
    "setup_exception_handlers",
    "create_error_response",
]

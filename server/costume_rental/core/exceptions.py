"""Custom exceptions following RFC 9457 Problem Details for HTTP APIs."""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse


logger = logging.getLogger(__name__)

PROBLEM_BASE_URI = "https://costume-rental.example/problems"


class ProblemDetailsException(HTTPException):
    """
    Base exception class following RFC 9457 Problem Details for HTTP APIs.

    https://tools.ietf.org/rfc/rfc9457.txt
    """

    def __init__(
        self,
        status_code: int,
        title: str,
        detail: Optional[str] = None,
        type_uri: Optional[str] = None,
        instance: Optional[str] = None,
        extensions: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        code: Optional[str] = None,
    ):
        """
        Initialize Problem Details exception.

        Args:
            status_code: HTTP status code
            title: Short, human-readable summary of the problem type
            detail: Human-readable explanation specific to this occurrence
            type_uri: URI reference that identifies the problem type
            instance: URI reference that identifies the specific occurrence
            extensions: Additional problem-specific information
            headers: HTTP headers to include in response
            code: Machine-readable error code for clients
        """
        self.status_code = status_code
        self.title = title
        self.detail = detail
        self.type_uri = type_uri or f"about:blank#{status_code}"
        self.instance = instance
        self.extensions = extensions or {}
        self.code = code

        self.problem_details = {
            "type": self.type_uri,
            "title": self.title,
            "status": self.status_code,
        }

        if self.detail:
            self.problem_details["detail"] = self.detail

        if self.instance:
            self.problem_details["instance"] = self.instance

        if self.code:
            self.problem_details["code"] = self.code

        self.problem_details.update(self.extensions)

        super().__init__(
            status_code=status_code,
            detail=self.problem_details,
            headers=headers
        )


class ValidationError(ProblemDetailsException):
    """Exception for request validation errors."""

    def __init__(
        self,
        detail: str = "The request data failed validation",
        violations: Optional[List[Dict[str, Any]]] = None,
        instance: Optional[str] = None,
    ):
        extensions = {}
        if violations:
            extensions["violations"] = violations

        super().__init__(
            status_code=400,
            title="Validation Error",
            detail=detail,
            type_uri=f"{PROBLEM_BASE_URI}/validation-error",
            instance=instance,
            extensions=extensions,
            code="VALIDATION_ERROR",
        )


class SeasonalViolationError(ProblemDetailsException):
    """The requested rental period breaks the rules of its season."""

    def __init__(
        self,
        detail: str,
        season: str,
        hours: Optional[float] = None,
        allowed_durations: Optional[List[str]] = None,
    ):
        extensions: Dict[str, Any] = {"season": season}
        if hours is not None:
            extensions["requested_hours"] = round(hours, 2)
        if allowed_durations:
            extensions["allowed_durations"] = allowed_durations

        super().__init__(
            status_code=400,
            title="Seasonal Rental Rule Violation",
            detail=detail,
            type_uri=f"{PROBLEM_BASE_URI}/seasonal-violation",
            extensions=extensions,
            code="SEASONAL_VIOLATION",
        )


class AvailabilityConflictError(ProblemDetailsException):
    """
    The costume cannot be held for the requested dates.

    ``code`` tells a permanent conflict (``BOOKED``, ``BLOCKED_BY_ADMIN``,
    ``COSTUME_UNAVAILABLE``) from a temporary one (``TEMPORARILY_RESERVED``)
    that clears once the competing hold lapses.
    """

    def __init__(
        self,
        detail: str,
        code: str,
        blocked_until: Optional[datetime] = None,
        conflicting_booking_id: Optional[str] = None,
    ):
        extensions: Dict[str, Any] = {"retryable": blocked_until is not None}
        if blocked_until is not None:
            extensions["blocked_until"] = blocked_until.isoformat() + "Z"
        if conflicting_booking_id:
            extensions["conflicting_booking_id"] = conflicting_booking_id
        self.blocked_until = blocked_until

        super().__init__(
            status_code=409,
            title="Costume Not Available",
            detail=detail,
            type_uri=f"{PROBLEM_BASE_URI}/availability-conflict",
            extensions=extensions,
            code=code,
        )


class InvalidStateError(ProblemDetailsException):
    """The booking is not in a state that allows the requested operation."""

    def __init__(
        self,
        detail: str,
        current_status: Optional[str] = None,
        booking_id: Optional[str] = None,
    ):
        extensions = {}
        if current_status:
            extensions["current_status"] = current_status
        if booking_id:
            extensions["booking_id"] = booking_id

        super().__init__(
            status_code=400,
            title="Invalid Booking State",
            detail=detail,
            type_uri=f"{PROBLEM_BASE_URI}/invalid-state",
            extensions=extensions,
            code="INVALID_STATE",
        )


class AuthenticationError(ProblemDetailsException):
    """Exception for authentication errors."""

    def __init__(
        self,
        detail: str = "Authentication credentials are required",
        instance: Optional[str] = None,
    ):
        super().__init__(
            status_code=401,
            title="Authentication Required",
            detail=detail,
            type_uri=f"{PROBLEM_BASE_URI}/authentication-required",
            instance=instance,
            headers={"WWW-Authenticate": "Bearer"},
        )


class AuthorizationError(ProblemDetailsException):
    """Exception for authorization errors."""

    def __init__(
        self,
        detail: str = "Insufficient permissions to access this resource",
        required_roles: Optional[list] = None,
        instance: Optional[str] = None,
    ):
        extensions = {}
        if required_roles:
            extensions["required_roles"] = required_roles

        super().__init__(
            status_code=403,
            title="Access Forbidden",
            detail=detail,
            type_uri=f"{PROBLEM_BASE_URI}/access-forbidden",
            instance=instance,
            extensions=extensions,
        )


class NotFoundError(ProblemDetailsException):
    """Exception for resource not found errors."""

    def __init__(
        self,
        resource_type: str = "resource",
        resource_id: Optional[str] = None,
        detail: Optional[str] = None,
        instance: Optional[str] = None,
    ):
        if not detail:
            detail = f"The requested {resource_type}"
            if resource_id:
                detail += f" with ID '{resource_id}'"
            detail += " could not be found"

        extensions = {
            "resource_type": resource_type,
        }
        if resource_id:
            extensions["resource_id"] = resource_id

        super().__init__(
            status_code=404,
            title="Resource Not Found",
            detail=detail,
            type_uri=f"{PROBLEM_BASE_URI}/resource-not-found",
            instance=instance,
            extensions=extensions,
        )


class ConflictError(ProblemDetailsException):
    """Exception for resource conflict errors."""

    def __init__(
        self,
        detail: str = "The request conflicts with the current state of the resource",
        conflicting_resource: Optional[Dict[str, Any]] = None,
        instance: Optional[str] = None,
    ):
        extensions = {}
        if conflicting_resource:
            extensions["conflicting_resource"] = conflicting_resource

        super().__init__(
            status_code=409,
            title="Resource Conflict",
            detail=detail,
            type_uri=f"{PROBLEM_BASE_URI}/resource-conflict",
            instance=instance,
            extensions=extensions,
        )


class PersistenceError(ProblemDetailsException):
    """The store rejected or failed a read or write."""

    def __init__(
        self,
        detail: str = "The booking store could not complete the operation",
        operation: Optional[str] = None,
    ):
        extensions: Dict[str, Any] = {
            "error_id": str(uuid.uuid4()),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        if operation:
            extensions["operation"] = operation

        super().__init__(
            status_code=500,
            title="Persistence Failure",
            detail=detail,
            type_uri=f"{PROBLEM_BASE_URI}/persistence-error",
            extensions=extensions,
            code="PERSISTENCE_ERROR",
        )


class InternalServerError(ProblemDetailsException):
    """Exception for internal server errors."""

    def __init__(
        self,
        detail: str = "An unexpected error occurred while processing the request",
        error_id: Optional[str] = None,
        instance: Optional[str] = None,
    ):
        if not error_id:
            error_id = str(uuid.uuid4())

        extensions = {
            "error_id": error_id,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

        super().__init__(
            status_code=500,
            title="Internal Server Error",
            detail=detail,
            type_uri=f"{PROBLEM_BASE_URI}/internal-server-error",
            instance=instance,
            extensions=extensions,
        )


async def problem_details_handler(request: Request, exc: ProblemDetailsException) -> JSONResponse:
    """
    Exception handler for Problem Details exceptions.

    Args:
        request: FastAPI request object
        exc: Problem Details exception

    Returns:
        JSONResponse: Problem Details formatted response
    """
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.problem_details,
        headers=exc.headers,
        media_type="application/problem+json",
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Render FastAPI body/query validation failures as a 400 problem."""
    violations = []
    for error in exc.errors():
        location = [str(part) for part in error.get("loc", ()) if part != "body"]
        violations.append({
            "path": ".".join(location),
            "message": error.get("msg", "Invalid value"),
        })

    problem = ValidationError(violations=violations, instance=str(request.url.path))
    return JSONResponse(
        status_code=problem.status_code,
        content=problem.problem_details,
        media_type="application/problem+json",
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Generic exception handler that converts unhandled exceptions to Problem Details format.

    Args:
        request: FastAPI request object
        exc: Unhandled exception

    Returns:
        JSONResponse: Problem Details formatted response
    """
    problem = InternalServerError(instance=str(request.url))
    logger.error(
        "Unhandled exception",
        extra={
            "error_id": problem.extensions["error_id"],
            "path": request.url.path,
            "error": str(exc),
        },
        exc_info=exc,
    )

    return JSONResponse(
        status_code=500,
        content=problem.problem_details,
        media_type="application/problem+json",
    )

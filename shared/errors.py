"""
Shared error handling for the access-control policy engine.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel, Field

from opentelemetry import trace


class ErrorResponse(BaseModel):
    """Standard error response format."""

    trace_id: Optional[str] = None
    code: str
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)


class AccessLayerException(Exception):
    """Base exception for access-control services."""

    status_code = 400

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        # Get trace ID from current span
        trace_id = None
        current_span = trace.get_current_span()
        if current_span and current_span.is_recording():
            span_context = current_span.get_span_context()
            if span_context.trace_id != 0:
                trace_id = f"{span_context.trace_id:032x}"

        return ErrorResponse(
            trace_id=trace_id,
            code=self.code,
            message=self.message,
            details=self.details
        )


class NotFoundError(AccessLayerException):
    """A policy or device record is absent where one is required."""

    status_code = 404

    def __init__(self, message: str = "Record not found", details: Optional[Dict[str, Any]] = None):
        super().__init__("NOT_FOUND", message, details)


class MalformedInputError(AccessLayerException):
    """Argument text is not parseable as the expected structure."""

    status_code = 422

    def __init__(self, message: str = "Malformed input", details: Optional[Dict[str, Any]] = None):
        super().__init__("MALFORMED_INPUT", message, details)


class AccessDeniedError(AccessLayerException):
    """No policy bound to a device satisfies the request."""

    status_code = 403

    def __init__(self, message: str = "Access denied", details: Optional[Dict[str, Any]] = None):
        super().__init__("ACCESS_DENIED", message, details)


class NoPoliciesAssociatedError(AccessLayerException):
    """A device exists but has no policies bound to it."""

    status_code = 403

    def __init__(self, message: str = "No policies associated", details: Optional[Dict[str, Any]] = None):
        super().__init__("NO_POLICIES_ASSOCIATED", message, details)


class RecordDecodeError(AccessLayerException):
    """A stored ledger record could not be decoded."""

    status_code = 500

    def __init__(self, message: str = "Record decode error", details: Optional[Dict[str, Any]] = None):
        super().__init__("RECORD_DECODE_ERROR", message, details)


class TransactionConflictError(AccessLayerException):
    """A ledger invocation read state that changed before it could commit."""

    status_code = 409

    def __init__(self, message: str = "Transaction conflict", details: Optional[Dict[str, Any]] = None):
        super().__init__("TRANSACTION_CONFLICT", message, details)

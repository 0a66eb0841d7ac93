"""
Custom exception classes and error handling.

Provides consistent error responses across the API:
- APIException subclasses map to their own status code (400, 404).
- LLM failures are plain exceptions and surface as 500 through the
  global handler in main.py.
"""
from fastapi import HTTPException, status
from typing import Optional, Dict, Any, Iterable


class APIException(HTTPException):
    """Base API exception with consistent structure."""

    def __init__(
        self,
        status_code: int,
        detail: str,
        error_code: Optional[str] = None,
        headers: Optional[Dict[str, Any]] = None
    ):
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        self.error_code = error_code


class NotFoundError(APIException):
    """Resource not found."""

    def __init__(self, resource: str, identifier: str):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{resource} not found: {identifier}",
            error_code="NOT_FOUND"
        )


class ValidationError(APIException):
    """Request validation error."""

    def __init__(self, detail: str, field: Optional[str] = None):
        error_code = f"VALIDATION_ERROR_{field.upper()}" if field else "VALIDATION_ERROR"
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
            error_code=error_code
        )


class MissingFieldsError(ValidationError):
    """One or more required body fields are missing or blank."""

    def __init__(self, fields: Iterable[str]):
        self.fields = list(fields)
        if len(self.fields) == 1:
            detail = f"{self.fields[0]} is required"
        else:
            detail = f"{', '.join(self.fields[:-1])} and {self.fields[-1]} are required"
        super().__init__(detail=detail)
        self.error_code = "MISSING_FIELDS"


class LLMUnavailableError(RuntimeError):
    """The text-generation service is not configured or the call failed."""


class LLMResponseError(ValueError):
    """The model answered, but not with JSON matching the expected shape."""

    def __init__(self, message: str, raw_text: Optional[str] = None):
        super().__init__(message)
        self.raw_text = raw_text


def require_fields(payload: Any, *names: str) -> None:
    """Raise MissingFieldsError if any of the named attributes is None or blank."""
    missing = []
    for name in names:
        value = getattr(payload, name, None)
        if value is None or (isinstance(value, str) and not value.strip()):
            missing.append(name)
    if missing:
        raise MissingFieldsError(missing)

"""Protocol definitions and errors for machine translation."""

from __future__ import annotations

from enum import StrEnum
from typing import Protocol, runtime_checkable

from pydantic import Field

from lexitree_schemas.base import BaseSchema
from lexitree_schemas.responses import ErrorDetails, ErrorResponse


class TranslationErrorCode(StrEnum):
    """Categorized error codes for machine translation."""

    NOT_CONFIGURED = "not_configured"
    INVALID_REQUEST = "invalid_request"
    AUTH_FAILED = "auth_failed"
    SERVICE_ERROR = "service_error"


class TranslationErrorDetails(BaseSchema):
    """Detailed translation error context."""

    provider: str | None = Field(None, description="Translation provider name")
    status_code: int | None = Field(None, description="HTTP status if applicable")
    source_language: str | None = Field(None, description="Source language")
    target_language: str | None = Field(None, description="Target language")


class TranslationErrorInfo(BaseSchema):
    """Structured translation error data."""

    code: TranslationErrorCode = Field(..., description="Translation error code")
    message: str = Field(..., min_length=1, description="Error message")
    details: TranslationErrorDetails | None = Field(None, description="Error details")

    def to_error_response(self) -> ErrorResponse:
        """Convert translation error info to the standard error response schema.

        Returns:
            ErrorResponse: Standard response error payload.
        """
        details: ErrorDetails | None = None
        if self.details is not None and self.details.status_code is not None:
            details = ErrorDetails(
                field="status_code",
                provided=str(self.details.status_code),
                valid_options=None,
            )
        return ErrorResponse(code=str(self.code), message=self.message, details=details)


class TranslationError(Exception):
    """Machine translation error with structured details."""

    def __init__(self, info: TranslationErrorInfo) -> None:
        """Initialize the translation error.

        Args:
            info: Structured translation error information.
        """
        super().__init__(info.message)
        self.info = info


@runtime_checkable
class TranslatorProtocol(Protocol):
    """Protocol for a machine translation provider."""

    async def translate(
        self, text: str, source_language: str, target_language: str
    ) -> str:
        """Translate text from the source to the target language."""
        raise NotImplementedError

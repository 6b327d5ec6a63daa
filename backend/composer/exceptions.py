"""Custom exceptions for the composer.

Every failure that aborts a composition is a ComposerError subclass carrying a
machine-readable code, an HTTP-equivalent status and, for pipeline failures,
the elapsed processing time and the engine's diagnostic output.
"""

from composer.constants.error_codes import get_error_spec, is_retryable
from composer.schemas.envelope import ErrorInfo, ErrorResponse


class ComposerError(Exception):
    """Base exception for all composer errors."""

    code: str = "INTERNAL_ERROR"
    status_code: int = 500
    message: str = "An unexpected error occurred"

    def __init__(
        self,
        message: str | None = None,
        *,
        diagnostics: str | None = None,
        elapsed_ms: int | None = None,
    ):
        self.message = message or self.__class__.message
        self.diagnostics = diagnostics
        self.elapsed_ms = elapsed_ms
        super().__init__(self.message)

    def to_error_info(self) -> ErrorInfo:
        """Convert exception to ErrorInfo for API response."""
        spec = get_error_spec(self.code)
        return ErrorInfo(
            code=self.code,
            message=self.message,
            diagnostics=self.diagnostics,
            retryable=is_retryable(self.code),
            suggested_fix=spec.get("suggested_fix"),
        )

    def to_response(self) -> ErrorResponse:
        return ErrorResponse(error=self.to_error_info(), duration_ms=self.elapsed_ms)


# =============================================================================
# Validation Errors (4xx)
# =============================================================================


class ValidationError(ComposerError):
    """Missing or unusable required inputs. User-correctable."""

    code = "VALIDATION_ERROR"
    status_code = 400
    message = "Missing video or audio file"

    def __init__(self, message: str | None = None, *, missing: list[str] | None = None):
        self.missing = missing or []
        msg = message or self.message
        if missing and not message:
            msg = f"Missing required input: {', '.join(missing)}"
        super().__init__(msg)


class UploadTooLargeError(ValidationError):
    """Upload exceeded the configured size limit."""

    code = "UPLOAD_TOO_LARGE"
    status_code = 413
    message = "Uploaded file is too large"

    def __init__(self, field: str | None = None, limit_bytes: int | None = None):
        message = self.message
        if field and limit_bytes:
            message = f"Uploaded file '{field}' exceeds {limit_bytes} bytes"
        super().__init__(message)


# =============================================================================
# Pipeline Errors
# =============================================================================


class SubtitleProcessingFailed(ComposerError):
    """Subtitle payload could not be parsed or rewritten."""

    code = "SUBTITLE_PROCESSING_FAILED"
    status_code = 422
    message = "Failed to process subtitle file"


class EncodeFailed(ComposerError):
    """Engine exited non-zero or rejected its arguments."""

    code = "ENCODE_FAILED"
    status_code = 500
    message = "Video encoding failed"


class EncodeTimeout(ComposerError):
    """Engine exceeded the configured time bound."""

    code = "ENCODE_TIMEOUT"
    status_code = 504
    message = "Video encoding timed out"

    def __init__(self, timeout_s: float | None = None, **kwargs):
        message = self.message
        if timeout_s is not None:
            message = f"Video encoding exceeded timeout of {timeout_s:g} seconds"
        super().__init__(message, **kwargs)


class OutputInvalid(ComposerError):
    """Engine reported success but the output is missing or empty."""

    code = "OUTPUT_INVALID"
    status_code = 500
    message = "Output file is empty or missing"

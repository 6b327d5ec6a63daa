"""Error codes dictionary for the composer API.

This is the single source of truth for all error codes, their retryability,
and suggested recovery hints. Used by exception handlers to generate
machine-readable error responses.
"""

from typing import TypedDict


class ErrorCodeSpec(TypedDict, total=False):
    """Specification for an error code."""

    retryable: bool
    suggested_fix: str


# Error codes dictionary - single source of truth
ERROR_CODES: dict[str, ErrorCodeSpec] = {
    # ==========================================================================
    # Validation errors (not retryable, fix input)
    # ==========================================================================
    "VALIDATION_ERROR": {
        "retryable": False,
        "suggested_fix": "Upload both a 'video' and an 'audio' file",
    },
    "UPLOAD_TOO_LARGE": {
        "retryable": False,
        "suggested_fix": "Reduce the upload below the configured size limit",
    },
    # ==========================================================================
    # Input processing errors
    # ==========================================================================
    "SUBTITLE_PROCESSING_FAILED": {
        "retryable": False,
        "suggested_fix": "Send an ASS subtitle file, optionally wrapped as {\"ass\": \"...\"}",
    },
    # ==========================================================================
    # Engine errors
    # ==========================================================================
    "ENCODE_FAILED": {
        "retryable": False,
        "suggested_fix": "Check the engine diagnostics for the rejected input or argument",
    },
    "ENCODE_TIMEOUT": {
        "retryable": True,
        "suggested_fix": "Retry with the draft quality tier or a shorter video",
    },
    "OUTPUT_INVALID": {
        "retryable": True,
    },
    # ==========================================================================
    # Warnings (recorded, never raised)
    # ==========================================================================
    "PROBE_DEGRADED": {
        "retryable": False,
    },
    # ==========================================================================
    # Generic
    # ==========================================================================
    "INTERNAL_ERROR": {
        "retryable": True,
    },
}


def get_error_spec(code: str) -> ErrorCodeSpec:
    """Get error specification by code.

    Args:
        code: The error code

    Returns:
        ErrorCodeSpec with retryable flag and suggested fix
    """
    return ERROR_CODES.get(code, {"retryable": False})


def is_retryable(code: str) -> bool:
    """Check if an error code is retryable."""
    spec = get_error_spec(code)
    return spec.get("retryable", False)

from pydantic import BaseModel


class ErrorInfo(BaseModel):
    code: str
    message: str
    diagnostics: str | None = None  # Engine stderr tail, when available
    retryable: bool = False
    suggested_fix: str | None = None  # Human-readable fix suggestion


class ErrorResponse(BaseModel):
    error: ErrorInfo
    duration_ms: int | None = None  # Elapsed processing time; omitted for validation errors

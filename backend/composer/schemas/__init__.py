from composer.schemas.envelope import ErrorInfo, ErrorResponse

__all__ = [
    "ErrorInfo",
    "ErrorResponse",
]

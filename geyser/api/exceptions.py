"""API-level exceptions and HTTP status mapping for Geyser.

Core errors keep their own types; this module adds the errors that only
exist at the service boundary and maps every Geyser error to a status code.
"""

from typing import Any, Dict, Optional

from geyser.recommender.errors import (
    DimensionMismatch,
    GeyserError,
    InvalidArgument,
    NotFound,
)


class APIError(GeyserError):
    """Base exception for errors raised by the HTTP service."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None,
    ):
        """Initialize exception.

        Args:
            message: Human-readable error message
            status_code: HTTP status code for API responses
            details: Additional error details for debugging
        """
        super().__init__(message, details)
        self.status_code = status_code


class ModelNotFoundError(APIError):
    """Raised when model files cannot be found."""

    def __init__(self, model_dir: str):
        message = f"Model not found at '{model_dir}'. Please train a model first."
        super().__init__(
            message=message,
            status_code=503,
            details={"model_dir": model_dir},
        )


class ModelLoadError(APIError):
    """Raised when model artifacts exist but fail to load."""

    def __init__(self, model_dir: str, error: Exception):
        message = f"Failed to load model from '{model_dir}': {error}"
        super().__init__(
            message=message,
            status_code=500,
            details={
                "model_dir": model_dir,
                "error": str(error),
                "error_type": type(error).__name__,
            },
        )


_STATUS_CODES = {
    NotFound: 404,
    InvalidArgument: 400,
    DimensionMismatch: 500,
}

_ERROR_NAMES = {
    404: "Not found",
    400: "Invalid argument",
    500: "Internal error",
    503: "Model not found",
}


def status_code_for(exc: GeyserError) -> int:
    """HTTP status code for a Geyser error."""
    if isinstance(exc, APIError):
        return exc.status_code
    for error_type, code in _STATUS_CODES.items():
        if isinstance(exc, error_type):
            return code
    return 500


def error_body(exc: GeyserError) -> Dict[str, Any]:
    """JSON body returned for a Geyser error."""
    code = status_code_for(exc)
    return {
        "error": _ERROR_NAMES.get(code, "Error"),
        "message": exc.message,
        "details": {key: _jsonable(value) for key, value in exc.details.items()},
    }


def _jsonable(value: Any) -> Any:
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return str(value)

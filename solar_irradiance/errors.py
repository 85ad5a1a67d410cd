"""
Error taxonomy for Solar Irradiance

Every failure that leaves an adapter is one of these types, so a caller
can tell "fix input" from "retry later" from "fix configuration":

- ValidationError       - caller input rejected before any network call
- UpstreamHttpError     - non-2xx response (status + truncated body)
- UpstreamTimeoutError  - no response within the per-attempt bound
- TimeFormatError /
  CsvFormatError        - provider payload we cannot parse (never retried)
- YearRangeError        - provider reported the valid year window
- ConfigurationError    - required server-side credential is missing
"""

from enum import Enum
from typing import Any, Dict, List, Optional

# Upstream bodies are truncated to this many characters in error messages
MAX_BODY_CHARS = 400


class ErrorType(Enum):
    """Categories of errors for logging and error bodies."""
    TIMEOUT = "timeout"
    RATE_LIMIT = "rate_limit"
    API_ERROR = "api_error"
    PARSE_ERROR = "parse_error"
    VALIDATION = "validation"
    CONFIGURATION = "configuration"
    UNKNOWN = "unknown"


class IrradianceError(Exception):
    """Base class for all errors raised by this package."""

    error_type = ErrorType.UNKNOWN

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        """JSON-friendly error body."""
        return {"error": self.message, "type": self.error_type.value}


class ValidationError(IrradianceError):
    """Malformed or out-of-range caller input."""

    error_type = ErrorType.VALIDATION

    def __init__(self, message: str, problems: Optional[List[Dict[str, Any]]] = None):
        super().__init__(message)
        self.problems = problems or []

    def to_dict(self) -> Dict[str, Any]:
        body = super().to_dict()
        if self.problems:
            body["problems"] = self.problems
        return body


class ConfigurationError(IrradianceError):
    """A provider needs a credential the server was not configured with."""

    error_type = ErrorType.CONFIGURATION


class UpstreamError(IrradianceError):
    """Transport-level failure talking to a provider."""

    error_type = ErrorType.API_ERROR

    def __init__(self, message: str, url: Optional[str] = None):
        super().__init__(message)
        self.url = url


class UpstreamHttpError(UpstreamError):
    """Provider answered with a non-2xx status."""

    def __init__(self, status_code: int, body: str = "", url: Optional[str] = None,
                 reason: str = ""):
        self.status_code = status_code
        self.body = (body or "")[:MAX_BODY_CHARS]
        message = f"HTTP {status_code}"
        if reason:
            message += f" {reason}"
        if self.body:
            message += f": {self.body}"
        super().__init__(message, url=url)
        if status_code in (429, 503):
            self.error_type = ErrorType.RATE_LIMIT

    def to_dict(self) -> Dict[str, Any]:
        body = super().to_dict()
        body["status"] = self.status_code
        return body


class UpstreamTimeoutError(UpstreamError):
    """No response within the per-attempt timeout."""

    error_type = ErrorType.TIMEOUT


class UpstreamConnectionError(UpstreamError):
    """DNS, connect or protocol failure before a response arrived."""


class YearRangeError(UpstreamHttpError):
    """
    Provider rejected the requested years for this coordinate.

    Carries the valid window extracted from the provider message so the
    caller can clamp its request and retry.
    """

    def __init__(self, year_min: int, year_max: int, status_code: int = 400,
                 body: str = "", url: Optional[str] = None):
        if year_min > year_max:
            year_min, year_max = year_max, year_min
        self.year_min = year_min
        self.year_max = year_max
        super().__init__(status_code, body=body, url=url)

    def to_dict(self) -> Dict[str, Any]:
        body = super().to_dict()
        body["yearMin"] = self.year_min
        body["yearMax"] = self.year_max
        return body


class DataFormatError(IrradianceError):
    """Provider payload does not have the shape we parse."""

    error_type = ErrorType.PARSE_ERROR


class TimeFormatError(DataFormatError):
    """Provider timestamp does not match its documented encoding."""


class CsvFormatError(DataFormatError):
    """CAMS CSV payload is missing its column header."""


class PayloadFormatError(DataFormatError):
    """JSON payload is undecodable or missing required sections."""


def categorize_error(exception: Exception) -> ErrorType:
    """
    Categorize an exception for tracking purposes.

    Returns:
        ErrorType of the exception (UNKNOWN for foreign exceptions)
    """
    if isinstance(exception, IrradianceError):
        return exception.error_type
    if isinstance(exception, (KeyError, ValueError, TypeError)):
        return ErrorType.PARSE_ERROR
    return ErrorType.UNKNOWN

"""
errors.py
---------
Failure taxonomy for the chat service.

Every error that can reach an HTTP caller derives from `DrillChatError` and knows
its status code and the `{error, details, code?}` envelope the client displays.
`DataBlockParseError` never leaves the data-block pipeline; it only exists so the
extractor can signal a malformed marker to `process`.
"""
from __future__ import annotations
from typing import Any, Dict, Optional


class DrillChatError(Exception):
    http_status: int = 500
    error: str = "Internal Server Error"

    def __init__(self, details: str, *, code: Any = None, http_status: Optional[int] = None,
                 error: Optional[str] = None) -> None:
        super().__init__(details)
        self.details = details
        self.code = code
        if http_status is not None:
            self.http_status = http_status
        if error is not None:
            self.error = error

    def to_envelope(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": self.error, "details": self.details}
        if self.code is not None:
            body["code"] = self.code
        return body


class ConfigurationError(DrillChatError):
    """Missing credential or reference document. Fatal for the request."""


class ContextUnavailable(ConfigurationError):
    pass


class InvalidRequest(DrillChatError):
    http_status = 400
    error = "Invalid request body"


class UpstreamProtocolError(DrillChatError):
    """Transport failure, wrong content type or unparsable JSON from the LLM API."""
    http_status = 502
    error = "API Error"


class UpstreamResponseError(DrillChatError):
    """Successful status but no reply text where one was expected."""
    http_status = 500
    error = "API Response Error"


class UpstreamRequestError(DrillChatError):
    """The upstream API reported a structured failure."""
    http_status = 502
    error = "API Request Failed"


class UpstreamBadRequest(UpstreamRequestError):
    http_status = 400


class UpstreamAuthError(UpstreamRequestError):
    http_status = 401


class UpstreamBillingError(UpstreamRequestError):
    http_status = 402


class UpstreamRateLimited(UpstreamRequestError):
    http_status = 429


class UpstreamServerError(UpstreamRequestError):
    http_status = 502


_BY_CODE = {
    400: UpstreamBadRequest,
    401: UpstreamAuthError,
    402: UpstreamBillingError,
    429: UpstreamRateLimited,
}

_BY_TYPE = {
    "invalid_request_error": UpstreamBadRequest,
    "authentication_error": UpstreamAuthError,
    "billing_error": UpstreamBillingError,
    "rate_limit_error": UpstreamRateLimited,
    "api_error": UpstreamServerError,
}


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def classify_upstream_error(code: Any, error_type: Any) -> type:
    """
    Pick the UpstreamRequestError subclass for an upstream status code and/or
    error type string. A numeric code wins over a conflicting type.
    """
    status = _as_int(code)
    for candidate in (400, 401, 402, 429):
        if status == candidate or _BY_TYPE.get(error_type) is _BY_CODE[candidate]:
            return _BY_CODE[candidate]
    if (status is not None and status >= 500) or error_type == "api_error":
        return UpstreamServerError
    return UpstreamRequestError


class DataBlockParseError(ValueError):
    """JSON inside a GRAPH_DATA / TABLE_DATA marker could not be decoded."""

    def __init__(self, kind: str, raw: str, cause: Exception) -> None:
        super().__init__(f"could not parse {kind} data block: {cause}")
        self.kind = kind
        self.raw = raw
        self.cause = cause

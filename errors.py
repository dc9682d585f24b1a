"""Exception hierarchy for the HabitAI backend."""

from typing import Any, Dict, Optional


class HabitAIError(Exception):
    """Base exception for all HabitAI errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)


# ----- Request errors -----


class ValidationError(HabitAIError):
    """A required request field is missing or empty."""

    status_code = 400


class ConfigurationError(HabitAIError):
    """The server is missing configuration it needs to serve the request."""

    status_code = 500


# ----- Upstream model API errors -----


class UpstreamError(HabitAIError):
    """The upstream model API call did not produce a completion."""

    pass


class UpstreamTimeout(UpstreamError):
    """The upstream call exceeded the wall-clock timeout and was cancelled."""

    def __init__(self, timeout: float) -> None:
        super().__init__(
            message=f"Upstream request timed out after {timeout:g}s",
            details={"timeout": timeout},
        )
        self.timeout = timeout


class UpstreamHTTPError(UpstreamError):
    """The endpoint answered with a non-success status, or could not be reached."""

    def __init__(self, status: Optional[int], message: Optional[str] = None) -> None:
        super().__init__(
            message=message or f"Grog API error: {status}",
            details={"status": status},
        )
        self.status = status


class UpstreamMalformedResponse(UpstreamError):
    """A success response without the expected completion text."""

    pass

"""Custom exception hierarchy for the chat gateway."""

from typing import Any


class GatewayError(Exception):
    """Base exception for all gateway errors."""

    status_code: int = 500

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_payload(self) -> dict[str, Any]:
        """JSON body returned to the client."""
        return {"error": self.message, **self.details}


# ----- Client Errors -----


class ValidationError(GatewayError):
    """Input validation failed."""

    status_code = 400


class MissingAPIKeyError(GatewayError):
    """No API key available for the remote backend."""

    status_code = 401

    def __init__(self, provider: str = "OpenRouter") -> None:
        super().__init__(message=f"{provider} API key not configured")


# ----- Upstream Errors -----


class UpstreamError(GatewayError):
    """Non-2xx response from a model provider.

    The upstream status code is passed through to the client.
    """

    def __init__(
        self,
        message: str,
        status_code: int,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.status_code = status_code


class LocalBackendError(GatewayError):
    """Generic failure talking to the local inference server."""

    status_code = 500

    def __init__(self, details: str) -> None:
        super().__init__(
            message="Failed to connect to LM Studio",
            details={"details": details},
        )


class LocalBackendUnavailableError(LocalBackendError):
    """The local inference server refused the connection."""

    status_code = 503

    def __init__(self, endpoint: str) -> None:
        GatewayError.__init__(
            self,
            message="LM Studio not running",
            details={
                "details": (
                    f"Cannot connect to LM Studio. Please ensure LM Studio is running on {endpoint}."
                ),
                "suggestion": "Start LM Studio and load a model, then try again.",
            },
        )


class LocalBackendTimeoutError(LocalBackendError):
    """The local inference server did not answer in time."""

    status_code = 504

    def __init__(self, details: str = "Connection timed out - is LM Studio running?") -> None:
        GatewayError.__init__(
            self,
            message="LM Studio not responding",
            details={"details": details},
        )


# ----- Tool Loop Errors -----


class ToolIterationLimitError(GatewayError):
    """The model kept requesting tools past the iteration bound."""

    status_code = 500

    def __init__(self, max_iterations: int) -> None:
        super().__init__(message="Maximum tool iterations reached")
        self.max_iterations = max_iterations

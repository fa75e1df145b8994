"""Custom exception hierarchy for the relay proxy."""


class ProxyError(Exception):
    """Base exception for all proxy errors."""


class ForwardError(ProxyError):
    """Raised when a request cannot be forwarded to the upstream target.

    Attributes:
        message: Error message
        status_code: HTTP status code returned to the caller
    """

    status_code = 502

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidTargetError(ForwardError):
    """Raised when the configured target URL is malformed."""


class RequestConstructionError(ForwardError):
    """Raised when the outbound request cannot be assembled."""


class UpstreamUnavailableError(ForwardError):
    """Raised when the upstream target cannot be reached."""


class UpstreamTimeoutError(UpstreamUnavailableError):
    """Raised when an upstream request exceeds its deadline."""


class UpstreamConnectionError(UpstreamUnavailableError):
    """Raised when unable to connect to, or talk to, the upstream target."""


class RelayIOError(ProxyError):
    """Raised when the body relay fails after the status was committed."""

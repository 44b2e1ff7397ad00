"""Custom exception hierarchy and transport error codes for hopfetch."""

from enum import IntEnum


class TransportErrorCode(IntEnum):
    """Numeric transport error codes (libcurl numbering)."""

    OK = 0
    UNSUPPORTED_PROTOCOL = 1
    FAILED_INIT = 2
    URL_MALFORMAT = 3
    COULDNT_RESOLVE_PROXY = 5
    COULDNT_RESOLVE_HOST = 6
    COULDNT_CONNECT = 7
    WEIRD_SERVER_REPLY = 8
    OPERATION_TIMEDOUT = 28
    SSL_CONNECT_ERROR = 35
    TOO_MANY_REDIRECTS = 47
    SEND_ERROR = 55
    RECV_ERROR = 56
    BAD_CONTENT_ENCODING = 61


class FetchClientError(Exception):
    """Base exception for all hopfetch errors."""


class ConfigurationError(FetchClientError):
    """Raised when configuration or command-line input is invalid."""


class TransportError(FetchClientError):
    """Raised when a fetch failed at the transport layer.

    Attributes:
        message: Transport error message
        code: Transport error code (see TransportErrorCode)
        url: URL of the hop that failed (optional)
    """

    def __init__(
        self,
        message: str,
        code: int,
        url: str | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.url = url


class RedirectLimitExceeded(FetchClientError):
    """Raised when a redirect chain hit the configured ceiling."""

    def __init__(
        self,
        message: str,
        url: str | None = None,
    ) -> None:
        super().__init__(message)
        self.url = url

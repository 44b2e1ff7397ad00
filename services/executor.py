"""Single HTTP transactions over httpx."""

import logging
import time
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import httpx

from core.config import FetchConfig
from core.exceptions import TransportErrorCode
from core.headers import HeaderBuilder
from core.request_types import FetchRequest, HeaderMode, Method, RawTransaction

logger = logging.getLogger(__name__)

RAW_HEADERS_KEY = "hopfetch.raw_headers"

_DNS_MARKERS = (
    "name or service not known",
    "nodename nor servname",
    "temporary failure in name resolution",
    "getaddrinfo failed",
    "no address associated",
)
_TLS_MARKERS = ("ssl", "certificate", "tls")

# Checked in order; subclasses come before their bases
_ERROR_CODES: tuple[tuple[type[Exception], TransportErrorCode], ...] = (
    (httpx.InvalidURL, TransportErrorCode.URL_MALFORMAT),
    (httpx.UnsupportedProtocol, TransportErrorCode.UNSUPPORTED_PROTOCOL),
    (httpx.TooManyRedirects, TransportErrorCode.TOO_MANY_REDIRECTS),
    (httpx.TimeoutException, TransportErrorCode.OPERATION_TIMEDOUT),
    (httpx.ProxyError, TransportErrorCode.COULDNT_RESOLVE_PROXY),
    (httpx.ConnectError, TransportErrorCode.COULDNT_CONNECT),
    (httpx.DecodingError, TransportErrorCode.BAD_CONTENT_ENCODING),
    (httpx.ProtocolError, TransportErrorCode.WEIRD_SERVER_REPLY),
    (httpx.WriteError, TransportErrorCode.SEND_ERROR),
    (httpx.ReadError, TransportErrorCode.RECV_ERROR),
)


def transport_error_code(exc: Exception) -> TransportErrorCode:
    """Map an httpx exception onto a transport error code."""
    for exc_type, code in _ERROR_CODES:
        if not isinstance(exc, exc_type):
            continue
        if code is TransportErrorCode.COULDNT_CONNECT:
            text = str(exc).lower()
            if any(marker in text for marker in _DNS_MARKERS):
                return TransportErrorCode.COULDNT_RESOLVE_HOST
            if any(marker in text for marker in _TLS_MARKERS):
                return TransportErrorCode.SSL_CONNECT_ERROR
        return code
    return TransportErrorCode.FAILED_INIT


class _AutoReferer:
    """Request hook: send the previous hop's URL as Referer."""

    def __init__(self) -> None:
        self._previous: str | None = None

    def __call__(self, request: httpx.Request) -> None:
        if self._previous is not None:
            request.headers["Referer"] = self._previous
        self._previous = str(request.url)


def _withhold_location(response: httpx.Response) -> None:
    """Response hook for manual mode: redirect targets are left to the resolver."""
    response.extensions[RAW_HEADERS_KEY] = list(response.headers.raw)
    response.headers.pop("location", None)


class RequestExecutor:
    """Perform exactly one HTTP transaction per call."""

    def __init__(
        self,
        transport: httpx.BaseTransport | None = None,
        header_builder: HeaderBuilder | None = None,
    ) -> None:
        self._transport = transport
        self._headers = header_builder or HeaderBuilder()

    @contextmanager
    def session(self, config: FetchConfig, native_redirects: bool = False) -> Iterator[httpx.Client]:
        """Open a fresh client for one fetch call; closed on every exit path."""
        if native_redirects:
            hooks = {"request": [_AutoReferer()], "response": []}
        else:
            hooks = {"request": [], "response": [_withhold_location]}
        with httpx.Client(
            headers=self._headers.build_default_headers(config.user_agent),
            timeout=self._timeout(config),
            max_redirects=config.max_redirects,
            event_hooks=hooks,
            transport=self._transport,
        ) as client:
            yield client

    def execute(
        self,
        client: httpx.Client,
        request: FetchRequest,
        config: FetchConfig,
        header_mode: HeaderMode,
        native_redirects: bool,
    ) -> RawTransaction:
        """Run one transaction; transport failures come back as data."""
        data = dict(request.params) if request.method is Method.POST and request.params else None
        started = time.perf_counter()
        try:
            response = client.request(
                request.method.value,
                request.url,
                data=data,
                auth=self._headers.build_auth(request.credentials),
                timeout=self._timeout(config),
                follow_redirects=native_redirects,
            )
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            code = transport_error_code(e)
            if code is TransportErrorCode.TOO_MANY_REDIRECTS:
                message = f"Maximum ({config.max_redirects}) redirects followed"
            else:
                message = str(e) or type(e).__name__
            logger.warning("%s %s failed: [%d] %s", request.method.value, request.url, code, message)
            return RawTransaction(
                status_code=0,
                error_code=int(code),
                error_message=message,
                info=_failure_info(request.url),
            )

        logger.debug("%s %s -> %d", request.method.value, response.url, response.status_code)
        header_block = ""
        if header_mode is HeaderMode.HEADER_AND_BODY:
            header_block = _raw_header_block(response)
        return RawTransaction(
            status_code=response.status_code,
            header_block=header_block,
            body=response.text,
            info=_transfer_info(response, time.perf_counter() - started),
        )

    @staticmethod
    def _timeout(config: FetchConfig) -> httpx.Timeout:
        return httpx.Timeout(
            float(config.fetch_timeout_seconds),
            connect=float(config.connect_timeout_seconds),
        )


def _raw_header_block(response: httpx.Response) -> str:
    """Rebuild the status line and headers as received."""
    raw_headers = response.extensions.get(RAW_HEADERS_KEY, response.headers.raw)
    lines = [f"{response.http_version} {response.status_code} {response.reason_phrase}"]
    lines.extend(f"{key.decode('latin-1')}: {value.decode('latin-1')}" for key, value in raw_headers)
    return "\r\n".join(lines)


def _transfer_info(response: httpx.Response, elapsed: float) -> dict[str, Any]:
    return {
        "url": str(response.url),
        "effective_url": str(response.url),
        "http_status": response.status_code,
        "content_type": response.headers.get("content-type", ""),
        "redirect_count": len(response.history),
        "total_time": elapsed,
        "size_download": len(response.content),
    }


def _failure_info(url: str) -> dict[str, Any]:
    return {
        "url": url,
        "effective_url": url,
        "http_status": 0,
        "content_type": "",
        "redirect_count": 0,
        "total_time": 0.0,
        "size_download": 0,
    }

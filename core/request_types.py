"""Shared request and response data types."""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

from core.exceptions import RedirectLimitExceeded, TransportError

CRLF2 = "\r\n\r\n"
MAX_REDIRECTS_MESSAGE = "Max Redirects Reached"


class Method(str, Enum):
    GET = "GET"
    POST = "POST"


class HeaderMode(str, Enum):
    """Whether the executor captures the raw header block."""

    BODY_ONLY = "body_only"
    HEADER_AND_BODY = "header_and_body"


@dataclass(frozen=True)
class FetchRequest:
    """One logical request; only the URL changes between hops."""

    url: str
    method: Method = Method.GET
    params: tuple[tuple[str, str], ...] = ()
    credentials: tuple[str, str] | None = None

    def with_url(self, url: str) -> "FetchRequest":
        """Return a copy pointed at the next hop."""
        return replace(self, url=url)


@dataclass(frozen=True)
class RawTransaction:
    """Result of a single HTTP transaction."""

    status_code: int
    header_block: str = ""
    body: str = ""
    error_code: int = 0
    error_message: str = ""
    info: dict[str, Any] = field(default_factory=dict)

    @property
    def raw_response(self) -> str:
        """Header block and body joined the way they arrive on the wire."""
        if not self.header_block:
            return self.body
        return f"{self.header_block}{CRLF2}{self.body}"


@dataclass(frozen=True)
class Terminal:
    """The hop loop stops here."""

    body: str
    info: dict[str, Any]


@dataclass(frozen=True)
class Redirect:
    """Follow ``target_url``; body and info describe the redirecting hop."""

    target_url: str
    body: str = ""
    info: dict[str, Any] = field(default_factory=dict)


RedirectDecision = Terminal | Redirect


@dataclass(frozen=True)
class FetchResult:
    """Uniform outcome of a fetch call."""

    body: str
    error_code: int = 0
    error_message: str = ""
    header_info: dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.error_code == 0 and not self.error_message

    def raise_for_error(self) -> "FetchResult":
        """Raise the matching exception if the fetch failed, else return self."""
        url = self.header_info.get("effective_url")
        if self.error_message == MAX_REDIRECTS_MESSAGE:
            raise RedirectLimitExceeded(self.error_message, url=url)
        if self.error_code:
            raise TransportError(self.error_message, self.error_code, url=url)
        return self

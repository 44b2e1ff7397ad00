"""Redirect detection on raw HTTP transactions."""

import re

import httpx

from core.request_types import CRLF2, RawTransaction, Redirect, RedirectDecision, Terminal

REDIRECT_STATUSES = frozenset({301, 302, 303})

_CONTINUE_LINE = re.compile(r"^HTTP/\d(?:\.\d)?\s+100\b", re.IGNORECASE)
_LOCATION_LINE = re.compile(r"^(?:Location|URI):(.*)$", re.MULTILINE)


def split_raw_response(raw: str) -> tuple[str, str]:
    """Split a raw response into (header_block, body).

    A leading ``100 Continue`` block (sent by some servers on POST) is not
    the real response and is dropped.
    """
    parts = raw.split(CRLF2)
    if len(parts) > 1 and _CONTINUE_LINE.match(parts[0].strip()):
        parts = parts[1:]
    return parts[0], CRLF2.join(parts[1:])


def extract_location(header_block: str) -> str | None:
    """Return the trimmed value of the first ``Location:``/``URI:`` line."""
    match = _LOCATION_LINE.search(header_block)
    if match is None:
        return None
    return match.group(1).strip() or None


def parse_target(value: str, base_url: str | None = None) -> str | None:
    """Parse a redirect target, resolving it against ``base_url`` if relative.

    Returns None unless the result is an absolute http(s) URL with a host.
    """
    try:
        url = httpx.URL(value)
        if url.is_relative_url and base_url:
            url = httpx.URL(base_url).join(url)
    except httpx.InvalidURL:
        return None
    if url.scheme not in ("http", "https") or not url.host:
        return None
    return str(url)


class RedirectResolver:
    """Decide whether a transaction ends the fetch or points elsewhere."""

    def __init__(self, statuses: frozenset[int] = REDIRECT_STATUSES):
        self.statuses = statuses

    def resolve(self, tx: RawTransaction) -> RedirectDecision:
        """Return Terminal or Redirect for one hop."""
        if tx.error_code != 0:
            return Terminal(body="", info=tx.info)

        if tx.header_block:
            header_block, body = split_raw_response(tx.raw_response)
        else:
            header_block, body = "", tx.body

        if tx.status_code in self.statuses:
            target = self._find_target(header_block, tx.info.get("effective_url"))
            if target is not None:
                return Redirect(target_url=target, body=body, info=tx.info)

        return Terminal(body=body, info=tx.info)

    def _find_target(self, header_block: str, base_url: str | None) -> str | None:
        """Locate and validate the redirect target in a header block."""
        location = extract_location(header_block)
        if location is None:
            return None
        return parse_target(location, base_url)

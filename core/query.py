"""Query-string encoding for GET parameters."""

from collections.abc import Iterable, Mapping
from urllib.parse import quote, urlsplit, urlunsplit


def encode_query(params: Mapping[str, str] | Iterable[tuple[str, str]]) -> str:
    """Percent-encode every key/value pair and join them with ``&``."""
    pairs = params.items() if isinstance(params, Mapping) else params
    return "&".join(
        f"{quote(str(key), safe='')}={quote(str(value), safe='')}" for key, value in pairs
    )


def append_query(url: str, query: str) -> str:
    """Append an encoded query to ``url``, keeping any existing query and fragment."""
    if not query:
        return url
    parts = urlsplit(url)
    combined = f"{parts.query}&{query}" if parts.query else query
    return urlunsplit(parts._replace(query=combined))

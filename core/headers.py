"""Header and credential construction for outgoing requests."""

import httpx


class HeaderBuilder:
    """Build default headers and auth for the transport."""

    def build_default_headers(self, user_agent: str) -> dict[str, str]:
        """Headers sent on every hop."""
        # Some firewalls block requests without a user agent
        return {"User-Agent": user_agent}

    def build_auth(self, credentials: tuple[str, str] | None) -> httpx.BasicAuth | None:
        """HTTP Basic auth for the given (username, password) pair."""
        if credentials is None:
            return None
        username, password = credentials
        return httpx.BasicAuth(username, password)


def parse_credentials(credentials: str) -> tuple[str, str] | None:
    """Split ``"username:password"`` on the first colon."""
    if not credentials:
        return None
    username, _, password = credentials.partition(":")
    return username, password

"""Normalize fetch outcomes into a FetchResult."""

from collections.abc import Mapping
from typing import Any

from core.request_types import FetchResult

REQUIRED_INFO_DEFAULTS: dict[str, Any] = {
    "http_status": 0,
    "effective_url": "",
    "content_type": "",
}


class ResponseAssembler:
    """Build the uniform result shape for native and manual mode alike."""

    def assemble(
        self,
        body: str,
        error_code: int,
        error_message: str,
        info: Mapping[str, Any],
        orchestrator_message: str = "",
    ) -> FetchResult:
        """Combine the last hop's outcome with any orchestrator-level message.

        The orchestrator message (e.g. the redirect ceiling) describes the
        terminal condition more precisely, so it wins over transport text.
        """
        header_info = {**REQUIRED_INFO_DEFAULTS, **info}
        return FetchResult(
            body=body,
            error_code=error_code,
            error_message=orchestrator_message or error_message,
            header_info=header_info,
        )

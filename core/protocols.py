"""Shared protocol definitions."""

from typing import Protocol

from core.request_types import FetchResult


class FetchLogger(Protocol):
    """Protocol for fetch event logging (ConsoleLogger)."""

    def log_hop(self, hop: int, method: str, url: str, status: int) -> None: ...
    def log_redirect(self, hop: int, target_url: str) -> None: ...
    def log_error(self, url: str, code: int, message: str) -> None: ...
    def log_result(self, url: str, method: str, result: FetchResult) -> None: ...


class NullLogger:
    """FetchLogger that discards every event."""

    def log_hop(self, hop: int, method: str, url: str, status: int) -> None:
        pass

    def log_redirect(self, hop: int, target_url: str) -> None:
        pass

    def log_error(self, url: str, code: int, message: str) -> None:
        pass

    def log_result(self, url: str, method: str, result: FetchResult) -> None:
        pass

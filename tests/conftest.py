"""Shared test fixtures."""

from collections.abc import Callable

import httpx
import pytest

from core.config import SANDBOX_ENV_VAR, FetchConfig
from services.executor import RequestExecutor
from services.fetcher import FetchOrchestrator

Route = tuple[int, dict[str, str], str]


def route_handler(
    routes: dict[str, Route],
    seen: list[httpx.Request] | None = None,
) -> Callable[[httpx.Request], httpx.Response]:
    """Serve canned (status, headers, body) responses keyed by full URL."""

    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        status, headers, body = routes.get(str(request.url), (404, {}, "not found"))
        return httpx.Response(status, headers=headers, text=body, request=request)

    return handler


@pytest.fixture(autouse=True)
def _unsandboxed(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv(SANDBOX_ENV_VAR, raising=False)


@pytest.fixture
def make_orchestrator():
    """Build an orchestrator whose transport is an httpx.MockTransport."""

    def _make(handler, logger=None, **config_overrides) -> FetchOrchestrator:
        config = FetchConfig(user_agent="hopfetch-test/1.0", **config_overrides)
        executor = RequestExecutor(transport=httpx.MockTransport(handler))
        return FetchOrchestrator(config=config, executor=executor, logger=logger)

    return _make


@pytest.fixture
def serve():
    """Factory for URL-keyed MockTransport handlers."""
    return route_handler

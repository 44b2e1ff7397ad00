import base64
from urllib.parse import parse_qs

import httpx
import pytest

from core.config import SANDBOX_ENV_VAR, FetchConfig
from core.exceptions import RedirectLimitExceeded, TransportError, TransportErrorCode
from core.request_types import MAX_REDIRECTS_MESSAGE, FetchResult
from services.executor import RequestExecutor
from services.fetcher import FetchOrchestrator

A = "https://example.org/a"
B = "https://example.org/b"
C = "https://example.org/c"

CHAIN = {
    A: (302, {"Location": B}, "moved to b"),
    B: (302, {"Location": C}, "moved to c"),
    C: (200, {"Content-Type": "text/plain"}, "OK"),
}


def _endless(seen: list[httpx.Request]):
    """Every /hop/N redirects to /hop/N+1."""

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        n = int(request.url.path.rsplit("/", 1)[-1])
        return httpx.Response(
            302,
            headers={"Location": f"https://example.org/hop/{n + 1}"},
            text=f"hop {n}",
            request=request,
        )

    return handler


class RecordingLogger:
    def __init__(self) -> None:
        self.events: list[tuple] = []

    def log_hop(self, hop, method, url, status):
        self.events.append(("hop", hop, method, url, status))

    def log_redirect(self, hop, target_url):
        self.events.append(("redirect", hop, target_url))

    def log_error(self, url, code, message):
        self.events.append(("error", url, code, message))

    def log_result(self, url, method, result):
        self.events.append(("result", url, method, result.error_message))


@pytest.mark.parametrize("mode", ["manual", "native"])
def test_redirect_chain_below_ceiling(make_orchestrator, serve, mode: str) -> None:
    orchestrator = make_orchestrator(serve(CHAIN), redirect_mode=mode)

    result = orchestrator.fetch(A, use_post=False)

    assert result.body == "OK"
    assert result.error_code == 0
    assert result.error_message == ""
    assert result.header_info["http_status"] == 200
    assert result.header_info["effective_url"] == C
    assert result.header_info["redirect_count"] == 2


def test_manual_chain_requests_each_hop_once(make_orchestrator, serve) -> None:
    seen: list[httpx.Request] = []
    orchestrator = make_orchestrator(serve(CHAIN, seen), redirect_mode="manual")

    orchestrator.fetch(A, use_post=False)

    assert [str(r.url) for r in seen] == [A, B, C]


def test_endless_chain_stops_at_ceiling_with_last_body(make_orchestrator) -> None:
    seen: list[httpx.Request] = []
    orchestrator = make_orchestrator(_endless(seen), redirect_mode="manual", max_redirects=3)

    result = orchestrator.fetch("https://example.org/hop/0", use_post=False)

    assert result.error_message == MAX_REDIRECTS_MESSAGE
    assert result.error_code == 0
    assert result.body == "hop 2"
    assert result.header_info["http_status"] == 302
    assert result.header_info["redirect_count"] == 2
    assert len(seen) == 3


def test_redirect_cycle_is_broken_by_ceiling(make_orchestrator, serve) -> None:
    seen: list[httpx.Request] = []
    routes = {
        A: (302, {"Location": B}, "at a"),
        B: (301, {"Location": A}, "at b"),
    }
    orchestrator = make_orchestrator(serve(routes, seen), redirect_mode="manual", max_redirects=5)

    result = orchestrator.fetch(A, use_post=False)

    assert result.error_message == MAX_REDIRECTS_MESSAGE
    assert result.body == "at a"
    assert len(seen) == 5


def test_chain_of_exactly_max_redirects_hits_ceiling(make_orchestrator, serve) -> None:
    seen: list[httpx.Request] = []
    routes = {
        f"https://example.org/{n}": (302, {"Location": f"https://example.org/{n + 1}"}, f"b{n}")
        for n in (1, 2, 3)
    }
    orchestrator = make_orchestrator(serve(routes, seen), redirect_mode="manual", max_redirects=3)

    result = orchestrator.fetch("https://example.org/1", use_post=False)

    assert result.error_message == MAX_REDIRECTS_MESSAGE
    assert result.body == "b3"
    assert result.header_info["http_status"] == 302
    assert len(seen) == 3


def test_chain_below_max_redirects_reaches_final_page(make_orchestrator, serve) -> None:
    orchestrator = make_orchestrator(serve(CHAIN), redirect_mode="manual", max_redirects=3)

    result = orchestrator.fetch(A, use_post=False)

    assert result.error_message == ""
    assert result.body == "OK"


def test_zero_ceiling_stops_on_first_redirect(make_orchestrator, serve) -> None:
    orchestrator = make_orchestrator(serve(CHAIN), redirect_mode="manual", max_redirects=0)

    result = orchestrator.fetch(A, use_post=False)

    assert result.error_message == MAX_REDIRECTS_MESSAGE
    assert result.body == "moved to b"


def test_native_ceiling_surfaces_transport_error(make_orchestrator) -> None:
    seen: list[httpx.Request] = []
    orchestrator = make_orchestrator(_endless(seen), redirect_mode="native", max_redirects=2)

    result = orchestrator.fetch("https://example.org/hop/0", use_post=False)

    assert result.error_code == 47
    assert result.error_message == "Maximum (2) redirects followed"
    assert result.body == ""
    assert len(seen) == 3


def test_get_params_are_all_encoded(make_orchestrator, serve) -> None:
    seen: list[httpx.Request] = []
    url = "https://example.org/search"
    orchestrator = make_orchestrator(serve({}, seen), redirect_mode="manual")

    orchestrator.fetch(url, {"a": "1", "b": "two words"}, use_post=False)

    query = seen[0].url.query.decode()
    assert seen[0].method == "GET"
    assert "a=1" in query
    assert "b=two%20words" in query
    assert seen[0].content == b""


def test_post_params_are_resent_on_every_manual_hop(make_orchestrator, serve) -> None:
    seen: list[httpx.Request] = []
    orchestrator = make_orchestrator(serve(CHAIN, seen), redirect_mode="manual")

    result = orchestrator.fetch(A, {"a": "1", "b": "two words"})

    assert result.body == "OK"
    assert [r.method for r in seen] == ["POST", "POST", "POST"]
    for request in seen:
        assert parse_qs(request.content.decode()) == {"a": ["1"], "b": ["two words"]}


def test_credentials_and_user_agent_sent_on_every_hop(make_orchestrator, serve) -> None:
    seen: list[httpx.Request] = []
    orchestrator = make_orchestrator(serve(CHAIN, seen), redirect_mode="manual")

    orchestrator.fetch(A, use_post=False, credentials="alice:s3cr:et")

    expected = "Basic " + base64.b64encode(b"alice:s3cr:et").decode()
    assert len(seen) == 3
    for request in seen:
        assert request.headers["Authorization"] == expected
        assert request.headers["User-Agent"] == "hopfetch-test/1.0"


def test_no_credentials_means_no_auth_header(make_orchestrator, serve) -> None:
    seen: list[httpx.Request] = []
    orchestrator = make_orchestrator(serve(CHAIN, seen), redirect_mode="manual")

    orchestrator.fetch(C, use_post=False)

    assert "Authorization" not in seen[0].headers


def test_native_mode_sets_referer_on_followed_hops(make_orchestrator, serve) -> None:
    seen: list[httpx.Request] = []
    orchestrator = make_orchestrator(serve(CHAIN, seen), redirect_mode="native")

    orchestrator.fetch(A, use_post=False)

    assert "Referer" not in seen[0].headers
    assert seen[1].headers["Referer"] == A
    assert seen[2].headers["Referer"] == B


@pytest.mark.parametrize(
    "headers",
    [{}, {"Location": "mailto:nobody@example.org"}, {"Location": "http://"}],
)
def test_redirect_without_usable_target_is_terminal(make_orchestrator, serve, headers) -> None:
    seen: list[httpx.Request] = []
    routes = {A: (302, headers, "redirect page body")}
    orchestrator = make_orchestrator(serve(routes, seen), redirect_mode="manual")

    result = orchestrator.fetch(A, use_post=False)

    assert result.body == "redirect page body"
    assert result.error_code == 0
    assert result.error_message == ""
    assert result.header_info["http_status"] == 302
    assert len(seen) == 1


def test_relative_location_is_resolved(make_orchestrator, serve) -> None:
    routes = {
        A: (303, {"Location": "/c"}, ""),
        C: (200, {}, "landed"),
    }
    orchestrator = make_orchestrator(serve(routes), redirect_mode="manual")

    result = orchestrator.fetch(A, use_post=False)

    assert result.body == "landed"
    assert result.header_info["effective_url"] == C


def test_temporary_redirect_is_not_followed_manually(make_orchestrator, serve) -> None:
    routes = {A: (307, {"Location": B}, "temporary"), B: (200, {}, "b")}
    orchestrator = make_orchestrator(serve(routes), redirect_mode="manual")

    result = orchestrator.fetch(A, use_post=False)

    assert result.body == "temporary"
    assert result.header_info["http_status"] == 307


@pytest.mark.parametrize(
    ("exc", "code"),
    [
        (httpx.ConnectError("[Errno 111] Connection refused"), 7),
        (httpx.ConnectError("[Errno -2] Name or service not known"), 6),
        (httpx.ReadTimeout("timed out"), 28),
        (httpx.ConnectTimeout("timed out"), 28),
    ],
)
@pytest.mark.parametrize("mode", ["manual", "native"])
def test_transport_errors_are_returned_as_data(make_orchestrator, mode, exc, code) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise exc

    orchestrator = make_orchestrator(handler, redirect_mode=mode)

    result = orchestrator.fetch(A, use_post=False)

    assert result.body == ""
    assert result.error_code == code
    assert result.error_message == str(exc)
    assert result.header_info["http_status"] == 0
    assert result.header_info["effective_url"] == A


@pytest.mark.parametrize("mode", ["manual", "native"])
def test_malformed_url_with_get_params_is_returned_as_data(make_orchestrator, serve, mode: str) -> None:
    logger = RecordingLogger()
    orchestrator = make_orchestrator(serve({}), logger=logger, redirect_mode=mode)

    result = orchestrator.fetch("http://[bad/x", {"a": "1"}, use_post=False)

    assert result.body == ""
    assert result.error_code == TransportErrorCode.URL_MALFORMAT
    assert result.header_info["http_status"] == 0
    assert result.header_info["effective_url"] == "http://[bad/x"
    assert logger.events[-1][0] == "result"


def test_direct_response_is_identical_in_both_modes(make_orchestrator, serve) -> None:
    routes = {C: (200, {"Content-Type": "text/html"}, "<h1>same</h1>")}

    def outcome(mode: str) -> tuple:
        result = make_orchestrator(serve(routes), redirect_mode=mode).fetch(C, use_post=False)
        info = result.header_info
        return (
            result.body,
            result.error_code,
            result.error_message,
            info["http_status"],
            info["effective_url"],
            info["content_type"],
            info["redirect_count"],
        )

    assert outcome("native") == outcome("manual")


@pytest.mark.parametrize(("sandboxed", "second_method"), [("1", "POST"), ("", "GET")])
def test_auto_mode_follows_sandbox_flag(
    make_orchestrator, serve, monkeypatch, sandboxed, second_method
) -> None:
    # Native following turns POST into GET on 302; manual following resends POST
    monkeypatch.setenv(SANDBOX_ENV_VAR, sandboxed)
    seen: list[httpx.Request] = []
    orchestrator = make_orchestrator(serve(CHAIN, seen), redirect_mode="auto")

    result = orchestrator.fetch(A, {"k": "v"})

    assert result.body == "OK"
    assert seen[1].method == second_method


def test_logger_receives_hop_events(make_orchestrator, serve) -> None:
    logger = RecordingLogger()
    orchestrator = make_orchestrator(serve(CHAIN), logger=logger, redirect_mode="manual")

    orchestrator.fetch(A, use_post=False)

    assert logger.events == [
        ("hop", 0, "GET", A, 302),
        ("redirect", 0, B),
        ("hop", 1, "GET", B, 302),
        ("redirect", 1, C),
        ("hop", 2, "GET", C, 200),
        ("result", A, "GET", ""),
    ]


def test_client_is_closed_on_every_exit_path(serve) -> None:
    clients: list[httpx.Client] = []

    class TrackingExecutor(RequestExecutor):
        def execute(self, client, *args, **kwargs):
            clients.append(client)
            return super().execute(client, *args, **kwargs)

    config = FetchConfig(redirect_mode="manual", max_redirects=1)
    executor = TrackingExecutor(transport=httpx.MockTransport(serve(CHAIN)))

    result = FetchOrchestrator(config=config, executor=executor).fetch(A, use_post=False)

    assert result.error_message == MAX_REDIRECTS_MESSAGE
    assert len(set(map(id, clients))) == 1
    assert clients[0].is_closed


def test_fetch_result_raise_for_error() -> None:
    ok = FetchResult(body="fine")
    assert ok.raise_for_error() is ok

    with pytest.raises(RedirectLimitExceeded):
        FetchResult(body="x", error_message=MAX_REDIRECTS_MESSAGE).raise_for_error()

    with pytest.raises(TransportError) as excinfo:
        FetchResult(body="", error_code=28, error_message="timed out").raise_for_error()
    assert excinfo.value.code == 28

"""Fetch orchestration: mode selection and the redirect hop loop."""

import logging
from collections.abc import Mapping

import httpx

from core.config import FetchConfig, native_redirects_permitted
from core.exceptions import TransportErrorCode
from core.headers import parse_credentials
from core.protocols import FetchLogger, NullLogger
from core.query import append_query, encode_query
from core.redirects import RedirectResolver
from core.request_types import (
    MAX_REDIRECTS_MESSAGE,
    FetchRequest,
    FetchResult,
    HeaderMode,
    Method,
    Terminal,
)
from services.assembler import ResponseAssembler
from services.executor import RequestExecutor

logger = logging.getLogger(__name__)


class FetchOrchestrator:
    """Fetch a URL, following redirects natively or hop by hop."""

    def __init__(
        self,
        config: FetchConfig | None = None,
        executor: RequestExecutor | None = None,
        resolver: RedirectResolver | None = None,
        assembler: ResponseAssembler | None = None,
        logger: FetchLogger | None = None,
    ) -> None:
        self._config = config or FetchConfig()
        self._executor = executor or RequestExecutor()
        self._resolver = resolver or RedirectResolver()
        self._assembler = assembler or ResponseAssembler()
        self._logger = logger or NullLogger()

    @property
    def config(self) -> FetchConfig:
        return self._config

    def fetch(
        self,
        url: str,
        params: Mapping[str, str] | None = None,
        use_post: bool = True,
        credentials: str = "",
    ) -> FetchResult:
        """Fetch ``url`` after sending ``params`` via POST or GET."""
        try:
            request = self.build_request(url, params, use_post, credentials)
        except ValueError as e:
            return self._malformed(url, use_post, str(e))
        native = native_redirects_permitted(self._config)
        logger.debug("Fetching %s %s (%s mode)", request.method.value, request.url, "native" if native else "manual")

        with self._executor.session(self._config, native_redirects=native) as client:
            if native:
                result = self._fetch_native(client, request)
            else:
                result = self._fetch_manual(client, request)

        self._logger.log_result(request.url, request.method.value, result)
        return result

    def build_request(
        self,
        url: str,
        params: Mapping[str, str] | None = None,
        use_post: bool = True,
        credentials: str = "",
    ) -> FetchRequest:
        """Build the request sent on every hop; GET params go into the URL."""
        params = params or {}
        if use_post:
            return FetchRequest(
                url=url,
                method=Method.POST,
                params=tuple((str(k), str(v)) for k, v in params.items()),
                credentials=parse_credentials(credentials),
            )
        if params:
            url = append_query(url, encode_query(params))
        return FetchRequest(url=url, method=Method.GET, credentials=parse_credentials(credentials))

    def _fetch_native(self, client: httpx.Client, request: FetchRequest) -> FetchResult:
        """Let the transport follow redirects in a single call."""
        tx = self._executor.execute(
            client, request, self._config, HeaderMode.BODY_ONLY, native_redirects=True
        )
        self._log_transaction(0, request, tx.status_code, tx.error_code, tx.error_message)
        return self._assembler.assemble(tx.body, tx.error_code, tx.error_message, tx.info)

    def _fetch_manual(self, client: httpx.Client, request: FetchRequest) -> FetchResult:
        """Follow redirects hop by hop until a terminal response or the ceiling."""
        hop = 0
        while True:
            tx = self._executor.execute(
                client, request, self._config, HeaderMode.HEADER_AND_BODY, native_redirects=False
            )
            self._log_transaction(hop, request, tx.status_code, tx.error_code, tx.error_message)
            decision = self._resolver.resolve(tx)

            if isinstance(decision, Terminal):
                info = {**decision.info, "redirect_count": hop}
                return self._assembler.assemble(decision.body, tx.error_code, tx.error_message, info)

            # hop + 1 redirect responses seen so far
            if hop + 1 >= self._config.max_redirects:
                logger.info("Redirect ceiling (%d) reached at %s", self._config.max_redirects, request.url)
                info = {**decision.info, "redirect_count": hop}
                return self._assembler.assemble(
                    decision.body, tx.error_code, tx.error_message, info, MAX_REDIRECTS_MESSAGE
                )

            self._logger.log_redirect(hop, decision.target_url)
            request = request.with_url(decision.target_url)
            hop += 1

    def _log_transaction(
        self,
        hop: int,
        request: FetchRequest,
        status: int,
        error_code: int,
        error_message: str,
    ) -> None:
        if error_code:
            self._logger.log_error(request.url, error_code, error_message)
        else:
            self._logger.log_hop(hop, request.method.value, request.url, status)

    def _malformed(self, url: str, use_post: bool, message: str) -> FetchResult:
        code = TransportErrorCode.URL_MALFORMAT
        logger.warning("Malformed URL %s: %s", url, message)
        self._logger.log_error(url, int(code), message)
        result = self._assembler.assemble("", int(code), message, {"url": url, "effective_url": url})
        self._logger.log_result(url, Method.POST.value if use_post else Method.GET.value, result)
        return result


def fetch(
    url: str,
    params: Mapping[str, str] | None = None,
    use_post: bool = True,
    credentials: str = "",
    *,
    config: FetchConfig | None = None,
    logger: FetchLogger | None = None,
) -> FetchResult:
    """Fetch a remote page with a one-off orchestrator."""
    return FetchOrchestrator(config=config, logger=logger).fetch(url, params, use_post, credentials)

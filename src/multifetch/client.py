"""
Public entry point.

``HttpClient`` registers requests into a batch, fires the whole batch
concurrently, and hands back each response by the key issued at registration.
It also performs one-off synchronous requests outside the batch.

Example::

    with HttpClient() as client:
        first = client.register("https://example.org/a")
        second = client.register("https://example.org/b", method="POST", body="x=1")
        client.execute_all()
        print(client.get_result(first).status_code)
"""

from __future__ import annotations

import secrets
import typing as t

from multifetch.batch import BatchExecutor
from multifetch.exceptions import HandleCreationError
from multifetch.keys import RandomSource
from multifetch.logging import get_logger
from multifetch.models import (
    BatchState,
    HeaderValue,
    HttpMethod,
    HttpResponse,
    RequestSpec,
    SessionOptions,
)
from multifetch.response import build_response
from multifetch.transport import (
    AsyncClientFactory,
    create_handle,
    default_client_factory,
    execute,
)

log = get_logger(__name__)


class HttpClient:
    """
    Batching HTTP client.

    Parameters
    ----------
    options : SessionOptions | None, optional
        Initial session options. Read from the environment when omitted.
    client_factory : AsyncClientFactory, optional
        Builds the ``httpx.AsyncClient`` instances used for every transfer.
    random_bytes : RandomSource, optional
        Strong random source for request keys.
    logger : typing.Any | None, optional
        structlog logger, the module logger by default.
    """

    def __init__(
        self,
        *,
        options: SessionOptions | None = None,
        client_factory: AsyncClientFactory = default_client_factory,
        random_bytes: RandomSource = secrets.token_bytes,
        logger: t.Any | None = None,
    ) -> None:
        self._options = options if options is not None else SessionOptions.from_env()
        self._client_factory = client_factory
        self._log = logger if logger is not None else log
        self._batch = BatchExecutor(
            client_factory=client_factory,
            random_bytes=random_bytes,
            logger=self._log,
        )

    @property
    def options(self) -> SessionOptions:
        return self._options

    @property
    def state(self) -> BatchState:
        return self._batch.state

    def set_timeout(self, seconds: int) -> None:
        self._options = SessionOptions(
            **{**self._options.model_dump(), "timeout_seconds": seconds}
        )

    def follow_redirects(self, enabled: bool = True) -> None:
        self._options = SessionOptions(
            **{**self._options.model_dump(), "follow_redirects": enabled}
        )

    def register(
        self,
        url: str,
        headers: t.Mapping[str, HeaderValue] | None = None,
        method: str | HttpMethod = HttpMethod.GET,
        body: str = "",
        tls_verify: bool = True,
    ) -> str:
        """
        Register a request for the next batch run.

        Returns
        -------
        str
            Key to pass to ``get_result`` once the batch ran.
        """
        spec = RequestSpec(
            url=url,
            headers=dict(headers or {}),
            method=method,
            body=body,
            tls_verify=tls_verify,
        )
        return self._batch.register(spec)

    def execute_all(self, options: SessionOptions | None = None) -> None:
        """
        Start every registered request without waiting for them.

        Parameters
        ----------
        options : SessionOptions | None, optional
            Settings for this run only, the client's current options by default.
        """
        self._batch.execute_all(options if options is not None else self._options)

    def ready(self) -> bool:
        return self._batch.ready()

    def wait_for_completion(self) -> dict[str, HttpResponse]:
        return self._batch.wait_for_completion()

    def get_result(self, key: str) -> HttpResponse:
        """
        Return the response for ``key``, blocking until the batch finished.

        A batch that was registered but never started is started first with
        the current options.

        Raises
        ------
        KeyNotFoundError
            If no response is stored under ``key``.
        """
        if self._batch.state is BatchState.REGISTERED:
            self._log.debug(event="Starting batch on first lookup", requests=len(self._batch))
            self.execute_all()
        return self._batch.get_result(key)

    def results(self) -> dict[str, HttpResponse]:
        if self._batch.state is BatchState.REGISTERED:
            self.execute_all()
        return self._batch.results()

    def request_once(
        self,
        url: str,
        headers: t.Mapping[str, HeaderValue] | None = None,
        method: str | HttpMethod = HttpMethod.GET,
        body: str = "",
        tls_verify: bool = True,
        options: SessionOptions | None = None,
    ) -> HttpResponse:
        """
        Perform a single request synchronously, outside the batch.

        Raises
        ------
        HandleCreationError
            If the request cannot be configured.
        TransferError
            If the transfer failed for a reason other than a timeout.
        """
        spec = RequestSpec(
            url=url,
            headers=dict(headers or {}),
            method=method,
            body=body,
            tls_verify=tls_verify,
        )
        try:
            handle = create_handle(spec, options if options is not None else self._options)
        except HandleCreationError as error:
            self._log.error(
                event="Failed to initialize transfer handle",
                method=spec.method,
                url=spec.url,
                error=error.reason,
            )
            raise
        result = execute(handle, client_factory=self._client_factory)
        return build_response(result, logger=self._log.bind(url=spec.url))

    def clear(self) -> None:
        self._batch.clear()

    def __enter__(self) -> "HttpClient":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: t.Any,
    ) -> None:
        self.clear()

"""
Batch executor: register requests, fire them together, collect results by key.

Lifecycle of a batch::

    EMPTY --register--> REGISTERED --execute_all--> EXECUTING --drain--> COMPLETE
                                                          \\--fatal--> FAILED

``clear`` returns to EMPTY from any state. ``execute_all`` may also be called
again from COMPLETE or FAILED, re-issuing every registered request.
"""

from __future__ import annotations

import secrets
import typing as t

from multifetch.exceptions import (
    BatchStateError,
    HandleCreationError,
    KeyNotFoundError,
    MultiplexError,
)
from multifetch.keys import KEY_BYTES, RandomSource, generate_key
from multifetch.logging import get_logger
from multifetch.models import BatchState, HttpResponse, RequestSpec, SessionOptions
from multifetch.response import build_response
from multifetch.transport import (
    AsyncClientFactory,
    Multiplexer,
    MultiStatus,
    TransferHandle,
    create_handle,
    default_client_factory,
)

log = get_logger(__name__)


class BatchExecutor:
    """
    Own the registered requests, the live handles and the result table of one
    batch.

    The executor is single-threaded: the only blocking call is the drain,
    reached through ``wait_for_completion`` or a lookup on a running batch.

    Parameters
    ----------
    client_factory : AsyncClientFactory, optional
        Builds the ``httpx.AsyncClient`` instances used by the multiplexer.
    random_bytes : RandomSource, optional
        Strong random source used for request keys.
    logger : typing.Any | None, optional
        structlog logger, the module logger by default.
    """

    def __init__(
        self,
        *,
        client_factory: AsyncClientFactory = default_client_factory,
        random_bytes: RandomSource = secrets.token_bytes,
        logger: t.Any | None = None,
    ) -> None:
        self._client_factory = client_factory
        self._random_bytes = random_bytes
        self._log = logger if logger is not None else log

        self._specs: dict[str, RequestSpec] = {}
        self._handles: dict[str, TransferHandle] = {}
        self._results: dict[str, HttpResponse] = {}
        self._multiplexer: Multiplexer | None = None
        self._state = BatchState.EMPTY

    @property
    def state(self) -> BatchState:
        return self._state

    def __len__(self) -> int:
        return len(self._specs)

    def __contains__(self, key: object) -> bool:
        return key in self._specs

    def register(self, spec: RequestSpec) -> str:
        """
        Add a request to the batch.

        Parameters
        ----------
        spec : RequestSpec
            Request to register.

        Returns
        -------
        str
            Key under which the result will be stored.

        Raises
        ------
        BatchStateError
            If the batch already started; clear it first.
        KeyGenerationError
            If no key could be generated.
        """
        if self._state not in (BatchState.EMPTY, BatchState.REGISTERED):
            raise BatchStateError(f"Cannot register requests on a {self._state.value} batch")
        key = generate_key(KEY_BYTES, random_bytes=self._random_bytes)
        self._specs[key] = spec
        self._state = BatchState.REGISTERED
        self._log.debug(event="Registered request", key=key, method=spec.method, url=spec.url)
        return key

    def execute_all(self, options: SessionOptions) -> None:
        """
        Create a handle per registered request and start every transfer.

        Returns as soon as the transfers are kicked off.

        Parameters
        ----------
        options : SessionOptions
            Timeout and redirect settings applied to every request of this run.

        Raises
        ------
        BatchStateError
            If a previous run is still executing.
        HandleCreationError
            If any handle cannot be created. Nothing is sent in that case.
        """
        if self._state is BatchState.EXECUTING:
            raise BatchStateError("Batch is already executing; wait for it or clear it first")

        multiplexer = Multiplexer(client_factory=self._client_factory)
        handles: dict[str, TransferHandle] = {}
        for key, spec in self._specs.items():
            try:
                handle = create_handle(spec, options)
            except HandleCreationError as error:
                self._log.error(
                    event="Failed to initialize transfer handle",
                    key=key,
                    method=spec.method,
                    url=spec.url,
                    error=error.reason,
                )
                multiplexer.close()
                raise
            handles[key] = handle
            multiplexer.add(handle)

        self._handles = handles
        self._multiplexer = multiplexer
        self._state = BatchState.EXECUTING
        multiplexer.perform()
        self._log.debug(
            event="Started batch",
            requests=len(handles),
            timeout_seconds=options.timeout_seconds,
            follow_redirects=options.follow_redirects,
        )

    def ready(self) -> bool:
        """
        Poll without blocking.

        Returns
        -------
        bool
            ``True`` once a drain would not block: the batch is complete, or it
            is executing and no transfer is still running.
        """
        if self._state is BatchState.COMPLETE:
            return True
        if self._state is not BatchState.EXECUTING or self._multiplexer is None:
            return False
        _, running = self._multiplexer.perform()
        return running == 0

    def wait_for_completion(self) -> dict[str, HttpResponse]:
        """
        Block until every transfer finished and build the result table.

        Returns
        -------
        dict[str, HttpResponse]
            Copy of the result table, keyed by request key.

        Raises
        ------
        BatchStateError
            If requests are registered but the batch was never started, or the
            last run failed.
        MultiplexError
            If the multiplexer fails while draining.
        TransferError
            If any request hit a transport error other than a timeout.
        """
        if self._state is BatchState.EXECUTING:
            self._drain()
        elif self._state is BatchState.REGISTERED:
            raise BatchStateError("Batch has not been started")
        elif self._state is BatchState.FAILED:
            raise BatchStateError("Last run of this batch failed; execute it again or clear it")
        return dict(self._results)

    def _drain(self) -> None:
        multiplexer = self._multiplexer
        assert multiplexer is not None

        self._state = BatchState.FAILED
        results: dict[str, HttpResponse] = {}
        try:
            if multiplexer.drain() is not MultiStatus.OK:
                self._log.error(event="Multiplexer failed", error=multiplexer.error_text)
                raise MultiplexError(f"Multiplexer failed while draining: {multiplexer.error_text}")

            for key, handle in self._handles.items():
                logger = self._log.bind(key=key, url=handle.spec.url)
                results[key] = build_response(multiplexer.info(handle), logger=logger)
                multiplexer.remove(handle)
        finally:
            multiplexer.close()
            self._multiplexer = None
            self._handles = {}

        self._results = results
        self._state = BatchState.COMPLETE
        self._log.debug(event="Batch complete", responses=len(results))

    def get_result(self, key: str) -> HttpResponse:
        """
        Look up the response stored under ``key``, draining first if the batch
        is still executing.

        Raises
        ------
        KeyNotFoundError
            If the result table holds nothing under ``key``.
        """
        self.wait_for_completion()
        try:
            return self._results[key]
        except KeyError:
            self._log.error(event="Unknown request key", key=key)
            raise KeyNotFoundError(key) from None

    def results(self) -> dict[str, HttpResponse]:
        return self.wait_for_completion()

    def clear(self) -> None:
        """
        Forget registered requests, live handles and results together.
        """
        if self._multiplexer is not None:
            self._multiplexer.close()
            self._multiplexer = None
        self._specs = {}
        self._handles = {}
        self._results = {}
        self._state = BatchState.EMPTY

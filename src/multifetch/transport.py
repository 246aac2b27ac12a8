"""
Transport adapter built on httpx.

A ``TransferHandle`` is one configured request. Handles are driven by a
``Multiplexer``, which runs every transfer on a private asyncio event loop and
exposes the step / block-until-ready / read / remove / close primitives the
batch executor drives. ``execute`` drains a one-handle multiplexer for
single synchronous calls, so both paths share the whole-transfer deadline.
"""

from __future__ import annotations

import asyncio
import typing as t
from dataclasses import dataclass
from enum import Enum

import httpx

from multifetch.exceptions import HandleCreationError, MultiplexError
from multifetch.headers import render_header_fields
from multifetch.logging import get_logger
from multifetch.models import HttpMethod, RequestSpec, SessionOptions

log = get_logger(__name__)

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"
DEFAULT_SELECT_TIMEOUT = 1.0

AsyncClientFactory = t.Callable[..., httpx.AsyncClient]


class TransferCode(str, Enum):
    OK = "ok"
    OPERATION_TIMEDOUT = "operation_timedout"
    UNSUPPORTED_PROTOCOL = "unsupported_protocol"
    COULDNT_CONNECT = "couldnt_connect"
    PROXY_ERROR = "proxy_error"
    SEND_ERROR = "send_error"
    RECV_ERROR = "recv_error"
    PROTOCOL_ERROR = "protocol_error"
    TOO_MANY_REDIRECTS = "too_many_redirects"
    DECODING_ERROR = "decoding_error"
    UNKNOWN = "unknown"


class MultiStatus(str, Enum):
    OK = "ok"
    INTERNAL_ERROR = "internal_error"


# Checked in order: the first matching class wins.
_ERROR_CODES: tuple[tuple[type[httpx.RequestError], TransferCode], ...] = (
    (httpx.TimeoutException, TransferCode.OPERATION_TIMEDOUT),
    (httpx.UnsupportedProtocol, TransferCode.UNSUPPORTED_PROTOCOL),
    (httpx.ProxyError, TransferCode.PROXY_ERROR),
    (httpx.ConnectError, TransferCode.COULDNT_CONNECT),
    (httpx.WriteError, TransferCode.SEND_ERROR),
    (httpx.ReadError, TransferCode.RECV_ERROR),
    (httpx.ProtocolError, TransferCode.PROTOCOL_ERROR),
    (httpx.NetworkError, TransferCode.RECV_ERROR),
    (httpx.TooManyRedirects, TransferCode.TOO_MANY_REDIRECTS),
    (httpx.DecodingError, TransferCode.DECODING_ERROR),
)


def classify_error(error: httpx.RequestError) -> TransferCode:
    """
    Map an httpx request error to a transfer code.

    Parameters
    ----------
    error : httpx.RequestError
        Error raised while sending a request.

    Returns
    -------
    TransferCode
        Matching code, ``TransferCode.UNKNOWN`` when nothing matches.
    """
    for error_type, code in _ERROR_CODES:
        if isinstance(error, error_type):
            return code
    return TransferCode.UNKNOWN


@dataclass(frozen=True)
class TransferResult:
    """
    Raw outcome of one finished transfer.

    Parameters
    ----------
    code : TransferCode
        Transport outcome, ``TransferCode.OK`` when the transfer succeeded.
    blob : str | None
        Header block followed by the body, ``None`` when nothing was read.
    http_status : int
        HTTP status code, ``0`` when no response was received.
    error : str
        Transport error text, empty on success.
    header_size : int
        Length of the header block at the start of ``blob``.
    """

    code: TransferCode
    blob: str | None
    http_status: int = 0
    error: str = ""
    header_size: int = 0

    @classmethod
    def from_response(cls, response: httpx.Response) -> "TransferResult":
        status_line = f"{response.http_version} {response.status_code} {response.reason_phrase}"
        lines = [status_line.rstrip()]
        lines.extend(
            f"{name.decode('latin-1')}: {value.decode('latin-1')}"
            for name, value in response.headers.raw
        )
        header_block = "\r\n".join(lines) + "\r\n\r\n"
        # Without a declared charset the body is kept byte for byte.
        if response.charset_encoding is None:
            body = response.content.decode("latin-1")
        else:
            body = response.text
        return cls(
            code=TransferCode.OK,
            blob=header_block + body,
            http_status=response.status_code,
            header_size=len(header_block),
        )

    @classmethod
    def from_error(cls, error: httpx.RequestError) -> "TransferResult":
        return cls(
            code=classify_error(error),
            blob=None,
            error=str(error) or type(error).__name__,
        )


@dataclass(eq=False)
class TransferHandle:
    """
    A configured request ready to be sent.

    Parameters
    ----------
    spec : RequestSpec
        Request the handle was built from.
    request : httpx.Request
        Request with headers, body and per-operation timeouts applied.
    follow_redirects : bool
        Whether redirects are followed for this transfer.
    timeout_seconds : float
        Deadline for the whole transfer, redirects and body included.
    result : TransferResult | None
        Filled in once the transfer finished.
    """

    spec: RequestSpec
    request: httpx.Request
    follow_redirects: bool
    timeout_seconds: float
    result: TransferResult | None = None

    @property
    def verify(self) -> bool:
        return self.spec.tls_verify


def _method_setup(
    *, spec: RequestSpec, fields: list[tuple[str, str]]
) -> tuple[str, bytes | None]:
    if spec.method == HttpMethod.POST.value:
        if not any(name.lower() == "content-type" for name, _ in fields):
            fields.append(("Content-Type", FORM_CONTENT_TYPE))
        return HttpMethod.POST.value, spec.body.encode("utf-8")
    if spec.method == HttpMethod.DELETE.value:
        return HttpMethod.DELETE.value, None
    if spec.method != HttpMethod.GET.value:
        log.debug(event="Sending unhandled method as GET", method=spec.method, url=spec.url)
    return HttpMethod.GET.value, None


def create_handle(spec: RequestSpec, options: SessionOptions) -> TransferHandle:
    """
    Build a transport handle for one request.

    Parameters
    ----------
    spec : RequestSpec
        Request to configure.
    options : SessionOptions
        Timeout and redirect settings for the transfer.

    Returns
    -------
    TransferHandle
        Configured handle.

    Raises
    ------
    HandleCreationError
        If the URL is not an absolute http(s)-style URL, or httpx rejects the
        headers or body.
    """
    fields = render_header_fields(spec.headers)
    method, content = _method_setup(spec=spec, fields=fields)
    timeout_seconds = float(options.timeout_seconds)
    try:
        request = httpx.Request(
            method,
            spec.url,
            headers=fields,
            content=content,
            extensions={"timeout": httpx.Timeout(timeout_seconds).as_dict()},
        )
    except (httpx.InvalidURL, ValueError, TypeError) as error:
        raise HandleCreationError(url=spec.url, reason=str(error)) from error
    if not request.url.scheme or not request.url.host:
        raise HandleCreationError(url=spec.url, reason="URL must be absolute")
    if not spec.tls_verify:
        log.debug(event="TLS verification disabled", url=spec.url)
    return TransferHandle(
        spec=spec,
        request=request,
        follow_redirects=options.follow_redirects,
        timeout_seconds=timeout_seconds,
    )


def default_client_factory(*, verify: bool) -> httpx.AsyncClient:
    return httpx.AsyncClient(verify=verify)


class Multiplexer:
    """
    Drive many transfers concurrently from a single thread.

    Transfers run as tasks on an event loop owned by the multiplexer. The loop
    only runs inside ``perform``, ``select`` and ``drain``, so callers stay
    synchronous and must not call them from inside a running event loop.

    Parameters
    ----------
    client_factory : AsyncClientFactory, optional
        Builds one ``httpx.AsyncClient`` per TLS verification mode.
    """

    def __init__(self, *, client_factory: AsyncClientFactory = default_client_factory) -> None:
        self._client_factory = client_factory
        self._loop = asyncio.new_event_loop()
        self._clients: dict[bool, httpx.AsyncClient] = {}
        self._tasks: dict[TransferHandle, asyncio.Task[None]] = {}
        self._failure: BaseException | None = None
        self._closed = False

    def __len__(self) -> int:
        return len(self._tasks)

    @property
    def error_text(self) -> str:
        """
        Describe the failure behind the last non-OK status.
        """
        if self._failure is None:
            return ""
        return f"{type(self._failure).__name__}: {self._failure}"

    def _client(self, *, verify: bool) -> httpx.AsyncClient:
        client = self._client_factory(verify=verify) if verify not in self._clients else None
        if client is not None:
            self._clients[verify] = client
        return self._clients[verify]

    async def _transfer(self, handle: TransferHandle) -> None:
        client = self._client(verify=handle.verify)
        try:
            response = await asyncio.wait_for(
                client.send(handle.request, follow_redirects=handle.follow_redirects),
                timeout=handle.timeout_seconds,
            )
        except asyncio.TimeoutError:
            handle.result = TransferResult(
                code=TransferCode.OPERATION_TIMEDOUT,
                blob=None,
                error=f"Transfer exceeded {handle.timeout_seconds:g} seconds",
            )
        except httpx.RequestError as error:
            handle.result = TransferResult.from_error(error)
        else:
            handle.result = TransferResult.from_response(response)

    def add(self, handle: TransferHandle) -> None:
        """
        Schedule a handle. Nothing is sent until the next ``perform``.
        """
        self._tasks[handle] = self._loop.create_task(self._transfer(handle))

    def perform(self) -> tuple[MultiStatus, int]:
        """
        Run the event loop for one scheduling step.

        Returns
        -------
        tuple[MultiStatus, int]
            Status of the multiplexer and the number of transfers still running.
            The status is ``MultiStatus.INTERNAL_ERROR`` when a transfer died
            with something other than an httpx request error.
        """
        self._loop.run_until_complete(asyncio.sleep(0))
        running = 0
        status = MultiStatus.OK
        for task in self._tasks.values():
            if not task.done():
                running += 1
            elif not task.cancelled() and task.exception() is not None:
                self._failure = task.exception()
                status = MultiStatus.INTERNAL_ERROR
        return status, running

    def select(self, timeout: float = DEFAULT_SELECT_TIMEOUT) -> int:
        """
        Block until at least one running transfer finishes.

        Parameters
        ----------
        timeout : float, optional
            Upper bound on the wait, in seconds.

        Returns
        -------
        int
            Number of transfers that finished during the wait.
        """
        pending = [task for task in self._tasks.values() if not task.done()]
        if not pending:
            return 0
        done, _ = self._loop.run_until_complete(
            asyncio.wait(pending, timeout=timeout, return_when=asyncio.FIRST_COMPLETED)
        )
        return len(done)

    def drain(self) -> MultiStatus:
        """
        Alternate ``perform`` and ``select`` until nothing runs or a transfer
        fails unexpectedly.
        """
        while True:
            status, running = self.perform()
            if status is not MultiStatus.OK or not running:
                return status
            self.select()

    def info(self, handle: TransferHandle) -> TransferResult:
        """
        Read the outcome of a handle.

        A handle whose transfer never finished reads as an OK outcome with no
        blob.
        """
        if handle.result is None:
            return TransferResult(
                code=TransferCode.OK, blob=None, error="Transfer did not complete"
            )
        return handle.result

    def remove(self, handle: TransferHandle) -> None:
        task = self._tasks.pop(handle, None)
        if task is not None and not task.done():
            task.cancel()
            self._loop.run_until_complete(asyncio.gather(task, return_exceptions=True))

    def close(self) -> None:
        """
        Cancel leftover transfers, close the clients and the event loop.
        """
        if self._closed:
            return
        self._closed = True
        leftovers = [task for task in self._tasks.values() if not task.done()]
        for task in leftovers:
            task.cancel()
        if leftovers:
            self._loop.run_until_complete(asyncio.gather(*leftovers, return_exceptions=True))
        for client in self._clients.values():
            self._loop.run_until_complete(client.aclose())
        self._tasks.clear()
        self._clients.clear()
        self._loop.run_until_complete(self._loop.shutdown_asyncgens())
        self._loop.close()


def execute(
    handle: TransferHandle,
    *,
    client_factory: AsyncClientFactory = default_client_factory,
) -> TransferResult:
    """
    Perform one transfer and block until it finished.

    The transfer runs on its own one-handle multiplexer, which is closed
    before returning whatever the outcome.

    Parameters
    ----------
    handle : TransferHandle
        Handle to send.
    client_factory : AsyncClientFactory, optional
        Builds the ``httpx.AsyncClient`` for the handle's TLS mode.

    Returns
    -------
    TransferResult
        Raw outcome, also stored on ``handle.result``.

    Raises
    ------
    MultiplexError
        If the transfer died with something other than an httpx request error.
    """
    multiplexer = Multiplexer(client_factory=client_factory)
    multiplexer.add(handle)
    try:
        if multiplexer.drain() is not MultiStatus.OK:
            log.error(event="Multiplexer failed", url=handle.spec.url, error=multiplexer.error_text)
            raise MultiplexError(f"Multiplexer failed: {multiplexer.error_text}")
        return multiplexer.info(handle)
    finally:
        multiplexer.close()

"""
In-memory HTTP server backing httpx.MockTransport for multifetch tests.
"""

import asyncio
import typing as t

import httpx

Route = t.Callable[[httpx.Request], t.Any]


def route_key(url: str | httpx.URL) -> str:
    parsed = httpx.URL(url)
    return f"{parsed.host}{parsed.path}"


class FakeServer:
    """
    Answer requests from a table of routes keyed by host and path.

    Unknown routes answer ``404``. Every request seen is recorded, along with
    the TLS verification mode each client was built with.
    """

    def __init__(self) -> None:
        self._routes: dict[str, Route] = {}
        self.requests: list[httpx.Request] = []
        self.verify_modes: list[bool] = []

    def respond(
        self,
        url: str,
        *,
        status_code: int = 200,
        text: str = "",
        content: bytes | None = None,
        headers: list[tuple[str, str]] | None = None,
    ) -> None:
        """
        Register a canned response.

        Parameters
        ----------
        url : str
            URL to answer.
        status_code : int, optional
            Response status code.
        text : str, optional
            Response body.
        content : bytes | None, optional
            Raw response body, sent instead of ``text`` when given.
        headers : list[tuple[str, str]] | None, optional
            Response headers, repeated names allowed.
        """
        self._routes[route_key(url)] = lambda request: httpx.Response(
            status_code=status_code, text=text, content=content, headers=headers
        )

    def redirect(self, url: str, *, location: str) -> None:
        self._routes[route_key(url)] = lambda request: httpx.Response(
            status_code=302, headers=[("Location", location)]
        )

    def echo(self, url: str) -> None:
        """
        Answer with the method and body of the request.
        """

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                status_code=200, text=f"{request.method} {request.content.decode('utf-8')}"
            )

        self._routes[route_key(url)] = handler

    def fail(self, url: str, *, error_type: type[Exception], message: str = "boom") -> None:
        """
        Raise ``error_type`` for requests to ``url``.
        """

        def handler(request: httpx.Request) -> httpx.Response:
            if issubclass(error_type, httpx.RequestError):
                raise error_type(message, request=request)
            raise error_type(message)

        self._routes[route_key(url)] = handler

    def delay(self, url: str, *, seconds: float, text: str = "late") -> None:
        """
        Answer after ``seconds``.
        """

        async def handler(request: httpx.Request) -> httpx.Response:
            await asyncio.sleep(seconds)
            return httpx.Response(status_code=200, text=text)

        self._routes[route_key(url)] = handler

    def trickle(self, url: str, *, body: bytes, interval: float) -> None:
        """
        Stream ``body`` one byte at a time, pausing ``interval`` before each.
        """

        async def chunks() -> t.AsyncIterator[bytes]:
            for byte in body:
                await asyncio.sleep(interval)
                yield bytes([byte])

        async def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(status_code=200, content=chunks())

        self._routes[route_key(url)] = handler

    def handler(self, request: httpx.Request) -> t.Any:
        self.requests.append(request)
        route = self._routes.get(route_key(request.url))
        if route is None:
            return httpx.Response(status_code=404, text="not found")
        return route(request)

    def client_factory(self, *, verify: bool) -> httpx.AsyncClient:
        self.verify_modes.append(verify)
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))

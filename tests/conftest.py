import itertools

import pytest

from multifetch.batch import BatchExecutor
from multifetch.client import HttpClient
from multifetch.models import SessionOptions
from tests.mocks.transport import FakeServer


@pytest.fixture(autouse=True)
def test_clear_env(monkeypatch):
    monkeypatch.delenv("MULTIFETCH_TIMEOUT_SECONDS", raising=False)
    monkeypatch.delenv("MULTIFETCH_FOLLOW_REDIRECTS", raising=False)


@pytest.fixture
def server() -> FakeServer:
    """
    Create an empty fake server.
    """
    return FakeServer()


@pytest.fixture
def options() -> SessionOptions:
    return SessionOptions()


@pytest.fixture
def executor(server: FakeServer) -> BatchExecutor:
    """
    Create a batch executor wired to the fake server.

    Returns
    -------
    BatchExecutor
        Executor using mock transports.
    """
    return BatchExecutor(client_factory=server.client_factory)


@pytest.fixture
def client(server: FakeServer, options: SessionOptions) -> HttpClient:
    """
    Create a client wired to the fake server.

    Returns
    -------
    HttpClient
        Client using mock transports.
    """
    return HttpClient(
        options=options,
        client_factory=server.client_factory,
    )


@pytest.fixture
def counting_random_bytes():
    """
    Deterministic byte source: each call returns the next counter value.
    """
    counter = itertools.count(1)

    def random_bytes(length: int) -> bytes:
        return next(counter).to_bytes(length, "big")

    return random_bytes

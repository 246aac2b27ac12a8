"""
Data model shared by the transport adapter, the batch executor and the client.
"""

from __future__ import annotations

import os
import typing as t
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

TIMEOUT_ENV_VAR = "MULTIFETCH_TIMEOUT_SECONDS"
FOLLOW_REDIRECTS_ENV_VAR = "MULTIFETCH_FOLLOW_REDIRECTS"
DEFAULT_TIMEOUT_SECONDS = 30

_TRUTHY = frozenset({"1", "true", "yes", "on"})

HeaderValue = t.Union[str, list[str]]
ParsedHeaders = dict[t.Union[str, int], HeaderValue]


class HttpMethod(str, Enum):
    GET = "GET"
    POST = "POST"
    DELETE = "DELETE"


class BatchState(str, Enum):
    EMPTY = "empty"
    REGISTERED = "registered"
    EXECUTING = "executing"
    COMPLETE = "complete"
    FAILED = "failed"


class RequestSpec(BaseModel):
    """
    One pending HTTP request, immutable once registered.

    Parameters
    ----------
    url : str
        Target URL.
    headers : dict[str, str | list[str]]
        Request headers in insertion order. A list value sends the header once
        per item.
    method : str
        HTTP verb. GET, POST and DELETE are handled specially by the
        transport; any other verb is sent as a plain GET.
    body : str
        Request payload, only sent for POST.
    tls_verify : bool
        ``False`` disables peer and host certificate verification for this
        request only.
    """

    model_config = ConfigDict(frozen=True)

    url: str = Field(min_length=1)
    headers: dict[str, HeaderValue] = Field(default_factory=dict)
    method: str = HttpMethod.GET.value
    body: str = ""
    tls_verify: bool = True

    @field_validator("headers", mode="before")
    @classmethod
    def _stringify_headers(cls, value: t.Any) -> t.Any:
        if not isinstance(value, Mapping):
            return value
        return {
            str(name): [str(item) for item in item_or_items]
            if isinstance(item_or_items, (list, tuple))
            else str(item_or_items)
            for name, item_or_items in value.items()
        }

    @field_validator("method", mode="before")
    @classmethod
    def _normalize_method(cls, value: t.Any) -> t.Any:
        if isinstance(value, HttpMethod):
            return value.value
        if isinstance(value, str):
            return value.strip().upper()
        return value


class SessionOptions(BaseModel):
    """
    Transfer settings applied identically to every request of a batch.

    Parameters
    ----------
    timeout_seconds : int
        Whole-transfer timeout for each request.
    follow_redirects : bool
        Follow ``Location`` redirects when ``True``.
    """

    model_config = ConfigDict(frozen=True)

    timeout_seconds: int = Field(default=DEFAULT_TIMEOUT_SECONDS, ge=1)
    follow_redirects: bool = False

    @classmethod
    def from_env(cls) -> "SessionOptions":
        """
        Build options from ``MULTIFETCH_*`` environment variables.

        Returns
        -------
        SessionOptions
            Options with unset variables falling back to the defaults.
        """
        values: dict[str, t.Any] = {}
        timeout = os.getenv(TIMEOUT_ENV_VAR)
        if timeout:
            values["timeout_seconds"] = int(timeout)
        follow = os.getenv(FOLLOW_REDIRECTS_ENV_VAR)
        if follow:
            values["follow_redirects"] = follow.strip().lower() in _TRUTHY
        return cls(**values)


@dataclass(frozen=True)
class Success:
    """
    A transfer that produced an HTTP response (or the synthetic 504 for a
    timed-out transfer).

    Parameters
    ----------
    status_code : int
        HTTP status code.
    headers : ParsedHeaders
        Parsed response headers; repeated names map to a list of values.
    body : str
        Response body with the header block removed.
    """

    status_code: int
    headers: ParsedHeaders = field(default_factory=dict)
    body: str = ""


@dataclass(frozen=True)
class TransportFailure:
    """
    A transfer that finished without a readable response.

    Parameters
    ----------
    message : str
        Error text reported by the transport.
    """

    message: str

    @property
    def status_code(self) -> t.Literal[False]:
        return False

    @property
    def headers(self) -> ParsedHeaders:
        return {}

    @property
    def body(self) -> str:
        return self.message


HttpResponse = t.Union[Success, TransportFailure]

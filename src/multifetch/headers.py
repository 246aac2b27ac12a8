"""
Raw HTTP header block parsing and request header rendering.
"""

from __future__ import annotations

import typing as t

from multifetch.models import HeaderValue, ParsedHeaders

_FOLD_MARKERS = ("\t", " ")
STATUS_LINE_KEY = 0


def parse_headers(raw: str) -> ParsedHeaders:
    """
    Parse a raw header block into a mapping.

    A name seen once maps to its trimmed value; a repeated name maps to the
    list of its values in the order they were seen. Lines starting with a tab
    or a space are folded into the value of the most recent header. A line
    without a colon seen before any header (usually the status line) is kept
    under the integer key ``0``.

    Parameters
    ----------
    raw : str
        Header block, lines separated by ``\\n`` or ``\\r\\n``.

    Returns
    -------
    ParsedHeaders
        Parsed headers. Empty input gives an empty mapping.
    """
    headers: ParsedHeaders = {}
    if not raw:
        return headers

    current: str | None = None
    for line in raw.split("\n"):
        line = line.rstrip("\r")
        name, colon, value = line.partition(":")
        if colon:
            name = name.strip()
            value = value.strip()
            existing = headers.get(name)
            if existing is None:
                headers[name] = value
            elif isinstance(existing, list):
                existing.append(value)
            else:
                headers[name] = [existing, value]
            current = name
        elif line.startswith(_FOLD_MARKERS) and current is not None:
            _fold(headers=headers, name=current, continuation=line.strip())
        elif current is None and line.strip():
            headers[STATUS_LINE_KEY] = line.strip()
    return headers


def _fold(*, headers: ParsedHeaders, name: str, continuation: str) -> None:
    folded = "\r\n\t" + continuation
    existing = headers[name]
    if isinstance(existing, list):
        existing[-1] += folded
    else:
        headers[name] = existing + folded


def render_header_fields(headers: t.Mapping[str, HeaderValue]) -> list[tuple[str, str]]:
    """
    Flatten request headers to ``(name, value)`` pairs, one pair per value.

    Parameters
    ----------
    headers : Mapping[str, str | list[str]]
        Request headers.

    Returns
    -------
    list[tuple[str, str]]
        Header fields in insertion order.
    """
    fields: list[tuple[str, str]] = []
    for name, value in headers.items():
        values = value if isinstance(value, list) else [value]
        fields.extend((name, str(item)) for item in values)
    return fields


def render_header_lines(headers: t.Mapping[str, HeaderValue]) -> list[str]:
    """
    Render request headers as ``"Name: value"`` lines.
    """
    return [f"{name}: {value}" for name, value in render_header_fields(headers)]

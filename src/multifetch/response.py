"""
Turn raw transfer outcomes into response records.
"""

from __future__ import annotations

import typing as t

from multifetch.exceptions import TransferError
from multifetch.headers import parse_headers
from multifetch.logging import get_logger
from multifetch.models import HttpResponse, Success, TransportFailure
from multifetch.transport import TransferCode, TransferResult

log = get_logger(__name__)

GATEWAY_TIMEOUT = 504
TIMEOUT_MESSAGE = "Response wait time elapsed"


def build_response(result: TransferResult, *, logger: t.Any | None = None) -> HttpResponse:
    """
    Classify a finished transfer.

    Parameters
    ----------
    result : TransferResult
        Raw outcome read from the transport.
    logger : typing.Any | None, optional
        structlog logger to report through, the module logger by default.

    Returns
    -------
    HttpResponse
        ``Success`` with status 504 and ``TIMEOUT_MESSAGE`` for a timed-out
        transfer, whatever was read before the timeout. ``TransportFailure``
        when the transfer finished without a readable blob. Otherwise
        ``Success`` carrying the HTTP status, the parsed header block and the
        body.

    Raises
    ------
    TransferError
        For any transport error other than a timeout.
    """
    logger = logger if logger is not None else log

    if result.code is TransferCode.OPERATION_TIMEDOUT:
        logger.info(event="No response received in time", error=result.error)
        return Success(status_code=GATEWAY_TIMEOUT, headers={}, body=TIMEOUT_MESSAGE)

    if result.code is not TransferCode.OK:
        logger.error(event="Transport error", code=result.code.value, error=result.error)
        raise TransferError(code=result.code.value, message=result.error)

    if result.blob is None:
        logger.error(event="Transfer produced no response", error=result.error)
        return TransportFailure(message=result.error)

    header_block = result.blob[: result.header_size]
    body = result.blob[result.header_size :]
    return Success(
        status_code=result.http_status,
        headers=parse_headers(header_block),
        body=body,
    )

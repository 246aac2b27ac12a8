"""
Multifetch-specific runtime exceptions.

Fatal conditions abort a whole batch or call and are raised as one of the
exceptions below. Represented outcomes (timeouts, blob-less transfers) are
never raised; they are returned inside a response record.
"""

from __future__ import annotations


class MultifetchError(RuntimeError):
    """
    Base class for every error raised by multifetch.
    """


class KeyGenerationError(MultifetchError):
    """
    Raised when the random source cannot produce a request key.
    """


class HandleCreationError(MultifetchError):
    """
    Raised when a transport handle cannot be built for a request.

    Parameters
    ----------
    url : str
        URL of the rejected request.
    reason : str
        Human-readable reason reported by the transport.
    """

    def __init__(self, url: str, reason: str) -> None:
        self.url = url
        self.reason = reason
        super().__init__(f"Could not create transport handle for {url!r}: {reason}")


class MultiplexError(MultifetchError):
    """
    Raised when the multiplexer reports a non-OK status while draining.
    """


class TransferError(MultifetchError):
    """
    Raised for transport failures other than a timeout.

    Parameters
    ----------
    code : str
        Transfer code value describing the failure class.
    message : str
        Error text reported by the transport.
    """

    def __init__(self, code: str, message: str) -> None:
        self.code = code
        self.message = message
        super().__init__(f"Transport error ({code}): {message}")


class KeyNotFoundError(MultifetchError, KeyError):
    """
    Raised when a request key has no entry in the result table.

    Parameters
    ----------
    key : str
        The key that was looked up.
    """

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"Unknown request key: {key!r}")

    def __str__(self) -> str:
        # KeyError.__str__ would repr() the message.
        return str(self.args[0])


class BatchStateError(MultifetchError):
    """
    Raised when a batch operation is invalid in the current batch state.
    """

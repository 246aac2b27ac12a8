"""
Request key generation.
"""

from __future__ import annotations

import secrets
import typing as t

from multifetch.exceptions import KeyGenerationError
from multifetch.logging import get_logger

log = get_logger(__name__)

KEY_BYTES = 8

RandomSource = t.Callable[[int], bytes]


def generate_key(
    length: int = KEY_BYTES, *, random_bytes: RandomSource = secrets.token_bytes
) -> str:
    """
    Generate an opaque request key.

    Parameters
    ----------
    length : int, optional
        Number of random bytes drawn. The key is their full hex encoding, so it
        is ``2 * length`` characters long.
    random_bytes : RandomSource, optional
        Cryptographically strong byte source. It must raise when it cannot
        provide strong randomness.

    Returns
    -------
    str
        Lower-case hex key.

    Raises
    ------
    KeyGenerationError
        If the source fails or returns the wrong number of bytes.
    """
    try:
        data = random_bytes(length)
    except (OSError, NotImplementedError, ValueError) as error:
        log.error(event="Random source failed", error=str(error))
        raise KeyGenerationError("Could not draw random bytes for a request key") from error
    if len(data) != length:
        log.error(event="Random source returned a short read", expected=length, received=len(data))
        raise KeyGenerationError(f"Expected {length} random bytes, got {len(data)}")
    return data.hex()

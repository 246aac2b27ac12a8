import logging

import structlog

PACKAGE_LOGGER = "multifetch"

# Silent unless the application installs handlers of its own.
logging.getLogger(name=PACKAGE_LOGGER).addHandler(logging.NullHandler())


def get_logger(name: str) -> structlog.typing.BindableLogger:
    """
    Return a structlog logger writing to the stdlib logger ``name``.
    """
    return structlog.wrap_logger(logging.getLogger(name=name))


def setup_logging(level: int = logging.WARNING) -> None:
    """
    Configure package logger defaults and render events as key/value lines.

    Handlers stay the application's business, e.g. ``logging.basicConfig()``.

    Parameters
    ----------
    level : int, optional
        Level of the ``multifetch`` stdlib logger.
    """
    logging.getLogger(name=PACKAGE_LOGGER).setLevel(level=level)
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.KeyValueRenderer(key_order=["timestamp", "level", "event"]),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
    )

from __future__ import annotations

import logging

LOGGER_NAME = "lattice2d"
LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


def setup_logging(level: int | str = logging.INFO, log_file: str | None = None) -> logging.Logger:
    """Attach handlers to the ``lattice2d`` logger and return it.

    ``level`` takes a number or a name such as ``"DEBUG"``. Messages go to
    stderr so the CLI's stdout stays free for data. Handlers from an earlier
    call are closed and replaced; ``log_file`` is truncated on each call.
    """
    if isinstance(level, str):
        name = level.upper()
        level = logging.getLevelName(name)
        if not isinstance(level, int):
            raise ValueError(f"unknown log level {name!r}.")

    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(level)

    fmt = logging.Formatter(LOG_FORMAT, datefmt="%H:%M:%S")
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file, mode="w", encoding="utf-8"))
    for handler in handlers:
        handler.setFormatter(fmt)
        logger.addHandler(handler)

    logger.debug("logging at %s%s", logging.getLevelName(level), f", file {log_file}" if log_file else "")
    return logger

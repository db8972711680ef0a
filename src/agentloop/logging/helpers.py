"""
Logging helpers.

log_timed() wraps an operation and logs its duration with an ok or
error status, e.g.::

    async with log_timed(_logger, "llm.step", iteration=2):
        ...
"""

import contextlib as _contextlib
import logging as _logging
import time as _time
import typing as _typing


@_contextlib.asynccontextmanager
async def log_timed(
    logger: _logging.Logger,
    event: str,
    *,
    level: int = _logging.DEBUG,
    **fields: _typing.Any,
) -> _typing.AsyncIterator[dict[str, _typing.Any]]:
    """
    Log how long the wrapped block took.

    Yields a dict the block may add fields to; they are included in the
    completion record. Failures are logged at WARNING and re-raised.
    """
    record: dict[str, _typing.Any] = dict(fields)
    start = _time.perf_counter()
    try:
        yield record
    except BaseException as e:
        duration_ms = (_time.perf_counter() - start) * 1000
        logger.warning(
            "%s failed after %.1fms: %s: %s",
            event,
            duration_ms,
            type(e).__name__,
            e,
            extra={"event": event, "status": "error", "duration_ms": duration_ms},
        )
        raise
    duration_ms = (_time.perf_counter() - start) * 1000
    logger.log(
        level,
        "%s completed in %.1fms %s",
        event,
        duration_ms,
        record,
        extra={"event": event, "status": "ok", "duration_ms": duration_ms},
    )


def configure_logging(level: str = "warning", handler: _logging.Handler | None = None) -> None:
    """
    Set the level of the ``agentloop`` logger hierarchy.

    Args:
        level: One of debug, info, warning, error.
        handler: Optional handler to attach (the CLI passes rich's RichHandler).
    """
    logger = _logging.getLogger("agentloop")
    logger.setLevel(level.upper())
    if handler is not None:
        # Repeated calls replace the previous handler of the same kind.
        for existing in [h for h in logger.handlers if type(h) is type(handler)]:
            logger.removeHandler(existing)
        logger.addHandler(handler)

"""Structured logging for procgraph.

Graphs report their lifecycle (parsed, validated, execution started and
completed, error recorded) as structlog key/value events. Nothing is
configured on import; a host application either routes the events into its
own setup or calls configure_logging() once at startup.

configure_logging() installs a single stdlib handler whose ProcessorFormatter
renders both structlog events and plain ``logging.getLogger()`` records, so a
host's own loggers end up in the same JSON or console stream.
"""

import logging
import sys
from typing import IO, Any

import structlog
from structlog.stdlib import ProcessorFormatter

# Libraries that log per-task chatter at DEBUG level
_NOISY_LOGGERS: tuple[str, ...] = (
    "asyncio",
    "dynaconf",
)

# Bookkeeping keys ProcessorFormatter adds to every event dict
_FORMATTER_KEYS: tuple[str, ...] = ("_record", "_from_structlog")


def _drop_formatter_keys(logger: logging.Logger | None, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    for key in _FORMATTER_KEYS:
        event_dict.pop(key, None)
    return event_dict


def _pre_chain() -> list[Any]:
    """Processors applied to structlog events and stdlib records alike."""
    return [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
    ]


def _render_chain(json_output: bool) -> list[Any]:
    if json_output:
        return [_drop_formatter_keys, structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    return [_drop_formatter_keys, structlog.dev.ConsoleRenderer(colors=False)]


def _resolve_level(level: str | int) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.upper())
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown log level: {level!r}")
    return resolved


def configure_logging(
    *,
    json_output: bool = False,
    level: str | int = "INFO",
    stream: IO[str] | None = None,
) -> None:
    """Route structlog and stdlib logging through one handler.

    Replaces the handlers of the root logger. The loggers in _NOISY_LOGGERS
    never drop below WARNING, even when ``level`` is DEBUG.

    Args:
        json_output: Render one JSON object per line instead of console text
        level: Root log level, as name ("debug", "INFO") or number
        stream: Output stream (defaults to ``sys.stdout`` at call time)

    Raises:
        ValueError: If ``level`` is not a known level name
    """
    root_level = _resolve_level(level)
    pre_chain = _pre_chain()

    structlog.configure(
        processors=[*pre_chain, ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        # Tests reconfigure between cases
        cache_logger_on_first_use=False,
    )

    handler = logging.StreamHandler(stream if stream is not None else sys.stdout)
    handler.setFormatter(ProcessorFormatter(processors=_render_chain(json_output), foreign_pre_chain=pre_chain))

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(root_level)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(root_level, logging.WARNING))


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Return the structlog logger of a module (pass ``__name__``)."""
    logger: structlog.stdlib.BoundLogger = structlog.get_logger(name)
    return logger

"""
minimint.logging — structlog on top of stdlib logging.

Components log key/value events (``token_minted``, ``call_reverted``,
``bridge_request_created``...). ``setup_logging`` routes both structlog and
plain ``logging`` records through one ``ProcessorFormatter`` on stderr, so
third-party log lines get the same JSON (or console) shape.

    from minimint.logging import setup_logging, get_logger

    setup_logging()              # once per process; the CLI does this
    log = get_logger(__name__)
    log.info("token_minted", token_id=3, to=b"...")

Level and format fall back to MINIMINT_LOG_LEVEL / LOG_LEVEL and
MINIMINT_LOG_FORMAT / LOG_FORMAT ("json" or "console").
"""

from __future__ import annotations

import logging
import os
from typing import Any, Dict, List, Optional, Union

import structlog
from structlog.typing import Processor

SERVICE = "minimint"

# Values under these keys never reach a log sink.
SENSITIVE_KEYS = frozenset({"secret", "private_key", "signature", "seed"})

EventDict = Dict[str, Any]


def redact(_: Any, __: str, event: EventDict) -> EventDict:
    for key in event.keys() & SENSITIVE_KEYS:
        if event[key] is not None:
            event[key] = "***"
    return event


def hexify(_: Any, __: str, event: EventDict) -> EventDict:
    for key, value in event.items():
        if isinstance(value, (bytes, bytearray)):
            event[key] = "0x" + bytes(value).hex()
    return event


def _tag_service(name: str) -> Processor:
    def tag(_: Any, __: str, event: EventDict) -> EventDict:
        event.setdefault("service", name)
        return event

    return tag


def _shared_chain(service: str) -> List[Processor]:
    return [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.contextvars.merge_contextvars,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        redact,
        hexify,
        _tag_service(service),
    ]


def _first_env(*names: str) -> Optional[str]:
    return next((os.environ[n] for n in names if os.environ.get(n)), None)


def setup_logging(
    *,
    level: Union[str, int, None] = None,
    log_format: Optional[str] = None,
    service: str = SERVICE,
) -> None:
    """(Re)configure logging. The last call wins."""
    if level is None:
        level = _first_env("MINIMINT_LOG_LEVEL", "LOG_LEVEL") or "INFO"
    if isinstance(level, str):
        level = level.upper()
    fmt = (log_format or _first_env("MINIMINT_LOG_FORMAT", "LOG_FORMAT") or "json").lower()

    chain = _shared_chain(service)
    renderer: Processor
    if fmt == "console":
        renderer = structlog.dev.ConsoleRenderer(colors=False, sort_keys=False)
    else:
        renderer = structlog.processors.JSONRenderer(sort_keys=True)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *chain,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=False,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=chain,
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
    )
    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(level)


def get_logger(name: Optional[str] = None) -> structlog.stdlib.BoundLogger:
    """
    Lazy logger proxy; module-level loggers pick up whatever the latest
    ``setup_logging`` call configured. ``name`` reaches the stdlib logger
    factory and comes back out as the ``logger`` field.
    """
    if name:
        return structlog.get_logger(name)
    return structlog.get_logger()


def bind_call_context(**kv: Any) -> None:
    structlog.contextvars.bind_contextvars(**kv)


def clear_call_context(*keys: str) -> None:
    if keys:
        structlog.contextvars.unbind_contextvars(*keys)
    else:
        structlog.contextvars.clear_contextvars()


__all__ = [
    "setup_logging",
    "get_logger",
    "bind_call_context",
    "clear_call_context",
    "SENSITIVE_KEYS",
]

"""structlog setup for wealthdesk services.

Every wealthdesk module logs through ``structlog.get_logger(__name__)`` with
snake_case event names and keyword context. Call :func:`configure_logging`
(or :func:`configure_from_config`) once at process start-up to route those
events through stdlib logging with either JSON or console rendering.
"""
from __future__ import annotations

import logging
import sys
from collections.abc import Iterator, MutableMapping
from contextlib import contextmanager
from typing import Any, cast

import structlog

from wealthdesk.core.config import EngineConfig

REDACTED = "[redacted]"

# Client contact details that may end up in event context.
SENSITIVE_KEYS = frozenset({"email_recipient_address", "trigger_data", "ssn", "tax_id"})


def redact_sensitive(
    _logger: Any, _method_name: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """structlog processor masking :data:`SENSITIVE_KEYS` values."""
    for key in SENSITIVE_KEYS.intersection(event_dict):
        if event_dict[key] is not None:
            event_dict[key] = REDACTED
    return event_dict


def _add_service(
    _logger: Any, _method_name: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    event_dict.setdefault("service", "wealthdesk")
    return event_dict


def configure_logging(level: str = "INFO", json: bool = True) -> None:
    """Configure structlog and the root stdlib logger.

    Args:
        level: Standard logging level name. Unknown names fall back to INFO.
        json: Render events as JSON lines; otherwise use the coloured
            console renderer.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        _add_service,
        redact_sensitive,
    ]

    renderer: structlog.types.Processor
    if json:
        renderer = structlog.processors.JSONRenderer(sort_keys=True)
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=shared_processors + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
            foreign_pre_chain=shared_processors,
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(log_level)


def configure_from_config(config: EngineConfig) -> None:
    """Apply ``log_level`` and ``log_json`` from an :class:`EngineConfig`."""
    configure_logging(config.log_level, json=config.log_json)


@contextmanager
def log_context(**values: Any) -> Iterator[None]:
    """Bind *values* to every event logged inside the ``with`` block.

    Example::

        with log_context(firm_id="firm-1"):
            manager.calculate_fee(schedule_id, "firm-1", 2_000_000)
    """
    with structlog.contextvars.bound_contextvars(**values):
        yield


def get_logger(name: str) -> structlog.BoundLogger:
    return cast(structlog.BoundLogger, structlog.get_logger(name))

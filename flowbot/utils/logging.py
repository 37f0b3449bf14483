# flowbot/utils/logging.py

import logging
import sys
from typing import List, Optional

import structlog
from structlog.types import EventDict, Processor

from flowbot.config.settings import settings

# One log stream for structlog loggers (routes, gateway) and stdlib loggers
# (services, uvicorn). Session ids bound with `structlog.contextvars` during a
# chat turn are attached to both.

# Event keys that may carry what a chat user typed.
MESSAGE_TEXT_KEYS = ("text", "content", "raw")

QUIET_LOGGERS = ("uvicorn.access", "httpx", "pymongo")


def summarize_message_text(logger, method_name: str, event_dict: EventDict) -> EventDict:
    """Replaces user message text with its length on anything above DEBUG."""
    if method_name == "debug":
        return event_dict
    for key in MESSAGE_TEXT_KEYS:
        value = event_dict.get(key)
        if isinstance(value, (str, bytes)):
            del event_dict[key]
            event_dict[f"{key}_length"] = len(value)
    return event_dict


def _shared_processors() -> List[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        summarize_message_text,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]


def _renderer() -> Processor:
    if settings.environment == "development":
        return structlog.dev.ConsoleRenderer()
    return structlog.processors.JSONRenderer()


def setup_logging(level: Optional[str] = None) -> None:
    """
    Routes structlog through stdlib logging and installs a single stdout
    handler on the root logger. Safe to call more than once (reload, test
    apps): handlers installed by an earlier call are replaced.
    """
    shared = _shared_processors()

    structlog.configure(
        processors=shared + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            _renderer(),
        ],
        foreign_pre_chain=shared,
    ))

    root_logger = logging.getLogger()
    for existing in list(root_logger.handlers):
        if isinstance(existing.formatter, structlog.stdlib.ProcessorFormatter):
            root_logger.removeHandler(existing)
    root_logger.addHandler(handler)

    root_logger.setLevel(getattr(logging, (level or settings.log_level).upper(), logging.INFO))

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

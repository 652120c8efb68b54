"""
Structured logging configuration using structlog.

Every CLI invocation gets a command id so the compose calls, RPC requests and
status changes it causes can be grouped. RPC credentials and macaroons are
redacted, and long compose output is shortened before rendering.
"""

import logging
import sys
import time
import uuid
from contextvars import ContextVar
from typing import Any, cast

import structlog
from structlog.types import EventDict, Processor

_command_id_var: ContextVar[str | None] = ContextVar("command_id", default=None)

SENSITIVE_KEYS = frozenset({"password", "rpc_password", "rpc_pass", "macaroon", "secret", "token"})

# fields that carry compose/API output
OUTPUT_KEYS = ("output", "error")
MAX_OUTPUT_LENGTH = 2000


def set_command_id(command_id: str | None = None) -> str:
    """
    Set the id of the running command for the current context.

    Args:
        command_id: Custom id. If None, a short random one is generated.

    Returns:
        The id that was set.
    """
    if command_id is None:
        command_id = uuid.uuid4().hex[:12]
    _command_id_var.set(command_id)
    return command_id


def get_command_id() -> str | None:
    return _command_id_var.get()


def add_command_id(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    command_id = get_command_id()
    if command_id and "command_id" not in event_dict:
        event_dict["command_id"] = command_id
    return event_dict


def redact_credentials(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Replace RPC passwords, macaroons and similar values."""
    for key in SENSITIVE_KEYS.intersection(event_dict):
        event_dict[key] = "***REDACTED***"
    return event_dict


def truncate_output(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Shorten compose and API output; ``docker compose up`` can print pages of pull progress."""
    for key in OUTPUT_KEYS:
        value = event_dict.get(key)
        if isinstance(value, str) and len(value) > MAX_OUTPUT_LENGTH:
            event_dict[key] = f"{value[:MAX_OUTPUT_LENGTH]}... ({len(value) - MAX_OUTPUT_LENGTH} more chars)"
    return event_dict


def add_app_context(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    from regnet import __version__

    event_dict["app"] = "regnet"
    event_dict["version"] = __version__
    return event_dict


def configure_logging(
    log_level: str = "INFO",
    json_logs: bool = False,
    dev_mode: bool = True,
) -> None:
    """
    Configure structured logging for the application.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        json_logs: Whether to output JSON logs
        dev_mode: Whether to use colored console output
    """
    shared_processors: list[Processor] = [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        add_command_id,
        add_app_context,
        redact_credentials,
        truncate_output,
    ]

    renderer: Processor
    if dev_mode:
        renderer = structlog.dev.ConsoleRenderer(colors=True)
    elif json_logs:
        shared_processors.append(structlog.processors.dict_tracebacks)
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.processors.KeyValueRenderer(key_order=["timestamp", "level", "event"])

    structlog.configure(
        processors=[*shared_processors, renderer],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # stdout belongs to the CLI tables
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, log_level.upper()),
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance.

    Usage:
        logger = get_logger(__name__)
        logger.info("network_started", network_id=1, nodes=3)
    """
    return cast(structlog.stdlib.BoundLogger, structlog.get_logger(name))


class LogPerformance:
    """
    Log how long a container runtime operation took.

    Extra keyword fields are attached to the start, completion and failure
    events.

    Usage:
        with LogPerformance("compose_up", logger, network="demo"):
            await runner.run("up", "-d", cwd=path)
    """

    def __init__(self, operation: str, logger: structlog.stdlib.BoundLogger, **fields: Any):
        self.operation = operation
        self.logger = logger
        self.fields = fields
        self.start_time: float = 0

    def __enter__(self) -> "LogPerformance":
        self.start_time = time.perf_counter()
        self.logger.debug(f"{self.operation}_started", **self.fields)
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        duration_ms = round((time.perf_counter() - self.start_time) * 1000, 2)
        if exc_type is None:
            self.logger.info(f"{self.operation}_completed", duration_ms=duration_ms, **self.fields)
            return
        self.logger.error(
            f"{self.operation}_failed",
            duration_ms=duration_ms,
            error=str(exc_val),
            error_type=exc_type.__name__,
            **self.fields,
        )


configure_logging()

"""Telemetry and observability layer"""
import asyncio
import logging
import sys
import structlog
from contextlib import asynccontextmanager
from time import perf_counter


# Shared by structlog loggers and foreign (stdlib) log records
_shared_processors = [
    structlog.stdlib.add_logger_name,
    structlog.stdlib.add_log_level,
    structlog.stdlib.PositionalArgumentsFormatter(),
    structlog.processors.TimeStamper(fmt="iso"),
    structlog.processors.StackInfoRenderer(),
    structlog.processors.format_exc_info,
    structlog.processors.UnicodeDecoder(),
]


# Configure structured logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        *_shared_processors,
        structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
    ],
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    wrapper_class=structlog.stdlib.BoundLogger,
    cache_logger_on_first_use=True,
)


logger = structlog.get_logger("claude_bridge")


def configure_logging(level: str = "INFO", fmt: str = "json"):
    """
    Route all logging to stderr; stdout carries the bridge protocol only.

    Args:
        level: Log level name
        fmt: "json" or "console"
    """
    renderer = (
        structlog.dev.ConsoleRenderer(colors=False)
        if fmt == "console"
        else structlog.processors.JSONRenderer()
    )
    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=_shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))


class Telemetry:
    """
    Structured lifecycle events and metrics for agent runs.

    Everything is emitted through the structlog logger configured above, so
    it lands on stderr next to ordinary log records.
    """

    def __init__(self, bound_logger=None):
        self.logger = bound_logger if bound_logger is not None else logger

    def bind(self, **context) -> "Telemetry":
        """Telemetry whose records all carry context (e.g. the run's pid)"""
        return Telemetry(self.logger.bind(**context))

    @asynccontextmanager
    async def trace_task(self, name: str, **context):
        """
        Time an async operation, logging start and outcome.

        The outcome is one of `{name}.complete`, `{name}.cancelled` (an aborted
        or replaced run) or `{name}.failed`; the exception is re-raised.
        """
        start = perf_counter()
        self.logger.info(f"{name}.start", **context)

        def elapsed_ms() -> float:
            return round((perf_counter() - start) * 1000, 2)

        try:
            yield
        except asyncio.CancelledError:
            self.logger.info(f"{name}.cancelled", duration_ms=elapsed_ms(), **context)
            raise
        except BaseException as e:
            self.logger.error(
                f"{name}.failed",
                error=str(e),
                error_type=type(e).__name__,
                duration_ms=elapsed_ms(),
                **context
            )
            raise
        self.logger.info(f"{name}.complete", duration_ms=elapsed_ms(), **context)

    def log_event(self, event_type: str, level: str = "info", **context):
        """Log a lifecycle event such as agent.spawned or run.retired"""
        log_fn = getattr(self.logger, level, self.logger.info)
        log_fn(event_type, **context)

    def log_metric(self, metric_name: str, value: float, **context):
        self.logger.info("metric", metric_name=metric_name, value=value, **context)


# Global telemetry instance
telemetry = Telemetry()

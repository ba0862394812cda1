# logging_config.py
from typing import Optional

import structlog


def configure_logging() -> None:
     """Configure structlog to emit one JSON object per log line."""
     structlog.configure(
          processors=[
               structlog.contextvars.merge_contextvars,
               structlog.processors.add_log_level,
               structlog.processors.TimeStamper(fmt="iso"),
               structlog.processors.StackInfoRenderer(),
               structlog.processors.format_exc_info,
               structlog.processors.JSONRenderer(),
          ],
          wrapper_class=structlog.make_filtering_bound_logger(0),
          context_class=dict,
          logger_factory=structlog.PrintLoggerFactory(),
          cache_logger_on_first_use=True,
     )


def get_logger(name: Optional[str] = None):
     logger = structlog.get_logger()
     if name:
          logger = logger.bind(logger_name=name)
     return logger


def bind_request_id(request_id: str) -> None:
     structlog.contextvars.bind_contextvars(request_id=request_id)


def clear_request_context() -> None:
     structlog.contextvars.clear_contextvars()

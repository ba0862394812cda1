# services/background.py
"""
Best-effort post-commit side effects.

Receipt rendering and notifications run after the state change they describe
is already committed. Their failures are logged and never propagate.
"""
from typing import Any, Callable, Optional

from fastapi import BackgroundTasks

from logging_config import get_logger

logger = get_logger(__name__)


def run_best_effort(func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
     try:
          return func(*args, **kwargs)
     except Exception as e:
          logger.error(
               "side_effect_failed",
               task=getattr(func, "__qualname__", repr(func)),
               error=str(e),
               exc_info=True,
          )
          return None


def schedule(
     background: Optional[BackgroundTasks],
     func: Callable[..., Any],
     *args: Any,
     **kwargs: Any,
) -> None:
     """Queue ``func`` to run after the response, or run it now if there is no task list."""
     if background is not None:
          background.add_task(run_best_effort, func, *args, **kwargs)
     else:
          run_best_effort(func, *args, **kwargs)

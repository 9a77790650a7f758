"""
Attempt-and-log helper for non-critical side operations.

Follow-up work such as promoting a new default key must never fail the
primary operation. Such work is run through
``attempt`` which logs the failure and reports it as an ``AttemptOutcome``
instead of raising.
"""
from typing import Any, Awaitable, Callable, Optional

import structlog
from pydantic import BaseModel, ConfigDict

logger = structlog.get_logger(__name__)


class AttemptOutcome(BaseModel):
    """Result of a best-effort operation."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    operation: str
    succeeded: bool
    result: Any = None
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        return not self.succeeded


async def attempt(
    operation: str,
    func: Callable[[], Awaitable[Any]],
    *,
    on_failure: Optional[Callable[[], Awaitable[Any]]] = None,
    **log_context: Any,
) -> AttemptOutcome:
    """
    Run ``func`` and log instead of raising if it fails.

    Args:
        operation: Name used in log events
        func: Zero-argument coroutine function doing the work
        on_failure: Optional cleanup run after a failure (e.g. a rollback)
        **log_context: Extra fields for the log event

    Returns:
        AttemptOutcome describing what happened
    """
    try:
        result = await func()
    except Exception as e:
        logger.warning(
            "best_effort_failed",
            operation=operation,
            error_type=type(e).__name__,
            error=str(e),
            **log_context,
        )
        if on_failure is not None:
            await on_failure()
        return AttemptOutcome(operation=operation, succeeded=False, error=str(e))

    logger.debug("best_effort_succeeded", operation=operation, **log_context)
    return AttemptOutcome(operation=operation, succeeded=True, result=result)

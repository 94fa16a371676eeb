"""
Diagnostics sink for failures and degraded filters.

A reporter is any awaitable callable ``(message, error=None, **context)``.
The library awaits it before re-raising driver errors, on usage errors it
raises itself, and when lenient criteria compile to no clause.  Reporter
failures are logged and swallowed so they never mask the original error.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol, runtime_checkable

logger = logging.getLogger("tabular_crud.reporting")


@runtime_checkable
class Reporter(Protocol):
    """Protocol for diagnostics sinks (error trackers, alerting, logs)."""

    async def __call__(
        self,
        message: str,
        error: BaseException | None = None,
        **context: Any,
    ) -> None:
        """Record a failure or a non-fatal finding."""
        ...


class LoggingReporter:
    """Default sink: writes every report to a stdlib logger."""

    def __init__(
        self,
        logger_name: str = "tabular_crud.reporting",
        level: int = logging.ERROR,
    ) -> None:
        self._logger = logging.getLogger(logger_name)
        self._level = level

    async def __call__(
        self,
        message: str,
        error: BaseException | None = None,
        **context: Any,
    ) -> None:
        level = self._level if error is not None else logging.WARNING
        self._logger.log(
            level,
            "%s %s",
            message,
            context,
            exc_info=(
                (type(error), error, error.__traceback__) if error is not None else None
            ),
        )


class CompositeReporter:
    """Fan a report out to several sinks in registration order."""

    def __init__(self, *reporters: Reporter) -> None:
        self._reporters: list[Reporter] = list(reporters)

    def add(self, reporter: Reporter) -> None:
        self._reporters.append(reporter)

    async def __call__(
        self,
        message: str,
        error: BaseException | None = None,
        **context: Any,
    ) -> None:
        for reporter in self._reporters:
            await safe_report(reporter, message, error, **context)


async def safe_report(
    reporter: Reporter | None,
    message: str,
    error: BaseException | None = None,
    **context: Any,
) -> None:
    """Await *reporter*, logging instead of raising if the sink itself fails."""
    if reporter is None:
        return
    try:
        await reporter(message, error, **context)
    except Exception:  # noqa: BLE001
        logger.exception("Reporter %r failed while reporting: %s", reporter, message)

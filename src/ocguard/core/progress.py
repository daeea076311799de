"""Append-only, timestamped progress log shared by the pipeline stages."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from collections.abc import Callable

from .models import ProgressEntry, ProgressSeverity

type Clock = Callable[[], float]

_LOG_LEVELS = {
    ProgressSeverity.INFO: logging.INFO,
    ProgressSeverity.SUCCESS: logging.INFO,
    ProgressSeverity.WARNING: logging.WARNING,
    ProgressSeverity.ERROR: logging.ERROR,
}


@dataclass(frozen=True)
class ProgressSummary:
    """Counts of progress entries grouped by severity."""

    total_entries: int
    errors: int
    warnings: int
    successes: int
    info: int
    total_seconds: float


class ProgressLog:
    """Record pipeline steps with elapsed time relative to the log's creation.

    Elapsed values never decrease, even if the injected clock does. Every
    entry is mirrored to the standard logging module so operators can follow
    a run without waiting for the final report.
    """

    def __init__(
        self,
        *,
        clock: Clock | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._clock: Clock = clock or time.monotonic
        self._logger = logger or logging.getLogger(__name__)
        self._start = self._clock()
        self._last_elapsed = 0.0
        self._entries: list[ProgressEntry] = []

    def add(self, message: str, severity: ProgressSeverity = ProgressSeverity.INFO) -> ProgressEntry:
        """Append *message* with *severity* and return the stored entry."""
        elapsed = max(self._last_elapsed, self._clock() - self._start)
        self._last_elapsed = elapsed
        entry = ProgressEntry(elapsed_seconds=elapsed, severity=severity, message=message)
        self._entries.append(entry)
        self._logger.log(
            _LOG_LEVELS[severity],
            message,
            extra={"progress_severity": severity.value, "elapsed_seconds": round(elapsed, 3)},
        )
        return entry

    def info(self, message: str) -> ProgressEntry:
        return self.add(message, ProgressSeverity.INFO)

    def success(self, message: str) -> ProgressEntry:
        return self.add(message, ProgressSeverity.SUCCESS)

    def warning(self, message: str) -> ProgressEntry:
        return self.add(message, ProgressSeverity.WARNING)

    def error(self, message: str) -> ProgressEntry:
        return self.add(message, ProgressSeverity.ERROR)

    def entries(self) -> list[ProgressEntry]:
        """Return a copy of the recorded entries in insertion order."""
        return list(self._entries)

    def elapsed(self) -> float:
        """Return the total elapsed time, never less than the last entry."""
        return max(self._last_elapsed, self._clock() - self._start)

    def summary(self) -> ProgressSummary:
        """Return entry counts by severity together with the total time."""
        counts = dict.fromkeys(ProgressSeverity, 0)
        for entry in self._entries:
            counts[entry.severity] += 1
        return ProgressSummary(
            total_entries=len(self._entries),
            errors=counts[ProgressSeverity.ERROR],
            warnings=counts[ProgressSeverity.WARNING],
            successes=counts[ProgressSeverity.SUCCESS],
            info=counts[ProgressSeverity.INFO],
            total_seconds=self.elapsed(),
        )

    def add_completion(
        self,
        operation: str,
        *,
        success: bool = True,
        stopped_reason: str | None = None,
    ) -> ProgressEntry:
        """Append the closing entry for *operation* with the total run time.

        A *stopped_reason* marks a run that ended before anything changed,
        such as a safety block; it is recorded as a warning.
        """
        total = self.elapsed()
        if stopped_reason is not None:
            return self.warning(f"{operation} {stopped_reason} after {total:.1f}s; no changes were made")
        if success:
            return self.success(f"{operation} completed successfully in {total:.1f}s")
        return self.error(f"{operation} failed in {total:.1f}s")


__all__ = ["Clock", "ProgressLog", "ProgressSummary"]

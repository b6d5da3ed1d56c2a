"""Progress snapshots and cooperative cancellation."""

import threading

from dbtransfer.models import ProgressInfo, ProgressSink, ProgressStatus


class CancellationToken:
    """Set by the caller, checked by the batch loop between batches."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


def percentage(processed: int, total: int) -> int:
    """round(processed / total * 100), halves rounded up; 100 for an empty run."""
    if total <= 0:
        return 100
    return (200 * processed + total) // (2 * total)


class ProgressReporter:
    """Track one run's progress and push each snapshot to ``sink``.

    ``processed_rows`` never decreases and the run ends with exactly one
    ``completed`` or ``error`` snapshot.
    """

    def __init__(self, sink: ProgressSink | None = None, total: int = 0):
        self._sink = sink
        self.total = total
        self.processed = 0
        self.status = ProgressStatus.PROCESSING
        self.error: str | None = None

    @property
    def finished(self) -> bool:
        return self.status is not ProgressStatus.PROCESSING

    def snapshot(self) -> ProgressInfo:
        return ProgressInfo(
            total_rows=self.total,
            processed_rows=self.processed,
            percentage=percentage(self.processed, self.total),
            status=self.status,
            error=self.error,
        )

    def _emit(self) -> None:
        if self._sink is not None:
            self._sink(self.snapshot())

    def _ensure_running(self) -> None:
        if self.finished:
            raise RuntimeError(f"Progress already finished with status '{self.status.value}'")

    def advance(self, rows: int, total: int | None = None) -> None:
        """Record ``rows`` more processed rows; ``total`` may grow for streamed input."""
        self._ensure_running()
        if rows < 0:
            raise ValueError("Processed rows cannot decrease")
        self.processed += rows
        if total is not None:
            self.total = total
        self.total = max(self.total, self.processed)
        self._emit()

    def complete(self) -> None:
        self._ensure_running()
        self.total = max(self.total, self.processed)
        self.processed = self.total
        self.status = ProgressStatus.COMPLETED
        self._emit()

    def fail(self, message: str) -> None:
        self._ensure_running()
        self.status = ProgressStatus.ERROR
        self.error = message
        self._emit()

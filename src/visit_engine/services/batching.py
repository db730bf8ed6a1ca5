"""Chunking and progress helpers for long-running bulk operations."""

from collections.abc import Callable, Iterator, Sequence
from dataclasses import dataclass
from typing import TypeVar

T = TypeVar("T")

CancelCheck = Callable[[], bool]


@dataclass
class BatchProgress:
    """Running totals of a chunked operation."""

    total: int
    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    cancelled: bool = False
    is_complete: bool = False


ProgressCallback = Callable[[BatchProgress], None]


def chunked(items: Sequence[T], size: int) -> Iterator[Sequence[T]]:
    """Yield consecutive slices of at most ``size`` items."""
    if size <= 0:
        raise ValueError("chunk size must be positive")
    for start in range(0, len(items), size):
        yield items[start : start + size]


def should_cancel(cancel: CancelCheck | None) -> bool:
    """Evaluate an optional cancellation check."""
    return cancel is not None and cancel()


def report(progress: BatchProgress, on_progress: ProgressCallback | None) -> None:
    """Send a progress snapshot to an optional callback."""
    if on_progress is not None:
        on_progress(
            BatchProgress(
                total=progress.total,
                processed=progress.processed,
                succeeded=progress.succeeded,
                failed=progress.failed,
                cancelled=progress.cancelled,
                is_complete=progress.is_complete,
            )
        )

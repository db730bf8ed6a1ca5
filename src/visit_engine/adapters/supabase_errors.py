"""Translation of PostgREST failures into engine errors."""

from collections.abc import Callable
from typing import Any, Protocol

from postgrest.exceptions import APIError

from visit_engine.domain.errors import StoreBusyError, StoreError

# lock_not_available, serialization_failure, deadlock_detected
_BUSY_CODES = frozenset({"55P03", "40001", "40P01"})
_BUSY_MESSAGES = ("database is locked", "busy")
_PAGE_SIZE = 1000


class _Executable(Protocol):
    def execute(self) -> Any: ...


def is_busy(error: APIError) -> bool:
    """True when the store failed because of contention rather than input."""
    if error.code in _BUSY_CODES:
        return True
    message = (error.message or "").lower()
    return any(marker in message for marker in _BUSY_MESSAGES)


def execute(query: _Executable) -> Any:
    """Execute a query builder, mapping API errors onto StoreError."""
    try:
        return query.execute()
    except APIError as exc:
        if is_busy(exc):
            raise StoreBusyError(exc.message or "store busy") from exc
        raise StoreError(exc.message or "store request failed") from exc


def select_all(
    build: Callable[[], Any], page_size: int = _PAGE_SIZE
) -> list[dict[str, Any]]:
    """Read every row of a select query, one range page at a time."""
    rows: list[dict[str, Any]] = []
    start = 0
    while True:
        response = execute(build().range(start, start + page_size - 1))
        page = response.data or []
        rows.extend(page)
        if len(page) < page_size:
            return rows
        start += page_size

import asyncio

import pytest

from tests.conftest import Busy
from visit_engine.domain.errors import RetryExhaustedError, StoreError
from visit_engine.services import retry as retry_module
from visit_engine.services.retry import RetryPolicy, with_busy_retry


@pytest.fixture
def sleeps(monkeypatch: pytest.MonkeyPatch) -> list[float]:
    recorded: list[float] = []

    async def fake_sleep(delay: float) -> None:
        recorded.append(delay)

    monkeypatch.setattr(retry_module.asyncio, "sleep", fake_sleep)
    return recorded


def test_backoff_doubles_until_success(sleeps: list[float]) -> None:
    busy = Busy(times=3)

    def call() -> str:
        busy.hit()
        return "ok"

    result = asyncio.run(
        with_busy_retry(call, action="test", attempts=5, base_delay_seconds=0.05)
    )

    assert result == "ok"
    assert busy.calls == 4
    assert sleeps == pytest.approx([0.05, 0.1, 0.2])


def test_gives_up_after_attempt_budget(sleeps: list[float]) -> None:
    busy = Busy(times=100)
    policy = RetryPolicy(attempts=3, base_delay_seconds=1)

    with pytest.raises(RetryExhaustedError) as exc_info:
        asyncio.run(policy.run(busy.hit, action="save_discovered_visits"))

    assert busy.calls == 3
    assert sleeps == [1, 2]
    assert exc_info.value.action == "save_discovered_visits"
    assert "database is locked" in str(exc_info.value)


def test_other_errors_are_not_retried(sleeps: list[float]) -> None:
    calls = []

    def call() -> None:
        calls.append(1)
        raise StoreError("constraint violation")

    with pytest.raises(StoreError, match="constraint violation"):
        asyncio.run(with_busy_retry(call, action="test"))

    assert len(calls) == 1
    assert sleeps == []

"""Tests for the bounded-concurrency runner."""

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import MagicMock

import pytest

from p2j.models import Outcome
from p2j.utils.bounded_runner import BoundedConcurrencyRunner

pytestmark = pytest.mark.unit


def _ok(item: str) -> Outcome:
    return Outcome.success(item, f"KEY-{item}")


@pytest.mark.parametrize("limit", [0, -1, True, 1.5])
def test_invalid_limit(limit: object, mock_logger: MagicMock) -> None:
    with pytest.raises(ValueError, match="Concurrency limit"):
        BoundedConcurrencyRunner(limit, mock_logger)  # type: ignore[arg-type]


def test_invalid_limit_override(mock_logger: MagicMock) -> None:
    runner = BoundedConcurrencyRunner(2, mock_logger)

    with pytest.raises(ValueError, match="Concurrency limit"):
        runner.run(["a"], _ok, limit=0)


def test_empty_input(mock_logger: MagicMock) -> None:
    assert BoundedConcurrencyRunner(3, mock_logger).run([], _ok) == []


@pytest.mark.parametrize("limit", [1, 3, 10, 64])
def test_one_outcome_per_item(limit: int, mock_logger: MagicMock) -> None:
    items = [str(i) for i in range(50)]
    calls: list[str] = []
    lock = threading.Lock()

    def worker(item: str) -> Outcome:
        with lock:
            calls.append(item)
        return _ok(item)

    outcomes = BoundedConcurrencyRunner(limit, mock_logger).run(items, worker)

    assert len(outcomes) == len(items)
    assert sorted(o.item_id for o in outcomes) == sorted(items)
    assert sorted(calls) == sorted(items)
    assert all(o.ok for o in outcomes)


@pytest.mark.parametrize("limit", [1, 2, 5])
def test_never_exceeds_limit(limit: int, mock_logger: MagicMock) -> None:
    active = 0
    peak = 0
    lock = threading.Lock()

    def worker(item: str) -> Outcome:
        nonlocal active, peak
        with lock:
            active += 1
            peak = max(peak, active)
        time.sleep(0.01)
        with lock:
            active -= 1
        return _ok(item)

    BoundedConcurrencyRunner(limit, mock_logger).run([str(i) for i in range(20)], worker)

    assert 1 <= peak <= limit


def test_submission_waits_for_free_slot(
    mock_logger: MagicMock, monkeypatch: pytest.MonkeyPatch,
) -> None:
    release = threading.Event()
    started: list[str] = []
    submitted: list[str] = []
    lock = threading.Lock()
    original_submit = ThreadPoolExecutor.submit

    def counting_submit(executor, fn, *args, **kwargs):  # noqa: ANN001, ANN002, ANN003, ANN202
        with lock:
            submitted.append(args[1])
        return original_submit(executor, fn, *args, **kwargs)

    monkeypatch.setattr(ThreadPoolExecutor, "submit", counting_submit)

    def worker(item: str) -> Outcome:
        with lock:
            started.append(item)
        release.wait(timeout=5)
        return _ok(item)

    runner = BoundedConcurrencyRunner(2, mock_logger)
    results: list[list[Outcome]] = []
    thread = threading.Thread(target=lambda: results.append(runner.run(["a", "b", "c", "d"], worker)))
    thread.start()

    deadline = time.time() + 2
    while len(started) < 2 and time.time() < deadline:
        time.sleep(0.01)
    time.sleep(0.05)

    # Items beyond the limit are not handed to the executor while both slots are held
    assert len(started) == 2
    assert submitted == ["a", "b"]
    assert thread.is_alive()

    release.set()
    thread.join(timeout=5)

    assert not thread.is_alive()
    assert submitted == ["a", "b", "c", "d"]
    assert len(results[0]) == 4


def test_worker_exception_becomes_failure(mock_logger: MagicMock) -> None:
    def worker(item: str) -> Outcome:
        if item == "bad":
            msg = "kaboom"
            raise RuntimeError(msg)
        return _ok(item)

    outcomes = BoundedConcurrencyRunner(3, mock_logger).run(["a", "bad", "c"], worker)

    by_id = {o.item_id: o for o in outcomes}
    assert set(by_id) == {"a", "bad", "c"}
    assert by_id["a"].ok
    assert by_id["c"].ok
    assert not by_id["bad"].ok
    assert "kaboom" in by_id["bad"].error
    mock_logger.exception.assert_called_once()


def test_failure_uses_item_id(mock_logger: MagicMock) -> None:
    def worker(item: dict[str, str]) -> Outcome:
        raise KeyError(item["missing"])

    outcomes = BoundedConcurrencyRunner(2, mock_logger).run(
        [{"id": "7"}], worker, item_id=lambda item: item["id"],
    )

    assert len(outcomes) == 1
    assert outcomes[0].item_id == "7"
    assert outcomes[0].error == "KeyError: 'missing'"


def test_non_outcome_result_is_failure(mock_logger: MagicMock) -> None:
    outcomes = BoundedConcurrencyRunner(1, mock_logger).run(["a"], lambda item: None)  # type: ignore[arg-type,return-value]

    assert not outcomes[0].ok
    assert "expected Outcome" in outcomes[0].error

import asyncio
import threading
import time
from unittest.mock import MagicMock

import pytest

from bulkquery.common.errors import ErrorCode, SplitError
from bulkquery.common.logger import current_invocation_id
from bulkquery.execution.contracts import ResultColumn, TargetFailure, TargetSuccess
from bulkquery.execution.coordinator import bulk_query, run_bulk_query
from bulkquery.execution.executor import ExecutorService, tag_result
from bulkquery.targets.models import Target


def _target(database, server="srv"):
    return Target(server_name=server, database=database, connection_url="sqlite:///unused")


class FakeExecutor(ExecutorService):
    """Scripted executor: per-database delay, columns and rows, or a failure."""

    def __init__(self, plans, barrier=None):
        self.plans = plans
        self.barrier = barrier
        self.calls = []
        self.invocation_ids = []
        self._lock = threading.Lock()

    def execute(self, target, batches, timeout_seconds):
        with self._lock:
            self.calls.append((target.database, list(batches), timeout_seconds))
            self.invocation_ids.append(current_invocation_id())
        if self.barrier is not None:
            self.barrier.wait()
        plan = self.plans[target.database]
        time.sleep(plan.get("delay", 0))
        if "error" in plan:
            return TargetFailure(
                target=target.label,
                message=f"{target.label}: {plan['error']}",
                error_code=ErrorCode.CONNECTION_FAILED,
            )
        columns = [ResultColumn(name=name, ordinal=i) for i, name in enumerate(plan["columns"])]
        return TargetSuccess(target=target.label, result=tag_result(target, columns, plan["rows"]))


def test_empty_target_list_returns_empty_aggregate():
    executor = FakeExecutor({})

    aggregate = run_bulk_query([], "SELECT 1", 5, executor=executor)

    assert aggregate.result is None
    assert aggregate.messages == []
    assert aggregate.rows == []
    assert executor.calls == []


def test_split_error_dispatches_nothing():
    executor = MagicMock(spec=ExecutorService)

    with pytest.raises(SplitError):
        run_bulk_query([_target("a")], None, 5, executor=executor)

    executor.execute.assert_not_called()


def test_batches_and_timeout_are_shared_with_every_target():
    executor = FakeExecutor({
        "a": {"columns": ["x"], "rows": [(1,)]},
        "b": {"columns": ["x"], "rows": [(2,)]},
    })

    run_bulk_query([_target("a"), _target("b")], "UPDATE t SET x = 1\nGO\nSELECT x FROM t", 12, executor=executor)

    assert sorted(executor.calls) == [
        ("a", ["UPDATE t SET x = 1\n", "SELECT x FROM t"], 12),
        ("b", ["UPDATE t SET x = 1\n", "SELECT x FROM t"], 12),
    ]


def test_canonical_schema_follows_input_order_not_completion_order():
    # Arrange: A is slow, B finishes first
    plans = {
        "a": {"delay": 0.3, "columns": ["id", "name"], "rows": [(1, "Ada")]},
        "b": {"delay": 0.0, "columns": ["total"], "rows": [(10,), (20,)]},
    }
    a, b = _target("a"), _target("b")

    # Act
    forward = run_bulk_query([a, b], "SELECT 1", 5, executor=FakeExecutor(plans))
    backward = run_bulk_query([b, a], "SELECT 1", 5, executor=FakeExecutor(plans))

    # Assert
    assert [c.name for c in forward.columns] == ["Server", "Database", "id", "name"]
    assert forward.rows == [("srv", "a", 1, "Ada")]
    assert forward.messages == ["Columns returned by b - srv do not match those of a - srv."]

    assert [c.name for c in backward.columns] == ["Server", "Database", "total"]
    assert backward.row_count == 2
    assert backward.messages == ["Columns returned by a - srv do not match those of b - srv."]


def test_failing_target_does_not_affect_others():
    # Arrange
    plans = {
        "good": {"columns": ["x"], "rows": [(1,), (2,)]},
        "bad": {"error": "Login timeout expired"},
    }

    # Act
    aggregate = run_bulk_query([_target("good"), _target("bad")], "SELECT x", 5, executor=FakeExecutor(plans))

    # Assert
    assert aggregate.rows == [("srv", "good", 1), ("srv", "good", 2)]
    assert aggregate.messages == ["bad - srv: Login timeout expired"]
    assert aggregate.failed == 1


def test_rows_are_merged_in_input_order_regardless_of_completion():
    plans = {
        "first": {"delay": 0.2, "columns": ["x"], "rows": [(1,)]},
        "second": {"delay": 0.1, "columns": ["x"], "rows": [(2,)]},
        "third": {"delay": 0.0, "columns": ["x"], "rows": [(3,)]},
    }
    targets = [_target("first"), _target("second"), _target("third")]

    aggregate = run_bulk_query(targets, "SELECT x", 5, executor=FakeExecutor(plans))

    assert [row[1] for row in aggregate.rows] == ["first", "second", "third"]


def test_targets_run_concurrently():
    # Every worker waits at the barrier; sequential dispatch would break it.
    targets = [_target(f"db{i}") for i in range(6)]
    plans = {t.database: {"columns": ["x"], "rows": [(1,)]} for t in targets}
    barrier = threading.Barrier(len(targets), timeout=5)

    aggregate = run_bulk_query(targets, "SELECT 1", 5, executor=FakeExecutor(plans, barrier=barrier))

    assert aggregate.succeeded == 6
    assert aggregate.row_count == 6


def test_event_loop_is_not_blocked_while_targets_run():
    plans = {"slow": {"delay": 0.3, "columns": ["x"], "rows": [(1,)]}}
    ticks = []

    async def _ticker(stop):
        while not stop.is_set():
            ticks.append(time.monotonic())
            await asyncio.sleep(0.01)

    async def _main():
        stop = asyncio.Event()
        ticker = asyncio.create_task(_ticker(stop))
        aggregate = await bulk_query([_target("slow")], "SELECT 1", 5, executor=FakeExecutor(plans))
        stop.set()
        await ticker
        return aggregate

    aggregate = asyncio.run(_main())

    assert aggregate.row_count == 1
    assert len(ticks) > 5


def test_invocation_id_reaches_worker_threads():
    plans = {"a": {"columns": ["x"], "rows": []}, "b": {"columns": ["x"], "rows": []}}
    executor = FakeExecutor(plans)

    run_bulk_query([_target("a"), _target("b")], "SELECT 1", 5, executor=executor)

    assert len(set(executor.invocation_ids)) == 1
    assert executor.invocation_ids[0] is not None

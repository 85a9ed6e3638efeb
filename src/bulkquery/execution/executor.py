from __future__ import annotations

import time
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

from sqlalchemy.engine import Connection

from bulkquery.adapters.base import BaseSQLAlchemyAdapter, describe_error
from bulkquery.adapters.registry import AdapterRegistry
from bulkquery.common.errors import ErrorCode, TargetExecutionError
from bulkquery.common.logger import get_logger
from bulkquery.execution.contracts import (
    ResultColumn,
    ResultSet,
    Row,
    TargetFailure,
    TargetOutcome,
    TargetSuccess,
    provenance_columns,
)
from bulkquery.execution.splitter import is_blank
from bulkquery.targets.models import Target

logger = get_logger(__name__)


class ExecutorService(ABC):
    """Runs a batch sequence against one target.

    Implementations never raise: every failure is returned as a TargetFailure
    so the coordinator only inspects outcome variants.
    """

    @abstractmethod
    def execute(self, target: Target, batches: Sequence[str], timeout_seconds: int) -> TargetOutcome:
        raise NotImplementedError


def tag_result(target: Target, columns: List[ResultColumn], rows: List[Row]) -> ResultSet:
    """Prepends the Server/Database provenance columns and stamps every row."""
    shifted = [col.model_copy(update={"ordinal": col.ordinal + 2}) for col in columns]
    tagged = [(target.server_name, target.database, *row) for row in rows]
    return ResultSet(columns=provenance_columns() + shifted, rows=tagged)


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000


class SqlTargetExecutor(ExecutorService):
    """Executes batches over one SQLAlchemy connection per target."""

    def __init__(self, registry: Optional[AdapterRegistry] = None):
        self.registry = registry or AdapterRegistry()

    def execute(self, target: Target, batches: Sequence[str], timeout_seconds: int) -> TargetOutcome:
        start = time.perf_counter()
        try:
            adapter = self.registry.for_target(target)
            connection = adapter.connect(target, timeout_seconds)
        except Exception as exc:
            return self._failure(target, ErrorCode.CONNECTION_FAILED, exc, start)

        try:
            result = self._run_batches(adapter, connection, target, batches, timeout_seconds)
        except Exception as exc:
            timed_out = getattr(exc, "timed_out", False) or adapter.is_timeout(exc)
            code = ErrorCode.EXECUTION_TIMEOUT if timed_out else ErrorCode.EXECUTION_FAILED
            return self._failure(target, code, exc, start)
        finally:
            self._release(target, connection)

        elapsed = _elapsed_ms(start)
        logger.info(
            f"{target.label}: {result.row_count} rows in {elapsed:.0f} ms",
            extra={"target": target.label, "row_count": result.row_count, "elapsed_ms": round(elapsed, 1)},
        )
        return TargetSuccess(target=target.label, result=result, elapsed_ms=elapsed)

    def _run_batches(
        self,
        adapter: BaseSQLAlchemyAdapter,
        connection: Connection,
        target: Target,
        batches: Sequence[str],
        timeout_seconds: int,
    ) -> ResultSet:
        # Blank batches are no-ops, the last batch with content produces rows
        statements = [batch for batch in batches if not is_blank(batch)]
        if not statements:
            return tag_result(target, [], [])

        *side_effects, producing = statements
        for index, batch in enumerate(side_effects):
            try:
                adapter.run_batch(connection, batch, timeout_seconds)
            except Exception as exc:
                raise TargetExecutionError(
                    describe_error(exc),
                    batch_index=index,
                    timed_out=adapter.is_timeout(exc),
                ) from exc

        columns, rows = adapter.run_query(connection, producing, timeout_seconds)
        return tag_result(target, columns, rows)

    def _release(self, target: Target, connection: Connection) -> None:
        try:
            connection.close()
        except Exception as exc:
            logger.warning(f"{target.label}: failed to close connection: {describe_error(exc)}")

    def _failure(self, target: Target, code: ErrorCode, exc: BaseException, start: float) -> TargetFailure:
        message = f"{target.label}: {describe_error(exc)}"
        elapsed = _elapsed_ms(start)
        batch_index = getattr(exc, "batch_index", None)
        extra = {"target": target.label, "error_code": code.value, "elapsed_ms": round(elapsed, 1)}
        if batch_index is not None:
            extra["batch"] = batch_index + 1
            logger.warning(f"{message} (batch {batch_index + 1})", extra=extra)
        else:
            logger.warning(message, extra=extra)
        return TargetFailure(
            target=target.label,
            message=message,
            error_code=code,
            elapsed_ms=elapsed,
        )

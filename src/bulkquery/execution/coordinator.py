"""
Fan-Out Coordinator: runs one script against many targets at once.

Split -> Dispatch -> Join -> Fold -> Emit. Each target gets its own worker
thread for the duration of the call; the caller's event loop stays free
while targets are in flight. Outcomes are folded in the order the targets
were supplied, never in completion order, so the canonical schema and the
message order are reproducible.
"""
from __future__ import annotations

import asyncio
import contextvars
import functools
import uuid
from concurrent.futures import ThreadPoolExecutor
from typing import Optional, Sequence

from bulkquery.common.logger import get_logger, invocation_context
from bulkquery.execution.contracts import AggregateResult
from bulkquery.execution.executor import ExecutorService, SqlTargetExecutor
from bulkquery.execution.reconciler import fold_outcomes
from bulkquery.execution.splitter import split_script
from bulkquery.targets.models import Target

logger = get_logger(__name__)


async def bulk_query(
    targets: Sequence[Target],
    script: str,
    timeout_seconds: int,
    executor: Optional[ExecutorService] = None,
) -> AggregateResult:
    """Executes a script against every target concurrently and reconciles the results.

    Args:
        targets (Sequence[Target]): Targets in the order their results are folded.
        script (str): The script, optionally split into batches by ``GO`` lines.
        timeout_seconds (int): Bound for each individual statement (and
            connection open) on each target. 0 disables it.
        executor (Optional[ExecutorService]): Per-target executor. Defaults to
            SqlTargetExecutor.

    Returns:
        AggregateResult: Merged rows, canonical schema and per-target messages.

    Raises:
        SplitError: If the script cannot be split. No target is dispatched.
    """
    batches = split_script(script)
    targets = list(targets)
    if not targets:
        return AggregateResult()

    executor = executor or SqlTargetExecutor()
    invocation_id = uuid.uuid4().hex[:12]

    with invocation_context(invocation_id):
        logger.info(f"Dispatching {len(batches)} batch(es) to {len(targets)} target(s)")
        loop = asyncio.get_running_loop()
        pool = ThreadPoolExecutor(max_workers=len(targets), thread_name_prefix="bulkquery")
        try:
            futures = [
                loop.run_in_executor(
                    pool,
                    functools.partial(
                        contextvars.copy_context().run,
                        executor.execute,
                        target,
                        batches,
                        timeout_seconds,
                    ),
                )
                for target in targets
            ]
            outcomes = await asyncio.gather(*futures)
        finally:
            # Workers are done unless the caller was cancelled; never block the loop on them
            pool.shutdown(wait=False)

        aggregate = fold_outcomes(outcomes)
        logger.info(
            f"Completed: {aggregate.succeeded} succeeded, {aggregate.failed} failed, "
            f"{aggregate.row_count} rows, {len(aggregate.messages)} message(s)"
        )
    return aggregate


def run_bulk_query(
    targets: Sequence[Target],
    script: str,
    timeout_seconds: int,
    executor: Optional[ExecutorService] = None,
) -> AggregateResult:
    """Blocking wrapper around bulk_query for callers without an event loop."""
    return asyncio.run(bulk_query(targets, script, timeout_seconds, executor=executor))

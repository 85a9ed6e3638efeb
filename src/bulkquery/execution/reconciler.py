"""
Schema Reconciler and the Fold step of a bulk query.

Schemas are compared positionally: same column count and, at every ordinal,
the same name, type and nullability. A reordered but otherwise equal schema
is a mismatch.
"""
from __future__ import annotations

from enum import Enum
from typing import List, Optional, Sequence

from bulkquery.common.errors import ErrorCode, ErrorSeverity, TargetError
from bulkquery.common.logger import get_logger
from bulkquery.execution.contracts import (
    AggregateResult,
    ResultSet,
    Schema,
    TargetFailure,
    TargetOutcome,
)

logger = get_logger(__name__)


class SchemaVerdict(str, Enum):
    MATCH = "MATCH"
    MISMATCH = "MISMATCH"


def reconcile(canonical: Schema, candidate: Schema) -> SchemaVerdict:
    if len(canonical) != len(candidate):
        return SchemaVerdict.MISMATCH
    for expected, actual in zip(canonical, candidate):
        if not expected.same_shape(actual):
            return SchemaVerdict.MISMATCH
    return SchemaVerdict.MATCH


def mismatch_message(target: str, canonical_target: str) -> str:
    return f"Columns returned by {target} do not match those of {canonical_target}."


def fold_outcomes(outcomes: Sequence[TargetOutcome]) -> AggregateResult:
    """Folds per-target outcomes, in the order given, into one aggregate.

    The first success fixes the canonical schema. Later successes are merged
    only on an exact schema match; a mismatching target contributes no rows
    and one message. Every failure contributes its message and no rows.

    Args:
        outcomes (Sequence[TargetOutcome]): Outcomes in target input order.

    Returns:
        AggregateResult: The reconciled result.
    """
    canonical: Optional[ResultSet] = None
    canonical_target: Optional[str] = None
    rows: List[tuple] = []
    messages: List[str] = []
    errors: List[TargetError] = []
    succeeded = 0
    failed = 0

    for outcome in outcomes:
        if isinstance(outcome, TargetFailure):
            failed += 1
            messages.append(outcome.message)
            errors.append(outcome.to_error())
            continue

        succeeded += 1
        candidate = outcome.result
        if canonical is None:
            canonical = candidate
            canonical_target = outcome.target
            rows.extend(candidate.rows)
            continue

        if reconcile(canonical.columns, candidate.columns) is SchemaVerdict.MATCH:
            rows.extend(candidate.rows)
            continue

        message = mismatch_message(outcome.target, canonical_target)
        logger.warning(message, extra={"target": outcome.target, "error_code": ErrorCode.SCHEMA_MISMATCH.value})
        messages.append(message)
        errors.append(
            TargetError(
                target=outcome.target,
                message=message,
                severity=ErrorSeverity.WARNING,
                error_code=ErrorCode.SCHEMA_MISMATCH,
                details={"canonical_target": canonical_target},
            )
        )

    result = None
    if canonical is not None:
        result = ResultSet.model_construct(columns=list(canonical.columns), rows=rows)

    return AggregateResult(
        result=result,
        canonical_target=canonical_target,
        messages=messages,
        errors=errors,
        succeeded=succeeded,
        failed=failed,
    )

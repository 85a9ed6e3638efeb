"""Script splitting, per-target execution, reconciliation and fan-out."""
from .contracts import (
    AggregateResult,
    ResultColumn,
    ResultSet,
    TargetFailure,
    TargetOutcome,
    TargetSuccess,
)
from .splitter import split_script
from .reconciler import SchemaVerdict, fold_outcomes, reconcile

__all__ = [
    "AggregateResult",
    "ResultColumn",
    "ResultSet",
    "TargetFailure",
    "TargetOutcome",
    "TargetSuccess",
    "split_script",
    "SchemaVerdict",
    "fold_outcomes",
    "reconcile",
]

"""
BulkQuery: run one SQL script against many databases concurrently and
reconcile the per-database results into a single table.
"""
from bulkquery.execution.contracts import AggregateResult, ResultColumn, ResultSet, TargetFailure, TargetSuccess
from bulkquery.execution.coordinator import bulk_query, run_bulk_query
from bulkquery.execution.executor import ExecutorService, SqlTargetExecutor
from bulkquery.execution.splitter import split_script
from bulkquery.targets.models import ServerDefinition, Target

__all__ = [
    "AggregateResult",
    "ResultColumn",
    "ResultSet",
    "TargetFailure",
    "TargetSuccess",
    "bulk_query",
    "run_bulk_query",
    "ExecutorService",
    "SqlTargetExecutor",
    "split_script",
    "ServerDefinition",
    "Target",
]

import json
import unittest
from unittest.mock import MagicMock, call

from bulkquery.common.errors import ErrorCode, TargetConnectionError
from bulkquery.common.logger import JsonFormatter
from bulkquery.execution.contracts import ResultColumn
from bulkquery.execution.executor import SqlTargetExecutor, tag_result
from bulkquery.targets.models import Target


class TestTagResult(unittest.TestCase):

    def test_prepends_provenance_and_shifts_ordinals(self):
        target = Target(server_name="prod", database="eu", connection_url="sqlite:///x")
        columns = [ResultColumn(name="id", ordinal=0), ResultColumn(name="name", ordinal=1)]

        result = tag_result(target, columns, [(1, "Ada")])

        self.assertEqual(result.column_names, ["Server", "Database", "id", "name"])
        self.assertEqual([c.ordinal for c in result.columns], [0, 1, 2, 3])
        self.assertEqual(result.rows, [("prod", "eu", 1, "Ada")])

    def test_no_columns_keeps_provenance_only(self):
        target = Target(server_name="prod", database="eu", connection_url="sqlite:///x")

        result = tag_result(target, [], [])

        self.assertEqual(result.column_names, ["Server", "Database"])
        self.assertEqual(result.row_count, 0)


class TestSqlTargetExecutor(unittest.TestCase):
    def setUp(self):
        self.mock_registry = MagicMock()
        self.mock_adapter = MagicMock()
        self.mock_connection = MagicMock()
        self.mock_registry.for_target.return_value = self.mock_adapter
        self.mock_adapter.connect.return_value = self.mock_connection
        self.mock_adapter.is_timeout.return_value = False
        self.mock_adapter.run_query.return_value = (
            [ResultColumn(name="n", type="int", ordinal=0, nullable=False)],
            [(1,), (2,)],
        )

        self.target = Target(server_name="prod", database="eu", connection_url="mssql+pyodbc://h/master")
        self.executor = SqlTargetExecutor(registry=self.mock_registry)

    def test_success_runs_side_effects_then_producing_batch(self):
        """Every batch but the last is a side effect; the last one produces rows."""
        outcome = self.executor.execute(self.target, ["CREATE TABLE t (n INT)", "INSERT INTO t VALUES (1)", "SELECT n FROM t"], 7)

        self.assertTrue(outcome.ok)
        self.assertEqual(outcome.target, "eu - prod")
        self.assertEqual(outcome.result.rows, [("prod", "eu", 1), ("prod", "eu", 2)])
        self.mock_adapter.connect.assert_called_once_with(self.target, 7)
        self.assertEqual(
            self.mock_adapter.run_batch.call_args_list,
            [
                call(self.mock_connection, "CREATE TABLE t (n INT)", 7),
                call(self.mock_connection, "INSERT INTO t VALUES (1)", 7),
            ],
        )
        self.mock_adapter.run_query.assert_called_once_with(self.mock_connection, "SELECT n FROM t", 7)
        self.mock_connection.close.assert_called_once()

    def test_blank_batches_are_skipped(self):
        self.executor.execute(self.target, ["", "SELECT 1\n", "  \n\t", ""], 5)

        self.mock_adapter.run_batch.assert_not_called()
        self.mock_adapter.run_query.assert_called_once_with(self.mock_connection, "SELECT 1\n", 5)

    def test_all_blank_script_returns_provenance_only(self):
        outcome = self.executor.execute(self.target, ["", "\n"], 5)

        self.assertTrue(outcome.ok)
        self.assertEqual(outcome.result.column_names, ["Server", "Database"])
        self.assertEqual(outcome.result.rows, [])
        self.mock_adapter.run_query.assert_not_called()
        self.mock_connection.close.assert_called_once()

    def test_connection_failure(self):
        self.mock_adapter.connect.side_effect = TargetConnectionError("Login failed for user 'sa'.")

        outcome = self.executor.execute(self.target, ["SELECT 1"], 5)

        self.assertFalse(outcome.ok)
        self.assertEqual(outcome.error_code, ErrorCode.CONNECTION_FAILED)
        self.assertEqual(outcome.message, "eu - prod: Login failed for user 'sa'.")
        self.mock_adapter.run_query.assert_not_called()

    def test_unsupported_engine_is_a_connection_failure(self):
        self.mock_registry.for_target.side_effect = ValueError("No adapter found for engine type: 'oracle'.")

        outcome = self.executor.execute(self.target, ["SELECT 1"], 5)

        self.assertEqual(outcome.error_code, ErrorCode.CONNECTION_FAILED)
        self.assertIn("oracle", outcome.message)

    def test_failed_batch_stops_later_batches_and_releases_connection(self):
        self.mock_adapter.run_batch.side_effect = [None, RuntimeError("Invalid object name 'missing'.")]

        outcome = self.executor.execute(self.target, ["SET NOCOUNT ON", "DELETE FROM missing", "UPDATE t SET n = 1", "SELECT 1"], 5)

        self.assertEqual(outcome.error_code, ErrorCode.EXECUTION_FAILED)
        self.assertEqual(outcome.message, "eu - prod: Invalid object name 'missing'.")
        self.assertEqual(self.mock_adapter.run_batch.call_count, 2)
        self.mock_adapter.run_query.assert_not_called()
        self.mock_connection.close.assert_called_once()

    def test_timeout_in_side_effect_batch(self):
        self.mock_adapter.run_batch.side_effect = RuntimeError("Query timeout expired")
        self.mock_adapter.is_timeout.return_value = True

        outcome = self.executor.execute(self.target, ["WAITFOR DELAY '00:01:00'", "SELECT 1"], 1)

        self.assertEqual(outcome.error_code, ErrorCode.EXECUTION_TIMEOUT)

    def test_timeout_in_producing_batch(self):
        self.mock_adapter.run_query.side_effect = RuntimeError("canceling statement due to statement timeout")
        self.mock_adapter.is_timeout.return_value = True

        outcome = self.executor.execute(self.target, ["SELECT pg_sleep(60)"], 1)

        self.assertEqual(outcome.error_code, ErrorCode.EXECUTION_TIMEOUT)
        self.mock_connection.close.assert_called_once()

    def test_close_failure_does_not_change_the_outcome(self):
        self.mock_connection.close.side_effect = RuntimeError("connection already closed")

        outcome = self.executor.execute(self.target, ["SELECT 1"], 5)

        self.assertTrue(outcome.ok)

    def test_failure_log_carries_structured_fields(self):
        self.mock_adapter.run_batch.side_effect = RuntimeError("Invalid object name 'missing'.")

        with self.assertLogs("bulkquery.execution.executor", level="WARNING") as logs:
            self.executor.execute(self.target, ["DELETE FROM missing", "SELECT 1"], 5)

        record = logs.records[0]
        self.assertEqual(record.target, "eu - prod")
        self.assertEqual(record.error_code, "EXECUTION_FAILED")
        self.assertEqual(record.batch, 1)
        data = json.loads(JsonFormatter().format(record))
        self.assertEqual(data["target"], "eu - prod")
        self.assertEqual(data["error_code"], "EXECUTION_FAILED")

import os
import sqlite3
import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.engine import URL, Connection, make_url

from bulkquery.adapters.base import BaseSQLAlchemyAdapter, describe_columns
from bulkquery.common.errors import TargetConnectionError
from bulkquery.execution.contracts import ResultColumn, Row
from bulkquery.targets.models import ServerDefinition, Target

SQLITE_SUFFIXES = (".db", ".sqlite", ".sqlite3")
MEMORY_DATABASE = ":memory:"


def split_statements(sql: str) -> List[str]:
    """Splits SQL text into complete statements.

    Semicolons inside string literals, comments and trigger bodies do not end
    a statement; ``sqlite3.complete_statement`` decides. Trailing text without
    a terminating semicolon is the last statement.
    """
    statements: List[str] = []
    buffer = ""
    *terminated, remainder = sql.split(";")
    for piece in terminated:
        buffer += piece + ";"
        if sqlite3.complete_statement(buffer):
            if buffer.strip(" \t\r\n;"):
                statements.append(buffer)
            buffer = ""
    buffer += remainder
    if buffer.strip(" \t\r\n;"):
        statements.append(buffer)
    return statements


class SqliteAdapter(BaseSQLAlchemyAdapter):
    """
    SQLite, where a "server" is a directory and each database file in it is a
    catalog. ``sqlite:////data/shards`` + ``eu.db`` -> ``/data/shards/eu.db``.

    Only existing files are opened; a missing catalog is a connection failure,
    never a new empty database.
    """

    engine_id = "sqlite"

    # sqlite3 checks the progress handler every N virtual machine instructions
    PROGRESS_STEPS = 1000

    def scoped_url(self, target: Target) -> URL:
        url = make_url(target.connection_url)
        if target.database == MEMORY_DATABASE or os.path.isabs(target.database):
            return url.set(database=target.database)
        return url.set(database=os.path.join(url.database or "", target.database))

    def connect_args(self, url: URL, timeout_seconds: int) -> Dict[str, Any]:
        args: Dict[str, Any] = {}
        if timeout_seconds > 0:
            args["timeout"] = timeout_seconds
        return args

    def open(self, url: URL, timeout_seconds: int) -> Connection:
        path = url.database
        if path and path != MEMORY_DATABASE and not os.path.isfile(path):
            raise TargetConnectionError(f"unable to open database file: {path} does not exist")
        return super().open(url, timeout_seconds)

    def before_statement(self, connection: Connection, timeout_seconds: int) -> None:
        if timeout_seconds <= 0:
            return
        deadline = time.monotonic() + timeout_seconds

        def _expired() -> int:
            return 1 if time.monotonic() > deadline else 0

        connection.connection.driver_connection.set_progress_handler(_expired, self.PROGRESS_STEPS)

    def after_statement(self, connection: Connection) -> None:
        connection.connection.driver_connection.set_progress_handler(None, 0)

    def run_batch(self, connection: Connection, sql: str, timeout_seconds: int) -> None:
        # executescript accepts several statements per batch, execute() does not
        self.before_statement(connection, timeout_seconds)
        try:
            connection.connection.driver_connection.executescript(sql)
        finally:
            self.after_statement(connection)

    def run_query(
        self, connection: Connection, sql: str, timeout_seconds: int
    ) -> Tuple[List[ResultColumn], List[Row]]:
        """Runs every statement of the batch in order and keeps the first result set.

        sqlite3 executes one statement per ``execute()``, so ``INSERT ...;
        SELECT ...`` in a single batch is run statement by statement.
        """
        self.before_statement(connection, timeout_seconds)
        cursor = connection.connection.cursor()
        columns: Optional[List[ResultColumn]] = None
        rows: List[Row] = []
        try:
            for statement in split_statements(sql):
                cursor.execute(statement)
                if columns is None and cursor.description is not None:
                    columns = describe_columns(cursor.description)
                    rows = [tuple(row) for row in cursor.fetchall()]
            return columns or [], rows
        finally:
            cursor.close()
            self.after_statement(connection)

    def list_databases(
        self,
        server: ServerDefinition,
        timeout_seconds: int = 5,
        hide_system_databases: bool = True,
    ) -> List[str]:
        directory = Path(server.url().database or ".")
        if not directory.is_dir():
            raise FileNotFoundError(f"SQLite server directory not found: {directory}")
        names = sorted(
            entry.name for entry in directory.iterdir()
            if entry.is_file() and entry.suffix.lower() in SQLITE_SUFFIXES
        )
        return self.filter_databases(names, hide_system_databases)

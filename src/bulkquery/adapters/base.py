from __future__ import annotations

from typing import Any, Dict, FrozenSet, List, Optional, Sequence, Tuple

from sqlalchemy import create_engine
from sqlalchemy.engine import URL, Connection, Engine, make_url
from sqlalchemy.exc import DBAPIError
from sqlalchemy.pool import NullPool

from bulkquery.common.errors import TargetConnectionError
from bulkquery.common.logger import get_logger
from bulkquery.execution.contracts import ResultColumn, Row
from bulkquery.targets.models import ServerDefinition, Target

logger = get_logger(__name__)

TIMEOUT_MARKERS = ("timeout", "timed out", "time out", "canceling statement", "interrupted")


def describe_error(exc: BaseException) -> str:
    """Driver message without SQLAlchemy's statement echo and background link."""
    if isinstance(exc, DBAPIError) and exc.orig is not None:
        return " ".join(str(exc.orig).split())
    return " ".join(str(exc).split()) or type(exc).__name__


def _type_name(type_code: Any) -> str:
    if type_code is None:
        return "unknown"
    if isinstance(type_code, type):
        return type_code.__name__
    return str(type_code)


def describe_columns(description: Sequence[Sequence[Any]]) -> List[ResultColumn]:
    """ResultColumns from a DBAPI ``cursor.description``."""
    return [
        ResultColumn(
            name=str(entry[0]),
            type=_type_name(entry[1]),
            ordinal=index,
            nullable=entry[6] if len(entry) > 6 else None,
        )
        for index, entry in enumerate(description)
    ]


class BaseSQLAlchemyAdapter:
    """
    Base class for all SQLAlchemy-based adapters.
    Implements common logic for catalog scoping, connection, execution and
    database discovery. Subclasses only describe their driver's knobs.

    Adapters hold no per-connection state, so one instance is shared by every
    concurrently running target of the same engine.
    """

    engine_id: str = "generic"
    system_databases: FrozenSet[str] = frozenset()
    list_databases_sql: Optional[str] = None

    def __str__(self):
        return f"{type(self).__name__} ({self.engine_id})"

    def scoped_url(self, target: Target) -> URL:
        """The server URL with its database replaced by the target's catalog."""
        return make_url(target.connection_url).set(database=target.database)

    def connect_args(self, url: URL, timeout_seconds: int) -> Dict[str, Any]:
        return {}

    def create_engine(self, url: URL, timeout_seconds: int) -> Engine:
        # NullPool: closing the Connection closes the DBAPI connection.
        return create_engine(
            url,
            poolclass=NullPool,
            isolation_level="AUTOCOMMIT",
            connect_args=self.connect_args(url, timeout_seconds),
        )

    def open(self, url: URL, timeout_seconds: int) -> Connection:
        engine = self.create_engine(url, timeout_seconds)
        try:
            connection = engine.connect()
        except Exception as exc:
            raise TargetConnectionError(describe_error(exc)) from exc

        try:
            self.prepare_connection(connection, timeout_seconds)
        except Exception as exc:
            connection.close()
            raise TargetConnectionError(describe_error(exc)) from exc
        return connection

    def connect(self, target: Target, timeout_seconds: int) -> Connection:
        """Opens one connection scoped to the target's catalog.

        Raises:
            TargetConnectionError: If the connection cannot be established.
        """
        url = self.scoped_url(target)
        logger.debug(f"Connecting to {url.render_as_string(hide_password=True)}")
        return self.open(url, timeout_seconds)

    def prepare_connection(self, connection: Connection, timeout_seconds: int) -> None:
        """Hook run once after connecting, e.g. to set a session-wide statement timeout."""

    def before_statement(self, connection: Connection, timeout_seconds: int) -> None:
        """Hook run before every batch."""

    def after_statement(self, connection: Connection) -> None:
        """Hook run after every batch, on success and failure."""

    def is_timeout(self, exc: BaseException) -> bool:
        message = describe_error(exc).lower()
        return any(marker in message for marker in TIMEOUT_MARKERS)

    def run_batch(self, connection: Connection, sql: str, timeout_seconds: int) -> None:
        """Executes a side-effect batch without retrieving rows."""
        self.before_statement(connection, timeout_seconds)
        try:
            connection.exec_driver_sql(sql, execution_options={"no_parameters": True})
        finally:
            self.after_statement(connection)

    def run_query(
        self, connection: Connection, sql: str, timeout_seconds: int
    ) -> Tuple[List[ResultColumn], List[Row]]:
        """Executes the producing batch and materializes its first result set.

        Row-count-only results that precede it (e.g. an INSERT earlier in the
        same batch) are skipped. A batch that yields no result set at all
        returns no columns and no rows.
        """
        self.before_statement(connection, timeout_seconds)
        cursor = connection.connection.cursor()
        try:
            cursor.execute(sql)
            while cursor.description is None and self._next_result(cursor):
                pass
            if cursor.description is None:
                return [], []
            return describe_columns(cursor.description), [tuple(row) for row in cursor.fetchall()]
        finally:
            cursor.close()
            self.after_statement(connection)

    def _next_result(self, cursor) -> bool:
        nextset = getattr(cursor, "nextset", None)
        if nextset is None:
            return False
        try:
            return bool(nextset())
        except Exception:
            # Drivers raise NotSupportedError instead of returning None
            return False

    def server_url(self, server: ServerDefinition) -> URL:
        return server.url()

    def list_databases(
        self,
        server: ServerDefinition,
        timeout_seconds: int = 5,
        hide_system_databases: bool = True,
    ) -> List[str]:
        """Lists the catalogs available on a server.

        Raises:
            TargetConnectionError: If the server cannot be reached.
            NotImplementedError: If the adapter has no discovery query.
        """
        if self.list_databases_sql is None:
            raise NotImplementedError(f"{self} cannot list databases")

        connection = self.open(self.server_url(server), timeout_seconds)
        try:
            names = [row[0] for row in connection.exec_driver_sql(self.list_databases_sql)]
        finally:
            connection.close()
        return self.filter_databases(names, hide_system_databases)

    def filter_databases(self, names: List[str], hide_system_databases: bool) -> List[str]:
        if not hide_system_databases:
            return list(names)
        return [name for name in names if name.lower() not in self.system_databases]

from typing import Any, Dict

from sqlalchemy.engine import URL, Connection

from bulkquery.adapters.base import BaseSQLAlchemyAdapter


class MssqlAdapter(BaseSQLAlchemyAdapter):
    """SQL Server via pyodbc (default) or pymssql."""

    engine_id = "mssql"
    system_databases = frozenset({"master", "model", "msdb", "tempdb"})
    list_databases_sql = "SELECT name FROM master.dbo.sysdatabases ORDER BY name"

    def connect_args(self, url: URL, timeout_seconds: int) -> Dict[str, Any]:
        if timeout_seconds <= 0:
            return {}
        if url.get_driver_name() == "pymssql":
            return {"login_timeout": timeout_seconds, "timeout": timeout_seconds}
        # pyodbc: login timeout only, the query timeout is set on the connection
        return {"timeout": timeout_seconds}

    def prepare_connection(self, connection: Connection, timeout_seconds: int) -> None:
        if timeout_seconds <= 0:
            return
        driver_connection = connection.connection.driver_connection
        if hasattr(driver_connection, "timeout"):
            driver_connection.timeout = timeout_seconds

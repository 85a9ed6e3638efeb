"""Per-dialect SQLAlchemy adapters: catalog scoping, timeouts and discovery."""
from bulkquery.adapters.base import BaseSQLAlchemyAdapter, describe_error
from bulkquery.adapters.mssql import MssqlAdapter
from bulkquery.adapters.mysql import MysqlAdapter
from bulkquery.adapters.postgres import PostgresAdapter
from bulkquery.adapters.sqlite import SqliteAdapter
from bulkquery.adapters.registry import AdapterRegistry, discover_adapters, normalize_engine_id

__all__ = [
    "BaseSQLAlchemyAdapter",
    "describe_error",
    "MssqlAdapter",
    "MysqlAdapter",
    "PostgresAdapter",
    "SqliteAdapter",
    "AdapterRegistry",
    "discover_adapters",
    "normalize_engine_id",
]

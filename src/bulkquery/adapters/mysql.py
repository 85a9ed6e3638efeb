from typing import Any, Dict

from sqlalchemy.engine import URL

from bulkquery.adapters.base import BaseSQLAlchemyAdapter


class MysqlAdapter(BaseSQLAlchemyAdapter):
    engine_id = "mysql"
    system_databases = frozenset({"information_schema", "mysql", "performance_schema", "sys"})
    list_databases_sql = "SHOW DATABASES"

    def connect_args(self, url: URL, timeout_seconds: int) -> Dict[str, Any]:
        if timeout_seconds <= 0:
            return {}
        return {
            "connect_timeout": timeout_seconds,
            "read_timeout": timeout_seconds,
            "write_timeout": timeout_seconds,
        }

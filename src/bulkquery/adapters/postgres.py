from typing import Any, Dict

from sqlalchemy.engine import URL

from bulkquery.adapters.base import BaseSQLAlchemyAdapter


class PostgresAdapter(BaseSQLAlchemyAdapter):
    engine_id = "postgres"
    system_databases = frozenset({"postgres", "template0", "template1"})
    list_databases_sql = "SELECT datname FROM pg_database WHERE datallowconn ORDER BY datname"

    def connect_args(self, url: URL, timeout_seconds: int) -> Dict[str, Any]:
        if timeout_seconds <= 0:
            return {}
        # libpq applies statement_timeout (ms) to every statement of the session
        return {
            "connect_timeout": timeout_seconds,
            "options": f"-c statement_timeout={timeout_seconds * 1000}",
        }

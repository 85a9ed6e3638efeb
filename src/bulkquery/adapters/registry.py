from __future__ import annotations

from importlib.metadata import entry_points
from typing import Dict, Optional, Type

from sqlalchemy.engine import make_url

from bulkquery.adapters.base import BaseSQLAlchemyAdapter
from bulkquery.adapters.mssql import MssqlAdapter
from bulkquery.adapters.mysql import MysqlAdapter
from bulkquery.adapters.postgres import PostgresAdapter
from bulkquery.adapters.sqlite import SqliteAdapter
from bulkquery.common.errors import UnsupportedEngineError
from bulkquery.common.logger import get_logger
from bulkquery.targets.models import ServerDefinition, Target

logger = get_logger(__name__)

ENTRY_POINT_GROUP = "bulkquery.adapters"

BUILTIN_ADAPTERS: Dict[str, Type[BaseSQLAlchemyAdapter]] = {
    "mssql": MssqlAdapter,
    "postgres": PostgresAdapter,
    "mysql": MysqlAdapter,
    "sqlite": SqliteAdapter,
}


def normalize_engine_id(backend: str) -> str:
    """Normalizes SQLAlchemy backend names to internal adapter IDs."""
    backend = backend.lower()
    if backend in ("postgresql", "postgres"): return "postgres"
    if backend in ("mssql", "sqlserver"): return "mssql"
    if backend in ("mysql", "mariadb"): return "mysql"
    return backend


def engine_id_for_url(url: str) -> str:
    return normalize_engine_id(make_url(url).get_backend_name())


def discover_adapters() -> Dict[str, Type[BaseSQLAlchemyAdapter]]:
    """Discovers extra adapters installed under the 'bulkquery.adapters' entry point group.

    Returns:
        Dict[str, Type[BaseSQLAlchemyAdapter]]: Dict mapping engine id to adapter class.
    """
    adapters = {}
    for ep in entry_points(group=ENTRY_POINT_GROUP):
        try:
            adapters[ep.name] = ep.load()
        except Exception as e:
            logger.error(f"Failed to load adapter {ep.name}: {e}")
    return adapters


class AdapterRegistry:
    """
    Resolves the adapter for a connection URL by its SQLAlchemy backend.

    Acts as the factory and cache for adapter instances. Adapters are
    stateless so one instance per engine is shared across targets.
    """

    def __init__(
        self,
        adapters: Optional[Dict[str, Type[BaseSQLAlchemyAdapter]]] = None,
        discover: bool = True,
    ) -> None:
        self._classes: Dict[str, Type[BaseSQLAlchemyAdapter]] = dict(BUILTIN_ADAPTERS)
        if discover:
            self._classes.update(discover_adapters())
        if adapters:
            self._classes.update(adapters)
        self._instances: Dict[str, BaseSQLAlchemyAdapter] = {}

    def register(self, engine_id: str, adapter: BaseSQLAlchemyAdapter) -> None:
        self._instances[normalize_engine_id(engine_id)] = adapter

    def get(self, engine_id: str) -> BaseSQLAlchemyAdapter:
        engine_id = normalize_engine_id(engine_id)
        if engine_id not in self._instances:
            if engine_id not in self._classes:
                raise UnsupportedEngineError(
                    f"No adapter found for engine type: '{engine_id}'. "
                    f"Available: {sorted(self._classes)}."
                )
            self._instances[engine_id] = self._classes[engine_id]()
        return self._instances[engine_id]

    def for_url(self, url: str) -> BaseSQLAlchemyAdapter:
        return self.get(engine_id_for_url(url))

    def for_target(self, target: Target) -> BaseSQLAlchemyAdapter:
        return self.for_url(target.connection_url)

    def for_server(self, server: ServerDefinition) -> BaseSQLAlchemyAdapter:
        return self.for_url(server.connection_url)

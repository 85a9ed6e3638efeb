from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional, Sequence

from pydantic import BaseModel, Field

from bulkquery.adapters.base import describe_error
from bulkquery.adapters.registry import AdapterRegistry
from bulkquery.common.logger import get_logger
from bulkquery.common.settings import settings
from bulkquery.targets.models import ServerDefinition

logger = get_logger(__name__)


class ServerDatabases(BaseModel):
    """Databases found on one server, or why none could be listed."""
    server: ServerDefinition
    databases: List[str] = Field(default_factory=list)
    error: Optional[str] = None

    @property
    def connected(self) -> bool:
        return self.error is None


def list_databases(
    server: ServerDefinition,
    registry: Optional[AdapterRegistry] = None,
    hide_system_databases: Optional[bool] = None,
    timeout_seconds: Optional[int] = None,
) -> List[str]:
    """Lists databases on a server, hiding system catalogs unless told otherwise."""
    registry = registry or AdapterRegistry()
    if hide_system_databases is None:
        hide_system_databases = settings.hide_system_databases
    if timeout_seconds is None:
        timeout_seconds = settings.discovery_timeout

    adapter = registry.for_server(server)
    logger.debug(f"Listing databases on {server.display_name} ({server.safe_url()})")
    return adapter.list_databases(
        server,
        timeout_seconds=timeout_seconds,
        hide_system_databases=hide_system_databases,
    )


def discover_servers(
    servers: Sequence[ServerDefinition],
    registry: Optional[AdapterRegistry] = None,
    hide_system_databases: Optional[bool] = None,
    timeout_seconds: Optional[int] = None,
) -> List[ServerDatabases]:
    """Lists databases on every server in parallel, sorted by display name.

    An unreachable server is reported with its error instead of failing the
    whole discovery.
    """
    registry = registry or AdapterRegistry()

    def _discover(server: ServerDefinition) -> ServerDatabases:
        try:
            names = list_databases(server, registry, hide_system_databases, timeout_seconds)
            return ServerDatabases(server=server, databases=names)
        except Exception as exc:
            logger.warning(f"Connection failed for {server.display_name}: {describe_error(exc)}")
            return ServerDatabases(server=server, error=describe_error(exc))

    if not servers:
        return []
    with ThreadPoolExecutor(max_workers=len(servers), thread_name_prefix="discovery") as pool:
        found = list(pool.map(_discover, servers))
    return sorted(found, key=lambda entry: entry.server.display_name)

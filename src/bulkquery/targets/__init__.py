"""Target definitions and persisted server configuration."""
from bulkquery.targets.models import ServerDefinition, Target
from bulkquery.targets.config import (
    BulkQueryConfig,
    add_server,
    load_config,
    remove_server,
    resolve_targets,
    save_config,
    select_databases,
)

__all__ = [
    "ServerDefinition",
    "Target",
    "BulkQueryConfig",
    "add_server",
    "load_config",
    "remove_server",
    "resolve_targets",
    "save_config",
    "select_databases",
]

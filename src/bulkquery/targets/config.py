from __future__ import annotations

import pathlib
from typing import List

import yaml
from pydantic import BaseModel, Field, ValidationError

from bulkquery.common.errors import ConfigError, DuplicateServerError, UnknownServerError
from bulkquery.common.logger import get_logger
from bulkquery.targets.models import ServerDefinition, Target

logger = get_logger(__name__)


class BulkQueryConfig(BaseModel):
    """File-level schema for servers.yaml."""
    version: int = Field(1, description="Schema version")
    hide_system_databases: bool = True
    sql_timeout: int = Field(30, description="Per-statement timeout in seconds; 0 disables it.")
    servers: List[ServerDefinition] = Field(default_factory=list)

    def get_server(self, display_name: str) -> ServerDefinition:
        """
        Retrieves a server by display name.

        Raises:
            UnknownServerError: If no server has that name.
        """
        for server in self.servers:
            if server.display_name == display_name:
                return server
        raise UnknownServerError(f"Server '{display_name}' is not configured.")


def load_config(path: pathlib.Path) -> BulkQueryConfig:
    """
    Load the servers configuration from a YAML file.

    A missing file yields an empty configuration, as on first start.

    Args:
        path: Path to the YAML configuration file.

    Returns:
        The parsed BulkQueryConfig.

    Raises:
        ConfigError: If the file is not valid YAML or does not match the schema.
    """
    if not path.exists():
        logger.info(f"No configuration at {path}, starting empty.")
        return BulkQueryConfig()

    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc

    if raw is None:
        return BulkQueryConfig()
    if not isinstance(raw, dict):
        raise ConfigError(f"Configuration in {path} must be a mapping with a 'servers' list")

    try:
        return BulkQueryConfig.model_validate(raw)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration in {path}: {exc}") from exc


def save_config(path: pathlib.Path, config: BulkQueryConfig) -> None:
    """Writes the configuration as YAML, creating parent directories."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        yaml.safe_dump(config.model_dump(mode="json"), sort_keys=False),
        encoding="utf-8",
    )


def add_server(config: BulkQueryConfig, server: ServerDefinition) -> BulkQueryConfig:
    """
    Returns a copy of the configuration with the server appended.

    Raises:
        DuplicateServerError: If a server already uses the display name.
    """
    if any(s.display_name == server.display_name for s in config.servers):
        raise DuplicateServerError(server.display_name)
    return config.model_copy(update={"servers": [*config.servers, server]})


def remove_server(config: BulkQueryConfig, display_name: str) -> BulkQueryConfig:
    config.get_server(display_name)
    remaining = [s for s in config.servers if s.display_name != display_name]
    return config.model_copy(update={"servers": remaining})


def select_databases(config: BulkQueryConfig, display_name: str, databases: List[str]) -> BulkQueryConfig:
    """Replaces the selected databases of one server, keeping the given order."""
    server = config.get_server(display_name)
    updated = server.model_copy(update={"selected_databases": list(dict.fromkeys(databases))})
    servers = [updated if s.display_name == display_name else s for s in config.servers]
    return config.model_copy(update={"servers": servers})


def resolve_targets(config: BulkQueryConfig) -> List[Target]:
    """Targets for every selected database, servers in file order."""
    return [
        server.target(database)
        for server in config.servers
        for database in server.selected_databases
    ]

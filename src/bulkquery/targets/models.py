from __future__ import annotations

from typing import List

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.engine import URL, make_url


class ServerDefinition(BaseModel):
    """A database server the operator has registered.

    Attributes:
        display_name: Unique human name for the server.
        connection_url: SQLAlchemy URL for the server. The database part is
            replaced by each target's catalog when connecting.
        selected_databases: Databases ticked for bulk queries, in run order.
    """

    display_name: str
    connection_url: str
    selected_databases: List[str] = Field(default_factory=list)

    model_config = ConfigDict(extra="ignore")

    def url(self) -> URL:
        return make_url(self.connection_url)

    def safe_url(self) -> str:
        """Connection URL rendered with the password masked, for logs."""
        return self.url().render_as_string(hide_password=True)

    def target(self, database: str) -> "Target":
        return Target(
            server_name=self.display_name,
            database=database,
            connection_url=self.connection_url,
        )


class Target(BaseModel):
    """One database to query. Immutable once constructed."""

    server_name: str = Field(..., description="Display name of the owning server.")
    database: str = Field(..., description="Catalog name, also used as the display name.")
    connection_url: str = Field(..., description="Opaque SQLAlchemy URL of the owning server.")

    model_config = ConfigDict(frozen=True, extra="ignore")

    @property
    def label(self) -> str:
        return f"{self.database} - {self.server_name}"

    def __str__(self) -> str:
        return self.label

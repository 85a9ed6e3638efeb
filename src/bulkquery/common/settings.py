from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from dotenv import load_dotenv

# Load environment variables from .env into os.environ
load_dotenv()


class Settings(BaseSettings):
    """Application configuration settings backed by environment variables."""

    config_path: str = Field(
        default="configs/servers.yaml",
        validation_alias="BULKQUERY_CONFIG",
        description="Path to the YAML file holding server definitions and selections."
    )

    sql_timeout: int = Field(
        default=30,
        validation_alias="SQL_TIMEOUT",
        description="Per-statement timeout in seconds. 0 disables the bound."
    )

    hide_system_databases: bool = Field(
        default=True,
        validation_alias="HIDE_SYSTEM_DATABASES",
        description="Hide system catalogs (master, msdb, ...) when listing databases on a server."
    )

    discovery_timeout: int = Field(
        default=5,
        validation_alias="DISCOVERY_TIMEOUT",
        description="Connect timeout in seconds for the list-databases discovery call."
    )

    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    log_json: bool = Field(
        default=False,
        validation_alias="LOG_JSON",
        description="Emit structured JSON log lines instead of text."
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    def configure_env(self, env: str) -> None:
        """Loads environment-specific variables and reloads settings."""
        if not env:
            return

        load_dotenv(f".env.{env}", override=True)
        new_settings = Settings()
        self.__dict__.update(new_settings.__dict__)


settings = Settings()

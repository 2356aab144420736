from typing import Optional
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from dotenv import load_dotenv

# Load environment variables from .env into os.environ
load_dotenv()


class Settings(BaseSettings):
    """Application configuration settings backed by environment variables."""

    backend_catalog_path: str = Field(
        default="configs/backends.yaml",
        validation_alias="QUERYGROUP_BACKEND_CATALOG",
        description="Path to the YAML file listing the available query backends."
    )
    saved_queries_path: str = Field(
        default="configs/saved_queries.yaml",
        validation_alias="QUERYGROUP_SAVED_QUERIES",
        description="Path to a YAML file of saved query sets used when no remote service is configured."
    )
    saved_queries_url: Optional[str] = Field(
        default=None,
        validation_alias="QUERYGROUP_SAVED_QUERIES_URL",
        description="Base URL of the remote query library service."
    )
    saved_queries_timeout_sec: float = Field(
        default=10.0,
        validation_alias="QUERYGROUP_SAVED_QUERIES_TIMEOUT_SEC",
        description="Timeout in seconds for a saved query set lookup."
    )

    log_level: str = Field(default="INFO", validation_alias="QUERYGROUP_LOG_LEVEL")
    log_json: bool = Field(
        default=False,
        validation_alias="QUERYGROUP_LOG_JSON",
        description="Emit logs as JSON lines instead of plain text."
    )

    query_library_enabled: bool = Field(
        default=True,
        validation_alias="QUERYGROUP_QUERY_LIBRARY_ENABLED",
        description="Feature toggle for linking saved query sets."
    )
    expressions_enabled: bool = Field(
        default=True,
        validation_alias="QUERYGROUP_EXPRESSIONS_ENABLED",
        description="Feature toggle for adding expression queries."
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

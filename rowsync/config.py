import logging
import os
import sys
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource
from typing_extensions import Self

from rowsync.cli.util.paths import RowSyncPaths


class YamlConfigSettingsSource(PydanticBaseSettingsSource):
    """Load settings from YAML file specified by ROWSYNC_CONFIG_FILE env var."""

    def get_field_value(self, field: Any, field_name: str) -> tuple[Any, str, bool]:
        """Get the value for a field from the YAML config."""
        yaml_data = self._load_yaml_config()
        field_value = yaml_data.get(field_name)
        return field_value, field_name, False

    def __call__(self) -> dict[str, Any]:
        """Return all settings from YAML file."""
        return self._load_yaml_config()

    def _load_yaml_config(self) -> dict[str, Any]:
        """Load config from YAML file if specified."""
        config_file = os.environ.get("ROWSYNC_CONFIG_FILE")
        if config_file:
            path = Path(config_file)
            if path.exists():
                return yaml.safe_load(path.read_text()) or {}
        return {}


class DatabaseConfig(BaseModel):
    """Database configuration (nested in Config, uses env_nested_delimiter).

    The url field uses empty string as sentinel to indicate "derive from RowSyncPaths".
    When the user doesn't override via ROWSYNC_DATABASE__URL, we compute the actual path
    in Config's model_validator.
    """

    url: str = ""  # Empty string = derive from paths; explicit value = use as-is
    echo: bool = False
    auto_migrate: bool = True  # Auto-migrate for SQLite, manual for PostgreSQL


class LoggingConfig(BaseModel):
    """Logging configuration (nested in Config, uses env_nested_delimiter)."""

    level: str = "INFO"
    format: str = "%(asctime)s %(levelname)-8s [%(name)s] %(message)s"
    date_format: str = "%Y-%m-%d %H:%M:%S"

    @property
    def file(self) -> str | None:
        """Get log file path from ROWSYNC_LOG_FILE env var."""
        return os.environ.get("ROWSYNC_LOG_FILE")


class StorageConfig(BaseModel):
    """Blob storage holding the source files."""

    backend: Literal["s3", "local"] = "s3"
    bucket: str = ""
    local_root: str = "."  # Root directory standing in for the bucket when backend=local
    region: str | None = None
    endpoint_url: str | None = None  # S3-compatible endpoints (MinIO, LocalStack)


class IngestConfig(BaseModel):
    """Partitioning and source parsing."""

    batch_size: int = Field(default=20, gt=0)
    header_row: int = Field(default=1, ge=1)  # 1-based line holding the column header
    encoding: str = "utf-8-sig"
    delimiter: str = ","
    mappings_file: str = ""  # Empty = derive from paths
    checkpoint_file: str = ""  # Empty = derive from paths

    @property
    def skip_lines(self) -> int:
        """Leading non-header lines to discard."""
        return self.header_row - 1


class QueueConfig(BaseModel):
    """Work queue retry, lease and retention settings."""

    max_attempts: int = Field(default=5, ge=1)
    backoff_seconds: float = 5.0  # Base delay, doubled per attempt
    lease_timeout: float = 300.0  # Seconds before an active lease is considered stale
    keep_completed: int = 100
    keep_failed: int = 50


class WorkerConfig(BaseModel):
    """Background worker configuration (nested in Config, uses env_nested_delimiter)."""

    concurrency: int = Field(default=2, ge=1)
    poll_interval: float = 0.5  # Seconds between lease attempts when idle
    stale_lease_interval: float = 60.0  # Seconds between stale lease sweeps
    shutdown_timeout: float = 30.0
    progress_interval: float = 60.0  # Seconds between progress reports; 0 disables


class UpdaterConfig(BaseModel):
    """External record-update service."""

    url: str = "http://localhost:8080/records"
    timeout: float = 30.0
    api_key: str = ""


class ProgressConfig(BaseModel):
    """Progress store key layout."""

    key_prefix: str = ""


class Config(BaseSettings):
    # These are BaseModel, so env_nested_delimiter handles their env vars
    database: DatabaseConfig = DatabaseConfig()
    logging: LoggingConfig = LoggingConfig()
    storage: StorageConfig = StorageConfig()
    ingest: IngestConfig = IngestConfig()
    queue: QueueConfig = QueueConfig()
    worker: WorkerConfig = WorkerConfig()
    updater: UpdaterConfig = UpdaterConfig()
    progress: ProgressConfig = ProgressConfig()

    model_config = {
        "env_prefix": "ROWSYNC_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "env_nested_delimiter": "__",  # Allows ROWSYNC_QUEUE__MAX_ATTEMPTS override
    }

    @model_validator(mode="after")
    def derive_paths(self) -> Self:
        """Derive database URL and state files from RowSyncPaths if not explicitly set."""
        paths = RowSyncPaths()
        if not self.database.url:
            self.database = self.database.model_copy(
                update={"url": f"sqlite+aiosqlite:///{paths.database_file}"}
            )
        if not self.ingest.mappings_file or not self.ingest.checkpoint_file:
            self.ingest = self.ingest.model_copy(
                update={
                    "mappings_file": self.ingest.mappings_file or str(paths.mappings_file),
                    "checkpoint_file": self.ingest.checkpoint_file or str(paths.checkpoint_file),
                }
            )
        return self

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Customize settings sources to include YAML config.

        Priority (highest to lowest):
        1. init_settings - values passed to Config()
        2. env_settings - environment variables
        3. dotenv_settings - .env file
        4. yaml_settings - ROWSYNC_CONFIG_FILE yaml
        5. file_secret_settings - secrets from files
        """
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlConfigSettingsSource(settings_cls),
            file_secret_settings,
        )


def configure_logging(config: LoggingConfig) -> None:
    """Configure Python logging based on config.

    Should be called early in CLI startup so every module logger
    picks up the configuration.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(config.level)

    # Remove existing handlers to avoid duplicates
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    formatter = logging.Formatter(config.format, datefmt=config.date_format)

    if config.file:
        log_path = Path(config.file).expanduser()
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path)
        file_handler.setLevel(config.level)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)
    else:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(config.level)
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

    # Reduce noise from third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
    logging.getLogger("botocore").setLevel(logging.WARNING)
    logging.getLogger("boto3").setLevel(logging.WARNING)
    logging.getLogger("alembic").setLevel(logging.WARNING)

    logging.debug("Logging configured: level=%s, file=%s", config.level, config.file)

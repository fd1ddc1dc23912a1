"""Pydantic schema for the YAML configuration file.

Every section has defaults, so an empty file (or no file at all) is valid;
credentials can come from env vars or CLI args instead.

Usage:
    from greader_sync.config_schema import build_config

    raw = load_hierarchical_config()
    file_config = build_config(raw)
"""

from __future__ import annotations

from pydantic import BaseModel, Field

# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class ServerConfig(BaseModel):
    """Remote Google Reader API endpoint and credentials.

    ``password`` may be a literal, ``$env:NAME`` or ``file:PATH``; it is
    resolved by ``greader_sync.config.resolve_password``.
    """

    url: str | None = Field(
        default=None, description="Base URL of the service API"
    )
    username: str | None = Field(default=None, description="Login name")
    password: str | None = Field(
        default=None, description="Password or $env:/file: reference"
    )
    insecure: bool = Field(
        default=False,
        description="Disable SSL verification (development only)",
    )
    timeout: float = Field(
        default=20.0,
        gt=0,
        le=300,
        description="Per-request timeout in seconds",
    )

    model_config = {"frozen": True}


class SyncConfig(BaseModel):
    """Reconciliation pass settings."""

    page_size: int = Field(
        default=1000,
        ge=1,
        le=10000,
        description="Items requested per stream call",
    )
    db_path: str | None = Field(
        default=None, description="SQLite database path"
    )

    model_config = {"frozen": True}


class WorkerConfig(BaseModel):
    """Outbox worker cadence."""

    interval: float = Field(
        default=5.0, gt=0, description="Seconds between ticks"
    )
    batch_size: int = Field(
        default=10,
        ge=1,
        le=1000,
        description="Pending actions delivered per kind per tick",
    )

    model_config = {"frozen": True}


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        file: Optional log file path.
    """

    level: str = Field(default="INFO", description="Log level")
    file: str | None = Field(default=None, description="Log file path")

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Top-level
# ---------------------------------------------------------------------------


class FileConfig(BaseModel):
    """Top-level configuration file model."""

    server: ServerConfig = Field(default_factory=ServerConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    worker: WorkerConfig = Field(default_factory=WorkerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"frozen": True}


def build_config(raw_data: dict | None) -> FileConfig:
    """Validate the raw dict returned by ``load_hierarchical_config()``.

    Missing sections get defaults.

    Raises:
        pydantic.ValidationError: If a value has the wrong type or range.
    """
    if not raw_data:
        return FileConfig()
    return FileConfig(**raw_data)

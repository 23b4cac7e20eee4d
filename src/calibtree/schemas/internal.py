"""InternalConfig: Authoritative runtime configuration.

This is the ONLY config schema runtime code sees. It is fully validated and
frozen; no runtime module applies fallback defaults of its own.
"""

from typing import Optional
from pydantic import ConfigDict
from calibtree.schemas.base import CalibBaseModel, Compression, LogLevel


class InternalStoreConfig(CalibBaseModel):
    """Runtime artifact store configuration."""
    base_dir: Optional[str]
    table_name: str
    compression: Compression
    file_suffix: str


class InternalDatabaseConfig(CalibBaseModel):
    """Runtime database configuration."""
    dsn: Optional[str]


class InternalSnapshotConfig(CalibBaseModel):
    """Runtime snapshot configuration."""
    yield_every: int


class InternalLoggingConfig(CalibBaseModel):
    """Runtime logging configuration."""
    level: LogLevel


class InternalConfig(CalibBaseModel):
    """Authoritative runtime configuration.

    Runtime modules access fields directly:

        def __init__(self, config: InternalConfig):
            self.table_name = config.store.table_name  # NOT .get()
    """

    store: InternalStoreConfig
    database: InternalDatabaseConfig
    snapshot: InternalSnapshotConfig
    logging: InternalLoggingConfig

    model_config = ConfigDict(
        extra='forbid',
        validate_assignment=True,
        use_enum_values=True,
        str_strip_whitespace=True,
        frozen=True,  # Immutable after construction
    )

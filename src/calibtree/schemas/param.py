"""ParamConfig: Expert defaults for calibtree.

ALL tunable parameters have their default here. Runtime code never reads
ParamConfig directly, it only receives InternalConfig.
"""

from typing import Optional
from pydantic import Field, field_validator
from calibtree.schemas.base import CalibBaseModel, Compression, LogLevel


# =============================================================================
# Nested Configuration Models
# =============================================================================

class StoreConfig(CalibBaseModel):
    """Artifact store configuration."""
    base_dir: Optional[str] = None
    table_name: str = Field("DBTree", min_length=1, description="Table name inside each artifact")
    compression: Compression = "snappy"
    file_suffix: str = ".parquet"

    @field_validator("file_suffix", mode="before")
    @classmethod
    def ensure_leading_dot(cls, v):
        """Accept 'parquet' as well as '.parquet'."""
        if isinstance(v, str) and v and not v.startswith("."):
            return "." + v
        return v


class DatabaseConfig(CalibBaseModel):
    """Configuration database connection settings."""
    dsn: Optional[str] = None


class SnapshotConfig(CalibBaseModel):
    """State snapshot build settings."""
    yield_every: int = Field(100, ge=1, description="Rows between host event loop callbacks")


class LoggingConfig(CalibBaseModel):
    """Logging configuration."""
    level: LogLevel = "INFO"

    @field_validator("level", mode="before")
    @classmethod
    def upper_level(cls, v):
        if isinstance(v, str):
            return v.upper().strip()
        return v


# =============================================================================
# Main ParamConfig
# =============================================================================

class ParamConfig(CalibBaseModel):
    """Complete expert configuration with all defaults.

    Usage
    -----
    Base layer in config resolution:

        internal_cfg = resolve_config(param_cfg, user_cfg)
    """

    store: StoreConfig = Field(default_factory=StoreConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    snapshot: SnapshotConfig = Field(default_factory=SnapshotConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

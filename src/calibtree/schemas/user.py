"""UserConfig: Forgiving, minimal user-facing configuration.

Accepts flat keys with upper-case aliases (BASE_DIR -> store.base_dir,
LOG_LEVEL -> logging.level). Users only specify what they override.
"""

from typing import Optional
from pydantic import Field, field_validator
from calibtree.schemas.base import CalibBaseModel, Compression, LogLevel


class UserConfig(CalibBaseModel):
    """User-facing configuration schema.

    Usage
    -----
        user_cfg = UserConfig(BASE_DIR="/data/calib", DSN="/data/confdb.sqlite")
        internal = resolve_config(param_cfg, user_cfg)
    """

    base_dir: Optional[str] = Field(None, alias="BASE_DIR")
    dsn: Optional[str] = Field(None, alias="DSN")
    table_name: Optional[str] = Field(None, alias="TABLE_NAME")
    compression: Optional[Compression] = Field(None, alias="COMPRESSION")
    yield_every: Optional[int] = Field(None, ge=1, alias="YIELD_EVERY")
    log_level: Optional[LogLevel] = Field(None, alias="LOG_LEVEL")

    model_config = CalibBaseModel.model_config.copy()
    model_config.update({"populate_by_name": True})

    @field_validator("log_level", "compression", mode="before")
    @classmethod
    def normalize_case(cls, v, info):
        """LOG_LEVEL is upper case, COMPRESSION lower case."""
        if not isinstance(v, str):
            return v
        v = v.strip()
        return v.upper() if info.field_name == "log_level" else v.lower()

    def to_internal_overrides(self) -> dict:
        """Convert flat user keys to the nested InternalConfig structure.

        Returns
        -------
        dict
            Nested dictionary matching InternalConfig structure
        """
        overrides = {}

        store = {}
        if self.base_dir is not None:
            store["base_dir"] = str(self.base_dir)
        if self.table_name is not None:
            store["table_name"] = self.table_name
        if self.compression is not None:
            store["compression"] = self.compression
        if store:
            overrides["store"] = store

        if self.dsn is not None:
            overrides["database"] = {"dsn": self.dsn}

        if self.yield_every is not None:
            overrides["snapshot"] = {"yield_every": self.yield_every}

        if self.log_level is not None:
            overrides["logging"] = {"level": self.log_level}

        return overrides

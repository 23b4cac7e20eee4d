"""Shared base model and value types of the calibtree configuration.

Every layer (expert defaults, user overrides, runtime config) derives from
CalibBaseModel, so a typo in a user key such as ``BASEDIR`` is a validation
error instead of a silently ignored setting, and paths, DSNs and table names
arrive without stray whitespace from hand-edited config files.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict

# Parquet codecs accepted by the artifact writer; "none" writes uncompressed.
Compression = Literal["snappy", "gzip", "lz4", "zstd", "none"]

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class CalibBaseModel(BaseModel):
    """Strict base of all calibtree configuration models.

    Unknown keys are rejected and assignments are re-validated, so a
    resolved store or database section cannot drift into an invalid state.
    """

    model_config = ConfigDict(
        extra='forbid',
        validate_assignment=True,
        use_enum_values=True,
        str_strip_whitespace=True,
    )

"""Pydantic configuration schemas for calibtree.

Exports
-------
resolve_config : function
    Single entrypoint for configuration resolution
InternalConfig : class
    Fully validated, authoritative runtime configuration
ParamConfig : class
    Expert defaults (complete)
UserConfig : class
    User-facing configuration (forgiving, minimal)
"""

from calibtree.schemas.resolve import resolve_config
from calibtree.schemas.internal import InternalConfig
from calibtree.schemas.param import ParamConfig
from calibtree.schemas.user import UserConfig

__all__ = [
    'resolve_config',
    'InternalConfig',
    'ParamConfig',
    'UserConfig',
]

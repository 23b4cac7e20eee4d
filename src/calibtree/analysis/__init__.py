"""Analysis kinds, typed columns, artifact queries and strip record decoding."""

from calibtree.analysis.kinds import (
    AnalysisKind,
    AnalysisSelector,
    RunKey,
    canonical_label,
    kind_of,
)
from calibtree.analysis.columns import ColumnSpec, ColumnType, TypedColumn, make_columns
from calibtree.analysis.queries import build_query, columns_for, fec_key, schema_for
from calibtree.analysis.strip_decoder import StripRecord, decode

__all__ = [
    "AnalysisKind",
    "AnalysisSelector",
    "RunKey",
    "canonical_label",
    "kind_of",
    "ColumnSpec",
    "ColumnType",
    "TypedColumn",
    "make_columns",
    "build_query",
    "columns_for",
    "fec_key",
    "schema_for",
    "StripRecord",
    "decode",
]

"""Typed artifact columns.

A TypedColumn holds the current value of one artifact column and knows how
to bind itself from a result-set cell. The value variants form a closed set
(REAL, INTEGER, TEXT); each artifact schema is an ordered list of ColumnSpec.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional, Sequence

__all__ = ["ColumnType", "ColumnSpec", "TypedColumn", "make_columns"]

logger = logging.getLogger(__name__)


class ColumnType(str, Enum):
    """Value variants an artifact column can hold."""
    REAL = "REAL"
    INTEGER = "INTEGER"
    TEXT = "TEXT"


_ZERO = {
    ColumnType.REAL: 0.0,
    ColumnType.INTEGER: 0,
    ColumnType.TEXT: "",
}


@dataclass(frozen=True)
class ColumnSpec:
    """Name, type and (for fixed-size array columns) arity of one column."""
    name: str
    column_type: ColumnType
    arity: Optional[int] = None


def _to_int(value) -> int:
    if isinstance(value, str):
        value = value.strip()
        try:
            return int(value)
        except ValueError:
            return int(float(value))
    return int(value)


@dataclass
class TypedColumn:
    """One artifact column and the value bound from the current row."""
    name: str
    column_type: ColumnType
    value: Any = field(default=None)

    def __post_init__(self):
        if self.value is None:
            self.value = _ZERO.get(self.column_type)

    @classmethod
    def from_spec(cls, spec: ColumnSpec) -> "TypedColumn":
        return cls(spec.name, spec.column_type)

    def bind_from_row(self, row: Sequence, index: int) -> None:
        """Copy ``row[index]`` into this column, converting by declared type.

        SQL NULL and cells that cannot be converted bind the type's zero
        value; the latter also log a diagnostic. A column type outside the
        known variants leaves the value as it was.
        """
        cell = row[index]
        try:
            match self.column_type:
                case ColumnType.REAL:
                    self.value = 0.0 if cell is None else float(cell)
                case ColumnType.INTEGER:
                    self.value = 0 if cell is None else _to_int(cell)
                case ColumnType.TEXT:
                    if cell is None:
                        self.value = ""
                    elif isinstance(cell, (bytes, bytearray)):
                        self.value = bytes(cell).decode("utf-8", errors="replace")
                    else:
                        self.value = str(cell)
                case _:
                    logger.debug("Unknown column type %r for %s, not bound",
                                 self.column_type, self.name)
        except (TypeError, ValueError, OverflowError) as e:
            self.value = _ZERO.get(self.column_type)
            logger.debug("Could not bind %r to column %s (%s): %s",
                         cell, self.name, self.column_type, e)


def make_columns(schema: Sequence[ColumnSpec]) -> List[TypedColumn]:
    """Create one TypedColumn per schema entry, preserving order."""
    return [TypedColumn.from_spec(spec) for spec in schema]

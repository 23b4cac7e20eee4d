"""Columnar artifact storage.

One artifact is one Parquet file holding a single named table. Writers
buffer rows and write everything on ``flush_and_close()`` to a temporary
sibling that is then moved over the final path, so readers never open a
half-written artifact.
"""

import os
import logging
from pathlib import Path
from typing import Any, List, Mapping, Optional, Sequence, Union

import pandas as pd
import pyarrow as pa
import pyarrow.parquet as pq

from calibtree.analysis.columns import ColumnSpec, ColumnType

__all__ = ['ArtifactStore', 'ArtifactReader', 'ArtifactWriter']

logger = logging.getLogger(__name__)

TABLE_KEY = b"calibtree.table"


def _arrow_type(spec: ColumnSpec) -> pa.DataType:
    match spec.column_type:
        case ColumnType.REAL:
            base = pa.float64()
        case ColumnType.INTEGER:
            base = pa.int64()
        case ColumnType.TEXT:
            base = pa.string()
        case _:
            raise ValueError(f"Unsupported column type: {spec.column_type!r}")
    if spec.arity:
        return pa.list_(base)
    return base


class ArtifactReader:
    """Read access to a fully written artifact."""

    def __init__(self, path: Path | str):
        self.path = Path(path)
        self._file = pq.ParquetFile(self.path)
        metadata = self._file.schema_arrow.metadata or {}
        self.table_name = metadata.get(TABLE_KEY, b"").decode("utf-8")

    @property
    def column_names(self) -> List[str]:
        return list(self._file.schema_arrow.names)

    def row_count(self, table_name: str) -> int:
        """Rows in ``table_name``; 0 if the artifact holds another table."""
        if table_name != self.table_name:
            return 0
        return self._file.metadata.num_rows

    def to_frame(self) -> pd.DataFrame:
        return pd.read_parquet(self.path, engine='pyarrow')

    def close(self):
        self._file.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


class ArtifactWriter:
    """Buffers typed rows for one artifact and persists them on close."""

    def __init__(self, path: Path | str, table_name: str, compression: str = "snappy"):
        self.path = Path(path)
        self.table_name = table_name
        self.compression = compression
        self.columns: List[ColumnSpec] = []
        self._rows: List[List[Any]] = []
        self._closed = False

    @property
    def _tmp_path(self) -> Path:
        return self.path.with_name(self.path.name + ".tmp")

    @property
    def n_rows(self) -> int:
        return len(self._rows)

    def define_column(self, name: str, column_type: ColumnType, arity: Optional[int] = None):
        """Add a column; columns must all be defined before the first row."""
        if self._rows:
            raise RuntimeError(f"Cannot define column {name} after rows were appended")
        self.columns.append(ColumnSpec(name, ColumnType(column_type), arity))
        logger.debug("Booking column %s of type %s%s", name, ColumnType(column_type).value,
                     f"[{arity}]" if arity else "")

    def append_row(self, values: Union[Sequence[Any], Mapping[str, Any]]):
        """Append one row, given in column order or keyed by column name."""
        if isinstance(values, Mapping):
            row = [values[spec.name] for spec in self.columns]
        else:
            row = list(values)
        if len(row) != len(self.columns):
            raise ValueError(f"Row has {len(row)} values, artifact has {len(self.columns)} columns")
        self._rows.append(row)

    def _to_table(self) -> pa.Table:
        names = [spec.name for spec in self.columns]
        schema = pa.schema([pa.field(spec.name, _arrow_type(spec)) for spec in self.columns])
        df = pd.DataFrame(self._rows, columns=names)
        table = pa.Table.from_pandas(df, schema=schema, preserve_index=False)
        metadata = dict(table.schema.metadata or {})
        metadata[TABLE_KEY] = self.table_name.encode("utf-8")
        return table.replace_schema_metadata(metadata)

    def flush_and_close(self) -> Path:
        """Write all rows and move the artifact into place."""
        if self._closed:
            return self.path
        table = self._to_table()
        compression = None if self.compression == "none" else self.compression
        pq.write_table(table, self._tmp_path, compression=compression)
        os.replace(self._tmp_path, self.path)
        self._closed = True
        logger.info("Artifact written: %s (%d rows)", self.path.name, table.num_rows)
        return self.path

    def discard(self):
        """Drop buffered rows without writing anything; the target path is untouched."""
        self._rows.clear()
        self._closed = True
        self._tmp_path.unlink(missing_ok=True)


class ArtifactStore:
    """Creates and opens artifacts.

    Parameters
    ----------
    table_name : str
        Name of the single table inside every artifact (default ``DBTree``).
    compression : str
        Parquet codec, or ``"none"``.
    """

    def __init__(self, table_name: str = "DBTree", compression: str = "snappy"):
        self.table_name = table_name
        self.compression = compression

    @classmethod
    def from_config(cls, config) -> "ArtifactStore":
        return cls(table_name=config.store.table_name, compression=config.store.compression)

    def exists(self, path: Path | str) -> bool:
        return Path(path).is_file()

    def open_for_read(self, path: Path | str) -> Optional[ArtifactReader]:
        """Open an artifact, or return None if it is missing or unreadable."""
        if not self.exists(path):
            return None
        try:
            return ArtifactReader(path)
        except (OSError, pa.ArrowException) as e:
            logger.warning("Could not open artifact %s: %s", path, e)
            return None

    def create_or_replace(self, path: Path | str) -> ArtifactWriter:
        """Start a new artifact at ``path``.

        An existing artifact stays readable until the writer's
        ``flush_and_close()`` moves the new one over it; ``discard()`` leaves
        it untouched.
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        if path.exists():
            logger.debug("Artifact %s will be replaced on flush", path)
        return ArtifactWriter(path, self.table_name, self.compression)

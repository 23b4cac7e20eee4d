"""Artifact row contracts.

Checked while rows are bound, before anything is appended to an artifact.
"""

from typing import Sequence

from calibtree.contracts.base import require


def assert_row_width(row: Sequence, n_columns: int) -> None:
    """Require a result row to carry at least one cell per schema column."""
    require(
        len(row) >= n_columns,
        f"Row contract: result row has {len(row)} cells, schema needs {n_columns}",
    )


def assert_strip_record(record, channels: int) -> None:
    """Require a decoded strip record to be exactly `channels` wide."""
    require(
        record.noise.shape == (channels,),
        f"Strip contract: noise has shape {record.noise.shape}, expected ({channels},)",
    )
    require(
        record.pedestal.shape == (channels,),
        f"Strip contract: pedestal has shape {record.pedestal.shape}, expected ({channels},)",
    )

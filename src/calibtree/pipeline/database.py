"""Configuration database access.

Thin wrapper over a DB-API 2 connection exposing what the artifact builders
need: a connectivity predicate and "execute a parameterized query, iterate
rows". Errors are recorded on the returned ResultSet instead of raised, so
builders can turn them into a failed build.
"""

import sqlite3
import logging
from pathlib import Path
from typing import Any, Iterator, List, Optional, Sequence

__all__ = ['CalibrationDatabase', 'ResultSet']

logger = logging.getLogger(__name__)


class ResultSet:
    """Rows of one executed query plus its error state.

    Rows are tuples; cells are accessed by column index. ``last_error`` is
    None when the query succeeded.
    """

    def __init__(self, rows: Optional[List[Sequence[Any]]] = None,
                 last_error: Optional[str] = None):
        self.rows = list(rows) if rows else []
        self.last_error = last_error

    @property
    def ok(self) -> bool:
        return self.last_error is None

    def __iter__(self) -> Iterator[Sequence[Any]]:
        return iter(self.rows)

    def __len__(self) -> int:
        return len(self.rows)


class CalibrationDatabase:
    """Synchronous access to the calibration/configuration database.

    Wraps any DB-API 2 connection whose paramstyle is ``qmark`` (``?``
    placeholders), e.g. sqlite3 or an Oracle driver configured for it.

    **Typical Usage:**

    ::

        db = CalibrationDatabase.connect("/data/confdb.sqlite")
        if db.is_connected():
            result = db.execute(query, [analysis_id])
            if result.ok:
                for row in result:
                    ...
        db.close()
    """

    def __init__(self, connection=None):
        """Initialize with an open DB-API connection.

        Parameters
        ----------
        connection : DB-API connection, optional
            Already open connection. ``None`` means "not connected": every
            ``execute`` then reports an error.
        """
        self._conn = connection

    @classmethod
    def connect(cls, dsn: Path | str) -> "CalibrationDatabase":
        """Open a sqlite3 database file (or ``":memory:"``)."""
        conn = sqlite3.connect(str(dsn), check_same_thread=False)
        logger.info("Database connected: %s", dsn)
        return cls(conn)

    def is_connected(self) -> bool:
        return self._conn is not None

    def execute(self, query: str, params: Sequence[Any] = ()) -> ResultSet:
        """Execute a parameterized query and fetch all of its rows.

        Parameters
        ----------
        query : str
            Query text with ``?`` placeholders.
        params : sequence
            Bind values, in placeholder order.

        Returns
        -------
        ResultSet
            Fetched rows; ``last_error`` set if the query failed.
        """
        if self._conn is None:
            logger.warning("Unable to find a valid DB connection")
            return ResultSet(last_error="not connected")

        try:
            cursor = self._conn.cursor()
            try:
                cursor.execute(query, list(params))
                rows = [tuple(row) for row in cursor.fetchall()] if cursor.description else []
            finally:
                cursor.close()
        except Exception as e:
            logger.warning("Query failed: %s", e)
            return ResultSet(last_error=str(e))

        logger.debug("Query returned %d row(s)", len(rows))
        return ResultSet(rows)

    def close(self):
        """Close the connection. Safe to call multiple times."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

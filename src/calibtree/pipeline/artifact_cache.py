"""Artifact reuse and rebuild.

Decides, for one artifact path, whether a previously materialized artifact
can be reused or whether it must be rebuilt from the database, and performs
query-based rebuilds.
"""

import logging
from pathlib import Path
from typing import Sequence

from calibtree.analysis.kinds import AnalysisSelector, RunKey, kind_of
from calibtree.analysis.queries import build_query, columns_for, schema_for
from calibtree.contracts import ContractViolation, assert_row_width

__all__ = ['ArtifactCache']

logger = logging.getLogger(__name__)


def _bind_id(analysis_id):
    """Analysis ids are integers in the database; pass numeric text as int."""
    text = str(analysis_id).strip()
    return int(text) if text.lstrip("-").isdigit() else analysis_id


class ArtifactCache:
    """Reuse-or-rebuild decisions for single artifacts.

    **Decision:**

    1. ``is_reusable(path)``: the artifact exists, opens, and its table holds
       at least one row. With ``use_cache`` this short-circuits everything,
       the database is not touched.
    2. ``may_rebuild(selector)``: state artifacts (current state, last
       synchronized state) are never rebuilt from an analysis query; only
       the snapshot builder produces them.
    3. ``rebuild(...)``: recreate the artifact from the kind's query.

    Every failure is logged and returned as False, never raised.

    Parameters
    ----------
    database : CalibrationDatabase
        Database collaborator (``is_connected``, ``execute``).
    store : ArtifactStore
        Artifact storage collaborator.
    """

    def __init__(self, database, store):
        self.database = database
        self.store = store

    def is_reusable(self, path: Path | str) -> bool:
        """True if the artifact at ``path`` is complete and not empty."""
        reader = self.store.open_for_read(path)
        if reader is None:
            return False
        with reader:
            return reader.row_count(self.store.table_name) > 0

    def may_rebuild(self, selector: AnalysisSelector) -> bool:
        """True unless the selector addresses a state artifact."""
        return not selector.is_state

    def ensure(self, path: Path | str, kind, analysis_id, run_key: RunKey,
               use_cache: bool = True) -> bool:
        """Make sure a usable artifact exists at ``path``.

        Parameters
        ----------
        path : Path or str
            Artifact location.
        kind : AnalysisKind or str
            Analysis kind (type names and aliases accepted).
        analysis_id : str or int
            Analysis to materialize on rebuild.
        run_key : RunKey
            Request scope; state labels forbid query-based rebuilds.
        use_cache : bool
            Reuse an existing non-empty artifact. False forces a rebuild.

        Returns
        -------
        bool
            True if a usable artifact is in place. False means the caller
            must not assume the artifact exists or is usable.
        """
        kind = kind_of(kind)
        if use_cache and self.is_reusable(path):
            logger.debug("Artifact found to be sane: %s", path)
            return True

        selector = AnalysisSelector(kind, str(analysis_id), run_key)
        if not self.may_rebuild(selector):
            logger.debug("No usable state artifact at %s, state artifacts are not rebuilt here", path)
            return False

        logger.info("Rebuilding artifact %s (%s, analysis %s)", Path(path).name, kind.value, analysis_id)
        return self.rebuild(path, kind, [analysis_id])

    def rebuild(self, path: Path | str, kind, analysis_ids: Sequence) -> bool:
        """Recreate the artifact at ``path`` from the kind's query.

        The query is executed once per analysis id, in order, and every row
        is bound through the kind's typed columns into one table. Any
        database error discards the partial artifact.

        Parameters
        ----------
        path : Path or str
            Artifact location; an existing artifact is replaced.
        kind : AnalysisKind or str
            Analysis kind selecting query and schema.
        analysis_ids : sequence
            Analysis ids to materialize (normally one, four for the
            multi-partition view).

        Returns
        -------
        bool
            True if the artifact was written (possibly with zero rows).
        """
        kind = kind_of(kind)
        if not self.database.is_connected():
            logger.warning("DB connection not found, unable to build %s", path)
            return False

        if not analysis_ids:
            logger.warning("No analysis IDs found, unable to build %s", path)
            return False

        query = build_query(kind)
        if not query:
            logger.warning("No query for analysis kind %s, unable to build %s", kind.value, path)
            return False

        schema = schema_for(kind)
        writer = self.store.create_or_replace(path)
        try:
            for spec in schema:
                writer.define_column(spec.name, spec.column_type, spec.arity)
            columns = columns_for(kind)

            for analysis_id in analysis_ids:
                result = self.database.execute(query, [_bind_id(analysis_id)])
                if not result.ok:
                    logger.warning("Query for analysis %s failed: %s", analysis_id, result.last_error)
                    writer.discard()
                    return False
                for row in result:
                    assert_row_width(row, len(columns))
                    for index, column in enumerate(columns):
                        column.bind_from_row(row, index)
                    writer.append_row([column.value for column in columns])
                logger.debug("Analysis %s: %d row(s)", analysis_id, len(result))

            writer.flush_and_close()

        except ContractViolation as e:
            logger.critical("Artifact contract violated for %s: %s", path, e)
            writer.discard()
            return False

        except Exception:
            logger.exception("Failed to build artifact %s", path)
            writer.discard()
            return False

        logger.debug("File recreated: %s", path)
        return True

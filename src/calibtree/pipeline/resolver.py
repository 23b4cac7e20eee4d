"""Latest-analysis lookup for a (partition, run) pair."""

import logging
from dataclasses import dataclass
from typing import Optional

from calibtree.analysis.kinds import AnalysisKind, RunKey, kind_of
from calibtree.analysis.queries import LOOKUP_QUERY

__all__ = ['ResolvedAnalysis', 'AnalysisResolver']

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedAnalysis:
    """The single latest analysis of a run."""
    analysis_id: str
    analysis_type: str
    run_key: RunKey

    @property
    def kind(self) -> AnalysisKind:
        return kind_of(self.analysis_type)


class AnalysisResolver:
    """Finds the analysis to materialize for a run.

    The lookup groups analyses by (type, run, partition) and keeps the
    highest id of each group, so a run resolves only if exactly one
    analysis type was taken on it.
    """

    def __init__(self, database):
        self.database = database

    def resolve(self, run_key: RunKey) -> Optional[ResolvedAnalysis]:
        """Return the run's analysis, or None if missing or ambiguous."""
        logger.debug("Resolving analysis for partition %s, run %s",
                     run_key.partition_name, run_key.run_number)
        result = self.database.execute(
            LOOKUP_QUERY, [run_key.partition_name, run_key.run_number])
        if not result.ok:
            logger.warning("Analysis lookup failed: %s", result.last_error)
            return None

        rows = list(result)
        if len(rows) > 1:
            logger.warning("More than one analysis type on the same run (%s, %s)",
                           run_key.partition_name, run_key.run_number)
            return None
        if not rows:
            logger.warning("No analysis found for the given run number and partition (%s, %s)",
                           run_key.partition_name, run_key.run_number)
            return None

        analysis_id, analysis_type = rows[0][0], rows[0][1]
        return ResolvedAnalysis(str(analysis_id), str(analysis_type), run_key)

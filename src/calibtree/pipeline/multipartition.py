"""Four-partition combined artifacts.

The tracker is read out as four partitions (one per quadrant). The combined
view fuses the latest analysis of each partition into one artifact, built
with the first partition's query against all four analysis ids.
"""

import logging
from pathlib import Path
from typing import Sequence

from calibtree.analysis.kinds import DATA_KINDS, RunKey

__all__ = ['MultiPartitionAssembler', 'N_PARTITIONS']

logger = logging.getLogger(__name__)

N_PARTITIONS = 4


class MultiPartitionAssembler:
    """Builds the combined artifact of four partition runs.

    Parameters
    ----------
    database : CalibrationDatabase
        Database collaborator.
    cache : ArtifactCache
        Performs the actual query-based rebuild.
    resolver : AnalysisResolver
        Resolves each run key to its single latest analysis.
    """

    def __init__(self, database, cache, resolver):
        self.database = database
        self.cache = cache
        self.resolver = resolver

    def build_combined(self, path: Path | str, run_keys: Sequence[RunKey]) -> bool:
        """Build the combined artifact at ``path``.

        Parameters
        ----------
        path : Path or str
            Artifact location; always rebuilt.
        run_keys : sequence of RunKey
            Exactly four keys, one per partition, in output order.

        Returns
        -------
        bool
            True if the combined artifact was written.
        """
        if len(run_keys) != N_PARTITIONS:
            logger.warning("%d run keys needed for the four partitions, got %d; "
                           "unable to build %s", N_PARTITIONS, len(run_keys), path)
            return False

        if not self.database.is_connected():
            logger.warning("DB connection not found, unable to build %s", path)
            return False

        analyses = []
        for run_key in run_keys:
            resolved = self.resolver.resolve(run_key)
            if resolved is None:
                logger.warning("Unable to find the analysis of partition %s, run %s; "
                               "not building %s", run_key.partition_name, run_key.run_number, path)
                return False
            analyses.append(resolved)

        kinds = {analysis.kind for analysis in analyses}
        kind = analyses[0].kind
        if len(kinds) != 1 or kind not in DATA_KINDS:
            logger.warning("Partitions resolve to analysis types %s, unable to combine",
                           sorted(a.analysis_type for a in analyses))
            return False

        logger.info("Creating the %s artifact for all four partitions: %s",
                    kind.value, Path(path).name)
        return self.cache.rebuild(path, kind, [a.analysis_id for a in analyses])

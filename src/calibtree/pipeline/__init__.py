"""Pipeline modules.

- database: Configuration database collaborator
- artifact_store: Parquet artifact storage
- artifact_cache: Reuse-or-rebuild of single artifacts
- resolver: Latest analysis of a run
- multipartition: Four-partition combined artifacts
- state_snapshot: Partition state artifacts
- loader: Request entry point
"""

from calibtree.pipeline.database import CalibrationDatabase, ResultSet
from calibtree.pipeline.artifact_store import ArtifactStore
from calibtree.pipeline.artifact_cache import ArtifactCache
from calibtree.pipeline.resolver import AnalysisResolver
from calibtree.pipeline.multipartition import MultiPartitionAssembler
from calibtree.pipeline.state_snapshot import StateSnapshotBuilder
from calibtree.pipeline.loader import AnalysisLoader

__all__ = [
    "CalibrationDatabase",
    "ResultSet",
    "ArtifactStore",
    "ArtifactCache",
    "AnalysisResolver",
    "MultiPartitionAssembler",
    "StateSnapshotBuilder",
    "AnalysisLoader",
]

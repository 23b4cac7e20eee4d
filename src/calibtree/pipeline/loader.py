"""Artifact request entry point.

Routes a (partition, run) request to the artifact that answers it:

- ``run_number`` is a state label (``CURRENT``, ``LASTO2O``): the partition's
  state artifact, which must already have been built by the snapshot builder.
- ``run_number`` is ``MULTIPART``: the partition field encodes four
  partition/run pairs, ``<prefix>*<p1>#<r1>*<p2>#<r2>*<p3>#<r3>*<p4>#<r4>``,
  and the combined four-partition artifact is built.
- otherwise: the run's latest analysis is resolved and its artifact reused
  or rebuilt.
"""

import logging
from pathlib import Path
from typing import Callable, List, Optional, Tuple

from calibtree.analysis.kinds import STATE_KINDS, AnalysisKind, RunKey, canonical_label
from calibtree.pipeline.artifact_cache import ArtifactCache
from calibtree.pipeline.artifact_store import ArtifactStore
from calibtree.pipeline.database import CalibrationDatabase
from calibtree.pipeline.multipartition import N_PARTITIONS, MultiPartitionAssembler
from calibtree.pipeline.resolver import AnalysisResolver
from calibtree.pipeline.state_snapshot import StateSnapshotBuilder
from calibtree.setup_directories import (
    get_analysis_artifact_path,
    get_log_path,
    get_multipart_artifact_path,
    get_state_artifact_path,
    setup_output_directories,
)

__all__ = ['AnalysisLoader', 'parse_multipart_request', 'setup_logging']

logger = logging.getLogger(__name__)


def setup_logging(config, output_dirs) -> Path:
    """Configure the root logger with console and file handlers.

    Parameters
    ----------
    config : InternalConfig
        Supplies ``logging.level``.
    output_dirs : dict
        Directories from ``setup_output_directories()``; the log file goes
        into ``logs``.

    Returns
    -------
    Path
        The log file.
    """
    log_level = getattr(logging, config.logging.level, logging.INFO)
    log_path = get_log_path(output_dirs)

    formatter = logging.Formatter(
        fmt='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    root = logging.getLogger()
    root.setLevel(log_level)
    for handler in root.handlers[:]:
        root.removeHandler(handler)

    fh = logging.FileHandler(log_path)
    fh.setLevel(log_level)
    fh.setFormatter(formatter)
    root.addHandler(fh)

    ch = logging.StreamHandler()
    ch.setLevel(log_level)
    ch.setFormatter(formatter)
    root.addHandler(ch)

    logger.info("Logging: level=%s, file=%s", config.logging.level, log_path)
    return log_path


def parse_multipart_request(partition_field: str) -> Optional[Tuple[str, List[RunKey]]]:
    """Split ``<prefix>*<p1>#<r1>*...*<p4>#<r4>`` into prefix and run keys.

    Returns None (and logs why) if the field does not hold exactly four
    partition/run pairs.
    """
    parts = partition_field.split("*")
    if len(parts) != N_PARTITIONS + 1:
        logger.warning("Unable to deconstruct %d partition names for the multi-partition view",
                       N_PARTITIONS)
        return None

    run_keys = []
    for part in parts[1:]:
        subparts = part.split("#")
        if len(subparts) != 2:
            logger.warning("Unable to deconstruct partition name and run number from %r", part)
            return None
        run_keys.append(RunKey(subparts[0], subparts[1]))
    return parts[0], run_keys


class AnalysisLoader:
    """Answers artifact requests, reusing or rebuilding as needed.

    Parameters
    ----------
    database : CalibrationDatabase
        Database collaborator.
    store : ArtifactStore
        Artifact storage collaborator.
    output_dirs : dict
        Directories from ``setup_output_directories()``.
    file_suffix : str
        Artifact file suffix.
    yield_every : int
        Forwarded to the state snapshot builder.
    yield_callback : callable, optional
        Forwarded to the state snapshot builder.

    Example usage::

        config = resolve_config(ParamConfig(), UserConfig(BASE_DIR="/data/calib", DSN="confdb.sqlite"))
        loader = AnalysisLoader.from_config(config)
        path = loader.load_analysis(RunKey("TI_27-JAN-2010_2", "123456"))
        if path is not None:
            df = pd.read_parquet(path)
    """

    def __init__(self, database, store, output_dirs,
                 file_suffix: str = ".parquet",
                 yield_every: int = 100,
                 yield_callback: Optional[Callable[[], None]] = None):
        self.database = database
        self.store = store
        self.output_dirs = output_dirs
        self.file_suffix = file_suffix

        self.cache = ArtifactCache(database, store)
        self.resolver = AnalysisResolver(database)
        self.assembler = MultiPartitionAssembler(database, self.cache, self.resolver)
        self.snapshots = StateSnapshotBuilder(
            database, store, self.cache, output_dirs,
            file_suffix=file_suffix,
            yield_every=yield_every,
            yield_callback=yield_callback,
        )

    @classmethod
    def from_config(cls, config, database=None,
                    yield_callback: Optional[Callable[[], None]] = None) -> "AnalysisLoader":
        """Wire a loader from an InternalConfig.

        Raises
        ------
        ValueError
            If ``store.base_dir`` is not configured.
        """
        if config.store.base_dir is None:
            raise ValueError("store.base_dir must be configured")
        output_dirs = setup_output_directories(config.store.base_dir)

        if database is None:
            if config.database.dsn is not None:
                database = CalibrationDatabase.connect(config.database.dsn)
            else:
                logger.warning("No database configured, only cached artifacts can be served")
                database = CalibrationDatabase()

        return cls(
            database,
            ArtifactStore.from_config(config),
            output_dirs,
            file_suffix=config.store.file_suffix,
            yield_every=config.snapshot.yield_every,
            yield_callback=yield_callback,
        )

    def load_analysis(self, run_key: RunKey, use_cache: bool = True) -> Optional[Path]:
        """Return the path of a usable artifact for ``run_key``, or None."""
        label_kind = run_key.label_kind

        if label_kind in STATE_KINDS:
            return self._load_state(run_key.partition_name, label_kind)

        if label_kind == AnalysisKind.MULTIPARTITION:
            return self._load_multipart(run_key.partition_name)

        if not self.database.is_connected():
            logger.warning("DB connection not found, cannot resolve partition %s, run %s",
                           run_key.partition_name, run_key.run_number)
            return None

        resolved = self.resolver.resolve(run_key)
        if resolved is None:
            return None

        path = get_analysis_artifact_path(
            self.output_dirs, canonical_label(resolved.analysis_type),
            run_key.partition_name, run_key.run_number, suffix=self.file_suffix,
        )
        if self.cache.ensure(path, resolved.kind, resolved.analysis_id, run_key, use_cache):
            return path
        return None

    def build_state(self, partition_name: str, state_kind) -> Optional[Path]:
        """Build a partition state artifact; return its path on success."""
        if self.snapshots.build_snapshot(partition_name, state_kind):
            return self.snapshots.artifact_path(partition_name, state_kind)
        return None

    def _load_state(self, partition_name: str, state_kind: AnalysisKind) -> Optional[Path]:
        path = get_state_artifact_path(self.output_dirs, partition_name, state_kind,
                                       suffix=self.file_suffix)
        label = canonical_label(state_kind)
        ok = self.cache.ensure(path, state_kind, label, RunKey(partition_name, label), use_cache=True)
        if ok:
            logger.debug("Artifact available for %s state of %s", label, partition_name)
            return path
        logger.debug("No usable %s state artifact for %s", label, partition_name)
        return None

    def _load_multipart(self, partition_field: str) -> Optional[Path]:
        parsed = parse_multipart_request(partition_field)
        if parsed is None:
            return None
        prefix, run_keys = parsed

        path = get_multipart_artifact_path(self.output_dirs, prefix, suffix=self.file_suffix)
        if self.assembler.build_combined(path, run_keys):
            logger.debug("Artifact build successful for multi-partition view")
            return path
        logger.debug("Artifact build failed for multi-partition view")
        return None

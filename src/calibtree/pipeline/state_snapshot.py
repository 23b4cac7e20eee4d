"""State snapshot artifacts.

Builds the "current state" and "last synchronized (O2O) state" artifacts of
a partition: one row per APV with the 128 decoded strip noise and pedestal
values, addressed both from the FED side and the FEC side.
"""

import logging
from pathlib import Path
from typing import Callable, Dict, Optional, Tuple

from calibtree.analysis.kinds import STATE_KINDS, RunKey, canonical_label, kind_of
from calibtree.analysis.queries import (
    STATE_SCHEMA,
    STRIP_CHANNELS,
    device_map_query,
    state_query,
)
from calibtree.analysis.strip_decoder import decode
from calibtree.contracts import ContractViolation, assert_row_width, assert_strip_record
from calibtree.setup_directories import get_state_artifact_path

__all__ = ['StateSnapshotBuilder']

logger = logging.getLogger(__name__)

# Result columns of state_query()
FEDID, FEUNIT, FECHAN, FEAPV, DEVICEID, I2CADDRESS, I2CCHANNEL, CCU, RING, FEC, FECKEY, VALUE = range(12)
N_STATE_COLUMNS = 12

DeviceMap = Dict[int, Tuple[int, int]]


def _real(cell) -> float:
    return 0.0 if cell is None else float(cell)


def _uint(cell) -> int:
    return 0 if cell is None else int(float(cell))


class StateSnapshotBuilder:
    """Builds partition state artifacts from the strip calibration blobs.

    Parameters
    ----------
    database : CalibrationDatabase
        Database collaborator.
    store : ArtifactStore
        Artifact storage collaborator.
    cache : ArtifactCache
        Used to confirm the written artifact before reporting success.
    output_dirs : dict
        Directories from ``setup_output_directories()``.
    file_suffix : str
        Artifact file suffix.
    yield_every : int
        Rows between calls of ``yield_callback``.
    yield_callback : callable, optional
        Called periodically during the row loop, e.g. to let a host event
        loop process pending events. Does not affect the result.
    """

    def __init__(self, database, store, cache, output_dirs,
                 file_suffix: str = ".parquet",
                 yield_every: int = 100,
                 yield_callback: Optional[Callable[[], None]] = None):
        self.database = database
        self.store = store
        self.cache = cache
        self.output_dirs = output_dirs
        self.file_suffix = file_suffix
        self.yield_every = yield_every
        self.yield_callback = yield_callback

    def artifact_path(self, partition_name: str, state_kind) -> Path:
        return get_state_artifact_path(self.output_dirs, partition_name, state_kind,
                                       suffix=self.file_suffix)

    def build_device_map(self, partition_name: str, state_kind) -> Optional[DeviceMap]:
        """Device id -> (detid, I2C address) for the partition's APVs."""
        result = self.database.execute(device_map_query(state_kind), [partition_name])
        if not result.ok:
            logger.warning("Device map query failed: %s", result.last_error)
            return None

        device_map: DeviceMap = {}
        for row in result:
            device_map[_uint(row[0])] = (_uint(row[1]), _uint(row[2]))
        logger.debug("Device map for %s: %d device(s)", partition_name, len(device_map))
        return device_map

    def build_snapshot(self, partition_name: str, state_kind) -> bool:
        """Build the state artifact of a partition.

        Parameters
        ----------
        partition_name : str
            Partition to snapshot.
        state_kind : AnalysisKind or str
            CURRENTSTATE or LASTSYNCHRONIZED (aliases accepted).

        Returns
        -------
        bool
            True if the artifact was written and found usable.
        """
        kind = kind_of(state_kind)
        if kind not in STATE_KINDS:
            logger.warning("Unknown state type %r", state_kind)
            return False
        logger.info("Creating %s artifact for partition %s", canonical_label(kind), partition_name)

        if not self.database.is_connected():
            logger.warning("DB connection not found, unable to build the state of %s", partition_name)
            return False

        device_map = self.build_device_map(partition_name, kind)
        if device_map is None:
            return False

        result = self.database.execute(state_query(kind), [partition_name])
        if not result.ok:
            logger.warning("State query failed: %s", result.last_error)
            return False
        logger.debug("Query done, %d row(s); booking artifact", len(result))

        path = self.artifact_path(partition_name, kind)
        writer = self.store.create_or_replace(path)
        try:
            for spec in STATE_SCHEMA:
                writer.define_column(spec.name, spec.column_type, spec.arity)

            for count, row in enumerate(result, start=1):
                if self.yield_callback is not None and count % self.yield_every == 0:
                    self.yield_callback()

                assert_row_width(row, N_STATE_COLUMNS)
                blob = row[VALUE]
                if hasattr(blob, "read"):
                    blob = blob.read()
                try:
                    record = decode(blob)
                except (TypeError, ValueError) as e:
                    logger.warning("Skipping device %s: undecodable strip blob (%s)", row[DEVICEID], e)
                    continue
                assert_strip_record(record, STRIP_CHANNELS)

                detid = device_map.get(_uint(row[DEVICEID]), (0, 0))[0]
                writer.append_row([
                    _real(row[FEDID]),
                    _real(row[FEUNIT]),
                    _real(row[FECHAN]),
                    _real(row[FEAPV]),
                    _real(row[FEC]),
                    _real(row[RING]),
                    _real(row[CCU]),
                    _real(row[DEVICEID]),
                    _real(row[I2CCHANNEL]),
                    _real(row[I2CADDRESS]),
                    float(detid),
                    record.noise.tolist(),
                    record.pedestal.tolist(),
                    record.mean_pedestal,
                    record.mean_noise,
                    _uint(row[FECKEY]),
                ])

            logger.debug("Done filling, writing results")
            writer.flush_and_close()

        except ContractViolation as e:
            logger.critical("State artifact contract violated for %s: %s", path, e)
            writer.discard()
            return False

        except Exception:
            logger.exception("Failed to build state artifact %s", path)
            writer.discard()
            return False

        label = canonical_label(kind)
        return self.cache.ensure(path, kind, label, RunKey(partition_name, label), use_cache=True)

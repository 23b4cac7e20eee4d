"""
Directory setup and artifact naming.

Artifacts live flat under one directory, named deterministically:
- Analysis runs: <TYPE>_<PARTITION>_<RUN>_new.parquet
- States: CURRENTSTATE_<PARTITION>.parquet, LASTO2O_<PARTITION>.parquet
- Multi-partition view: <PREFIX>_FOURPARTS.parquet
"""

import logging
from pathlib import Path
from datetime import datetime, timezone

from calibtree.analysis.kinds import AnalysisKind, kind_of

logger = logging.getLogger(__name__)

_STATE_PREFIXES = {
    AnalysisKind.CURRENTSTATE: "CURRENTSTATE",
    AnalysisKind.LASTSYNCHRONIZED: "LASTO2O",
}


def setup_output_directories(base_output_dir):
    """
    Set up the output directory structure.

    Parameters
    ----------
    base_output_dir : str or Path
        Base output directory.

    Returns
    -------
    dict
        Dictionary with paths: 'base', 'artifacts', 'logs'
    """
    base_output_dir = Path(base_output_dir).expanduser().resolve()

    directories = {
        "base": base_output_dir,
        "artifacts": base_output_dir / "artifacts",
        "logs": base_output_dir / "logs",
    }

    for path in directories.values():
        path.mkdir(parents=True, exist_ok=True)

    for key, path in directories.items():
        logger.debug("  %-10s: %s", key, path)

    return directories


def _run_part(run_number) -> str:
    text = str(run_number).strip()
    return str(int(text)) if text.isdigit() else text


def get_analysis_artifact_path(output_dirs, analysis_label, partition_name, run_number,
                               suffix=".parquet"):
    """
    Artifact path of one analysis run.

    Example
    -------
    >>> get_analysis_artifact_path(dirs, 'PEDESTALS', 'TI_27-JAN-2010_2', '0123456')
    Path('output/artifacts/PEDESTALS_TI_27-JAN-2010_2_123456_new.parquet')
    """
    filename = f"{analysis_label}_{partition_name}_{_run_part(run_number)}_new{suffix}"
    return Path(output_dirs["artifacts"]) / filename


def get_state_artifact_path(output_dirs, partition_name, state_kind, suffix=".parquet"):
    """
    Artifact path of a partition state snapshot.

    Raises
    ------
    ValueError
        If ``state_kind`` is not a state kind.
    """
    prefix = _STATE_PREFIXES.get(kind_of(state_kind))
    if prefix is None:
        raise ValueError(f"Not a state kind: {state_kind!r}")
    return Path(output_dirs["artifacts"]) / f"{prefix}_{partition_name}{suffix}"


def get_multipart_artifact_path(output_dirs, prefix, suffix=".parquet"):
    """Artifact path of the four-partition combined view."""
    return Path(output_dirs["artifacts"]) / f"{prefix}_FOURPARTS{suffix}"


def get_log_path(output_dirs):
    """
    Log file path for this process, timestamped.
    """
    log_dir = Path(output_dirs["logs"])
    log_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
    return log_dir / f"calibtree_{timestamp}.log"

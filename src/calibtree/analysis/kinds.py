"""Analysis kind registry and request keys.

Maps the free-text analysis type names stored in the configuration database
(and the state labels used in place of run numbers) to a closed set of kinds.
"""

import logging
from dataclasses import dataclass
from enum import Enum

__all__ = [
    "AnalysisKind",
    "RunKey",
    "AnalysisSelector",
    "kind_of",
    "canonical_label",
    "DATA_KINDS",
    "STATE_KINDS",
]

logger = logging.getLogger(__name__)


class AnalysisKind(str, Enum):
    """Calibration run categories understood by the artifact builders."""
    TIMING = "TIMING"
    OPTOSCAN = "OPTOSCAN"
    VPSPSCAN = "VPSPSCAN"
    FASTCABLING = "FASTCABLING"
    PEDESTALS = "PEDESTALS"
    CURRENTSTATE = "CURRENTSTATE"
    LASTSYNCHRONIZED = "LASTSYNCHRONIZED"
    MULTIPARTITION = "MULTIPARTITION"
    UNKNOWN = "UNKNOWN"


# Exact, case-sensitive matches only.
_ALIASES = {
    "TIMING": AnalysisKind.TIMING,
    "OPTOSCAN": AnalysisKind.OPTOSCAN,
    "GAINSCAN": AnalysisKind.OPTOSCAN,
    "VPSPSCAN": AnalysisKind.VPSPSCAN,
    "VERY_FAST_CONNECTION": AnalysisKind.FASTCABLING,
    "FASTFEDCABLING": AnalysisKind.FASTCABLING,
    "PEDESTALS": AnalysisKind.PEDESTALS,
    "PEDESTAL": AnalysisKind.PEDESTALS,
    "CURRENT": AnalysisKind.CURRENTSTATE,
    "CURRENTSTATE": AnalysisKind.CURRENTSTATE,
    "LASTO2O": AnalysisKind.LASTSYNCHRONIZED,
    "MULTIPART": AnalysisKind.MULTIPARTITION,
}

_LABELS = {
    AnalysisKind.TIMING: "TIMING",
    AnalysisKind.OPTOSCAN: "OPTOSCAN",
    AnalysisKind.VPSPSCAN: "VPSPSCAN",
    AnalysisKind.FASTCABLING: "FASTFEDCABLING",
    AnalysisKind.PEDESTALS: "PEDESTALS",
    AnalysisKind.CURRENTSTATE: "CURRENT",
    AnalysisKind.LASTSYNCHRONIZED: "LASTO2O",
    AnalysisKind.MULTIPARTITION: "MULTIPART",
    AnalysisKind.UNKNOWN: "UNKNOWN",
}

DATA_KINDS = frozenset({
    AnalysisKind.TIMING,
    AnalysisKind.OPTOSCAN,
    AnalysisKind.VPSPSCAN,
    AnalysisKind.FASTCABLING,
    AnalysisKind.PEDESTALS,
})

STATE_KINDS = frozenset({AnalysisKind.CURRENTSTATE, AnalysisKind.LASTSYNCHRONIZED})


def kind_of(text) -> AnalysisKind:
    """Return the analysis kind for an analysis type name.

    Total: anything that is not an alias (including non-strings) is
    ``AnalysisKind.UNKNOWN``. Kind members are returned unchanged.
    """
    if isinstance(text, AnalysisKind):
        return text
    kind = _ALIASES.get(text) if isinstance(text, str) else None
    if kind is None:
        logger.debug("Unknown run type: %r", text)
        return AnalysisKind.UNKNOWN
    return kind


def canonical_label(text) -> str:
    """Return the canonical type label, e.g. ``"GAINSCAN"`` -> ``"OPTOSCAN"``."""
    return _LABELS[kind_of(text)]


@dataclass(frozen=True)
class RunKey:
    """A (partition, run) request scope.

    ``run_number`` is normally a run number, but may carry a state label
    (``CURRENT``, ``LASTO2O``) or ``MULTIPART`` for the combined view.
    """
    partition_name: str
    run_number: str

    @property
    def label_kind(self) -> AnalysisKind:
        """Kind encoded in the run number slot, UNKNOWN for plain runs."""
        kind = _ALIASES.get(self.run_number)
        return kind if kind is not None else AnalysisKind.UNKNOWN

    @property
    def is_state(self) -> bool:
        return self.label_kind in STATE_KINDS


@dataclass(frozen=True)
class AnalysisSelector:
    """Everything needed to decide whether an artifact may be rebuilt."""
    kind: AnalysisKind
    analysis_id: str
    run_key: RunKey

    @property
    def is_state(self) -> bool:
        """State artifacts only come from the snapshot builder."""
        return (
            self.kind in STATE_KINDS
            or _ALIASES.get(self.analysis_id) in STATE_KINDS
            or self.run_key.is_state
        )

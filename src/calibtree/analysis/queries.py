"""Query construction for calibration artifacts.

Every data-bearing analysis kind is materialized with the same join shape:

- the per-kind analysis table, restricted to one analysis id (the only
  bind placeholder),
- ANALYSIS -> RUN -> STATEHISTORY to find the configuration version the run
  was taken with,
- the hardware addressing chain DEVICE -> HYBRID -> CCU -> RING -> FEC,
- the DCU on the same hybrid, gated by the STATEHISTORY FEC version,
- the fiber topology table ``tk_fibers`` (left outer, matched on DCU hard id
  and fiber parity).

The selected columns are the shared topology block followed by the kind
block. Select expressions and artifact column specs come from one list, so
artifact column order always equals the query's select order.

The state snapshot queries (current state and last synchronized state) are
topology driven instead and join the per-strip calibration blobs against the
fast FED cabling connections of the partition.
"""

import logging
import math
from dataclasses import dataclass
from typing import Dict, List, Tuple

from calibtree.analysis.columns import ColumnSpec, ColumnType, TypedColumn, make_columns
from calibtree.analysis.kinds import AnalysisKind, kind_of

__all__ = [
    "SelectColumn",
    "fec_key",
    "build_query",
    "schema_for",
    "columns_for",
    "LOOKUP_QUERY",
    "DEVICE_MAP_I2C_ADDRESSES",
    "device_map_query",
    "state_query",
    "STATE_SCHEMA",
    "STRIP_CHANNELS",
]

logger = logging.getLogger(__name__)

REAL = ColumnType.REAL
INTEGER = ColumnType.INTEGER
TEXT = ColumnType.TEXT

STRIP_CHANNELS = 128
DEVICE_MAP_I2C_ADDRESSES = tuple(range(32, 38))

_STATE_VIEWS = {
    AnalysisKind.CURRENTSTATE: "viewcurrentstate",
    AnalysisKind.LASTSYNCHRONIZED: "VIEWLASTO2OPARTITIONS",
}


@dataclass(frozen=True)
class SelectColumn:
    """A select expression and the artifact column it fills."""
    expression: str
    name: str
    column_type: ColumnType

    @property
    def spec(self) -> ColumnSpec:
        return ColumnSpec(self.name, self.column_type)

    def sql(self) -> str:
        return f"{self.expression} {self.name}"


# =============================================================================
# FEC key
# =============================================================================

def _sql_round(x: float) -> int:
    """SQL ROUND: halves go away from zero."""
    if x >= 0:
        return int(math.floor(x + 0.5))
    return -int(math.floor(-x + 0.5))


def fec_key(crate_slot, fec_slot, ring_slot, ccu_address, i2c_channel, i2c_address) -> int:
    """Composite hardware address of a device, as computed in the queries.

    Bit layout: crate slot at 27, FEC slot at 22, ring at 18, CCU address at
    10, I2C channel at 5, laser channel + 1 at 2, and 1 (even I2C address) or
    2 (odd I2C address) in the low bits.

    >>> fec_key(1, 2, 3, 4, 5, 33)
    143397030
    """
    i2c_address = int(i2c_address)
    las_channel = _sql_round((i2c_address - 0.5) / 2) - 16
    return (
        (int(crate_slot) << 27)
        + (int(fec_slot) << 22)
        + (int(ring_slot) << 18)
        + (int(ccu_address) << 10)
        + (int(i2c_channel) << 5)
        + (las_channel + 1) * 4
        + (1 if i2c_address % 2 == 0 else 2)
    )


def _fec_key_sql(crate, fec, ring, ccu, channel, address) -> str:
    return (
        f"{crate}*power(2,27)+{fec}*power(2,22)+{ring}*power(2,18)"
        f"+{ccu}*power(2,10)+{channel}*power(2,5)"
        f"+((ROUND(({address}-.5)/2)-16)+1)*power(2,2)"
        f"+(case when Mod({address},2) = 0 then 1 else 2 end)"
    )


# =============================================================================
# Analysis queries
# =============================================================================

TOPOLOGY_COLUMNS: Tuple[SelectColumn, ...] = (
    SelectColumn("TKF.DETECTOR", "Detector", TEXT),
    SelectColumn("TKF.SIDE", "Side", TEXT),
    SelectColumn("TKF.LAYER", "Layer", REAL),
    SelectColumn("TKF.CL", "Cl", REAL),
    SelectColumn("TKF.CR", "Cr", REAL),
    SelectColumn("TKF.POWER", "Power", TEXT),
    SelectColumn("TKF.MOD", "Mod", TEXT),
    SelectColumn("TKF.RACK", "Rack", TEXT),
    SelectColumn("TKF.CRATE", "TkfCrate", TEXT),
    SelectColumn("TKF.CONNECTOR", "Slot", TEXT),
    SelectColumn("TKF.SECTOR", "PP1", TEXT),
    SelectColumn("TKF.STACK", "Stack", TEXT),
    SelectColumn("TKF.PLACE", "Place", TEXT),
    SelectColumn("TKF.DETID", "Detid", INTEGER),
    SelectColumn("DCU.DCUHARDID", "Dcu", INTEGER),
    SelectColumn("FEC.CRATESLOT", "Crate", REAL),
    SelectColumn("FEC.FECSLOT", "Fec", REAL),
    SelectColumn("RING.RINGSLOT", "Ring", REAL),
    SelectColumn("CCU.CCUADDRESS", "Ccu", REAL),
    SelectColumn("CCU.ARRANGEMENT", "CcuArrangement", TEXT),
    SelectColumn("HYBRID.I2CCHANNEL", "I2CChannel", REAL),
    SelectColumn(
        _fec_key_sql("FEC.CRATESLOT", "FEC.FECSLOT", "RING.RINGSLOT",
                     "CCU.CCUADDRESS", "HYBRID.I2CCHANNEL", "DEVICE.I2CADDRESS"),
        "FecKey", INTEGER,
    ),
    SelectColumn("DEVICE.I2CADDRESS", "I2CAddress", REAL),
    SelectColumn("ROUND((DEVICE.I2CADDRESS-.5)/2)-16", "lasChan", REAL),
)


def _fed_block(alias: str) -> List[SelectColumn]:
    return [
        SelectColumn(f"{alias}.DEVICEID", "DeviceId", REAL),
        SelectColumn(f"{alias}.FEDID", "FedId", REAL),
        SelectColumn(f"{alias}.FEUNIT", "FeUnit", REAL),
        SelectColumn(f"{alias}.FECHAN", "FeChan", REAL),
        SelectColumn(f"{alias}.FEDAPV", "FeApv", REAL),
    ]


def _plain(alias: str, names, column_type=REAL) -> List[SelectColumn]:
    return [SelectColumn(f"{alias}.{name}", name, column_type) for name in names]


def _by_gain(alias: str, field: str) -> str:
    """Value of ``field`` at the gain setting the scan picked."""
    branches = " ".join(
        f"WHEN {alias}.GAIN={g} THEN {alias}.{field}{g}" for g in range(4)
    )
    return f"CASE {branches} END"


def _normalized_tick(alias: str, g: int) -> str:
    return (
        f"CASE WHEN {alias}.BASELINESLOP{g}<0.1 THEN -1"
        f" WHEN {alias}.TICKHEIGHT{g}=65535 THEN -1"
        f" ELSE {alias}.TICKHEIGHT{g}/{alias}.BASELINESLOP{g} END"
    )


def _timing_columns() -> List[SelectColumn]:
    a = "ATI"
    return _fed_block(a) + [
        SelectColumn(
            f"case when {a}.HEIGHT = -131070 then 65535 else {a}.HEIGHT end",
            "TickHeight", REAL,
        ),
        SelectColumn(f"ABS({a}.DELAY)", "Delay", REAL),
        SelectColumn(f"ABS({a}.BASE)", "Base", REAL),
        SelectColumn(f"ABS({a}.PEAK)", "Peak", REAL),
        SelectColumn(f"{a}.KIND", "Kind", REAL),
        SelectColumn(f"{a}.ISVALID", "IsValid", INTEGER),
    ]


def _optoscan_columns() -> List[SelectColumn]:
    a = "AOS"
    columns = _fed_block(a) + [SelectColumn(f"{a}.GAIN", "GAIN", REAL)]
    for field in ("BIAS", "MEASGAIN", "ZEROLIGHT", "LINKNOISE",
                  "LIFTOFF", "THRESHOLD", "TICKHEIGHT"):
        columns += _plain(a, [f"{field}{g}" for g in range(4)])
        columns.append(SelectColumn(_by_gain(a, field), f"SELECTED{field}", REAL))
    columns.append(SelectColumn(f"{a}.ISVALID", "ISVALID", INTEGER))
    columns += _plain(a, [f"BASELINESLOP{g}" for g in range(4)])
    columns.append(SelectColumn(_by_gain(a, "BASELINESLOP"), "SELECTEDBASELINESLOP", REAL))
    columns += [SelectColumn(_normalized_tick(a, g), f"NORMTICK{g}", REAL) for g in range(4)]
    return columns


def _vpspscan_columns() -> List[SelectColumn]:
    a = "AVS"
    return (
        _fed_block(a)
        + _plain(a, ["VPSP", "ADCLEVEL", "FRACTION", "TOPEDGE",
                     "BOTTOMEDGE", "TOPLEVEL", "BOTTOMLEVEL"])
        + _plain(a, ["ISVALID"], INTEGER)
    )


def _fastcabling_columns() -> List[SelectColumn]:
    a = "AFC"
    return (
        _fed_block(a)
        + _plain(a, ["HIGHLEVEL", "HIGHRMS", "LOWLEVEL", "LOWRMS", "MAXLL", "MINLL"])
        + _plain(a, ["DCUID"], INTEGER)
        + _plain(a, ["LLDCH"])
        + _plain(a, ["ISVALID", "ISDIRTY"], INTEGER)
    )


def _pedestals_columns() -> List[SelectColumn]:
    a = "APD"
    names = {
        "PEDSMEAN": "PedsMean", "PEDSSPREAD": "PedsSpread",
        "NOISEMEAN": "NoiseMean", "NOISESPREAD": "NoiseSpread",
        "RAWMEAN": "RawMean", "RAWSPREAD": "RawSpread",
        "PEDSMAX": "PedsMax", "PEDSMIN": "PedsMin",
        "NOISEMAX": "NoiseMax", "NOISEMIN": "NoiseMin",
        "RAWMAX": "RawMax", "RAWMIN": "RawMin",
    }
    return (
        _fed_block(a)
        + [SelectColumn(f"{a}.{col}", name, REAL) for col, name in names.items()]
        + [SelectColumn(f"{a}.ISVALID", "IsValid", INTEGER)]
    )


@dataclass(frozen=True)
class _KindQuery:
    table: str
    alias: str
    columns: Tuple[SelectColumn, ...]
    match_partition: bool = False
    order_by_device: bool = False

    @property
    def select_columns(self) -> Tuple[SelectColumn, ...]:
        return TOPOLOGY_COLUMNS + self.columns

    def sql(self) -> str:
        a = self.alias
        statehistory = "join STATEHISTORY on STATEHISTORY.STATEHISTORYID = RUN.STATEHISTORYID"
        if self.match_partition:
            statehistory += " and STATEHISTORY.PARTITIONID = ANALYSIS.PARTITIONID"
        lines = [
            "select distinct",
            ",\n".join(col.sql() for col in self.select_columns),
            f"from {self.table} {a}",
            f"join ANALYSIS on {a}.ANALYSISID = ANALYSIS.ANALYSISID",
            "join RUN on RUN.RUNNUMBER = ANALYSIS.RUNNUMBER",
            statehistory,
            f"join DEVICE on {a}.DEVICEID = DEVICE.DEVICEID",
            "join HYBRID on DEVICE.HYBRIDID = HYBRID.HYBRIDID",
            "join CCU on HYBRID.CCUID = CCU.CCUID",
            "join RING on CCU.RINGID = RING.RINGID",
            "join FEC on RING.FECID = FEC.FECID",
            "join DEVICE b on b.HYBRIDID = HYBRID.HYBRIDID",
            "join DCU on b.DEVICEID = DCU.DEVICEID"
            " and DCU.VERSIONMAJORID = STATEHISTORY.FECVERSIONMAJORID"
            " and DCU.VERSIONMINORID = STATEHISTORY.FECVERSIONMINORID",
            "left outer join tk_fibers tkf on DCU.DCUHARDID = tkf.dcuid"
            f" and mod({a}.FECHAN, 3) = mod(fiber, 3)",
            f"where {a}.ANALYSISID = ?",
        ]
        if self.order_by_device:
            lines.append("order by DeviceId")
        return "\n".join(lines)


_KIND_QUERIES: Dict[AnalysisKind, _KindQuery] = {
    AnalysisKind.TIMING: _KindQuery(
        "ANALYSISTIMING", "ATI", tuple(_timing_columns()), order_by_device=True),
    AnalysisKind.OPTOSCAN: _KindQuery(
        "ANALYSISOPTOSCAN", "AOS", tuple(_optoscan_columns())),
    AnalysisKind.VPSPSCAN: _KindQuery(
        "ANALYSISVPSPSCAN", "AVS", tuple(_vpspscan_columns()), match_partition=True),
    AnalysisKind.FASTCABLING: _KindQuery(
        "ANALYSISFASTFEDCABLING", "AFC", tuple(_fastcabling_columns()), match_partition=True),
    AnalysisKind.PEDESTALS: _KindQuery(
        "ANALYSISPEDESTALS", "APD", tuple(_pedestals_columns()), order_by_device=True),
}


def build_query(kind) -> str:
    """Return the artifact query for an analysis kind.

    Parameters
    ----------
    kind : AnalysisKind or str
        Kind or analysis type name (aliases accepted).

    Returns
    -------
    str
        Query text with exactly one ``?`` placeholder (the analysis id), or
        ``""`` when the kind has no analysis query. Callers must check for
        the empty string before executing.
    """
    entry = _KIND_QUERIES.get(kind_of(kind))
    if entry is None:
        logger.debug("Unknown analysis type %r, no query", kind)
        return ""
    query = entry.sql()
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug("Artifact query for %s:\n%s", kind_of(kind).value, query)
    return query


def schema_for(kind) -> List[ColumnSpec]:
    """Artifact column specs for a kind, in query select order."""
    entry = _KIND_QUERIES.get(kind_of(kind))
    if entry is None:
        return []
    return [col.spec for col in entry.select_columns]


def columns_for(kind) -> List[TypedColumn]:
    """Fresh TypedColumns for one execution of the kind's query."""
    return make_columns(schema_for(kind))


# =============================================================================
# Lookup and state snapshot queries
# =============================================================================

# Bind values: partition name, run number.
LOOKUP_QUERY = (
    "select max(analysisid), ANALYSISTYPE, RUNNUMBER, PARTITIONNAME"
    " from analysis a join partition b on a.PARTITIONID = b.PARTITIONID"
    " where PARTITIONNAME = ?"
    " and RUNNUMBER = ?"
    " group by ANALYSISTYPE, RUNNUMBER, PARTITIONNAME"
)


def device_map_query(state_kind) -> str:
    """Device id -> (detid, I2C address) for a partition; binds the partition name."""
    view = _STATE_VIEWS.get(kind_of(state_kind))
    if view is None:
        logger.debug("Unknown state type %r, no device map query", state_kind)
        return ""
    addresses = ",".join(str(a) for a in DEVICE_MAP_I2C_ADDRESSES)
    return (
        "select distinct a.deviceid, detid, a.i2caddress"
        " from device a"
        " join hybrid b on a.hybridid = b.hybridid"
        " join device c on b.hybridid = c.hybridid"
        " join dcu on c.deviceid = dcu.deviceid"
        f" join {view} d on partitionname = ?"
        " and dcu.versionmajorid = d.fecversionmajorid"
        " and dcu.versionminorid = d.fecversionminorid"
        " join dcuinfo e on e.versionmajorid = d.dcuinfoversionmajorid"
        " and e.versionminorid = d.dcuinfoversionminorid"
        " and e.dcuhardid = dcu.dcuhardid"
        f" and a.i2caddress in ({addresses})"
        " order by detid, i2caddress"
    )


def state_query(state_kind) -> str:
    """Per-APV strip blobs of a partition's state, joined to the FED cabling.

    Masked devices and null blobs are excluded; the APV parity on the FED
    side must differ from the I2C address parity. Binds the partition name.

    Result columns, in order: fedid, feunit, fechan, feapv, deviceid,
    i2caddress, i2cchannel, ccuaddress, ringslot, fecslot, feckey, value.
    """
    view = _STATE_VIEWS.get(kind_of(state_kind))
    if view is None:
        logger.debug("Unknown state type %r, no state query", state_kind)
        return ""
    feckey = _fec_key_sql("CRATESLOT", "FECSLOT", "RINGSLOT",
                          "CCUADDRESS", "I2CCHANNEL", "I2CADDRESS")
    return (
        "with mypartition as (select ? name from dual),"
        " myvalues as ("
        " select fed.id fedid, fefpga.id feunit, channel.id fechan, apvfed.id apvfed, VALUE"
        " from strip join apvfed on apvid = deviceid"
        " join channel using(channelid)"
        " join channelpair using(channelpairid)"
        " join fefpga using(fefpgaid)"
        " join fed using(fedid)"
        f" join {view} a on a.partitionname = (select name from mypartition)"
        " and a.partitionid = fed.partitionid"
        " and strip.versionmajorid = a.fedversionmajorid"
        " and apvid not in ("
        f" select deviceid from fedmaskdevice a join {view} b"
        " on a.VERSIONMAJORID = b.MASKVERSIONMAJORID"
        " and a.VERSIONMINORID = b.MASKVERSIONMINORID)"
        "),"
        " myconnections as ("
        " select distinct FEDID, FEUNIT, FECHAN, DEVICEID, i2caddress, i2cchannel,"
        " ccuaddress, ringslot, fecslot, crateslot,"
        f" {feckey} FecKey"
        " from ANALYSISFASTFEDCABLING join analysis using(analysisid)"
        f" join {view} using(partitionid)"
        " join viewdevice using(deviceid)"
        " where viewdevice.partitionname = (select name from mypartition)"
        ")"
        " select myvalues.fedid fedid, myvalues.feunit feunit, myvalues.fechan fechan,"
        " myvalues.apvfed feapv, myconnections.deviceid, i2caddress, i2cchannel,"
        " ccuaddress, ringslot, fecslot, feckey, value"
        " from myvalues inner join myconnections"
        " on myvalues.fedid = myconnections.fedid"
        " and myvalues.feunit = myconnections.feunit"
        " and myvalues.fechan = myconnections.fechan"
        " and mod(APVFED, 2) <> mod(I2CADDRESS, 2)"
        " and value is not null"
        " order by myvalues.fedid, myvalues.feunit, myvalues.fechan"
    )


STATE_SCHEMA: Tuple[ColumnSpec, ...] = (
    ColumnSpec("FedId", REAL),
    ColumnSpec("FeUnit", REAL),
    ColumnSpec("FeChan", REAL),
    ColumnSpec("FeApv", REAL),
    ColumnSpec("Fec", REAL),
    ColumnSpec("Ring", REAL),
    ColumnSpec("Ccu", REAL),
    ColumnSpec("DeviceId", REAL),
    ColumnSpec("I2CChannel", REAL),
    ColumnSpec("I2CAddress", REAL),
    ColumnSpec("Detid", REAL),
    ColumnSpec("Noise", REAL, STRIP_CHANNELS),
    ColumnSpec("Pedestal", REAL, STRIP_CHANNELS),
    ColumnSpec("PedsMean", REAL),
    ColumnSpec("NoiseMean", REAL),
    ColumnSpec("FecKey", INTEGER),
)

"""Tests for artifact reuse and query-based rebuilds."""

import logging

import pytest

from calibtree.analysis.columns import ColumnType
from calibtree.analysis.kinds import AnalysisKind, RunKey
from calibtree.analysis.queries import schema_for
from calibtree.pipeline.artifact_cache import ArtifactCache
from tests.helpers.fake_database import FakeDatabase

pytestmark = [pytest.mark.unit, pytest.mark.pipeline]

RUN = RunKey("TI_27-JAN-2010_2", "123456")


def pedestals_row(seed=0):
    """One result row matching the pedestals schema, in select order."""
    row = []
    for i, spec in enumerate(schema_for(AnalysisKind.PEDESTALS)):
        match spec.column_type:
            case ColumnType.TEXT:
                row.append(f"T{seed}-{i}")
            case ColumnType.INTEGER:
                row.append(seed * 1000 + i)
            case _:
                row.append(seed + i + 0.5)
    return tuple(row)


def write_artifact(store, path, n_rows):
    writer = store.create_or_replace(path)
    writer.define_column("DeviceId", ColumnType.REAL)
    for i in range(n_rows):
        writer.append_row([float(i)])
    writer.flush_and_close()


class TestReuse:
    """With use_cache, a non-empty artifact short-circuits everything."""

    def test_cache_hit_touches_no_database(self, cache, fake_db, store, tmp_path):
        path = tmp_path / "PEDESTALS_P_1_new.parquet"
        write_artifact(store, path, 1)

        assert cache.ensure(path, "PEDESTALS", "42", RUN, use_cache=True)
        assert fake_db.calls == []
        assert fake_db.is_connected_calls == 0

    def test_cache_hit_even_when_disconnected(self, store, tmp_path):
        db = FakeDatabase(connected=False)
        path = tmp_path / "a.parquet"
        write_artifact(store, path, 3)

        assert ArtifactCache(db, store).ensure(path, "TIMING", "1", RUN)

    def test_empty_artifact_is_rebuilt(self, cache, fake_db, store, tmp_path):
        path = tmp_path / "a.parquet"
        write_artifact(store, path, 0)

        assert cache.ensure(path, "PEDESTALS", "42", RUN, use_cache=True)
        assert len(fake_db.calls) == 1

    def test_use_cache_false_forces_rebuild(self, cache, fake_db, store, tmp_path):
        path = tmp_path / "a.parquet"
        write_artifact(store, path, 5)
        fake_db.respond("ANALYSISPEDESTALS", [pedestals_row()])

        assert cache.ensure(path, "PEDESTALS", "42", RUN, use_cache=False)
        assert len(fake_db.calls) == 1
        with store.open_for_read(path) as reader:
            assert reader.row_count("DBTree") == 1
            assert "NoiseMean" in reader.column_names


class TestStateArtifacts:
    """State artifacts are never rebuilt from an analysis query."""

    @pytest.mark.parametrize("use_cache", [True, False])
    def test_missing_state_artifact(self, cache, fake_db, tmp_path, use_cache):
        path = tmp_path / "CURRENTSTATE_P.parquet"

        ok = cache.ensure(path, "CURRENTSTATE", "CURRENT", RunKey("P", "CURRENT"), use_cache)

        assert ok is False
        assert fake_db.calls == []
        assert not path.exists()

    def test_forced_rebuild_of_state_artifact_refused(self, cache, fake_db, store, tmp_path):
        path = tmp_path / "LASTO2O_P.parquet"
        write_artifact(store, path, 2)

        ok = cache.ensure(path, "LASTO2O", "LASTO2O", RunKey("P", "LASTO2O"), use_cache=False)

        assert ok is False
        assert fake_db.calls == []
        # The existing artifact is left alone
        assert path.exists()

    def test_state_run_key_with_data_kind(self, cache, fake_db, tmp_path):
        ok = cache.ensure(tmp_path / "a.parquet", "PEDESTALS", "42", RunKey("P", "LASTO2O"))

        assert ok is False
        assert fake_db.calls == []

    def test_existing_state_artifact_is_reused(self, cache, store, tmp_path):
        path = tmp_path / "CURRENTSTATE_P.parquet"
        write_artifact(store, path, 1)

        assert cache.ensure(path, "CURRENTSTATE", "CURRENT", RunKey("P", "CURRENT"))


class TestRebuild:

    def test_pedestals_row_end_to_end(self, cache, fake_db, store, tmp_path):
        path = tmp_path / "PEDESTALS_P_123456_new.parquet"
        row = pedestals_row(seed=3)
        fake_db.respond("ANALYSISPEDESTALS", [row])

        assert cache.ensure(path, AnalysisKind.PEDESTALS, "42", RUN)

        query, params = fake_db.calls[0]
        assert query.count("?") == 1
        assert params == [42]

        with store.open_for_read(path) as reader:
            df = reader.to_frame()
        schema = schema_for(AnalysisKind.PEDESTALS)
        assert list(df.columns) == [spec.name for spec in schema]
        assert len(df) == 1
        for value, spec in zip(row, schema):
            assert df[spec.name].iloc[0] == value

    def test_null_cells_bind_zero_values(self, cache, fake_db, store, tmp_path):
        path = tmp_path / "a.parquet"
        width = len(schema_for(AnalysisKind.TIMING))
        fake_db.respond("ANALYSISTIMING", [(None,) * width])

        assert cache.ensure(path, "TIMING", "7", RUN)

        with store.open_for_read(path) as reader:
            df = reader.to_frame()
        assert df["Detector"].iloc[0] == ""
        assert df["Delay"].iloc[0] == 0.0
        assert df["IsValid"].iloc[0] == 0

    def test_zero_rows_still_succeeds(self, cache, fake_db, store, tmp_path):
        path = tmp_path / "a.parquet"

        assert cache.ensure(path, "VPSPSCAN", "7", RUN)

        with store.open_for_read(path) as reader:
            assert reader.row_count("DBTree") == 0

    def test_rows_from_several_ids_in_order(self, cache, fake_db, store, tmp_path):
        path = tmp_path / "a.parquet"
        fake_db.respond("ANALYSISPEDESTALS", [pedestals_row(1)], params=[11])
        fake_db.respond("ANALYSISPEDESTALS", [pedestals_row(2), pedestals_row(3)], params=[12])

        assert cache.rebuild(path, "PEDESTALS", ["11", "12"])

        assert [params for _, params in fake_db.calls] == [[11], [12]]
        with store.open_for_read(path) as reader:
            df = reader.to_frame()
        assert list(df["Detector"]) == ["T1-0", "T2-0", "T3-0"]

    def test_non_numeric_id_passed_through(self, cache, fake_db, tmp_path):
        cache.rebuild(tmp_path / "a.parquet", "TIMING", ["abc"])

        assert fake_db.calls[0][1] == ["abc"]

    def test_disconnected(self, store, tmp_path):
        db = FakeDatabase(connected=False)

        assert not ArtifactCache(db, store).ensure(tmp_path / "a.parquet", "TIMING", "1", RUN)
        assert db.calls == []

    def test_no_ids(self, cache, fake_db, tmp_path):
        assert not cache.rebuild(tmp_path / "a.parquet", "TIMING", [])
        assert fake_db.calls == []

    @pytest.mark.parametrize("kind", ["CALCHAN", AnalysisKind.MULTIPARTITION])
    def test_kind_without_query(self, cache, fake_db, tmp_path, kind):
        path = tmp_path / "a.parquet"

        assert not cache.ensure(path, kind, "1", RUN)
        assert fake_db.calls == []
        assert not path.exists()

    def test_query_error_leaves_no_artifact(self, cache, fake_db, tmp_path):
        path = tmp_path / "a.parquet"
        fake_db.respond("ANALYSISTIMING", error="ORA-00942: table or view does not exist")

        assert not cache.ensure(path, "TIMING", "1", RUN)
        assert not path.exists()

    def test_error_on_second_id_discards_everything(self, cache, fake_db, tmp_path):
        path = tmp_path / "a.parquet"
        fake_db.respond("ANALYSISPEDESTALS", [pedestals_row()], params=[1])
        fake_db.respond("ANALYSISPEDESTALS", error="lost connection", params=[2])

        assert not cache.rebuild(path, "PEDESTALS", [1, 2])
        assert not path.exists()

    def test_narrow_row_is_contract_violation(self, cache, fake_db, tmp_path, caplog):
        path = tmp_path / "a.parquet"
        fake_db.respond("ANALYSISTIMING", [(1.0, 2.0)])

        with caplog.at_level(logging.CRITICAL, logger="calibtree.pipeline.artifact_cache"):
            assert not cache.ensure(path, "TIMING", "1", RUN)

        assert "contract violated" in caplog.text
        assert not path.exists()

    def test_unexpected_error_is_caught(self, cache, fake_db, tmp_path, monkeypatch):
        path = tmp_path / "a.parquet"
        fake_db.respond("ANALYSISTIMING", [(None,) * len(schema_for("TIMING"))])

        def boom(*args, **kwargs):
            raise IOError("disk failure")

        monkeypatch.setattr("calibtree.pipeline.artifact_store.ArtifactWriter.flush_and_close", boom)

        assert not cache.ensure(path, "TIMING", "1", RUN)
        assert not path.exists()


class TestRowIsolation:

    def test_bad_cell_does_not_inherit_previous_row(self, cache, fake_db, store, tmp_path):
        path = tmp_path / "a.parquet"
        names = [spec.name for spec in schema_for("TIMING")]
        delay = names.index("Delay")
        good = [None] * len(names)
        good[delay] = 5.0
        bad = [None] * len(names)
        bad[delay] = "n/a"
        fake_db.respond("ANALYSISTIMING", [tuple(good), tuple(bad)])

        assert cache.ensure(path, "TIMING", "1", RUN)

        with store.open_for_read(path) as reader:
            df = reader.to_frame()
        assert list(df["Delay"]) == [5.0, 0.0]


class TestFailedRebuildKeepsArtifact:
    """A failed rebuild never removes what was already there."""

    def test_query_error_on_forced_rebuild(self, cache, fake_db, store, tmp_path):
        path = tmp_path / "TIMING_P_1_new.parquet"
        write_artifact(store, path, 1)
        fake_db.respond("ANALYSISTIMING", error="ORA-03113: end-of-file on communication channel")

        assert not cache.ensure(path, "TIMING", "1", RUN, use_cache=False)

        assert path.exists()
        with store.open_for_read(path) as reader:
            assert reader.row_count("DBTree") == 1
        assert not path.with_name(path.name + ".tmp").exists()

    def test_contract_violation_on_forced_rebuild(self, cache, fake_db, store, tmp_path):
        path = tmp_path / "a.parquet"
        write_artifact(store, path, 2)
        fake_db.respond("ANALYSISTIMING", [(1.0, 2.0)])

        assert not cache.ensure(path, "TIMING", "1", RUN, use_cache=False)

        with store.open_for_read(path) as reader:
            assert reader.row_count("DBTree") == 2

    def test_disconnected_forced_rebuild(self, store, tmp_path):
        path = tmp_path / "a.parquet"
        write_artifact(store, path, 1)

        ok = ArtifactCache(FakeDatabase(connected=False), store).ensure(
            path, "TIMING", "1", RUN, use_cache=False)

        assert ok is False
        assert path.exists()

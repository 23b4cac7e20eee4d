"""Tests for the latest-analysis lookup."""

import logging

import pytest

from calibtree.analysis.kinds import AnalysisKind, RunKey
from calibtree.pipeline.resolver import AnalysisResolver

pytestmark = [pytest.mark.unit, pytest.mark.pipeline]

LOOKUP = "max(analysisid)"
RUN = RunKey("TI_27-JAN-2010_2", "123456")


def test_single_analysis(fake_db):
    fake_db.respond(LOOKUP, [(77, "GAINSCAN", 123456, "TI_27-JAN-2010_2")])

    resolved = AnalysisResolver(fake_db).resolve(RUN)

    assert resolved.analysis_id == "77"
    assert resolved.analysis_type == "GAINSCAN"
    assert resolved.kind is AnalysisKind.OPTOSCAN
    assert resolved.run_key == RUN
    assert fake_db.calls[0][1] == ["TI_27-JAN-2010_2", "123456"]


def test_no_analysis(fake_db, caplog):
    with caplog.at_level(logging.WARNING):
        assert AnalysisResolver(fake_db).resolve(RUN) is None

    assert "No analysis found for the given run number and partition" in caplog.text


def test_ambiguous_run(fake_db, caplog):
    fake_db.respond(LOOKUP, [(1, "TIMING", 1, "P"), (2, "PEDESTALS", 1, "P")])

    with caplog.at_level(logging.WARNING):
        assert AnalysisResolver(fake_db).resolve(RUN) is None

    assert "More than one analysis type on the same run" in caplog.text


def test_lookup_error(fake_db):
    fake_db.respond(LOOKUP, error="ORA-03113")

    assert AnalysisResolver(fake_db).resolve(RUN) is None

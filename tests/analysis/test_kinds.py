"""Tests for the analysis kind registry."""

import pytest

from calibtree.analysis.kinds import (
    AnalysisKind,
    AnalysisSelector,
    RunKey,
    canonical_label,
    kind_of,
    DATA_KINDS,
    STATE_KINDS,
)

pytestmark = pytest.mark.unit


@pytest.mark.parametrize("text, kind", [
    ("TIMING", AnalysisKind.TIMING),
    ("OPTOSCAN", AnalysisKind.OPTOSCAN),
    ("GAINSCAN", AnalysisKind.OPTOSCAN),
    ("VPSPSCAN", AnalysisKind.VPSPSCAN),
    ("VERY_FAST_CONNECTION", AnalysisKind.FASTCABLING),
    ("FASTFEDCABLING", AnalysisKind.FASTCABLING),
    ("PEDESTALS", AnalysisKind.PEDESTALS),
    ("PEDESTAL", AnalysisKind.PEDESTALS),
    ("CURRENT", AnalysisKind.CURRENTSTATE),
    ("CURRENTSTATE", AnalysisKind.CURRENTSTATE),
    ("LASTO2O", AnalysisKind.LASTSYNCHRONIZED),
    ("MULTIPART", AnalysisKind.MULTIPARTITION),
])
def test_aliases(text, kind):
    assert kind_of(text) is kind


@pytest.mark.parametrize("text", ["timing", " TIMING", "CALCHAN", "", None, 42])
def test_everything_else_is_unknown(text):
    assert kind_of(text) is AnalysisKind.UNKNOWN


def test_kind_members_pass_through():
    for kind in AnalysisKind:
        assert kind_of(kind) is kind


@pytest.mark.parametrize("text, label", [
    ("GAINSCAN", "OPTOSCAN"),
    ("VERY_FAST_CONNECTION", "FASTFEDCABLING"),
    ("PEDESTAL", "PEDESTALS"),
    ("CURRENTSTATE", "CURRENT"),
    (AnalysisKind.LASTSYNCHRONIZED, "LASTO2O"),
    ("whatever", "UNKNOWN"),
])
def test_canonical_label(text, label):
    assert canonical_label(text) == label


def test_data_and_state_kinds_are_disjoint():
    assert not DATA_KINDS & STATE_KINDS
    assert AnalysisKind.MULTIPARTITION not in DATA_KINDS | STATE_KINDS


class TestRunKey:

    def test_plain_run_is_not_state(self):
        key = RunKey("TI_27-JAN-2010_2", "123456")

        assert key.label_kind is AnalysisKind.UNKNOWN
        assert not key.is_state

    @pytest.mark.parametrize("label", ["CURRENT", "LASTO2O"])
    def test_state_labels(self, label):
        assert RunKey("P", label).is_state

    def test_multipart_label(self):
        key = RunKey("X*A#1*B#2*C#3*D#4", "MULTIPART")

        assert key.label_kind is AnalysisKind.MULTIPARTITION
        assert not key.is_state


class TestAnalysisSelector:

    def test_data_selector_may_be_rebuilt(self):
        selector = AnalysisSelector(AnalysisKind.PEDESTALS, "42", RunKey("P", "100"))

        assert not selector.is_state

    def test_state_kind(self):
        selector = AnalysisSelector(AnalysisKind.CURRENTSTATE, "42", RunKey("P", "100"))

        assert selector.is_state

    def test_state_label_as_analysis_id(self):
        selector = AnalysisSelector(AnalysisKind.PEDESTALS, "LASTO2O", RunKey("P", "100"))

        assert selector.is_state

    def test_state_run_key(self):
        selector = AnalysisSelector(AnalysisKind.PEDESTALS, "42", RunKey("P", "CURRENT"))

        assert selector.is_state

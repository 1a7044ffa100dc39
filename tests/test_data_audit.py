"""
Tests for election_results/data_audit.py.

The audit only reports; every test also checks the input is untouched.
"""

import logging
import os

import pandas as pd
import pytest

from election_results import config
from election_results.data_audit import (
    country_turnout_summary,
    run_audit,
    track_null_votes,
    turnout_discrepancies,
    vote_sum_discrepancies,
)


@pytest.fixture
def audited(make_constituencies):
    return make_constituencies([
        # 1000 * 0.6 = 600: consistent
        {"name": "Alpha", "votes": {"Labour": 400, "Green": 200},
         "electorate": 1000, "turnout": 0.6},
        # 1000 * 0.5 = 500 vs 600 recorded: 16.7% off
        {"name": "Beta", "votes": {"Labour": 300, "SNP": 300},
         "electorate": 1000, "turnout": 0.5, "country": "Scotland"},
        # party votes sum to 550, total says 600
        {"name": "Gamma", "votes": {"Conservative": 550}, "total": 600,
         "electorate": 1000, "turnout": 0.6},
    ])


class TestTurnoutDiscrepancies:

    def test_flags_inconsistent_rows_only(self, audited):
        flagged = turnout_discrepancies(audited)
        assert flagged[config.CONSTITUENCY_COL].tolist() == ["Beta"]

    def test_reports_expected_and_relative_difference(self, audited):
        row = turnout_discrepancies(audited).iloc[0]
        assert row["Expected votes"] == 500
        assert row["Difference"] == 100
        assert row["Relative difference"] == pytest.approx(100 / 600)

    def test_tolerance_widens(self, audited):
        assert turnout_discrepancies(audited, tolerance=0.5).empty

    def test_small_rounding_gap_not_flagged(self, make_constituencies):
        # 72617 * 0.657 = 47709.4 vs 47932: 0.46%
        df = make_constituencies([
            {"name": "Aldershot", "votes": {"Conservative": 47932},
             "electorate": 72617, "turnout": 0.657},
        ])
        assert turnout_discrepancies(df).empty

    def test_zero_total_not_flagged(self, make_constituencies):
        df = make_constituencies([
            {"name": "Void", "votes": {}, "total": 0, "electorate": 100, "turnout": 0.0},
        ])
        assert turnout_discrepancies(df).empty


class TestVoteSumDiscrepancies:

    def test_flags_mismatch(self, audited):
        flagged = vote_sum_discrepancies(audited)
        assert flagged[config.CONSTITUENCY_COL].tolist() == ["Gamma"]
        assert flagged.iloc[0]["Party vote sum"] == 550
        assert flagged.iloc[0]["Difference"] == 50

    def test_input_not_mutated(self, audited):
        before = audited.copy()
        vote_sum_discrepancies(audited)
        turnout_discrepancies(audited)
        pd.testing.assert_frame_equal(audited, before)


class TestCountryTurnoutSummary:

    def test_one_row_per_country(self, audited):
        summary = country_turnout_summary(audited).set_index(config.COUNTRY_COL)
        assert summary.index.tolist() == ["England", "Scotland"]
        assert summary.loc["England", "count"] == 2
        assert summary.loc["England", "mean"] == pytest.approx(0.6)
        assert summary.loc["Scotland", "max"] == pytest.approx(0.5)


class TestNullVotes:

    def test_counts_parties_not_standing(self, audited):
        counts = track_null_votes(audited, "test")
        assert counts["Green"] == 2
        assert counts["Brexit"] == 3
        assert "Labour" in counts and counts["Labour"] == 1

    def test_no_nulls_returns_empty(self, make_constituencies):
        df = make_constituencies([{"name": "Alpha", "votes": {"Labour": 10, "Green": 5}}])
        assert track_null_votes(df, "test", parties=["Labour", "Green"]) == {}


class TestRunAudit:

    def test_writes_diagnostics(self, audited, tmp_dir):
        results = run_audit(audited, diagnostics_dir=tmp_dir)
        for key in ("turnout_discrepancies", "vote_sum_discrepancies", "turnout_by_country"):
            path = os.path.join(tmp_dir, config.OUTPUT_FILES[key])
            assert os.path.exists(path), key
            assert len(pd.read_csv(path)) == len(results[key])

    def test_without_directory_writes_nothing(self, audited, tmp_dir):
        run_audit(audited)
        assert os.listdir(tmp_dir) == []

    def test_warnings_logged(self, audited, caplog):
        with caplog.at_level(logging.WARNING, logger="election_results.data_audit"):
            run_audit(audited)
        assert any("electorate" in msg for msg in caplog.messages)
        assert any("do not sum" in msg for msg in caplog.messages)

"""
Tests for Pandera schema validation gates.

Verifies that:
- Schemas accept the tables the pipeline actually produces
- Schemas reject invalid data (missing columns, out-of-range values, duplicates)
- validate_schema() returns warnings in lenient mode
- validate_schema() raises in strict mode
"""

import pandas as pd
import pytest

from election_results import config
from election_results.reshape import party_results
from election_results.schemas import (
    ConstituencyOutcomeSchema,
    ConstituencyResultSchema,
    PartyResultSchema,
    SeatTotalsSchema,
    validate_schema,
)
from election_results.summarize import constituency_outcomes, seat_totals


@pytest.fixture
def cleaned(make_constituencies):
    return make_constituencies([
        {"name": "Alpha", "votes": {"Conservative": 100, "Labour": 80}},
        {"name": "Beta", "country": "Wales", "votes": {"Plaid Cymru": 90, "Labour": 10}},
        {"name": "Speaker", "votes": {"Other": 300}},
    ])


# ── ConstituencyResultSchema ────────────────────────────────────────────


class TestConstituencyResultSchema:

    def test_cleaned_table_passes(self, cleaned):
        ConstituencyResultSchema.validate(cleaned)

    def test_missing_party_column_fails(self, cleaned):
        with pytest.raises(Exception):
            ConstituencyResultSchema.validate(cleaned.drop(columns=["Green"]))

    def test_extra_column_fails(self, cleaned):
        df = cleaned.copy()
        df["County"] = "Shire"
        with pytest.raises(Exception):
            ConstituencyResultSchema.validate(df)

    def test_missing_country_fails(self, cleaned):
        df = cleaned.copy()
        df.loc[df.index[0], config.COUNTRY_COL] = None
        with pytest.raises(Exception):
            ConstituencyResultSchema.validate(df)

    def test_turnout_as_percentage_fails(self, cleaned):
        df = cleaned.copy()
        df[config.TURNOUT_COL] = 65.0
        with pytest.raises(Exception):
            ConstituencyResultSchema.validate(df)

    def test_negative_votes_fail(self, cleaned):
        df = cleaned.copy()
        df.loc[df.index[0], "Labour"] = -1
        with pytest.raises(Exception):
            ConstituencyResultSchema.validate(df)

    def test_duplicate_constituency_fails(self, cleaned):
        df = pd.concat([cleaned, cleaned.iloc[[0]]])
        with pytest.raises(Exception):
            ConstituencyResultSchema.validate(df)


# ── PartyResultSchema ───────────────────────────────────────────────────


class TestPartyResultSchema:

    def test_party_results_pass(self, cleaned):
        PartyResultSchema.validate(party_results(cleaned))

    def test_unknown_party_fails(self, cleaned):
        df = party_results(cleaned)
        df.loc[0, "Party"] = "Monster Raving Loony"
        with pytest.raises(Exception):
            PartyResultSchema.validate(df)

    def test_share_over_100_fails(self, cleaned):
        df = party_results(cleaned)
        df.loc[0, "Share"] = 120.0
        with pytest.raises(Exception):
            PartyResultSchema.validate(df)

    def test_rank_zero_fails(self, cleaned):
        df = party_results(cleaned)
        df.loc[0, "Rank"] = 0
        with pytest.raises(Exception):
            PartyResultSchema.validate(df)

    def test_duplicate_pair_fails(self, cleaned):
        df = party_results(cleaned)
        df = pd.concat([df, df.iloc[[0]]], ignore_index=True)
        with pytest.raises(Exception):
            PartyResultSchema.validate(df)


# ── Outcomes and seat totals ────────────────────────────────────────────


class TestOutcomeAndSeatSchemas:

    def test_outcomes_pass_with_uncontested_seat(self, cleaned):
        outcomes = constituency_outcomes(party_results(cleaned))
        assert outcomes["Runner-up"].isna().sum() == 1
        ConstituencyOutcomeSchema.validate(outcomes)

    def test_negative_majority_fails(self, cleaned):
        outcomes = constituency_outcomes(party_results(cleaned))
        outcomes.loc[0, "Majority"] = -1.0
        with pytest.raises(Exception):
            ConstituencyOutcomeSchema.validate(outcomes)

    def test_seat_totals_pass(self, cleaned):
        seats = seat_totals(constituency_outcomes(party_results(cleaned)))
        SeatTotalsSchema.validate(seats)

    def test_zero_seats_fails(self):
        seats = pd.DataFrame({"Party": ["Labour"], "Seats": [0]})
        with pytest.raises(Exception):
            SeatTotalsSchema.validate(seats)


# ── validate_schema() function ──────────────────────────────────────────


class TestValidateSchemaFunction:
    """Tests for the validate_schema() convenience function."""

    def test_none_df_returns_warning(self):
        warnings = validate_schema(None, SeatTotalsSchema, "test", strict=False)
        assert len(warnings) == 1
        assert "None" in warnings[0]

    def test_none_df_raises_in_strict_mode(self):
        with pytest.raises(ValueError, match="None"):
            validate_schema(None, SeatTotalsSchema, "test", strict=True)

    def test_empty_df_returns_warning(self):
        df = pd.DataFrame(columns=["Party", "Seats"])
        warnings = validate_schema(df, SeatTotalsSchema, "test", strict=False)
        assert len(warnings) == 1
        assert "empty" in warnings[0]

    def test_empty_df_raises_in_strict_mode(self):
        df = pd.DataFrame(columns=["Party", "Seats"])
        with pytest.raises(ValueError, match="empty"):
            validate_schema(df, SeatTotalsSchema, "test", strict=True)

    def test_invalid_data_returns_warnings_lenient(self):
        df = pd.DataFrame({"Party": ["Labour", "SNP"], "Seats": [0, -2]})
        warnings = validate_schema(df, SeatTotalsSchema, "seat_totals", strict=False)
        assert len(warnings) >= 2
        assert all(w.startswith("[seat_totals]") for w in warnings)

    def test_invalid_data_raises_in_strict_mode(self):
        df = pd.DataFrame({"Party": ["Labour"], "Seats": [0]})
        with pytest.raises(ValueError, match="Schema validation failed"):
            validate_schema(df, SeatTotalsSchema, "seat_totals", strict=True)

    def test_valid_data_returns_no_warnings(self, cleaned):
        warnings = validate_schema(cleaned, ConstituencyResultSchema, "clean", strict=True)
        assert warnings == []

"""
Pandera DataFrame schemas used as validation gates between steps.

Usage:
    from election_results.schemas import ConstituencyResultSchema
    ConstituencyResultSchema.validate(df)  # raises pa.errors.SchemaError
"""

import pandera as pa
from pandera import Check, Column, DataFrameSchema

from election_results import config


# ── Cleaned wide table ──────────────────────────────────────────────────

_party_columns = {
    party: Column("Int64", Check.greater_than_or_equal_to(0), nullable=True)
    for party in config.PARTIES
}

ConstituencyResultSchema = DataFrameSchema(
    columns={
        config.CONSTITUENCY_COL: Column(str, nullable=False, unique=True),
        config.COUNTRY_COL: Column(str, nullable=False),
        config.ELECTORATE_COL: Column("Int64", Check.greater_than_or_equal_to(0), nullable=False),
        config.TURNOUT_COL: Column(float, Check.in_range(0.0, 1.0), nullable=False),
        config.TOTAL_VOTES_COL: Column("Int64", Check.greater_than_or_equal_to(0), nullable=False),
        **_party_columns,
    },
    strict=True,
    coerce=False,
    name="ConstituencyResultSchema",
)


# ── Long per-party table ────────────────────────────────────────────────

PartyResultSchema = DataFrameSchema(
    columns={
        config.CONSTITUENCY_COL: Column(str, nullable=False),
        "Party": Column(str, Check.isin(config.PARTIES), nullable=False),
        "Votes": Column(int, Check.greater_than_or_equal_to(0), nullable=False),
        "Share": Column(float, Check.in_range(0.0, 100.0), nullable=False),
        "Rank": Column(int, Check.greater_than_or_equal_to(1), nullable=False),
    },
    unique=[config.CONSTITUENCY_COL, "Party"],
    strict=False,
    coerce=False,
    name="PartyResultSchema",
)


# ── Per-constituency outcome ────────────────────────────────────────────

ConstituencyOutcomeSchema = DataFrameSchema(
    columns={
        config.CONSTITUENCY_COL: Column(str, nullable=False, unique=True),
        "Winner": Column(str, nullable=False),
        "Winner share": Column(float, Check.in_range(0.0, 100.0), nullable=False),
        "Runner-up": Column(object, nullable=True),
        "Runner-up share": Column(float, Check.greater_than_or_equal_to(0.0), nullable=False),
        "Majority": Column(float, Check.greater_than_or_equal_to(0.0), nullable=False),
    },
    strict=False,
    coerce=False,
    name="ConstituencyOutcomeSchema",
)


# ── Seat totals ─────────────────────────────────────────────────────────

SeatTotalsSchema = DataFrameSchema(
    columns={
        "Party": Column(str, nullable=False, unique=True),
        "Seats": Column(int, Check.greater_than(0), nullable=False),
    },
    strict=True,
    coerce=False,
    name="SeatTotalsSchema",
)


def validate_schema(df, schema, step_name, strict=False):
    """Validate a DataFrame against a Pandera schema.

    Parameters
    ----------
    df : pd.DataFrame
    schema : pa.DataFrameSchema
    step_name : str
        Used as the prefix of every message.
    strict : bool
        If True, raise ValueError on any failure; otherwise return the
        failures as warning strings.

    Returns
    -------
    list[str]
        One message per failure case (empty when valid).
    """
    warnings_list = []

    if df is None:
        msg = f"[{step_name}] DataFrame is None"
        if strict:
            raise ValueError(msg)
        return [msg]

    if len(df) == 0:
        msg = f"[{step_name}] DataFrame is empty (0 rows)"
        if strict:
            raise ValueError(msg)
        return [msg]

    try:
        schema.validate(df, lazy=True)
    except pa.errors.SchemaErrors as exc:
        for failure in exc.failure_cases.itertuples():
            warnings_list.append(
                f"[{step_name}] Schema violation: "
                f"column='{failure.column}' check='{failure.check}' "
                f"failure_case={failure.failure_case}"
            )
        if strict:
            raise ValueError(
                f"[{step_name}] Schema validation failed with "
                f"{len(warnings_list)} errors"
            ) from exc

    return warnings_list

"""
Summarizer: per-constituency winners and party seat totals.
"""

import os

import pandas as pd

from election_results import config
from election_results.errors import AggregationError, DataQualityReport
from election_results.logging_config import get_pipeline_logger
from election_results.reshape import national_totals, party_results

log = get_pipeline_logger(__name__)

OUTCOME_COLUMNS = [
    config.CONSTITUENCY_COL,
    "Winner",
    "Winner share",
    "Runner-up",
    "Runner-up share",
    "Majority",
    "Candidates",
]
SEAT_TOTAL_COLUMNS = ["Party", "Seats"]


def _check_party_results_unique(party_df):
    dupes = party_df.duplicated([config.CONSTITUENCY_COL, "Party"], keep=False)
    if dupes.any():
        raise AggregationError(party_df.loc[dupes, config.CONSTITUENCY_COL].iloc[0])


def constituency_outcomes(party_df: pd.DataFrame, decimals=None) -> pd.DataFrame:
    """Winner, runner-up and majority for every constituency.

    Shares are rounded to ``decimals`` places (config.SHARE_DECIMALS by
    default) and the majority is the difference of the rounded shares,
    so the three reported numbers always agree. Equal shares are broken
    alphabetically by party name. An uncontested seat has no runner-up
    and a runner-up share of 0.

    Raises
    ------
    AggregationError
        A (constituency, party) pair occurs twice, which means two
        source rows shared a constituency name.
    """
    if decimals is None:
        decimals = config.SHARE_DECIMALS

    _check_party_results_unique(party_df)

    rows = []
    for name, group in party_df.groupby(config.CONSTITUENCY_COL, sort=False):
        ranked = group.sort_values(["Share", "Party"], ascending=[False, True], kind="mergesort")
        winner = ranked.iloc[0]
        winner_share = round(float(winner["Share"]), decimals)
        if len(ranked) > 1:
            runner_up = ranked.iloc[1]["Party"]
            runner_up_share = round(float(ranked.iloc[1]["Share"]), decimals)
        else:
            runner_up = None
            runner_up_share = 0.0
        rows.append({
            config.CONSTITUENCY_COL: name,
            "Winner": winner["Party"],
            "Winner share": winner_share,
            "Runner-up": runner_up,
            "Runner-up share": runner_up_share,
            "Majority": round(winner_share - runner_up_share, decimals),
            "Candidates": len(ranked),
        })

    outcomes = pd.DataFrame(rows, columns=OUTCOME_COLUMNS)
    outcomes["Candidates"] = outcomes["Candidates"].astype("int64")
    for col in ("Winner share", "Runner-up share", "Majority"):
        outcomes[col] = outcomes[col].astype("float64")
    outcomes["Runner-up"] = outcomes["Runner-up"].astype(object)
    log.info("Outcomes computed for %d constituencies", len(outcomes))
    return outcomes


def seat_totals(outcomes: pd.DataFrame) -> pd.DataFrame:
    """Count constituencies won per party.

    Only parties with at least one seat appear. Rows are ordered by seats
    descending, then party name ascending.
    """
    names = outcomes[config.CONSTITUENCY_COL]
    if names.duplicated().any():
        raise AggregationError(names[names.duplicated()].iloc[0])

    if outcomes.empty:
        return pd.DataFrame({
            "Party": pd.Series(dtype=object),
            "Seats": pd.Series(dtype="int64"),
        })

    seats = (
        outcomes.groupby("Winner").size()
        .rename("Seats")
        .rename_axis("Party")
        .reset_index()
    )
    seats["Seats"] = seats["Seats"].astype("int64")
    seats = seats.sort_values(["Seats", "Party"], ascending=[False, True], kind="mergesort")
    return seats.reset_index(drop=True)[SEAT_TOTAL_COLUMNS]


def seat_totals_by_country(outcomes: pd.DataFrame, constituencies: pd.DataFrame) -> pd.DataFrame:
    """Seats per party broken down by country, plus a Total column.

    Rows follow seat_totals() ordering; country columns are alphabetical.
    """
    countries = constituencies.set_index(config.CONSTITUENCY_COL)[config.COUNTRY_COL]
    merged = outcomes.assign(Country=outcomes[config.CONSTITUENCY_COL].map(countries))
    table = pd.crosstab(merged["Winner"], merged["Country"])
    table = table.reindex(columns=sorted(table.columns))
    table["Total"] = table.sum(axis=1)
    table = table.rename_axis(index="Party", columns=None).reset_index()
    return table.sort_values(["Total", "Party"], ascending=[False, True],
                             kind="mergesort").reset_index(drop=True)


def write_seat_totals(seats: pd.DataFrame, path: str) -> str:
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    seats[SEAT_TOTAL_COLUMNS].to_csv(path, index=False)
    log.info("Saved seat totals: %s", path)
    return path


def summarise_election(constituencies: pd.DataFrame, parties=None, report=None) -> dict:
    """Run the reshape and summary stages over a cleaned table.

    Returns a dict with "party_results", "national_totals", "outcomes"
    and "seat_totals" DataFrames.
    """
    if report is None:
        report = DataQualityReport()

    long_df = party_results(constituencies, parties=parties, report=report)
    outcomes = constituency_outcomes(long_df)
    return {
        "party_results": long_df,
        "national_totals": national_totals(constituencies, parties=parties),
        "outcomes": outcomes,
        "seat_totals": seat_totals(outcomes),
    }

"""
Reshaper/aggregator: wide constituency table -> long party results.

party_results() and national_totals() are independent consumers of the
cleaned table; neither reads the other's output.
"""

import numpy as np
import pandas as pd

from election_results import config
from election_results.cleaner import check_unique_constituencies
from election_results.errors import DataQualityError, DataQualityReport
from election_results.logging_config import get_pipeline_logger

log = get_pipeline_logger(__name__)

STAGE = "reshape"

PARTY_RESULT_COLUMNS = [config.CONSTITUENCY_COL, "Party", "Votes", "Share", "Rank"]
NATIONAL_TOTAL_COLUMNS = ["Party", "Votes", "Share"]


def zero_total_mask(constituencies: pd.DataFrame) -> pd.Series:
    """Rows whose total votes is zero (vote share undefined)."""
    return constituencies[config.TOTAL_VOTES_COL].fillna(0) == 0


def rank_within_constituency(long_df: pd.DataFrame, constituency_order=None) -> pd.DataFrame:
    """Order rows by share within each constituency and number them.

    Constituencies follow ``constituency_order`` (the row order of the
    wide table); without it they keep their first appearance in
    ``long_df``. Equal shares are ordered alphabetically by party name so
    the ranking is deterministic whatever the upstream column order.
    """
    if constituency_order is None:
        constituency_order = pd.unique(long_df[config.CONSTITUENCY_COL])
    order = {name: i for i, name in enumerate(constituency_order)}
    ranked = long_df.assign(_order=long_df[config.CONSTITUENCY_COL].map(order))
    ranked = ranked.sort_values(
        ["_order", "Share", "Party"],
        ascending=[True, False, True],
        kind="mergesort",
    )
    ranked["Rank"] = ranked.groupby(config.CONSTITUENCY_COL, sort=False).cumcount() + 1
    return ranked.drop(columns="_order").reset_index(drop=True)


def party_results(constituencies: pd.DataFrame, parties=None, report=None) -> pd.DataFrame:
    """Build the long (constituency, party, votes, share, rank) table.

    Parameters
    ----------
    constituencies : pd.DataFrame
        Cleaned wide table.
    parties : list[str], optional
        Party columns to unpivot. Defaults to config.PARTIES.
    report : DataQualityReport, optional
        Receives a DataQualityError for every constituency skipped
        because its total votes is zero.

    Returns
    -------
    pd.DataFrame
        Columns Constituency, Party, Votes, Share, Rank. Null votes
        (party did not stand) produce no row. Share is unrounded
        percentage of the constituency's total votes.
    """
    if parties is None:
        parties = config.PARTIES
    if report is None:
        report = DataQualityReport()

    check_unique_constituencies(constituencies)

    zero = zero_total_mask(constituencies)
    for idx in constituencies.index[zero]:
        name = constituencies.at[idx, config.CONSTITUENCY_COL]
        err = DataQualityError(
            "Total votes is zero; vote share is undefined",
            constituency=name,
            field=config.TOTAL_VOTES_COL,
            value=0,
            source_row=idx if not isinstance(idx, np.integer) else int(idx),
        )
        report.add(STAGE, err)
        log.warning("Skipping constituency: %s", err, extra={"constituency": name})

    valid = constituencies.loc[~zero]
    long_df = valid[[config.CONSTITUENCY_COL, config.TOTAL_VOTES_COL] + list(parties)].melt(
        id_vars=[config.CONSTITUENCY_COL, config.TOTAL_VOTES_COL],
        value_vars=list(parties),
        var_name="Party",
        value_name="Votes",
    )
    long_df = long_df.dropna(subset=["Votes"])

    if long_df.empty:
        log.warning("No party results: every party vote is null or skipped")
        return pd.DataFrame({
            config.CONSTITUENCY_COL: pd.Series(dtype=object),
            "Party": pd.Series(dtype=object),
            "Votes": pd.Series(dtype="int64"),
            "Share": pd.Series(dtype="float64"),
            "Rank": pd.Series(dtype="int64"),
        })

    long_df["Votes"] = long_df["Votes"].astype("int64")
    long_df["Share"] = (
        long_df["Votes"].astype("float64")
        / long_df[config.TOTAL_VOTES_COL].astype("float64")
        * 100
    )
    long_df = long_df.drop(columns=config.TOTAL_VOTES_COL)
    ranked = rank_within_constituency(long_df, valid[config.CONSTITUENCY_COL])

    uncontested = set(valid[config.CONSTITUENCY_COL]) - set(ranked[config.CONSTITUENCY_COL])
    if uncontested:
        log.warning("Constituencies with no recorded candidates: %s", sorted(uncontested))

    log.info(
        "Party results: %d rows across %d constituencies",
        len(ranked), ranked[config.CONSTITUENCY_COL].nunique(),
    )
    return ranked[PARTY_RESULT_COLUMNS]


def national_totals(constituencies: pd.DataFrame, parties=None) -> pd.DataFrame:
    """Sum votes per party across all constituencies.

    Null votes count as 0 here only. Constituencies with zero total votes
    are left out, matching party_results(). Share is each party's
    percentage of all votes cast; rows are ordered by votes descending,
    then party name.
    """
    if parties is None:
        parties = config.PARTIES

    valid = constituencies.loc[~zero_total_mask(constituencies)]
    votes = valid[list(parties)].fillna(0).astype("int64").sum()
    total = int(valid[config.TOTAL_VOTES_COL].astype("int64").sum())

    totals = pd.DataFrame({"Party": list(votes.index), "Votes": votes.to_numpy(dtype="int64")})
    totals["Share"] = totals["Votes"] / total * 100 if total else np.nan
    totals = totals.sort_values(["Votes", "Party"], ascending=[False, True], kind="mergesort")
    return totals.reset_index(drop=True)[NATIONAL_TOTAL_COLUMNS]

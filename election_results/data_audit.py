"""
Data-quality audit of the cleaned constituency table.

These checks surface inconsistencies in the source figures; they never
modify the data. Results are logged and written as CSVs next to the
other diagnostics.
"""

import os

from election_results import config
from election_results.logging_config import get_pipeline_logger

log = get_pipeline_logger(__name__)


def turnout_discrepancies(constituencies, tolerance=None):
    """Rows where Total votes differs from Electorate × Turnout.

    Parameters
    ----------
    constituencies : pd.DataFrame
        Cleaned wide table.
    tolerance : float, optional
        Maximum relative difference, as a fraction of Total votes.
        Defaults to config.TURNOUT_TOLERANCE.

    Returns
    -------
    pd.DataFrame
        Constituency, Electorate, Turnout, Total votes, Expected votes,
        Difference and Relative difference for each flagged row.
    """
    if tolerance is None:
        tolerance = config.TURNOUT_TOLERANCE

    total = constituencies[config.TOTAL_VOTES_COL].astype("float64")
    expected = (
        constituencies[config.ELECTORATE_COL].astype("float64")
        * constituencies[config.TURNOUT_COL].astype("float64")
    )
    diff = total - expected
    relative = diff.abs() / total.where(total > 0)

    flagged = relative > tolerance
    out = constituencies.loc[flagged, [
        config.CONSTITUENCY_COL, config.ELECTORATE_COL,
        config.TURNOUT_COL, config.TOTAL_VOTES_COL,
    ]].copy()
    out["Expected votes"] = expected[flagged].round(0)
    out["Difference"] = diff[flagged].round(0)
    out["Relative difference"] = relative[flagged]

    if not out.empty:
        log.warning(
            "%d constituencies where total votes differs from electorate × "
            "turnout by more than %.1f%%",
            len(out), tolerance * 100,
        )
        for _, row in out.iterrows():
            log.debug(
                "%-40s total=%d expected=%.0f (%+.2f%%)",
                row[config.CONSTITUENCY_COL],
                row[config.TOTAL_VOTES_COL],
                row["Expected votes"],
                row["Relative difference"] * 100,
                extra={"constituency": row[config.CONSTITUENCY_COL]},
            )
    return out.reset_index(drop=True)


def vote_sum_discrepancies(constituencies, parties=None):
    """Rows where the party votes do not add up to Total votes."""
    if parties is None:
        parties = config.PARTIES

    party_sum = constituencies[list(parties)].fillna(0).astype("int64").sum(axis=1)
    total = constituencies[config.TOTAL_VOTES_COL].astype("int64")
    flagged = party_sum != total

    out = constituencies.loc[flagged, [config.CONSTITUENCY_COL, config.TOTAL_VOTES_COL]].copy()
    out["Party vote sum"] = party_sum[flagged]
    out["Difference"] = total[flagged] - party_sum[flagged]

    if not out.empty:
        log.warning("%d constituencies where party votes do not sum to total votes", len(out))
    return out.reset_index(drop=True)


def country_turnout_summary(constituencies):
    """Turnout distribution per country (count, mean, median, min, max)."""
    summary = (
        constituencies.groupby(config.COUNTRY_COL)[config.TURNOUT_COL]
        .agg(["count", "mean", "median", "min", "max"])
        .reset_index()
    )
    summary["count"] = summary["count"].astype("int64")
    return summary


def track_null_votes(constituencies, step_name, parties=None):
    """Log how many constituencies each party did not stand in.

    Returns
    -------
    dict
        Party -> number of null vote cells, for parties with any.
    """
    if parties is None:
        parties = config.PARTIES
    counts = constituencies[list(parties)].isna().sum().to_dict()
    counts = {k: int(v) for k, v in counts.items() if v > 0}
    if counts:
        log.debug("[%s] Parties not standing: %s", step_name, counts,
                  extra={"step_name": step_name})
    return counts


def run_audit(constituencies, diagnostics_dir=None, tolerance=None, parties=None):
    """Run every audit check, optionally writing one CSV per check.

    Returns
    -------
    dict
        "turnout_discrepancies", "vote_sum_discrepancies" and
        "turnout_by_country" DataFrames, plus "null_votes" counts.
    """
    results = {
        "turnout_discrepancies": turnout_discrepancies(constituencies, tolerance),
        "vote_sum_discrepancies": vote_sum_discrepancies(constituencies, parties),
        "turnout_by_country": country_turnout_summary(constituencies),
        "null_votes": track_null_votes(constituencies, "audit", parties),
    }

    if diagnostics_dir:
        os.makedirs(diagnostics_dir, exist_ok=True)
        for key in ("turnout_discrepancies", "vote_sum_discrepancies", "turnout_by_country"):
            path = os.path.join(diagnostics_dir, config.OUTPUT_FILES[key])
            results[key].to_csv(path, index=False)
            log.info("Saved %s: %s", key, path)

    return results


"""
Election pipeline step functions.

Each function wraps one stage with ``run_step()`` so timing, error
handling and the step summary are uniform. Every step returns
``(StepResult, data)``.
"""

import os

import pandas as pd

from election_results import config
from election_results.cleaner import clean_results, read_interchange, write_interchange
from election_results.data_audit import run_audit
from election_results.loader import load_raw_table
from election_results.logging_config import get_pipeline_logger
from election_results.reshape import national_totals, party_results
from election_results.step_runner import run_step
from election_results.summarize import (
    constituency_outcomes,
    seat_totals,
    seat_totals_by_country,
    write_seat_totals,
)

log = get_pipeline_logger(__name__)


def _csv_path(csv_dir, key):
    return os.path.join(csv_dir, config.OUTPUT_FILES[key])


def _save(df, path):
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    df.to_csv(path, index=False)
    log.info("Saved %s (%d rows)", path, len(df))
    return path


def step_load(source_path, skip_rows, sheet) -> tuple:
    """Read one sheet of the source workbook."""
    return run_step(
        "load", load_raw_table, source_path,
        skip_rows=skip_rows, sheet=sheet,
        input_summary={"source": source_path, "sheet": sheet, "skip_rows": skip_rows},
        output_summary_fn=lambda raw: {"records": len(raw), "columns": len(raw.labels)},
    )


def step_clean(raw, report, column_map=None) -> tuple:
    """Project, filter and validate raw records."""
    return run_step(
        "clean", clean_results, raw,
        column_map=column_map, report=report,
        input_summary={"records": len(raw)},
        output_summary_fn=lambda df: {
            "constituencies": len(df),
            "excluded": len(raw) - len(df),
        },
        warnings_fn=lambda df: [str(e) for e in report.for_stage("clean")],
    )


def step_load_interchange(path, report) -> tuple:
    """Reload a previously written interchange file."""
    return run_step(
        "load_interchange", read_interchange, path, report=report,
        input_summary={"source": path},
        output_summary_fn=lambda df: {"constituencies": len(df)},
    )


def step_save_interchange(constituencies, csv_dir) -> tuple:
    path = _csv_path(csv_dir, "constituencies")
    return run_step(
        "save_interchange", write_interchange, constituencies, path,
        input_summary={"constituencies": len(constituencies)},
        output_summary_fn=lambda p: {"csv_path": p},
    )


def step_party_results(constituencies, report, csv_dir) -> tuple:
    """Unpivot to per-party rows with share and rank, and save them."""

    def _work():
        long_df = party_results(constituencies, report=report)
        _save(long_df, _csv_path(csv_dir, "party_results"))
        return long_df

    return run_step(
        "party_results", _work,
        input_summary={"constituencies": len(constituencies)},
        output_summary_fn=lambda df: {
            "rows": len(df),
            "constituencies": df[config.CONSTITUENCY_COL].nunique(),
            "skipped": sorted(report.constituencies("reshape")),
        },
        warnings_fn=lambda df: [str(e) for e in report.for_stage("reshape")],
    )


def step_national_totals(constituencies, csv_dir) -> tuple:

    def _work():
        totals = national_totals(constituencies)
        _save(totals, _csv_path(csv_dir, "national_totals"))
        log.info("NATIONAL VOTE TOTALS")
        for _, row in totals.iterrows():
            log.info("%-14s %10d  %6.2f%%", row["Party"], row["Votes"], row["Share"])
        return totals

    return run_step(
        "national_totals", _work,
        input_summary={"constituencies": len(constituencies)},
        output_summary_fn=lambda df: {"parties": len(df), "votes": int(df["Votes"].sum())},
    )


def step_outcomes(party_df, csv_dir) -> tuple:

    def _work():
        outcomes = constituency_outcomes(party_df)
        _save(outcomes, _csv_path(csv_dir, "outcomes"))
        return outcomes

    return run_step(
        "outcomes", _work,
        input_summary={"party_rows": len(party_df)},
        output_summary_fn=lambda df: {
            "constituencies": len(df),
            "uncontested": int(df["Runner-up"].isna().sum()),
        },
    )


def step_seat_totals(outcomes, constituencies, csv_dir) -> tuple:
    """Seat totals per party, overall and by country."""

    def _work():
        seats = seat_totals(outcomes)
        write_seat_totals(seats, _csv_path(csv_dir, "seat_totals"))
        by_country = seat_totals_by_country(outcomes, constituencies)
        _save(by_country, _csv_path(csv_dir, "seats_by_country"))

        log.info("SEAT TOTALS")
        for _, row in seats.iterrows():
            log.info("%-14s %4d", row["Party"], row["Seats"])
        return seats

    return run_step(
        "seat_totals", _work,
        input_summary={"outcomes": len(outcomes)},
        output_summary_fn=lambda df: {
            "parties": len(df),
            "seats": int(df["Seats"].sum()),
        },
    )


def step_data_audit(constituencies, diagnostics_dir) -> tuple:
    """Surface turnout and vote-sum inconsistencies; data is unchanged."""
    return run_step(
        "data_audit", run_audit, constituencies, diagnostics_dir,
        input_summary={"constituencies": len(constituencies)},
        output_summary_fn=lambda r: {
            "turnout_discrepancies": len(r["turnout_discrepancies"]),
            "vote_sum_discrepancies": len(r["vote_sum_discrepancies"]),
        },
    )


def step_save_data_quality(report, diagnostics_dir) -> tuple:
    path = os.path.join(diagnostics_dir, config.OUTPUT_FILES["data_quality"])
    return run_step(
        "save_data_quality", report.write_csv, path,
        input_summary={"issues": len(report)},
        output_summary_fn=lambda p: {"csv_path": p},
    )


def load_saved_table(csv_dir, key) -> pd.DataFrame:
    """Read an intermediate CSV written by an earlier run."""
    path = _csv_path(csv_dir, key)
    if not os.path.exists(path):
        raise FileNotFoundError(f"{path} not found; run the full pipeline first")
    return pd.read_csv(path)


def step_load_saved(csv_dir, key) -> tuple:
    return run_step(
        f"load_{key}", load_saved_table, csv_dir, key,
        input_summary={"csv_dir": csv_dir},
        output_summary_fn=lambda df: {"rows": len(df)},
    )

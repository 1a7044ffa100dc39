#!/usr/bin/env python3
"""
Pipeline runner with validation gates and single-step execution.

Runs load -> clean -> reshape -> summarise for one or more election
sheets of a results workbook, with:
- Pandera schema validation after each table-producing step
- ``--strict-validation`` to abort on schema violations
- ``--from-clean`` to start from a previously written interchange CSV
- ``--step`` to re-run a single step from saved intermediate CSVs
- an ElectionRunResult saved as JSON per election for provenance

Usage:
    # Latest election from the workbook
    python -m election_results.pipeline_runner --input results.xlsx --sheets 2019

    # Every sheet
    python -m election_results.pipeline_runner --input results.xlsx --sheets all

    # Re-run the summaries from a cleaned file
    python -m election_results.pipeline_runner --from-clean outputs/2019/csv/constituency_results.csv

    # Recompute only the seat totals from saved outcomes
    python -m election_results.pipeline_runner --from-clean outputs/2019/csv/constituency_results.csv --step seat_totals
"""

import argparse
import json
import os
import sys
import time

from election_results import config
from election_results.errors import DataQualityReport
from election_results.loader import list_sheets
from election_results.logging_config import get_pipeline_logger, set_election, set_run_id, setup_logging
from election_results.pipeline_steps import (
    step_clean,
    step_data_audit,
    step_load,
    step_load_interchange,
    step_load_saved,
    step_national_totals,
    step_outcomes,
    step_party_results,
    step_save_data_quality,
    step_save_interchange,
    step_seat_totals,
)
from election_results.pipeline_types import ElectionRunResult
from election_results.schemas import (
    ConstituencyOutcomeSchema,
    ConstituencyResultSchema,
    PartyResultSchema,
    SeatTotalsSchema,
    validate_schema,
)

log = get_pipeline_logger(__name__)

SINGLE_STEPS = ["party_results", "national_totals", "outcomes", "seat_totals", "data_audit"]


class _Aborted(Exception):
    pass


def _gate(df, schema, step_name, strict):
    """Run a validation gate; raise _Aborted when strict and failing."""
    try:
        warnings_list = validate_schema(df, schema, step_name, strict=strict)
    except ValueError as exc:
        log.error("Validation failed after %s: %s", step_name, exc)
        raise _Aborted(step_name) from exc
    for w in warnings_list:
        log.warning(w)
    return warnings_list


def _record(run_result, step_result, critical=True):
    run_result.step_results.append(step_result)
    if not step_result.ok:
        if critical:
            log.error("Pipeline aborted at %s", step_result.step_name)
            raise _Aborted(step_result.step_name)
        log.warning("%s failed; continuing", step_result.step_name)


def run_election_pipeline(
    election,
    output_dir,
    source_path=None,
    sheet=None,
    skip_rows=config.DEFAULT_SKIP_ROWS,
    column_map=None,
    from_clean=None,
    strict=False,
) -> ElectionRunResult:
    """Run every step for one election.

    Parameters
    ----------
    election : str
        Label used for the output subdirectory.
    output_dir : str
        Base output directory.
    source_path : str, optional
        Results workbook. Required unless ``from_clean`` is given.
    sheet : str or int, optional
        Sheet holding this election. Defaults to ``election``.
    skip_rows : int
        Preamble rows before the header row.
    column_map : dict, optional
        Overrides config.DEFAULT_COLUMN_MAP.
    from_clean : str, optional
        Start from this interchange CSV instead of the workbook.
    strict : bool
        Abort on schema violations instead of logging warnings.

    Returns
    -------
    ElectionRunResult
    """
    dirs = config.get_election_dirs(output_dir, election)
    for d in dirs.values():
        os.makedirs(d, exist_ok=True)

    run_result = ElectionRunResult(
        election=str(election),
        source_path=from_clean or source_path or "",
        run_dir=dirs["root"],
    )
    report = DataQualityReport()
    start_time = time.time()

    try:
        if from_clean:
            result, constituencies = step_load_interchange(from_clean, report)
            _record(run_result, result)
        else:
            result, raw = step_load(source_path, skip_rows, election if sheet is None else sheet)
            _record(run_result, result)

            result, constituencies = step_clean(raw, report, column_map=column_map)
            _record(run_result, result)

            result, path = step_save_interchange(constituencies, dirs["csv"])
            _record(run_result, result)
            run_result.output_files.append(path)

        _gate(constituencies, ConstituencyResultSchema, "clean", strict)

        result, _ = step_data_audit(constituencies, dirs["diagnostics"])
        _record(run_result, result, critical=False)

        result, party_df = step_party_results(constituencies, report, dirs["csv"])
        _record(run_result, result)
        _gate(party_df, PartyResultSchema, "party_results", strict)

        result, _ = step_national_totals(constituencies, dirs["csv"])
        _record(run_result, result, critical=False)

        result, outcomes = step_outcomes(party_df, dirs["csv"])
        _record(run_result, result)
        _gate(outcomes, ConstituencyOutcomeSchema, "outcomes", strict)

        result, seats = step_seat_totals(outcomes, constituencies, dirs["csv"])
        _record(run_result, result)
        _gate(seats, SeatTotalsSchema, "seat_totals", strict)

        for key in ("party_results", "national_totals", "outcomes",
                    "seat_totals", "seats_by_country"):
            run_result.output_files.append(os.path.join(dirs["csv"], config.OUTPUT_FILES[key]))
    except _Aborted:
        pass
    finally:
        result, path = step_save_data_quality(report, dirs["diagnostics"])
        run_result.step_results.append(result)
        if result.ok:
            run_result.output_files.append(path)
        run_result.data_quality_issues = len(report)
        run_result.excluded_constituencies = sorted(
            str(name) for name in report.constituencies()
        )
        run_result.total_time_seconds = time.time() - start_time

    return run_result


def run_single_step(step, election, output_dir, from_clean=None, strict=False):
    """Re-run one step from the CSVs saved by an earlier full run.

    Row-level problems found by the step are written to
    data_quality.csv. A step that finds none leaves the file from the
    full run in place.
    """
    if step not in SINGLE_STEPS:
        raise ValueError(f"Unknown step {step!r}; choose from {SINGLE_STEPS}")

    dirs = config.get_election_dirs(output_dir, election)
    csv_dir = dirs["csv"]
    run_result = ElectionRunResult(election=str(election), run_dir=dirs["root"])
    report = DataQualityReport()
    start_time = time.time()

    interchange = from_clean or os.path.join(csv_dir, config.OUTPUT_FILES["constituencies"])

    try:
        if step in ("party_results", "national_totals", "seat_totals", "data_audit"):
            result, constituencies = step_load_interchange(interchange, report)
            _record(run_result, result)

        if step == "party_results":
            result, party_df = step_party_results(constituencies, report, csv_dir)
            _record(run_result, result)
            _gate(party_df, PartyResultSchema, step, strict)
        elif step == "national_totals":
            result, _ = step_national_totals(constituencies, csv_dir)
            _record(run_result, result)
        elif step == "outcomes":
            result, party_df = step_load_saved(csv_dir, "party_results")
            _record(run_result, result)
            result, outcomes = step_outcomes(party_df, csv_dir)
            _record(run_result, result)
            _gate(outcomes, ConstituencyOutcomeSchema, step, strict)
        elif step == "seat_totals":
            result, outcomes = step_load_saved(csv_dir, "outcomes")
            _record(run_result, result)
            result, seats = step_seat_totals(outcomes, constituencies, csv_dir)
            _record(run_result, result)
            _gate(seats, SeatTotalsSchema, step, strict)
        elif step == "data_audit":
            result, _ = step_data_audit(constituencies, dirs["diagnostics"])
            _record(run_result, result)
    except _Aborted:
        pass
    finally:
        if len(report):
            result, path = step_save_data_quality(report, dirs["diagnostics"])
            run_result.step_results.append(result)
            if result.ok:
                run_result.output_files.append(path)
        run_result.data_quality_issues = len(report)
        run_result.excluded_constituencies = sorted(
            str(name) for name in report.constituencies()
        )
        run_result.total_time_seconds = time.time() - start_time

    return run_result


def save_pipeline_result(run_result, run_dir):
    """Save the ElectionRunResult as JSON for provenance."""
    os.makedirs(run_dir, exist_ok=True)
    result_path = os.path.join(run_dir, "pipeline_run.json")
    with open(result_path, "w") as f:
        json.dump(run_result.to_dict(), f, indent=2, default=str)
    log.info("Pipeline result saved: %s", result_path)
    return result_path


def resolve_elections(args):
    """Map CLI arguments to (election label, sheet) pairs."""
    if args.from_clean:
        label = args.election or os.path.basename(
            os.path.dirname(os.path.dirname(os.path.abspath(args.from_clean)))
        )
        return [(label, None)]

    if args.sheets == "all":
        sheets = list_sheets(args.input)
    elif args.sheets:
        sheets = [s.strip() for s in args.sheets.split(",") if s.strip()]
    else:
        sheets = [config.DEFAULT_SHEET]
    return [(sheet, sheet) for sheet in sheets]


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="Clean and summarise constituency election results"
    )
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument(
        "--input",
        default=None,
        help="Results workbook (.xlsx) or CSV extract",
    )
    source.add_argument(
        "--from-clean",
        default=None,
        dest="from_clean",
        help="Start from a previously written constituency_results.csv",
    )
    parser.add_argument(
        "--sheets",
        default=None,
        help="Comma-separated sheet names (one per election) or 'all' "
             f"(default: {config.DEFAULT_SHEET})",
    )
    parser.add_argument(
        "--election",
        default=None,
        help="Election label for --from-clean runs (default: inferred from path)",
    )
    parser.add_argument(
        "--skip-rows",
        type=int,
        default=config.DEFAULT_SKIP_ROWS,
        dest="skip_rows",
        help=f"Preamble rows before the header row (default: {config.DEFAULT_SKIP_ROWS})",
    )
    parser.add_argument(
        "--output-dir",
        default=config.DEFAULT_OUTPUT_DIR,
        dest="output_dir",
        help=f"Base output directory (default: {config.DEFAULT_OUTPUT_DIR})",
    )
    parser.add_argument(
        "--step",
        choices=SINGLE_STEPS,
        default=None,
        help="Re-run a single step from saved CSVs",
    )
    parser.add_argument(
        "--strict-validation",
        action="store_true",
        default=False,
        dest="strict_validation",
        help="Abort on schema validation failures (default: warn only)",
    )
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)

    run_id = set_run_id()
    setup_logging(run_dir=args.output_dir)
    log.info("Election pipeline (run_id=%s)", run_id)

    elections = resolve_elections(args)
    failed = []

    for election, sheet in elections:
        set_election(election)
        log.info("=" * 60)
        log.info("Election %s", election)
        log.info("=" * 60)

        if args.step:
            result = run_single_step(
                args.step, election, args.output_dir,
                from_clean=args.from_clean, strict=args.strict_validation,
            )
        else:
            result = run_election_pipeline(
                election,
                args.output_dir,
                source_path=args.input,
                sheet=sheet,
                skip_rows=args.skip_rows,
                from_clean=args.from_clean,
                strict=args.strict_validation,
            )

        save_pipeline_result(result, result.run_dir)
        log.info("Election %s complete in %.1fs", election, result.total_time_seconds)
        if result.data_quality_issues:
            log.warning("%d data-quality issues recorded", result.data_quality_issues)
        if result.failed_steps:
            log.warning("Failed steps: %s", [s.step_name for s in result.failed_steps])
            failed.append(election)
        else:
            log.info("All steps succeeded.")

    set_election(None)
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())

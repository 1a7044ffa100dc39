"""
Cleaner: project a RawTable into the canonical wide constituency table.

Rules applied, in order:

- rows with no country are summary/footer rows and are dropped;
- rows with a missing required field, a non-numeric or negative count,
  or a turnout outside [0, 1] are excluded and reported;
- a null party vote means the party did not stand and stays null;
- a constituency appearing twice is fatal (AggregationError).

All functions are pure apart from write_interchange().
"""

import os

import numpy as np
import pandas as pd

from election_results import config
from election_results.errors import AggregationError, DataQualityError, DataQualityReport, FormatError
from election_results.loader import RawTable, load_raw_table, resolve_column_positions
from election_results.logging_config import get_pipeline_logger

log = get_pipeline_logger(__name__)

STAGE = "clean"

TEXT_FIELDS = [config.CONSTITUENCY_COL, config.COUNTRY_COL]


def project_columns(raw: RawTable, column_map=None) -> pd.DataFrame:
    """Select and rename source columns by resolved position.

    Parties absent from ``column_map`` (e.g. a party that did not exist
    at an earlier election) are added as all-null columns. Base fields
    are mandatory.
    """
    if column_map is None:
        column_map = config.DEFAULT_COLUMN_MAP

    missing_base = [c for c in config.BASE_COLUMNS if c not in column_map]
    if missing_base:
        raise FormatError(f"Column map has no entry for {missing_base}")

    positions = resolve_column_positions(raw.labels, column_map)
    projected = pd.DataFrame(
        {name: raw.frame[pos] for name, pos in positions.items()},
        index=raw.frame.index,
    )
    for party in config.PARTIES:
        if party not in projected.columns:
            projected[party] = np.nan
    return projected[config.INTERCHANGE_COLUMNS]


def _normalise_text(series: pd.Series) -> pd.Series:
    def _one(v):
        if v is None or (not isinstance(v, str) and pd.isna(v)):
            return None
        text = str(v).strip()
        return text or None
    return series.map(_one).astype(object)


def _strip_number_text(series: pd.Series) -> pd.Series:
    return series.map(lambda v: v.replace(",", "").strip() if isinstance(v, str) else v)


def _record(report, df, mask, field, message, raw_values=None):
    """Add one DataQualityError per flagged row."""
    if raw_values is None:
        raw_values = df[field] if field in df.columns else pd.Series(None, index=df.index)
    for idx in df.index[mask]:
        value = raw_values.loc[idx]
        report.add(STAGE, DataQualityError(
            message,
            constituency=df.at[idx, config.CONSTITUENCY_COL],
            field=field,
            value=None if pd.isna(value) else value,
            source_row=int(idx) if isinstance(idx, (int, np.integer)) else idx,
        ))


def check_unique_constituencies(df: pd.DataFrame) -> None:
    """Raise AggregationError naming the first duplicated constituency."""
    names = df[config.CONSTITUENCY_COL]
    dupes = names[names.duplicated(keep=False)]
    if not dupes.empty:
        first = dupes.iloc[0]
        rows = [int(i) if isinstance(i, (int, np.integer)) else i
                for i in dupes.index[dupes == first]]
        raise AggregationError(first, source_rows=rows)


def clean_results(raw: RawTable, column_map=None, report=None) -> pd.DataFrame:
    """Turn raw records into the canonical ConstituencyResult table.

    Parameters
    ----------
    raw : RawTable
        Output of load_raw_table().
    column_map : dict, optional
        Output field -> position or (label, occurrence). Defaults to
        config.DEFAULT_COLUMN_MAP.
    report : DataQualityReport, optional
        Receives one DataQualityError per excluded row problem.

    Returns
    -------
    pd.DataFrame
        Columns config.INTERCHANGE_COLUMNS, index ``source_row``, in
        input order.

    Raises
    ------
    FormatError
        Column map cannot be resolved against the header.
    AggregationError
        Two rows share a constituency name.
    DataQualityError
        No row survives cleaning.
    """
    if report is None:
        report = DataQualityReport()

    df = project_columns(raw, column_map)
    for col in TEXT_FIELDS:
        df[col] = _normalise_text(df[col])

    # Footer and summary rows carry no country.
    no_country = df[config.COUNTRY_COL].isna()
    _record(report, df, no_country, config.COUNTRY_COL,
            "Missing country; row is not a constituency result")
    if no_country.any():
        log.info("Dropped %d rows without a country", int(no_country.sum()))
    df = df.loc[~no_country].copy()

    bad = pd.Series(False, index=df.index)

    missing_name = df[config.CONSTITUENCY_COL].isna()
    _record(report, df, missing_name, config.CONSTITUENCY_COL,
            "Missing constituency name")
    bad |= missing_name

    numeric = {}
    for col in config.COUNT_FIELDS + [config.TURNOUT_COL]:
        raw_col = _strip_number_text(df[col])
        values = pd.to_numeric(raw_col, errors="coerce")
        present = df[col].notna() & (raw_col.astype(str).str.len() > 0)

        non_numeric = present & values.isna()
        _record(report, df, non_numeric, col, "Non-numeric value")
        bad |= non_numeric

        if col in config.REQUIRED_FIELDS:
            missing = ~present
            _record(report, df, missing, col, "Missing required field")
            bad |= missing

        if col == config.TURNOUT_COL:
            out_of_range = values.notna() & ((values < 0) | (values > 1))
            _record(report, df, out_of_range, col, "Turnout outside [0, 1]")
            bad |= out_of_range
        else:
            negative = values < 0
            _record(report, df, negative, col, "Negative count")
            bad |= negative
            fractional = values.notna() & (values >= 0) & (values != values.round())
            _record(report, df, fractional, col, "Count is not a whole number")
            bad |= fractional

        numeric[col] = values

    if bad.any():
        log.warning(
            "Excluded %d constituency rows failing validation: %s",
            int(bad.sum()),
            df.loc[bad, config.CONSTITUENCY_COL].tolist(),
        )

    keep = ~bad
    cleaned = pd.DataFrame(index=df.index[keep])
    cleaned.index.name = "source_row"
    for col in config.INTERCHANGE_COLUMNS:
        if col in TEXT_FIELDS:
            cleaned[col] = df.loc[keep, col].astype(object)
        elif col == config.TURNOUT_COL:
            cleaned[col] = numeric[col][keep].astype("float64")
        else:
            cleaned[col] = numeric[col][keep].astype("Float64").astype("Int64")

    if cleaned.empty:
        raise DataQualityError(
            f"No valid constituency rows in {raw.source or 'input'} "
            f"({len(raw)} raw records, {len(report.for_stage(STAGE))} problems)"
        )

    check_unique_constituencies(cleaned)

    log.info(
        "Cleaned %d constituencies (%d raw records, %d excluded)",
        len(cleaned), len(raw), len(raw) - len(cleaned),
    )
    return cleaned


def write_interchange(df: pd.DataFrame, path: str) -> str:
    """Write the cleaned wide table as CSV; absent party votes stay empty."""
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    df[config.INTERCHANGE_COLUMNS].to_csv(path, index=False)
    log.info("Saved interchange file: %s (%d rows)", path, len(df))
    return path


def read_interchange(path: str, report=None) -> pd.DataFrame:
    """Reload an interchange file through the cleaner.

    The file's own header is used as the column map, so a file written
    by write_interchange() comes back with the identical columns and
    values. The header is fixed, so the spreadsheet row numbers are not
    written: ``source_row`` in the reloaded table, and in any
    data-quality report raised from it, is the row of the interchange
    file itself (first record = 2).
    """
    raw = load_raw_table(path, skip_rows=0)
    return clean_results(raw, config.INTERCHANGE_COLUMN_MAP, report=report)

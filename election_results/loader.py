"""
Loader: read one sheet of the results workbook into a RawTable.

The workbook repeats the literal label "Votes" for every party, so the
header row is read as data (``header=None``) and columns are kept by
position. Output fields are bound to positions once, through
resolve_column_positions(), before any cleaning happens.
"""

import os
import zipfile
from dataclasses import dataclass, field

import pandas as pd
from openpyxl.utils.exceptions import InvalidFileException

from election_results.errors import FormatError
from election_results.logging_config import get_pipeline_logger

log = get_pipeline_logger(__name__)

EXCEL_SUFFIXES = (".xlsx", ".xlsm", ".xls")


@dataclass
class RawTable:
    """Unvalidated records with positional columns.

    ``frame`` has integer column labels 0..n-1 and is indexed by the
    1-based row number of each record in the source sheet, so any later
    diagnostic can point back at the spreadsheet row.
    """

    labels: list
    frame: pd.DataFrame
    source: str = ""
    sheet: object = None
    skip_rows: int = 0
    metadata: dict = field(default_factory=dict)

    def __len__(self):
        return len(self.frame)


def _is_excel(path):
    return str(path).lower().endswith(EXCEL_SUFFIXES)


def list_sheets(path):
    """Return the sheet names of a workbook (one per election)."""
    if not _is_excel(path):
        return [os.path.splitext(os.path.basename(path))[0]]
    try:
        with pd.ExcelFile(path, engine="openpyxl") as xls:
            return list(xls.sheet_names)
    except FileNotFoundError as exc:
        raise FormatError(f"Source file not found: {path}") from exc
    except (ValueError, OSError, zipfile.BadZipFile, InvalidFileException) as exc:
        raise FormatError(f"Cannot open workbook {path}: {exc}") from exc


def _resolve_sheet(path, sheet):
    sheets = list_sheets(path)
    if sheet is None:
        return sheets[0]
    if isinstance(sheet, int):
        if not 0 <= sheet < len(sheets):
            raise FormatError(
                f"Sheet index {sheet} out of range; {path} has {len(sheets)} sheets"
            )
        return sheets[sheet]
    if str(sheet) not in sheets:
        raise FormatError(
            f"Sheet {sheet!r} not found in {path}; available: {sheets}"
        )
    return str(sheet)


def _read_grid(path, sheet, skip_rows):
    if _is_excel(path):
        return pd.read_excel(
            path,
            sheet_name=sheet,
            header=None,
            skiprows=skip_rows,
            engine="openpyxl",
        )
    return pd.read_csv(
        path,
        header=None,
        skiprows=skip_rows,
        dtype=str,
        skip_blank_lines=False,
    )


def load_raw_table(path, skip_rows=0, sheet=None) -> RawTable:
    """Read a spreadsheet extract into a RawTable.

    Parameters
    ----------
    path : str
        Workbook (.xlsx) or flat CSV extract.
    skip_rows : int
        Number of preamble rows before the header row.
    sheet : str or int, optional
        Sheet name or 0-based index. Defaults to the first sheet. Ignored
        for CSV input.

    Returns
    -------
    RawTable

    Raises
    ------
    FormatError
        File missing or unreadable, sheet missing, or no header row left
        after skipping ``skip_rows`` rows.
    """
    if skip_rows < 0:
        raise FormatError(f"skip_rows must be >= 0, got {skip_rows}")
    if not os.path.exists(path):
        raise FormatError(f"Source file not found: {path}")

    sheet_name = _resolve_sheet(path, sheet) if _is_excel(path) else None

    try:
        grid = _read_grid(path, sheet_name, skip_rows)
    except pd.errors.EmptyDataError as exc:
        raise FormatError(
            f"No rows left in {path} after skipping {skip_rows} rows"
        ) from exc
    except (ValueError, pd.errors.ParserError) as exc:
        raise FormatError(f"Cannot parse {path}: {exc}") from exc

    if grid.empty:
        raise FormatError(
            f"No header row in {path} (sheet={sheet_name!r}) after "
            f"skipping {skip_rows} rows"
        )

    labels = [
        None if pd.isna(v) else str(v).strip()
        for v in grid.iloc[0].tolist()
    ]
    frame = grid.iloc[1:].copy()
    frame.columns = range(len(labels))
    # header row sits at skip_rows + 1 (1-based); records follow it
    frame.index = pd.RangeIndex(skip_rows + 2, skip_rows + 2 + len(frame),
                                name="source_row")
    frame = frame.dropna(how="all")

    log.info(
        "Loaded %d raw records from %s (sheet=%s, skip_rows=%d, %d columns)",
        len(frame), path, sheet_name, skip_rows, len(labels),
    )
    return RawTable(
        labels=labels,
        frame=frame,
        source=str(path),
        sheet=sheet_name,
        skip_rows=skip_rows,
    )


def resolve_column_positions(labels, column_map) -> dict:
    """Bind each output field to a fixed source column position.

    Parameters
    ----------
    labels : list[str | None]
        Source header labels, by position.
    column_map : dict
        Output field -> ``int`` position or ``(label, occurrence)`` pair,
        where occurrence is the 0-based count of earlier columns with the
        same label.

    Returns
    -------
    dict
        Output field -> column position, in ``column_map`` order.

    Raises
    ------
    FormatError
        A position is out of range or a (label, occurrence) pair does not
        exist in the header.
    """
    occurrences = {}
    for pos, label in enumerate(labels):
        if label is None:
            continue
        occurrences.setdefault(label, []).append(pos)

    positions = {}
    for out_field, ref in column_map.items():
        if isinstance(ref, int):
            if not 0 <= ref < len(labels):
                raise FormatError(
                    f"Column position {ref} for {out_field!r} out of range "
                    f"(header has {len(labels)} columns)"
                )
            positions[out_field] = ref
            continue

        label, occurrence = ref
        found = occurrences.get(label, [])
        if occurrence >= len(found):
            raise FormatError(
                f"Column {label!r} occurrence {occurrence} for {out_field!r} "
                f"not found (header has {len(found)} {label!r} columns)"
            )
        positions[out_field] = found[occurrence]

    return positions

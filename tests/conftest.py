"""
Shared fixtures for election pipeline tests.

Provides synthetic workbooks laid out like the House of Commons Library
results file (title rows, one sheet per election, a "Votes"/"Share" pair
per party) and ready-cleaned constituency tables, so each test module can
focus on one stage against known inputs.
"""

import os
import tempfile

import numpy as np
import pandas as pd
import pytest

from election_results import config
from election_results.loader import RawTable
from election_results.logging_config import reset_logging


# ---------------------------------------------------------------------------
# Synthetic source layout
# ---------------------------------------------------------------------------
# id, Constituency, County, Country, Electorate, Turnout,
# then (Votes, Share) per party in config.PARTIES order, then Total votes.
SOURCE_HEADER = (
    ["id", "Constituency", "County", "Country", "Electorate", "Turnout"]
    + [label for _ in config.PARTIES for label in ("Votes", "Share")]
    + ["Total votes"]
)
SKIP_ROWS = 2


def source_record(row_id, name, country, electorate, turnout, votes, total=None, county="Shire"):
    """One source row; ``votes`` maps party -> count (missing = did not stand)."""
    numeric = [v for v in votes.values() if isinstance(v, (int, float))]
    if total is None:
        total = sum(numeric)
    cells = [row_id, name, county, country, electorate, turnout]
    for party in config.PARTIES:
        v = votes.get(party)
        share = round(v / total, 4) if isinstance(v, (int, float)) and total else None
        cells.extend([v, share])
    cells.append(total)
    return cells


SAMPLE_2019 = [
    source_record(1, "Aldershot", "England", 72617, 0.657,
                  {"Conservative": 27980, "Labour": 11282, "Lib. Dem.": 6920, "Green": 1750},
                  total=47932),
    source_record(2, "Arfon", "Wales", 42215, 0.684,
                  {"Conservative": 4428, "Labour": 8134, "Plaid Cymru": 13134, "Brexit": 2186},
                  total=27882),
    source_record(3, "Belfast East", "Northern Ireland", 64791, 0.632,
                  {"DUP": 20874, "Alliance": 19055, "UUP": 2516, "Other": 1107},
                  total=43552),
    source_record(4, "Dundee West", "Scotland", 64323, 0.634,
                  {"SNP": 22355, "Labour": 9365, "Conservative": 5149, "Lib. Dem.": 3973},
                  total=40842),
    source_record(5, "Bath", "England", 67725, 0.773,
                  {"Lib. Dem.": 28419, "Conservative": 16097, "Labour": 6639, "Brexit": 642},
                  total=51797),
]

FOOTER_2019 = [None, "Total", None, None, 3226394, None] + [None] * (2 * len(config.PARTIES)) + [211985]

SAMPLE_2017 = [
    source_record(1, "Aldershot", "England", 72430, 0.655,
                  {"Conservative": 26950, "Labour": 15477, "Lib. Dem.": 3637},
                  total=46064),
    source_record(2, "Arfon", "Wales", 40492, 0.685,
                  {"Conservative": 5888, "Labour": 10490, "Plaid Cymru": 11582},
                  total=27960),
]


def _sheet_grid(title, records, footer=None):
    width = len(SOURCE_HEADER)
    grid = [
        [title] + [None] * (width - 1),
        ["Source: synthetic test data"] + [None] * (width - 1),
        list(SOURCE_HEADER),
    ]
    grid.extend(records)
    if footer is not None:
        grid.append(footer)
    return pd.DataFrame(grid)


@pytest.fixture
def tmp_dir():
    """Temporary directory, removed after the test."""
    with tempfile.TemporaryDirectory(prefix="election_test_") as d:
        yield d


@pytest.fixture
def results_workbook(tmp_dir):
    """Two-sheet workbook ("2019", "2017") with title rows and a footer."""
    path = os.path.join(tmp_dir, "results.xlsx")
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        _sheet_grid("2019 general election", SAMPLE_2019, FOOTER_2019).to_excel(
            writer, sheet_name="2019", header=False, index=False,
        )
        _sheet_grid("2017 general election", SAMPLE_2017).to_excel(
            writer, sheet_name="2017", header=False, index=False,
        )
    return path


@pytest.fixture
def results_csv(tmp_dir):
    """The 2019 sheet exported as a flat CSV."""
    path = os.path.join(tmp_dir, "results_2019.csv")
    _sheet_grid("2019 general election", SAMPLE_2019, FOOTER_2019).to_csv(
        path, header=False, index=False,
    )
    return path


@pytest.fixture
def make_raw():
    """Factory: RawTable from source records using SOURCE_HEADER."""

    def _make(records, labels=None):
        labels = list(labels or SOURCE_HEADER)
        frame = pd.DataFrame(records, columns=range(len(labels)), dtype=object)
        frame.index = pd.RangeIndex(SKIP_ROWS + 2, SKIP_ROWS + 2 + len(frame), name="source_row")
        return RawTable(labels=labels, frame=frame, source="memory", skip_rows=SKIP_ROWS)

    return _make


@pytest.fixture
def make_constituencies():
    """Factory: cleaned wide table from compact dicts.

    Each record: {"name", "votes": {party: count}, optional "country",
    "electorate", "turnout", "total"}.
    """

    def _make(records):
        rows = []
        for r in records:
            votes = r["votes"]
            total = r.get("total", sum(v for v in votes.values() if v is not None))
            turnout = r.get("turnout", 0.6)
            row = {
                config.CONSTITUENCY_COL: r["name"],
                config.COUNTRY_COL: r.get("country", "England"),
                config.ELECTORATE_COL: r.get("electorate", int(round(total / turnout)) if total else 1000),
                config.TURNOUT_COL: turnout,
                config.TOTAL_VOTES_COL: total,
            }
            for party in config.PARTIES:
                row[party] = votes.get(party, np.nan)
            rows.append(row)

        df = pd.DataFrame(rows, columns=config.INTERCHANGE_COLUMNS)
        df.index = pd.RangeIndex(4, 4 + len(df), name="source_row")
        for col in config.COUNT_FIELDS:
            df[col] = df[col].astype("Float64").astype("Int64")
        df[config.TURNOUT_COL] = df[config.TURNOUT_COL].astype("float64")
        for col in (config.CONSTITUENCY_COL, config.COUNTRY_COL):
            df[col] = df[col].astype(object)
        return df

    return _make


@pytest.fixture
def isolated_logging(tmp_dir, monkeypatch):
    """Route the rotating log into tmp_dir and reset handlers afterwards."""
    monkeypatch.setenv("ELECTION_LOG_DIR", os.path.join(tmp_dir, "logs"))
    reset_logging()
    yield
    reset_logging()

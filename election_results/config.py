"""
Centralized configuration for the UK general-election results pipeline.

Party definitions, source column layout, data-quality tolerances and
output paths are defined here so every stage reads them from one place.
"""

import os

# ─── PARTIES ─────────────────────────────────────────────────────────────
# Fixed party set carried by the cleaned wide table, in source order.
# The source workbook lists one "Votes" column per party in exactly this
# order, so the position in this list is also the occurrence index of the
# party's "Votes" label.
PARTIES = [
    "Conservative",
    "Labour",
    "Lib. Dem.",
    "Brexit",
    "Green",
    "SNP",
    "Plaid Cymru",
    "DUP",
    "Sinn Fein",
    "SDLP",
    "UUP",
    "Alliance",
    "Other",
]

# ─── CANONICAL WIDE-TABLE COLUMNS ────────────────────────────────────────
CONSTITUENCY_COL = "Constituency"
COUNTRY_COL = "Country"
ELECTORATE_COL = "Electorate"
TURNOUT_COL = "Turnout"
TOTAL_VOTES_COL = "Total votes"

BASE_COLUMNS = [
    CONSTITUENCY_COL,
    COUNTRY_COL,
    ELECTORATE_COL,
    TURNOUT_COL,
    TOTAL_VOTES_COL,
]

# Header of the interchange file, in order.
INTERCHANGE_COLUMNS = BASE_COLUMNS + PARTIES

# Fields that must be present on every constituency row.
REQUIRED_FIELDS = BASE_COLUMNS

# Non-negative integer counts (electorate, total votes, party votes).
COUNT_FIELDS = [ELECTORATE_COL, TOTAL_VOTES_COL] + PARTIES

# ─── SOURCE WORKBOOK LAYOUT ──────────────────────────────────────────────
# House of Commons Library results workbook: a few title rows precede the
# header row, each election lives on its own sheet, and every party's
# vote column carries the same literal label "Votes".
DEFAULT_SKIP_ROWS = 2
DEFAULT_SHEET = "2019"

# Output field -> (source label, occurrence index). An int position may be
# used instead of a pair when the label is unusable.
DEFAULT_COLUMN_MAP = {
    CONSTITUENCY_COL: ("Constituency", 0),
    COUNTRY_COL: ("Country", 0),
    ELECTORATE_COL: ("Electorate", 0),
    TURNOUT_COL: ("Turnout", 0),
    TOTAL_VOTES_COL: ("Total votes", 0),
}
DEFAULT_COLUMN_MAP.update(
    {party: ("Votes", i) for i, party in enumerate(PARTIES)}
)

# Identity mapping used when re-reading a written interchange file.
INTERCHANGE_COLUMN_MAP = {col: (col, 0) for col in INTERCHANGE_COLUMNS}

# ─── DATA-QUALITY THRESHOLDS ─────────────────────────────────────────────
# Relative tolerance for Total votes vs Electorate × Turnout. Turnout is
# published rounded, so small discrepancies are expected.
TURNOUT_TOLERANCE = 0.01

# Decimal places used when reporting shares and majorities.
SHARE_DECIMALS = 2

# ─── OUTPUT PATHS ────────────────────────────────────────────────────────
DEFAULT_OUTPUT_DIR = "./outputs"

OUTPUT_DIRS = {
    "csv": "csv",
    "diagnostics": "diagnostics",
}

OUTPUT_FILES = {
    "constituencies": "constituency_results.csv",
    "party_results": "party_results.csv",
    "national_totals": "national_totals.csv",
    "outcomes": "constituency_outcomes.csv",
    "seat_totals": "seat_totals.csv",
    "seats_by_country": "seats_by_country.csv",
    "turnout_by_country": "turnout_by_country.csv",
    "turnout_discrepancies": "turnout_discrepancies.csv",
    "vote_sum_discrepancies": "vote_sum_discrepancies.csv",
    "data_quality": "data_quality.csv",
}


def get_election_dirs(output_dir, election):
    """Return the output subdirectories for a single election.

    Parameters
    ----------
    output_dir : str
        Base output directory.
    election : str
        Election label (normally the sheet name, e.g. "2019").

    Returns
    -------
    dict
        Keys "root", "csv", "diagnostics" mapped to paths. Directories
        are not created here.
    """
    root = os.path.join(output_dir, str(election))
    dirs = {"root": root}
    for key, sub in OUTPUT_DIRS.items():
        dirs[key] = os.path.join(root, sub)
    return dirs

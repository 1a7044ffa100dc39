"""
Error taxonomy for the election results pipeline.

FormatError and AggregationError are fatal and propagate to the step
runner. DataQualityError describes a single bad row; stages collect
these in a DataQualityReport and exclude the row instead of raising.
"""

import os

import pandas as pd


class PipelineError(Exception):
    """Base error for the election results pipeline."""


class FormatError(PipelineError):
    """Source file is structurally unreadable (missing sheet, bad offset)."""


class DataQualityError(PipelineError):
    """A row fails a data-quality rule.

    Carries enough context (constituency, field, raw value, source row)
    for a human to find and fix the offending cell in the source file.
    """

    def __init__(self, message, constituency=None, field=None, value=None,
                 source_row=None):
        self.message = message
        self.constituency = constituency
        self.field = field
        self.value = value
        self.source_row = source_row
        super().__init__(self._describe())

    def _describe(self):
        where = []
        if self.constituency is not None:
            where.append(f"constituency={self.constituency!r}")
        if self.field is not None:
            where.append(f"field={self.field!r}")
        if self.value is not None:
            where.append(f"value={self.value!r}")
        if self.source_row is not None:
            where.append(f"source_row={self.source_row}")
        if where:
            return f"{self.message} ({', '.join(where)})"
        return self.message

    def to_dict(self):
        return {
            "constituency": self.constituency,
            "field": self.field,
            "value": None if self.value is None else str(self.value),
            "source_row": self.source_row,
            "message": self.message,
        }


class AggregationError(PipelineError):
    """Duplicate constituency key; results would be double counted."""

    def __init__(self, constituency, source_rows=None):
        self.constituency = constituency
        self.source_rows = list(source_rows or [])
        msg = f"Duplicate constituency key: {constituency!r}"
        if self.source_rows:
            msg += f" (source rows {self.source_rows})"
        super().__init__(msg)


class DataQualityReport:
    """Accumulates row-level DataQualityErrors across pipeline stages."""

    COLUMNS = ["stage", "constituency", "field", "value", "source_row", "message"]

    def __init__(self):
        self.entries = []

    def add(self, stage, error):
        self.entries.append((stage, error))

    def __len__(self):
        return len(self.entries)

    def __iter__(self):
        return (error for _, error in self.entries)

    def for_stage(self, stage):
        return [error for s, error in self.entries if s == stage]

    def constituencies(self, stage=None):
        """Constituency names with at least one recorded problem."""
        return {
            error.constituency
            for s, error in self.entries
            if error.constituency is not None and (stage is None or s == stage)
        }

    def to_frame(self):
        rows = [dict(stage=stage, **error.to_dict()) for stage, error in self.entries]
        return pd.DataFrame(rows, columns=self.COLUMNS)

    def write_csv(self, path):
        os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
        self.to_frame().to_csv(path, index=False)
        return path

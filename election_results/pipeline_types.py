"""
Typed result dataclasses for pipeline step tracking.

Each step returns a StepResult; one election run collects them in an
ElectionRunResult that is saved as JSON next to the outputs.
"""

import subprocess
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional


class StepStatus(str, Enum):
    SUCCESS = "success"
    SKIPPED = "skipped"
    ERROR = "error"


def _now_iso():
    return datetime.now(timezone.utc).isoformat()


def _get_git_sha():
    """Return the short git SHA of HEAD, or None outside a checkout."""
    try:
        return subprocess.check_output(
            ["git", "rev-parse", "--short", "HEAD"],
            stderr=subprocess.DEVNULL,
            text=True,
        ).strip()
    except (subprocess.SubprocessError, FileNotFoundError):
        return None


@dataclass
class StepResult:
    """Result of a single pipeline step execution."""

    step_name: str
    status: str
    input_summary: dict = field(default_factory=dict)
    output_summary: dict = field(default_factory=dict)
    timing_seconds: float = 0.0
    warnings: list = field(default_factory=list)
    error: Optional[str] = None
    started_at: str = field(default_factory=_now_iso)
    completed_at: Optional[str] = None

    @property
    def ok(self):
        return self.status == StepStatus.SUCCESS.value

    def to_dict(self):
        return {
            "step_name": self.step_name,
            "status": self.status,
            "input_summary": self.input_summary,
            "output_summary": self.output_summary,
            "timing_seconds": self.timing_seconds,
            "warnings": self.warnings,
            "error": self.error,
            "started_at": self.started_at,
            "completed_at": self.completed_at,
        }

    @classmethod
    def from_dict(cls, d):
        return cls(
            step_name=d["step_name"],
            status=d["status"],
            input_summary=d.get("input_summary", {}),
            output_summary=d.get("output_summary", {}),
            timing_seconds=d.get("timing_seconds", 0.0),
            warnings=d.get("warnings", []),
            error=d.get("error"),
            started_at=d.get("started_at", ""),
            completed_at=d.get("completed_at"),
        )


@dataclass
class ElectionRunResult:
    """Result of running the pipeline over one election sheet."""

    election: str
    source_path: str = ""
    run_dir: str = ""
    step_results: list = field(default_factory=list)
    output_files: list = field(default_factory=list)
    data_quality_issues: int = 0
    excluded_constituencies: list = field(default_factory=list)
    total_time_seconds: float = 0.0
    git_sha: Optional[str] = field(default_factory=_get_git_sha)
    started_at: str = field(default_factory=_now_iso)

    @property
    def all_ok(self):
        return all(s.ok for s in self.step_results)

    @property
    def failed_steps(self):
        return [s for s in self.step_results if not s.ok]

    def to_dict(self):
        return {
            "election": self.election,
            "source_path": self.source_path,
            "run_dir": self.run_dir,
            "steps": [s.to_dict() for s in self.step_results],
            "output_files": self.output_files,
            "data_quality_issues": self.data_quality_issues,
            "excluded_constituencies": self.excluded_constituencies,
            "total_time_seconds": self.total_time_seconds,
            "all_ok": self.all_ok,
            "git_sha": self.git_sha,
            "started_at": self.started_at,
        }

    @classmethod
    def from_dict(cls, d):
        result = cls(
            election=d.get("election", ""),
            source_path=d.get("source_path", ""),
            run_dir=d.get("run_dir", ""),
            output_files=d.get("output_files", []),
            data_quality_issues=d.get("data_quality_issues", 0),
            excluded_constituencies=d.get("excluded_constituencies", []),
            total_time_seconds=d.get("total_time_seconds", 0.0),
            git_sha=d.get("git_sha"),
            started_at=d.get("started_at", ""),
        )
        result.step_results = [StepResult.from_dict(s) for s in d.get("steps", [])]
        return result

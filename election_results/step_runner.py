"""
Generic step executor.

Steps supply the work function and metadata; ``run_step()`` times the
call, turns exceptions into an error StepResult and logs the summary.
"""

import traceback
from typing import Callable, TypeVar

import pandas as pd

from election_results.errors import PipelineError
from election_results.logging_config import StepTimer, get_pipeline_logger, log_step_summary
from election_results.pipeline_types import StepResult, StepStatus, _now_iso

T = TypeVar("T")

log = get_pipeline_logger(__name__)

_DEFAULT_EXPECTED = (
    PipelineError,
    FileNotFoundError,
    ValueError,
    KeyError,
    pd.errors.EmptyDataError,
    pd.errors.ParserError,
)


def run_step(
    step_name: str,
    fn: Callable[..., T],
    *args,
    input_summary: dict | None = None,
    output_summary_fn: Callable[[T], dict] | None = None,
    warnings_fn: Callable[[T], list] | None = None,
    expected_exceptions: tuple[type[Exception], ...] = _DEFAULT_EXPECTED,
    **kwargs,
) -> tuple[StepResult, T | None]:
    """Execute a pipeline step with standardised error handling and timing.

    Parameters
    ----------
    step_name : str
        Name stored in the StepResult.
    fn : Callable
        The work function, called as ``fn(*args, **kwargs)``.
    input_summary : dict, optional
        Metadata about the inputs.
    output_summary_fn : callable, optional
        Builds an output-summary dict from *fn*'s return value. Not called
        when *fn* raises or returns None.
    warnings_fn : callable, optional
        Builds a list of warning strings from *fn*'s return value.
    expected_exceptions : tuple
        Exception types logged as known failures (message only); anything
        else is logged with a traceback as unexpected.

    Returns
    -------
    tuple[StepResult, T | None]
    """
    result_data = None
    error_tb = None
    started = _now_iso()

    with StepTimer() as timer:
        try:
            result_data = fn(*args, **kwargs)
        except expected_exceptions as exc:
            error_tb = traceback.format_exc()
            log.error("%s failed: %s", step_name, exc)
        except Exception:
            error_tb = traceback.format_exc()
            log.error("%s failed unexpectedly", step_name, exc_info=True)

    if error_tb:
        log_step_summary(log, step_name, StepStatus.ERROR.value,
                         timing_seconds=timer.elapsed)
        return StepResult(
            step_name=step_name,
            status=StepStatus.ERROR.value,
            input_summary=input_summary or {},
            error=error_tb,
            timing_seconds=timer.elapsed,
            started_at=started,
            completed_at=_now_iso(),
        ), None

    out_summary = {}
    warnings_list = []
    if result_data is not None:
        if output_summary_fn is not None:
            out_summary = output_summary_fn(result_data)
        if warnings_fn is not None:
            warnings_list = list(warnings_fn(result_data))

    log_step_summary(
        log, step_name, StepStatus.SUCCESS.value,
        input_summary=input_summary or {},
        output_summary=out_summary,
        timing_seconds=timer.elapsed,
        warnings_list=warnings_list,
    )
    return StepResult(
        step_name=step_name,
        status=StepStatus.SUCCESS.value,
        input_summary=input_summary or {},
        output_summary=out_summary,
        timing_seconds=timer.elapsed,
        warnings=warnings_list,
        started_at=started,
        completed_at=_now_iso(),
    ), result_data

"""Orchestrable steps.

Workflow logic is written against :class:`Steps`, not against Temporal
directly: a step is an activity or a child workflow addressed by its
registration name, started immediately and awaited later.  This keeps the
orchestration functions free of engine details and lets tests drive them
with an in-memory implementation.

Starting a step and awaiting it are separate, so fan-out is "start every
step, then :func:`gather_errors` them".
"""

from __future__ import annotations

import asyncio
from datetime import timedelta
from typing import Any, Awaitable, Callable, Dict, Optional, Protocol, Type

from temporalio import workflow
from temporalio.common import RetryPolicy
from temporalio.exceptions import ApplicationError

from pke_vsphere.errors import PKEError, combine, error_message
from pke_vsphere.store.models import ERROR
from pke_vsphere.workflow.models import SetClusterStatusInput
from pke_vsphere.workflow.names import SET_CLUSTER_STATUS

# ---------------------------------------------------------------------------
# Activity options
# ---------------------------------------------------------------------------

SCHEDULE_TO_START_TIMEOUT = timedelta(minutes=5)
START_TO_CLOSE_TIMEOUT = timedelta(minutes=10)
SCHEDULE_TO_CLOSE_TIMEOUT = timedelta(minutes=15)

NON_RETRYABLE_ERROR_TYPES = ["FatalActivityError", "ValidationError"]

ACTIVITY_RETRY_POLICY = RetryPolicy(
    initial_interval=timedelta(seconds=2),
    backoff_coefficient=1.5,
    maximum_interval=timedelta(seconds=30),
    maximum_attempts=5,
    non_retryable_error_types=NON_RETRYABLE_ERROR_TYPES,
)


class StepError(PKEError):
    """A named step of a fan-out failed."""


class SignalTimeoutError(PKEError):
    def __init__(self, signal: str) -> None:
        super().__init__(f'timeout while waiting for "{signal}" signal')
        self.signal = signal


class Steps(Protocol):
    logger: Any

    def activity(self, name: str, arg: Any, result_type: Optional[Type] = None) -> Awaitable[Any]:
        """Start activity *name* and return a handle to its result."""

    def child(self, name: str, arg: Any) -> Awaitable[Any]:
        """Start child workflow *name* and return a handle to its result."""

    async def wait_for_signal(self, name: str, timeout: timedelta) -> bool:
        """Block until signal *name* arrives; False on timeout."""


class TemporalSteps:
    """:class:`Steps` executed by the Temporal workflow runtime.

    Must only be used from inside a workflow run.  *signals* is the
    workflow's signal register, filled by its signal handlers.
    """

    def __init__(self, signals: Dict[str, bool]) -> None:
        self._signals = signals
        self.logger = workflow.logger

    def activity(self, name: str, arg: Any, result_type: Optional[Type] = None) -> Awaitable[Any]:
        return workflow.start_activity(
            name,
            arg,
            result_type=result_type,
            schedule_to_start_timeout=SCHEDULE_TO_START_TIMEOUT,
            start_to_close_timeout=START_TO_CLOSE_TIMEOUT,
            schedule_to_close_timeout=SCHEDULE_TO_CLOSE_TIMEOUT,
            retry_policy=ACTIVITY_RETRY_POLICY,
        )

    def child(self, name: str, arg: Any) -> Awaitable[Any]:
        return asyncio.ensure_future(workflow.execute_child_workflow(name, arg))

    async def wait_for_signal(self, name: str, timeout: timedelta) -> bool:
        try:
            await workflow.wait_condition(lambda: self._signals.get(name, False), timeout=timeout)
        except asyncio.TimeoutError:
            return False
        return True


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def gather_errors(futures: Dict[str, Awaitable[Any]], what: str) -> Dict[str, Any]:
    """Await every future and raise the combination of all failures.

    Failures do not short-circuit: every future is awaited, each error is
    labelled ``<what> "<name>"`` and the lot is raised together.
    """
    results: Dict[str, Any] = {}
    errors = []
    for name, future in futures.items():
        try:
            results[name] = await future
        except Exception as exc:
            err = StepError(f'{what} "{name}": {error_message(exc)}')
            err.__cause__ = exc
            errors.append(err)

    err = combine(errors)
    if err is not None:
        raise err
    return results


async def set_cluster_status(steps: Steps, cluster_id: int, status: str, message: str) -> None:
    await steps.activity(SET_CLUSTER_STATUS, SetClusterStatusInput(cluster_id, status, message))


async def set_cluster_error_status(steps: Steps, cluster_id: int, exc: BaseException, status: str = ERROR) -> None:
    """Record *exc* as the cluster's status; a failure to do so is only logged."""
    try:
        await set_cluster_status(steps, cluster_id, status, error_message(exc))
    except Exception as status_exc:
        steps.logger.error("failed to set cluster %d status to %s: %s", cluster_id, status, status_exc)


async def execute(run: Callable[[Steps, Any], Awaitable[Any]], signals: Dict[str, bool], input: Any) -> Any:
    """Run an orchestration function on Temporal.

    Our own errors are raised as non-retryable application errors so they
    fail the workflow instead of its task.
    """
    try:
        return await run(TemporalSteps(signals), input)
    except PKEError as exc:
        raise ApplicationError(str(exc), type=type(exc).__name__, non_retryable=True) from exc

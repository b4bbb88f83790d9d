# /*
# Copyright 2026 The Reclaim E2E Authors.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# */

"""Scenario runner: step recording, expectations, and structured results."""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from rich.panel import Panel
from rich.table import Table

from reclaim_e2e import console, logger
from reclaim_e2e.config import ContextOptions, HarnessSettings
from reclaim_e2e.constants import KIND_POD
from reclaim_e2e.context import TestContext
from reclaim_e2e.errors import ClusterError, QueueNotFoundError, ReclaimE2EError, ScenarioFailure
from reclaim_e2e.jobs import JobHandle, JobSpec, create_job
from reclaim_e2e.kube import Kubectl
from reclaim_e2e.poller import PollOutcome, PollResult
from reclaim_e2e.status import QueueCondition
from reclaim_e2e.waits import job_pods, wait_job_pending, wait_job_ready, wait_queue, wait_tasks_ready


@dataclass(frozen=True)
class StepRecord:
    """One mutation or expectation performed by a scenario."""

    description: str
    passed: bool
    detail: str = ""
    outcome: PollOutcome | None = None
    last_observed: Any = None


@dataclass
class ScenarioResult:
    """Structured outcome of one scenario run."""

    name: str
    title: str
    passed: bool
    steps: list[StepRecord] = field(default_factory=list)
    failure: str | None = None
    last_observed: Any = None
    duration: float = 0.0
    cleanup_errors: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class Scenario:
    """A named script over one TestContext.

    Attributes:
        name: Short key used on the command line.
        title: One-line description of the behavior verified.
        options: Fixtures the context provisions before the body runs.
        body: Script; raises ScenarioFailure on an unmet expectation.
    """

    name: str
    title: str
    options: ContextOptions
    body: Callable[[ScenarioRun], None]


class ScenarioRun:
    """Step API handed to scenario bodies.

    Every call is recorded. Expectations poll until their condition holds
    and raise ScenarioFailure, with the last observed state, when it does
    not.
    """

    def __init__(self, ctx: TestContext) -> None:
        self.ctx = ctx
        self.steps: list[StepRecord] = []

    def _record(self, step: StepRecord) -> None:
        self.steps.append(step)
        if step.passed:
            console.print(f"[green]  ✓ {step.description}[/green]")
        else:
            console.print(f"[red]  ✗ {step.description}: {step.detail}[/red]")

    def _check(self, result: PollResult) -> PollResult:
        detail = "" if result.satisfied else (
            str(result.error) if result.error else f"not satisfied after {result.elapsed:.1f}s"
        )
        self._record(StepRecord(
            description=result.description,
            passed=result.satisfied,
            detail=detail,
            outcome=result.outcome,
            last_observed=result.last_observed,
        ))
        if not result.satisfied:
            raise ScenarioFailure(result.description, f"{result.outcome.value}: {detail}", result.last_observed)
        return result

    def note(self, message: str) -> None:
        logger.info(message)
        console.print(f"[cyan]▶ {message}[/cyan]")

    def require(self, ok: bool, description: str, detail: str = "") -> None:
        """Record a plain check that needs no polling."""
        self._record(StepRecord(description=description, passed=ok, detail=detail))
        if not ok:
            raise ScenarioFailure(description, detail)

    # -- mutations ---------------------------------------------------------

    def add_queues(self, *names: str) -> None:
        self.ctx.add_queues(*names)
        self._record(StepRecord(description=f"create queues {', '.join(names)}", passed=True))

    def submit(self, spec: JobSpec) -> JobHandle:
        description = f"submit job {spec.name} to queue {spec.queue}"
        try:
            job = create_job(self.ctx, spec)
        except ClusterError as err:
            self._record(StepRecord(description=description, passed=False, detail=str(err)))
            raise ScenarioFailure(description, f"{type(err).__name__}: {err}") from err
        self._record(StepRecord(description=description, passed=True))
        return job

    def submit_and_wait(self, spec: JobSpec, ready: int = 1) -> JobHandle:
        job = self.submit(spec)
        self.expect_tasks_ready(job, ready)
        return job

    def expect_submission_fails(
        self,
        spec: JobSpec,
        error: type[ClusterError] = QueueNotFoundError,
    ) -> ClusterError:
        """Submit a job that must be rejected with *error*."""
        description = f"job {spec.name} to queue {spec.queue} is rejected"
        try:
            create_job(self.ctx, spec)
        except error as err:
            self._record(StepRecord(description=description, passed=True, detail=type(err).__name__))
            return err
        except ClusterError as err:
            detail = f"expected {error.__name__}, got {type(err).__name__}: {err}"
            self._record(StepRecord(description=description, passed=False, detail=detail))
            raise ScenarioFailure(description, detail) from err
        detail = "submission was accepted"
        self._record(StepRecord(description=description, passed=False, detail=detail))
        raise ScenarioFailure(description, detail)

    def delete_job_pods(self, job: JobHandle) -> int:
        """Delete every pod of a job, leaving the job itself in place."""
        description = f"delete pods of job {job.name}"
        try:
            pods = job_pods(self.ctx, job)
            for pod in pods:
                meta = pod["metadata"]
                self.ctx.kubectl.delete(KIND_POD, meta["name"], meta.get("namespace", job.namespace))
        except ClusterError as err:
            self._record(StepRecord(description=description, passed=False, detail=str(err)))
            raise ScenarioFailure(description, f"{type(err).__name__}: {err}") from err
        self._record(StepRecord(description=description, passed=True, detail=f"{len(pods)} pods"))
        return len(pods)

    # -- expectations ------------------------------------------------------

    def expect_queue(self, queue: str, condition: QueueCondition) -> PollResult:
        return self._check(wait_queue(self.ctx, queue, condition))

    def expect_tasks_ready(self, job: JobHandle, count: int) -> PollResult:
        return self._check(wait_tasks_ready(self.ctx, job, count))

    def expect_job_ready(self, job: JobHandle) -> PollResult:
        return self._check(wait_job_ready(self.ctx, job))

    def expect_job_pending(self, job: JobHandle) -> PollResult:
        return self._check(wait_job_pending(self.ctx, job))


# ============================================================================
# Running scenarios
# ============================================================================

def run_scenario(
    scenario: Scenario,
    settings: HarnessSettings | None = None,
    kubectl: Kubectl | None = None,
) -> ScenarioResult:
    """Run one scenario in a fresh TestContext and report what happened.

    The context is torn down whatever the outcome. Harness errors and
    invalid job specs become a failed result rather than propagating.
    Cleanup problems are reported on the result but never fail it.

    Args:
        scenario: Scenario to run.
        settings: Harness settings, or None to load from the environment.
        kubectl: Cluster access, or None to build one from settings.

    Returns:
        ScenarioResult with every recorded step.
    """
    console.print(Panel.fit(f"{scenario.name}: {scenario.title}", style="bold blue"))
    start = time.monotonic()
    ctx: TestContext | None = None
    run: ScenarioRun | None = None
    failure: str | None = None
    last_observed: Any = None

    try:
        with TestContext.initialize(scenario.options, settings, kubectl) as ctx:
            run = ScenarioRun(ctx)
            scenario.body(run)
    except ScenarioFailure as err:
        failure, last_observed = str(err), err.last_observed
    except (ReclaimE2EError, ValueError) as err:
        # ValueError covers job specs a body builds from observed cluster state.
        failure = f"{type(err).__name__}: {err}"

    result = ScenarioResult(
        name=scenario.name,
        title=scenario.title,
        passed=failure is None,
        steps=list(run.steps) if run else [],
        failure=failure,
        last_observed=last_observed,
        duration=time.monotonic() - start,
        cleanup_errors=list(ctx.cleanup_errors) if ctx else [],
    )
    if result.passed:
        console.print(f"[green]✅ {scenario.name} passed ({result.duration:.1f}s)[/green]")
    else:
        console.print(f"[red]❌ {scenario.name} failed: {failure}[/red]")
        if last_observed is not None:
            console.print(f"[red]   last observed: {last_observed}[/red]")
    return result


def run_scenarios(
    scenarios: list[Scenario],
    settings: HarnessSettings | None = None,
    kubectl: Kubectl | None = None,
    fail_fast: bool = False,
) -> list[ScenarioResult]:
    """Run scenarios one after another."""
    results: list[ScenarioResult] = []
    for scenario in scenarios:
        result = run_scenario(scenario, settings, kubectl)
        results.append(result)
        if fail_fast and not result.passed:
            break
    return results


def results_table(results: list[ScenarioResult]) -> Table:
    table = Table(title="Reclaim scenarios", show_header=True, header_style="bold")
    table.add_column("Scenario")
    table.add_column("Result")
    table.add_column("Steps", justify="right")
    table.add_column("Time", justify="right")
    table.add_column("Failure")
    for result in results:
        table.add_row(
            result.name,
            "[green]PASS[/green]" if result.passed else "[red]FAIL[/red]",
            str(len(result.steps)),
            f"{result.duration:.1f}s",
            result.failure or "",
        )
    return table

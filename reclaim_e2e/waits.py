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

"""Queue, job, and namespace waits built on the condition poller."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from reclaim_e2e.constants import KIND_JOB, KIND_NAMESPACE, KIND_POD, KIND_QUEUE, LABEL_JOB_NAME, READY_POD_PHASES
from reclaim_e2e.errors import NotFoundError
from reclaim_e2e.jobs import JobHandle, JobSpec, create_job
from reclaim_e2e.kube import Kubectl
from reclaim_e2e.poller import PollResult, poll_until
from reclaim_e2e.status import JobPhase, JobStatus, QueueCondition, QueueStatus

if TYPE_CHECKING:
    from reclaim_e2e.context import TestContext


@dataclass(frozen=True)
class TaskReadiness:
    """Ready-task count of a job alongside its status."""

    job: JobStatus
    ready: int

    def __str__(self) -> str:
        return f"{self.job}, ready tasks={self.ready}"


# ============================================================================
# Readers
# ============================================================================

def queue_status(ctx: TestContext, queue: str) -> QueueStatus:
    return QueueStatus.from_object(ctx.kubectl.get(KIND_QUEUE, queue))


def job_status(ctx: TestContext, job: JobHandle) -> JobStatus:
    return JobStatus.from_object(ctx.kubectl.get(KIND_JOB, job.name, job.namespace))


def job_pods(ctx: TestContext, job: JobHandle) -> list[dict]:
    return ctx.kubectl.list(KIND_POD, namespace=job.namespace, selector=f"{LABEL_JOB_NAME}={job.name}")


def task_readiness(ctx: TestContext, job: JobHandle) -> TaskReadiness:
    """Read a job's status and count its pods that are running or done.

    The job is read first so that a deleted job surfaces as NotFoundError
    rather than as a silent zero.
    """
    status = job_status(ctx, job)
    ready = sum(1 for pod in job_pods(ctx, job)
                if pod.get("status", {}).get("phase") in READY_POD_PHASES)
    return TaskReadiness(job=status, ready=ready)


# ============================================================================
# Waits
# ============================================================================

def wait_queue(ctx: TestContext, queue: str, condition: QueueCondition, timeout: float | None = None) -> PollResult:
    """Wait until one dimension of a queue's status matches *condition*."""
    return poll_until(
        lambda: queue_status(ctx, queue),
        condition.holds,
        interval=ctx.settings.poll_interval,
        timeout=timeout or ctx.settings.queue_timeout,
        description=f"queue {queue}: {condition}",
    )


def wait_tasks_ready(ctx: TestContext, job: JobHandle, count: int, timeout: float | None = None) -> PollResult:
    """Wait until at least *count* of a job's tasks are running or succeeded."""
    return poll_until(
        lambda: task_readiness(ctx, job),
        lambda readiness: readiness.ready >= count,
        interval=ctx.settings.poll_interval,
        timeout=timeout or ctx.settings.task_timeout,
        description=f"job {job.name}: ready tasks >= {count}",
    )


def wait_job_ready(ctx: TestContext, job: JobHandle, timeout: float | None = None) -> PollResult:
    """Wait until a job has its minimum number of tasks ready."""
    return wait_tasks_ready(ctx, job, job.min_available, timeout)


def wait_job_phase(ctx: TestContext, job: JobHandle, phase: JobPhase, timeout: float | None = None) -> PollResult:
    return poll_until(
        lambda: job_status(ctx, job),
        lambda status: status.phase is phase,
        interval=ctx.settings.poll_interval,
        timeout=timeout or ctx.settings.task_timeout,
        description=f"job {job.name}: phase == {phase.value}",
    )


def wait_job_pending(ctx: TestContext, job: JobHandle, timeout: float | None = None) -> PollResult:
    return wait_job_phase(ctx, job, JobPhase.PENDING, timeout)


def wait_namespace_deleted(kubectl: Kubectl, namespace: str, interval: float, timeout: float) -> PollResult:
    """Wait until a namespace is gone; absence is the goal here, not a retry."""

    def _phase() -> str:
        try:
            return kubectl.get(KIND_NAMESPACE, namespace).get("status", {}).get("phase", "Active")
        except NotFoundError:
            return "Gone"

    return poll_until(
        _phase,
        lambda phase: phase == "Gone",
        interval=interval,
        timeout=timeout,
        description=f"namespace {namespace} deleted",
    )


def create_job_and_wait(ctx: TestContext, spec: JobSpec, ready: int = 1) -> JobHandle:
    """Submit a job and wait for *ready* of its tasks.

    Raises:
        QueueNotFoundError: If the job's queue does not exist.
        ConditionError: If the tasks do not become ready.
    """
    job = create_job(ctx, spec)
    wait_tasks_ready(ctx, job, ready).raise_for_outcome()
    return job

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

"""Reclaim scenarios.

Reclaim may only happen when the claimant's queue exists, the claimant is
itself schedulable, its priority is not below the incumbent's, the donor
queue is above its guaranteed share, and the reclaimable remainder covers
the claimant's minimum. Each scenario below breaks exactly one of these
(or none, for the positive cases) and checks what the scheduler does.
"""

from __future__ import annotations

from reclaim_e2e.config import ContextOptions
from reclaim_e2e.constants import (
    CPU1_MEM1,
    CPU4_MEM4,
    ONE_CPU,
    PRIORITY_CLASSES,
    PRIORITY_HIGH,
    PRIORITY_LOW,
)
from reclaim_e2e.context import cluster_size
from reclaim_e2e.jobs import single_task_job
from reclaim_e2e.scenario import Scenario, ScenarioRun
from reclaim_e2e.status import QUEUE_OPEN, QUEUE_PENDING, QUEUE_RUNNING

Q2 = "reclaim-q2"
Q3 = "reclaim-q3"


def _small_cluster(nodes: int, *queues: str, priorities: bool = True) -> ContextOptions:
    return ContextOptions(
        queues=queues,
        nodes_num_limit=nodes,
        nodes_resource_limit=CPU1_MEM1,
        priority_classes=dict(PRIORITY_CLASSES) if priorities else {},
    )


def _setup_incumbents(run: ScenarioRun, priority: str | None = None) -> str:
    """Start one job in the default queue and one in Q2; return the default queue."""
    q1 = run.ctx.settings.default_queue
    run.note("Setup initial jobs")
    run.submit_and_wait(single_task_job("reclaim-j1", q1, CPU1_MEM1, priority))
    run.submit_and_wait(single_task_job("reclaim-j2", Q2, CPU1_MEM1, priority))
    return q1


# ============================================================================
# Scenario bodies
# ============================================================================

def no_reclaim_enough_resources(run: ScenarioRun) -> None:
    q1 = _setup_incumbents(run)

    run.note("Create new incoming queue and job")
    run.add_queues(Q3)
    run.expect_queue(q1, QUEUE_OPEN)
    run.submit_and_wait(single_task_job("reclaim-j3", Q3, CPU1_MEM1))

    run.note("Make sure all jobs are running")
    for queue in (q1, Q2, Q3):
        run.expect_queue(queue, QUEUE_RUNNING)


def no_reclaim_claimant_pending(run: ScenarioRun) -> None:
    q1 = _setup_incumbents(run)

    run.note("Create new incoming queue and job")
    run.add_queues(Q3)
    run.expect_queue(q1, QUEUE_OPEN)
    job3 = run.submit_and_wait(single_task_job("reclaim-j3", Q3, CPU1_MEM1))

    run.note("Delete the pods of reclaim-j3 so its group falls back to pending")
    run.delete_job_pods(job3)

    run.note("Incumbents keep running, the claimant stays pending")
    run.expect_queue(q1, QUEUE_RUNNING)
    run.expect_queue(Q2, QUEUE_RUNNING)
    run.expect_queue(Q3, QUEUE_PENDING)


def no_reclaim_queue_missing(run: ScenarioRun) -> None:
    q1 = _setup_incumbents(run)

    run.note("Submit a job to a queue that was never created")
    run.expect_submission_fails(single_task_job("reclaim-j3", Q3, CPU1_MEM1))

    run.note("Make sure all jobs are running")
    run.expect_queue(q1, QUEUE_RUNNING)
    run.expect_queue(Q2, QUEUE_RUNNING)


def no_reclaim_low_priority(run: ScenarioRun) -> None:
    q1 = _setup_incumbents(run, PRIORITY_HIGH)

    run.note("Submit a low-priority job to an uncreated queue")
    run.expect_queue(q1, QUEUE_OPEN)
    run.expect_submission_fails(single_task_job("reclaim-j3", Q3, CPU1_MEM1, PRIORITY_LOW))

    run.note("High-priority incumbents keep running")
    run.expect_queue(q1, QUEUE_RUNNING)
    run.expect_queue(Q2, QUEUE_RUNNING)


def no_reclaim_overused(run: ScenarioRun) -> None:
    q1 = _setup_incumbents(run)
    run.submit_and_wait(single_task_job("reclaim-j3", Q3, CPU1_MEM1))

    run.note("Submit reclaim-j4 to the queue that already uses its share")
    run.submit(single_task_job("reclaim-j4", Q3, CPU1_MEM1))

    run.note("Make sure no queue gave up its running job")
    for queue in (q1, Q2, Q3):
        run.expect_queue(queue, QUEUE_RUNNING)
    run.expect_queue(Q3, QUEUE_PENDING)


def no_reclaim_insufficient_reclaimable(run: ScenarioRun) -> None:
    q1 = _setup_incumbents(run)

    run.note("Create new incoming queue and an oversized job")
    run.add_queues(Q3)
    run.expect_queue(q1, QUEUE_OPEN)
    run.submit(single_task_job("reclaim-j4", Q3, CPU4_MEM4))

    run.note("The oversized job stays pending, incumbents keep running")
    run.expect_queue(q1, QUEUE_RUNNING)
    run.expect_queue(Q2, QUEUE_RUNNING)
    run.expect_queue(Q3, QUEUE_PENDING)


def reclaim_priority(run: ScenarioRun) -> None:
    q1, q2 = "reclaim-q1", "reclaim-q2"
    rep = cluster_size(run.ctx, ONE_CPU)
    run.note(f"Cluster fits {rep} one-CPU replicas")

    # One replica less than half, to tolerate an odd split.
    expected = rep // 2
    run.require(expected > 1, "cluster is large enough to split", f"expected replica <{expected}> is too small")
    expected -= 1

    run.note("Fill the cluster from the low-priority queue")
    spec = single_task_job("q1-qj-1", q1, ONE_CPU, PRIORITY_LOW, replicas=rep)
    job1 = run.submit(spec)
    run.expect_job_ready(job1)
    run.expect_queue(q1, QUEUE_RUNNING)

    run.note("High-priority claimant reclaims from the low-priority incumbent")
    job2 = run.submit(spec.model_copy(update={"name": "q2-qj-2", "queue": q2, "priority": PRIORITY_HIGH}))
    run.expect_tasks_ready(job2, expected)
    run.expect_tasks_ready(job1, expected)

    run.note("Excess demand on the low-priority queue stays pending")
    job3 = run.submit(single_task_job("q1-qj-2", q1, ONE_CPU, replicas=rep * 2, min_available=rep * 2))
    run.expect_job_pending(job3)
    run.expect_queue(q1, QUEUE_PENDING)


# ============================================================================
# Registry
# ============================================================================

SCENARIOS: dict[str, Scenario] = {
    s.name: s for s in (
        Scenario(
            name="no-reclaim-enough-resources",
            title="New queue with job created, no reclaim when resources are enough",
            options=_small_cluster(4, Q2, priorities=False),
            body=no_reclaim_enough_resources,
        ),
        Scenario(
            name="no-reclaim-claimant-pending",
            title="New queue with job created, no reclaim when the claimant's group is pending",
            options=_small_cluster(3, Q2),
            body=no_reclaim_claimant_pending,
        ),
        Scenario(
            name="no-reclaim-queue-missing",
            title="No reclaim when the claimant's queue was never created",
            options=_small_cluster(3, Q2),
            body=no_reclaim_queue_missing,
        ),
        Scenario(
            name="no-reclaim-low-priority",
            title="No reclaim when the claimant has low priority",
            options=_small_cluster(3, Q2),
            body=no_reclaim_low_priority,
        ),
        Scenario(
            name="no-reclaim-overused",
            title="No reclaim from queues already at their guaranteed share",
            options=_small_cluster(3, Q2, Q3),
            body=no_reclaim_overused,
        ),
        Scenario(
            name="no-reclaim-insufficient-reclaimable",
            title="No reclaim when the task needs more than could be reclaimed",
            options=_small_cluster(3, Q2),
            body=no_reclaim_insufficient_reclaimable,
        ),
        Scenario(
            name="reclaim-priority",
            title="High-priority queue reclaims from a low-priority queue",
            options=ContextOptions(queues=("reclaim-q1", "reclaim-q2"), priority_classes=dict(PRIORITY_CLASSES)),
            body=reclaim_priority,
        ),
    )
}

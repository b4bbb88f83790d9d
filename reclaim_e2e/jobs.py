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

"""Job and task specs, job manifests, and job submission."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from reclaim_e2e import logger
from reclaim_e2e.config import HarnessSettings
from reclaim_e2e.constants import (
    API_BATCH_JOB,
    DEFAULT_RESTART_POLICY,
    LABEL_CONTEXT,
    LABEL_MANAGED_BY,
    LABEL_MANAGED_BY_VALUE,
)
from reclaim_e2e.errors import AdmissionDeniedError, QueueNotFoundError
from reclaim_e2e.quantity import parse_quantity

if TYPE_CHECKING:
    from reclaim_e2e.context import TestContext

_DNS_LABEL = r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?$"


# ============================================================================
# Specs
# ============================================================================

class TaskSpec(BaseModel):
    """One task group of a job.

    Attributes:
        requests: Resource name -> quantity requested by each replica.
        min_available: Replicas that must run for the task to count as ready.
        replicas: Replicas to create.
        image: Container image, or None for the harness default.
        name: Task name, or None to derive ``<job>-task-<index>``.
    """

    model_config = ConfigDict(frozen=True)

    requests: dict[str, str]
    min_available: int = Field(default=1, ge=1)
    replicas: int = Field(default=1, ge=1)
    image: str | None = None
    name: str | None = Field(default=None, pattern=_DNS_LABEL)

    @field_validator("requests")
    @classmethod
    def _check_quantities(cls, requests: dict[str, str]) -> dict[str, str]:
        if not requests:
            raise ValueError("a task must request at least one resource")
        for quantity in requests.values():
            parse_quantity(quantity)
        return requests

    @model_validator(mode="after")
    def _check_counts(self) -> TaskSpec:
        if self.replicas < self.min_available:
            raise ValueError(f"replicas ({self.replicas}) must be >= min_available ({self.min_available})")
        return self


class JobSpec(BaseModel):
    """A job submitted as a unit against one queue.

    Attributes:
        name: Job name, unique within the context namespace.
        queue: Queue the job is submitted to.
        priority: Priority class name, or None for the cluster default.
        tasks: Task groups, in order.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(pattern=_DNS_LABEL, max_length=63)
    queue: str
    priority: str | None = None
    tasks: tuple[TaskSpec, ...] = Field(min_length=1)

    @property
    def min_available(self) -> int:
        return sum(task.min_available for task in self.tasks)

    @property
    def replicas(self) -> int:
        return sum(task.replicas for task in self.tasks)


def single_task_job(
    name: str,
    queue: str,
    requests: dict[str, str],
    priority: str | None = None,
    replicas: int = 1,
    min_available: int = 1,
) -> JobSpec:
    """Build a JobSpec with exactly one task group."""
    return JobSpec(
        name=name,
        queue=queue,
        priority=priority or None,
        tasks=(TaskSpec(requests=requests, replicas=replicas, min_available=min_available),),
    )


@dataclass(frozen=True)
class JobHandle:
    """A job that was accepted by the API server."""

    name: str
    namespace: str
    queue: str
    min_available: int


# ============================================================================
# Manifests and submission
# ============================================================================

def job_manifest(spec: JobSpec, namespace: str, settings: HarnessSettings) -> dict:
    """Build the batch Job manifest for a spec.

    Args:
        spec: Job to submit.
        namespace: Namespace the job is created in.
        settings: Harness settings (scheduler name, default image).

    Returns:
        Job resource as a dictionary ready for submission.
    """
    tasks = []
    for index, task in enumerate(spec.tasks):
        task_name = task.name or f"{spec.name}-task-{index}"
        pod_spec: dict = {
            "schedulerName": settings.scheduler_name,
            "restartPolicy": DEFAULT_RESTART_POLICY,
            "containers": [{
                "name": task_name,
                "image": task.image or settings.job_image,
                "imagePullPolicy": "IfNotPresent",
                "resources": {"requests": dict(task.requests), "limits": dict(task.requests)},
            }],
        }
        if spec.priority:
            pod_spec["priorityClassName"] = spec.priority
        tasks.append({
            "name": task_name,
            "replicas": task.replicas,
            "template": {"metadata": {"name": task_name}, "spec": pod_spec},
        })

    job_spec: dict = {
        "schedulerName": settings.scheduler_name,
        "queue": spec.queue,
        "minAvailable": spec.min_available,
        "tasks": tasks,
    }
    if spec.priority:
        job_spec["priorityClassName"] = spec.priority

    return {
        "apiVersion": API_BATCH_JOB,
        "kind": "Job",
        "metadata": {
            "name": spec.name,
            "namespace": namespace,
            "labels": {LABEL_MANAGED_BY: LABEL_MANAGED_BY_VALUE, LABEL_CONTEXT: namespace},
        },
        "spec": job_spec,
    }


def create_job(ctx: TestContext, spec: JobSpec) -> JobHandle:
    """Submit a job in the context's namespace.

    Args:
        ctx: Owning test context.
        spec: Job to submit.

    Returns:
        Handle of the accepted job.

    Raises:
        QueueNotFoundError: If the job's queue does not exist.
        ClusterError: For any other rejection.
    """
    manifest = job_manifest(spec, ctx.namespace, ctx.settings)
    logger.info("Submitting job %s/%s to queue %s (priority=%s, min=%d, replicas=%d)",
                ctx.namespace, spec.name, spec.queue, spec.priority or "-",
                spec.min_available, spec.replicas)
    try:
        ctx.kubectl.create(manifest)
    except AdmissionDeniedError as err:
        if not isinstance(err, QueueNotFoundError) and f'"{spec.queue}" not found' in err.stderr:
            raise QueueNotFoundError(str(err), args_used=err.args_used, stderr=err.stderr) from err
        raise
    ctx.jobs.append(spec.name)
    return JobHandle(name=spec.name, namespace=ctx.namespace, queue=spec.queue,
                     min_available=spec.min_available)

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

"""Harness settings and per-scenario context options."""

from __future__ import annotations

from dataclasses import dataclass, field

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from rich.table import Table

from reclaim_e2e import console
from reclaim_e2e.constants import (
    DEFAULT_CLEANUP_TIMEOUT_SECONDS,
    DEFAULT_JOB_IMAGE,
    DEFAULT_KUBECTL_TIMEOUT_SECONDS,
    DEFAULT_NAMESPACE_PREFIX,
    DEFAULT_PLACEHOLDER_IMAGE,
    DEFAULT_POLL_INTERVAL_SECONDS,
    DEFAULT_QUEUE,
    DEFAULT_QUEUE_TIMEOUT_SECONDS,
    DEFAULT_SCHEDULER_NAME,
    DEFAULT_TASK_TIMEOUT_SECONDS,
)


# ============================================================================
# Configuration classes
# ============================================================================

class HarnessSettings(BaseSettings):
    """Harness configuration, auto-loaded from RECLAIM_E2E_* env vars.

    Attributes:
        kubectl: kubectl binary to invoke.
        kube_context: kubeconfig context override, or None for current.
        kubeconfig: kubeconfig path override, or None for the default.
        scheduler_name: schedulerName set on submitted jobs.
        default_queue: Queue the scheduler provisions on its own.
        namespace_prefix: Prefix for generated scenario namespaces.
        job_image: Container image for submitted job tasks.
        placeholder_image: Container image for capacity placeholder pods.
        poll_interval: Seconds between condition re-evaluations.
        queue_timeout: Seconds to wait for a queue condition.
        task_timeout: Seconds to wait for job task readiness.
        cleanup_timeout: Seconds to wait for namespace deletion on teardown.
        kubectl_timeout: Seconds allowed for a single kubectl call.
    """

    model_config = SettingsConfigDict(env_prefix="RECLAIM_E2E_", extra="ignore")

    kubectl: str = "kubectl"
    kube_context: str | None = None
    kubeconfig: str | None = None
    scheduler_name: str = DEFAULT_SCHEDULER_NAME
    default_queue: str = DEFAULT_QUEUE
    namespace_prefix: str = Field(default=DEFAULT_NAMESPACE_PREFIX, pattern=r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?$")
    job_image: str = DEFAULT_JOB_IMAGE
    placeholder_image: str = DEFAULT_PLACEHOLDER_IMAGE
    poll_interval: float = Field(default=DEFAULT_POLL_INTERVAL_SECONDS, gt=0)
    queue_timeout: float = Field(default=DEFAULT_QUEUE_TIMEOUT_SECONDS, gt=0)
    task_timeout: float = Field(default=DEFAULT_TASK_TIMEOUT_SECONDS, gt=0)
    cleanup_timeout: float = Field(default=DEFAULT_CLEANUP_TIMEOUT_SECONDS, gt=0)
    kubectl_timeout: int = Field(default=DEFAULT_KUBECTL_TIMEOUT_SECONDS, ge=1)


# ============================================================================
# Scenario context options
# ============================================================================

@dataclass(frozen=True)
class ContextOptions:
    """What a scenario's TestContext provisions before the body runs.

    Attributes:
        queues: Queue names to create up front.
        nodes_num_limit: Number of nodes left schedulable, or 0 for all.
        nodes_resource_limit: Idle resources kept on each schedulable node,
            or None to leave node capacity untouched.
        priority_classes: Priority class name -> integer weight.
    """

    queues: tuple[str, ...] = ()
    nodes_num_limit: int = 0
    nodes_resource_limit: dict[str, str] | None = None
    priority_classes: dict[str, int] = field(default_factory=dict)

    @property
    def constrains_nodes(self) -> bool:
        return self.nodes_num_limit > 0 and bool(self.nodes_resource_limit)


def display_settings(settings: HarnessSettings) -> None:
    """Print the resolved harness settings as a table."""
    table = Table(title="Harness settings", show_header=True, header_style="bold")
    table.add_column("Setting")
    table.add_column("Value")
    for name, value in settings.model_dump().items():
        table.add_row(name, "-" if value is None else str(value))
    console.print(table)

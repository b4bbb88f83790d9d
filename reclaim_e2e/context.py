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

"""TestContext lifecycle: namespace, queues, priority classes, node limits, teardown.

A TestContext exclusively owns everything it creates. Isolation comes from
unique names (a generated namespace, queue names that must not exist yet),
not from locking, so contexts are meant to be used one at a time.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable

from reclaim_e2e import console, logger
from reclaim_e2e.config import ContextOptions, HarnessSettings
from reclaim_e2e.constants import (
    API_CORE,
    API_QUEUE,
    API_SCHEDULING_K8S,
    DEFAULT_QUEUE_WEIGHT,
    KIND_JOB,
    KIND_NAMESPACE,
    KIND_NODE,
    KIND_POD,
    KIND_PRIORITY_CLASS,
    KIND_QUEUE,
    LABEL_CONTEXT,
    LABEL_MANAGED_BY,
    LABEL_MANAGED_BY_VALUE,
    LABEL_PLACEHOLDER,
    TERMINAL_POD_PHASES,
)
from reclaim_e2e.errors import AlreadyExistsError, ContextSetupError, ReclaimE2EError
from reclaim_e2e.kube import Kubectl
from reclaim_e2e.quantity import Resources, pod_requests, slots_in
from reclaim_e2e.status import AdmissionIs, QueueState
from reclaim_e2e.waits import wait_namespace_deleted, wait_queue


def generate_namespace(prefix: str) -> str:
    """Return a namespace name that no other context will generate."""
    return f"{prefix}-{uuid.uuid4().hex[:8]}"


# ============================================================================
# Node capacity helpers
# ============================================================================

def _node_usable(node: dict) -> bool:
    """Untainted, schedulable, and (when reported) Ready."""
    spec = node.get("spec", {})
    if spec.get("taints") or spec.get("unschedulable"):
        return False
    conditions = node.get("status", {}).get("conditions") or []
    ready = [c for c in conditions if c.get("type") == "Ready"]
    return not ready or ready[0].get("status") == "True"


def usable_nodes(kubectl: Kubectl) -> list[dict]:
    nodes = [n for n in kubectl.list(KIND_NODE) if _node_usable(n)]
    return sorted(nodes, key=lambda n: n["metadata"]["name"])


def node_usage(kubectl: Kubectl) -> dict[str, Resources]:
    """Sum the requests of live pods bound to each node."""
    used: dict[str, Resources] = {}
    for pod in kubectl.list(KIND_POD, all_namespaces=True):
        node_name = pod.get("spec", {}).get("nodeName")
        if not node_name or pod.get("metadata", {}).get("deletionTimestamp"):
            continue
        if pod.get("status", {}).get("phase") in TERMINAL_POD_PHASES:
            continue
        used[node_name] = used.get(node_name, Resources()) + pod_requests(pod)
    return used


def idle_resources(node: dict, used: dict[str, Resources]) -> Resources:
    allocatable = Resources.from_quantities(node.get("status", {}).get("allocatable"))
    return allocatable - used.get(node["metadata"]["name"], Resources())


def cluster_size(ctx: TestContext, slot: dict[str, str]) -> int:
    """Count how many *slot*-sized requests fit in the cluster's idle capacity.

    Args:
        ctx: Test context supplying cluster access.
        slot: Resource name -> quantity of one request.

    Returns:
        Number of slots that fit across all usable nodes.
    """
    want = Resources.from_quantities(slot)
    used = node_usage(ctx.kubectl)
    return sum(slots_in(idle_resources(node, used), want) for node in usable_nodes(ctx.kubectl))


# ============================================================================
# TestContext
# ============================================================================

class TestContext:
    """Scoped handle owning one scenario's cluster objects.

    Attributes:
        kubectl: Cluster access.
        settings: Harness settings.
        namespace: Generated namespace all jobs are created in.
        nodes_num_limit: Nodes left schedulable, or 0 for no limit.
        nodes_resource_limit: Idle resources kept per schedulable node.
        priority_classes: Priority class name -> weight for this scenario.
        queues: Queues created by this context, in creation order.
        jobs: Jobs submitted through this context.
        placeholders: Placeholder pods created to cap node capacity.
        cleanup_errors: Messages of teardown steps that failed.
    """

    __test__ = False  # not a pytest test class

    def __init__(
        self,
        kubectl: Kubectl,
        settings: HarnessSettings,
        namespace: str,
        options: ContextOptions,
    ) -> None:
        self.kubectl = kubectl
        self.settings = settings
        self.namespace = namespace
        self.nodes_num_limit = options.nodes_num_limit
        self.nodes_resource_limit = dict(options.nodes_resource_limit or {})
        self.priority_classes = dict(options.priority_classes)
        self.queues: list[str] = []
        self.jobs: list[str] = []
        self.placeholders: list[str] = []
        self.cleanup_errors: list[str] = []
        self._owned_priority_classes: list[str] = []
        self._namespace_created = False
        self._torn_down = False

    # -- lifecycle ---------------------------------------------------------

    @classmethod
    def initialize(
        cls,
        options: ContextOptions,
        settings: HarnessSettings | None = None,
        kubectl: Kubectl | None = None,
    ) -> TestContext:
        """Provision a context for one scenario.

        Anything already created is torn down again if a later step fails.

        Raises:
            ContextSetupError: If fixtures cannot be provisioned.
            ClusterError: If a cluster call fails outright.
        """
        settings = settings or HarnessSettings()
        kubectl = kubectl or Kubectl.from_settings(settings)
        ctx = cls(kubectl, settings, generate_namespace(settings.namespace_prefix), options)
        logger.info("Initializing test context in namespace %s", ctx.namespace)
        try:
            ctx._create_namespace()
            ctx._create_priority_classes()
            ctx.add_queues(*options.queues)
            if options.constrains_nodes:
                ctx._constrain_nodes()
        except Exception:
            ctx.teardown()
            raise
        return ctx

    def __enter__(self) -> TestContext:
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.teardown()
        return False

    def _labels(self) -> dict[str, str]:
        return {LABEL_MANAGED_BY: LABEL_MANAGED_BY_VALUE, LABEL_CONTEXT: self.namespace}

    def _create_namespace(self) -> None:
        self.kubectl.create({
            "apiVersion": API_CORE,
            "kind": "Namespace",
            "metadata": {"name": self.namespace, "labels": self._labels()},
        })
        self._namespace_created = True

    def _create_priority_classes(self) -> None:
        for name, value in self.priority_classes.items():
            try:
                self.kubectl.create({
                    "apiVersion": API_SCHEDULING_K8S,
                    "kind": "PriorityClass",
                    "metadata": {"name": name, "labels": self._labels()},
                    "value": value,
                })
            except AlreadyExistsError:
                existing = self.kubectl.get(KIND_PRIORITY_CLASS, name)
                if existing.get("value") != value:
                    raise ContextSetupError(
                        f"Priority class {name} exists with value {existing.get('value')}, expected {value}"
                    ) from None
                logger.warning("Reusing existing priority class %s (value=%d)", name, value)
                continue
            self._owned_priority_classes.append(name)

    def add_queues(self, *names: str) -> None:
        """Create queues owned by this context.

        Raises:
            ContextSetupError: If a queue with the same name already exists.
        """
        for name in names:
            try:
                self.kubectl.create({
                    "apiVersion": API_QUEUE,
                    "kind": "Queue",
                    "metadata": {"name": name, "labels": self._labels()},
                    "spec": {"weight": DEFAULT_QUEUE_WEIGHT, "reclaimable": True},
                })
            except AlreadyExistsError as err:
                raise ContextSetupError(
                    f"Queue {name} already exists; it belongs to another context or a previous run"
                ) from err
            self.queues.append(name)
            logger.info("Created queue %s", name)

    def _constrain_nodes(self) -> None:
        """Leave exactly ``nodes_num_limit`` nodes with ``nodes_resource_limit`` idle.

        Placeholder pods are bound straight to nodes to soak up the rest of
        the capacity, so the scheduler sees a small, predictable cluster.
        """
        keep = Resources.from_quantities(self.nodes_resource_limit)
        nodes = usable_nodes(self.kubectl)
        if len(nodes) < self.nodes_num_limit:
            raise ContextSetupError(
                f"Need at least {self.nodes_num_limit} schedulable nodes, found {len(nodes)}"
            )
        used = node_usage(self.kubectl)
        kept = 0
        for node in nodes:
            idle = idle_resources(node, used)
            if kept < self.nodes_num_limit and keep.fits_in(idle):
                fill = Resources({n: idle.get(n) - keep.get(n) for n in keep.names()}).clamp()
                kept += 1
            else:
                fill = Resources({n: idle.get(n) for n in keep.names()}).clamp()
            if not fill.is_empty():
                self._create_placeholder(node["metadata"]["name"], fill)
        if kept < self.nodes_num_limit:
            raise ContextSetupError(
                f"Only {kept} nodes have {keep} idle, need {self.nodes_num_limit}"
            )
        logger.info("Constrained cluster to %d nodes with %s idle each", kept, keep)

    def _create_placeholder(self, node_name: str, fill: Resources) -> None:
        name = f"placeholder-{node_name}"[:253]
        quantities = fill.to_quantities()
        self.kubectl.create({
            "apiVersion": API_CORE,
            "kind": "Pod",
            "metadata": {
                "name": name,
                "namespace": self.namespace,
                "labels": {**self._labels(), LABEL_PLACEHOLDER: "true"},
            },
            "spec": {
                "nodeName": node_name,
                "restartPolicy": "Always",
                "containers": [{
                    "name": "placeholder",
                    "image": self.settings.placeholder_image,
                    "resources": {"requests": quantities, "limits": quantities},
                }],
            },
        })
        self.placeholders.append(name)
        logger.debug("Placeholder %s on %s holds %s", name, node_name, quantities)

    # -- teardown ----------------------------------------------------------

    def _cleanup_step(self, description: str, fn: Callable[[], None]) -> None:
        try:
            fn()
        except ReclaimE2EError as err:
            message = f"{description}: {err}"
            self.cleanup_errors.append(message)
            logger.warning("Cleanup step failed: %s", message)

    def _delete_queue(self, name: str) -> None:
        self.kubectl.patch(KIND_QUEUE, name, {"status": {"state": QueueState.CLOSED.value}}, subresource="status")
        closed = wait_queue(self, name, AdmissionIs(QueueState.CLOSED), timeout=self.settings.queue_timeout)
        if not closed:
            logger.warning("Queue %s did not report Closed, deleting anyway", name)
        self.kubectl.delete(KIND_QUEUE, name, ignore_not_found=True)

    def _delete_namespace(self) -> None:
        self.kubectl.delete(KIND_NAMESPACE, self.namespace, ignore_not_found=True)
        wait_namespace_deleted(
            self.kubectl, self.namespace,
            interval=self.settings.poll_interval,
            timeout=self.settings.cleanup_timeout,
        ).raise_for_outcome()

    def teardown(self) -> None:
        """Delete everything this context created. Safe to call more than once.

        Every step is attempted; failures are logged and collected in
        ``cleanup_errors``, never raised.
        """
        if self._torn_down:
            return
        self._torn_down = True
        logger.info("Tearing down test context %s", self.namespace)

        if self._namespace_created:
            self._cleanup_step("delete jobs", lambda: self.kubectl.delete_all(KIND_JOB, self.namespace))
            self._cleanup_step(f"delete namespace {self.namespace}", self._delete_namespace)
        for name in reversed(self.queues):
            self._cleanup_step(f"delete queue {name}", lambda name=name: self._delete_queue(name))
        for name in self._owned_priority_classes:
            self._cleanup_step(
                f"delete priority class {name}",
                lambda name=name: self.kubectl.delete(KIND_PRIORITY_CLASS, name, ignore_not_found=True),
            )

        if self.cleanup_errors:
            console.print(f"[yellow]⚠️  {len(self.cleanup_errors)} cleanup steps failed "
                          f"for {self.namespace} (see log)[/yellow]")

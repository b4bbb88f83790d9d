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

"""Shared fixtures: an in-memory stand-in for the kubectl client."""

from __future__ import annotations

import copy
from collections.abc import Callable
from decimal import Decimal

import pytest

from reclaim_e2e.config import HarnessSettings
from reclaim_e2e.constants import (
    DEFAULT_QUEUE,
    KIND_JOB,
    KIND_NAMESPACE,
    KIND_NODE,
    KIND_POD,
    KIND_PRIORITY_CLASS,
    KIND_QUEUE,
    LABEL_JOB_NAME,
    PRIORITY_CLASSES,
)
from reclaim_e2e.errors import AlreadyExistsError, ClusterError, NotFoundError, QueueNotFoundError
from reclaim_e2e.kube import resource_for
from reclaim_e2e.quantity import parse_quantity

CLUSTER_SCOPED = {KIND_NAMESPACE, KIND_NODE, KIND_PRIORITY_CLASS, KIND_QUEUE}


def _merge(target: dict, patch: dict) -> None:
    for key, value in patch.items():
        if isinstance(value, dict) and isinstance(target.get(key), dict):
            _merge(target[key], value)
        else:
            target[key] = copy.deepcopy(value)


def _matches(obj: dict, selector: str | None) -> bool:
    if not selector:
        return True
    labels = obj.get("metadata", {}).get("labels") or {}
    for term in selector.split(","):
        key, _, value = term.partition("=")
        if labels.get(key) != value:
            return False
    return True


class FakeKubectl:
    """In-memory object store with the Kubectl client's interface.

    ``failures`` maps ``(verb, kind)`` to an error raised by that call;
    ``on_create`` hooks run after every successful create.
    """

    def __init__(self) -> None:
        self.objects: dict[tuple[str, str | None, str], dict] = {}
        self.calls: list[tuple[str, str, str]] = []
        self.failures: dict[tuple[str, str], ClusterError] = {}
        self.on_create: list[Callable[[FakeKubectl, dict], None]] = []

    # -- helpers used by tests ------------------------------------------------

    @staticmethod
    def _ns(kind: str, namespace: str | None) -> str | None:
        return None if kind in CLUSTER_SCOPED else namespace

    def put(self, kind: str, obj: dict) -> dict:
        meta = obj.setdefault("metadata", {})
        self.objects[(kind, self._ns(kind, meta.get("namespace")), meta["name"])] = obj
        return obj

    def add_queue(self, name: str, state: str = "Open", running: int = 0, pending: int = 0) -> dict:
        return self.put(KIND_QUEUE, {
            "kind": "Queue",
            "metadata": {"name": name},
            "status": {"state": state, "running": running, "pending": pending},
        })

    def set_queue_status(self, name: str, **status) -> None:
        self.objects[(KIND_QUEUE, None, name)].setdefault("status", {}).update(status)

    def add_node(self, name: str, cpu: str = "2", memory: str = "2Gi", taints: list | None = None) -> dict:
        node = {
            "kind": "Node",
            "metadata": {"name": name},
            "spec": {"taints": taints} if taints else {},
            "status": {
                "allocatable": {"cpu": cpu, "memory": memory, "pods": "110"},
                "conditions": [{"type": "Ready", "status": "True"}],
            },
        }
        return self.put(KIND_NODE, node)

    def add_pod(
        self,
        namespace: str,
        name: str,
        phase: str = "Running",
        node: str | None = None,
        labels: dict | None = None,
        requests: dict | None = None,
    ) -> dict:
        pod = {
            "kind": "Pod",
            "metadata": {"name": name, "namespace": namespace, "labels": labels or {}},
            "spec": {"containers": [{"name": "c", "resources": {"requests": requests or {}}}]},
            "status": {"phase": phase},
        }
        if node:
            pod["spec"]["nodeName"] = node
        return self.put(KIND_POD, pod)

    def names(self, kind: str) -> list[str]:
        return sorted(name for (k, _, name) in self.objects if k == kind)

    def _maybe_fail(self, verb: str, kind: str) -> None:
        err = self.failures.get((verb, kind))
        if err is not None:
            raise err

    # -- Kubectl interface ----------------------------------------------------

    def get(self, kind: str, name: str, namespace: str | None = None) -> dict:
        self.calls.append(("get", kind, name))
        self._maybe_fail("get", kind)
        try:
            return copy.deepcopy(self.objects[(kind, self._ns(kind, namespace), name)])
        except KeyError:
            raise NotFoundError(f'Error from server (NotFound): {kind} "{name}" not found') from None

    def list(self, kind: str, namespace: str | None = None, selector: str | None = None,
             all_namespaces: bool = False) -> list[dict]:
        self.calls.append(("list", kind, selector or ""))
        self._maybe_fail("list", kind)
        return [
            copy.deepcopy(obj) for (k, ns, _), obj in sorted(self.objects.items(), key=lambda i: i[0][2])
            if k == kind and (all_namespaces or kind in CLUSTER_SCOPED or ns == namespace)
            and _matches(obj, selector)
        ]

    def create(self, manifest: dict) -> dict:
        kind = resource_for(manifest)
        name = manifest["metadata"]["name"]
        self.calls.append(("create", kind, name))
        self._maybe_fail("create", kind)
        key = (kind, self._ns(kind, manifest["metadata"].get("namespace")), name)
        if key in self.objects:
            raise AlreadyExistsError(f'Error from server (AlreadyExists): {kind} "{name}" already exists')
        if kind == KIND_JOB and (KIND_QUEUE, None, manifest["spec"]["queue"]) not in self.objects:
            queue = manifest["spec"]["queue"]
            raise QueueNotFoundError(
                'admission webhook "validatejob.volcano.sh" denied the request: '
                f'unable to find job queue: queues.scheduling.volcano.sh "{queue}" not found'
            )
        obj = copy.deepcopy(manifest)
        if kind == KIND_QUEUE:
            # The queue controller opens new queues.
            obj.setdefault("status", {"state": "Open", "running": 0, "pending": 0})
        self.objects[key] = obj
        for hook in self.on_create:
            hook(self, obj)
        return copy.deepcopy(obj)

    def patch(self, kind: str, name: str, patch: dict, namespace: str | None = None,
              subresource: str | None = None) -> dict:
        self.calls.append(("patch", kind, name))
        self._maybe_fail("patch", kind)
        key = (kind, self._ns(kind, namespace), name)
        if key not in self.objects:
            raise NotFoundError(f'Error from server (NotFound): {kind} "{name}" not found')
        _merge(self.objects[key], patch)
        return copy.deepcopy(self.objects[key])

    def delete(self, kind: str, name: str, namespace: str | None = None,
               ignore_not_found: bool = False, wait: bool = False) -> None:
        self.calls.append(("delete", kind, name))
        self._maybe_fail("delete", kind)
        key = (kind, self._ns(kind, namespace), name)
        if key not in self.objects:
            if ignore_not_found:
                return
            raise NotFoundError(f'Error from server (NotFound): {kind} "{name}" not found')
        del self.objects[key]
        if kind == KIND_NAMESPACE:
            for other in [k for k in self.objects if k[1] == name]:
                del self.objects[other]

    def delete_all(self, kind: str, namespace: str, selector: str | None = None) -> None:
        self.calls.append(("delete_all", kind, namespace))
        self._maybe_fail("delete_all", kind)
        for key in [k for k, obj in self.objects.items()
                    if k[0] == kind and k[1] == namespace and _matches(obj, selector)]:
            del self.objects[key]


def run_jobs_immediately(fake: FakeKubectl, obj: dict) -> None:
    """on_create hook: every replica of a new job starts running at once."""
    if obj.get("kind") != "Job":
        return
    namespace = obj["metadata"]["namespace"]
    job_name = obj["metadata"]["name"]
    for task in obj["spec"]["tasks"]:
        for index in range(task["replicas"]):
            fake.add_pod(namespace, f"{task['name']}-{index}", labels={LABEL_JOB_NAME: job_name})
    obj["status"] = {"state": {"phase": "Running"}}
    queue = obj["spec"]["queue"]
    fake.set_queue_status(queue, running=1)


class FakeScheduler:
    """on_create hook admitting jobs against a fixed CPU budget.

    A job that does not fit evicts the upper half of the pods of every
    running job with a lower priority class. If it still cannot start
    ``minAvailable`` pods it stays pending and its queue's pending count
    goes up.
    """

    def __init__(self, cpu: int) -> None:
        self.free = Decimal(cpu)
        self.running: list[dict] = []

    def __call__(self, fake: FakeKubectl, obj: dict) -> None:
        if obj.get("kind") != "Job":
            return
        spec = obj["spec"]
        task = spec["tasks"][0]
        per_pod = parse_quantity(task["template"]["spec"]["containers"][0]["resources"]["requests"]["cpu"])
        priority = PRIORITY_CLASSES.get(spec.get("priorityClassName"), 0)
        if per_pod * task["replicas"] > self.free:
            self._reclaim(fake, priority)

        queue = fake.objects[(KIND_QUEUE, None, spec["queue"])].setdefault("status", {})
        startable = min(task["replicas"], int(self.free // per_pod))
        if startable < spec["minAvailable"]:
            obj["status"] = {"state": {"phase": "Pending"}}
            queue["pending"] = queue.get("pending", 0) + 1
            return

        namespace, job_name = obj["metadata"]["namespace"], obj["metadata"]["name"]
        pods = [f"{task['name']}-{index}" for index in range(startable)]
        for pod in pods:
            fake.add_pod(namespace, pod, labels={LABEL_JOB_NAME: job_name})
        self.free -= per_pod * startable
        self.running.append({"namespace": namespace, "pods": pods, "cpu": per_pod, "priority": priority})
        obj["status"] = {"state": {"phase": "Running"}}
        queue["running"] = queue.get("running", 0) + 1

    def _reclaim(self, fake: FakeKubectl, priority: int) -> None:
        for victim in self.running:
            if victim["priority"] >= priority:
                continue
            keep = len(victim["pods"]) // 2
            for pod in victim["pods"][keep:]:
                fake.objects.pop((KIND_POD, victim["namespace"], pod), None)
                self.free += victim["cpu"]
            victim["pods"] = victim["pods"][:keep]


@pytest.fixture
def fake_kubectl() -> FakeKubectl:
    fake = FakeKubectl()
    fake.add_queue(DEFAULT_QUEUE)
    return fake


@pytest.fixture
def settings() -> HarnessSettings:
    return HarnessSettings(
        poll_interval=0.01,
        queue_timeout=0.2,
        task_timeout=0.2,
        cleanup_timeout=0.2,
    )


@pytest.fixture
def cluster(fake_kubectl: FakeKubectl) -> FakeKubectl:
    """Three roomy nodes and a scheduler that starts every job at once."""
    for name in ("node-a", "node-b", "node-c"):
        fake_kubectl.add_node(name, cpu="2", memory="2Gi")
    fake_kubectl.on_create.append(run_jobs_immediately)
    return fake_kubectl


@pytest.fixture
def scheduled_cluster(fake_kubectl: FakeKubectl) -> Callable[..., FakeKubectl]:
    """Factory for a cluster of *nodes* two-CPU nodes behind a FakeScheduler."""

    def build(nodes: int, cpu: int) -> FakeKubectl:
        for index in range(nodes):
            fake_kubectl.add_node(f"node-{index}", cpu="2", memory="2Gi")
        fake_kubectl.on_create.append(FakeScheduler(cpu))
        return fake_kubectl

    return build

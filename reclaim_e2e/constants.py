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

"""Resource kinds, labels, presets, and timing defaults."""

from __future__ import annotations

# -- Resource kinds (kubectl resource names) --
KIND_NAMESPACE = "namespaces"
KIND_NODE = "nodes"
KIND_POD = "pods"
KIND_PRIORITY_CLASS = "priorityclasses.scheduling.k8s.io"
KIND_QUEUE = "queues.scheduling.volcano.sh"
KIND_JOB = "jobs.batch.volcano.sh"

# Manifest ``kind`` -> kubectl resource name.
RESOURCE_FOR_KIND = {
    "Namespace": KIND_NAMESPACE,
    "Node": KIND_NODE,
    "Pod": KIND_POD,
    "PriorityClass": KIND_PRIORITY_CLASS,
    "Queue": KIND_QUEUE,
    "Job": KIND_JOB,
}

# -- API versions --
API_CORE = "v1"
API_SCHEDULING_K8S = "scheduling.k8s.io/v1"
API_QUEUE = "scheduling.volcano.sh/v1beta1"
API_BATCH_JOB = "batch.volcano.sh/v1alpha1"

# -- Labels --
LABEL_JOB_NAME = "volcano.sh/job-name"
LABEL_MANAGED_BY = "app.kubernetes.io/managed-by"
LABEL_MANAGED_BY_VALUE = "reclaim-e2e"
LABEL_CONTEXT = "reclaim-e2e/context"
LABEL_PLACEHOLDER = "reclaim-e2e/placeholder"

# -- kubectl stderr markers --
STDERR_NOT_FOUND = "(NotFound)"
STDERR_ALREADY_EXISTS = "(AlreadyExists)"
STDERR_FORBIDDEN = "(Forbidden)"
STDERR_INVALID = ("(Invalid)", "(BadRequest)")
STDERR_ADMISSION_DENIED = "denied the request"
STDERR_QUEUE_MISSING = ("unable to find job queue", "queue not found")

# -- Queues --
DEFAULT_QUEUE = "default"
DEFAULT_QUEUE_WEIGHT = 1

# -- Priority classes --
PRIORITY_LOW = "low-priority"
PRIORITY_HIGH = "high-priority"
PRIORITY_CLASSES = {PRIORITY_LOW: 10, PRIORITY_HIGH: 10000}

# -- Resource presets --
CPU1_MEM1 = {"cpu": "1000m", "memory": "1024Mi"}
CPU4_MEM4 = {"cpu": "4000m", "memory": "4096Mi"}
ONE_CPU = {"cpu": "1000m"}

# -- Images --
DEFAULT_JOB_IMAGE = "nginx:1.14"
DEFAULT_PLACEHOLDER_IMAGE = "registry.k8s.io/pause:3.9"

# -- Defaults --
DEFAULT_SCHEDULER_NAME = "volcano"
DEFAULT_NAMESPACE_PREFIX = "reclaim-e2e"
DEFAULT_RESTART_POLICY = "OnFailure"

# -- Timing (seconds) --
DEFAULT_POLL_INTERVAL_SECONDS = 0.5
DEFAULT_QUEUE_TIMEOUT_SECONDS = 60
DEFAULT_TASK_TIMEOUT_SECONDS = 120
DEFAULT_CLEANUP_TIMEOUT_SECONDS = 120
DEFAULT_KUBECTL_TIMEOUT_SECONDS = 30

KUBECTL_CREATE_MAX_RETRIES = 3
KUBECTL_CREATE_RETRY_WAIT_SECONDS = 2

# -- Pod phases that no longer hold node resources --
TERMINAL_POD_PHASES = ("Succeeded", "Failed")
READY_POD_PHASES = ("Running", "Succeeded")

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

"""Status projections of queues and jobs, and the queue conditions over them.

Each queue dimension (admission state, running groups, pending groups) is
checked on its own; several can hold at once, so a condition names exactly
one dimension and the value expected there.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Union


class QueueState(str, Enum):
    OPEN = "Open"
    CLOSED = "Closed"
    CLOSING = "Closing"
    UNKNOWN = "Unknown"

    @classmethod
    def parse(cls, value: str | None) -> QueueState:
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN


class JobPhase(str, Enum):
    PENDING = "Pending"
    ABORTING = "Aborting"
    ABORTED = "Aborted"
    RUNNING = "Running"
    RESTARTING = "Restarting"
    COMPLETING = "Completing"
    COMPLETED = "Completed"
    TERMINATING = "Terminating"
    TERMINATED = "Terminated"
    FAILED = "Failed"
    UNKNOWN = "Unknown"

    @classmethod
    def parse(cls, value: str | None) -> JobPhase:
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN


@dataclass(frozen=True)
class QueueStatus:
    """Harness-visible projection of a queue's status."""

    name: str
    state: QueueState
    running: int = 0
    pending: int = 0
    inqueue: int = 0

    @classmethod
    def from_object(cls, obj: dict) -> QueueStatus:
        status = obj.get("status") or {}
        return cls(
            name=obj.get("metadata", {}).get("name", ""),
            state=QueueState.parse(status.get("state")),
            running=int(status.get("running", 0)),
            pending=int(status.get("pending", 0)),
            inqueue=int(status.get("inqueue", 0)),
        )

    def __str__(self) -> str:
        return (f"queue {self.name}: state={self.state.value} running={self.running} "
                f"pending={self.pending} inqueue={self.inqueue}")


@dataclass(frozen=True)
class JobStatus:
    """Harness-visible projection of a job's status."""

    name: str
    phase: JobPhase
    running: int = 0
    pending: int = 0
    succeeded: int = 0
    min_available: int = 0

    @classmethod
    def from_object(cls, obj: dict) -> JobStatus:
        status = obj.get("status") or {}
        return cls(
            name=obj.get("metadata", {}).get("name", ""),
            phase=JobPhase.parse((status.get("state") or {}).get("phase")),
            running=int(status.get("running", 0)),
            pending=int(status.get("pending", 0)),
            succeeded=int(status.get("succeeded", 0)),
            min_available=int(status.get("minAvailable", 0)),
        )

    def __str__(self) -> str:
        return (f"job {self.name}: phase={self.phase.value} running={self.running} "
                f"pending={self.pending} succeeded={self.succeeded}")


# ============================================================================
# Queue conditions
# ============================================================================

@dataclass(frozen=True)
class AdmissionIs:
    state: QueueState

    def holds(self, status: QueueStatus) -> bool:
        return status.state is self.state

    def __str__(self) -> str:
        return f"state == {self.state.value}"


@dataclass(frozen=True)
class RunningCount:
    count: int

    def holds(self, status: QueueStatus) -> bool:
        return status.running == self.count

    def __str__(self) -> str:
        return f"running == {self.count}"


@dataclass(frozen=True)
class PendingCount:
    count: int

    def holds(self, status: QueueStatus) -> bool:
        return status.pending == self.count

    def __str__(self) -> str:
        return f"pending == {self.count}"


QueueCondition = Union[AdmissionIs, RunningCount, PendingCount]

QUEUE_OPEN = AdmissionIs(QueueState.OPEN)
QUEUE_RUNNING = RunningCount(1)
QUEUE_PENDING = PendingCount(1)

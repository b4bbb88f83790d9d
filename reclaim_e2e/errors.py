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

"""Error taxonomy shared by the kubectl client, poller, and scenarios."""

from __future__ import annotations

from typing import Any

from reclaim_e2e.constants import (
    STDERR_ADMISSION_DENIED,
    STDERR_ALREADY_EXISTS,
    STDERR_FORBIDDEN,
    STDERR_INVALID,
    STDERR_NOT_FOUND,
    STDERR_QUEUE_MISSING,
)


class ReclaimE2EError(Exception):
    """Base class for all harness errors."""


# ============================================================================
# Cluster errors
# ============================================================================

class ClusterError(ReclaimE2EError):
    """A kubectl call failed.

    Attributes:
        args_used: kubectl arguments of the failed call.
        stderr: Raw stderr of the call.
    """

    def __init__(self, message: str, *, args_used: list[str] | None = None, stderr: str = "") -> None:
        super().__init__(message)
        self.args_used = list(args_used or [])
        self.stderr = stderr


class NotFoundError(ClusterError):
    """The object does not exist (yet, or any more)."""


class AlreadyExistsError(ClusterError):
    """The object already exists."""


class ForbiddenError(ClusterError):
    """The caller lacks permission for the request."""


class InvalidRequestError(ClusterError):
    """The request or the object it carries is malformed."""


class AdmissionDeniedError(ClusterError):
    """An admission webhook rejected the request."""


class QueueNotFoundError(AdmissionDeniedError):
    """A job was submitted against a queue that does not exist."""


def classify_kubectl_error(args: list[str], stderr: str) -> ClusterError:
    """Map kubectl stderr to the most specific ClusterError subclass.

    Args:
        args: kubectl arguments of the failed call.
        stderr: Raw stderr of the call.

    Returns:
        A ClusterError instance; not raised.
    """
    message = stderr.strip() or f"kubectl {' '.join(args)} failed"
    if STDERR_ADMISSION_DENIED in stderr:
        if any(marker in stderr for marker in STDERR_QUEUE_MISSING):
            cls: type[ClusterError] = QueueNotFoundError
        else:
            cls = AdmissionDeniedError
    elif STDERR_NOT_FOUND in stderr:
        cls = NotFoundError
    elif STDERR_ALREADY_EXISTS in stderr:
        cls = AlreadyExistsError
    elif STDERR_FORBIDDEN in stderr:
        cls = ForbiddenError
    elif any(marker in stderr for marker in STDERR_INVALID):
        cls = InvalidRequestError
    else:
        cls = ClusterError
    return cls(message, args_used=args, stderr=stderr)


# ============================================================================
# Context and condition errors
# ============================================================================

class ContextSetupError(ReclaimE2EError):
    """A TestContext could not provision its fixtures."""


class ConditionError(ReclaimE2EError):
    """A polled condition did not hold.

    Attributes:
        description: What was being waited for.
        last_observed: Last state read before giving up.
    """

    def __init__(self, description: str, last_observed: Any, detail: str = "") -> None:
        message = f"{description}: {detail}" if detail else description
        super().__init__(f"{message} (last observed: {last_observed!r})")
        self.description = description
        self.last_observed = last_observed


class ConditionTimeoutError(ConditionError):
    """The timeout elapsed with the condition never observed."""


class StructuralConditionError(ConditionError):
    """The condition can never be satisfied; polling stopped early."""


class ScenarioFailure(ReclaimE2EError):
    """An expectation inside a scenario body was not met.

    Attributes:
        step: Description of the failed step.
        last_observed: Last state read for the step, if any.
    """

    def __init__(self, step: str, reason: str, last_observed: Any = None) -> None:
        super().__init__(f"{step}: {reason}")
        self.step = step
        self.reason = reason
        self.last_observed = last_observed

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

"""Bounded condition polling over eventually-consistent cluster state.

``poll_until`` reads state from a source on a fixed cadence and ends in one
of three ways:

* ``SATISFIED``: the predicate held; returns at once.
* ``STRUCTURAL_FAILURE``: the source raised an error that no amount of
  waiting can fix (permission denial, malformed request, object deleted
  after it was seen). No further attempts are made.
* ``TIMEOUT``: the condition was never observed within the timeout.

A ``NotFoundError`` before the object has been seen even once is not an
error: the controller creating it simply has not caught up yet.
"""

from __future__ import annotations

import math
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, TypeVar

from tenacity import RetryError, Retrying, retry_if_result, stop_after_attempt, stop_after_delay, wait_fixed

from reclaim_e2e import logger
from reclaim_e2e.errors import (
    ClusterError,
    ConditionTimeoutError,
    NotFoundError,
    StructuralConditionError,
)

T = TypeVar("T")


class PollOutcome(str, Enum):
    SATISFIED = "satisfied"
    STRUCTURAL_FAILURE = "structural-failure"
    TIMEOUT = "timeout"


@dataclass(frozen=True)
class PollResult:
    """Terminal result of a ``poll_until`` call.

    Attributes:
        outcome: How polling ended.
        description: What was being waited for.
        last_observed: Last state the source returned, or None if the
            object was never seen.
        error: The structural error that stopped polling, if any.
        attempts: Number of times the source was read.
        elapsed: Seconds spent polling.
    """

    outcome: PollOutcome
    description: str
    last_observed: Any = None
    error: BaseException | None = None
    attempts: int = 0
    elapsed: float = 0.0

    @property
    def satisfied(self) -> bool:
        return self.outcome is PollOutcome.SATISFIED

    def __bool__(self) -> bool:
        return self.satisfied

    def raise_for_outcome(self) -> None:
        """Raise the ConditionError matching a failed outcome.

        Raises:
            StructuralConditionError: If polling stopped on a structural error.
            ConditionTimeoutError: If the condition was never observed.
        """
        if self.outcome is PollOutcome.STRUCTURAL_FAILURE:
            raise StructuralConditionError(self.description, self.last_observed, str(self.error)) from self.error
        if self.outcome is PollOutcome.TIMEOUT:
            raise ConditionTimeoutError(
                self.description, self.last_observed,
                f"not satisfied after {self.elapsed:.1f}s ({self.attempts} attempts)",
            )


class _Observation(Generic[T]):
    def __init__(self) -> None:
        self.last: T | None = None
        self.seen = False
        self.attempts = 0


def poll_until(
    source: Callable[[], T],
    predicate: Callable[[T], bool],
    *,
    interval: float,
    timeout: float,
    description: str = "condition",
    sleep: Callable[[float], None] = time.sleep,
) -> PollResult:
    """Re-read *source* until *predicate* holds, a structural error occurs, or time runs out.

    Args:
        source: Reads the current state; may raise ClusterError.
        predicate: Decides whether the observed state is the desired one.
        interval: Seconds between reads.
        timeout: Overall seconds allowed.
        description: Human-readable condition, used in results and logs.
        sleep: Sleep function between reads (injectable for tests).

    Returns:
        A PollResult; never raises for cluster errors.

    Raises:
        ValueError: If interval is not positive or timeout is negative.
    """
    if interval <= 0:
        raise ValueError(f"Poll interval must be positive, got {interval}")
    if timeout < 0:
        raise ValueError(f"Poll timeout must not be negative, got {timeout}")
    obs: _Observation[T] = _Observation()

    def _attempt() -> bool:
        obs.attempts += 1
        try:
            observed = source()
        except NotFoundError:
            if obs.seen:
                raise
            logger.debug("%s: object not visible yet", description)
            return False
        obs.seen = True
        obs.last = observed
        return bool(predicate(observed))

    max_attempts = max(1, math.ceil(timeout / interval) + 1)
    retrying = Retrying(
        stop=stop_after_delay(timeout) | stop_after_attempt(max_attempts),
        wait=wait_fixed(interval),
        retry=retry_if_result(lambda ok: not ok),
        sleep=sleep,
    )

    start = time.monotonic()
    try:
        retrying(_attempt)
    except RetryError:
        outcome, error = PollOutcome.TIMEOUT, None
    except ClusterError as err:
        outcome, error = PollOutcome.STRUCTURAL_FAILURE, err
    else:
        outcome, error = PollOutcome.SATISFIED, None
    elapsed = time.monotonic() - start

    result = PollResult(
        outcome=outcome,
        description=description,
        last_observed=obs.last,
        error=error,
        attempts=obs.attempts,
        elapsed=elapsed,
    )
    if outcome is PollOutcome.SATISFIED:
        logger.debug("%s: satisfied after %d attempts", description, obs.attempts)
    else:
        logger.info("%s: %s after %d attempts (last observed: %s)",
                    description, outcome.value, obs.attempts, obs.last)
    return result

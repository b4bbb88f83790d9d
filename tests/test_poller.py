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

import pytest

from reclaim_e2e.errors import ConditionTimeoutError, ForbiddenError, NotFoundError, StructuralConditionError
from reclaim_e2e.poller import PollOutcome, poll_until


class Source:
    """Returns (or raises) scripted values in order, then repeats the last one."""

    def __init__(self, *script):
        self.script = list(script)
        self.reads = 0

    def __call__(self):
        self.reads += 1
        item = self.script.pop(0) if len(self.script) > 1 else self.script[0]
        if isinstance(item, Exception):
            raise item
        return item


def no_sleep(_seconds):
    pass


def poll(source, predicate, timeout=1.0):
    return poll_until(source, predicate, interval=0.1, timeout=timeout, description="test", sleep=no_sleep)


def test_returns_once_predicate_holds():
    source = Source(0, 0, 1, 2)
    result = poll(source, lambda v: v == 1)
    assert result.outcome is PollOutcome.SATISFIED
    assert result
    assert result.last_observed == 1
    assert result.attempts == 3
    assert source.reads == 3


def test_not_found_before_first_sighting_is_retried():
    source = Source(NotFoundError("not yet"), NotFoundError("not yet"), {"state": "Open"})
    result = poll(source, lambda v: v["state"] == "Open")
    assert result.satisfied
    assert result.attempts == 3


def test_forbidden_stops_after_one_read():
    source = Source(ForbiddenError("forbidden"))
    result = poll(source, lambda v: True)
    assert result.outcome is PollOutcome.STRUCTURAL_FAILURE
    assert isinstance(result.error, ForbiddenError)
    assert source.reads == 1
    assert not result


def test_deleted_after_seen_is_structural():
    source = Source(1, NotFoundError("gone"))
    result = poll(source, lambda v: v == 5)
    assert result.outcome is PollOutcome.STRUCTURAL_FAILURE
    assert result.last_observed == 1
    assert source.reads == 2


def test_timeout_reports_last_observed():
    source = Source(0, 1, 2)
    result = poll(source, lambda v: v == 99, timeout=0.5)
    assert result.outcome is PollOutcome.TIMEOUT
    assert result.last_observed == 2
    # ceil(0.5 / 0.1) + 1
    assert result.attempts == 6


def test_timeout_when_never_seen():
    result = poll(Source(NotFoundError("missing")), lambda v: True, timeout=0.3)
    assert result.outcome is PollOutcome.TIMEOUT
    assert result.last_observed is None


def test_raise_for_outcome():
    satisfied = poll(Source(1), lambda v: v == 1)
    satisfied.raise_for_outcome()

    with pytest.raises(ConditionTimeoutError) as excinfo:
        poll(Source(0), lambda v: v == 1, timeout=0.2).raise_for_outcome()
    assert excinfo.value.last_observed == 0

    with pytest.raises(StructuralConditionError):
        poll(Source(ForbiddenError("nope")), lambda v: True).raise_for_outcome()


def test_sleeps_between_reads_with_interval():
    slept = []
    poll_until(Source(0, 1), lambda v: v == 1, interval=0.25, timeout=5, sleep=slept.append)
    assert slept == [0.25]


@pytest.mark.parametrize("interval,timeout", [(0, 1.0), (-0.1, 1.0), (0.1, -1.0)])
def test_rejects_invalid_timing(interval, timeout):
    source = Source(1)
    with pytest.raises(ValueError):
        poll_until(source, bool, interval=interval, timeout=timeout, description="test", sleep=no_sleep)
    assert source.reads == 0

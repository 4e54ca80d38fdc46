# /*
# Copyright 2026 The turtles-e2e Authors.
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


"""Bounded fixed-period polling shared by every readiness wait."""

from __future__ import annotations

import time
from collections.abc import Callable

from tenacity import RetryError, Retrying, retry_if_result, stop_after_delay, wait_fixed

from turtles_e2e import logger
from turtles_e2e.config import IntervalProfile
from turtles_e2e.errors import WaitTimeoutError

Probe = Callable[[], bool]


def _not_ready(ready: bool) -> bool:
    return not ready


def wait_until_ready(
    probe: Probe,
    profile: IntervalProfile,
    description: str,
    *,
    sleep: Callable[[float], None] = time.sleep,
) -> None:
    """Poll *probe* every ``profile.poll_period`` until it returns True.

    A probe returns False while the remote condition does not hold yet and
    raises ``ProbeError`` for faults that polling cannot fix; those propagate
    immediately without further attempts.

    Args:
        probe: Side-effect-free readiness check.
        profile: Timeout and poll period for this wait.
        description: Human-readable name of the awaited condition.
        sleep: Sleep function, replaceable in tests.

    Raises:
        WaitTimeoutError: If the probe is not ready within ``profile.timeout``.
        ProbeError: If the probe reports a non-transient fault.
    """
    logger.debug("Waiting for %s (timeout %gs, poll %gs)", description, profile.timeout, profile.poll_period)
    retrying = Retrying(
        stop=stop_after_delay(profile.timeout),
        wait=wait_fixed(profile.poll_period),
        retry=retry_if_result(_not_ready),
        sleep=sleep,
    )
    try:
        retrying(probe)
    except RetryError as err:
        raise WaitTimeoutError(description, profile.timeout) from err
    logger.debug("%s is ready", description)

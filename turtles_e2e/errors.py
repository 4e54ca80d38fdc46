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


"""Exception hierarchy for setup stages, readiness waits, scenarios, and cleanup."""

from __future__ import annotations


class E2EError(RuntimeError):
    """Base class for every error raised by the suite."""


class ConfigError(E2EError):
    """Missing or invalid configuration variable, interval, or file."""


class ProbeError(E2EError):
    """A readiness probe detected a fault that polling will not fix."""


class WaitTimeoutError(E2EError, TimeoutError):
    """A readiness probe never reported success within its profile timeout."""

    def __init__(self, description: str, timeout: float) -> None:
        super().__init__(f"{description} not ready within {timeout:g}s")
        self.description = description
        self.timeout = timeout


class StateError(E2EError):
    """Environment state was rewritten or read before being published."""


class StageError(E2EError):
    """A setup stage failed."""

    def __init__(self, stage: str, cause: BaseException) -> None:
        super().__init__(f"stage '{stage}' failed: {cause}")
        self.stage = stage
        self.cause = cause


class ScenarioError(E2EError):
    """A scenario transition failed; carries the last state reached."""

    def __init__(self, scenario: str, state, cause: BaseException, states=()) -> None:
        super().__init__(f"scenario '{scenario}' failed in state {state.value}: {cause}")
        self.scenario = scenario
        self.state = state
        self.cause = cause
        self.states = list(states)


class CleanupError(E2EError):
    """A teardown step failed."""

    def __init__(self, step: str, cause: BaseException) -> None:
        super().__init__(f"cleanup step '{step}' failed: {cause}")
        self.step = step
        self.cause = cause

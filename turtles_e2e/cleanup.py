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


"""Teardown of provisioned state in reverse setup order."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from rich.panel import Panel

from turtles_e2e import console, logger
from turtles_e2e.cluster import dispose_bootstrap_cluster
from turtles_e2e.components import GiteaUninstallRequest, uninstall_gitea
from turtles_e2e.context import StageContext
from turtles_e2e.errors import CleanupError
from turtles_e2e.state import EnvironmentState


@dataclass(frozen=True)
class CleanupStep:
    """One teardown step.

    Attributes:
        name: Step name used in reports.
        run: Performs the teardown.
        applies: Whether the resources this step removes were provisioned.
    """

    name: str
    run: Callable[[StageContext], None]
    applies: Callable[[EnvironmentState], bool]


def _uninstall_gitea(ctx: StageContext) -> None:
    uninstall_gitea(ctx, GiteaUninstallRequest(namespace=ctx.env.require("gitea_namespace")))


# Platform and controller go away with the bootstrap cluster.
DEFAULT_CLEANUP_STEPS: tuple[CleanupStep, ...] = (
    CleanupStep("gitea", _uninstall_gitea, lambda env: "gitea_namespace" in env.published()),
    CleanupStep("bootstrap", dispose_bootstrap_cluster, lambda env: "bootstrap_cluster" in env.published()),
)


def run_cleanup(
    ctx: StageContext,
    skip: bool,
    steps: tuple[CleanupStep, ...] = DEFAULT_CLEANUP_STEPS,
) -> list[CleanupError]:
    """Run every applicable teardown step, collecting failures.

    Args:
        ctx: Stage context with the environment to tear down.
        skip: Leave everything in place for inspection.
        steps: Steps in execution order.

    Returns:
        Errors from failed steps; later steps still ran.
    """
    if skip:
        console.print("[yellow]\u26a0\ufe0f  Skipping resource cleanup; environment left in place[/yellow]")
        return []

    console.print(Panel.fit("Cleaning up test environment", style="bold blue"))
    errors: list[CleanupError] = []
    for step in steps:
        if not step.applies(ctx.env):
            logger.debug("Cleanup step %s has nothing to remove", step.name)
            continue
        try:
            step.run(ctx)
        except Exception as err:
            error = CleanupError(step.name, err)
            logger.warning("%s", error)
            errors.append(error)
    return errors

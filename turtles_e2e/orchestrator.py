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


"""Pipeline that provisions the environment, runs scenarios, and always cleans up."""

from __future__ import annotations

from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass, field

from rich.panel import Panel
from rich.table import Table

from turtles_e2e import console, logger
from turtles_e2e.cleanup import DEFAULT_CLEANUP_STEPS, CleanupStep, run_cleanup
from turtles_e2e.cluster import build_bootstrap_request, setup_bootstrap_cluster
from turtles_e2e.components import (
    build_gitea_request,
    build_ingress_request,
    build_rancher_request,
    build_turtles_request,
    deploy_gitea,
    deploy_ingress,
    deploy_rancher,
    deploy_turtles,
)
from turtles_e2e.constants import (
    BOOTSTRAP_CLUSTER_NAME_VAR,
    DEFAULT_BOOTSTRAP_CLUSTER_NAME,
    REQUIRED_COMMANDS,
    REQUIRED_WAIT_PROFILES,
)
from turtles_e2e.context import StageContext
from turtles_e2e.errors import CleanupError, ScenarioError, StageError, StateError
from turtles_e2e.hooks import Hooks, PreSetupResult
from turtles_e2e.scenario import GitOpsBackend, ScenarioResult, ScenarioRunner, ScenarioState
from turtles_e2e.suites import ScenarioSpec
from turtles_e2e.utils import require_command


@dataclass(frozen=True)
class Stage:
    """One setup stage; stages run left to right and each sees its predecessors' outputs."""

    name: str
    run: Callable[[StageContext], None]


@dataclass
class PipelineResult:
    """Aggregate outcome of one pipeline run.

    Attributes:
        setup_error: The failed setup stage, if any; scenarios did not run.
        scenario_results: Scenarios that passed.
        scenario_errors: Scenarios that failed.
        cleanup_errors: Teardown failures; reported but never affect the exit code.
        cleanup_ran: Number of times cleanup was invoked.
    """

    setup_error: StageError | None = None
    scenario_results: list[ScenarioResult] = field(default_factory=list)
    scenario_errors: list[ScenarioError] = field(default_factory=list)
    cleanup_errors: list[CleanupError] = field(default_factory=list)
    cleanup_ran: int = 0

    @property
    def passed(self) -> bool:
        return self.setup_error is None and not self.scenario_errors

    @property
    def exit_code(self) -> int:
        return 0 if self.passed else 1


def default_runner_factory(ctx: StageContext) -> ScenarioRunner:
    return ScenarioRunner(GitOpsBackend(ctx), ctx.intervals)


@contextmanager
def cleanup_scope(
    ctx: StageContext,
    skip: bool,
    steps: Sequence[CleanupStep],
    result: PipelineResult,
) -> Iterator[None]:
    """Run the body, then always run cleanup exactly once."""
    try:
        yield
    finally:
        result.cleanup_errors = run_cleanup(ctx, skip, tuple(steps))
        result.cleanup_ran += 1


class Pipeline:
    """Fixed-order setup pipeline: bootstrap, ingress, rancher, turtles, gitea.

    Args:
        ctx: Stage context holding config and the (empty) environment state.
        hooks: Strategies that parameterize stage requests.
        skip_cleanup: Leave provisioned resources in place.
        stages: Override the stage list, mainly for tests.
        cleanup_steps: Override the teardown steps, mainly for tests.
        runner_factory: Builds the scenario runner once setup succeeded.
    """

    def __init__(
        self,
        ctx: StageContext,
        hooks: Hooks | None = None,
        *,
        skip_cleanup: bool = False,
        stages: Sequence[Stage] | None = None,
        cleanup_steps: Sequence[CleanupStep] = DEFAULT_CLEANUP_STEPS,
        runner_factory: Callable[[StageContext], ScenarioRunner] = default_runner_factory,
    ) -> None:
        self.ctx = ctx
        self.hooks = hooks or Hooks()
        self.skip_cleanup = skip_cleanup
        self.stages = tuple(stages) if stages is not None else self.default_stages()
        self.cleanup_steps = tuple(cleanup_steps)
        self.runner_factory = runner_factory
        self._pre_setup = PreSetupResult()

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def default_stages(self) -> tuple[Stage, ...]:
        return (
            Stage("bootstrap", self._bootstrap),
            Stage("ingress", self._ingress),
            Stage("rancher", self._rancher),
            Stage("turtles", self._turtles),
            Stage("gitea", self._gitea),
        )

    def _bootstrap(self, ctx: StageContext) -> None:
        self._pre_setup = self.hooks.pre_cluster_setup(ctx)
        setup_bootstrap_cluster(ctx, build_bootstrap_request(ctx, self._pre_setup.custom_cluster_provider))

    def _ingress(self, ctx: StageContext) -> None:
        deploy_ingress(ctx, build_ingress_request(ctx, self._pre_setup.ingress_type))

    def _rancher(self, ctx: StageContext) -> None:
        deploy_rancher(ctx, self.hooks.pre_rancher_install(ctx, build_rancher_request(ctx)))

    def _turtles(self, ctx: StageContext) -> None:
        deploy_turtles(ctx, build_turtles_request(ctx))

    def _gitea(self, ctx: StageContext) -> None:
        deploy_gitea(ctx, self.hooks.pre_gitea_install(ctx, build_gitea_request(ctx)))

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def prepare(self) -> None:
        """Check required tools and wait profiles, and create the artifacts folder.

        Raises:
            ConfigError: If a tool, a wait profile, or the artifacts folder variable is missing.
        """
        console.print(Panel.fit("Checking prerequisites", style="bold blue"))
        for cmd in REQUIRED_COMMANDS:
            require_command(cmd)
        config = self.ctx.config
        cluster_name = config.get_variable(BOOTSTRAP_CLUSTER_NAME_VAR, DEFAULT_BOOTSTRAP_CLUSTER_NAME)
        for name in REQUIRED_WAIT_PROFILES:
            config.get_intervals(name, cluster_name)
        artifacts = config.artifacts_folder
        artifacts.mkdir(parents=True, exist_ok=True)
        console.print(f"[green]\u2705 All required tools are available; artifacts in {artifacts}[/green]")

    def setup(self) -> None:
        """Run every stage in order, stopping at the first failure.

        Raises:
            StageError: Wrapping the first stage failure.
        """
        for stage in self.stages:
            logger.info("Running setup stage %s", stage.name)
            try:
                stage.run(self.ctx)
            except Exception as err:
                raise StageError(stage.name, err) from err

    def run(self, scenarios: Sequence[ScenarioSpec]) -> PipelineResult:
        """Provision, run *scenarios*, and tear down.

        Setup and scenario failures are recorded on the result; cleanup runs
        exactly once whatever happened before it.
        """
        result = PipelineResult()
        with cleanup_scope(self.ctx, self.skip_cleanup, self.cleanup_steps, result):
            try:
                self.setup()
            except StageError as err:
                console.print(f"[red]\u274c {err}[/red]")
                result.setup_error = err
                return result

            runner = self.runner_factory(self.ctx)
            for spec in scenarios:
                try:
                    scenario = spec.bind(self.ctx.env, self.skip_cleanup)
                except StateError as err:
                    result.scenario_errors.append(ScenarioError(spec.name, ScenarioState.CREATED, err))
                    continue
                try:
                    result.scenario_results.append(runner.run(scenario, self.ctx.env))
                except ScenarioError as err:
                    result.scenario_errors.append(err)
        return result


def print_summary(result: PipelineResult) -> None:
    """Print scenario outcomes followed by cleanup warnings."""
    table = Table(title="E2E results")
    table.add_column("Scenario")
    table.add_column("Outcome")
    table.add_column("Last state")
    if result.setup_error:
        table.add_row(f"setup ({result.setup_error.stage})", "[red]failed[/red]", "-")
    for passed in result.scenario_results:
        final = passed.final_state.value if passed.final_state else "-"
        table.add_row(passed.name, "[green]passed[/green]", final)
    for failed in result.scenario_errors:
        table.add_row(failed.scenario, "[red]failed[/red]", failed.state.value)
    console.print(table)
    for err in result.cleanup_errors:
        console.print(f"[yellow]\u26a0\ufe0f  {err}[/yellow]")

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

"""Tests for the setup pipeline, its cleanup guarantee, and the exit code."""

from unittest.mock import MagicMock, patch

import pytest

from turtles_e2e.cleanup import CleanupStep
from turtles_e2e.config import E2EConfig, IntervalProfile, IntervalRegistry
from turtles_e2e.context import StageContext
from turtles_e2e.errors import ConfigError, ScenarioError
from turtles_e2e.orchestrator import Pipeline, PipelineResult, Stage, print_summary
from turtles_e2e.scenario import ScenarioResult, ScenarioRunner, ScenarioState
from turtles_e2e.suites import IMPORT_GITOPS_SUITE


class FakeRunner:
    def __init__(self, failing=()):
        self.failing = set(failing)
        self.ran = []

    def run(self, scenario, env):
        self.ran.append(scenario.name)
        if scenario.name in self.failing:
            raise ScenarioError(scenario.name, ScenarioState.IMPORTING, RuntimeError("import timed out"))
        return ScenarioResult(scenario.name, [ScenarioState.CREATED, ScenarioState.DELETED])


def _publish_gitea(ctx):
    ctx.env.publish("gitea", git_address="http://172.18.0.2:30080", git_auth_secret_name="basic-auth-secret")


def _publish_rancher(ctx):
    ctx.env.publish("rancher", host_name="rancher.example.com")


def _stages(calls, fail_at=None):
    def _make(name, publish=None):
        def _run(ctx):
            calls.append(name)
            if name == fail_at:
                raise RuntimeError(f"{name} exploded")
            if publish:
                publish(ctx)
        return Stage(name, _run)

    return (
        _make("bootstrap"),
        _make("ingress"),
        _make("rancher", _publish_rancher),
        _make("turtles"),
        _make("gitea", _publish_gitea),
    )


@pytest.fixture
def cleanup_calls():
    return []


@pytest.fixture
def cleanup_steps(cleanup_calls):
    return (CleanupStep("teardown", lambda ctx: cleanup_calls.append("teardown"), lambda env: True),)


def _pipeline(ctx, calls, cleanup_steps, fail_at=None, runner=None, skip_cleanup=False):
    runner = runner or FakeRunner()
    return Pipeline(
        ctx,
        skip_cleanup=skip_cleanup,
        stages=_stages(calls, fail_at),
        cleanup_steps=cleanup_steps,
        runner_factory=lambda _: runner,
    )


def test_default_stage_order(ctx):
    names = [stage.name for stage in Pipeline(ctx).stages]

    assert names == ["bootstrap", "ingress", "rancher", "turtles", "gitea"]


def test_successful_run(ctx, cleanup_steps, cleanup_calls):
    calls = []
    runner = FakeRunner()

    result = _pipeline(ctx, calls, cleanup_steps, runner=runner).run(IMPORT_GITOPS_SUITE)

    assert calls == ["bootstrap", "ingress", "rancher", "turtles", "gitea"]
    assert runner.ran == ["docker-kubeadm", "docker-rke2"]
    assert [r.name for r in result.scenario_results] == ["docker-kubeadm", "docker-rke2"]
    assert result.passed
    assert result.exit_code == 0
    assert cleanup_calls == ["teardown"]
    assert result.cleanup_ran == 1


@pytest.mark.parametrize("fail_at", ["bootstrap", "ingress", "rancher", "turtles", "gitea"])
def test_stage_failure_stops_setup_and_still_cleans_up_once(ctx, cleanup_steps, cleanup_calls, fail_at):
    calls = []
    runner = FakeRunner()

    result = _pipeline(ctx, calls, cleanup_steps, fail_at=fail_at, runner=runner).run(IMPORT_GITOPS_SUITE)

    assert calls[-1] == fail_at
    assert result.setup_error.stage == fail_at
    assert f"{fail_at} exploded" in str(result.setup_error)
    assert runner.ran == []
    assert cleanup_calls == ["teardown"]
    assert result.cleanup_ran == 1
    assert result.exit_code == 1


def test_failing_scenario_does_not_stop_the_next(ctx, cleanup_steps, cleanup_calls):
    runner = FakeRunner(failing={"docker-kubeadm"})

    result = _pipeline(ctx, [], cleanup_steps, runner=runner).run(IMPORT_GITOPS_SUITE)

    assert runner.ran == ["docker-kubeadm", "docker-rke2"]
    assert [e.scenario for e in result.scenario_errors] == ["docker-kubeadm"]
    assert result.scenario_errors[0].state == ScenarioState.IMPORTING
    assert result.exit_code == 1
    assert cleanup_calls == ["teardown"]


def test_unexpected_scenario_error_is_recorded_and_next_scenario_runs(ctx, cleanup_steps, cleanup_calls):
    backend = MagicMock()
    backend.render_manifest.side_effect = UnicodeDecodeError("utf-8", b"\xff", 0, 1, "invalid start byte")
    runner = ScenarioRunner(backend, lambda name: IntervalProfile(name, timeout=0.06, poll_period=0.005))
    ctx.env.publish("turtles", turtles_namespace="rancher-turtles-system")

    result = _pipeline(ctx, [], cleanup_steps, runner=runner).run(IMPORT_GITOPS_SUITE)

    assert [e.scenario for e in result.scenario_errors] == ["docker-kubeadm", "docker-rke2"]
    assert all(e.state == ScenarioState.CREATED for e in result.scenario_errors)
    assert all(isinstance(e.cause, UnicodeDecodeError) for e in result.scenario_errors)
    assert backend.cleanup.call_count == 2
    assert result.exit_code == 1
    assert cleanup_calls == ["teardown"]


def test_cleanup_failure_does_not_change_exit_code(ctx):
    steps = (CleanupStep("teardown", MagicMock(side_effect=RuntimeError("kind delete failed")), lambda env: True),)

    result = _pipeline(ctx, [], steps).run(IMPORT_GITOPS_SUITE)

    assert result.exit_code == 0
    assert [e.step for e in result.cleanup_errors] == ["teardown"]


def test_skip_cleanup(ctx, cleanup_steps, cleanup_calls):
    result = _pipeline(ctx, [], cleanup_steps, skip_cleanup=True).run(IMPORT_GITOPS_SUITE)

    assert cleanup_calls == []
    assert result.cleanup_ran == 1
    assert result.exit_code == 0


def test_scenario_needing_unpublished_state_fails_in_created(ctx, cleanup_steps):
    stages = (Stage("bootstrap", lambda c: None),)
    pipeline = Pipeline(ctx, stages=stages, cleanup_steps=cleanup_steps, runner_factory=lambda _: FakeRunner())

    result = pipeline.run(IMPORT_GITOPS_SUITE[:1])

    assert result.scenario_errors[0].state == ScenarioState.CREATED
    assert "git_address" in str(result.scenario_errors[0])
    assert result.exit_code == 1


def test_prepare_checks_tools_and_creates_artifacts(ctx):
    with patch("turtles_e2e.orchestrator.require_command") as require:
        Pipeline(ctx).prepare()

    assert [c.args[0] for c in require.call_args_list] == ["kubectl", "helm", "git"]
    assert ctx.config.artifacts_folder.is_dir()


def test_prepare_missing_tool(ctx):
    with patch("turtles_e2e.orchestrator.require_command", side_effect=ConfigError("Required command 'helm'")):
        with pytest.raises(ConfigError, match="helm"):
            Pipeline(ctx).prepare()


def test_prepare_rejects_missing_wait_profile(tmp_path, monkeypatch):
    monkeypatch.delenv("BOOTSTRAP_CLUSTER_NAME", raising=False)
    intervals = IntervalRegistry.from_raw({"default/wait-rancher": ["1m", "1s"]})
    ctx = StageContext(config=E2EConfig("partial", {"ARTIFACTS_FOLDER": str(tmp_path / "artifacts")}, intervals))

    with patch("turtles_e2e.orchestrator.require_command"):
        with pytest.raises(ConfigError, match="wait-controllers"):
            Pipeline(ctx).prepare()

    assert not (tmp_path / "artifacts").exists()


def test_exit_code_of_empty_result():
    assert PipelineResult().exit_code == 0


def test_print_summary(ctx, cleanup_steps):
    runner = FakeRunner(failing={"docker-rke2"})
    result = _pipeline(ctx, [], cleanup_steps, runner=runner).run(IMPORT_GITOPS_SUITE)

    print_summary(result)

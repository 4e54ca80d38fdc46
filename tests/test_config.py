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

"""Tests for the interval registry and e2e config loading."""

import pytest

from conftest import make_config
from turtles_e2e.config import IntervalRegistry, RunSettings, load_e2e_config
from turtles_e2e.errors import ConfigError


class TestIntervalRegistry:
    def test_resolve_prefers_spec_specific_entry(self):
        registry = IntervalRegistry.from_raw({
            "default/wait-rancher": ["15m", "30s"],
            "kind/wait-rancher": ["5m", "10s"],
        })

        profile = registry.resolve("wait-rancher", "kind")

        assert profile.name == "wait-rancher"
        assert profile.timeout == 300.0
        assert profile.poll_period == 10.0

    def test_resolve_falls_back_to_default(self):
        registry = IntervalRegistry.from_raw({"default/wait-rancher": ["15m", "30s"]})

        profile = registry.resolve("wait-rancher", "eks")

        assert (profile.timeout, profile.poll_period) == (900.0, 30.0)

    def test_resolve_unknown_name(self):
        registry = IntervalRegistry.from_raw({"default/wait-rancher": ["15m", "30s"]})

        with pytest.raises(ConfigError, match="wait-gitea"):
            registry.resolve("wait-gitea")

    @pytest.mark.parametrize(
        "raw",
        [
            {"wait-rancher": ["15m", "30s"]},
            {"default/wait-rancher": ["15m"]},
            {"default/wait-rancher": ["10s", "30s"]},
            {"default/wait-rancher": ["10s", "0s"]},
            {"default/wait-rancher": ["forever", "30s"]},
        ],
    )
    def test_from_raw_rejects_malformed_entries(self, raw):
        with pytest.raises(ConfigError):
            IntervalRegistry.from_raw(raw)

    def test_contains(self):
        registry = IntervalRegistry.from_raw({"default/wait-gitea": ["1m", "1s"]})

        assert "wait-gitea" in registry
        assert "wait-rancher" not in registry


class TestE2EConfig:
    def test_environment_overrides_file_variables(self, monkeypatch):
        monkeypatch.setenv("TURTLES_E2E_TEST_VAR", "from-env")
        config = make_config({"TURTLES_E2E_TEST_VAR": "from-file"})

        assert config.get_variable("TURTLES_E2E_TEST_VAR") == "from-env"

    def test_missing_variable(self, monkeypatch):
        monkeypatch.delenv("TURTLES_E2E_UNSET", raising=False)
        config = make_config()

        assert config.get_variable("TURTLES_E2E_UNSET", "fallback") == "fallback"
        with pytest.raises(ConfigError, match="TURTLES_E2E_UNSET"):
            config.get_variable("TURTLES_E2E_UNSET")

    def test_get_bool(self, monkeypatch):
        monkeypatch.delenv("TURTLES_E2E_FLAG", raising=False)
        config = make_config({"TURTLES_E2E_FLAG": "true"})

        assert config.get_bool("TURTLES_E2E_FLAG") is True
        assert config.get_bool("TURTLES_E2E_OTHER_FLAG", default=False) is False

    def test_with_variables_leaves_original_untouched(self, monkeypatch):
        monkeypatch.delenv("ARTIFACTS_FOLDER", raising=False)
        config = make_config({"ARTIFACTS_FOLDER": "a"})

        updated = config.with_variables(ARTIFACTS_FOLDER="b")

        assert str(updated.artifacts_folder) == "b"
        assert str(config.artifacts_folder) == "a"


class TestLoadE2EConfig:
    def test_load(self, tmp_path):
        path = tmp_path / "e2e.yaml"
        path.write_text(
            "name: suite\n"
            "variables:\n"
            "  TURTLES_E2E_COUNT: 3\n"
            "  TURTLES_E2E_FLAG: true\n"
            "intervals:\n"
            "  default/wait-rancher: [\"15m\", \"30s\"]\n"
        )

        config = load_e2e_config(path)

        assert config.name == "suite"
        assert config.variables["TURTLES_E2E_COUNT"] == "3"
        assert config.get_bool("TURTLES_E2E_FLAG") is True
        assert config.get_intervals("wait-rancher").timeout == 900.0

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="existing file"):
            load_e2e_config(tmp_path / "absent.yaml")

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("variables: [unclosed\n")

        with pytest.raises(ConfigError, match="invalid e2e config"):
            load_e2e_config(path)

    def test_bad_interval(self, tmp_path):
        path = tmp_path / "e2e.yaml"
        path.write_text("intervals:\n  default/wait-rancher: [\"1s\", \"1m\"]\n")

        with pytest.raises(ConfigError):
            load_e2e_config(path)


def test_run_settings_from_environment(monkeypatch):
    monkeypatch.setenv("E2E_SKIP_CLEANUP", "true")
    monkeypatch.setenv("E2E_LOG_LEVEL", "DEBUG")

    settings = RunSettings()

    assert settings.skip_cleanup is True
    assert settings.log_level == "DEBUG"

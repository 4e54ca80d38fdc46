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

"""Tests for duration, boolean, template, and command helpers."""

import pytest

from turtles_e2e.errors import ConfigError
from turtles_e2e.utils import parse_bool, parse_duration, render_template, require_command


@pytest.mark.parametrize(
    "text, seconds",
    [("15m", 900.0), ("30s", 30.0), ("1h30m", 5400.0), ("500ms", 0.5), ("1.5s", 1.5)],
)
def test_parse_duration(text, seconds):
    assert parse_duration(text) == pytest.approx(seconds)


@pytest.mark.parametrize("text", ["", "abc", "10", "10x", "m5", "5m junk"])
def test_parse_duration_rejects_garbage(text):
    with pytest.raises(ConfigError):
        parse_duration(text)


def test_parse_bool():
    assert parse_bool("FLAG", "true") is True
    assert parse_bool("FLAG", " Yes ") is True
    assert parse_bool("FLAG", "0") is False
    with pytest.raises(ConfigError, match="FLAG"):
        parse_bool("FLAG", "maybe")


def test_render_template_substitutes_and_defaults():
    rendered = render_template(
        "name: ${CLUSTER_NAME}\ncidr: ${POD_CIDR:=192.168.0.0/16}\n",
        {"CLUSTER_NAME": "c1"},
    )
    assert rendered == "name: c1\ncidr: 192.168.0.0/16\n"


def test_render_template_prefers_value_over_default():
    assert render_template("${A:=x}", {"A": "y"}) == "y"


def test_render_template_reports_undefined_variables():
    with pytest.raises(ConfigError, match="MISSING_ONE, MISSING_TWO"):
        render_template("${MISSING_TWO} ${MISSING_ONE}", {})


def test_require_command_missing():
    with pytest.raises(ConfigError, match="turtles-e2e-no-such-command"):
        require_command("turtles-e2e-no-such-command")

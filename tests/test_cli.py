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

from typer.testing import CliRunner

from reclaim_e2e.cli import app
from reclaim_e2e.config import ContextOptions, HarnessSettings

runner = CliRunner()


def test_scenarios_list():
    result = runner.invoke(app, ["scenarios", "list"])
    assert result.exit_code == 0


def test_run_rejects_unknown_scenario():
    result = runner.invoke(app, ["scenarios", "run", "no-such-scenario"])
    assert result.exit_code != 0


def test_settings_from_environment(monkeypatch):
    monkeypatch.setenv("RECLAIM_E2E_KUBE_CONTEXT", "kind-e2e")
    monkeypatch.setenv("RECLAIM_E2E_QUEUE_TIMEOUT", "5")

    settings = HarnessSettings()

    assert settings.kube_context == "kind-e2e"
    assert settings.queue_timeout == 5.0
    assert settings.scheduler_name == "volcano"


def test_context_options_constrain_nodes_only_with_both_limits():
    assert not ContextOptions().constrains_nodes
    assert not ContextOptions(nodes_num_limit=3).constrains_nodes
    assert ContextOptions(nodes_num_limit=3, nodes_resource_limit={"cpu": "1"}).constrains_nodes


def test_run_rejects_non_positive_poll_interval():
    result = runner.invoke(app, ["scenarios", "run", "--poll-interval", "0"])
    assert result.exit_code == 2


def test_command_line_settings_win_over_environment(monkeypatch):
    monkeypatch.setenv("RECLAIM_E2E_POLL_INTERVAL", "5")

    assert HarnessSettings(poll_interval=0.5).poll_interval == 0.5

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


"""Scenario subcommands (list, run)."""

from __future__ import annotations

import typer
from pydantic import ValidationError
from rich.table import Table

from reclaim_e2e import console
from reclaim_e2e.config import HarnessSettings, display_settings
from reclaim_e2e.kube import Kubectl, require_command
from reclaim_e2e.scenario import results_table, run_scenarios
from reclaim_e2e.scenarios import SCENARIOS

app = typer.Typer(help="List and run reclaim scenarios.")


@app.command("list")
def list_scenarios() -> None:
    """List the available scenarios."""
    table = Table(title="Reclaim scenarios", show_header=True, header_style="bold")
    table.add_column("Name")
    table.add_column("Verifies")
    for scenario in SCENARIOS.values():
        table.add_row(scenario.name, scenario.title)
    console.print(table)


@app.command()
def run(
    names: list[str] | None = typer.Argument(None, help="Scenarios to run (default: all)"),
    fail_fast: bool = typer.Option(False, "--fail-fast", help="Stop after the first failed scenario"),
    kube_context: str | None = typer.Option(
        None, "--context", help="kubeconfig context (overrides RECLAIM_E2E_KUBE_CONTEXT)"),
    poll_interval: float | None = typer.Option(
        None, "--poll-interval", help="Seconds between condition checks"),
    queue_timeout: float | None = typer.Option(
        None, "--queue-timeout", help="Seconds to wait for a queue condition"),
    task_timeout: float | None = typer.Option(
        None, "--task-timeout", help="Seconds to wait for job tasks"),
) -> None:
    """Run scenarios sequentially against the current cluster."""
    unknown = [n for n in names or [] if n not in SCENARIOS]
    if unknown:
        raise typer.BadParameter(f"Unknown scenarios: {', '.join(unknown)}")

    overrides: dict = {}
    if kube_context is not None:
        overrides["kube_context"] = kube_context
    if poll_interval is not None:
        overrides["poll_interval"] = poll_interval
    if queue_timeout is not None:
        overrides["queue_timeout"] = queue_timeout
    if task_timeout is not None:
        overrides["task_timeout"] = task_timeout
    try:
        # Init arguments take precedence over RECLAIM_E2E_* and are validated the same way.
        settings = HarnessSettings(**overrides)
    except ValidationError as err:
        raise typer.BadParameter(str(err)) from err

    require_command(settings.kubectl)
    display_settings(settings)

    selected = [SCENARIOS[n] for n in names] if names else list(SCENARIOS.values())
    results = run_scenarios(selected, settings, Kubectl.from_settings(settings), fail_fast=fail_fast)
    console.print(results_table(results))

    failed = [r for r in results if not r.passed]
    if failed:
        console.print(f"[red]❌ {len(failed)} of {len(results)} scenarios failed[/red]")
        raise typer.Exit(code=1)
    console.print(f"[green]✅ All {len(results)} scenarios passed[/green]")

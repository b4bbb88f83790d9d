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


"""Cluster inspection subcommands (size, queue)."""

from __future__ import annotations

import typer

from reclaim_e2e import console
from reclaim_e2e.config import ContextOptions, HarnessSettings
from reclaim_e2e.context import TestContext, cluster_size
from reclaim_e2e.errors import ClusterError
from reclaim_e2e.kube import Kubectl
from reclaim_e2e.waits import queue_status

app = typer.Typer(help="Inspect the cluster the scenarios run against.")


def _read_only_context(settings: HarnessSettings) -> TestContext:
    # Never initialized: nothing is created, so there is nothing to tear down.
    return TestContext(Kubectl.from_settings(settings), settings, "", ContextOptions())


@app.command()
def size(
    cpu: str = typer.Option("1000m", "--cpu", help="CPU of one slot"),
    memory: str | None = typer.Option(None, "--memory", help="Memory of one slot"),
) -> None:
    """Count how many slots fit in the idle capacity of schedulable nodes."""
    slot = {"cpu": cpu}
    if memory is not None:
        slot["memory"] = memory
    slots = cluster_size(_read_only_context(HarnessSettings()), slot)
    console.print(f"[green]{slots} slots of {slot} fit in the cluster[/green]")


@app.command()
def queue(name: str = typer.Argument(..., help="Queue name")) -> None:
    """Show a queue's admission state and group counts."""
    try:
        status = queue_status(_read_only_context(HarnessSettings()), name)
    except ClusterError as err:
        console.print(f"[red]❌ {type(err).__name__}: {err}[/red]")
        raise typer.Exit(code=1) from err
    console.print(str(status))

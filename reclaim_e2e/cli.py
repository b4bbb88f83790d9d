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


"""
cli.py - Command line entry point for the reclaim e2e harness.

Subcommands:
    scenarios  List and run reclaim scenarios (list, run)
    cluster    Inspect the target cluster (size, queue)

Examples:
    # Run every scenario against the current kube context
    reclaim-e2e scenarios run

    # Run two scenarios and stop on the first failure
    reclaim-e2e scenarios run reclaim-priority no-reclaim-overused --fail-fast

    # How many one-CPU slots does the cluster have?
    reclaim-e2e cluster size --cpu 1

Settings are read from RECLAIM_E2E_* environment variables
(see reclaim_e2e.config.HarnessSettings).
"""

from __future__ import annotations

import logging
import sys

import typer

from reclaim_e2e import console
from reclaim_e2e.commands import cluster_cmd, scenarios_cmd

app = typer.Typer(
    help="End-to-end harness for the scheduler reclaim contract.",
    no_args_is_help=True,
)


@app.callback()
def _main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Initialize logging for all subcommands."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
    )


app.add_typer(scenarios_cmd.app, name="scenarios")
app.add_typer(cluster_cmd.app, name="cluster")


def main() -> None:
    try:
        app()
    except Exception as e:
        console.print(f"[red]❌ {e}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    main()

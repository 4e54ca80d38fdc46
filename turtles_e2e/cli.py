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


"""
cli.py - GitOps import end-to-end suite for Rancher Turtles.

Subcommands:
    run             Provision the environment, run scenarios, clean up
    list-scenarios  Show the scenarios of the import-gitops suite

Environment Variables:
    - E2E_CONFIG_PATH       e2e config file (same as --config)
    - E2E_ARTIFACTS_FOLDER  overrides the ARTIFACTS_FOLDER config variable
    - E2E_SKIP_CLEANUP      overrides the SKIP_RESOURCE_CLEANUP config variable
    - E2E_LOG_LEVEL         logging level (default: INFO)

Examples:
    # Full run with both scenarios
    turtles-e2e run --config config/e2e_conf.yaml

    # Only the kubeadm scenario, keep the environment afterwards
    turtles-e2e run --config config/e2e_conf.yaml --scenario docker-kubeadm --skip-cleanup
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import typer
from rich.table import Table

from turtles_e2e import console
from turtles_e2e.config import RunSettings, load_e2e_config
from turtles_e2e.constants import ARTIFACTS_FOLDER_VAR, SKIP_RESOURCE_CLEANUP_VAR
from turtles_e2e.context import StageContext
from turtles_e2e.errors import ConfigError
from turtles_e2e.hooks import hooks_from_config
from turtles_e2e.orchestrator import Pipeline, print_summary
from turtles_e2e.suites import IMPORT_GITOPS_SUITE, select_scenarios

app = typer.Typer(
    help="GitOps import end-to-end suite for Rancher Turtles.",
    no_args_is_help=True,
)


@app.callback()
def _main_callback() -> None:
    """Initialize logging for all subcommands."""
    settings = RunSettings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level),
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
    )


@app.command()
def run(
    config: Path | None = typer.Option(
        None, "--config", help="Path to the e2e config file (or E2E_CONFIG_PATH)"),
    scenario: list[str] | None = typer.Option(
        None, "--scenario", help="Run only the named scenario (repeatable)"),
    skip_cleanup: bool | None = typer.Option(
        None, "--skip-cleanup/--cleanup", help="Leave provisioned resources in place"),
    artifacts_folder: Path | None = typer.Option(
        None, "--artifacts-folder", help="Where kubeconfigs and cluster dumps are written"),
) -> None:
    """Provision the test environment, run the scenarios, and clean up."""
    settings = RunSettings()
    overrides: dict = {}
    if config is not None:
        overrides["config_path"] = config
    if skip_cleanup is not None:
        overrides["skip_cleanup"] = skip_cleanup
    if artifacts_folder is not None:
        overrides["artifacts_folder"] = artifacts_folder
    if overrides:
        settings = settings.model_copy(update=overrides)

    if settings.config_path is None:
        raise ConfigError("--config is required")
    console.print(f"[yellow]Loading the e2e test configuration from {str(settings.config_path)!r}[/yellow]")
    e2e_config = load_e2e_config(settings.config_path)
    if settings.artifacts_folder is not None:
        e2e_config = e2e_config.with_variables(**{ARTIFACTS_FOLDER_VAR: str(settings.artifacts_folder)})
    skip = settings.skip_cleanup
    if skip is None:
        skip = e2e_config.get_bool(SKIP_RESOURCE_CLEANUP_VAR, default=False)

    specs = select_scenarios(scenario)
    ctx = StageContext(config=e2e_config)
    pipeline = Pipeline(ctx, hooks_from_config(ctx), skip_cleanup=skip)
    pipeline.prepare()
    result = pipeline.run(specs)
    print_summary(result)
    raise typer.Exit(result.exit_code)


@app.command("list-scenarios")
def list_scenarios() -> None:
    """Show the scenarios of the import-gitops suite."""
    table = Table(title="import-gitops")
    table.add_column("Name")
    table.add_column("Cluster")
    table.add_column("Description")
    for spec in IMPORT_GITOPS_SUITE:
        table.add_row(spec.name, spec.cluster_name, spec.description)
    console.print(table)


def main() -> None:
    try:
        app()
    except Exception as e:
        console.print(f"[red]\u274c {e}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    main()

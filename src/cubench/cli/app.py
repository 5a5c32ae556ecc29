"""cubench CLI application entry point.

Built with `Typer <https://typer.tiangolo.com/>`_ and
`Rich <https://rich.readthedocs.io/>`_.
"""

from __future__ import annotations

import importlib
import json
import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from cubench.cli.errors import CLIError, ConfigError, error_handler
from cubench.cli.logging_setup import setup_logging
from cubench.cli.progress import RichProgressObserver
from cubench.config import CuBenchConfig, load_config, write_default_config
from cubench.harness import StateMode
from cubench.models import BenchmarkDatabase, BenchmarkResult, ComputeUnitLevel
from cubench.runner import BenchmarkRunner
from cubench.subject import BenchmarkSubject, InstructionBenchmark, TransactionBenchmark

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------

app = typer.Typer(
    name="cubench",
    help="cubench – compute-unit benchmarking with percentile-based estimates.",
    add_completion=False,
    no_args_is_help=True,
)

_console = Console(stderr=True)
_stdout = Console()


# ---------------------------------------------------------------------------
# Version callback
# ---------------------------------------------------------------------------


def _version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        from cubench import __version__

        _stdout.print(f"cubench {__version__}")
        raise typer.Exit()


# ---------------------------------------------------------------------------
# Main callback (global options)
# ---------------------------------------------------------------------------


@app.callback()
def main(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose (DEBUG) output.",
    ),
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to configuration TOML file.",
    ),
) -> None:
    """Global options for the cubench CLI."""
    with error_handler(_console):
        if config is not None and not config.exists():
            raise ConfigError(f"Configuration file not found: {config}")
        settings = load_config(config)
        level = "DEBUG" if verbose else settings.log_level
        setup_logging(level, settings.log_file, console=_console)
        ctx.obj = settings


def _settings(ctx: typer.Context) -> CuBenchConfig:
    return ctx.obj if isinstance(ctx.obj, CuBenchConfig) else load_config()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def load_subject(target: str) -> BenchmarkSubject:
    """Instantiate the subject named by ``module:attribute``.

    The attribute may be a subject instance, a subject class or any
    zero-argument factory returning a subject.
    """
    module_name, _, attribute = target.partition(":")
    if not module_name or not attribute:
        raise CLIError(f"Invalid target {target!r}; expected 'module:attribute'")
    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise CLIError(f"Cannot import {module_name!r}: {exc}") from exc
    try:
        factory = getattr(module, attribute)
    except AttributeError as exc:
        raise CLIError(f"{module_name!r} has no attribute {attribute!r}") from exc

    subject = factory() if callable(factory) else factory
    if not isinstance(subject, (InstructionBenchmark, TransactionBenchmark)):
        raise CLIError(
            f"{target!r} produced {type(subject).__name__}, "
            "expected an InstructionBenchmark or TransactionBenchmark"
        )
    return subject


def _results_table(results: list[BenchmarkResult], title: str) -> Table:
    table = Table(title=title)
    table.add_column("Subject", style="bold")
    table.add_column("Type")
    table.add_column("Samples", justify="right")
    for level in ComputeUnitLevel:
        table.add_column(level.value, justify="right")
    table.add_column("Simulated", justify="right")

    for result in results:
        estimate = result.percentile_estimate
        table.add_row(
            result.subject_name,
            result.benchmark_type.value,
            str(estimate.sample_size),
            *(str(estimate.cu_for_level(level)) for level in ComputeUnitLevel),
            str(result.execution_context.execution_stats.simulated_cu),
        )
    return table


# ---------------------------------------------------------------------------
# Init command
# ---------------------------------------------------------------------------


@app.command()
def init(
    path: Optional[Path] = typer.Argument(
        None,
        help="Project directory to initialise. Defaults to current directory.",
    ),
    force: bool = typer.Option(
        False,
        "--force",
        "-f",
        help="Overwrite an existing configuration file.",
    ),
) -> None:
    """Write a default ``.cubench/config.toml`` into a project directory."""
    with error_handler(_console):
        try:
            config_path = write_default_config(path, force=force)
        except FileExistsError as exc:
            raise CLIError(f"{exc}\nUse --force to overwrite.") from exc
        except FileNotFoundError as exc:
            raise CLIError(str(exc)) from exc
        _console.print(f"[green]Wrote default configuration to {config_path}[/green]")


# ---------------------------------------------------------------------------
# Run command
# ---------------------------------------------------------------------------


@app.command()
def run(
    ctx: typer.Context,
    targets: list[str] = typer.Argument(
        ..., help="Subjects to benchmark, as 'module:attribute'."
    ),
    samples: Optional[int] = typer.Option(
        None,
        "--samples",
        "-n",
        min=1,
        help="Committed executions per subject (default from config).",
    ),
    isolate: bool = typer.Option(
        False,
        "--isolate",
        help="Restore the same baseline state before every sample.",
    ),
    output: Optional[Path] = typer.Option(
        None,
        "--output",
        "-o",
        help="Directory for per-subject result documents.",
    ),
    database: Optional[Path] = typer.Option(
        None,
        "--database",
        "-d",
        help="Estimate database file to update.",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        "-j",
        help="Print result documents as JSON to stdout.",
    ),
) -> None:
    """Benchmark one or more subjects and update the estimate database.

    Example::

        cubench run cubench.subjects:SystemTransferBenchmark -n 200
        cubench run mybench:SolTransfer mybench:TokenSetup --isolate
    """
    with error_handler(_console):
        settings = _settings(ctx)
        config = settings.runner_config()
        if samples is not None:
            config.samples = samples
        if isolate:
            config.state_mode = StateMode.ISOLATE
        if output is not None:
            config.output_dir = str(output)
        if database is not None:
            config.database_file = str(database)

        subjects = [load_subject(target) for target in targets]
        runner = BenchmarkRunner(config)
        db = BenchmarkDatabase.load(config.database_file)

        results: list[BenchmarkResult] = []
        for subject in subjects:
            with RichProgressObserver(subject.name, console=_console) as observer:
                result = runner.run(subject, observer=observer)
            db.insert(result)
            results.append(result)

        written = runner.save(db, names=[result.subject_name for result in results]).written
        logger.info("Wrote %d file(s)", len(written))

        if json_output:
            payload = {result.subject_name: json.loads(result.to_json()) for result in results}
            typer.echo(json.dumps(payload, indent=2, sort_keys=True))
        else:
            _stdout.print(_results_table(results, "Compute unit estimates"))


# ---------------------------------------------------------------------------
# Show command
# ---------------------------------------------------------------------------


@app.command()
def show(
    database: Path = typer.Argument(..., help="Estimate database file."),
) -> None:
    """Show every estimate stored in a database file."""
    with error_handler(_console):
        if not database.exists():
            raise CLIError(f"Database file not found: {database}")
        db = BenchmarkDatabase.load(database)
        if not len(db):
            _stdout.print("[yellow]No estimates recorded.[/yellow]")
            return
        results = [db.estimates[name] for name in db.names()]
        _stdout.print(_results_table(results, str(database)))


# ---------------------------------------------------------------------------
# Estimate command
# ---------------------------------------------------------------------------


@app.command()
def estimate(
    database: Path = typer.Argument(..., help="Estimate database file."),
    name: str = typer.Argument(..., help="Subject name."),
    level: ComputeUnitLevel = typer.Option(
        ComputeUnitLevel.BALANCED,
        "--level",
        "-l",
        help="Confidence level to report.",
    ),
    multiplier: Optional[float] = typer.Option(
        None,
        "--multiplier",
        "-m",
        min=0.0,
        help="Scale the balanced estimate instead of picking a level.",
    ),
) -> None:
    """Print one CU value from a database, for scripting fee budgets."""
    with error_handler(_console):
        db = BenchmarkDatabase.load(database)
        found = db.get_estimate(name)
        if found is None:
            raise CLIError(f"No estimate for {name!r} in {database}")
        value = found.scaled(multiplier) if multiplier is not None else found.cu_for_level(level)
        typer.echo(str(value))

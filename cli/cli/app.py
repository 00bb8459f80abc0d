"""influx-importer CLI application -- Typer-based operator interface.

Provides commands to bootstrap a configuration file, acquire a conductor
token, inspect metric permutations, and run an extraction.  Human-readable
output goes to *stderr* via Rich; artefacts meant for redirection (the
configuration template, the token) go to *stdout*.

Exit codes of ``extract``: ``0`` when the run completed (even with failed
items), ``1`` when setup failed, ``2`` when the configuration is invalid.
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console

from cli.display import display_permutations, display_run_summary
from importer_engine.catalog import METRICS, find_metric_by_id
from importer_engine.client.management_api import ManagementAPIClient, ManagementAPIError, get_token
from importer_engine.config import CatalogSource, ConfigError, Settings, load_config, render_config_template
from importer_engine.engine import ImportEngine, SetupError
from importer_engine.telemetry.emitter import MetricsEmitter
from importer_engine.telemetry.log_config import configure_logging

EXIT_SETUP_ERROR = 1
EXIT_CONFIG_ERROR = 2

# ---------------------------------------------------------------------------
# App & global state
# ---------------------------------------------------------------------------

app = typer.Typer(
    name="influx-importer",
    help="Incrementally export conductor metrics and alarm history into InfluxDB.",
    no_args_is_help=True,
)
console = Console(stderr=True)

# Mutable global options populated by the Typer callback.
_verbose: bool = False
_json_logs: bool = False


# ---------------------------------------------------------------------------
# Callback -- global options
# ---------------------------------------------------------------------------


@app.callback()
def _global_options(
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Log at DEBUG level, including every HTTP request.",
    ),
    json_logs: bool = typer.Option(
        False,
        "--json-logs",
        help="Emit log lines as single-line JSON objects.",
        envvar="IMPORTER_LOGGING__STRUCTURED",
    ),
) -> None:
    """Global options applied to every command."""
    global _verbose, _json_logs  # noqa: PLW0603
    _verbose = verbose
    _json_logs = json_logs
    configure_logging("DEBUG" if verbose else "WARNING", structured=json_logs)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _load_settings(config: Path) -> Settings:
    """Load *config* or exit with the configuration error code."""
    try:
        settings = load_config(config)
    except ConfigError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=EXIT_CONFIG_ERROR) from exc

    configure_logging(
        "DEBUG" if _verbose else settings.logging.level,
        structured=_json_logs or settings.logging.structured,
    )
    return settings


def _api_client(settings: Settings) -> ManagementAPIClient:
    return ManagementAPIClient(
        settings.target.url,
        settings.target.token.get_secret_value(),
        timeout=settings.application.request_timeout,
        verify_ssl=settings.target.verify_ssl,
    )


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@app.command()
def init(
    url: str = typer.Option(
        "",
        "--url",
        help="Conductor URL.  When given with --token, the metric list is fetched from the conductor.",
    ),
    token: str = typer.Option(
        "",
        "--token",
        help="Conductor JWT, as printed by 'influx-importer get-token'.",
        envvar="IMPORTER_TARGET__TOKEN",
    ),
    verify_ssl: bool = typer.Option(False, "--verify-ssl/--no-verify-ssl", help="Verify the conductor certificate."),
) -> None:
    """Print a configuration template to stdout.

    Every known metric is listed commented out; uncomment the ones to
    extract.  Redirect the output into a file:

        influx-importer init --url https://10.0.1.29 --token ... > importer.toml
    """
    metrics = list(METRICS)
    if url and token:
        try:
            with ManagementAPIClient(url, token, verify_ssl=verify_ssl) as client:
                metrics = client.get_metric_metadata()
        except ManagementAPIError as exc:
            console.print(f"[red]Error retrieving metric metadata: {exc}[/red]")
            raise typer.Exit(code=EXIT_SETUP_ERROR) from exc
        console.print(f"[dim]Discovered {len(metrics)} metric(s) on {url}[/dim]")

    typer.echo(render_config_template(url, token, metrics), nl=False)


@app.command()
def extract(
    config: Path = typer.Option(
        ...,
        "--config",
        "-c",
        help="Path to the TOML configuration file.",
        envvar="IMPORTER_CONFIG",
    ),
    metrics_file: Path | None = typer.Option(
        None,
        "--metrics-file",
        help="Write run telemetry events to this file (JSONL).",
        envvar="IMPORTER_METRICS_FILE",
    ),
    show_all: bool = typer.Option(False, "--all", help="List every item in the summary, not just failures."),
) -> None:
    """Run one incremental extraction of every router."""
    settings = _load_settings(config)

    engine = ImportEngine.from_settings(settings, emitter=MetricsEmitter(metrics_file))
    try:
        summary = engine.run()
    except SetupError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=EXIT_SETUP_ERROR) from exc
    finally:
        engine.close()

    display_run_summary(console, summary, show_all=show_all)


@app.command("get-token")
def get_token_command(
    url: str = typer.Argument(..., help="Conductor URL, e.g. https://10.0.1.29"),
    username: str = typer.Option(..., "--username", "-u", prompt="Username", help="Conductor user."),
    password: str = typer.Option(..., "--password", prompt="Password", hide_input=True, help="Conductor password."),
    verify_ssl: bool = typer.Option(False, "--verify-ssl/--no-verify-ssl", help="Verify the conductor certificate."),
) -> None:
    """Log in to the conductor and print a JWT for the configuration file."""
    try:
        token = get_token(url, username, password, verify_ssl=verify_ssl)
    except ManagementAPIError as exc:
        console.print(f"[red]Unable to acquire token: {exc}[/red]")
        raise typer.Exit(code=EXIT_SETUP_ERROR) from exc

    typer.echo(token)


@app.command()
def permutations(
    router: str = typer.Argument(..., help="Router to query."),
    metric: str = typer.Argument(..., help="Metric id, e.g. bfd/by-peer-path/latency."),
    config: Path = typer.Option(
        ...,
        "--config",
        "-c",
        help="Path to the TOML configuration file.",
        envvar="IMPORTER_CONFIG",
    ),
) -> None:
    """List the parameter combinations a metric offers on a router."""
    settings = _load_settings(config)

    with _api_client(settings) as client:
        try:
            catalog = client.get_metric_metadata() if settings.metrics.catalog is CatalogSource.DISCOVER else METRICS
            descriptor = find_metric_by_id(metric, catalog)
            if descriptor is None:
                console.print(f"[red]{metric} is not a valid metric[/red]")
                raise typer.Exit(code=EXIT_CONFIG_ERROR)
            found = client.get_metric_permutations(router, descriptor)
        except ManagementAPIError as exc:
            console.print(f"[red]Error retrieving permutations of {metric}: {exc}[/red]")
            raise typer.Exit(code=EXIT_SETUP_ERROR) from exc

    display_permutations(console, descriptor.id, router, found)

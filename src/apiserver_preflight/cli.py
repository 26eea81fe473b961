"""
apiserver-preflight CLI - Start-up option validation for the API server.

Commands:
    validate    Check an options file and feature gates before starting
    init        Write a default options file
    features    List known feature gates
"""

import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

app = typer.Typer(
    name="apiserver-preflight",
    help="apiserver-preflight: Start-up option validation for the Kubernetes API server",
    no_args_is_help=True,
)

console = Console()


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


@app.command()
def validate(
    config_path: Path = typer.Argument(..., help="Path to options.toml"),
    feature_gates: str = typer.Option(
        "", "--feature-gates", help="Gate overrides, e.g. TokenRequest=true,ExternalKeyService=false"
    ),
    verbose: bool = typer.Option(False, "--verbose", help="Log each validation step"),
) -> None:
    """
    Pre-flight validation of API server options.

    Checks:
    - --apiserver-count, --proxy-cidr-whitelist, --service-cluster-ip-range
    - --kubernetes-service-node-port against --service-node-port-range
    - etcd, serving, authentication, authorization, audit, admission, runtime-config
    - TokenRequest / BoundServiceAccountTokenVolume / ExternalKeyService gates

    Every problem is reported, not just the first.

    Example:
        apiserver-preflight validate options.toml --feature-gates TokenRequest=true
    """
    from apiserver_preflight.config import complete, load_config
    from apiserver_preflight.errors import PreflightError, format_error
    from apiserver_preflight.features import FeatureGates, parse_feature_gates
    from apiserver_preflight.validator import format_results, validate_options

    _configure_logging(verbose)
    console.print(f"[bold]Validating[/bold] {config_path}")

    try:
        config = load_config(config_path)
        gates = FeatureGates(config.feature_gates).merge(parse_feature_gates(feature_gates))
    except PreflightError as e:
        console.print(f"[red]{format_error(e)}[/red]", highlight=False)
        raise typer.Exit(2)

    results = validate_options(complete(config.options), gates)
    format_results(results, console)

    if results.has_errors:
        raise typer.Exit(1)


@app.command()
def init(
    output: Path = typer.Option(Path("options.toml"), "--output", "-o", help="Output path"),
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite an existing file"),
) -> None:
    """
    Write a default options file.

    The defaults pass validation with every feature gate off.

    Example:
        apiserver-preflight init --output options.toml
    """
    from apiserver_preflight.config import dump_default_config

    if output.exists() and not force:
        console.print(f"[yellow]{output} already exists, use --force to overwrite[/yellow]")
        raise typer.Exit(1)

    dump_default_config(output)
    console.print(f"[green]Options saved to[/green] {output}")


@app.command()
def features() -> None:
    """List known feature gates and their defaults."""
    from apiserver_preflight.features import KNOWN_FEATURES

    table = Table(title="Feature Gates")
    table.add_column("Name")
    table.add_column("Default")
    table.add_column("Depends on")
    table.add_column("Description")

    for spec in KNOWN_FEATURES.values():
        table.add_row(spec.name, str(spec.default).lower(), spec.depends_on or "-", spec.description)

    console.print(table)


def _version_callback(value: bool) -> None:
    if value:
        from apiserver_preflight import __version__
        console.print(f"apiserver-preflight {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False, "--version", "-v", help="Show version", callback=_version_callback, is_eager=True
    ),
) -> None:
    """apiserver-preflight: Start-up option validation for the Kubernetes API server."""


if __name__ == "__main__":
    app()

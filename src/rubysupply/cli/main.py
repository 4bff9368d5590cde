"""CLI commands for rubysupply."""

from __future__ import annotations

import os
from pathlib import Path

import typer

from rubysupply.core.exceptions import RubySupplyError


app = typer.Typer(
    name="rubysupply",
    help="Supply stage of a Ruby buildpack.",
    no_args_is_help=True,
)


def _fail(error: RubySupplyError) -> typer.Exit:
    """Print an error and its hint, returning the exit to raise."""
    typer.echo(f"Error: {error}", err=True)
    if error.recovery_hint:
        typer.echo(f"Hint: {error.recovery_hint}", err=True)
    return typer.Exit(1)


@app.command()
def supply(
    build_dir: Path = typer.Argument(..., help="Application directory."),
    cache_dir: Path = typer.Argument(..., help="Application cache directory."),
    deps_dir: Path = typer.Argument(..., help="Directory holding all dependency areas."),
    deps_idx: str = typer.Argument(..., help="Index of this buildpack."),
    manifest: Path | None = typer.Option(
        None,
        "--manifest",
        "-m",
        help="Buildpack manifest.yml. Defaults to $BUILDPACK_DIR/manifest.yml.",
    ),
) -> None:
    """Install Ruby, Bundler and the app's gems into the dependency area."""
    from rubysupply.adapters.log import RichBuildLogger
    from rubysupply.config import load_config
    from rubysupply.core.services import Supplier

    try:
        config = load_config(build_dir, cache_dir, deps_dir, deps_idx, manifest=manifest)
        log = RichBuildLogger(debug=config.debug)
        supplier = Supplier.from_config(config, log=log, environ=os.environ)
        supplier.run()
    except RubySupplyError as e:
        raise _fail(e) from None


@app.command()
def fingerprint(
    directory: Path = typer.Argument(..., help="Directory to fingerprint."),
    exclude: list[str] | None = typer.Option(
        None,
        "--exclude",
        "-e",
        help="Relative path prefix to skip. Repeatable. Defaults to .cloudfoundry/.",
    ),
) -> None:
    """Print the content fingerprint of a directory."""
    from rubysupply.core.fingerprint import DEFAULT_EXCLUDES, compute_fingerprint

    if not directory.is_dir():
        typer.echo(f"Error: Not a directory: {directory}", err=True)
        raise typer.Exit(1)

    prefixes = tuple(exclude) if exclude else DEFAULT_EXCLUDES
    typer.echo(compute_fingerprint(directory, prefixes))


@app.command()
def resolve(
    name: str = typer.Argument(..., help="Dependency name, e.g. ruby or bundler."),
    constraint: str = typer.Argument(..., help="Version constraint, e.g. 2.6.x."),
    manifest: Path | None = typer.Option(
        None,
        "--manifest",
        "-m",
        help="Buildpack manifest.yml. Defaults to $BUILDPACK_DIR/manifest.yml.",
    ),
    stack: str | None = typer.Option(
        None,
        "--stack",
        "-s",
        envvar="CF_STACK",
        help="Only consider dependencies built for this stack.",
    ),
) -> None:
    """Print the highest manifest version of NAME matching CONSTRAINT."""
    from rubysupply.adapters.catalog import ManifestCatalog
    from rubysupply.config import resolve_manifest
    from rubysupply.core.versions import find_matching_version

    try:
        catalog = ManifestCatalog.from_file(resolve_manifest(manifest), stack=stack or "")
        version = find_matching_version(constraint, catalog.all_versions(name), name=name)
    except RubySupplyError as e:
        raise _fail(e) from None
    typer.echo(version)


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()

"""
Command-line interface for PAMr.

Provides commands for loading detections into acoustic events, inspecting
settings, and managing configuration.
"""

import logging
import sys

from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as get_version

import click
import pandas as pd

from pamr.binaries.registry import decoder_registry, register_default_decoders
from pamr.config import (
    VALID_POLICIES,
    get_config_path,
    get_default_decoder,
    get_sample_rate_policy,
    get_worker_count,
    load_config,
    set_sample_rate_policy,
)
from pamr.constants import BINARY_FILE_SUFFIX, GroupingMode
from pamr.errors import AmbiguousSampleRateError, PamrError, SampleRateRequiredError
from pamr.logging_config import setup_logging
from pamr.models.event import AcousticEvent
from pamr.pipeline.loader import load_detections
from pamr.settings import PamrSettings, add_binaries, add_database

logger = logging.getLogger(__name__)

try:
    __version__ = get_version("pamr")
except PackageNotFoundError:
    __version__ = "dev"


def build_settings(
    db: tuple[str, ...], binaries: tuple[str, ...], pattern: str
) -> PamrSettings:
    """Build settings from command line paths, as a ClickException on failure."""
    settings = PamrSettings()
    try:
        if db:
            settings = add_database(settings, db)
        for folder in binaries:
            settings = add_binaries(settings, folder, pattern)
    except FileNotFoundError as e:
        raise click.ClickException(str(e)) from e
    return settings


def events_table(events: list[AcousticEvent]) -> pd.DataFrame:
    """Flatten events into one table with eventId and detector columns."""
    frames = [
        table.assign(eventId=event.id, detector=name)
        for event in events
        for name, table in event.detectors.items()
    ]
    if not frames:
        return pd.DataFrame()
    return pd.concat(frames, ignore_index=True, sort=False)


def _display_events(events: list[AcousticEvent]) -> None:
    click.echo(f"\n{len(events)} event(s):")
    for event in events:
        counts = ", ".join(
            f"{name} ({len(table)})" for name, table in event.detectors.items()
        )
        click.echo(f"  {event.id}: {counts}")


@click.group()
@click.version_option(__version__, prog_name="pamr")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
def cli(verbose: bool) -> None:
    """PAMr: load PAMGuard detections into acoustic events"""
    setup_logging(verbose=verbose, console_format="%(levelname)s: %(message)s")


@cli.command()
@click.option(
    "--db",
    "databases",
    multiple=True,
    type=click.Path(),
    help="PAMGuard database (repeatable)",
)
@click.option(
    "--binaries",
    multiple=True,
    type=click.Path(),
    help="Folder of binary files, searched recursively (repeatable)",
)
@click.option(
    "--pattern",
    default=f"*{BINARY_FILE_SUFFIX}",
    show_default=True,
    help="File name pattern for binary files",
)
@click.option(
    "--grouping",
    type=click.Choice([mode.value for mode in GroupingMode]),
    default=GroupingMode.EVENT.value,
    show_default=True,
    help="How database detections are grouped into events",
)
@click.option("--sample-rate", type=int, help="Sample rate (Hz) for detections without one")
@click.option(
    "--policy",
    type=click.Choice(VALID_POLICIES),
    help="How to fill partially missing sample rates (default from config)",
)
@click.option("--decoder", help="Binary decoder id (default: by file suffix)")
@click.option("--calibration", help="Name of a registered calibration function")
@click.option("--workers", type=click.IntRange(min=1), help="Binary files processed at once")
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False),
    help="Write all detections to this CSV file",
)
@click.option(
    "--no-prompt",
    is_flag=True,
    help="Fail instead of asking for missing sample rates",
)
def load(
    databases: tuple[str, ...],
    binaries: tuple[str, ...],
    pattern: str,
    grouping: str,
    sample_rate: int | None,
    policy: str | None,
    decoder: str | None,
    calibration: str | None,
    workers: int | None,
    output: str | None,
    no_prompt: bool,
) -> None:
    """Load detections and group them into acoustic events."""
    if not binaries:
        raise click.UsageError("At least one --binaries folder is required")

    settings = build_settings(databases, binaries, pattern)
    click.echo(
        f"Loading {len(settings.binaries.files)} binary file(s)"
        + (f" with {len(settings.db)} database(s)" if settings.db else "")
    )

    while True:
        try:
            events = load_detections(
                settings,
                grouping,
                sample_rate,
                policy=policy,
                decoder=decoder,
                calibration=calibration,
                workers=workers,
            )
            break
        except AmbiguousSampleRateError as e:
            if no_prompt:
                raise click.ClickException(str(e)) from e
            click.echo(str(e), err=True)
            sample_rate = click.prompt(
                "Sample rate (Hz) for the missing detections", type=int, default=e.mode
            )
        except SampleRateRequiredError as e:
            if no_prompt:
                raise click.ClickException(str(e)) from e
            click.echo(str(e), err=True)
            sample_rate = click.prompt("Sample rate (Hz)", type=int)
        except PamrError as e:
            raise click.ClickException(str(e)) from e

    _display_events(events)

    if output:
        table = events_table(events)
        table.to_csv(output, index=False)
        click.echo(f"\n✓ Wrote {len(table)} detection(s) to {output}")


@cli.command()
@click.option("--db", "databases", multiple=True, type=click.Path(), help="PAMGuard database")
@click.option("--binaries", multiple=True, type=click.Path(), help="Folder of binary files")
@click.option(
    "--pattern",
    default=f"*{BINARY_FILE_SUFFIX}",
    show_default=True,
    help="File name pattern for binary files",
)
def info(databases: tuple[str, ...], binaries: tuple[str, ...], pattern: str) -> None:
    """Show the settings built from databases and binary folders."""
    settings = build_settings(databases, binaries, pattern)
    click.echo(settings.summary())

    register_default_decoders()
    click.echo("\nDecoders:")
    for decoder in decoder_registry.list_decoders():
        suffixes = ", ".join(decoder.supported_suffixes)
        click.echo(f"  {decoder.decoder_id} ({suffixes}): {decoder.metadata.description}")


@cli.group()
def config() -> None:
    """Configuration management commands."""
    pass


@config.command("show")
def show_config_cmd() -> None:
    """Show all configuration settings."""
    config_path = get_config_path()
    if not config_path.exists():
        click.echo(f"No config file: {config_path}")
    else:
        click.echo(f"Config file: {config_path}")

    config_data = load_config()
    for section, values in config_data.items():
        if not isinstance(values, dict):
            continue
        click.echo(f"  [{section}]")
        for key, value in values.items():
            click.echo(f"    {key} = {value!r}")

    click.echo("\nEffective settings:")
    click.echo(f"  sample_rate_policy = {get_sample_rate_policy()}")
    click.echo(f"  workers = {get_worker_count()}")
    click.echo(f"  decoder = {get_default_decoder() or 'auto'}")


@config.command("set-policy")
@click.argument("policy", type=click.Choice(VALID_POLICIES))
def set_policy_cmd(policy: str) -> None:
    """Set how partially missing sample rates are filled."""
    try:
        set_sample_rate_policy(policy)
    except PermissionError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    click.echo(f"✓ Sample rate policy: {policy}")
    click.echo(f"  Config: {get_config_path()}")


def main() -> None:
    cli()


if __name__ == "__main__":
    main()

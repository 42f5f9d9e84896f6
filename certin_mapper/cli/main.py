"""Click entry point for certin-mapper."""

import sys
from pathlib import Path
from typing import Optional

import click

from certin_mapper import __version__
from certin_mapper._cache import JsonFileSnapshotStore, ResultCache
from certin_mapper.config import VALID_LOG_LEVELS, Config, default_cache_file, load_config
from certin_mapper.console import console, print_cache_stats, print_resolution_summary
from certin_mapper.enrichment import build_cache, enrich_sbom_file
from certin_mapper.error_reporting import get_user_friendly_message, handle_sbom_error
from certin_mapper.exceptions import CertInError, FileProcessingError, ParsingError, ValidationError
from certin_mapper.logging_config import logger, set_log_level

CONTEXT_SETTINGS = {"help_option_names": ["-h", "--help"]}


def _base_config(ctx: click.Context) -> Config:
    """Configuration loaded from the environment in the group callback."""
    return ctx.obj["config"]


def _fail(title: str, message: str, action: str) -> None:
    console.print(f"[error]{title}:[/error] {message}")
    console.print(f"[info]Suggested action:[/info] {action}")
    sys.exit(1)


@click.group(context_settings=CONTEXT_SETTINGS)
@click.version_option(__version__, "-V", "--version", prog_name="certin-mapper")
@click.option(
    "--log-level",
    type=click.Choice(VALID_LOG_LEVELS, case_sensitive=False),
    default=None,
    help="Logging verbosity. [env: CERTIN_LOG_LEVEL]",
)
@click.pass_context
def cli(ctx: click.Context, log_level: Optional[str]) -> None:
    """Add CERT-In SBOM properties to CycloneDX components."""
    try:
        config = load_config()
    except CertInError as e:
        raise click.UsageError(str(e))
    if log_level:
        config.log_level = log_level.upper()
    set_log_level(config.log_level)
    ctx.ensure_object(dict)
    ctx.obj["config"] = config


@cli.command()
@click.argument("input_file", type=click.Path(dir_okay=False, path_type=Path))
@click.option(
    "-o",
    "--output",
    "output_file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Where to write the enriched SBOM. Defaults to <input>.certin.json.",
)
@click.option(
    "--cache-file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Result cache snapshot file. [env: CERTIN_CACHE_FILE]",
)
@click.option(
    "--cache/--no-cache",
    "cache_enabled",
    default=None,
    help="Persist results between runs. [env: CERTIN_CACHE_ENABLED]",
)
@click.option(
    "--max-concurrency",
    type=click.IntRange(min=1),
    default=None,
    help="Components resolved in parallel. [env: CERTIN_MAX_CONCURRENCY]",
)
@click.pass_context
def enrich(
    ctx: click.Context,
    input_file: Path,
    output_file: Optional[Path],
    cache_file: Optional[Path],
    cache_enabled: Optional[bool],
    max_concurrency: Optional[int],
) -> None:
    """Enrich INPUT_FILE with CERT-In properties."""
    config = _base_config(ctx)
    if cache_file is not None:
        config.cache_file = cache_file
    if cache_enabled is not None:
        config.cache_enabled = cache_enabled
    if max_concurrency is not None:
        config.max_concurrency = max_concurrency
    if output_file is None:
        output_file = input_file.with_name(f"{input_file.stem}.certin.json")

    try:
        resolution = enrich_sbom_file(input_file, output_file, config)
    except (FileProcessingError, ParsingError, ValidationError) as e:
        logger.debug(f"Failed to process {input_file}: {e}")
        msg = handle_sbom_error(e, input_file.name)
        _fail(msg.title, msg.message, msg.action)
        return
    except CertInError as e:
        msg = get_user_friendly_message(e)
        _fail(msg.title, msg.message, msg.action)
        return

    print_resolution_summary(resolution)
    console.print(f"[success]Enriched SBOM written to {output_file}[/success]")


@cli.group()
def cache() -> None:
    """Inspect or reset the result cache."""


@cache.command()
@click.pass_context
def stats(ctx: click.Context) -> None:
    """Show result cache statistics."""
    result_cache = build_cache(_base_config(ctx))
    print_cache_stats(result_cache.cache_info(), result_cache.checksum_stats())


@cache.command()
@click.pass_context
def clear(ctx: click.Context) -> None:
    """Delete every cached result, including the on-disk snapshot."""
    config = _base_config(ctx)
    # Target the file even when caching is disabled for runs
    cache_file = Path(config.cache_file or default_cache_file())
    ResultCache(JsonFileSnapshotStore(cache_file)).clear()
    console.print(f"[success]Result cache cleared[/success] ({cache_file})")


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()

"""CLI interface for parsync."""

import logging
from typing import Any, Optional

import click

from . import __version__
from .config import ErrorPolicy, SyncConfig
from .exceptions import ParsyncConfigError, TraversalError
from .output import OutputFormatter
from .sync import SyncEngine

logger = logging.getLogger(__name__)


def configure_logging(quiet: bool, verbose: bool) -> None:
    """Send progress lines to stderr at a level matching the flags."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )
        logging.getLogger("parsync").setLevel(logging.DEBUG)
    elif quiet:
        logging.basicConfig(level=logging.WARNING)
        logging.getLogger("parsync").setLevel(logging.WARNING)
    else:
        logging.basicConfig(
            level=logging.INFO,
            format="%(asctime)s %(message)s",
            datefmt="%Y/%m/%d %H:%M:%S",
        )
        logging.getLogger("parsync").setLevel(logging.INFO)


@click.command()
@click.argument("source", type=click.Path(exists=True, file_okay=False))
@click.argument("destination", type=click.Path())
@click.option(
    "--workers",
    "-w",
    type=int,
    default=None,
    help="Number of parallel copy workers (default: 4, env: PARSYNC_WORKERS)",
)
@click.option(
    "--chunk-size",
    "-c",
    type=int,
    default=None,
    help="Block size in KB for streaming file content (default: 64)",
)
@click.option(
    "--on-error",
    type=click.Choice([policy.value for policy in ErrorPolicy]),
    default=None,
    help="What to do when the source cannot be walked (default: abort, "
    "env: PARSYNC_ON_ERROR)",
)
@click.option(
    "--dry-run", "-n", is_flag=True, help="Show what would be done without doing it"
)
@click.option(
    "--verify",
    is_flag=True,
    help="Compare every copied file byte by byte after the sync",
)
@click.option("--quiet", "-q", is_flag=True, help="Suppress progress output")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose/debug logging output",
)
@click.version_option(version=__version__)
@click.pass_context
def main(
    ctx: Any,
    source: str,
    destination: str,
    workers: Optional[int],
    chunk_size: Optional[int],
    on_error: Optional[str],
    dry_run: bool,
    verify: bool,
    quiet: bool,
    verbose: bool,
) -> None:
    """Mirror SOURCE onto DESTINATION, copying only changed files.

    Directories, symlinks and file metadata (times, owner, group, mode)
    are mirrored. Files whose size differs are copied in parallel.
    Entries that exist only in DESTINATION are left alone.

    Examples:
        parsync /data/photos /backup/photos
        parsync -w 8 /data/photos /backup/photos
        parsync --dry-run /data/photos /backup/photos
    """
    out = OutputFormatter(quiet=quiet)
    configure_logging(quiet, verbose)

    try:
        config = SyncConfig.from_env()
        if workers is not None:
            config.workers = workers
        if chunk_size is not None:
            config.chunk_size = chunk_size * 1024
        if on_error is not None:
            config.error_policy = ErrorPolicy(on_error)
        config.dry_run = dry_run
        config.validate()
    except ParsyncConfigError as e:
        out.error(str(e))
        ctx.exit(1)

    engine = SyncEngine(config, out)

    try:
        engine.sync(source, destination)
        stats = engine.verify(source, destination) if verify and not dry_run else None
    except ValueError as e:
        out.error(str(e))
        ctx.exit(1)
    except TraversalError as e:
        out.error(f"Sync aborted: {e}")
        ctx.exit(1)

    if stats is not None:
        if stats["verify_mismatches"] or stats["verify_errors"]:
            out.error(
                f"Verification failed: {stats['verify_mismatches']} mismatch(es), "
                f"{stats['verify_errors']} error(s)"
            )
            ctx.exit(1)
        out.success(f"Verified {stats['verified']} file(s)")


if __name__ == "__main__":
    main()

"""camclock command line.

Scan image trees: camclock ROOT...  (or: camclock scan ROOT...)
Dump metadata:    camclock get image.jpg
Zone at a point:  camclock zone 40.7128 -74.0060
Zone data:        camclock tzdata
"""

import logging
import math
import re
import sys
import typing as t
from concurrent.futures import ThreadPoolExecutor

import click
from munch import Munch

from camclock.config import get_config
from camclock.metadata import et
from camclock.metadata.errors import DecodeFailedError, MetadataError, NoTimeAvailableError
from camclock.metadata.reconcile import ReconciliationResult, as_dict, describe, reconcile
from camclock.utils.data_utils import listify
from camclock.utils.fs_utils import walk_files
from camclock.utils.trace_utils import str_exc
from camclock.utils.yaml_utils import yaml_dump_cozy

log = logging.getLogger(__name__)

Outcome = ReconciliationResult | MetadataError | OSError


def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else get_config("log.level", "WARNING")
    logging.basicConfig(level=level, format=get_config("log.format", "%(levelname)s %(name)s: %(message)s"), force=True)


def process_file(extl, fname: str) -> Outcome:
    """Decode and reconcile one file; per-file failures are returned, not raised."""
    try:
        with open(fname, "rb"):
            pass
    except OSError as e:
        return e
    try:
        return reconcile(et.read_metadata(extl, fname), label=fname)
    except (DecodeFailedError, NoTimeAvailableError) as e:
        return e


def _scan_chunk(fnames: list[str]) -> list[Outcome]:
    # one ExifTool process per worker thread
    with et.running_helper() as extl:
        return [process_file(extl, fname) for fname in fnames]


def scan_files(fnames: t.Sequence[str], jobs: int = 1) -> list[Outcome]:
    """Process files on up to `jobs` threads; outcomes come back in input order."""
    if not fnames:
        return []
    size = math.ceil(len(fnames) / max(1, jobs))
    chunks = [list(fnames[i : i + size]) for i in range(0, len(fnames), size)]
    with ThreadPoolExecutor(max_workers=len(chunks)) as executor:
        return [outcome for chunk_outcomes in executor.map(_scan_chunk, chunks) for outcome in chunk_outcomes]


def format_outcome(rel: str, outcome: Outcome, output_format: str = "text", verbose: bool = False) -> str:
    if output_format == "yaml":
        body = {"error": str_exc(outcome)} if isinstance(outcome, (MetadataError, OSError)) else as_dict(outcome)
        return yaml_dump_cozy({rel: body}, sort_keys=False, allow_unicode=True).strip()
    if isinstance(outcome, OSError):
        return f"{rel} open: {outcome}"
    if isinstance(outcome, MetadataError):
        return f"{rel} exif: {outcome}"
    lines = [f"{rel}: {describe(outcome)}"]
    if verbose:
        lines.extend(f"    {note}" for note in outcome.notes)
    return "\n".join(lines)


@click.group()
def cli():
    """Check camera clocks against the GPS time recorded in image files.

    Scan: camclock ROOT...  (or: camclock scan ROOT...)
    """


@cli.command(name="scan")
@click.option("--jobs", "-j", type=click.IntRange(min=1), default=None, help="Worker threads (default from config)")
@click.option("--ext", "extensions", multiple=True, help="Only files with this extension [Multiple]")
@click.option(
    "--format", "-f", "output_format", type=click.Choice(["text", "yaml"]), default="text", help="Output format"
)
@click.option("--verbose", "-v", is_flag=True, help="Debug logging and per-file diagnostics")
@click.argument("roots", nargs=-1, required=True, type=click.Path(exists=True))
def cli_command_scan(**kwargs):
    """Report camera clock vs. GPS time for every file under ROOTS.

    Examples:
        camclock scan ~/Pictures/2014
        camclock scan -j 8 --ext .jpg --ext .dng card/
    """
    cliopt = Munch(kwargs)
    setup_logging(cliopt.verbose)
    extensions = cliopt.extensions or listify(get_config("scan.extensions", []) or [])
    jobs = cliopt.jobs or int(get_config("scan.jobs", 4))

    files = [(path, rel) for root in cliopt.roots for path, rel in walk_files(root, extensions)]
    log.debug("scanning %d files with %d jobs", len(files), jobs)
    try:
        outcomes = scan_files([path for path, _rel in files], jobs=jobs)
    except et.ExifToolStartError as e:
        raise click.ClickException(str(e)) from e
    for (_path, rel), outcome in zip(files, outcomes):
        click.echo(format_outcome(rel, outcome, cliopt.output_format, cliopt.verbose))


@cli.command(name="get")
@click.argument("fnames", nargs=-1, required=True)
def cli_command_get(fnames):
    """Print decoded metadata as YAML.

    Example:
        camclock get image.jpg
    """
    setup_logging()
    try:
        metadata_map = et.get_metadata_multi(fnames)
    except et.ExifToolStartError as e:
        raise click.ClickException(str(e)) from e
    output = {
        fname: {"error": str(md)} if isinstance(md, DecodeFailedError) else md for fname, md in metadata_map.items()
    }
    click.echo(yaml_dump_cozy(output, sort_keys=False, allow_unicode=True).strip())


@cli.command(name="zone", context_settings={"ignore_unknown_options": True})
@click.argument("lat", type=float)
@click.argument("lon", type=float)
def cli_command_zone(lat, lon):
    """Print the IANA zone name at LAT LON.

    Example:
        camclock zone 40.7128 -74.0060
    """
    from camclock.geo import lookup_zone_name  # pylint: disable=import-outside-toplevel

    setup_logging()
    if not (zone_name := lookup_zone_name(lat, lon)):
        raise click.ClickException(f"No timezone at ({lat}, {lon})")
    click.echo(zone_name)


@cli.command(name="tzdata")
def cli_command_tzdata():
    """Download or refresh timezone polygons and rebuild the index."""
    from camclock.geo.tz4d import download_geojson  # pylint: disable=import-outside-toplevel

    setup_logging()
    changed = download_geojson()
    click.echo("Timezone data updated." if changed else "Timezone data already up-to-date.")


def main():
    """Entry point that adds default 'scan' subcommand if needed.

    This allows: camclock photos/  (instead of requiring: camclock scan photos/)
    """
    if sys.argv[1:] and not re.search(r"^(scan|get|zone|tzdata|-h|--help)$", sys.argv[1]):
        sys.argv.insert(1, "scan")
    cli()


# entry point `camclock` is defined in pyproject.toml
if __name__ == "__main__":
    main()

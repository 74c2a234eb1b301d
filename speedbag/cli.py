"""Command line interface for speedbag."""
import logging
from pathlib import Path
from typing import BinaryIO, Optional
import click

from speedbag.assembler import DEFAULT_ALGORITHM, DEFAULT_VERSION
from speedbag.errors import SpeedBagError
from speedbag.speedbag import run


def parse_metadata(ctx, param, values: tuple[str, ...]) -> list[tuple[str, str]]:
    pairs = []
    for value in values:
        key, sep, item = value.partition("=")
        if not sep or not key.strip():
            raise click.BadParameter(f"'{value}' is not in KEY=VALUE form")
        pairs.append((key.strip(), item.strip()))
    return pairs


@click.command()
@click.option(
    '-o',
    '--output',
    type=click.File('wb'),
    required=True,
    help='Archive to write, - for stdout',
)
@click.option('-a', '--algorithm', default=DEFAULT_ALGORITHM, show_default=True, help='Checksum algorithm')
@click.option('-V', '--bag-version', type=float, default=DEFAULT_VERSION, show_default=True, help='BagIt version')
@click.option(
    '-t',
    '--tag-directory',
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=None,
    help='Directory of extra tag files, added relative to the bag root',
)
@click.option('-u', '--url', 'urls', multiple=True, help='URL to download into the payload, may be repeated')
@click.option('-m', '--metadata', multiple=True, callback=parse_metadata, help='KEY=VALUE line for bagit.txt')
@click.option('--env-metadata/--no-env-metadata', default=True, help='Read BAGIT_* environment variables')
@click.option('-v', '--verbose/--no-verbose', default=False, help='Print more information about the process')
@click.argument('payload_directory', type=click.Path(exists=True, file_okay=False, path_type=Path))
def cli(
  output: BinaryIO,
  algorithm: str,
  bag_version: float,
  tag_directory: Optional[Path],
  urls: tuple[str, ...],
  metadata: list[tuple[str, str]],
  env_metadata: bool,
  verbose: bool,
  payload_directory: Path,
):
    """Stream the files in PAYLOAD_DIRECTORY into a zipped BagIt archive."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s - %(levelname)s - %(message)s",
    )
    try:
        bag = run(payload_directory, output, algorithm, bag_version, tag_directory, urls, metadata, env_metadata)
    except SpeedBagError as error:
        raise click.ClickException(str(error)) from error
    if verbose:
        click.echo(f"Bagged {bag.payload_file_count} files, Payload-Oxum {bag.payload_oxum}", err=True)


if __name__ == "__main__":
    cli()

"""Bag a directory of files, plus optional URLs and tag files, into a ZIP archive."""

import logging

from functools import partial
from pathlib import Path
from typing import BinaryIO, Iterable, Optional

from speedbag.assembler import DEFAULT_ALGORITHM, DEFAULT_VERSION, BagAssembler
from speedbag.download import filename_from_url, open_url_source
from speedbag.metadata import config_metadata_from_env, iter_metadata, Metadata
from speedbag.utils import iter_files, LazySource

LOGGER = logging.getLogger(__name__)

PAYLOAD_PREFIX = "data"


def open_file_source(path: Path) -> LazySource:
    return LazySource(partial(open, path, "rb"), name=str(path))


def add_directory(bag: BagAssembler, directory: Path, prefix: Optional[str] = None, is_tag: bool = False) -> int:
    """Register every file below `directory`, returning how many were added."""
    count = 0
    for relative_path in iter_files(directory):
        bag_path = f"{prefix}/{relative_path}" if prefix else relative_path
        bag.register(open_file_source(directory / relative_path), bag_path, is_tag=is_tag)
        count += 1
    return count


def run(
    payload_directory: Path,
    output: BinaryIO,
    algorithm: str = DEFAULT_ALGORITHM,
    bag_version=DEFAULT_VERSION,
    tag_directory: Optional[Path] = None,
    urls: Iterable[str] = (),
    metadata: Metadata = (),
    env_metadata: bool = True,
) -> BagAssembler:
    """Write a bag of `payload_directory` as a ZIP archive to `output`.

    Metadata from `BAGIT_*` environment variables comes first in bagit.txt,
    followed by `metadata`.
    """
    bag_metadata = list(iter_metadata(config_metadata_from_env())) if env_metadata else []
    bag_metadata.extend(iter_metadata(metadata))
    bag = BagAssembler(bag_version, algorithm, bag_metadata)

    data_count = add_directory(bag, Path(payload_directory), prefix=PAYLOAD_PREFIX)
    LOGGER.info("Added %d files from '%s'", data_count, payload_directory)

    for url in urls:
        bag.register(open_url_source(url), f"{PAYLOAD_PREFIX}/{filename_from_url(url)}")

    if tag_directory:
        tag_count = add_directory(bag, Path(tag_directory), is_tag=True)
        LOGGER.info("Added %d tag files from '%s'", tag_count, tag_directory)

    written = bag.write_to(output)
    LOGGER.info("Wrote %d bytes, Payload-Oxum %s", written, bag.payload_oxum)
    return bag

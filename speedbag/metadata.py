"""Functions to prepare the bagit.txt and bag-info.txt tag files."""

import logging
import os
import re

from datetime import date as Date
from typing import Iterable, Iterator, Mapping, Optional, Union

from speedbag.utils import format_date

LOGGER = logging.getLogger(__name__)

BAGIT_TXT = "bagit.txt"
BAG_INFO_TXT = "bag-info.txt"

BAGIT_VERSION_KEY = "BagIt-Version"
TAG_FILE_ENCODING_KEY = "Tag-File-Character-Encoding"
TAG_FILE_ENCODING = "UTF-8"

BAGGING_DATE_KEY = "Bagging-Date"
PAYLOAD_OXUM_KEY = "Payload-Oxum"
BAG_SIZE_KEY = "Bag-Size"

SIZE_UNITS = " KMGTPE"

Metadata = Union[Mapping[str, Union[str, list]], Iterable[tuple[str, str]]]


def config_metadata_from_env(environ: Optional[Mapping[str, str]] = None) -> dict:
    """Get bag metadata from `BAGIT_*` environment variables.

    `BAGIT_CONTACT_PHONE` and `BAGIT_CONTACT_PHONE_2` both belong to
    `Contact-Phone`; a key set by several variables gets a list of values.
    """
    config_items = ["Bag-Group-Identifier", "Contact-Email", "Contact-Name",
                    "Contact-Phone", "Organization-address", "Source-Organization"]
    if environ is None:
        environ = os.environ

    config_metadata = {}
    env_keys = sorted(environ)

    for item in config_items:
        var_name = "BAGIT_" + item.upper().replace("-", "_")
        r = re.compile(f'^{var_name}')

        vars_from_env = list(filter(r.match, env_keys))
        if len(vars_from_env) < 1:
            LOGGER.debug("%s not set, leaving %s out of bagit.txt", var_name, item)
            continue
        elif len(vars_from_env) == 1:
            from_env = environ[vars_from_env[0]]
        else:
            from_env = [environ[v] for v in vars_from_env]

        config_metadata[item] = from_env

    return config_metadata


def iter_metadata(metadata: Optional[Metadata]) -> Iterator[tuple[str, str]]:
    """Flatten metadata into `(key, value)` lines, keeping order and duplicates."""
    if not metadata:
        return
    pairs = metadata.items() if isinstance(metadata, Mapping) else metadata
    for key, value in pairs:
        if isinstance(value, (list, tuple)):
            for item in value:
                yield key, str(item)
        else:
            yield key, str(value)


def render_bagit_txt(metadata: Optional[Metadata], version) -> str:
    """Contents of bagit.txt.

    The version and encoding lines always come last, even if the metadata
    already holds those keys.
    """
    lines = [f"{key}: {value}\n" for key, value in iter_metadata(metadata)]
    lines.append(f"{BAGIT_VERSION_KEY}: {version}\n")
    lines.append(f"{TAG_FILE_ENCODING_KEY}: {TAG_FILE_ENCODING}\n")
    return "".join(lines)


def format_size(size: int) -> str:
    """Human readable size with binary prefixes: `512 B`, `1.5 KB`, `2.0 MB`."""
    if size < 1024:
        return f"{size} B"
    exponent = (size.bit_length() - 1) // 10
    return f"{size / (1 << (exponent * 10)):.1f} {SIZE_UNITS[exponent]}B"


def render_bag_info_txt(payload_oxum: str, total_bytes: int, bagging_date: Optional[Date] = None) -> str:
    if bagging_date is None:
        bagging_date = Date.today()
    return (
        f"{BAGGING_DATE_KEY}: {format_date(bagging_date)}\n"
        f"{PAYLOAD_OXUM_KEY}: {payload_oxum}\n"
        f"{BAG_SIZE_KEY}: {format_size(total_bytes)}\n"
    )

"""Helpers too generic to be in other modules."""
import os
import re

from datetime import date as Date
from pathlib import Path
from typing import Callable, Iterator, Optional


ALGORITHM_SANITIZER = re.compile(r"[^A-Za-z0-9]")


def sanitize_algorithm(algorithm: str) -> str:
    """Lowercase the algorithm name and strip anything but letters and digits.

    BagIt manifest names need this, e.g. `SHA-256` -> `sha256`.
    """
    return ALGORITHM_SANITIZER.sub("", algorithm.lower())


def format_date(day: Date) -> str:
    return day.strftime("%Y-%m-%d")


def normalize_bag_path(path: str) -> str:
    """Turn a caller supplied path into an archive-relative, forward-slash path."""
    normalized = path.replace("\\", "/")
    parts = [part for part in normalized.split("/") if part not in ("", ".")]
    if not parts:
        raise ValueError(f"Invalid bag path '{path}'.")
    if ".." in parts:
        raise ValueError(f"Bag path '{path}' must not leave the bag.")
    return "/".join(parts)


def iter_files(directory: Path) -> Iterator[str]:
    """Yield relative forward-slash paths of all files below `directory`, sorted."""
    found = []
    for root, _dirs, files in os.walk(directory):
        for name in files:
            found.append(Path(root, name).relative_to(directory).as_posix())
    yield from sorted(found)


class LazySource:
    """Byte source that only opens its underlying stream on first read.

    Lets a bag hold thousands of registered files or URLs without keeping
    a descriptor or connection open for each of them.
    """

    def __init__(self, opener: Callable, name: Optional[str] = None):
        self._opener = opener
        self._stream = None
        self.name = name
        self.closed = False

    def read(self, size: int = -1) -> bytes:
        if self.closed:
            raise ValueError(f"read from closed source '{self.name}'")
        if self._stream is None:
            self._stream = self._opener()
        return self._stream.read(size)

    def close(self):
        if self.closed:
            return
        self.closed = True
        if self._stream is not None:
            self._stream.close()
            self._stream = None

"""Bookkeeping of the files registered in a bag."""

from typing import Iterator, NamedTuple

from speedbag.checksum import ChecksummingReader
from speedbag.errors import PathConflict


class BagEntry(NamedTuple):
    """A file in the bag: where it goes, what kind it is and its byte stream."""
    path: str
    is_tag: bool
    source: ChecksummingReader


class EntryRegistry:
    """Data and tag entries, keyed by path within their classification.

    The two namespaces are independent, so a tag file may share a path
    string with a data file.
    """

    def __init__(self):
        self._data = {}
        self._tags = {}

    def _namespace(self, is_tag: bool) -> dict:
        return self._tags if is_tag else self._data

    def has_path(self, path: str, is_tag: bool) -> bool:
        return path in self._namespace(is_tag)

    def add(self, entry: BagEntry):
        if self.has_path(entry.path, entry.is_tag):
            raise PathConflict(entry.path, entry.is_tag)
        self._namespace(entry.is_tag)[entry.path] = entry

    def data_entries(self) -> list[BagEntry]:
        return list(self._data.values())

    def tag_entries(self) -> list[BagEntry]:
        return list(self._tags.values())

    def __iter__(self) -> Iterator[BagEntry]:
        yield from self._data.values()
        yield from self._tags.values()

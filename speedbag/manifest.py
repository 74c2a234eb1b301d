"""Manifest files listing the checksum of each file in the bag."""

from typing import Iterator, Optional

from speedbag.utils import sanitize_algorithm


def manifest_name(algorithm: str, tag: bool = False) -> str:
    """File name of the payload or tag manifest for `algorithm`."""
    prefix = "tagmanifest" if tag else "manifest"
    return f"{prefix}-{sanitize_algorithm(algorithm)}.txt"


class ManifestAccumulator:
    """Collects `(path, checksum)` pairs as files are streamed into the bag.

    Entries are kept in the order they were recorded and are keyed by path:
    two files with identical content simply share a checksum value.
    """

    def __init__(self, name: str):
        self.name = name
        self._entries = []
        self._checksums = {}

    def record(self, path: str, checksum: str):
        self._entries.append((path, checksum))
        self._checksums.setdefault(path, checksum)

    def checksum_for(self, path: str) -> Optional[str]:
        return self._checksums.get(path)

    def render(self) -> str:
        # always "\n", this text is itself checksummed into the tag manifest
        return "".join(f"{checksum} {path}\n" for path, checksum in self._entries)

    def __iter__(self) -> Iterator[tuple[str, str]]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, path: str) -> bool:
        return path in self._checksums

"""Streams that checksum and count the bytes passing through them."""

import hashlib
import io

from speedbag.errors import UnsupportedAlgorithm
from speedbag.utils import sanitize_algorithm


def new_digest(algorithm: str):
    """Return a fresh hashlib digest for `algorithm`.

    Accepts hashlib names (`sha256`) as well as the dashed spelling used in
    BagIt documents and Java APIs (`SHA-256`).
    """
    for name in dict.fromkeys((algorithm.lower(), sanitize_algorithm(algorithm))):
        try:
            digest = hashlib.new(name)
        except (ValueError, TypeError):
            continue
        # shake_* have no fixed length and can't be written to a manifest
        if not digest.digest_size:
            break
        return digest
    raise UnsupportedAlgorithm(algorithm)


class ChecksummingReader(io.RawIOBase):
    """Read-only stream wrapping a byte source.

    Every read forwards the bytes and feeds them into the digest, so the
    checksum and size of a file are known once it has been copied, without
    ever holding the whole file in memory.
    """

    def __init__(self, source, algorithm: str):
        super().__init__()
        # close() runs even when new_digest raises
        self._source = None
        self._digest = new_digest(algorithm)
        self._source = source
        self._size = 0
        self._checksum = None
        self.algorithm = algorithm

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:
        data = self._source.read(len(buffer))
        if not data:
            return 0
        if self._digest is None:
            raise ValueError("checksum was already finalized, the stream can't be read any further")
        # count what the source returned, never what was asked for
        count = len(data)
        buffer[:count] = data
        self._digest.update(data)
        self._size += count
        return count

    @property
    def size(self) -> int:
        """Number of bytes read so far."""
        return self._size

    def checksum(self) -> str:
        """Finalize the digest and return it as lowercase hex.

        Only meaningful once the stream has been read to the end.
        """
        if self._checksum is None:
            self._checksum = self._digest.hexdigest()
            self._digest = None
        return self._checksum

    def close(self):
        if self.closed:
            return
        try:
            if hasattr(self._source, "close"):
                self._source.close()
        finally:
            super().close()

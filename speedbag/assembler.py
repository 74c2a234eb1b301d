"""Assemble byte streams into a BagIt bag, streamed out as a ZIP archive.

For more information on the bagit standard, see: https://en.wikipedia.org/wiki/BagIt
"""

import enum
import io
import logging
import shutil
import threading
import zipfile

from concurrent import futures
from typing import BinaryIO, Optional

from speedbag.checksum import ChecksummingReader, new_digest
from speedbag.entry import BagEntry, EntryRegistry
from speedbag.errors import BagStateError, PathConflict, StreamFault
from speedbag.manifest import ManifestAccumulator, manifest_name
from speedbag.metadata import (
    BAG_INFO_TXT,
    BAGIT_TXT,
    Metadata,
    render_bag_info_txt,
    render_bagit_txt,
)
from speedbag.pipe import DEFAULT_BUFFER_SIZE, ArchiveStream, ByteChannel, ChannelWriter
from speedbag.utils import normalize_bag_path

LOGGER = logging.getLogger(__name__)

DEFAULT_ALGORITHM = "sha256"
DEFAULT_VERSION = 1.0
COPY_CHUNK_SIZE = 64 * 1024


class BagState(enum.Enum):
    COLLECTING = "collecting"
    STREAMING = "streaming"
    DONE = "done"
    FAILED = "failed"


class BagAssembler:
    """Single-use builder of a streamed BagIt archive.

    Register payload and tag streams, then call `build()` once. The archive is
    produced by a worker writing into a bounded pipe; the returned stream can
    be read (and sent or stored) while the bag is still being assembled.
    """

    def __init__(
        self,
        version=DEFAULT_VERSION,
        algorithm: str = DEFAULT_ALGORITHM,
        metadata: Optional[Metadata] = None,
        compression: int = zipfile.ZIP_DEFLATED,
    ):
        self.version = version
        self.algorithm = algorithm
        self.metadata = metadata if metadata is not None else {}
        self.compression = compression
        self.payload_manifest = ManifestAccumulator(manifest_name(algorithm))
        self.tag_manifest = ManifestAccumulator(manifest_name(algorithm, tag=True))
        self.payload_oxum = None
        self.total_bytes = 0
        self._entries = EntryRegistry()
        self._state = BagState.COLLECTING
        self._lock = threading.Lock()

    @property
    def state(self) -> BagState:
        return self._state

    @property
    def payload_file_count(self) -> int:
        return len(self._entries.data_entries())

    @property
    def data_entries(self) -> list[BagEntry]:
        return self._entries.data_entries()

    @property
    def tag_entries(self) -> list[BagEntry]:
        return self._entries.tag_entries()

    def register(self, source, path: str, is_tag: bool = False) -> BagEntry:
        """Add a byte stream to the bag at `path`, relative to the bag root.

        Raises `PathConflict` if a file of the same kind already uses `path`,
        and `UnsupportedAlgorithm` if the bag's checksum algorithm is unknown.
        """
        if self._state is not BagState.COLLECTING:
            raise BagStateError(f"Can't add '{path}', the bag is already {self._state.value}.")
        return self._register(source, path, is_tag)

    def _register(self, source, path: str, is_tag: bool) -> BagEntry:
        path = normalize_bag_path(path)
        LOGGER.debug("Adding %s to the bag", path)
        if self._entries.has_path(path, is_tag):
            # checked before wrapping so a rejected source is left untouched
            raise PathConflict(path, is_tag)
        entry = BagEntry(path, is_tag, ChecksummingReader(source, self.algorithm))
        self._entries.add(entry)
        return entry

    def _register_text(self, text: str, path: str) -> BagEntry:
        return self._register(io.BytesIO(text.encode("utf-8")), path, is_tag=True)

    def build(
        self,
        executor: Optional[futures.Executor] = None,
        buffer_size: int = DEFAULT_BUFFER_SIZE,
    ) -> ArchiveStream:
        """Start producing the archive and return a stream to read it from.

        The archive is produced by a dedicated thread, or as a task of
        `executor` when one is given.
        """
        with self._lock:
            if self._state is not BagState.COLLECTING:
                raise BagStateError(f"The bag is already {self._state.value}, it can only be built once.")
            # fails early instead of inside the worker
            new_digest(self.algorithm)
            self._state = BagState.STREAMING

        channel = ByteChannel(buffer_size)
        try:
            if executor is None:
                worker = threading.Thread(target=self._produce, args=(channel,), name="speedbag-producer", daemon=True)
                worker.start()
            else:
                worker = executor.submit(self._produce, channel)
        except Exception:
            self._state = BagState.FAILED
            self._close_entries()
            raise
        return ArchiveStream(channel, worker)

    def write_to(self, fileobj: BinaryIO, executor: Optional[futures.Executor] = None) -> int:
        """Build the bag and copy the whole archive to `fileobj`."""
        written = 0
        with self.build(executor=executor) as archive:
            while True:
                chunk = archive.read(COPY_CHUNK_SIZE)
                if not chunk:
                    break
                fileobj.write(chunk)
                written += len(chunk)
        return written

    def _produce(self, channel: ByteChannel):
        LOGGER.info("Streaming bag with %d data and %d tag files", self.payload_file_count, len(self.tag_entries))
        failure = None
        try:
            with zipfile.ZipFile(ChannelWriter(channel), "w", compression=self.compression) as archive:
                try:
                    self._write_bag(archive)
                except BaseException as error:
                    # the central directory must not reach the reader
                    failure = error
                    channel.fail(error)
                    raise
        except Exception as error:
            self._fail(channel, failure or error)
        else:
            self._state = BagState.DONE
            LOGGER.info("Finished streaming bag, Payload-Oxum %s", self.payload_oxum)
            channel.finish()
        finally:
            if not channel.done or self._state is BagState.STREAMING:
                self._fail(channel, failure or StreamFault("Bag production was interrupted."))

    def _fail(self, channel: ByteChannel, error: BaseException):
        self._state = BagState.FAILED
        self._close_entries()
        LOGGER.error("Streaming the bag failed: %s", error)
        channel.fail(error)

    def _write_bag(self, archive: zipfile.ZipFile):
        user_tags = self._entries.tag_entries()

        for entry in self._entries.data_entries():
            self._stream_entry(archive, entry, self.payload_manifest)
            self.total_bytes += entry.source.size

        self.payload_oxum = f"{self.total_bytes}.{self.payload_file_count}"

        bagit_txt = self._register_text(render_bagit_txt(self.metadata, self.version), BAGIT_TXT)
        self._stream_entry(archive, bagit_txt, self.tag_manifest)
        bag_info_txt = self._register_text(render_bag_info_txt(self.payload_oxum, self.total_bytes), BAG_INFO_TXT)
        self._stream_entry(archive, bag_info_txt, self.tag_manifest)

        manifest = self._register_text(self.payload_manifest.render(), self.payload_manifest.name)
        self._stream_entry(archive, manifest, self.tag_manifest)

        for entry in user_tags:
            self._stream_entry(archive, entry, self.tag_manifest)

        # can't list its own checksum, so it goes last
        tag_manifest = self._register_text(self.tag_manifest.render(), self.tag_manifest.name)
        self._stream_entry(archive, tag_manifest)

    def _stream_entry(self, archive: zipfile.ZipFile, entry: BagEntry, manifest: Optional[ManifestAccumulator] = None):
        LOGGER.debug("Streaming %s", entry.path)
        try:
            with archive.open(entry.path, "w") as destination:
                shutil.copyfileobj(entry.source, destination, COPY_CHUNK_SIZE)
            if manifest is not None:
                manifest.record(entry.path, entry.source.checksum())
        finally:
            entry.source.close()

    def _close_entries(self):
        for entry in self._entries:
            try:
                entry.source.close()
            except Exception as error:
                LOGGER.warning("Couldn't close %s: %s", entry.path, error)

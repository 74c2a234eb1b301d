"""In-memory pipe between the thread producing an archive and its reader.

The producer writes into a `ChannelWriter`, the consumer reads from an
`ArchiveStream`. The channel holds at most `capacity` bytes, so a slow
reader holds back the producer instead of the archive piling up in memory.
"""

import io
import threading

from concurrent import futures
from typing import Optional, Union

from speedbag.errors import StreamFault

DEFAULT_BUFFER_SIZE = 64 * 1024


class ByteChannel:
    """Bounded byte buffer shared by one producer and one consumer."""

    def __init__(self, capacity: int = DEFAULT_BUFFER_SIZE):
        if capacity < 1:
            raise ValueError("capacity must be at least one byte")
        self.capacity = capacity
        self._buffer = bytearray()
        self._condition = threading.Condition()
        self._finished = False
        self._error = None
        self._reader_closed = False

    def put(self, data) -> int:
        """Append `data`, blocking while the buffer is full."""
        view = memoryview(data).cast("B")
        written = len(view)
        with self._condition:
            while view:
                while len(self._buffer) >= self.capacity and not self._reader_closed and not self.done:
                    self._condition.wait()
                if self._reader_closed:
                    raise BrokenPipeError("the archive reader was closed")
                if self.done:
                    raise ValueError("write to a finished or failed channel")
                room = self.capacity - len(self._buffer)
                self._buffer += view[:room]
                view = view[room:]
                self._condition.notify_all()
        return written

    def get(self, size: int) -> bytes:
        """Take up to `size` bytes, blocking until some are available.

        Returns `b""` once the producer finished and the buffer is drained.
        """
        with self._condition:
            while not self._buffer and not self._finished and self._error is None:
                self._condition.wait()
            if self._buffer:
                chunk = bytes(self._buffer[:size])
                del self._buffer[:size]
                self._condition.notify_all()
                return chunk
            if self._error is not None:
                raise StreamFault(f"Bag production failed: {self._error}") from self._error
            return b""

    def finish(self):
        with self._condition:
            self._finished = True
            self._condition.notify_all()

    @property
    def done(self) -> bool:
        return self._finished or self._error is not None

    def fail(self, error: BaseException):
        """Mark production as failed. The first error reported is kept."""
        with self._condition:
            if self._error is None:
                self._error = error
            self._condition.notify_all()

    def close_reader(self):
        with self._condition:
            self._reader_closed = True
            self._buffer.clear()
            self._condition.notify_all()


class ChannelWriter(io.RawIOBase):
    """Write-only, unseekable end of a channel, as handed to zipfile."""

    def __init__(self, channel: ByteChannel):
        super().__init__()
        self._channel = channel

    def writable(self) -> bool:
        return True

    def write(self, data) -> int:
        return self._channel.put(data)


Worker = Union[threading.Thread, futures.Future]


class ArchiveStream(io.RawIOBase):
    """Readable archive, produced by a worker while it is being read.

    Reading past the end raises `StreamFault` if the worker failed, so a
    broken archive never looks like a complete one. Closing the stream
    early cancels the worker.
    """

    def __init__(self, channel: ByteChannel, worker: Optional[Worker] = None):
        super().__init__()
        self._channel = channel
        self.worker = worker

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:
        chunk = self._channel.get(len(buffer))
        count = len(chunk)
        buffer[:count] = chunk
        return count

    def close(self):
        if not self.closed:
            self._channel.close_reader()
        super().close()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Wait for the worker to terminate, returning whether it has."""
        if self.worker is None:
            return True
        if isinstance(self.worker, futures.Future):
            done, _ = futures.wait([self.worker], timeout=timeout)
            return bool(done)
        self.worker.join(timeout)
        return not self.worker.is_alive()

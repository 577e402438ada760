"""Read-only memory-mapped access to an executable file.

The mapping lets the signature scanner walk arbitrarily large app hosts
without loading them into memory.
"""

import io
import mmap
import os
import struct

from .errors import TruncatedData


class RandomAccessSource:
    """A seekable, read-only view over a whole file.

    Opens the file and maps it read-only. An empty file gets an empty buffer
    since ``mmap`` refuses zero-length mappings. Use as a context manager or
    call ``close()``; closing twice is harmless.
    """

    def __init__(self, path):
        self.path = os.fspath(path)
        self._file = open(self.path, 'rb')
        try:
            self.length = os.fstat(self._file.fileno()).st_size
            if self.length:
                self._map = mmap.mmap(self._file.fileno(), 0, access=mmap.ACCESS_READ)
            else:
                self._map = b''
        except BaseException:
            self._file.close()
            raise
        self.closed = False

    def __len__(self):
        return self.length

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def close(self):
        if self.closed:
            return
        self.closed = True
        if isinstance(self._map, mmap.mmap):
            self._map.close()
        self._file.close()

    @property
    def file(self):
        """The underlying binary file object (for readers that want a stream)."""
        return self._file

    def read(self, offset, count, what="data"):
        """Return exactly ``count`` bytes at ``offset`` or raise TruncatedData."""
        if offset < 0 or count < 0 or offset + count > self.length:
            raise TruncatedData(offset, count, self.length, what)
        return self._map[offset:offset + count]

    def byte_at(self, offset):
        return self._map[offset]

    def find(self, needle, start=0, end=None):
        if end is None:
            end = self.length
        return self._map.find(needle, start, end)

    def unpack_from(self, fmt, offset, what="data"):
        size = struct.calcsize(fmt)
        return struct.unpack(fmt, self.read(offset, size, what))


class BoundedView(io.RawIOBase):
    """Readable window ``[offset, offset + size)`` over a RandomAccessSource.

    The view owns the source: the mapping and file handle are released on
    ``close()``, when the view is garbage collected, or as soon as the last
    byte of the window has been read. After release reads return EOF.
    """

    def __init__(self, source, location):
        super().__init__()
        self._source = None
        if location.end > source.length:
            source.close()
            raise TruncatedData(location.offset, location.size, source.length, "payload")
        self._source = source
        self._start = location.offset
        self._end = location.end
        self._pos = self._start
        self.location = location
        if location.size == 0:
            self._release()

    @property
    def released(self):
        return self._source is None

    def _release(self):
        if self._source is not None:
            self._source.close()
            self._source = None

    def readable(self):
        return True

    def seekable(self):
        return not self.released

    def readinto(self, b):
        if self.released:
            return 0
        n = min(len(b), self._end - self._pos)
        if n <= 0:
            self._release()
            return 0
        b[:n] = self._source.read(self._pos, n)
        self._pos += n
        if self._pos >= self._end:
            self._release()
        return n

    def tell(self):
        return self._pos - self._start

    def seek(self, pos, whence=io.SEEK_SET):
        if self.released:
            raise io.UnsupportedOperation("mapping already released")
        if whence == io.SEEK_SET:
            target = self._start + pos
        elif whence == io.SEEK_CUR:
            target = self._pos + pos
        elif whence == io.SEEK_END:
            target = self._end + pos
        else:
            raise ValueError(f"invalid whence ({whence})")
        if target < self._start:
            raise ValueError("negative seek position")
        self._pos = target
        return self._pos - self._start

    def close(self):
        self._release()
        super().close()

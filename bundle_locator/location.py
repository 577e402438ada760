from collections import namedtuple


class ByteRange(namedtuple('ByteRange', ['offset', 'size'])):
    """Location of a bundled file within the app host.

    ``offset`` is the number of bytes since the beginning of the app host
    file, ``size`` the length in bytes of the bundled file.
    """
    __slots__ = ()

    def __new__(cls, offset, size):
        offset = int(offset)
        size = int(size)
        if offset < 0 or size < 0:
            raise ValueError(f"ByteRange fields must be >= 0 (offset={offset}, size={size})")
        return super().__new__(cls, offset, size)

    @property
    def end(self):
        return self.offset + self.size

    def __str__(self):
        return f"0x{self.offset:016x} (Size={self.size})"

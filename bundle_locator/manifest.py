"""Bundle header / manifest walker.

The app host stores, somewhere in its data, an 8-byte field holding the file
offset of the bundle header. The header layout (all little-endian):

    u32  major version
    u32  minor version
    i32  number of embedded files
    str  bundle id               (7-bit encoded length + UTF-8 bytes)

followed, for major version >= 2, by

    i64  .deps.json offset
    i64  .deps.json size

and, for major version < 2, by one record per embedded file:

    i64  offset
    i64  size
    u8   file type
    str  relative path
"""

import enum
from collections import namedtuple

from .errors import (HeaderOutOfBounds, ManifestEntryNotFound, NotBundled,
                     PayloadOutOfBounds, TruncatedData)
from .location import ByteRange


# region Configuration

# Versions from this one on carry the .deps.json location directly in the header.
DIRECT_LOCATION_MAJOR_VERSION = 2

# A 7-bit encoded int32 never takes more than 5 bytes.
MAX_7BIT_INT_BYTES = 5

# endregion Configuration


class FileType(enum.IntEnum):
    """Type tag of an embedded file record."""
    UNKNOWN = 0
    ASSEMBLY = 1
    NATIVE_BINARY = 2
    DEPS_JSON = 3
    RUNTIME_CONFIG_JSON = 4
    SYMBOLS = 5


BundleHeader = namedtuple('BundleHeader', ['major_version', 'minor_version', 'file_count',
                                           'bundle_id', 'end_offset'])

BundleEntry = namedtuple('BundleEntry', ['offset', 'size', 'file_type', 'relative_path'])


class BundleReader:
    """Sequential little-endian reader over a RandomAccessSource."""

    def __init__(self, source, position=0):
        self.source = source
        self.position = position

    def _take(self, fmt, size, what):
        value = self.source.unpack_from(fmt, self.position, what)[0]
        self.position += size
        return value

    def read_byte(self, what="byte"):
        return self._take('<B', 1, what)

    def read_uint32(self, what="uint32"):
        return self._take('<I', 4, what)

    def read_int32(self, what="int32"):
        return self._take('<i', 4, what)

    def read_int64(self, what="int64"):
        return self._take('<q', 8, what)

    def read_7bit_int(self, what="length prefix"):
        start = self.position
        result = 0
        for i in range(MAX_7BIT_INT_BYTES):
            b = self.read_byte(what)
            result |= (b & 0x7F) << (7 * i)
            if not b & 0x80:
                break
        else:
            raise TruncatedData(start, MAX_7BIT_INT_BYTES, len(self.source), f"malformed {what}")
        if result > 0x7FFFFFFF:
            raise TruncatedData(start, self.position - start, len(self.source), f"malformed {what}")
        return result

    def read_string(self, what="string"):
        length = self.read_7bit_int(f"{what} length")
        raw = self.source.read(self.position, length, what)
        self.position += length
        return raw.decode('utf-8', errors='replace')


def read_header_offset(source, field_offset):
    """Read the 8-byte header-offset field and validate it against the file.

    Shared by the signature and section/symbol strategies, which only differ
    in how they find ``field_offset``.
    """
    if field_offset < 0:
        raise HeaderOutOfBounds(field_offset, len(source))
    header_offset = BundleReader(source, field_offset).read_int64("header offset field")
    if header_offset == 0:
        raise NotBundled(field_offset)
    if header_offset < 0 or header_offset >= len(source):
        raise HeaderOutOfBounds(header_offset, len(source))
    return header_offset


def read_header(source, header_offset):
    reader = BundleReader(source, header_offset)
    major = reader.read_uint32("major version")
    minor = reader.read_uint32("minor version")
    file_count = reader.read_int32("embedded file count")
    bundle_id = reader.read_string("bundle id")
    return BundleHeader(major, minor, file_count, bundle_id, reader.position)


def walk_entries(source, header):
    """Yield the embedded file records of a legacy (major < 2) header."""
    reader = BundleReader(source, header.end_offset)
    for _ in range(max(header.file_count, 0)):
        offset = reader.read_int64("entry offset")
        size = reader.read_int64("entry size")
        file_type = reader.read_byte("entry type")
        relative_path = reader.read_string("entry path")
        yield BundleEntry(offset, size, file_type, relative_path)


def _checked(source, offset, size):
    if offset < 0 or size < 0:
        raise PayloadOutOfBounds(f"(offset={offset}, size={size})", len(source))
    location = ByteRange(offset, size)
    if location.end > len(source):
        raise PayloadOutOfBounds(location, len(source))
    return location


def resolve(source, header_offset):
    """Return the ByteRange of the bundled .deps.json file.

    Version 2+ headers hold the location right after the bundle id. Older
    headers are walked entry by entry until the first DEPS_JSON record.
    """
    header = read_header(source, header_offset)
    if header.major_version >= DIRECT_LOCATION_MAJOR_VERSION:
        reader = BundleReader(source, header.end_offset)
        offset = reader.read_int64(".deps.json offset")
        size = reader.read_int64(".deps.json size")
        return _checked(source, offset, size)

    for entry in walk_entries(source, header):
        if entry.file_type == FileType.DEPS_JSON:
            return _checked(source, entry.offset, entry.size)

    raise ManifestEntryNotFound(FileType.DEPS_JSON, header.file_count)


def resolve_from_field(source, field_offset):
    """Follow the header-offset field at ``field_offset`` to the .deps.json range."""
    return resolve(source, read_header_offset(source, field_offset))

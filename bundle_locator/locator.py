"""Common entry point shared by every discovery strategy."""

from . import manifest
from .log import Logger
from .source import BoundedView, RandomAccessSource


class BundleLocator:
    """Finds the bundled .deps.json of a single-file app host.

    Subclasses implement ``locate``; ``open_stream`` composes it with a
    bounded read-only mapping of the same file.
    """

    name = None

    def __init__(self, logger=None):
        self.logger = logger or Logger()

    def locate(self, path):
        """Return the ByteRange of the .deps.json file within ``path``."""
        raise NotImplementedError

    def open_stream(self, path):
        """Return a readable stream over the .deps.json bytes of ``path``.

        The returned BoundedView owns its mapping; close it (or read it to the
        end) to release the file.
        """
        location = self.locate(path)
        source = RandomAccessSource(path)
        self.logger.diag(f"{self.name}: opening view {location} of {path}")
        return BoundedView(source, location)

    def __repr__(self):
        return f"{type(self).__name__}()"


class MarkerFieldLocator(BundleLocator):
    """Base for strategies that find the 8-byte header-offset field.

    ``find_header_field`` returns the field's file offset; the manifest
    walker does the rest.
    """

    def find_header_field(self, source):
        raise NotImplementedError

    def locate(self, path):
        with RandomAccessSource(path) as source:
            field_offset = self.find_header_field(source)
            self.logger.diag(f"{self.name}: header offset field at 0x{field_offset:X}")
            location = manifest.resolve_from_field(source, field_offset)
        self.logger.diag(f"{self.name}: .deps.json at {location}")
        return location

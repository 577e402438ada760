"""Error kinds raised while locating a bundled manifest.

Every error is terminal for the strategy that raised it. Callers that want
resilience retry with another strategy (see ``pipeline.TieredLocator``).
"""


class LocatorError(Exception):
    """Base class for every locate failure."""


class NotBundled(LocatorError):
    """The header-offset field reads zero: the executable carries no bundle."""

    def __init__(self, field_offset):
        self.field_offset = field_offset
        super().__init__(
            f"Not a single-file app (header offset field at 0x{field_offset:X} is zero)")


class HeaderOutOfBounds(LocatorError):
    """The bundle header offset points outside the file."""

    def __init__(self, header_offset, file_length):
        self.header_offset = header_offset
        self.file_length = file_length
        super().__init__(
            f"The bundle header offset ({header_offset}) is out of bound [0, {file_length}]")


class PayloadOutOfBounds(LocatorError):
    """The resolved payload range does not fit inside the file."""

    def __init__(self, location, file_length):
        self.location = location
        self.file_length = file_length
        super().__init__(
            f"The payload range {location} ends beyond the file length ({file_length})")


class TruncatedData(LocatorError):
    """A read ran past the end of the file or hit a malformed field."""

    def __init__(self, offset, wanted, file_length, what="data"):
        self.offset = offset
        self.wanted = wanted
        self.file_length = file_length
        super().__init__(
            f"Cannot read {what} ({wanted} bytes) at offset {offset}: file length is {file_length}")


class SignatureNotFound(LocatorError):
    def __init__(self, file_length):
        self.file_length = file_length
        super().__init__(f"The bundle signature was not found (scanned {file_length:,} bytes)")


class SectionNotFound(LocatorError):
    def __init__(self, name, detail=None):
        self.name = name
        self.detail = detail
        msg = f"{name} section not found"
        if detail:
            msg += f" ({detail})"
        super().__init__(msg)


class UnsupportedPlatform(LocatorError):
    def __init__(self, platform):
        self.platform = platform
        super().__init__(
            f"Unsupported platform {platform!r}: only Linux, macOS and Windows are supported")


class ManifestEntryNotFound(LocatorError):
    def __init__(self, file_type, entry_count):
        self.file_type = file_type
        self.entry_count = entry_count
        super().__init__(
            f"The .deps.json location was not found in the manifest "
            f"(no entry of type {int(file_type)} among {entry_count})")


class TraceNotFound(LocatorError):
    def __init__(self, timeout, reason=None):
        self.timeout = timeout
        self.reason = reason
        msg = f"The .deps.json location was not found in the app host logs within {timeout:g}s"
        if reason:
            msg += f" ({reason})"
        super().__init__(msg)


class AllStrategiesFailed(LocatorError):
    """Raised by the tiered locator once every tier has failed."""

    def __init__(self, failures):
        self.failures = list(failures)
        lines = [f"{name}: {err}" for name, err in self.failures]
        super().__init__("All strategies failed:\n  " + "\n  ".join(lines))

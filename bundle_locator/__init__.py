"""Locate the bundled .deps.json inside a .NET single-file app host."""

__version__ = "1.0.0"

from .errors import (AllStrategiesFailed, HeaderOutOfBounds, LocatorError, ManifestEntryNotFound,
                     NotBundled, PayloadOutOfBounds, SectionNotFound, SignatureNotFound,
                     TraceNotFound, TruncatedData, UnsupportedPlatform)
from .location import ByteRange
from .locator import BundleLocator
from .pipeline import TieredLocator, create_locator
from .sections import SectionSymbolStrategy
from .signature import SignatureScanStrategy
from .trace import ProcessTraceStrategy

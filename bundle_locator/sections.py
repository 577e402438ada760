"""Locate the bundle header through the app host's data section.

The host keeps its header-offset field in a static ``bundle_marker_t``
placeholder inside the data section. When the binary still exports the
placeholder symbol its address gives the exact field position; otherwise a
fixed displacement into the section is used.
"""

import sys
from collections import namedtuple

from . import readers
from .errors import SectionNotFound, UnsupportedPlatform
from .locator import MarkerFieldLocator


# region Configuration

# Mangled name of bundle_marker_t::header_offset()::placeholder. Mach-O adds
# a leading underscore to C/C++ symbol names.
HEADER_OFFSET_SYMBOL = "_ZZN15bundle_marker_t13header_offsetEvE11placeholder"
HEADER_OFFSET_SYMBOLS = (HEADER_OFFSET_SYMBOL, "_" + HEADER_OFFSET_SYMBOL)

# Displacements of the header-offset field from the start of the data
# section. Found by inspecting the 6.0.3 singlefilehost builds; other host
# versions may lay the section out differently.
ELF_DATA_DISPLACEMENT = 16
MACHO_DATA_DISPLACEMENT = 96
PE_DATA_DISPLACEMENT = 0x5C60

# endregion Configuration


PlatformLayout = namedtuple('PlatformLayout', ['format', 'section', 'segment', 'displacement'])

ELF_LAYOUT = PlatformLayout('elf', '.data', None, ELF_DATA_DISPLACEMENT)
MACHO_LAYOUT = PlatformLayout('macho', '__data', '__DATA', MACHO_DATA_DISPLACEMENT)
PE_LAYOUT = PlatformLayout('pe', '.data', None, PE_DATA_DISPLACEMENT)

PLATFORM_LAYOUTS = {
    'linux': ELF_LAYOUT,
    'elf': ELF_LAYOUT,
    'darwin': MACHO_LAYOUT,
    'macos': MACHO_LAYOUT,
    'macho': MACHO_LAYOUT,
    'win32': PE_LAYOUT,
    'cygwin': PE_LAYOUT,
    'windows': PE_LAYOUT,
    'pe': PE_LAYOUT,
}


def layout_for_platform(name=None):
    """Map a platform or format name (default: the host) to its layout."""
    if name is None:
        name = sys.platform
    key = name.lower()
    if key.startswith('linux'):
        key = 'linux'
    layout = PLATFORM_LAYOUTS.get(key)
    if layout is None:
        raise UnsupportedPlatform(name)
    return layout


def section_label(layout):
    if layout.segment:
        return f"{layout.segment},{layout.section}"
    return layout.section


def find_data_section(image, layout):
    for sec in image.sections:
        if sec.name == layout.section and (layout.segment is None or sec.segment == layout.segment):
            return sec
    raise SectionNotFound(section_label(layout), f"{len(image.sections)} sections in {image.format} image")


def find_header_offset_symbol(image):
    for sym in image.symbols:
        if sym.name in HEADER_OFFSET_SYMBOLS:
            return sym
    return None


class SectionSymbolStrategy(MarkerFieldLocator):
    """Uses the data section (and placeholder symbol) of the host format.

    The platform layout is picked once, from ``platform`` or the running OS.
    ``reader`` overrides the executable reader for that layout.
    """

    name = "sections"

    def __init__(self, platform=None, reader=None, logger=None):
        super().__init__(logger)
        self.layout = layout_for_platform(platform)
        self._reader = reader or readers.READERS[self.layout.format]

    def find_header_field(self, source):
        image = self._reader(source)
        section = find_data_section(image, self.layout)
        self.logger.diag(
            f"{self.name}: {section_label(self.layout)} raw=0x{section.file_offset:X} "
            f"va=0x{section.virtual_address:X} size=0x{section.size:X}")

        symbol = find_header_offset_symbol(image)
        if symbol is not None:
            delta = section.virtual_address - section.file_offset
            self.logger.diag(f"{self.name}: symbol {symbol.name} va=0x{symbol.value:X}")
            return symbol.value - delta

        self.logger.diag(
            f"{self.name}: no placeholder symbol, using displacement "
            f"0x{self.layout.displacement:X} into {section_label(self.layout)}")
        return section.file_offset + self.layout.displacement

    def __repr__(self):
        return f"SectionSymbolStrategy(format={self.layout.format!r})"

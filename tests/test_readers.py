import struct

import pytest

from bundle_locator.errors import SectionNotFound
from bundle_locator.readers import detect_format, read_elf, read_macho
from bundle_locator.sections import HEADER_OFFSET_SYMBOL
from bundle_locator.source import RandomAccessSource

from bundles import ELF_VA_DELTA, MACHO_DATA_VA, build_elf, build_macho


def test_detect_format(write_file):
    cases = {
        b'MZ\x90\x00' + b'\x00' * 60: 'pe',
        b'\x7fELF' + b'\x00' * 60: 'elf',
        struct.pack('<I', 0xFEEDFACF) + b'\x00' * 60: 'macho',
        struct.pack('>I', 0xCAFEBABE) + b'\x00' * 60: 'macho',
        b'#!/bin/sh\n': None,
        b'': None,
    }
    for data, expected in cases.items():
        with RandomAccessSource(write_file(data)) as source:
            assert detect_format(source) == expected


def test_read_elf_sections_and_symbols(write_file):
    host = build_elf(symbol_displacement=40, symbol_name=HEADER_OFFSET_SYMBOL)
    with RandomAccessSource(write_file(host.data)) as source:
        image = read_elf(source)
    assert image.format == 'elf'
    data = [s for s in image.sections if s.name == '.data'][0]
    assert data.file_offset == 0x40
    assert data.virtual_address == 0x40 + ELF_VA_DELTA
    assert [s.name for s in image.symbols] == [HEADER_OFFSET_SYMBOL]
    assert image.symbols[0].value == data.virtual_address + 40


def test_read_elf_rejects_other_formats(write_file):
    with RandomAccessSource(write_file(b'MZ' + b'\x00' * 200)) as source:
        with pytest.raises(SectionNotFound):
            read_elf(source)


def test_read_macho_sections_and_symbols(write_file):
    host = build_macho(symbol_displacement=8, symbol_name="_" + HEADER_OFFSET_SYMBOL)
    with RandomAccessSource(write_file(host.data)) as source:
        image = read_macho(source)
    assert image.format == 'macho'
    assert image.arch == 'x86_64'
    (sec,) = image.sections
    assert (sec.segment, sec.name, sec.file_offset, sec.virtual_address) == \
        ('__DATA', '__data', 0x200, MACHO_DATA_VA)
    assert image.symbols[0].name == "_" + HEADER_OFFSET_SYMBOL
    assert image.symbols[0].value == MACHO_DATA_VA + 8


def test_read_macho_fat_slice_offsets_are_absolute(write_file):
    thin = build_macho().data
    slice_offset = 0x1000
    fat = struct.pack('>II', 0xCAFEBABE, 1)
    fat += struct.pack('>IIIII', 0x01000007, 3, slice_offset, len(thin), 12)
    fat += b'\x00' * (slice_offset - len(fat)) + thin
    with RandomAccessSource(write_file(fat)) as source:
        image = read_macho(source)
    assert image.sections[0].file_offset == slice_offset + 0x200


def test_read_macho_rejects_other_formats(write_file):
    with RandomAccessSource(write_file(b'\x7fELF' + b'\x00' * 60)) as source:
        with pytest.raises(SectionNotFound):
            read_macho(source)

import pytest

from bundle_locator.errors import SectionNotFound, UnsupportedPlatform
from bundle_locator.readers import ExecutableImage, Section, Symbol
from bundle_locator.sections import (ELF_LAYOUT, HEADER_OFFSET_SYMBOL, MACHO_LAYOUT,
                                     PE_DATA_DISPLACEMENT, PE_LAYOUT, SectionSymbolStrategy,
                                     layout_for_platform)
from bundle_locator.signature import BUNDLE_SIGNATURE, SignatureScanStrategy

from bundles import append_bundle, build_elf, build_macho


@pytest.mark.parametrize("name, layout", [
    ("linux", ELF_LAYOUT), ("linux2", ELF_LAYOUT), ("elf", ELF_LAYOUT),
    ("darwin", MACHO_LAYOUT), ("macOS", MACHO_LAYOUT),
    ("win32", PE_LAYOUT), ("Windows", PE_LAYOUT), ("pe", PE_LAYOUT),
])
def test_layout_for_platform(name, layout):
    assert layout_for_platform(name) == layout


def test_unsupported_platform():
    with pytest.raises(UnsupportedPlatform) as exc:
        SectionSymbolStrategy(platform="freebsd")
    assert exc.value.platform == "freebsd"


def test_elf_fallback_displacement(write_file):
    host = build_elf(field_displacement=16)
    location = SectionSymbolStrategy(platform="linux").locate(write_file(host.data))
    assert location == host.location


def test_elf_placeholder_symbol(write_file):
    host = build_elf(symbol_displacement=40, symbol_name=HEADER_OFFSET_SYMBOL)
    location = SectionSymbolStrategy(platform="linux").locate(write_file(host.data))
    assert location == host.location


def test_macho_fallback_displacement(write_file):
    host = build_macho(field_displacement=96)
    location = SectionSymbolStrategy(platform="darwin").locate(write_file(host.data))
    assert location == host.location


def test_macho_placeholder_symbol(write_file):
    host = build_macho(symbol_displacement=24, symbol_name="_" + HEADER_OFFSET_SYMBOL)
    location = SectionSymbolStrategy(platform="darwin").locate(write_file(host.data))
    assert location == host.location


def test_macho_data_section_in_wrong_segment(write_file):
    host = build_macho(segment=b'__DATA_CONST')
    with pytest.raises(SectionNotFound) as exc:
        SectionSymbolStrategy(platform="darwin").locate(write_file(host.data))
    assert exc.value.name == "__DATA,__data"


def test_wrong_format_for_layout(write_file):
    host = build_macho()
    with pytest.raises(SectionNotFound):
        SectionSymbolStrategy(platform="linux").locate(write_file(host.data))


def _pe_image(data_offset, data_va, symbols=()):
    def reader(source):
        sections = [
            Section('.text', None, 0x400, 0x1000, 0x200),
            Section('.data', None, data_offset, data_va, 0x6000),
        ]
        return ExecutableImage('pe', 'x86_64', sections, list(symbols))
    return reader


def test_pe_fallback_displacement(write_file):
    data_offset = 0x600
    buf = bytearray(data_offset + PE_DATA_DISPLACEMENT + 8)
    header_offset, location = append_bundle(buf)
    field = data_offset + PE_DATA_DISPLACEMENT
    buf[field:field + 8] = header_offset.to_bytes(8, 'little')
    strategy = SectionSymbolStrategy(platform="windows", reader=_pe_image(data_offset, 0x9000))
    assert strategy.locate(write_file(bytes(buf))) == location


def test_symbol_address_translated_with_section_delta(write_file):
    data_offset = 0x200
    data_va = 0x14000
    buf = bytearray(0x400)
    header_offset, location = append_bundle(buf)
    buf[0x230:0x238] = header_offset.to_bytes(8, 'little')
    reader = _pe_image(data_offset, data_va, [Symbol(HEADER_OFFSET_SYMBOL, data_va + 0x30)])
    strategy = SectionSymbolStrategy(platform="windows", reader=reader)
    assert strategy.locate(write_file(bytes(buf))) == location


def test_missing_data_section(write_file):
    def reader(source):
        return ExecutableImage('pe', 'x86_64', [Section('.text', None, 0x400, 0x1000, 0x200)], [])
    strategy = SectionSymbolStrategy(platform="windows", reader=reader)
    with pytest.raises(SectionNotFound) as exc:
        strategy.locate(write_file(b'\x00' * 0x800))
    assert exc.value.name == ".data"


def test_agrees_with_signature_scan(write_file):
    host = build_elf(symbol_displacement=32, symbol_name=HEADER_OFFSET_SYMBOL)
    # The host writer puts the signature right after the header-offset field.
    data = bytearray(host.data)
    start = host.field_offset + 8
    data[start:start + 32] = BUNDLE_SIGNATURE
    path = write_file(bytes(data))
    assert SectionSymbolStrategy(platform="linux").locate(path) == SignatureScanStrategy().locate(path)

"""Structured section / symbol views of ELF, PE and Mach-O app hosts.

ELF goes through pyelftools and PE through pefile. Mach-O is read with a
narrow load-command walk: only segments, their sections and LC_SYMTAB are
looked at, which is all the section/symbol strategy needs.
"""

import platform
import struct
from collections import namedtuple

import pefile
from elftools.common.exceptions import ELFError
from elftools.elf.elffile import ELFFile
from elftools.elf.sections import SymbolTableSection

from .errors import SectionNotFound


Section = namedtuple('Section', ['name', 'segment', 'file_offset', 'virtual_address', 'size'])
Symbol = namedtuple('Symbol', ['name', 'value'])
ExecutableImage = namedtuple('ExecutableImage', ['format', 'arch', 'sections', 'symbols'])


# region Format Detection

MH_MAGIC_64 = 0xFEEDFACF
FAT_MAGIC = 0xCAFEBABE
FAT_MAGIC_64 = 0xCAFEBABF


def detect_format(source):
    """Return 'pe', 'elf', 'macho' or None from the file magic."""
    if len(source) < 4:
        return None
    head = source.read(0, 4)
    if head[:2] == b'MZ':
        return 'pe'
    if head == b'\x7fELF':
        return 'elf'
    if struct.unpack('<I', head)[0] == MH_MAGIC_64:
        return 'macho'
    if struct.unpack('>I', head)[0] in (FAT_MAGIC, FAT_MAGIC_64):
        return 'macho'
    return None

# endregion Format Detection


# region ELF Reader

def read_elf(source):
    try:
        elf = ELFFile(source.file)
        sections = []
        symbols = []
        for sec in elf.iter_sections():
            if sec.name:
                sections.append(Section(sec.name, None, sec['sh_offset'], sec['sh_addr'], sec['sh_size']))
            if isinstance(sec, SymbolTableSection):
                for sym in sec.iter_symbols():
                    if sym.name and sym['st_value']:
                        symbols.append(Symbol(sym.name, sym['st_value']))
        arch = elf.get_machine_arch()
    except ELFError as e:
        raise SectionNotFound(".data", f"not a readable ELF file: {e}") from e
    return ExecutableImage('elf', arch, sections, symbols)

# endregion ELF Reader


# region PE Reader

def read_pe(source):
    try:
        pe = pefile.PE(source.path, fast_load=True)
    except pefile.PEFormatError as e:
        raise SectionNotFound(".data", f"not a readable PE file: {e}") from e
    try:
        sections = []
        for sec in pe.sections:
            name = sec.Name.rstrip(b'\x00').decode('ascii', errors='replace')
            sections.append(Section(name, None, sec.PointerToRawData, sec.VirtualAddress,
                                    sec.SizeOfRawData))
        # PE images carry no symbol table worth reading; exports are the
        # closest thing and are cheap to list.
        pe.parse_data_directories(
            directories=[pefile.DIRECTORY_ENTRY['IMAGE_DIRECTORY_ENTRY_EXPORT']])
        symbols = []
        exports = getattr(pe, 'DIRECTORY_ENTRY_EXPORT', None)
        if exports is not None:
            for exp in exports.symbols:
                if exp.name:
                    symbols.append(Symbol(exp.name.decode('ascii', errors='replace'), exp.address))
        arch = 'x86_64' if pe.FILE_HEADER.Machine == 0x8664 else f'machine_{pe.FILE_HEADER.Machine:#x}'
    finally:
        pe.close()
    return ExecutableImage('pe', arch, sections, symbols)

# endregion PE Reader


# region Mach-O Reader

CPU_TYPE_X86_64 = 0x01000007
CPU_TYPE_ARM64 = 0x0100000C
CPU_NAMES = {CPU_TYPE_X86_64: 'x86_64', CPU_TYPE_ARM64: 'arm64'}

LC_SEGMENT_64 = 0x19
LC_SYMTAB = 0x02
NLIST_64_SIZE = 16
N_STAB = 0xE0


def _host_cpu_type():
    machine = platform.machine().lower()
    if machine in ('arm64', 'aarch64'):
        return CPU_TYPE_ARM64
    return CPU_TYPE_X86_64


def _fat_slice_offset(source):
    """Pick the slice of a fat binary matching the host, else the first known one."""
    nfat_arch = source.unpack_from('>I', 4, "fat header")[0]
    if nfat_arch > 20:
        raise SectionNotFound("__DATA,__data", f"implausible fat arch count {nfat_arch}")
    wide = source.unpack_from('>I', 0, "fat magic")[0] == FAT_MAGIC_64
    entry_size = 32 if wide else 20
    slices = {}
    for i in range(nfat_arch):
        off = 8 + i * entry_size
        cputype = source.unpack_from('>I', off, "fat arch")[0]
        if wide:
            slice_off = source.unpack_from('>Q', off + 8, "fat arch")[0]
        else:
            slice_off = source.unpack_from('>I', off + 8, "fat arch")[0]
        if cputype in CPU_NAMES and cputype not in slices:
            slices[cputype] = slice_off
    if not slices:
        raise SectionNotFound("__DATA,__data", "no x86_64 or arm64 slice in fat binary")
    return slices.get(_host_cpu_type(), next(iter(slices.values())))


def _c_string(raw):
    return raw.split(b'\x00', 1)[0].decode('ascii', errors='replace')


def read_macho(source):
    """Parse a 64-bit Mach-O (or one slice of a fat binary).

    Section file offsets are returned relative to the start of the file, not
    of the slice, so virtual address deltas translate directly.
    """
    if len(source) < 32:
        raise SectionNotFound("__DATA,__data", "file too small for a Mach-O header")
    base = 0
    if struct.unpack('>I', source.read(0, 4))[0] in (FAT_MAGIC, FAT_MAGIC_64):
        base = _fat_slice_offset(source)

    magic, cputype, _, _, ncmds, _, _, _ = source.unpack_from('<IIIIIIII', base, "mach header")
    if magic != MH_MAGIC_64:
        raise SectionNotFound("__DATA,__data", f"not a 64-bit Mach-O (magic 0x{magic:08X})")
    arch = CPU_NAMES.get(cputype, f'cpu_{cputype:#x}')

    sections = []
    symtab = None
    cmd_offset = base + 32  # past mach_header_64
    for _ in range(ncmds):
        cmd, cmdsize = source.unpack_from('<II', cmd_offset, "load command")
        if cmdsize < 8:
            break

        if cmd == LC_SEGMENT_64:
            nsects = source.unpack_from('<I', cmd_offset + 64, "segment command")[0]
            sec_base = cmd_offset + 72
            for s in range(nsects):
                raw = source.read(sec_base + s * 80, 80, "section header")
                sectname = _c_string(raw[0:16])
                segname = _c_string(raw[16:32])
                s_addr, s_size, s_offset = struct.unpack_from('<QQI', raw, 32)
                sections.append(Section(sectname, segname, s_offset + base, s_addr, s_size))

        elif cmd == LC_SYMTAB:
            symtab = source.unpack_from('<IIII', cmd_offset + 8, "symtab command")

        cmd_offset += cmdsize

    symbols = []
    if symtab:
        symoff, nsyms, stroff, strsize = symtab
        strtab = source.read(base + stroff, strsize, "string table")
        for i in range(nsyms):
            n_strx, n_type, _, _, n_value = source.unpack_from(
                '<IBBHQ', base + symoff + i * NLIST_64_SIZE, "nlist entry")
            if n_type & N_STAB or not n_value or n_strx >= strsize:
                continue
            name = _c_string(strtab[n_strx:])
            if name:
                symbols.append(Symbol(name, n_value))

    return ExecutableImage('macho', arch, sections, symbols)

# endregion Mach-O Reader


READERS = {
    'elf': read_elf,
    'pe': read_pe,
    'macho': read_macho,
}

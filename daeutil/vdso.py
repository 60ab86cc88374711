"""Read the kernel version code embedded in the vDSO image of this process."""

from __future__ import annotations

import io
import os
import struct
import sys
from dataclasses import dataclass, field
from typing import BinaryIO

from .kernel_version import align

SHT_NULL = 0
SHT_NOTE = 7
SHT_NOBITS = 8

_AT_NULL = 0
_AT_SYSINFO_EHDR = 33

_ELF_MAGIC = b"\x7fELF"
_EHDR_LAYOUT = {32: "HHIIIIIHHHHHH", 64: "HHIQQQIHHHHHH"}
_SHDR_LAYOUT = {32: "IIIIIIIIII", 64: "IIQQQQIIQQ"}
_EHDR_SIZE = 64
_NOTE_HEADER_SIZE = 12


class VdsoError(Exception):
    """Raised when the vDSO or an ELF image cannot be read."""


@dataclass(frozen=True)
class ElfSection:
    name: str
    type: int
    offset: int
    size: int
    data: bytes = field(repr=False, default=b"")


@dataclass(frozen=True)
class _Header:
    elf_class: int
    byteorder: str
    shoff: int
    shentsize: int
    shnum: int
    shstrndx: int

    @property
    def prefix(self) -> str:
        return "<" if self.byteorder == "little" else ">"

    @property
    def table_end(self) -> int:
        return self.shoff + self.shnum * self.shentsize


@dataclass(frozen=True)
class _RawSection:
    name_offset: int
    type: int
    offset: int
    size: int

    @property
    def has_data(self) -> bool:
        return self.type not in (SHT_NULL, SHT_NOBITS)


def _parse_header(data: bytes) -> _Header:
    if len(data) < 16 or data[:4] != _ELF_MAGIC:
        raise VdsoError("reading ELF file: bad magic number")
    elf_class = {1: 32, 2: 64}.get(data[4])
    if elf_class is None:
        raise VdsoError(f"reading ELF file: unknown ELF class {data[4]}")
    byteorder = {1: "little", 2: "big"}.get(data[5])
    if byteorder is None:
        raise VdsoError(f"reading ELF file: unknown ELF data encoding {data[5]}")
    prefix = "<" if byteorder == "little" else ">"
    try:
        fields = struct.unpack_from(prefix + _EHDR_LAYOUT[elf_class], data, 16)
    except struct.error:
        raise VdsoError("reading ELF file: truncated header") from None
    header = _Header(
        elf_class=elf_class,
        byteorder=byteorder,
        shoff=fields[5],
        shentsize=fields[10],
        shnum=fields[11],
        shstrndx=fields[12],
    )
    needed = struct.calcsize(prefix + _SHDR_LAYOUT[elf_class])
    if header.shnum and header.shentsize < needed:
        raise VdsoError("reading ELF file: invalid section header size")
    return header


def _section_headers(data: bytes, header: _Header) -> list[_RawSection]:
    layout = header.prefix + _SHDR_LAYOUT[header.elf_class]
    try:
        unpacked = [
            struct.unpack_from(layout, data, header.shoff + index * header.shentsize)
            for index in range(header.shnum)
        ]
    except struct.error:
        raise VdsoError("reading ELF file: truncated section header table") from None
    return [_RawSection(f[0], f[1], f[4], f[5]) for f in unpacked]


def _extent(header: _Header, raws: list[_RawSection]) -> int:
    ends = [raw.offset + raw.size for raw in raws if raw.has_data]
    return max([header.table_end, *ends])


@dataclass(frozen=True)
class ElfFile:
    """The parts of an ELF image needed to find its notes."""

    elf_class: int
    byteorder: str
    sections: tuple[ElfSection, ...]

    @classmethod
    def parse(cls, data: bytes) -> "ElfFile":
        header = _parse_header(data)
        raws = _section_headers(data, header)
        contents = []
        for raw in raws:
            if not raw.has_data:
                contents.append(b"")
                continue
            if raw.offset + raw.size > len(data):
                raise VdsoError("reading ELF file: section data out of range")
            contents.append(bytes(data[raw.offset : raw.offset + raw.size]))
        strtab = contents[header.shstrndx] if header.shstrndx < len(contents) else b""

        def name_of(raw: _RawSection) -> str:
            tail = strtab[raw.name_offset :]
            return tail.split(b"\x00", 1)[0].decode("utf-8", "replace")

        sections = tuple(
            ElfSection(name_of(raw), raw.type, raw.offset, raw.size, content)
            for raw, content in zip(raws, contents)
        )
        return cls(header.elf_class, header.byteorder, sections)

    def sections_by_type(self, typ: int) -> list[ElfSection]:
        """All sections of the given section type, in file order."""
        return [section for section in self.sections if section.type == typ]


def vdso_memory_address(stream: BinaryIO, byteorder: str = sys.byteorder) -> int:
    """Find the vDSO address in an auxiliary-vector blob of 64-bit tag/value pairs."""
    layout = ("<" if byteorder == "little" else ">") + "QQ"
    entry_size = struct.calcsize(layout)
    while True:
        chunk = stream.read(entry_size)
        if len(chunk) < entry_size:
            reason = "EOF" if not chunk else "unexpected EOF"
            raise VdsoError(f"reading auxv entry: {reason}")
        tag, value = struct.unpack(layout, chunk)
        if tag == _AT_SYSINFO_EHDR:
            if value != 0:
                return value
            raise VdsoError("invalid vDSO address in auxv")
        if tag == _AT_NULL:
            raise VdsoError("no vdso address found in auxv")


def _read_exact(stream: io.BytesIO, n: int, what: str) -> bytes:
    chunk = stream.read(n)
    if len(chunk) < n:
        raise VdsoError(f"reading {what}: unexpected EOF")
    return chunk


def linux_version_code(data: bytes) -> int:
    """The LINUX_VERSION_CODE held in the ``Linux`` note of an ELF image."""
    try:
        elf = ElfFile.parse(data)
    except VdsoError as exc:
        raise VdsoError(f"reading vDSO ELF: {exc}") from exc
    sections = elf.sections_by_type(SHT_NOTE)
    if not sections:
        raise VdsoError("no note section found in vDSO ELF")
    prefix = "<" if elf.byteorder == "little" else ">"

    for section in sections:
        stream = io.BytesIO(section.data)
        while True:
            head = stream.read(_NOTE_HEADER_SIZE)
            if not head:
                break
            if len(head) < _NOTE_HEADER_SIZE:
                raise VdsoError("reading note header: unexpected EOF")
            name_size, desc_size, note_type = struct.unpack(prefix + "iii", head)

            name = ""
            if name_size > 0:
                raw_name = _read_exact(stream, align(name_size, 4), "note name")
                name = raw_name[:name_size].split(b"\x00", 1)[0].decode("utf-8", "replace")

            if desc_size > 0:
                if name == "Linux" and desc_size == 4 and note_type == 0:
                    raw = _read_exact(stream, 4, "note descriptor")
                    return struct.unpack(prefix + "I", raw)[0]
                _read_exact(stream, align(desc_size, 4), "note descriptor")

    raise VdsoError("no Linux note in ELF")


def _read_vdso_image(address: int) -> bytes:
    with open("/proc/self/mem", "rb", buffering=0) as mem:
        fd = mem.fileno()
        header = _parse_header(os.pread(fd, _EHDR_SIZE, address))
        table = os.pread(fd, header.table_end, address)
        raws = _section_headers(table, header)
        return os.pread(fd, _extent(header, raws), address)


def vdso_version() -> int:
    """The LINUX_VERSION_CODE embedded in this process's vDSO."""
    try:
        auxv = open("/proc/self/auxv", "rb")
    except PermissionError as exc:
        raise VdsoError(
            f"opening auxv: {exc} (process may not be dumpable due to file capabilities)"
        ) from exc
    except OSError as exc:
        raise VdsoError(f"opening auxv: {exc}") from exc
    with auxv:
        try:
            address = vdso_memory_address(auxv, sys.byteorder)
        except VdsoError as exc:
            raise VdsoError(f"finding vDSO memory address: {exc}") from exc

    try:
        image = _read_vdso_image(address)
    except OSError as exc:
        raise VdsoError(f"opening mem: {exc}") from exc
    except VdsoError as exc:
        raise VdsoError(f"reading linux version code: {exc}") from exc
    try:
        return linux_version_code(image)
    except VdsoError as exc:
        raise VdsoError(f"reading linux version code: {exc}") from exc
"""CBF container headers: the stub, the CFF header, and the CTF language tables."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional

from .reader import BinaryReader, BitFlags, CaesarError

logger = logging.getLogger(__name__)

STUB_HEADER_SIZE = 0x410
FILE_HEADER = b"CBF-TRANSLATOR-VERSION:04.00"

_INDEX = re.compile(r"\+?[0-9]+")


def check_stub_header(header: bytes) -> List[str]:
    """Check the stub header and return warnings about an unexpected layout."""
    if len(header) < STUB_HEADER_SIZE:
        raise CaesarError(
            f"stub header needs {STUB_HEADER_SIZE} bytes, got {len(header)}"
        )
    problems = []
    if not bytes(header[:STUB_HEADER_SIZE]).startswith(FILE_HEADER):
        problems.append("Unknown CBF version (Not 4.00.xx)")
    magic = header[0x401]
    if magic != 3:
        problems.append(f"CBF Magic unrecognized ({magic})")
    for problem in problems:
        logger.warning(problem)
    return problems


@dataclass
class CFFHeader:
    caesar_version: int = 0
    gpd_version: int = 0
    ecu_count: int = 0
    ecu_offset: int = 0
    ctf_offset: int = 0
    string_pool_size: int = 0
    dsc_offset: int = 0
    dsc_count: int = 0
    dsc_entry_size: int = 0
    cbf_version_string: str = ""
    gpd_version_string: str = ""
    xml_string: str = ""
    cff_header_size: int = 0
    base_addr: int = 0
    dsc_block_offset: int = 0
    dsc_block_size: int = 0
    dsc_pool: bytes = b""

    @classmethod
    def read(cls, reader: BinaryReader) -> "CFFHeader":
        reader.seek(STUB_HEADER_SIZE)
        cff_header_size = reader.read_i32()
        base_addr = reader.pos
        flags = BitFlags(reader, reader.read_u16())
        return cls(
            cff_header_size=cff_header_size,
            base_addr=base_addr,
            caesar_version=flags.i32(0),
            gpd_version=flags.i32(0),
            ecu_count=flags.i32(0),
            ecu_offset=flags.i32(0),
            ctf_offset=flags.i32(0),
            string_pool_size=flags.i32(0),
            dsc_offset=flags.i32(0),
            dsc_count=flags.i32(0),
            dsc_entry_size=flags.i32(0),
            cbf_version_string=flags.string(base_addr),
            gpd_version_string=flags.string(base_addr),
            xml_string=flags.string(base_addr),
        )


@dataclass
class CTFLanguage:
    qualifier: str = ""
    language_index: int = 0
    string_pool_size: int = 0
    offset_string_pool_base: int = 0
    string_count: int = 0
    strings: List[str] = field(default_factory=list)
    base_addr: int = 0

    @classmethod
    def read(cls, reader: BinaryReader, base_addr: int, header_size: int) -> "CTFLanguage":
        reader.seek(base_addr)
        flags = BitFlags(reader, reader.read_u16())
        language = cls(
            base_addr=base_addr,
            qualifier=flags.string(base_addr),
            language_index=flags.i16(0),
            string_pool_size=flags.i32(0),
            offset_string_pool_base=flags.i32(0),
            string_count=flags.i32(0),
        )
        language.strings = list(language._read_strings(reader, header_size))
        return language

    def _read_strings(self, reader: BinaryReader, header_size: int):
        table_offset = header_size + STUB_HEADER_SIZE + 4
        for entry in range(self.string_count):
            reader.seek(table_offset + entry * 4)
            string_offset = reader.read_i32()
            reader.seek(table_offset + string_offset)
            yield reader.read_cstr()

    def get_string(self, idx: int) -> Optional[str]:
        """Return the string at ``idx``, or None for a negative or unknown index."""
        if idx < 0 or idx >= len(self.strings):
            return None
        return self.strings[idx]

    def dump_table(self, path) -> None:
        """Write the string table as ``index,""""text""""`` lines."""
        with open(path, "w", encoding="utf-8", newline="") as out:
            for idx, text in enumerate(self.strings):
                out.write(f'{idx},""""{text}""""\n')

    def load_table(self, path) -> None:
        """Replace strings with those listed in a file written by ``dump_table``."""
        with open(path, "r", encoding="utf-8", newline="") as src:
            content = src.read()
        entries = []
        for line in content.split("\n"):
            parts = line.split(',"')
            if not _INDEX.fullmatch(parts[0]):
                continue
            if len(parts) < 2:
                raise CaesarError(f"string table line has no text: {line!r}")
            entries.append((int(parts[0]), parts[1].replace('"', "")))
        for idx, text in entries:
            if idx >= len(self.strings):
                raise CaesarError(
                    f"string index {idx} is beyond the table of {len(self.strings)} strings"
                )
            self.strings[idx] = text


@dataclass
class CTFHeader:
    unk1: int = 0
    qualifier: str = ""
    unk3: int = 0
    unk4: int = 0
    language_count: int = 0
    language_table_offset: int = 0
    unk7: str = ""
    base_addr: int = 0
    languages: List[CTFLanguage] = field(default_factory=list)

    @classmethod
    def read(cls, reader: BinaryReader, base_addr: int, header_size: int) -> "CTFHeader":
        reader.seek(base_addr)
        flags = BitFlags(reader, reader.read_u16())
        header = cls(
            base_addr=base_addr,
            unk1=flags.i32(0),
            qualifier=flags.string(base_addr),
            unk3=flags.i16(0),
            unk4=flags.i32(0),
            language_count=flags.i32(0),
            language_table_offset=flags.i32(0),
            unk7=flags.string(base_addr),
        )
        table = header.language_table_offset + base_addr
        for entry in range(header.language_count):
            reader.seek(table + entry * 4)
            entry_addr = reader.read_i32() + table
            header.languages.append(CTFLanguage.read(reader, entry_addr, header_size))
        return header

    def language(self, idx: int) -> CTFLanguage:
        if not 0 <= idx < len(self.languages):
            raise CaesarError(f"no language with index {idx}")
        return self.languages[idx]
"""The top-level CBF container: headers, language tables and the ECUs it holds."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List

from .ctf import STUB_HEADER_SIZE, CFFHeader, CTFHeader, check_stub_header
from .ecu import ECU
from .reader import BinaryReader, CaesarError

logger = logging.getLogger(__name__)


@dataclass
class Container:
    """A parsed CBF file."""

    cff_header: CFFHeader = field(default_factory=CFFHeader)
    ctf_header: CTFHeader = field(default_factory=CTFHeader)
    ecus: List[ECU] = field(default_factory=list)

    @classmethod
    def read(cls, reader: BinaryReader) -> "Container":
        """Read the stub, CFF and CTF headers; ECUs are read by ``read_ecus``."""
        reader.seek(0)
        check_stub_header(reader.read_bytes(STUB_HEADER_SIZE))

        cff_header_size = reader.read_i32()
        reader.read_bytes(cff_header_size)

        cff_header = CFFHeader.read(reader)
        ctf_offset = cff_header.base_addr + cff_header.ctf_offset
        ctf_header = CTFHeader.read(reader, ctf_offset, cff_header.cff_header_size)
        return cls(cff_header=cff_header, ctf_header=ctf_header)

    def read_ecus(self, reader: BinaryReader) -> None:
        """Read every ECU listed in the CFF header, replacing any read before."""
        self.ecus = []
        table = self.cff_header.ecu_offset + self.cff_header.base_addr
        lang = self.ctf_header.language(0)
        for entry in range(self.cff_header.ecu_count):
            reader.seek(table + entry * 4)
            offset = reader.read_i32()
            self.ecus.append(ECU.read(reader, lang, self.cff_header, table + offset))

    def dump_strings(self, path) -> None:
        """Write the first language's string table to ``path``."""
        try:
            self.ctf_header.language(0).dump_table(path)
        except OSError as exc:
            raise CaesarError(f"cannot write string table {path}: {exc}") from exc

    def load_strings(self, path) -> None:
        """Replace the first language's strings with those listed in ``path``."""
        try:
            self.ctf_header.language(0).load_table(path)
        except OSError as exc:
            raise CaesarError(f"cannot read string table {path}: {exc}") from exc


def read_cbf(path) -> Container:
    """Read a whole CBF file, including all of its ECUs."""
    try:
        data = Path(path).read_bytes()
    except OSError as exc:
        raise CaesarError(f"cannot read {path}: {exc}") from exc
    reader = BinaryReader(data)
    container = Container.read(reader)
    container.read_ecus(reader)
    return container
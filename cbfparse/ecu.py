"""ECU definitions: interfaces, global pools and the variants built from them."""

from __future__ import annotations

import logging
import struct
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from .ctf import STUB_HEADER_SIZE, CFFHeader, CTFLanguage
from .dtc import DTC
from .interface import ECUInterface, InterfaceSubType
from .presentation import Presentation
from .reader import BinaryReader, BitFlags
from .service import Service
from .variant import ECUVariant

logger = logging.getLogger(__name__)

_DTC_ENTRY = struct.Struct("<iii")
_PRES_ENTRY = struct.Struct("<ii")
_ENV_ENTRY = struct.Struct("<ii")
_DIAG_JOB_ENTRY = struct.Struct("<iiiH")
_VARIANT_ENTRY = struct.Struct("<iiH")


@dataclass(frozen=True)
class Block:
    """Location and shape of a pool of entries in the data buffer."""

    block_offset: int = 0
    entry_count: int = 0
    entry_size: int = 0
    block_size: int = 0

    @classmethod
    def read(cls, flags: BitFlags, relative_offset: int) -> "Block":
        return cls(
            block_offset=flags.i32(0) + relative_offset,
            entry_count=flags.i32(0),
            entry_size=flags.i32(0),
            block_size=flags.i32(0),
        )


def _pool_entries(
    reader: BinaryReader, block: Block, layout: struct.Struct
) -> List[Tuple[int, ...]]:
    """Read a block's pool and split it into fixed-layout index entries."""
    reader.seek(block.block_offset)
    pool = BinaryReader(reader.read_bytes(block.entry_count * block.entry_size))
    return [layout.unpack(pool.read_bytes(layout.size)) for _ in range(block.entry_count)]


@dataclass
class ECU:
    qualifier: str = ""
    name: Optional[str] = None
    description: Optional[str] = None
    xml_version: str = ""
    iface_block_count: int = 0
    iface_table_offset: int = 0
    sub_iface_count: int = 0
    sub_iface_offset: int = 0
    class_name: str = ""
    unk7: str = ""
    unk8: str = ""
    ignition_required: bool = False
    unk2: int = 0
    unk_block_count: int = 0
    unk_block_offset: int = 0
    sgml_source: int = 0
    unk6_relative_offset: int = 0
    ecu_variant: Block = Block()
    diag_job: Block = Block()
    dtc: Block = Block()
    env: Block = Block()
    vc_domain: Block = Block()
    presentations: Block = Block()
    internal_presentations: Block = Block()
    unk: Block = Block()
    unk39: int = 0
    base_addr: int = 0
    interfaces: List[ECUInterface] = field(default_factory=list)
    interface_sub_types: List[InterfaceSubType] = field(default_factory=list)
    global_dtcs: List[DTC] = field(default_factory=list)
    global_presentations: List[Presentation] = field(default_factory=list)
    global_internal_presentations: List[Presentation] = field(default_factory=list)
    global_env_ctxs: List[Service] = field(default_factory=list)
    global_services: List[Service] = field(default_factory=list)
    variants: List[ECUVariant] = field(default_factory=list)

    @classmethod
    def read(
        cls, reader: BinaryReader, lang: CTFLanguage, header: CFFHeader, base_addr: int
    ) -> "ECU":
        """Read the ECU at ``base_addr`` together with all of its variants."""
        reader.seek(base_addr)
        flags = BitFlags(reader, reader.read_u32())
        ext_flags = reader.read_u16()
        reader.read_i32()

        logger.debug("Processing ECU - Base address: 0x%08X", base_addr)
        ecu = cls(
            base_addr=base_addr,
            qualifier=flags.string(base_addr),
            name=lang.get_string(flags.i32(-1)),
            description=lang.get_string(flags.i32(-1)),
            xml_version=flags.string(base_addr),
            iface_block_count=flags.i32(0),
            iface_table_offset=flags.i32(0),
            sub_iface_count=flags.i32(0),
            sub_iface_offset=flags.i32(0),
            class_name=flags.string(base_addr),
            unk7=flags.string(base_addr),
            unk8=flags.string(base_addr),
        )

        data_offset = (
            header.string_pool_size + STUB_HEADER_SIZE + header.cff_header_size + 4
        )

        ecu.ignition_required = flags.i16(0) > 0
        ecu.unk2 = flags.i16(0)
        ecu.unk_block_count = flags.i16(0)
        ecu.unk_block_offset = flags.i32(0)
        ecu.sgml_source = flags.i16(0)
        ecu.unk6_relative_offset = flags.i32(0)

        ecu.ecu_variant = Block.read(flags, data_offset)
        ecu.diag_job = Block.read(flags, data_offset)
        ecu.dtc = Block.read(flags, data_offset)

        env_offset = flags.i32(0) + data_offset
        env_count = flags.i32(0)
        env_size = flags.i32(0)

        # The env block straddles the main and the extended flag words.
        ext = BitFlags(reader, ext_flags)
        ecu.env = Block(env_offset, env_count, env_size, ext.i32(0))
        ecu.vc_domain = Block.read(ext, data_offset)
        ecu.presentations = Block.read(ext, data_offset)
        ecu.internal_presentations = Block.read(ext, data_offset)
        ecu.unk = Block.read(ext, data_offset)
        ecu.unk39 = ext.i32(0)

        iface_table = base_addr + ecu.iface_table_offset
        for entry in range(ecu.iface_block_count):
            reader.seek(iface_table + entry * 4)
            offset = reader.read_i32()
            ecu.interfaces.append(ECUInterface.read(reader, iface_table + offset, lang))

        sub_table = base_addr + ecu.sub_iface_offset
        for entry in range(ecu.sub_iface_count):
            reader.seek(sub_table + entry * 4)
            offset = reader.read_i32()
            ecu.interface_sub_types.append(
                InterfaceSubType.read(reader, sub_table + offset, entry, lang)
            )

        ecu.global_presentations = ecu._read_presentations(reader, lang, ecu.presentations)
        ecu.global_internal_presentations = ecu._read_presentations(
            reader, lang, ecu.internal_presentations
        )
        ecu.global_env_ctxs = ecu._read_env_ctxs(reader, lang)
        ecu.global_services = ecu._read_diag_jobs(reader, lang)
        ecu.global_dtcs = ecu._read_dtcs(reader, lang)
        ecu.variants = ecu._read_variants(reader, lang)

        # The global pools were only needed to build the variants.
        ecu.global_env_ctxs = []
        ecu.global_services = []
        ecu.global_dtcs = []
        return ecu

    @staticmethod
    def _read_presentations(
        reader: BinaryReader, lang: CTFLanguage, block: Block
    ) -> List[Presentation]:
        return [
            Presentation.read(reader, offset + block.block_offset, idx, lang)
            for idx, (offset, _size) in enumerate(_pool_entries(reader, block, _PRES_ENTRY))
        ]

    def _read_env_ctxs(self, reader: BinaryReader, lang: CTFLanguage) -> List[Service]:
        block = self.env
        return [
            Service.read(reader, offset + block.block_offset, idx, lang, self)
            for idx, (offset, _size) in enumerate(_pool_entries(reader, block, _ENV_ENTRY))
        ]

    def _read_diag_jobs(self, reader: BinaryReader, lang: CTFLanguage) -> List[Service]:
        block = self.diag_job
        return [
            Service.read(reader, offset + block.block_offset, idx, lang, self)
            for idx, (offset, _size, _crc, _config) in enumerate(
                _pool_entries(reader, block, _DIAG_JOB_ENTRY)
            )
        ]

    def _read_dtcs(self, reader: BinaryReader, lang: CTFLanguage) -> List[DTC]:
        block = self.dtc
        return [
            DTC.read(reader, offset + block.block_offset, idx, lang)
            for idx, (offset, _size, _crc) in enumerate(
                _pool_entries(reader, block, _DTC_ENTRY)
            )
        ]

    def _read_variants(self, reader: BinaryReader, lang: CTFLanguage) -> List[ECUVariant]:
        block = self.ecu_variant
        return [
            ECUVariant.read(reader, self, lang, offset + block.block_offset, size)
            for offset, size, _config in _pool_entries(reader, block, _VARIANT_ENTRY)
        ]
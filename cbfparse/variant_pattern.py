"""Variant patterns: how an ECU variant is recognised by its vendor ID."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from .reader import BinaryReader, BitFlags

logger = logging.getLogger(__name__)


class ECUType(Enum):
    """The diagnostic protocol an ECU speaks."""

    KWP = "kwp"
    UDS = "uds"
    UNK = "unknown"


@dataclass
class VariantPattern:
    unk_buffer_size: int = 0
    unk_buffer: bytes = b""
    unk3: int = 0
    unk4: int = 0
    unk5: int = 0
    vendor_name: str = ""
    kwp_vendor_id: int = 0
    unk8: int = 0
    unk9: int = 0
    unk10: int = 0
    unk11: int = 0
    unk12: int = 0
    unk13: int = 0
    unk14: int = 0
    unk15: int = 0
    unk16: bytes = b""
    unk17: int = 0
    unk18: int = 0
    unk19: int = 0
    unk20: int = 0
    unk21: str = ""
    unk22: int = 0
    unk23: int = 0
    uds_vendor_id: int = 0
    pattern_type: int = 0
    variant_id: ECUType = ECUType.UNK
    base_addr: int = 0

    @classmethod
    def read(cls, reader: BinaryReader, base_addr: int) -> "VariantPattern":
        reader.seek(base_addr)
        flags = BitFlags(reader, reader.read_u32())
        buffer_size = flags.i32(0)
        logger.debug("Processing Variant Pattern - Base address: 0x%08X", base_addr)
        pattern = cls(
            base_addr=base_addr,
            unk_buffer_size=buffer_size,
            unk_buffer=flags.dump(max(buffer_size, 0), base_addr),
            unk3=flags.i32(0),
            unk4=flags.i32(0),
            unk5=flags.i32(0),
            vendor_name=flags.string(base_addr),
            kwp_vendor_id=flags.i16(0),
            unk8=flags.i16(0),
            unk9=flags.i16(0),
            unk10=flags.i16(0),
            unk11=flags.u8(0),
            unk12=flags.u8(0),
            unk13=flags.u8(0),
            unk14=flags.u8(0),
            unk15=flags.u8(0),
            unk16=flags.dump(5, base_addr),
            unk17=flags.u8(0),
            unk18=flags.u8(0),
            unk19=flags.u8(0),
            unk20=flags.u8(0),
            unk21=flags.string(base_addr),
            unk22=flags.i32(0),
            unk23=flags.i32(0),
            uds_vendor_id=flags.i32(0),
            pattern_type=flags.i32(0),
        )
        pattern.variant_id = ECUType.KWP if pattern.uds_vendor_id == 0 else ECUType.UDS
        return pattern

    def vendor_id(self) -> int:
        """The vendor ID matching the ECU's protocol."""
        if self.variant_id is ECUType.KWP:
            return self.kwp_vendor_id
        if self.variant_id is ECUType.UDS:
            return self.uds_vendor_id
        return 0
"""Presentations: how raw parameter bits are shown, and the scales behind them."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple, Union

from .ctf import CTFLanguage
from .reader import BinaryReader, BitFlags

logger = logging.getLogger(__name__)


@dataclass
class Scale:
    """One entry of a presentation's scale table: an enum value or a linear factor."""

    enum_lower_bound: int = 0
    enum_upper_bound: int = 0
    prep_lower_bound: int = 0
    prep_upper_bound: int = 0
    multiply_factor: float = 0.0
    add_const_offset: float = 0.0
    si_count: int = 0
    offset_si: int = 0
    us_count: int = 0
    offset_us: int = 0
    enum_description: Optional[str] = None
    unkc: int = 0
    base_addr: int = 0

    @classmethod
    def read(cls, reader: BinaryReader, base_addr: int, lang: CTFLanguage) -> "Scale":
        reader.seek(base_addr)
        flags = BitFlags(reader, reader.read_u16())
        return cls(
            base_addr=base_addr,
            enum_lower_bound=flags.i32(0),
            enum_upper_bound=flags.i32(0),
            prep_lower_bound=flags.i32(0),
            prep_upper_bound=flags.i32(0),
            multiply_factor=flags.f32(0.0),
            add_const_offset=flags.f32(0.0),
            si_count=flags.i32(0),
            offset_si=flags.i32(0),
            us_count=flags.i32(0),
            offset_us=flags.i32(0),
            enum_description=lang.get_string(flags.i32(-1)),
            unkc=flags.i32(0),
        )


@dataclass(frozen=True)
class IdenticalFormat:
    """The raw value is shown as it is."""


@dataclass(frozen=True)
class BinaryFormat:
    """The value is shown as a string of bits."""


@dataclass(frozen=True)
class HexDumpFormat:
    """The value is shown as a hex dump."""


@dataclass(frozen=True)
class BoolFormat:
    """A two-state value with optional names for each state."""

    pos_name: Optional[str] = None
    neg_name: Optional[str] = None


@dataclass(frozen=True)
class TableEntry:
    name: str
    start: float
    end: float


@dataclass(frozen=True)
class TableFormat:
    """An enumeration: raw ranges mapped to names."""

    entries: Tuple[TableEntry, ...] = ()


@dataclass(frozen=True)
class LinearFormat:
    """Shown value = raw * multiplier + offset."""

    multiplier: float
    offset: float


@dataclass(frozen=True)
class StringFormat:
    """The raw bytes are text in the given encoding."""

    encoding: str = "utf8"


DataFormat = Union[
    IdenticalFormat,
    BinaryFormat,
    HexDumpFormat,
    BoolFormat,
    TableFormat,
    LinearFormat,
    StringFormat,
]


@dataclass
class Presentation:
    """A presentation record.

    Defaults are the values a record takes when none of its fields are present.
    """

    qualifier: str = ""
    description: Optional[str] = None
    scale_table_offset: int = -1
    scale_count: int = 0
    unk5: int = -1
    unk6: int = 0
    unk7: int = 0
    unk8: int = 0
    unk9: int = 0
    unka: int = 0
    unkb: int = 0
    unkc: int = 0
    unkd: int = 0
    unke: int = 0
    unkf: int = 0
    display_unit: Optional[str] = None
    unk11: int = 0
    unk12: int = 0
    unk13: int = 0
    unk14: int = -1
    unk15: int = 0
    description2: Optional[str] = None
    unk17: int = -1
    unk18: int = 0
    unk19: int = -1
    type_length_1a: int = -1
    unk1b: int = -1
    type_1c: int = -1
    unk1d: int = 0
    enumtype_1e: int = 0
    unk1f: int = 0
    unk20: int = 0
    type_length_bytes_maybe: int = 0
    unk22: int = -1
    unk23: int = 0
    unk24: int = 0
    unk25: int = 0
    unk26: int = 0
    base_addr: int = 0
    presentation_idx: int = 0
    scale_list: List[Scale] = field(default_factory=list)

    @classmethod
    def read(
        cls,
        reader: BinaryReader,
        base_addr: int,
        presentation_idx: int,
        lang: CTFLanguage,
    ) -> "Presentation":
        reader.seek(base_addr)
        flags = BitFlags(reader, reader.read_u32())
        ext_flags = reader.read_u16()

        pres = cls(
            base_addr=base_addr,
            presentation_idx=presentation_idx,
            qualifier=flags.string(base_addr),
            description=lang.get_string(flags.i32(-1)),
            scale_table_offset=flags.i32(-1),
            scale_count=flags.i32(0),
            unk5=flags.i32(-1),
            unk6=flags.i32(0),
            unk7=flags.i32(0),
            unk8=flags.i32(0),
            unk9=flags.i32(0),
            unka=flags.i32(0),
            unkb=flags.i32(0),
            unkc=flags.i32(0),
            unkd=flags.i16(0),
            unke=flags.i16(0),
            unkf=flags.i16(0),
            display_unit=lang.get_string(flags.i32(-1)),
            unk11=flags.i32(0),
            unk12=flags.i32(0),
            unk13=flags.i32(0),
            unk14=flags.i32(-1),
            unk15=flags.i32(0),
            description2=lang.get_string(flags.i32(-1)),
            unk17=flags.i32(-1),
            unk18=flags.i32(0),
            unk19=flags.i32(-1),
            type_length_1a=flags.i32(-1),
            unk1b=flags.i8(-1),
            type_1c=flags.i8(-1),
            unk1d=flags.i8(0),
            enumtype_1e=flags.i8(0),
            unk1f=flags.i8(0),
            unk20=flags.i32(0),
        )

        ext = BitFlags(reader, ext_flags)
        pres.type_length_bytes_maybe = ext.i32(0)
        pres.unk22 = ext.i32(-1)
        pres.unk23 = ext.i16(0)
        pres.unk24 = ext.i32(0)
        pres.unk25 = ext.i32(0)
        pres.unk26 = ext.i32(0)

        if pres.scale_count > 0:
            table_base = base_addr + pres.scale_table_offset
            for entry in range(pres.scale_count):
                reader.seek(table_base + entry * 4)
                entry_offset = reader.read_i32()
                pres.scale_list.append(Scale.read(reader, entry_offset + table_base, lang))
        return pres

    def data_type(self) -> int:
        """Return the internal data type code of this presentation, or -1."""
        if self.unk14 != -1:
            return 17
        if self.scale_table_offset != -1:
            return 20
        if -1 not in (self.unk5,) or any(
            value != -1 for value in (self.unk17, self.unk19, self.unk22)
        ):
            return 18
        if self.unk1b != -1:
            if self.unk1b == 6:
                return 17
            if self.unk1b == 7:
                return 22
            if self.unk1b in (8, 5):
                return 6
            return -1
        if self.type_length_1a == -1 or self.type_1c != -1:
            logger.warning("Type length and type must be valid")
        if self.enumtype_1e in (1, 2):
            return 5
        return 2

    def create(self, prep) -> Optional[DataFormat]:
        """Work out the data format for a preparation shown with this presentation."""
        size_in_bits = prep.size_in_bits
        scales = self.scale_list
        is_enum = (self.enumtype_1e == 0 and self.type_1c == 1) or len(scales) > 1

        if size_in_bits == 1 or (is_enum and len(scales) == 2):
            if not scales:
                return BoolFormat()
            if is_enum:
                return BoolFormat(
                    pos_name=scales[1].enum_description,
                    neg_name=scales[0].enum_description,
                )
            return IdenticalFormat()

        if is_enum and self.scale_count >= 1:
            # A binary-encoded string is stored as a full scale table whose
            # entries are all named like "b0101...".
            is_binary_str = all(
                (scale.enum_description or "").startswith("b") for scale in scales
            )
            if (
                0 <= size_in_bits <= 16
                and self.scale_count == 2 ** size_in_bits
                and is_binary_str
            ):
                logger.info(
                    "Found Binary table with %d entries! %s", self.scale_count, self.qualifier
                )
                return BinaryFormat()
            return TableFormat(
                tuple(
                    TableEntry(
                        name=scale.enum_description
                        if scale.enum_description is not None
                        else "MISSING ENUM",
                        start=float(scale.enum_lower_bound),
                        end=float(scale.enum_upper_bound),
                    )
                    for scale in scales
                )
            )

        d_type = self.data_type()
        if d_type == 6:
            return IdenticalFormat()
        if d_type == 20:
            if not scales:
                logger.warning(
                    "Scale type %s has no scale list. Assuming identical", self.qualifier
                )
                return IdenticalFormat()
            return LinearFormat(
                multiplier=scales[0].multiply_factor, offset=scales[0].add_const_offset
            )
        if d_type == 18:
            return HexDumpFormat()
        if d_type == 17:
            return StringFormat("utf8")
        return None
import struct
from types import SimpleNamespace

import pytest

from cbfparse.ctf import CTFLanguage
from cbfparse.presentation import (
    BinaryFormat,
    BoolFormat,
    HexDumpFormat,
    IdenticalFormat,
    LinearFormat,
    Presentation,
    Scale,
    StringFormat,
    TableEntry,
    TableFormat,
)
from cbfparse.reader import BinaryReader


def prep(bits):
    return SimpleNamespace(size_in_bits=bits)


def test_scale_read_present_fields():
    lang = CTFLanguage(strings=["zero", "one"])
    data = struct.pack("<Hiiffi", 0x433, 3, 7, 0.25, -1.5, 1)
    scale = Scale.read(BinaryReader(data), 0, lang)
    assert scale.enum_lower_bound == 3
    assert scale.enum_upper_bound == 7
    assert scale.multiply_factor == 0.25
    assert scale.add_const_offset == -1.5
    assert scale.enum_description == "one"
    assert scale.prep_lower_bound == 0


def test_scale_read_absent_fields():
    lang = CTFLanguage(strings=["zero"])
    scale = Scale.read(BinaryReader(struct.pack("<H", 0)), 0, lang)
    assert scale == Scale()
    assert scale.enum_description is None


def test_presentation_read_all_absent():
    lang = CTFLanguage()
    pres = Presentation.read(BinaryReader(struct.pack("<IH", 0, 0)), 0, 3, lang)
    assert pres.presentation_idx == 3
    assert pres.scale_table_offset == -1
    assert pres.data_type() == 2
    assert pres.create(prep(8)) is None


def test_presentation_read_extended_flags():
    lang = CTFLanguage()
    pres = Presentation.read(BinaryReader(struct.pack("<IHi", 0, 1, 3)), 0, 0, lang)
    assert pres.type_length_bytes_maybe == 3
    assert pres.unk22 == -1


def test_presentation_read_with_scale_table():
    header = struct.pack("<IHiii", 0xD, 0, 18, 24, 1)
    data = header + b"PRES\0" + b"\0" + struct.pack("<i", 4) + struct.pack("<Hff", 0x30, 0.5, 2.0)
    pres = Presentation.read(BinaryReader(data), 0, 0, CTFLanguage())
    assert pres.qualifier == "PRES"
    assert len(pres.scale_list) == 1
    assert pres.data_type() == 20
    assert pres.create(prep(16)) == LinearFormat(multiplier=0.5, offset=2.0)


def test_single_bit_without_scales_is_bool():
    assert Presentation().create(prep(1)) == BoolFormat(None, None)


def test_two_scale_enum_is_named_bool():
    pres = Presentation(
        scale_list=[Scale(enum_description="Off"), Scale(enum_description="On")],
        scale_count=2,
    )
    assert pres.create(prep(8)) == BoolFormat(pos_name="On", neg_name="Off")


def test_single_bit_non_enum_is_identical():
    pres = Presentation(scale_list=[Scale()], scale_count=1)
    assert pres.create(prep(1)) == IdenticalFormat()


def test_enum_table():
    pres = Presentation(
        enumtype_1e=0,
        type_1c=1,
        scale_count=3,
        scale_list=[
            Scale(enum_lower_bound=0, enum_upper_bound=0, enum_description="Low"),
            Scale(enum_lower_bound=1, enum_upper_bound=4, enum_description="Mid"),
            Scale(enum_lower_bound=5, enum_upper_bound=9),
        ],
    )
    result = pres.create(prep(8))
    assert isinstance(result, TableFormat)
    assert result.entries[1] == TableEntry("Mid", 1.0, 4.0)
    assert result.entries[2].name == "MISSING ENUM"
    assert [e.start for e in result.entries] == [0.0, 1.0, 5.0]


def test_binary_table():
    names = ["b00", "b01", "b10", "b11"]
    pres = Presentation(
        scale_count=4, scale_list=[Scale(enum_description=n) for n in names]
    )
    assert pres.create(prep(2)) == BinaryFormat()


def test_binary_table_needs_b_prefix():
    names = ["b00", "x01", "b10", "b11"]
    pres = Presentation(
        scale_count=4, scale_list=[Scale(enum_description=n) for n in names]
    )
    result = pres.create(prep(2))
    assert result != BinaryFormat()
    assert [e.name for e in result.entries] == names
    assert [e.start for e in result.entries] == [0.0, 0.0, 0.0, 0.0]


def test_string_type():
    pres = Presentation(unk14=0)
    assert pres.data_type() == 17
    assert pres.create(prep(64)) == StringFormat("utf8")


def test_hexdump_type():
    pres = Presentation(unk5=4)
    assert pres.data_type() == 18
    assert pres.create(prep(32)) == HexDumpFormat()


@pytest.mark.parametrize("unk1b,expected", [(8, 6), (5, 6), (6, 17), (7, 22), (3, -1)])
def test_unk1b_types(unk1b, expected):
    assert Presentation(unk1b=unk1b).data_type() == expected


def test_unk1b_identical_and_unknown():
    assert Presentation(unk1b=8).create(prep(8)) == IdenticalFormat()
    assert Presentation(unk1b=7).create(prep(8)) is None


def test_scale_type_without_scales_is_identical():
    pres = Presentation(scale_table_offset=0x20)
    assert pres.create(prep(16)) == IdenticalFormat()


def test_enumtype_selects_enum_code():
    assert Presentation(enumtype_1e=1).data_type() == 5
    assert Presentation(enumtype_1e=2).data_type() == 5
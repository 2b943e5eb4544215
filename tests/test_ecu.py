import struct

import pytest

from cbfparse.ctf import CFFHeader, CTFLanguage, STUB_HEADER_SIZE
from cbfparse.ecu import ECU, Block
from cbfparse.reader import BinaryReader, BitFlags, CaesarError

BASE = 0x20
DATA_OFFSET = STUB_HEADER_SIZE + 4


def make_buffer(size=0x600):
    return bytearray(size)


def put(buf, at, data):
    buf[at:at + len(data)] = data


def test_block_read_adds_relative_offset():
    flags = BitFlags(BinaryReader(struct.pack("<4i", 16, 2, 8, 16)), 0xF)
    block = Block.read(flags, DATA_OFFSET)
    assert block == Block(16 + DATA_OFFSET, 2, 8, 16)


def test_block_read_absent_fields():
    block = Block.read(BitFlags(BinaryReader(b""), 0), 100)
    assert block == Block(100, 0, 0, 0)


def test_qualifier_and_name():
    buf = make_buffer()
    header = struct.pack("<IHi", 0b11, 0, 0) + struct.pack("<ii", 18, 0)
    put(buf, BASE, header + b"ME97\0")
    ecu = ECU.read(BinaryReader(buf), CTFLanguage(strings=["Engine"]), CFFHeader(), BASE)
    assert ecu.qualifier == "ME97"
    assert ecu.name == "Engine"
    assert ecu.description is None
    assert ecu.variants == []


def test_interfaces_read_from_table():
    buf = make_buffer()
    flags = (1 << 0) | (1 << 4) | (1 << 5)
    header = struct.pack("<IHi", flags, 0, 0) + struct.pack("<iii", 22, 1, 27)
    table = struct.pack("<i", 4)
    iface = struct.pack("<Ii", 1, 8) + b"IFACE\0"
    put(buf, BASE, header + b"ECU1\0" + table + iface)
    ecu = ECU.read(BinaryReader(buf), CTFLanguage(), CFFHeader(), BASE)
    assert ecu.qualifier == "ECU1"
    assert [i.qualifier for i in ecu.interfaces] == ["IFACE"]
    assert ecu.interface_sub_types == []


def test_presentations_and_variants_from_blocks():
    buf = make_buffer()
    main_flags = sum(1 << bit for bit in (17, 18, 19, 20))
    ext_flags = sum(1 << bit for bit in (5, 6, 7, 8))
    header = struct.pack("<IHi", main_flags, ext_flags, 0)
    header += struct.pack("<4i", 0x00, 1, 10, 10)
    header += struct.pack("<4i", 0x40, 1, 8, 8)
    put(buf, BASE, header)

    variant_block = struct.pack("<IIi", 1, 0, 12) + b"V1\0"
    put(buf, DATA_OFFSET, struct.pack("<iiH", 0x20, len(variant_block), 0))
    put(buf, DATA_OFFSET + 0x20, variant_block)

    put(buf, DATA_OFFSET + 0x40, struct.pack("<ii", 0x10, 0))
    put(buf, DATA_OFFSET + 0x50, struct.pack("<IHi", 1, 0, 10) + b"PRES\0")

    ecu = ECU.read(BinaryReader(buf), CTFLanguage(), CFFHeader(), BASE)
    assert ecu.ecu_variant.block_offset == DATA_OFFSET
    assert [p.qualifier for p in ecu.global_presentations] == ["PRES"]
    assert ecu.global_presentations[0].presentation_idx == 0
    assert [v.qualifier for v in ecu.variants] == ["V1"]
    assert ecu.global_services == [] and ecu.global_dtcs == []


def test_truncated_ecu_raises():
    with pytest.raises(CaesarError):
        ECU.read(BinaryReader(b"\0" * 4), CTFLanguage(), CFFHeader(), 0)


def test_pool_beyond_buffer_raises():
    buf = bytearray(0x100)
    main_flags = sum(1 << bit for bit in (17, 18, 19, 20))
    header = struct.pack("<IHi", main_flags, 0, 0) + struct.pack("<4i", 0, 1, 10, 10)
    put(buf, 0, header)
    with pytest.raises(CaesarError):
        ECU.read(BinaryReader(buf), CTFLanguage(), CFFHeader(), 0)
import struct

import pytest

from cbfparse.reader import BinaryReader, BitFlags, CaesarError, PoolTuple, ProcessError


def test_integers_are_little_endian():
    data = struct.pack("<HiIhbB", 0x1234, -5, 0xDEADBEEF, -300, -1, 200)
    reader = BinaryReader(data)
    assert reader.read_u16() == 0x1234
    assert reader.read_i32() == -5
    assert reader.read_u32() == 0xDEADBEEF
    assert reader.read_i16() == -300
    assert reader.read_i8() == -1
    assert reader.read_u8() == 200
    assert reader.pos == len(data)


def test_float_round_trip():
    reader = BinaryReader(struct.pack("<f", 1.5))
    assert reader.read_f32() == 1.5


def test_seek_and_read_bytes():
    reader = BinaryReader(b"abcdef")
    reader.seek(2)
    assert reader.read_bytes(3) == b"cde"
    assert reader.pos == 5


def test_read_past_end_raises():
    reader = BinaryReader(b"\x01\x02")
    with pytest.raises(CaesarError):
        reader.read_i32()


def test_negative_position_raises():
    reader = BinaryReader(b"\x01\x02\x03\x04")
    reader.seek(-2)
    with pytest.raises(CaesarError):
        reader.read_u16()


def test_read_cstr_sequence():
    reader = BinaryReader(b"abc\x00def\x00")
    assert reader.read_cstr() == "abc"
    assert reader.read_cstr() == "def"
    assert reader.pos == 8


def test_read_cstr_unterminated_raises():
    reader = BinaryReader(b"abc")
    with pytest.raises(CaesarError):
        reader.read_cstr()


def test_read_cstr_invalid_utf8_raises():
    reader = BinaryReader(b"\xff\xfe\x00")
    with pytest.raises(CaesarError):
        reader.read_cstr()


def test_process_error_carries_message_and_is_caesar_error():
    err = ProcessError("bad layout")
    assert str(err) == "bad layout"
    assert isinstance(err, CaesarError)


def test_bitflags_skip_unset_fields():
    reader = BinaryReader(struct.pack("<ii", 7, 9))
    flags = BitFlags(reader, 0b101)
    assert flags.i32(0) == 7
    assert flags.i32(-1) == -1
    assert flags.i32(0) == 9
    assert reader.pos == 8
    assert flags.flags == 0


def test_bitflags_default_when_data_missing():
    reader = BinaryReader(b"\x01")
    flags = BitFlags(reader, 1)
    assert flags.i32(5) == 5


def test_bitflags_small_types():
    data = struct.pack("<bBhHIf", -3, 250, -1000, 60000, 70000, 2.5)
    flags = BitFlags(BinaryReader(data), 0b111111)
    assert flags.i8(0) == -3
    assert flags.u8(0) == 250
    assert flags.i16(0) == -1000
    assert flags.u16(0) == 60000
    assert flags.u32(0) == 70000
    assert flags.f32(0.0) == 2.5


def test_bitflags_string_restores_position():
    data = struct.pack("<i", 8) + b"\x00" * 4 + b"hello\x00"
    reader = BinaryReader(data)
    flags = BitFlags(reader, 1)
    assert flags.string(0) == "hello"
    assert reader.pos == 4


def test_bitflags_string_is_relative_to_base():
    data = b"\x00" * 4 + struct.pack("<i", 4) + b"name\x00"
    reader = BinaryReader(data)
    reader.seek(4)
    assert BitFlags(reader, 1).string(4) == "name"


def test_bitflags_string_bad_offset_gives_empty():
    reader = BinaryReader(struct.pack("<i", 1000))
    assert BitFlags(reader, 1).string(0) == ""
    assert reader.pos == 4


def test_bitflags_unset_string_and_dump():
    reader = BinaryReader(b"")
    flags = BitFlags(reader, 0)
    assert flags.string(0) == ""
    assert flags.dump(4, 0) == b""


def test_bitflags_dump():
    payload = b"\x10\x20\x30"
    data = struct.pack("<i", 4) + payload
    reader = BinaryReader(data)
    assert BitFlags(reader, 1).dump(3, 0) == payload
    assert reader.pos == 4


def test_bitflags_dump_too_long_gives_empty():
    data = struct.pack("<i", 4) + b"\x01"
    assert BitFlags(BinaryReader(data), 1).dump(10, 0) == b""


def test_pool_tuple_short_count():
    reader = BinaryReader(struct.pack("<hi", 3, 16))
    pool = PoolTuple.read(BitFlags(reader, 0b11), short_count=True)
    assert pool == PoolTuple(count=3, offset=16)
    assert reader.pos == 6


def test_pool_tuple_int_count():
    reader = BinaryReader(struct.pack("<ii", 4, 32))
    assert PoolTuple.read(BitFlags(reader, 0b11), False) == PoolTuple(4, 32)


def test_pool_tuple_absent():
    reader = BinaryReader(b"")
    assert PoolTuple.read(BitFlags(reader, 0), False) == PoolTuple()
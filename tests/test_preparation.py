import struct
from types import SimpleNamespace

import pytest

from cbfparse.ctf import CTFLanguage
from cbfparse.preparation import INT_SIZE_MAP, InferredDataType, Preparation
from cbfparse.presentation import Presentation
from cbfparse.reader import BinaryReader, PoolTuple, ProcessError
from cbfparse.service import Service

LANG = CTFLanguage(strings=["Engine speed", "Other"])


def make_ecu(presentations=(), internal=(), services=()):
    return SimpleNamespace(
        global_presentations=list(presentations),
        global_internal_presentations=list(internal),
        global_services=list(services),
    )


def read(blob, mode, bit_pos=0, ecu=None, service=None):
    return Preparation.read(
        BinaryReader(blob),
        LANG,
        0,
        bit_pos,
        mode,
        ecu or make_ecu(),
        service or Service(),
    )


def test_bit_dump_uses_alternative_width():
    blob = struct.pack("<Ii", 1 << 4, 12)
    prep = read(blob, 0x0330)
    assert prep.alternative_bit_width == 12
    assert prep.size_in_bits == 12
    assert prep.field_type is InferredDataType.BIT_DUMP


@pytest.mark.parametrize("mode_l", range(7))
def test_integer_sizes_follow_map(mode_l):
    prep = read(struct.pack("<I", 0), 0x0320 | mode_l)
    assert prep.size_in_bits == INT_SIZE_MAP[mode_l]
    assert prep.field_type is InferredDataType.INTEGER


def test_integer_size_pinned_value():
    assert read(struct.pack("<I", 0), 0x0325).size_in_bits == 0x20


def test_impl_type_too_large_raises():
    with pytest.raises(ProcessError):
        read(struct.pack("<I", 0), 0x0327)


def test_unhandled_itt_has_no_size():
    prep = read(struct.pack("<I", 0), 0x0340)
    assert prep.size_in_bits == 0
    assert prep.field_type is InferredDataType.UNHANDLED_ITT


def test_global_presentation_bytes_converted_to_bits():
    pres = Presentation(type_length_1a=2, type_1c=0)
    prep = read(struct.pack("<I", 0), 0x2000, ecu=make_ecu(presentations=[pres]))
    assert prep.presentation is pres
    assert prep.size_in_bits == 2 * 8
    assert prep.field_type is InferredDataType.NATIVE_PRESENTATION


def test_internal_presentation_in_bits_and_fallback_length():
    pres = Presentation(type_length_1a=-1, type_length_bytes_maybe=5, type_1c=1)
    prep = read(struct.pack("<I", 0), 0x8000, ecu=make_ecu(internal=[pres]))
    assert prep.size_in_bits == 5
    assert prep.presentation is pres


def test_missing_presentation_raises():
    with pytest.raises(ProcessError):
        read(struct.pack("<I", 0), 0x2000)


def test_unknown_system_type_raises():
    with pytest.raises(ProcessError):
        read(struct.pack("<I", 0), 0x1000)


def sys_param_blob(value):
    return struct.pack("<Ih", 1 << 9, value)


def test_int_with_system_param():
    prep = read(sys_param_blob(5), 0x0423)
    assert prep.system_param == 5
    assert prep.size_in_bits == INT_SIZE_MAP[3]


def test_extended_bit_dump_uses_remaining_request():
    service = Service(request_bytes=PoolTuple(count=4))
    prep = read(sys_param_blob(0x10), 0x0410, bit_pos=16, service=service)
    assert prep.field_type is InferredDataType.EXTENDED_BIT_DUMP
    assert prep.size_in_bits == 16


def test_system_param_17_global_variable():
    ref = Service(qualifier="REF", data_class_service_type_shifted=0x10000)
    service = Service(input_ref_name="REF", request_bytes=PoolTuple(count=4))
    prep = read(sys_param_blob(0x21), 0x0410, service=service, ecu=make_ecu(services=[ref]))
    assert prep.field_type is InferredDataType.UNHANDLED_SP17
    assert prep.size_in_bits == service.byte_count()


def test_system_param_17_counts_bits():
    ref = Service(qualifier="REF", data_class_service_type_shifted=1)
    service = Service(input_ref_name="REF", request_bytes=PoolTuple(count=3))
    prep = read(sys_param_blob(0x21), 0x0410, service=service, ecu=make_ecu(services=[ref]))
    assert prep.size_in_bits == service.byte_count() * 8


def test_system_param_17_without_reference():
    prep = read(sys_param_blob(0x21), 0x0410, service=Service(input_ref_name="NONE"))
    assert prep.size_in_bits == 0
    assert prep.field_type is InferredDataType.UNASSIGNED


def test_invalid_system_param_raises():
    with pytest.raises(ProcessError):
        read(sys_param_blob(0x12), 0x0410)


def test_unhandled_param_type_raises():
    with pytest.raises(ProcessError):
        read(sys_param_blob(5), 0x0500)


def test_qualifier_name_and_dump():
    flags = 1 | 2 | (1 << 4) | (1 << 11) | (1 << 12)
    head = struct.pack("<Iiiiii", flags, 0, 1, 7, 2, 0)
    qual_off = len(head)
    qual = b"PR_Speed\0"
    dump_off = qual_off + len(qual)
    head = struct.pack("<Iiiiii", flags, qual_off, 1, 7, 2, dump_off)
    blob = head + qual + b"\xAB\xCD"
    prep = read(blob, 0x0330)
    assert prep.qualifier == "PR_Speed"
    assert prep.name == "Other"
    assert prep.dump_size == 2
    assert prep.dump == b"\xAB\xCD"
    assert prep.size_in_bits == 7
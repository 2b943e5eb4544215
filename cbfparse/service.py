"""Diagnostic services: request payloads, their parameters and communication settings."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional

from .ctf import CTFLanguage
from .interface import ComParameter
from .preparation import Preparation
from .reader import BinaryReader, BitFlags, PoolTuple

logger = logging.getLogger(__name__)


class ServiceType(Enum):
    """The class of a diagnostic service."""

    DATA = 5
    DOWNLOAD = 7
    DIAGNOSTIC_FUNCTION = 10
    DIAGNOSTIC_JOB = 19
    SESSION = 21
    STORED_DATA = 22
    ROUTINE = 23
    IO_CONTROL = 24
    UNKNOWN = -1

    @classmethod
    def from_raw(cls, value: int) -> "ServiceType":
        if value in (26, 27):
            return cls.UNKNOWN
        try:
            member = cls(value)
        except ValueError:
            member = cls.UNKNOWN
        if member is cls.UNKNOWN:
            logger.warning("Unknown service type %02X", value)
        return member


def _type_mask(data_class_service_type: int) -> int:
    """Return ``1 << (type - 1)`` as a signed 32-bit value, wrapping like the file tools."""
    shift = ((data_class_service_type - 1) & 0xFFFF) & 31
    value = 1 << shift
    return value - (1 << 32) if value >= 1 << 31 else value


_PREP_ENTRY_SIZE = 10


@dataclass
class Service:
    qualifier: str = ""
    name: Optional[str] = None
    description: Optional[str] = None
    data_class_service_type: int = 0
    data_class_service_type_shifted: int = 0
    service_type: ServiceType = ServiceType.UNKNOWN
    is_executable: bool = False
    client_access_level: int = 0
    security_access_level: int = 0
    t_com_param: PoolTuple = PoolTuple()
    q: PoolTuple = PoolTuple()
    r: PoolTuple = PoolTuple()
    input_ref_name: str = ""
    u_prep: PoolTuple = PoolTuple()
    v: PoolTuple = PoolTuple()
    request_bytes: PoolTuple = PoolTuple()
    w_out_pres: PoolTuple = PoolTuple()
    field50: int = 0
    negative_response_name: str = ""
    unk_str3: str = ""
    unk_str4: str = ""
    p: PoolTuple = PoolTuple()
    diag_service_code: PoolTuple = PoolTuple()
    s: PoolTuple = PoolTuple()
    x: PoolTuple = PoolTuple()
    y: PoolTuple = PoolTuple()
    z: PoolTuple = PoolTuple()
    req_bytes: bytes = b""
    base_addr: int = 0
    pool_idx: int = 0
    com_params: List[ComParameter] = field(default_factory=list)
    input_preparations: List[Preparation] = field(default_factory=list)
    output_preparations: List[Preparation] = field(default_factory=list)

    @classmethod
    def read(
        cls,
        reader: BinaryReader,
        base_addr: int,
        pool_idx: int,
        lang: CTFLanguage,
        ecu: Any,
    ) -> "Service":
        """Read a service; ``ecu`` supplies interfaces, presentations and services."""
        reader.seek(base_addr)
        flags = BitFlags(reader, reader.read_u32())
        ext_flags = reader.read_u32()

        service = cls(
            base_addr=base_addr,
            pool_idx=pool_idx,
            qualifier=flags.string(base_addr),
            name=lang.get_string(flags.i32(-1)),
            description=lang.get_string(flags.i32(-1)),
            data_class_service_type=flags.u16(0),
            is_executable=flags.u16(0) > 0,
            client_access_level=flags.u16(0),
            security_access_level=flags.u16(0),
            t_com_param=PoolTuple.read(flags),
            q=PoolTuple.read(flags),
            r=PoolTuple.read(flags),
            input_ref_name=flags.string(base_addr),
            u_prep=PoolTuple.read(flags),
            v=PoolTuple.read(flags),
            request_bytes=PoolTuple.read(flags, short_count=True),
            w_out_pres=PoolTuple.read(flags),
            field50=flags.u16(0),
            negative_response_name=flags.string(base_addr),
            unk_str3=flags.string(base_addr),
            unk_str4=flags.string(base_addr),
            p=PoolTuple.read(flags),
            diag_service_code=PoolTuple.read(flags),
            s=PoolTuple.read(flags, short_count=True),
        )
        service.service_type = ServiceType.from_raw(service.data_class_service_type)

        ext = BitFlags(reader, ext_flags)
        service.x = PoolTuple.read(ext)
        service.y = PoolTuple.read(ext)
        service.z = PoolTuple.read(ext)

        service.data_class_service_type_shifted = _type_mask(service.data_class_service_type)

        if service.request_bytes.count > 0:
            reader.seek(base_addr + service.request_bytes.offset)
            service.req_bytes = reader.read_bytes(service.request_bytes.count)

        prep_base = base_addr + service.u_prep.offset
        service.input_preparations = service._read_preparations(
            reader, lang, ecu, prep_base, service.u_prep.count
        )

        out_base = base_addr + service.w_out_pres.offset
        for entry in range(service.w_out_pres.count):
            reader.seek(out_base + entry * 8)
            count = reader.read_i32()
            offset = reader.read_i32()
            service.output_preparations.extend(
                service._read_preparations(reader, lang, ecu, out_base + offset, count)
            )

        cp_base = base_addr + service.t_com_param.offset
        for entry in range(service.t_com_param.count):
            reader.seek(cp_base + entry * 4)
            cp_offset = reader.read_i32()
            service.com_params.append(
                ComParameter.read(reader, cp_base + cp_offset, ecu.interfaces)
            )
        return service

    def _read_preparations(
        self, reader: BinaryReader, lang: CTFLanguage, ecu: Any, table: int, count: int
    ) -> List[Preparation]:
        preps = []
        for entry in range(count):
            reader.seek(table + entry * _PREP_ENTRY_SIZE)
            offset = reader.read_i32()
            bit_pos = reader.read_i32()
            mode = reader.read_u16()
            preps.append(Preparation.read(reader, lang, table + offset, bit_pos, mode, ecu, self))
        return preps

    def byte_count(self) -> int:
        """Number of bytes in the request payload."""
        return self.request_bytes.count
"""Preparations: the placement and bit size of a parameter inside a service message."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from .ctf import CTFLanguage
from .presentation import Presentation
from .reader import BinaryReader, BitFlags, ProcessError

logger = logging.getLogger(__name__)

INT_SIZE_MAP = (0x00, 0x01, 0x04, 0x08, 0x10, 0x20, 0x40)


class InferredDataType(Enum):
    """What kind of data a preparation was found to hold."""

    UNASSIGNED = "unassigned"
    INTEGER = "integer"
    NATIVE_INFO_POOL = "native_info_pool"
    NATIVE_PRESENTATION = "native_presentation"
    UNHANDLED_ITT = "unhandled_itt"
    UNHANDLED_SP17 = "unhandled_sp17"
    UNHANDLED = "unhandled"
    BIT_DUMP = "bit_dump"
    EXTENDED_BIT_DUMP = "extended_bit_dump"


@dataclass
class Preparation:
    """A parameter of a service request or response."""

    qualifier: str = ""
    name: Optional[str] = None
    unk1: int = 0
    unk2: int = 0
    alternative_bit_width: int = 0
    itt_offset: int = 0
    info_pool_idx: int = 0
    pres_pool_idx: int = 0
    field_1e: int = 0
    system_param: int = 0
    dump_mode: int = 0
    dump_size: int = 0
    dump: bytes = b""
    field_type: InferredDataType = InferredDataType.UNASSIGNED
    bit_pos: int = 0
    mode_cfg: int = 0
    size_in_bits: int = 0
    presentation: Optional[Presentation] = None

    @classmethod
    def read(
        cls,
        reader: BinaryReader,
        lang: CTFLanguage,
        base_addr: int,
        bit_pos: int,
        mode_cfg: int,
        ecu: Any,
        service: Any,
    ) -> "Preparation":
        """Read a preparation; ``ecu`` supplies presentations and services for sizing."""
        reader.seek(base_addr)
        flags = BitFlags(reader, reader.read_u32())
        prep = cls(
            bit_pos=bit_pos,
            mode_cfg=mode_cfg,
            qualifier=flags.string(base_addr),
            name=lang.get_string(flags.i32(-1)),
            unk1=flags.i8(0),
            unk2=flags.i8(0),
            alternative_bit_width=flags.i32(0),
            itt_offset=flags.i32(0),
            info_pool_idx=flags.i32(0),
            pres_pool_idx=flags.i32(0),
            field_1e=flags.i32(0),
            system_param=flags.i16(-1),
            dump_mode=flags.i16(0),
            dump_size=flags.i32(0),
        )
        prep.dump = flags.dump(prep.dump_size, base_addr)
        prep.size_in_bits = prep._compute_size_in_bits(ecu, service)
        return prep

    def _int_size(self, mode_l: int) -> int:
        if mode_l > 6:
            raise ProcessError(
                f"impl type <= 6 (Doesn't exist) for {self.qualifier}"
            )
        self.field_type = InferredDataType.INTEGER
        return INT_SIZE_MAP[mode_l]

    def _presentation_size(self, pool, kind: str) -> int:
        if not 0 <= self.pres_pool_idx < len(pool):
            raise ProcessError(
                f"{kind} presentation {self.pres_pool_idx} for {self.qualifier} does not exist"
            )
        pres = pool[self.pres_pool_idx]
        self.field_type = InferredDataType.NATIVE_PRESENTATION
        size = pres.type_length_1a if pres.type_length_1a > 0 else pres.type_length_bytes_maybe
        if pres.type_1c == 0:
            # The presentation length is in bytes.
            size *= 8
        self.presentation = pres
        return size

    def _compute_size_in_bits(self, ecu: Any, service: Any) -> int:
        mode_e = self.mode_cfg & 0xF000
        mode_h = self.mode_cfg & 0x0FF0
        mode_l = self.mode_cfg & 0x000F

        if self.mode_cfg & 0xF00 == 0x300:
            if mode_l > 6:
                raise ProcessError("impl_type <= 6. This data type does not exist!")
            if mode_h == 0x320:
                return self._int_size(mode_l)
            if mode_h == 0x330:
                self.field_type = InferredDataType.BIT_DUMP
                return self.alternative_bit_width
            if mode_h == 0x340:
                self.field_type = InferredDataType.UNHANDLED_ITT
                logger.warning("mode_h 0x340 is not implemented! - Data will be missing")
            else:
                logger.warning("mode_h is unrecognized value? 0x%04X", mode_h)
            return 0

        if self.system_param == -1:
            if mode_e == 0x8000:
                return self._presentation_size(ecu.global_internal_presentations, "internal")
            if mode_e == 0x2000:
                return self._presentation_size(ecu.global_presentations, "global")
            raise ProcessError(
                f"Unknown system type for {self.qualifier}. mode_cfg: {self.mode_cfg:04X} "
                f"mode_e: {mode_e:04X} mode_h: {mode_h:04X} mode_l: {mode_l:04X}"
            )

        if mode_h == 0x410:
            reduced = self.system_param - 0x10
            if reduced == 0:
                remaining = (service.byte_count() & 0xFF) - self.bit_pos // 8
                if remaining < 0:
                    raise ProcessError(
                        f"{self.qualifier} starts beyond the end of its service request"
                    )
                self.field_type = InferredDataType.EXTENDED_BIT_DUMP
                return remaining * 8
            if reduced == 17:
                referenced = next(
                    (s for s in ecu.global_services if s.qualifier == service.input_ref_name),
                    None,
                )
                if referenced is None:
                    logger.warning(
                        "0x410 '%s' has no matching parent diag service", self.qualifier
                    )
                    return 0
                has_request_data = referenced.byte_count() > 0
                internal_type = referenced.data_class_service_type_shifted
                if internal_type & 0xC and has_request_data:
                    internal_type = 0x10000000 if internal_type & 4 else 0x20000000
                self.field_type = InferredDataType.UNHANDLED_SP17
                if internal_type & 0x10000:
                    # The reference is a global variable.
                    return service.byte_count()
                return service.byte_count() * 8
            raise ProcessError(f"invalid system parameter for {self.qualifier}")

        if mode_h == 0x420:
            return self._int_size(mode_l)

        if mode_h == 0x430:
            self.field_type = InferredDataType.BIT_DUMP
            return self.alternative_bit_width

        self.field_type = InferredDataType.UNHANDLED
        raise ProcessError(f"Unhandled param type {mode_h} for {self.qualifier}")
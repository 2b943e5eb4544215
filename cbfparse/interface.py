"""ECU interfaces, their sub-types, and communication parameters."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence

from .ctf import CTFLanguage
from .reader import BinaryReader, BitFlags, CaesarError

logger = logging.getLogger(__name__)


class ParamName(str, Enum):
    """Communication parameter names known to appear in CBF files."""

    CP_BAUDRATE = "CP_BAUDRATE"
    CP_GLOBAL_REQUEST_CANIDENTIFIER = "CP_GLOBAL_REQUEST_CANIDENTIFIER"
    CP_FUNCTIONAL_REQUEST_CANIDENTIFIER = "CP_FUNCTIONAL_REQUEST_CANIDENTIFIER"
    CP_REQUEST_CANIDENTIFIER = "CP_REQUEST_CANIDENTIFIER"
    CP_RESPONSE_CANIDENTIFIER = "CP_RESPONSE_CANIDENTIFIER"
    CP_PARTNUMBERID = "CP_PARTNUMBERID"
    CP_PARTBLOCK = "CP_PARTBLOCK"
    CP_HWVERSIONID = "CP_HWVERSIONID"
    CP_SWVERSIONID = "CP_SWVERSIONID"
    CP_SWVERSIONBLOCK = "CP_SWVERSIONBLOCK"
    CP_SUPPLIERID = "CP_SUPPLIERID"
    CP_SWSUPPLIERBLOCK = "CP_SWSUPPLIERBLOCK"
    CP_ADDRESSMODE = "CP_ADDRESSMODE"
    CP_ADDRESSEXTENSION = "CP_ADDRESSEXTENSION"
    CP_ROE_RESPONSE_CANIDENTIFIER = "CP_ROE_RESPONSE_CANIDENTIFIER"
    CP_USE_TIMING_RECEIVED_FROM_ECU = "CP_USE_TIMING_RECEIVED_FROM_ECU"
    CP_STMIN_SUG = "CP_STMIN_SUG"
    CP_BLOCKSIZE_SUG = "CP_BLOCKSIZE_SUG"
    CP_P2_TIMEOUT = "CP_P2_TIMEOUT"
    CP_S3_TP_PHYS_TIMER = "CP_S3_TP_PHYS_TIMER"
    CP_S3_TP_FUNC_TIMER = "CP_S3_TP_FUNC_TIMER"
    CP_BR_SUG = "CP_BR_SUG"
    CP_CAN_TRANSMIT = "CP_CAN_TRANSMIT"
    CP_BS_MAX = "CP_BS_MAX"
    CP_CS_MAX = "CP_CS_MAX"
    CPI_ROUTINECOUNTER = "CPI_ROUTINECOUNTER"
    CP_REQREPCOUNT = "CP_REQREPCOUNT"
    CP_P2_EXT_TIMEOUT_7F_78 = "CP_P2_EXT_TIMEOUT_7F_78"
    CP_P2_EXT_TIMEOUT_7F_21 = "CP_P2_EXT_TIMEOUT_7F_21"
    CP_UNKNOWN = "CP_UNKNOWN"


@dataclass
class ECUInterface:
    """An interface definition with the names of its communication parameters."""

    qualifier: str = ""
    name: Optional[str] = None
    desc: Optional[str] = None
    version_string: str = ""
    version: int = 0
    com_param_count: int = 0
    com_param_list_offset: int = 0
    unk6: int = 0
    com_params: List[str] = field(default_factory=list)
    base_addr: int = 0

    @classmethod
    def read(cls, reader: BinaryReader, base_addr: int, lang: CTFLanguage) -> "ECUInterface":
        reader.seek(base_addr)
        logger.debug("Processing ECU Interface - Base address: 0x%08X", base_addr)
        flags = BitFlags(reader, reader.read_u32())
        iface = cls(
            qualifier=flags.string(base_addr),
            name=lang.get_string(flags.i32(-1)),
            desc=lang.get_string(flags.i32(-1)),
            version_string=flags.string(base_addr),
            version=flags.i32(0),
            com_param_count=flags.i32(0),
            com_param_list_offset=flags.i32(0),
            unk6=flags.i16(0),
            base_addr=base_addr,
        )
        table = iface.com_param_list_offset + base_addr
        for entry in range(iface.com_param_count):
            reader.seek(table + entry * 4)
            reader.seek(reader.read_i32() + table)
            iface.com_params.append(reader.read_cstr())
        return iface


@dataclass
class ComParameter:
    """A communication parameter value bound to an interface parameter name."""

    param_idx: int = 0
    parent_iface_idx: int = 0
    sub_iface_idx: int = 0
    unk5: int = 0
    unk_ctf: int = 0
    phrase: int = 0
    dump_size: int = 0
    dump: bytes = b""
    param_value: int = 0
    param_name: str = ""
    base_addr: int = 0

    @classmethod
    def read(
        cls, reader: BinaryReader, base_addr: int, interfaces: Sequence[ECUInterface]
    ) -> "ComParameter":
        logger.debug("Processing COM Parameter - Base address: 0x%08X", base_addr)
        reader.seek(base_addr)
        flags = BitFlags(reader, reader.read_u16())
        param = cls(
            base_addr=base_addr,
            param_idx=flags.i16(0),
            parent_iface_idx=flags.i16(0),
            sub_iface_idx=flags.i16(0),
            unk5=flags.i16(0),
            unk_ctf=flags.i32(0),
            phrase=flags.i16(0),
            dump_size=flags.i32(0),
        )
        param.dump = flags.dump(param.dump_size, base_addr)

        if param.dump_size == 4:
            if len(param.dump) < 4:
                raise CaesarError(
                    f"com parameter at 0x{base_addr:08X} declares a 4-byte value but has none"
                )
            param.param_value = int.from_bytes(param.dump[:4], "little", signed=True)

        if not 0 <= param.parent_iface_idx < len(interfaces):
            raise CaesarError(
                f"com parameter at 0x{base_addr:08X} refers to missing interface "
                f"{param.parent_iface_idx}"
            )
        parent = interfaces[param.parent_iface_idx]
        if 0 <= param.param_idx < len(parent.com_params):
            param.param_name = parent.com_params[param.param_idx]
        else:
            param.param_name = "CP_MISSING_KEY"
            logger.warning(
                "Communication parameter has no parent!. Value: %d, parent: %s",
                param.param_value,
                parent.qualifier,
            )
        return param


@dataclass
class InterfaceSubType:
    """A concrete connection of an interface, holding its communication parameters."""

    qualifier: str = ""
    name: Optional[str] = None
    description: Optional[str] = None
    unk3: int = 0
    unk4: int = 0
    unk5: int = 0
    unk6: int = 0
    unk7: int = 0
    unk8: int = 0
    unk9: int = 0
    unk10: int = 0
    base_addr: int = 0
    idx: int = 0
    comm_params: List[ComParameter] = field(default_factory=list)

    @classmethod
    def read(
        cls, reader: BinaryReader, base_addr: int, idx: int, lang: CTFLanguage
    ) -> "InterfaceSubType":
        reader.seek(base_addr)
        flags = BitFlags(reader, reader.read_u32())
        return cls(
            base_addr=base_addr,
            idx=idx,
            qualifier=flags.string(base_addr),
            name=lang.get_string(flags.i32(-1)),
            description=lang.get_string(flags.i32(-1)),
            unk3=flags.i16(0),
            unk4=flags.i16(0),
            unk5=flags.i32(0),
            unk6=flags.i32(0),
            unk7=flags.i32(0),
            unk8=flags.i8(0),
            unk9=flags.i8(0),
            unk10=flags.i8(0),
        )

    def get_cp_by_name(self, name: str) -> Optional[int]:
        """Return the first parameter value with this name as an unsigned 32-bit int."""
        for param in self.comm_params:
            if param.param_name == name:
                return param.param_value & 0xFFFFFFFF
        return None
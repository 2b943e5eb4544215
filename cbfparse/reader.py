"""Little-endian binary reading and the bit-flag driven field layout of CBF files."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Callable, Optional, TypeVar

T = TypeVar("T")

_U8 = struct.Struct("<B")
_I8 = struct.Struct("<b")
_U16 = struct.Struct("<H")
_I16 = struct.Struct("<h")
_U32 = struct.Struct("<I")
_I32 = struct.Struct("<i")
_F32 = struct.Struct("<f")


class CaesarError(Exception):
    """Raised when a CBF file cannot be read or understood."""


class ProcessError(CaesarError):
    """Raised when the contents of a CBF file are inconsistent."""


class BinaryReader:
    """Random-access little-endian reader over an in-memory buffer."""

    def __init__(self, data):
        self.data = bytes(data)
        self.pos = 0

    def __len__(self) -> int:
        return len(self.data)

    def seek(self, pos: int) -> None:
        self.pos = pos

    def read_bytes(self, count: int) -> bytes:
        start = self.pos
        end = start + count
        if start < 0 or count < 0 or end > len(self.data):
            raise CaesarError(
                f"cannot read {count} bytes at offset {start:#x}: "
                f"buffer holds {len(self.data)} bytes"
            )
        self.pos = end
        return self.data[start:end]

    def _unpack(self, layout: struct.Struct):
        return layout.unpack(self.read_bytes(layout.size))[0]

    def read_u8(self) -> int:
        return self._unpack(_U8)

    def read_i8(self) -> int:
        return self._unpack(_I8)

    def read_u16(self) -> int:
        return self._unpack(_U16)

    def read_i16(self) -> int:
        return self._unpack(_I16)

    def read_u32(self) -> int:
        return self._unpack(_U32)

    def read_i32(self) -> int:
        return self._unpack(_I32)

    def read_f32(self) -> float:
        return self._unpack(_F32)

    def read_cstr(self) -> str:
        """Read a NUL-terminated UTF-8 string and step past its terminator."""
        start = self.pos
        if not 0 <= start < len(self.data):
            raise CaesarError(f"string offset {start:#x} is outside the buffer")
        end = self.data.find(b"\0", start)
        if end < 0:
            raise CaesarError(f"string at offset {start:#x} is not terminated")
        raw = self.data[start:end]
        self.pos = end + 1
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise CaesarError(f"string at offset {start:#x} is not valid UTF-8") from exc


class BitFlags:
    """Reads optional fields whose presence is given by successive flag bits.

    Each read consumes the lowest bit; when it is clear the field is absent
    from the file and the default is returned without touching the reader.
    """

    def __init__(self, reader: BinaryReader, flags: int):
        self.reader = reader
        self.flags = flags

    def _next(self) -> bool:
        is_set = bool(self.flags & 1)
        self.flags >>= 1
        return is_set

    def _follow(self, read: Callable[[], T], base_addr: int) -> Optional[T]:
        offset = self.reader.read_i32()
        saved = self.reader.pos
        self.reader.seek(offset + base_addr)
        try:
            return read()
        except CaesarError:
            return None
        finally:
            self.reader.seek(saved)

    def string(self, base_addr: int) -> str:
        if not self._next():
            return ""
        result = self._follow(self.reader.read_cstr, base_addr)
        return "" if result is None else result

    def dump(self, size: int, base_addr: int) -> bytes:
        if not self._next():
            return b""
        result = self._follow(lambda: self.reader.read_bytes(size), base_addr)
        return b"" if result is None else result

    def _primitive(self, read: Callable[[], T], default: T) -> T:
        if not self._next():
            return default
        try:
            return read()
        except CaesarError:
            return default

    def i8(self, default: int = 0) -> int:
        return self._primitive(self.reader.read_i8, default)

    def u8(self, default: int = 0) -> int:
        return self._primitive(self.reader.read_u8, default)

    def i16(self, default: int = 0) -> int:
        return self._primitive(self.reader.read_i16, default)

    def u16(self, default: int = 0) -> int:
        return self._primitive(self.reader.read_u16, default)

    def i32(self, default: int = 0) -> int:
        return self._primitive(self.reader.read_i32, default)

    def u32(self, default: int = 0) -> int:
        return self._primitive(self.reader.read_u32, default)

    def f32(self, default: float = 0.0) -> float:
        return self._primitive(self.reader.read_f32, default)


@dataclass(frozen=True)
class PoolTuple:
    """A count/offset pair locating a pool of entries."""

    count: int = 0
    offset: int = 0

    @classmethod
    def read(cls, flags: BitFlags, short_count: bool = False) -> "PoolTuple":
        count = flags.i16(0) if short_count else flags.i32(0)
        offset = flags.i32(0)
        return cls(count=count, offset=offset)
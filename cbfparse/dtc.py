"""Diagnostic trouble code records."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional

from .ctf import CTFLanguage
from .reader import BinaryReader, BitFlags

logger = logging.getLogger(__name__)


@dataclass
class DTC:
    """A trouble code; its cross references and environments are set by its variant."""

    qualifier: str = ""
    description: Optional[str] = None
    reference: Optional[str] = None
    xrefs_start: int = -1
    xrefs_count: int = -1
    base_addr: int = 0
    pool_idx: int = 0
    envs: List[Any] = field(default_factory=list)

    @classmethod
    def read(
        cls, reader: BinaryReader, base_addr: int, pool_idx: int, lang: CTFLanguage
    ) -> "DTC":
        logger.debug("Processing DTC - Base address: 0x%08X", base_addr)
        reader.seek(base_addr)
        flags = BitFlags(reader, reader.read_u16())
        return cls(
            pool_idx=pool_idx,
            base_addr=base_addr,
            qualifier=flags.string(base_addr),
            description=lang.get_string(flags.i32(-1)),
            reference=lang.get_string(flags.i32(-1)),
        )
"""ECU variants: the services, trouble codes and settings of one ECU software variant."""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional

from .ctf import CTFLanguage
from .dtc import DTC
from .interface import ComParameter
from .reader import BinaryReader, BitFlags, CaesarError, PoolTuple
from .service import Service
from .variant_pattern import VariantPattern

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _DTCPoolBounds:
    actual_index: int
    xref_start: int
    xref_count: int

    @classmethod
    def read(cls, reader: BinaryReader) -> "_DTCPoolBounds":
        actual_index = reader.read_i32()
        xref_start = reader.read_i32()
        xref_count = reader.read_i32()
        return cls(actual_index, xref_start, xref_count)


def _bind_dtc(dtc: DTC, bounds: _DTCPoolBounds) -> DTC:
    """Copy a global trouble code with the cross references this variant gives it."""
    return dataclasses.replace(
        dtc,
        xrefs_start=bounds.xref_start,
        xrefs_count=bounds.xref_count,
        envs=list(dtc.envs),
    )


@dataclass
class ECUVariant:
    """One variant of an ECU, built from the ECU's global pools."""

    base_addr: int = 0
    qualifier: str = ""
    name: Optional[str] = None
    description: Optional[str] = None
    unk_str1: str = ""
    unk_str2: str = ""
    unk1: int = 0
    matching_parent: PoolTuple = PoolTuple()
    subsection_b: PoolTuple = PoolTuple()
    com_params: PoolTuple = PoolTuple()
    diag_service_code: PoolTuple = PoolTuple()
    diag_services: PoolTuple = PoolTuple()
    dtc: PoolTuple = PoolTuple()
    environment_ctx: PoolTuple = PoolTuple()
    xref: PoolTuple = PoolTuple()
    vc_domain: PoolTuple = PoolTuple()
    negative_response_name: str = ""
    unk_byte: int = 0
    variant_patterns: List[VariantPattern] = field(default_factory=list)
    services: List[Service] = field(default_factory=list)
    dtcs: List[DTC] = field(default_factory=list)
    xref_list: List[int] = field(default_factory=list)

    @classmethod
    def read(
        cls,
        reader: BinaryReader,
        ecu: Any,
        lang: CTFLanguage,
        base_addr: int,
        block_size: int,
    ) -> "ECUVariant":
        """Read a variant; communication parameters are attached to ``ecu``'s sub-types."""
        logger.debug("Processing ECU Variant - Base address: 0x%08X", base_addr)
        reader.seek(base_addr)
        block = BinaryReader(reader.read_bytes(block_size))

        flags = BitFlags(block, block.read_u32())
        block.read_u32()

        variant = cls(
            base_addr=base_addr,
            qualifier=flags.string(0),
            name=lang.get_string(flags.i32(-1)),
            description=lang.get_string(flags.i32(-1)),
            unk_str1=flags.string(0),
            unk_str2=flags.string(0),
            unk1=flags.i32(0),
            matching_parent=PoolTuple.read(flags),
            subsection_b=PoolTuple.read(flags),
            com_params=PoolTuple.read(flags),
            diag_service_code=PoolTuple.read(flags),
            diag_services=PoolTuple.read(flags),
            dtc=PoolTuple.read(flags),
            environment_ctx=PoolTuple.read(flags),
            xref=PoolTuple.read(flags),
            vc_domain=PoolTuple.read(flags),
            negative_response_name=flags.string(0),
            unk_byte=flags.u8(0),
        )

        block.seek(variant.diag_services.offset)
        service_indices = [block.read_i32() for _ in range(variant.diag_services.count)]

        block.seek(variant.dtc.offset)
        dtc_bounds = [_DTCPoolBounds.read(block) for _ in range(variant.dtc.count)]

        block.seek(variant.environment_ctx.offset)
        env_indices = []
        for _ in range(variant.environment_ctx.count):
            try:
                env_indices.append(block.read_i32())
            except CaesarError:
                break

        variant.services = variant._select_services(service_indices, ecu)
        variant.variant_patterns = variant._read_patterns(reader)
        variant.dtcs = variant._select_dtcs(dtc_bounds, ecu)
        variant._read_xrefs(reader)
        variant._read_com_params(reader, ecu)
        variant._attach_env_ctxs(env_indices, ecu)
        return variant

    def _select_services(self, indices: List[int], ecu: Any) -> List[Service]:
        by_pool_idx = {service.pool_idx: service for service in ecu.global_services}
        return [by_pool_idx.get(idx, Service()) for idx in indices]

    def _read_patterns(self, reader: BinaryReader) -> List[VariantPattern]:
        table = self.base_addr + self.matching_parent.offset
        patterns = []
        for entry in range(self.matching_parent.count):
            reader.seek(table + entry * 4)
            offset = reader.read_i32()
            patterns.append(VariantPattern.read(reader, offset + table))
        return patterns

    def _select_dtcs(self, bounds: List[_DTCPoolBounds], ecu: Any) -> List[DTC]:
        global_dtcs = ecu.global_dtcs
        selected: List[Optional[DTC]] = [None] * len(bounds)
        for dtc in global_dtcs:
            for slot, bound in enumerate(bounds):
                if dtc.pool_idx == bound.actual_index:
                    selected[slot] = _bind_dtc(dtc, bound)

        # Fill the gaps from the pool in index order, scanning forward only.
        ordered = sorted(bounds, key=lambda bound: bound.actual_index)
        lowest = 0
        for slot, current in enumerate(selected):
            if current is not None:
                continue
            for idx in range(lowest, len(global_dtcs)):
                if global_dtcs[idx].pool_idx == ordered[slot].actual_index:
                    selected[slot] = _bind_dtc(global_dtcs[idx], ordered[slot])
                    lowest = idx
                    break
        return [dtc for dtc in selected if dtc is not None]

    def _read_xrefs(self, reader: BinaryReader) -> None:
        reader.seek(self.base_addr + self.xref.offset)
        self.xref_list = [reader.read_i32() for _ in range(self.xref.count)]

    def _read_com_params(self, reader: BinaryReader, ecu: Any) -> None:
        table = self.base_addr + self.com_params.offset
        reader.seek(table)
        offsets = [reader.read_i32() + table for _ in range(self.com_params.count)]
        for offset in offsets:
            param = ComParameter.read(reader, offset, ecu.interfaces)
            parent_idx = (
                param.parent_iface_idx if param.parent_iface_idx > 0 else param.sub_iface_idx
            )
            if 0 <= parent_idx < len(ecu.interface_sub_types):
                ecu.interface_sub_types[parent_idx].comm_params.append(param)

    def _attach_env_ctxs(self, indices: List[int], ecu: Any) -> None:
        global_envs = ecu.global_env_ctxs
        slots: List[Optional[Service]] = [None] * len(indices)
        for position, idx in enumerate(indices):
            if position == idx:
                if position >= len(global_envs):
                    raise CaesarError(f"environment context {position} does not exist")
                slots.append(global_envs[position])
        for env in global_envs:
            for position, idx in enumerate(indices):
                if env.pool_idx == idx:
                    slots[position] = env

        available = [env for env in slots if env is not None]
        if not available:
            return

        for dtc in self.dtcs:
            for xref_idx in range(dtc.xrefs_start, dtc.xrefs_start + dtc.xrefs_count):
                if not 0 <= xref_idx < len(self.xref_list):
                    raise CaesarError(
                        f"DTC {dtc.qualifier} refers to missing cross reference {xref_idx}"
                    )
                xref = self.xref_list[xref_idx]
                match = next((env for env in available if env.pool_idx == xref), None)
                if match is not None:
                    dtc.envs.append(match)
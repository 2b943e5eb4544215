"""Command line tool converting a CBF file into a JSON ECU description."""

from __future__ import annotations

import copy
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from .container import Container
from .ecu import ECU
from .interface import InterfaceSubType
from .presentation import (
    BinaryFormat,
    BoolFormat,
    HexDumpFormat,
    IdenticalFormat,
    LinearFormat,
    StringFormat,
    TableFormat,
)
from .reader import BinaryReader, CaesarError
from .service import ServiceType

logger = logging.getLogger(__name__)

USAGE = (
    "Usage:\n"
    "cbfparse <INPUT.CBF>\n"
    "cbfparse <INPUT.CBF> -dump_strings <STRINGS.csv>\n"
    "cbfparse <INPUT.CBF> -load_strings <STRINGS.csv>"
)

_DOWNLOAD_TYPES = (ServiceType.DATA, ServiceType.STORED_DATA)
_FUNCTION_TYPES = (ServiceType.DIAGNOSTIC_FUNCTION, ServiceType.ROUTINE)


def _format_json(fmt) -> Any:
    if isinstance(fmt, IdenticalFormat):
        return "Identical"
    if isinstance(fmt, BinaryFormat):
        return "Binary"
    if isinstance(fmt, HexDumpFormat):
        return "HexDump"
    if isinstance(fmt, BoolFormat):
        return {"Bool": {"pos_name": fmt.pos_name, "neg_name": fmt.neg_name}}
    if isinstance(fmt, TableFormat):
        return {
            "Table": [
                {"name": entry.name, "start": entry.start, "end": entry.end}
                for entry in fmt.entries
            ]
        }
    if isinstance(fmt, LinearFormat):
        return {"Linear": {"multiplier": fmt.multiplier, "offset": fmt.offset}}
    if isinstance(fmt, StringFormat):
        return {"String": "Utf8" if fmt.encoding == "utf8" else fmt.encoding}
    raise TypeError(f"unknown data format {fmt!r}")


def _parameter(prep, name: str) -> Optional[Dict[str, Any]]:
    """Build an output parameter for a preparation, or None if it cannot be shown."""
    pres = prep.presentation
    if pres is None:
        return None
    fmt = pres.create(prep)
    if fmt is None:
        return None
    return {
        "name": name,
        "unit": pres.display_unit if pres.display_unit is not None else "",
        "start_bit": prep.bit_pos,
        "length_bits": prep.size_in_bits,
        "byte_order": "BigEndian",
        "data_format": _format_json(fmt),
        "valid_bounds": None,
    }


def _named_parameter(prep) -> Optional[Dict[str, Any]]:
    param = _parameter(prep, prep.qualifier)
    if param is not None and prep.presentation.description is not None:
        param["name"] = prep.presentation.description
    return param


def delete_input_params(payload, params, dumps) -> List[Dict[str, Any]]:
    """Drop single-byte input parameters whose value already sits in the payload."""
    kept = []
    for param, dump in zip(params, dumps, strict=True):
        if param["length_bits"] == 8:
            idx = param["start_bit"] // 8
            if idx < len(payload) and dump and payload[idx] == dump[0]:
                continue
        kept.append(param)
    return kept


def merge_downloads(services) -> List[Dict[str, Any]]:
    """Fold data services sharing one payload into a single service listing all outputs."""
    groups: Dict[tuple, List[Dict[str, Any]]] = {}
    for service in services:
        groups.setdefault(tuple(service["payload"]), []).append(service)

    merged = []
    for group in groups.values():
        if len(group) == 1:
            merged.append(copy.deepcopy(group[0]))
            continue
        root = copy.deepcopy(group[0])
        if not root["output_params"]:
            raise ValueError(f"service {root['name']} has no output parameters to merge")
        payload = root["payload"]
        if len(payload) < 2:
            raise ValueError(f"service {root['name']} payload is too short to merge")
        root["output_params"][0]["name"] = root["description"]
        root["name"] = f"DT_{payload[0]:02X}_{payload[1]:02X}"
        root["description"] = f"Data download {payload[0]:02X} {payload[1]:02X}"
        for other in group[1:]:
            if len(other["output_params"]) == 1:
                param = copy.deepcopy(other["output_params"][0])
                param["name"] = other["description"]
                root["output_params"].append(param)
            else:
                merged.append(copy.deepcopy(other))
        root["output_params"].sort(key=lambda param: param["start_bit"])
        merged.append(root)
    return merged


def _connection(sub: InterfaceSubType) -> Dict[str, Any]:
    def require(name: str, what: str) -> int:
        value = sub.get_cp_by_name(name)
        if value is None:
            raise CaesarError(f"No {what} on interface {sub.qualifier}!?")
        return value

    if any(cp.param_name == "CP_REQUEST_CANIDENTIFIER" for cp in sub.comm_params):
        baud = require("CP_BAUDRATE", "CAN Baudrate")
        send_id = require("CP_REQUEST_CANIDENTIFIER", "CAN Request ID")
        recv_id = require("CP_RESPONSE_CANIDENTIFIER", "CAN Response ID")
        st_min = sub.get_cp_by_name("CP_STMIN_SUG")
        return {
            "baud": baud,
            "send_id": send_id,
            "recv_id": recv_id,
            "global_send_id": sub.get_cp_by_name("CP_GLOBAL_REQUEST_CANIDENTIFIER"),
            "connection_type": {
                "ISOTP": {
                    "blocksize": 8,
                    "st_min": 20 if st_min is None else st_min,
                    "ext_isotp_addr": False,
                    "ext_can_addr": send_id > 0x7FF or recv_id > 0x7FF,
                }
            },
            "server_type": "UDS" if "UDS" in sub.qualifier else "KWP2000",
        }

    segment = sub.get_cp_by_name("CP_SEGMENTSIZE")
    return {
        "baud": 10400,
        "send_id": require("CP_REQTARGETBYTE", "LIN Request ID"),
        "recv_id": require("CP_RESPONSEMASTER", "LIN Response ID"),
        "global_send_id": sub.get_cp_by_name("CP_TESTERPRESENTADDRESS"),
        "connection_type": {
            "LIN": {
                "max_segment_size": 254 if segment is None else segment,
                "wake_up_method": "FiveBaudInit",
            }
        },
        "server_type": "KWP2000",
    }


def _error(dtc) -> Dict[str, Any]:
    envs = []
    for env in dtc.envs:
        if not env.output_preparations:
            raise CaesarError(f"environment {env.qualifier} of {dtc.qualifier} has no output")
        prep = env.output_preparations[0]
        param = _parameter(prep, env.name if env.name is not None else prep.qualifier)
        if param is not None:
            envs.append(param)
    return {
        "description": dtc.description if dtc.description is not None else "",
        "error_name": dtc.qualifier,
        "summary": dtc.reference if dtc.reference is not None else "",
        "envs": envs,
    }


def _service(service) -> Dict[str, Any]:
    inputs = []
    dumps = []
    for prep in service.input_preparations:
        param = _named_parameter(prep)
        if param is not None:
            inputs.append(param)
            dumps.append(prep.dump)
    outputs = [
        param
        for param in map(_named_parameter, service.output_preparations)
        if param is not None
    ]
    payload = list(service.req_bytes)
    return {
        "name": service.qualifier,
        "description": service.name if service.name is not None else "",
        "payload": payload,
        "input_params": delete_input_params(payload, inputs, dumps),
        "output_params": outputs,
    }


def _variant(variant) -> Dict[str, Any]:
    downloads = []
    functions = []
    for service in variant.services:
        converted = _service(service)
        # Services without a payload, such as initialisation jobs, are left out.
        if not converted["payload"]:
            continue
        if service.service_type in _DOWNLOAD_TYPES:
            downloads.append(converted)
        elif service.service_type in _FUNCTION_TYPES:
            functions.append(converted)
    logger.info("Data: %d, Diag Func: %d", len(downloads), len(functions))

    return {
        "name": variant.qualifier,
        "description": variant.name if variant.name is not None else "",
        "patterns": [
            {"vendor": pattern.vendor_name, "vendor_id": pattern.vendor_id() & 0xFFFFFFFF}
            for pattern in variant.variant_patterns
        ],
        "errors": [_error(dtc) for dtc in variant.dtcs],
        "adjustments": [],
        "actuations": [],
        "functions": functions,
        "downloads": merge_downloads(downloads),
    }


def decode_ecu(ecu: ECU) -> Dict[str, Any]:
    """Convert a parsed ECU into a JSON-ready description."""
    return {
        "name": ecu.qualifier,
        "description": ecu.name if ecu.name is not None else "",
        "variants": [
            _variant(variant)
            for variant in ecu.variants
            if variant.qualifier != ecu.qualifier
        ],
        "connections": [_connection(sub) for sub in ecu.interface_sub_types],
    }


def _usage(message: str) -> int:
    print(f"Error: {message}")
    print(USAGE)
    return 1


def _run(path: str, strings_path: Optional[str], dump: bool) -> int:
    if path.endswith(".cff"):
        print("Cannot be used with CFF. Only CBF!", file=sys.stderr)
        return 1
    try:
        data = Path(path).read_bytes()
    except OSError as exc:
        print(f"Cannot open input file: {exc}", file=sys.stderr)
        return 1
    print(f"Have {len(data)} bytes")
    reader = BinaryReader(data)

    try:
        container = Container.read(reader)
    except CaesarError as exc:
        print(f"ERROR PROCESSING {exc}")
        return 1

    if strings_path is not None:
        if dump:
            try:
                container.dump_strings(strings_path)
            except CaesarError as exc:
                print(f"String dump failed: {exc}", file=sys.stderr)
                return 1
            print("String dump complete. Have a nice day")
            return 0
        try:
            container.load_strings(strings_path)
        except CaesarError as exc:
            print(f"String load failed: {exc}", file=sys.stderr)
            return 1
        print("String loading complete.")

    try:
        container.read_ecus(reader)
    except CaesarError as exc:
        print(f"Error decoding ECUS! {exc}", file=sys.stderr)
        return 1
    if not container.ecus:
        print("Error decoding ECUS! The file holds no ECU", file=sys.stderr)
        return 1

    ecu = container.ecus[0]
    print(f"Converting ECU {ecu.qualifier}")
    try:
        result = decode_ecu(ecu)
    except (CaesarError, ValueError) as exc:
        print(f"Error converting ECU {ecu.qualifier}: {exc}", file=sys.stderr)
        return 1
    for variant in result["variants"]:
        print(
            f"Data: {len(variant['downloads'])}, Diag Func: {len(variant['functions'])}"
        )
    out_name = f"{result['name']}.json"
    print("Writing to file")
    Path(out_name).write_text(json.dumps(result, indent=2), encoding="utf-8")
    print(f"ECU decoding complete. Output file is {out_name}. Have a nice day!")
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = list(sys.argv[1:] if argv is None else argv)
    if len(args) == 3:
        operation = args[1]
        if operation == "-dump_strings":
            return _run(args[0], args[2], dump=True)
        if operation == "-load_strings":
            return _run(args[0], args[2], dump=False)
        return _usage(f"String operation is not valid: {operation}")
    if len(args) == 1:
        return _run(args[0], None, dump=False)
    return _usage(f"Invalid number of args: {len(args)}")


if __name__ == "__main__":
    sys.exit(main())
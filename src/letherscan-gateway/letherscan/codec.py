"""
Call-data codec over an AbiCatalogue.

Decoding matches the leading 4-byte selector and unpacks the rest with the
head/tail scheme; outputs reuse the same unpack routine. Encoding converts
human-readable string arguments into typed words and packs them behind the
function selector.
"""

import re
from dataclasses import dataclass
from typing import Any, Dict, List, Sequence, Tuple, Union

from .abi import MATCH_EXACT_THEN_SUBSTRING, WORD_SIZE, AbiCatalogue, AbiType, FunctionSpec, Parameter
from .errors import (
    ArgumentCountMismatch,
    DataTooShort,
    InvalidAddress,
    InvalidBool,
    InvalidBytes,
    InvalidInteger,
    UnpackError,
    UnsupportedEncodeType,
)

BYTES32_RAW = "raw"
BYTES32_HEX = "hex"
BYTES32_MODES = (BYTES32_RAW, BYTES32_HEX)

SELECTOR_SIZE = 4

_HEX_RE = re.compile(r"^[0-9a-fA-F]*$")
_UINT_RE = re.compile(r"^\d+$")
_INT_RE = re.compile(r"^[+-]?\d+$")


@dataclass(frozen=True)
class DecodedCall:
    function: FunctionSpec
    args: Dict[str, Any]

    @property
    def function_name(self) -> str:
        return self.function.name

    def to_dict(self) -> Dict[str, Any]:
        return {"function_name": self.function.name, "args": self.args}


def hex_to_bytes(value: Union[str, bytes], field: str = "data") -> bytes:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if not isinstance(value, str):
        raise InvalidBytes(f"{field} must be a hex string.")
    v = value.strip()
    if v.startswith(("0x", "0X")):
        v = v[2:]
    if len(v) % 2 != 0:
        v = "0" + v
    if not _HEX_RE.match(v):
        raise InvalidBytes(f"{field} must be a hex string.")
    return bytes.fromhex(v)


# ---------------------------------------------------------------------------
# decode


def decode_call_data(catalogue: AbiCatalogue, data: Union[str, bytes]) -> DecodedCall:
    raw = hex_to_bytes(data, "input_data")
    if len(raw) < SELECTOR_SIZE:
        raise DataTooShort(f"Call data is {len(raw)} bytes; at least a 4-byte selector is required.")

    function = catalogue.by_selector(raw[:SELECTOR_SIZE])
    args = unpack_params(function.inputs, raw[SELECTOR_SIZE:], label=function.signature)
    return DecodedCall(function=function, args=args)


def decode_outputs(function: FunctionSpec, data: Union[str, bytes]) -> Dict[str, Any]:
    raw = hex_to_bytes(data, "result")
    return unpack_params(function.outputs, raw, label=f"{function.signature} outputs")


def unpack_params(params: Sequence[Parameter], payload: bytes, label: str = "parameters") -> Dict[str, Any]:
    """Decode `payload` as the ABI encoding of `params`; unnamed entries become output_<i>."""
    min_length = sum(param.type.head_size for param in params)
    if len(payload) < min_length:
        raise DataTooShort(f"Data too short for {label}: expected at least {min_length} bytes, got {len(payload)}.")

    values: Dict[str, Any] = {}
    cursor = 0
    for idx, param in enumerate(params):
        try:
            value = _decode_value(param.type, payload, cursor, 0)
        except ValueError as exc:
            raise UnpackError(idx, str(exc)) from exc
        values[param.name or f"output_{idx}"] = value
        cursor += param.type.head_size
    return values


def _decode_value(typ: AbiType, data: bytes, head: int, base: int) -> Any:
    if not typ.is_dynamic:
        return _decode_static(typ, data, head)

    offset = _read_uint(data, head)
    start = base + offset
    if start >= len(data):
        raise ValueError(f"offset {offset} points outside the data.")

    if typ.kind in ("bytes", "string"):
        length = _read_uint(data, start)
        content_start = start + WORD_SIZE
        content_end = content_start + length
        if content_end > len(data):
            raise ValueError(f"{typ.kind} length {length} exceeds the remaining data.")
        content = data[content_start:content_end]
        if typ.kind == "bytes":
            return "0x" + content.hex()
        try:
            return content.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ValueError("string is not valid UTF-8.") from exc

    if typ.kind == "array":
        if typ.size is None:
            length = _read_uint(data, start)
            block = start + WORD_SIZE
        else:
            length = typ.size
            block = start
        # every element takes at least one byte of head, so length is bounded by the data
        if length > len(data) or block + length * typ.item.head_size > len(data):
            raise ValueError(f"array length {length} exceeds the remaining data.")
        return [
            _decode_value(typ.item, data, block + idx * typ.item.head_size, block) for idx in range(length)
        ]

    return _decode_block(typ.components, data, start)


def _decode_static(typ: AbiType, data: bytes, pos: int) -> Any:
    if typ.kind == "array":
        return [_decode_static(typ.item, data, pos + idx * typ.item.head_size) for idx in range(typ.size)]
    if typ.kind == "tuple":
        return _decode_block(typ.components, data, pos)

    word = _read_word(data, pos)
    if typ.kind == "address":
        return "0x" + word[-20:].hex()
    if typ.kind == "bool":
        return int.from_bytes(word, "big") != 0
    if typ.kind == "uint":
        return int.from_bytes(word, "big") & ((1 << typ.size) - 1)
    if typ.kind == "int":
        unsigned = int.from_bytes(word, "big") & ((1 << typ.size) - 1)
        sign_bit = 1 << (typ.size - 1)
        return unsigned - (1 << typ.size) if unsigned & sign_bit else unsigned
    if typ.kind == "fixed_bytes":
        return "0x" + word[: typ.size].hex()
    if typ.kind == "function":
        return "0x" + word[:24].hex()
    raise ValueError(f"cannot decode type {typ.canonical}.")


def _decode_block(components: Sequence[Parameter], data: bytes, base: int) -> Dict[str, Any]:
    obj: Dict[str, Any] = {}
    cursor = base
    for idx, comp in enumerate(components):
        obj[comp.name or f"field{idx}"] = _decode_value(comp.type, data, cursor, base)
        cursor += comp.type.head_size
    return obj


def _read_word(data: bytes, offset: int) -> bytes:
    end = offset + WORD_SIZE
    if end > len(data):
        raise ValueError(f"need a 32-byte word at offset {offset}, data is {len(data)} bytes.")
    return data[offset:end]


def _read_uint(data: bytes, offset: int) -> int:
    return int.from_bytes(_read_word(data, offset), "big")


# ---------------------------------------------------------------------------
# encode


def encode_call(
    catalogue: AbiCatalogue,
    function: str,
    args: Sequence[Any],
    match: str = MATCH_EXACT_THEN_SUBSTRING,
    bytes32_mode: str = BYTES32_RAW,
) -> bytes:
    """Return selector || packed arguments for the function matched by `function`."""
    return encode_arguments(catalogue.find(function, match, arg_count=len(args)), args, bytes32_mode)


def encode_arguments(function: FunctionSpec, args: Sequence[Any], bytes32_mode: str = BYTES32_RAW) -> bytes:
    if bytes32_mode not in BYTES32_MODES:
        raise ValueError(f"Unknown bytes32 mode '{bytes32_mode}'. Supported: {', '.join(BYTES32_MODES)}.")
    if len(args) != len(function.inputs):
        raise ArgumentCountMismatch(len(function.inputs), len(args))

    encoded = [
        _encode_argument(param.type, _as_text(value), bytes32_mode)
        for param, value in zip(function.inputs, args)
    ]
    return function.selector + _pack(encoded)


def _pack(encoded: List[Tuple[bytes, bool]]) -> bytes:
    head_parts: List[bytes] = []
    tail_parts: List[bytes] = []
    dynamic_offset = WORD_SIZE * len(encoded)

    for enc, dynamic in encoded:
        if dynamic:
            head_parts.append(dynamic_offset.to_bytes(WORD_SIZE, "big"))
            tail_parts.append(enc)
            dynamic_offset += len(enc)
        else:
            head_parts.append(enc)
    return b"".join(head_parts + tail_parts)


def _as_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _encode_argument(typ: AbiType, text: str, bytes32_mode: str) -> Tuple[bytes, bool]:
    if typ.kind == "address":
        return _pad32(_parse_address(text)), False

    if typ.kind == "uint":
        candidate = text.strip()
        if not _UINT_RE.match(candidate):
            raise InvalidInteger(f"{typ.canonical} value '{text}' is not a non-negative base-10 integer.")
        value = int(candidate)
        if value >= 1 << typ.size:
            raise InvalidInteger(f"{typ.canonical} value {value} is out of range.")
        return value.to_bytes(WORD_SIZE, "big"), False

    if typ.kind == "int":
        candidate = text.strip()
        if not _INT_RE.match(candidate):
            raise InvalidInteger(f"{typ.canonical} value '{text}' is not a base-10 integer.")
        value = int(candidate)
        bound = 1 << (typ.size - 1)
        if value < -bound or value >= bound:
            raise InvalidInteger(f"{typ.canonical} value {value} is out of range.")
        return (value & ((1 << 256) - 1)).to_bytes(WORD_SIZE, "big"), False

    if typ.kind == "bool":
        candidate = text.strip().lower()
        if candidate not in ("true", "false", "1", "0"):
            raise InvalidBool(f"bool value '{text}' must be true, false, 1 or 0.")
        return _pad32(b"\x01" if candidate in ("true", "1") else b"\x00"), False

    if typ.kind == "fixed_bytes":
        if typ.size == 32 and bytes32_mode == BYTES32_RAW:
            # copies the text itself, not its hex decoding
            return text.encode("utf-8")[:WORD_SIZE].ljust(WORD_SIZE, b"\x00"), False
        data = _parse_hex_argument(text, typ.canonical)
        if len(data) > typ.size:
            raise InvalidBytes(f"{typ.canonical} value is {len(data)} bytes; at most {typ.size} allowed.")
        return data.ljust(WORD_SIZE, b"\x00"), False

    if typ.kind == "bytes":
        return _encode_dynamic_bytes(_parse_hex_argument(text, "bytes")), True

    if typ.kind == "string":
        return _encode_dynamic_bytes(text.encode("utf-8")), True

    raise UnsupportedEncodeType(typ.canonical)


def _parse_address(text: str) -> bytes:
    candidate = text.strip()
    if candidate.startswith(("0x", "0X")):
        candidate = candidate[2:]
    if len(candidate) != 40 or not _HEX_RE.match(candidate):
        raise InvalidAddress(f"Invalid address '{text}'. Expected 40 hex characters, optionally 0x-prefixed.")
    return bytes.fromhex(candidate)


def _parse_hex_argument(text: str, field: str) -> bytes:
    candidate = text.strip()
    if candidate.startswith(("0x", "0X")):
        candidate = candidate[2:]
    if len(candidate) % 2 != 0 or not _HEX_RE.match(candidate):
        raise InvalidBytes(f"{field} value '{text}' must be an even-length hex string.")
    return bytes.fromhex(candidate)


def _encode_dynamic_bytes(data: bytes) -> bytes:
    length_bytes = len(data).to_bytes(WORD_SIZE, "big")
    padded_data = data + b"\x00" * ((WORD_SIZE - (len(data) % WORD_SIZE)) % WORD_SIZE)
    return length_bytes + padded_data


def _pad32(b: bytes) -> bytes:
    return b.rjust(WORD_SIZE, b"\x00")

"""
Contract ABI model: parse a JSON ABI into a catalogue of callable functions.

Each function carries its canonical signature and the 4-byte selector derived
from it, which is what call data is addressed by.
"""

import json
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple, Union

from eth_hash.auto import keccak

from .errors import AmbiguousSelector, FunctionNotFound, MalformedAbi, NoMatchingFunction, UnsupportedType

MUTABILITIES = ("pure", "view", "nonpayable", "payable")

MATCH_EXACT = "exact"
MATCH_SUBSTRING = "substring"
MATCH_EXACT_THEN_SUBSTRING = "exact_then_substring"
MATCH_MODES = (MATCH_EXACT, MATCH_SUBSTRING, MATCH_EXACT_THEN_SUBSTRING)

WORD_SIZE = 32

_INT_RE = re.compile(r"^(u?int)(\d*)$")
_FIXED_BYTES_RE = re.compile(r"^bytes(\d+)$")
_IGNORED_ENTRY_TYPES = {"event", "error", "constructor", "fallback", "receive"}


@dataclass(frozen=True)
class AbiType:
    """
    One ABI type. `kind` is one of address, bool, uint, int, fixed_bytes,
    bytes, string, function, array, tuple.

    `size` is the bit width for (u)int, the byte length for fixed_bytes and
    the element count for fixed arrays (None for dynamic arrays).
    """

    kind: str
    size: Optional[int] = None
    item: Optional["AbiType"] = None
    components: Tuple["Parameter", ...] = ()

    @property
    def canonical(self) -> str:
        if self.kind in ("uint", "int"):
            return f"{self.kind}{self.size}"
        if self.kind == "fixed_bytes":
            return f"bytes{self.size}"
        if self.kind == "array":
            dim = "" if self.size is None else str(self.size)
            return f"{self.item.canonical}[{dim}]"
        if self.kind == "tuple":
            return "(" + ",".join(comp.type.canonical for comp in self.components) + ")"
        return self.kind

    @property
    def is_dynamic(self) -> bool:
        if self.kind in ("bytes", "string"):
            return True
        if self.kind == "array":
            return self.size is None or self.item.is_dynamic
        if self.kind == "tuple":
            return any(comp.type.is_dynamic for comp in self.components)
        return False

    @property
    def head_size(self) -> int:
        """Bytes the type occupies in the head of its enclosing block."""
        if self.is_dynamic:
            return WORD_SIZE
        if self.kind == "array":
            return self.size * self.item.head_size
        if self.kind == "tuple":
            return sum(comp.type.head_size for comp in self.components)
        return WORD_SIZE

    def __str__(self) -> str:
        return self.canonical


@dataclass(frozen=True)
class Parameter:
    name: str
    type: AbiType

    def describe(self) -> str:
        return f"{self.type.canonical} {self.name}".rstrip()


@dataclass(frozen=True)
class FunctionSpec:
    name: str
    inputs: Tuple[Parameter, ...]
    outputs: Tuple[Parameter, ...]
    state_mutability: str
    signature: str
    selector: bytes

    @property
    def selector_hex(self) -> str:
        return "0x" + self.selector.hex()

    @property
    def is_read_only(self) -> bool:
        return self.state_mutability in ("pure", "view")


@dataclass
class AbiCatalogue:
    """Functions of one ABI in declaration order, indexed by name and selector."""

    functions: List[FunctionSpec] = field(default_factory=list)
    _by_name: Dict[str, List[FunctionSpec]] = field(default_factory=dict, repr=False)
    _by_selector: Dict[bytes, FunctionSpec] = field(default_factory=dict, repr=False)
    collisions: Dict[bytes, List[str]] = field(default_factory=dict)

    def add(self, function: FunctionSpec) -> None:
        self.functions.append(function)
        self._by_name.setdefault(function.name, []).append(function)
        existing = self._by_selector.get(function.selector)
        if existing is None:
            self._by_selector[function.selector] = function
            return
        # first entry stays indexed; decode refuses the selector later
        names = self.collisions.setdefault(function.selector, [existing.signature])
        names.append(function.signature)

    def __iter__(self) -> Iterator[FunctionSpec]:
        return iter(self.functions)

    def __len__(self) -> int:
        return len(self.functions)

    def get(self, name: str) -> Optional[FunctionSpec]:
        overloads = self._by_name.get(name)
        return overloads[0] if overloads else None

    def by_selector(self, selector: bytes) -> FunctionSpec:
        if selector in self.collisions:
            raise AmbiguousSelector(selector, self.collisions[selector])
        function = self._by_selector.get(selector)
        if function is None:
            raise NoMatchingFunction(selector)
        return function

    def find(
        self, query: str, match: str = MATCH_EXACT_THEN_SUBSTRING, arg_count: Optional[int] = None
    ) -> FunctionSpec:
        """
        Look up a function by name.

        exact: the first function named exactly `query`.
        substring: the first function whose name contains `query`.
        exact_then_substring: exact first, substring only when nothing is named `query`.

        When several overloads share the exact name, the first one taking
        `arg_count` inputs wins; without a count match the first declared does.
        """
        if match not in MATCH_MODES:
            raise ValueError(f"Unknown function match mode '{match}'. Supported: {', '.join(MATCH_MODES)}.")
        if not isinstance(query, str) or not query.strip():
            raise FunctionNotFound(str(query))

        candidate = query.strip()
        if match in (MATCH_EXACT, MATCH_EXACT_THEN_SUBSTRING):
            overloads = self._by_name.get(candidate)
            if overloads:
                for function in overloads:
                    if arg_count is not None and len(function.inputs) == arg_count:
                        return function
                return overloads[0]
            if match == MATCH_EXACT:
                raise FunctionNotFound(candidate)

        for function in self.functions:
            if candidate in function.name:
                return function
        raise FunctionNotFound(candidate)

    def by_mutability(self, mutability: Optional[str] = None) -> List[FunctionSpec]:
        if not mutability:
            return list(self.functions)
        return [fn for fn in self.functions if fn.state_mutability == mutability]


def function_selector(signature: str) -> bytes:
    """First 4 bytes of keccak-256 over the canonical signature."""
    return keccak(signature.encode("utf-8"))[:4]


def parse_type(type_str: str, components: Optional[Sequence[Any]] = None) -> AbiType:
    if not isinstance(type_str, str) or not type_str.strip():
        raise MalformedAbi("ABI parameter type must be a non-empty string.")

    base, dims = _split_array_dimensions(type_str.strip())
    typ = _parse_base_type(base, components, type_str)
    for dim in dims:
        typ = AbiType("array", size=dim, item=typ)
    return typ


def parse_abi(abi: Union[str, bytes, List[Any]]) -> AbiCatalogue:
    """Parse a JSON ABI document (text or already-decoded list)."""
    if isinstance(abi, (str, bytes)):
        try:
            entries = json.loads(abi)
        except ValueError as exc:
            raise MalformedAbi(f"Failed to parse ABI: {exc}") from exc
    else:
        entries = abi

    if not isinstance(entries, list):
        raise MalformedAbi("ABI must be a JSON array of entries.")

    catalogue = AbiCatalogue()
    for idx, entry in enumerate(entries):
        if not isinstance(entry, dict):
            raise MalformedAbi(f"ABI entry {idx} is not an object.")
        # "type" may be omitted and then defaults to function
        entry_type = entry.get("type", "function")
        if not isinstance(entry_type, str):
            raise MalformedAbi(f"ABI entry {idx} has a non-string type.")
        if entry_type in _IGNORED_ENTRY_TYPES:
            continue
        if entry_type != "function":
            raise MalformedAbi(f"ABI entry {idx} has unknown type '{entry_type}'.")
        catalogue.add(_parse_function(entry, idx))
    return catalogue


def _parse_function(entry: Dict[str, Any], idx: int) -> FunctionSpec:
    name = entry.get("name")
    if not isinstance(name, str) or not name:
        raise MalformedAbi(f"Function entry {idx} is missing a name.")

    inputs = _parse_parameters(entry.get("inputs", []), f"{name}.inputs")
    outputs = _parse_parameters(entry.get("outputs", []), f"{name}.outputs")
    signature = f"{name}({','.join(param.type.canonical for param in inputs)})"

    return FunctionSpec(
        name=name,
        inputs=inputs,
        outputs=outputs,
        state_mutability=_state_mutability(entry, name),
        signature=signature,
        selector=function_selector(signature),
    )


def _parse_parameters(raw: Any, where: str) -> Tuple[Parameter, ...]:
    if raw is None:
        return ()
    if not isinstance(raw, list):
        raise MalformedAbi(f"{where} must be a list.")

    params: List[Parameter] = []
    for idx, item in enumerate(raw):
        if not isinstance(item, dict):
            raise MalformedAbi(f"{where}[{idx}] is not an object.")
        typ = item.get("type")
        if not isinstance(typ, str):
            raise MalformedAbi(f"{where}[{idx}] is missing a type.")
        name = item.get("name") or ""
        if not isinstance(name, str):
            raise MalformedAbi(f"{where}[{idx}] has a non-string name.")
        params.append(Parameter(name=name, type=parse_type(typ, item.get("components"))))
    return tuple(params)


def _state_mutability(entry: Dict[str, Any], name: str) -> str:
    mutability = entry.get("stateMutability")
    if mutability is None:
        # pre-0.4.16 ABIs only carry the constant/payable flags
        if entry.get("constant"):
            return "view"
        if entry.get("payable"):
            return "payable"
        return "nonpayable"
    if mutability not in MUTABILITIES:
        raise MalformedAbi(f"Function {name} has unknown stateMutability '{mutability}'.")
    return mutability


def _parse_base_type(base: str, components: Optional[Sequence[Any]], original: str) -> AbiType:
    if base in ("address", "bool", "string", "bytes", "function"):
        return AbiType(base)

    if base == "tuple":
        if not isinstance(components, list) or not components:
            raise MalformedAbi(f"Tuple type '{original}' requires a non-empty components list.")
        return AbiType("tuple", components=_parse_parameters(components, "tuple.components"))

    int_match = _INT_RE.match(base)
    if int_match:
        kind, suffix = int_match.groups()
        bits = int(suffix) if suffix else 256
        if bits <= 0 or bits > 256 or bits % 8 != 0:
            raise UnsupportedType(original)
        return AbiType(kind, size=bits)

    bytes_match = _FIXED_BYTES_RE.match(base)
    if bytes_match:
        size = int(bytes_match.group(1))
        if size <= 0 or size > 32:
            raise UnsupportedType(original)
        return AbiType("fixed_bytes", size=size)

    raise UnsupportedType(original)


def _split_array_dimensions(typ: str) -> Tuple[str, List[Optional[int]]]:
    """Split `T[2][]` into ("T", [2, None]); dimensions listed innermost first."""
    base = typ
    dims: List[Optional[int]] = []
    while base.endswith("]"):
        lidx = base.rfind("[")
        if lidx < 0:
            raise UnsupportedType(typ)
        dim_str = base[lidx + 1 : -1]
        if dim_str == "":
            dims.insert(0, None)
        elif dim_str.isdigit() and int(dim_str) > 0:
            dims.insert(0, int(dim_str))
        else:
            raise UnsupportedType(typ)
        base = base[:lidx]
    return base, dims

from typing import Any, Optional


class GatewayError(ValueError):
    """Base class for every recoverable error raised by the gateway."""


class AbiError(GatewayError):
    pass


class MalformedAbi(AbiError):
    pass


class UnsupportedType(AbiError):
    def __init__(self, type_str: str) -> None:
        super().__init__(f"Unsupported ABI type '{type_str}'.")
        self.type_str = type_str


class CodecError(GatewayError):
    pass


class DataTooShort(CodecError):
    pass


class NoMatchingFunction(CodecError):
    def __init__(self, selector: bytes, message: Optional[str] = None) -> None:
        super().__init__(message or f"No matching function found for selector 0x{selector.hex()}.")
        self.selector = selector


class AmbiguousSelector(NoMatchingFunction):
    def __init__(self, selector: bytes, names: Any) -> None:
        joined = ", ".join(names)
        super().__init__(
            selector,
            f"Selector 0x{selector.hex()} is shared by several functions ({joined}); refusing to guess.",
        )
        self.names = list(names)


class UnpackError(CodecError):
    def __init__(self, param_index: int, reason: str) -> None:
        super().__init__(f"Failed to unpack parameter {param_index}: {reason}")
        self.param_index = param_index
        self.reason = reason


class FunctionNotFound(CodecError):
    def __init__(self, query: str) -> None:
        super().__init__(f"Function '{query}' not found in ABI.")
        self.query = query


class ArgumentCountMismatch(CodecError):
    def __init__(self, expected: int, got: int) -> None:
        super().__init__(f"Argument count mismatch: expected {expected}, got {got}.")
        self.expected = expected
        self.got = got


class InvalidAddress(CodecError):
    pass


class InvalidInteger(CodecError):
    pass


class InvalidBool(CodecError):
    pass


class InvalidBytes(CodecError):
    pass


class UnsupportedEncodeType(CodecError):
    def __init__(self, type_str: str) -> None:
        super().__init__(f"Encoding '{type_str}' from a string argument is not supported.")
        self.type_str = type_str


class RpcError(GatewayError):
    """JSON-RPC error object, or a response the node should never have sent."""

    def __init__(self, message: str, code: Optional[int] = None) -> None:
        super().__init__(message)
        self.code = code

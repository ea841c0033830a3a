"""
MCP server exposing the gateway's block reads and ABI call-data codec as tools.
"""

import argparse
from collections.abc import Mapping
from typing import Any, Optional

from mcp.server.fastmcp import FastMCP

from .config import configure_logging, load_config
from .service import GatewayService

server = FastMCP(
    name="letherscan",
    instructions="Read blocks and transactions from an Ethereum node and encode/decode ABI call data.",
)

_service: Optional[GatewayService] = None


def _get_service() -> GatewayService:
    global _service
    if _service is None:
        cfg = load_config()
        _service = GatewayService(cfg)
    return _service


def _normalize_array_param(value: Optional[Any], name: str) -> list:
    """
    Ensure a parameter intended as an array is actually treated as one:
    - None: empty list
    - str/bytes: likely misuse, raise with guidance
    - list/tuple: keep as list
    - Mapping: reject (not an array)
    - other scalars: auto-wrap into single-element list
    """
    if value is None:
        return []
    if isinstance(value, (str, bytes, bytearray)):
        raise ValueError(f"{name} must be an array (e.g. ['0x...', '123']); got a string/bytes.")
    if isinstance(value, Mapping):
        raise ValueError(f"{name} must be an array, not an object/map.")
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


@server.tool(
    name="get_blocks",
    title="Get Latest Blocks",
    description="Fetch the N most recent blocks (default 3) with their transactions, optionally starting at block_number.",
)
def get_blocks(
    number_of_blocks: Optional[int] = None,
    block_number: Optional[int] = None,
    node_address: Optional[str] = None,
) -> dict:
    svc = _get_service()
    return svc.get_latest_blocks(number_of_blocks, block_number, node_address)


@server.tool(
    name="get_transaction",
    title="Get Transaction",
    description="Fetch a single transaction by hash, pending or confirmed.",
)
def get_transaction(tx_hash: str, node_address: Optional[str] = None) -> dict:
    svc = _get_service()
    return svc.get_transaction_by_hash(tx_hash, node_address)


@server.tool(
    name="decode_contract_call_data",
    title="Decode Contract Call Data",
    description="Match the 4-byte selector of input_data against contract_abi (JSON text) and decode the arguments.",
)
def decode_contract_call_data(contract_abi: str, input_data: str) -> dict:
    svc = _get_service()
    return svc.decode_contract_call_data(contract_abi, input_data)


@server.tool(
    name="parse_contract_abi",
    title="List ABI Functions",
    description="List functions of contract_abi with selectors, optionally filtered by state mutability (pure|view|nonpayable|payable).",
)
def parse_contract_abi(contract_abi: str, state_mutability_filter: Optional[str] = None) -> dict:
    svc = _get_service()
    return svc.parse_contract_abi(contract_abi, state_mutability_filter)


@server.tool(
    name="encode_function_data",
    title="Encode Function Call",
    description="Encode call data for a function of contract_abi from string arguments. `args` must be an array.",
)
def encode_function_data(contract_abi: str, method: str, args: Optional[Any] = None) -> dict:
    svc = _get_service()
    return svc.encode_function_data(contract_abi, method, _normalize_array_param(args, "args"))


@server.tool(
    name="eth_call",
    title="Call Read-Only Function",
    description="Call a contract function via eth_call and decode its outputs. `args` must be an array of strings.",
)
def eth_call(
    contract_address: str,
    contract_abi: str,
    method: str,
    args: Optional[Any] = None,
    node_address: Optional[str] = None,
) -> dict:
    svc = _get_service()
    return svc.eth_call(method, contract_address, contract_abi, _normalize_array_param(args, "args"), node_address)


def main() -> None:
    parser = argparse.ArgumentParser(description="Run the letherscan MCP server.")
    parser.add_argument(
        "--transport",
        choices=["stdio", "sse", "streamable-http"],
        default="stdio",
        help="Transport protocol for MCP.",
    )
    parser.add_argument(
        "--host",
        default="127.0.0.1",
        help="Host for SSE/HTTP transports.",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port for SSE/HTTP transports.",
    )
    parser.add_argument(
        "--mount-path",
        default="/",
        help="Mount path for SSE transport (only when transport=sse).",
    )
    args = parser.parse_args()

    configure_logging(_get_service().config.log_level)

    # FastMCP uses host/port only for SSE/HTTP transports; stdio ignores them.
    server.settings.host = args.host
    server.settings.port = args.port

    if args.transport == "sse":
        server.run(transport="sse", mount_path=args.mount_path)
    else:
        server.run(transport=args.transport)


if __name__ == "__main__":
    main()

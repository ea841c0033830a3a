import argparse
import json
import sys
from pathlib import Path
from typing import Optional

from .config import configure_logging, load_config
from .service import GatewayService


def _read_abi(value: str) -> str:
    """Accept inline ABI JSON or @path/to/abi.json."""
    if value.startswith("@"):
        return Path(value[1:]).read_text(encoding="utf-8")
    return value


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Read Ethereum blocks/transactions and encode/decode ABI call data.",
        allow_abbrev=False,
    )
    parser.add_argument(
        "--node-address",
        required=False,
        help="JSON-RPC URL override. Defaults to NODE_ADDRESS env or http://localhost:8545.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    decode_parser = subparsers.add_parser("decode", help="Decode contract call data against an ABI")
    decode_parser.add_argument(
        "--abi",
        required=True,
        help="Contract ABI as JSON text, or @file.json.",
    )
    decode_parser.add_argument(
        "--data",
        required=True,
        help="Call data (0x-prefixed hex, selector included).",
    )

    encode_parser = subparsers.add_parser("encode", help="Encode call data from string arguments")
    encode_parser.add_argument(
        "--abi",
        required=True,
        help="Contract ABI as JSON text, or @file.json.",
    )
    encode_parser.add_argument(
        "--method",
        required=True,
        help="Function name (exact match first, then substring, unless FUNCTION_MATCH says otherwise).",
    )
    encode_parser.add_argument(
        "args",
        nargs="*",
        help="Function arguments as strings, in declaration order.",
    )

    abi_parser = subparsers.add_parser("parse-abi", help="List the functions of an ABI")
    abi_parser.add_argument(
        "--abi",
        required=True,
        help="Contract ABI as JSON text, or @file.json.",
    )
    abi_parser.add_argument(
        "--state-mutability",
        required=False,
        choices=["pure", "view", "nonpayable", "payable"],
        help="Only list functions with this state mutability.",
    )

    blocks_parser = subparsers.add_parser("blocks", help="Fetch the most recent blocks")
    blocks_parser.add_argument(
        "--count",
        required=False,
        type=int,
        help="Number of blocks (default 3).",
    )
    blocks_parser.add_argument(
        "--block",
        required=False,
        type=int,
        help="Block number to start from, walking backwards. Defaults to the chain head.",
    )

    tx_parser = subparsers.add_parser("tx", help="Fetch a transaction by hash")
    tx_parser.add_argument(
        "--hash",
        required=True,
        help="Transaction hash (0x-prefixed 64 hex characters).",
    )

    call_parser = subparsers.add_parser("call", help="Call a read-only contract function")
    call_parser.add_argument(
        "--address",
        required=True,
        help="Contract address (0x-prefixed).",
    )
    call_parser.add_argument(
        "--abi",
        required=True,
        help="Contract ABI as JSON text, or @file.json.",
    )
    call_parser.add_argument(
        "--method",
        required=True,
        help="Function name.",
    )
    call_parser.add_argument(
        "args",
        nargs="*",
        help="Function arguments as strings, in declaration order.",
    )

    return parser


def main(argv: Optional[list[str]] = None) -> None:
    parser = _build_parser()
    args = parser.parse_args(argv)

    try:
        config = load_config()
        configure_logging("WARNING")
        service = GatewayService(config)

        if args.command == "decode":
            result = service.decode_contract_call_data(_read_abi(args.abi), args.data)
        elif args.command == "encode":
            result = service.encode_function_data(_read_abi(args.abi), args.method, args.args)
        elif args.command == "parse-abi":
            result = service.parse_contract_abi(_read_abi(args.abi), args.state_mutability)
        elif args.command == "blocks":
            result = service.get_latest_blocks(args.count, args.block, args.node_address)
        elif args.command == "tx":
            result = service.get_transaction_by_hash(args.hash, args.node_address)
        else:
            result = service.eth_call(args.method, args.address, _read_abi(args.abi), args.args, args.node_address)
        print(json.dumps(result, indent=2))
    except Exception as exc:  # pylint: disable=broad-except
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()

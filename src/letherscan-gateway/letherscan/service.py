import logging
import re
from typing import Any, Callable, Dict, List, Optional, Sequence

from eth_account import Account
from eth_utils import to_checksum_address

from .abi import AbiCatalogue
from .cache import CatalogueCache
from .codec import decode_call_data, decode_outputs, encode_arguments
from .config import Config
from .errors import GatewayError, RpcError
from .rpc_client import RpcClient

logger = logging.getLogger(__name__)

ADDRESS_PATTERN = re.compile(r"^0x[a-fA-F0-9]{40}$")
TX_HASH_PATTERN = re.compile(r"^0x[0-9a-f]{64}$")
PRIVATE_KEY_PATTERN = re.compile(r"^[0-9a-f]{64}$")

TRANSACTION_TYPES = {
    0: "legacy",
    1: "access_list",
    2: "dynamic_fee",
    3: "blob",
    4: "set_code",
}

ClientFactory = Callable[[str], Any]


class GatewayService:
    """Combine configuration, ABI codec and JSON-RPC client to serve gateway requests."""

    def __init__(
        self,
        config: Config,
        client_factory: Optional[ClientFactory] = None,
        cache: Optional[CatalogueCache] = None,
    ) -> None:
        self.config = config
        self.cache = cache or CatalogueCache(config.abi_cache_size)
        self._client_factory = client_factory or self._default_client

    def _default_client(self, node_address: str) -> RpcClient:
        return RpcClient(
            node_address,
            timeout=self.config.request_timeout,
            max_retries=self.config.max_retries,
            backoff_seconds=self.config.backoff_seconds,
        )

    def client_for(self, node_address: Optional[str] = None) -> Any:
        address = (node_address or "").strip() or self.config.node_address
        logger.info("Using Ethereum node address %s", address)
        return self._client_factory(address)

    def catalogue(self, contract_abi: str) -> AbiCatalogue:
        try:
            return self.cache.get(contract_abi)
        except GatewayError as exc:
            logger.error("Failed to parse contract ABI: %s", exc)
            raise

    # ------------------------------------------------------------------
    # chain reads

    def get_latest_blocks(
        self,
        number_of_blocks: Optional[int] = None,
        block_number: Optional[int] = None,
        node_address: Optional[str] = None,
    ) -> Dict[str, Any]:
        count = number_of_blocks if number_of_blocks and number_of_blocks > 0 else self.config.default_number_of_blocks
        client = self.client_for(node_address)

        start = block_number if block_number and block_number > 0 else client.get_block_number()
        blocks: List[Dict[str, Any]] = []
        for number in range(start, max(start - count, -1), -1):
            block = client.get_block_by_number(number, True)
            if not block:
                raise RpcError(f"Block {number} not found.")
            transactions = [
                self._map_transaction(tx, block_number=str(number), index=idx)
                for idx, tx in enumerate(block.get("transactions") or [])
                if isinstance(tx, dict)
            ]
            blocks.append({"header": self._map_header(block), "transactions": transactions})
        return {"blocks": blocks}

    def get_transaction_by_hash(self, tx_hash: str, node_address: Optional[str] = None) -> Dict[str, Any]:
        normalized_hash = self._normalize_tx_hash(tx_hash)
        client = self.client_for(node_address)
        tx = client.get_transaction_by_hash(normalized_hash)
        if not tx:
            raise RpcError(f"Transaction {normalized_hash} not found.")

        is_pending = tx.get("blockHash") is None
        block_number = self._hex_to_int(tx.get("blockNumber"), "blockNumber")
        index = self._hex_to_int(tx.get("transactionIndex"), "transactionIndex")
        mapped = self._map_transaction(
            tx,
            block_number=str(block_number) if block_number is not None else "",
            index=index or 0,
        )
        mapped["is_pending"] = is_pending
        return mapped

    # ------------------------------------------------------------------
    # ABI and call data

    def parse_contract_abi(self, contract_abi: str, state_mutability_filter: Optional[str] = None) -> Dict[str, Any]:
        catalogue = self.catalogue(contract_abi)
        methods = [
            {
                "name": fn.name,
                "signature": fn.signature,
                "selector": fn.selector_hex,
                "state_mutability": fn.state_mutability,
                "inputs": [param.describe() for param in fn.inputs],
                "outputs": [param.describe() for param in fn.outputs],
            }
            for fn in catalogue.by_mutability(state_mutability_filter)
        ]
        return {"methods": methods}

    def decode_contract_call_data(self, contract_abi: str, input_data: str) -> Dict[str, Any]:
        catalogue = self.catalogue(contract_abi)
        try:
            decoded = decode_call_data(catalogue, input_data)
        except GatewayError as exc:
            logger.error("Failed to decode contract call data: %s", exc)
            raise
        return decoded.to_dict()

    def encode_function_data(self, contract_abi: str, method: str, inputs: Sequence[Any]) -> Dict[str, str]:
        catalogue = self.catalogue(contract_abi)
        function = catalogue.find(method, self.config.function_match, arg_count=len(inputs or []))
        data = self._encode(function, inputs)
        return {
            "function_name": function.name,
            "signature": function.signature,
            "selector": function.selector_hex,
            "data": "0x" + data.hex(),
        }

    def _encode(self, function: Any, inputs: Sequence[Any]) -> bytes:
        try:
            return encode_arguments(function, list(inputs or []), self.config.bytes32_mode)
        except GatewayError as exc:
            logger.error("Failed to pack input for %s: %s", function.signature, exc)
            raise

    # ------------------------------------------------------------------
    # contract interaction

    def eth_call(
        self,
        method: str,
        contract_address: str,
        contract_abi: str,
        inputs: Sequence[Any],
        node_address: Optional[str] = None,
    ) -> Dict[str, Any]:
        address = self._normalize_address(contract_address)
        function = self.catalogue(contract_abi).find(method, self.config.function_match, arg_count=len(inputs or []))
        call_data = self._encode(function, inputs)

        client = self.client_for(node_address)
        result = client.eth_call(address, "0x" + call_data.hex())
        try:
            decoded = decode_outputs(function, result)
        except GatewayError as exc:
            logger.error("Failed to unpack result of %s: %s", function.signature, exc)
            raise

        raw = result[2:] if result.startswith(("0x", "0X")) else result
        return {"raw_response": raw, "decoded": self._stringify_ints(decoded)}

    def send_transaction(
        self,
        method: str,
        contract_address: str,
        contract_abi: str,
        private_key: str,
        inputs: Sequence[Any],
        node_address: Optional[str] = None,
    ) -> Dict[str, str]:
        address = self._normalize_address(contract_address)
        key = self._normalize_private_key(private_key)
        function = self.catalogue(contract_abi).find(method, self.config.function_match, arg_count=len(inputs or []))
        call_data = self._encode(function, inputs)

        account = Account.from_key(key)
        client = self.client_for(node_address)
        nonce = client.get_transaction_count(account.address, "pending")
        gas_price = client.gas_price()
        chain_id = client.chain_id() or 1

        tx = {
            "nonce": nonce,
            "gasPrice": gas_price,
            "gas": self.config.gas_limit,
            "to": to_checksum_address(address),
            "value": 0,
            "data": "0x" + call_data.hex(),
            "chainId": chain_id,
        }
        signed = Account.sign_transaction(tx, key)
        raw_tx = "0x" + bytes(signed.raw_transaction).hex()
        client.send_raw_transaction(raw_tx)

        tx_hash = "0x" + bytes(signed.hash).hex()
        logger.info("Sent %s to %s from %s: %s", function.signature, address, account.address, tx_hash)
        return {"transaction_hash": tx_hash}

    # ------------------------------------------------------------------
    # mapping

    def _map_header(self, block: Dict[str, Any]) -> Dict[str, Any]:
        def hx(field: str) -> Optional[int]:
            return self._hex_to_int(block.get(field), field)

        def dec(field: str) -> str:
            value = hx(field)
            return str(value) if value is not None else ""

        return {
            "parent_hash": block.get("parentHash"),
            "uncle_hash": block.get("sha3Uncles"),
            "miner": block.get("miner"),
            "root": block.get("stateRoot"),
            "tx_hash": block.get("transactionsRoot"),
            "receipt_hash": block.get("receiptsRoot"),
            "bloom": block.get("logsBloom"),
            "difficulty": dec("difficulty"),
            "number": dec("number"),
            "gas_limit": hx("gasLimit") or 0,
            "gas_used": hx("gasUsed") or 0,
            "timestamp": hx("timestamp") or 0,
            "extra": block.get("extraData"),
            "mix_digest": block.get("mixHash"),
            "nonce": block.get("nonce"),
            "base_fee": dec("baseFeePerGas"),
            "withdrawals_hash": block.get("withdrawalsRoot"),
            "blob_gas_used": hx("blobGasUsed") or 0,
            "excess_blob_gas": hx("excessBlobGas") or 0,
            "parent_beacon_root": block.get("parentBeaconBlockRoot"),
            "requests_hash": block.get("requestsHash"),
        }

    def _map_transaction(self, tx: Dict[str, Any], block_number: str, index: int) -> Dict[str, Any]:
        def hx(field: str) -> Optional[int]:
            return self._hex_to_int(tx.get(field), field)

        def dec(field: str) -> str:
            value = hx(field)
            return str(value) if value is not None else ""

        tx_type = hx("type") or 0
        return {
            "hash": tx.get("hash"),
            "nonce": hx("nonce"),
            "blob_hashes": list(tx.get("blobVersionedHashes") or []),
            "block_number": block_number,
            "transaction_index": index,
            "from": tx.get("from"),
            "to": tx.get("to"),
            "value": dec("value"),
            "gas_price": dec("gasPrice"),
            "gas": hx("gas"),
            "input": tx.get("input"),
            "v": dec("v"),
            "r": dec("r"),
            "s": dec("s"),
            "chain_id": dec("chainId"),
            "type": TRANSACTION_TYPES.get(tx_type, "unknown"),
            "method": self._classify_method(tx),
            "is_pending": False,
        }

    def _classify_method(self, tx: Dict[str, Any]) -> str:
        if not tx.get("to"):
            return "contract_creation"
        data = tx.get("input") or "0x"
        if data in ("0x", "0X", ""):
            return "native_transfer"
        return "contract_call"

    def _stringify_ints(self, value: Any) -> Any:
        if isinstance(value, bool):
            return value
        if isinstance(value, int):
            return str(value)
        if isinstance(value, dict):
            return {k: self._stringify_ints(v) for k, v in value.items()}
        if isinstance(value, list):
            return [self._stringify_ints(v) for v in value]
        return value

    # ------------------------------------------------------------------
    # normalization

    def _normalize_address(self, address: str) -> str:
        if not isinstance(address, str):
            raise ValueError("Address must be a string.")

        candidate = address.strip()
        if not candidate.startswith("0x"):
            candidate = f"0x{candidate}"

        if not ADDRESS_PATTERN.match(candidate):
            raise ValueError("Invalid address format. Expected 0x-prefixed 40 hex characters.")

        return candidate.lower()

    def _normalize_tx_hash(self, tx_hash: str) -> str:
        if not isinstance(tx_hash, str):
            raise ValueError("tx_hash must be a string.")
        candidate = tx_hash.strip().lower()
        if not candidate.startswith("0x"):
            candidate = f"0x{candidate}"
        if not TX_HASH_PATTERN.match(candidate):
            raise ValueError("tx_hash must be 0x-prefixed 64 hex characters.")
        return candidate

    def _normalize_private_key(self, private_key: str) -> str:
        if not isinstance(private_key, str):
            raise ValueError("private_key must be a hex string.")
        candidate = private_key.strip().lower()
        if candidate.startswith("0x"):
            candidate = candidate[2:]
        if not PRIVATE_KEY_PATTERN.match(candidate):
            raise ValueError("private_key must be 64 hex characters.")
        return "0x" + candidate

    def _hex_to_int(self, value: Any, field: str) -> Optional[int]:
        if value is None:
            return None
        if isinstance(value, int):
            return value
        if not isinstance(value, str):
            return None
        try:
            return int(value, 16)
        except ValueError:
            raise RpcError(f"{field} is not a valid hex value.")

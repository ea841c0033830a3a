import json
from typing import Any, Dict, List, Optional

import pytest

from letherscan.config import Config
from letherscan.service import GatewayService

ERC20_ABI = json.dumps(
    [
        {
            "type": "function",
            "name": "name",
            "inputs": [],
            "outputs": [{"name": "", "type": "string"}],
            "stateMutability": "view",
        },
        {
            "type": "function",
            "name": "decimals",
            "inputs": [],
            "outputs": [{"name": "", "type": "uint8"}],
            "stateMutability": "view",
        },
        {
            "type": "function",
            "name": "balanceOf",
            "inputs": [{"name": "account", "type": "address"}],
            "outputs": [{"name": "", "type": "uint256"}],
            "stateMutability": "view",
        },
        {
            "type": "function",
            "name": "transfer",
            "inputs": [{"name": "to", "type": "address"}, {"name": "amount", "type": "uint256"}],
            "outputs": [{"name": "", "type": "bool"}],
            "stateMutability": "nonpayable",
        },
        {
            "type": "function",
            "name": "transferFrom",
            "inputs": [
                {"name": "from", "type": "address"},
                {"name": "to", "type": "address"},
                {"name": "amount", "type": "uint256"},
            ],
            "outputs": [{"name": "", "type": "bool"}],
            "stateMutability": "nonpayable",
        },
        {
            "type": "event",
            "name": "Transfer",
            "anonymous": False,
            "inputs": [
                {"indexed": True, "name": "from", "type": "address"},
                {"indexed": True, "name": "to", "type": "address"},
                {"indexed": False, "name": "value", "type": "uint256"},
            ],
        },
    ]
)

HOLDER = "9491a3757a98e53be0d1c14834a6e2da0b4dc527"
TOKEN = "0x514910771af9ca656af840dff83e8264ecf986ca"


def word(value: int) -> str:
    return value.to_bytes(32, "big").hex()


def make_tx(**overrides: Any) -> Dict[str, Any]:
    tx = {
        "hash": "0x" + "ab" * 32,
        "nonce": "0x5",
        "blockHash": "0x" + "cd" * 32,
        "blockNumber": "0xa",
        "transactionIndex": "0x0",
        "from": "0x" + "11" * 20,
        "to": TOKEN,
        "value": "0x0",
        "gasPrice": "0x3b9aca00",
        "gas": "0x5208",
        "input": "0x70a08231" + "0" * 24 + HOLDER,
        "v": "0x1",
        "r": "0x10",
        "s": "0x20",
        "chainId": "0x1",
        "type": "0x2",
    }
    tx.update(overrides)
    return tx


def make_block(number: int, transactions: Optional[List[Dict[str, Any]]] = None) -> Dict[str, Any]:
    return {
        "number": hex(number),
        "parentHash": "0x" + "00" * 32,
        "sha3Uncles": "0x" + "01" * 32,
        "miner": "0x" + "22" * 20,
        "stateRoot": "0x" + "02" * 32,
        "transactionsRoot": "0x" + "03" * 32,
        "receiptsRoot": "0x" + "04" * 32,
        "logsBloom": "0x" + "00" * 256,
        "difficulty": "0x0",
        "gasLimit": "0x1c9c380",
        "gasUsed": "0x5208",
        "timestamp": "0x65000000",
        "extraData": "0x",
        "mixHash": "0x" + "05" * 32,
        "nonce": "0x0000000000000000",
        "baseFeePerGas": "0x7",
        "withdrawalsRoot": "0x" + "06" * 32,
        "transactions": transactions if transactions is not None else [],
    }


class FakeChainClient:
    """In-memory stand-in for RpcClient."""

    def __init__(self, node_address: str = "http://fake-node") -> None:
        self.node_address = node_address
        self.head = 10
        self.blocks: Dict[int, Dict[str, Any]] = {n: make_block(n, [make_tx()]) for n in range(0, 11)}
        self.transactions: Dict[str, Dict[str, Any]] = {}
        self.call_result = "0x" + word(1000)
        self.calls: List[Any] = []
        self.sent: List[str] = []
        self.nonce = 7
        self.price = 1_000_000_000
        self.chain = 1
        self.error: Optional[Exception] = None

    def _maybe_fail(self) -> None:
        if self.error is not None:
            raise self.error

    def get_block_number(self) -> int:
        self._maybe_fail()
        return self.head

    def get_block_by_number(self, block: int, full_transactions: bool = True) -> Optional[Dict[str, Any]]:
        self._maybe_fail()
        return self.blocks.get(block)

    def get_transaction_by_hash(self, tx_hash: str) -> Optional[Dict[str, Any]]:
        self._maybe_fail()
        return self.transactions.get(tx_hash)

    def eth_call(self, to: str, data: str, block_tag: str = "latest") -> str:
        self._maybe_fail()
        self.calls.append((to, data))
        return self.call_result

    def get_transaction_count(self, address: str, block_tag: str = "pending") -> int:
        return self.nonce

    def gas_price(self) -> int:
        return self.price

    def chain_id(self) -> Optional[int]:
        return self.chain

    def send_raw_transaction(self, raw_tx: str) -> str:
        self.sent.append(raw_tx)
        return "0x"


@pytest.fixture
def erc20_abi() -> str:
    return ERC20_ABI


@pytest.fixture
def fake_client() -> FakeChainClient:
    return FakeChainClient()


@pytest.fixture
def config() -> Config:
    return Config(node_address="http://configured-node")


@pytest.fixture
def requested_nodes() -> List[str]:
    return []


@pytest.fixture
def service(config: Config, fake_client: FakeChainClient, requested_nodes: List[str]) -> GatewayService:
    def factory(node_address: str) -> FakeChainClient:
        requested_nodes.append(node_address)
        return fake_client

    return GatewayService(config, client_factory=factory)

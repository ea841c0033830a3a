import pytest
from eth_account import Account
from eth_hash.auto import keccak

from conftest import HOLDER, TOKEN, make_block, make_tx, word
from letherscan.cache import CatalogueCache
from letherscan.config import Config
from letherscan.errors import FunctionNotFound, RpcError
from letherscan.service import GatewayService

PRIVATE_KEY = "4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318"


def test_latest_blocks_from_head(service, fake_client):
    result = service.get_latest_blocks()

    numbers = [block["header"]["number"] for block in result["blocks"]]
    assert numbers == ["10", "9", "8"]


def test_blocks_start_at_requested_number(service):
    result = service.get_latest_blocks(number_of_blocks=2, block_number=5)
    assert [block["header"]["number"] for block in result["blocks"]] == ["5", "4"]


def test_blocks_stop_at_genesis(service):
    result = service.get_latest_blocks(number_of_blocks=5, block_number=1)
    assert [block["header"]["number"] for block in result["blocks"]] == ["1", "0"]


def test_missing_block_is_an_rpc_error(service, fake_client):
    del fake_client.blocks[9]
    with pytest.raises(RpcError):
        service.get_latest_blocks(number_of_blocks=3)


def test_header_mapping(service):
    header = service.get_latest_blocks(number_of_blocks=1)["blocks"][0]["header"]

    assert header["gas_limit"] == 30_000_000
    assert header["gas_used"] == 21000
    assert header["timestamp"] == 0x65000000
    assert header["base_fee"] == "7"
    assert header["difficulty"] == "0"
    assert header["blob_gas_used"] == 0
    assert header["miner"] == "0x" + "22" * 20
    assert header["uncle_hash"] == "0x" + "01" * 32
    assert header["requests_hash"] is None


def test_transaction_mapping(service, fake_client):
    fake_client.blocks[10] = make_block(
        10,
        [
            make_tx(),
            make_tx(to=None, type="0x0", input="0x6080"),
            make_tx(input="0x", type="0x3", blobVersionedHashes=["0x01" + "00" * 31]),
            make_tx(type="0x7f"),
        ],
    )

    txs = service.get_latest_blocks(number_of_blocks=1)["blocks"][0]["transactions"]

    first = txs[0]
    assert first["block_number"] == "10"
    assert first["transaction_index"] == 0
    assert first["nonce"] == 5
    assert first["gas"] == 21000
    assert first["gas_price"] == "1000000000"
    assert first["value"] == "0"
    assert first["r"] == "16"
    assert first["chain_id"] == "1"
    assert first["type"] == "dynamic_fee"
    assert first["method"] == "contract_call"
    assert first["is_pending"] is False

    assert (txs[1]["type"], txs[1]["method"]) == ("legacy", "contract_creation")
    assert (txs[2]["type"], txs[2]["method"]) == ("blob", "native_transfer")
    assert txs[2]["blob_hashes"] == ["0x01" + "00" * 31]
    assert txs[2]["transaction_index"] == 2
    assert txs[3]["type"] == "unknown"


def test_transaction_by_hash(service, fake_client):
    tx_hash = "0x" + "ab" * 32
    fake_client.transactions[tx_hash] = make_tx(transactionIndex="0x3")

    result = service.get_transaction_by_hash(tx_hash.upper().replace("0X", "0x"))

    assert result["hash"] == tx_hash
    assert result["block_number"] == "10"
    assert result["transaction_index"] == 3
    assert result["is_pending"] is False


def test_pending_transaction(service, fake_client):
    tx_hash = "0x" + "ef" * 32
    fake_client.transactions[tx_hash] = make_tx(blockHash=None, blockNumber=None, transactionIndex=None)

    result = service.get_transaction_by_hash(tx_hash)

    assert result["is_pending"] is True
    assert result["block_number"] == ""


def test_transaction_lookup_validation(service):
    with pytest.raises(ValueError):
        service.get_transaction_by_hash("0x1234")
    with pytest.raises(RpcError):
        service.get_transaction_by_hash("0x" + "00" * 32)


def test_node_address_override(service, requested_nodes):
    service.get_latest_blocks(number_of_blocks=1)
    service.get_latest_blocks(number_of_blocks=1, node_address="http://other-node:8545")
    assert requested_nodes == ["http://configured-node", "http://other-node:8545"]


def test_decode_contract_call_data(service, erc20_abi):
    result = service.decode_contract_call_data(erc20_abi, "0x70a08231" + "0" * 24 + HOLDER)
    assert result == {"function_name": "balanceOf", "args": {"account": "0x" + HOLDER}}


def test_parse_contract_abi(service, erc20_abi):
    result = service.parse_contract_abi(erc20_abi, "nonpayable")

    assert result["methods"] == [
        {
            "name": "transfer",
            "signature": "transfer(address,uint256)",
            "selector": "0xa9059cbb",
            "state_mutability": "nonpayable",
            "inputs": ["address to", "uint256 amount"],
            "outputs": ["bool"],
        },
        {
            "name": "transferFrom",
            "signature": "transferFrom(address,address,uint256)",
            "selector": "0x23b872dd",
            "state_mutability": "nonpayable",
            "inputs": ["address from", "address to", "uint256 amount"],
            "outputs": ["bool"],
        },
    ]


def test_encode_function_data(service, erc20_abi):
    result = service.encode_function_data(erc20_abi, "transfer", [HOLDER, "1"])
    assert result["selector"] == "0xa9059cbb"
    assert result["data"] == "0xa9059cbb" + "0" * 24 + HOLDER + word(1)


def test_encode_respects_exact_match_config(fake_client, erc20_abi):
    service = GatewayService(Config(function_match="exact"), client_factory=lambda _: fake_client)
    with pytest.raises(FunctionNotFound):
        service.encode_function_data(erc20_abi, "balance", [HOLDER])


def test_eth_call(service, fake_client, erc20_abi):
    result = service.eth_call("balanceOf", TOKEN.upper().replace("0X", "0x"), erc20_abi, ["0x" + HOLDER])

    assert fake_client.calls == [(TOKEN, "0x70a08231" + "0" * 24 + HOLDER)]
    assert result == {"raw_response": word(1000), "decoded": {"output_0": "1000"}}


def test_eth_call_string_output(service, fake_client, erc20_abi):
    fake_client.call_result = "0x" + word(32) + word(4) + b"LINK".ljust(32, b"\x00").hex()
    result = service.eth_call("name", TOKEN, erc20_abi, [])
    assert result["decoded"] == {"output_0": "LINK"}


def test_eth_call_rejects_bad_address(service, erc20_abi):
    with pytest.raises(ValueError):
        service.eth_call("balanceOf", "0x1234", erc20_abi, [HOLDER])


def test_send_transaction(service, fake_client, erc20_abi):
    result = service.send_transaction("transfer", TOKEN, erc20_abi, PRIVATE_KEY, [HOLDER, "5"])

    assert len(fake_client.sent) == 1
    raw = bytes.fromhex(fake_client.sent[0][2:])
    assert result["transaction_hash"] == "0x" + keccak(raw).hex()

    sender = Account.recover_transaction(fake_client.sent[0])
    assert sender == Account.from_key("0x" + PRIVATE_KEY).address


def test_send_transaction_validates_key(service, fake_client, erc20_abi):
    with pytest.raises(ValueError):
        service.send_transaction("transfer", TOKEN, erc20_abi, "abc", [HOLDER, "5"])
    assert fake_client.sent == []


def test_catalogue_cache_reuses_parsed_abi(erc20_abi):
    cache = CatalogueCache(max_size=1)

    first = cache.get(erc20_abi)
    assert cache.get(erc20_abi) is first
    cache.get("[]")
    assert len(cache) == 1
    assert cache.get(erc20_abi) is not first


def test_catalogue_cache_disabled(erc20_abi):
    cache = CatalogueCache()
    assert cache.get(erc20_abi) is not cache.get(erc20_abi)
    assert len(cache) == 0

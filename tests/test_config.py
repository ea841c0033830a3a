import pytest

from letherscan.config import DEFAULT_NODE_ADDRESS, load_config

ENV_VARS = [
    "NODE_ADDRESS",
    "REQUEST_TIMEOUT",
    "REQUEST_RETRIES",
    "REQUEST_BACKOFF_SECONDS",
    "HOST",
    "PORT",
    "CORS_ORIGINS",
    "CORS_ALLOW_CREDENTIALS",
    "STATIC_DIR",
    "BYTES32_MODE",
    "FUNCTION_MATCH",
    "ABI_CACHE_SIZE",
    "GAS_LIMIT",
    "DEFAULT_NUMBER_OF_BLOCKS",
    "LOG_LEVEL",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    cfg = load_config()

    assert cfg.node_address == DEFAULT_NODE_ADDRESS
    assert cfg.port == 8080
    assert cfg.cors_origins == ["*"]
    assert cfg.bytes32_mode == "raw"
    assert cfg.function_match == "exact_then_substring"
    assert cfg.abi_cache_size == 0
    assert cfg.gas_limit == 100000
    assert cfg.default_number_of_blocks == 3
    assert cfg.static_dir is None


def test_overrides(monkeypatch):
    monkeypatch.setenv("NODE_ADDRESS", "https://rpc.example.org/")
    monkeypatch.setenv("CORS_ORIGINS", "https://a.example, https://b.example")
    monkeypatch.setenv("BYTES32_MODE", "hex")
    monkeypatch.setenv("FUNCTION_MATCH", "exact")
    monkeypatch.setenv("ABI_CACHE_SIZE", "64")
    monkeypatch.setenv("CORS_ALLOW_CREDENTIALS", "no")

    cfg = load_config()

    assert cfg.node_address == "https://rpc.example.org"
    assert cfg.cors_origins == ["https://a.example", "https://b.example"]
    assert cfg.cors_allow_credentials is False
    assert cfg.bytes32_mode == "hex"
    assert cfg.function_match == "exact"
    assert cfg.abi_cache_size == 64


@pytest.mark.parametrize(
    "name,value",
    [
        ("BYTES32_MODE", "base64"),
        ("FUNCTION_MATCH", "fuzzy"),
        ("PORT", "eighty"),
        ("REQUEST_RETRIES", "0"),
        ("REQUEST_BACKOFF_SECONDS", "soon"),
        ("LOG_LEVEL", "LOUD"),
    ],
)
def test_invalid_values(monkeypatch, name, value):
    monkeypatch.setenv(name, value)
    with pytest.raises(ValueError):
        load_config()

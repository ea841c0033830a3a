import logging
import os
from dataclasses import dataclass, field
from typing import List, Optional

from .abi import MATCH_EXACT_THEN_SUBSTRING, MATCH_MODES
from .codec import BYTES32_MODES, BYTES32_RAW

DEFAULT_NODE_ADDRESS = "http://localhost:8545"
DEFAULT_GAS_LIMIT = 100000
DEFAULT_NUMBER_OF_BLOCKS = 3

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class Config:
    node_address: str = DEFAULT_NODE_ADDRESS
    request_timeout: int = 10
    max_retries: int = 3
    backoff_seconds: float = 0.5
    host: str = "0.0.0.0"
    port: int = 8080
    cors_origins: List[str] = field(default_factory=lambda: ["*"])
    cors_allow_credentials: bool = True
    static_dir: Optional[str] = None
    bytes32_mode: str = BYTES32_RAW
    function_match: str = MATCH_EXACT_THEN_SUBSTRING
    abi_cache_size: int = 0
    gas_limit: int = DEFAULT_GAS_LIMIT
    default_number_of_blocks: int = DEFAULT_NUMBER_OF_BLOCKS
    log_level: str = "INFO"


def _env_int(name: str, default: int, minimum: int = 0) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw.strip())
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got '{raw}'.") from exc
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum}, got {value}.")
    return value


def _env_choice(name: str, default: str, choices: tuple) -> str:
    value = (os.getenv(name) or default).strip()
    if value not in choices:
        allowed = ", ".join(choices)
        raise ValueError(f"{name} must be one of {allowed}, got '{value}'.")
    return value


def load_config() -> Config:
    """Load configuration from environment variables."""
    node_address = (os.getenv("NODE_ADDRESS") or DEFAULT_NODE_ADDRESS).strip().rstrip("/")
    try:
        backoff = float(os.getenv("REQUEST_BACKOFF_SECONDS", "0.5"))
    except ValueError as exc:
        raise ValueError("REQUEST_BACKOFF_SECONDS must be a number.") from exc

    cors_env = os.getenv("CORS_ORIGINS", "*")
    cors_origins = [o.strip() for o in cors_env.split(",") if o.strip()] or ["*"]
    allow_credentials = os.getenv("CORS_ALLOW_CREDENTIALS", "true").strip().lower() in ("1", "true", "yes")

    static_dir = (os.getenv("STATIC_DIR") or "").strip() or None

    return Config(
        node_address=node_address,
        request_timeout=_env_int("REQUEST_TIMEOUT", 10, minimum=1),
        max_retries=_env_int("REQUEST_RETRIES", 3, minimum=1),
        backoff_seconds=backoff,
        host=os.getenv("HOST", "0.0.0.0").strip(),
        port=_env_int("PORT", 8080, minimum=1),
        cors_origins=cors_origins,
        cors_allow_credentials=allow_credentials,
        static_dir=static_dir,
        bytes32_mode=_env_choice("BYTES32_MODE", BYTES32_RAW, BYTES32_MODES),
        function_match=_env_choice("FUNCTION_MATCH", MATCH_EXACT_THEN_SUBSTRING, MATCH_MODES),
        abi_cache_size=_env_int("ABI_CACHE_SIZE", 0),
        gas_limit=_env_int("GAS_LIMIT", DEFAULT_GAS_LIMIT, minimum=21000),
        default_number_of_blocks=_env_int("DEFAULT_NUMBER_OF_BLOCKS", DEFAULT_NUMBER_OF_BLOCKS, minimum=1),
        log_level=_env_choice("LOG_LEVEL", "INFO", LOG_LEVELS),
    )


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

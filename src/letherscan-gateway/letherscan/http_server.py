"""
HTTP gateway exposing block/transaction reads and the ABI call-data codec.
"""

import argparse
import logging
import time
from pathlib import Path
from typing import List, Optional

import requests
import uvicorn
from fastapi import FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel, Field

from .config import Config, configure_logging, load_config
from .errors import RpcError
from .service import GatewayService

logger = logging.getLogger(__name__)

NODE_ADDRESS_HEADER = "X-Node-Address"


class DecodeContractCallDataRequest(BaseModel):
    contract_abi: str
    input_data: str


class ParseContractABIRequest(BaseModel):
    contract_abi: str
    state_mutability_filter: str = ""


class EncodeContractCallDataRequest(BaseModel):
    contract_abi: str
    method: str
    input: List[str] = Field(default_factory=list)


class ETHCallRequest(BaseModel):
    method: str
    contract_address: str
    contract_abi: str
    input: List[str] = Field(default_factory=list)


class SendTransactionRequest(BaseModel):
    method: str
    contract_address: str
    contract_abi: str
    private_key: str
    input: List[str] = Field(default_factory=list)


def _node_address(request: Request) -> Optional[str]:
    return request.headers.get(NODE_ADDRESS_HEADER) or None


def create_app(config: Optional[Config] = None, service: Optional[GatewayService] = None) -> FastAPI:
    cfg = config or load_config()
    svc = service or GatewayService(cfg)

    app = FastAPI(
        title="letherscan gateway",
        description="Block explorer gateway and ABI call-data codec in front of an Ethereum JSON-RPC node",
        version="0.1.0",
    )
    app.state.service = svc

    allow_all_origins = "*" in cfg.cors_origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[] if allow_all_origins else cfg.cors_origins,
        allow_origin_regex="https?://.*" if allow_all_origins else None,
        allow_credentials=cfg.cors_allow_credentials,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Accept", "Authorization", "Content-Type", "X-CSRF-Token", NODE_ADDRESS_HEADER],
        expose_headers=["Link"],
        max_age=300,
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        started = time.monotonic()
        logger.info(
            "Request received method=%s url=%s remote_addr=%s",
            request.method,
            request.url,
            request.client.host if request.client else "-",
        )
        response = await call_next(request)
        logger.debug("Request finished status=%s elapsed=%.3fs", response.status_code, time.monotonic() - started)
        return response

    @app.exception_handler(RpcError)
    async def rpc_error_handler(request: Request, exc: RpcError) -> PlainTextResponse:
        logger.error("Node error for %s %s: %s", request.method, request.url.path, exc)
        return PlainTextResponse(str(exc), status_code=502)

    @app.exception_handler(requests.RequestException)
    async def node_unreachable_handler(request: Request, exc: requests.RequestException) -> PlainTextResponse:
        logger.error("Node unreachable for %s %s: %s", request.method, request.url.path, exc)
        return PlainTextResponse(f"Failed to reach Ethereum node: {exc}", status_code=502)

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError) -> PlainTextResponse:
        logger.error("Rejected %s %s: %s", request.method, request.url.path, exc)
        return PlainTextResponse(str(exc), status_code=400)

    @app.get("/health")
    def health_check():
        return {"status": "healthy"}

    @app.get("/blocks")
    def get_blocks(
        request: Request,
        number_of_blocks: Optional[str] = Query(None),
        block_number: Optional[str] = Query(None),
    ):
        return svc.get_latest_blocks(
            number_of_blocks=_lenient_int(number_of_blocks),
            block_number=_lenient_int(block_number),
            node_address=_node_address(request),
        )

    @app.get("/transaction/{tx_hash}")
    def get_transaction_by_hash(tx_hash: str, request: Request):
        return svc.get_transaction_by_hash(tx_hash, node_address=_node_address(request))

    @app.post("/decode-contract-call-data")
    def decode_contract_call_data(body: DecodeContractCallDataRequest):
        return svc.decode_contract_call_data(body.contract_abi, body.input_data)

    @app.post("/parse-contract-abi")
    def parse_contract_abi(body: ParseContractABIRequest):
        return svc.parse_contract_abi(body.contract_abi, body.state_mutability_filter)

    @app.post("/encode-contract-call-data")
    def encode_contract_call_data(body: EncodeContractCallDataRequest):
        return svc.encode_function_data(body.contract_abi, body.method, body.input)

    @app.post("/eth-call")
    def eth_call(body: ETHCallRequest, request: Request):
        return svc.eth_call(
            body.method,
            body.contract_address,
            body.contract_abi,
            body.input,
            node_address=_node_address(request),
        )

    @app.post("/send-transaction")
    def send_transaction(body: SendTransactionRequest, request: Request):
        return svc.send_transaction(
            body.method,
            body.contract_address,
            body.contract_abi,
            body.private_key,
            body.input,
            node_address=_node_address(request),
        )

    # mounted last so the API routes above take precedence
    if cfg.static_dir:
        static_path = Path(cfg.static_dir)
        if static_path.is_dir():
            app.mount("/", StaticFiles(directory=str(static_path), html=True), name="frontend")
            logger.info("Frontend mounted at / from %s", static_path)
        else:
            logger.warning("Frontend directory not found: %s", static_path)

    return app


def _lenient_int(value: Optional[str]) -> Optional[int]:
    """Missing or unparsable query integers fall back to the defaults."""
    if value is None:
        return None
    try:
        return int(value.strip())
    except ValueError:
        return None


def main(argv: Optional[List[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Run the letherscan HTTP gateway.")
    parser.add_argument("--host", default=None, help="Bind host. Defaults to HOST env or 0.0.0.0.")
    parser.add_argument("--port", type=int, default=None, help="Bind port. Defaults to PORT env or 8080.")
    parser.add_argument(
        "--node-address",
        default=None,
        help="Ethereum JSON-RPC URL. Defaults to NODE_ADDRESS env or http://localhost:8545.",
    )
    args = parser.parse_args(argv)

    cfg = load_config()
    if args.host:
        cfg.host = args.host
    if args.port:
        cfg.port = args.port
    if args.node_address:
        cfg.node_address = args.node_address

    configure_logging(cfg.log_level)
    logger.info("starting server address=%s:%d node=%s", cfg.host, cfg.port, cfg.node_address)
    uvicorn.run(create_app(cfg), host=cfg.host, port=cfg.port)


if __name__ == "__main__":
    main()

import logging
import time
from typing import Any, Dict, List, Optional, Union

import requests

from .errors import RpcError

logger = logging.getLogger(__name__)

BlockId = Union[int, str]


class RpcClient:
    """Minimal JSON-RPC 2.0 client for EVM nodes (HTTP POST)."""

    def __init__(
        self,
        rpc_url: str,
        timeout: int = 10,
        max_retries: int = 3,
        backoff_seconds: float = 0.5,
        headers: Optional[Dict[str, str]] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        url = (rpc_url or "").strip()
        if not url:
            raise ValueError("rpc_url must be a non-empty string.")

        self.rpc_url = url
        self.timeout = timeout
        self.max_retries = max(1, int(max_retries))
        self.backoff_seconds = float(backoff_seconds)
        self.session = session or requests.Session()
        self.session.headers.update({"Content-Type": "application/json"})
        if headers:
            self.session.headers.update(dict(headers))
        self._next_id = 1

    def call(self, method: str, params: Optional[List[Any]] = None) -> Any:
        if not isinstance(method, str) or not method.strip():
            raise ValueError("method must be a non-empty string.")
        if params is None:
            params = []
        if not isinstance(params, list):
            raise ValueError("params must be a list.")

        payload = {
            "jsonrpc": "2.0",
            "id": self._next_id,
            "method": method,
            "params": params,
        }
        self._next_id += 1

        for attempt in range(1, self.max_retries + 1):
            try:
                response = self.session.post(
                    self.rpc_url,
                    json=payload,
                    timeout=self.timeout,
                )
                if response.status_code in {429} or response.status_code >= 500:
                    if attempt < self.max_retries:
                        logger.warning(
                            "RPC %s returned HTTP %s, retrying (attempt %d/%d)",
                            method,
                            response.status_code,
                            attempt,
                            self.max_retries,
                        )
                        time.sleep(self.backoff_seconds * attempt)
                        continue
                response.raise_for_status()
            except requests.RequestException as exc:
                if attempt < self.max_retries:
                    logger.warning("RPC %s to %s failed: %s, retrying", method, self.rpc_url, exc)
                    time.sleep(self.backoff_seconds * attempt)
                    continue
                logger.error("RPC %s to %s failed: %s", method, self.rpc_url, exc)
                raise

            try:
                data = response.json()
            except ValueError as exc:
                raise RpcError(f"RPC {method} returned a non-JSON response.") from exc
            return self._extract_result(method, data)

        raise RuntimeError("RPC request failed without raising an exception.")

    def _extract_result(self, method: str, data: Any) -> Any:
        if not isinstance(data, dict):
            raise RpcError("Unexpected JSON-RPC response (non-object).")

        error_obj = data.get("error")
        if isinstance(error_obj, dict):
            code = error_obj.get("code")
            message = error_obj.get("message")
            err_data = error_obj.get("data")
            parts: list[str] = []
            if code is not None:
                parts.append(f"code {code}")
            if message:
                parts.append(str(message))
            if err_data:
                parts.append(str(err_data))
            detail = ": ".join(parts) if parts else "unknown error"
            logger.error("RPC %s returned an error: %s", method, detail)
            raise RpcError(f"RPC error: {detail}.", code=code if isinstance(code, int) else None)

        if "result" not in data:
            raise RpcError("Unexpected JSON-RPC response (missing result).")
        return data.get("result")

    def _quantity(self, method: str, params: List[Any]) -> int:
        result = self.call(method, params)
        if not isinstance(result, str) or not result.startswith("0x"):
            raise RpcError(f"RPC error: {method} returned unexpected result.")
        return int(result, 16)

    def get_block_number(self) -> int:
        return self._quantity("eth_blockNumber", [])

    def get_block_by_number(self, block: BlockId, full_transactions: bool = True) -> Optional[Dict[str, Any]]:
        tag = hex(block) if isinstance(block, int) else block
        return self.call("eth_getBlockByNumber", [tag, full_transactions])

    def get_transaction_by_hash(self, tx_hash: str) -> Optional[Dict[str, Any]]:
        return self.call("eth_getTransactionByHash", [tx_hash])

    def eth_call(self, to: str, data: str, block_tag: str = "latest") -> str:
        result = self.call("eth_call", [{"to": to, "data": data}, block_tag])
        if not isinstance(result, str):
            raise RpcError("RPC error: eth_call returned unexpected result.")
        return result

    def send_raw_transaction(self, raw_tx: str) -> str:
        return self.call("eth_sendRawTransaction", [raw_tx])

    def gas_price(self) -> int:
        return self._quantity("eth_gasPrice", [])

    def get_transaction_count(self, address: str, block_tag: str = "pending") -> int:
        return self._quantity("eth_getTransactionCount", [address, block_tag])

    def chain_id(self) -> Optional[int]:
        result = self.call("eth_chainId", [])
        if result is None:
            return None
        if not isinstance(result, str) or not result.startswith("0x"):
            raise RpcError("RPC error: eth_chainId returned unexpected result.")
        return int(result, 16)

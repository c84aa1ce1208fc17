from __future__ import annotations

from typing import Any, List, Optional, Protocol

import httpx

from .errors import RpcResponseError, RpcTransportError


DEFAULT_TIMEOUT = 10.0


class Provider(Protocol):
    """Anything that can answer an EIP-1193 style `request`."""

    async def request(self, method: str, params: Optional[List[Any]] = None) -> Any: ...


class RpcClient:
    """
    Minimal async JSON-RPC 2.0 client for EVM nodes (HTTP POST).

    Notes
    - No retries: callers decide whether a failure is worth another attempt.
    - Closes the underlying `httpx.AsyncClient` only when it created it.
    """

    def __init__(
        self,
        rpc_url: str,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        url = (rpc_url or "").strip()
        if not url:
            raise ValueError("rpc_url must be a non-empty string.")
        self.rpc_url = url
        self._timeout = timeout
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=self._timeout)
        self._next_id = 1

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "RpcClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    # --------------- Public API ---------------
    async def request(self, method: str, params: Optional[List[Any]] = None) -> Any:
        if not isinstance(method, str) or not method.strip():
            raise ValueError("method must be a non-empty string.")
        payload = {
            "jsonrpc": "2.0",
            "id": self._next_id,
            "method": method,
            "params": list(params or []),
        }
        self._next_id += 1

        try:
            resp = await self._client.post(self.rpc_url, json=payload)
        except (httpx.TimeoutException, httpx.TransportError) as exc:
            raise RpcTransportError(f"{self.rpc_url} is not reachable: {exc}") from exc

        if resp.status_code != 200:
            raise RpcTransportError(
                f"HTTP {resp.status_code} from {self.rpc_url}: {resp.text[:200]}"
            )
        try:
            data = resp.json()
        except ValueError as exc:
            raise RpcResponseError("Failed to parse JSON-RPC response") from exc
        if not isinstance(data, dict):
            raise RpcResponseError("Unexpected JSON-RPC response (non-object).")

        error_obj = data.get("error")
        if isinstance(error_obj, dict):
            code = error_obj.get("code")
            message = error_obj.get("message") or "unknown error"
            raise RpcResponseError(f"RPC error {code}: {message}", code=code)
        if "result" not in data:
            raise RpcResponseError("Unexpected JSON-RPC response (missing result).")
        return data["result"]

    async def chain_id(self) -> int:
        return parse_chain_id(await self.request("eth_chainId"))

    async def client_version(self) -> Any:
        return await self.request("web3_clientVersion")

    async def relayer_metadata(self) -> Any:
        return await self.request("fhevm_relayer_metadata")


def parse_chain_id(value: Any) -> int:
    """Accept hex ("0x7a69"), decimal strings and ints."""
    if isinstance(value, bool):
        raise ValueError(f"Unexpected chain id: {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        s = value.strip().lower()
        if s.startswith("0x"):
            return int(s, 16)
        if s.isdigit():
            return int(s)
    raise ValueError(f"Unexpected chain id: {value!r}")


async def close_provider(provider: Any) -> None:
    closer = getattr(provider, "aclose", None)
    if closer is not None:
        await closer()


__all__ = ["Provider", "RpcClient", "parse_chain_id", "close_provider", "DEFAULT_TIMEOUT"]

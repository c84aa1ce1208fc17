from __future__ import annotations

import json

import httpx
import pytest

from common.errors import RpcResponseError, RpcTransportError
from common.rpc import RpcClient, parse_chain_id


def _client(handler) -> RpcClient:
    transport = httpx.MockTransport(handler)
    return RpcClient("http://node.local:8545", client=httpx.AsyncClient(transport=transport))


@pytest.mark.asyncio
async def test_request_posts_jsonrpc_payload_and_returns_result():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        seen.append(body)
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": "0x7a69"})

    rpc = _client(handler)
    assert await rpc.chain_id() == 31337
    assert await rpc.request("eth_chainId", []) == "0x7a69"

    assert seen[0]["method"] == "eth_chainId"
    assert seen[0]["params"] == []
    assert seen[0]["jsonrpc"] == "2.0"
    assert seen[1]["id"] == seen[0]["id"] + 1


@pytest.mark.asyncio
async def test_rpc_error_object_raises_response_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json={"jsonrpc": "2.0", "id": 1, "error": {"code": -32601, "message": "Method not found"}},
        )

    rpc = _client(handler)
    with pytest.raises(RpcResponseError) as ei:
        await rpc.relayer_metadata()
    assert ei.value.code == -32601
    assert "Method not found" in str(ei.value)


@pytest.mark.asyncio
async def test_http_error_raises_transport_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502, text="bad gateway")

    with pytest.raises(RpcTransportError):
        await _client(handler).client_version()


@pytest.mark.asyncio
async def test_connection_failure_raises_transport_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(RpcTransportError):
        await _client(handler).chain_id()


@pytest.mark.asyncio
async def test_non_json_and_missing_result_raise_response_error():
    def not_json(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>")

    def no_result(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1})

    with pytest.raises(RpcResponseError):
        await _client(not_json).chain_id()
    with pytest.raises(RpcResponseError):
        await _client(no_result).chain_id()


def test_empty_url_rejected():
    with pytest.raises(ValueError):
        RpcClient("  ")


@pytest.mark.parametrize(
    "raw,expected",
    [("0x7a69", 31337), ("0xAA36A7", 11155111), ("31337", 31337), (1, 1)],
)
def test_parse_chain_id(raw, expected):
    assert parse_chain_id(raw) == expected


@pytest.mark.parametrize("raw", [True, None, "sepolia", 1.5])
def test_parse_chain_id_rejects_garbage(raw):
    with pytest.raises(ValueError):
        parse_chain_id(raw)

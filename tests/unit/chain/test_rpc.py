"""
Starknet RPC Tests
==================

[CHAIN] chain/rpc.py - felt helpers and the JSON-RPC transport.
"""

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer


class TestEncodingHelpers:
    """Test selector and u256 helpers."""

    def test_selector_from_name(self):
        """Selector is keccak-250 of the entry point name."""
        from chain.rpc import get_selector_from_name

        assert get_selector_from_name("transfer") == \
            0x83AFD3F4CAEDC6EEBF44246FE54E38C95E3179A5EC9EA81740ECA5B482D12E

    def test_u256_split_and_join(self):
        """Values split into 128-bit limbs and back."""
        from chain.rpc import from_u256, to_u256

        value = (5 << 128) + 7

        assert to_u256(value) == (7, 5)
        assert from_u256(7, 5) == value

    def test_u256_rejects_overflow(self):
        """Values wider than 256 bits are rejected."""
        from chain.rpc import to_u256

        with pytest.raises(ValueError):
            to_u256(1 << 256)

    def test_felt_hex(self):
        """Felts accept ints, hex and decimal strings."""
        from chain.rpc import felt_hex

        assert felt_hex(255) == "0xff"
        assert felt_hex("0x00ff") == "0xff"
        assert felt_hex("255") == "0xff"


@pytest_asyncio.fixture
async def rpc_server():
    """Local JSON-RPC endpoint answering from a handler table."""
    handlers = {}
    raw_bodies = {}
    requests = []

    async def handle(request: web.Request) -> web.Response:
        body = await request.json()
        requests.append(body)
        if body["method"] in raw_bodies:
            return web.Response(text=raw_bodies[body["method"]], content_type="text/html")
        handler = handlers.get(body["method"])
        if handler is None:
            return web.json_response({"jsonrpc": "2.0", "id": body["id"], "error": {"code": -32601, "message": "Method not found"}})
        status, payload = handler(body["params"])
        if status != 200:
            return web.Response(status=status)
        return web.json_response({"jsonrpc": "2.0", "id": body["id"], **payload})

    app = web.Application()
    app.router.add_post("/", handle)
    server = TestServer(app)
    await server.start_server()
    server.handlers = handlers
    server.requests = requests
    server.raw_bodies = raw_bodies
    yield server
    await server.close()


class TestStarknetRpcClient:
    """Test the aiohttp transport."""

    @pytest.mark.asyncio
    async def test_chain_id(self, rpc_server):
        """starknet_chainId result is returned as-is."""
        from chain.rpc import StarknetRpcClient

        rpc_server.handlers["starknet_chainId"] = lambda params: (200, {"result": "0x534e5f5345504f4c4941"})

        assert await StarknetRpcClient(str(rpc_server.make_url("/"))).chain_id() == "0x534e5f5345504f4c4941"

    @pytest.mark.asyncio
    async def test_call_encodes_request(self, rpc_server):
        """starknet_call carries the selector and hex calldata."""
        from chain.rpc import StarknetRpcClient, get_selector_from_name

        rpc_server.handlers["starknet_call"] = lambda params: (200, {"result": ["0x1"]})
        client = StarknetRpcClient(str(rpc_server.make_url("/")))

        result = await client.call("0x54ca", "is_nullifier_used", [10, 0])

        assert result == ["0x1"]
        request = rpc_server.requests[0]["params"]["request"]
        assert request["contract_address"] == "0x54ca"
        assert request["entry_point_selector"] == hex(get_selector_from_name("is_nullifier_used"))
        assert request["calldata"] == ["0xa", "0x0"]
        assert rpc_server.requests[0]["params"]["block_id"] == "latest"

    @pytest.mark.asyncio
    async def test_rpc_error_carries_code(self, rpc_server):
        """JSON-RPC errors raise ChainQueryError with the error code."""
        from core.errors import ChainQueryError
        from chain.rpc import StarknetRpcClient

        rpc_server.handlers["starknet_call"] = lambda params: (200, {"error": {"code": 40, "message": "Contract error"}})

        with pytest.raises(ChainQueryError, match="Contract error") as exc_info:
            await StarknetRpcClient(str(rpc_server.make_url("/"))).call("0x1", "f")
        assert exc_info.value.code == 40

    @pytest.mark.asyncio
    async def test_http_error(self, rpc_server):
        """Non-200 responses raise ChainQueryError."""
        from core.errors import ChainQueryError
        from chain.rpc import StarknetRpcClient

        rpc_server.handlers["starknet_chainId"] = lambda params: (503, {})

        with pytest.raises(ChainQueryError, match="HTTP 503"):
            await StarknetRpcClient(str(rpc_server.make_url("/"))).chain_id()

    @pytest.mark.asyncio
    async def test_invalid_json_body(self, rpc_server):
        """A 200 response that is not JSON raises ChainQueryError."""
        from core.errors import ChainQueryError, ErrorKind
        from chain.rpc import StarknetRpcClient

        rpc_server.raw_bodies["wallet_requestChainId"] = "<html>bad gateway</html>"

        with pytest.raises(ChainQueryError, match="returned invalid JSON") as exc_info:
            await StarknetRpcClient(str(rpc_server.make_url("/"))).request("wallet_requestChainId")
        assert exc_info.value.kind is ErrorKind.CHAIN_QUERY

    @pytest.mark.asyncio
    async def test_unknown_receipt_is_none(self, rpc_server):
        """TXN_HASH_NOT_FOUND means 'not yet known', not an error."""
        from chain.rpc import StarknetRpcClient

        rpc_server.handlers["starknet_getTransactionReceipt"] = \
            lambda params: (200, {"error": {"code": 29, "message": "Transaction hash not found"}})

        assert await StarknetRpcClient(str(rpc_server.make_url("/"))).get_transaction_receipt("0xabc") is None

    @pytest.mark.asyncio
    async def test_unreachable_endpoint(self):
        """Connection failures raise ChainQueryError."""
        from core.errors import ChainQueryError
        from chain.rpc import StarknetRpcClient

        with pytest.raises(ChainQueryError):
            await StarknetRpcClient("http://127.0.0.1:1", timeout=2).chain_id()

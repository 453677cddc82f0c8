"""
JSON-RPC Server and HTTP Service Test Suite

Coverage:
  - Request parsing, batches and notifications
  - govlens exception to JSON-RPC error mapping
  - gov_* methods against fake collaborators
  - FastAPI app: /rpc and /health over a mocked node
"""

import json
import os
import sys

import pytest
from eth_abi import encode
from eth_utils import decode_hex, to_checksum_address
from fastapi.testclient import TestClient

# ── Path setup ────────────────────────────────────────────────────────
ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from govlens.api.main import create_app
from govlens.config.loader import GovLensConfig
from govlens.context import ServiceContext
from govlens.exceptions import DomainError, MalformedResponseError, TransactionError, UpstreamError
from govlens.governance.dashboard import DashboardService, GovernanceContext
from govlens.rpc.modules.gov import GovModule
from govlens.rpc.server import RPCError, RPCErrorCode, RPCModule, RPCServer, rpc_method

from fake_node import NODE_URL, FakeNodeProvider, NodeError


# ══════════════════════════════════════════════════════════════════════
#  HELPERS
# ══════════════════════════════════════════════════════════════════════

GOVERNOR = "0x" + "c0" * 20
LENS = "0x" + "1e" * 20
TOKEN = "0x" + "70" * 20
TIMELOCK = "0x" + "71" * 20
ACCOUNT = "0x" + "5a" * 20


class EchoModule(RPCModule):
    namespace = "test"

    @rpc_method
    async def echo(self, value):
        return value

    @rpc_method
    async def fail(self, kind):
        raise {
            "upstream": UpstreamError("node down"),
            "domain": DomainError("future block"),
            "transaction": TransactionError("rejected"),
            "malformed": MalformedResponseError("garbage"),
            "runtime": RuntimeError("boom"),
        }[kind]

    async def not_exposed(self):
        return "hidden"


def make_server() -> RPCServer:
    server = RPCServer()
    server.register_module(EchoModule())
    return server


async def call(server, method, params=None, request_id=1):
    raw = await server.handle_request(json.dumps(
        {"jsonrpc": "2.0", "method": method, "params": params, "id": request_id}
    ))
    return json.loads(raw)


class EmptyLogSource:
    async def fetch_logs(self, address, topics, from_block, to_block=None):
        return []


class FakeReader:

    def __init__(self, reply):
        self.reply = reply

    async def batch_call(self, calls, block_number=None):
        return [self.reply(c) for c in calls]


class NoOracle:
    async def resolve_timestamps(self, block_numbers, network):
        raise AssertionError("oracle not expected")


def make_service_context(reader=None, config=None) -> ServiceContext:
    async def head():
        return 500

    governance = GovernanceContext(
        logs=EmptyLogSource(),
        reader=reader or FakeReader(lambda c: None),
        oracle=NoOracle(),
        chain_head=head,
        clock=lambda: 1_000_000,
    )
    return ServiceContext(
        config=config or GovLensConfig(),
        rpc=None,
        governance=governance,
        dashboards=DashboardService(governance),
    )


# ══════════════════════════════════════════════════════════════════════
#  SERVER
# ══════════════════════════════════════════════════════════════════════

class TestRPCServer:

    def test_registration(self):
        assert make_server().get_methods() == ["test_echo", "test_fail"]

    @pytest.mark.asyncio
    async def test_positional_and_named_params(self):
        server = make_server()
        assert (await call(server, "test_echo", [5]))["result"] == 5
        assert (await call(server, "test_echo", {"value": "x"}))["result"] == "x"

    @pytest.mark.asyncio
    async def test_method_not_found(self):
        response = await call(make_server(), "test_missing")
        assert response["error"]["code"] == RPCErrorCode.METHOD_NOT_FOUND

    @pytest.mark.asyncio
    async def test_bad_params(self):
        response = await call(make_server(), "test_echo", [1, 2])
        assert response["error"]["code"] == RPCErrorCode.INVALID_PARAMS

    @pytest.mark.asyncio
    async def test_parse_error(self):
        response = json.loads(await make_server().handle_request("{nope"))
        assert response["error"]["code"] == RPCErrorCode.PARSE_ERROR

    @pytest.mark.asyncio
    async def test_wrong_version(self):
        raw = await make_server().handle_request({"jsonrpc": "1.0", "method": "test_echo", "params": [1], "id": 3})
        assert json.loads(raw)["error"]["code"] == RPCErrorCode.INVALID_REQUEST

    @pytest.mark.asyncio
    async def test_batch_with_notification(self):
        raw = await make_server().handle_request([
            {"jsonrpc": "2.0", "method": "test_echo", "params": [1], "id": 1},
            {"jsonrpc": "2.0", "method": "test_echo", "params": [2]},
            {"jsonrpc": "2.0", "method": "test_echo", "params": [3], "id": 3},
        ])
        responses = json.loads(raw)
        assert [(r["id"], r["result"]) for r in responses] == [(1, 1), (3, 3)]

    @pytest.mark.asyncio
    async def test_empty_batch(self):
        raw = await make_server().handle_request([])
        assert json.loads(raw)["error"]["code"] == RPCErrorCode.INVALID_REQUEST

    @pytest.mark.asyncio
    async def test_notification_returns_nothing(self):
        assert await make_server().handle_request({"jsonrpc": "2.0", "method": "test_echo", "params": [1]}) is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("kind,code,exc_type", [
        ("upstream", RPCErrorCode.RESOURCE_UNAVAILABLE, "UpstreamError"),
        ("domain", RPCErrorCode.INVALID_PARAMS, "DomainError"),
        ("transaction", RPCErrorCode.TRANSACTION_REJECTED, "TransactionError"),
        ("malformed", RPCErrorCode.SERVER_ERROR, "MalformedResponseError"),
    ])
    async def test_exception_mapping(self, kind, code, exc_type):
        response = await call(make_server(), "test_fail", [kind])
        assert response["error"]["code"] == code
        assert response["error"]["data"] == {"type": exc_type}

    @pytest.mark.asyncio
    async def test_unexpected_exception_is_internal_error(self):
        response = await call(make_server(), "test_fail", ["runtime"])
        assert response["error"]["code"] == RPCErrorCode.INTERNAL_ERROR

    def test_rpc_error_to_dict(self):
        assert RPCError(RPCErrorCode.INVALID_PARAMS, "bad").to_dict() == {"code": -32602, "message": "bad"}


# ══════════════════════════════════════════════════════════════════════
#  gov_* METHODS
# ══════════════════════════════════════════════════════════════════════

class TestGovModule:

    def make_server(self, context):
        server = RPCServer()
        server.register_module(GovModule(context))
        return server

    def test_method_names(self):
        assert self.make_server(make_service_context()).get_methods() == [
            "gov_encodeParameters",
            "gov_getAccount",
            "gov_getParams",
            "gov_getQueuedTransactions",
            "gov_getVoteDashboard",
        ]

    @pytest.mark.asyncio
    async def test_empty_dashboard(self):
        server = self.make_server(make_service_context())
        response = await call(server, "gov_getVoteDashboard", {
            "governorAddress": GOVERNOR,
            "governanceTokenAddress": TOKEN,
            "compoundLens": LENS,
            "voter": ACCOUNT,
        })
        result = response["result"]
        assert result["proposals"] == []
        assert result["currentBlock"] == 500
        assert result["currentTime"] == 1_000_000
        assert result["voter"] == to_checksum_address(ACCOUNT)

    @pytest.mark.asyncio
    async def test_dashboard_uses_config_defaults(self):
        config = GovLensConfig()
        config.contracts.governor = GOVERNOR
        config.contracts.token = TOKEN
        config.contracts.lens = LENS
        response = await call(self.make_server(make_service_context(config=config)), "gov_getVoteDashboard", {})
        assert response["result"]["proposals"] == []

    @pytest.mark.asyncio
    async def test_dashboard_missing_address(self):
        response = await call(self.make_server(make_service_context()), "gov_getVoteDashboard", {"voter": ACCOUNT})
        assert response["error"]["code"] == RPCErrorCode.INVALID_PARAMS

    @pytest.mark.asyncio
    async def test_get_account(self):
        reader = FakeReader(lambda c: {"balance": 10 ** 18, "votes": 0, "delegate": "0x" + "00" * 20})
        response = await call(self.make_server(make_service_context(reader)), "gov_getAccount", {
            "account": ACCOUNT, "token": TOKEN, "lens": LENS,
        })
        assert response["result"] == {
            "address": to_checksum_address(ACCOUNT),
            "balance": "1",
            "votes": "0",
            "delegate": None,
        }

    @pytest.mark.asyncio
    async def test_get_account_without_lens(self):
        response = await call(self.make_server(make_service_context()), "gov_getAccount", [ACCOUNT])
        assert response["error"]["code"] == RPCErrorCode.INVALID_PARAMS
        assert "lens" in response["error"]["message"]

    @pytest.mark.asyncio
    async def test_queued_transactions_empty(self):
        response = await call(self.make_server(make_service_context()), "gov_getQueuedTransactions", [TIMELOCK, 0])
        assert response["result"] == []

    @pytest.mark.asyncio
    async def test_encode_parameters(self):
        response = await call(self.make_server(make_service_context()), "gov_encodeParameters", [
            ["address", "uint256"], [TOKEN, "7"],
        ])
        assert decode_hex(response["result"]) == encode(["address", "uint256"], [TOKEN, 7])

    @pytest.mark.asyncio
    async def test_get_params(self):
        response = await call(self.make_server(make_service_context()), "gov_getParams")
        result = response["result"]
        assert result["network"] == "mainnet"
        assert result["governance"]["quorumVotes"] == str(400_000 * 10 ** 18)
        assert result["contracts"]["variant"] == "bravo"


# ══════════════════════════════════════════════════════════════════════
#  HTTP SERVICE
# ══════════════════════════════════════════════════════════════════════

def node_answer(method, params):
    """Ethereum node with its head at 0x1f4 and no governor logs."""
    return {"eth_blockNumber": "0x1f4", "eth_getLogs": []}[method]


def make_app(answer=node_answer):
    config = GovLensConfig()
    config.network.rpc_url = NODE_URL
    provider = FakeNodeProvider(answer)
    return create_app(config, provider=provider), provider


class TestHttpService:

    def test_health(self):
        app, _ = make_app()
        with TestClient(app) as client:
            body = client.get("/health").json()
        assert body["ok"] is True
        assert body["network"] == "mainnet"
        assert "gov_getVoteDashboard" in body["methods"]

    def test_dashboard_over_http(self):
        request = {
            "jsonrpc": "2.0",
            "method": "gov_getVoteDashboard",
            "params": {
                "governorAddress": GOVERNOR,
                "governanceTokenAddress": TOKEN,
                "compoundLens": LENS,
                "isBravo": False,
            },
            "id": 7,
        }
        app, node = make_app()
        with TestClient(app) as client:
            response = client.post("/rpc", json=request)
        assert response.status_code == 200
        body = response.json()
        assert body["id"] == 7
        assert body["result"]["currentBlock"] == 500
        assert body["result"]["proposals"] == []
        assert "eth_getLogs" in [method for method, _ in node.requests]

    def test_notification_returns_204(self):
        app, _ = make_app()
        with TestClient(app) as client:
            response = client.post("/rpc", json={"jsonrpc": "2.0", "method": "gov_getParams"})
        assert response.status_code == 204

    def test_shutdown_disconnects_node(self):
        app, node = make_app()
        with TestClient(app):
            assert not node.disconnected
        assert node.disconnected

    def test_upstream_failure_is_rpc_error(self):
        def unavailable(method, params):
            raise NodeError("service unavailable")

        app, _ = make_app(unavailable)
        request = {
            "jsonrpc": "2.0",
            "method": "gov_getVoteDashboard",
            "params": {"governorAddress": GOVERNOR, "governanceTokenAddress": TOKEN, "lensAddress": LENS},
            "id": 1,
        }
        with TestClient(app) as client:
            body = client.post("/rpc", json=request).json()
        assert body["error"]["code"] == RPCErrorCode.RESOURCE_UNAVAILABLE

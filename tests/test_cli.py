"""
Command Line Interface Test Suite

Coverage:
  - encode command
  - Option validation that fails before any network access
  - dashboard, account and queued commands against an in-process node
"""

import json
import os
import sys
import time

import pytest
from click.testing import CliRunner
from eth_abi import encode
from eth_utils import decode_hex, encode_hex, to_checksum_address

# ── Path setup ────────────────────────────────────────────────────────
ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

import govlens.cli.dashboard as cli_module
from govlens.chain.abi import PROPOSAL_CREATED, QUEUE_TRANSACTION
from govlens.cli.dashboard import cli
from govlens.context import build_context

from fake_node import FakeNodeProvider, NodeError, abi_result, block_header, call_selector, rpc_log, selector


# ══════════════════════════════════════════════════════════════════════
#  HELPERS
# ══════════════════════════════════════════════════════════════════════

E18 = 10 ** 18
GOVERNOR = "0x" + "c0" * 20
LENS = "0x" + "1e" * 20
TOKEN = "0x" + "70" * 20
TIMELOCK = "0x" + "71" * 20
VOTER = "0x" + "5a" * 20
PROPOSER = "0x" + "ab" * 20
TARGET = "0x" + "cd" * 20

HEAD = 500

CONFIG_TOML = f"""
[network]
rpc_url = "http://node.test:8545"

[oracle]
source = "rpc"

[contracts]
governor = "{GOVERNOR}"
lens = "{LENS}"
token = "{TOKEN}"
timelock = "{TIMELOCK}"
initial_block = 50
"""

BRAVO_PROPOSAL = (
    "(uint256,address,uint256,address[],uint256[],string[],bytes[],"
    "uint256,uint256,uint256,uint256,uint256,bool,bool)[]"
)


def proposal_created_log():
    data = encode(
        list(PROPOSAL_CREATED.data_types),
        [1, PROPOSER, [TARGET], [0], ["_setReserveFactor(uint256)"], [encode(["uint256"], [5])],
         110, 120, "# Raise reserves\nDetails"],
    )
    return rpc_log(GOVERNOR, [PROPOSAL_CREATED.topic], encode_hex(data), block=100)


def queue_transaction_log(tx_hash, eta):
    data = encode(list(QUEUE_TRANSACTION.data_types), [0, "_setReserveFactor(uint256)", encode(["uint256"], [5]), eta])
    target_topic = "0x" + "00" * 12 + TARGET[2:]
    return rpc_log(TIMELOCK, [QUEUE_TRANSACTION.topic, tx_hash, target_topic], encode_hex(data), block=300)


class GovernanceNode:
    """Answers the reads of every CLI command."""

    def __init__(self, logs=()):
        self.logs = list(logs)
        self.error = None

    def __call__(self, method, params):
        if self.error:
            raise NodeError(self.error)
        if method == "eth_blockNumber":
            return hex(HEAD)
        if method == "eth_getLogs":
            return self.logs
        if method == "eth_getBlockByNumber":
            block = int(params[0], 16)
            return block_header(block, 1_000_000 + block * 12)
        if method == "eth_call":
            return self.answer_call(call_selector(params))
        raise NodeError(f"unsupported method {method}")

    def answer_call(self, called):
        if called == selector("getGovBravoProposals(address,uint256[])"):
            row = (1, PROPOSER, 0, [TARGET], [0], ["_setReserveFactor(uint256)"], [encode(["uint256"], [5])],
                   110, 120, 500 * E18, 100 * E18, 0, False, False)
            return abi_result([BRAVO_PROPOSAL], [[row]])
        if called == selector("getCompBalanceMetadata(address,address)"):
            return abi_result(["(uint256,uint256,address)"], [(2 * E18, E18, VOTER)])
        if called == selector("queuedTransactions(bytes32)"):
            return abi_result(["bool"], [True])
        raise NodeError("execution reverted")


@pytest.fixture
def runner(tmp_path, monkeypatch):
    monkeypatch.setenv("GOVLENS_CONFIG_PATH", str(tmp_path / "missing.toml"))
    for key in ("GOVLENS_RPC_URL", "GOVLENS_TIMELOCK", "GOVLENS_TOKEN", "GOVLENS_LENS",
                "GOVLENS_GOVERNOR", "GOVLENS_TIMESTAMP_SOURCE"):
        monkeypatch.delenv(key, raising=False)
    return CliRunner()


@pytest.fixture
def node_runner(runner, tmp_path, monkeypatch):
    """Runner with a config file and every command wired to a ``GovernanceNode``."""
    config_path = tmp_path / "config.toml"
    config_path.write_text(CONFIG_TOML)
    monkeypatch.setenv("GOVLENS_CONFIG_PATH", str(config_path))

    node = GovernanceNode()
    providers = []

    def wire(config, client):
        providers.append(FakeNodeProvider(node))
        return build_context(config, client, provider=providers[-1])

    monkeypatch.setattr(cli_module, "build_context", wire)
    runner.node = node
    runner.providers = providers
    return runner


# ══════════════════════════════════════════════════════════════════════
#  OFFLINE COMMANDS
# ══════════════════════════════════════════════════════════════════════

class TestEncodeCommand:

    def test_encode(self, runner):
        result = runner.invoke(cli, ["encode", "address,uint256", TOKEN, "1000"])
        assert result.exit_code == 0, result.output
        assert decode_hex(result.stdout.strip()) == encode(["address", "uint256"], [TOKEN, 1000])

    def test_encode_wrong_arity(self, runner):
        result = runner.invoke(cli, ["encode", "uint256,uint256", "1"])
        assert result.exit_code != 0
        assert "Cannot encode" in result.output


class TestValidation:

    def test_invalid_rpc_url(self, runner):
        result = runner.invoke(cli, ["--rpc-url", "ftp://node", "encode", "uint256", "1"])
        assert result.exit_code != 0
        assert "rpc_url" in result.output

    def test_queued_requires_timelock(self, runner):
        result = runner.invoke(cli, ["queued"])
        assert result.exit_code != 0
        assert "Timelock address is required" in result.output

    def test_account_requires_contracts(self, runner):
        result = runner.invoke(cli, ["account", VOTER])
        assert result.exit_code != 0
        assert "Token and lens addresses are required" in result.output

    def test_version(self, runner):
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "govlens" in result.output


# ══════════════════════════════════════════════════════════════════════
#  NODE-BACKED COMMANDS
# ══════════════════════════════════════════════════════════════════════

class TestDashboardCommand:

    def test_lists_proposals(self, node_runner):
        node_runner.node.logs = [proposal_created_log()]

        result = node_runner.invoke(cli, ["dashboard"])

        assert result.exit_code == 0, result.output
        body = json.loads(result.stdout)
        assert body["currentBlock"] == HEAD
        (proposal,) = body["proposals"]
        assert proposal["id"] == 1
        assert proposal["title"] == "Raise reserves"
        assert proposal["for_votes"] == str(500 * E18)
        assert proposal["states"]
        assert node_runner.providers[0].disconnected

    def test_pinned_block_skips_head_query(self, node_runner):
        result = node_runner.invoke(cli, ["dashboard", "--block", "400"])

        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout)["currentBlock"] == 400
        methods = [method for method, _ in node_runner.providers[0].requests]
        assert "eth_blockNumber" not in methods

    def test_node_failure_is_reported(self, node_runner):
        node_runner.node.error = "service unavailable"

        result = node_runner.invoke(cli, ["dashboard"])

        assert result.exit_code != 0
        assert "UpstreamError" in result.output
        assert node_runner.providers[0].disconnected


class TestAccountCommand:

    def test_account_metadata(self, node_runner):
        result = node_runner.invoke(cli, ["account", VOTER])

        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout) == {
            "address": to_checksum_address(VOTER),
            "balance": "2",
            "votes": "1",
            "delegate": to_checksum_address(VOTER),
        }
        (method, params), = node_runner.providers[0].requests
        assert method == "eth_call"
        assert params[0]["to"] == to_checksum_address(LENS)


class TestQueuedCommand:

    def test_lists_executable_transactions(self, node_runner):
        tx_hash = "0x" + "01" * 32
        eta = int(time.time()) + 3600
        node_runner.node.logs = [queue_transaction_log(tx_hash, eta)]

        result = node_runner.invoke(cli, ["queued", "--from-block", "10"])

        assert result.exit_code == 0, result.output
        (queued,) = json.loads(result.stdout)
        assert queued["txHash"] == tx_hash
        assert queued["eta"] == eta
        assert queued["target"] == to_checksum_address(TARGET)
        assert queued["transactionData"]["functionCall"] == "_setReserveFactor(5)"
        log_filter = node_runner.providers[0].requests[0][1][0]
        assert log_filter["address"] == to_checksum_address(TIMELOCK)
        assert log_filter["fromBlock"] == hex(10)

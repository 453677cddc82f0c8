"""
Configuration Loader Test Suite

Coverage:
  - Defaults and TOML parsing
  - Environment variable overrides
  - Validation errors
  - Service wiring from a configuration
"""

import os
import sys

import httpx
import pytest

# ── Path setup ────────────────────────────────────────────────────────
ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from govlens.chain.timestamps import HttpTimestampOracle, RpcTimestampOracle
from govlens.config.loader import GovLensConfig, load_config
from govlens.constants import DEFAULT_QUORUM_VOTES
from govlens.context import build_context
from govlens.exceptions import ConfigurationError

ENV_KEYS = (
    "GOVLENS_NETWORK", "GOVLENS_RPC_URL", "GOVLENS_RPC_TIMEOUT", "GOVLENS_TIMESTAMP_SOURCE",
    "GOVLENS_TIMESTAMP_URL", "GOVLENS_TIMESTAMP_CACHE", "GOVLENS_QUORUM_VOTES", "GOVLENS_GOVERNOR",
    "GOVLENS_GOVERNOR_VARIANT", "GOVLENS_LENS", "GOVLENS_TOKEN", "GOVLENS_TIMELOCK",
    "GOVLENS_INITIAL_BLOCK", "GOVLENS_SERVICE_HOST", "GOVLENS_SERVICE_PORT", "GOVLENS_CONFIG_PATH",
)

GOVERNOR = "0x" + "c0" * 20

SAMPLE_TOML = f"""
[network]
name = "goerli"
rpc_url = "https://node.example"
timeout = 5

[oracle]
source = "rpc"
cache_enabled = true

[governance]
quorum_votes = "1000"
seconds_per_block = 12

[contracts]
governor = "{GOVERNOR}"
variant = "alpha"
initial_block = 42

[service]
port = 9000
"""


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


def write_config(tmp_path, text=SAMPLE_TOML):
    path = tmp_path / "config.toml"
    path.write_text(text)
    return str(path)


# ══════════════════════════════════════════════════════════════════════
#  LOADING
# ══════════════════════════════════════════════════════════════════════

class TestLoading:

    def test_defaults(self):
        cfg = GovLensConfig()
        assert cfg.network.name == "mainnet"
        assert cfg.oracle.source == "http"
        assert cfg.oracle.cache_enabled is False
        assert cfg.governance.quorum_votes == DEFAULT_QUORUM_VOTES
        assert cfg.contracts.variant == "bravo"
        assert cfg.validate()

    def test_from_file(self, tmp_path):
        cfg = GovLensConfig.from_file(write_config(tmp_path))
        assert cfg.network.name == "goerli"
        assert cfg.network.timeout == 5.0
        assert cfg.oracle.source == "rpc"
        assert cfg.oracle.cache_enabled is True
        assert cfg.governance.quorum_votes == 1000
        assert cfg.governance.to_params().seconds_per_block == 12.0
        assert cfg.contracts.governor == GOVERNOR
        assert cfg.contracts.initial_block == 42
        assert cfg.service.port == 9000
        assert cfg.validate()

    def test_missing_file_uses_defaults(self, tmp_path):
        cfg = GovLensConfig.from_file(str(tmp_path / "absent.toml"))
        assert cfg.network.name == "mainnet"

    def test_invalid_toml(self, tmp_path):
        with pytest.raises(ConfigurationError):
            GovLensConfig.from_file(write_config(tmp_path, "[network\nname="))

    def test_invalid_value_type(self, tmp_path):
        with pytest.raises(ConfigurationError):
            GovLensConfig.from_file(write_config(tmp_path, '[governance]\nquorum_votes = "lots"\n'))

    def test_load_config_uses_env_path(self, tmp_path, monkeypatch):
        monkeypatch.setenv("GOVLENS_CONFIG_PATH", write_config(tmp_path))
        assert load_config().network.name == "goerli"

    def test_to_dict(self, tmp_path):
        data = GovLensConfig.from_file(write_config(tmp_path)).to_dict()
        assert data["governance"]["quorumVotes"] == "1000"
        assert data["contracts"]["variant"] == "alpha"
        assert set(data) == {"network", "oracle", "governance", "contracts", "service"}


# ══════════════════════════════════════════════════════════════════════
#  ENVIRONMENT OVERRIDES
# ══════════════════════════════════════════════════════════════════════

class TestEnvOverrides:

    def test_overrides_file_values(self, tmp_path, monkeypatch):
        monkeypatch.setenv("GOVLENS_NETWORK", "sepolia")
        monkeypatch.setenv("GOVLENS_RPC_URL", "http://other:8545")
        monkeypatch.setenv("GOVLENS_TIMESTAMP_CACHE", "false")
        monkeypatch.setenv("GOVLENS_QUORUM_VOTES", "0x10")
        monkeypatch.setenv("GOVLENS_GOVERNOR_VARIANT", "bravo")
        monkeypatch.setenv("GOVLENS_INITIAL_BLOCK", "7")
        monkeypatch.setenv("GOVLENS_SERVICE_PORT", "8000")

        cfg = GovLensConfig.from_file(write_config(tmp_path))

        assert cfg.network.name == "sepolia"
        assert cfg.network.rpc_url == "http://other:8545"
        assert cfg.oracle.cache_enabled is False
        assert cfg.governance.quorum_votes == 16
        assert cfg.contracts.variant == "bravo"
        assert cfg.contracts.initial_block == 7
        assert cfg.service.port == 8000

    def test_bad_override(self, monkeypatch):
        monkeypatch.setenv("GOVLENS_SERVICE_PORT", "http")
        with pytest.raises(ConfigurationError):
            GovLensConfig().apply_env()


# ══════════════════════════════════════════════════════════════════════
#  VALIDATION
# ══════════════════════════════════════════════════════════════════════

class TestValidation:

    @pytest.mark.parametrize("mutate", [
        lambda c: setattr(c.network, "rpc_url", "ws://node"),
        lambda c: setattr(c.network, "timeout", 0),
        lambda c: setattr(c.oracle, "source", "ftp"),
        lambda c: setattr(c.oracle, "timestamp_url", ""),
        lambda c: setattr(c.service, "port", 70000),
        lambda c: setattr(c.governance, "seconds_per_block", 0),
        lambda c: setattr(c.contracts, "variant", "gamma"),
        lambda c: setattr(c.contracts, "lens", "0x1234"),
        lambda c: setattr(c.contracts, "initial_block", -1),
    ])
    def test_invalid(self, mutate):
        cfg = GovLensConfig()
        mutate(cfg)
        with pytest.raises(ConfigurationError):
            cfg.validate()

    def test_rpc_source_needs_no_timestamp_url(self):
        cfg = GovLensConfig()
        cfg.oracle.source = "rpc"
        cfg.oracle.timestamp_url = ""
        assert cfg.validate()


# ══════════════════════════════════════════════════════════════════════
#  WIRING
# ══════════════════════════════════════════════════════════════════════

class TestBuildContext:

    @pytest.mark.asyncio
    async def test_http_oracle_without_cache(self):
        async with httpx.AsyncClient() as client:
            context = build_context(GovLensConfig(), client)
        assert isinstance(context.governance.oracle, HttpTimestampOracle)
        assert context.governance.timestamp_cache is None
        assert context.governance.logs is context.rpc
        assert context.network == "mainnet"

    @pytest.mark.asyncio
    async def test_rpc_oracle_with_cache(self, tmp_path):
        cfg = GovLensConfig.from_file(write_config(tmp_path))
        async with httpx.AsyncClient() as client:
            context = build_context(cfg, client)
        assert isinstance(context.governance.oracle, RpcTimestampOracle)
        assert context.governance.timestamp_cache is not None
        assert context.governance.params.quorum_votes == 1000

    @pytest.mark.asyncio
    async def test_query_defaults(self, tmp_path):
        cfg = GovLensConfig.from_file(write_config(tmp_path))
        async with httpx.AsyncClient() as client:
            defaults = build_context(cfg, client).query_defaults()
        assert defaults["governor_address"] == GOVERNOR
        assert defaults["governor_variant"] == "alpha"
        assert defaults["initial_block_number"] == 42
        assert "lens_address" not in defaults

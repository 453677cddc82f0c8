"""
Service wiring.

Builds the collaborators for one running service (or CLI invocation) from a
``GovLensConfig``, a caller-owned ``httpx.AsyncClient`` for the timestamp
service and a web3 provider for the node.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx
from web3 import AsyncWeb3
from web3.providers import AsyncBaseProvider

from .chain.client import JsonRpcClient
from .chain.timestamps import HttpTimestampOracle, RpcTimestampOracle
from .config.loader import GovLensConfig
from .governance.dashboard import DashboardService, GovernanceContext
from .governance.timestamps import TimestampCache
from .logger import get_logger

logger = get_logger(__name__)


@dataclass
class ServiceContext:
    """Everything an RPC module or CLI command needs."""
    config: GovLensConfig
    rpc: JsonRpcClient
    governance: GovernanceContext
    dashboards: DashboardService

    @property
    def network(self) -> str:
        return self.config.network.name

    def query_defaults(self) -> Dict[str, Any]:
        """Dashboard query fields taken from ``[contracts]`` and ``[network]``."""
        contracts = self.config.contracts
        defaults: Dict[str, Any] = {
            "governor_variant": contracts.variant,
            "network": self.config.network.name,
            "decimals": contracts.decimals,
            "initial_block_number": contracts.initial_block,
        }
        for key, value in (
            ("governor_address", contracts.governor),
            ("governance_token_address", contracts.token),
            ("lens_address", contracts.lens),
        ):
            if value:
                defaults[key] = value
        return defaults


def build_context(
    config: GovLensConfig,
    client: httpx.AsyncClient,
    cache: Optional[TimestampCache] = None,
    provider: Optional[AsyncBaseProvider] = None,
) -> ServiceContext:
    """
    Wire the JSON-RPC client, timestamp oracle and dashboard service.

    A ``TimestampCache`` is created when ``[oracle] cache_enabled`` is set
    and none is passed in. Without ``provider`` the node is reached through
    ``AsyncHTTPProvider`` at ``[network] rpc_url``.
    """
    if provider is None:
        rpc = JsonRpcClient.from_url(config.network.rpc_url, config.network.timeout)
    else:
        rpc = JsonRpcClient(AsyncWeb3(provider, middleware=[]), config.network.rpc_url)

    if config.oracle.source == "rpc":
        oracle = RpcTimestampOracle(rpc)
    else:
        oracle = HttpTimestampOracle(config.oracle.timestamp_url, client)

    if cache is None and config.oracle.cache_enabled:
        cache = TimestampCache()

    governance = GovernanceContext(
        logs=rpc,
        reader=rpc,
        oracle=oracle,
        params=config.governance.to_params(),
        timestamp_cache=cache,
        chain_head=rpc.block_number,
    )
    logger.info(
        f"govlens wired for {config.network.name} "
        f"(rpc={config.network.rpc_url}, timestamps={config.oracle.source}, "
        f"cache={'on' if cache is not None else 'off'})"
    )
    return ServiceContext(
        config=config,
        rpc=rpc,
        governance=governance,
        dashboards=DashboardService(governance),
    )

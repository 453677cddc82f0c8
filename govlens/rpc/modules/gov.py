"""
govlens gov_* RPC Methods

Governance dashboard, account and timelock queries.
"""

from typing import Any, Dict, List, Optional

from ...crypto.contract import encode_parameters, normalize_address
from ...governance.dashboard import DashboardQuery
from ...governance.timelock import fetch_queued_transactions
from ...governance.voting import fetch_account_metadata
from ..server import RPCError, RPCErrorCode, RPCModule, rpc_method


class GovModule(RPCModule):
    """
    Governance RPC methods (gov_* namespace).

    ``context`` is a ``govlens.context.ServiceContext``. Contract addresses
    missing from a request fall back to the ``[contracts]`` configuration.
    """

    namespace = "gov"

    def _require(self, value: Optional[str], name: str) -> str:
        if not value:
            raise RPCError(RPCErrorCode.INVALID_PARAMS, f"Missing {name} (not in request or [contracts] config)")
        return normalize_address(value)

    @rpc_method
    async def getVoteDashboard(self, **params: Any) -> Optional[Dict[str, Any]]:
        """
        Proposal list with lifecycle states and the voter's receipts.

        Params (camelCase or snake_case):
            governorAddress, isBravo | governorVariant, governanceTokenAddress,
            compoundLens | lensAddress, decimals, initialBlockNumber,
            currentBlockNumber, voter, network

        Returns:
            Dashboard payload, or ``null`` when a newer request for the same
            governor and voter superseded this one
        """
        merged = self.context.query_defaults()
        merged.update(DashboardQuery.canonical_params(params))
        query = DashboardQuery.from_dict(merged)
        dashboard = await self.context.dashboards.query(query)
        return None if dashboard is None else dashboard.to_dict()

    @rpc_method
    async def getAccount(
        self,
        account: str,
        token: Optional[str] = None,
        lens: Optional[str] = None,
        decimals: Optional[int] = None,
        blockNumber: Optional[int] = None,
    ) -> Dict[str, Any]:
        """Governance token balance, current votes and delegate of ``account``."""
        contracts = self.context.config.contracts
        metadata = await fetch_account_metadata(
            self.context.governance.reader,
            self._require(lens or contracts.lens, "lens"),
            self._require(token or contracts.token, "token"),
            account,
            contracts.decimals if decimals is None else int(decimals),
            blockNumber,
        )
        return metadata.to_dict()

    @rpc_method
    async def getQueuedTransactions(
        self,
        timelock: Optional[str] = None,
        initialBlockNumber: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """Transactions queued on the timelock that can still be executed."""
        gov = self.context.governance
        contracts = self.context.config.contracts
        queued = await fetch_queued_transactions(
            gov.logs,
            gov.reader,
            self._require(timelock or contracts.timelock, "timelock"),
            contracts.initial_block if initialBlockNumber is None else int(initialBlockNumber),
            gov.now(),
            gov.params.grace_period,
        )
        return [tx.to_dict() for tx in queued]

    @rpc_method
    async def encodeParameters(self, argTypes: List[str], args: List[Any]) -> str:
        """ABI-encode ``args`` as ``argTypes``; returns 0x hex."""
        return encode_parameters(argTypes, args)

    @rpc_method
    async def getParams(self) -> Dict[str, Any]:
        """Governance parameters and configured contracts."""
        config = self.context.config.to_dict()
        return {
            "network": self.context.network,
            "governance": self.context.governance.params.to_dict(),
            "contracts": config["contracts"],
        }

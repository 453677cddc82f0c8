"""
External Collaborator Interfaces

The governance engine never talks to a node or an HTTP service directly; it
consumes these narrow interfaces. ``govlens.chain.client`` and
``govlens.chain.timestamps`` provide the production implementations, tests
substitute fakes.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Protocol, Sequence, Tuple, runtime_checkable

from eth_utils import encode_hex


# ══════════════════════════════════════════════════════════════════════
#  DATA CARRIERS
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class LogEntry:
    """A raw event log as returned by ``eth_getLogs``."""
    topics: Tuple[str, ...]
    data: str
    block_number: int
    transaction_hash: str
    log_index: int = 0
    address: Optional[str] = None

    @property
    def topic0(self) -> Optional[str]:
        return self.topics[0].lower() if self.topics else None

    @classmethod
    def from_rpc(cls, raw: Dict[str, Any]) -> "LogEntry":
        """Build from a log object, raw JSON-RPC (hex strings) or web3-formatted (bytes, ints)."""
        return cls(
            topics=tuple(_hex(topic) for topic in raw["topics"]),
            data=_hex(raw.get("data") or "0x"),
            block_number=_quantity(raw["blockNumber"]),
            transaction_hash=_hex(raw["transactionHash"]),
            log_index=_quantity(raw.get("logIndex") or 0),
            address=raw.get("address"),
        )


def _hex(value: Any) -> str:
    if isinstance(value, str):
        return value
    return encode_hex(bytes(value))


def _quantity(value: Any) -> int:
    # Nodes return hex quantities; web3 already decodes them
    if isinstance(value, int):
        return value
    return int(value, 16) if str(value).startswith("0x") else int(value)


@dataclass(frozen=True)
class ContractCall:
    """One constant read: ``contract`` names the ABI, ``address`` the deployment."""
    contract: str
    address: str
    method: str
    args: Tuple[Any, ...] = ()


@dataclass(frozen=True)
class TransactionRequest:
    """
    A contract call to be signed and broadcast by the transaction collaborator.

    Attributes:
        sender:        Account that signs the transaction
        to:            Contract address
        data:          ABI-encoded call data (0x hex)
        function:      Human-readable method name
        display_args:  Arguments shown to the user when confirming
        value:         Wei attached to the call
    """
    sender: str
    to: str
    data: str
    function: str
    display_args: Tuple[Any, ...] = ()
    value: int = 0
    metadata: Dict[str, Any] = field(default_factory=dict, compare=False)


# ══════════════════════════════════════════════════════════════════════
#  CONSUMED INTERFACES
# ══════════════════════════════════════════════════════════════════════

@runtime_checkable
class LogSource(Protocol):
    """Event log query."""

    async def fetch_logs(
        self,
        address: str,
        topics: Sequence[str],
        from_block: int,
        to_block: Optional[int] = None,
    ) -> List[LogEntry]:
        """Logs from ``address`` whose topic0 is any of ``topics``, in chain order."""
        ...


@runtime_checkable
class ChainReader(Protocol):
    """Batched constant contract reads."""

    async def batch_call(
        self,
        calls: Sequence[ContractCall],
        block_number: Optional[int] = None,
    ) -> List[Any]:
        """Results in the same order as ``calls``."""
        ...


@runtime_checkable
class TimestampOracle(Protocol):
    """Block number to Unix timestamp lookup."""

    async def resolve_timestamps(self, block_numbers: Iterable[int], network: str) -> Dict[int, int]:
        """Empty input must return ``{}`` without a request."""
        ...


@runtime_checkable
class TransactionSender(Protocol):
    """Signing and broadcast collaborator."""

    async def send_transaction(self, request: TransactionRequest) -> str:
        """Return the transaction hash, raise on rejection."""
        ...

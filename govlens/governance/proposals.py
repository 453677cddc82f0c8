"""
Governance Proposal Data Model

Defines the request-scoped records the dashboard engine works with:

  - ProposalSnapshot   current on-chain data from the batched lens read
  - ProposalMetadata   per-proposal accumulator filled from event logs
  - ProposalState      the lifecycle labels, in evaluation order
  - ProposalLabel      one currently-true label with its time window
  - GovernanceParams   per-deployment thresholds and timelock constants
"""

from dataclasses import asdict, dataclass, field, fields
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from eth_utils import encode_hex, to_checksum_address

from ..chain.abi import GovernorVariant
from ..constants import (
    DEFAULT_QUORUM_VOTES,
    DEFAULT_SECONDS_PER_BLOCK,
    TIMELOCK_DELAY_SECONDS,
    TIMELOCK_GRACE_PERIOD_SECONDS,
)
from ..exceptions import MalformedResponseError
from ..numeric import parse_wei


# ══════════════════════════════════════════════════════════════════════
#  PARAMETERS
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class GovernanceParams:
    """
    Deployment constants used by state derivation.

    Fields:
        quorum_votes:      Minimum forVotes mantissa for success
        seconds_per_block: Block time estimate for extrapolating unknown timestamps
        timelock_delay:    Seconds between queueing and eta
        grace_period:      Seconds after eta before a queued proposal expires
    """
    quorum_votes: int = DEFAULT_QUORUM_VOTES
    seconds_per_block: float = DEFAULT_SECONDS_PER_BLOCK
    timelock_delay: int = TIMELOCK_DELAY_SECONDS
    grace_period: int = TIMELOCK_GRACE_PERIOD_SECONDS

    def __post_init__(self):
        if self.quorum_votes < 0:
            raise ValueError("quorum_votes must be >= 0")
        if self.seconds_per_block <= 0:
            raise ValueError("seconds_per_block must be > 0")
        if self.timelock_delay < 0 or self.grace_period < 0:
            raise ValueError("timelock_delay and grace_period must be >= 0")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "quorumVotes": str(self.quorum_votes),
            "secondsPerBlock": self.seconds_per_block,
            "timelockDelay": self.timelock_delay,
            "gracePeriod": self.grace_period,
        }


# ══════════════════════════════════════════════════════════════════════
#  SNAPSHOT
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ProposalSnapshot:
    """
    A proposal as reported by the lens contract at read time.

    ``abstain_votes`` is always 0 for the legacy governor.
    """
    id: int
    proposer: str
    eta: int
    targets: Tuple[str, ...]
    values: Tuple[int, ...]
    signatures: Tuple[str, ...]
    calldatas: Tuple[bytes, ...]
    start_block: int
    end_block: int
    for_votes: int
    against_votes: int
    abstain_votes: int
    canceled: bool
    executed: bool

    @classmethod
    def from_lens(cls, row: Dict[str, Any], variant: GovernorVariant) -> "ProposalSnapshot":
        """
        Build from a decoded ``getGovProposals`` / ``getGovBravoProposals`` row.

        Raises:
            MalformedResponseError: A field is missing or has the wrong type.
        """
        try:
            targets = tuple(to_checksum_address(t) for t in row["targets"])
            signatures = tuple(row["signatures"])
            calldatas = tuple(bytes(c) for c in row["calldatas"])
            if not (len(targets) == len(signatures) == len(calldatas)):
                raise ValueError("targets/signatures/calldatas differ in length")
            return cls(
                id=parse_wei(row["proposalId"]),
                proposer=to_checksum_address(row["proposer"]),
                eta=parse_wei(row["eta"]),
                targets=targets,
                values=tuple(parse_wei(v) for v in row.get("values", ())),
                signatures=signatures,
                calldatas=calldatas,
                start_block=parse_wei(row["startBlock"]),
                end_block=parse_wei(row["endBlock"]),
                for_votes=parse_wei(row["forVotes"]),
                against_votes=parse_wei(row["againstVotes"]),
                abstain_votes=parse_wei(row["abstainVotes"]) if variant.has_abstain else 0,
                canceled=_strict_bool(row["canceled"]),
                executed=_strict_bool(row["executed"]),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise MalformedResponseError(f"Malformed proposal snapshot {row!r}: {exc}") from exc

    def actions(self, values: Optional[Tuple[int, ...]] = None) -> list:
        """Decoded (target, signature, calldata) triples with their ETH value."""
        values = values if values is not None else self.values
        actions = []
        for i, target in enumerate(self.targets):
            value = values[i] if i < len(values) else 0
            actions.append({
                "title": f"{target}.{self.signatures[i]}",
                "value": str(value),
                "target": target,
                "signature": self.signatures[i],
                "data": encode_hex(self.calldatas[i]),
            })
        return actions


def _strict_bool(value: Any) -> bool:
    if not isinstance(value, bool):
        raise TypeError(f"expected bool, got {value!r}")
    return value


# ══════════════════════════════════════════════════════════════════════
#  METADATA
# ══════════════════════════════════════════════════════════════════════

@dataclass
class ProposalMetadata:
    """
    Event-derived facts about one proposal.

    Each field stays ``None`` until the event that carries it is seen, so
    "not observed" is never confused with a zero block or empty hash.

    Fields:
        title, description, create_block, create_trx_hash, values   ProposalCreated
        canceled_block, canceled_trx_hash                           ProposalCanceled
        executed_block, executed_trx_hash                           ProposalExecuted
    """
    proposal_id: int
    title: Optional[str] = None
    description: Optional[str] = None
    create_block: Optional[int] = None
    create_trx_hash: Optional[str] = None
    values: Optional[Tuple[int, ...]] = None
    canceled_block: Optional[int] = None
    canceled_trx_hash: Optional[str] = None
    executed_block: Optional[int] = None
    executed_trx_hash: Optional[str] = None

    def merge(self, **updates: Any) -> None:
        """Fold one event's fields into the record, leaving the others untouched."""
        known = {f.name for f in fields(self)}
        for key, value in updates.items():
            if key not in known or key == "proposal_id":
                raise AttributeError(f"ProposalMetadata has no event field {key!r}")
            setattr(self, key, value)

    @property
    def block_numbers(self) -> Tuple[int, ...]:
        """Blocks whose timestamps this record references."""
        blocks = (self.create_block, self.canceled_block, self.executed_block)
        return tuple(b for b in blocks if b is not None)

    def to_dict(self) -> Dict[str, Any]:
        data = {k: v for k, v in asdict(self).items() if v is not None}
        if "values" in data:
            data["values"] = [str(v) for v in data["values"]]
        return data


# ══════════════════════════════════════════════════════════════════════
#  LABELS
# ══════════════════════════════════════════════════════════════════════

class ProposalState(str, Enum):
    """Lifecycle labels. Definition order is evaluation order."""
    PENDING = "pending"
    ACTIVE = "active"
    DEFEATED = "defeated"
    SUCCEEDED = "succeeded"
    QUEUED = "queued"
    CANCELED = "canceled"
    EXECUTED = "executed"
    EXPIRED = "expired"


@dataclass(frozen=True)
class ProposalLabel:
    """A currently-true lifecycle label."""
    state: ProposalState
    start_time: int
    end_time: Optional[int] = None
    trx_hash: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "trx_hash": self.trx_hash,
        }


@dataclass
class LabeledProposal:
    """Snapshot, metadata and derived labels for one proposal."""
    snapshot: ProposalSnapshot
    metadata: ProposalMetadata
    labels: Tuple[ProposalLabel, ...] = field(default_factory=tuple)

    @property
    def id(self) -> int:
        return self.snapshot.id

    @property
    def states(self) -> Tuple[ProposalState, ...]:
        return tuple(label.state for label in self.labels)

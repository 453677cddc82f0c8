"""
Proposal Vote Dashboard

Assembles the governance dashboard for one governor and, optionally, one
voter:

  1. fetch governor lifecycle logs and reconcile them per proposal
  2. batch-read the current proposal snapshots from the lens
  3. resolve every referenced block timestamp in one oracle call
  4. derive the lifecycle labels of each proposal
  5. read the voter's receipts and prior votes concurrently

Any collaborator failure aborts the whole build. ``DashboardService`` adds
stale-result suppression on top: when a newer query for the same
(governor, voter) starts before an older one finishes, the older result is
dropped.
"""

import asyncio
import itertools
import time
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Awaitable, Callable, Dict, Hashable, List, Mapping, Optional, Tuple

from ..chain.abi import GovernorVariant
from ..chain.interfaces import ChainReader, ContractCall, LogSource, TimestampOracle, TransactionSender
from ..constants import DEFAULT_TOKEN_DECIMALS, UNTITLED_PROPOSAL
from ..crypto.contract import normalize_address
from ..exceptions import ConfigurationError, MalformedResponseError, StaleResultError
from ..logger import get_logger
from .events import proposal_topics, reconcile_events
from .proposals import GovernanceParams, LabeledProposal, ProposalMetadata, ProposalSnapshot
from .states import derive_labels
from .timestamps import TimestampCache, TimestampResolver, collect_block_numbers
from .voting import VoteReceipt, fetch_prior_votes, fetch_vote_receipts

logger = get_logger(__name__)

_QUERY_ALIASES = {
    'governorAddress': 'governor_address',
    'governorVariant': 'governor_variant',
    'isBravo': 'governor_variant',
    'governanceTokenAddress': 'governance_token_address',
    'lensAddress': 'lens_address',
    'compoundLens': 'lens_address',
    'initialBlockNumber': 'initial_block_number',
    'currentBlockNumber': 'current_block_number',
}


# ══════════════════════════════════════════════════════════════════════
#  CONTEXT & QUERY
# ══════════════════════════════════════════════════════════════════════

@dataclass
class GovernanceContext:
    """
    Collaborators and deployment parameters for governance requests.

    Attributes:
        logs:            Event log source
        reader:          Batched constant reads
        oracle:          Block timestamp oracle
        params:          Quorum and timelock constants
        sender:          Transaction collaborator, only needed for intents
        timestamp_cache: Cross-request timestamp cache (disabled when None)
        chain_head:      Coroutine returning the current block, used when a
                         query does not pin one
        clock:           Wall clock in Unix seconds
    """
    logs: LogSource
    reader: ChainReader
    oracle: TimestampOracle
    params: GovernanceParams = field(default_factory=GovernanceParams)
    sender: Optional[TransactionSender] = None
    timestamp_cache: Optional[TimestampCache] = None
    chain_head: Optional[Callable[[], Awaitable[int]]] = None
    clock: Callable[[], float] = time.time

    def now(self) -> int:
        return int(self.clock())

    async def current_block(self, pinned: Optional[int] = None) -> int:
        if pinned is not None:
            return pinned
        if self.chain_head is None:
            raise ConfigurationError("No current block given and no chain head source configured")
        return await self.chain_head()


@dataclass(frozen=True)
class DashboardQuery:
    """Parameters of one dashboard request."""
    governor_address: str
    governor_variant: GovernorVariant
    governance_token_address: str
    lens_address: str
    network: str
    initial_block_number: int = 0
    current_block_number: Optional[int] = None
    decimals: int = DEFAULT_TOKEN_DECIMALS
    voter: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, 'governor_variant', GovernorVariant.parse(self.governor_variant))
        object.__setattr__(self, 'governor_address', normalize_address(self.governor_address))
        object.__setattr__(self, 'governance_token_address', normalize_address(self.governance_token_address))
        object.__setattr__(self, 'lens_address', normalize_address(self.lens_address))
        if self.voter:
            object.__setattr__(self, 'voter', normalize_address(self.voter))
        else:
            object.__setattr__(self, 'voter', None)
        if self.initial_block_number < 0:
            raise ValueError("initial_block_number must be >= 0")
        if self.current_block_number is not None and self.current_block_number < self.initial_block_number:
            raise ValueError("current_block_number is before initial_block_number")
        if self.decimals < 0:
            raise ValueError("decimals must be >= 0")

    @property
    def guard_key(self) -> Tuple[str, str]:
        return self.governor_address, self.voter or ''

    @staticmethod
    def canonical_params(data: Mapping[str, Any]) -> Dict[str, Any]:
        """
        Rename request keys to field names and drop ``None`` values.

        Accepts the camelCase names used by browser clients
        (``governorAddress``, ``isBravo``, ``compoundLens``...).
        """
        return {_QUERY_ALIASES.get(k, k): v for k, v in data.items() if v is not None}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "DashboardQuery":
        """Build from request parameters (snake_case or camelCase keys)."""
        params = cls.canonical_params(data)
        current = params.get('current_block_number')
        try:
            return cls(
                governor_address=params.get('governor_address'),
                governor_variant=params.get('governor_variant', GovernorVariant.BRAVO),
                governance_token_address=params.get('governance_token_address'),
                lens_address=params.get('lens_address'),
                network=params.get('network', 'mainnet'),
                initial_block_number=int(params.get('initial_block_number', 0)),
                current_block_number=None if current is None else int(current),
                decimals=int(params.get('decimals', DEFAULT_TOKEN_DECIMALS)),
                voter=params.get('voter'),
            )
        except TypeError as exc:
            raise ValueError(f"Invalid dashboard query: {exc}") from exc


# ══════════════════════════════════════════════════════════════════════
#  PAYLOAD
# ══════════════════════════════════════════════════════════════════════

@dataclass
class Dashboard:
    """Assembled dashboard for one governor and voter."""
    proposals: List[LabeledProposal]
    proposal_vote_receipts: Dict[int, VoteReceipt]
    prior_votes: Dict[int, Decimal]
    network: str
    voter: Optional[str]
    current_block: int = 0
    current_time: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "proposals": [_proposal_payload(p) for p in self.proposals],
            "proposalVoteReceipts": {
                str(pid): receipt.to_dict() for pid, receipt in self.proposal_vote_receipts.items()
            },
            "priorVotes": {str(pid): str(votes) for pid, votes in self.prior_votes.items()},
            "network": self.network,
            "voter": self.voter,
            "currentBlock": self.current_block,
            "currentTime": self.current_time,
        }


def _proposal_payload(proposal: LabeledProposal) -> Dict[str, Any]:
    snap, meta = proposal.snapshot, proposal.metadata
    return {
        "id": snap.id,
        "title": meta.title if meta.title is not None else UNTITLED_PROPOSAL,
        "description": meta.description if meta.description is not None else '',
        "states": [label.to_dict() for label in proposal.labels],
        "for_votes": str(snap.for_votes),
        "against_votes": str(snap.against_votes),
        "abstain_votes": str(snap.abstain_votes),
        "actions": snap.actions(meta.values),
        "proposer": {
            "display_name": None,
            "image_url": None,
            "account_url": None,
            "address": snap.proposer,
        },
    }


# ══════════════════════════════════════════════════════════════════════
#  ASSEMBLER
# ══════════════════════════════════════════════════════════════════════

class DashboardAssembler:
    """Runs the dashboard pipeline against a ``GovernanceContext``."""

    def __init__(self, context: GovernanceContext):
        self.context = context

    async def fetch_snapshots(
        self,
        query: DashboardQuery,
        metadata: Mapping[int, ProposalMetadata],
    ) -> Dict[int, ProposalSnapshot]:
        """
        One lens read for every reconciled proposal.

        Raises:
            MalformedResponseError: A reconciled id has no snapshot row.
        """
        ids = sorted(metadata)
        if not ids:
            return {}

        variant = query.governor_variant
        call = ContractCall('CompoundLens', query.lens_address, variant.proposals_method, (query.governor_address, ids))
        (rows,) = await self.context.reader.batch_call([call])

        snapshots: Dict[int, ProposalSnapshot] = {}
        for row in rows:
            snapshot = ProposalSnapshot.from_lens(row, variant)
            snapshots[snapshot.id] = snapshot

        missing = [pid for pid in ids if pid not in snapshots]
        if missing:
            raise MalformedResponseError(f"{variant.proposals_method} returned no data for proposals {missing}")
        return snapshots

    async def label_proposals(
        self,
        query: DashboardQuery,
        current_block: int,
        current_time: int,
    ) -> List[LabeledProposal]:
        """Steps 1-4: events, snapshots, timestamps and labels."""
        ctx = self.context
        variant = query.governor_variant

        logs = await ctx.logs.fetch_logs(
            query.governor_address,
            proposal_topics(variant),
            query.initial_block_number,
            current_block,
        )
        metadata = reconcile_events(logs, variant)
        snapshots = await self.fetch_snapshots(query, metadata)

        resolver = TimestampResolver(ctx.oracle, query.network, ctx.timestamp_cache)
        timestamps = await resolver.resolve(collect_block_numbers(snapshots.values(), metadata.values()))

        labeled = []
        for pid in sorted(metadata):
            snapshot = snapshots[pid]
            labels = derive_labels(snapshot, metadata[pid], timestamps, current_block, current_time, ctx.params)
            labeled.append(LabeledProposal(snapshot=snapshot, metadata=metadata[pid], labels=tuple(labels)))
        return labeled

    async def build(self, query: DashboardQuery) -> Dashboard:
        """
        Assemble the full dashboard.

        Raises:
            GovLensException: Any collaborator failure; no partial dashboard
                is returned.
        """
        ctx = self.context
        start_time = time.time()
        current_block = await ctx.current_block(query.current_block_number)
        current_time = ctx.now()

        proposals = await self.label_proposals(query, current_block, current_time)

        receipts: Dict[int, VoteReceipt] = {}
        prior_votes: Dict[int, Decimal] = {}
        if query.voter and proposals:
            receipts, prior_votes = await asyncio.gather(
                fetch_vote_receipts(
                    ctx.reader,
                    query.lens_address,
                    query.governor_address,
                    query.governor_variant,
                    query.voter,
                    [p.id for p in proposals],
                ),
                fetch_prior_votes(
                    ctx.reader,
                    query.lens_address,
                    query.governance_token_address,
                    query.voter,
                    [p.snapshot for p in proposals],
                    query.decimals,
                    current_block,
                ),
            )

        logger.info(
            f"Dashboard for {query.governor_address} on {query.network}: "
            f"{len(proposals)} proposals at block {current_block} ({time.time() - start_time:.3f}s)"
        )
        return Dashboard(
            proposals=proposals,
            proposal_vote_receipts=receipts,
            prior_votes=prior_votes,
            network=query.network,
            voter=query.voter,
            current_block=current_block,
            current_time=current_time,
        )


# ══════════════════════════════════════════════════════════════════════
#  STALE RESULT SUPPRESSION
# ══════════════════════════════════════════════════════════════════════

class RequestGuard:
    """
    Latest request token per request key.

    ``begin`` hands out a token unique to this guard; once a newer ``begin``
    for the same key has happened, the older token is no longer current.
    ``finish`` releases the key so finished keys do not accumulate.
    """

    def __init__(self):
        self._tokens = itertools.count(1)
        self._generations: Dict[Hashable, int] = {}

    def begin(self, key: Hashable) -> int:
        token = next(self._tokens)
        self._generations[key] = token
        return token

    def is_current(self, key: Hashable, token: int) -> bool:
        return self._generations.get(key) == token

    def check(self, key: Hashable, token: int) -> None:
        """Raise ``StaleResultError`` if ``token`` has been superseded."""
        if not self.is_current(key, token):
            raise StaleResultError(f"Request {token} for {key} superseded by {self._generations.get(key)}")

    def finish(self, key: Hashable, token: int) -> bool:
        """Release ``key`` if ``token`` is still current. Returns whether it was."""
        if not self.is_current(key, token):
            return False
        del self._generations[key]
        return True


class DashboardService:
    """Dashboard entry point with stale-result suppression."""

    def __init__(self, context: GovernanceContext, guard: Optional[RequestGuard] = None):
        self.context = context
        self.assembler = DashboardAssembler(context)
        self.guard = guard or RequestGuard()

    async def query(self, query: DashboardQuery) -> Optional[Dashboard]:
        """
        Build the dashboard for ``query``.

        Returns:
            The dashboard, or ``None`` if a newer query for the same governor
            and voter started while this one was in flight. A superseded
            query's failure is logged and dropped as well.
        """
        key = query.guard_key
        token = self.guard.begin(key)
        try:
            dashboard = await self.assembler.build(query)
        except Exception as exc:
            if self.guard.finish(key, token):
                raise
            logger.info(f"Discarding error of superseded request {token} for {key}: {type(exc).__name__}: {exc}")
            return None

        if not self.guard.finish(key, token):
            logger.info(f"Discarding stale dashboard: request {token} for {key} superseded")
            return None
        return dashboard

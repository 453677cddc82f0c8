"""
Proposal State Derivation

A proposal's status is a set of labels, not a single state machine value:
a queued proposal is also succeeded, an expired one is also queued, and so
on. Each label is an independent predicate over a frozen ``StateContext``
and they are evaluated in ``ProposalState`` order:

  pending -> active -> defeated -> succeeded -> queued -> canceled -> executed -> expired

All vote and quorum comparisons are on integer mantissas.
"""

import math
from dataclasses import dataclass
from typing import Callable, List, Mapping, Optional, Tuple

from ..logger import get_logger
from ..numeric import below, exceeds
from .proposals import (
    GovernanceParams,
    ProposalLabel,
    ProposalMetadata,
    ProposalSnapshot,
    ProposalState,
)

logger = get_logger(__name__)


@dataclass(frozen=True)
class StateContext:
    """Everything a state predicate may look at."""
    snapshot: ProposalSnapshot
    metadata: ProposalMetadata
    timestamps: Mapping[int, int]
    current_block: int
    current_time: int
    params: GovernanceParams

    def timestamp(self, block: Optional[int]) -> Optional[int]:
        if block is None:
            return None
        return self.timestamps.get(block)

    def estimate_time(self, block: int) -> int:
        """Known timestamp of ``block``, else an extrapolation from the chain head."""
        known = self.timestamp(block)
        if known is not None:
            return known
        delta = (block - self.current_block) * self.params.seconds_per_block
        return math.floor(self.current_time + delta)

    def not_canceled_before(self, block: int) -> bool:
        canceled_block = self.metadata.canceled_block
        return canceled_block is None or canceled_block >= block

    def voting_closed(self) -> Optional[int]:
        """End-block timestamp if voting has ended, else ``None``."""
        end_time = self.timestamp(self.snapshot.end_block)
        if end_time is None or end_time >= self.current_time:
            return None
        if not self.not_canceled_before(self.snapshot.end_block):
            return None
        return end_time


# ══════════════════════════════════════════════════════════════════════
#  PREDICATES
# ══════════════════════════════════════════════════════════════════════

def pending(ctx: StateContext) -> Optional[ProposalLabel]:
    create_time = ctx.timestamp(ctx.metadata.create_block)
    if create_time is None:
        if ctx.metadata.create_block is not None:
            logger.debug(
                f"Proposal {ctx.snapshot.id}: creation block {ctx.metadata.create_block} has no timestamp"
            )
        return None
    return ProposalLabel(
        state=ProposalState.PENDING,
        start_time=create_time,
        end_time=ctx.estimate_time(ctx.snapshot.start_block),
        trx_hash=ctx.metadata.create_trx_hash,
    )


def active(ctx: StateContext) -> Optional[ProposalLabel]:
    if not ctx.not_canceled_before(ctx.snapshot.start_block):
        return None
    start_time = ctx.timestamp(ctx.snapshot.start_block)
    if start_time is None or start_time >= ctx.current_time:
        return None
    return ProposalLabel(
        state=ProposalState.ACTIVE,
        start_time=start_time,
        end_time=ctx.estimate_time(ctx.snapshot.end_block),
    )


def defeated(ctx: StateContext) -> Optional[ProposalLabel]:
    end_time = ctx.voting_closed()
    if end_time is None:
        return None
    snap = ctx.snapshot
    if exceeds(snap.for_votes, snap.against_votes) and not below(snap.for_votes, ctx.params.quorum_votes):
        return None
    return ProposalLabel(state=ProposalState.DEFEATED, start_time=end_time)


def succeeded(ctx: StateContext) -> Optional[ProposalLabel]:
    end_time = ctx.voting_closed()
    if end_time is None:
        return None
    snap = ctx.snapshot
    if not (exceeds(snap.for_votes, snap.against_votes) and exceeds(snap.for_votes, ctx.params.quorum_votes)):
        return None
    return ProposalLabel(state=ProposalState.SUCCEEDED, start_time=end_time)


def queued(ctx: StateContext) -> Optional[ProposalLabel]:
    eta = ctx.snapshot.eta
    if eta <= 0:
        return None
    return ProposalLabel(
        state=ProposalState.QUEUED,
        start_time=eta - ctx.params.timelock_delay,
        end_time=eta,
    )


def canceled(ctx: StateContext) -> Optional[ProposalLabel]:
    if not ctx.snapshot.canceled:
        return None
    canceled_time = ctx.timestamp(ctx.metadata.canceled_block)
    if canceled_time is None:
        logger.warning(
            f"Proposal {ctx.snapshot.id} is canceled but cancellation block "
            f"{ctx.metadata.canceled_block} has no known timestamp"
        )
        return None
    return ProposalLabel(
        state=ProposalState.CANCELED,
        start_time=canceled_time,
        trx_hash=ctx.metadata.canceled_trx_hash,
    )


def executed(ctx: StateContext) -> Optional[ProposalLabel]:
    if not ctx.snapshot.executed:
        return None
    executed_time = ctx.timestamp(ctx.metadata.executed_block)
    trx_hash = ctx.metadata.executed_trx_hash
    if executed_time is None or trx_hash is None:
        logger.warning(
            f"Proposal {ctx.snapshot.id} is executed but execution metadata is incomplete "
            f"(block={ctx.metadata.executed_block}, trx_hash={trx_hash})"
        )
        return None
    return ProposalLabel(state=ProposalState.EXECUTED, start_time=executed_time, trx_hash=trx_hash)


def expired(ctx: StateContext) -> Optional[ProposalLabel]:
    snap = ctx.snapshot
    if snap.canceled or snap.executed or snap.eta <= 0:
        return None
    expires_at = snap.eta + ctx.params.grace_period
    if ctx.current_time <= expires_at:
        return None
    return ProposalLabel(state=ProposalState.EXPIRED, start_time=expires_at)


PREDICATES: Tuple[Tuple[ProposalState, Callable[[StateContext], Optional[ProposalLabel]]], ...] = (
    (ProposalState.PENDING, pending),
    (ProposalState.ACTIVE, active),
    (ProposalState.DEFEATED, defeated),
    (ProposalState.SUCCEEDED, succeeded),
    (ProposalState.QUEUED, queued),
    (ProposalState.CANCELED, canceled),
    (ProposalState.EXECUTED, executed),
    (ProposalState.EXPIRED, expired),
)


def derive_labels(
    snapshot: ProposalSnapshot,
    metadata: ProposalMetadata,
    timestamps: Mapping[int, int],
    current_block: int,
    current_time: int,
    params: Optional[GovernanceParams] = None,
) -> List[ProposalLabel]:
    """
    Compute every label that currently applies to one proposal.

    Args:
        snapshot:      Lens data for the proposal
        metadata:      Reconciled event data (may be mostly empty)
        timestamps:    Block -> Unix time for referenced blocks
        current_block: Chain head
        current_time:  Unix time of the chain head
        params:        Thresholds and timelock constants

    Returns:
        Labels in evaluation order
    """
    ctx = StateContext(
        snapshot=snapshot,
        metadata=metadata,
        timestamps=timestamps,
        current_block=current_block,
        current_time=current_time,
        params=params or GovernanceParams(),
    )
    labels = []
    for _state, predicate in PREDICATES:
        label = predicate(ctx)
        if label is not None:
            labels.append(label)
    return labels

"""
govlens Governance Engine

Provides:
  - ProposalSnapshot / ProposalMetadata / ProposalState / ProposalLabel  (proposals.py)
  - reconcile_events / parse_title                                        (events.py)
  - TimestampResolver / TimestampCache / collect_block_numbers            (timestamps.py)
  - derive_labels / StateContext                                          (states.py)
  - VoteReceipt / fetch_vote_receipts / fetch_prior_votes                 (voting.py)
  - QueuedTransaction / fetch_queued_transactions                         (timelock.py)
  - cast_vote / delegate / queue_proposal / ... intents                   (intents.py)
  - DashboardQuery / Dashboard / DashboardAssembler / DashboardService    (dashboard.py)
"""

from .proposals import (
    GovernanceParams,
    LabeledProposal,
    ProposalLabel,
    ProposalMetadata,
    ProposalSnapshot,
    ProposalState,
)
from .events import parse_title, proposal_topics, reconcile_events
from .timestamps import TimestampCache, TimestampResolver, collect_block_numbers
from .states import StateContext, derive_labels
from .voting import (
    AccountMetadata,
    VoteReceipt,
    fetch_account_metadata,
    fetch_prior_votes,
    fetch_vote_receipts,
)
from .timelock import QueuedTransaction, fetch_queued_transactions
from .intents import (
    cast_vote,
    delegate,
    execute_proposal,
    execute_transaction,
    queue_proposal,
    queue_transaction,
    submit_proposal,
)
from .dashboard import (
    Dashboard,
    DashboardAssembler,
    DashboardQuery,
    DashboardService,
    GovernanceContext,
    RequestGuard,
)

__all__ = [
    # Proposals
    "GovernanceParams",
    "LabeledProposal",
    "ProposalLabel",
    "ProposalMetadata",
    "ProposalSnapshot",
    "ProposalState",
    # Events
    "parse_title",
    "proposal_topics",
    "reconcile_events",
    # Timestamps
    "TimestampCache",
    "TimestampResolver",
    "collect_block_numbers",
    # States
    "StateContext",
    "derive_labels",
    # Voting
    "AccountMetadata",
    "VoteReceipt",
    "fetch_account_metadata",
    "fetch_prior_votes",
    "fetch_vote_receipts",
    # Timelock
    "QueuedTransaction",
    "fetch_queued_transactions",
    # Intents
    "cast_vote",
    "delegate",
    "execute_proposal",
    "execute_transaction",
    "queue_proposal",
    "queue_transaction",
    "submit_proposal",
    # Dashboard
    "Dashboard",
    "DashboardAssembler",
    "DashboardQuery",
    "DashboardService",
    "GovernanceContext",
    "RequestGuard",
]

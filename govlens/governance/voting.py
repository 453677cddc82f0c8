"""
Vote Receipts and Voting Power

Per-voter overlays on the proposal list, read through the CompoundLens
contract in batched calls:

  - fetch_vote_receipts     how the voter voted, only where they voted
  - fetch_prior_votes       voting power at each proposal's start block
  - fetch_account_metadata  token balance, current votes and delegate
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Sequence

from eth_utils import to_checksum_address

from ..chain.abi import GovernorVariant
from ..chain.interfaces import ChainReader, ContractCall
from ..constants import SUPPORT_ABSTAIN, SUPPORT_AGAINST, SUPPORT_FOR
from ..exceptions import DomainError, MalformedResponseError
from ..logger import get_logger
from ..numeric import parse_wei, to_scaled_decimal
from .proposals import ProposalSnapshot

logger = get_logger(__name__)

ZERO_ADDRESS = '0x0000000000000000000000000000000000000000'


@dataclass(frozen=True)
class VoteReceipt:
    """A cast vote. ``support`` is 0 against, 1 for, 2 abstain."""
    proposal_id: int
    support: int
    votes: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "proposal_id": self.proposal_id,
            "support": self.support,
            "votes": str(self.votes),
        }


@dataclass(frozen=True)
class AccountMetadata:
    """Governance token position of one account."""
    address: str
    balance: Decimal
    votes: Decimal
    delegate: Optional[str]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "balance": str(self.balance),
            "votes": str(self.votes),
            "delegate": self.delegate,
        }


def _normalize_support(raw: Any, variant: GovernorVariant) -> int:
    if variant is GovernorVariant.ALPHA:
        if not isinstance(raw, bool):
            raise MalformedResponseError(f"Legacy receipt support must be bool, got {raw!r}")
        return SUPPORT_FOR if raw else SUPPORT_AGAINST
    support = parse_wei(raw)
    if support not in (SUPPORT_AGAINST, SUPPORT_FOR, SUPPORT_ABSTAIN):
        raise MalformedResponseError(f"Receipt support out of range: {support}")
    return support


async def fetch_vote_receipts(
    reader: ChainReader,
    lens: str,
    governor: str,
    variant: GovernorVariant,
    voter: str,
    proposal_ids: Sequence[int],
    block_number: Optional[int] = None,
) -> Dict[int, VoteReceipt]:
    """
    Receipts of ``voter`` for the given proposals, keyed by proposal id.

    Proposals the voter has not voted on are left out.

    Raises:
        UpstreamError: The lens read failed.
        MalformedResponseError: A receipt row is incomplete.
    """
    ids = list(proposal_ids)
    if not ids:
        return {}

    call = ContractCall('CompoundLens', lens, variant.receipts_method, (governor, voter, ids))
    (rows,) = await reader.batch_call([call], block_number)

    receipts: Dict[int, VoteReceipt] = {}
    try:
        for row in rows:
            if not row["hasVoted"]:
                continue
            receipt = VoteReceipt(
                proposal_id=parse_wei(row["proposalId"]),
                support=_normalize_support(row["support"], variant),
                votes=parse_wei(row["votes"]),
            )
            receipts[receipt.proposal_id] = receipt
    except (KeyError, TypeError, ValueError) as exc:
        raise MalformedResponseError(f"{variant.receipts_method} returned a malformed receipt: {exc}") from exc

    logger.debug(f"Voter {voter} has voted on {len(receipts)}/{len(ids)} proposals")
    return receipts


def comp_votes_call(lens: str, token: str, voter: str, blocks: Sequence[int], current_block: int) -> ContractCall:
    """
    Build a ``getCompVotes`` read.

    Raises:
        DomainError: A block lies beyond ``current_block``. The lens reverts
            for blocks that are not yet mined.
    """
    future = [b for b in blocks if b > current_block]
    if future:
        raise DomainError(f"getCompVotes queried for unmined blocks {future} (head {current_block})")
    return ContractCall('CompoundLens', lens, 'getCompVotes', (token, voter, list(blocks)))


async def fetch_prior_votes(
    reader: ChainReader,
    lens: str,
    token: str,
    voter: str,
    proposals: Iterable[ProposalSnapshot],
    decimals: int,
    current_block: int,
) -> Dict[int, Decimal]:
    """
    Voting power of ``voter`` at each proposal's start block.

    Proposals whose voting has not started yet are given zero without being
    queried; the remaining start blocks are read in one deduplicated batch.

    Returns:
        Proposal id -> scaled vote count
    """
    proposals = list(proposals)
    mined: List[int] = sorted({p.start_block for p in proposals if p.start_block <= current_block})

    votes_at: Dict[int, int] = {}
    if mined:
        call = comp_votes_call(lens, token, voter, mined, current_block)
        (rows,) = await reader.batch_call([call])
        try:
            for row in rows:
                votes_at[parse_wei(row["blockNumber"])] = parse_wei(row["votes"])
        except (KeyError, TypeError, ValueError) as exc:
            raise MalformedResponseError(f"getCompVotes returned a malformed row: {exc}") from exc

    prior: Dict[int, Decimal] = {}
    pending = 0
    for proposal in proposals:
        if proposal.start_block > current_block:
            prior[proposal.id] = to_scaled_decimal(0, decimals)
            pending += 1
            continue
        if proposal.start_block not in votes_at:
            raise MalformedResponseError(
                f"getCompVotes reply has no entry for block {proposal.start_block} (proposal {proposal.id})"
            )
        prior[proposal.id] = to_scaled_decimal(votes_at[proposal.start_block], decimals)

    logger.debug(f"Prior votes for {voter}: {len(mined)} start blocks queried, {pending} not started")
    return prior


async def fetch_account_metadata(
    reader: ChainReader,
    lens: str,
    token: str,
    account: str,
    decimals: int,
    block_number: Optional[int] = None,
) -> AccountMetadata:
    """Balance, current votes and delegatee of ``account``."""
    address = to_checksum_address(account)
    call = ContractCall('CompoundLens', lens, 'getCompBalanceMetadata', (token, address))
    (row,) = await reader.batch_call([call], block_number)
    try:
        delegate = to_checksum_address(row["delegate"])
        return AccountMetadata(
            address=address,
            balance=to_scaled_decimal(row["balance"], decimals),
            votes=to_scaled_decimal(row["votes"], decimals),
            delegate=None if delegate == ZERO_ADDRESS else delegate,
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise MalformedResponseError(f"getCompBalanceMetadata returned {row!r}") from exc

"""
Governance Transaction Intents

Builds governor, token and timelock calls and hands them to a
``TransactionSender`` for signing and broadcast. Nothing here signs or
estimates gas; each intent returns the hash the sender reports.
"""

import time
from typing import Any, Optional, Sequence

from web3.exceptions import Web3Exception

from ..chain.abi import GovernorVariant, encode_call
from ..chain.interfaces import TransactionRequest, TransactionSender
from ..constants import (
    SUPPORT_ABSTAIN,
    SUPPORT_AGAINST,
    SUPPORT_FOR,
    TIMELOCK_ETA_PADDING_SECONDS,
)
from ..crypto.contract import normalize_address
from ..exceptions import DomainError, GovLensException, TransactionError
from ..logger import get_logger
from ..numeric import parse_wei

logger = get_logger(__name__)


async def _send(
    sender: TransactionSender,
    contract: str,
    method: str,
    frm: str,
    to: str,
    args: Sequence[Any],
    display_args: Optional[Sequence[Any]] = None,
    **metadata: Any,
) -> str:
    try:
        data = encode_call(contract, method, args)
    except (Web3Exception, ValueError, TypeError) as exc:
        raise DomainError(f"Cannot encode {contract}.{method}: {exc}") from exc
    request = TransactionRequest(
        sender=normalize_address(frm),
        to=normalize_address(to),
        data=data,
        function=method,
        display_args=tuple(args if display_args is None else display_args),
        metadata=metadata,
    )
    logger.info(f"Sending {contract}.{method} to {request.to} from {request.sender}")
    try:
        trx_hash = await sender.send_transaction(request)
    except GovLensException:
        raise
    except Exception as exc:
        logger.error(f"{contract}.{method} rejected: {exc}")
        raise TransactionError(f"{contract}.{method} failed: {exc}") from exc
    logger.info(f"{contract}.{method} submitted as {trx_hash}")
    return trx_hash


# ══════════════════════════════════════════════════════════════════════
#  GOVERNOR
# ══════════════════════════════════════════════════════════════════════

async def cast_vote(
    sender: TransactionSender,
    governor: str,
    variant: GovernorVariant,
    voter: str,
    proposal_id: int,
    support: int,
    reason: str = '',
) -> str:
    """
    Vote on a proposal.

    The newer governor records ``reason`` with the vote; the legacy one only
    accepts for/against and drops the reason.

    Raises:
        DomainError: ``support`` is not 0/1/2, or abstain on the legacy governor.
        TransactionError: The sender failed.
    """
    if support not in (SUPPORT_AGAINST, SUPPORT_FOR, SUPPORT_ABSTAIN):
        raise DomainError(f"Invalid vote support value: {support}")

    if variant is GovernorVariant.BRAVO:
        args = (proposal_id, support, reason)
    else:
        if support == SUPPORT_ABSTAIN:
            raise DomainError("The legacy governor has no abstain option")
        args = (proposal_id, support == SUPPORT_FOR)

    return await _send(
        sender, 'Governor', variant.cast_vote_method, voter, governor, args,
        proposal_id=proposal_id,
    )


async def queue_proposal(sender: TransactionSender, governor: str, account: str, proposal_id: int) -> str:
    """Move a succeeded proposal into the timelock."""
    return await _send(sender, 'Governor', 'queue', account, governor, (proposal_id,), proposal_id=proposal_id)


async def execute_proposal(sender: TransactionSender, governor: str, account: str, proposal_id: int) -> str:
    """Execute a queued proposal whose eta has passed."""
    return await _send(sender, 'Governor', 'execute', account, governor, (proposal_id,), proposal_id=proposal_id)


async def submit_proposal(
    sender: TransactionSender,
    governor: str,
    proposer: str,
    targets: Sequence[str],
    values: Sequence[Any],
    signatures: Sequence[str],
    calldatas: Sequence[Any],
    description: str,
) -> str:
    """
    Create a proposal.

    ``calldatas`` may be bytes or 0x hex strings; ``values`` ints or decimal strings.
    """
    if not (len(targets) == len(values) == len(signatures) == len(calldatas)):
        raise DomainError("targets, values, signatures and calldatas must have the same length")
    if not targets:
        raise DomainError("A proposal needs at least one action")

    args = (
        [normalize_address(t) for t in targets],
        [parse_wei(v) for v in values],
        list(signatures),
        [_as_bytes(c) for c in calldatas],
        description,
    )
    return await _send(sender, 'Governor', 'propose', proposer, governor, args)


# ══════════════════════════════════════════════════════════════════════
#  TOKEN
# ══════════════════════════════════════════════════════════════════════

async def delegate(sender: TransactionSender, token: str, account: str, delegatee: str) -> str:
    """Delegate ``account``'s votes to ``delegatee``."""
    return await _send(sender, 'Comp', 'delegate', account, token, (normalize_address(delegatee),))


# ══════════════════════════════════════════════════════════════════════
#  TIMELOCK
# ══════════════════════════════════════════════════════════════════════

def timelock_eta(delay: int, now: Optional[int] = None, padding: int = TIMELOCK_ETA_PADDING_SECONDS) -> int:
    """Earliest eta that still clears ``delay`` once the transaction is mined."""
    now = int(time.time()) if now is None else now
    return now + delay + padding


async def queue_transaction(
    sender: TransactionSender,
    timelock: str,
    admin: str,
    target: str,
    value: Any,
    signature: str,
    data: Any,
    delay: int,
    now: Optional[int] = None,
) -> str:
    """Queue a call directly on the timelock, eta computed from ``delay``."""
    eta = timelock_eta(delay, now)
    args = (normalize_address(target), parse_wei(value), signature, _as_bytes(data), eta)
    return await _send(sender, 'Timelock', 'queueTransaction', admin, timelock, args, eta=eta)


async def execute_transaction(
    sender: TransactionSender,
    timelock: str,
    admin: str,
    target: str,
    value: Any,
    signature: str,
    data: Any,
    eta: int,
) -> str:
    """Execute a previously queued timelock call."""
    args = (normalize_address(target), parse_wei(value), signature, _as_bytes(data), eta)
    return await _send(sender, 'Timelock', 'executeTransaction', admin, timelock, args, eta=eta)


def _as_bytes(value: Any) -> bytes:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if isinstance(value, str):
        text = value[2:] if value.lower().startswith('0x') else value
        try:
            return bytes.fromhex(text)
        except ValueError:
            raise DomainError(f"Call data is not hex: {value!r}") from None
    raise DomainError(f"Unsupported call data type: {type(value).__name__}")

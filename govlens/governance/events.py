"""
Governor Event Reconciler

Folds the chain-ordered ProposalCreated / ProposalCanceled / ProposalExecuted
logs of one governor into a ``ProposalMetadata`` record per proposal id.
Each event kind writes its own fields, so repeated or interleaved events for
the same id merge into one record instead of replacing it.
"""

import re
from typing import Any, Callable, Dict, Iterable, Tuple

from ..chain.abi import (
    PROPOSAL_CANCELED,
    PROPOSAL_CREATED,
    PROPOSAL_EXECUTED,
    EventDefinition,
    GovernorVariant,
)
from ..chain.interfaces import LogEntry
from ..constants import UNTITLED_PROPOSAL
from ..exceptions import DecodingError, EventDecodingError, UnknownEventError
from ..logger import get_logger
from .proposals import ProposalMetadata

logger = get_logger(__name__)

_TITLE_RE = re.compile(r'\A\s*#[ \t]+(?P<title>[^\n]*)(?:\n(?P<body>.*))?\Z', re.DOTALL)


def parse_title(description: str) -> Tuple[str, str]:
    """
    Split a proposal description into ``(title, description)``.

    A leading ``# heading`` line becomes the title and the rest the
    description, both trimmed. Without a heading the title is ``Untitled``
    and the text is returned as is.

    >>> parse_title("# Add USDT\\n\\nList USDT as collateral")
    ('Add USDT', 'List USDT as collateral')
    """
    match = _TITLE_RE.match(description)
    if match is None or not match.group('title').strip():
        return UNTITLED_PROPOSAL, description
    return match.group('title').strip(), (match.group('body') or '').strip()


# ══════════════════════════════════════════════════════════════════════
#  EVENT HANDLERS
# ══════════════════════════════════════════════════════════════════════

def _decode(event: EventDefinition, log: LogEntry) -> Dict[str, Any]:
    try:
        return event.decode(log)
    except DecodingError as exc:
        raise EventDecodingError(
            f"{event.name} at block {log.block_number} ({log.transaction_hash}): {exc}"
        ) from exc


def _on_created(log: LogEntry) -> Tuple[int, dict]:
    args = _decode(PROPOSAL_CREATED, log)
    title, body = parse_title(args["description"])
    return args["id"], {
        "title": title,
        "description": body,
        "create_block": log.block_number,
        "create_trx_hash": log.transaction_hash,
        "values": tuple(args["values"]),
    }


def _on_canceled(log: LogEntry) -> Tuple[int, dict]:
    return _decode(PROPOSAL_CANCELED, log)["id"], {
        "canceled_block": log.block_number,
        "canceled_trx_hash": log.transaction_hash,
    }


def _on_executed(log: LogEntry) -> Tuple[int, dict]:
    return _decode(PROPOSAL_EXECUTED, log)["id"], {
        "executed_block": log.block_number,
        "executed_trx_hash": log.transaction_hash,
    }


_HANDLERS: Dict[str, Callable[[LogEntry], Tuple[int, dict]]] = {
    PROPOSAL_CREATED.topic: _on_created,
    PROPOSAL_CANCELED.topic: _on_canceled,
    PROPOSAL_EXECUTED.topic: _on_executed,
}


def proposal_topics(variant: GovernorVariant) -> Tuple[str, ...]:
    """topic0 values to request from the log source for ``variant``."""
    return tuple(event.topic for event in variant.proposal_events)


# ══════════════════════════════════════════════════════════════════════
#  RECONCILIATION
# ══════════════════════════════════════════════════════════════════════

def reconcile_events(
    logs: Iterable[LogEntry],
    variant: GovernorVariant = GovernorVariant.BRAVO,
) -> Dict[int, ProposalMetadata]:
    """
    Fold governor logs into per-proposal metadata.

    Args:
        logs:    Entries in chain order
        variant: Governor the logs came from

    Returns:
        Proposal id -> accumulated metadata

    Raises:
        UnknownEventError:  A log topic has no handler. Nothing is returned.
        EventDecodingError: A known event's data does not decode.
    """
    allowed = set(proposal_topics(variant))
    metadata: Dict[int, ProposalMetadata] = {}
    count = 0

    for log in logs:
        topic = log.topic0
        handler = _HANDLERS.get(topic) if topic in allowed else None
        if handler is None:
            raise UnknownEventError(topic or '<no topic>')

        proposal_id, updates = handler(log)
        record = metadata.get(proposal_id)
        if record is None:
            record = metadata[proposal_id] = ProposalMetadata(proposal_id=proposal_id)
        record.merge(**updates)
        count += 1

    logger.debug(f"Reconciled {count} {variant.value} governor events into {len(metadata)} proposals")
    return metadata

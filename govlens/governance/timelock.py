"""
Timelock queued transactions.

Lists transactions that were queued directly on a Timelock and can still be
executed: queued per ``queuedTransactions(txHash)`` and not past their
grace period.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from eth_utils import decode_hex, encode_hex

from ..chain.abi import QUEUE_TRANSACTION
from ..chain.interfaces import ChainReader, ContractCall, LogEntry, LogSource
from ..constants import TIMELOCK_GRACE_PERIOD_SECONDS
from ..crypto.contract import decode_call_arguments
from ..exceptions import DecodingError, EventDecodingError, UnknownEventError
from ..logger import get_logger

logger = get_logger(__name__)

_CALL_SIGNATURE_RE = re.compile(r'(\w+)\(([\w,\[\]]*)\)')


@dataclass(frozen=True)
class QueuedTransaction:
    """
    A decoded ``QueueTransaction`` event.

    Attributes:
        tx_hash:        Timelock transaction id (keccak of the call tuple)
        target:         Called contract
        value:          Wei sent with the call
        signature:      Human signature, e.g. ``_setReserveFactor(uint256)``
        data:           ABI-encoded arguments (0x hex)
        eta:            Earliest execution time
        block_number:   Block the event was mined in
        trx_hash:       Hash of the queueing transaction
        index:          Position among the timelock's queue events
        function_name:  Parsed from ``signature`` ('' when unparseable)
        function_args:  Decoded arguments as display strings
    """
    tx_hash: str
    target: str
    value: int
    signature: str
    data: str
    eta: int
    block_number: int
    trx_hash: str
    index: int
    function_name: str = ''
    function_args: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def function_call(self) -> str:
        if not self.function_name:
            return ''
        return f"{self.function_name}({', '.join(self.function_args)})"

    def is_stale(self, current_time: int, grace_period: int = TIMELOCK_GRACE_PERIOD_SECONDS) -> bool:
        return current_time > self.eta + grace_period

    def to_dict(self) -> Dict[str, Any]:
        return {
            "txHash": self.tx_hash,
            "target": self.target,
            "value": str(self.value),
            "signature": self.signature,
            "data": self.data,
            "eta": self.eta,
            "transactionData": {
                "functionName": self.function_name,
                "functionArgs": list(self.function_args),
                "functionCall": self.function_call,
                "blockNumber": self.block_number,
                "transactionHash": self.trx_hash,
                "timelockTrxNumber": self.index,
            },
        }


def describe_call(signature: str, data: Any) -> Tuple[str, Tuple[str, ...]]:
    """
    Function name and display arguments for a timelock call.

    Returns ``('', ())`` when the signature cannot be parsed and the bare
    name when the arguments do not decode against it.
    """
    match = _CALL_SIGNATURE_RE.search(signature or '')
    if match is None:
        return '', ()
    name = match.group(1)
    try:
        args = decode_call_arguments(match.group(0), data)
    except (DecodingError, ValueError) as exc:
        logger.debug(f"Cannot decode arguments of {signature}: {exc}")
        return name, ()
    return name, tuple(str(arg) for arg in args)


def decode_queue_event(log: LogEntry, index: int) -> QueuedTransaction:
    """
    Raises:
        UnknownEventError: The log is not a QueueTransaction event.
        EventDecodingError: The indexed topics or data are malformed.
    """
    if log.topic0 != QUEUE_TRANSACTION.topic:
        raise UnknownEventError(log.topic0 or '<no topic>')
    if len(log.topics) < 3:
        raise EventDecodingError(f"QueueTransaction in {log.transaction_hash} is missing indexed topics")
    try:
        args = QUEUE_TRANSACTION.decode(log)
    except DecodingError as exc:
        raise EventDecodingError(f"QueueTransaction in {log.transaction_hash}: {exc}") from exc

    function_name, function_args = describe_call(args["signature"], args["data"])
    return QueuedTransaction(
        tx_hash=encode_hex(args["txHash"]),
        target=args["target"],
        value=args["value"],
        signature=args["signature"],
        data=encode_hex(args["data"]),
        eta=args["eta"],
        block_number=log.block_number,
        trx_hash=log.transaction_hash,
        index=index,
        function_name=function_name,
        function_args=function_args,
    )


async def fetch_queued_transactions(
    logs: LogSource,
    reader: ChainReader,
    timelock: str,
    from_block: int,
    current_time: int,
    grace_period: int = TIMELOCK_GRACE_PERIOD_SECONDS,
    to_block: Optional[int] = None,
) -> List[QueuedTransaction]:
    """
    Transactions queued on ``timelock`` that are still executable.

    Returns:
        Entries in chain order
    """
    entries = await logs.fetch_logs(timelock, [QUEUE_TRANSACTION.topic], from_block, to_block)
    events = [decode_queue_event(log, index) for index, log in enumerate(entries)]
    if not events:
        return []

    calls = [ContractCall('Timelock', timelock, 'queuedTransactions', (decode_hex(event.tx_hash),)) for event in events]
    still_queued = await reader.batch_call(calls)

    queued = [
        event for event, is_queued in zip(events, still_queued)
        if is_queued and not event.is_stale(current_time, grace_period)
    ]
    logger.info(f"Timelock {timelock}: {len(queued)} of {len(events)} queued transactions still executable")
    return queued

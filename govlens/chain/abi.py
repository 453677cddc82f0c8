"""
Governance Contract ABI Registry

JSON ABIs for the subset of Compound-style governance contracts that govlens
reads from or builds transactions for:

  - GovernorAlpha / GovernorBravo   (events, vote/queue/execute/propose)
  - CompoundLens                    (batched proposal, receipt and vote reads)
  - Comp governance token           (delegate)
  - Timelock                        (QueueTransaction events, queuedTransactions)

Calls are encoded and logs decoded through web3 contract objects built from
these ABIs; selectors and topics are derived from them rather than kept as
separate strings.

The legacy/newer governor split is a ``GovernorVariant`` chosen once per
request; every variant-dependent method name hangs off it.
"""

from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from typing import Any, Dict, List, Sequence, Tuple

from eth_abi.exceptions import DecodingError as ABIDecodingError
from eth_utils import decode_hex, encode_hex, event_abi_to_log_topic
from web3 import Web3
from web3.exceptions import Web3Exception

from ..exceptions import DecodingError
from .interfaces import LogEntry


def _params(*pairs: Tuple[str, str]) -> List[Dict[str, Any]]:
    return [{"name": name, "type": type_} for type_, name in pairs]


def _struct(name: str, type_: str, *components: Tuple[str, str]) -> Dict[str, Any]:
    return {"name": name, "type": type_, "components": _params(*components)}


def _function(name, inputs, outputs=(), mutability="view") -> Dict[str, Any]:
    return {
        "type": "function",
        "name": name,
        "inputs": list(inputs),
        "outputs": list(outputs),
        "stateMutability": mutability,
    }


def _event(name: str, *inputs: Tuple[str, str, bool]) -> Dict[str, Any]:
    return {
        "type": "event",
        "name": name,
        "anonymous": False,
        "inputs": [{"name": n, "type": t, "indexed": indexed} for t, n, indexed in inputs],
    }


# ══════════════════════════════════════════════════════════════════════
#  CONTRACT ABIS
# ══════════════════════════════════════════════════════════════════════

_PROPOSAL_HEAD = (
    ('uint256', 'proposalId'), ('address', 'proposer'), ('uint256', 'eta'),
    ('address[]', 'targets'), ('uint256[]', 'values'), ('string[]', 'signatures'),
    ('bytes[]', 'calldatas'), ('uint256', 'startBlock'), ('uint256', 'endBlock'),
    ('uint256', 'forVotes'), ('uint256', 'againstVotes'),
)
_PROPOSAL_TAIL = (('bool', 'canceled'), ('bool', 'executed'))

COMPOUND_LENS_ABI: List[Dict[str, Any]] = [
    _function(
        'getGovProposals',
        _params(('address', 'governor'), ('uint256[]', 'proposalIds')),
        [_struct('proposals', 'tuple[]', *_PROPOSAL_HEAD, *_PROPOSAL_TAIL)],
    ),
    _function(
        'getGovBravoProposals',
        _params(('address', 'governor'), ('uint256[]', 'proposalIds')),
        [_struct('proposals', 'tuple[]', *_PROPOSAL_HEAD, ('uint256', 'abstainVotes'), *_PROPOSAL_TAIL)],
    ),
    _function(
        'getGovReceipts',
        _params(('address', 'governor'), ('address', 'voter'), ('uint256[]', 'proposalIds')),
        [_struct('receipts', 'tuple[]',
                 ('uint256', 'proposalId'), ('bool', 'hasVoted'), ('bool', 'support'), ('uint96', 'votes'))],
    ),
    _function(
        'getGovBravoReceipts',
        _params(('address', 'governor'), ('address', 'voter'), ('uint256[]', 'proposalIds')),
        [_struct('receipts', 'tuple[]',
                 ('uint256', 'proposalId'), ('bool', 'hasVoted'), ('uint8', 'support'), ('uint96', 'votes'))],
    ),
    _function(
        'getCompVotes',
        _params(('address', 'comp'), ('address', 'account'), ('uint32[]', 'blockNumbers')),
        [_struct('priorVotes', 'tuple[]', ('uint256', 'blockNumber'), ('uint256', 'votes'))],
    ),
    _function(
        'getCompBalanceMetadata',
        _params(('address', 'comp'), ('address', 'account')),
        [_struct('metadata', 'tuple', ('uint256', 'balance'), ('uint256', 'votes'), ('address', 'delegate'))],
    ),
]

GOVERNOR_ABI: List[Dict[str, Any]] = [
    _function('castVote', _params(('uint256', 'proposalId'), ('bool', 'support')), mutability='nonpayable'),
    _function(
        'castVoteWithReason',
        _params(('uint256', 'proposalId'), ('uint8', 'support'), ('string', 'reason')),
        mutability='nonpayable',
    ),
    _function('queue', _params(('uint256', 'proposalId')), mutability='nonpayable'),
    _function('execute', _params(('uint256', 'proposalId')), mutability='payable'),
    _function(
        'propose',
        _params(('address[]', 'targets'), ('uint256[]', 'values'), ('string[]', 'signatures'),
                ('bytes[]', 'calldatas'), ('string', 'description')),
        _params(('uint256', 'proposalId')),
        mutability='nonpayable',
    ),
    _function('proposalCount', [], _params(('uint256', 'count'))),
    _event(
        'ProposalCreated',
        ('uint256', 'id', False), ('address', 'proposer', False), ('address[]', 'targets', False),
        ('uint256[]', 'values', False), ('string[]', 'signatures', False), ('bytes[]', 'calldatas', False),
        ('uint256', 'startBlock', False), ('uint256', 'endBlock', False), ('string', 'description', False),
    ),
    _event('ProposalCanceled', ('uint256', 'id', False)),
    _event('ProposalExecuted', ('uint256', 'id', False)),
]

COMP_ABI: List[Dict[str, Any]] = [
    _function('delegate', _params(('address', 'delegatee')), mutability='nonpayable'),
    _function('getCurrentVotes', _params(('address', 'account')), _params(('uint96', 'votes'))),
]

TIMELOCK_ABI: List[Dict[str, Any]] = [
    _function('queuedTransactions', _params(('bytes32', 'txHash')), _params(('bool', 'isQueued'))),
    _function(
        'queueTransaction',
        _params(('address', 'target'), ('uint256', 'value'), ('string', 'signature'), ('bytes', 'data'), ('uint256', 'eta')),
        _params(('bytes32', 'txHash')),
        mutability='nonpayable',
    ),
    _function(
        'executeTransaction',
        _params(('address', 'target'), ('uint256', 'value'), ('string', 'signature'), ('bytes', 'data'), ('uint256', 'eta')),
        _params(('bytes', 'returnData')),
        mutability='payable',
    ),
    _function('delay', [], _params(('uint256', 'delay'))),
    _function('GRACE_PERIOD', [], _params(('uint256', 'gracePeriod'))),
    _event(
        'QueueTransaction',
        ('bytes32', 'txHash', True), ('address', 'target', True), ('uint256', 'value', False),
        ('string', 'signature', False), ('bytes', 'data', False), ('uint256', 'eta', False),
    ),
]

CONTRACT_ABIS: Dict[str, List[Dict[str, Any]]] = {
    'CompoundLens': COMPOUND_LENS_ABI,
    'Governor': GOVERNOR_ABI,
    'Comp': COMP_ABI,
    'Timelock': TIMELOCK_ABI,
}


def _find_abi(contract: str, kind: str, name: str) -> Dict[str, Any]:
    try:
        abi = CONTRACT_ABIS[contract]
    except KeyError:
        raise KeyError(f"No ABI registered for {contract}") from None
    for entry in abi:
        if entry["type"] == kind and entry["name"] == name:
            return entry
    raise KeyError(f"No ABI registered for {contract}.{name}")


def function_abi(contract: str, method: str) -> Dict[str, Any]:
    """Look up a registered function, raising ``KeyError`` with a readable message."""
    return _find_abi(contract, "function", method)


# Offline instance: only its codec is used, it never reaches a node
_OFFLINE_W3 = Web3()


@lru_cache(maxsize=None)
def contract_type(contract: str):
    """Address-less web3 contract class for ``contract``."""
    if contract not in CONTRACT_ABIS:
        raise KeyError(f"No ABI registered for {contract}")
    return _OFFLINE_W3.eth.contract(abi=CONTRACT_ABIS[contract])


def encode_call(contract: str, method: str, args: Sequence[Any]) -> str:
    """ABI-encode a call to ``contract.method`` as 0x hex call data."""
    function_abi(contract, method)
    return contract_type(contract).encode_abi(method, args=list(args))


def shape_result(contract: str, method: str, value: Any) -> Any:
    """
    Turn a decoded call result into the value callers work with.

    Struct results become a dict keyed by the ABI component names (a list of
    dicts for struct arrays); anything else is returned unchanged.
    """
    outputs = function_abi(contract, method)["outputs"]
    if len(outputs) != 1 or "components" not in outputs[0]:
        return value
    names = [component["name"] for component in outputs[0]["components"]]
    if outputs[0]["type"].endswith('[]'):
        return [dict(zip(names, row)) for row in value]
    return dict(zip(names, value))


# ══════════════════════════════════════════════════════════════════════
#  EVENTS
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class EventDefinition:
    """An event of a registered contract ABI."""
    contract: str
    name: str

    @property
    def abi(self) -> Dict[str, Any]:
        return _find_abi(self.contract, "event", self.name)

    @property
    def topic(self) -> str:
        return encode_hex(event_abi_to_log_topic(self.abi))

    @property
    def data_types(self) -> Tuple[str, ...]:
        """Types of the non-indexed arguments, in data order."""
        return tuple(arg["type"] for arg in self.abi["inputs"] if not arg["indexed"])

    def decode(self, log: LogEntry) -> Dict[str, Any]:
        """
        Decode ``log`` into its named arguments, indexed ones included.

        Raises:
            DecodingError: Topic mismatch, malformed hex or data that does not
                match the ABI.
        """
        event = getattr(contract_type(self.contract).events, self.name)()
        try:
            receipt = {
                "address": log.address,
                "topics": [decode_hex(topic) for topic in log.topics],
                "data": decode_hex(log.data),
                "blockNumber": log.block_number,
                "blockHash": None,
                "transactionHash": log.transaction_hash,
                "transactionIndex": 0,
                "logIndex": log.log_index,
            }
            return dict(event.process_log(receipt)["args"])
        except (Web3Exception, ABIDecodingError, ValueError, TypeError) as exc:
            raise DecodingError(f"Cannot decode {self.name} log: {exc}") from exc


PROPOSAL_CREATED = EventDefinition('Governor', 'ProposalCreated')
PROPOSAL_CANCELED = EventDefinition('Governor', 'ProposalCanceled')
PROPOSAL_EXECUTED = EventDefinition('Governor', 'ProposalExecuted')
QUEUE_TRANSACTION = EventDefinition('Timelock', 'QueueTransaction')


# ══════════════════════════════════════════════════════════════════════
#  GOVERNOR VARIANTS
# ══════════════════════════════════════════════════════════════════════

class GovernorVariant(str, Enum):
    """Legacy (GovernorAlpha) vs. newer (GovernorBravo) governor."""
    ALPHA = "alpha"
    BRAVO = "bravo"

    @classmethod
    def parse(cls, value: Any) -> "GovernorVariant":
        """Accept a variant, its name, or the historical ``isBravo`` boolean."""
        if isinstance(value, cls):
            return value
        if isinstance(value, bool):
            return cls.BRAVO if value else cls.ALPHA
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(f"Unknown governor variant: {value!r}") from None

    @property
    def proposals_method(self) -> str:
        return 'getGovBravoProposals' if self is GovernorVariant.BRAVO else 'getGovProposals'

    @property
    def receipts_method(self) -> str:
        return 'getGovBravoReceipts' if self is GovernorVariant.BRAVO else 'getGovReceipts'

    @property
    def cast_vote_method(self) -> str:
        return 'castVoteWithReason' if self is GovernorVariant.BRAVO else 'castVote'

    @property
    def has_abstain(self) -> bool:
        return self is GovernorVariant.BRAVO

    @property
    def proposal_events(self) -> Tuple[EventDefinition, ...]:
        # Both governors emit identically shaped lifecycle events
        return (PROPOSAL_CREATED, PROPOSAL_CANCELED, PROPOSAL_EXECUTED)

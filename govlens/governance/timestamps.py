"""
Timestamp resolution for proposal blocks.

Collects every block a set of proposals references and resolves them to
Unix timestamps with a single oracle round trip. The result is read-only;
a missing key means the timestamp is unknown (block not mined yet or not
reported), never zero.
"""

import threading
from types import MappingProxyType
from typing import Dict, Iterable, Mapping, Optional, Set

from ..chain.interfaces import TimestampOracle
from ..logger import get_logger
from .proposals import ProposalMetadata, ProposalSnapshot

logger = get_logger(__name__)

TimestampMap = Mapping[int, int]

EMPTY_TIMESTAMPS: TimestampMap = MappingProxyType({})


def collect_block_numbers(
    snapshots: Iterable[ProposalSnapshot],
    metadata: Iterable[ProposalMetadata],
) -> Set[int]:
    """Start/end blocks of every snapshot plus every observed event block."""
    blocks: Set[int] = set()
    for snapshot in snapshots:
        blocks.add(snapshot.start_block)
        blocks.add(snapshot.end_block)
    for record in metadata:
        blocks.update(record.block_numbers)
    return blocks


class TimestampCache:
    """
    Block timestamps kept across requests, partitioned by network.

    Only mined blocks ever land here, and a mined block's timestamp cannot
    change, so entries never expire.
    """

    def __init__(self):
        self._by_network: Dict[str, Dict[int, int]] = {}
        self._lock = threading.Lock()

    def lookup(self, network: str, blocks: Iterable[int]) -> Dict[int, int]:
        with self._lock:
            known = self._by_network.get(network, {})
            return {b: known[b] for b in blocks if b in known}

    def store(self, network: str, timestamps: Mapping[int, int]) -> None:
        with self._lock:
            self._by_network.setdefault(network, {}).update(timestamps)

    def clear(self, network: Optional[str] = None) -> None:
        with self._lock:
            if network is None:
                self._by_network.clear()
            else:
                self._by_network.pop(network, None)

    def __len__(self) -> int:
        with self._lock:
            return sum(len(v) for v in self._by_network.values())


class TimestampResolver:
    """
    Resolve block numbers through a ``TimestampOracle``.

    With a ``TimestampCache`` only the blocks it does not know are sent to
    the oracle; without one every request goes to the oracle.
    """

    def __init__(
        self,
        oracle: TimestampOracle,
        network: str,
        cache: Optional[TimestampCache] = None,
    ):
        self.oracle = oracle
        self.network = network
        self.cache = cache

    async def resolve(self, block_numbers: Iterable[int]) -> TimestampMap:
        """
        Raises:
            UpstreamError: The oracle request failed.
            MalformedResponseError: The oracle answered with something unusable.
        """
        blocks = sorted(set(block_numbers))
        if not blocks:
            return EMPTY_TIMESTAMPS

        resolved: Dict[int, int] = {}
        if self.cache is not None:
            resolved.update(self.cache.lookup(self.network, blocks))
            blocks = [b for b in blocks if b not in resolved]
            if not blocks:
                logger.debug(f"All {len(resolved)} block timestamps served from cache ({self.network})")
                return MappingProxyType(resolved)

        fetched = await self.oracle.resolve_timestamps(blocks, self.network)
        wanted = set(blocks)
        fetched = {b: ts for b, ts in fetched.items() if b in wanted}
        if self.cache is not None and fetched:
            self.cache.store(self.network, fetched)

        resolved.update(fetched)
        missing = len(wanted) - len(fetched)
        logger.debug(
            f"Resolved {len(fetched)}/{len(wanted)} block timestamps on {self.network}"
            + (f" ({missing} unknown)" if missing else "")
        )
        return MappingProxyType(resolved)

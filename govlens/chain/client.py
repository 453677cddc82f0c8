"""
Ethereum node client.

``JsonRpcClient`` implements the ``LogSource`` and ``ChainReader`` interfaces
on top of ``web3.AsyncWeb3``. Every constant read of a request step is sent
as a single ``batch_requests()`` round trip so that call order maps
one-to-one onto result order.
"""

import asyncio
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple

import aiohttp
from eth_abi.exceptions import DecodingError as ABIDecodingError
from eth_utils import is_address, to_checksum_address
from web3 import AsyncHTTPProvider, AsyncWeb3
from web3.exceptions import BadFunctionCallOutput, BadResponseFormat, Web3Exception

from ..constants import LOG_MAX_PATH_LENGTH
from ..crypto.contract import normalize_address
from ..exceptions import DomainError, MalformedResponseError, UpstreamError
from ..logger import get_logger
from .abi import CONTRACT_ABIS, function_abi, shape_result
from .interfaces import ContractCall, LogEntry

logger = get_logger(__name__)


def _checksum_args(value: Any) -> Any:
    # web3 only encodes checksummed addresses
    if isinstance(value, str) and is_address(value):
        return to_checksum_address(value)
    if isinstance(value, (list, tuple)):
        return [_checksum_args(v) for v in value]
    return value


class JsonRpcClient:
    """
    Governance reads against one Ethereum node.

    The provider's batching state is shared by every request made through
    ``w3``, so requests from concurrent tasks are serialised here.
    """

    def __init__(self, w3: AsyncWeb3, url: str = ''):
        self.w3 = w3
        self.url = url or str(getattr(w3.provider, 'endpoint_uri', '') or '')
        self._lock = asyncio.Lock()
        self._contracts: Dict[Tuple[str, str], Any] = {}

    @classmethod
    def from_url(cls, url: str, timeout: float) -> "JsonRpcClient":
        """Client over ``AsyncHTTPProvider`` with the default middleware removed."""
        provider = AsyncHTTPProvider(url, request_kwargs={"timeout": aiohttp.ClientTimeout(total=timeout)})
        return cls(AsyncWeb3(provider, middleware=[]), url)

    async def close(self) -> None:
        """Release the provider's cached HTTP sessions."""
        await self.w3.provider.disconnect()

    # -----------------------------------------------------------------
    #  Request plumbing
    # -----------------------------------------------------------------

    async def _request(self, label: str, send: Callable[[], Awaitable[Any]]) -> Any:
        """
        Run one node round trip and map failures onto govlens errors.

        Raises:
            UpstreamError: Transport failure, HTTP error or a JSON-RPC error object.
            MalformedResponseError: A reply that does not decode.
        """
        log_url = self.url if len(self.url) <= LOG_MAX_PATH_LENGTH else self.url[:LOG_MAX_PATH_LENGTH] + "...[TRUNCATED]"
        logger.debug(f"--> \"POST {log_url}\" {label}")

        start_time = time.time()
        async with self._lock:
            try:
                result = await send()
            except (BadFunctionCallOutput, BadResponseFormat, ABIDecodingError) as exc:
                logger.warning(f"<-- \"POST {log_url}\" {label} MALFORMED ({time.time() - start_time:.3f}s)")
                raise MalformedResponseError(f"{label}: {exc}") from exc
            except (Web3Exception, aiohttp.ClientError, asyncio.TimeoutError, OSError) as exc:
                logger.warning(f"<-- \"POST {log_url}\" {label} ERROR ({time.time() - start_time:.3f}s)")
                raise UpstreamError(f"{label} failed: {exc}") from exc
            except (ValueError, TypeError, KeyError) as exc:
                logger.warning(f"<-- \"POST {log_url}\" {label} MALFORMED ({time.time() - start_time:.3f}s)")
                raise MalformedResponseError(f"{label} returned an undecodable reply: {exc}") from exc

        logger.debug(f"<-- \"POST {log_url}\" {label} ({time.time() - start_time:.3f}s)")
        return result

    async def _batch(self, label: str, requests: List[Awaitable[Any]]) -> List[Any]:
        async def send():
            async with self.w3.batch_requests() as batch:
                for request in requests:
                    batch.add(request)
                return await batch.async_execute()

        return list(await self._request(label, send))

    def _contract(self, call: ContractCall):
        key = (call.contract, call.address.lower())
        if key not in self._contracts:
            self._contracts[key] = self.w3.eth.contract(
                address=normalize_address(call.address),
                abi=CONTRACT_ABIS[call.contract],
            )
        return self._contracts[key]

    # -----------------------------------------------------------------
    #  Chain queries
    # -----------------------------------------------------------------

    async def block_number(self) -> int:
        """Current chain head."""
        return await self._request("eth_blockNumber", lambda: self.w3.eth.block_number)

    async def fetch_logs(
        self,
        address: str,
        topics: Sequence[str],
        from_block: int,
        to_block: Optional[int] = None,
    ) -> List[LogEntry]:
        """
        Fetch logs whose topic0 is any of ``topics`` (OR filter).

        Returns:
            Entries sorted by (block number, log index), i.e. chain order.
        """
        log_filter = {
            "address": normalize_address(address),
            "fromBlock": from_block,
            "toBlock": "latest" if to_block is None else to_block,
            "topics": [list(topics)],
        }
        result = await self._request("eth_getLogs", lambda: self.w3.eth.get_logs(log_filter))
        if not isinstance(result, (list, tuple)):
            raise MalformedResponseError(f"eth_getLogs returned {type(result).__name__}, expected list")

        try:
            entries = [LogEntry.from_rpc(item) for item in result]
        except (KeyError, TypeError, ValueError) as exc:
            raise MalformedResponseError(f"eth_getLogs returned a malformed log: {exc}") from exc

        logger.debug(f"Fetched {len(entries)} logs from {address} starting at block {from_block}")
        return sorted(entries, key=lambda e: (e.block_number, e.log_index))

    async def batch_call(
        self,
        calls: Sequence[ContractCall],
        block_number: Optional[int] = None,
    ) -> List[Any]:
        """
        Execute constant reads as one batch of ``eth_call``.

        Results are decoded by web3 against the registered ABI and struct
        results shaped into dicts keyed by component name.

        Raises:
            KeyError: A call names a method with no registered ABI.
            DomainError: Arguments do not match the method's inputs.
        """
        if not calls:
            return []
        for call in calls:
            function_abi(call.contract, call.method)

        block = "latest" if block_number is None else block_number
        try:
            functions = [
                getattr(self._contract(call).functions, call.method)(*_checksum_args(call.args))
                for call in calls
            ]
        except (Web3Exception, ValueError, TypeError) as exc:
            raise DomainError(f"Cannot encode {calls[0].contract} call: {exc}") from exc

        label = f"batch[{len(calls)}] eth_call {calls[0].contract}.{calls[0].method}"
        raw_results = await self._batch(label, [fn.call(block_identifier=block) for fn in functions])
        if len(raw_results) != len(calls):
            raise MalformedResponseError(f"{label}: {len(raw_results)} results for {len(calls)} calls")

        try:
            return [shape_result(call.contract, call.method, raw) for call, raw in zip(calls, raw_results)]
        except (TypeError, ValueError) as exc:
            raise MalformedResponseError(f"{label}: unexpected result shape: {exc}") from exc

    async def get_block_timestamps(self, block_numbers: Sequence[int]) -> Dict[int, int]:
        """
        Header timestamps of the requested blocks that are already mined.

        Blocks past the current head are left out.
        """
        blocks = sorted(set(block_numbers))
        if not blocks:
            return {}
        head = await self.block_number()
        mined = [block for block in blocks if block <= head]
        if not mined:
            return {}

        headers = await self._batch(
            f"batch[{len(mined)}] eth_getBlockByNumber",
            [self.w3.eth.get_block(block) for block in mined],
        )
        timestamps: Dict[int, int] = {}
        for block, header in zip(mined, headers):
            try:
                timestamps[block] = int(header["timestamp"])
            except (KeyError, TypeError, ValueError) as exc:
                raise MalformedResponseError(f"Block {block} header has no valid timestamp") from exc
        return timestamps

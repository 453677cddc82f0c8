"""
Block timestamp oracles.

``HttpTimestampOracle`` queries a timestamp service of the form
``<base>/<b1>,<b2>,...?network=<name>`` answering ``{"<block>": <unix>}``.
``RpcTimestampOracle`` reads headers from the node itself, for local and test
networks the hosted service does not cover.
"""

import json
import time
from typing import Dict, Iterable

import httpx

from ..constants import LOG_MAX_PATH_LENGTH
from ..exceptions import MalformedResponseError, UpstreamError
from ..logger import get_logger
from .client import JsonRpcClient

logger = get_logger(__name__)


class HttpTimestampOracle:
    """Hosted block-timestamp service client."""

    def __init__(self, base_url: str, client: httpx.AsyncClient):
        self.base_url = base_url.rstrip('/')
        self.client = client

    async def resolve_timestamps(self, block_numbers: Iterable[int], network: str) -> Dict[int, int]:
        """
        Resolve ``block_numbers`` in a single request.

        Raises:
            UpstreamError: Network failure or non-2xx status.
            MalformedResponseError: Body is not a JSON object of integers.
        """
        blocks = sorted(set(block_numbers))
        if not blocks:
            return {}

        url = f"{self.base_url}/{','.join(str(b) for b in blocks)}"
        log_url = url if len(url) <= LOG_MAX_PATH_LENGTH else url[:LOG_MAX_PATH_LENGTH] + "...[TRUNCATED]"
        logger.debug(f"--> \"GET {log_url}?network={network}\"")

        start_time = time.time()
        try:
            response = await self.client.get(url, params={"network": network})
            response.raise_for_status()
        except httpx.RequestError as exc:
            logger.warning(f"<-- \"GET {log_url}\" NETWORK_ERROR ({time.time() - start_time:.3f}s)")
            raise UpstreamError(f"Timestamp oracle unreachable: {exc}") from exc
        except httpx.HTTPStatusError as exc:
            logger.warning(f"<-- \"GET {log_url}\" {exc.response.status_code} ERROR ({time.time() - start_time:.3f}s)")
            raise UpstreamError(f"Timestamp oracle failed with HTTP {exc.response.status_code}") from exc

        logger.debug(f"<-- \"GET {log_url}\" {response.status_code} ({time.time() - start_time:.3f}s)")

        try:
            body = response.json()
        except (json.JSONDecodeError, ValueError) as exc:
            raise MalformedResponseError("Timestamp oracle returned a non-JSON body") from exc

        return parse_timestamp_map(body)


class RpcTimestampOracle:
    """Timestamps from ``eth_getBlockByNumber`` on the configured node."""

    def __init__(self, rpc: JsonRpcClient):
        self.rpc = rpc

    async def resolve_timestamps(self, block_numbers: Iterable[int], network: str) -> Dict[int, int]:
        blocks = sorted(set(block_numbers))
        if not blocks:
            return {}
        return await self.rpc.get_block_timestamps(blocks)


def parse_timestamp_map(body) -> Dict[int, int]:
    """
    Validate an oracle body and convert its keys to ``int``.

    ``null`` values (block not mined yet) are dropped; anything else that is
    not an integer is rejected rather than coerced.
    """
    if not isinstance(body, dict):
        raise MalformedResponseError(f"Timestamp oracle returned {type(body).__name__}, expected object")

    timestamps: Dict[int, int] = {}
    for key, value in body.items():
        if value is None:
            continue
        if isinstance(value, bool) or not isinstance(value, (int, str)):
            raise MalformedResponseError(f"Timestamp for block {key!r} is not an integer: {value!r}")
        try:
            timestamps[int(key)] = int(value)
        except ValueError as exc:
            raise MalformedResponseError(f"Invalid timestamp entry {key!r}: {value!r}") from exc
    return timestamps

"""
govlens Chain Access

Transports behind the engine's collaborator interfaces:
  - ContractCall / LogEntry / TransactionRequest and the consumed Protocols  (interfaces.py)
  - Contract JSON ABIs, event definitions and GovernorVariant                (abi.py)
  - JsonRpcClient over web3.AsyncWeb3 (eth_getLogs, batched eth_call)         (client.py)
  - HttpTimestampOracle / RpcTimestampOracle                                 (timestamps.py)
"""

from .abi import CONTRACT_ABIS, EventDefinition, GovernorVariant, encode_call, function_abi
from .client import JsonRpcClient
from .interfaces import (
    ChainReader,
    ContractCall,
    LogEntry,
    LogSource,
    TimestampOracle,
    TransactionRequest,
    TransactionSender,
)
from .timestamps import HttpTimestampOracle, RpcTimestampOracle

__all__ = [
    "CONTRACT_ABIS",
    "ChainReader",
    "ContractCall",
    "EventDefinition",
    "GovernorVariant",
    "HttpTimestampOracle",
    "JsonRpcClient",
    "LogEntry",
    "LogSource",
    "RpcTimestampOracle",
    "TimestampOracle",
    "TransactionRequest",
    "TransactionSender",
    "encode_call",
    "function_abi",
]

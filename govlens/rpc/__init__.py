"""
govlens RPC Module

Provides the JSON-RPC 2.0 interface of the governance service:
- RPCServer with batch support and standard error codes
- gov_* governance methods
"""

from .server import RPCError, RPCErrorCode, RPCModule, RPCServer, rpc_method
from .modules import GovModule

__all__ = [
    "GovModule",
    "RPCError",
    "RPCErrorCode",
    "RPCModule",
    "RPCServer",
    "rpc_method",
]

"""
govlens RPC Modules

JSON-RPC method implementations.
"""

from .gov import GovModule

__all__ = [
    "GovModule",
]

"""
govlens Crypto Module

ABI primitives for the free-form calls carried by proposals and timelocks:
- Human signature parsing
- Parameter encoding and argument decoding
- Address normalisation
"""

from .contract import (
    decode_call_arguments,
    decode_values,
    encode_parameters,
    normalize_address,
    split_signature,
)

__all__ = [
    "decode_call_arguments",
    "decode_values",
    "encode_parameters",
    "normalize_address",
    "split_signature",
]

"""
Contract ABI helpers.

Human-signature parsing, parameter encoding and argument decoding for the
free-form calls a timelock or proposal carries. Calls to the governance
contracts themselves go through the ABIs in ``govlens.chain.abi``.
"""

import binascii
import re
from typing import Any, List, Sequence, Tuple

from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError as ABIDecodingError
from eth_utils import (
    add_0x_prefix,
    decode_hex,
    encode_hex,
    is_address,
    to_checksum_address,
)

from ..exceptions import DecodingError


_SIGNATURE_RE = re.compile(r'^(?P<name>[A-Za-z_][A-Za-z0-9_]*)\((?P<args>.*)\)$')


def split_signature(signature: str) -> Tuple[str, List[str]]:
    """
    Split ``"transfer(address,uint256)"`` into ``("transfer", ["address", "uint256"])``.

    Tuple arguments (``"(uint256,bool)[]"``) are kept intact.
    """
    match = _SIGNATURE_RE.match(signature.replace(' ', ''))
    if match is None:
        raise ValueError(f"Invalid function signature: {signature!r}")

    args_str = match.group('args')
    types: List[str] = []
    depth = 0
    current = ''
    for ch in args_str:
        if ch == ',' and depth == 0:
            types.append(current)
            current = ''
            continue
        if ch == '(':
            depth += 1
        elif ch == ')':
            depth -= 1
        current += ch
    if current:
        types.append(current)
    return match.group('name'), types


def decode_values(types: Sequence[str], data: Any) -> Tuple[Any, ...]:
    """
    ABI-decode ``data`` (bytes or hex string) as ``types``.

    Raises:
        DecodingError: If the payload is not hex or does not match the types.
    """
    try:
        raw = decode_hex(data) if isinstance(data, str) else bytes(data)
        return tuple(decode(list(types), raw))
    except (ABIDecodingError, binascii.Error, ValueError, TypeError) as exc:
        raise DecodingError(f"Cannot decode {list(types)} from {data!r:.80}: {exc}") from exc


def encode_parameters(arg_types: Sequence[str], args: Sequence[Any]) -> str:
    """ABI-encode ``args`` and return a ``0x`` hex string."""
    if len(arg_types) != len(args):
        raise ValueError(f"Expected {len(arg_types)} arguments, got {len(args)}")
    coerced = [_coerce_argument(t, a) for t, a in zip(arg_types, args)]
    return encode_hex(encode(list(arg_types), coerced))


def decode_call_arguments(signature: str, data: Any) -> List[Any]:
    """Decode timelock/proposal call data against a human signature such as ``_setPendingAdmin(address)``."""
    _, arg_types = split_signature(signature)
    if not arg_types:
        return []
    return [_display_value(v) for v in decode_values(arg_types, data)]


def normalize_address(address: str) -> str:
    """Checksum an address, rejecting anything that is not 20 bytes of hex."""
    if not isinstance(address, str) or not is_address(address):
        raise ValueError(f"Invalid address: {address!r}")
    return to_checksum_address(address)


def _coerce_argument(arg_type: str, value: Any) -> Any:
    # Values arriving over JSON are strings; eth_abi wants native types
    if arg_type.endswith(']'):
        inner = arg_type[:arg_type.rindex('[')]
        return [_coerce_argument(inner, v) for v in value]
    if arg_type.startswith(('uint', 'int')) and isinstance(value, str):
        return int(value, 0)
    if arg_type == 'bool' and isinstance(value, str):
        return value.strip().lower() in ('1', 'true', 'yes')
    if arg_type == 'address':
        return normalize_address(value)
    if arg_type.startswith('bytes') and isinstance(value, str):
        return decode_hex(add_0x_prefix(value))
    return value


def _display_value(value: Any) -> Any:
    if isinstance(value, bytes):
        return encode_hex(value)
    if isinstance(value, (list, tuple)):
        return [_display_value(v) for v in value]
    if isinstance(value, str) and is_address(value):
        return to_checksum_address(value)
    return value

"""
Fixed-point helpers for on-chain integer values.

Chain values arrive as mantissas (integers scaled by ``10 ** decimals``).
Threshold checks stay in ``int`` so no precision is lost; ``Decimal`` is
used only for presenting scaled values.
"""

from decimal import Decimal, localcontext
from typing import Union

from .constants import DEFAULT_TOKEN_DECIMALS

IntLike = Union[int, str, bytes]


def parse_wei(value: IntLike) -> int:
    """
    Parse a raw chain integer into an ``int``.

    Accepts ints, decimal strings and ``0x``-prefixed hex strings. Booleans and
    floats are rejected because they cannot carry a 256-bit mantissa exactly.

    Raises:
        ValueError: If the value is not an unsigned integer representation.
    """
    if isinstance(value, bool):
        raise ValueError(f"Expected an integer mantissa, got bool {value!r}")
    if isinstance(value, int):
        result = value
    elif isinstance(value, bytes):
        result = int.from_bytes(value, 'big')
    elif isinstance(value, str):
        text = value.strip()
        try:
            result = int(text, 16) if text.lower().startswith('0x') else int(text, 10)
        except ValueError:
            raise ValueError(f"Invalid integer mantissa: {value!r}") from None
    else:
        raise ValueError(f"Unsupported mantissa type: {type(value).__name__}")

    if result < 0:
        raise ValueError(f"Mantissa must be unsigned, got {result}")
    return result


def to_scaled_decimal(value: IntLike, decimals: int = DEFAULT_TOKEN_DECIMALS) -> Decimal:
    """
    Scale a mantissa down by ``10 ** decimals``.

    >>> to_scaled_decimal(1500000000000000000, 18)
    Decimal('1.5')
    """
    if decimals < 0:
        raise ValueError(f"decimals must be >= 0, got {decimals}")
    mantissa = parse_wei(value)
    # 78 digits covers any uint256 without rounding
    with localcontext() as ctx:
        ctx.prec = 80
        return Decimal(mantissa) / (Decimal(10) ** decimals)


def exceeds(amount: int, threshold: int) -> bool:
    """Strict ``amount > threshold`` on mantissas."""
    return parse_wei(amount) > parse_wei(threshold)


def below(amount: int, threshold: int) -> bool:
    """Strict ``amount < threshold`` on mantissas."""
    return parse_wei(amount) < parse_wei(threshold)

from __future__ import annotations

"""
Wei / ether conversion.

Ledger amounts are integers in the smallest unit (wei). Humans type ether, so
the CLI converts at the edge with exact `Decimal` arithmetic; no floats ever
reach the ledger.
"""

from decimal import Decimal, InvalidOperation, localcontext
from typing import Union

from ledgerlab.errors import InvalidArgument

WEI_PER_ETHER = 10**18
ETHER_DECIMALS = 18

Number = Union[int, str, Decimal]


def ether_to_wei(value: Number) -> int:
    """
    Convert an ether amount to integer wei.

    Rejects negatives, non-finite values, and amounts finer than one wei.
    """
    if isinstance(value, bool) or isinstance(value, float):
        raise InvalidArgument("ether amount must be int, str or Decimal", field="ether", value=value)
    try:
        d = Decimal(value) if not isinstance(value, Decimal) else value
    except (InvalidOperation, ValueError) as e:
        raise InvalidArgument("not a decimal number", field="ether", value=value) from e
    if not d.is_finite():
        raise InvalidArgument("ether amount must be finite", field="ether", value=value)
    if d < 0:
        raise InvalidArgument("ether amount must be non-negative", field="ether", value=value)
    _, digits, exponent = d.as_tuple()
    with localcontext() as ctx:
        # wide enough that scaling by 10**18 is exact
        ctx.prec = len(digits) + max(int(exponent), 0) + ETHER_DECIMALS + 1
        wei = d.scaleb(ETHER_DECIMALS)
        if wei != wei.to_integral_value():
            raise InvalidArgument("ether amount has sub-wei precision", field="ether", value=value)
        return int(wei)


def wei_to_ether(wei: int) -> Decimal:
    if isinstance(wei, bool) or not isinstance(wei, int):
        raise InvalidArgument("wei amount must be an integer", field="wei", value=wei)
    with localcontext() as ctx:
        ctx.prec = len(str(abs(wei))) + ETHER_DECIMALS + 1
        return Decimal(wei).scaleb(-ETHER_DECIMALS)


def format_ether(wei: int) -> str:
    """Render wei as an ether string without trailing zeros: 1500000000000000000 -> '1.5'."""
    d = wei_to_ether(wei)
    s = format(d, "f")
    if "." in s:
        s = s.rstrip("0").rstrip(".")
    return s or "0"


__all__ = ["WEI_PER_ETHER", "ETHER_DECIMALS", "ether_to_wei", "wei_to_ether", "format_ether"]

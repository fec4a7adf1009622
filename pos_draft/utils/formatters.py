"""
Formatting helpers for amounts and quantities.

Display strings group thousands with a space so that they stay parseable by
the operator input parser (a space is stripped, a period is the decimal
separator).
"""
from decimal import Decimal, InvalidOperation
from typing import Union, Optional

CENT = Decimal('0.01')


def _group_thousands(integer_part: str, separator: str = ' ') -> str:
    reversed_int = integer_part[::-1]
    groups = [reversed_int[i:i+3] for i in range(0, len(reversed_int), 3)]
    return separator.join(groups)[::-1]


def money_display(value: Union[int, float, Decimal, str, None]) -> str:
    """
    Format an amount with exactly 2 decimals and space-grouped thousands.

    Examples:
        money_display(100000) -> "100 000.00"
        money_display(1500.5) -> "1 500.50"
        money_display(None) -> "-"
    """
    if value is None or value == "":
        return "-"

    try:
        num = Decimal(str(value)).quantize(CENT)
    except (InvalidOperation, ValueError, TypeError):
        return "-"

    sign = "-" if num < 0 else ""
    num = abs(num)

    integer_part, decimal_part = f"{num:.2f}".split(".")
    return f"{sign}{_group_thousands(integer_part)}.{decimal_part}"


def decimal_2(value: Union[int, float, Decimal, str, None]) -> Optional[str]:
    """Wire format for amounts: plain string with 2 decimals ("1500.00")."""
    if value is None:
        return None
    return f"{Decimal(str(value)).quantize(CENT):.2f}"


def quantity_str(value: Union[int, Decimal, None]) -> str:
    """
    Wire format for quantities: no exponent, no trailing zeros.

    Examples:
        quantity_str(Decimal('1.50')) -> "1.5"
        quantity_str(Decimal('2')) -> "2"
        quantity_str(Decimal('1E+1')) -> "10"
    """
    if value is None:
        return "0"
    num = Decimal(str(value))
    if num == num.to_integral_value():
        return str(num.quantize(Decimal(1)))
    return format(num.normalize(), 'f')

"""Number parsing utilities for keystroke-level operator input."""
import re
from decimal import Decimal, InvalidOperation
from typing import Optional

from pos_draft.exceptions import ParseError

INVALID_CHARS_PATTERN = re.compile(r"[^\d.]")
TRANSIENT_INPUTS = ('', '.')


def sanitize_decimal_input(value: Optional[str]) -> str:
    """
    Normalize raw operator input into a canonical decimal string.

    Rules:
    - Comma and period are both accepted as decimal separator
    - Any other non-digit character is stripped (spaces, currency signs, minus)
    - More than one separator is rejected

    Raises:
        ParseError: if the input carries more than one decimal separator.
    """
    if value is None:
        return ''

    normalized = str(value).replace(',', '.')
    sanitized = INVALID_CHARS_PATTERN.sub('', normalized)

    if sanitized.count('.') > 1:
        raise ParseError(value)

    return sanitized


def is_transient(sanitized: str) -> bool:
    """True for input that is not a number *yet* (empty or a lone separator)."""
    return sanitized in TRANSIENT_INPUTS


def parse_decimal_input(value: Optional[str]) -> Optional[Decimal]:
    """
    Parse operator input to Decimal.

    Returns None for transient input ('' or '.') so callers can keep the
    field editable. A trailing separator ('1.') is a valid number.

    Raises:
        ParseError: if the input is malformed.
    """
    sanitized = sanitize_decimal_input(value)
    if is_transient(sanitized):
        return None

    try:
        return Decimal(sanitized)
    except (InvalidOperation, ValueError):
        raise ParseError(value)


def to_decimal(value, default: Optional[Decimal] = None) -> Optional[Decimal]:
    """Coerce an int/float/str/Decimal coming from JSON into Decimal."""
    if value is None or value == '':
        return default
    try:
        result = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError):
        return default
    # NaN and Infinity are not amounts
    return result if result.is_finite() else default

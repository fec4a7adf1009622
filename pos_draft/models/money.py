"""Money value type: fixed two-decimal amounts in the sale's base currency."""
from decimal import Decimal, ROUND_HALF_UP
from functools import total_ordering
from typing import Iterable, Optional, Union

from pos_draft.utils.formatters import CENT, money_display
from pos_draft.utils.number_format import parse_decimal_input, to_decimal

DEFAULT_EPSILON = Decimal('0.01')

Number = Union[int, float, str, Decimal]


class _Incomplete:
    """Sentinel for input that is not a number yet ('' or '.')."""

    def __bool__(self):
        return False

    def __repr__(self):
        return '<INCOMPLETE>'


INCOMPLETE = _Incomplete()


@total_ordering
class Money:
    """
    Immutable amount rounded half-up to 2 decimals.

    Every constructor and arithmetic result is rounded exactly once, so a
    total built from Money values never compounds rounding error.
    """

    __slots__ = ('_amount',)

    def __init__(self, amount: Number = 0):
        value = to_decimal(amount)
        if value is None:
            raise ValueError(f"Invalid amount: {amount!r}")
        object.__setattr__(self, '_amount', value.quantize(CENT, rounding=ROUND_HALF_UP))

    def __setattr__(self, name, value):
        raise AttributeError("Money is immutable")

    @property
    def amount(self) -> Decimal:
        return self._amount

    @classmethod
    def zero(cls) -> 'Money':
        return cls(0)

    @classmethod
    def sum(cls, values: Iterable['Money']) -> 'Money':
        total = Decimal('0')
        for value in values:
            total += value.amount
        return cls(total)

    @classmethod
    def parse(cls, text: Optional[str]):
        """
        Parse operator input.

        Returns a Money, or INCOMPLETE for transient input. A leading minus
        is kept, so display strings of negative amounts parse back.

        Raises:
            ParseError: on malformed input (e.g. two decimal separators).
        """
        text = '' if text is None else str(text).strip()
        negative = text.startswith('-')
        value = parse_decimal_input(text[1:] if negative else text)
        if value is None:
            return INCOMPLETE
        return cls(-value if negative else value)

    @classmethod
    def parse_or_zero(cls, text: Optional[str]) -> 'Money':
        """Parse, treating transient input as zero. ParseError still propagates."""
        value = cls.parse(text)
        return value if value is not INCOMPLETE else cls.zero()

    def add(self, other: 'Money') -> 'Money':
        return Money(self._amount + other.amount)

    def subtract(self, other: 'Money') -> 'Money':
        return Money(self._amount - other.amount)

    def multiply(self, factor: Number) -> 'Money':
        return Money(self._amount * to_decimal(factor, Decimal('0')))

    def floor_zero(self) -> 'Money':
        return self if self._amount >= 0 else Money.zero()

    def compare_within_epsilon(self, other: 'Money', epsilon: Number = DEFAULT_EPSILON) -> bool:
        return abs(self._amount - other.amount) <= to_decimal(epsilon)

    def to_display_string(self) -> str:
        return money_display(self._amount)

    def is_zero(self) -> bool:
        return self._amount == 0

    __add__ = add
    __sub__ = subtract

    def __mul__(self, factor):
        return self.multiply(factor)

    def __eq__(self, other):
        if isinstance(other, Money):
            return self._amount == other.amount
        return NotImplemented

    def __lt__(self, other):
        if isinstance(other, Money):
            return self._amount < other.amount
        return NotImplemented

    def __hash__(self):
        return hash(self._amount)

    def __reduce__(self):
        return (Money, (str(self._amount),))

    def __str__(self):
        return f"{self._amount:.2f}"

    def __repr__(self):
        return f"Money('{self._amount:.2f}')"

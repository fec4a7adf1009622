"""Payment allocations for mixed payment methods."""
import enum
from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import Dict, Optional

from pos_draft.exceptions import BusinessLogicError
from pos_draft.models.money import Money


class PaymentMethod(enum.Enum):
    """Payment method enum."""
    CASH = "CASH"
    CLICK = "CLICK"
    CARD = "CARD"
    TRANSFER = "TRANSFER"
    FOREIGN_CURRENCY = "FOREIGN_CURRENCY"


# Labels the sale backend stores for each method.
DEFAULT_METHOD_LABELS: Dict[PaymentMethod, str] = {
    PaymentMethod.CASH: 'Наличные',
    PaymentMethod.CLICK: 'Click',
    PaymentMethod.CARD: 'Карта',
    PaymentMethod.TRANSFER: 'Перечисление',
    PaymentMethod.FOREIGN_CURRENCY: 'Валюта',
}


def normalize_payment_method(value, labels: Optional[Dict[PaymentMethod, str]] = None) -> PaymentMethod:
    """
    Normalize a payment method coming from the API.

    Args:
        value: None, PaymentMethod, enum name ('cash', 'CARD') or backend label

    Returns:
        PaymentMethod (CASH when value is None)

    Raises:
        BusinessLogicError: If value is not a known method
    """
    if value is None:
        return PaymentMethod.CASH

    if isinstance(value, PaymentMethod):
        return value

    normalized = str(value).strip()
    try:
        return PaymentMethod[normalized.upper()]
    except KeyError:
        pass

    for method, label in (labels or DEFAULT_METHOD_LABELS).items():
        if label == normalized:
            return method

    raise BusinessLogicError(f"Invalid payment method: {value}")


@dataclass(frozen=True)
class PaymentAllocation:
    """
    One payment against the sale total.

    For foreign-currency payments `amount` is derived
    (round(foreign_amount * exchange_rate)) and `change_amount` is what is
    returned to the customer in base currency.
    """
    method: PaymentMethod = PaymentMethod.CASH
    amount: Money = field(default_factory=Money.zero)
    foreign_amount: Optional[Decimal] = None
    exchange_rate: Optional[Decimal] = None
    change_amount: Money = field(default_factory=Money.zero)

    @classmethod
    def foreign(cls, foreign_amount: Decimal, exchange_rate: Decimal) -> 'PaymentAllocation':
        return cls(
            method=PaymentMethod.FOREIGN_CURRENCY,
            amount=Money(foreign_amount * exchange_rate),
            foreign_amount=foreign_amount,
            exchange_rate=exchange_rate,
        )

    @property
    def is_foreign(self) -> bool:
        return self.method is PaymentMethod.FOREIGN_CURRENCY

    @property
    def net_contribution(self) -> Money:
        """Amount minus change returned to the customer."""
        return self.amount.subtract(self.change_amount)

    def settle_against(self, remaining: Money) -> 'PaymentAllocation':
        """Recompute change for a foreign payment against what is still owed."""
        if not self.is_foreign:
            return self
        change = self.amount.subtract(remaining).floor_zero()
        if change == self.change_amount:
            return self
        return replace(self, change_amount=change)

    def to_dict(self, labels: Optional[Dict[PaymentMethod, str]] = None) -> dict:
        rv = {
            'method': self.method.value,
            'label': (labels or DEFAULT_METHOD_LABELS)[self.method],
            'amount': str(self.amount),
            'net_contribution': str(self.net_contribution),
        }
        if self.is_foreign:
            rv['foreign_amount'] = str(self.foreign_amount) if self.foreign_amount is not None else None
            rv['exchange_rate'] = str(self.exchange_rate) if self.exchange_rate is not None else None
            rv['change_amount'] = str(self.change_amount)
        return rv

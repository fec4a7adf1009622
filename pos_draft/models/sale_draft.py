"""Sale draft state types: lifecycle status, debt terms, stock requests."""
import enum
from dataclasses import dataclass, field
from datetime import date
from typing import Optional

from pos_draft.models.money import Money
from pos_draft.models.payment import PaymentMethod


class DraftStatus(enum.Enum):
    """Draft lifecycle status."""
    EDITING = "EDITING"
    FINALIZED = "FINALIZED"   # payload emitted, waiting for the backend
    SUBMITTED = "SUBMITTED"   # accepted by the backend, terminal


@dataclass
class DebtTerms:
    """Credit sale terms."""
    client_id: Optional[int] = None
    due_date: Optional[date] = None
    deposit: Money = field(default_factory=Money.zero)
    deposit_method: PaymentMethod = PaymentMethod.CASH

    def to_dict(self) -> dict:
        return {
            'client': self.client_id,
            'due_date': self.due_date.isoformat() if self.due_date else None,
            'deposit': str(self.deposit),
            'deposit_payment_method': self.deposit_method.value,
        }


@dataclass(frozen=True)
class StockSelectionRequest:
    """Handed to the stock selector; the token identifies this request."""
    line_id: int
    product_id: int
    token: str

    def to_dict(self) -> dict:
        return {'line_id': self.line_id, 'product_id': self.product_id, 'token': self.token}

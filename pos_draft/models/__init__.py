"""Models package - exports all draft value types."""
from pos_draft.models.money import Money, INCOMPLETE
from pos_draft.models.unit import UnitSpec, UnitCatalog
from pos_draft.models.product import ProductSnapshot, StockRef
from pos_draft.models.cart_line import CartLine, LineState, Unselected, PendingStock, Committed
from pos_draft.models.payment import (
    PaymentMethod, PaymentAllocation, DEFAULT_METHOD_LABELS, normalize_payment_method
)
from pos_draft.models.operator import OperatorContext, OperatorRole
from pos_draft.models.sale_draft import DraftStatus, DebtTerms, StockSelectionRequest
from pos_draft.models.sale_payload import (
    SalePayload, SaleItemPayload, SalePaymentPayload, SaleDebtPayload
)

__all__ = [
    'Money', 'INCOMPLETE',
    'UnitSpec', 'UnitCatalog',
    'ProductSnapshot', 'StockRef',
    'CartLine', 'LineState', 'Unselected', 'PendingStock', 'Committed',
    'PaymentMethod', 'PaymentAllocation', 'DEFAULT_METHOD_LABELS', 'normalize_payment_method',
    'OperatorContext', 'OperatorRole',
    'DraftStatus', 'DebtTerms', 'StockSelectionRequest',
    'SalePayload', 'SaleItemPayload', 'SalePaymentPayload', 'SaleDebtPayload',
]

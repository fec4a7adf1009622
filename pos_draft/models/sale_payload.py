"""Immutable payload emitted by a finalized draft for the sale backend."""
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Dict, Optional, Tuple

from pos_draft.models.money import Money
from pos_draft.models.payment import DEFAULT_METHOD_LABELS, PaymentMethod
from pos_draft.utils.formatters import decimal_2, quantity_str


@dataclass(frozen=True)
class SaleItemPayload:
    product_id: int
    quantity: Decimal
    unit_id: int
    unit_price: Money
    stock_id: Optional[int] = None

    def to_dict(self) -> dict:
        rv = {
            'product_write': self.product_id,
            'quantity': quantity_str(self.quantity),
            'selling_unit': self.unit_id,
            'price_per_unit': str(self.unit_price),
        }
        if self.stock_id:
            rv['stock'] = self.stock_id
        return rv


@dataclass(frozen=True)
class SalePaymentPayload:
    method: PaymentMethod
    amount: Money
    foreign_amount: Optional[Decimal] = None
    exchange_rate: Optional[Decimal] = None
    change_amount: Optional[Money] = None

    def to_dict(self, labels: Dict[PaymentMethod, str]) -> dict:
        rv = {'payment_method': labels[self.method]}
        if self.method is PaymentMethod.FOREIGN_CURRENCY:
            # The backend records the foreign cash handed over, not its base value.
            rv['amount'] = decimal_2(self.foreign_amount or 0)
            if self.exchange_rate:
                rv['exchange_rate'] = quantity_str(self.exchange_rate)
            if self.change_amount and not self.change_amount.is_zero():
                rv['change_amount'] = str(self.change_amount)
        else:
            rv['amount'] = str(self.amount)
        return rv


@dataclass(frozen=True)
class SaleDebtPayload:
    client_id: int
    due_date: date
    deposit: Optional[Money] = None
    deposit_method: Optional[PaymentMethod] = None

    def to_dict(self, labels: Dict[PaymentMethod, str]) -> dict:
        rv = {'client': self.client_id, 'due_date': self.due_date.isoformat()}
        if self.deposit and not self.deposit.is_zero():
            rv['deposit'] = str(self.deposit)
            rv['deposit_payment_method'] = labels[self.deposit_method or PaymentMethod.CASH]
        return rv


@dataclass(frozen=True)
class SalePayload:
    """Finalized sale, as handed to the sale submission backend."""
    store_id: int
    total_amount: Money
    discount_amount: Money
    on_credit: bool
    items: Tuple[SaleItemPayload, ...]
    payments: Tuple[SalePaymentPayload, ...]
    sold_by: Optional[int] = None
    client_id: Optional[int] = None
    debt: Optional[SaleDebtPayload] = None

    @property
    def payment_method(self) -> PaymentMethod:
        return self.payments[0].method if self.payments else PaymentMethod.CASH

    def to_dict(self, labels: Optional[Dict[PaymentMethod, str]] = None) -> dict:
        """Wire format expected by the sale backend (JSON-native values only)."""
        labels = labels or DEFAULT_METHOD_LABELS
        rv = {
            'store': self.store_id,
            'payment_method': labels[self.payment_method],
            'total_amount': str(self.total_amount),
            'discount_amount': str(self.discount_amount),
            'on_credit': self.on_credit,
            'sale_items': [item.to_dict() for item in self.items],
            'sale_payments': [payment.to_dict(labels) for payment in self.payments],
        }
        if self.sold_by is not None:
            rv['sold_by'] = self.sold_by
        if self.debt is not None:
            rv['sale_debt'] = self.debt.to_dict(labels)
        elif self.client_id:
            rv['client'] = self.client_id
        return rv

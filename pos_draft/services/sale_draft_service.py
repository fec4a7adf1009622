"""
Sale Draft Service - in-progress sale construction and reconciliation.

A SaleDraft keeps three derived quantities consistent under any edit:
line totals, the grand total and the payment plan (including change on
foreign-currency payments). Every public operation runs the full
recompute before returning, so no caller ever observes a half-updated
draft.
"""
import logging
import uuid
from datetime import date, timedelta
from decimal import Decimal
from itertools import count
from typing import Dict, List, Optional

from pos_draft.exceptions import (
    BusinessLogicError, DraftLockedError, InsufficientStockError, NotFoundError,
    ParseError, ShiftRequiredError, StockSelectionPendingError, UnauthorizedError
)
from pos_draft.models.cart_line import CartLine, LineState
from pos_draft.models.money import DEFAULT_EPSILON, Money
from pos_draft.models.operator import OperatorContext
from pos_draft.models.payment import DEFAULT_METHOD_LABELS, PaymentMethod
from pos_draft.models.product import ProductSnapshot, StockRef
from pos_draft.models.sale_draft import DebtTerms, DraftStatus, StockSelectionRequest
from pos_draft.models.sale_payload import (
    SaleDebtPayload, SaleItemPayload, SalePayload, SalePaymentPayload
)
from pos_draft.models.unit import UnitCatalog
from pos_draft.services.collaborators import ExchangeRateSource, ExchangeRateSnapshot, ProductCatalog
from pos_draft.services.payment_plan import PaymentPlan
from pos_draft.services.sale_validation import collect_violations
from pos_draft.utils.number_format import is_transient, parse_decimal_input, sanitize_decimal_input

logger = logging.getLogger(__name__)

FALLBACK_UNIT_PRICE = Decimal('10000')
DEFAULT_EXCHANGE_RATE = Decimal('12500')
DEBT_DEFAULT_TERM_DAYS = 30


class SaleDraft:
    """
    In-progress sale.

    Created with one blank line and a single Cash payment of 0. Store and
    seller are pinned to the operator unless the operator is privileged.
    """

    def __init__(
        self,
        operator: OperatorContext,
        exchange_rates: Optional[ExchangeRateSource] = None,
        unit_catalog: Optional[UnitCatalog] = None,
        fallback_price: Decimal = FALLBACK_UNIT_PRICE,
        debt_term_days: int = DEBT_DEFAULT_TERM_DAYS,
        epsilon: Decimal = DEFAULT_EPSILON,
    ):
        if not operator.has_active_shift:
            raise ShiftRequiredError()

        self.operator = operator
        self.exchange_rates = exchange_rates or ExchangeRateSnapshot(DEFAULT_EXCHANGE_RATE)
        self.unit_catalog = unit_catalog or UnitCatalog()
        self.fallback_price = Money(fallback_price)
        self.debt_term_days = debt_term_days
        self.epsilon = epsilon

        self.id = uuid.uuid4().hex
        self.status = DraftStatus.EDITING
        self.store_id: Optional[int] = operator.store_id
        self.sold_by: Optional[int] = None if operator.is_privileged else operator.user_id
        self.lines: Dict[int, CartLine] = {}
        self.grand_total = Money.zero()
        self.discount = Money.zero()
        self.discount_text = '0'
        self.payment_plan = PaymentPlan.single(PaymentMethod.CASH)
        self.on_credit = False
        self.debt: Optional[DebtTerms] = None
        self.client_id: Optional[int] = None
        self.sale_id = None
        self.last_warning: Optional[InsufficientStockError] = None

        self._line_ids = count(1)
        self._pending: Dict[int, StockSelectionRequest] = {}
        self.add_line()

    def __repr__(self):
        return f"<SaleDraft(id={self.id}, status={self.status.value}, lines={len(self.lines)}, total={self.grand_total})>"

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    @property
    def expected_net_total(self) -> Money:
        """Grand total minus discount: what the payments must add up to."""
        return self.grand_total.subtract(self.discount)

    @property
    def is_editable(self) -> bool:
        return self.status is DraftStatus.EDITING

    def pending_requests(self) -> List[StockSelectionRequest]:
        return list(self._pending.values())

    # ------------------------------------------------------------------
    # Lines
    # ------------------------------------------------------------------

    def add_line(self) -> int:
        """Append a blank line (quantity 1, price 0) and return its id."""
        self._begin()
        line_id = next(self._line_ids)
        self.lines[line_id] = CartLine(local_id=line_id)
        self._recompute()
        return line_id

    def remove_line(self, line_id: int) -> None:
        """Remove a line. The first line always stays."""
        self._begin()
        self._get_line(line_id)
        if len(self.lines) <= 1 or line_id == next(iter(self.lines)):
            raise BusinessLogicError("The first line cannot be removed")

        del self.lines[line_id]
        if self._pending.pop(line_id, None):
            logger.info(f"[DRAFT] Discarded pending stock request for removed line {line_id}")
        self._recompute()

    def select_product(self, line_id: int, product: ProductSnapshot) -> Optional[StockSelectionRequest]:
        """
        Put a product on a line.

        Products sold from stock move the line to PENDING_STOCK and return a
        request for the external stock selector; everything else is
        committed right away.

        Raises:
            InsufficientStockError: if the product has nothing available.
        """
        self._begin()
        line = self._get_line(line_id)

        if product.available_quantity <= 0:
            raise InsufficientStockError(
                product.name, line.quantity or Decimal('1'), product.available_quantity, line_id=line_id
            )

        if self._pending.pop(line_id, None):
            logger.info(f"[DRAFT] Superseded pending stock request for line {line_id}")

        if product.requires_stock_selection:
            request = StockSelectionRequest(line_id=line_id, product_id=product.id, token=uuid.uuid4().hex)
            line.mark_pending(product, request.token)
            self._pending[line_id] = request
            self._recompute()
            return request

        self._commit(line, product)
        self._recompute()
        return None

    def resolve_stock_selection(self, line_id: int, stock: StockRef, token: Optional[str] = None) -> bool:
        """
        Complete a pending line with the chosen stock.

        Returns False (and changes nothing) when the request was superseded:
        the line was removed, re-selected, or the token is stale.
        """
        self._begin()
        request = self._pending.get(line_id)
        line = self.lines.get(line_id)
        if request is None or line is None or line.state is not LineState.PENDING_STOCK:
            logger.info(f"[DRAFT] Stock selection for line {line_id} discarded: no pending request")
            return False
        if token is not None and token != request.token:
            logger.info(f"[DRAFT] Stock selection for line {line_id} discarded: stale token")
            return False

        del self._pending[line_id]
        self._commit(line, line.product, stock)
        self._recompute()
        return True

    def set_quantity(self, line_id: int, raw: Optional[str]) -> Optional[InsufficientStockError]:
        """Apply raw quantity input. Returns the clamp warning, if any."""
        self._begin()
        line = self._get_line(line_id)
        self.last_warning = line.apply_quantity_input(raw)
        self._recompute()
        return self.last_warning

    def set_unit_price(self, line_id: int, raw: Optional[str]) -> None:
        """Below-minimum prices are accepted here and blocked at finalize."""
        self._begin()
        line = self._get_line(line_id)
        line.apply_price_input(raw)
        self._recompute()

    def set_selling_unit(self, line_id: int, unit_id: int) -> None:
        self._begin()
        line = self._get_line(line_id)
        if line.state is LineState.PENDING_STOCK:
            raise StockSelectionPendingError(line_id, line.product.name)
        if not line.is_committed:
            raise BusinessLogicError("Select a product before choosing its unit")

        unit = self.unit_catalog.find(line.product, unit_id)
        if unit is None:
            raise NotFoundError(f"Unit {unit_id} is not sold for {line.product.name}")
        line.change_unit(unit)

    # ------------------------------------------------------------------
    # Discount and payments
    # ------------------------------------------------------------------

    def set_discount(self, raw: Optional[str]) -> None:
        self._begin()
        try:
            sanitized = sanitize_decimal_input(raw)
        except ParseError:
            logger.debug(f"[DRAFT] Rejected discount input {raw!r}")
            return

        self.discount = Money.zero() if is_transient(sanitized) else Money(sanitized)
        self.discount_text = sanitized
        self._recompute()

    def add_allocation(self, method: PaymentMethod = PaymentMethod.CASH) -> int:
        """Add a payment for what is still owed. Returns its index."""
        self._begin()
        self.payment_plan = self.payment_plan.add_allocation(self.expected_net_total, method)
        return len(self.payment_plan) - 1

    def remove_allocation(self, index: int) -> None:
        self._begin()
        self.payment_plan = self.payment_plan.remove_allocation(index, self.expected_net_total)

    def set_payment_method(self, index: int, method: PaymentMethod) -> None:
        self._begin()
        rate = None
        if method is PaymentMethod.FOREIGN_CURRENCY:
            rate = self.exchange_rates.latest_rate()
        self.payment_plan = self.payment_plan.switch_method(index, method, self.expected_net_total, rate)

    def set_payment_amount(self, index: int, raw: Optional[str]) -> None:
        self._begin()
        self.payment_plan = self.payment_plan.set_amount(index, raw, self.expected_net_total)

    def set_foreign_amount(self, index: int, raw: Optional[str]) -> None:
        self._begin()
        self.payment_plan = self.payment_plan.set_foreign_amount(index, raw, self.expected_net_total)

    def set_exchange_rate(self, index: int, raw: Optional[str]) -> None:
        self._begin()
        self.payment_plan = self.payment_plan.set_exchange_rate(index, raw, self.expected_net_total)

    # ------------------------------------------------------------------
    # Credit, client, store and seller
    # ------------------------------------------------------------------

    def set_on_credit(self, on_credit: bool, today: Optional[date] = None) -> None:
        """Turning credit off clears the debt block (and its client) entirely."""
        self._begin()
        if on_credit == self.on_credit:
            return

        self.on_credit = on_credit
        if on_credit:
            today = today or date.today()
            self.debt = DebtTerms(
                client_id=self.client_id,
                due_date=today + timedelta(days=self.debt_term_days),
            )
        else:
            self.debt = None
            self.client_id = None

    def set_debt_terms(self, due_date=None, deposit=None, deposit_method=None) -> None:
        self._begin()
        if not self.on_credit or self.debt is None:
            raise BusinessLogicError("Debt terms apply only to credit sales")

        if due_date is not None:
            self.debt.due_date = due_date if isinstance(due_date, date) else date.fromisoformat(str(due_date))
        if deposit is not None:
            try:
                self.debt.deposit = Money(parse_decimal_input(str(deposit)) or 0)
            except ParseError:
                logger.debug(f"[DRAFT] Rejected deposit input {deposit!r}")
        if deposit_method is not None:
            self.debt.deposit_method = deposit_method

    def assign_client(self, client_id: Optional[int]) -> None:
        self._begin()
        self.client_id = client_id
        if self.debt is not None:
            self.debt.client_id = client_id

    def set_store(self, store_id: Optional[int]) -> None:
        """Privileged only. A new store invalidates the chosen seller."""
        self._begin()
        if not self.operator.is_privileged:
            raise UnauthorizedError("Sellers cannot change the store")
        if store_id != self.store_id:
            self.store_id = store_id
            self.sold_by = None

    def set_seller(self, user_id: Optional[int]) -> None:
        self._begin()
        if not self.operator.is_privileged:
            raise UnauthorizedError("Sellers cannot change the seller")
        self.sold_by = user_id

    # ------------------------------------------------------------------
    # Finalize
    # ------------------------------------------------------------------

    def validation_errors(self) -> list:
        """All finalize-blocking violations (empty when the draft is valid)."""
        return collect_violations(self)

    def finalize(self) -> SalePayload:
        """
        Validate every invariant and freeze the draft.

        Raises the first violation found (lines, store/seller, credit,
        minimum prices, payment reconciliation). On success the draft is
        FINALIZED and accepts no further edits.
        """
        self._begin()
        violations = self.validation_errors()
        if violations:
            logger.info(f"[DRAFT] Finalize rejected for {self.id}: {violations[0].message}")
            raise violations[0]

        payload = self._build_payload()
        self.status = DraftStatus.FINALIZED
        logger.info(f"[DRAFT] Draft {self.id} finalized: total={self.grand_total} lines={len(self.lines)}")
        return payload

    def reopen(self) -> None:
        """Back to editing after the backend rejected the payload."""
        if self.status is not DraftStatus.FINALIZED:
            raise DraftLockedError(self.status.value.lower())
        self.status = DraftStatus.EDITING

    def mark_submitted(self, sale_id=None) -> None:
        if self.status is not DraftStatus.FINALIZED:
            raise BusinessLogicError("Only a finalized draft can be submitted")
        self.status = DraftStatus.SUBMITTED
        self.sale_id = sale_id

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _begin(self) -> None:
        if not self.is_editable:
            raise DraftLockedError(self.status.value.lower())
        self.last_warning = None

    def _get_line(self, line_id: int) -> CartLine:
        line = self.lines.get(line_id)
        if line is None:
            raise NotFoundError(f"Line {line_id} not found")
        return line

    def _commit(self, line: CartLine, product: ProductSnapshot, stock: Optional[StockRef] = None) -> None:
        unit = self.unit_catalog.base_unit_for(product)
        price = product.default_price(self.fallback_price)
        self.last_warning = line.commit(product, unit, price, stock)
        logger.debug(f"[DRAFT] Line {line.local_id} committed product {product.id} at {price}")

    def _recompute(self) -> None:
        """Line totals -> grand total -> payment rebalance."""
        self.grand_total = Money.sum(line.recompute() for line in self.lines.values())
        self.payment_plan = self.payment_plan.rebalance(self.expected_net_total)

    def _build_payload(self) -> SalePayload:
        items = tuple(
            SaleItemPayload(
                product_id=line.product.id,
                quantity=line.quantity,
                unit_id=line.selected_unit.id,
                unit_price=line.unit_price,
                stock_id=line.stock.id if line.stock else None,
            )
            for line in self.lines.values()
        )
        payments = tuple(
            SalePaymentPayload(
                method=allocation.method,
                amount=allocation.amount,
                foreign_amount=allocation.foreign_amount,
                exchange_rate=allocation.exchange_rate,
                change_amount=allocation.change_amount if allocation.is_foreign else None,
            )
            for allocation in self.payment_plan
        )
        debt = None
        if self.on_credit:
            debt = SaleDebtPayload(
                client_id=self.debt.client_id,
                due_date=self.debt.due_date,
                deposit=self.debt.deposit,
                deposit_method=self.debt.deposit_method,
            )
        return SalePayload(
            store_id=self.store_id,
            total_amount=self.grand_total,
            discount_amount=self.discount,
            on_credit=self.on_credit,
            items=items,
            payments=payments,
            sold_by=self.sold_by if self.operator.is_privileged else None,
            client_id=None if self.on_credit else self.client_id,
            debt=debt,
        )

    def to_dict(self, labels=None) -> dict:
        labels = labels or DEFAULT_METHOD_LABELS
        return {
            'id': self.id,
            'status': self.status.value,
            'store': self.store_id,
            'sold_by': self.sold_by,
            'lines': [line.to_dict() for line in self.lines.values()],
            'grand_total': str(self.grand_total),
            'discount_amount': self.discount_text,
            'expected_net_total': str(self.expected_net_total),
            'payments': [allocation.to_dict(labels) for allocation in self.payment_plan],
            'payments_total': str(self.payment_plan.total_net()),
            'on_credit': self.on_credit,
            'client': self.client_id,
            'debt': self.debt.to_dict() if self.debt else None,
            'pending_stock_requests': [request.to_dict() for request in self._pending.values()],
            'sale_id': self.sale_id,
        }


def preselect_product(draft: SaleDraft, catalog: ProductCatalog, product_id: int) -> Optional[StockSelectionRequest]:
    """
    Put a catalog product on the draft's first line if it is still blank.

    An unknown id leaves the draft unchanged. A product with nothing
    available is not placed; the stock problem becomes the draft's warning.
    """
    first_line = draft.lines[next(iter(draft.lines))]
    if first_line.state is not LineState.UNSELECTED:
        return None

    product = next((p for p in catalog.search() if p.id == product_id), None)
    if product is None:
        logger.warning(f"[DRAFT] Preselected product {product_id} not found in catalog")
        return None

    try:
        return draft.select_product(first_line.local_id, product)
    except InsufficientStockError as e:
        logger.info(f"[DRAFT] Preselected product {product_id} is out of stock")
        draft.last_warning = e
        return None


def open_draft(
    operator: OperatorContext,
    catalog: Optional[ProductCatalog] = None,
    product_id: Optional[int] = None,
    **options,
) -> SaleDraft:
    """Open a new draft, optionally with a product preselected on the first line."""
    draft = SaleDraft(operator, **options)
    if catalog is not None and product_id is not None:
        preselect_product(draft, catalog, product_id)
    return draft

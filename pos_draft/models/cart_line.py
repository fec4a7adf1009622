"""Cart line model: one product entry of an in-progress sale."""
import enum
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional, Union

from pos_draft.exceptions import InsufficientStockError, ParseError
from pos_draft.models.money import Money
from pos_draft.models.product import ProductSnapshot, StockRef
from pos_draft.models.unit import UnitSpec
from pos_draft.utils.formatters import quantity_str
from pos_draft.utils.number_format import is_transient, sanitize_decimal_input

logger = logging.getLogger(__name__)


class LineState(enum.Enum):
    """Line selection state: UNSELECTED -> PENDING_STOCK -> COMMITTED."""
    UNSELECTED = "UNSELECTED"
    PENDING_STOCK = "PENDING_STOCK"
    COMMITTED = "COMMITTED"


@dataclass(frozen=True)
class Unselected:
    state = LineState.UNSELECTED


@dataclass(frozen=True)
class PendingStock:
    """Product chosen, waiting for a stock batch. Nothing is committed yet."""
    product: ProductSnapshot
    token: str
    state = LineState.PENDING_STOCK


@dataclass(frozen=True)
class Committed:
    product: ProductSnapshot
    stock: Optional[StockRef] = None
    state = LineState.COMMITTED


Selection = Union[Unselected, PendingStock, Committed]


@dataclass
class CartLine:
    """
    Cart line.

    `quantity_text` keeps the operator's raw entry ('1.', '') while
    `quantity` is the numeric value used for totals (zero while the text is
    not a number yet).
    """
    local_id: int
    selection: Selection = field(default_factory=Unselected)
    selected_unit: Optional[UnitSpec] = None
    quantity: Decimal = Decimal('1')
    quantity_text: str = '1'
    unit_price: Money = field(default_factory=Money.zero)
    price_text: str = '0'
    line_total: Money = field(default_factory=Money.zero)

    @property
    def state(self) -> LineState:
        return self.selection.state

    @property
    def product(self) -> Optional[ProductSnapshot]:
        return getattr(self.selection, 'product', None)

    @property
    def stock(self) -> Optional[StockRef]:
        return getattr(self.selection, 'stock', None)

    @property
    def is_committed(self) -> bool:
        return self.state is LineState.COMMITTED

    @property
    def is_below_minimum(self) -> bool:
        product = self.product
        return (
            self.is_committed
            and product.has_min_price
            and self.unit_price < product.min_price
        )

    def recompute(self) -> Money:
        """line_total = quantity * unit_price, zero until the line is committed."""
        if self.is_committed:
            self.line_total = self.unit_price.multiply(self.quantity)
        else:
            self.line_total = Money.zero()
        return self.line_total

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def mark_pending(self, product: ProductSnapshot, token: str) -> None:
        """Hold the product until a stock batch is chosen."""
        self.selection = PendingStock(product=product, token=token)
        self.selected_unit = None
        self.unit_price = Money.zero()
        self.price_text = '0'
        self.recompute()

    def commit(
        self,
        product: ProductSnapshot,
        unit: UnitSpec,
        price: Money,
        stock: Optional[StockRef] = None,
    ) -> Optional[InsufficientStockError]:
        """
        Commit a product to the line.

        A quantity already entered on the line is preserved (re-selection),
        clamped to the new product's availability.
        """
        self.selection = Committed(product=product, stock=stock)
        self.selected_unit = unit
        self.unit_price = price
        self.price_text = str(price)

        quantity = self.quantity if self.quantity > 0 else Decimal('1')
        warning = self._apply_quantity(quantity, quantity_str(quantity))
        self.recompute()
        return warning

    def reset(self) -> None:
        """Back to a blank line (product removed)."""
        self.selection = Unselected()
        self.selected_unit = None
        self.unit_price = Money.zero()
        self.price_text = '0'
        self.recompute()

    # ------------------------------------------------------------------
    # Operator input
    # ------------------------------------------------------------------

    def apply_quantity_input(self, raw: Optional[str]) -> Optional[InsufficientStockError]:
        """
        Apply one keystroke worth of quantity input.

        Malformed input (second separator) is ignored; '' and '.' are kept
        as transient text and count as zero. Values above availability are
        clamped and reported as a non-fatal warning.
        """
        if not self.is_committed:
            logger.debug(f"[DRAFT] Quantity ignored on {self.state.value} line {self.local_id}")
            return None

        try:
            sanitized = sanitize_decimal_input(raw)
        except ParseError:
            logger.debug(f"[DRAFT] Rejected quantity keystroke {raw!r} on line {self.local_id}")
            return None

        if is_transient(sanitized):
            self.quantity = Decimal('0')
            self.quantity_text = sanitized
            self.recompute()
            return None

        warning = self._apply_quantity(Decimal(sanitized), sanitized)
        self.recompute()
        return warning

    def apply_price_input(self, raw: Optional[str]) -> None:
        """Price input never fails: unparseable text counts as zero."""
        if not self.is_committed:
            logger.debug(f"[DRAFT] Price ignored on {self.state.value} line {self.local_id}")
            return

        try:
            sanitized = sanitize_decimal_input(raw)
            price = Money.parse_or_zero(sanitized)
        except ParseError:
            sanitized = ''
            price = Money.zero()

        self.unit_price = price
        self.price_text = sanitized
        self.recompute()

    def change_unit(self, unit: UnitSpec) -> None:
        # Price stays "per selected unit" as entered, no rescaling.
        self.selected_unit = unit

    def _apply_quantity(self, value: Decimal, text: str) -> Optional[InsufficientStockError]:
        available = max(self.product.available_quantity, Decimal('0'))
        if value > available:
            logger.warning(
                f"[DRAFT] Line {self.local_id}: quantity {value} clamped to available {available}"
            )
            self.quantity = available
            self.quantity_text = quantity_str(available)
            return InsufficientStockError(self.product.name, value, available, line_id=self.local_id)

        self.quantity = value
        self.quantity_text = text
        return None

    def to_dict(self) -> dict:
        product = self.product
        stock = self.stock
        return {
            'id': self.local_id,
            'state': self.state.value,
            'product': product.to_dict() if product else None,
            'selected_unit': self.selected_unit.to_dict() if self.selected_unit else None,
            'quantity': self.quantity_text,
            'unit_price': self.price_text,
            'line_total': str(self.line_total),
            'stock': stock.to_dict() if stock else None,
            'below_min_price': self.is_below_minimum,
        }

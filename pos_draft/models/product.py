"""Product and stock snapshots supplied by the external catalog."""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Optional, Tuple

from pos_draft.models.money import Money
from pos_draft.models.unit import UnitSpec
from pos_draft.utils.number_format import to_decimal


def _money_or_none(value) -> Optional[Money]:
    amount = to_decimal(value)
    if amount is None:
        return None
    return Money(amount)


@dataclass(frozen=True)
class ProductSnapshot:
    """
    Point-in-time view of a product as returned by the catalog search.

    The draft never re-fetches it: availability is read from the snapshot
    taken when the line was selected.
    """
    id: int
    name: str
    available_quantity: Decimal
    selling_price: Optional[Money] = None
    min_price: Optional[Money] = None
    barcode: Optional[str] = None
    extra_quantity: Decimal = Decimal('0')
    units: Tuple[UnitSpec, ...] = ()
    base_unit_id: Optional[int] = None
    requires_stock_selection: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ProductSnapshot':
        """Build a snapshot from a catalog payload (backend or engine field names)."""
        category = data.get('category_read') or {}
        units = data.get('available_units')
        if units is None:
            units = data.get('units') or []
        requires_stock = data.get('requires_stock_selection')
        if requires_stock is None:
            requires_stock = category.get('sell_from_stock', False)

        quantity = data.get('available_quantity')
        if quantity is None:
            quantity = data.get('quantity')

        return cls(
            id=int(data['id']),
            name=data.get('name') or data.get('product_name') or '',
            available_quantity=to_decimal(quantity, Decimal('0')),
            selling_price=_money_or_none(data.get('selling_price', data.get('base_price'))),
            min_price=_money_or_none(data.get('min_price')),
            barcode=data.get('barcode'),
            extra_quantity=to_decimal(data.get('extra_quantity'), Decimal('0')),
            units=tuple(UnitSpec.from_dict(unit) for unit in units),
            base_unit_id=data.get('base_unit'),
            requires_stock_selection=bool(requires_stock),
        )

    @property
    def display_quantity(self) -> Decimal:
        """Quantity shown to the operator (includes extra stock)."""
        return self.available_quantity + self.extra_quantity

    @property
    def has_min_price(self) -> bool:
        return self.min_price is not None and not self.min_price.is_zero()

    def default_price(self, fallback: Money) -> Money:
        """Selling price, else minimum price, else the configured fallback."""
        if self.selling_price is not None and not self.selling_price.is_zero():
            return self.selling_price
        if self.has_min_price:
            return self.min_price
        return fallback

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'name': self.name,
            'barcode': self.barcode,
            'available_quantity': str(self.available_quantity),
            'display_quantity': str(self.display_quantity),
            'selling_price': str(self.selling_price) if self.selling_price is not None else None,
            'min_price': str(self.min_price) if self.min_price is not None else None,
            'requires_stock_selection': self.requires_stock_selection,
        }


@dataclass(frozen=True)
class StockRef:
    """A concrete stock batch chosen by the operator for stock-sold products."""
    id: int
    attributes: Dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'StockRef':
        attributes = {key: value for key, value in data.items() if key != 'id'}
        return cls(id=int(data['id']), attributes=attributes)

    def to_dict(self) -> dict:
        return {'id': self.id, **self.attributes}

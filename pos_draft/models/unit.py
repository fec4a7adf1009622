"""Selling units and the unit catalog."""
from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Iterable, Optional, Tuple

from pos_draft.utils.number_format import to_decimal

DEFAULT_UNIT_ID = 1
DEFAULT_UNIT_SHORT_NAME = 'pcs'


@dataclass(frozen=True)
class UnitSpec:
    """
    A sellable unit of a product.

    `factor` is how many base units one of this unit represents. Quantities
    entered by the operator are always in the selected unit.
    """
    id: int
    short_name: str
    factor: Decimal = Decimal('1')
    is_base: bool = False

    @classmethod
    def from_dict(cls, data: dict) -> 'UnitSpec':
        return cls(
            id=int(data['id']),
            short_name=data.get('short_name') or data.get('shortName') or DEFAULT_UNIT_SHORT_NAME,
            factor=to_decimal(data.get('factor'), Decimal('1')),
            is_base=bool(data.get('is_base', data.get('isBase', False))),
        )

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'short_name': self.short_name,
            'factor': str(self.factor),
            'is_base': self.is_base,
        }


class UnitCatalog:
    """
    Resolves the sellable units of a product snapshot.

    Guarantees exactly one base unit per product: when the catalog declares
    none, the first declared unit is promoted; when it declares no units at
    all, a base unit of factor 1 is synthesized.
    """

    def __init__(self, default_short_name: str = DEFAULT_UNIT_SHORT_NAME):
        self.default_short_name = default_short_name

    def synthesize_base_unit(self, unit_id: Optional[int] = None) -> UnitSpec:
        return UnitSpec(
            id=unit_id or DEFAULT_UNIT_ID,
            short_name=self.default_short_name,
            factor=Decimal('1'),
            is_base=True,
        )

    def resolve(self, declared: Iterable[UnitSpec], base_unit_id: Optional[int] = None) -> Tuple[UnitSpec, ...]:
        """Return the product's units with exactly one flagged as base."""
        units = list(declared or ())
        if not units:
            return (self.synthesize_base_unit(base_unit_id),)

        base_index = next((i for i, unit in enumerate(units) if unit.is_base), 0)
        return tuple(
            replace(unit, is_base=(i == base_index)) if unit.is_base != (i == base_index) else unit
            for i, unit in enumerate(units)
        )

    def units_for(self, product) -> Tuple[UnitSpec, ...]:
        return self.resolve(product.units, product.base_unit_id)

    def base_unit_for(self, product) -> UnitSpec:
        return next(unit for unit in self.units_for(product) if unit.is_base)

    def find(self, product, unit_id: int) -> Optional[UnitSpec]:
        """Look up one of the product's units by id (None if not sellable)."""
        return next((unit for unit in self.units_for(product) if unit.id == unit_id), None)

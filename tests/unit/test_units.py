"""
Unit tests for product units and snapshots.
"""

from decimal import Decimal

from pos_draft.models import Money, ProductSnapshot, StockRef, UnitCatalog, UnitSpec


class TestUnitCatalog:
    """Base unit resolution."""

    def test_synthesizes_base_unit_when_none_declared(self, make_product):
        """Test a base unit is synthesized when none is declared."""
        catalog = UnitCatalog('pcs')
        product = make_product(base_unit_id=9)

        units = catalog.units_for(product)

        assert units == (UnitSpec(id=9, short_name='pcs', factor=Decimal('1'), is_base=True),)
        assert catalog.base_unit_for(product).id == 9

    def test_synthesized_unit_defaults_to_id_1(self, make_product):
        """Test the synthesized unit has id 1."""
        assert UnitCatalog().base_unit_for(make_product()).id == 1

    def test_flagged_base_unit_wins(self, make_product):
        """Test the flagged base unit wins."""
        units = (UnitSpec(id=2, short_name='kg'), UnitSpec(id=5, short_name='bag', is_base=True))
        product = make_product(units=units)

        assert UnitCatalog().base_unit_for(product).id == 5

    def test_first_unit_promoted_when_none_flagged(self, make_product):
        """Test the first unit is promoted when none is flagged."""
        units = (UnitSpec(id=2, short_name='kg'), UnitSpec(id=5, short_name='bag'))
        resolved = UnitCatalog().units_for(make_product(units=units))

        assert [unit.is_base for unit in resolved] == [True, False]

    def test_only_one_base_unit_kept(self, make_product):
        """Test only one base unit is kept."""
        units = (UnitSpec(id=2, short_name='kg', is_base=True), UnitSpec(id=5, short_name='bag', is_base=True))
        resolved = UnitCatalog().units_for(make_product(units=units))

        assert sum(1 for unit in resolved if unit.is_base) == 1
        assert resolved[0].is_base

    def test_find_unit(self, make_product, units):
        """Test looking up a unit by id."""
        product = make_product(units=units)
        catalog = UnitCatalog()

        assert catalog.find(product, 2).short_name == 'kg'
        assert catalog.find(product, 99) is None


class TestProductSnapshot:
    """Catalog payload parsing and pricing defaults."""

    def test_from_backend_payload(self):
        """Test parsing a backend product payload."""
        product = ProductSnapshot.from_dict({
            'id': '12',
            'product_name': 'Rebar 12mm',
            'quantity': '5.5',
            'extra_quantity': 2,
            'selling_price': '85000',
            'min_price': '80000',
            'barcode': '4780001',
            'base_unit': 3,
            'category_read': {'sell_from_stock': True},
            'available_units': [{'id': 3, 'short_name': 'pc', 'factor': 1, 'is_base': True}],
        })

        assert product.id == 12
        assert product.name == 'Rebar 12mm'
        assert product.available_quantity == Decimal('5.5')
        assert product.display_quantity == Decimal('7.5')
        assert product.selling_price == Money('85000')
        assert product.requires_stock_selection is True
        assert product.units[0].is_base

    def test_default_price_prefers_selling_price(self, make_product):
        """Test the default price prefers the selling price."""
        fallback = Money('10000')
        assert make_product(selling_price='500', min_price='400').default_price(fallback) == Money('500')

    def test_default_price_falls_back_to_min_price(self, make_product):
        """Test the default price falls back to the minimum price."""
        fallback = Money('10000')
        assert make_product(selling_price=None, min_price='400').default_price(fallback) == Money('400')
        assert make_product(selling_price='0', min_price='400').default_price(fallback) == Money('400')

    def test_default_price_uses_fallback(self, make_product):
        """Test the default price uses the fallback."""
        fallback = Money('10000')
        assert make_product(selling_price=None).default_price(fallback) == fallback

    def test_zero_min_price_is_absent(self, make_product):
        """Test a zero minimum price counts as absent."""
        assert not make_product(min_price='0').has_min_price

    def test_stock_ref_keeps_attributes(self):
        """Test a stock reference keeps its attributes."""
        stock = StockRef.from_dict({'id': 4, 'quantity': '3', 'batch': 'B-1'})

        assert stock.id == 4
        assert stock.to_dict() == {'id': 4, 'quantity': '3', 'batch': 'B-1'}
        assert stock == StockRef(id=4)

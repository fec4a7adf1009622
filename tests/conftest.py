import pytest
from decimal import Decimal

from pos_draft import create_app
from pos_draft.exceptions import SubmissionFailureError
from pos_draft.models import Money, OperatorContext, OperatorRole, ProductSnapshot, UnitSpec
from pos_draft.services.collaborators import ExchangeRateSnapshot
from pos_draft.services.sale_draft_service import SaleDraft


class FakeSaleBackend:
    """Records submitted payloads; fails when `error` is set."""

    def __init__(self):
        self.submitted = []
        self.error = None
        self.next_id = 1000

    def submit(self, payload):
        if self.error is not None:
            raise self.error
        self.submitted.append(payload)
        self.next_id += 1
        return {'id': self.next_id, **payload}


class FakeClientDirectory:
    def __init__(self):
        self.created = []

    def search(self, name):
        return [client for client in self.created if name.lower() in client['name'].lower()]

    def create(self, client_data):
        client = {'id': 500 + len(self.created), **client_data}
        self.created.append(client)
        return client


class FakeProductCatalog:
    def __init__(self, products=()):
        self.products = list(products)

    def search(self, query=None):
        if not query:
            return list(self.products)
        return [p for p in self.products if query.lower() in p.name.lower()]


@pytest.fixture
def make_product():
    """Factory for product snapshots."""
    def _make(product_id=1, name='Cement M400', available='50', selling_price='10000',
              min_price=None, requires_stock_selection=False, units=(), **kwargs):
        return ProductSnapshot(
            id=product_id,
            name=name,
            available_quantity=Decimal(available),
            selling_price=None if selling_price is None else Money(selling_price),
            min_price=None if min_price is None else Money(min_price),
            requires_stock_selection=requires_stock_selection,
            units=tuple(units),
            **kwargs
        )
    return _make


@pytest.fixture
def units():
    return (
        UnitSpec(id=1, short_name='bag', factor=Decimal('1'), is_base=True),
        UnitSpec(id=2, short_name='kg', factor=Decimal('0.02')),
    )


@pytest.fixture
def seller():
    return OperatorContext(user_id=7, store_id=3, role=OperatorRole.SELLER)


@pytest.fixture
def admin():
    return OperatorContext(user_id=1, store_id=None, role=OperatorRole.ADMIN)


@pytest.fixture
def rates():
    return ExchangeRateSnapshot(Decimal('12500'))


@pytest.fixture
def draft(seller, rates):
    """Fresh draft for a seller with an open shift."""
    return SaleDraft(seller, exchange_rates=rates)


@pytest.fixture
def admin_draft(admin, rates):
    return SaleDraft(admin, exchange_rates=rates)


@pytest.fixture
def committed_draft(draft, make_product):
    """Draft with one line: 10 x 10000 = 100000."""
    line_id = next(iter(draft.lines))
    draft.select_product(line_id, make_product())
    draft.set_quantity(line_id, '10')
    return draft


# ----------------------------------------------------------------------
# Flask
# ----------------------------------------------------------------------

@pytest.fixture
def fake_backend():
    return FakeSaleBackend()


@pytest.fixture
def fake_directory():
    return FakeClientDirectory()


@pytest.fixture
def fake_catalog(make_product):
    return FakeProductCatalog([
        make_product(),
        make_product(product_id=2, name='Rebar 12mm', available='5', selling_price='85000',
                     min_price='80000', requires_stock_selection=True),
    ])


@pytest.fixture
def app(fake_backend, fake_directory, fake_catalog):
    """Create application instance for testing, wired to in-memory collaborators."""
    app = create_app('config.TestingConfig')
    services = app.extensions['pos_draft']
    services['sale_backend'] = fake_backend
    services['client_directory'] = fake_directory
    services['product_catalog'] = fake_catalog
    return app


@pytest.fixture
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture
def operator_client(client):
    """Client logged in as a seller with an open shift."""
    with client.session_transaction() as sess:
        sess['user_id'] = 7
        sess['store_id'] = 3
        sess['role'] = 'SELLER'
        sess['has_active_shift'] = True
    return client


@pytest.fixture
def admin_client(client):
    """Client logged in as an admin (chooses store and seller)."""
    with client.session_transaction() as sess:
        sess['user_id'] = 1
        sess['role'] = 'ADMIN'
        sess['has_active_shift'] = True
    return client


@pytest.fixture
def backend_failure():
    return SubmissionFailureError("Backend rejected POST /sales/", details={'store': ['Invalid store']})

"""
Integration tests for the sale draft JSON API.
"""

import pytest

PRODUCT = {
    'id': 1,
    'product_name': 'Cement M400',
    'quantity': '50',
    'selling_price': '10000',
}

STOCK_PRODUCT = {
    'id': 2,
    'product_name': 'Rebar 12mm',
    'quantity': '5',
    'selling_price': '85000',
    'min_price': '80000',
    'category_read': {'sell_from_stock': True},
}


def _line_id(client):
    return client.get('/sales/draft').get_json()['lines'][0]['id']


def _fill(client, quantity='10'):
    """One line of 10 x 10000."""
    line_id = _line_id(client)
    client.put(f'/sales/draft/lines/{line_id}/product', json=PRODUCT)
    client.put(f'/sales/draft/lines/{line_id}/quantity', json={'quantity': quantity})
    return line_id


class TestAuthentication:
    """Tests for operator authentication."""

    def test_draft_requires_operator(self, client):
        """Test the draft requires a logged-in operator."""
        response = client.get('/sales/draft')

        assert response.status_code == 401
        assert response.get_json()['code'] == 'unauthenticated'

    def test_shift_required(self, client):
        """Test a seller without an open shift gets 409."""
        with client.session_transaction() as sess:
            sess['user_id'] = 7
            sess['store_id'] = 3
            sess['has_active_shift'] = False

        response = client.get('/sales/draft')

        assert response.status_code == 409
        assert response.get_json()['code'] == 'shift_required'


class TestDraftEndpoints:
    """Tests for draft and line endpoints."""

    def test_get_draft_creates_it_once(self, operator_client):
        """Test GET creates the draft once."""
        first = operator_client.get('/sales/draft').get_json()
        second = operator_client.get('/sales/draft').get_json()

        assert first['id'] == second['id']
        assert first['store'] == 3
        assert first['sold_by'] == 7
        assert len(first['lines']) == 1
        assert first['payments'][0]['method'] == 'CASH'

    def test_discard(self, operator_client):
        """Test discarding the draft."""
        first = operator_client.get('/sales/draft').get_json()
        response = operator_client.delete('/sales/draft')

        assert response.get_json()['discarded'] is True
        assert operator_client.get('/sales/draft').get_json()['id'] != first['id']

    def test_preselect_product(self, operator_client):
        """Test preselecting a product by query parameter."""
        data = operator_client.get('/sales/draft?product_id=1').get_json()

        assert data['lines'][0]['state'] == 'COMMITTED'
        assert data['grand_total'] == '10000.00'

    def test_preselect_out_of_stock_product(self, operator_client, fake_catalog, make_product):
        """Test an out-of-stock preselect returns the draft with a warning."""
        fake_catalog.products.append(make_product(product_id=3, name='Lime', available='0'))

        response = operator_client.get('/sales/draft?product_id=3')
        data = response.get_json()

        assert response.status_code == 200
        assert data['warning']['code'] == 'insufficient_stock'
        assert data['warning']['available'] == '0'
        assert data['lines'][0]['state'] == 'UNSELECTED'

    def test_select_and_edit_line(self, operator_client):
        """Test selecting a product and editing the quantity."""
        line_id = _fill(operator_client, '1.')
        data = operator_client.put(f'/sales/draft/lines/{line_id}/quantity', json={'quantity': '1.5'}).get_json()

        assert data['lines'][0]['quantity'] == '1.5'
        assert data['grand_total'] == '15000.00'
        assert data['payments'][0]['amount'] == '15000.00'

    def test_numeric_quantity_and_price(self, operator_client):
        """Test JSON numbers are accepted as quantity and price."""
        line_id = _fill(operator_client)

        data = operator_client.put(f'/sales/draft/lines/{line_id}/quantity', json={'quantity': 2.5}).get_json()
        assert data['lines'][0]['quantity'] == '2.5'
        assert data['grand_total'] == '25000.00'

        data = operator_client.put(f'/sales/draft/lines/{line_id}/quantity', json={'quantity': 1e-05}).get_json()
        assert data['lines'][0]['quantity'] == '0.00001'
        assert data['lines'][0]['line_total'] == '0.10'

        data = operator_client.put(f'/sales/draft/lines/{line_id}/price', json={'unit_price': 12000}).get_json()
        assert data['lines'][0]['unit_price'] == '12000'

    def test_quantity_clamp_warning(self, operator_client):
        """Test a clamped quantity returns a warning."""
        line_id = _fill(operator_client)
        data = operator_client.put(f'/sales/draft/lines/{line_id}/quantity', json={'quantity': '70'}).get_json()

        assert data['warning']['code'] == 'insufficient_stock'
        assert data['warning']['available'] == '50'
        assert data['lines'][0]['quantity'] == '50'

    def test_add_and_remove_line(self, operator_client):
        """Test adding and removing a line."""
        _fill(operator_client)
        response = operator_client.post('/sales/draft/lines')
        assert response.status_code == 201
        new_id = response.get_json()['line_id']

        data = operator_client.delete(f'/sales/draft/lines/{new_id}').get_json()
        assert len(data['lines']) == 1

    def test_remove_first_line_rejected(self, operator_client):
        """Test removing the first line is rejected."""
        line_id = _line_id(operator_client)
        operator_client.post('/sales/draft/lines')

        response = operator_client.delete(f'/sales/draft/lines/{line_id}')
        assert response.status_code == 400

    def test_unknown_line(self, operator_client):
        """Test an unknown line returns 404."""
        response = operator_client.put('/sales/draft/lines/99/quantity', json={'quantity': '1'})
        assert response.status_code == 404

    def test_stock_selection_flow(self, operator_client):
        """Test the stock selection round trip."""
        line_id = _line_id(operator_client)
        data = operator_client.put(f'/sales/draft/lines/{line_id}/product', json=STOCK_PRODUCT).get_json()

        request = data['stock_request']
        assert data['lines'][0]['state'] == 'PENDING_STOCK'

        stale = operator_client.put(f'/sales/draft/lines/{line_id}/stock',
                                    json={'stock': {'id': 4}, 'token': 'stale'}).get_json()
        assert stale['resolved'] is False

        data = operator_client.put(f'/sales/draft/lines/{line_id}/stock',
                                   json={'stock': {'id': 4, 'quantity': '5'}, 'token': request['token']}).get_json()
        assert data['resolved'] is True
        assert data['lines'][0]['stock']['id'] == 4
        assert data['grand_total'] == '85000.00'


class TestPaymentEndpoints:
    """Tests for payment endpoints."""

    def test_split_payment(self, operator_client):
        """Test splitting a payment across methods."""
        _fill(operator_client)
        operator_client.put('/sales/draft/discount', json={'discount': '10000'})
        operator_client.put('/sales/draft/payments/0', json={'amount': '60000'})

        response = operator_client.post('/sales/draft/payments', json={'method': 'CARD'})
        data = response.get_json()

        assert response.status_code == 201
        assert data['payments'][1]['amount'] == '30000.00'
        assert data['payments'][1]['label'] == 'Карта'

    def test_add_payment_when_fully_paid(self, operator_client):
        """Test adding a payment when fully paid is rejected."""
        _fill(operator_client)
        response = operator_client.post('/sales/draft/payments', json={'method': 'CARD'})

        assert response.status_code == 400

    def test_foreign_currency_payment(self, operator_client):
        """Test a foreign currency payment with change."""
        _fill(operator_client)
        data = operator_client.put('/sales/draft/payments/0', json={
            'method': 'FOREIGN_CURRENCY',
            'foreign_amount': '10',
        }).get_json()

        payment = data['payments'][0]
        assert payment['amount'] == '125000.00'
        assert payment['change_amount'] == '25000.00'
        assert payment['net_contribution'] == '100000.00'

    def test_exchange_rate_push(self, operator_client):
        """Test a pushed rate is used for foreign payments."""
        _fill(operator_client)
        response = operator_client.put('/sales/exchange-rate', json={'rate': '13000'})
        assert response.get_json()['rate'] == '13000'

        data = operator_client.put('/sales/draft/payments/0', json={'method': 'FOREIGN_CURRENCY'}).get_json()
        assert data['payments'][0]['exchange_rate'] == '13000'

    @pytest.mark.parametrize('rate', ['-1', '0', 'NaN', 'Infinity', '-Infinity'])
    def test_invalid_exchange_rate(self, operator_client, rate):
        """Test unusable exchange rates are rejected."""
        response = operator_client.put('/sales/exchange-rate', json={'rate': rate})
        assert response.status_code == 400
        assert response.get_json()['code'] == 'business_rule'

    def test_rejected_rate_keeps_previous(self, operator_client):
        """Test a rejected rate keeps the previous one in use."""
        _fill(operator_client)
        operator_client.put('/sales/exchange-rate', json={'rate': 'Infinity'})

        response = operator_client.put('/sales/draft/payments/0', json={'method': 'FOREIGN_CURRENCY'})
        assert response.status_code == 200
        assert response.get_json()['payments'][0]['exchange_rate'] == '12500'

    def test_unknown_payment_method(self, operator_client):
        """Test an unknown payment method is rejected."""
        response = operator_client.put('/sales/draft/payments/0', json={'method': 'BITCOIN'})
        assert response.status_code == 400


class TestCreditAndClientEndpoints:
    """Tests for credit, client, store and seller endpoints."""

    def test_credit_sale_terms(self, operator_client):
        """Test setting credit sale terms."""
        _fill(operator_client)
        data = operator_client.put('/sales/draft/credit', json={
            'on_credit': True,
            'due_date': '2024-12-31',
            'deposit': '5000',
            'deposit_method': 'Click',
        }).get_json()

        assert data['on_credit'] is True
        assert data['debt']['due_date'] == '2024-12-31'
        assert data['debt']['deposit'] == '5000.00'
        assert data['debt']['deposit_payment_method'] == 'CLICK'

    def test_invalid_due_date(self, operator_client):
        """Test an invalid due date is rejected."""
        response = operator_client.put('/sales/draft/credit', json={'on_credit': True, 'due_date': '31/12/2024'})
        assert response.status_code == 400

    def test_create_client(self, operator_client, fake_directory):
        """Test creating and attaching a client."""
        operator_client.put('/sales/draft/credit', json={'on_credit': True})
        response = operator_client.post('/sales/draft/client', json={
            'name': 'Aziz', 'phone_number': '+998901234567', 'address': 'Tashkent',
        })
        data = response.get_json()

        assert response.status_code == 201
        assert data['client'] == data['created_client']['id']
        assert data['debt']['client'] == data['client']
        assert fake_directory.created[0]['type'] == 'Физ.лицо'

    def test_create_client_missing_field(self, operator_client):
        """Test a missing client field is rejected."""
        response = operator_client.post('/sales/draft/client', json={'name': 'Aziz'})

        assert response.status_code == 422
        assert response.get_json()['field'] == 'phone_number'

    def test_seller_cannot_change_store(self, operator_client):
        """Test a seller cannot change the store."""
        response = operator_client.put('/sales/draft/store', json={'store_id': 9})
        assert response.status_code == 403

    def test_admin_sets_store_and_seller(self, admin_client):
        """Test an admin sets store and seller."""
        admin_client.put('/sales/draft/store', json={'store_id': 3})
        data = admin_client.put('/sales/draft/seller', json={'user_id': 7}).get_json()

        assert data['store'] == 3
        assert data['sold_by'] == 7


class TestSubmission:
    """Tests for validation and submission."""

    def test_validation_lists_violations(self, operator_client):
        """Test validation lists the violations."""
        data = operator_client.get('/sales/draft/validation').get_json()

        assert data['valid'] is False
        assert data['errors'][0]['code'] == 'missing_required_field'

    def test_submit_success(self, operator_client, fake_backend):
        """Test a successful submission."""
        _fill(operator_client)
        response = operator_client.post('/sales/draft/submit')
        data = response.get_json()

        assert response.status_code == 201
        assert data['draft']['status'] == 'SUBMITTED'
        assert fake_backend.submitted[0]['sale_items'][0]['quantity'] == '10'

        # Next request starts a fresh draft
        fresh = operator_client.get('/sales/draft').get_json()
        assert fresh['id'] != data['draft']['id']

    def test_submit_below_minimum_price(self, operator_client, fake_backend):
        """Test a below-minimum price blocks submission."""
        line_id = _line_id(operator_client)
        operator_client.put(f'/sales/draft/lines/{line_id}/product', json={**STOCK_PRODUCT, 'category_read': {}})
        operator_client.put(f'/sales/draft/lines/{line_id}/price', json={'unit_price': '70000'})

        response = operator_client.post('/sales/draft/submit')

        assert response.status_code == 422
        assert response.get_json()['code'] == 'below_minimum_price'
        assert fake_backend.submitted == []
        assert operator_client.get('/sales/draft').get_json()['status'] == 'EDITING'

    def test_submit_backend_failure_reopens(self, operator_client, fake_backend, backend_failure):
        """Test a backend rejection reopens the draft."""
        _fill(operator_client)
        fake_backend.error = backend_failure

        response = operator_client.post('/sales/draft/submit')

        assert response.status_code == 502
        assert response.get_json()['details'] == {'store': ['Invalid store']}
        assert operator_client.get('/sales/draft').get_json()['status'] == 'EDITING'

    def test_submit_unexpected_error_reopens(self, operator_client, fake_backend):
        """Test an unexpected backend error reopens the draft."""
        line_id = _fill(operator_client)
        fake_backend.error = RuntimeError('connection pool closed')

        response = operator_client.post('/sales/draft/submit')

        assert response.status_code == 502
        assert response.get_json()['code'] == 'submission_failure'
        data = operator_client.put(f'/sales/draft/lines/{line_id}/quantity', json={'quantity': '2'}).get_json()
        assert data['status'] == 'EDITING'
        assert data['grand_total'] == '20000.00'


def test_metrics_endpoint(operator_client):
    """Test the metrics endpoint exposes sale counters."""
    _fill(operator_client)
    operator_client.post('/sales/draft/submit')

    body = operator_client.get('/metrics').get_data(as_text=True)
    assert 'sale_finalize_total' in body
    assert 'sale_submission_total' in body

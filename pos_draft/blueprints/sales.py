"""Sales blueprint - JSON API driving the operator's sale draft."""
from contextlib import contextmanager
from datetime import date
from decimal import Decimal
from typing import Any, Dict, Iterator, Optional

from flask import Blueprint, current_app, g, jsonify, request

from pos_draft.blueprints.metrics import sale_finalize_total, sale_submission_total
from pos_draft.exceptions import BusinessLogicError, DraftError, SubmissionFailureError
from pos_draft.middleware import require_operator
from pos_draft.models.payment import PaymentMethod, normalize_payment_method
from pos_draft.models.product import ProductSnapshot, StockRef
from pos_draft.services.customer_service import create_and_attach_client
from pos_draft.services.sale_draft_service import SaleDraft, preselect_product
from pos_draft.services.sales_service import submit_sale

sales_bp = Blueprint('sales', __name__, url_prefix='/sales')


def _services() -> Dict[str, Any]:
    return current_app.extensions['pos_draft']


@contextmanager
def _checkout() -> Iterator[SaleDraft]:
    with _services()['registry'].checkout(g.operator) as draft:
        yield draft


def _json_body() -> Dict[str, Any]:
    return request.get_json(silent=True) or {}


def _as_int(value, field: str) -> Optional[int]:
    if value is None or value == '':
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise BusinessLogicError(f"Invalid {field}: {value!r}")


def _as_bool(value) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ('1', 'true', 'yes', 'on')
    return bool(value)


def _as_date(value, field: str) -> Optional[date]:
    if value is None or value == '':
        return None
    try:
        return date.fromisoformat(str(value))
    except ValueError:
        raise BusinessLogicError(f"Invalid {field}: {value!r}")


def _raw(value) -> Optional[str]:
    """Operator input as text for the keystroke parser; JSON numbers in plain notation."""
    if value is None:
        return None
    if isinstance(value, (int, float, Decimal)) and not isinstance(value, bool):
        return format(Decimal(str(value)), 'f')
    return str(value)


def _method(value) -> PaymentMethod:
    return normalize_payment_method(value, _services()['labels'])


def _draft_response(draft: SaleDraft, status: int = 200, **extra):
    """Serialized draft plus the non-fatal warning of the last operation, if any."""
    body = draft.to_dict(_services()['labels'])
    if draft.last_warning is not None:
        body['warning'] = draft.last_warning.to_dict()
    body.update(extra)
    return jsonify(body), status


# ----------------------------------------------------------------------
# Draft
# ----------------------------------------------------------------------

@sales_bp.route('/draft', methods=['GET'])
@require_operator
def get_draft():
    """Get or create the operator's draft; ?product_id= preselects a product."""
    product_id = _as_int(request.args.get('product_id'), 'product_id')
    with _checkout() as draft:
        stock_request = None
        if product_id is not None:
            stock_request = preselect_product(draft, _services()['product_catalog'], product_id)
        extra = {'stock_request': stock_request.to_dict()} if stock_request else {}
        return _draft_response(draft, **extra)


@sales_bp.route('/draft', methods=['DELETE'])
@require_operator
def discard_draft():
    discarded = _services()['registry'].discard(g.operator)
    return jsonify({'status': 'ok', 'discarded': discarded})


# ----------------------------------------------------------------------
# Lines
# ----------------------------------------------------------------------

@sales_bp.route('/draft/lines', methods=['POST'])
@require_operator
def add_line():
    with _checkout() as draft:
        line_id = draft.add_line()
        return _draft_response(draft, 201, line_id=line_id)


@sales_bp.route('/draft/lines/<int:line_id>', methods=['DELETE'])
@require_operator
def remove_line(line_id):
    with _checkout() as draft:
        draft.remove_line(line_id)
        return _draft_response(draft)


@sales_bp.route('/draft/lines/<int:line_id>/product', methods=['PUT'])
@require_operator
def select_product(line_id):
    """Body: the product snapshot (or {"product": {...}})."""
    data = _json_body()
    product_data = data.get('product', data)
    if not product_data.get('id'):
        raise BusinessLogicError("Product id is required")

    product = ProductSnapshot.from_dict(product_data)
    with _checkout() as draft:
        stock_request = draft.select_product(line_id, product)
        extra = {'stock_request': stock_request.to_dict()} if stock_request else {}
        return _draft_response(draft, **extra)


@sales_bp.route('/draft/lines/<int:line_id>/stock', methods=['PUT'])
@require_operator
def resolve_stock(line_id):
    """Body: {"stock": {...}, "token": "..."}. A stale answer changes nothing."""
    data = _json_body()
    stock_data = data.get('stock') or {}
    if not stock_data.get('id'):
        raise BusinessLogicError("Stock id is required")

    with _checkout() as draft:
        resolved = draft.resolve_stock_selection(line_id, StockRef.from_dict(stock_data), data.get('token'))
        return _draft_response(draft, resolved=resolved)


@sales_bp.route('/draft/lines/<int:line_id>/quantity', methods=['PUT'])
@require_operator
def set_quantity(line_id):
    raw = _json_body().get('quantity')
    with _checkout() as draft:
        draft.set_quantity(line_id, _raw(raw))
        return _draft_response(draft)


@sales_bp.route('/draft/lines/<int:line_id>/price', methods=['PUT'])
@require_operator
def set_unit_price(line_id):
    raw = _json_body().get('unit_price')
    with _checkout() as draft:
        draft.set_unit_price(line_id, _raw(raw))
        return _draft_response(draft)


@sales_bp.route('/draft/lines/<int:line_id>/unit', methods=['PUT'])
@require_operator
def set_selling_unit(line_id):
    unit_id = _as_int(_json_body().get('unit_id'), 'unit_id')
    if unit_id is None:
        raise BusinessLogicError("unit_id is required")

    with _checkout() as draft:
        draft.set_selling_unit(line_id, unit_id)
        return _draft_response(draft)


# ----------------------------------------------------------------------
# Discount and payments
# ----------------------------------------------------------------------

@sales_bp.route('/draft/discount', methods=['PUT'])
@require_operator
def set_discount():
    raw = _json_body().get('discount')
    with _checkout() as draft:
        draft.set_discount(_raw(raw))
        return _draft_response(draft)


@sales_bp.route('/draft/payments', methods=['POST'])
@require_operator
def add_payment():
    method = _method(_json_body().get('method'))
    with _checkout() as draft:
        index = draft.add_allocation(method)
        return _draft_response(draft, 201, payment_index=index)


@sales_bp.route('/draft/payments/<int:index>', methods=['DELETE'])
@require_operator
def remove_payment(index):
    with _checkout() as draft:
        draft.remove_allocation(index)
        return _draft_response(draft)


@sales_bp.route('/draft/payments/<int:index>', methods=['PUT'])
@require_operator
def update_payment(index):
    """
    Edit one payment allocation.

    Body keys (all optional, applied in this order): method, amount,
    foreign_amount, exchange_rate.
    """
    data = _json_body()
    with _checkout() as draft:
        if 'method' in data:
            draft.set_payment_method(index, _method(data['method']))
        if 'amount' in data:
            draft.set_payment_amount(index, _raw(data['amount']))
        if 'foreign_amount' in data:
            draft.set_foreign_amount(index, _raw(data['foreign_amount']))
        if 'exchange_rate' in data:
            draft.set_exchange_rate(index, _raw(data['exchange_rate']))
        return _draft_response(draft)


# ----------------------------------------------------------------------
# Credit, client, store and seller
# ----------------------------------------------------------------------

@sales_bp.route('/draft/credit', methods=['PUT'])
@require_operator
def set_credit():
    """Body: on_credit, and optionally due_date, deposit, deposit_method."""
    data = _json_body()
    with _checkout() as draft:
        if 'on_credit' in data:
            draft.set_on_credit(_as_bool(data['on_credit']))

        terms = {}
        if 'due_date' in data:
            terms['due_date'] = _as_date(data['due_date'], 'due_date')
        if 'deposit' in data:
            terms['deposit'] = _raw(data['deposit'])
        if 'deposit_method' in data:
            terms['deposit_method'] = _method(data['deposit_method'])
        if terms:
            draft.set_debt_terms(**terms)
        return _draft_response(draft)


@sales_bp.route('/draft/client', methods=['PUT'])
@require_operator
def assign_client():
    client_id = _as_int(_json_body().get('client_id'), 'client_id')
    with _checkout() as draft:
        draft.assign_client(client_id)
        return _draft_response(draft)


@sales_bp.route('/draft/client', methods=['POST'])
@require_operator
def create_client():
    """Create an ad-hoc client in the directory and attach it to the draft."""
    data = _json_body()
    with _checkout() as draft:
        created = create_and_attach_client(draft, _services()['client_directory'], data)
        return _draft_response(draft, 201, created_client=created)


@sales_bp.route('/draft/store', methods=['PUT'])
@require_operator
def set_store():
    store_id = _as_int(_json_body().get('store_id'), 'store_id')
    with _checkout() as draft:
        draft.set_store(store_id)
        return _draft_response(draft)


@sales_bp.route('/draft/seller', methods=['PUT'])
@require_operator
def set_seller():
    user_id = _as_int(_json_body().get('user_id'), 'user_id')
    with _checkout() as draft:
        draft.set_seller(user_id)
        return _draft_response(draft)


@sales_bp.route('/exchange-rate', methods=['PUT'])
@require_operator
def update_exchange_rate():
    """Push the latest rate; drafts read it when a payment switches to foreign currency."""
    raw = _json_body().get('rate')
    try:
        rate = _services()['rates'].update(raw)
    except ValueError as e:
        raise BusinessLogicError(str(e))
    return jsonify({'status': 'ok', 'rate': str(rate)})


# ----------------------------------------------------------------------
# Validation and submission
# ----------------------------------------------------------------------

@sales_bp.route('/draft/validation', methods=['GET'])
@require_operator
def validate_draft():
    with _checkout() as draft:
        errors = draft.validation_errors()
        return jsonify({
            'valid': not errors,
            'errors': [error.to_dict() for error in errors],
        })


@sales_bp.route('/draft/submit', methods=['POST'])
@require_operator
def submit():
    """
    Finalize the draft and hand the payload to the sale backend.

    Returns 201 with the created sale. A rejected finalize leaves the draft
    editable; a backend rejection reopens it for retry.
    """
    services = _services()
    with _checkout() as draft:
        try:
            sale = submit_sale(draft, services['sale_backend'], services['labels'])
        except SubmissionFailureError:
            sale_finalize_total.labels(outcome='ok').inc()
            sale_submission_total.labels(outcome='failure').inc()
            raise
        except DraftError as e:
            sale_finalize_total.labels(outcome=e.code).inc()
            raise

        sale_finalize_total.labels(outcome='ok').inc()
        sale_submission_total.labels(outcome='success').inc()
        current_app.logger.info(f"[DRAFT] Sale {draft.sale_id} created by user {g.operator.user_id}")
        return jsonify({'status': 'ok', 'sale': sale, 'draft': draft.to_dict(services['labels'])}), 201

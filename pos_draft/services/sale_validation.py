"""Finalize checks for a sale draft, in the order they are enforced."""
from typing import List

from pos_draft.exceptions import (
    BelowMinimumPriceError, BusinessLogicError, MissingRequiredFieldError,
    PaymentMismatchError, StockSelectionPendingError
)
from pos_draft.models.cart_line import LineState


def _check_lines(draft) -> List[BusinessLogicError]:
    errors = []
    for line in draft.lines.values():
        if line.state is LineState.UNSELECTED:
            errors.append(MissingRequiredFieldError('product', line_id=line.local_id))
        elif line.state is LineState.PENDING_STOCK:
            errors.append(StockSelectionPendingError(line.local_id, line.product.name))
        elif line.selected_unit is None:
            errors.append(MissingRequiredFieldError('selling_unit', line_id=line.local_id))
        elif line.quantity <= 0:
            errors.append(MissingRequiredFieldError('quantity', line_id=line.local_id))
    return errors


def _check_store_and_seller(draft) -> List[BusinessLogicError]:
    errors = []
    if not draft.store_id:
        errors.append(MissingRequiredFieldError('store'))
    if draft.operator.is_privileged and not draft.sold_by:
        errors.append(MissingRequiredFieldError('sold_by'))
    return errors


def _check_credit(draft) -> List[BusinessLogicError]:
    if not draft.on_credit:
        return []
    errors = []
    debt = draft.debt
    if debt is None or not debt.client_id:
        errors.append(MissingRequiredFieldError('client'))
    if debt is None or not debt.due_date:
        errors.append(MissingRequiredFieldError('due_date'))
    return errors


def _check_min_prices(draft) -> List[BusinessLogicError]:
    return [
        BelowMinimumPriceError(line.local_id, line.product.name, line.unit_price, line.product.min_price)
        for line in draft.lines.values()
        if line.is_below_minimum
    ]


def _check_payments(draft) -> List[BusinessLogicError]:
    expected = draft.expected_net_total
    if draft.payment_plan.is_balanced(expected, draft.epsilon):
        return []
    return [PaymentMismatchError(draft.payment_plan.total_net(), expected)]


CHECKS = (
    _check_lines,
    _check_store_and_seller,
    _check_credit,
    _check_min_prices,
    _check_payments,
)


def collect_violations(draft) -> List[BusinessLogicError]:
    """Every finalize-blocking violation, in enforcement order."""
    errors = []
    for check in CHECKS:
        errors.extend(check(draft))
    return errors

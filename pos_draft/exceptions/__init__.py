"""Custom exceptions for the POS sale draft engine."""


class DraftError(Exception):
    """Base exception for all application errors."""
    code = 'error'

    def __init__(self, message="An internal error occurred", status_code=500, payload=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload

    def to_dict(self):
        rv = dict(self.payload or ())
        rv['message'] = self.message
        rv['code'] = self.code
        rv['status'] = 'error'
        return rv


class BusinessLogicError(DraftError):
    """Exception raised for business logic violations."""
    code = 'business_rule'

    def __init__(self, message, status_code=400, payload=None):
        super().__init__(message, status_code, payload)


class NotFoundError(DraftError):
    """Exception raised when a resource is not found."""
    code = 'not_found'

    def __init__(self, message="Resource not found", payload=None):
        super().__init__(message, 404, payload)


class UnauthorizedError(DraftError):
    """Raised when an operator lacks permission for an action."""
    code = 'unauthorized'

    def __init__(self, message="Unauthorized access"):
        super().__init__(message, 403)


class ParseError(BusinessLogicError):
    """Malformed numeric input. Recovered locally, never reaches the operator."""
    code = 'parse_error'

    def __init__(self, raw):
        self.raw = raw
        super().__init__(f"Cannot parse numeric input: {raw!r}", payload={'raw': raw})


class InsufficientStockError(BusinessLogicError):
    """Raised (or returned as a warning) when a quantity exceeds available stock."""
    code = 'insufficient_stock'

    def __init__(self, product_name, required, available, line_id=None):
        req_fmt = _fmt_qty(required)
        avail_fmt = _fmt_qty(available)
        self.line_id = line_id
        self.required = required
        self.available = available
        message = f"Insufficient stock for {product_name}: requested {req_fmt}, available {avail_fmt}"
        super().__init__(message, status_code=409, payload={
            'line_id': line_id,
            'requested': req_fmt,
            'available': avail_fmt,
        })


class BelowMinimumPriceError(BusinessLogicError):
    """A line is priced below the product's configured minimum price."""
    code = 'below_minimum_price'

    def __init__(self, line_id, product_name, unit_price, min_price):
        self.line_id = line_id
        self.unit_price = unit_price
        self.min_price = min_price
        message = f"Cannot sell {product_name} below minimum price {min_price} (got {unit_price})"
        super().__init__(message, status_code=422, payload={
            'line_id': line_id,
            'unit_price': str(unit_price),
            'min_price': str(min_price),
        })


class PaymentMismatchError(BusinessLogicError):
    """Payments (net of change) do not add up to the expected net total."""
    code = 'payment_mismatch'

    def __init__(self, paid, expected):
        self.paid = paid
        self.expected = expected
        self.discrepancy = paid.subtract(expected)
        message = f"Payments total ({paid}) must equal total minus discount ({expected})"
        super().__init__(message, status_code=422, payload={
            'paid': str(paid),
            'expected': str(expected),
            'discrepancy': str(self.discrepancy),
        })


class MissingRequiredFieldError(BusinessLogicError):
    """A field required for finalize is not set."""
    code = 'missing_required_field'

    def __init__(self, field, line_id=None):
        self.field = field
        self.line_id = line_id
        payload = {'field': field}
        if line_id is not None:
            payload['line_id'] = line_id
        super().__init__(f"Field '{field}' is required", status_code=422, payload=payload)


class StockSelectionPendingError(BusinessLogicError):
    """A line still waits for a stock choice."""
    code = 'stock_selection_pending'

    def __init__(self, line_id, product_name=None):
        self.line_id = line_id
        message = f"Stock selection pending for {product_name or 'line ' + str(line_id)}"
        super().__init__(message, status_code=422, payload={'line_id': line_id})


class SubmissionFailureError(DraftError):
    """The sale backend rejected the finalized payload."""
    code = 'submission_failure'

    def __init__(self, message="Sale submission failed", details=None):
        self.details = details
        super().__init__(message, status_code=502, payload={'details': details} if details else None)


class DraftLockedError(BusinessLogicError):
    """Mutation attempted on a draft that has been finalized or submitted."""
    code = 'draft_locked'

    def __init__(self, status):
        super().__init__(f"Draft is {status} and can no longer be edited", status_code=409)


class ShiftRequiredError(BusinessLogicError):
    """The operator must open a shift before selling."""
    code = 'shift_required'

    def __init__(self):
        super().__init__("An open shift is required to create a sale", status_code=409)


def _fmt_qty(value):
    try:
        return f"{int(value)}" if value % 1 == 0 else f"{value:.2f}".rstrip('0').rstrip('.')
    except TypeError:
        return str(value)

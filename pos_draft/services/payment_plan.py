"""
Payment plan service - allocations against the expected net total.

Rules:
- One allocation: its amount is forced to the expected net total.
- Several allocations: all but the last are operator-controlled, the last
  absorbs the remainder (floored at zero).
- Foreign-currency allocations are never forced: their amount derives from
  foreign_amount * exchange_rate and only their change is recomputed against
  what is still owed when they are reached.

A PaymentPlan is immutable; every operation returns a new plan that has
been rebalanced from scratch, never patched incrementally.
"""
import logging
from dataclasses import replace
from decimal import Decimal
from typing import Iterable, Iterator, Optional, Tuple

from pos_draft.exceptions import BusinessLogicError, ParseError
from pos_draft.models.money import DEFAULT_EPSILON, Money
from pos_draft.models.payment import PaymentAllocation, PaymentMethod
from pos_draft.utils.number_format import parse_decimal_input

logger = logging.getLogger(__name__)

FOREIGN_AMOUNT_PLACES = Decimal('0.000001')


def rebalance(allocations: Iterable[PaymentAllocation], expected_net_total: Money) -> Tuple[PaymentAllocation, ...]:
    """
    Pure rebalance: (current allocations, expected net total) -> new allocations.

    Walks the allocations in order keeping a running net paid; each foreign
    allocation settles its change against what is left, and the last
    non-foreign allocation is set to whatever is still owed.
    """
    allocations = tuple(allocations)
    if not allocations:
        return allocations

    last_index = len(allocations) - 1
    paid = Money.zero()
    result = []
    for index, allocation in enumerate(allocations):
        remaining = expected_net_total.subtract(paid).floor_zero()
        if allocation.is_foreign:
            allocation = allocation.settle_against(remaining)
        elif index == last_index:
            allocation = replace(allocation, amount=remaining, change_amount=Money.zero())
        result.append(allocation)
        paid = paid.add(allocation.net_contribution)

    return tuple(result)


class PaymentPlan:
    """Ordered, immutable sequence of payment allocations."""

    def __init__(self, allocations: Iterable[PaymentAllocation] = ()):
        self._allocations = tuple(allocations)

    @classmethod
    def single(cls, method: PaymentMethod = PaymentMethod.CASH) -> 'PaymentPlan':
        return cls((PaymentAllocation(method=method),))

    @property
    def allocations(self) -> Tuple[PaymentAllocation, ...]:
        return self._allocations

    def __len__(self) -> int:
        return len(self._allocations)

    def __iter__(self) -> Iterator[PaymentAllocation]:
        return iter(self._allocations)

    def __getitem__(self, index: int) -> PaymentAllocation:
        return self._allocations[index]

    def __eq__(self, other):
        if isinstance(other, PaymentPlan):
            return self._allocations == other.allocations
        return NotImplemented

    def __repr__(self):
        return f"<PaymentPlan({list(self._allocations)!r})>"

    # ------------------------------------------------------------------
    # Aggregates
    # ------------------------------------------------------------------

    def total_net(self) -> Money:
        return Money.sum(allocation.net_contribution for allocation in self._allocations)

    def total_change(self) -> Money:
        return Money.sum(allocation.change_amount for allocation in self._allocations)

    def discrepancy(self, expected_net_total: Money) -> Money:
        return self.total_net().subtract(expected_net_total)

    def is_balanced(self, expected_net_total: Money, epsilon=DEFAULT_EPSILON) -> bool:
        return self.total_net().compare_within_epsilon(expected_net_total, epsilon)

    # ------------------------------------------------------------------
    # Operations (each returns a new plan)
    # ------------------------------------------------------------------

    def rebalance(self, expected_net_total: Money) -> 'PaymentPlan':
        return PaymentPlan(rebalance(self._allocations, expected_net_total))

    def add_allocation(self, expected_net_total: Money, method: PaymentMethod = PaymentMethod.CASH) -> 'PaymentPlan':
        """Append an allocation for whatever is still owed."""
        remaining = expected_net_total.subtract(self.total_net())
        if remaining <= Money.zero():
            raise BusinessLogicError("Payments already cover the total")

        allocation = PaymentAllocation(method=method, amount=remaining)
        return PaymentPlan(self._allocations + (allocation,)).rebalance(expected_net_total)

    def remove_allocation(self, index: int, expected_net_total: Money) -> 'PaymentPlan':
        if index <= 0 or index >= len(self._allocations):
            raise BusinessLogicError(f"Payment {index} cannot be removed")

        allocations = self._allocations[:index] + self._allocations[index + 1:]
        return PaymentPlan(allocations).rebalance(expected_net_total)

    def switch_method(
        self,
        index: int,
        method: PaymentMethod,
        expected_net_total: Money,
        latest_rate: Optional[Decimal] = None,
    ) -> 'PaymentPlan':
        """
        Change the method of one allocation.

        Switching to foreign currency seeds the latest known rate and keeps
        the current base amount as the implied foreign amount.
        """
        current = self._get(index)
        if current.method is method:
            return self

        if method is PaymentMethod.FOREIGN_CURRENCY:
            rate = latest_rate
            if rate is None or rate <= 0:
                raise BusinessLogicError("No exchange rate available")
            foreign_amount = (current.amount.amount / rate).quantize(FOREIGN_AMOUNT_PLACES)
            updated = PaymentAllocation.foreign(foreign_amount, rate)
        else:
            updated = PaymentAllocation(method=method, amount=current.amount)

        logger.debug(f"[PAYMENTS] Allocation {index}: {current.method.value} -> {method.value}")
        return self._with(index, updated).rebalance(expected_net_total)

    def set_amount(self, index: int, raw: Optional[str], expected_net_total: Money) -> 'PaymentPlan':
        """
        Operator edit of a non-foreign amount.

        The edit is clipped to the headroom left by the other
        operator-controlled allocations. Editing one of the first N-1
        allocations rebalances the last; editing the last one (including a
        single allocation) leaves any shortfall in place so that another
        allocation can be added.
        """
        current = self._get(index)
        if current.is_foreign:
            logger.debug(f"[PAYMENTS] Amount of foreign allocation {index} is derived, edit ignored")
            return self

        try:
            value = parse_decimal_input(raw)
        except ParseError:
            logger.debug(f"[PAYMENTS] Rejected amount input {raw!r}")
            return self

        amount = Money(value) if value is not None else Money.zero()
        last_index = len(self._allocations) - 1
        others = Money.sum(
            allocation.net_contribution
            for i, allocation in enumerate(self._allocations)
            if i != index and i != last_index
        )
        headroom = expected_net_total.subtract(others).floor_zero()
        if amount > headroom:
            logger.debug(f"[PAYMENTS] Amount {amount} clipped to headroom {headroom}")
            amount = headroom

        plan = self._with(index, replace(current, amount=amount))
        if index < last_index:
            return plan.rebalance(expected_net_total)
        return plan

    def set_foreign_amount(self, index: int, raw: Optional[str], expected_net_total: Money) -> 'PaymentPlan':
        current = self._get(index)
        if not current.is_foreign:
            logger.debug(f"[PAYMENTS] Allocation {index} is not foreign, foreign amount ignored")
            return self

        try:
            value = parse_decimal_input(raw)
        except ParseError:
            logger.debug(f"[PAYMENTS] Rejected foreign amount input {raw!r}")
            return self

        foreign_amount = value if value is not None else Decimal('0')
        updated = PaymentAllocation.foreign(foreign_amount, current.exchange_rate)
        return self._with(index, updated).rebalance(expected_net_total)

    def set_exchange_rate(self, index: int, raw: Optional[str], expected_net_total: Money) -> 'PaymentPlan':
        """
        Change the rate of a foreign allocation.

        The foreign amount is re-implied from the previous amount and rate
        (old_amount / old_rate) so the customer's foreign cash is preserved.
        """
        current = self._get(index)
        if not current.is_foreign:
            logger.debug(f"[PAYMENTS] Allocation {index} is not foreign, rate ignored")
            return self

        try:
            new_rate = parse_decimal_input(raw)
        except ParseError:
            logger.debug(f"[PAYMENTS] Rejected rate input {raw!r}")
            return self

        if new_rate is None or new_rate <= 0:
            return self

        old_rate = current.exchange_rate or Decimal('1')
        implied = (current.amount.amount / old_rate).quantize(FOREIGN_AMOUNT_PLACES)
        updated = PaymentAllocation.foreign(implied, new_rate)
        return self._with(index, updated).rebalance(expected_net_total)

    def _get(self, index: int) -> PaymentAllocation:
        if index < 0 or index >= len(self._allocations):
            raise BusinessLogicError(f"Payment {index} does not exist")
        return self._allocations[index]

    def _with(self, index: int, allocation: PaymentAllocation) -> 'PaymentPlan':
        allocations = list(self._allocations)
        allocations[index] = allocation
        return PaymentPlan(allocations)

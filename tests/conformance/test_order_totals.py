"""
Order Total Conformance Tests

INVARIANT: An order's total is the sum of its line subtotals.

    ∀ order O:
        O.total_tokens = Σ i.tokens_per_item × i.quantity  for i in O.items

The check runs at construction, so an Order with a wrong total cannot exist,
whether it is built in memory or loaded from the store.
"""

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from token_ledger import (
    MemoryStore, Order, OrderSettlement, OrderStatus, OrderType, Role, WalletLedger,
    compute_order_total,
)
from tests.fake_store import FixedClock, make_items, run


cart_lines = st.lists(
    st.tuples(st.integers(min_value=0, max_value=50), st.integers(min_value=1, max_value=10)),
    min_size=1,
    max_size=8,
)


class TestOrderTotalProperties:
    """Property-based order total tests."""

    @given(cart_lines)
    @settings(max_examples=50)
    def test_placed_total_is_sum_of_lines(self, lines):
        """
        PROPERTY: place_order() records total_tokens = Σ price × quantity.
        """
        async def scenario():
            ledger = WalletLedger(MemoryStore(), verbose=False, starting_balances={Role.STUDENT: 5000})
            settlement = OrderSettlement(ledger.store, ledger, verbose=False)
            await ledger.initialize("u1", Role.STUDENT)
            return await settlement.place_order("u1", "m", "M", make_items(lines))

        order = run(scenario())
        assert isinstance(order, Order)
        assert order.total_tokens == sum(tokens * qty for tokens, qty in lines)

    @given(cart_lines, st.integers(min_value=1, max_value=100))
    @settings(max_examples=50)
    def test_wrong_total_cannot_be_built(self, lines, delta):
        """
        PROPERTY: Constructing an Order with any other total raises ValueError.
        """
        items = tuple(make_items(lines))
        with pytest.raises(ValueError):
            Order(
                id="order-x", user_id="u1", mess_id="m", mess_name="M",
                items=items, total_tokens=compute_order_total(items) + delta,
                status=OrderStatus.PENDING,
                order_type=OrderType.NORMAL,
                delivery_requested=False,
                created_at=FixedClock().now,
            )


class TestOrderTotalExamples:
    """Explicit order total examples."""

    def test_lunch_cart(self, cart):
        assert compute_order_total(cart) == 12

    def test_status_change_keeps_total(self, ledger, settlement, cart):
        async def scenario():
            await ledger.initialize("u1", Role.STUDENT)
            order = await settlement.place_order("u1", "m", "M", cart)
            return await settlement.update_order_status(order.id, OrderStatus.DELIVERED)

        assert run(scenario()).total_tokens == 12

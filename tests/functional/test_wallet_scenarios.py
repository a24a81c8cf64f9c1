"""
test_wallet_scenarios.py - End-to-end wallet and order scenario tests

Tests complete user journeys against a directory-backed store:
- Spend, then overspend
- Lunch order placement and payment
- Sharing the whole balance
- Owner works an order through to delivery
- Data survives a restart of the session
"""

import pytest
from datetime import timedelta

from token_ledger import (
    JsonFileStore, Order, OrderStatus, Rejected, RejectReason, Role, Session,
    TransactionType, WalletLedger, IllegalStatusTransition,
)
from tests.fake_store import FixedClock, make_items, run, student


class TestSpendScenario:
    """A student spends, then tries to spend more than is left."""

    def test_debit_then_overspend(self, tmp_path):
        async def scenario():
            ledger = WalletLedger(
                JsonFileStore(tmp_path), verbose=False, starting_balances={Role.STUDENT: 50},
            )
            await ledger.initialize("u1", Role.STUDENT)
            first = await ledger.debit(30, "Lunch")
            head = ledger.transactions[0]
            second = await ledger.debit(25, "Dinner")
            return first, head, second, ledger.wallet

        first, head, second, wallet = run(scenario())
        assert first is True
        assert head.type == TransactionType.DEBIT
        assert head.amount == -30
        assert second is False
        assert wallet.balance == 20
        assert len(wallet.transactions) == 2


class TestLunchOrderScenario:
    """A student orders 2 × 4-token and 4 × 1-token items."""

    def test_lunch_order(self, tmp_path):
        async def scenario():
            session = Session(
                JsonFileStore(tmp_path), verbose=False, starting_balances={Role.STUDENT: 50},
            )
            await session.login(student("u1"))
            order = await session.place_order("mess-1", "Sunshine Mess", make_items([(4, 2), (1, 4)]))
            return session, order

        session, order = run(scenario())
        assert isinstance(order, Order)
        assert order.total_tokens == 12
        assert order.status == OrderStatus.PENDING
        assert session.wallet.balance == 38
        assert session.wallet.transactions[0].amount == -12
        assert session.orders.get_active_orders() == [order]


class TestShareScenario:
    """A student shares exactly what is left."""

    def test_transfer_entire_balance(self, tmp_path):
        async def scenario():
            ledger = WalletLedger(
                JsonFileStore(tmp_path), verbose=False, starting_balances={Role.STUDENT: 10},
            )
            await ledger.initialize("u1", Role.STUDENT)
            ok = await ledger.transfer("u2", "Karan", 10)
            return ok, ledger.wallet

        ok, wallet = run(scenario())
        assert ok is True
        assert wallet.balance == 0
        assert wallet.transactions[0].type == TransactionType.TRANSFER_SENT
        assert wallet.transactions[0].amount == -10


class TestOwnerScenario:
    """A student orders and the mess owner works the order through."""

    def test_order_to_delivery(self, tmp_path):
        clock = FixedClock()
        store = JsonFileStore(tmp_path)

        async def scenario():
            customer = Session(store, verbose=False, clock=clock)
            await customer.login(student("u1"))
            order = await customer.place_order("mess-1", "Sunshine Mess", make_items([(5, 1)]))
            customer.dispose()

            owner = Session(store, verbose=False, strict_status=True, clock=clock)
            await owner.login(student("u9").with_role(Role.MESS_OWNER))
            stamps = {}
            for status in (OrderStatus.CONFIRMED, OrderStatus.PREPARING, OrderStatus.READY):
                clock.advance(minutes=5)
                updated = await owner.orders.update_order_status(order.id, status)
                stamps[status] = updated.completed_at
            clock.advance(minutes=5)
            delivered = await owner.orders.update_order_status(order.id, OrderStatus.DELIVERED)
            return order, stamps, delivered, owner

        order, stamps, delivered, owner = run(scenario())
        assert all(stamp is None for stamp in stamps.values())
        assert delivered.completed_at == order.created_at + timedelta(minutes=20)
        assert owner.orders.get_completed_orders() == [delivered]

    def test_owner_cannot_skip_steps_in_strict_mode(self, tmp_path):
        async def scenario():
            owner = Session(JsonFileStore(tmp_path), verbose=False, strict_status=True)
            await owner.sign_up("Ravi", "ravi@mess.in", Role.MESS_OWNER)
            ready = [o for o in owner.orders.orders if o.status == OrderStatus.READY][0]
            confirmed = [o for o in owner.orders.orders if o.status == OrderStatus.CONFIRMED][0]
            await owner.orders.update_order_status(ready.id, OrderStatus.DELIVERED)
            with pytest.raises(IllegalStatusTransition):
                await owner.orders.update_order_status(confirmed.id, OrderStatus.DELIVERED)
            return owner

        owner = run(scenario())
        assert len(owner.orders.get_completed_orders()) == 1
        assert len(owner.orders.get_active_orders()) == 2


class TestRestartScenario:
    """Everything is read back from disk by a new session."""

    def test_state_survives_restart(self, tmp_path):
        async def first_run():
            session = Session(JsonFileStore(tmp_path), verbose=False)
            await session.sign_up("Asha", "asha@campus.edu", Role.STUDENT)
            await session.place_order("mess-1", "Sunshine Mess", make_items([(4, 2), (1, 4)]))
            await session.share_tokens("u2", "Karan", 8)
            return session.user, session.wallet.wallet

        async def second_run():
            async with Session(JsonFileStore(tmp_path), verbose=False) as session:
                return session.user, session.wallet.wallet, session.orders.orders

        user, wallet = run(first_run())
        restored_user, restored_wallet, orders = run(second_run())
        assert restored_user == user
        assert restored_wallet == wallet
        assert restored_wallet.balance == 100 - 12 - 8
        assert len(orders) == 1

    def test_clear_all_data_then_sign_up_again(self, tmp_path):
        async def scenario():
            session = Session(JsonFileStore(tmp_path), verbose=False)
            await session.sign_up("Asha", "asha@campus.edu", Role.STUDENT)
            await session.place_order("mess-1", "Sunshine Mess", make_items([(50, 2)]))
            await session.clear_all_data()
            restored = await session.restore()
            await session.sign_up("Asha", "asha@campus.edu", Role.STUDENT)
            return restored, session.wallet.balance, session.orders.orders

        restored, balance, orders = run(scenario())
        assert restored is None
        assert balance == 100
        assert orders == []

    def test_rejection_is_not_persisted(self, tmp_path):
        async def scenario():
            session = Session(JsonFileStore(tmp_path), verbose=False)
            await session.sign_up("Asha", "asha@campus.edu", Role.STUDENT)
            result = await session.place_order("mess-1", "Sunshine Mess", make_items([(101, 1)]))
            fresh = Session(JsonFileStore(tmp_path), verbose=False)
            await fresh.restore()
            return result, fresh.wallet.balance, fresh.orders.orders

        result, balance, orders = run(scenario())
        assert isinstance(result, Rejected)
        assert result.reason == RejectReason.INSUFFICIENT_BALANCE
        assert balance == 100
        assert orders == []

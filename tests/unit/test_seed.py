"""
test_seed.py - Unit tests for role-dependent starting data
"""

from datetime import timedelta

from token_ledger import (
    OrderStatus, OrderType, Role, TransactionType,
    STARTING_BALANCES, WELCOME_BONUS_DESCRIPTION,
    audit_wallet, create_default_wallet, create_sample_orders,
    create_welcome_wallet, starting_balance,
)
from tests.fake_store import FixedClock


NOW = FixedClock().now


class TestStartingBalance:
    def test_defaults(self):
        assert starting_balance(Role.STUDENT) == 100
        assert starting_balance(Role.PROVIDER) == 85
        assert starting_balance(Role.MESS_OWNER) == 50

    def test_override(self):
        assert starting_balance(Role.PROVIDER, {Role.PROVIDER: 7}) == 7
        assert starting_balance(Role.STUDENT, {Role.PROVIDER: 7}) == STARTING_BALANCES[Role.STUDENT]


class TestWelcomeWallet:
    def test_single_bonus_credit(self):
        wallet = create_welcome_wallet("u1", 85, NOW)
        assert wallet.balance == 85
        (bonus,) = wallet.transactions
        assert bonus.type == TransactionType.CREDIT
        assert bonus.description == WELCOME_BONUS_DESCRIPTION
        assert bonus.timestamp == NOW

    def test_zero_amount_is_empty(self):
        wallet = create_welcome_wallet("u1", 0, NOW)
        assert wallet.balance == 0
        assert wallet.transactions == ()


class TestDefaultWallet:
    """The wallet written at sign-up."""

    def test_student_history_sums_to_balance(self):
        wallet = create_default_wallet("u1", Role.STUDENT, NOW)
        assert wallet.balance == 100
        assert audit_wallet(wallet)['valid']
        assert {t.user_id for t in wallet.transactions} == {"u1"}

    def test_student_history_is_most_recent_first(self):
        wallet = create_default_wallet("u1", Role.STUDENT, NOW)
        stamps = [t.timestamp for t in wallet.transactions]
        assert stamps == sorted(stamps, reverse=True)
        assert stamps[0] == NOW - timedelta(days=1)

    def test_transaction_ids_are_unique(self):
        wallet = create_default_wallet("u1", Role.STUDENT, NOW)
        ids = [t.id for t in wallet.transactions]
        assert len(ids) == len(set(ids))

    def test_owner_and_provider_get_welcome_bonus(self):
        for role in (Role.MESS_OWNER, Role.PROVIDER):
            wallet = create_default_wallet("u1", role, NOW)
            assert len(wallet.transactions) == 1
            assert wallet.balance == STARTING_BALANCES[role]

    def test_student_override_gives_welcome_bonus(self):
        wallet = create_default_wallet("u1", Role.STUDENT, NOW, {Role.STUDENT: 20})
        assert wallet.balance == 20
        (bonus,) = wallet.transactions
        assert bonus.description == WELCOME_BONUS_DESCRIPTION


class TestSampleOrders:
    """Orders seeded for a new mess owner."""

    def test_three_active_orders(self):
        orders = create_sample_orders("owner-1", "mess-owner-1", NOW)
        assert len(orders) == 3
        assert [o.status for o in orders] == [
            OrderStatus.PREPARING, OrderStatus.CONFIRMED, OrderStatus.READY,
        ]
        assert not any(o.is_terminal for o in orders)

    def test_totals_and_scoping(self):
        orders = create_sample_orders("owner-1", "mess-owner-1", NOW)
        assert [o.total_tokens for o in orders] == [12, 5, 6]
        assert all(o.mess_id == "mess-owner-1" for o in orders)
        assert all(o.id.endswith("-owner-1") for o in orders)
        assert all(o.user_id != "owner-1" for o in orders)

    def test_packed_delivery_sample(self):
        packed = create_sample_orders("owner-1", "m", NOW)[1]
        assert packed.order_type == OrderType.PACKED
        assert packed.delivery_requested is True

"""
conftest.py - Shared pytest fixtures for token ledger tests

Provides common fixtures used across unit, conformance and functional tests:
- Stores (fake with fault injection)
- Wallet ledgers (uninitialized, students start with 50 tokens)
- Order settlement wired to that wallet
- Sessions
- The standard lunch cart

Async services are driven with asyncio.run() from synchronous tests. Each
test runs its whole scenario inside one coroutine, so every service object
lives on a single event loop.
"""

import pytest

from token_ledger import Role, WalletLedger, OrderSettlement, Session

from tests.fake_store import FakeStore, FixedClock, make_items


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def ledger(store, clock):
    """Uninitialized wallet ledger whose students start with 50 tokens."""
    return WalletLedger(
        store, verbose=False, starting_balances={Role.STUDENT: 50}, clock=clock,
    )


@pytest.fixture
def settlement(store, ledger, clock):
    return OrderSettlement(store, ledger, verbose=False, clock=clock)


@pytest.fixture
def session(store, clock):
    return Session(store, verbose=False, starting_balances={Role.STUDENT: 50}, clock=clock)


@pytest.fixture
def cart():
    """The 4×2 + 1×4 lunch cart (12 tokens)."""
    return make_items([(4, 2), (1, 4)])

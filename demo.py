#!/usr/bin/env python3
"""
demo.py - Interactive Tutorial: The Campus Token Wallet Step by Step

A walkthrough of how tokens move when a student signs up, orders a meal,
shares tokens with a friend and a mess owner works through the order queue.
Each step builds on the previous one. Press Enter to advance.

WHAT YOU'LL LEARN:
  1-3:   Identity     - Sessions, sign-up, the seeded wallet
  4-6:   Spending     - Placing orders, rejections, the debit gate
  7-8:   Sharing      - Transfers and the balance audit
  9-10:  Owners       - Order lifecycle, storage failures and refunds

Run:
    python demo.py           # Interactive mode (press Enter for each step)
    python demo.py --quick   # Run all steps without pausing
"""

from dataclasses import dataclass
import asyncio
import sys
import tempfile

from token_ledger import (
    # Session and services
    Session, JsonFileStore, MemoryStore,
    # Records
    OrderItem, OrderStatus, OrderType, Rejected, Role,
    # Errors
    IllegalStatusTransition, StorageError,
)


# ============================================================================
# CONFIGURATION
# ============================================================================

@dataclass
class DemoConfig:
    """Configuration for the tutorial. Modify these to experiment."""
    student_name: str = "Asha Rao"
    student_email: str = "asha@campus.edu"
    owner_name: str = "Ravi Mehta"
    owner_email: str = "ravi@sunshinemess.in"
    mess_id: str = "mess-1"
    mess_name: str = "Sunshine Mess"
    share_amount: int = 10


CONFIG = DemoConfig()

QUICK_MODE = "--quick" in sys.argv


def wait_for_enter():
    """Pause for user input unless in quick mode."""
    if not QUICK_MODE:
        input("\n[Press Enter to continue...]")


def step_header(number: int, title: str, objective: str):
    print(f"\n{'='*70}")
    print(f"STEP {number}: {title}")
    print(f"{'='*70}")
    print(f"\nObjective: {objective}\n")


def section_header(text: str):
    print(f"\n--- {text} ---\n")


def show_wallet(session: Session, limit: int = 5):
    wallet = session.wallet.wallet
    print(f"Balance: {wallet.balance} tokens")
    for tx in wallet.transactions[:limit]:
        print(f"  {tx.amount:+4d}  {tx.type.value:<18} {tx.description}")


def lunch_cart():
    return [
        OrderItem("item-1", "Paneer Butter Masala", quantity=2, tokens_per_item=4),
        OrderItem("item-2", "Roti", quantity=4, tokens_per_item=1),
    ]


# ============================================================================
# PHASE 1: IDENTITY (Steps 1-3)
# ============================================================================

async def step_01_empty_session(store) -> Session:
    step_header(1, "The Empty Session",
        "A session starts unauthenticated; nothing is loaded until someone logs in.")

    session = Session(store, verbose=True)
    await session.restore()
    print(f"Session state: {session.state.value}")
    print(f"Wallet loaded: {session.wallet.is_initialized}")
    return session


async def step_02_sign_up(session: Session) -> Session:
    step_header(2, "Signing Up",
        "sign_up() writes the role's demo wallet, then logs the user in.")

    print(f">>> await session.sign_up({CONFIG.student_name!r}, {CONFIG.student_email!r}, Role.STUDENT)")
    user = await session.sign_up(CONFIG.student_name, CONFIG.student_email, Role.STUDENT)
    print(f"\nLogged in as {user.name} ({user.id}), role={user.role.value}")
    return session


async def step_03_seeded_wallet(session: Session) -> Session:
    step_header(3, "The Seeded Wallet",
        "The starting balance is exactly the sum of the starting history.")

    show_wallet(session, limit=10)
    audit = session.wallet.verify_balance()
    print(f"\nAudit: valid={audit['valid']} balance={audit['balance']} expected={audit['expected']}")
    return session


# ============================================================================
# PHASE 2: SPENDING (Steps 4-6)
# ============================================================================

async def step_04_place_order(session: Session) -> Session:
    step_header(4, "Placing an Order",
        "The order total is debited first; the order is saved only if the debit succeeds.")

    result = await session.place_order(CONFIG.mess_id, CONFIG.mess_name, lunch_cart())
    section_header("Result")
    print(repr(result))
    show_wallet(session, limit=1)
    return session


async def step_05_empty_cart(session: Session) -> Session:
    step_header(5, "Rejections Are Values",
        "Business rejections come back as Rejected, never as exceptions.")

    result = await session.place_order(CONFIG.mess_id, CONFIG.mess_name, [])
    print(f"Empty cart -> {result.reason.value}: {result.message}")

    feast = [OrderItem("item-9", "Mess Feast", quantity=50, tokens_per_item=6)]
    result = await session.place_order(CONFIG.mess_id, CONFIG.mess_name, feast, OrderType.PACKED)
    print(f"Feast      -> {result.reason.value}: {result.message}")
    print(f"\nOrders on file: {len(session.orders.orders)}")
    return session


async def step_06_active_orders(session: Session) -> Session:
    step_header(6, "Active vs Completed",
        "Delivered and cancelled orders are terminal; everything else is active.")

    print(f"Active:    {session.orders.get_active_orders()}")
    print(f"Completed: {session.orders.get_completed_orders()}")
    return session


# ============================================================================
# PHASE 3: SHARING (Steps 7-8)
# ============================================================================

async def step_07_share_tokens(session: Session) -> Session:
    step_header(7, "Sharing Tokens",
        "A transfer records transfer-sent on the sender's wallet only.")

    ok = await session.share_tokens("user-friend", "Karan", CONFIG.share_amount)
    print(f"Transfer of {CONFIG.share_amount} accepted: {ok}")
    ok = await session.share_tokens("user-friend", "Karan", 10_000)
    print(f"Transfer of 10000 accepted: {ok}")
    show_wallet(session, limit=3)
    return session


async def step_08_audit(session: Session) -> Session:
    step_header(8, "The Balance Audit",
        "After every operation, balance == sum of transaction amounts.")

    audit = session.wallet.verify_balance()
    print(f"valid={audit['valid']} difference={audit['difference']}")
    await session.logout()
    print(f"After logout: {session.state.value}")
    return session


# ============================================================================
# PHASE 4: OWNERS (Steps 9-10)
# ============================================================================

async def step_09_owner_lifecycle(store) -> Session:
    step_header(9, "The Order Lifecycle",
        "Mess owners see every order and move them pending → … → delivered.")

    owner = Session(store, verbose=True, strict_status=True)
    await owner.sign_up(CONFIG.owner_name, CONFIG.owner_email, Role.MESS_OWNER)
    for order in owner.orders.get_active_orders():
        print(f"  {order!r}")

    target = owner.orders.get_active_orders()[0]
    for status in (OrderStatus.READY, OrderStatus.DELIVERED, OrderStatus.PENDING):
        try:
            updated = await owner.orders.update_order_status(target.id, status)
            print(f"  {updated.id} completed_at={updated.completed_at}")
        except IllegalStatusTransition as e:
            print(f"  refused: {e}")
    return owner


async def step_10_refund_on_failure() -> Session:
    step_header(10, "Refund on Storage Failure",
        "If the order cannot be saved after the debit, the tokens are credited back.")

    class ReadOnlyOrders(MemoryStore):
        async def set(self, key, value):
            if key == "orders":
                raise StorageError("orders partition is read-only")
            await super().set(key, value)

    store = ReadOnlyOrders()
    student = Session(store, verbose=True)
    await student.sign_up(CONFIG.student_name, CONFIG.student_email, Role.STUDENT)
    before = student.wallet.balance
    result = await student.place_order(CONFIG.mess_id, CONFIG.mess_name, lunch_cart())
    assert isinstance(result, Rejected)
    print(f"\nBalance before={before} after={student.wallet.balance}")
    show_wallet(student, limit=2)
    return student


async def main():
    print("=" * 70)
    print("       CAMPUS TOKEN WALLET - INTERACTIVE TUTORIAL")
    print("=" * 70)

    if QUICK_MODE:
        print("Running in QUICK mode (no pauses)")
    else:
        print("Running in INTERACTIVE mode (press Enter to advance)")
    wait_for_enter()

    with tempfile.TemporaryDirectory() as directory:
        store = JsonFileStore(directory)

        session = await step_01_empty_session(store)
        wait_for_enter()
        session = await step_02_sign_up(session)
        wait_for_enter()
        session = await step_03_seeded_wallet(session)
        wait_for_enter()

        session = await step_04_place_order(session)
        wait_for_enter()
        session = await step_05_empty_cart(session)
        wait_for_enter()
        session = await step_06_active_orders(session)
        wait_for_enter()

        session = await step_07_share_tokens(session)
        wait_for_enter()
        session = await step_08_audit(session)
        wait_for_enter()

        owner = await step_09_owner_lifecycle(store)
        wait_for_enter()
        owner.dispose()

    await step_10_refund_on_failure()

    print("\n" + "=" * 70)
    print("       TUTORIAL COMPLETE!")
    print("=" * 70)
    print("""
    You've learned:
      - A Session scopes the wallet and orders to one user
      - Debits are the gate for order creation
      - Rejections are values; storage failures are exceptions (or refunds)
      - balance == sum(transactions) after every step

    Next steps:
      - Run tests: pytest tests/
    """)


if __name__ == "__main__":
    asyncio.run(main())

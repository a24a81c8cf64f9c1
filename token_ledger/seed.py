"""
seed.py - Role-dependent starting data

Builds the wallet a user starts with and, for mess owners, a handful of
sample orders so the owner dashboard has something to manage on first run.

Every seeded wallet satisfies the balance invariant: its balance equals the
sum of its transaction amounts.
"""

from __future__ import annotations
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from .core import (
    Role, TransactionType, OrderStatus, OrderType,
    TokenTransaction, Wallet, OrderItem, Order,
    STARTING_BALANCES, DEFAULT_STARTING_BALANCE, WELCOME_BONUS_DESCRIPTION,
    compute_order_total, new_id,
)


# Demo history for a new student, oldest first: (type, amount, description, days_ago)
STUDENT_HISTORY = (
    (TransactionType.CREDIT, 50, "Welcome bonus - Start your food journey!", 7),
    (TransactionType.TRANSFER_RECEIVED, 25, "Received from roommate", 6),
    (TransactionType.TRANSFER_SENT, -10, "Transferred to friend", 5),
    (TransactionType.DEBIT, -8, "Order from Spice Garden - Breakfast", 3),
    (TransactionType.CREDIT, 50, "Monthly token recharge", 2),
    (TransactionType.DEBIT, -7, "Order from Sunshine Mess - Lunch", 1),
)

# Orders waiting on a new mess owner: (id, items, status, order_type, delivery_requested, hours_ago)
SAMPLE_ORDERS = (
    (
        "order-demo-1",
        (("Paneer Butter Masala", 2, 4), ("Roti", 4, 1)),
        OrderStatus.PREPARING, OrderType.NORMAL, False, 0.5,
    ),
    (
        "order-demo-2",
        (("Dal Tadka", 1, 3), ("Rice", 1, 2)),
        OrderStatus.CONFIRMED, OrderType.PACKED, True, 1.0,
    ),
    (
        "order-demo-3",
        (("Chicken Biryani", 1, 6),),
        OrderStatus.READY, OrderType.NORMAL, False, 0.25,
    ),
)

SAMPLE_MESS_NAME = "My Mess"


def starting_balance(role: Role, overrides: Optional[Dict[Role, int]] = None) -> int:
    """Starting balance for a role, honouring per-ledger overrides."""
    if overrides and role in overrides:
        return overrides[role]
    return STARTING_BALANCES.get(role, DEFAULT_STARTING_BALANCE)


def create_welcome_wallet(user_id: str, amount: int, now: datetime) -> Wallet:
    """
    A wallet holding amount tokens, carried by a single welcome-bonus credit.

    A zero amount gives an empty wallet with no history.
    """
    if amount == 0:
        return Wallet(user_id=user_id, balance=0)
    tx = TokenTransaction(
        id=new_id("txn"),
        user_id=user_id,
        type=TransactionType.CREDIT,
        amount=amount,
        description=WELCOME_BONUS_DESCRIPTION,
        timestamp=now,
    )
    return Wallet(user_id=user_id, balance=amount, transactions=(tx,))


def create_default_wallet(
    user_id: str,
    role: Role,
    now: datetime,
    overrides: Optional[Dict[Role, int]] = None,
) -> Wallet:
    """
    Build the demo wallet written at sign-up.

    Students get a short history (STUDENT_HISTORY) so the wallet screen is
    populated. Other roles, and students whose starting balance is
    overridden, get a plain welcome bonus of the starting balance.
    """
    if role != Role.STUDENT or (overrides and role in overrides):
        return create_welcome_wallet(user_id, starting_balance(role, overrides), now)

    wallet = Wallet(user_id=user_id, balance=0)
    for tx_type, amount, description, days_ago in STUDENT_HISTORY:
        wallet = wallet.apply(TokenTransaction(
            id=new_id("txn"),
            user_id=user_id,
            type=tx_type,
            amount=amount,
            description=description,
            timestamp=now - timedelta(days=days_ago),
        ))
    return wallet


def create_sample_orders(owner_id: str, mess_id: str, now: datetime) -> List[Order]:
    """Sample orders placed by demo students at the owner's mess."""
    orders = []
    for index, (order_id, lines, status, order_type, delivery, hours_ago) in enumerate(SAMPLE_ORDERS):
        items = tuple(
            OrderItem(
                menu_item_id=f"menu-{index}-{line}",
                name=name,
                quantity=quantity,
                tokens_per_item=tokens,
            )
            for line, (name, quantity, tokens) in enumerate(lines)
        )
        orders.append(Order(
            id=f"{order_id}-{owner_id}",
            user_id=f"student-{owner_id}-{index}",
            mess_id=mess_id,
            mess_name=SAMPLE_MESS_NAME,
            items=items,
            total_tokens=compute_order_total(items),
            status=status,
            order_type=order_type,
            delivery_requested=delivery,
            created_at=now - timedelta(hours=hours_ago),
        ))
    return orders

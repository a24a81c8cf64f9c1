"""
token_ledger - Campus Token Wallet Ledger

Token balances, transaction history and order settlement for a campus food
ordering app, persisted through an async key-value store.

Usage:
    import asyncio
    from token_ledger import Session, MemoryStore, OrderItem, Role

    async def main():
        async with Session(MemoryStore()) as session:
            await session.sign_up("Asha", "asha@campus.edu", Role.STUDENT)

            result = await session.place_order("mess-1", "Sunshine Mess", [
                OrderItem("item-1", "Paneer Butter Masala", quantity=2, tokens_per_item=4),
                OrderItem("item-2", "Roti", quantity=4, tokens_per_item=1),
            ])
            print(result, session.wallet.balance)

    asyncio.run(main())
"""

# Core types
from .core import (
    Role,
    TransactionType,
    OrderStatus,
    OrderType,
    PortionSize,
    RejectReason,
    SessionState,
    User,
    TokenTransaction,
    Wallet,
    MealCustomization,
    OrderItem,
    Order,
    Rejected,
    PlaceOrderResult,
    LedgerError,
    StorageError,
    WalletNotInitialized,
    NotAuthenticated,
    OrderNotFound,
    IllegalStatusTransition,
    compute_order_total,
    is_transition_allowed,
    partition_orders,
    audit_wallet,
    KEY_USER,
    KEY_WALLET,
    KEY_ORDERS,
    KEY_MESSES,
    KEY_MENU_ITEMS,
    KEY_ROLE,
    ALL_KEYS,
    SESSION_KEYS,
    STARTING_BALANCES,
    DEFAULT_STARTING_BALANCE,
    WELCOME_BONUS_DESCRIPTION,
    STATUS_TRANSITIONS,
    TERMINAL_STATUSES,
)

# Storage
from .storage import Store, MemoryStore, JsonFileStore

# Services
from .wallet import WalletLedger
from .orders import OrderSettlement
from .session import Session

# Seed data
from .seed import (
    create_welcome_wallet,
    create_default_wallet,
    create_sample_orders,
    starting_balance,
)

__all__ = [
    # Core
    'Role', 'TransactionType', 'OrderStatus', 'OrderType', 'PortionSize',
    'RejectReason', 'SessionState',
    'User', 'TokenTransaction', 'Wallet', 'MealCustomization', 'OrderItem',
    'Order', 'Rejected', 'PlaceOrderResult',
    'LedgerError', 'StorageError', 'WalletNotInitialized', 'NotAuthenticated',
    'OrderNotFound', 'IllegalStatusTransition',
    'compute_order_total', 'is_transition_allowed', 'partition_orders', 'audit_wallet',
    'KEY_USER', 'KEY_WALLET', 'KEY_ORDERS', 'KEY_MESSES', 'KEY_MENU_ITEMS', 'KEY_ROLE',
    'ALL_KEYS', 'SESSION_KEYS', 'STARTING_BALANCES', 'DEFAULT_STARTING_BALANCE',
    'WELCOME_BONUS_DESCRIPTION',
    'STATUS_TRANSITIONS', 'TERMINAL_STATUSES',
    # Storage
    'Store', 'MemoryStore', 'JsonFileStore',
    # Services
    'WalletLedger', 'OrderSettlement', 'Session',
    # Seed
    'create_welcome_wallet', 'create_default_wallet', 'create_sample_orders',
    'starting_balance',
]

__version__ = '0.3.0'

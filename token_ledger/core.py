"""
Core types and pure functions for the campus token ledger.

This module provides the foundational data structures for the ledger:
1. Constants: storage keys, starting balances, status transition table
2. Enums: Role, TransactionType, OrderStatus, OrderType, RejectReason
3. Exceptions: LedgerError and domain-specific error types
4. Immutable records: User, TokenTransaction, Wallet, OrderItem, Order, Rejected
5. Pure functions: order totals, transition checks, balance audit

Records are frozen dataclasses. Every record converts to and from the JSON
shape persisted by the store (camelCase field names, ISO-8601 timestamps).
No function in this module touches storage.
"""

from __future__ import annotations
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
import uuid
from typing import Dict, List, Optional, Any, Tuple, FrozenSet, Iterable, Union


# ============================================================================
# CONSTANTS
# ============================================================================

# Logical storage keys. One JSON blob per key.
KEY_USER = "user"
KEY_WALLET = "wallet"
KEY_ORDERS = "orders"
KEY_MESSES = "messes"
KEY_MENU_ITEMS = "menu_items"
KEY_ROLE = "role"

ALL_KEYS = (KEY_USER, KEY_WALLET, KEY_ORDERS, KEY_MESSES, KEY_MENU_ITEMS, KEY_ROLE)

# Keys wiped by a full data reset. Catalog seed data survives.
SESSION_KEYS = (KEY_USER, KEY_WALLET, KEY_ORDERS, KEY_ROLE)

# Starting balance when a role has no explicit entry.
DEFAULT_STARTING_BALANCE = 50

WELCOME_BONUS_DESCRIPTION = "Welcome bonus"


# ============================================================================
# ENUMS
# ============================================================================

class Role(Enum):
    """Role tag stored with the user. Controls seeding and order visibility."""
    STUDENT = "student"
    MESS_OWNER = "mess-owner"
    PROVIDER = "provider"


class TransactionType(Enum):
    """
    Kind of wallet movement.

    CREDIT and TRANSFER_RECEIVED carry positive amounts.
    DEBIT and TRANSFER_SENT carry negative amounts.
    """
    CREDIT = "credit"
    DEBIT = "debit"
    TRANSFER_SENT = "transfer-sent"
    TRANSFER_RECEIVED = "transfer-received"


INFLOW_TYPES: FrozenSet[TransactionType] = frozenset({
    TransactionType.CREDIT,
    TransactionType.TRANSFER_RECEIVED,
})


class OrderStatus(Enum):
    """Order lifecycle: pending → confirmed → preparing → ready → delivered."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    READY = "ready"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class OrderType(Enum):
    NORMAL = "normal"   # dine-in
    PACKED = "packed"


class PortionSize(Enum):
    SMALL = "small"
    REGULAR = "regular"
    LARGE = "large"


class RejectReason(Enum):
    """
    Why an order placement was refused.

    EMPTY_CART: No items were selected.
    INSUFFICIENT_BALANCE: The wallet cannot cover the order total.
    STORAGE_ERROR: A persistence call failed; any debit has been reversed.
    """
    EMPTY_CART = "empty-cart"
    INSUFFICIENT_BALANCE = "insufficient-balance"
    STORAGE_ERROR = "storage-error"


class SessionState(Enum):
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED = "authenticated"


TERMINAL_STATUSES: FrozenSet[OrderStatus] = frozenset({
    OrderStatus.DELIVERED,
    OrderStatus.CANCELLED,
})

# Forward edges of the order lifecycle. Cancellation is allowed from every
# non-terminal status; terminal statuses have no outgoing edges.
STATUS_TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.CONFIRMED, OrderStatus.CANCELLED}),
    OrderStatus.CONFIRMED: frozenset({OrderStatus.PREPARING, OrderStatus.CANCELLED}),
    OrderStatus.PREPARING: frozenset({OrderStatus.READY, OrderStatus.CANCELLED}),
    OrderStatus.READY: frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

STARTING_BALANCES: Dict[Role, int] = {
    Role.STUDENT: 100,
    Role.PROVIDER: 85,
    Role.MESS_OWNER: DEFAULT_STARTING_BALANCE,
}


# ============================================================================
# EXCEPTIONS
# ============================================================================

class LedgerError(Exception):
    """Base exception for all ledger-related errors."""
    pass


class StorageError(LedgerError):
    """Raised when the persistent store fails to read or write a record."""
    pass


class WalletNotInitialized(LedgerError):
    """Raised when a wallet operation runs before initialize() has loaded a wallet."""
    pass


class NotAuthenticated(LedgerError):
    """Raised when an operation needs an active user and the session has none."""
    pass


class OrderNotFound(LedgerError):
    """Raised when a status update names an order that is not in the store."""
    pass


class IllegalStatusTransition(LedgerError):
    """Raised in strict mode when a status change is not an edge of the lifecycle."""
    pass


# ============================================================================
# HELPERS
# ============================================================================

def utcnow() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def new_id(prefix: str) -> str:
    """Generate a record id such as ``txn-3f2a9c1b7d40``."""
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


def format_timestamp(value: datetime) -> str:
    """Serialize a datetime to ISO-8601, treating naive values as UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp, accepting the trailing ``Z`` JavaScript emits."""
    if not isinstance(value, str):
        raise ValueError(f"Timestamp must be an ISO-8601 string, got {type(value)}")
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _require_text(value: Optional[str], what: str) -> None:
    if not value or not value.strip():
        raise ValueError(f"{what} cannot be empty")


def _put_optional(data: Dict[str, Any], key: str, value: Any) -> None:
    if value is not None:
        data[key] = value


# ============================================================================
# IDENTITY
# ============================================================================

@dataclass(frozen=True, slots=True)
class User:
    """
    The person acting on this device.

    Immutable: a role change produces a new User via dataclasses.replace.
    """
    id: str
    name: str
    email: str
    role: Role
    phone: Optional[str] = None

    def __post_init__(self):
        _require_text(self.id, "User id")
        _require_text(self.name, "User name")
        if not isinstance(self.role, Role):
            raise ValueError(f"User role must be Role, got {type(self.role)}")

    def with_role(self, role: Role) -> User:
        return replace(self, role=role)

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role.value,
        }
        _put_optional(data, "phone", self.phone)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> User:
        return cls(
            id=data["id"],
            name=data["name"],
            email=data.get("email", ""),
            role=Role(data["role"]),
            phone=data.get("phone"),
        )


# ============================================================================
# WALLET RECORDS
# ============================================================================

@dataclass(frozen=True, slots=True)
class TokenTransaction:
    """
    A single entry in a wallet's history.

    Attributes:
        id: Unique transaction identifier.
        user_id: Owner of the wallet this entry belongs to.
        type: Kind of movement (credit, debit, transfer-sent, transfer-received).
        amount: Signed token amount. Positive for inflows, negative for outflows.
        description: Human-readable reason shown in the wallet history.
        timestamp: When the entry was recorded.
        related_user_id: Counterparty for transfers.
        related_user_name: Counterparty display name for transfers.
        order_id: Order paid for by a debit.

    Immutable once created. The sign of amount must agree with type.
    """
    id: str
    user_id: str
    type: TransactionType
    amount: int
    description: str
    timestamp: datetime
    related_user_id: Optional[str] = None
    related_user_name: Optional[str] = None
    order_id: Optional[str] = None

    def __post_init__(self):
        _require_text(self.id, "Transaction id")
        _require_text(self.user_id, "Transaction user_id")
        if not isinstance(self.type, TransactionType):
            raise ValueError(f"Transaction type must be TransactionType, got {type(self.type)}")
        if not _is_int(self.amount):
            raise ValueError(f"Transaction amount must be int, got {type(self.amount)}")
        if self.amount == 0:
            raise ValueError("Transaction amount cannot be zero")
        if self.type in INFLOW_TYPES and self.amount < 0:
            raise ValueError(f"{self.type.value} amount must be positive, got {self.amount}")
        if self.type not in INFLOW_TYPES and self.amount > 0:
            raise ValueError(f"{self.type.value} amount must be negative, got {self.amount}")

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "userId": self.user_id,
            "type": self.type.value,
            "amount": self.amount,
            "description": self.description,
            "timestamp": format_timestamp(self.timestamp),
        }
        _put_optional(data, "relatedUserId", self.related_user_id)
        _put_optional(data, "relatedUserName", self.related_user_name)
        _put_optional(data, "orderId", self.order_id)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> TokenTransaction:
        return cls(
            id=data["id"],
            user_id=data["userId"],
            type=TransactionType(data["type"]),
            amount=data["amount"],
            description=data.get("description", ""),
            timestamp=parse_timestamp(data["timestamp"]),
            related_user_id=data.get("relatedUserId"),
            related_user_name=data.get("relatedUserName"),
            order_id=data.get("orderId"),
        )

    def __repr__(self) -> str:
        return f"TokenTransaction({self.type.value} {self.amount:+d}: {self.description!r})"


@dataclass(frozen=True, slots=True)
class Wallet:
    """
    Token balance plus its transaction history, most recent first.

    The balance is never negative. apply() is the only way to derive a new
    wallet state, so balance and history always move together.
    """
    user_id: str
    balance: int
    transactions: Tuple[TokenTransaction, ...] = ()

    def __post_init__(self):
        _require_text(self.user_id, "Wallet user_id")
        if not _is_int(self.balance):
            raise ValueError(f"Wallet balance must be int, got {type(self.balance)}")
        if self.balance < 0:
            raise ValueError(f"Wallet balance cannot be negative, got {self.balance}")
        if not isinstance(self.transactions, tuple):
            object.__setattr__(self, "transactions", tuple(self.transactions))

    def apply(self, tx: TokenTransaction) -> Wallet:
        """
        Return a new wallet with tx prepended and the balance adjusted by tx.amount.

        Raises:
            ValueError: If tx belongs to another user or would make the balance negative.
        """
        if tx.user_id != self.user_id:
            raise ValueError(f"Transaction for {tx.user_id} applied to wallet of {self.user_id}")
        return Wallet(
            user_id=self.user_id,
            balance=self.balance + tx.amount,
            transactions=(tx,) + self.transactions,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "userId": self.user_id,
            "balance": self.balance,
            "transactions": [tx.to_dict() for tx in self.transactions],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Wallet:
        return cls(
            user_id=data["userId"],
            balance=data["balance"],
            transactions=tuple(TokenTransaction.from_dict(t) for t in data.get("transactions", [])),
        )


def audit_wallet(wallet: Wallet, opening_balance: int = 0) -> Dict[str, Any]:
    """
    Check that a wallet's balance equals its opening balance plus its history.

    Returns:
        Dict with keys:
        - 'valid': bool - True if the balance matches the history
        - 'balance': int - Stored balance
        - 'expected': int - opening_balance + sum of transaction amounts
        - 'difference': int - balance - expected
    """
    expected = opening_balance + sum(tx.amount for tx in wallet.transactions)
    return {
        'valid': wallet.balance == expected,
        'balance': wallet.balance,
        'expected': expected,
        'difference': wallet.balance - expected,
    }


# ============================================================================
# ORDER RECORDS
# ============================================================================

@dataclass(frozen=True, slots=True)
class MealCustomization:
    portion_size: PortionSize = PortionSize.REGULAR
    add_ons: Tuple[str, ...] = ()
    special_instructions: Optional[str] = None

    def __post_init__(self):
        if not isinstance(self.add_ons, tuple):
            object.__setattr__(self, "add_ons", tuple(self.add_ons))

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "portionSize": self.portion_size.value,
            "addOns": list(self.add_ons),
        }
        _put_optional(data, "specialInstructions", self.special_instructions)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> MealCustomization:
        return cls(
            portion_size=PortionSize(data.get("portionSize", PortionSize.REGULAR.value)),
            add_ons=tuple(data.get("addOns", ())),
            special_instructions=data.get("specialInstructions"),
        )


@dataclass(frozen=True, slots=True)
class OrderItem:
    """One line of an order: a menu item, how many, and the unit price in tokens."""
    menu_item_id: str
    name: str
    quantity: int
    tokens_per_item: int
    customization: Optional[MealCustomization] = None

    def __post_init__(self):
        _require_text(self.menu_item_id, "OrderItem menu_item_id")
        if not _is_int(self.quantity) or self.quantity < 1:
            raise ValueError(f"OrderItem quantity must be an int >= 1, got {self.quantity!r}")
        if not _is_int(self.tokens_per_item) or self.tokens_per_item < 0:
            raise ValueError(f"OrderItem tokens_per_item must be an int >= 0, got {self.tokens_per_item!r}")

    @property
    def subtotal(self) -> int:
        return self.tokens_per_item * self.quantity

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "menuItemId": self.menu_item_id,
            "name": self.name,
            "quantity": self.quantity,
            "tokensPerItem": self.tokens_per_item,
        }
        if self.customization is not None:
            data["customization"] = self.customization.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> OrderItem:
        customization = data.get("customization")
        return cls(
            menu_item_id=data["menuItemId"],
            name=data.get("name", ""),
            quantity=data["quantity"],
            tokens_per_item=data["tokensPerItem"],
            customization=MealCustomization.from_dict(customization) if customization else None,
        )


def compute_order_total(items: Iterable[OrderItem]) -> int:
    """Sum of tokens_per_item × quantity over all items."""
    return sum(item.subtotal for item in items)


@dataclass(frozen=True, slots=True)
class Order:
    """
    A placed order.

    Attributes:
        id: Order identifier, also stamped on the paying debit transaction.
        user_id: Student who placed the order.
        mess_id: Mess the order was placed with.
        mess_name: Display name of the mess.
        items: Ordered lines (at least one).
        total_tokens: Tokens charged. Must equal compute_order_total(items).
        status: Current lifecycle status.
        order_type: Dine-in (normal) or packed.
        delivery_requested: Whether the student asked for delivery.
        created_at: Placement time.
        delivery_address: Where to deliver, when delivery was requested.
        completed_at: Set when the order is delivered.

    The total is checked once here. Status changes produce new Order values.
    """
    id: str
    user_id: str
    mess_id: str
    mess_name: str
    items: Tuple[OrderItem, ...]
    total_tokens: int
    status: OrderStatus
    order_type: OrderType
    delivery_requested: bool
    created_at: datetime
    delivery_address: Optional[str] = None
    completed_at: Optional[datetime] = None

    def __post_init__(self):
        _require_text(self.id, "Order id")
        _require_text(self.user_id, "Order user_id")
        if not isinstance(self.items, tuple):
            object.__setattr__(self, "items", tuple(self.items))
        if not self.items:
            raise ValueError("Order must have at least one item")
        if not isinstance(self.status, OrderStatus):
            raise ValueError(f"Order status must be OrderStatus, got {type(self.status)}")
        if not isinstance(self.order_type, OrderType):
            raise ValueError(f"Order order_type must be OrderType, got {type(self.order_type)}")
        expected = compute_order_total(self.items)
        if self.total_tokens != expected:
            raise ValueError(
                f"Order total_tokens {self.total_tokens} does not match items total {expected}"
            )

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def with_status(self, status: OrderStatus, now: datetime) -> Order:
        """Return a copy with a new status. Delivery stamps completed_at."""
        completed_at = now if status == OrderStatus.DELIVERED else self.completed_at
        return replace(self, status=status, completed_at=completed_at)

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "userId": self.user_id,
            "messId": self.mess_id,
            "messName": self.mess_name,
            "items": [item.to_dict() for item in self.items],
            "totalTokens": self.total_tokens,
            "status": self.status.value,
            "orderType": self.order_type.value,
            "deliveryRequested": self.delivery_requested,
            "createdAt": format_timestamp(self.created_at),
        }
        _put_optional(data, "deliveryAddress", self.delivery_address)
        if self.completed_at is not None:
            data["completedAt"] = format_timestamp(self.completed_at)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Order:
        completed_at = data.get("completedAt")
        return cls(
            id=data["id"],
            user_id=data["userId"],
            mess_id=data["messId"],
            mess_name=data.get("messName", ""),
            items=tuple(OrderItem.from_dict(i) for i in data["items"]),
            total_tokens=data["totalTokens"],
            status=OrderStatus(data["status"]),
            order_type=OrderType(data.get("orderType", OrderType.NORMAL.value)),
            delivery_requested=bool(data.get("deliveryRequested", False)),
            created_at=parse_timestamp(data["createdAt"]),
            delivery_address=data.get("deliveryAddress"),
            completed_at=parse_timestamp(completed_at) if completed_at else None,
        )

    def __repr__(self) -> str:
        return f"Order({self.id}: {self.total_tokens} tokens @ {self.mess_name} [{self.status.value}])"


@dataclass(frozen=True, slots=True)
class Rejected:
    """Outcome of an order placement that did not create an order."""
    reason: RejectReason
    message: str = ""
    order_id: Optional[str] = None


PlaceOrderResult = Union[Order, Rejected]


# ============================================================================
# LIFECYCLE RULES
# ============================================================================

def is_transition_allowed(current: OrderStatus, new: OrderStatus) -> bool:
    """
    Return True if new is a lifecycle edge out of current.

    Setting a status to itself counts as allowed for non-terminal statuses.
    """
    if current == new:
        return current not in TERMINAL_STATUSES
    return new in STATUS_TRANSITIONS[current]


def partition_orders(orders: Iterable[Order]) -> Tuple[List[Order], List[Order]]:
    """Split orders into (active, completed), preserving order."""
    active: List[Order] = []
    completed: List[Order] = []
    for order in orders:
        (completed if order.is_terminal else active).append(order)
    return active, completed

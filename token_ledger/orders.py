"""
orders.py - Order Settlement

Turns a cart of selected items into a persisted Order, paid for by a debit
on the WalletLedger, and moves orders through their status lifecycle.

Placement sequence:
    1. total = Σ tokens_per_item × quantity
    2. reject an empty cart or a balance below the total
    3. debit the wallet, tagged with the new order id (the debit is the gate)
    4. prepend the order to the stored list with status PENDING
    5. if that write fails, credit the tokens back and reject

An order is only written after its debit succeeds, so a rejected placement
leaves neither an order nor a debit behind.
"""

from __future__ import annotations
import asyncio
from datetime import datetime
from typing import Callable, Iterable, List, Optional, Union

from .core import (
    # Types
    Order, OrderItem, OrderStatus, OrderType, Rejected, RejectReason, Role, User,
    PlaceOrderResult,
    # Constants
    KEY_ORDERS,
    # Exceptions
    StorageError, OrderNotFound, IllegalStatusTransition,
    # Helpers
    compute_order_total, is_transition_allowed, partition_orders, new_id, utcnow,
)
from .storage import Store
from .wallet import WalletLedger


class OrderSettlement:
    """
    Order placement and status tracking for the active session.

    The cached order list is scoped to the current user when the user is a
    student; mess owners and providers see every stored order.

    Status changes are permissive by default: any status may be set from any
    other. With strict=True only edges of core.STATUS_TRANSITIONS are
    accepted and anything else raises IllegalStatusTransition.

    Writes to the stored order list (prepend on placement, status updates)
    run under one asyncio.Lock, so overlapping placements never drop each
    other's orders.
    """

    def __init__(
        self,
        store: Store,
        wallet: WalletLedger,
        verbose: bool = True,
        strict: bool = False,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store
        self.wallet = wallet
        self.verbose = verbose
        self.strict = strict
        self._clock = clock or utcnow
        self._user: Optional[User] = None
        self._orders: List[Order] = []
        self._lock = asyncio.Lock()

    # ========================================================================
    # SCOPE AND QUERIES
    # ========================================================================

    @property
    def orders(self) -> List[Order]:
        """Cached orders visible to the current user, most recent first."""
        return list(self._orders)

    async def load(self, user: Optional[User]) -> List[Order]:
        """Scope the cache to user and reload it from the store."""
        self._user = user
        return await self.refresh()

    async def refresh(self) -> List[Order]:
        """Reload the cached order list from the store."""
        self._orders = [o for o in await self._load_all() if self._visible(o)]
        return self.orders

    def reset(self) -> None:
        """Discard the cached orders and scope (used on logout)."""
        self._user = None
        self._orders = []

    def get_active_orders(self) -> List[Order]:
        """Cached orders that are not delivered or cancelled."""
        return partition_orders(self._orders)[0]

    def get_completed_orders(self) -> List[Order]:
        """Cached orders that are delivered or cancelled."""
        return partition_orders(self._orders)[1]

    def get_order(self, order_id: str) -> Optional[Order]:
        for order in self._orders:
            if order.id == order_id:
                return order
        return None

    def _visible(self, order: Order) -> bool:
        if self._user is None or self._user.role != Role.STUDENT:
            return True
        return order.user_id == self._user.id

    # ========================================================================
    # PLACEMENT
    # ========================================================================

    async def place_order(
        self,
        user_id: str,
        mess_id: str,
        mess_name: str,
        items: Iterable[OrderItem],
        order_type: OrderType = OrderType.NORMAL,
        delivery_requested: bool = False,
        delivery_address: Optional[str] = None,
    ) -> PlaceOrderResult:
        """
        Place an order and pay for it from the wallet.

        Args:
            user_id: Student placing the order
            mess_id: Mess receiving the order
            mess_name: Mess display name (used in the debit description)
            items: Cart lines
            order_type: Dine-in (NORMAL) or PACKED
            delivery_requested: Whether delivery was asked for
            delivery_address: Delivery destination, if any

        Returns:
            The created Order (status PENDING), or Rejected with reason
            EMPTY_CART, INSUFFICIENT_BALANCE or STORAGE_ERROR.

        Raises:
            WalletNotInitialized: If the wallet has not been loaded
            StorageError: If the refund after a failed order write also fails
        """
        items = tuple(items)
        if not items:
            return self._reject(RejectReason.EMPTY_CART, "Please select at least one item to order")

        total = compute_order_total(items)
        balance = self.wallet.balance
        if balance < total:
            return self._reject(
                RejectReason.INSUFFICIENT_BALANCE,
                f"You need {total} tokens but only have {balance} tokens",
            )

        order = Order(
            id=new_id("order"),
            user_id=user_id,
            mess_id=mess_id,
            mess_name=mess_name,
            items=items,
            total_tokens=total,
            status=OrderStatus.PENDING,
            order_type=order_type,
            delivery_requested=delivery_requested,
            created_at=self._clock(),
            delivery_address=delivery_address,
        )

        # Free orders skip the wallet entirely.
        if total > 0:
            try:
                paid = await self.wallet.debit(total, f"Order from {mess_name}", order_id=order.id)
            except StorageError as e:
                return self._reject(RejectReason.STORAGE_ERROR, str(e), order.id)
            if not paid:
                return self._reject(
                    RejectReason.INSUFFICIENT_BALANCE, "Failed to process payment", order.id,
                )

        try:
            await self._prepend(order)
        except StorageError as e:
            if total > 0:
                await self.wallet.credit(total, f"Refund for order {order.id}")
                if self.verbose:
                    print(f"⚠️  COMPENSATED: refunded {total} tokens for unsaved {order.id}")
            return self._reject(RejectReason.STORAGE_ERROR, str(e), order.id)

        if self._visible(order):
            self._orders.insert(0, order)
        if self.verbose:
            print(f"✓ PLACED {order!r}")
        return order

    def _reject(self, reason: RejectReason, message: str, order_id: Optional[str] = None) -> Rejected:
        if self.verbose:
            print(f"✗ REJECTED: {reason.value}: {message}")
        return Rejected(reason=reason, message=message, order_id=order_id)

    # ========================================================================
    # STATUS
    # ========================================================================

    async def update_order_status(self, order_id: str, new_status: Union[OrderStatus, str]) -> Order:
        """
        Set the status of a stored order.

        Moving to DELIVERED stamps completed_at; any other status leaves it
        as it was. The whole order list is written back.

        Raises:
            OrderNotFound: If no stored order has order_id
            IllegalStatusTransition: In strict mode, for a non-lifecycle edge
            StorageError: If the store fails
        """
        new_status = OrderStatus(new_status)
        async with self._lock:
            stored = await self._load_all()
            for index, order in enumerate(stored):
                if order.id == order_id:
                    break
            else:
                raise OrderNotFound(f"Order {order_id} not found")

            if self.strict and not is_transition_allowed(order.status, new_status):
                raise IllegalStatusTransition(
                    f"Order {order_id}: {order.status.value} → {new_status.value} is not allowed"
                )

            updated = order.with_status(new_status, self._clock())
            stored[index] = updated
            await self._save_all(stored)

        self._orders = [updated if o.id == order_id else o for o in self._orders]
        if self.verbose:
            print(f"✓ STATUS {order_id}: {order.status.value} → {new_status.value}")
        return updated

    # ========================================================================
    # STORAGE
    # ========================================================================

    async def _load_all(self) -> List[Order]:
        data = await self.store.get(KEY_ORDERS)
        if not data:
            return []
        try:
            return [Order.from_dict(o) for o in data]
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise StorageError(f"Corrupt orders record: {e}") from e

    async def _save_all(self, orders: List[Order]) -> None:
        await self.store.set(KEY_ORDERS, [o.to_dict() for o in orders])

    async def _prepend(self, order: Order) -> None:
        async with self._lock:
            orders = await self._load_all()
            orders.insert(0, order)
            await self._save_all(orders)

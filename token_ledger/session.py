"""
session.py - Session / Identity

A Session is the explicit handle for "who is acting" on this device. It owns
the WalletLedger and OrderSettlement for the active user and rescopes both
whenever the identity changes.

Lifecycle:
    create → restore/login → use → logout/dispose

    async with Session(store) as session:      # restores any saved identity
        await session.sign_up("Asha", "asha@campus.edu", Role.STUDENT)
        result = await session.place_order("mess-1", "Sunshine Mess", items)
"""

from __future__ import annotations
import re
from datetime import datetime
from typing import Callable, Dict, Iterable, Optional, Union

from .core import (
    Role, User, OrderItem, OrderType, SessionState, PlaceOrderResult,
    KEY_USER, KEY_ROLE, KEY_WALLET, KEY_ORDERS, SESSION_KEYS,
    NotAuthenticated, StorageError,
    new_id, utcnow,
)
from .orders import OrderSettlement
from .seed import create_default_wallet, create_sample_orders
from .storage import Store
from .wallet import WalletLedger


_EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class Session:
    """
    Active identity plus the wallet and order services scoped to it.

    Attributes:
        store: Persistent store shared by the session and its services
        wallet: WalletLedger for the active user
        orders: OrderSettlement for the active user
    """

    def __init__(
        self,
        store: Store,
        verbose: bool = True,
        starting_balances: Optional[Dict[Role, int]] = None,
        strict_status: bool = False,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store
        self.verbose = verbose
        self.starting_balances = dict(starting_balances or {})
        self._clock = clock or utcnow
        self.wallet = WalletLedger(
            store, verbose=verbose, starting_balances=self.starting_balances, clock=self._clock,
        )
        self.orders = OrderSettlement(
            store, self.wallet, verbose=verbose, strict=strict_status, clock=self._clock,
        )
        self._user: Optional[User] = None

    async def __aenter__(self) -> Session:
        await self.restore()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.dispose()

    # ========================================================================
    # STATE
    # ========================================================================

    @property
    def user(self) -> Optional[User]:
        return self._user

    @property
    def role(self) -> Optional[Role]:
        return self._user.role if self._user else None

    @property
    def is_authenticated(self) -> bool:
        return self._user is not None

    @property
    def state(self) -> SessionState:
        if self._user is None:
            return SessionState.UNAUTHENTICATED
        return SessionState.AUTHENTICATED

    def require_user(self) -> User:
        if self._user is None:
            raise NotAuthenticated("No user is logged in")
        return self._user

    # ========================================================================
    # IDENTITY OPERATIONS
    # ========================================================================

    async def restore(self) -> Optional[User]:
        """
        Resume the identity saved on the device, if any.

        The separately stored role tag wins over the role inside the user
        record.
        """
        data = await self.store.get(KEY_USER)
        if data is None:
            return None
        try:
            user = User.from_dict(data)
            saved_role = await self.store.get(KEY_ROLE)
            if saved_role:
                user = user.with_role(Role(saved_role))
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise StorageError(f"Corrupt user record: {e}") from e
        await self._activate(user)
        return user

    async def login(self, user: User) -> None:
        """Persist user and role, make user the active identity and load its wallet and orders."""
        await self.store.set(KEY_USER, user.to_dict())
        await self.store.set(KEY_ROLE, user.role.value)
        await self._activate(user)
        if self.verbose:
            print(f"✓ LOGIN {user.name} [{user.role.value}]")

    async def sign_up(
        self,
        name: str,
        email: str,
        role: Union[Role, str],
        phone: Optional[str] = None,
    ) -> User:
        """
        Create a new identity with role-dependent demo data, then log in.

        Writes the demo wallet for the role and, for mess owners, sample
        orders for the mess ``mess-<user id>``.

        Raises:
            ValueError: If name is blank or email is malformed
        """
        role = Role(role)
        if not name or not name.strip():
            raise ValueError("Please enter your name")
        if not _EMAIL_PATTERN.match(email.strip()):
            raise ValueError("Please enter a valid email address")

        user = User(id=new_id("user"), name=name.strip(), email=email.strip(), role=role, phone=phone)
        now = self._clock()
        wallet = create_default_wallet(user.id, role, now, self.starting_balances)
        await self.store.set(KEY_WALLET, wallet.to_dict())
        if role == Role.MESS_OWNER:
            samples = create_sample_orders(user.id, f"mess-{user.id}", now)
            await self.store.set(KEY_ORDERS, [o.to_dict() for o in samples])

        await self.login(user)
        return user

    async def logout(self) -> None:
        """Forget the saved identity and drop the wallet and order caches."""
        await self.store.remove_all([KEY_USER, KEY_ROLE])
        name = self._user.name if self._user else None
        self.dispose()
        if self.verbose and name:
            print(f"✓ LOGOUT {name}")

    async def set_role(self, role: Union[Role, str]) -> None:
        """
        Change the role tag and re-persist the user with it.

        Order visibility follows the new role immediately.
        """
        role = Role(role)
        await self.store.set(KEY_ROLE, role.value)
        if self._user is None:
            return
        updated = self._user.with_role(role)
        await self.store.set(KEY_USER, updated.to_dict())
        self._user = updated
        await self.orders.load(updated)

    async def clear_all_data(self) -> None:
        """Remove user, wallet, orders and role from the store and end the session."""
        await self.store.remove_all(SESSION_KEYS)
        self.dispose()

    def dispose(self) -> None:
        """Drop in-memory state. The store is left untouched."""
        self._user = None
        self.wallet.reset()
        self.orders.reset()

    async def _activate(self, user: User) -> None:
        self._user = user
        await self.wallet.initialize(user.id, user.role)
        await self.orders.load(user)

    # ========================================================================
    # CONVENIENCE
    # ========================================================================

    async def place_order(
        self,
        mess_id: str,
        mess_name: str,
        items: Iterable[OrderItem],
        order_type: OrderType = OrderType.NORMAL,
        delivery_requested: bool = False,
        delivery_address: Optional[str] = None,
    ) -> PlaceOrderResult:
        """Place an order on behalf of the active user."""
        user = self.require_user()
        return await self.orders.place_order(
            user.id, mess_id, mess_name, items,
            order_type=order_type,
            delivery_requested=delivery_requested,
            delivery_address=delivery_address,
        )

    async def share_tokens(self, to_user_id: str, to_user_name: str, amount: int) -> bool:
        """Transfer tokens from the active user's wallet."""
        self.require_user()
        return await self.wallet.transfer(to_user_id, to_user_name, amount)

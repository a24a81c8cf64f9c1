"""
wallet.py - Token Wallet Ledger

The WalletLedger owns the balance and transaction history of the active
user. It is the only component that mutates the stored wallet record.

Key responsibilities:
    - Creates the wallet on first use with a role-dependent welcome bonus
    - Debits, credits and transfers with an insufficient-funds guard
    - Persists the full record (balance + history) as one write per mutation
    - Serializes mutations so the guard never runs against a stale balance
"""

from __future__ import annotations
import asyncio
from typing import Callable, Dict, Optional, Tuple, Any
from datetime import datetime

from .core import (
    # Types
    Role, TransactionType, TokenTransaction, Wallet,
    # Constants
    KEY_WALLET,
    # Exceptions
    StorageError, WalletNotInitialized,
    # Helpers
    audit_wallet, new_id, utcnow,
)
from .seed import create_welcome_wallet, starting_balance
from .storage import Store


def _check_amount(amount: int) -> None:
    if not isinstance(amount, int) or isinstance(amount, bool):
        raise ValueError(f"Token amount must be int, got {type(amount)}")
    if amount <= 0:
        raise ValueError(f"Token amount must be positive, got {amount}")


class WalletLedger:
    """
    Balance and append-only history for one user's token wallet.

    Business rejections (insufficient balance) are reported as a False
    result. Storage failures raise StorageError and leave the cached wallet
    unchanged.

    Concurrency:
        All reads-then-writes of the wallet run under one asyncio.Lock, so
        two overlapping debits are applied one after the other and the
        second sees the first one's balance.

    Example:
        ledger = WalletLedger(MemoryStore(), verbose=False)
        await ledger.initialize("user-1", Role.STUDENT)
        ok = await ledger.debit(30, "Order from Sunshine Mess", order_id="order-1")
    """

    def __init__(
        self,
        store: Store,
        verbose: bool = True,
        starting_balances: Optional[Dict[Role, int]] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Create a wallet ledger.

        Args:
            store: Persistent store holding the wallet record
            verbose: Print one line per mutation (default: True)
            starting_balances: Per-role overrides of the welcome bonus
            clock: Source of timestamps (default: core.utcnow)
        """
        self.store = store
        self.verbose = verbose
        self.starting_balances: Dict[Role, int] = dict(starting_balances or {})
        self._clock = clock or utcnow
        self._wallet: Optional[Wallet] = None
        self._lock = asyncio.Lock()

    # ========================================================================
    # READ-ONLY ACCESS
    # ========================================================================

    @property
    def is_initialized(self) -> bool:
        return self._wallet is not None

    @property
    def wallet(self) -> Wallet:
        """
        The cached wallet.

        Raises:
            WalletNotInitialized: If initialize() has not run for this session
        """
        if self._wallet is None:
            raise WalletNotInitialized("Wallet has not been initialized")
        return self._wallet

    @property
    def user_id(self) -> str:
        return self.wallet.user_id

    @property
    def balance(self) -> int:
        return self.wallet.balance

    @property
    def transactions(self) -> Tuple[TokenTransaction, ...]:
        """Transaction history, most recent first."""
        return self.wallet.transactions

    def verify_balance(self) -> Dict[str, Any]:
        """
        Check that the cached balance equals the sum of the history.

        Returns:
            Dict with 'valid', 'balance', 'expected' and 'difference' keys
            (see core.audit_wallet).

        Example:
            result = ledger.verify_balance()
            assert result['valid'], f"Balance drifted by {result['difference']}"
        """
        return audit_wallet(self.wallet)

    # ========================================================================
    # LIFECYCLE
    # ========================================================================

    async def initialize(self, user_id: str, role: Role) -> Wallet:
        """
        Load the user's wallet, creating it on first use.

        A new wallet holds the role's starting balance as one welcome-bonus
        credit. Calling this again for the same user only reloads.

        A stored wallet belonging to a different user is replaced: the device
        keeps one wallet record for whoever is signed in.

        Raises:
            StorageError: If the store cannot be read or written
        """
        async with self._lock:
            stored = await self._load()
            if stored is not None and stored.user_id == user_id:
                self._wallet = stored
                if self.verbose:
                    print(f"↺ LOADED wallet {user_id}: {stored.balance} tokens")
                return stored

            amount = starting_balance(role, self.starting_balances)
            wallet = create_welcome_wallet(user_id, amount, self._clock())
            await self._save(wallet)
            self._wallet = wallet
            if self.verbose:
                print(f"✓ CREATED wallet {user_id} [{role.value}]: {amount} tokens")
            return wallet

    async def refresh(self) -> Optional[Wallet]:
        """
        Reload the wallet from the store, overwriting the cache.

        Returns None (and clears the cache) when no wallet is stored.
        """
        async with self._lock:
            self._wallet = await self._load()
            return self._wallet

    def reset(self) -> None:
        """Discard the cached wallet (used on logout)."""
        self._wallet = None

    # ========================================================================
    # MUTATIONS
    # ========================================================================

    async def debit(self, amount: int, description: str, order_id: Optional[str] = None) -> bool:
        """
        Spend tokens.

        Args:
            amount: Positive number of tokens to remove
            description: Text recorded on the debit transaction
            order_id: Order paid for, if any

        Returns:
            True if the debit was recorded, False if the balance is too low
            (nothing is changed in that case).

        Raises:
            ValueError: If amount is not a positive int
            WalletNotInitialized: If no wallet is loaded
            StorageError: If the store fails
        """
        _check_amount(amount)
        async with self._lock:
            current = await self._current()
            if amount > current.balance:
                self._wallet = current
                if self.verbose:
                    print(f"✗ REJECTED: insufficient balance: {amount} > {current.balance}")
                return False
            tx = self._transaction(
                current, TransactionType.DEBIT, -amount, description, order_id=order_id,
            )
            await self._commit(current, tx)
            return True

    async def credit(self, amount: int, description: str) -> None:
        """
        Add tokens (recharge, bonus or refund).

        Raises:
            ValueError: If amount is not a positive int
            WalletNotInitialized: If no wallet is loaded
            StorageError: If the store fails
        """
        _check_amount(amount)
        async with self._lock:
            current = await self._current()
            tx = self._transaction(current, TransactionType.CREDIT, amount, description)
            await self._commit(current, tx)

    async def transfer(self, to_user_id: str, to_user_name: str, amount: int) -> bool:
        """
        Send tokens to another user.

        Only the sender's wallet is touched: a transfer-sent entry is recorded
        here and the recipient's wallet record is not credited.

        Returns:
            True if the transfer was recorded, False if the balance is too low.
        """
        _check_amount(amount)
        async with self._lock:
            current = await self._current()
            if amount > current.balance:
                self._wallet = current
                if self.verbose:
                    print(f"✗ REJECTED: insufficient balance for transfer: {amount} > {current.balance}")
                return False
            tx = self._transaction(
                current, TransactionType.TRANSFER_SENT, -amount,
                f"Transferred to {to_user_name}",
                related_user_id=to_user_id,
                related_user_name=to_user_name,
            )
            await self._commit(current, tx)
            return True

    async def receive(self, from_user_id: str, from_user_name: str, amount: int) -> None:
        """Record tokens received from another user (transfer-received)."""
        _check_amount(amount)
        async with self._lock:
            current = await self._current()
            tx = self._transaction(
                current, TransactionType.TRANSFER_RECEIVED, amount,
                f"Received from {from_user_name}",
                related_user_id=from_user_id,
                related_user_name=from_user_name,
            )
            await self._commit(current, tx)

    # ========================================================================
    # INTERNALS
    # ========================================================================

    def _transaction(
        self,
        current: Wallet,
        tx_type: TransactionType,
        amount: int,
        description: str,
        **related: Optional[str],
    ) -> TokenTransaction:
        return TokenTransaction(
            id=new_id("txn"),
            user_id=current.user_id,
            type=tx_type,
            amount=amount,
            description=description,
            timestamp=self._clock(),
            **related,
        )

    async def _current(self) -> Wallet:
        """
        Authoritative wallet for the cached user.

        Re-reads the store so the balance guard checks what is persisted.
        Falls back to the cache if the stored record is gone or belongs to
        someone else.
        """
        cached = self.wallet
        stored = await self._load()
        if stored is not None and stored.user_id == cached.user_id:
            return stored
        return cached

    async def _commit(self, current: Wallet, tx: TokenTransaction) -> None:
        updated = current.apply(tx)
        await self._save(updated)
        self._wallet = updated
        if self.verbose:
            print(f"✓ {tx.type.value.upper()} {tx.amount:+d}: {tx.description} "
                  f"(balance {updated.balance})")

    async def _load(self) -> Optional[Wallet]:
        data = await self.store.get(KEY_WALLET)
        if data is None:
            return None
        try:
            return Wallet.from_dict(data)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise StorageError(f"Corrupt wallet record: {e}") from e

    async def _save(self, wallet: Wallet) -> None:
        await self.store.set(KEY_WALLET, wallet.to_dict())

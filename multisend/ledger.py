"""
Ledger interface consumed by the batch transfer engine, plus an
in-memory implementation.

The engine never holds balances itself. It asks a ledger for the
sender's balance, withdraws ``Tokens`` and deposits them elsewhere, all
inside ``ledger.transaction()``. The ledger owns atomicity: when the
block raises, every withdraw and deposit made inside it must be undone.
"""

from __future__ import annotations

from contextlib import AbstractContextManager, contextmanager
from dataclasses import dataclass
from typing import Iterator, Protocol

from multisend.config import NATIVE_ASSET
from multisend.errors import (
    AccountFrozen,
    AccountNotRegistered,
    InvalidAmount,
    UnknownAsset,
    WithdrawFailed,
)
from multisend.logger import get_logger


log = get_logger(__name__)


@dataclass(frozen=True)
class Tokens:
    """Value withdrawn from an account and not yet deposited."""

    asset: str
    amount: int
    source: str = ""


class Ledger(Protocol):
    def balance_of(self, account: str, asset: str) -> int: ...

    def withdraw(self, account: str, asset: str, amount: int) -> Tokens: ...

    def deposit(self, account: str, tokens: Tokens) -> None: ...

    def transaction(self) -> AbstractContextManager[None]: ...


class InMemoryLedger:
    """
    Dictionary-backed ledger with snapshot rollback.

    Accounts hold the native asset without registering. Any other asset
    must be registered on the ledger and opted in to per account before
    the account can receive it. Frozen accounts can neither send nor
    receive.

    Not thread-safe; callers serialize access.
    """

    def __init__(self, assets: tuple[str, ...] = (NATIVE_ASSET,)):
        self._assets: set[str] = {NATIVE_ASSET, *assets}
        self._balances: dict[tuple[str, str], int] = {}
        self._opted_in: set[tuple[str, str]] = set()
        self._frozen: set[str] = set()
        self._depth = 0

    # ── setup ────────────────────────────────────────────────────

    def register_asset(self, asset: str) -> None:
        self._assets.add(asset)

    def register(self, account: str, asset: str) -> None:
        self._require_asset(asset)
        self._opted_in.add((account, asset))

    def freeze(self, account: str) -> None:
        self._frozen.add(account)

    def unfreeze(self, account: str) -> None:
        self._frozen.discard(account)

    def mint(self, account: str, asset: str, amount: int) -> None:
        """Credit new value to an account (setup and tests)."""
        self.deposit(account, Tokens(asset=asset, amount=amount))

    # ── ledger interface ─────────────────────────────────────────

    def balance_of(self, account: str, asset: str) -> int:
        self._require_asset(asset)
        return self._balances.get((account, asset), 0)

    def withdraw(self, account: str, asset: str, amount: int) -> Tokens:
        self._require_asset(asset)
        if amount < 0:
            raise InvalidAmount(f"Cannot withdraw negative amount {amount}")
        if account in self._frozen:
            raise AccountFrozen(f"Account {account} is frozen")
        balance = self.balance_of(account, asset)
        if balance < amount:
            raise WithdrawFailed(
                f"Account {account} holds {balance} {asset}, cannot withdraw {amount}"
            )
        self._balances[(account, asset)] = balance - amount
        return Tokens(asset=asset, amount=amount, source=account)

    def deposit(self, account: str, tokens: Tokens) -> None:
        self._require_asset(tokens.asset)
        if tokens.amount < 0:
            raise InvalidAmount(f"Cannot deposit negative amount {tokens.amount}")
        if account in self._frozen:
            raise AccountFrozen(f"Account {account} is frozen")
        if tokens.asset != NATIVE_ASSET and (account, tokens.asset) not in self._opted_in:
            raise AccountNotRegistered(
                f"Account {account} is not registered for {tokens.asset}"
            )
        key = (account, tokens.asset)
        self._balances[key] = self._balances.get(key, 0) + tokens.amount

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """
        Run the block as one indivisible transaction.

        Balances and opt-ins are snapshotted on entry to the outermost
        transaction and restored if the block raises. The exception is
        re-raised unchanged.
        """
        if self._depth:
            self._depth += 1
            try:
                yield
            finally:
                self._depth -= 1
            return

        balances = dict(self._balances)
        opted_in = set(self._opted_in)
        self._depth = 1
        try:
            yield
        except BaseException:
            self._balances = balances
            self._opted_in = opted_in
            log.debug("Ledger transaction rolled back")
            raise
        finally:
            self._depth = 0

    def _require_asset(self, asset: str) -> None:
        if asset not in self._assets:
            raise UnknownAsset(f"Asset {asset} is not registered on this ledger")

"""
Bittensor ledger adapter.

Substrate gives no way to hold a transaction open across several
calls, so this adapter stages every withdraw/deposit pair and, when the
outermost ``transaction()`` block exits cleanly, submits the staged
transfers as one ``utility.batch_all`` extrinsic. The chain applies a
batch_all all-or-nothing, so a failed transfer reverts the fee and
every other transfer in the batch. If the block raises, nothing is
submitted.

Only the native TAO asset is supported. Amounts are integer RAO.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator, Optional

import bittensor as bt
from bittensor.core.extrinsics.pallets import Balances

from multisend.config import MAX_BATCH_CALLS, NATIVE_ASSET
from multisend.errors import (
    InvalidAmount,
    LedgerError,
    SubmissionFailed,
    UnknownAsset,
    WithdrawFailed,
)
from multisend.ledger import Tokens
from multisend.logger import get_logger


log = get_logger(__name__)


class SubtensorLedger:
    """Ledger backed by a Bittensor wallet's coldkey."""

    def __init__(
        self,
        subtensor: bt.Subtensor,
        wallet: bt.Wallet,
        keep_alive: bool = True,
        wait_for_inclusion: bool = True,
        wait_for_finalization: bool = False,
    ):
        self.subtensor = subtensor
        self.wallet = wallet
        self.keep_alive = keep_alive
        self.wait_for_inclusion = wait_for_inclusion
        self.wait_for_finalization = wait_for_finalization
        self.extrinsic_hash: Optional[str] = None
        self.block_hash: Optional[str] = None
        self._staged: Optional[list[tuple[str, int]]] = None
        self._pending: dict[str, int] = {}
        self._depth = 0

    @classmethod
    def connect(
        cls,
        wallet_name: str,
        network: str = "finney",
        unlock: bool = True,
        **kwargs,
    ) -> "SubtensorLedger":
        """Open a subtensor connection for the named wallet."""
        subtensor = bt.Subtensor(network=network)
        wallet = bt.Wallet(name=wallet_name)
        if unlock:
            wallet.unlock_coldkey()
        return cls(subtensor, wallet, **kwargs)

    @property
    def address(self) -> str:
        return self.wallet.coldkeypub.ss58_address

    def balance_of(self, account: str, asset: str) -> int:
        """On-chain balance in RAO, adjusted for transfers staged so far."""
        self._require_native(asset)
        return self.subtensor.get_balance(account).rao + self._pending.get(account, 0)

    def withdraw(self, account: str, asset: str, amount: int) -> Tokens:
        self._require_native(asset)
        self._require_open()
        if amount < 0:
            raise InvalidAmount(f"Cannot withdraw negative amount {amount}")
        if account != self.address:
            raise WithdrawFailed(
                f"Can only withdraw from wallet coldkey {self.address}, not {account}"
            )
        self._pending[account] = self._pending.get(account, 0) - amount
        return Tokens(asset=asset, amount=amount, source=account)

    def deposit(self, account: str, tokens: Tokens) -> None:
        self._require_native(tokens.asset)
        self._require_open()
        if tokens.amount < 0:
            raise InvalidAmount(f"Cannot deposit negative amount {tokens.amount}")
        self._pending[account] = self._pending.get(account, 0) + tokens.amount
        # Zero transfers move nothing; leave them out of the extrinsic
        if tokens.amount:
            self._staged.append((account, tokens.amount))

    @contextmanager
    def transaction(self) -> Iterator[None]:
        if self._depth:
            self._depth += 1
            try:
                yield
            finally:
                self._depth -= 1
            return

        self._staged = []
        self._pending = {}
        self._depth = 1
        try:
            yield
            if self._staged:
                self._submit(self._staged)
        finally:
            self._staged = None
            self._pending = {}
            self._depth = 0

    def _build_batch_call(self, transfers: list[tuple[str, int]]):
        """Wrap one Balances transfer per staged pair in utility.batch_all."""
        balances = Balances(self.subtensor)
        transfer_fn = "transfer_keep_alive" if self.keep_alive else "transfer_allow_death"

        calls = []
        for dest, value in transfers:
            call = getattr(balances, transfer_fn)(dest=dest, value=value)
            calls.append(call)

        return self.subtensor.compose_call(
            call_module="Utility",
            call_function="batch_all",
            call_params={"calls": calls},
        )

    def _submit(self, transfers: list[tuple[str, int]]) -> None:
        if len(transfers) > MAX_BATCH_CALLS:
            raise LedgerError(
                f"Batch has {len(transfers)} transfers; at most {MAX_BATCH_CALLS} "
                f"fit in one extrinsic"
            )

        batch_call = self._build_batch_call(transfers)
        response = self.subtensor.sign_and_send_extrinsic(
            call=batch_call,
            wallet=self.wallet,
            wait_for_inclusion=self.wait_for_inclusion,
            wait_for_finalization=self.wait_for_finalization,
        )
        if not response.success:
            raise SubmissionFailed(f"batch_all rejected: {response.message}")

        self.extrinsic_hash = getattr(response, "extrinsic_hash", None)
        self.block_hash = self.subtensor.get_block_hash()
        log.info(
            f"Submitted batch_all with {len(transfers)} transfers "
            f"(extrinsic {self.extrinsic_hash})"
        )

    def _require_open(self) -> None:
        if self._staged is None:
            raise LedgerError("Transfers must run inside ledger.transaction()")

    @staticmethod
    def _require_native(asset: str) -> None:
        if asset != NATIVE_ASSET:
            raise UnknownAsset(f"Subtensor ledger only moves {NATIVE_ASSET}, not {asset}")

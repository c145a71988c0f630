"""
Core batch transfer logic for multisend.

A batch moves funds from one sender to many recipients and routes a
percentage fee to the bank account named in the owner's configuration
record. The whole call runs inside one ledger transaction: if any
transfer fails, every transfer already made in the call is reverted,
including the fee. No partial batch is ever observable.

Order of a call:
1. Reject mismatched recipient/amount lists
2. Sum amounts, rejecting u64 overflow
3. fee = (sum // 100) * fee_rate
4. Check the sender can cover sum + fee
5. Move the fee to the bank account
6. Move each amount to its recipient, in input order
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Sequence

from multisend.config import FEE_DENOMINATOR, MAX_AMOUNT, NATIVE_ASSET
from multisend.errors import (
    ArgumentMismatch,
    ArithmeticOverflow,
    InsufficientFunds,
    InvalidAmount,
)
from multisend.ledger import Ledger
from multisend.logger import get_logger
from multisend.registry import ConfigurationRecord, ConfigurationRegistry


log = get_logger(__name__)


@dataclass
class BatchResult:
    """Result of a committed batch transfer."""

    sender: str
    asset: str
    total_amount: int
    fee_amount: int
    fee_rate: int
    bank_account: str
    recipient_count: int
    duration_seconds: float = 0.0

    @property
    def total_cost(self) -> int:
        return self.total_amount + self.fee_amount

    def summary(self) -> str:
        """Human-readable summary of the batch result."""
        return "\n".join([
            "=== Multisend Batch Transfer — SUCCESS ===",
            f"Sender: {self.sender}",
            f"Asset: {self.asset} (amounts in base units)",
            f"Recipients: {self.recipient_count}",
            f"Total amount: {self.total_amount}",
            f"Fee ({self.fee_rate}%): {self.fee_amount} -> {self.bank_account}",
            f"Total cost: {self.total_cost}",
            f"Duration: {self.duration_seconds:.1f}s",
        ])


@dataclass
class FeeEstimate:
    """What a batch would cost, computed without moving funds."""

    asset: str
    fee_rate: int
    fee_amount: int
    total_amount: int
    total_cost: int
    recipient_count: int
    current_balance: int

    @property
    def balance_sufficient(self) -> bool:
        return self.current_balance >= self.total_cost

    def summary(self) -> str:
        """Human-readable fee estimate."""
        status = "SUFFICIENT" if self.balance_sufficient else "INSUFFICIENT"
        return "\n".join([
            "=== Multisend — Fee Estimate ===",
            f"Asset: {self.asset} (amounts in base units)",
            f"Recipients: {self.recipient_count}",
            f"Total transfer amount: {self.total_amount}",
            f"Service fee ({self.fee_rate}%): {self.fee_amount}",
            f"Total cost: {self.total_cost}",
            f"Current balance: {self.current_balance}",
            f"Balance: {status}",
        ])


def calculate_fee(amount_sum: int, fee_rate: int) -> int:
    """
    Fee owed on a batch total.

    Divides before multiplying, so totals below 100 carry no fee and
    remainders under 100 are never charged. A fee rate above 100 yields
    a fee larger than the total.
    """
    fee = (amount_sum // FEE_DENOMINATOR) * fee_rate
    if fee > MAX_AMOUNT:
        raise ArithmeticOverflow(
            f"Fee {amount_sum // FEE_DENOMINATOR} * {fee_rate} exceeds {MAX_AMOUNT}"
        )
    return fee


def sum_amounts(amounts: Sequence[int]) -> int:
    """Add amounts in order, failing on the first one that overflows u64."""
    total = 0
    for i, amount in enumerate(amounts):
        if isinstance(amount, bool) or not isinstance(amount, int):
            raise InvalidAmount(f"Amount {i} must be an integer, got {amount!r}")
        if amount < 0 or amount > MAX_AMOUNT:
            raise InvalidAmount(f"Amount {i} out of range: {amount}")
        total += amount
        if total > MAX_AMOUNT:
            raise ArithmeticOverflow(f"Batch total exceeds {MAX_AMOUNT} at amount {i}")
    return total


class BatchTransferEngine:
    """
    Executes fee-charging batch transfers against a ledger.

    The fee rate and bank account come from the configuration record of
    ``owner``, read at the start of each call. The engine is generic over
    the asset: it passes ``asset`` through to the ledger untouched.
    """

    def __init__(self, ledger: Ledger, registry: ConfigurationRegistry, owner: str):
        self.ledger = ledger
        self.registry = registry
        self.owner = owner

    def multisend(
        self,
        sender: str,
        recipients: Sequence[str],
        amounts: Sequence[int],
        asset: str = NATIVE_ASSET,
    ) -> BatchResult:
        """
        Send ``amounts[i]`` to ``recipients[i]`` for every i, plus the fee.

        Parameters:
            sender: Account the funds and fee are withdrawn from.
            recipients: Destination accounts. Duplicates are separate transfers.
            amounts: Amount per recipient. Zero is a legal no-op transfer.
            asset: Asset type moved; defaults to the native asset.

        Raises:
            ArgumentMismatch, InvalidAmount, ArithmeticOverflow,
            InsufficientFunds, RecordNotFound, or any ledger error.
        """
        start_time = time.time()

        with self.ledger.transaction():
            if len(recipients) != len(amounts):
                log.warning(
                    f"Rejected batch from {sender}: {len(recipients)} recipients, "
                    f"{len(amounts)} amounts"
                )
                raise ArgumentMismatch(
                    f"Got {len(recipients)} recipients but {len(amounts)} amounts"
                )

            record, amount_sum, fee_amount, required = self._totals(amounts)

            balance = self.ledger.balance_of(sender, asset)
            if balance < required:
                log.warning(
                    f"Rejected batch from {sender}: balance {balance} {asset}, "
                    f"required {required}"
                )
                raise InsufficientFunds(
                    f"Insufficient balance: {balance} {asset} available, "
                    f"but {required} {asset} needed "
                    f"({amount_sum} transfers + {fee_amount} fee).",
                    available=balance,
                    required=required,
                )

            fee = self.ledger.withdraw(sender, asset, fee_amount)
            self.ledger.deposit(record.bank_account, fee)

            for recipient, amount in zip(recipients, amounts):
                tokens = self.ledger.withdraw(sender, asset, amount)
                self.ledger.deposit(recipient, tokens)

        result = BatchResult(
            sender=sender,
            asset=asset,
            total_amount=amount_sum,
            fee_amount=fee_amount,
            fee_rate=record.fee_rate,
            bank_account=record.bank_account,
            recipient_count=len(recipients),
            duration_seconds=time.time() - start_time,
        )
        log.info(
            f"Batch from {sender}: {result.recipient_count} transfers, "
            f"{amount_sum} {asset} + {fee_amount} fee"
        )
        return result

    def estimate(
        self,
        sender: str,
        amounts: Sequence[int],
        asset: str = NATIVE_ASSET,
    ) -> FeeEstimate:
        """Compute the fee and total cost of a batch without executing it."""
        record, amount_sum, fee_amount, required = self._totals(amounts)
        return FeeEstimate(
            asset=asset,
            fee_rate=record.fee_rate,
            fee_amount=fee_amount,
            total_amount=amount_sum,
            total_cost=required,
            recipient_count=len(amounts),
            current_balance=self.ledger.balance_of(sender, asset),
        )

    def _totals(self, amounts: Sequence[int]) -> tuple[ConfigurationRecord, int, int, int]:
        amount_sum = sum_amounts(amounts)
        record = self.registry.lookup(self.owner)
        fee_amount = calculate_fee(amount_sum, record.fee_rate)
        required = amount_sum + fee_amount
        if required > MAX_AMOUNT:
            raise ArithmeticOverflow(f"Batch total plus fee exceeds {MAX_AMOUNT}")
        log.debug(f"Batch total {amount_sum}, fee {fee_amount} at {record.fee_rate}%")
        return record, amount_sum, fee_amount, required

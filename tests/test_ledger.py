"""Tests for the in-memory ledger and its transaction rollback."""

import pytest

from multisend.config import NATIVE_ASSET
from multisend.errors import (
    AccountFrozen,
    AccountNotRegistered,
    InvalidAmount,
    UnknownAsset,
    WithdrawFailed,
)
from multisend.ledger import InMemoryLedger, Tokens


@pytest.fixture
def ledger():
    ledger = InMemoryLedger()
    ledger.mint("alice", NATIVE_ASSET, 500)
    return ledger


class TestTransfers:
    def test_withdraw_and_deposit(self, ledger):
        tokens = ledger.withdraw("alice", NATIVE_ASSET, 200)
        assert tokens == Tokens(asset=NATIVE_ASSET, amount=200, source="alice")

        ledger.deposit("bob", tokens)
        assert ledger.balance_of("alice", NATIVE_ASSET) == 300
        assert ledger.balance_of("bob", NATIVE_ASSET) == 200

    def test_overdraw(self, ledger):
        with pytest.raises(WithdrawFailed):
            ledger.withdraw("alice", NATIVE_ASSET, 501)
        assert ledger.balance_of("alice", NATIVE_ASSET) == 500

    def test_negative_withdraw(self, ledger):
        with pytest.raises(InvalidAmount):
            ledger.withdraw("alice", NATIVE_ASSET, -1)

    def test_frozen_account(self, ledger):
        ledger.freeze("alice")
        with pytest.raises(AccountFrozen):
            ledger.withdraw("alice", NATIVE_ASSET, 1)

        ledger.unfreeze("alice")
        ledger.withdraw("alice", NATIVE_ASSET, 1)

    def test_unknown_asset(self, ledger):
        with pytest.raises(UnknownAsset):
            ledger.balance_of("alice", "USDC")

    def test_non_native_requires_opt_in(self):
        ledger = InMemoryLedger(assets=("USDC",))
        with pytest.raises(AccountNotRegistered):
            ledger.mint("alice", "USDC", 10)

        ledger.register("alice", "USDC")
        ledger.mint("alice", "USDC", 10)
        assert ledger.balance_of("alice", "USDC") == 10

    def test_register_asset_later(self):
        ledger = InMemoryLedger()
        ledger.register_asset("USDC")
        ledger.register("alice", "USDC")
        assert ledger.balance_of("alice", "USDC") == 0


class TestTransaction:
    def test_commit(self, ledger):
        with ledger.transaction():
            ledger.deposit("bob", ledger.withdraw("alice", NATIVE_ASSET, 100))
        assert ledger.balance_of("bob", NATIVE_ASSET) == 100

    def test_rollback_reraises(self, ledger):
        with pytest.raises(RuntimeError, match="boom"):
            with ledger.transaction():
                ledger.deposit("bob", ledger.withdraw("alice", NATIVE_ASSET, 100))
                raise RuntimeError("boom")

        assert ledger.balance_of("alice", NATIVE_ASSET) == 500
        assert ledger.balance_of("bob", NATIVE_ASSET) == 0

    def test_nested_rolls_back_to_outermost(self, ledger):
        with pytest.raises(WithdrawFailed):
            with ledger.transaction():
                ledger.deposit("bob", ledger.withdraw("alice", NATIVE_ASSET, 100))
                with ledger.transaction():
                    ledger.withdraw("alice", NATIVE_ASSET, 1000)

        assert ledger.balance_of("alice", NATIVE_ASSET) == 500
        assert ledger.balance_of("bob", NATIVE_ASSET) == 0

    def test_usable_after_rollback(self, ledger):
        with pytest.raises(WithdrawFailed):
            with ledger.transaction():
                ledger.withdraw("alice", NATIVE_ASSET, 1000)

        with ledger.transaction():
            ledger.deposit("bob", ledger.withdraw("alice", NATIVE_ASSET, 5))
        assert ledger.balance_of("bob", NATIVE_ASSET) == 5

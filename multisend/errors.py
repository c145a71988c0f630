"""
Error taxonomy for multisend.

Every failure is raised synchronously and never caught inside the
library. Each class carries a stable ``code`` so calling tooling can
branch on the condition without matching message text.
"""

from __future__ import annotations


class MultisendError(Exception):
    """Base exception for all multisend errors."""

    code = "multisend_error"


class ArgumentMismatch(MultisendError):
    """Recipients and amounts have different lengths."""

    code = "argument_mismatch"


class NotAuthorized(MultisendError):
    """Caller is not the admin of the configuration record."""

    code = "not_authorized"


class InsufficientFunds(MultisendError):
    """Sender balance is below the batch total plus fee."""

    code = "insufficient_funds"

    def __init__(self, message: str, available: int = 0, required: int = 0):
        super().__init__(message)
        self.available = available
        self.required = required


class DuplicateResource(MultisendError):
    """A configuration record already exists for the owner."""

    code = "duplicate_resource"


class RecordNotFound(MultisendError):
    """No configuration record exists for the owner."""

    code = "record_not_found"


class RegistryCorrupt(MultisendError):
    """The registry file cannot be read as configuration records."""

    code = "registry_corrupt"


class ArithmeticOverflow(MultisendError):
    """An amount computation left the unsigned 64-bit range."""

    code = "arithmetic_overflow"


class InvalidAmount(MultisendError):
    """An amount or fee rate is not a non-negative integer."""

    code = "invalid_amount"


class LedgerError(MultisendError):
    """Base for failures raised by a ledger adapter."""

    code = "ledger_error"


class UnknownAsset(LedgerError):
    code = "unknown_asset"


class AccountNotRegistered(LedgerError):
    code = "account_not_registered"


class AccountFrozen(LedgerError):
    code = "account_frozen"


class WithdrawFailed(LedgerError):
    code = "withdraw_failed"


class SubmissionFailed(LedgerError):
    """The host rejected the transaction; nothing was applied."""

    code = "submission_failed"

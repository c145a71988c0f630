"""
Per-owner configuration records.

Each owner identity has at most one ``ConfigurationRecord`` holding the
fee rate, the admin allowed to change it, and the bank account that
collects fees. Records are created once and never deleted.
"""

from __future__ import annotations

import json
import os
import tempfile
from dataclasses import asdict, dataclass
from pathlib import Path

from multisend.errors import (
    DuplicateResource,
    InvalidAmount,
    NotAuthorized,
    RecordNotFound,
    RegistryCorrupt,
)
from multisend.logger import get_logger


log = get_logger(__name__)


@dataclass
class ConfigurationRecord:
    """Fee configuration owned by one identity."""

    fee_rate: int  # whole percent, not capped at 100
    admin: str
    bank_account: str

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "ConfigurationRecord":
        return cls(
            fee_rate=_check_fee_rate(data["fee_rate"]),
            admin=str(data["admin"]),
            bank_account=str(data["bank_account"]),
        )


def _check_fee_rate(fee_rate) -> int:
    # bool is an int subclass; reject it along with floats and negatives
    if isinstance(fee_rate, bool) or not isinstance(fee_rate, int) or fee_rate < 0:
        raise InvalidAmount(f"Fee rate must be a non-negative integer, got {fee_rate!r}")
    return fee_rate


class ConfigurationRegistry:
    """Map of owner identity to its configuration record."""

    def __init__(self, records: dict[str, ConfigurationRecord] | None = None):
        self._records: dict[str, ConfigurationRecord] = dict(records or {})

    def __contains__(self, owner: str) -> bool:
        return owner in self._records

    def __len__(self) -> int:
        return len(self._records)

    # ── storage ──────────────────────────────────────────────────

    def lookup(self, owner: str) -> ConfigurationRecord:
        try:
            return self._records[owner]
        except KeyError:
            raise RecordNotFound(f"No configuration record for {owner}") from None

    def insert(self, owner: str, record: ConfigurationRecord) -> None:
        if owner in self._records:
            raise DuplicateResource(f"Configuration record for {owner} already exists")
        self._records[owner] = record

    # ── operations ───────────────────────────────────────────────

    def create(self, owner: str, bank_account: str, fee_rate: int) -> ConfigurationRecord:
        """Create the owner's record with the owner as admin."""
        record = ConfigurationRecord(
            fee_rate=_check_fee_rate(fee_rate),
            admin=owner,
            bank_account=bank_account,
        )
        self.insert(owner, record)
        log.info(f"Created configuration for {owner}: fee={fee_rate}% bank={bank_account}")
        return record

    def update_fee(self, owner: str, caller: str, new_fee: int) -> None:
        record = self._authorize(owner, caller)
        record.fee_rate = _check_fee_rate(new_fee)
        log.info(f"Fee for {owner} set to {new_fee}% by {caller}")

    def update_admin(self, owner: str, caller: str, new_admin: str) -> None:
        record = self._authorize(owner, caller)
        record.admin = new_admin
        log.info(f"Admin for {owner} changed from {caller} to {new_admin}")

    def update_bank_account(self, owner: str, caller: str, new_account: str) -> None:
        record = self._authorize(owner, caller)
        record.bank_account = new_account
        log.info(f"Bank account for {owner} set to {new_account} by {caller}")

    def get_fee(self, owner: str) -> int:
        return self.lookup(owner).fee_rate

    def get_admin(self, owner: str) -> str:
        return self.lookup(owner).admin

    def get_bank_account(self, owner: str) -> str:
        return self.lookup(owner).bank_account

    def _authorize(self, owner: str, caller: str) -> ConfigurationRecord:
        record = self.lookup(owner)
        if caller != record.admin:
            log.warning(f"Rejected update of {owner} configuration by non-admin {caller}")
            raise NotAuthorized(f"{caller} is not the admin of {owner}")
        return record

    # ── persistence ──────────────────────────────────────────────

    @classmethod
    def load(cls, path: str | Path) -> "ConfigurationRegistry":
        """
        Load records from a JSON file.

        Expected format:
            {"<owner>": {"fee_rate": 10, "admin": "...", "bank_account": "..."}}

        A missing file yields an empty registry. An unreadable file raises
        RegistryCorrupt.
        """
        path = Path(path)
        if not path.exists():
            return cls()

        try:
            with open(path, "r") as f:
                data = json.load(f)
            if not isinstance(data, dict):
                raise ValueError("expected an object keyed by owner")
            records = {
                owner: ConfigurationRecord.from_dict(entry)
                for owner, entry in data.items()
            }
        except (ValueError, KeyError, TypeError) as e:
            raise RegistryCorrupt(f"Registry file {path} is unreadable: {e!r}") from e

        return cls(records)

    def save(self, path: str | Path) -> None:
        """Write all records, replacing the file only once the write is complete."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w") as f:
                json.dump(
                    {owner: r.to_dict() for owner, r in self._records.items()},
                    f,
                    indent=2,
                )
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, path)
        except BaseException:
            os.unlink(tmp_name)
            raise

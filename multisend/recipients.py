"""
Recipient list files for multisend.

Supports:
- CSV files with address,amount[,label] columns
- JSON files holding a list of {address, amount, label} objects
- ss58 address validation via bittensor

Amounts in files are written in TAO and converted to RAO (1 TAO = 1e9
RAO) before they reach the batch engine.
"""

from __future__ import annotations

import csv
import json
import math
from dataclasses import dataclass
from pathlib import Path

from bittensor.utils import is_valid_bittensor_address_or_public_key
from bittensor.utils.balance import Balance


@dataclass
class Recipient:
    """A single payment recipient."""

    address: str
    amount: float  # in TAO
    label: str = ""  # optional label/note

    def validate(self) -> list[str]:
        """Validate this recipient. Returns list of error strings."""
        errors = []
        if not is_valid_bittensor_address_or_public_key(self.address):
            errors.append(f"Invalid ss58 address: {self.address}")
        if not math.isfinite(self.amount):
            errors.append(f"Amount must be a finite number, got {self.amount}")
        elif self.amount < 0:
            errors.append(f"Amount must not be negative, got {self.amount}")
        return errors

    @property
    def amount_rao(self) -> int:
        """Amount in RAO (1 TAO = 1e9 RAO)."""
        return Balance.from_tao(self.amount).rao


def parse_recipients_csv(filepath: str | Path) -> list[Recipient]:
    """
    Parse a CSV file of recipients.

    Expected format:
        address,amount[,label]
        5FHneW46xGXgs5mUiveU4sbTyGBzmstUspZC92UhjJM694ty,10.5,Alice
        5GrwvaEF5zXb26Fz9rcQpDWS57CtERHpNehXCPcNoHGKutQY,5.0,Bob
    """
    recipients = []

    with open(Path(filepath), "r", newline="") as f:
        reader = csv.DictReader(f)
        if reader.fieldnames is None:
            raise ValueError("CSV file is empty or has no headers")

        for row_num, row in enumerate(reader, start=2):
            normalized = {
                k.strip().lower(): (v or "").strip()
                for k, v in row.items()
                if k is not None
            }

            address = normalized.get("address", "")
            amount_str = normalized.get("amount", "0")
            label = normalized.get("label", normalized.get("name", ""))

            if not address:
                raise ValueError(f"Row {row_num}: missing address")

            try:
                amount = float(amount_str)
            except ValueError:
                raise ValueError(f"Row {row_num}: invalid amount '{amount_str}'") from None

            recipients.append(Recipient(address=address, amount=amount, label=label))

    return recipients


def parse_recipients_json(filepath: str | Path) -> list[Recipient]:
    """
    Parse a JSON file of recipients.

    Expected format:
        [
            {"address": "5FHne...", "amount": 10.5, "label": "Alice"},
            {"address": "5Grwv...", "amount": 5.0}
        ]
    """
    with open(Path(filepath), "r") as f:
        data = json.load(f)

    if not isinstance(data, list):
        raise ValueError("JSON must contain a list of recipient objects")

    recipients = []
    for i, entry in enumerate(data):
        if not isinstance(entry, dict):
            raise ValueError(f"Entry {i}: must be an object")
        if "address" not in entry:
            raise ValueError(f"Entry {i}: missing 'address' field")
        if "amount" not in entry:
            raise ValueError(f"Entry {i}: missing 'amount' field")

        recipients.append(Recipient(
            address=str(entry["address"]),
            amount=float(entry["amount"]),
            label=str(entry.get("label", "")),
        ))

    return recipients


def parse_recipients(filepath: str | Path) -> list[Recipient]:
    """Pick the parser from the file suffix; unknown suffixes are read as CSV."""
    if Path(filepath).suffix.lower() == ".json":
        return parse_recipients_json(filepath)
    return parse_recipients_csv(filepath)


def validate_recipients(recipients: list[Recipient]) -> tuple[bool, list[str]]:
    """Validate all recipients. Returns (is_valid, list_of_errors)."""
    errors = []
    if not recipients:
        errors.append("Recipient list is empty")

    for i, r in enumerate(recipients):
        for err in r.validate():
            errors.append(f"Recipient {i + 1} ({r.label or r.address[:12]}...): {err}")

    return len(errors) == 0, errors


def find_duplicates(recipients: list[Recipient]) -> dict[str, list[int]]:
    """
    Map each address listed more than once to its 1-based positions.

    Duplicates are allowed; each occurrence is sent as its own transfer.
    """
    positions: dict[str, list[int]] = {}
    for i, r in enumerate(recipients):
        positions.setdefault(r.address, []).append(i + 1)
    return {addr: pos for addr, pos in positions.items() if len(pos) > 1}

"""
Multisend: fee-charging batch transfers.

Moves funds from one sender to many recipients in a single atomic
ledger transaction, routing a percentage fee to a configured bank
account. Fee rate, admin and bank account live in a per-owner
configuration record that only the admin may change.
"""

__version__ = "0.1.0"

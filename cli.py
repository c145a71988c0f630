#!/usr/bin/env python3
"""
Multisend — CLI for fee-charging batch payments on the Bittensor network.

Usage:
    multisend create --wallet <name> --bank <address> --fee <percent>
    multisend update-fee --wallet <name> --fee <percent> [--owner <address>]
    multisend update-admin --wallet <name> --admin <address> [--owner <address>]
    multisend update-bank --wallet <name> --bank <address> [--owner <address>]
    multisend show [--owner <address>]
    multisend send --wallet <name> --file <path> [--network <net>] [--dry-run]
    multisend estimate --wallet <name> --file <path> [--network <net>]
    multisend validate --file <path>
    multisend generate-template --output <path> [--format csv|json] [--count <n>]

Examples:
    # Register a 2% fee paid to a bank account, owned by my_wallet
    multisend create --wallet my_wallet --bank 5FHne... --fee 2

    # Send to everyone in a CSV file on testnet
    multisend send --wallet my_wallet --file recipients.csv --network test

Settings not given as flags are read from MULTISEND_OWNER,
MULTISEND_NETWORK, MULTISEND_REGISTRY and MULTISEND_LOG_LEVEL, or from
a .env file in the working directory.
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

import bittensor as bt

from multisend import __version__
from multisend.batch import BatchTransferEngine, calculate_fee, sum_amounts
from multisend.config import AppConfig, load_config
from multisend.errors import MultisendError
from multisend.logger import set_level
from multisend.recipients import find_duplicates, parse_recipients, validate_recipients
from multisend.registry import ConfigurationRegistry
from multisend.subtensor import SubtensorLedger


BANNER = r"""
                  _ _   _                    _
  _ __ ___  _   _| | |_(_)___  ___ _ __   __| |
 | '_ ` _ \| | | | | __| / __|/ _ \ '_ \ / _` |
 | | | | | | |_| | | |_| \__ \  __/ | | | (_| |
 |_| |_| |_|\__,_|_|\__|_|___/\___|_| |_|\__,_|
  Batch payments with a service fee
"""


def _wallet_address(wallet_name: str) -> str:
    return bt.Wallet(name=wallet_name).coldkeypub.ss58_address


def _owner(args: argparse.Namespace, config: AppConfig) -> str:
    owner = getattr(args, "owner", None) or config.owner
    if not owner:
        raise RuntimeError("No owner given: pass --owner or set MULTISEND_OWNER")
    return owner


def _registry_path(args: argparse.Namespace, config: AppConfig) -> Path:
    return Path(args.registry) if args.registry else config.registry_path


def _load_batch(path: str):
    """Parse and validate a recipient file; returns None after printing errors."""
    try:
        recipients = parse_recipients(path)
    except Exception as e:
        print(f"Error parsing file: {e}")
        return None

    is_valid, errors = validate_recipients(recipients)
    if not is_valid:
        print("Validation errors:")
        for err in errors:
            print(f"  ✗ {err}")
        return None
    return recipients


def cmd_create(args: argparse.Namespace, config: AppConfig) -> int:
    """Create the configuration record owned by the wallet."""
    path = _registry_path(args, config)
    registry = ConfigurationRegistry.load(path)
    owner = _wallet_address(args.wallet)

    registry.create(owner, bank_account=args.bank, fee_rate=args.fee)
    registry.save(path)

    print(f"Created configuration for {owner}")
    print(f"  Fee: {args.fee}%")
    print(f"  Bank account: {args.bank}")
    print(f"  Admin: {owner}")
    return 0


def cmd_update(args: argparse.Namespace, config: AppConfig) -> int:
    """Change fee, admin or bank account; the wallet must be the admin."""
    path = _registry_path(args, config)
    registry = ConfigurationRegistry.load(path)
    owner = _owner(args, config)
    caller = _wallet_address(args.wallet)

    if args.command == "update-fee":
        registry.update_fee(owner, caller, args.fee)
        print(f"Fee set to {args.fee}%")
    elif args.command == "update-admin":
        registry.update_admin(owner, caller, args.admin)
        print(f"Admin set to {args.admin}")
    else:
        registry.update_bank_account(owner, caller, args.bank)
        print(f"Bank account set to {args.bank}")

    registry.save(path)
    return 0


def cmd_show(args: argparse.Namespace, config: AppConfig) -> int:
    """Print the current configuration."""
    registry = ConfigurationRegistry.load(_registry_path(args, config))
    owner = _owner(args, config)

    print(f"Owner: {owner}")
    print(f"Fee: {registry.get_fee(owner)}%")
    print(f"Admin: {registry.get_admin(owner)}")
    print(f"Bank account: {registry.get_bank_account(owner)}")
    return 0


def cmd_send(args: argparse.Namespace, config: AppConfig) -> int:
    """Execute a batch transfer."""
    print(BANNER)

    recipients = _load_batch(args.file)
    if recipients is None:
        return 1

    network = args.network or config.network
    registry = ConfigurationRegistry.load(_registry_path(args, config))
    owner = _owner(args, config)

    print(f"Loaded {len(recipients)} recipients from {args.file}")
    print(f"Network: {network}")
    print(f"Wallet: {args.wallet}")
    for addr, positions in find_duplicates(recipients).items():
        print(f"  note: {addr[:16]}... listed at {positions}, each sent separately")
    print()

    amounts = [r.amount_rao for r in recipients]
    total = sum_amounts(amounts)
    fee = calculate_fee(total, registry.get_fee(owner))
    print(
        f"Total to transfer: {total} RAO across {len(recipients)} recipients "
        f"+ {fee} RAO fee ({registry.get_fee(owner)}%)"
    )

    ledger = SubtensorLedger.connect(
        args.wallet,
        network=network,
        unlock=not args.dry_run,
        keep_alive=not args.allow_death,
        wait_for_finalization=args.finalize,
    )
    engine = BatchTransferEngine(ledger, registry, owner)

    if args.dry_run:
        print("\n[DRY RUN] Estimating without executing...")
        print()
        print(engine.estimate(ledger.address, amounts).summary())
        return 0

    if not args.yes:
        response = input(f"\nProceed with transfer of {total + fee} RAO? [y/N]: ")
        if response.lower() not in ("y", "yes"):
            print("Aborted.")
            return 0

    print("\nExecuting batch transfer...")
    result = engine.multisend(
        ledger.address,
        [r.address for r in recipients],
        amounts,
    )

    print()
    print(result.summary())
    if ledger.block_hash:
        print(f"Block hash: {ledger.block_hash}")
    if ledger.extrinsic_hash:
        print(f"Extrinsic hash: {ledger.extrinsic_hash}")
    return 0


def cmd_estimate(args: argparse.Namespace, config: AppConfig) -> int:
    """Estimate the cost of a batch transfer."""
    print(BANNER)

    recipients = _load_batch(args.file)
    if recipients is None:
        return 1

    registry = ConfigurationRegistry.load(_registry_path(args, config))
    ledger = SubtensorLedger.connect(
        args.wallet, network=args.network or config.network, unlock=False
    )
    engine = BatchTransferEngine(ledger, registry, _owner(args, config))

    print(f"Estimating fees for {len(recipients)} recipients...")
    print()
    print(engine.estimate(ledger.address, [r.amount_rao for r in recipients]).summary())
    return 0


def cmd_validate(args: argparse.Namespace, config: AppConfig) -> int:
    """Validate a recipient list."""
    print(BANNER)

    try:
        recipients = parse_recipients(args.file)
    except Exception as e:
        print(f"Error parsing file: {e}")
        return 1

    print(f"Loaded {len(recipients)} recipients from {args.file}")

    is_valid, errors = validate_recipients(recipients)

    if not is_valid:
        print(f"\n✗ Found {len(errors)} validation errors:")
        for err in errors:
            print(f"  ✗ {err}")
        return 1

    total = sum(r.amount for r in recipients)
    print(f"\n✓ All {len(recipients)} recipients are valid")
    print(f"  Total amount: {total:.4f} TAO")
    print(f"  Min: {min(r.amount for r in recipients):.4f} TAO")
    print(f"  Max: {max(r.amount for r in recipients):.4f} TAO")
    duplicates = find_duplicates(recipients)
    if duplicates:
        print(f"  {len(duplicates)} addresses appear more than once; each entry is sent")

    print("\nPreview (first 5):")
    for r in recipients[:5]:
        label = f" ({r.label})" if r.label else ""
        print(f"  {r.address[:16]}...{r.address[-8:]} → {r.amount:.4f} TAO{label}")
    if len(recipients) > 5:
        print(f"  ... and {len(recipients) - 5} more")
    return 0


def cmd_generate_template(args: argparse.Namespace, config: AppConfig) -> int:
    """Generate a template recipient file."""
    count = args.count
    output = Path(args.output)

    # Well-known Substrate development accounts
    sample_addresses = [
        "5GrwvaEF5zXb26Fz9rcQpDWS57CtERHpNehXCPcNoHGKutQY",  # Alice
        "5FHneW46xGXgs5mUiveU4sbTyGBzmstUspZC92UhjJM694ty",  # Bob
        "5FLSigC9HGRKVhB9FiEo4Y3koPsNmBmLJbpXg2mp1hXcS59Y",  # Charlie
        "5DAAnrj7VHTznn2AWBemMuyBwZWs6FNFjdyVXUeYum3PTXFy",  # Dave
        "5HGjWAeFDfFCWPsjFQdVV2Msvz2XtMktvgocEZcCj68kUMaw",  # Eve
    ]
    labels = ["Alice", "Bob", "Charlie", "Dave", "Eve"]

    rows = []
    for i in range(count):
        rows.append({
            "address": sample_addresses[i % len(sample_addresses)],
            "amount": round(1.0 + (i * 0.5), 2),
            "label": labels[i] if i < len(labels) else f"Recipient_{i + 1}",
        })

    if args.format == "json":
        with open(output, "w") as f:
            json.dump(rows, f, indent=2)
    else:
        with open(output, "w", newline="") as f:
            f.write("address,amount,label\n")
            for r in rows:
                f.write(f"{r['address']},{r['amount']},{r['label']}\n")

    print(f"Generated template with {count} recipients: {output}")
    print(f"Format: {args.format.upper()}")
    print(f"\nThen run: multisend validate --file {output}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="multisend",
        description="Multisend — batch payments with a configurable service fee",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--version", action="version", version=f"multisend {__version__}"
    )
    parser.add_argument(
        "--registry", help="Path to the configuration registry JSON file"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    create_parser = subparsers.add_parser(
        "create", help="Create the fee configuration owned by a wallet"
    )
    create_parser.add_argument("--wallet", "-w", required=True, help="Bittensor wallet name")
    create_parser.add_argument("--bank", "-b", required=True, help="Fee collection address")
    create_parser.add_argument("--fee", type=int, required=True, help="Fee rate in percent")

    for name, flag, kwargs, help_text in [
        ("update-fee", "--fee", {"type": int}, "Change the fee rate"),
        ("update-admin", "--admin", {}, "Hand the admin role to another address"),
        ("update-bank", "--bank", {}, "Change the fee collection address"),
    ]:
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("--wallet", "-w", required=True, help="Admin wallet name")
        sub.add_argument(flag, required=True, **kwargs)
        sub.add_argument("--owner", help="Owner address of the configuration")

    show_parser = subparsers.add_parser("show", help="Show fee, admin and bank account")
    show_parser.add_argument("--owner", help="Owner address of the configuration")

    send_parser = subparsers.add_parser("send", help="Execute a batch transfer")
    send_parser.add_argument("--wallet", "-w", required=True, help="Sender wallet name")
    send_parser.add_argument(
        "--file", "-f", required=True, help="Path to recipient list (CSV or JSON)"
    )
    send_parser.add_argument("--owner", help="Owner address of the fee configuration")
    send_parser.add_argument(
        "--network", "-n", help="Bittensor network (finney, test, local)"
    )
    send_parser.add_argument(
        "--dry-run", action="store_true", help="Estimate costs without executing"
    )
    send_parser.add_argument("--yes", "-y", action="store_true", help="Skip confirmation prompt")
    send_parser.add_argument(
        "--allow-death", action="store_true",
        help="Allow transfers that may reduce accounts below existential deposit"
    )
    send_parser.add_argument(
        "--finalize", action="store_true",
        help="Wait for transaction finalization (slower but more certain)"
    )

    estimate_parser = subparsers.add_parser("estimate", help="Estimate batch transfer cost")
    estimate_parser.add_argument("--wallet", "-w", required=True, help="Sender wallet name")
    estimate_parser.add_argument("--file", "-f", required=True, help="Path to recipient list")
    estimate_parser.add_argument("--owner", help="Owner address of the fee configuration")
    estimate_parser.add_argument("--network", "-n", help="Bittensor network")

    validate_parser = subparsers.add_parser("validate", help="Validate a recipient list")
    validate_parser.add_argument("--file", "-f", required=True, help="Path to recipient list")

    template_parser = subparsers.add_parser(
        "generate-template", help="Generate a template recipient file"
    )
    template_parser.add_argument(
        "--output", "-o", default="recipients.csv", help="Output file path"
    )
    template_parser.add_argument(
        "--format", choices=["csv", "json"], default="csv", help="File format"
    )
    template_parser.add_argument(
        "--count", "-c", type=int, default=5, help="Number of sample recipients"
    )

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    commands = {
        "create": cmd_create,
        "update-fee": cmd_update,
        "update-admin": cmd_update,
        "update-bank": cmd_update,
        "show": cmd_show,
        "send": cmd_send,
        "estimate": cmd_estimate,
        "validate": cmd_validate,
        "generate-template": cmd_generate_template,
    }

    try:
        config = load_config()
        set_level(config.log_level)
        return commands[args.command](args, config)
    except MultisendError as e:
        print(f"Error [{e.code}]: {e}")
        return 1
    except RuntimeError as e:
        print(f"Error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


# Asset moved when no other asset type is given.
NATIVE_ASSET = "TAO"

# Fee rate is a whole percentage of the batch total.
FEE_DENOMINATOR = 100

# Amounts, sums and fees are unsigned 64-bit quantities.
MAX_AMOUNT = 2**64 - 1

# Transfers per batch_all extrinsic: 199 recipients plus the fee transfer.
MAX_BATCH_CALLS = 200

NETWORKS = {"finney", "test", "local"}

DEFAULT_REGISTRY_PATH = "multisend_registry.json"


@dataclass(frozen=True)
class AppConfig:
    owner: Optional[str] = None
    network: str = "finney"
    registry_path: Path = Path(DEFAULT_REGISTRY_PATH)
    log_level: str = "INFO"


def load_config(dotenv_path: Path | None = None) -> AppConfig:
    # Values already in the environment win over the file
    load_dotenv(dotenv_path or Path.cwd() / ".env", override=False)

    network = os.getenv("MULTISEND_NETWORK", "finney").strip().lower()
    if network not in NETWORKS:
        raise RuntimeError(
            f"MULTISEND_NETWORK must be one of {', '.join(sorted(NETWORKS))}"
        )

    log_level = os.getenv("MULTISEND_LOG_LEVEL", "INFO").strip().upper()
    if log_level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
        raise RuntimeError(f"MULTISEND_LOG_LEVEL is not a logging level: {log_level}")

    owner = os.getenv("MULTISEND_OWNER", "").strip() or None

    return AppConfig(
        owner=owner,
        network=network,
        registry_path=Path(os.getenv("MULTISEND_REGISTRY", DEFAULT_REGISTRY_PATH)),
        log_level=log_level,
    )

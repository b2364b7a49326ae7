from __future__ import annotations

import logging
from pathlib import Path
from typing import List

import base58
from solders.keypair import Keypair

from rent_reclaim.errors import KeyFileError

logger = logging.getLogger(__name__)


def read_key_lines(path: Path) -> List[str]:
    """Return the non-blank, stripped lines of a key file."""
    try:
        text = Path(path).read_text(encoding="utf-8")
    except FileNotFoundError as e:
        raise KeyFileError(f"Key file not found: {path}") from e
    except OSError as e:
        raise KeyFileError(f"Cannot read key file {path}: {e}") from e
    return [line.strip() for line in text.splitlines() if line.strip()]


def keypair_from_base58(secret: str) -> Keypair:
    # Decode first: Keypair.from_base58_string panics instead of raising on bad input.
    try:
        raw = base58.b58decode(secret)
    except ValueError as e:
        raise KeyFileError(f"Invalid base58 secret key: {e}") from e
    if len(raw) != 64:
        raise KeyFileError(f"Secret key must be 64 bytes (got {len(raw)})")
    try:
        return Keypair.from_bytes(raw)
    except ValueError as e:
        raise KeyFileError(f"Invalid secret key: {e}") from e


def load_identities(path: Path) -> List[Keypair]:
    """Load one base58 keypair per line. Duplicate keys are kept once, in first-seen order."""
    identities: List[Keypair] = []
    seen = set()
    for lineno, line in enumerate(read_key_lines(path), start=1):
        try:
            kp = keypair_from_base58(line)
        except KeyFileError as e:
            raise KeyFileError(f"{path}: key #{lineno}: {e}") from e
        pub = str(kp.pubkey())
        if pub in seen:
            logger.warning(f"Duplicate key for {pub} in {path}; skipping")
            continue
        seen.add(pub)
        identities.append(kp)
    return identities

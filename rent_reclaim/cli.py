"""Close empty SPL token accounts for every wallet in a key file and reclaim their rent.

Flow per wallet:
  1) Scan token accounts owned by the wallet, keep the empty ones
  2) Close them in batches, one transaction per batch, retrying failed batches
  3) Pause a random delay before the next wallet if anything was recovered

Env (a .env file in the working directory is loaded too):
  - RPC_URL, BATCH_SIZE, DELAY_FROM, DELAY_TO, MAX_ATTEMPTS, RETRY_DELAY,
    KEYS_FILE, CONFIRM_POLL_INTERVAL, LOG_FILE
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import List, Optional

from dotenv import find_dotenv, load_dotenv

from rent_reclaim.config import ReclaimConfig
from rent_reclaim.errors import ConfigError, KeyFileError
from rent_reclaim.fleet import FleetRunner
from rent_reclaim.keys import load_identities
from rent_reclaim.rpc import LedgerClient
from rent_reclaim.wallet import WalletProcessor

logger = logging.getLogger("rent_reclaim")


def configure_logging(log_file: Optional[Path] = None, verbose: bool = False) -> None:
    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
        handlers=handlers,
        force=True,
    )


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="rent-reclaim",
        description="Close empty token accounts for all wallets in a key file and reclaim their rent.",
    )
    ap.add_argument("--keys-file", default=None, help="File with one base58 private key per line (default: env KEYS_FILE or ./solana.txt)")
    ap.add_argument("--rpc-url", default=None, help="RPC URL override (default: env RPC_URL or public mainnet)")
    ap.add_argument("--batch-size", type=int, default=None, help="CloseAccount instructions per tx (default: 20, max: 27)")
    ap.add_argument("--delay-from", type=int, default=None, help="Min seconds between wallets (default: 20)")
    ap.add_argument("--delay-to", type=int, default=None, help="Max seconds between wallets (default: 180)")
    ap.add_argument("--max-attempts", type=int, default=None, help="Attempts per batch (default: 3)")
    ap.add_argument("--retry-delay", type=float, default=None, help="Seconds between attempts (default: 5)")
    ap.add_argument("--limit", type=int, default=None, help="Only process first N wallets (0 = all)")
    ap.add_argument("--dry-run", action="store_true", help="Scan and report only; do not send transactions")
    ap.add_argument("--fail-fast", action="store_true", help="Abort the run on the first wallet error")
    ap.add_argument("--log-file", default=None, help="Also write log lines to this file")
    ap.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return ap


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv(find_dotenv(usecwd=True))
    args = build_parser().parse_args(argv)

    try:
        config = ReclaimConfig.from_env(
            rpc_url=args.rpc_url,
            batch_size=args.batch_size,
            delay_from=args.delay_from,
            delay_to=args.delay_to,
            max_attempts=args.max_attempts,
            retry_delay=args.retry_delay,
            keys_file=Path(args.keys_file) if args.keys_file else None,
            log_file=Path(args.log_file) if args.log_file else None,
            limit=args.limit,
            dry_run=args.dry_run or None,
            fail_fast=args.fail_fast or None,
        )
    except ConfigError as exc:
        configure_logging(verbose=args.verbose)
        logger.error(f"Configuration error: {exc}")
        return 2

    configure_logging(config.log_file, args.verbose)

    try:
        identities = load_identities(config.keys_file)
    except KeyFileError as exc:
        logger.error(str(exc))
        return 2
    if config.limit:
        identities = identities[: config.limit]

    logger.info(f"RPC: {config.rpc_url}")
    logger.info(f"Keys file: {config.keys_file}")
    logger.info(f"Mode: {'DRY RUN' if config.dry_run else 'EXECUTE'}")

    ledger = LedgerClient(
        config.rpc_url,
        commitment=config.commitment,
        poll_interval=config.confirm_poll_interval,
    )
    runner = FleetRunner(WalletProcessor(ledger, config), config)
    try:
        runner.run(identities)
    except Exception:
        logger.exception("Run aborted")
        return 1
    return 0

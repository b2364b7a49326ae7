"""Runtime configuration, read once at startup and passed down explicitly.

Env:
  - RPC_URL or SOLANA_URL (default: public mainnet RPC)
  - BATCH_SIZE (default: 20, at most 27)
  - DELAY_FROM / DELAY_TO, seconds between wallets (default: 20 / 180)
  - MAX_ATTEMPTS / RETRY_DELAY, per batch (default: 3 / 5 seconds)
  - KEYS_FILE (default: ./solana.txt)
  - CONFIRM_POLL_INTERVAL, seconds (default: 1.0)
  - LOG_FILE (optional)
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Mapping, Optional

from rent_reclaim.constants import DEFAULT_COMMITMENT, DEFAULT_RPC_URL, MAX_CLOSE_BATCH_SIZE
from rent_reclaim.errors import ConfigError


def _env_str(environ: Mapping[str, str], *names: str) -> str:
    for name in names:
        value = (environ.get(name) or "").strip()
        if value:
            return value
    return ""


def _env_int(environ: Mapping[str, str], name: str, default: int) -> int:
    raw = _env_str(environ, name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigError(f"{name} must be an integer (got {raw!r})") from e


def _env_float(environ: Mapping[str, str], name: str, default: float) -> float:
    raw = _env_str(environ, name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ConfigError(f"{name} must be a number (got {raw!r})") from e


@dataclass(frozen=True, slots=True)
class ReclaimConfig:
    rpc_url: str = DEFAULT_RPC_URL
    batch_size: int = 20
    delay_from: int = 20
    delay_to: int = 180
    max_attempts: int = 3
    retry_delay: float = 5.0
    keys_file: Path = Path("solana.txt")
    commitment: str = DEFAULT_COMMITMENT
    confirm_poll_interval: float = 1.0
    log_file: Optional[Path] = None
    limit: int = 0
    dry_run: bool = False
    fail_fast: bool = False

    def __post_init__(self) -> None:
        self.validate()

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **overrides) -> "ReclaimConfig":
        """Build a config from environment variables, then apply non-None overrides."""
        env = os.environ if environ is None else environ
        log_file = _env_str(env, "LOG_FILE")
        values = dict(
            rpc_url=_env_str(env, "RPC_URL", "SOLANA_URL") or DEFAULT_RPC_URL,
            batch_size=_env_int(env, "BATCH_SIZE", 20),
            delay_from=_env_int(env, "DELAY_FROM", 20),
            delay_to=_env_int(env, "DELAY_TO", 180),
            max_attempts=_env_int(env, "MAX_ATTEMPTS", 3),
            retry_delay=_env_float(env, "RETRY_DELAY", 5.0),
            keys_file=Path(_env_str(env, "KEYS_FILE") or "solana.txt"),
            confirm_poll_interval=_env_float(env, "CONFIRM_POLL_INTERVAL", 1.0),
            log_file=Path(log_file) if log_file else None,
        )
        known = {f.name for f in fields(cls)}
        for key, value in overrides.items():
            if key not in known:
                raise ConfigError(f"Unknown config option: {key}")
            if value is not None:
                values[key] = value
        return cls(**values)

    def validate(self) -> None:
        if not self.rpc_url.strip():
            raise ConfigError("RPC URL must not be empty")
        if self.batch_size <= 0:
            raise ConfigError(f"BATCH_SIZE must be > 0 (got {self.batch_size})")
        if self.batch_size > MAX_CLOSE_BATCH_SIZE:
            raise ConfigError(
                f"BATCH_SIZE must be <= {MAX_CLOSE_BATCH_SIZE} to fit one transaction (got {self.batch_size})"
            )
        if self.max_attempts <= 0:
            raise ConfigError(f"MAX_ATTEMPTS must be > 0 (got {self.max_attempts})")
        if self.retry_delay < 0:
            raise ConfigError(f"RETRY_DELAY must be >= 0 (got {self.retry_delay})")
        if self.delay_from < 0 or self.delay_to < 0:
            raise ConfigError("DELAY_FROM and DELAY_TO must be >= 0")
        if self.delay_from > self.delay_to:
            raise ConfigError(
                f"DELAY_FROM ({self.delay_from}) must not exceed DELAY_TO ({self.delay_to})"
            )
        if self.commitment not in ("processed", "confirmed", "finalized"):
            raise ConfigError(f"Unsupported commitment: {self.commitment!r}")
        if self.confirm_poll_interval <= 0:
            raise ConfigError("CONFIRM_POLL_INTERVAL must be > 0")
        if self.limit < 0:
            raise ConfigError(f"limit must be >= 0 (got {self.limit})")

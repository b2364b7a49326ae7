from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional

from solders.keypair import Keypair
from solders.pubkey import Pubkey

from rent_reclaim.constants import TOKEN_PROGRAM_ID
from rent_reclaim.rpc import LedgerClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Resource:
    """An SPL token account owned by a wallet, as seen at scan time."""

    address: Pubkey
    owner: Pubkey
    amount: int
    program_id: Pubkey = TOKEN_PROGRAM_ID
    state: str = "initialized"
    close_authority: Optional[Pubkey] = None

    @property
    def is_empty(self) -> bool:
        return self.amount == 0

    @property
    def closable_by_owner(self) -> bool:
        if self.state == "frozen":
            return False
        return self.close_authority is None or self.close_authority == self.owner


def parse_token_account(entry: dict, owner: Pubkey, program_id: Pubkey = TOKEN_PROGRAM_ID) -> Resource:
    """Build a Resource from one jsonParsed getTokenAccountsByOwner entry.

    Raises AttributeError, KeyError, TypeError or ValueError for entries that
    do not have the expected shape.
    """
    account = entry["account"]
    info = account["data"]["parsed"]["info"]
    amount = int(info["tokenAmount"]["amount"])
    close_auth = info.get("closeAuthority")
    return Resource(
        address=Pubkey.from_string(entry["pubkey"]),
        owner=owner,
        amount=amount,
        program_id=program_id,
        state=str(info.get("state") or "initialized"),
        close_authority=Pubkey.from_string(close_auth) if close_auth else None,
    )


class ResourceScanner:
    def __init__(self, ledger: LedgerClient, program_id: Pubkey = TOKEN_PROGRAM_ID) -> None:
        self.ledger = ledger
        self.program_id = program_id

    def scan(self, identity: Keypair) -> List[Resource]:
        """Return the wallet's empty token accounts that it can close, in RPC order.

        Query errors propagate to the caller.
        """
        owner = identity.pubkey()
        entries = self.ledger.get_token_accounts_by_owner(owner, self.program_id)

        eligible: List[Resource] = []
        for entry in entries:
            try:
                resource = parse_token_account(entry, owner, self.program_id)
            except (AttributeError, KeyError, TypeError, ValueError) as exc:
                label = entry.get("pubkey", "?") if isinstance(entry, dict) else repr(entry)
                logger.warning(f"Skipping malformed token account entry {label}: {exc!r}")
                continue
            if not resource.is_empty:
                continue
            if not resource.closable_by_owner:
                logger.debug(
                    f"Skipping {resource.address}: state={resource.state} closeAuthority={resource.close_authority}"
                )
                continue
            eligible.append(resource)

        logger.info(f"Found {len(eligible)} empty token accounts (of {len(entries)}) for {owner}")
        return eligible

from solders.pubkey import Pubkey

LAMPORTS_PER_SOL = 1_000_000_000

TOKEN_PROGRAM_ID = Pubkey.from_string("TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA")

# SPL Token account size in bytes (no extensions)
TOKEN_ACCOUNT_SIZE = 165

# SPL Token CloseAccount instruction index
CLOSE_ACCOUNT_IX = bytes([9])

# Max serialized transaction size (IPv6 MTU minus headers)
PACKET_DATA_SIZE = 1232

# Most CloseAccount instructions that fit in one single-signer v0 transaction
MAX_CLOSE_BATCH_SIZE = 27

DEFAULT_RPC_URL = "https://api.mainnet-beta.solana.com"
DEFAULT_COMMITMENT = "confirmed"

SOLSCAN_TX_URL = "https://solscan.io/tx/{}"


def fmt_sol(lamports: int) -> str:
    return f"{lamports / LAMPORTS_PER_SOL:.9f}".rstrip("0").rstrip(".") or "0"

class ReclaimError(Exception):
    """Base class for errors raised by rent_reclaim."""


class ConfigError(ReclaimError):
    pass


class KeyFileError(ReclaimError):
    pass


class RpcError(ReclaimError, RuntimeError):
    pass


class TransactionFailedError(ReclaimError):
    """The cluster reported an error for a submitted transaction."""

    def __init__(self, signature: str, err: object) -> None:
        super().__init__(f"Transaction {signature} failed: {err}")
        self.signature = signature
        self.err = err


class CheckpointExpiredError(ReclaimError):
    """The blockhash a transaction was built against expired before it confirmed."""

    def __init__(self, signature: str, last_valid_block_height: int, block_height: int) -> None:
        super().__init__(
            f"Blockhash expired before {signature} confirmed "
            f"(block height {block_height} > last valid {last_valid_block_height})"
        )
        self.signature = signature
        self.last_valid_block_height = last_valid_block_height
        self.block_height = block_height


class TransactionTooLargeError(ReclaimError):
    def __init__(self, size: int, limit: int) -> None:
        super().__init__(f"Transaction is {size} bytes, over the {limit}-byte limit")
        self.size = size
        self.limit = limit

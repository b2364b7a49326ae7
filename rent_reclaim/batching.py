from typing import List, Sequence, Tuple, TypeVar

T = TypeVar("T")


def partition(items: Sequence[T], max_batch_size: int) -> List[Tuple[T, ...]]:
    """Split `items` into consecutive batches of at most `max_batch_size`.

    Order is preserved and nothing is padded; only the last batch may be short.
    """
    if isinstance(max_batch_size, bool) or not isinstance(max_batch_size, int) or max_batch_size <= 0:
        raise ValueError(f"max_batch_size must be a positive integer (got {max_batch_size!r})")
    items = list(items)
    return [tuple(items[i : i + max_batch_size]) for i in range(0, len(items), max_batch_size)]

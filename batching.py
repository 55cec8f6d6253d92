"""
Split notification candidates into size-bounded messages and send them
one after another with a fixed pause in between.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Iterator, Sequence, TypeVar

log = logging.getLogger(__name__)

T = TypeVar("T")


def chunked(items: Sequence[T], size: int) -> Iterator[list[T]]:
    if size < 1:
        raise ValueError(f"chunk size must be positive, got {size}")
    for start in range(0, len(items), size):
        yield list(items[start:start + size])


@dataclass
class NotificationBatch:
    index: int                  # 1-based
    total: int
    items: list
    offset: int = 0             # number of items in the batches before this one

    @property
    def label(self) -> str:
        return f"{self.index}/{self.total}"

    @property
    def is_split(self) -> bool:
        return self.total > 1


def batch(candidates: Sequence[T], max_per_batch: int) -> list[NotificationBatch]:
    """Partition *candidates* into contiguous batches of at most *max_per_batch*."""
    chunks = list(chunked(candidates, max_per_batch))
    batches = []
    offset = 0
    for i, items in enumerate(chunks, start=1):
        batches.append(NotificationBatch(index=i, total=len(chunks), items=items, offset=offset))
        offset += len(items)
    return batches


def dispatch_paced(
    messages: Sequence[T],
    send: Callable[[T], None],
    delay: float,
    sleep: Callable[[float], None] = time.sleep,
    describe: Callable[[T], str] = str,
) -> tuple[list[T], list[T]]:
    """Call *send* for each message in order, pausing *delay* seconds between them.

    A message whose send raises is logged and skipped; the rest still go out.
    Returns (sent, failed).
    """
    sent: list[T] = []
    failed: list[T] = []
    for i, message in enumerate(messages):
        if i > 0 and delay > 0:
            sleep(delay)
        try:
            send(message)
        except Exception:
            log.exception("Failed to send message %d/%d (%s)", i + 1, len(messages), describe(message))
            failed.append(message)
        else:
            sent.append(message)
    return sent, failed

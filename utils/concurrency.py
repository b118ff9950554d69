import asyncio
from typing import Awaitable, Iterable, TypeVar

from exceptions import TranscodeTimeoutError

T = TypeVar("T")


def chunked(items: Iterable[T], size: int) -> list[list[T]]:
    """Split items into consecutive lists of at most `size` elements."""
    if size < 1:
        raise ValueError("chunk size must be >= 1")
    items = list(items)
    return [items[i : i + size] for i in range(0, len(items), size)]


async def with_timeout(aw: Awaitable[T], timeout: float | None, label: str) -> T:
    """Await `aw`, converting a timeout into TranscodeTimeoutError.

    timeout=None or <= 0 disables the limit. Work already handed to a
    thread keeps running after the timeout fires; only the waiter is
    released.
    """
    if not timeout or timeout <= 0:
        return await aw
    try:
        return await asyncio.wait_for(aw, timeout=timeout)
    except asyncio.TimeoutError:
        raise TranscodeTimeoutError(
            f"Transcode of {label} timed out after {timeout}s",
            source=label,
            timeout=timeout,
        )

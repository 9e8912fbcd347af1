"""Lazy sequences over paginated RPC responses."""

from __future__ import annotations

from collections import deque
from typing import Awaitable, Callable, Generic, Optional, TypeVar

T = TypeVar("T")

FetchPage = Callable[[Optional[str]], Awaitable[tuple[list[T], Optional[str]]]]
"""Fetch one page given the cursor of the previous page (``None`` for the first).

Returns the page items and the next cursor, or ``None`` when there are no more pages.
"""


class Pager(Generic[T]):
    """A cursor plus a fetch-next closure, exposed as an async iterator.

    Every item of every page is yielded exactly once, in page order. Each
    step may issue a remote call. The pager is not restartable: once the
    server signals the last page (or a fetch raises), iteration is over and a
    new call must be made on the client.

    Examples
    --------
    >>> async for topic in client.topics():
    ...     print(topic.id)
    >>> names = [b.name for b in await client.buckets().collect()]
    """

    def __init__(self, fetch: FetchPage[T]) -> None:
        self._fetch = fetch
        self._cursor: Optional[str] = None
        self._done = False
        self._buffer: deque[T] = deque()

    @property
    def exhausted(self) -> bool:
        """True once no further page can be fetched and all buffered items were consumed."""
        return self._done and not self._buffer

    @property
    def cursor(self) -> Optional[str]:
        """Cursor of the next page to fetch."""
        return self._cursor

    async def fetch_next(self) -> Optional[list[T]]:
        """Fetch the next page, or return ``None`` if the sequence is exhausted.

        Items already buffered by iteration are not repeated here.
        """
        if self._done:
            return None
        try:
            items, cursor = await self._fetch(self._cursor)
        except Exception:
            self._done = True
            raise
        self._cursor = cursor
        if not cursor:
            self._done = True
        return list(items)

    def __aiter__(self) -> "Pager[T]":
        return self

    async def __anext__(self) -> T:
        while not self._buffer:
            page = await self.fetch_next()
            if page is None:
                raise StopAsyncIteration
            self._buffer.extend(page)
        return self._buffer.popleft()

    async def collect(self) -> list[T]:
        """Drain the remaining items into a list."""
        return [item async for item in self]


__all__ = ["FetchPage", "Pager"]

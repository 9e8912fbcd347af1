"""Datastore transactions."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Iterable, Optional

from pdum.cloud.types.exceptions import CloudError

from .entity import Entity
from .key import Key
from .query import Query

if TYPE_CHECKING:
    from pdum.cloud.pager import Pager

    from .client import DatastoreClient

logger = logging.getLogger(__name__)


@dataclass
class Transaction:
    """A transaction opened by :meth:`DatastoreClient.transaction`.

    Reads go to the server immediately and see the transaction's snapshot.
    Writes (``put``, ``put_all``, ``delete``) are accumulated locally and sent
    together by :meth:`commit`. As an async context manager, the transaction
    commits when the block succeeds and rolls back when it raises::

        async with await client.transaction() as tx:
            account = await tx.get(key)
            account.properties["balance"] -= 10
            tx.put(account)
    """

    id: str
    _client: "DatastoreClient" = field(repr=False, compare=False)
    _mutations: list[dict] = field(default_factory=list, repr=False, compare=False)
    _keys: list[Optional[Key]] = field(default_factory=list, repr=False, compare=False)
    _finished: bool = field(default=False, repr=False, compare=False)

    @property
    def pending(self) -> int:
        """Number of mutations waiting for commit."""
        return len(self._mutations)

    async def get(self, key: Key) -> Optional[Entity]:
        return await self._client.get(key, transaction=self.id)

    async def get_all(self, keys: Iterable[Key]) -> list[Entity]:
        return await self._client.get_all(keys, transaction=self.id)

    def query(self, query: Query) -> "Pager[Entity]":
        return self._client.query(query, transaction=self.id)

    def put(self, entity: Entity) -> None:
        """Queue an insert (incomplete key) or upsert."""
        self._check_open()
        self._mutations.append(self._client.mutation_for(entity))
        self._keys.append(entity.key)

    def put_all(self, entities: Iterable[Entity]) -> None:
        for entity in entities:
            self.put(entity)

    def delete(self, key: Key) -> None:
        self._check_open()
        self._mutations.append({"delete": key.to_wire(self._client.project)})
        self._keys.append(None)

    async def commit(self) -> list[Optional[Key]]:
        """Send the queued mutations.

        Returns one entry per queued mutation: the stored key for puts,
        ``None`` for deletes. On failure the queue is left untouched.
        """
        self._check_open()
        keys = await self._client.commit(list(self._mutations), transaction=self.id, keys=list(self._keys))
        self._finished = True
        self._mutations.clear()
        self._keys.clear()
        return keys

    async def rollback(self) -> None:
        self._check_open()
        await self._client.rollback(self.id)
        self._finished = True
        self._mutations.clear()
        self._keys.clear()

    def _check_open(self) -> None:
        if self._finished:
            raise RuntimeError(f"Transaction {self.id} is already committed or rolled back")

    async def __aenter__(self) -> "Transaction":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self._finished:
            return
        if exc_type is None:
            await self.commit()
        else:
            logger.debug("Rolling back transaction %s after %s", self.id, exc_type.__name__)
            try:
                await self.rollback()
            except CloudError:
                # The error that aborted the block is re-raised, not the rollback failure.
                logger.warning("Rollback of transaction %s failed", self.id, exc_info=True)


__all__ = ["Transaction"]

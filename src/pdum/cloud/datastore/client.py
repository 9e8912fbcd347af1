"""Datastore client."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Iterable, Optional

from pdum.cloud._clients import datastore_channel
from pdum.cloud._helpers import quote_segment, require
from pdum.cloud.channel import Channel
from pdum.cloud.config import ClientConfig
from pdum.cloud.pager import Pager
from pdum.cloud.types.exceptions import DecodeError

from .entity import Entity
from .index_excluded import IndexExcluded
from .key import Key
from .query import Query
from .transaction import Transaction

logger = logging.getLogger(__name__)


class TransactionMode(Enum):
    """How a transaction is opened."""

    DEFAULT = "default"
    READ_ONLY = "readOnly"
    READ_WRITE = "readWrite"


class DatastoreClient:
    """The Datastore client, tied to a specific project.

    Example
    -------
    >>> async with await DatastoreClient.connect("my-project") as client:
    ...     await client.put(Entity(Key("user", "k1"), {"name": "Ada"}))
    ...     entity = await client.get(Key("user", "k1"))
    """

    def __init__(self, project: str, channel: Channel, *, index_excluded: Optional[IndexExcluded] = None) -> None:
        self.project = project
        self.channel = channel.retain()
        self.index_excluded = index_excluded or IndexExcluded()

    def __repr__(self) -> str:
        return f"DatastoreClient(project={self.project!r}, endpoint={self.channel.base_url!r})"

    @classmethod
    async def connect(
        cls, project: Optional[str] = None, *, config: Optional[ClientConfig] = None
    ) -> "DatastoreClient":
        """Create an authenticated client.

        Index exclusion rules are read from ``config.index_excluded`` or
        ``$INDEX_EXCLUDED``.

        Raises
        ------
        AuthError
            If credentials or the project cannot be determined.
        CloudConnectionError
            If the endpoint is unreachable.
        """
        index_excluded = IndexExcluded.load(config.index_excluded if config else None)
        channel, project = await datastore_channel(project, config)
        return cls(project, channel, index_excluded=index_excluded)

    async def close(self) -> None:
        await self.channel.release()

    async def __aenter__(self) -> "DatastoreClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def _call(self, method: str, body: dict) -> dict:
        return await self.channel.request("POST", f"/v1/projects/{quote_segment(self.project)}:{method}", json=body)

    # -- reads ---------------------------------------------------------------

    async def get(self, key: Key, *, transaction: Optional[str] = None) -> Optional[Entity]:
        """Get the entity stored under ``key``, or ``None``."""
        found = await self.get_all([key], transaction=transaction)
        return found[0] if found else None

    async def get_all(self, keys: Iterable[Key], *, transaction: Optional[str] = None) -> list[Entity]:
        """Get several entities.

        Deferred keys are looked up again until every key is resolved. Results
        follow the order of ``keys``; missing entities are skipped.
        """
        keys = list(keys)
        pending = [key.to_wire(self.project) for key in keys]
        found: dict[Key, Entity] = {}

        while pending:
            body: dict = {"keys": pending}
            if transaction is not None:
                body["readOptions"] = {"transaction": transaction}
            response = await self._call("lookup", body)
            for result in response.get("found", []):
                entity = Entity.from_wire(require(result, "entity", what="lookup result"))
                found[entity.key] = entity
            pending = response.get("deferred", [])
            if pending:
                logger.debug("Lookup deferred %d keys", len(pending))

        return [found[key] for key in keys if key in found]

    def query(self, query: Query, *, transaction: Optional[str] = None) -> Pager[Entity]:
        """Run a query; results are fetched batch by batch as the pager is consumed."""
        remaining = {"offset": query.offset, "limit": query.limit}

        async def fetch(cursor: Optional[str]) -> tuple[list[Entity], Optional[str]]:
            read_options: dict
            if transaction is not None:
                read_options = {"transaction": transaction}
            else:
                read_options = {"readConsistency": "EVENTUAL" if query.eventual else "STRONG"}

            body = {
                "partitionId": {"projectId": self.project, "namespaceId": query.namespace or ""},
                "readOptions": read_options,
                "query": query.to_wire(
                    self.project,
                    cursor=cursor,
                    offset=remaining["offset"],
                    limit=remaining["limit"],
                ),
            }
            response = await self._call("runQuery", body)
            batch = require(response, "batch", what="runQuery response")

            entities = [
                Entity.from_wire(require(result, "entity", what="query result"))
                for result in batch.get("entityResults", [])
            ]
            remaining["offset"] = max(0, remaining["offset"] - int(batch.get("skippedResults", 0)))
            if remaining["limit"] is not None:
                remaining["limit"] = max(0, remaining["limit"] - len(entities))

            more = batch.get("moreResults")
            if more is None:
                raise DecodeError("runQuery batch is missing `moreResults`")
            if more == "NOT_FINISHED" and remaining["limit"] != 0:
                return entities, require(batch, "endCursor", what="query batch")
            return entities, None

        return Pager(fetch)

    # -- writes --------------------------------------------------------------

    def mutation_for(self, entity: Entity) -> dict:
        """Insert for incomplete keys, upsert otherwise."""
        operation = "insert" if entity.key.is_incomplete() else "upsert"
        return {operation: entity.to_wire(self.project, self.index_excluded)}

    async def commit(
        self,
        mutations: list[dict],
        *,
        transaction: Optional[str] = None,
        keys: Optional[list[Optional[Key]]] = None,
    ) -> list[Optional[Key]]:
        """Send mutations; returns one key per mutation.

        A mutation result without a key (upserts of complete keys, deletes)
        maps to the matching entry of ``keys`` when given, else ``None``.
        """
        body: dict = {"mutations": mutations}
        if transaction is not None:
            body["mode"] = "TRANSACTIONAL"
            body["transaction"] = transaction
        else:
            body["mode"] = "NON_TRANSACTIONAL"

        response = await self._call("commit", body)
        results = response.get("mutationResults", [])
        if len(results) != len(mutations):
            raise DecodeError(f"commit returned {len(results)} results for {len(mutations)} mutations")

        out: list[Optional[Key]] = []
        for index, result in enumerate(results):
            if result.get("key"):
                out.append(Key.from_wire(result["key"]))
            else:
                out.append(keys[index] if keys else None)
        return out

    async def put(self, entity: Entity) -> Key:
        """Store an entity and return its (possibly newly assigned) key."""
        (key,) = await self.put_all([entity])
        return key

    async def put_all(self, entities: Iterable[Entity]) -> list[Key]:
        """Store several entities in one non-transactional commit."""
        entities = list(entities)
        if not entities:
            return []
        keys = await self.commit([self.mutation_for(e) for e in entities], keys=[e.key for e in entities])
        return keys  # type: ignore[return-value]

    async def delete(self, key: Key) -> None:
        await self.delete_all([key])

    async def delete_all(self, keys: Iterable[Key]) -> None:
        mutations = [{"delete": key.to_wire(self.project)} for key in keys]
        if mutations:
            await self.commit(mutations)

    async def allocate_ids(self, keys: Iterable[Key]) -> list[Key]:
        """Complete incomplete keys with ids reserved by the datastore."""
        wire = [key.to_wire(self.project) for key in keys]
        if not wire:
            return []
        response = await self._call("allocateIds", {"keys": wire})
        return [Key.from_wire(k) for k in response.get("keys", [])]

    # -- transactions --------------------------------------------------------

    async def transaction(
        self,
        mode: TransactionMode = TransactionMode.DEFAULT,
        *,
        previous_transaction: Optional[str] = None,
    ) -> Transaction:
        """Begin a transaction.

        ``previous_transaction`` retries a read-write transaction that was
        rolled back; it is only used with ``TransactionMode.READ_WRITE``.
        """
        body: dict = {}
        if mode is TransactionMode.READ_ONLY:
            body["transactionOptions"] = {"readOnly": {}}
        elif mode is TransactionMode.READ_WRITE:
            read_write = {"previousTransaction": previous_transaction} if previous_transaction else {}
            body["transactionOptions"] = {"readWrite": read_write}

        response = await self._call("beginTransaction", body)
        return Transaction(id=require(response, "transaction", what="beginTransaction response"), _client=self)

    async def rollback(self, transaction: str) -> None:
        await self._call("rollback", {"transaction": transaction})


__all__ = ["DatastoreClient", "TransactionMode"]

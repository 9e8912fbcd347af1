#!/usr/bin/env python3
"""Example script demonstrating the Datastore client and the model mapping.

Usage:
    python example_datastore.py my-project

Against the local emulator:
    DATASTORE_EMULATOR_HOST=localhost:8081 python example_datastore.py test-project
"""

import asyncio
import sys
from dataclasses import dataclass

from pdum.cloud import DatastoreClient, Entity, Key, Query, TransactionMode, model


@model(rename_all="camelCase")
@dataclass
class Account:
    owner_name: str
    balance: int


async def main(project):
    """Store two accounts, move money between them and list the kind."""
    async with await DatastoreClient.connect(project) as client:
        alice, bob = Key("ExampleAccount", "alice"), Key("ExampleAccount", "bob")
        await client.put_all(
            [
                Entity.from_model(alice, Account("Alice", 100)),
                Entity.from_model(bob, Account("Bob", 20)),
            ]
        )

        async with await client.transaction(TransactionMode.READ_WRITE) as tx:
            source, target = await tx.get_all([alice, bob])
            source.properties["balance"] -= 30
            target.properties["balance"] += 30
            tx.put_all([source, target])

        async for entity in client.query(Query("ExampleAccount")):
            account = entity.to_model(Account)
            print(f"   {entity.key.id}: {account.owner_name} has {account.balance}")

        await client.delete_all([alice, bob])


if __name__ == "__main__":
    if len(sys.argv) != 2:
        print(__doc__)
        sys.exit(1)
    asyncio.run(main(sys.argv[1]))

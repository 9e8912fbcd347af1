"""Tests for the Datastore client against the in-process fake."""

import datetime as dt

import pytest

from pdum.cloud import DatastoreClient, Entity, GeoPoint, Key, Query, TransactionMode
from pdum.cloud.config import ClientConfig
from pdum.cloud.datastore import IndexExcluded
from pdum.cloud.types.exceptions import ServiceError


@pytest.mark.asyncio
async def test_write_then_read_returns_the_same_value(datastore_config):
    async with await DatastoreClient.connect(config=datastore_config) as client:
        await client.put(Entity(Key("user", "k1"), {"value": "v1"}))
        entity = await client.get(Key("user", "k1"))

    assert entity is not None
    assert entity.key == Key("user", "k1")
    assert entity["value"] == "v1"


@pytest.mark.asyncio
async def test_every_value_type_survives_a_round_trip(datastore_config):
    properties = {
        "null": None,
        "flag": True,
        "count": 42,
        "ratio": 0.5,
        "when": dt.datetime(2024, 5, 1, 12, 30, tzinfo=dt.timezone.utc),
        "owner": Key("user", 7),
        "name": "Ada",
        "raw": b"\x00\x01",
        "where": GeoPoint(48.85, 2.35),
        "nested": {"a": 1, "tags": ["x", "y"]},
        "list": [1, "two", None],
    }

    async with await DatastoreClient.connect(config=datastore_config) as client:
        key = await client.put(Entity(Key("thing", "all"), properties))
        entity = await client.get(key)

    assert entity.properties == properties


@pytest.mark.asyncio
async def test_get_missing_returns_none(datastore_config):
    async with await DatastoreClient.connect(config=datastore_config) as client:
        assert await client.get(Key("user", "nobody")) is None


@pytest.mark.asyncio
async def test_incomplete_key_is_completed_on_insert(fake_datastore, datastore_config):
    async with await DatastoreClient.connect(config=datastore_config) as client:
        key = await client.put(Entity(Key("user"), {"name": "Ada"}))
        entity = await client.get(key)

    assert isinstance(key.id, int)
    assert entity["name"] == "Ada"
    (mutation,) = fake_datastore.json_bodies(":commit")[0]["mutations"]
    assert "insert" in mutation


@pytest.mark.asyncio
async def test_get_all_follows_deferred_keys_and_keeps_order(fake_datastore, datastore_config):
    keys = [Key("user", name) for name in ["c", "a", "missing", "b"]]

    async with await DatastoreClient.connect(config=datastore_config) as client:
        await client.put_all([Entity(k, {"n": k.id}) for k in keys if k.id != "missing"])
        fake_datastore.defer_next_lookup = True
        entities = await client.get_all(keys)

    assert [e.key.id for e in entities] == ["c", "a", "b"]
    assert len(fake_datastore.json_bodies(":lookup")) == 2


@pytest.mark.asyncio
async def test_delete(datastore_config):
    async with await DatastoreClient.connect(config=datastore_config) as client:
        await client.put(Entity(Key("user", "k1"), {"value": 1}))
        await client.delete(Key("user", "k1"))
        assert await client.get(Key("user", "k1")) is None


@pytest.mark.asyncio
async def test_parent_and_namespace_are_part_of_the_key(datastore_config):
    parent = Key("user", "ada", namespace="tenant")
    child = parent.child("post", 10)

    async with await DatastoreClient.connect(config=datastore_config) as client:
        await client.put(Entity(child, {"title": "hi"}))
        found = await client.get(child)
        assert await client.get(Key("post", 10)) is None

    assert found.key == child
    assert found.key.parent == parent
    assert found.key.namespace == "tenant"


@pytest.mark.asyncio
async def test_query_pages_through_every_batch(fake_datastore, datastore_config):
    async with await DatastoreClient.connect(config=datastore_config) as client:
        await client.put_all([Entity(Key("item", f"i{n}"), {"n": n}) for n in range(5)])
        await client.put(Entity(Key("other", "x"), {"n": 0}))

        entities = await client.query(Query("item")).collect()

    assert [e["n"] for e in entities] == [0, 1, 2, 3, 4]
    cursors = [body["query"].get("startCursor") for body in fake_datastore.json_bodies(":runQuery")]
    assert cursors == [None, "2", "4"]


@pytest.mark.asyncio
async def test_query_limit_spans_batches(fake_datastore, datastore_config):
    async with await DatastoreClient.connect(config=datastore_config) as client:
        await client.put_all([Entity(Key("item", f"i{n}"), {"n": n}) for n in range(5)])
        entities = await client.query(Query("item").with_limit(3)).collect()

    assert [e["n"] for e in entities] == [0, 1, 2]
    limits = [body["query"]["limit"] for body in fake_datastore.json_bodies(":runQuery")]
    assert limits == [3, 1]


@pytest.mark.asyncio
async def test_query_offset_and_filter(fake_datastore, datastore_config):
    async with await DatastoreClient.connect(config=datastore_config) as client:
        await client.put_all([Entity(Key("item", f"i{n}"), {"n": n, "even": n % 2 == 0}) for n in range(6)])

        skipped = await client.query(Query("item").with_offset(3)).collect()
        evens = await client.query(Query("item").filter("even", "=", True)).collect()

    assert [e["n"] for e in skipped] == [3, 4, 5]
    assert [e["n"] for e in evens] == [0, 2, 4]
    offsets = [body["query"].get("offset") for body in fake_datastore.json_bodies(":runQuery")]
    assert offsets[:2] == [3, None]


@pytest.mark.asyncio
async def test_query_on_empty_kind(datastore_config):
    async with await DatastoreClient.connect(config=datastore_config) as client:
        assert await client.query(Query("nothing")).collect() == []


@pytest.mark.asyncio
async def test_transaction_commits_on_success(fake_datastore, datastore_config):
    async with await DatastoreClient.connect(config=datastore_config) as client:
        await client.put(Entity(Key("account", "a"), {"balance": 100}))

        async with await client.transaction(TransactionMode.READ_WRITE) as tx:
            account = await tx.get(Key("account", "a"))
            account.properties["balance"] -= 10
            tx.put(account)
            tx.put(Entity(Key("audit"), {"delta": -10}))
            assert tx.pending == 2

        assert (await client.get(Key("account", "a")))["balance"] == 90

    commit = fake_datastore.json_bodies(":commit")[-1]
    assert commit["mode"] == "TRANSACTIONAL"
    assert commit["transaction"] == tx.id
    lookup = fake_datastore.json_bodies(":lookup")[0]
    assert lookup["readOptions"] == {"transaction": tx.id}
    begin = fake_datastore.json_bodies(":beginTransaction")[0]
    assert begin == {"transactionOptions": {"readWrite": {}}}


@pytest.mark.asyncio
async def test_transaction_rolls_back_on_error(fake_datastore, datastore_config):
    async with await DatastoreClient.connect(config=datastore_config) as client:
        with pytest.raises(RuntimeError):
            async with await client.transaction() as tx:
                tx.put(Entity(Key("account", "a"), {"balance": 1}))
                raise RuntimeError("abort")

        assert await client.get(Key("account", "a")) is None

    assert fake_datastore.rolled_back == [tx.id]


@pytest.mark.asyncio
async def test_transaction_commit_returns_keys(datastore_config):
    async with await DatastoreClient.connect(config=datastore_config) as client:
        tx = await client.transaction(TransactionMode.READ_WRITE)
        tx.put(Entity(Key("user", "named"), {}))
        tx.put(Entity(Key("user"), {}))
        tx.delete(Key("user", "gone"))
        keys = await tx.commit()

        with pytest.raises(RuntimeError):
            tx.put(Entity(Key("user", "late"), {}))

    assert keys[0] == Key("user", "named")
    assert keys[1].kind == "user" and isinstance(keys[1].id, int)
    assert keys[2] is None


@pytest.mark.asyncio
async def test_failed_commit_keeps_pending_mutations(fake_datastore, datastore_config):
    async with await DatastoreClient.connect(config=datastore_config) as client:
        tx = await client.transaction()
        tx.put(Entity(Key("user", "a"), {}))
        # The fake forgets the transaction, so the commit is rejected.
        fake_datastore.transactions.clear()

        with pytest.raises(ServiceError):
            await tx.commit()

    assert tx.pending == 1


@pytest.mark.asyncio
async def test_read_only_transaction_options(fake_datastore, datastore_config):
    async with await DatastoreClient.connect(config=datastore_config) as client:
        await client.transaction(TransactionMode.READ_ONLY)
        await client.transaction(TransactionMode.READ_WRITE, previous_transaction="tx-old")

    begins = fake_datastore.json_bodies(":beginTransaction")
    assert begins[0] == {"transactionOptions": {"readOnly": {}}}
    assert begins[1] == {"transactionOptions": {"readWrite": {"previousTransaction": "tx-old"}}}


@pytest.mark.asyncio
async def test_allocate_ids(datastore_config):
    async with await DatastoreClient.connect(config=datastore_config) as client:
        keys = await client.allocate_ids([Key("user"), Key("user")])

    assert len(keys) == 2
    assert all(isinstance(k.id, int) for k in keys)
    assert keys[0] != keys[1]


@pytest.mark.asyncio
async def test_index_exclusions_from_yaml(tmp_path, fake_datastore, credentials):
    rules = tmp_path / "index.yaml"
    rules.write_text("kind:\n  user:\n    property:\n      bio: true\n      name: false\n")
    config = ClientConfig(
        project="test-project",
        credentials=credentials,
        transport=fake_datastore.transport(),
        index_excluded=str(rules),
    )

    async with await DatastoreClient.connect(config=config) as client:
        await client.put(Entity(Key("user", "ada"), {"bio": "long text", "name": "Ada", "tags": ["a"]}))
        await client.put(Entity(Key("post", "p"), {"bio": "indexed"}))

    stored = fake_datastore.json_bodies(":commit")
    user = stored[0]["mutations"][0]["upsert"]["properties"]
    post = stored[1]["mutations"][0]["upsert"]["properties"]
    assert user["bio"]["excludeFromIndexes"] is True
    assert "excludeFromIndexes" not in user["name"]
    assert "excludeFromIndexes" not in post["bio"]


@pytest.mark.asyncio
async def test_index_exclusions_from_environment(tmp_path, monkeypatch, fake_datastore, datastore_config):
    rules = tmp_path / "index.yaml"
    rules.write_text("kind:\n  user:\n    property:\n      tags: true\n")
    monkeypatch.setenv("INDEX_EXCLUDED", str(rules))

    async with await DatastoreClient.connect(config=datastore_config) as client:
        await client.put(Entity(Key("user", "ada"), {"tags": ["a", "b"]}))

    tags = fake_datastore.json_bodies(":commit")[0]["mutations"][0]["upsert"]["properties"]["tags"]
    assert "excludeFromIndexes" not in tags
    assert all(v["excludeFromIndexes"] is True for v in tags["arrayValue"]["values"])


@pytest.mark.asyncio
async def test_empty_namespace_is_the_default_namespace(datastore_config):
    key = Key("user", "k1", namespace="")

    async with await DatastoreClient.connect(config=datastore_config) as client:
        await client.put(Entity(key, {"v": 1}))
        entity = await client.get(key)
        found = await client.get_all([key, Key("user", "k1")])

    assert key == Key("user", "k1")
    assert entity is not None
    assert entity["v"] == 1
    assert len(found) == 2


@pytest.mark.asyncio
async def test_failed_rollback_keeps_the_original_error(fake_datastore, datastore_config):
    async with await DatastoreClient.connect(config=datastore_config) as client:
        with pytest.raises(RuntimeError, match="abort"):
            async with await client.transaction() as tx:
                tx.put(Entity(Key("account", "a"), {"balance": 1}))
                # The server has already dropped the transaction, so the rollback fails.
                fake_datastore.transactions.clear()
                raise RuntimeError("abort")

    assert fake_datastore.rolled_back == []


def test_index_exclusion_lookup():
    rules = IndexExcluded.from_dict({"kind": {"user": {"property": {"bio": True, "name": False}}}})

    assert rules.is_excluded("user", "bio")
    assert not rules.is_excluded("user", "name")
    assert not rules.is_excluded("post", "bio")
    with pytest.raises(ValueError):
        IndexExcluded.from_dict({"kinds": {}})

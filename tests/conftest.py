"""In-process fakes of the Pub/Sub, Datastore and Storage REST APIs.

Each fake is an ``httpx.MockTransport`` handler keeping its state in memory,
so the clients run end to end (auth header, paging, error mapping) without
network access.
"""

import datetime as dt
import json
from urllib.parse import unquote

import httpx
import pytest
from google.auth.credentials import Credentials

from pdum.cloud.config import ClientConfig

PROJECT = "test-project"


def _utcnow() -> dt.datetime:
    # google-auth compares expiry against a naive UTC clock.
    return dt.datetime.now(dt.timezone.utc).replace(tzinfo=None)


class FakeCredentials(Credentials):
    """Credentials whose refresh hands out ``token-1``, ``token-2``, ..."""

    def __init__(self, token=None, expiry=None, fail=None):
        super().__init__()
        self.token = token
        self.expiry = expiry
        self.refresh_count = 0
        self.fail = fail

    def refresh(self, request):
        if self.fail is not None:
            raise self.fail
        self.refresh_count += 1
        self.token = f"token-{self.refresh_count}"
        self.expiry = _utcnow() + dt.timedelta(hours=1)


def _error(code, status, message):
    return httpx.Response(code, json={"error": {"code": code, "status": status, "message": message}})


def _segments(request):
    raw = request.url.raw_path.decode("ascii").split("?", 1)[0]
    return [unquote(part) for part in raw.strip("/").split("/")]


def _page(items, request, size_param="pageSize"):
    size = int(request.url.params.get(size_param, len(items) or 1))
    start = int(request.url.params.get("pageToken") or 0)
    end = start + size
    return items[start:end], (str(end) if end < len(items) else None)


class FakeService:
    """Shared behavior: probe, bearer-token checks and request log."""

    def __init__(self):
        self.requests = []
        self.tokens = []
        self.rejected_tokens = set()
        self.reject_all = False

    def transport(self):
        return httpx.MockTransport(self.handle)

    def handle(self, request):
        if request.url.path == "/" and request.method == "GET":
            return httpx.Response(200, text="ok")

        self.requests.append(request)
        auth = request.headers.get("authorization", "")
        token = auth[len("Bearer ") :] if auth.startswith("Bearer ") else None
        self.tokens.append(token)
        if self.reject_all or token in self.rejected_tokens:
            return _error(401, "UNAUTHENTICATED", "Request had invalid authentication credentials.")
        return self.route(request)

    def route(self, request):
        raise NotImplementedError

    def json_bodies(self, suffix):
        return [json.loads(r.content) for r in self.requests if r.url.path.endswith(suffix)]


class FakePubSub(FakeService):
    def __init__(self):
        super().__init__()
        self.topics = {}
        self.subscriptions = {}
        self.pending = {}
        self.leased = {}
        self._ids = 0

    def _next_id(self):
        self._ids += 1
        return str(self._ids)

    def route(self, request):
        parts = _segments(request)
        method = request.method
        body = json.loads(request.content) if request.content else {}
        last = parts[-1]
        action = last.split(":", 1)[1] if ":" in last else None
        name = "/".join(parts[1:])
        if action:
            name = name[: -len(action) - 1]

        # /v1/projects/p/topics | /v1/projects/p/subscriptions
        if len(parts) == 4 and method == "GET":
            collection = self.topics if parts[3] == "topics" else self.subscriptions
            items, token = _page(sorted(collection), request)
            response = {parts[3]: [{"name": n} for n in items]}
            if token:
                response["nextPageToken"] = token
            return httpx.Response(200, json=response)

        # /v1/projects/p/topics/t/subscriptions
        if len(parts) == 6 and parts[5] == "subscriptions":
            topic = "/".join(parts[1:5])
            names = sorted(n for n, s in self.subscriptions.items() if s["topic"] == topic)
            items, token = _page(names, request)
            response = {"subscriptions": items}
            if token:
                response["nextPageToken"] = token
            return httpx.Response(200, json=response)

        if parts[3] == "topics":
            return self._topic(method, name, action, body)
        return self._subscription(method, name, action, body)

    def _topic(self, method, name, action, body):
        if method == "PUT":
            if name in self.topics:
                return _error(409, "ALREADY_EXISTS", "Resource already exists in the project")
            self.topics[name] = body
            return httpx.Response(200, json={"name": name, **body})
        if name not in self.topics:
            return _error(404, "NOT_FOUND", "Resource not found (resource=%s)." % name.rsplit("/", 1)[-1])
        if method == "GET":
            return httpx.Response(200, json={"name": name})
        if method == "DELETE":
            del self.topics[name]
            return httpx.Response(200, json={})
        if action == "publish":
            ids = []
            for message in body["messages"]:
                message_id = self._next_id()
                ids.append(message_id)
                published = dict(message, messageId=message_id, publishTime="2024-05-01T12:00:00.123456789Z")
                for sub_name, sub in self.subscriptions.items():
                    if sub["topic"] == name:
                        self.pending[sub_name].append({"ackId": f"ack-{message_id}-{sub_name}", "message": published})
            return httpx.Response(200, json={"messageIds": ids})
        return _error(400, "INVALID_ARGUMENT", f"unsupported {method} {action}")

    def _subscription(self, method, name, action, body):
        if method == "PUT":
            if body["topic"] not in self.topics:
                return _error(404, "NOT_FOUND", "Resource not found (resource=topic).")
            self.subscriptions[name] = body
            self.pending[name] = []
            return httpx.Response(200, json={"name": name, **body})
        if name not in self.subscriptions:
            return _error(404, "NOT_FOUND", "Resource not found (resource=subscription).")
        if method == "GET":
            return httpx.Response(200, json={"name": name, **self.subscriptions[name]})
        if method == "DELETE":
            del self.subscriptions[name]
            return httpx.Response(200, json={})
        if action == "pull":
            queue = self.pending[name]
            batch, self.pending[name] = queue[: body["maxMessages"]], queue[body["maxMessages"] :]
            for received in batch:
                self.leased[received["ackId"]] = (name, received)
            return httpx.Response(200, json={"receivedMessages": batch} if batch else {})
        if action == "acknowledge":
            for ack_id in body["ackIds"]:
                self.leased.pop(ack_id, None)
            return httpx.Response(200, json={})
        if action == "modifyAckDeadline":
            if body["ackDeadlineSeconds"] == 0:
                for ack_id in body["ackIds"]:
                    sub_name, received = self.leased.pop(ack_id)
                    attempt = received.get("deliveryAttempt", 0) + 1
                    self.pending[sub_name].insert(0, dict(received, deliveryAttempt=attempt))
            return httpx.Response(200, json={})
        return _error(400, "INVALID_ARGUMENT", f"unsupported {method} {action}")


def _key_id(key):
    return json.dumps([key["partitionId"].get("namespaceId", ""), key["path"]], sort_keys=True)


class FakeDatastore(FakeService):
    """Entities are compared and filtered on their JSON form; batches hold ``batch_size`` results."""

    def __init__(self, batch_size=2):
        super().__init__()
        self.batch_size = batch_size
        self.entities = {}
        self.defer_next_lookup = False
        self.transactions = {}
        self.rolled_back = []
        self._ids = 1000

    def _allocate(self, key):
        self._ids += 1
        key = json.loads(json.dumps(key))
        key["path"][-1]["id"] = str(self._ids)
        return key

    def route(self, request):
        action = _segments(request)[-1].split(":", 1)[1]
        body = json.loads(request.content) if request.content else {}
        return getattr(self, "_" + action)(body)

    def _lookup(self, body):
        keys = body["keys"]
        deferred = []
        if self.defer_next_lookup and len(keys) > 1:
            self.defer_next_lookup = False
            keys, deferred = keys[:1], keys[1:]
        found, missing = [], []
        for key in keys:
            entity = self.entities.get(_key_id(key))
            if entity is None:
                missing.append({"entity": {"key": key}})
            else:
                found.append({"entity": entity})
        response = {}
        if found:
            response["found"] = found
        if missing:
            response["missing"] = missing
        if deferred:
            response["deferred"] = deferred
        return httpx.Response(200, json=response)

    def _commit(self, body):
        if body["mode"] == "TRANSACTIONAL" and body.get("transaction") not in self.transactions:
            return _error(400, "INVALID_ARGUMENT", "Invalid transaction.")
        results = []
        for mutation in body["mutations"]:
            (operation, target), = mutation.items()
            if operation == "delete":
                self.entities.pop(_key_id(target), None)
                results.append({"version": "1"})
                continue
            key = target["key"]
            last = key["path"][-1]
            if "id" not in last and "name" not in last:
                key = self._allocate(key)
                target = dict(target, key=key)
                self.entities[_key_id(key)] = target
                results.append({"key": key, "version": "1"})
            else:
                self.entities[_key_id(key)] = target
                results.append({"version": "1"})
        if body["mode"] == "TRANSACTIONAL":
            self.transactions.pop(body["transaction"])
        return httpx.Response(200, json={"mutationResults": results})

    def _runQuery(self, body):
        query = body["query"]
        kind = query["kind"][0]["name"]
        namespace = body["partitionId"].get("namespaceId", "")
        matches = [
            e
            for e in self.entities.values()
            if e["key"]["path"][-1]["kind"] == kind and e["key"]["partitionId"].get("namespaceId", "") == namespace
        ]
        prop_filter = query.get("filter", {}).get("propertyFilter")
        if prop_filter:
            name, value = prop_filter["property"]["name"], prop_filter["value"]
            matches = [e for e in matches if e["properties"].get(name) == value]
        matches.sort(key=lambda e: _key_id(e["key"]))

        start = int(query.get("startCursor") or 0)
        skipped = min(query.get("offset", 0), max(0, len(matches) - start))
        start += skipped
        size = self.batch_size
        limit = query.get("limit")
        if limit is not None:
            size = min(size, limit)
        page = matches[start : start + size]
        end = start + len(page)

        if end >= len(matches):
            more = "NO_MORE_RESULTS"
        elif limit is not None and len(page) == limit:
            more = "MORE_RESULTS_AFTER_LIMIT"
        else:
            more = "NOT_FINISHED"

        batch = {
            "entityResultType": "FULL",
            "entityResults": [{"entity": e} for e in page],
            "endCursor": str(end),
            "moreResults": more,
        }
        if skipped:
            batch["skippedResults"] = skipped
        return httpx.Response(200, json={"batch": batch})

    def _beginTransaction(self, body):
        tx = f"tx-{len(self.transactions) + len(self.rolled_back) + 1}"
        self.transactions[tx] = body.get("transactionOptions", {})
        return httpx.Response(200, json={"transaction": tx})

    def _rollback(self, body):
        if body["transaction"] not in self.transactions:
            return _error(400, "INVALID_ARGUMENT", "Invalid transaction.")
        self.transactions.pop(body["transaction"])
        self.rolled_back.append(body["transaction"])
        return httpx.Response(200, json={})

    def _allocateIds(self, body):
        return httpx.Response(200, json={"keys": [self._allocate(k) for k in body["keys"]]})


class FakeStorage(FakeService):
    def __init__(self):
        super().__init__()
        self.buckets = {}

    def _bucket_resource(self, name):
        return {"kind": "storage#bucket", "name": name, "location": "US", "storageClass": "STANDARD"}

    def _object_resource(self, bucket, name):
        data, content_type = self.buckets[bucket][name]
        return {
            "kind": "storage#object",
            "bucket": bucket,
            "name": name,
            "size": str(len(data)),
            "contentType": content_type,
            "updated": "2024-05-01T12:00:00.000Z",
            "generation": "1",
        }

    def route(self, request):
        parts = _segments(request)
        method = request.method
        params = request.url.params

        if parts[0] == "upload":
            bucket = parts[4]
            if bucket not in self.buckets:
                return _error(404, "notFound", "The specified bucket does not exist.")
            name = params["name"]
            self.buckets[bucket][name] = (request.content, request.headers.get("content-type"))
            return httpx.Response(200, json=self._object_resource(bucket, name))

        # /storage/v1/b[/bucket[/o[/object]]]
        if len(parts) == 3:
            if method == "POST":
                name = json.loads(request.content)["name"]
                if name in self.buckets:
                    return _error(409, "conflict", "You already own this bucket.")
                self.buckets[name] = {}
                return httpx.Response(200, json=self._bucket_resource(name))
            items, token = _page(sorted(self.buckets), request, "maxResults")
            response = {"kind": "storage#buckets"}
            if items:
                response["items"] = [self._bucket_resource(b) for b in items]
            if token:
                response["nextPageToken"] = token
            return httpx.Response(200, json=response)

        bucket = parts[3]
        if bucket not in self.buckets:
            return _error(404, "notFound", "The specified bucket does not exist.")
        if len(parts) == 4:
            if method == "DELETE":
                if self.buckets[bucket]:
                    return _error(409, "conflict", "The bucket you tried to delete is not empty.")
                del self.buckets[bucket]
                return httpx.Response(204)
            return httpx.Response(200, json=self._bucket_resource(bucket))

        if len(parts) == 5:
            prefix = params.get("prefix", "")
            names = sorted(n for n in self.buckets[bucket] if n.startswith(prefix))
            items, token = _page(names, request, "maxResults")
            response = {"kind": "storage#objects"}
            if items:
                response["items"] = [self._object_resource(bucket, n) for n in items]
            if token:
                response["nextPageToken"] = token
            return httpx.Response(200, json=response)

        name = parts[5]
        if name not in self.buckets[bucket]:
            return _error(404, "notFound", f"No such object: {bucket}/{name}")
        if method == "DELETE":
            del self.buckets[bucket][name]
            return httpx.Response(204)
        if params.get("alt") == "media":
            return httpx.Response(200, content=self.buckets[bucket][name][0])
        return httpx.Response(200, json=self._object_resource(bucket, name))


@pytest.fixture
def credentials():
    return FakeCredentials(token="initial", expiry=_utcnow() + dt.timedelta(hours=1))


@pytest.fixture
def expired_credentials():
    return FakeCredentials(token="expired", expiry=_utcnow() - dt.timedelta(minutes=5))


@pytest.fixture(autouse=True)
def _no_emulators(monkeypatch):
    for name in ("PUBSUB_EMULATOR_HOST", "DATASTORE_EMULATOR_HOST", "STORAGE_EMULATOR_HOST", "INDEX_EXCLUDED"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def fake_pubsub():
    return FakePubSub()


@pytest.fixture
def fake_datastore():
    return FakeDatastore()


@pytest.fixture
def fake_storage():
    return FakeStorage()


def _config(fake, credentials):
    return ClientConfig(project=PROJECT, credentials=credentials, transport=fake.transport())


@pytest.fixture
def pubsub_config(fake_pubsub, credentials):
    return _config(fake_pubsub, credentials)


@pytest.fixture
def datastore_config(fake_datastore, credentials):
    return _config(fake_datastore, credentials)


@pytest.fixture
def storage_config(fake_storage, credentials):
    return _config(fake_storage, credentials)

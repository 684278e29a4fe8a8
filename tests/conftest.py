import json
import random

import httpx
import pytest
import pytest_asyncio

from pos_edge.core.backoff import ExponentialBackoff
from pos_edge.db.transport import LocalTransport
from pos_edge.domain.printing.service import PrintJobProcessor
from pos_edge.domain.store.service import OfflineDataStore
from pos_edge.domain.sync.client import RemoteSyncClient
from pos_edge.domain.sync.service import SyncEngine

SYNC_URL = "http://sync.test"


class FakeSyncServer:
    """In-memory stand-in for the remote sync service, served through httpx.MockTransport."""

    def __init__(self):
        self.pushed = []
        self.pages = {}
        self.pull_requests = []
        self.push_failures = 0
        self.fail_push_after = None
        self.fail_pull = set()

    def add_page(self, collection, changes, next_cursor, has_more=False):
        self.pages.setdefault(collection, []).append(
            {"changes": changes, "nextCursor": next_cursor, "hasMore": has_more}
        )

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.url.path == "/sync/push":
            if self.push_failures:
                self.push_failures -= 1
                return httpx.Response(503, json={"detail": "unavailable"})
            if self.fail_push_after is not None and len(self.pushed) >= self.fail_push_after:
                return httpx.Response(503, json={"detail": "unavailable"})
            self.pushed.append(json.loads(request.content)["operations"])
            return httpx.Response(200, json={"ok": True})
        if request.url.path == "/sync/pull":
            params = dict(request.url.params)
            self.pull_requests.append(params)
            collection = params["collection"]
            if collection in self.fail_pull:
                return httpx.Response(500, json={"detail": "boom"})
            pages = self.pages.get(collection) or []
            if not pages:
                return httpx.Response(200, json={"changes": [], "nextCursor": None, "hasMore": False})
            return httpx.Response(200, json=pages.pop(0))
        return httpx.Response(404)


@pytest_asyncio.fixture
async def transport(tmp_path):
    t = LocalTransport(f"sqlite+aiosqlite:///{tmp_path / 'pos.sqlite'}", retry_delay_ms=1)
    await t.init_models()
    yield t
    await t.dispose()


@pytest_asyncio.fixture
async def store(transport):
    return OfflineDataStore(transport, cache_size=100)


@pytest.fixture
def server():
    return FakeSyncServer()


@pytest.fixture
def client(server):
    return RemoteSyncClient(SYNC_URL, transport=httpx.MockTransport(server))


@pytest.fixture
def make_engine(store, client):
    def _make(batch_size=50, remote=True, **kwargs):
        kwargs.setdefault("backoff", ExponentialBackoff(base_ms=1, max_ms=8, factor=2, jitter=0))
        return SyncEngine(store, client=client if remote else None, batch_size=batch_size, **kwargs)

    return _make


@pytest.fixture
def printer(transport):
    return PrintJobProcessor(
        transport,
        max_attempts=5,
        retry_base_ms=1000,
        retry_max_ms=30000,
        idle_ms=10,
        loop_delay_ms=10,
        rng=random.Random(7),
    )

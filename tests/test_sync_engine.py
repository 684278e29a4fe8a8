import asyncio

import pytest
from sqlalchemy.exc import OperationalError

from pos_edge.core.errors import StorageError, TransportError
from pos_edge.core.events import EventBus
from pos_edge.db.repositories import sync_meta
from pos_edge.domain.sync.schemas import Change


async def _seed(store, count):
    for n in range(count):
        await store.put("products", {"id": f"p{n}", "name": f"Product {n}"})


@pytest.mark.asyncio
async def test_local_only_mode_drains_outbox_without_pull(store, make_engine, server):
    await _seed(store, 5)
    engine = make_engine(batch_size=2, remote=False)
    completed = []
    engine.on("sync:complete", completed.append)

    result = await engine.sync_once()

    assert result.pushed == 5
    assert result.pulled == 0
    assert await store.outbox_size() == 0
    assert server.pull_requests == []
    assert completed == [{"pushed": 5, "pulled": 0}]


@pytest.mark.asyncio
async def test_push_sends_fifo_batches_and_deletes_acknowledged(store, make_engine, server):
    await _seed(store, 5)
    expected = [op.to_wire() for op in await store.pending_operations(100)]
    engine = make_engine(batch_size=2)
    batches = []
    engine.on("sync:push", batches.append)

    pushed = await engine.push()

    assert pushed == 5
    assert [len(b) for b in server.pushed] == [2, 2, 1]
    assert [op for batch in server.pushed for op in batch] == expected
    assert server.pushed[0][0]["opType"] == "upsert"
    assert server.pushed[0][0]["docId"] == "p0"
    assert batches == [{"batch": 2}, {"batch": 2}, {"batch": 1}]
    assert await store.outbox_size() == 0


@pytest.mark.asyncio
async def test_failed_push_leaves_outbox_untouched(store, make_engine, server):
    await _seed(store, 3)
    server.push_failures = 1
    engine = make_engine(batch_size=10)
    errors = []
    engine.on("sync:error", errors.append)

    with pytest.raises(TransportError):
        await engine.sync_once()

    assert await store.outbox_size() == 3
    assert errors[0]["phase"] == "push"
    assert engine.online is False


@pytest.mark.asyncio
async def test_push_failure_midway_keeps_acknowledged_batches_deleted(store, make_engine, server):
    await _seed(store, 5)
    server.fail_push_after = 1
    engine = make_engine(batch_size=2)

    with pytest.raises(TransportError):
        await engine.push()

    remaining = await store.pending_operations(100)
    assert [op.doc_id for op in remaining] == ["p2", "p3", "p4"]

    server.fail_push_after = None
    assert await engine.push() == 3
    assert await store.outbox_size() == 0


@pytest.mark.asyncio
async def test_pull_applies_pages_and_advances_cursor(store, make_engine, server):
    server.add_page(
        "products",
        [
            {"type": "document", "document": {"id": "r1", "name": "Remote One", "updatedAt": 5}},
            {"type": "document", "document": {"id": "r2", "name": "Remote Two", "updatedAt": 6}},
        ],
        next_cursor="c2",
        has_more=True,
    )
    server.add_page("products", [{"type": "delete", "id": "r1"}], next_cursor="c3")
    engine = make_engine(batch_size=2)

    pulled = await engine.pull()

    assert pulled == 3
    assert await store.get("products", "r1") is None
    assert (await store.get("products", "r2"))["name"] == "Remote Two"
    assert await store.get_cursor("products") == "c3"
    product_requests = [r for r in server.pull_requests if r["collection"] == "products"]
    assert [r["since"] for r in product_requests] == ["", "c2"]
    assert product_requests[0]["limit"] == "2"
    assert [r["collection"] for r in server.pull_requests][-2:] == ["orders", "order_items"]


@pytest.mark.asyncio
async def test_pulled_changes_are_not_logged_to_outbox(store, make_engine, server):
    server.add_page("orders", [{"type": "document", "document": {"id": "o9", "status": "ready", "updatedAt": 1}}], "x")
    engine = make_engine()

    result = await engine.sync_once()

    assert result.pulled == 1
    assert await store.outbox_size() == 0
    assert (await store.get("orders", "o9"))["status"] == "ready"


@pytest.mark.asyncio
async def test_short_page_stops_pull_even_if_has_more(store, make_engine, server):
    server.add_page("products", [{"type": "document", "document": {"id": "r1", "name": "A"}}], "c1", has_more=True)
    server.add_page("products", [{"type": "document", "document": {"id": "r2", "name": "B"}}], "c2")
    engine = make_engine(batch_size=5)

    await engine.pull()

    assert await store.get("products", "r2") is None
    assert await store.get_cursor("products") == "c1"


@pytest.mark.asyncio
async def test_applying_the_same_batch_twice_is_idempotent(store):
    await store.put("products", {"id": "gone", "name": "Old"})
    changes = [
        Change(type="document", document={"id": "r1", "name": "Remote", "price": 100, "updatedAt": 9}),
        Change(type="delete", id="gone"),
        Change(type="delete", id="never-existed"),
    ]

    await store.apply_remote_changes("products", changes, "c1")
    once = (await store.query_products_by_prefix(""), await store.get_cursor("products"))
    await store.apply_remote_changes("products", changes, "c1")
    twice = (await store.query_products_by_prefix(""), await store.get_cursor("products"))

    assert once == twice
    assert [p["id"] for p in once[0]] == ["r1"]


@pytest.mark.asyncio
async def test_cursor_and_documents_commit_together(store, monkeypatch):
    async def broken_set_value(db, key, value, now):
        raise OperationalError("UPDATE", {}, Exception("disk I/O error"))

    monkeypatch.setattr("pos_edge.domain.store.service.set_value", broken_set_value)
    changes = [Change(type="document", document={"id": "r1", "name": "Remote"})]

    with pytest.raises(StorageError):
        await store.apply_remote_changes("products", changes, "c1")

    monkeypatch.setattr("pos_edge.domain.store.service.set_value", sync_meta.set_value)
    assert await store.get("products", "r1") is None
    assert await store.get_cursor("products") is None


@pytest.mark.asyncio
async def test_failing_collection_keeps_cursor_and_others_still_pull(store, make_engine, server):
    server.fail_pull.add("products")
    server.add_page("orders", [{"type": "document", "document": {"id": "o1", "status": "pending"}}], "oc1")
    engine = make_engine()
    errors = []
    engine.on("sync:error", errors.append)

    with pytest.raises(TransportError):
        await engine.pull()

    assert await store.get_cursor("products") is None
    assert await store.get_cursor("orders") == "oc1"
    assert errors[0]["collection"] == "products"


@pytest.mark.asyncio
async def test_malformed_pull_body_is_a_transport_error(store, make_engine, server):
    server.add_page("products", [{"type": "document"}], "c1")
    engine = make_engine()

    with pytest.raises(TransportError):
        await engine.pull()
    assert await store.get_cursor("products") is None


@pytest.mark.asyncio
async def test_status_reports_pending_operations(store, make_engine):
    await _seed(store, 2)
    engine = make_engine(remote=False)

    before = await engine.status()
    await engine.sync_once()
    after = await engine.status()

    assert before.pending_operations == 2
    assert after.pending_operations == 0
    assert after.online is True
    assert after.last_sync_at is not None


async def _wait_for(predicate, timeout=2.0):
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


@pytest.mark.asyncio
async def test_start_runs_passes_until_stopped(store, make_engine):
    await _seed(store, 3)
    engine = make_engine(remote=False)
    completed = []
    engine.on("sync:complete", completed.append)

    engine.start(10)
    engine.start(10)
    await _wait_for(lambda: len(completed) >= 2)
    engine.stop()
    engine.stop()
    await asyncio.sleep(0.05)
    seen = len(completed)
    await asyncio.sleep(0.05)

    assert completed[0] == {"pushed": 3, "pulled": 0}
    assert len(completed) == seen
    assert await store.outbox_size() == 0


@pytest.mark.asyncio
async def test_failures_grow_backoff_and_success_resets_it(store, make_engine, server):
    await _seed(store, 1)
    server.push_failures = 3
    engine = make_engine()

    engine.start(1)
    await _wait_for(lambda: server.pushed)
    engine.stop()
    await asyncio.sleep(0.1)

    assert server.push_failures == 0
    assert await store.outbox_size() == 0
    assert engine.online is True
    # reset by the successful pass; at most one delay computed since
    assert engine.backoff.attempt <= 1


@pytest.mark.asyncio
async def test_connectivity_restored_triggers_immediate_pass(store, make_engine):
    connectivity = EventBus()
    engine = make_engine(remote=False, connectivity=connectivity)
    completed = []
    engine.on("sync:complete", completed.append)

    engine.start(60_000)
    await _wait_for(lambda: len(completed) == 1)
    await store.put("products", {"id": "p1", "name": "Fresh"})
    connectivity.emit("online")
    await _wait_for(lambda: len(completed) == 2)
    engine.stop()

    assert completed[1] == {"pushed": 1, "pulled": 0}
    assert await store.outbox_size() == 0


@pytest.mark.asyncio
async def test_each_failed_tick_advances_backoff(store, make_engine, server):
    await _seed(store, 1)
    server.push_failures = 10
    engine = make_engine()
    engine.running = True
    engine._interval_ms = 60_000

    await engine._tick()
    await engine._tick()
    engine.stop()

    assert engine.backoff.attempt == 2
    assert engine.online is False
    assert "503" in engine.last_error
    assert await store.outbox_size() == 1


@pytest.mark.asyncio
async def test_tick_from_before_a_restart_does_not_rearm(store, make_engine, server):
    await _seed(store, 1)
    engine = make_engine()
    engine.start(interval_ms=60_000)
    stale_generation = engine._generation
    engine.stop()
    engine.start(interval_ms=60_000)
    await asyncio.sleep(0.2)
    current_timer = engine._timer
    assert current_timer is not None

    await engine._tick(stale_generation)

    assert engine._timer is current_timer
    engine.stop()
    assert len(server.pushed) == 1

from uuid import uuid4

import pytest

from readgraph.domain.notifications.dispatcher import NotificationDispatcher
from readgraph.domain.notifications.models import NotificationRefs, NotificationType
from readgraph.domain.notifications.outbox import STREAM_FANOUT, publish_fanout_event
from readgraph.settings import settings
from readgraph.workers.fanout_worker import FanoutWorker


@pytest.mark.asyncio
async def test_worker_fans_out_queued_event(users, graph, sink):
    author = users.add("author")
    fans = [users.add(f"fan{i}") for i in range(3)]
    for fan in fans:
        await graph.create_edge(fan.id, author.id)
    book_id = uuid4()
    await publish_fanout_event(
        actor_id=author.id,
        type=NotificationType.BOOK_FINISHED,
        refs=NotificationRefs(book_id=book_id),
        message='author finished reading "Dune"',
    )
    dispatcher = NotificationDispatcher(sink=sink, users=users, graph=graph, fanout_async=False, batch_size=2)
    worker = FanoutWorker(dispatcher=dispatcher, block_ms=None)

    processed = await worker.process_once()

    assert processed == 1
    assert {row["recipient_id"] for row in sink.rows} == {fan.id for fan in fans}
    assert all(row["refs"].book_id == book_id for row in sink.rows)
    assert await worker.process_once() == 0


@pytest.mark.asyncio
async def test_worker_skips_malformed_and_foreign_entries(users, graph, sink, fake_redis):
    await fake_redis.xadd(STREAM_FANOUT, {"event": "publish", "actor_id": "not-a-uuid", "type": "book_finished"})
    await fake_redis.xadd(STREAM_FANOUT, {"event": "other"})
    dispatcher = NotificationDispatcher(sink=sink, users=users, graph=graph, fanout_async=False)
    worker = FanoutWorker(dispatcher=dispatcher, block_ms=None)

    assert await worker.process_once() == 2
    assert sink.rows == []


@pytest.mark.asyncio
async def test_worker_survives_sink_failure(users, graph, sink):
    author = users.add("author")
    fan = users.add("fan")
    await graph.create_edge(fan.id, author.id)
    await publish_fanout_event(
        actor_id=author.id,
        type=NotificationType.REVIEW_POSTED,
        refs=NotificationRefs(content_id=uuid4(), content_kind="review"),
        message="author reviewed",
    )
    sink.fail = True
    worker = FanoutWorker(
        dispatcher=NotificationDispatcher(sink=sink, users=users, graph=graph, fanout_async=False),
        block_ms=None,
    )

    assert await worker.process_once() == 1
    assert sink.rows == []


async def _publish_finished(author, book_id):
    await publish_fanout_event(
        actor_id=author.id,
        type=NotificationType.BOOK_FINISHED,
        refs=NotificationRefs(book_id=book_id),
        message='author finished reading "Dune"',
    )


@pytest.mark.asyncio
async def test_restarted_worker_does_not_replay_handled_events(users, graph, sink):
    author = users.add("author")
    fan = users.add("fan")
    await graph.create_edge(fan.id, author.id)
    await _publish_finished(author, uuid4())
    dispatcher = NotificationDispatcher(sink=sink, users=users, graph=graph, fanout_async=False)

    first = FanoutWorker(dispatcher=dispatcher, consumer="worker-a", block_ms=None)
    assert await first.process_once() == 1

    restarted = FanoutWorker(dispatcher=dispatcher, consumer="worker-a", block_ms=None)
    assert await restarted.process_once() == 0
    assert len(sink.rows) == 1


@pytest.mark.asyncio
async def test_workers_in_one_group_split_events(users, graph, sink, fake_redis):
    author = users.add("author")
    fan = users.add("fan")
    await graph.create_edge(fan.id, author.id)
    dispatcher = NotificationDispatcher(sink=sink, users=users, graph=graph, fanout_async=False)
    first = FanoutWorker(dispatcher=dispatcher, consumer="worker-a", read_count=1, block_ms=None)
    second = FanoutWorker(dispatcher=dispatcher, consumer="worker-b", read_count=1, block_ms=None)
    await _publish_finished(author, uuid4())
    await _publish_finished(author, uuid4())

    handled = await first.process_once() + await second.process_once()

    assert handled == 2
    assert await first.process_once() == 0
    assert await second.process_once() == 0
    assert len(sink.rows) == 2
    assert len({row["refs"].book_id for row in sink.rows}) == 2
    pending = await fake_redis.xpending(STREAM_FANOUT, first.group)
    assert pending["pending"] == 0


@pytest.mark.asyncio
async def test_worker_creates_group_on_empty_stream(users, graph, sink):
    worker = FanoutWorker(
        dispatcher=NotificationDispatcher(sink=sink, users=users, graph=graph, fanout_async=False),
        block_ms=None,
    )

    assert await worker.process_once() == 0
    assert await worker.process_once() == 0


def test_worker_reads_sizes_from_settings(monkeypatch, users, graph, sink):
    monkeypatch.setattr(settings, "fanout_read_count", 7)
    monkeypatch.setattr(settings, "fanout_consumer_group", "fanout-test")

    worker = FanoutWorker(
        dispatcher=NotificationDispatcher(sink=sink, users=users, graph=graph, fanout_async=False),
    )

    assert worker.read_count == 7
    assert worker.group == "fanout-test"

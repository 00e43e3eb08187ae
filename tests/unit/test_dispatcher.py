from decimal import Decimal

import pytest

from tests.fixtures.sample_events import episode_item, stream_batch, stream_record, view_item
from view_renderer.schemas.events import ChangeEvent, ChangeKind
from view_renderer.utils.errors import BatchFailedError, ConfigError, RecordNotFoundError


def _view_event(kind, view, old=None, event_id="evt-1"):
    keys = {"feedId": view["feedId"], "viewId": view["viewId"]}
    new_image = view if kind != "REMOVE" else None
    old_image = old if old is not None else (view if kind != "INSERT" else None)
    return stream_record(kind, keys=keys, new_image=new_image, old_image=old_image, event_id=event_id)


def _episode_event(kind, feed_id, episode_id, new_feed_id=None):
    keys = {"feedId": feed_id, "episodeId": episode_id}
    old = episode_item(feed_id, episode_id) if kind != "INSERT" else None
    new = episode_item(new_feed_id or feed_id, episode_id) if kind != "REMOVE" else None
    return stream_record(kind, keys=keys, new_image=new, old_image=old)


def _view_gets(record_store):
    return [key for table, key in record_store.get_calls if table == "podcast-views"]


@pytest.mark.asyncio
async def test_view_insert_renders_with_feed_episodes(dispatcher, config, record_store, blob_backend):
    view = view_item("feed-1", "home", template="<h1><%=episodes.length%></h1>", filenameTemplate="index.html")
    record_store.add(config.views_table, view)
    record_store.add(config.episodes_table, episode_item("feed-1", "ep-1"))
    record_store.add(config.episodes_table, episode_item("feed-1", "ep-2"))

    outcome = await dispatcher.process_view_changes(stream_batch([_view_event("INSERT", view)]))

    assert outcome.succeeded is True
    assert outcome.total == 1
    assert blob_backend.read("feeds-bucket", "index.html") == "<h1>2</h1>"


@pytest.mark.asyncio
async def test_duplicate_view_events_produce_one_action(dispatcher, config, record_store, blob_backend):
    view = view_item("feed-1", "home", template="x", key="feed-1/index.html")
    record_store.add(config.views_table, view)

    outcome = await dispatcher.process_view_changes(stream_batch([
        _view_event("INSERT", view, event_id="evt-1"),
        _view_event("MODIFY", view, event_id="evt-2"),
        _view_event("MODIFY", view, event_id="evt-3"),
    ]))

    assert outcome.total == 1
    assert _view_gets(record_store) == [{"feedId": "feed-1", "viewId": "home"}]
    assert blob_backend.put_calls == [("feeds-bucket", "feed-1/index.html")]


@pytest.mark.asyncio
async def test_insert_then_remove_in_one_batch_deletes(dispatcher, record_store, blob_backend):
    view = view_item("feed-1", "home", template="x", key="feed-1/index.html")

    outcome = await dispatcher.process_view_changes(stream_batch([
        _view_event("INSERT", view, event_id="evt-1"),
        _view_event("REMOVE", view, event_id="evt-2"),
    ]))

    assert outcome.succeeded is True
    assert blob_backend.put_calls == []
    assert blob_backend.delete_calls == [("feeds-bucket", "feed-1/index.html")]


@pytest.mark.asyncio
async def test_remove_uses_old_image_without_reading_table(dispatcher, record_store, blob_backend):
    view = view_item("feed-1", "home", key="feed-1/index.html")

    await dispatcher.process_view_changes(stream_batch([_view_event("REMOVE", view)]))

    assert record_store.get_calls == []
    assert blob_backend.delete_calls == [("feeds-bucket", "feed-1/index.html")]


@pytest.mark.asyncio
async def test_remove_without_old_image_reads_view(dispatcher, config, record_store, blob_backend):
    view = view_item("feed-1", "home", key="feed-1/index.html")
    record_store.add(config.views_table, view)
    event = ChangeEvent(kind=ChangeKind.REMOVE, keys={"feedId": "feed-1", "viewId": "home"})

    outcome = await dispatcher.process_view_changes([event])

    assert outcome.succeeded is True
    assert _view_gets(record_store) == [{"feedId": "feed-1", "viewId": "home"}]
    assert blob_backend.delete_calls == [("feeds-bucket", "feed-1/index.html")]


@pytest.mark.asyncio
async def test_remove_without_key_fails_that_branch_only(dispatcher, blob_backend):
    keyed = view_item("feed-1", "a", key="feed-1/a.html")
    unkeyed = view_item("feed-1", "b")

    outcome = await dispatcher.process_view_changes(stream_batch([
        _view_event("REMOVE", keyed, event_id="evt-1"),
        _view_event("REMOVE", unkeyed, event_id="evt-2"),
    ]))

    assert outcome.total == 2
    assert len(outcome.errors) == 1
    assert isinstance(outcome.errors[0], ConfigError)
    assert blob_backend.delete_calls == [("feeds-bucket", "feed-1/a.html")]


@pytest.mark.asyncio
async def test_unrecognized_event_aborts_before_any_work(dispatcher, record_store, blob_backend):
    view = view_item("feed-1", "home")
    batch = stream_batch([
        _view_event("INSERT", view),
        {"eventID": "evt-2", "eventName": "EXPIRE", "dynamodb": {}},
    ])

    with pytest.raises(ConfigError):
        await dispatcher.process_view_changes(batch)

    assert record_store.get_calls == []
    assert record_store.query_calls == []
    assert blob_backend.put_calls == []


@pytest.mark.asyncio
async def test_empty_batch_succeeds(dispatcher, metrics):
    outcome = await dispatcher.process_view_changes(stream_batch([]))

    assert outcome.succeeded is True
    assert outcome.total == 0
    assert metrics.registry.get_sample_value(
        "test_renderer_batches_total", {"kind": "views", "status": "success"}
    ) == 1.0


@pytest.mark.asyncio
async def test_missing_view_is_reported_in_outcome(dispatcher, metrics):
    view = view_item("feed-1", "gone")

    outcome = await dispatcher.process_view_changes(stream_batch([_view_event("MODIFY", view)]))

    assert outcome.succeeded is False
    assert isinstance(outcome.errors[0], RecordNotFoundError)
    assert metrics.registry.get_sample_value(
        "test_renderer_batches_total", {"kind": "views", "status": "failure"}
    ) == 1.0


@pytest.mark.asyncio
async def test_failing_view_does_not_stop_siblings(dispatcher, config, record_store, blob_backend):
    good = view_item("feed-1", "good", template="ok", key="good.html")
    bad = view_item("feed-1", "bad", template="no", key="bad.html", bucket=None)
    record_store.add(config.views_table, good)
    record_store.add(config.views_table, bad)

    outcome = await dispatcher.process_view_changes(stream_batch([
        _view_event("INSERT", bad, event_id="evt-1"),
        _view_event("INSERT", good, event_id="evt-2"),
    ]))

    assert len(outcome.errors) == 1
    assert isinstance(outcome.errors[0], ConfigError)
    assert blob_backend.read("feeds-bucket", "good.html") == "ok"
    with pytest.raises(BatchFailedError):
        outcome.raise_for_failure()


@pytest.mark.asyncio
async def test_per_item_view_stores_every_artifact(dispatcher, config, record_store, blob_backend):
    view = view_item(
        "feed-1", "pages",
        template="<%=episode.title%>",
        filenameTemplate="<%=episode.title%>.html",
        renderEach=True,
    )
    record_store.add(config.views_table, view)
    record_store.add(config.episodes_table, episode_item("feed-1", "ep-1", title="ep1"))
    record_store.add(config.episodes_table, episode_item("feed-1", "ep-2", title="ep2"))

    outcome = await dispatcher.process_view_changes(stream_batch([_view_event("INSERT", view)]))

    assert outcome.succeeded is True
    assert blob_backend.read("feeds-bucket", "ep1.html") == "ep1"
    assert blob_backend.read("feeds-bucket", "ep2.html") == "ep2"


@pytest.mark.asyncio
async def test_partial_artifact_failure_is_reported_as_nested_batch(dispatcher, config, record_store, blob_backend):
    view = view_item(
        "feed-1", "pages",
        template="<%=episode.title%>",
        filenameTemplate="<%=episode.title%>.html",
        renderEach=True,
    )
    record_store.add(config.views_table, view)
    record_store.add(config.episodes_table, episode_item("feed-1", "ep-1", title="ep1"))
    record_store.add(config.episodes_table, episode_item("feed-1", "ep-2", title="ep2"))
    blob_backend.fail_keys.add("ep1.html")

    outcome = await dispatcher.process_view_changes(stream_batch([_view_event("INSERT", view)]))

    assert len(outcome.errors) == 1
    nested = outcome.errors[0]
    assert isinstance(nested, BatchFailedError)
    assert len(nested.errors) == 1
    assert blob_backend.read("feeds-bucket", "ep2.html") == "ep2"


@pytest.mark.asyncio
async def test_episode_insert_rerenders_every_view_of_feed(dispatcher, config, record_store, blob_backend):
    record_store.add(config.views_table, view_item("feed-1", "a", template="a<%=episodes.length%>", key="a.html"))
    record_store.add(config.views_table, view_item("feed-1", "b", template="b<%=episodes.length%>", key="b.html"))
    record_store.add(config.views_table, view_item("feed-2", "c", template="c", key="c.html"))
    record_store.add(config.episodes_table, episode_item("feed-1", "ep-1"))

    outcome = await dispatcher.process_episode_changes(stream_batch([_episode_event("INSERT", "feed-1", "ep-1")]))

    assert outcome.succeeded is True
    assert outcome.total == 1
    assert blob_backend.read("feeds-bucket", "a.html") == "a1"
    assert blob_backend.read("feeds-bucket", "b.html") == "b1"
    assert ("feeds-bucket", "c.html") not in blob_backend.objects


@pytest.mark.asyncio
async def test_episode_events_in_same_feed_refresh_once(dispatcher, config, record_store):
    record_store.add(config.views_table, view_item("feed-1", "a", template="a", key="a.html"))

    outcome = await dispatcher.process_episode_changes(stream_batch([
        _episode_event("INSERT", "feed-1", "ep-1"),
        _episode_event("MODIFY", "feed-1", "ep-2"),
        _episode_event("REMOVE", "feed-1", "ep-3"),
    ]))

    assert outcome.total == 1
    view_queries = [call for call in record_store.query_calls if call[0] == "podcast-views"]
    assert len(view_queries) == 1


@pytest.mark.asyncio
async def test_episode_move_rerenders_both_feeds(dispatcher, config, record_store, blob_backend):
    record_store.add(config.views_table, view_item("A", "home", template="A<%=episodes.length%>", key="A.html"))
    record_store.add(config.views_table, view_item("B", "home", template="B<%=episodes.length%>", key="B.html"))
    record_store.add(config.episodes_table, episode_item("B", "ep-1"))

    outcome = await dispatcher.process_episode_changes(
        stream_batch([_episode_event("MODIFY", "A", "ep-1", new_feed_id="B")])
    )

    assert outcome.total == 2
    assert blob_backend.read("feeds-bucket", "A.html") == "A0"
    assert blob_backend.read("feeds-bucket", "B.html") == "B1"


@pytest.mark.asyncio
async def test_episode_remove_rerenders_feed(dispatcher, config, record_store, blob_backend):
    record_store.add(config.views_table, view_item("feed-1", "home", template="<%=episodes.length%>", key="i.html"))
    record_store.add(config.episodes_table, episode_item("feed-1", "ep-2"))

    await dispatcher.process_episode_changes(stream_batch([_episode_event("REMOVE", "feed-1", "ep-1")]))

    assert blob_backend.read("feeds-bucket", "i.html") == "1"


@pytest.mark.asyncio
async def test_feed_failure_surfaces_as_batch_error(dispatcher, config, record_store, blob_backend):
    record_store.add(config.views_table, view_item("feed-1", "home", template="x", key="one.html"))
    record_store.add(config.views_table, view_item("feed-2", "home", template="y", key="two.html"))
    record_store.fail_query(config.episodes_table, "feed-1")

    outcome = await dispatcher.process_episode_changes(stream_batch([
        _episode_event("INSERT", "feed-1", "ep-1"),
        _episode_event("INSERT", "feed-2", "ep-2"),
    ]))

    assert outcome.total == 2
    assert len(outcome.errors) == 1
    assert blob_backend.read("feeds-bucket", "two.html") == "y"


@pytest.mark.asyncio
async def test_render_feed_returns_outcome_per_view(dispatcher, config, record_store, blob_backend):
    record_store.add(config.views_table, view_item("feed-1", "a", template="a", key="a.html"))
    record_store.add(config.views_table, view_item("feed-1", "b", template="<%= view.nope %>", key="b.html"))

    outcome = await dispatcher.render_feed("feed-1")

    assert outcome.total == 2
    assert len(outcome.errors) == 1
    assert blob_backend.read("feeds-bucket", "a.html") == "a"


@pytest.mark.asyncio
async def test_numeric_episode_ids_render(dispatcher, config, record_store, blob_backend):
    record_store.add(
        config.views_table,
        view_item("feed-1", "home", template="<% for e in episodes %>[<%= e.episodeId %>]<% endfor %>", key="n.html"),
    )
    record_store.add(config.episodes_table, episode_item("feed-1", Decimal(7), title="Seven"))

    outcome = await dispatcher.process_episode_changes(
        stream_batch([_episode_event("INSERT", "feed-1", Decimal(7))])
    )

    assert outcome.succeeded is True
    assert blob_backend.read("feeds-bucket", "n.html") == "[7]"


@pytest.mark.asyncio
async def test_branch_failure_metric_does_not_carry_feed_id(dispatcher, config, record_store, metrics):
    record_store.add(config.views_table, view_item("feed-1", "a", template="<%= view.nope %>", key="a.html"))

    outcome = await dispatcher.render_feed("feed-1")

    assert len(outcome.errors) == 1
    label_values = [
        value
        for metric in metrics.registry.collect()
        for sample in metric.samples
        if sample.name == "test_renderer_branch_failures_total"
        for value in sample.labels.values()
    ]
    assert label_values == ["feed_views", "RENDER_ERROR"]
    assert not any("feed-1" in value for value in label_values)


@pytest.mark.asyncio
async def test_malformed_remove_image_is_a_config_error(dispatcher, record_store, blob_backend):
    view = view_item("feed-1", "home", key="feed-1/index.html", renderEach="sometimes")

    outcome = await dispatcher.process_view_changes(stream_batch([_view_event("REMOVE", view)]))

    assert len(outcome.errors) == 1
    assert isinstance(outcome.errors[0], ConfigError)
    assert outcome.errors[0].details["view_id"] == "home"
    assert blob_backend.delete_calls == []
    assert record_store.get_calls == []

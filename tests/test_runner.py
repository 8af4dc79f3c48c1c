# tests/test_runner.py
import json
import os
import pytest
from scraper.errors import BotBlockedError, DeliveryError, StorageError
from scheduler.runner import RunState, TopicRunner
from conftest import FakeNotifier, FakeScraper, make_item


@pytest.mark.asyncio
async def test_first_run_notifies_and_persists_in_feed_order(topic, store):
    scraper = FakeScraper(
        items=[make_item("A"), make_item("C"), make_item("D")],
        details={"A": {"km": 150000}, "C": {"km": None}},
    )
    notifier = FakeNotifier()
    runner = TopicRunner(topic, scraper, store, notifier)

    new_items = await runner.run()

    assert runner.state is RunState.DONE
    assert [i.id for i in new_items] == ["A", "C", "D"]
    assert scraper.detail_requests == ["A", "C", "D"]
    assert [i.id for i in notifier.items] == ["A", "C", "D"]
    assert notifier.items[0].km == 150000
    assert notifier.items[1].km is None
    assert notifier.statuses[0].startswith("Starting scanning cars")
    assert notifier.statuses[1] == "Found 3 new items for cars"

    saved = await store.load("cars")
    assert [(i.id, i.km) for i in saved] == [("A", 150000), ("C", None), ("D", None)]
    assert os.path.exists(store.push_flag_path)


@pytest.mark.asyncio
async def test_second_run_only_sees_new_items(topic, store):
    await store.commit("cars", [make_item("A")], [make_item("A")])
    os.remove(store.push_flag_path)

    notifier = FakeNotifier()
    runner = TopicRunner(topic, FakeScraper(items=[make_item("A"), make_item("B")]), store, notifier)

    assert [i.id for i in await runner.run()] == ["B"]
    assert [i.id for i in notifier.items] == ["B"]
    assert [i.id for i in await store.load("cars")] == ["A", "B"]


@pytest.mark.asyncio
async def test_no_new_items_skips_notification_and_persistence(topic, store):
    await store.commit("cars", [make_item("A")], [make_item("A")])
    os.remove(store.push_flag_path)
    mtime = os.stat(store.path_for("cars")).st_mtime_ns

    scraper = FakeScraper(items=[make_item("A")])
    notifier = FakeNotifier()
    runner = TopicRunner(topic, scraper, store, notifier)

    assert await runner.run() == []
    assert runner.state is RunState.DONE
    assert notifier.items == []
    assert notifier.statuses[-1] == "No new items were added for cars"
    assert scraper.detail_requests == []
    assert os.stat(store.path_for("cars")).st_mtime_ns == mtime
    assert not os.path.exists(store.push_flag_path)


@pytest.mark.asyncio
async def test_status_messages_can_be_disabled(topic, store):
    notifier = FakeNotifier()
    runner = TopicRunner(topic, FakeScraper(items=[]), store, notifier, status_messages=False)
    assert await runner.run() == []
    assert notifier.statuses == []


@pytest.mark.asyncio
async def test_scrape_failure_reports_and_reraises(topic, store):
    notifier = FakeNotifier()
    scraper = FakeScraper(error=BotBlockedError("Bot detection page returned"))
    runner = TopicRunner(topic, scraper, store, notifier)

    with pytest.raises(BotBlockedError):
        await runner.run()

    assert runner.state is RunState.FAILED
    assert notifier.statuses[-1] == "Scan workflow failed... 😥\nError: Bot detection page returned"
    assert not await store.exists("cars")


@pytest.mark.asyncio
async def test_failure_report_is_best_effort(topic, store):
    notifier = FakeNotifier(fail_status=True)
    runner = TopicRunner(
        topic, FakeScraper(error=BotBlockedError("blocked")), store, notifier, status_messages=False
    )
    # the scrape error surfaces, not the failed status message
    with pytest.raises(BotBlockedError):
        await runner.run()


@pytest.mark.asyncio
async def test_failing_start_message_aborts_the_run(topic, store):
    scraper = FakeScraper(items=[make_item("A")])
    runner = TopicRunner(topic, scraper, store, FakeNotifier(fail_status=True))

    with pytest.raises(DeliveryError):
        await runner.run()

    assert scraper.scraped_urls == []
    assert not await store.exists("cars")


@pytest.mark.asyncio
async def test_storage_failure_fails_the_run(topic, store):
    os.makedirs(store.data_dir)
    with open(store.path_for("cars"), "w", encoding="utf-8") as f:
        f.write("not json")
    notifier = FakeNotifier()
    runner = TopicRunner(topic, FakeScraper(items=[make_item("A")]), store, notifier)

    with pytest.raises(StorageError):
        await runner.run()
    assert notifier.items == []
    assert notifier.statuses[-1].startswith("Scan workflow failed")


@pytest.mark.asyncio
async def test_delivery_failure_saves_only_delivered_items(topic, store):
    """
    Items announced before a delivery failure are saved; the failed item and
    the ones after it stay new for the next run.
    """
    items = [make_item("A"), make_item("B"), make_item("C")]
    runner = TopicRunner(topic, FakeScraper(items=items), store, FakeNotifier(fail_items={"B"}))

    with pytest.raises(DeliveryError):
        await runner.run()

    assert [i.id for i in await store.load("cars")] == ["A"]

    notifier = FakeNotifier()
    retry = TopicRunner(topic, FakeScraper(items=items), store, notifier)
    assert [i.id for i in await retry.run()] == ["B", "C"]
    assert [i.id for i in notifier.items] == ["B", "C"]
    with open(store.path_for("cars"), encoding="utf-8") as f:
        assert [d["id"] for d in json.load(f)] == ["A", "B", "C"]


@pytest.mark.asyncio
async def test_enrichment_miss_does_not_block_others(topic, store):
    scraper = FakeScraper(items=[make_item("A", km=10), make_item("B")], details={"B": {"km": 99000}})
    notifier = FakeNotifier()

    await TopicRunner(topic, scraper, store, notifier).run()

    assert [(i.id, i.km) for i in notifier.items] == [("A", 10), ("B", 99000)]


@pytest.mark.asyncio
async def test_non_numeric_detail_km_is_ignored(topic, store):
    """
    A mileage the item page reports as text keeps the feed value, and the
    saved snapshot still loads on the next run.
    """
    scraper = FakeScraper(
        items=[make_item("A", km=90000), make_item("B")],
        details={"A": {"km": "120,000"}, "B": {"km": True}},
    )
    notifier = FakeNotifier()

    await TopicRunner(topic, scraper, store, notifier).run()

    assert [(i.id, i.km) for i in notifier.items] == [("A", 90000), ("B", None)]
    saved = await store.load("cars")
    assert [(i.id, i.km) for i in saved] == [("A", 90000), ("B", None)]

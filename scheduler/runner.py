# scheduler/runner.py
import logging
from enum import Enum
from scraper.errors import DeliveryError, ScannerError
from scraper.utils import as_number

logger = logging.getLogger("runner")
logger.setLevel(logging.INFO)


class RunState(Enum):
    IDLE = "idle"
    SCRAPING = "scraping"
    DETECTING = "detecting"
    ENRICHING = "enriching"
    NOTIFYING = "notifying"
    PERSISTING = "persisting"
    DONE = "done"
    FAILED = "failed"


class TopicRunner:
    """
    Run one topic end to end: scrape, detect new items, enrich, notify, persist.

    Args:
        topic (TopicConfig): The topic to scan
        scraper (Yad2Scraper): Listing and item page fetcher
        store (SnapshotStore): Per-topic snapshot persistence
        notifier (TelegramNotifier): Message delivery
        status_messages (bool): Send start / count / no-new-items messages
    """

    def __init__(self, topic, scraper, store, notifier, status_messages=True):
        self.topic = topic
        self.scraper = scraper
        self.store = store
        self.notifier = notifier
        self.status_messages = status_messages
        self.state = RunState.IDLE

    def _enter(self, state):
        logger.info(f"[{self.topic.topic}] {self.state.value} -> {state.value}")
        self.state = state

    async def _status(self, message):
        """Send a status message whose failure must not change the run's outcome."""
        try:
            await self.notifier.notify_status(message)
        except DeliveryError as e:
            logger.warning(f"[{self.topic.topic}] status message not delivered: {e}")

    async def run(self):
        """
        Execute the topic pipeline once.

        Returns:
            list[Item]: Items that were new in this run, in feed order

        Raises:
            ScannerError: Any fatal failure, after a best-effort failure
                message has been sent. The error is re-raised unchanged.

        Note:
            When delivery fails part-way through the new items, the ones
            already announced are still saved, so the next run neither skips
            the undelivered items nor announces the delivered ones again.
        """
        name = self.topic.topic
        delivered = []
        snapshot = []
        try:
            if self.status_messages:
                await self.notifier.notify_status(f"Starting scanning {name} on link:\n{self.topic.url}")

            self._enter(RunState.SCRAPING)
            items = await self.scraper.scrape_items(self.topic.url)

            self._enter(RunState.DETECTING)
            snapshot = await self.store.load(name)
            new_items, merged = self.store.partition_new(snapshot, items)
            logger.info(f"[{name}] {len(items)} item(s) scraped, {len(new_items)} new")

            self._enter(RunState.ENRICHING)
            await self._enrich(new_items)

            if not new_items:
                if self.status_messages:
                    await self._status(f"No new items were added for {name}")
                self._enter(RunState.DONE)
                return []

            self._enter(RunState.NOTIFYING)
            await self._status(f"Found {len(new_items)} new items for {name}")
            for item in new_items:
                await self.notifier.notify_item(item)
                delivered.append(item)

            self._enter(RunState.PERSISTING)
            await self.store.commit(name, merged, new_items)

            self._enter(RunState.DONE)
            return new_items

        except Exception as e:
            failed_in = self.state
            self._enter(RunState.FAILED)
            logger.exception(f"[{name}] scan failed while {failed_in.value}: {e}")
            if failed_in is RunState.NOTIFYING and delivered:
                await self._save_delivered(snapshot, delivered)
            err_msg = f"Error: {e}" if str(e) else ""
            await self._status(f"Scan workflow failed... 😥\n{err_msg}")
            raise

    async def _enrich(self, new_items):
        """Backfill km from each new item's page, one request at a time."""
        for item in new_items:
            logger.info(f"Fetching details for new item: {item.id}")
            detail = await self.scraper.fetch_item_detail(item.id)
            km = as_number(detail.get("km")) if isinstance(detail, dict) else None
            if km:
                item.km = km

    async def _save_delivered(self, snapshot, delivered):
        name = self.topic.topic
        try:
            await self.store.commit(name, [*snapshot, *delivered], delivered)
        except ScannerError as e:
            logger.error(f"[{name}] could not save {len(delivered)} delivered item(s): {e}")

# scheduler/scheduler.py
import asyncio
import logging
import sys
from datetime import datetime, timezone
from dataclasses import dataclass, field
from typing import List, Optional
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from scraper.scraper import Yad2Scraper
from scraper.store import SnapshotStore
from scheduler.runner import TopicRunner
from utils.alerts import TelegramNotifier
from utils.config import load_config


logger = logging.getLogger("scheduler")
logger.setLevel(logging.INFO)
handler = logging.StreamHandler()
handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s"))
logger.addHandler(handler)


@dataclass
class TopicOutcome:
    topic: str
    new_items: List = field(default_factory=list)
    error: Optional[BaseException] = None

    @property
    def ok(self):
        return self.error is None


async def run_topics(config, scraper, store, notifier):
    """
    Run every enabled topic concurrently and collect each one's outcome.

    Disabled topics are logged and skipped. A failing topic neither cancels
    nor affects its siblings; its exception is returned in its outcome.

    Args:
        config (AppConfig): Application configuration
        scraper (Yad2Scraper): Shared page fetcher
        store (SnapshotStore): Snapshot persistence
        notifier (TelegramNotifier): Message delivery

    Returns:
        list[TopicOutcome]: One outcome per enabled topic, in config order
    """
    for topic in config.topics:
        if topic.disabled:
            logger.info(f'Topic "{topic.topic}" is disabled. Skipping.')
    enabled = config.enabled_topics()

    runners = [
        TopicRunner(topic, scraper, store, notifier, status_messages=config.status_messages)
        for topic in enabled
    ]
    results = await asyncio.gather(*(r.run() for r in runners), return_exceptions=True)

    outcomes = []
    for topic, result in zip(enabled, results):
        if isinstance(result, BaseException):
            outcomes.append(TopicOutcome(topic.topic, error=result))
        else:
            outcomes.append(TopicOutcome(topic.topic, new_items=result))
    return outcomes


async def scan_once(config):
    """
    Scan all topics one time.

    Returns:
        int: Process exit status, 1 when at least one topic failed

    Note:
        The HTTP clients are always closed in the finally block.
    """
    logger.info("Starting scan")
    scraper = Yad2Scraper()
    notifier = TelegramNotifier(config.api_token, config.chat_id)
    store = SnapshotStore(config.data_dir, config.push_flag_path)
    try:
        outcomes = await run_topics(config, scraper, store, notifier)
    finally:
        await scraper.close()
        await notifier.close()

    failed = [o for o in outcomes if not o.ok]
    for o in outcomes:
        if o.ok:
            logger.info(f'Topic "{o.topic}" finished, {len(o.new_items)} new item(s)')
        else:
            logger.error(f'Topic "{o.topic}" failed: {o.error!r}')
    return 1 if failed else 0


async def async_main():
    """
    Entry point: scan once, or keep scanning on an interval.

    Without scan_interval_minutes the topics are scanned once and the exit
    status reflects whether any topic failed, which suits a cron/CI job.
    With it, an APScheduler AsyncIOScheduler runs the scan forever;
    max_instances=1 keeps a slow scan from overlapping the next one.

    Returns:
        int: Exit status (single scan mode only)
    """
    config = load_config()
    if not config.scan_interval_minutes:
        return await scan_once(config)

    scheduler = AsyncIOScheduler()
    scheduler.add_job(
        scan_once,
        "interval",
        args=[config],
        minutes=config.scan_interval_minutes,
        id="scan_topics",
        max_instances=1,
        coalesce=True,
        next_run_time=datetime.now(timezone.utc),
    )

    scheduler.start()
    logger.info(f"Scheduler started (every {config.scan_interval_minutes} min)")
    # Keep program running forever
    await asyncio.Event().wait()



if __name__ == "__main__":
    sys.exit(asyncio.run(async_main()))

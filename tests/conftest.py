import sys
import os

ROOT_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
sys.path.insert(0, ROOT_DIR)

import json
import pytest
from typing import Any, Dict, List, Optional

from scraper.errors import DeliveryError
from scraper.models import Item
from scraper.store import SnapshotStore
from utils.config import AppConfig, TopicConfig


def page_with_data(data, title="יד2 - רכבים"):
    """
    Render a minimal Next.js page carrying `data` as its __NEXT_DATA__ island.

    Args:
        data (dict): JSON document to embed
        title (str): Text of the page's <title>

    Returns:
        str: HTML document
    """
    return (
        f"<html><head><title>{title}</title></head><body>"
        f'<script id="__NEXT_DATA__" type="application/json">'
        f"{json.dumps(data, ensure_ascii=False)}</script>"
        "</body></html>"
    )


def dehydrated_listing(commercial=None, private=None):
    """Build a listing document in the dehydrated react-query layout."""
    return {
        "props": {
            "pageProps": {
                "dehydratedState": {
                    "queries": [
                        {"queryKey": ["user"], "state": {"data": {"name": "x"}}},
                        {
                            "queryKey": ["feed", "vehicles"],
                            "state": {
                                "data": {
                                    "commercial": commercial or [],
                                    "private": private or [],
                                }
                            },
                        },
                    ]
                }
            }
        }
    }


def legacy_listing(records):
    """Build a listing document in the older pageProps.search layout."""
    return {"props": {"pageProps": {"search": {"results": {"feed": {"data": records}}}}}}


def item_page(item_id, data):
    """Build an item detail document whose item query returns `data`."""
    return {
        "props": {
            "pageProps": {
                "dehydratedState": {
                    "queries": [
                        {"queryKey": ["item", item_id], "state": {"data": data}},
                    ]
                }
            }
        }
    }


def make_item(item_id, **fields):
    return Item(id=item_id, link=f"https://www.yad2.co.il/item/{item_id}", **fields)


class FakeScraper:
    def __init__(self, items=None, details=None, error=None):
        self.items = list(items or [])
        self.details = dict(details or {})
        self.error = error
        self.scraped_urls: List[str] = []
        self.detail_requests: List[str] = []

    async def scrape_items(self, url):
        """
        Return the configured items for any listing URL.

        Records the URL so tests can assert which topics were scanned, and
        raises the configured error instead when one was given.

        Args:
            url (str): Listing URL requested by the runner

        Returns:
            list[Item]: Copies of the configured items, so enrichment in one
            run does not leak into the next
        """
        self.scraped_urls.append(url)
        if self.error:
            raise self.error
        return [item.model_copy() for item in self.items]

    async def fetch_item_detail(self, item_id):
        """
        Return the configured detail payload for an item id, or None.

        Mirrors the real fetcher's best-effort contract: unknown ids yield
        None rather than raising.
        """
        self.detail_requests.append(item_id)
        return self.details.get(item_id)


class FakeNotifier:
    def __init__(self, fail_items: Optional[set] = None, fail_status: bool = False):
        self.fail_items = set(fail_items or [])
        self.fail_status = fail_status
        self.items: List[Item] = []
        self.statuses: List[str] = []

    async def notify_item(self, item):
        """
        Record a delivered item, or raise DeliveryError for ids in fail_items.

        Note:
            Failed items are not recorded, matching a message that never
            reached the chat.
        """
        if item.id in self.fail_items:
            raise DeliveryError("Telegram API Error: 400 Bad Request", status_code=400)
        self.items.append(item)

    async def notify_status(self, message):
        """Record a status message, failing every time when fail_status is set."""
        if self.fail_status:
            raise DeliveryError("Telegram API Error: 502 Bad Gateway", status_code=502)
        self.statuses.append(message)


@pytest.fixture
def store(tmp_path):
    return SnapshotStore(
        data_dir=str(tmp_path / "data"), push_flag_path=str(tmp_path / "push_me")
    )


@pytest.fixture
def topic():
    return TopicConfig(topic="cars", url="https://www.yad2.co.il/vehicles/cars?manufacturer=19")


@pytest.fixture
def app_config(tmp_path):
    topics: List[Dict[str, Any]] = [
        {"topic": "off-1", "url": "https://www.yad2.co.il/vehicles/cars?a=1", "disabled": True},
        {"topic": "on", "url": "https://www.yad2.co.il/vehicles/cars?b=2"},
        {"topic": "off-2", "url": "https://www.yad2.co.il/vehicles/cars?c=3", "disabled": True},
    ]
    return AppConfig(
        topics=topics,
        api_token="123:abc",
        chat_id="42",
        data_dir=str(tmp_path / "data"),
        push_flag_path=str(tmp_path / "push_me"),
    )

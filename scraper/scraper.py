# scraper/scraper.py
import asyncio
import logging
from httpx import AsyncClient, HTTPError
from .errors import BotBlockedError, ScannerError, TransportError
from .extractor import extract_page_data, page_title, parse_html
from .listing import ITEM_URL, find_query, normalize_item, parse_listing
from .utils import dig

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36"
)
CHALLENGE_TITLE = "ShieldSquare Captcha"

logger = logging.getLogger("scraper")
logger.setLevel(logging.INFO)
handler = logging.StreamHandler()
handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(message)s"))
logger.addHandler(handler)


class Yad2Scraper:
    def __init__(self, client=None):
        self.client = client or AsyncClient(
            timeout=30.0,
            follow_redirects=True,
            headers={"User-Agent": USER_AGENT},
        )

    async def close(self):
        """
        Close the HTTP client and release its connections.

        Returns:
            None

        Note:
            Call this in a finally block once every topic sharing the
            scraper has finished.
        """
        await self.client.aclose()

    async def fetch(self, url):
        """
        Fetch a page and return its HTML.

        Performs a single GET with the desktop browser user agent, following
        redirects. There is no retry: a failed listing fetch fails the run.

        Args:
            url (str): The URL to fetch

        Returns:
            str: The response body

        Raises:
            TransportError: If the request could not be completed

        Note:
            A non-2xx status is only logged. Yad2 serves its challenge page
            with error codes too, so the body still goes through bot
            detection and data-island extraction, which fail the run properly.
        """
        try:
            resp = await self.client.get(url)
        except HTTPError as e:
            raise TransportError(f"Failed to fetch {url}: {e}") from e
        if resp.is_error:
            logger.warning(f"Got {resp.status_code} for {url}")
        return resp.text

    async def scrape_items(self, url):
        """
        Fetch a listing page and turn its feed into canonical items.

        Args:
            url (str): Listing (saved search) URL

        Returns:
            list[Item]: Items in feed order, ads excluded

        Raises:
            TransportError: Listing could not be fetched
            BotBlockedError: The page title is the bot challenge title
            ExtractionError: Data island missing or malformed
            ParseError: Feed JSON has an unexpected shape

        Process:
            1. GET the listing URL
            2. Fail fast on the challenge page, before any JSON work
            3. Extract __NEXT_DATA__ and flatten its feed
            4. Skip records with neither token nor id, normalize the rest
        """
        html = await self.fetch(url)
        soup = parse_html(html)
        if page_title(soup) == CHALLENGE_TITLE:
            raise BotBlockedError(f"Bot detection page returned for {url}")

        data = extract_page_data(soup)
        records = parse_listing(data)

        items = []
        for record in records:
            if not (record.get("token") or record.get("id")):
                logger.warning(f"Skipping feed record without token or id: {record.get('type')}")
                continue
            items.append(normalize_item(record))
        logger.info(f"Found {len(items)} items on {url}")
        return items

    async def fetch_item_detail(self, item_id):
        """
        Re-fetch an item's own page to recover fields the feed leaves out.

        Enrichment is best effort: every failure is logged and reported as
        None so it never fails the topic that asked for it.

        Args:
            item_id (str): Listing token

        Returns:
            dict or None: The item query's state.data, or None when the page,
                the data island or the matching query is unavailable
        """
        url = ITEM_URL.format(item_id)
        try:
            html = await self.fetch(url)
            data = extract_page_data(html)
            queries = dig(data, "props", "pageProps", "dehydratedState", "queries")
            if queries is None:
                return None
            query = find_query(queries, "item", item_id)
            return dig(query, "state", "data")
        except ScannerError as e:
            logger.warning(f"Failed to get item data for {item_id}: {e}")
            return None
        except Exception:
            logger.exception(f"Unexpected error reading item page {item_id}")
            return None


# convenience script
async def main(url):
    s = Yad2Scraper()
    try:
        for item in await s.scrape_items(url):
            print(item.model_dump_json())
    finally:
        await s.close()


if __name__ == "__main__":
    import sys

    asyncio.run(main(sys.argv[1]))

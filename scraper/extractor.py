# scraper/extractor.py
import json
import logging
from bs4 import BeautifulSoup
from .errors import ExtractionError

logger = logging.getLogger("scraper")

DATA_ISLAND_ID = "__NEXT_DATA__"


def parse_html(html):
    """Parse raw HTML with the lxml backend."""
    return BeautifulSoup(html, "lxml")


def page_title(soup):
    """Return the text of the document's first <title>, or "" when it has none."""
    tag = soup.find("title")
    return tag.get_text() if tag else ""


def extract_page_data(page):
    """
    Locate and decode the Next.js data island embedded in a page.

    Args:
        page (str | BeautifulSoup): Raw HTML or an already parsed document

    Returns:
        dict: The decoded __NEXT_DATA__ JSON document

    Raises:
        ExtractionError: "missing data island" when the script tag is absent
            or empty, "malformed json" when its text cannot be decoded
    """
    soup = page if isinstance(page, BeautifulSoup) else parse_html(page)
    script = soup.find("script", id=DATA_ISLAND_ID)
    content = script.string if script else None
    if not content:
        raise ExtractionError("missing data island")
    try:
        return json.loads(content)
    except json.JSONDecodeError as e:
        logger.error(f"Failed to parse {DATA_ISLAND_ID} JSON: {e}")
        raise ExtractionError("malformed json") from e

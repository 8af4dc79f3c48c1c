# scraper/listing.py
from enum import Enum
from .errors import ParseError
from .models import Item
from .utils import as_list, as_number, dig, peek

ITEM_URL = "https://www.yad2.co.il/item/{}"
FEED_TAG = "feed"
AD_TYPE = "ad"


class ListingSchema(Enum):
    """The payload layouts the listing page has shipped over time."""

    DEHYDRATED = "dehydrated"  # props.pageProps.dehydratedState.queries
    LEGACY_SEARCH = "legacy_search"  # props.pageProps.search
    EMPTY = "empty"


def detect_schema(root):
    """
    Decide which listing layout a decoded __NEXT_DATA__ document uses.

    The dehydrated react-query layout wins over the legacy search layout
    when both keys are present; anything else is an explicit empty feed.
    """
    page_props = dig(root, "props", "pageProps")
    if dig(page_props, "dehydratedState", "queries") is not None:
        return ListingSchema.DEHYDRATED
    if dig(page_props, "search") is not None:
        return ListingSchema.LEGACY_SEARCH
    return ListingSchema.EMPTY


def find_query(queries, *tags):
    """Return the first dehydrated query whose queryKey list contains every tag."""
    for query in as_list(queries, "dehydratedState.queries"):
        key = peek(query, "queryKey")
        if isinstance(key, list) and all(tag in key for tag in tags):
            return query
    return None


def _dehydrated_feed(root):
    queries = dig(root, "props", "pageProps", "dehydratedState", "queries")
    feed_query = find_query(queries, FEED_TAG)
    data = dig(feed_query, "state", "data")
    if data is None:
        return []
    commercial = as_list(dig(data, "commercial"), "feed.commercial")
    private = as_list(dig(data, "private"), "feed.private")
    return [*commercial, *private]


def _legacy_feed(root):
    search = dig(root, "props", "pageProps", "search")
    return as_list(dig(search, "results", "feed", "data"), "search.results.feed.data")


def parse_listing(root):
    """
    Flatten a listing page's JSON into raw item records.

    Args:
        root (dict): Decoded __NEXT_DATA__ document

    Returns:
        list[dict]: Raw records in feed order (commercial before private for
            the dehydrated layout), with promoted "ad" entries removed

    Raises:
        ParseError: If the document is present but shaped unexpectedly
    """
    schema = detect_schema(root)
    if schema is ListingSchema.DEHYDRATED:
        records = _dehydrated_feed(root)
    elif schema is ListingSchema.LEGACY_SEARCH:
        records = _legacy_feed(root)
    else:
        records = []

    relevant = []
    for record in records:
        if not isinstance(record, dict):
            raise ParseError(f"expected feed record object, got {type(record).__name__}")
        if record.get("type") != AD_TYPE:
            relevant.append(record)
    return relevant


def _text(value):
    return value if isinstance(value, str) else None


def _first(values):
    return values[0] if isinstance(values, list) and values else None


def normalize_item(raw):
    """
    Map a raw feed record onto the canonical Item.

    Every field is resolved first-available-wins, and anything missing or of
    an unexpected type becomes None rather than an error. The link is always
    built from the token, even when the id falls back to raw["id"].
    """
    token = raw.get("token")
    hand = raw.get("hand")
    agency_name = _text(peek(raw, "customer", "agencyName"))
    return Item(
        id=str(token or raw.get("id") or ""),
        link=ITEM_URL.format(token),
        img_url=_text(peek(raw, "metaData", "coverImage") or _first(raw.get("images"))),
        price=as_number(raw.get("price")),
        year=as_number(peek(raw, "vehicleDates", "yearOfProduction") or raw.get("year")),
        hand=_text(peek(hand, "text") if isinstance(hand, dict) else hand),
        km=as_number(raw.get("km")),
        merchant=bool(raw.get("merchant")) or bool(agency_name),
        agency_name=agency_name or None,
        model=_text(peek(raw, "model", "text")),
        sub_model=_text(peek(raw, "subModel", "text")),
        city=_text(peek(raw, "address", "city", "text")) or None,
        area=_text(peek(raw, "address", "area", "text")) or None,
    )

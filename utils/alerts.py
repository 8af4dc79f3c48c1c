# utils/alerts.py
import logging
from httpx import AsyncClient, HTTPError
from scraper.errors import DeliveryError

TELEGRAM_API = "https://api.telegram.org/bot{token}/{method}"
UNSPECIFIED = "לא צוין"

logger = logging.getLogger("alerts")
logger.setLevel(logging.INFO)


def _grouped(value):
    return f"{value:,}" if isinstance(value, (int, float)) else str(value)


def render_caption(item):
    """
    Build the Hebrew Markdown caption sent for a listing.

    Args:
        item (Item): The listing to describe

    Returns:
        str: Caption with model, location, price, year, hand, mileage,
            dealer/private badge and a link to the listing

    Note:
        Location falls back from city to area. Price and mileage are grouped
        by thousands; any missing value reads "לא צוין" (unspecified).
    """
    if item.merchant:
        merchant_text = f"🏢 סוחר ({item.agency_name or UNSPECIFIED})"
    else:
        merchant_text = "👤 פרטי"
    price_text = f"₪{_grouped(item.price)}" if item.price else UNSPECIFIED
    km_text = _grouped(item.km) if item.km else UNSPECIFIED

    return f"""
🚗 **{item.model or ''} {item.sub_model or ''}**

📍 **מיקום:** {item.city or item.area or UNSPECIFIED}
💰 **מחיר:** {price_text}
📅 **שנה:** {item.year or UNSPECIFIED}
✋ **יד:** {item.hand or UNSPECIFIED}
📟 **קילומטר:** {km_text}
{merchant_text}

[לצפייה במודעה]({item.link})
"""


class TelegramNotifier:
    def __init__(self, api_token, chat_id, client=None):
        self.api_token = api_token
        self.chat_id = chat_id
        self.client = client or AsyncClient(timeout=30.0)

    async def close(self):
        await self.client.aclose()

    async def _call(self, method, payload):
        """
        POST a Bot API method and raise unless Telegram accepted it.

        Raises:
            DeliveryError: On transport failure, a non-2xx status or an
                "ok": false body. Carries the status code and Telegram's
                description when the response has one.
        """
        url = TELEGRAM_API.format(token=self.api_token, method=method)
        try:
            resp = await self.client.post(url, json=payload)
        except HTTPError as e:
            raise DeliveryError(f"Telegram {method} failed: {e}") from e

        try:
            body = resp.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}
        if resp.is_success and body.get("ok", True):
            return body

        description = body.get("description")
        message = f"Telegram API Error: {resp.status_code} {resp.reason_phrase}"
        if description:
            message = f"{message} - {description}"
        raise DeliveryError(message, status_code=resp.status_code, description=description)

    async def send_text(self, text, parse_mode=None):
        payload = {"chat_id": self.chat_id, "text": text}
        if parse_mode:
            payload["parse_mode"] = parse_mode
        return await self._call("sendMessage", payload)

    async def send_photo(self, photo_url, caption):
        return await self._call(
            "sendPhoto",
            {
                "chat_id": self.chat_id,
                "photo": photo_url,
                "caption": caption,
                "parse_mode": "Markdown",
            },
        )

    async def notify_item(self, item):
        """
        Announce one listing, with its cover photo when it has one.

        If the photo cannot be delivered the same caption is sent as a text
        message instead. A failure of that text message propagates.
        """
        caption = render_caption(item)
        if item.img_url:
            try:
                await self.send_photo(item.img_url, caption)
                return
            except DeliveryError as e:
                logger.error(f"Failed to send photo for {item.id}, sending text instead: {e}")
        await self.send_text(caption, parse_mode="Markdown")

    async def notify_status(self, message):
        """Send a plain lifecycle message (scan started, items found, failure)."""
        await self.send_text(message)

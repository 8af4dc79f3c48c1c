# utils/config.py
import json
import os
from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError
from typing import List, Optional
from scraper.errors import ConfigError
from scraper.store import DATA_DIR, PUSH_FLAG

CONFIG_PATH = "config.json"


class TopicConfig(BaseModel):
    topic: str = Field(..., min_length=1, description="Snapshot key and display name")
    url: str
    disabled: bool = False


class AppConfig(BaseModel):
    topics: List[TopicConfig]
    api_token: str
    chat_id: str
    data_dir: str = DATA_DIR
    push_flag_path: str = PUSH_FLAG
    scan_interval_minutes: Optional[float] = None
    status_messages: bool = True

    def enabled_topics(self):
        return [t for t in self.topics if not t.disabled]


def _env_flag(value):
    return value.strip().lower() not in ("0", "false", "no", "off", "")


def load_config(path=None):
    """
    Build the application configuration once at start-up.

    Reads the JSON config file (CONFIG_PATH env or ./config.json), then
    applies environment overrides. Values from a .env file are loaded first
    via python-dotenv.

    Args:
        path (str, optional): Explicit config file path

    Returns:
        AppConfig: Validated configuration

    Raises:
        ConfigError: If the file is missing or invalid, or the Telegram
            token or chat id cannot be resolved

    Environment:
        API_TOKEN, CHAT_ID: override telegramApiToken / chatId
        DATA_DIR, PUSH_FLAG_PATH, SCAN_INTERVAL_MINUTES, STATUS_MESSAGES
    """
    load_dotenv()
    path = path or os.getenv("CONFIG_PATH", CONFIG_PATH)
    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = json.load(f)
    except FileNotFoundError as e:
        raise ConfigError(f"Config file not found: {path}") from e
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(f"Could not read config {path}: {e}") from e
    if not isinstance(raw, dict):
        raise ConfigError(f"Config {path} must be a JSON object")

    api_token = os.getenv("API_TOKEN") or raw.get("telegramApiToken")
    chat_id = os.getenv("CHAT_ID") or raw.get("chatId")
    if not api_token or not chat_id:
        raise ConfigError(
            "Missing API_TOKEN or CHAT_ID. Please set them in .env file or configuration."
        )

    values = {
        "topics": raw.get("projects", []),
        "api_token": str(api_token),
        "chat_id": str(chat_id),
        "data_dir": os.getenv("DATA_DIR") or raw.get("dataDir") or DATA_DIR,
        "push_flag_path": os.getenv("PUSH_FLAG_PATH") or raw.get("pushFlagPath") or PUSH_FLAG,
        "scan_interval_minutes": os.getenv("SCAN_INTERVAL_MINUTES") or raw.get("scanIntervalMinutes"),
        "status_messages": raw.get("statusMessages", True),
    }
    if os.getenv("STATUS_MESSAGES") is not None:
        values["status_messages"] = _env_flag(os.getenv("STATUS_MESSAGES"))

    try:
        return AppConfig(**values)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {path}: {e}") from e

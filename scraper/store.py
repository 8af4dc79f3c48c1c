# scraper/store.py
import asyncio
import json
import logging
import os
import tempfile
from pydantic import ValidationError
from .errors import StorageError
from .models import Item

DATA_DIR = "data"
PUSH_FLAG = "push_me"

logger = logging.getLogger("store")
logger.setLevel(logging.INFO)


class SnapshotStore:
    """
    File-backed store of previously seen items, one JSON array per topic.

    Each topic owns {data_dir}/{topic}.json. Two runs for the same topic must
    not write concurrently; nothing here locks the file.
    """

    def __init__(self, data_dir=DATA_DIR, push_flag_path=PUSH_FLAG):
        self.data_dir = data_dir
        self.push_flag_path = push_flag_path

    def path_for(self, topic):
        """Return the snapshot file path for a topic."""
        return os.path.join(self.data_dir, f"{topic}.json")

    async def exists(self, topic):
        """Return True when the topic already has a snapshot file."""
        return await asyncio.to_thread(os.path.isfile, self.path_for(topic))

    async def load(self, topic):
        """
        Load a topic's snapshot, creating an empty one on first use.

        Raises:
            StorageError: The file exists but cannot be read or decoded
        """
        path = self.path_for(topic)
        try:
            raw = await asyncio.to_thread(_read_text, path)
        except FileNotFoundError:
            logger.info(f"No snapshot for '{topic}' yet, creating {path}")
            await self.atomic_write(topic, [])
            return []
        except OSError as e:
            raise StorageError(f"Could not read {path}: {e}") from e

        try:
            docs = json.loads(raw)
        except json.JSONDecodeError as e:
            raise StorageError(f"Snapshot {path} is not valid JSON: {e}") from e
        if not isinstance(docs, list):
            raise StorageError(f"Snapshot {path} must hold a JSON array")
        try:
            return [Item.model_validate(doc) for doc in docs]
        except ValidationError as e:
            raise StorageError(f"Snapshot {path} holds an invalid item: {e}") from e

    @staticmethod
    def partition_new(snapshot, candidates):
        """
        Split candidates into unseen items and the extended snapshot.

        An item is new when its id is not in the snapshot. New items keep the
        candidates' order and are appended after the existing items; a repeated
        id within one batch is only taken once.

        Returns:
            tuple[list[Item], list[Item]]: (new_items, merged_snapshot)
        """
        seen_ids = {item.id for item in snapshot}
        new_items = []
        for item in candidates:
            if item.id in seen_ids:
                continue
            seen_ids.add(item.id)
            new_items.append(item)
        return new_items, [*snapshot, *new_items]

    async def commit(self, topic, merged, new_items):
        """
        Persist the merged snapshot when at least one item is new.

        With no new items nothing is written and no push flag is raised.
        Otherwise the snapshot is replaced atomically and the zero-byte push
        flag is created for the CI step that commits the data directory.

        Returns:
            bool: True if anything was written
        """
        if not new_items:
            return False
        await self.atomic_write(topic, merged)
        await self.raise_push_flag()
        logger.info(f"Saved {len(new_items)} new item(s) for '{topic}' ({len(merged)} total)")
        return True

    async def atomic_write(self, topic, items):
        """Replace a topic's snapshot in one step (temp file + rename)."""
        path = self.path_for(topic)
        payload = json.dumps(
            [item.model_dump() for item in items], indent=2, ensure_ascii=False
        )
        try:
            await asyncio.to_thread(_replace_file, path, payload)
        except OSError as e:
            raise StorageError(f"Could not write {path}: {e}") from e

    async def raise_push_flag(self):
        try:
            await asyncio.to_thread(_touch, self.push_flag_path)
        except OSError as e:
            raise StorageError(f"Could not create {self.push_flag_path}: {e}") from e


def _read_text(path):
    with open(path, "r", encoding="utf-8") as f:
        return f.read()


def _replace_file(path, payload):
    directory = os.path.dirname(path) or "."
    os.makedirs(directory, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".snapshot-", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(payload)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)
    except BaseException:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)
        raise


def _touch(path):
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    with open(path, "w", encoding="utf-8"):
        pass

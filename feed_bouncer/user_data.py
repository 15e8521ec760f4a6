"""
Per-feed read state, stored in user_data.json.
"""
import json
import logging
import os
from typing import Dict, Iterable, Set

from feed_bouncer.exceptions import StorageCorruptError
from feed_bouncer.utils.helpers import safe_save_json

logger = logging.getLogger(__name__)

USER_DATA_FILE = 'user_data.json'


class UserDataStorage:
    """
    Maps feed ids to the item ids the user marked as read.
    """

    def __init__(self, read_ids: Dict[str, Set[int]] = None):
        self.read_ids: Dict[str, Set[int]] = read_ids or {}

    @classmethod
    def open(cls, base_dir: str) -> 'UserDataStorage':
        """
        Load the read state; a missing file means nothing has been read yet.

        Raises:
            StorageCorruptError: If the file exists but cannot be parsed.
        """
        file_path = os.path.join(base_dir, USER_DATA_FILE)
        if not os.path.exists(file_path):
            logger.debug(f"No user data at {file_path}, starting empty")
            return cls()

        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
            read_ids = {
                feed_id: {int(i) for i in entry.get('read_ids', [])}
                for feed_id, entry in data.items()
            }
        except (OSError, UnicodeDecodeError, json.JSONDecodeError, AttributeError, TypeError, ValueError) as e:
            raise StorageCorruptError(file_path, f"could not parse user data: {e!r}") from e

        return cls(read_ids)

    def save(self, base_dir: str) -> bool:
        """Write the read state; shrinking is always allowed."""
        os.makedirs(base_dir, exist_ok=True)
        data = {
            feed_id: {'read_ids': sorted(ids)}
            for feed_id, ids in sorted(self.read_ids.items())
        }
        return safe_save_json(data, os.path.join(base_dir, USER_DATA_FILE), 'user_data', True)

    def mark_read(self, feed_id: str, item_id: int) -> bool:
        ids = self.read_ids.setdefault(feed_id, set())
        if item_id in ids:
            return False
        ids.add(item_id)
        return True

    def mark_many_read(self, feed_id: str, item_ids: Iterable[int]) -> int:
        return sum(1 for item_id in item_ids if self.mark_read(feed_id, item_id))

    def is_read(self, feed_id: str, item_id: int) -> bool:
        return item_id in self.read_ids.get(feed_id, set())

    def read_item_ids(self, feed_id: str) -> Set[int]:
        return set(self.read_ids.get(feed_id, set()))

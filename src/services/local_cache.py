"""
Local cache - JSON file mirror of the full participant registry
"""

import json
import logging
import os
import tempfile
from typing import Optional

from pydantic import ValidationError

from models.participant import Participant
from services.base_store import LocalRecordStore
from utils.helpers import parse_stored_timestamp

logger = logging.getLogger(__name__)


class LocalCacheStore(LocalRecordStore):
    """
    Participant store persisted as a single JSON document:

        {"participants": [...], "nextId": 5, "lastUpdated": "2024-03-01T10:00:00+00:00"}

    The document is re-read before every operation and overwritten wholesale
    after every write, so several processes sharing the file see each
    other's changes.
    """

    kind = "cache"

    def __init__(self, path: str):
        super().__init__()
        self.path = path
        self._reload()

    @staticmethod
    def is_available(path: Optional[str]) -> bool:
        """Whether a cache file can be kept at the given path"""
        if not path:
            return False
        directory = os.path.dirname(os.path.abspath(path))
        try:
            os.makedirs(directory, exist_ok=True)
        except OSError as e:
            logger.warning(f"CACHE: Cannot create cache directory {directory}: {e}")
            return False
        return os.access(directory, os.W_OK)

    def _reload(self):
        if not os.path.exists(self.path):
            return

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                document = json.load(f)
            participants = [Participant.model_validate(p) for p in document.get("participants", [])]
            last_updated = document.get("lastUpdated")
            last_updated = parse_stored_timestamp(last_updated) if last_updated else None
        except (OSError, ValueError, ValidationError) as e:
            # Keep the last good in-memory state; the next write repairs the file
            logger.error(f"CACHE: Error reading {self.path}: {e}")
            return

        self._set_records(participants, document.get("nextId"))
        self._last_updated = last_updated

    def _persist(self):
        document = {
            "participants": [p.model_dump(mode="json") for p in self._participants.values()],
            "nextId": self._next_id,
            "lastUpdated": self._last_updated.isoformat() if self._last_updated else None,
        }

        directory = os.path.dirname(os.path.abspath(self.path))
        # The directory may not exist yet, or may have been removed since the last write
        os.makedirs(directory, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".participants-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(document, f, indent=2)
            os.replace(tmp_path, self.path)
        except OSError:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

        logger.debug(f"CACHE: Saved {len(self._participants)} participants to {self.path}")

    def clear(self):
        """Remove the cache file and forget its contents"""
        if os.path.exists(self.path):
            os.remove(self.path)
        self._set_records([])
        self._last_updated = None
        logger.info(f"CACHE: Cleared {self.path}")

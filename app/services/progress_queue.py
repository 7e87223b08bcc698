"""
Progress Queue

File-backed queue of progress updates that could not be delivered
(no token, network down). Loaded once when a tracker starts and persisted
after every mutation.

One entry per (course_id, topic_name); a newer entry keeps the larger
watched duration.
"""

import logging
import os
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from pydantic import TypeAdapter, ValidationError

from app.core.config import settings
from app.schemas.progress import UpdateTopicProgressData


logger = logging.getLogger(__name__)

_queue_adapter = TypeAdapter(List[UpdateTopicProgressData])


class ProgressQueue:
    """
    Typed store of unsent UpdateTopicProgressData payloads.

    Usage:
        queue = ProgressQueue()
        queue.load()
        queue.enqueue(payload)
        for item in queue.items():
            ...
            queue.remove(item.course_id, item.topic_name)
    """

    def __init__(self, path: Optional[str] = None):
        self.path = Path(path or settings.PROGRESS_QUEUE_PATH)
        self._items: Dict[Tuple[str, str], UpdateTopicProgressData] = {}
        self._loaded = False

    def load(self) -> None:
        """
        Read the queue from disk.

        A missing file is an empty queue; a corrupt file is logged and
        discarded.
        """
        self._items = {}
        self._loaded = True
        if not self.path.exists():
            return

        try:
            items = _queue_adapter.validate_json(self.path.read_bytes())
        except (ValidationError, ValueError, OSError) as e:
            logger.error(f"Discarding unreadable progress queue at {self.path}: {e}")
            return

        for item in items:
            self._put(item)

    def enqueue(self, payload: UpdateTopicProgressData) -> None:
        """Add or merge a payload and persist."""
        self._ensure_loaded()
        self._put(payload)
        self._persist()

    def remove(self, course_id: str, topic_name: str) -> bool:
        """
        Drop the entry for a topic.

        Returns:
            True if removed, False if not queued.
        """
        self._ensure_loaded()
        if self._items.pop((str(course_id), topic_name), None) is None:
            return False
        self._persist()
        return True

    def items(self) -> List[UpdateTopicProgressData]:
        self._ensure_loaded()
        return list(self._items.values())

    def clear(self) -> None:
        self._items = {}
        self._loaded = True
        self._persist()

    def __len__(self) -> int:
        return len(self._items)

    # ============== Internals ==============

    def _ensure_loaded(self) -> None:
        if not self._loaded:
            self.load()

    def _put(self, payload: UpdateTopicProgressData) -> None:
        key = (payload.course_id, payload.topic_name)
        existing = self._items.get(key)
        if existing is not None and existing.watched_duration > payload.watched_duration:
            payload = payload.model_copy(update={"watched_duration": existing.watched_duration})
        self._items[key] = payload

    def _persist(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        tmp_path.write_bytes(
            _queue_adapter.dump_json(list(self._items.values()), by_alias=True)
        )
        os.replace(tmp_path, self.path)

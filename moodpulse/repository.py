import copy
import logging
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, Iterator, List, Optional

from .engine import parse_timestamp

logger = logging.getLogger(__name__)


class RepositoryError(Exception):
    pass


class MoodRepository(ABC):
    """Data access used by the request handlers.

    A repository is opened for one request and closed afterwards; calls on a
    closed repository raise ``RepositoryError``.
    """

    def __init__(self):
        self.connected = False

    def connect(self) -> "MoodRepository":
        self.connected = True
        return self

    def close(self):
        self.connected = False

    def _require_connection(self):
        if not self.connected:
            raise RepositoryError("Repository is not connected")

    @abstractmethod
    def add_entry(self, user_id: str, entry: Dict[str, Any]) -> Dict[str, Any]:
        ...

    @abstractmethod
    def fetch_entries(self, user_id: str, since: Optional[datetime] = None, limit: Optional[int] = None,
                      newest_first: bool = False) -> List[Dict[str, Any]]:
        ...

    @abstractmethod
    def save_analysis(self, user_id: str, analysis: Dict[str, Any]) -> None:
        ...

    @abstractmethod
    def list_analyses(self, user_id: str, limit: int = 5) -> List[Dict[str, Any]]:
        ...

    @abstractmethod
    def get_stats(self, user_id: str) -> Optional[Dict[str, Any]]:
        ...

    @abstractmethod
    def save_stats(self, user_id: str, stats: Dict[str, Any]) -> None:
        ...


class InMemoryMoodStore:
    def __init__(self):
        self.lock = threading.Lock()
        self.moods: Dict[str, List[Dict[str, Any]]] = {}
        self.analyses: Dict[str, List[Dict[str, Any]]] = {}
        self.stats: Dict[str, Dict[str, Any]] = {}


def _sort_key(doc: Dict[str, Any]) -> float:
    parsed = parse_timestamp(doc.get("timestamp"))
    if parsed is None:
        return float("-inf")
    if parsed.tzinfo is None:
        parsed = parsed.astimezone()
    return parsed.timestamp()


class InMemoryMoodRepository(MoodRepository):
    def __init__(self, store: Optional[InMemoryMoodStore] = None):
        super().__init__()
        self.store = store or InMemoryMoodStore()

    def add_entry(self, user_id, entry):
        self._require_connection()
        document = dict(entry, userId=user_id, createdAt=datetime.now().isoformat())
        with self.store.lock:
            self.store.moods.setdefault(user_id, []).append(document)
        return dict(document)

    def fetch_entries(self, user_id, since=None, limit=None, newest_first=False):
        self._require_connection()
        with self.store.lock:
            documents = [dict(d) for d in self.store.moods.get(user_id, [])]

        if since is not None:
            threshold = since.astimezone().timestamp() if since.tzinfo is None else since.timestamp()
            documents = [d for d in documents if _sort_key(d) >= threshold]

        documents.sort(key=_sort_key, reverse=newest_first)
        if limit is not None:
            documents = documents[:limit] if newest_first else documents[-limit:]
        return documents

    def save_analysis(self, user_id, analysis):
        self._require_connection()
        with self.store.lock:
            self.store.analyses.setdefault(user_id, []).append(copy.deepcopy(analysis))

    def list_analyses(self, user_id, limit=5):
        self._require_connection()
        with self.store.lock:
            analyses = copy.deepcopy(self.store.analyses.get(user_id, []))
        analyses.sort(key=lambda a: a.get("generatedAt", ""), reverse=True)
        return analyses[:limit]

    def get_stats(self, user_id):
        self._require_connection()
        with self.store.lock:
            stats = self.store.stats.get(user_id)
            return dict(stats) if stats is not None else None

    def save_stats(self, user_id, stats):
        self._require_connection()
        with self.store.lock:
            current = self.store.stats.setdefault(user_id, {"userId": user_id})
            current.update(stats)


default_store = InMemoryMoodStore()


@contextmanager
def open_repository(store: Optional[InMemoryMoodStore] = None) -> Iterator[MoodRepository]:
    repository = InMemoryMoodRepository(store or default_store).connect()
    logger.debug("Repository opened")
    try:
        yield repository
    finally:
        repository.close()
        logger.debug("Repository closed")


def get_repository() -> Iterator[MoodRepository]:
    with open_repository() as repository:
        yield repository

"""Monotonic per-type counters backing sequential IDs."""

import threading
from collections.abc import Callable, Iterable

import structlog

from project_entities.cancellation import Cancel, check_cancelled
from project_entities.errors import EntityStoreError, OperationCancelledError
from project_entities.locking import DEFAULT_LOCK_TIMEOUT, lock_with_timeout
from project_entities.storage import FileStore

logger = structlog.get_logger()

COUNTERS_FILE = "id_counters.yaml"

Scanner = Callable[..., int]


class IDCounterManager:
    """Hands out sequential numbers per entity type.

    The snapshot in ``id_counters.yaml`` is loaded lazily and rewritten in
    full after every change. All access goes through one mutex, so numbers
    are unique among threads sharing this manager. Writes additionally hold
    the snapshot file lock.
    """

    def __init__(self, store: FileStore, lock_timeout: float = DEFAULT_LOCK_TIMEOUT) -> None:
        self.store = store
        self.lock_timeout = lock_timeout
        self._lock = threading.Lock()
        self._cache: dict[str, int] | None = None

    def _load(self, cancel: Cancel) -> dict[str, int]:
        if self._cache is not None:
            return self._cache
        try:
            data = self.store.read_yaml(COUNTERS_FILE, cancel=cancel) or {}
        except FileNotFoundError:
            data = {}
        counters = data.get("counters") or {}
        self._cache = {str(k): int(v) for k, v in counters.items()}
        logger.debug("ID counters loaded", counters=self._cache)
        return self._cache

    def _file_lock(self):
        return lock_with_timeout(self.store.resolve(COUNTERS_FILE), self.lock_timeout)

    def _save(self, cancel: Cancel) -> None:
        self.store.write_yaml(COUNTERS_FILE, {"counters": dict(self._cache or {})}, cancel=cancel)

    def get_next_id(self, entity_type: str, *, cancel: Cancel = None) -> int:
        """Reserve and return the next number for a type.

        The in-memory counter is restored if the snapshot cannot be written,
        so a failed call never consumes a number.

        Args:
            entity_type: Entity type name
            cancel: Optional cancellation signal

        Returns:
            The reserved number, starting at 1
        """
        check_cancelled(cancel)
        with self._lock, self._file_lock():
            counters = self._load(cancel)
            current = counters.get(entity_type, 0)
            counters[entity_type] = current + 1
            try:
                self._save(cancel)
            except BaseException:
                counters[entity_type] = current
                logger.error("Failed to persist ID counter, rolled back", entity_type=entity_type)
                raise
            logger.debug("Reserved ID number", entity_type=entity_type, number=current + 1)
            return current + 1

    def get_current_id(self, entity_type: str, *, cancel: Cancel = None) -> int:
        check_cancelled(cancel)
        with self._lock:
            return self._load(cancel).get(entity_type, 0)

    def initialize_from_existing(self, entity_type: str, max_id: int, *, cancel: Cancel = None) -> None:
        """Raise a counter to max_id if it is currently lower. Never lowers it."""
        check_cancelled(cancel)
        with self._lock, self._file_lock():
            counters = self._load(cancel)
            current = counters.get(entity_type, 0)
            if max_id <= current:
                return
            counters[entity_type] = max_id
            try:
                self._save(cancel)
            except BaseException:
                counters[entity_type] = current
                raise

    def initialize_all_from_scanner(
        self, scanner: Scanner, entity_types: Iterable[str], *, cancel: Cancel = None
    ) -> None:
        """Raise each counter to the highest number the scanner reports.

        Args:
            scanner: Called as ``scanner(entity_type, cancel=cancel)``, returns the
                highest number in use for that type
            entity_types: Types to scan
            cancel: Optional cancellation signal
        """
        check_cancelled(cancel)
        with self._lock, self._file_lock():
            counters = self._load(cancel)
            previous = dict(counters)
            changed = False
            for entity_type in entity_types:
                try:
                    max_id = scanner(entity_type, cancel=cancel)
                except OperationCancelledError:
                    counters.clear()
                    counters.update(previous)
                    raise
                except (EntityStoreError, OSError, ValueError) as e:
                    logger.warning("Skipping counter scan", entity_type=entity_type, error=str(e))
                    continue
                if max_id > counters.get(entity_type, 0):
                    counters[entity_type] = max_id
                    changed = True

            if not changed:
                return
            try:
                self._save(cancel)
            except BaseException:
                counters.clear()
                counters.update(previous)
                raise
            logger.info("ID counters initialized from existing files", counters=dict(counters))

    def invalidate_cache(self) -> None:
        """Drop the in-memory snapshot so the next call reloads it from disk."""
        with self._lock:
            self._cache = None

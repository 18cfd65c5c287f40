"""Tests for sequential ID counters."""

import threading
from unittest.mock import patch

import pytest

from project_entities.errors import OperationCancelledError, ValidationError
from project_entities.id_counter import COUNTERS_FILE, IDCounterManager
from project_entities.storage import FileStore


def test_next_id_increments_and_persists(store: FileStore) -> None:
    """Test numbers start at 1 and the snapshot is written after each call."""
    counter = IDCounterManager(store)
    assert counter.get_next_id("objective") == 1
    assert counter.get_next_id("objective") == 2
    assert store.read_yaml(COUNTERS_FILE) == {"counters": {"objective": 2}}


def test_counters_are_per_type(store: FileStore) -> None:
    """Test each type has its own sequence."""
    counter = IDCounterManager(store)
    counter.get_next_id("objective")
    assert counter.get_next_id("decision") == 1
    assert counter.get_current_id("objective") == 1
    assert counter.get_current_id("problem") == 0


def test_snapshot_reloaded_by_new_manager(store: FileStore) -> None:
    """Test a new manager continues from the persisted snapshot."""
    IDCounterManager(store).get_next_id("risk")
    assert IDCounterManager(store).get_next_id("risk") == 2


def test_concurrent_minting_is_unique(store: FileStore) -> None:
    """Test concurrent callers never receive the same number."""
    counter = IDCounterManager(store)
    results: list[int] = []
    results_lock = threading.Lock()

    def mint() -> None:
        for _ in range(10):
            number = counter.get_next_id("task")
            with results_lock:
                results.append(number)

    threads = [threading.Thread(target=mint) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert sorted(results) == list(range(1, 81))
    assert IDCounterManager(store).get_current_id("task") == 80


def test_failed_persist_rolls_back(store: FileStore) -> None:
    """Test a failed snapshot write does not consume a number."""
    counter = IDCounterManager(store)
    counter.get_next_id("objective")

    with patch.object(store, "write_yaml", side_effect=OSError("disk full")):
        with pytest.raises(OSError):
            counter.get_next_id("objective")

    assert counter.get_current_id("objective") == 1
    assert counter.get_next_id("objective") == 2


def test_cancelled_before_minting(store: FileStore) -> None:
    """Test a cancelled call leaves the counter untouched."""
    counter = IDCounterManager(store)
    cancel = threading.Event()
    cancel.set()
    with pytest.raises(OperationCancelledError):
        counter.get_next_id("objective", cancel=cancel)
    assert not store.exists(COUNTERS_FILE)


def test_initialize_from_existing_only_raises(store: FileStore) -> None:
    """Test initialization never lowers a counter."""
    counter = IDCounterManager(store)
    counter.initialize_from_existing("objective", 5)
    assert counter.get_current_id("objective") == 5
    counter.initialize_from_existing("objective", 3)
    assert counter.get_current_id("objective") == 5
    assert counter.get_next_id("objective") == 6


def test_initialize_all_from_scanner(store: FileStore) -> None:
    """Test scanner results raise counters and failing types are skipped."""
    counter = IDCounterManager(store)
    counter.initialize_from_existing("decision", 9)
    found = {"objective": 4, "decision": 2}

    def scanner(entity_type: str, *, cancel: threading.Event | None = None) -> int:
        if entity_type == "problem":
            raise ValidationError("id", "corrupt file")
        return found.get(entity_type, 0)

    counter.initialize_all_from_scanner(scanner, ["objective", "decision", "problem"])

    assert counter.get_current_id("objective") == 4
    assert counter.get_current_id("decision") == 9
    assert counter.get_current_id("problem") == 0
    assert store.read_yaml(COUNTERS_FILE) == {"counters": {"decision": 9, "objective": 4}}


def test_initialize_all_cancelled_restores_counters(store: FileStore) -> None:
    """Test cancellation during a scan leaves counters as they were."""
    counter = IDCounterManager(store)
    cancel = threading.Event()

    def scanner(entity_type: str, *, cancel: threading.Event | None = None) -> int:
        if entity_type == "decision":
            raise OperationCancelledError()
        return 7

    with pytest.raises(OperationCancelledError):
        counter.initialize_all_from_scanner(scanner, ["objective", "decision"], cancel=cancel)
    assert counter.get_current_id("objective") == 0


def test_invalidate_cache(store: FileStore) -> None:
    """Test invalidating the cache picks up external changes."""
    counter = IDCounterManager(store)
    counter.get_next_id("objective")
    store.write_yaml(COUNTERS_FILE, {"counters": {"objective": 41}})
    assert counter.get_current_id("objective") == 1
    counter.invalidate_cache()
    assert counter.get_next_id("objective") == 42

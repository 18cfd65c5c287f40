"""Advisory file locks with a bounded wait."""

from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import structlog
from filelock import FileLock, Timeout

from project_entities.errors import LockTimeoutError

logger = structlog.get_logger()

DEFAULT_LOCK_TIMEOUT = 5.0


def lock_path_for(path: str | Path) -> str:
    return f"{path}.lock"


@contextmanager
def lock_with_timeout(path: str | Path, timeout: float = DEFAULT_LOCK_TIMEOUT) -> Iterator[None]:
    """Hold an exclusive lock on path for the duration of the block.

    The lock lives in a ``<path>.lock`` sidecar. A fresh ``FileLock`` is
    created per acquisition so threads of one process exclude each other as
    well as separate processes.

    Args:
        path: File being guarded
        timeout: Seconds to wait before giving up

    Raises:
        LockTimeoutError: If the lock is not acquired within timeout
    """
    sidecar = lock_path_for(path)
    Path(sidecar).parent.mkdir(parents=True, exist_ok=True)
    lock = FileLock(sidecar, timeout=timeout)
    try:
        lock.acquire()
    except Timeout as e:
        logger.warning("Lock acquisition timed out", path=str(path), timeout=timeout)
        raise LockTimeoutError(str(path), timeout) from e

    logger.debug("Lock acquired", path=str(path))
    try:
        yield
    finally:
        lock.release()
        logger.debug("Lock released", path=str(path))

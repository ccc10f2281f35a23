"""
Cross-process advisory lock for the repository registry file.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from filelock import FileLock, Timeout

from helm_proxy.core.errors import LockTimeoutError

logger = logging.getLogger(__name__)

DEFAULT_LOCK_TIMEOUT = 30.0
DEFAULT_RETRY_INTERVAL = 1.0


@contextmanager
def registry_lock(
    lock_path: Path,
    timeout: float = DEFAULT_LOCK_TIMEOUT,
    retry_interval: float = DEFAULT_RETRY_INTERVAL,
) -> Iterator[None]:
    """
    Hold the lock file for the duration of the `with` block.

    Retries every `retry_interval` seconds for at most `timeout` seconds and
    raises LockTimeoutError when the budget runs out. The lock is released on
    every exit path of the block, including exceptions.
    """
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    # thread_local=False: FastAPI may resume a request on another worker thread.
    lock = FileLock(str(lock_path), thread_local=False)
    try:
        lock.acquire(timeout=timeout, poll_interval=retry_interval)
    except Timeout as e:
        logger.warning(f"Timed out after {timeout}s waiting for lock {lock_path}")
        raise LockTimeoutError(f"timed out after {timeout}s waiting for lock {lock_path}") from e

    logger.debug(f"Acquired lock {lock_path}")
    try:
        yield
    finally:
        lock.release()
        logger.debug(f"Released lock {lock_path}")

"""
Index Synchronizer: download repository indices into the local cache.
"""
from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor, wait
from pathlib import Path
from typing import Callable, ContextManager, Dict, List, Optional

from helm_proxy.core.errors import (
    HelmProxyError,
    SyncFailure,
    TransportError,
    UnreachableRepositoryError,
)
from helm_proxy.domain.models import RepositoryEntry
from helm_proxy.services.fetcher import IndexFetcher
from helm_proxy.storage.index_cache import parse_index, write_index

logger = logging.getLogger(__name__)

# Entered around the cache write; yields False when the write must be skipped.
WriteGuard = Callable[[RepositoryEntry], ContextManager[bool]]


class IndexSynchronizer:
    """
    Downloads index files and stores them under the repository cache directory.

    Only reads RepositoryEntry objects; the registry file is never touched here.
    """

    def __init__(self, cache_dir: Path, fetcher: IndexFetcher, task_timeout: float = 300.0):
        self.cache_dir = cache_dir
        self.fetcher = fetcher
        self.task_timeout = task_timeout

    def sync(self, entry: RepositoryEntry, guard: Optional[WriteGuard] = None) -> Optional[Path]:
        """
        Download and cache the index of `entry`.

        The fetched bytes are stored verbatim, so syncing unchanged remote
        content twice leaves identical cache files. When `guard` is given the
        cache is only written inside it, and not at all if it yields False;
        None is returned in that case.

        Raises:
            UnreachableRepositoryError: the index could not be downloaded.
            CorruptIndexError: the downloaded content is not a chart index.
        """
        try:
            data = self.fetcher.fetch(entry)
        except TransportError as e:
            raise UnreachableRepositoryError(e.message) from e

        index = parse_index(data, source=f"index of repository {entry.name!r}")
        chart_names = sorted(index.chart_names())

        if guard is None:
            path = write_index(self.cache_dir, entry.name, data, chart_names)
        else:
            with guard(entry) as current:
                if not current:
                    logger.info(f"Repository {entry.name!r} changed while syncing; discarding downloaded index")
                    return None
                path = write_index(self.cache_dir, entry.name, data, chart_names)

        logger.info(f"Synced repository {entry.name!r}: {len(index.entries)} charts -> {path}")
        return path

    def _sync_one(self, entry: RepositoryEntry, guard: Optional[WriteGuard]) -> Optional[HelmProxyError]:
        try:
            self.sync(entry, guard)
        except HelmProxyError as e:
            logger.warning(f"Failed to sync repository {entry.name!r}: {e}")
            return e
        except OSError as e:
            logger.warning(f"Failed to write cache for repository {entry.name!r}: {e}")
            return HelmProxyError(f"failed to write cache for {entry.name!r}: {e}")
        return None

    def sync_all(self, entries: List[RepositoryEntry], guard: Optional[WriteGuard] = None) -> List[SyncFailure]:
        """
        Sync every entry concurrently and return the failures.

        Every repository gets its own thread, so all tasks start together and
        `task_timeout` bounds each of them. Each task reports into its own
        result slot. A failing or hung repository never prevents the others
        from being refreshed; tasks still running at the deadline are reported
        as unreachable.
        """
        if not entries:
            return []

        results: List[Optional[HelmProxyError]] = [None] * len(entries)
        executor = ThreadPoolExecutor(max_workers=len(entries), thread_name_prefix="repo-sync")
        try:
            futures: Dict[Future, int] = {
                executor.submit(self._sync_one, entry, guard): i for i, entry in enumerate(entries)
            }
            done, not_done = wait(futures, timeout=self.task_timeout)

            for future in done:
                exc = future.exception()
                if exc is not None:
                    name = entries[futures[future]].name
                    logger.error(f"Unexpected error syncing repository {name!r}", exc_info=exc)
                    results[futures[future]] = HelmProxyError(f"failed to sync {name!r}: {exc}")
                else:
                    results[futures[future]] = future.result()
            for future in not_done:
                future.cancel()
                name = entries[futures[future]].name
                logger.warning(f"Sync of repository {name!r} did not finish within {self.task_timeout}s")
                results[futures[future]] = UnreachableRepositoryError(
                    f"timed out refreshing repository {name!r}"
                )
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        return [SyncFailure(entry.name, err) for entry, err in zip(entries, results) if err is not None]

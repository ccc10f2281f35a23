"""
Repository Registry: the persisted list of known chart repositories.

This is the only writer of the registry file. Every read/modify/write cycle
runs under the registry lock so concurrent requests, other proxy processes
and the helm CLI cannot corrupt the file.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator, List

from helm_proxy.core.config import ProxyConfig
from helm_proxy.core.errors import (
    CorruptIndexError,
    DuplicateNameError,
    EmptyRegistryError,
    InvalidInputError,
    MissingPasswordError,
    RepositoryNotFoundError,
    UnreachableRepositoryError,
    UpdateFailedError,
)
from helm_proxy.domain.models import RemovalResult, RepositoryEntry
from helm_proxy.services.synchronizer import IndexSynchronizer
from helm_proxy.storage.file_lock import registry_lock
from helm_proxy.storage.index_cache import check_repo_name, remove_index
from helm_proxy.storage.registry_file import load_registry_file, save_registry_file

logger = logging.getLogger(__name__)


class RepositoryRegistry:
    def __init__(self, config: ProxyConfig, synchronizer: IndexSynchronizer):
        self.config = config
        self.synchronizer = synchronizer
        self.registry_path = config.helm.repository_config
        self.cache_dir = config.helm.repository_cache

    @contextmanager
    def _locked(self) -> Iterator[None]:
        with registry_lock(
            self.config.helm.lock_path,
            timeout=self.config.lock_timeout_seconds,
            retry_interval=self.config.lock_retry_interval_seconds,
        ):
            yield

    @contextmanager
    def _still_registered(self, entry: RepositoryEntry) -> Iterator[bool]:
        """
        Hold the registry lock and yield whether `entry` is still registered
        under its name with the same URL.
        """
        with self._locked():
            current = load_registry_file(self.registry_path).get(entry.name)
            yield current is not None and current.url == entry.url

    def add(self, entry: RepositoryEntry, no_update: bool = False) -> None:
        """
        Register `entry` and download its index.

        The index is synced before the registry file is written: if the
        download fails the registry file is left untouched.

        Raises:
            InvalidInputError: empty URL, or a name that is empty or
                contains a path separator or "..".
            MissingPasswordError: username given without a password.
            DuplicateNameError: `no_update` is set and the name is taken.
            UnreachableRepositoryError: the index could not be downloaded or parsed.
            LockTimeoutError: the registry lock could not be acquired.
        """
        check_repo_name(entry.name)
        if not entry.url.strip():
            raise InvalidInputError("repository url can not be empty")
        if entry.username and not entry.password:
            raise MissingPasswordError("missing password")

        with self._locked():
            registry = load_registry_file(self.registry_path)
            if no_update and registry.has(entry.name):
                raise DuplicateNameError(
                    f"repository name ({entry.name}) already exists, please specify a different name"
                )

            try:
                self.synchronizer.sync(entry)
            except (UnreachableRepositoryError, CorruptIndexError) as e:
                raise UnreachableRepositoryError(
                    f"looks like {entry.url!r} is not a valid chart repository or cannot be reached: {e}"
                ) from e

            registry.update(entry)
            save_registry_file(self.registry_path, registry)
        logger.info(f"Repository {entry.name!r} has been added ({entry.url})")

    def init_repository(self, entry: RepositoryEntry) -> None:
        """
        Register a repository named in the proxy config at startup, replacing
        any existing entry with the same name.
        """
        logger.info(f"Initializing configured repository {entry.name!r}")
        self.add(entry, no_update=False)

    def remove(self, names: List[str]) -> List[RemovalResult]:
        """
        Unregister each name and delete its cached index.

        Returns one result per name, in order. Unknown names are reported as
        failures and do not prevent the others from being removed.

        Raises:
            InvalidInputError: no names, or an invalid name.
            EmptyRegistryError: no repositories are configured.
        """
        if not names:
            raise InvalidInputError("repository name can not be empty")
        for name in names:
            check_repo_name(name)

        results: List[RemovalResult] = []
        with self._locked():
            registry = load_registry_file(self.registry_path)
            if not registry.repositories:
                raise EmptyRegistryError("no repositories configured")

            for name in names:
                if registry.remove(name):
                    results.append(RemovalResult(name=name, removed=True))
                else:
                    err = RepositoryNotFoundError(f"no repo named {name!r} found")
                    results.append(RemovalResult(name=name, removed=False, error=err.message, code=err.code))

            if any(r.removed for r in results):
                save_registry_file(self.registry_path, registry)
                for result in results:
                    if result.removed:
                        remove_index(self.cache_dir, result.name)
                        logger.info(f"Repository {result.name!r} has been removed")
        return results

    def list(self) -> List[RepositoryEntry]:
        """
        Registered repositories in registry order.

        Raises EmptyRegistryError if none are configured.
        """
        with self._locked():
            registry = load_registry_file(self.registry_path)
        if not registry.repositories:
            raise EmptyRegistryError("no repositories configured")
        return list(registry.repositories)

    def names(self) -> List[str]:
        """
        Names of the registered repositories; empty when there are none.
        """
        with self._locked():
            registry = load_registry_file(self.registry_path)
        return [entry.name for entry in registry.repositories]

    def update_all(self) -> None:
        """
        Refresh the index of every registered repository concurrently.

        Raises UpdateFailedError listing every repository that failed; the
        others are refreshed regardless.
        """
        entries = self.list()
        failures = self.synchronizer.sync_all(entries, guard=self._still_registered)
        if failures:
            raise UpdateFailedError(failures)
        logger.info(f"Updated {len(entries)} repositories")

"""Shared fixtures: an isolated helm home under tmp_path and a scriptable fetcher."""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Dict, Iterator, List, Set, Union

import pytest

from helm_proxy.core.config import ProxyConfig, load_config
from helm_proxy.core.errors import TransportError
from helm_proxy.domain.models import RepositoryEntry
from helm_proxy.main import build_registry
from helm_proxy.services.fetcher import IndexFetcher
from helm_proxy.services.registry import RepositoryRegistry

STABLE_URL = "https://example.com/charts"

STABLE_INDEX = b"""\
apiVersion: v1
entries:
  nginx:
  - name: nginx
    version: 1.0.0
    appVersion: "1.19"
    description: An NGINX HTTP server
    icon: https://example.com/nginx.png
    keywords:
    - web
    - proxy
    urls:
    - https://example.com/charts/nginx-1.0.0.tgz
  - name: nginx
    version: 1.2.0
    appVersion: "1.21"
    description: An NGINX HTTP server
    icon: https://example.com/nginx.png
    keywords:
    - web
    - proxy
    urls:
    - https://example.com/charts/nginx-1.2.0.tgz
  redis:
  - name: redis
    version: 0.9.0
    appVersion: "6.0"
    description: In-memory data store used as a web cache
    keywords:
    - database
generated: "2024-01-01T00:00:00Z"
"""

OTHER_INDEX = b"""\
apiVersion: v1
entries:
  nginx:
  - name: nginx
    version: 2.0.0
    description: Another packaging of nginx
  postgres:
  - name: postgres
    version: 12.1.0
    description: Relational database
generated: "2024-01-01T00:00:00Z"
"""


class FakeFetcher(IndexFetcher):
    """IndexFetcher that serves canned responses keyed by repository URL."""

    def __init__(self, responses: Dict[str, Union[bytes, Exception]] = None):
        super().__init__()
        self.responses: Dict[str, Union[bytes, Exception]] = dict(responses or {})
        self.calls: List[str] = []

    def fetch(self, entry: RepositoryEntry) -> bytes:
        self.calls.append(entry.url)
        response = self.responses.get(entry.url)
        if response is None:
            raise TransportError(f"failed to fetch {entry.url}: connection refused")
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture()
def helm_env(tmp_path: Path) -> Dict[str, str]:
    return {
        "HELM_CONFIG_HOME": str(tmp_path / "config"),
        "HELM_CACHE_HOME": str(tmp_path / "cache"),
        "HELM_DATA_HOME": str(tmp_path / "data"),
    }


@pytest.fixture()
def config(helm_env: Dict[str, str]) -> ProxyConfig:
    cfg = load_config(None, environ=helm_env)
    cfg.lock_timeout_seconds = 0.5
    cfg.lock_retry_interval_seconds = 0.05
    return cfg


@pytest.fixture()
def fetcher() -> FakeFetcher:
    return FakeFetcher({STABLE_URL: STABLE_INDEX})


@pytest.fixture()
def registry(config: ProxyConfig, fetcher: FakeFetcher) -> RepositoryRegistry:
    return build_registry(config, fetcher=fetcher)


@pytest.fixture()
def stable_entry() -> RepositoryEntry:
    return RepositoryEntry(name="stable", url=STABLE_URL)


@pytest.fixture()
def stable_url() -> str:
    return STABLE_URL


@pytest.fixture()
def stable_index() -> bytes:
    return STABLE_INDEX


@pytest.fixture()
def other_index() -> bytes:
    return OTHER_INDEX


class BlockingFetcher(IndexFetcher):
    """Delegates to `inner`, holding fetches of `hang_urls` until `release` is set."""

    def __init__(self, inner: IndexFetcher):
        super().__init__()
        self.inner = inner
        self.hang_urls: Set[str] = set()
        self.entered = threading.Event()
        self.release = threading.Event()

    def fetch(self, entry: RepositoryEntry) -> bytes:
        if entry.url in self.hang_urls:
            self.entered.set()
            self.release.wait(timeout=10)
        return self.inner.fetch(entry)


@pytest.fixture()
def blocking_fetcher(fetcher: FakeFetcher) -> Iterator[BlockingFetcher]:
    blocking = BlockingFetcher(fetcher)
    yield blocking
    blocking.release.set()

"""
Download repository index files over HTTP(S).

This is the only place that talks to remote chart repositories. It honours
the per-repository credentials and TLS options of a RepositoryEntry.
"""
from __future__ import annotations

import logging
import ssl
from typing import Optional, Tuple, Union

import certifi
import httpx

from helm_proxy.core.errors import TransportError
from helm_proxy.domain.models import RepositoryEntry

logger = logging.getLogger(__name__)

INDEX_FILE_NAME = "index.yaml"
USER_AGENT = "helm-proxy"


def index_url(repo_url: str) -> str:
    """
    URL of the index.yaml of a repository rooted at `repo_url`.
    """
    return f"{repo_url.rstrip('/')}/{INDEX_FILE_NAME}"


def build_ssl_context(entry: RepositoryEntry) -> Union[bool, ssl.SSLContext]:
    """
    Translate the TLS options of `entry` into an httpx `verify` value.

    Returns True (httpx defaults) when no TLS option is set.
    """
    if not (entry.ca_file or entry.cert_file or entry.insecure_skip_tls_verify):
        return True

    ctx = ssl.create_default_context(cafile=entry.ca_file or certifi.where())
    if entry.insecure_skip_tls_verify:
        ctx.check_hostname = False
        ctx.verify_mode = ssl.CERT_NONE
    if entry.cert_file:
        ctx.load_cert_chain(entry.cert_file, entry.key_file or None)
    return ctx


class IndexFetcher:
    """
    Fetch the raw index.yaml bytes of a repository.
    """

    def __init__(self, timeout: float = 120.0, transport: Optional[httpx.BaseTransport] = None):
        self.timeout = timeout
        self._transport = transport

    def _auth(self, entry: RepositoryEntry) -> Optional[Tuple[str, str]]:
        if entry.username:
            return (entry.username, entry.password)
        return None

    def fetch(self, entry: RepositoryEntry) -> bytes:
        url = index_url(entry.url)
        try:
            verify = build_ssl_context(entry)
        except (OSError, ssl.SSLError) as e:
            raise TransportError(f"invalid TLS configuration for repository {entry.name!r}: {e}") from e

        logger.info(f"Fetching index for repository {entry.name!r} from {url}")
        try:
            with httpx.Client(
                auth=self._auth(entry),
                verify=verify,
                timeout=self.timeout,
                follow_redirects=True,
                headers={"User-Agent": USER_AGENT},
                transport=self._transport,
            ) as client:
                response = client.get(url)
                response.raise_for_status()
                return response.content
        except httpx.HTTPStatusError as e:
            raise TransportError(f"failed to fetch {url}: {e.response.status_code} {e.response.reason_phrase}") from e
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise TransportError(f"failed to fetch {url}: {e}") from e

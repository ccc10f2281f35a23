"""Unit tests for helm_proxy.services.fetcher."""

from __future__ import annotations

import ssl

import httpx
import pytest
import respx

from helm_proxy.core.errors import ErrorCode, TransportError
from helm_proxy.domain.models import RepositoryEntry
from helm_proxy.services.fetcher import IndexFetcher, build_ssl_context, index_url

# ---------------------------------------------------------------------------
# index_url
# ---------------------------------------------------------------------------


class TestIndexUrl:
    def test_appends_index_file(self) -> None:
        assert index_url("https://example.com/charts") == "https://example.com/charts/index.yaml"

    def test_trailing_slash(self) -> None:
        assert index_url("https://example.com/charts/") == "https://example.com/charts/index.yaml"


# ---------------------------------------------------------------------------
# build_ssl_context
# ---------------------------------------------------------------------------


class TestBuildSslContext:
    def test_defaults_when_no_tls_options(self) -> None:
        assert build_ssl_context(RepositoryEntry(name="r", url="https://x")) is True

    def test_insecure_skip_verify(self) -> None:
        ctx = build_ssl_context(RepositoryEntry(name="r", url="https://x", insecure_skip_tls_verify=True))
        assert isinstance(ctx, ssl.SSLContext)
        assert ctx.verify_mode == ssl.CERT_NONE
        assert ctx.check_hostname is False

    def test_missing_ca_file_raises(self, tmp_path) -> None:
        entry = RepositoryEntry(name="r", url="https://x", ca_file=str(tmp_path / "missing.pem"))
        with pytest.raises(OSError):
            build_ssl_context(entry)


# ---------------------------------------------------------------------------
# IndexFetcher
# ---------------------------------------------------------------------------


class TestIndexFetcher:
    def test_successful_fetch(self, stable_index: bytes) -> None:
        with respx.mock:
            respx.get("https://example.com/charts/index.yaml").mock(
                return_value=httpx.Response(200, content=stable_index)
            )
            data = IndexFetcher().fetch(RepositoryEntry(name="stable", url="https://example.com/charts"))
        assert data == stable_index

    def test_basic_auth_sent(self) -> None:
        with respx.mock:
            route = respx.get("https://example.com/private/index.yaml").mock(
                return_value=httpx.Response(200, content=b"apiVersion: v1\n")
            )
            IndexFetcher().fetch(
                RepositoryEntry(name="private", url="https://example.com/private", username="u", password="p")
            )
        assert route.calls.last.request.headers["Authorization"].startswith("Basic ")

    def test_404_raises_transport_error(self) -> None:
        with respx.mock:
            respx.get("https://example.com/missing/index.yaml").mock(return_value=httpx.Response(404))
            with pytest.raises(TransportError) as exc_info:
                IndexFetcher().fetch(RepositoryEntry(name="missing", url="https://example.com/missing"))
        assert exc_info.value.code == ErrorCode.TRANSPORT_ERROR
        assert "404" in exc_info.value.message

    def test_network_error_raises_transport_error(self) -> None:
        with respx.mock:
            respx.get("https://example.com/down/index.yaml").mock(
                side_effect=httpx.ConnectError("Connection refused")
            )
            with pytest.raises(TransportError):
                IndexFetcher().fetch(RepositoryEntry(name="down", url="https://example.com/down"))

    def test_invalid_tls_config_raises_transport_error(self, tmp_path) -> None:
        entry = RepositoryEntry(name="r", url="https://example.com", cert_file=str(tmp_path / "nope.pem"))
        with pytest.raises(TransportError):
            IndexFetcher().fetch(entry)

    def test_custom_transport(self, stable_index: bytes) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/charts/index.yaml"
            return httpx.Response(200, content=stable_index)

        fetcher = IndexFetcher(transport=httpx.MockTransport(handler))
        assert fetcher.fetch(RepositoryEntry(name="stable", url="https://example.com/charts")) == stable_index

"""
Pydantic models for the helm proxy.

This module defines the data models shared by the storage, service and API
layers, including:
- Repository registry entries and the registry file (repositories.yaml)
- Chart index files (index.yaml) and their chart version records
- Search results and the records returned by the chart listing endpoint
- API request models

Field aliases follow Helm's on-disk key names so that files written here stay
readable by the helm CLI and vice versa.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from helm_proxy.core.errors import ErrorCode
from helm_proxy.domain.semver import version_sort_key


def _drop_nulls(data: Any) -> Any:
    # index.yaml files in the wild carry `icon:` / `keywords:` with no value.
    if isinstance(data, dict):
        return {k: v for k, v in data.items() if v is not None}
    return data


# ---------------------------------------------------------------------------
# Repository Registry Models
# ---------------------------------------------------------------------------


class RepositoryEntry(BaseModel):
    """
    A single named chart repository.

    Persisted as one element of `repositories` in the registry file.
    """

    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(
        description="Unique repository name.",
    )
    url: str = Field(
        description="Base URL of the repository; index.yaml is fetched relative to it.",
    )
    username: str = Field(
        default="",
        description="Basic auth username.",
    )
    password: str = Field(
        default="",
        description="Basic auth password.",
    )
    cert_file: str = Field(
        default="",
        alias="certFile",
        description="Path to a TLS client certificate.",
    )
    key_file: str = Field(
        default="",
        alias="keyFile",
        description="Path to the TLS client certificate key.",
    )
    ca_file: str = Field(
        default="",
        alias="caFile",
        description="Path to a CA bundle used to verify the server.",
    )
    insecure_skip_tls_verify: bool = Field(
        default=False,
        description="Skip TLS certificate verification.",
    )
    pass_credentials_all: bool = Field(
        default=False,
        description="Send credentials to all domains (kept for helm compatibility).",
    )


class RepositoryFile(BaseModel):
    """
    The repository registry file.

    Persisted at: $HELM_REPOSITORY_CONFIG (repositories.yaml)
    """

    model_config = ConfigDict(populate_by_name=True)

    api_version: str = Field(
        default="",
        alias="apiVersion",
    )
    generated: Union[datetime, str] = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
    repositories: List[RepositoryEntry] = Field(
        default_factory=list,
        description="Registered repositories, unique by name, in insertion order.",
    )

    def has(self, name: str) -> bool:
        return self.get(name) is not None

    def get(self, name: str) -> Optional[RepositoryEntry]:
        for entry in self.repositories:
            if entry.name == name:
                return entry
        return None

    def update(self, *entries: RepositoryEntry) -> None:
        """
        Replace entries with the same name in place, append the others.
        """
        for entry in entries:
            for i, existing in enumerate(self.repositories):
                if existing.name == entry.name:
                    self.repositories[i] = entry
                    break
            else:
                self.repositories.append(entry)

    def remove(self, name: str) -> bool:
        for i, entry in enumerate(self.repositories):
            if entry.name == name:
                del self.repositories[i]
                return True
        return False


class RemovalResult(BaseModel):
    """
    Outcome of removing one repository name.
    """

    name: str
    removed: bool
    error: Optional[str] = None
    code: Optional[ErrorCode] = None

    @property
    def message(self) -> str:
        if self.removed:
            return f"{self.name} has been removed from your repositories"
        return self.error or f"no repo named {self.name!r} found"


# ---------------------------------------------------------------------------
# Chart Index Models
# ---------------------------------------------------------------------------


class ChartVersion(BaseModel):
    """
    One chart version record of an index file.

    Unknown keys (urls, digest, dependencies, ...) are preserved so that a
    parsed index can be written back without loss.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow", coerce_numbers_to_str=True)

    name: str = ""
    version: str = ""
    app_version: str = Field(default="", alias="appVersion")
    description: str = ""
    icon: str = ""
    tags: str = ""
    keywords: List[str] = Field(default_factory=list)
    urls: List[str] = Field(default_factory=list)
    created: Optional[Union[datetime, str]] = None
    digest: str = ""

    @model_validator(mode="before")
    @classmethod
    def _skip_null_fields(cls, data: Any) -> Any:
        return _drop_nulls(data)


class IndexFile(BaseModel):
    """
    A repository index (index.yaml).

    Cached at: $HELM_REPOSITORY_CACHE/<repo>-index.yaml
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    api_version: str = Field(alias="apiVersion", min_length=1)
    generated: Optional[Union[datetime, str]] = None
    entries: Dict[str, List[ChartVersion]] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _skip_null_fields(cls, data: Any) -> Any:
        data = _drop_nulls(data)
        if isinstance(data, dict) and isinstance(data.get("entries"), dict):
            data["entries"] = {k: v for k, v in data["entries"].items() if v is not None}
        return data

    def sort_entries(self) -> None:
        """
        Order every chart's versions newest first.
        """
        for name, versions in self.entries.items():
            self.entries[name] = sorted(versions, key=lambda cv: version_sort_key(cv.version), reverse=True)

    def chart_names(self) -> List[str]:
        return list(self.entries.keys())


# ---------------------------------------------------------------------------
# Search Models
# ---------------------------------------------------------------------------


class SearchResult(BaseModel):
    """
    A chart version matched by the unified search index.

    `name` is qualified with the owning repository (`<repo>/<chart>`).
    Lower scores are better matches.
    """

    name: str
    score: int = 0
    chart: ChartVersion


class RepoChartElement(BaseModel):
    """
    Display record returned by GET /api/repos/charts.
    """

    name: str
    version: str
    app_version: str
    description: str
    icon: str
    tags: str


class RepositoryElement(BaseModel):
    """
    Display record returned by GET /api/repos.
    """

    name: str
    url: str


# ---------------------------------------------------------------------------
# API Request Models
# ---------------------------------------------------------------------------


class RepoAddRequest(BaseModel):
    """
    Request body of POST /api/repos/add.
    """

    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(
        description="Repository name.",
    )
    url: str = Field(
        description="Repository URL.",
    )
    username: str = Field(
        default="",
        description="Basic auth username.",
    )
    password: str = Field(
        default="",
        description="Basic auth password; required when username is set.",
    )
    no_update: bool = Field(
        default=False,
        alias="noUpdate",
        description="Reject the request if a repository with this name already exists.",
    )
    cert_file: str = Field(
        default="",
        alias="certFile",
        description="Path to a TLS client certificate on the proxy host.",
    )
    key_file: str = Field(
        default="",
        alias="keyFile",
        description="Path to the TLS client certificate key on the proxy host.",
    )
    ca_file: str = Field(
        default="",
        alias="caFile",
        description="Path to a CA bundle on the proxy host.",
    )
    insecure_skip_tls_verify: bool = Field(
        default=False,
        alias="insecureSkipTLSverify",
        description="Skip TLS certificate verification for this repository.",
    )

    def to_entry(self) -> RepositoryEntry:
        return RepositoryEntry(
            name=self.name,
            url=self.url,
            username=self.username,
            password=self.password,
            cert_file=self.cert_file,
            key_file=self.key_file,
            ca_file=self.ca_file,
            insecure_skip_tls_verify=self.insecure_skip_tls_verify,
        )

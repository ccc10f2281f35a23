"""
On-disk cache of repository index files.

Layout (compatible with the helm CLI):

    $HELM_REPOSITORY_CACHE/<repo>-index.yaml   the downloaded index.yaml
    $HELM_REPOSITORY_CACHE/<repo>-charts.txt   chart names, one per line

Files are only ever replaced through write-then-rename so readers never see
a partially written index.
"""
from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Iterable

import yaml
from pydantic import ValidationError

from helm_proxy.core.errors import CorruptIndexError, InvalidInputError
from helm_proxy.domain.models import IndexFile

logger = logging.getLogger(__name__)


def check_repo_name(repo_name: str) -> None:
    """
    Reject names that cannot be used as a cache file prefix or as the
    `<repo>` part of a `<repo>/<chart>` search key.

    Raises InvalidInputError.
    """
    if not repo_name.strip():
        raise InvalidInputError("repository name can not be empty")
    for sep in ("/", "\\"):
        if sep in repo_name:
            raise InvalidInputError(
                f"repository name ({repo_name}) contains '{sep}', please specify a different name without '{sep}'"
            )
    if repo_name == "." or ".." in repo_name:
        raise InvalidInputError(f"repository name ({repo_name}) is not a valid file name, please specify a different name")


def _cache_file(cache_dir: Path, file_name: str) -> Path:
    path = cache_dir / file_name
    if path.parent.resolve() != cache_dir.resolve():
        raise InvalidInputError(f"cache file {file_name!r} would be outside {cache_dir}")
    return path


def index_file_path(cache_dir: Path, repo_name: str) -> Path:
    return _cache_file(cache_dir, f"{repo_name}-index.yaml")


def charts_file_path(cache_dir: Path, repo_name: str) -> Path:
    return _cache_file(cache_dir, f"{repo_name}-charts.txt")


def atomic_write_bytes(path: Path, data: bytes) -> None:
    """
    Write `data` to a temp file in the target directory, then rename it over `path`.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.chmod(tmp_path, 0o644)
        tmp_path.replace(path)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise


def parse_index(data: bytes, source: str = "index") -> IndexFile:
    """
    Parse raw index.yaml content.

    Raises CorruptIndexError if the content is not YAML, is not a mapping,
    lacks apiVersion, or has malformed entries.
    """
    try:
        raw = yaml.safe_load(data)
    except yaml.YAMLError as e:
        raise CorruptIndexError(f"{source} is not valid YAML: {e}") from e

    if not isinstance(raw, dict):
        raise CorruptIndexError(f"{source} is not a valid chart repository index")
    if not raw.get("apiVersion"):
        raise CorruptIndexError(f"{source}: no API version specified")

    try:
        index = IndexFile(**raw)
    except ValidationError as e:
        raise CorruptIndexError(f"{source} has malformed entries: {e}") from e

    index.sort_entries()
    return index


def write_index(cache_dir: Path, repo_name: str, data: bytes, chart_names: Iterable[str]) -> Path:
    """
    Store a downloaded index and its chart-name list for `repo_name`.
    """
    index_path = index_file_path(cache_dir, repo_name)
    atomic_write_bytes(index_path, data)

    names = "".join(f"{name}\n" for name in chart_names)
    atomic_write_bytes(charts_file_path(cache_dir, repo_name), names.encode("utf-8"))
    return index_path


def load_index(cache_dir: Path, repo_name: str) -> IndexFile:
    """
    Load the cached index of `repo_name`.

    Raises FileNotFoundError if it was never synced, CorruptIndexError if it
    cannot be parsed.
    """
    path = index_file_path(cache_dir, repo_name)
    return parse_index(path.read_bytes(), source=str(path))


def remove_index(cache_dir: Path, repo_name: str) -> None:
    """
    Delete the cached files of `repo_name`. Missing files are ignored.
    """
    for path in (charts_file_path(cache_dir, repo_name), index_file_path(cache_dir, repo_name)):
        try:
            path.unlink()
            logger.debug(f"Removed cache file {path}")
        except FileNotFoundError:
            continue

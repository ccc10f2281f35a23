"""
Unified Search Index over all cached repository indices.

Every chart version is indexed under a repository-qualified key so charts with
the same name in different repositories never collide. Each key maps to a
search line:

    <chart> \\v <repo>/<chart> \\v <description> \\v <keywords>

A keyword hit is scored by the number of field separators that precede it,
so a match in the chart name (0) beats one in the description (2).
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Iterable, List

from helm_proxy.core.errors import CorruptIndexError, InvalidInputError
from helm_proxy.domain.models import ChartVersion, IndexFile, SearchResult
from helm_proxy.domain.semver import version_sort_key
from helm_proxy.storage.index_cache import load_index

logger = logging.getLogger(__name__)

SEARCH_MAX_SCORE = 25

_SEP = "\v"
_VER_SEP = "$$"


def _index_line(repo_name: str, chart: ChartVersion) -> str:
    return _SEP.join([
        chart.name,
        f"{repo_name}/{chart.name}",
        chart.description,
        " ".join(chart.keywords),
    ])


def _calc_score(position: int, line: str) -> int:
    return line.count(_SEP, 0, position)


class SearchIndex:
    def __init__(self):
        self._lines: Dict[str, str] = {}
        self._charts: Dict[str, ChartVersion] = {}

    def __len__(self) -> int:
        return len(self._charts)

    def add_repo(self, repo_name: str, index: IndexFile, all_versions: bool) -> None:
        """
        Add the charts of one repository.

        Without `all_versions` only the newest version of each chart is indexed.
        """
        index.sort_entries()
        for name, versions in index.entries.items():
            if not versions:
                continue
            key = f"{repo_name}/{name}"
            if not all_versions:
                self._lines[key] = _index_line(repo_name, versions[0])
                self._charts[key] = versions[0]
                continue
            for chart in versions:
                versioned_key = f"{key}{_VER_SEP}{chart.version}"
                self._lines[versioned_key] = _index_line(repo_name, chart)
                self._charts[versioned_key] = chart

    def all(self) -> List[SearchResult]:
        return [
            SearchResult(name=key.split(_VER_SEP, 1)[0], score=0, chart=chart)
            for key, chart in self._charts.items()
        ]

    def search(self, keyword: str, max_score: int = SEARCH_MAX_SCORE) -> List[SearchResult]:
        """
        Case-insensitive literal search. Results scoring worse than `max_score` are dropped.
        """
        term = keyword.lower()
        results: List[SearchResult] = []
        for key, line in self._lines.items():
            line = line.lower()
            position = line.find(term)
            if position == -1:
                continue
            score = _calc_score(position, line)
            if score <= max_score:
                results.append(SearchResult(name=key.split(_VER_SEP, 1)[0], score=score, chart=self._charts[key]))
        return results


def sort_score(results: List[SearchResult]) -> List[SearchResult]:
    """
    Sort in place: best score first, then by name, newest version first within a name.
    """
    results.sort(key=lambda r: version_sort_key(r.chart.version), reverse=True)
    results.sort(key=lambda r: (r.score, r.name))
    return results


def build_search_index(cache_dir: Path, repo_names: Iterable[str], version: str = "") -> SearchIndex:
    """
    Build a SearchIndex from the cached index of every named repository.

    A non-empty `version` constraint indexes every chart version so the
    constraint filter can pick the newest matching one. Repositories whose
    cache is missing or unreadable are skipped with a warning.
    """
    search_index = SearchIndex()
    for name in repo_names:
        try:
            index = load_index(cache_dir, name)
        except (CorruptIndexError, InvalidInputError, OSError) as e:
            logger.warning(f"Repo {name!r} is corrupt or missing, try updating repositories: {e}")
            continue
        search_index.add_repo(name, index, all_versions=bool(version))
    return search_index

"""
Chart listing across all registered repositories (GET /api/repos/charts).
"""
from __future__ import annotations

import logging
from typing import List

from helm_proxy.domain.models import RepoChartElement
from helm_proxy.domain.semver import parse_constraint
from helm_proxy.services.constraint import apply_constraint
from helm_proxy.services.registry import RepositoryRegistry
from helm_proxy.services.search import SEARCH_MAX_SCORE, build_search_index, sort_score

logger = logging.getLogger(__name__)

DEFAULT_VERSION_CONSTRAINT = ">0.0.0"


def list_repo_charts(
    registry: RepositoryRegistry,
    keyword: str = "",
    version: str = "",
    versions: bool = False,
    max_score: int = SEARCH_MAX_SCORE,
) -> List[RepoChartElement]:
    """
    Search (or list, without a keyword) charts in every registered repository.

    `version` defaults to ">0.0.0", i.e. any released version. Unless
    `versions` is set only the newest matching version of each chart is
    returned. No match is an empty list, not an error.
    """
    version = version or DEFAULT_VERSION_CONSTRAINT
    # Reject a malformed constraint before touching the cache.
    parse_constraint(version)

    index = build_search_index(registry.cache_dir, registry.names(), version)
    if keyword:
        results = index.search(keyword, max_score)
    else:
        results = index.all()

    sort_score(results)
    results = apply_constraint(results, version, versions)
    logger.debug(f"Chart listing keyword={keyword!r} version={version!r} versions={versions}: {len(results)} results")

    return [
        RepoChartElement(
            name=r.name,
            version=r.chart.version,
            app_version=r.chart.app_version,
            description=r.chart.description,
            icon=r.chart.icon,
            tags=r.chart.tags,
        )
        for r in results
    ]

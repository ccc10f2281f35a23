"""
Constraint Filter: restrict search results to a semantic version range.
"""
from __future__ import annotations

from typing import List, Set

from helm_proxy.domain.models import SearchResult
from helm_proxy.domain.semver import InvalidVersionError, parse_constraint, parse_version


def apply_constraint(results: List[SearchResult], constraint: str, keep_all_versions: bool) -> List[SearchResult]:
    """
    Filter `results` by `constraint`, preserving input order.

    - An empty constraint returns the results unchanged.
    - A result whose version cannot be parsed is kept.
    - Unless `keep_all_versions` is set, only the first accepted result per
      chart name survives; callers sort beforehand so that it is the latest.

    Raises InvalidConstraintError if `constraint` is not a valid range.
    """
    if not constraint:
        return results

    parsed = parse_constraint(constraint)

    filtered: List[SearchResult] = []
    seen: Set[str] = set()
    for result in results:
        if result.name in seen:
            continue
        try:
            accepted = parsed.check(parse_version(result.chart.version))
        except InvalidVersionError:
            accepted = True
        if not accepted:
            continue
        filtered.append(result)
        if not keep_all_versions:
            seen.add(result.name)
    return filtered

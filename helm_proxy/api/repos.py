"""
Repository API endpoints (`/api/repos`).

- GET    /charts              search or list charts across all repositories
- GET    ""                   list registered repositories
- POST   /add                 add a repository
- DELETE /remove/{reponame}   remove comma-separated repositories
- PUT    /update              refresh every repository index

Handlers are plain `def` functions: they block on file locks, disk and
network I/O and are therefore run on FastAPI's worker thread pool.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from helm_proxy.api.responses import RespBody, resp_err, resp_ok
from helm_proxy.core.config import ProxyConfig
from helm_proxy.core.dependencies import get_config, get_registry
from helm_proxy.domain.models import RepoAddRequest, RepositoryElement
from helm_proxy.services.charts import list_repo_charts
from helm_proxy.services.registry import RepositoryRegistry

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/charts", response_model=RespBody)
def list_charts(
    keyword: str = Query(default="", description="Search keyword; list every chart when empty."),
    version: str = Query(default="", description="Semantic version constraint, '>0.0.0' when empty."),
    versions: bool = Query(default=False, description="Return every matching version instead of the latest only."),
    registry: RepositoryRegistry = Depends(get_registry),
    config: ProxyConfig = Depends(get_config),
) -> JSONResponse:
    """
    Search charts in the local repository caches, or list all of them.
    """
    charts = list_repo_charts(
        registry,
        keyword=keyword,
        version=version,
        versions=versions,
        max_score=config.search_max_score,
    )
    return resp_ok(charts)


@router.get("", response_model=RespBody)
def list_repositories(registry: RepositoryRegistry = Depends(get_registry)) -> JSONResponse:
    """
    List registered repositories.
    """
    entries = registry.list()
    return resp_ok([RepositoryElement(name=e.name, url=e.url) for e in entries])


@router.post("/add", response_model=RespBody)
def add_repository(
    body: RepoAddRequest,
    registry: RepositoryRegistry = Depends(get_registry),
) -> JSONResponse:
    """
    Add a chart repository. Its index is downloaded before it is registered.
    """
    registry.add(body.to_entry(), no_update=body.no_update)
    return resp_ok(f"{body.name} has been added to your repositories\n")


@router.delete("/remove/{reponame}", response_model=RespBody)
def remove_repository(
    reponame: str,
    registry: RepositoryRegistry = Depends(get_registry),
) -> JSONResponse:
    """
    Remove one or more repositories by name (`repo1,repo2,...`).
    """
    results = registry.remove(reponame.split(","))

    msg = "".join(f"{r.message}\n" for r in results)
    if any(not r.removed for r in results):
        return resp_err(msg)
    return resp_ok(msg)


@router.put("/update", response_model=RespBody)
def update_repositories(registry: RepositoryRegistry = Depends(get_registry)) -> JSONResponse:
    """
    Refresh the index of every registered repository concurrently.
    """
    registry.update_all()
    return resp_ok()

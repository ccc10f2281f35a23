from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from helm_proxy.api.responses import RespBody, resp_ok
from helm_proxy.core.config import ProxyConfig
from helm_proxy.core.dependencies import get_config

router = APIRouter()


@router.get("", response_model=RespBody)
async def get_helm_envs(config: ProxyConfig = Depends(get_config)) -> JSONResponse:
    """
    Helm environment information, as `helm env` reports it.
    """
    return resp_ok(config.helm.env_vars())

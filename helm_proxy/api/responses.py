"""
Uniform response envelope: `{"code": 0|1, "data": ..., "error": ...}`.

Errors are reported with HTTP 200 and code 1, successes with code 0.
"""
from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import BaseModel

logger = logging.getLogger(__name__)


class RespBody(BaseModel):
    code: int
    data: Optional[Any] = None
    error: Optional[str] = None


def resp_ok(data: Any = None) -> JSONResponse:
    content = {"code": 0}
    if data is not None:
        content["data"] = jsonable_encoder(data)
    return JSONResponse(content=content)


def resp_err(error: Any) -> JSONResponse:
    message = str(error)
    logger.warning(message)
    return JSONResponse(content={"code": 1, "error": message})

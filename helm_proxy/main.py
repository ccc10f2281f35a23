import argparse
import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, List, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from helm_proxy.api.responses import resp_err
from helm_proxy.core.config import ProxyConfig, load_config
from helm_proxy.core.errors import HelmProxyError
from helm_proxy.services.fetcher import IndexFetcher
from helm_proxy.services.registry import RepositoryRegistry
from helm_proxy.services.synchronizer import IndexSynchronizer

logger = logging.getLogger(__name__)

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 18080


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


def build_registry(config: ProxyConfig, fetcher: Optional[IndexFetcher] = None) -> RepositoryRegistry:
    """
    Wire the fetcher, synchronizer and registry for `config`.
    """
    fetcher = fetcher or IndexFetcher(timeout=config.fetch_timeout_seconds)
    synchronizer = IndexSynchronizer(
        config.helm.repository_cache,
        fetcher,
        task_timeout=config.update_task_timeout_seconds,
    )
    return RepositoryRegistry(config, synchronizer)


def create_app(config: ProxyConfig, registry: Optional[RepositoryRegistry] = None) -> FastAPI:
    """
    Build the FastAPI application for an explicit configuration.
    """
    registry = registry or build_registry(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """
        Register and sync the repositories listed in the proxy config file.
        A failure here aborts startup.
        """
        for entry in config.helm_repos:
            registry.init_repository(entry)
        logger.info(f"Initialized {len(config.helm_repos)} configured repositories")
        yield

    app = FastAPI(
        title="Helm API Proxy",
        version="0.1.0",
        description="REST proxy for helm chart repository management.",
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.registry = registry

    # Any origin is echoed back; credentials are allowed.
    app.add_middleware(
        CORSMiddleware,
        allow_origin_regex=".*",
        allow_credentials=True,
        allow_methods=["OPTIONS", "GET", "POST", "PUT", "DELETE"],
        allow_headers=[
            "Content-Type", "Content-Length", "Accept-Encoding", "X-CSRF-Token", "Authorization",
            "accept", "origin", "Cache-Control", "X-Requested-With",
        ],
    )

    @app.exception_handler(HelmProxyError)
    async def helm_proxy_error_handler(request: Request, exc: HelmProxyError) -> JSONResponse:
        return resp_err(exc)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return resp_err(f"{request.method} {request.url.path}: {exc.detail}")

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        details = "; ".join(
            f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg')}" for err in exc.errors()
        )
        return resp_err(f"invalid request: {details}")

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(f"Unhandled error on {request.method} {request.url.path}", exc_info=exc)
        return resp_err(exc)

    @app.get("/", response_class=PlainTextResponse)
    async def index() -> str:
        return "Welcome helm proxy server"

    @app.get("/health")
    async def health() -> dict:
        """
        Lightweight health check endpoint.
        """
        return {"status": "ok"}

    from helm_proxy.api.envs import router as envs_router
    from helm_proxy.api.repos import router as repos_router

    app.include_router(envs_router, prefix="/api/envs", tags=["env"])
    app.include_router(repos_router, prefix="/api/repos", tags=["repositories"])
    return app


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="helm-proxy", description="REST proxy for helm repositories.")
    parser.add_argument("--addr", default=DEFAULT_HOST, help="server listen addr")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT, help="server listen port")
    parser.add_argument("--config", type=Path, default=None, help="helm proxy config (YAML)")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    """
    Console entry point: load config, then serve with uvicorn.
    """
    import uvicorn

    args = parse_args(argv)
    try:
        config = load_config(args.config)
    except (OSError, ValueError) as e:
        configure_logging()
        logger.error(f"Failed to load config: {e}")
        return 1

    configure_logging(config.log_level)
    logger.info(f"Repository config: {config.helm.repository_config}")
    logger.info(f"Repository cache: {config.helm.repository_cache}")

    uvicorn.run(create_app(config), host=args.addr, port=args.port)
    return 0


if __name__ == "__main__":
    sys.exit(main())

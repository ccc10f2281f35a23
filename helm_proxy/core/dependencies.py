"""
FastAPI dependency providers.

Components are constructed once in main.create_app() and stored on
app.state; handlers receive them through these functions instead of
module-level globals.
"""
from fastapi import Request

from helm_proxy.core.config import ProxyConfig
from helm_proxy.services.registry import RepositoryRegistry


def get_config(request: Request) -> ProxyConfig:
    return request.app.state.config


def get_registry(request: Request) -> RepositoryRegistry:
    return request.app.state.registry

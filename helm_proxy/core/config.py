"""
Proxy configuration.

Two layers are resolved once at startup and then passed explicitly to every
component (see main.create_app):

* HelmSettings: where the repository registry file and the index cache live.
  Resolved from helm's own environment variables so that the proxy and the
  helm CLI on the same host share state.
* ProxyConfig: the proxy's YAML config file (repositories to register at
  startup, timeouts, log level) plus the resolved HelmSettings.
"""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Dict, List, Mapping, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field

from helm_proxy.domain.models import RepositoryEntry

logger = logging.getLogger(__name__)

CONFIG_PATH_ENV_VAR = "HELM_PROXY_CONFIG"


def _home() -> Path:
    return Path.home()


class HelmSettings(BaseModel):
    """
    Helm environment relevant to repository management.
    """

    config_home: Path = Field(
        description="$HELM_CONFIG_HOME; parent of repositories.yaml by default.",
    )
    cache_home: Path = Field(
        description="$HELM_CACHE_HOME; parent of the repository cache by default.",
    )
    data_home: Path = Field(
        description="$HELM_DATA_HOME.",
    )
    repository_config: Path = Field(
        description="$HELM_REPOSITORY_CONFIG; the repository registry file.",
    )
    repository_cache: Path = Field(
        description="$HELM_REPOSITORY_CACHE; directory holding <repo>-index.yaml files.",
    )
    namespace: str = Field(
        default="default",
        description="$HELM_NAMESPACE.",
    )
    debug: bool = Field(
        default=False,
        description="$HELM_DEBUG.",
    )

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "HelmSettings":
        """
        Resolve settings the way the helm CLI does:
        HELM_* variables first, then XDG base directories, then ~/.config and ~/.cache.
        """
        env = os.environ if environ is None else environ

        def _dir(helm_var: str, xdg_var: str, fallback: Path) -> Path:
            if env.get(helm_var):
                return Path(env[helm_var]).expanduser()
            if env.get(xdg_var):
                return Path(env[xdg_var]).expanduser() / "helm"
            return fallback / "helm"

        config_home = _dir("HELM_CONFIG_HOME", "XDG_CONFIG_HOME", _home() / ".config")
        cache_home = _dir("HELM_CACHE_HOME", "XDG_CACHE_HOME", _home() / ".cache")
        data_home = _dir("HELM_DATA_HOME", "XDG_DATA_HOME", _home() / ".local" / "share")

        repository_config = Path(env["HELM_REPOSITORY_CONFIG"]).expanduser() if env.get("HELM_REPOSITORY_CONFIG") else config_home / "repositories.yaml"
        repository_cache = Path(env["HELM_REPOSITORY_CACHE"]).expanduser() if env.get("HELM_REPOSITORY_CACHE") else cache_home / "repository"

        return cls(
            config_home=config_home,
            cache_home=cache_home,
            data_home=data_home,
            repository_config=repository_config,
            repository_cache=repository_cache,
            namespace=env.get("HELM_NAMESPACE") or "default",
            debug=(env.get("HELM_DEBUG") or "").lower() in ("1", "true", "yes"),
        )

    def env_vars(self) -> Dict[str, str]:
        """
        The environment as helm would report it (`helm env`).
        """
        return {
            "HELM_CACHE_HOME": str(self.cache_home),
            "HELM_CONFIG_HOME": str(self.config_home),
            "HELM_DATA_HOME": str(self.data_home),
            "HELM_DEBUG": "true" if self.debug else "false",
            "HELM_NAMESPACE": self.namespace,
            "HELM_REPOSITORY_CACHE": str(self.repository_cache),
            "HELM_REPOSITORY_CONFIG": str(self.repository_config),
        }

    @property
    def lock_path(self) -> Path:
        """
        Lock file guarding the registry file: same base name, `.lock` extension.
        """
        return self.repository_config.with_suffix(".lock")


class ProxyConfig(BaseModel):
    """
    Top-level proxy configuration.
    Loaded from the YAML file given with --config (or $HELM_PROXY_CONFIG).
    """

    model_config = ConfigDict(populate_by_name=True)

    helm_repos: List[RepositoryEntry] = Field(
        default_factory=list,
        alias="helmRepos",
        description="Repositories registered (and synced) at startup.",
    )
    log_level: str = Field(
        default="INFO",
        alias="logLevel",
        description="Root log level.",
    )
    lock_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        alias="lockTimeoutSeconds",
        description="Total budget for acquiring the registry file lock.",
    )
    lock_retry_interval_seconds: float = Field(
        default=1.0,
        gt=0,
        alias="lockRetryIntervalSeconds",
        description="Delay between registry file lock attempts.",
    )
    fetch_timeout_seconds: float = Field(
        default=120.0,
        gt=0,
        alias="fetchTimeoutSeconds",
        description="Network timeout for a single index download.",
    )
    update_task_timeout_seconds: float = Field(
        default=300.0,
        gt=0,
        alias="updateTaskTimeoutSeconds",
        description="Upper bound for each repository during update-all; expired tasks count as unreachable.",
    )
    search_max_score: int = Field(
        default=25,
        ge=0,
        alias="searchMaxScore",
        description="Worst search score still returned by keyword search.",
    )
    helm: HelmSettings = Field(
        default_factory=HelmSettings.from_env,
        exclude=True,
    )


def load_config(path: Optional[Path] = None, environ: Optional[Mapping[str, str]] = None) -> ProxyConfig:
    """
    Load the proxy configuration.

    Priority for the file location:
    1. the `path` argument
    2. environment variable HELM_PROXY_CONFIG
    3. none: all defaults

    An explicitly named file that does not exist is an error.
    """
    env = os.environ if environ is None else environ
    if path is None and env.get(CONFIG_PATH_ENV_VAR):
        path = Path(env[CONFIG_PATH_ENV_VAR])

    raw: dict = {}
    if path is not None:
        path = Path(path).expanduser()
        if not path.is_file():
            raise FileNotFoundError(f"config file not found: {path}")
        raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        if not isinstance(raw, dict):
            raise ValueError(f"config file {path} must contain a mapping")
        logger.info(f"Loaded proxy config from {path}")

    raw.pop("helm", None)
    return ProxyConfig(**raw, helm=HelmSettings.from_env(env))

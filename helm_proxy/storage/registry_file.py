"""
Load and save the repository registry file (repositories.yaml).

Callers are expected to hold registry_lock() around a load/modify/save cycle;
this module only deals with the file format.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path

import yaml
from pydantic import ValidationError

from helm_proxy.core.errors import HelmProxyError
from helm_proxy.domain.models import RepositoryFile
from helm_proxy.storage.index_cache import atomic_write_bytes

logger = logging.getLogger(__name__)


class RegistryFileError(HelmProxyError):
    pass


def load_registry_file(path: Path) -> RepositoryFile:
    """
    Read the registry file. A missing or empty file yields an empty registry.
    """
    try:
        content = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return RepositoryFile()

    try:
        raw = yaml.safe_load(content) or {}
        if not isinstance(raw, dict):
            raise RegistryFileError(f"{path} is not a repository registry file")
        raw["repositories"] = raw.get("repositories") or []
        return RepositoryFile(**raw)
    except (yaml.YAMLError, ValidationError) as e:
        raise RegistryFileError(f"failed to parse {path}: {e}") from e


def save_registry_file(path: Path, registry: RepositoryFile) -> None:
    registry.generated = datetime.now(timezone.utc)
    payload = registry.model_dump(mode="json", by_alias=True)
    text = yaml.safe_dump(payload, default_flow_style=False, sort_keys=True)
    atomic_write_bytes(path, text.encode("utf-8"))
    logger.debug(f"Wrote {len(registry.repositories)} repositories to {path}")

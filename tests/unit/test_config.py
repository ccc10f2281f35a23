"""Unit tests for helm_proxy.core.config."""

from __future__ import annotations

from pathlib import Path

import pytest

from helm_proxy.core.config import HelmSettings, load_config


class TestHelmSettings:
    def test_helm_variables_win(self, tmp_path: Path) -> None:
        settings = HelmSettings.from_env(
            {
                "HELM_CONFIG_HOME": str(tmp_path / "cfg"),
                "HELM_CACHE_HOME": str(tmp_path / "cache"),
                "XDG_CONFIG_HOME": str(tmp_path / "xdg"),
            }
        )
        assert settings.repository_config == tmp_path / "cfg" / "repositories.yaml"
        assert settings.repository_cache == tmp_path / "cache" / "repository"
        assert settings.lock_path == tmp_path / "cfg" / "repositories.lock"

    def test_xdg_fallback(self, tmp_path: Path) -> None:
        settings = HelmSettings.from_env({"XDG_CONFIG_HOME": str(tmp_path), "XDG_CACHE_HOME": str(tmp_path / "c")})
        assert settings.config_home == tmp_path / "helm"
        assert settings.repository_cache == tmp_path / "c" / "helm" / "repository"

    def test_explicit_repository_paths(self, tmp_path: Path) -> None:
        settings = HelmSettings.from_env(
            {
                "HELM_REPOSITORY_CONFIG": str(tmp_path / "repos.yaml"),
                "HELM_REPOSITORY_CACHE": str(tmp_path / "idx"),
            }
        )
        assert settings.repository_config == tmp_path / "repos.yaml"
        assert settings.repository_cache == tmp_path / "idx"
        assert settings.lock_path == tmp_path / "repos.lock"

    def test_env_vars(self, helm_env) -> None:
        env = HelmSettings.from_env({**helm_env, "HELM_NAMESPACE": "kube-system", "HELM_DEBUG": "1"}).env_vars()
        assert env["HELM_CONFIG_HOME"] == helm_env["HELM_CONFIG_HOME"]
        assert env["HELM_NAMESPACE"] == "kube-system"
        assert env["HELM_DEBUG"] == "true"
        assert env["HELM_REPOSITORY_CONFIG"].endswith("repositories.yaml")


class TestLoadConfig:
    def test_defaults_without_file(self, helm_env) -> None:
        config = load_config(None, environ=helm_env)
        assert config.helm_repos == []
        assert config.lock_timeout_seconds == 30.0
        assert config.search_max_score == 25

    def test_yaml_file(self, tmp_path: Path, helm_env) -> None:
        path = tmp_path / "proxy.yaml"
        path.write_text(
            "logLevel: DEBUG\n"
            "updateTaskTimeoutSeconds: 2\n"
            "unknownKey: ignored\n"
            "helmRepos:\n"
            "- name: bitnami\n"
            "  url: https://charts.bitnami.com/bitnami\n"
            "  caFile: /etc/ca.pem\n",
            encoding="utf-8",
        )
        config = load_config(path, environ=helm_env)
        assert config.log_level == "DEBUG"
        assert config.update_task_timeout_seconds == 2.0
        assert [(r.name, r.ca_file) for r in config.helm_repos] == [("bitnami", "/etc/ca.pem")]

    def test_path_from_environment(self, tmp_path: Path, helm_env) -> None:
        path = tmp_path / "proxy.yaml"
        path.write_text("searchMaxScore: 5\n", encoding="utf-8")
        config = load_config(None, environ={**helm_env, "HELM_PROXY_CONFIG": str(path)})
        assert config.search_max_score == 5

    def test_missing_file(self, tmp_path: Path, helm_env) -> None:
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "nope.yaml", environ=helm_env)

    def test_not_a_mapping(self, tmp_path: Path, helm_env) -> None:
        path = tmp_path / "proxy.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(ValueError):
            load_config(path, environ=helm_env)

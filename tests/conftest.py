"""Shared test fixtures: a private HOME with a kubectl config, and a fake service account."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from textwrap import dedent
from typing import Any

import pytest
import yaml

from kubelink import connection


@pytest.fixture(autouse=True)
def outside_cluster(monkeypatch: pytest.MonkeyPatch) -> None:
    """Every test starts outside a cluster unless it opts in."""
    monkeypatch.delenv(connection.SERVICE_HOST_ENV, raising=False)
    monkeypatch.delenv(connection.SERVICE_PORT_ENV, raising=False)


@pytest.fixture
def home_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    return home


@pytest.fixture
def kubeconfig_path(home_dir: Path) -> Path:
    return home_dir / ".kube" / "config"


@pytest.fixture
def write_kubeconfig(kubeconfig_path: Path) -> Callable[[str | dict[str, Any]], Path]:
    """Write a kubectl config from YAML text or from a dict."""

    def _write(config: str | dict[str, Any]) -> Path:
        text = config if isinstance(config, str) else yaml.safe_dump(config)
        kubeconfig_path.parent.mkdir(parents=True, exist_ok=True)
        kubeconfig_path.write_text(dedent(text))
        return kubeconfig_path

    return _write


@pytest.fixture
def single_context() -> Callable[..., dict[str, Any]]:
    """Factory for a config dict with one foo / foo-cluster / foo-user triple."""

    def _build(user: dict[str, Any] | None = None, cluster: dict[str, Any] | None = None) -> dict[str, Any]:
        return {
            "current-context": "foo",
            "contexts": [{"name": "foo", "context": {"cluster": "foo-cluster", "user": "foo-user"}}],
            "clusters": [{"name": "foo-cluster", "cluster": cluster or {"server": "foo-server"}}],
            "users": [{"name": "foo-user", "user": user or {"name": "bob"}}],
        }

    return _build


@dataclass
class ServiceAccount:
    ca_path: Path
    token_path: Path


@pytest.fixture
def service_account(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> ServiceAccount:
    """A complete in-cluster environment: both env vars, CA file and token file."""
    sa_dir = tmp_path / "serviceaccount"
    sa_dir.mkdir()
    ca_path = sa_dir / "ca.crt"
    token_path = sa_dir / "token"
    ca_path.write_text("test-cert")
    token_path.write_text("test-token")

    monkeypatch.setattr(connection, "CA_PATH", ca_path)
    monkeypatch.setattr(connection, "TOKEN_PATH", token_path)
    monkeypatch.setenv(connection.SERVICE_HOST_ENV, "foo")
    monkeypatch.setenv(connection.SERVICE_PORT_ENV, "5000")
    return ServiceAccount(ca_path=ca_path, token_path=token_path)

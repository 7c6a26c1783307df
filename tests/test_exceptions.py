"""Tests for exceptions.py: hierarchy and message formats."""

from __future__ import annotations

from pathlib import Path

import pytest

import kubelink
from kubelink.exceptions import (
    ClusterNotFoundError,
    CommandExecutionError,
    CommandOutputParseError,
    ConfigNotFoundError,
    CredentialRefreshError,
    InClusterConfigError,
    InvalidAuthProviderError,
    InvalidJsonPathError,
    KubeconfigError,
    KubeLinkError,
    MissingCertFileError,
    MissingHomePathError,
    MissingServiceHostEnvError,
    NoConfigAvailableError,
    WatchClosedError,
)


class TestHierarchy:
    @pytest.mark.parametrize(
        ("error", "family"),
        [
            (MissingHomePathError(), KubeconfigError),
            (ClusterNotFoundError("foo"), KubeconfigError),
            (MissingServiceHostEnvError("KUBERNETES_SERVICE_HOST"), InClusterConfigError),
            (MissingCertFileError("/ca.crt"), InClusterConfigError),
            (CommandExecutionError("false", 1), CredentialRefreshError),
            (CommandOutputParseError("echo"), CredentialRefreshError),
            (InvalidAuthProviderError(), KubeconfigError),
            (InvalidJsonPathError("{.foo[}"), CredentialRefreshError),
        ],
    )
    def test_families(self, error: Exception, family: type[Exception]) -> None:
        assert isinstance(error, family)
        assert isinstance(error, KubeLinkError)

    def test_everything_is_exported(self) -> None:
        for name in kubelink.__all__:
            assert hasattr(kubelink, name)


class TestMessages:
    def test_path_is_kept_as_string(self) -> None:
        error = ConfigNotFoundError(Path("/home/u/.kube/config"))
        assert error.path == "/home/u/.kube/config"
        assert str(error) == "kubectl config could not be found: /home/u/.kube/config"

    def test_command_execution_with_exit_code(self) -> None:
        error = CommandExecutionError("gcloud token", 2, "denied")
        assert str(error) == "credential refresh command failed (exit code 2): gcloud token"
        assert error.stderr == "denied"

    def test_command_execution_without_exit_code(self) -> None:
        assert str(CommandExecutionError("gcloud token")) == "credential refresh command failed: gcloud token"

    def test_no_config_available(self) -> None:
        assert str(NoConfigAvailableError()) == "kubernetes config could not be found"

    def test_watch_closed_names_url(self) -> None:
        error = WatchClosedError("/api/v1/pods")
        assert error.url == "/api/v1/pods"
        assert "/api/v1/pods" in str(error)

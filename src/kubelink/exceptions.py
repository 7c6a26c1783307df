"""Exception hierarchy for kubeconfig resolution, in-cluster config, credential refresh and watches.

Every message below is part of the public contract: callers match on them, so they are kept
byte-for-byte stable.
"""

from __future__ import annotations

from pathlib import Path


class KubeLinkError(Exception):
    """Base exception for all kubelink errors."""


# --- kubectl config discovery and lookup ---


class KubeconfigError(KubeLinkError):
    """Raised when the kubectl config file cannot be loaded or resolved."""


class MissingHomePathError(KubeconfigError):
    def __init__(self) -> None:
        super().__init__("kubectl could not find home path")


class ConfigNotFoundError(KubeconfigError):
    """The kubectl config file does not exist."""

    def __init__(self, path: Path | str) -> None:
        self.path = str(path)
        super().__init__(f"kubectl config could not be found: {self.path}")


class ConfigParseError(KubeconfigError):
    """The kubectl config file is not a valid YAML mapping."""

    def __init__(self, path: Path | str) -> None:
        self.path = str(path)
        super().__init__(f"kubectl config could not be parsed: {self.path}")


class MissingCurrentContextError(KubeconfigError):
    def __init__(self) -> None:
        super().__init__("kubectl `current-context` key could not be found")


class MissingContextsError(KubeconfigError):
    def __init__(self) -> None:
        super().__init__("kubectl `contexts` key could not be found")


class ContextNotFoundError(KubeconfigError):
    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"kubectl `context` could not be found by key: {name}")


class MissingClustersError(KubeconfigError):
    def __init__(self) -> None:
        super().__init__("kubectl `clusters` key could not be found")


class ClusterNotFoundError(KubeconfigError):
    """No cluster entry matches the context's cluster reference.

    The message reports the context name rather than the cluster reference.
    """

    def __init__(self, context_name: str) -> None:
        self.context_name = context_name
        super().__init__(f"kubectl `cluster` could not be found by key: {context_name}")


class MissingUsersError(KubeconfigError):
    def __init__(self) -> None:
        super().__init__("kubectl `users` key could not be found")


class UserNotFoundError(KubeconfigError):
    """No user entry matches the context's user reference (reports the context name)."""

    def __init__(self, context_name: str) -> None:
        self.context_name = context_name
        super().__init__(f"kubectl `user` could not be found by key: {context_name}")


class InvalidAuthProviderError(KubeconfigError):
    """The user's ``auth-provider.config`` block has fields of the wrong type."""

    def __init__(self) -> None:
        super().__init__("kubectl `auth-provider` config could not be parsed")


# --- service account (inside cluster) ---


class InClusterConfigError(KubeLinkError):
    """Raised when the in-cluster service account configuration is incomplete."""


class MissingServiceHostEnvError(InClusterConfigError):
    def __init__(self, variable: str) -> None:
        self.variable = variable
        super().__init__(f"cannot get kubernetes client config without `{variable}` env var")


class MissingServicePortEnvError(InClusterConfigError):
    def __init__(self, variable: str) -> None:
        self.variable = variable
        super().__init__(f"cannot get kubernetes client config without `{variable}` env var")


class MissingCertFileError(InClusterConfigError):
    def __init__(self, path: Path | str) -> None:
        self.path = str(path)
        super().__init__("cannot get kubernetes client config without cert file")


class MissingTokenFileError(InClusterConfigError):
    def __init__(self, path: Path | str) -> None:
        self.path = str(path)
        super().__init__("cannot get kubernetes client config without token file")


# --- auth-provider refresh command ---


class CredentialRefreshError(KubeLinkError):
    """Raised when the auth-provider refresh command cannot produce a token."""


class CommandExecutionError(CredentialRefreshError):
    """The refresh command exited non-zero or could not be started."""

    def __init__(self, command: str, returncode: int | None = None, stderr: str | None = None) -> None:
        self.command = command
        self.returncode = returncode
        self.stderr = stderr
        detail = f" (exit code {returncode})" if returncode is not None else ""
        super().__init__(f"credential refresh command failed{detail}: {command}")


class CommandOutputParseError(CredentialRefreshError):
    """The refresh command printed something that is not JSON."""

    def __init__(self, command: str) -> None:
        self.command = command
        super().__init__(f"credential refresh command output could not be parsed as JSON: {command}")


class InvalidJsonPathError(CredentialRefreshError):
    """An ``expiry-key`` or ``token-key`` expression is not a valid JSON path."""

    def __init__(self, expression: str) -> None:
        self.expression = expression
        super().__init__(f"credential refresh json path could not be parsed: {expression}")


# --- client construction and watches ---


class NoConfigAvailableError(KubeLinkError):
    def __init__(self) -> None:
        super().__init__("kubernetes config could not be found")


class WatchClosedError(KubeLinkError):
    """A watch ended before the awaited condition was met."""

    def __init__(self, url: str) -> None:
        self.url = url
        super().__init__(f"watch closed before condition was met: {url}")

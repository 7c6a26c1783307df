"""Kubernetes connection resolution and a thin async HTTP wrapper with watch and wait-for helpers."""

from kubelink.clients.kubernetes import KubernetesClient, get_kubernetes_client
from kubelink.clients.waiter import wait_for
from kubelink.clients.watch import ResourceWatcher
from kubelink.config import ClientSettings, get_kubectl_config
from kubelink.connection import (
    get_kubernetes_config,
    get_kubernetes_config_inside_cluster,
    get_kubernetes_config_outside_cluster,
    is_inside_cluster,
)
from kubelink.exceptions import (
    ClusterNotFoundError,
    CommandExecutionError,
    CommandOutputParseError,
    ConfigNotFoundError,
    ConfigParseError,
    ContextNotFoundError,
    CredentialRefreshError,
    InClusterConfigError,
    InvalidAuthProviderError,
    InvalidJsonPathError,
    KubeconfigError,
    KubeLinkError,
    MissingCertFileError,
    MissingClustersError,
    MissingContextsError,
    MissingCurrentContextError,
    MissingHomePathError,
    MissingServiceHostEnvError,
    MissingServicePortEnvError,
    MissingTokenFileError,
    MissingUsersError,
    NoConfigAvailableError,
    UserNotFoundError,
    WatchClosedError,
)
from kubelink.models import ConnectionDescriptor, KubectlConfig, LogLine, TlsMaterial, WatchEvent

__all__ = [
    # Configuration
    "ClientSettings",
    "get_kubectl_config",
    "get_kubernetes_config",
    "get_kubernetes_config_inside_cluster",
    "get_kubernetes_config_outside_cluster",
    "is_inside_cluster",
    # Client
    "KubernetesClient",
    "ResourceWatcher",
    "get_kubernetes_client",
    "wait_for",
    # Models
    "ConnectionDescriptor",
    "KubectlConfig",
    "LogLine",
    "TlsMaterial",
    "WatchEvent",
    # Exceptions
    "ClusterNotFoundError",
    "CommandExecutionError",
    "CommandOutputParseError",
    "ConfigNotFoundError",
    "ConfigParseError",
    "ContextNotFoundError",
    "CredentialRefreshError",
    "InClusterConfigError",
    "InvalidAuthProviderError",
    "InvalidJsonPathError",
    "KubeLinkError",
    "KubeconfigError",
    "MissingCertFileError",
    "MissingClustersError",
    "MissingContextsError",
    "MissingCurrentContextError",
    "MissingHomePathError",
    "MissingServiceHostEnvError",
    "MissingServicePortEnvError",
    "MissingTokenFileError",
    "MissingUsersError",
    "NoConfigAvailableError",
    "UserNotFoundError",
    "WatchClosedError",
]

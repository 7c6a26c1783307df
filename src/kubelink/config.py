"""kubectl config resolution and client settings with environment variable overrides."""

from __future__ import annotations

import asyncio
import json
import os
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import structlog
import yaml
from pydantic import ValidationError

from kubelink.exceptions import (
    ClusterNotFoundError,
    CommandExecutionError,
    CommandOutputParseError,
    ConfigNotFoundError,
    ConfigParseError,
    ContextNotFoundError,
    CredentialRefreshError,
    InvalidAuthProviderError,
    MissingClustersError,
    MissingContextsError,
    MissingCurrentContextError,
    MissingHomePathError,
    MissingUsersError,
    UserNotFoundError,
)
from kubelink.models import AuthProviderConfig, KubectlConfig, RawConfig, ResolvedContext
from kubelink.utils import ensure_decoded, get_json_path, is_expired

log = structlog.get_logger()


@dataclass(frozen=True)
class ClientSettings:
    """HTTP client timeouts with environment variable overrides.

    Streams (watch, follow) only use the connect timeout; they never time out on read.
    """

    request_timeout: float = field(default_factory=lambda: float(os.environ.get("KUBELINK_REQUEST_TIMEOUT", "30")))
    connect_timeout: float = field(default_factory=lambda: float(os.environ.get("KUBELINK_CONNECT_TIMEOUT", "10")))


def get_client_settings() -> ClientSettings:
    """Return client settings with environment variable overrides applied."""
    return ClientSettings()


def kubeconfig_path() -> Path:
    """Return ``$HOME/.kube/config``.

    Raises:
        MissingHomePathError: If ``HOME`` is unset or empty.
    """
    home = os.environ.get("HOME")
    if not home:
        raise MissingHomePathError()
    return Path(home) / ".kube" / "config"


def parse_raw_config(text: str, path: Path) -> RawConfig:
    """Parse kubectl config YAML.

    An empty document is an empty config. Anything that is not a mapping of the expected
    shape is a parse error naming ``path``.
    """
    try:
        raw: Any = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigParseError(path) from exc

    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ConfigParseError(path)

    try:
        return RawConfig.model_validate(raw)
    except ValidationError as exc:
        raise ConfigParseError(path) from exc


async def load_raw_config() -> RawConfig:
    """Load and parse the kubectl config file from the user's home directory.

    Returns:
        The parsed RawConfig.

    Raises:
        MissingHomePathError: If the home directory cannot be determined.
        ConfigNotFoundError: If the file does not exist.
        ConfigParseError: If the file is not valid YAML or not a config mapping.
    """
    path = kubeconfig_path()
    if not await asyncio.to_thread(path.exists):
        raise ConfigNotFoundError(path)

    text = await asyncio.to_thread(path.read_text, encoding="utf-8")
    config = parse_raw_config(text, path)
    log.debug("kubeconfig_loaded", path=str(path), current_context=config.current_context)
    return config


def resolve_context(config: RawConfig, context_name: str | None = None) -> ResolvedContext:
    """Select the context, cluster and user entries for ``context_name``.

    Falls back to ``current-context`` when no name is given. On duplicate names the first
    entry wins. A context without a cluster or user reference matches no entry.

    Raises:
        MissingCurrentContextError: No name given and no ``current-context``.
        MissingContextsError / ContextNotFoundError: Context lookup failed.
        MissingClustersError / ClusterNotFoundError: Cluster lookup failed (reports the context name).
        MissingUsersError / UserNotFoundError: User lookup failed (reports the context name).
    """
    name = context_name or config.current_context
    if not name:
        raise MissingCurrentContextError()

    if config.contexts is None:
        raise MissingContextsError()
    context = next((c for c in config.contexts if c.name == name), None)
    if context is None:
        raise ContextNotFoundError(name)

    if config.clusters is None:
        raise MissingClustersError()
    cluster_ref = context.cluster_ref
    cluster = next((c for c in config.clusters if cluster_ref and c.name == cluster_ref), None)
    if cluster is None:
        raise ClusterNotFoundError(name)

    if config.users is None:
        raise MissingUsersError()
    user_ref = context.user_ref
    user = next((u for u in config.users if user_ref and u.name == user_ref), None)
    if user is None:
        raise UserNotFoundError(name)

    return ResolvedContext(context=context, cluster=cluster, user=user)


async def _read_if_exists(path: str) -> str | None:
    file_path = Path(path).expanduser()
    if not await asyncio.to_thread(file_path.exists):
        return None
    return await asyncio.to_thread(file_path.read_text, encoding="utf-8")


async def resolve_resource_key(resource: dict[str, Any], name: str) -> str | None:
    """Return ``{name}-data`` if set inline, else the contents of the file at ``{name}``.

    The filesystem is only touched when no inline data is present.
    """
    inline = resource.get(f"{name}-data")
    if inline:
        return str(inline)
    path = resource.get(name)
    if not path:
        return None
    return await _read_if_exists(str(path))


async def resolve_cluster_view(cluster: dict[str, Any]) -> dict[str, Any]:
    """Materialise ``certificate-authority-data`` from ``certificate-authority`` when needed.

    CA data is kept exactly as given; no base64 normalisation is applied.
    """
    ca_data = await resolve_resource_key(cluster, "certificate-authority")
    if not ca_data:
        return dict(cluster)
    return {**cluster, "certificate-authority-data": ca_data}


def _run_refresh_command(command: str) -> Any:
    # Blocking: the refresh runs to completion before resolution continues.
    try:
        result = subprocess.run(command, shell=True, capture_output=True, text=True, check=True)
    except subprocess.CalledProcessError as exc:
        raise CommandExecutionError(command, exc.returncode, exc.stderr) from exc
    except OSError as exc:
        raise CommandExecutionError(command) from exc

    try:
        return json.loads(result.stdout)
    except json.JSONDecodeError as exc:
        raise CommandOutputParseError(command) from exc


async def refresh_access_token(config: AuthProviderConfig) -> tuple[Any, Any]:
    """Run the auth-provider command and extract ``(expiry, access_token)`` from its JSON output.

    The command runs on a worker thread so unrelated resolutions are not stalled.

    Raises:
        CommandExecutionError: The command failed to start or exited non-zero.
        CommandOutputParseError: The command's stdout is not JSON.
        InvalidJsonPathError: ``expiry-key`` or ``token-key`` is not a valid JSON path.
    """
    command = config.refresh_command
    log.info("refreshing_access_token", cmd_path=config.cmd_path)
    try:
        payload = await asyncio.to_thread(_run_refresh_command, command)
        expiry = get_json_path(payload, str(config.expiry_key))
        token = get_json_path(payload, str(config.token_key))
    except CredentialRefreshError:
        log.error("credential_refresh_failed", cmd_path=config.cmd_path)
        raise

    if token is None:
        log.warning("refreshed_token_not_found", token_key=config.token_key)
    return expiry, token


async def resolve_auth_provider(user: dict[str, Any]) -> dict[str, Any] | None:
    """Return the user's ``auth-provider`` with a usable access token, or None.

    * No ``auth-provider.config``: the provider is returned unchanged (possibly None).
    * An access token that has not expired (a missing expiry never expires): unchanged.
    * Otherwise, with ``cmd-path``, ``cmd-args``, ``expiry-key`` and ``token-key`` all present, the
      command is run and a copy with the refreshed ``access-token`` and ``expiry`` is returned.
    * Otherwise None: the stale credentials are dropped, and :func:`resolve_user_view` removes
      ``auth-provider`` from the view instead of keeping the stale block as read from the file.

    Raises:
        InvalidAuthProviderError: ``auth-provider.config`` has fields of the wrong type.
        CredentialRefreshError: The refresh command failed or its output could not be used.
    """
    provider = user.get("auth-provider")
    if not isinstance(provider, dict) or not isinstance(provider.get("config"), dict):
        return provider

    raw_config: dict[str, Any] = provider["config"]
    try:
        config = AuthProviderConfig.model_validate(raw_config)
    except ValidationError as exc:
        raise InvalidAuthProviderError() from exc

    if config.access_token and not is_expired(config.expiry):
        return provider

    if config.can_refresh:
        expiry, token = await refresh_access_token(config)
        return {**provider, "config": {**raw_config, "expiry": expiry, "access-token": token}}

    log.warning("auth_provider_token_unusable", has_token=bool(config.access_token))
    return None


async def resolve_user_view(user: dict[str, Any]) -> dict[str, Any]:
    """Materialise client certificate, client key and auth-provider material for a user entry.

    An ``auth-provider`` whose token is stale and cannot be refreshed is removed from the view
    rather than passed through as read from the file.
    """
    view = dict(user)

    certificate_data = await resolve_resource_key(view, "client-certificate")
    if certificate_data:
        view["client-certificate-data"] = ensure_decoded(certificate_data)

    key_data = await resolve_resource_key(view, "client-key")
    if key_data:
        view["client-key-data"] = ensure_decoded(key_data)

    auth_provider = await resolve_auth_provider(view)
    if auth_provider:
        view["auth-provider"] = auth_provider
    else:
        view.pop("auth-provider", None)

    return view


async def get_kubectl_config(context_name: str | None = None) -> KubectlConfig:
    """Resolve the kubectl config for ``context_name`` (default: ``current-context``).

    Every call reads the file again; nothing is cached.

    Returns:
        A KubectlConfig with the context name and materialised cluster and user views.
    """
    raw = await load_raw_config()
    resolved = resolve_context(raw, context_name)
    cluster, user = await asyncio.gather(
        resolve_cluster_view(resolved.cluster.cluster),
        resolve_user_view(resolved.user.user),
    )
    log.debug("kubeconfig_resolved", context=resolved.context.name, server=cluster.get("server"))
    return KubectlConfig(name=str(resolved.context.name), cluster=cluster, user=user)

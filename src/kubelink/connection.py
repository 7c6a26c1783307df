"""Connection descriptors from the in-cluster service account or the local kubectl config."""

from __future__ import annotations

import asyncio
import os
from pathlib import Path

import structlog

from kubelink.config import get_kubectl_config
from kubelink.exceptions import (
    MissingCertFileError,
    MissingServiceHostEnvError,
    MissingServicePortEnvError,
    MissingTokenFileError,
)
from kubelink.models import ConnectionDescriptor, KubectlConfig, TlsMaterial

log = structlog.get_logger()

SERVICE_HOST_ENV = "KUBERNETES_SERVICE_HOST"
SERVICE_PORT_ENV = "KUBERNETES_PORT_443_TCP_PORT"

SERVICE_ACCOUNT_DIR = Path("/var/run/secrets/kubernetes.io/serviceaccount")
CA_PATH = SERVICE_ACCOUNT_DIR / "ca.crt"
TOKEN_PATH = SERVICE_ACCOUNT_DIR / "token"


def is_inside_cluster() -> bool:
    """True when both the service host and service port variables are set and non-empty."""
    return bool(os.environ.get(SERVICE_HOST_ENV)) and bool(os.environ.get(SERVICE_PORT_ENV))


async def get_kubernetes_config_inside_cluster() -> ConnectionDescriptor:
    """Build a descriptor from the pod's service account.

    Checks, in order: service host env var, service port env var, CA file, token file.

    Raises:
        MissingServiceHostEnvError, MissingServicePortEnvError, MissingCertFileError,
        MissingTokenFileError: Whichever check fails first.
    """
    host = os.environ.get(SERVICE_HOST_ENV)
    if not host:
        raise MissingServiceHostEnvError(SERVICE_HOST_ENV)

    port = os.environ.get(SERVICE_PORT_ENV)
    if not port:
        raise MissingServicePortEnvError(SERVICE_PORT_ENV)

    if not await asyncio.to_thread(CA_PATH.exists):
        raise MissingCertFileError(CA_PATH)

    if not await asyncio.to_thread(TOKEN_PATH.exists):
        raise MissingTokenFileError(TOKEN_PATH)

    ca_data, token = await asyncio.gather(
        asyncio.to_thread(CA_PATH.read_text, encoding="utf-8"),
        asyncio.to_thread(TOKEN_PATH.read_text, encoding="utf-8"),
    )
    base_url = f"https://{host}:{port}"
    log.debug("in_cluster_config_loaded", base_url=base_url)
    return ConnectionDescriptor(
        base_url=base_url,
        tls=TlsMaterial(ca_data=ca_data),
        authorization=f"Bearer {token}",
    )


def _tls_material(config: KubectlConfig) -> TlsMaterial:
    # Server verification is off for kubectl-config connections, with or without client certs.
    # TODO: verify against certificate-authority-data when the cluster entry provides one.
    if config.client_key_data and config.client_certificate_data:
        return TlsMaterial(
            key_data=config.client_key_data,
            cert_data=config.client_certificate_data,
            verify=False,
        )
    return TlsMaterial(verify=False)


async def get_kubernetes_config_outside_cluster(context_name: str | None = None) -> ConnectionDescriptor:
    """Build a descriptor from the kubectl config, for ``context_name`` or the current context."""
    config = await get_kubectl_config(context_name)
    access_token = config.access_token
    log.debug(
        "kubectl_config_connection",
        context=config.name,
        base_url=config.server,
        client_certificate=bool(config.client_certificate_data),
        bearer_token=bool(access_token),
    )
    return ConnectionDescriptor(
        base_url=str(config.server or ""),
        tls=_tls_material(config),
        authorization=f"Bearer {access_token}" if access_token else None,
    )


async def get_kubernetes_config() -> ConnectionDescriptor:
    """Pick the in-cluster or kubectl-config descriptor depending on the environment."""
    if is_inside_cluster():
        return await get_kubernetes_config_inside_cluster()
    return await get_kubernetes_config_outside_cluster()

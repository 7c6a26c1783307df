"""HTTP transport construction for a single API server connection."""

from __future__ import annotations

import ssl
import tempfile
from pathlib import Path

import httpx

from kubelink.config import ClientSettings, get_client_settings
from kubelink.models import ConnectionDescriptor, TlsMaterial


def build_ssl_context(tls: TlsMaterial) -> ssl.SSLContext:
    """Build an SSL context from in-memory CA, client certificate and key material."""
    context = ssl.create_default_context(cadata=tls.ca_data) if tls.ca_data else ssl.create_default_context()
    if not tls.verify:
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
    if tls.cert_data and tls.key_data:
        # load_cert_chain only reads from files; the files live only for the duration of the load.
        with tempfile.TemporaryDirectory(prefix="kubelink-") as tmp:
            cert_file = Path(tmp) / "client.crt"
            key_file = Path(tmp) / "client.key"
            cert_file.write_text(tls.cert_data, encoding="utf-8")
            key_file.write_text(tls.key_data, encoding="utf-8")
            key_file.chmod(0o600)
            context.load_cert_chain(certfile=str(cert_file), keyfile=str(key_file))
    return context


def create_http_client(
    descriptor: ConnectionDescriptor,
    settings: ClientSettings | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """Create an isolated AsyncClient bound to one API server.

    Each call returns its own client, so connections to different clusters never share
    headers or TLS state. A custom ``transport`` owns its own TLS setup.
    """
    settings = settings or get_client_settings()
    verify: ssl.SSLContext | bool = True
    if transport is None:
        verify = build_ssl_context(descriptor.tls)
    return httpx.AsyncClient(
        base_url=descriptor.base_url,
        headers=descriptor.headers,
        verify=verify,
        timeout=httpx.Timeout(settings.request_timeout, connect=settings.connect_timeout),
        transport=transport,
    )

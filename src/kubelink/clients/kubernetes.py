"""Thin async wrapper over the Kubernetes REST API."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import httpx
import structlog

from kubelink.clients import create_http_client
from kubelink.clients.waiter import Predicate, wait_for
from kubelink.clients.watch import ResourceWatcher
from kubelink.config import ClientSettings, get_client_settings
from kubelink.connection import get_kubernetes_config
from kubelink.exceptions import KubeLinkError, NoConfigAvailableError
from kubelink.models import ConnectionDescriptor

log = structlog.get_logger()

MERGE_PATCH_CONTENT_TYPE = "application/merge-patch+json"

Params = Mapping[str, Any] | None


def extract_data(response: httpx.Response) -> Any:
    """Decode a response body: JSON when declared as such, text otherwise, None when empty."""
    if not response.content:
        return None
    if "json" in response.headers.get("content-type", ""):
        return response.json()
    return response.text


def extract_items(data: Any) -> Any:
    """Unwrap list responses to their ``items``."""
    if isinstance(data, dict) and data.get("items") is not None:
        return data["items"]
    return data


class KubernetesClient:
    """Wrapper around one API server connection: plain verbs, upsert, watch, wait_for, stream."""

    def __init__(self, http: httpx.AsyncClient, settings: ClientSettings | None = None) -> None:
        self._http = http
        self._settings = settings or get_client_settings()

    @property
    def http(self) -> httpx.AsyncClient:
        return self._http

    def _stream_timeout(self) -> httpx.Timeout:
        return httpx.Timeout(None, connect=self._settings.connect_timeout)

    async def _request(
        self,
        method: str,
        url: str,
        *,
        params: Params = None,
        json: Any = None,
        headers: Mapping[str, str] | None = None,
    ) -> Any:
        try:
            response = await self._http.request(method, url, params=params, json=json, headers=headers)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            log.warning("kubernetes_request_failed", method=method, url=url, status_code=exc.response.status_code)
            raise
        except httpx.HTTPError:
            log.error("kubernetes_request_error", method=method, url=url)
            raise
        return extract_items(extract_data(response))

    async def get(self, url: str, params: Params = None) -> Any:
        return await self._request("GET", url, params=params)

    async def delete(self, url: str, params: Params = None) -> Any:
        return await self._request("DELETE", url, params=params)

    async def head(self, url: str, params: Params = None) -> Any:
        return await self._request("HEAD", url, params=params)

    async def post(self, url: str, data: Any = None, params: Params = None) -> Any:
        return await self._request("POST", url, params=params, json=data)

    async def put(self, url: str, data: Any = None, params: Params = None) -> Any:
        return await self._request("PUT", url, params=params, json=data)

    async def patch(
        self,
        url: str,
        data: Any = None,
        params: Params = None,
        headers: Mapping[str, str] | None = None,
    ) -> Any:
        """PATCH with ``application/merge-patch+json`` unless the caller sets a content type."""
        merged = {"content-type": MERGE_PATCH_CONTENT_TYPE}
        for key, value in (headers or {}).items():
            if key.lower() == "content-type":
                merged.pop("content-type")
            merged[key] = value
        return await self._request("PATCH", url, params=params, json=data, headers=merged)

    async def upsert(self, url: str, resource: dict[str, Any], params: Params = None) -> Any:
        """Create ``resource`` under ``url``; on 409 Conflict merge-patch ``{url}/{metadata.name}``."""
        try:
            return await self.post(url, resource, params=params)
        except httpx.HTTPStatusError as exc:
            if exc.response.status_code != httpx.codes.CONFLICT:
                raise
        name = resource["metadata"]["name"]
        log.info("upsert_patching_existing", url=url, name=name)
        return await self.patch(f"{url}/{name}", resource, params=params)

    async def watch(self, url: str, params: Params = None) -> ResourceWatcher:
        return await ResourceWatcher.open(self._http, url, params, timeout=self._stream_timeout())

    async def wait_for(self, predicate: Predicate, url: str, params: Params = None) -> Any:
        return await wait_for(self._http, predicate, url, params, timeout=self._stream_timeout())

    async def stream(self, url: str, params: Params = None) -> httpx.Response:
        """Open a raw streaming GET. The caller owns the response and must close it."""
        request = self._http.build_request("GET", url, params=params, timeout=self._stream_timeout())
        response = await self._http.send(request, stream=True)
        if response.is_error:
            await response.aread()
            await response.aclose()
            response.raise_for_status()
        return response

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> KubernetesClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()


async def get_kubernetes_client(
    config: ConnectionDescriptor | None = None,
    *,
    settings: ClientSettings | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> KubernetesClient:
    """Create a client from ``config``, or from the discovered environment when omitted.

    Raises:
        NoConfigAvailableError: No config was given and none could be discovered.
    """
    if config is None:
        try:
            config = await get_kubernetes_config()
        except KubeLinkError as exc:
            log.warning("kubernetes_config_unavailable", error=str(exc))
            raise NoConfigAvailableError() from exc

    settings = settings or get_client_settings()
    http = create_http_client(config, settings, transport=transport)
    log.debug("kubernetes_client_created", base_url=config.base_url)
    return KubernetesClient(http, settings)

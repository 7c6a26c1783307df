"""Pydantic v2 models for kubectl config documents, resolved identities, connections and events."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

# --- kubectl config document ---


class ContextRef(BaseModel):
    """The ``context`` body of a context entry: names of a cluster and a user."""

    model_config = ConfigDict(extra="allow")

    cluster: str | None = None
    user: str | None = None


class ContextEntry(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: str | None = None
    context: ContextRef | None = None

    @property
    def cluster_ref(self) -> str | None:
        return self.context.cluster if self.context else None

    @property
    def user_ref(self) -> str | None:
        return self.context.user if self.context else None


class ClusterEntry(BaseModel):
    """A named cluster. The body is kept as a plain mapping so unknown keys pass through."""

    model_config = ConfigDict(extra="allow")

    name: str | None = None
    cluster: dict[str, Any] = Field(default_factory=dict)

    @field_validator("cluster", mode="before")
    @classmethod
    def null_body_is_empty(cls, value: Any) -> Any:
        return value or {}


class UserEntry(BaseModel):
    """A named credential bundle. The body is kept as a plain mapping so unknown keys pass through."""

    model_config = ConfigDict(extra="allow")

    name: str | None = None
    user: dict[str, Any] = Field(default_factory=dict)

    @field_validator("user", mode="before")
    @classmethod
    def null_body_is_empty(cls, value: Any) -> Any:
        return value or {}


class RawConfig(BaseModel):
    """A parsed ``~/.kube/config`` document.

    ``None`` for a sequence means the key was absent, which is reported differently from an
    empty sequence.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    current_context: str | None = Field(default=None, alias="current-context")
    contexts: list[ContextEntry] | None = None
    clusters: list[ClusterEntry] | None = None
    users: list[UserEntry] | None = None


class AuthProviderConfig(BaseModel):
    """The ``auth-provider.config`` block of a user entry."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    access_token: str | None = Field(default=None, alias="access-token")
    expiry: datetime | str | None = None
    cmd_path: str | None = Field(default=None, alias="cmd-path")
    cmd_args: str | None = Field(default=None, alias="cmd-args")
    expiry_key: str | None = Field(default=None, alias="expiry-key")
    token_key: str | None = Field(default=None, alias="token-key")

    @property
    def can_refresh(self) -> bool:
        return all((self.cmd_path, self.cmd_args, self.expiry_key, self.token_key))

    @property
    def refresh_command(self) -> str:
        return f"{self.cmd_path} {self.cmd_args}"


class ResolvedContext(BaseModel):
    """The context, cluster and user entries selected from a RawConfig."""

    context: ContextEntry
    cluster: ClusterEntry
    user: UserEntry


class KubectlConfig(BaseModel):
    """A resolved identity: cluster and user views with file and inline material materialised.

    Built fresh on every resolution call; holds no open resources.
    """

    name: str
    cluster: dict[str, Any] = Field(default_factory=dict)
    user: dict[str, Any] = Field(default_factory=dict)

    @property
    def server(self) -> str | None:
        return self.cluster.get("server")

    @property
    def certificate_authority_data(self) -> str | None:
        return self.cluster.get("certificate-authority-data")

    @property
    def client_certificate_data(self) -> str | None:
        return self.user.get("client-certificate-data")

    @property
    def client_key_data(self) -> str | None:
        return self.user.get("client-key-data")

    @property
    def access_token(self) -> str | None:
        """Bearer token from ``auth-provider``.

        The top-level ``auth-provider.access-token`` wins; ``auth-provider.config.access-token``
        (the shape a refresh produces) is the fallback.
        """
        provider = self.user.get("auth-provider")
        if not isinstance(provider, dict):
            return None
        token = provider.get("access-token")
        if token:
            return str(token)
        config = provider.get("config")
        if isinstance(config, dict) and config.get("access-token"):
            return str(config["access-token"])
        return None


# --- connection descriptor ---


class TlsMaterial(BaseModel):
    """In-memory TLS material. ``verify=False`` disables server certificate verification."""

    model_config = ConfigDict(frozen=True)

    ca_data: str | None = None
    cert_data: str | None = Field(default=None, repr=False)
    key_data: str | None = Field(default=None, repr=False)
    verify: bool = True


class ConnectionDescriptor(BaseModel):
    """Everything an HTTP transport needs to talk to one API server."""

    model_config = ConfigDict(frozen=True)

    base_url: str
    tls: TlsMaterial = Field(default_factory=TlsMaterial)
    authorization: str | None = Field(default=None, repr=False)

    @property
    def headers(self) -> dict[str, str]:
        if self.authorization:
            return {"authorization": self.authorization}
        return {}


# --- stream events ---


class WatchEvent(BaseModel):
    """One watch notification. ``type`` is the lowercased wire type (``added``, ``modified``...)."""

    type: str
    object: Any = None


class LogLine(BaseModel):
    text: str

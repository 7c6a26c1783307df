"""Tests for models.py: kubectl config documents, resolved identities, connection descriptors."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from kubelink.models import (
    AuthProviderConfig,
    ClusterEntry,
    ConnectionDescriptor,
    ContextEntry,
    KubectlConfig,
    RawConfig,
    TlsMaterial,
    UserEntry,
    WatchEvent,
)


class TestRawConfig:
    def test_hyphenated_current_context(self) -> None:
        config = RawConfig.model_validate({"current-context": "foo"})
        assert config.current_context == "foo"

    def test_absent_sequences_are_none(self) -> None:
        config = RawConfig.model_validate({})
        assert config.contexts is None
        assert config.clusters is None
        assert config.users is None

    def test_empty_sequences_are_kept(self) -> None:
        config = RawConfig.model_validate({"contexts": [], "clusters": [], "users": []})
        assert config.contexts == []
        assert config.clusters == []
        assert config.users == []

    def test_unknown_top_level_keys_are_allowed(self) -> None:
        config = RawConfig.model_validate({"apiVersion": "v1", "kind": "Config", "preferences": {}})
        assert config.current_context is None

    def test_sequence_of_wrong_shape_is_rejected(self) -> None:
        with pytest.raises(ValidationError):
            RawConfig.model_validate({"users": "bob"})


class TestEntries:
    def test_context_refs(self) -> None:
        entry = ContextEntry.model_validate({"name": "foo", "context": {"cluster": "c", "user": "u", "namespace": "n"}})
        assert entry.cluster_ref == "c"
        assert entry.user_ref == "u"

    def test_context_without_body(self) -> None:
        entry = ContextEntry.model_validate({"name": "foo"})
        assert entry.cluster_ref is None
        assert entry.user_ref is None

    def test_null_bodies_are_empty(self) -> None:
        assert ClusterEntry.model_validate({"name": "c", "cluster": None}).cluster == {}
        assert UserEntry.model_validate({"name": "u", "user": None}).user == {}

    def test_bodies_keep_unknown_keys(self) -> None:
        user = UserEntry.model_validate({"name": "u", "user": {"exec": {"command": "aws"}}})
        assert user.user == {"exec": {"command": "aws"}}


class TestAuthProviderConfig:
    def test_refresh_requires_all_command_fields(self) -> None:
        full = {"cmd-path": "gcloud", "cmd-args": "token", "expiry-key": "{.expiry}", "token-key": "{.token}"}
        assert AuthProviderConfig.model_validate(full).can_refresh is True
        for missing in full:
            partial = {k: v for k, v in full.items() if k != missing}
            assert AuthProviderConfig.model_validate(partial).can_refresh is False

    def test_refresh_command_joins_path_and_args(self) -> None:
        config = AuthProviderConfig.model_validate({"cmd-path": "/usr/bin/gcloud", "cmd-args": "config config-helper"})
        assert config.refresh_command == "/usr/bin/gcloud config config-helper"


class TestKubectlConfig:
    def test_accessors(self) -> None:
        config = KubectlConfig(
            name="foo",
            cluster={"server": "https://s", "certificate-authority-data": "ca"},
            user={"client-certificate-data": "cert", "client-key-data": "key"},
        )
        assert config.server == "https://s"
        assert config.certificate_authority_data == "ca"
        assert config.client_certificate_data == "cert"
        assert config.client_key_data == "key"
        assert config.access_token is None

    @pytest.mark.parametrize(
        ("provider", "expected"),
        [
            ({"access-token": "top"}, "top"),
            ({"config": {"access-token": "nested"}}, "nested"),
            ({"access-token": "top", "config": {"access-token": "nested"}}, "top"),
            ({"config": {}}, None),
            ("not-a-mapping", None),
        ],
    )
    def test_access_token_lookup(self, provider: object, expected: str | None) -> None:
        config = KubectlConfig(name="foo", user={"auth-provider": provider})
        assert config.access_token == expected


class TestConnectionDescriptor:
    def test_secrets_are_hidden_from_repr(self) -> None:
        descriptor = ConnectionDescriptor(
            base_url="https://x",
            tls=TlsMaterial(cert_data="CERT", key_data="PRIVATE KEY"),
            authorization="Bearer secret-token",
        )
        text = repr(descriptor)
        assert "secret-token" not in text
        assert "PRIVATE KEY" not in text
        assert "https://x" in text

    def test_descriptor_is_immutable(self) -> None:
        descriptor = ConnectionDescriptor(base_url="https://x")
        with pytest.raises(ValidationError):
            descriptor.base_url = "https://y"  # type: ignore[misc]

    def test_headers_without_authorization(self) -> None:
        assert ConnectionDescriptor(base_url="https://x").headers == {}


class TestWatchEvent:
    def test_object_defaults_to_none(self) -> None:
        assert WatchEvent(type="added").object is None

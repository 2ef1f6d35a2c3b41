"""Tests for secpipe.core.credentials."""

from __future__ import annotations

from pathlib import Path

import pytest

from secpipe.core.credentials import (
    MASK_PLACEHOLDER,
    ChainCredentialStore,
    CredentialVault,
    DictCredentialStore,
    EnvCredentialStore,
    FileCredentialStore,
    SecretToken,
    SecretValue,
    UsernamePassword,
    normalize_credential_id,
)
from secpipe.core.errors import CredentialError
from secpipe.core.models import CredentialRequest


class TestSecretValue:
    """Tests for SecretValue."""

    def test_never_renders_value(self) -> None:
        secret = SecretValue("hunter2")
        assert "hunter2" not in str(secret)
        assert "hunter2" not in repr(secret)
        assert secret.get_secret() == "hunter2"

    def test_clear_erases_value(self) -> None:
        secret = SecretValue("hunter2")
        secret.clear()
        assert secret.get_secret() == ""
        assert not secret


class TestStores:
    """Tests for credential stores."""

    def test_normalize_credential_id(self) -> None:
        assert normalize_credential_id("docker-hub") == "DOCKER_HUB"
        assert normalize_credential_id("sonar.token") == "SONAR_TOKEN"

    def test_env_store_token(self) -> None:
        store = EnvCredentialStore(environ={"SECPIPE_CRED_SONAR_TOKEN": "abc"})
        credential = store.lookup("sonar-token")
        assert isinstance(credential, SecretToken)
        assert credential.token.get_secret() == "abc"

    def test_env_store_username_password(self) -> None:
        store = EnvCredentialStore(
            prefix="CI_",
            environ={"CI_DOCKER_HUB_USERNAME": "bot", "CI_DOCKER_HUB_PASSWORD": "pw"},
        )
        credential = store.lookup("docker-hub")
        assert isinstance(credential, UsernamePassword)
        assert credential.username.get_secret() == "bot"
        assert credential.password.get_secret() == "pw"

    def test_env_store_unknown_returns_none(self) -> None:
        assert EnvCredentialStore(environ={}).lookup("missing") is None

    def test_file_store_token_file(self, tmp_path: Path) -> None:
        (tmp_path / "sonar-token").write_text("abc\n")
        credential = FileCredentialStore(tmp_path).lookup("sonar-token")
        assert isinstance(credential, SecretToken)
        assert credential.token.get_secret() == "abc"

    def test_file_store_yaml_pair(self, tmp_path: Path) -> None:
        (tmp_path / "docker-hub.yml").write_text("username: bot\npassword: pw\n")
        credential = FileCredentialStore(tmp_path).lookup("docker-hub")
        assert isinstance(credential, UsernamePassword)

    def test_file_store_malformed_yaml_raises(self, tmp_path: Path) -> None:
        (tmp_path / "broken.yaml").write_text("- just\n- a list\n")
        with pytest.raises(CredentialError):
            FileCredentialStore(tmp_path).lookup("broken")

    def test_chain_store_first_hit_wins(self) -> None:
        store = ChainCredentialStore(
            [DictCredentialStore({"a": "first"}), DictCredentialStore({"a": "second", "b": "x"})]
        )
        assert store.lookup("a").token.get_secret() == "first"  # type: ignore[union-attr]
        assert store.lookup("b") is not None
        assert store.lookup("c") is None


class TestCredentialVault:
    """Tests for CredentialVault binding and masking."""

    def test_bind_exposes_token_variable(self, vault: CredentialVault) -> None:
        with vault.bind([CredentialRequest("sonar-token", variable="SONAR_TOKEN")]) as env:
            assert env["SONAR_TOKEN"] == "s3cr3t-sonar-value"

    def test_bind_plain_identifier_uses_normalized_variable(self, vault: CredentialVault) -> None:
        with vault.bind(["sonar-token"]) as env:
            assert env["SONAR_TOKEN"] == "s3cr3t-sonar-value"

    def test_bind_username_password(self, vault: CredentialVault) -> None:
        request = CredentialRequest(
            "docker-hub", username_variable="DOCKER_USER", password_variable="DOCKER_PASS"
        )
        with vault.bind([request]) as env:
            assert env["DOCKER_USER"] == "ci-bot"
            assert env["DOCKER_PASS"] == "hunter2-registry"

    def test_missing_credential_raises(self, vault: CredentialVault) -> None:
        with pytest.raises(CredentialError) as exc_info:
            with vault.bind([CredentialRequest("nope", variable="NOPE")]):
                pass
        assert exc_info.value.credential_id == "nope"
        assert vault.active_bindings == 0

    def test_token_without_variable_raises(self, vault: CredentialVault) -> None:
        with pytest.raises(CredentialError):
            with vault.bind([CredentialRequest("sonar-token", username_variable="U")]):
                pass

    def test_binding_released_on_normal_exit(self, vault: CredentialVault) -> None:
        with vault.bind(["sonar-token"]) as env:
            assert vault.active_bindings == 1
        assert env.released
        assert len(env) == 0
        assert vault.active_bindings == 0

    def test_binding_released_on_exception(self, vault: CredentialVault) -> None:
        with pytest.raises(RuntimeError):
            with vault.bind(["sonar-token"]) as env:
                raise RuntimeError("step blew up")
        assert env.released
        assert vault.active_bindings == 0
        with pytest.raises(KeyError):
            env["SONAR_TOKEN"]

    def test_mask_replaces_bound_values(self, vault: CredentialVault) -> None:
        with vault.bind(["sonar-token"]):
            masked = vault.mask("token=s3cr3t-sonar-value done")
        assert masked == f"token={MASK_PLACEHOLDER} done"

    def test_mask_is_noop_after_release(self, vault: CredentialVault) -> None:
        with vault.bind(["sonar-token"]):
            pass
        assert vault.mask("s3cr3t-sonar-value") == "s3cr3t-sonar-value"

    def test_combined_pair_masks_each_part(self, vault: CredentialVault) -> None:
        with vault.bind([CredentialRequest("docker-hub", variable="DOCKER_AUTH")]) as env:
            assert env["DOCKER_AUTH"] == "ci-bot:hunter2-registry"
            masked = vault.mask("password is hunter2-registry")
        assert "hunter2-registry" not in masked

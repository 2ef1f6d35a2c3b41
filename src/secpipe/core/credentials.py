"""Credential stores and scoped credential binding.

Credentials are looked up by opaque identifier from a ``CredentialStore`` and
materialized by the ``CredentialVault`` only for the duration of a ``bind()``
block. The vault is the single authority on which substrings must be masked:
while a binding is active, ``vault.mask(text)`` replaces every bound value.
On every exit path the binding is released and its values dropped.

Example:
    vault = CredentialVault(EnvCredentialStore())
    with vault.bind([CredentialRequest("sonar-token", variable="SONAR_TOKEN")]) as env:
        run(cmd, env={**base_env, **env})
"""

from __future__ import annotations

import os
import re
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple, Union

import yaml

from secpipe.core.errors import CredentialError
from secpipe.core.logging import get_logger
from secpipe.core.models import CredentialRequest

LOGGER = get_logger(__name__)

MASK_PLACEHOLDER = "****"

DEFAULT_ENV_PREFIX = "SECPIPE_CRED_"


class SecretValue:
    """Wrapper for a secret string that never renders its value.

    Use ``get_secret()`` to access the value explicitly.
    """

    __slots__ = ("_value",)

    def __init__(self, value: str):
        self._value = value

    def get_secret(self) -> str:
        return self._value

    def clear(self) -> None:
        self._value = ""

    def __str__(self) -> str:
        return MASK_PLACEHOLDER

    def __repr__(self) -> str:
        return f"SecretValue('{MASK_PLACEHOLDER}')"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, SecretValue):
            return self._value == other._value
        return False

    def __hash__(self) -> int:
        return hash(self._value)

    def __bool__(self) -> bool:
        return bool(self._value)

    def __len__(self) -> int:
        return len(self._value)


@dataclass(frozen=True)
class SecretToken:
    token: SecretValue


@dataclass(frozen=True)
class UsernamePassword:
    username: SecretValue
    password: SecretValue


Credential = Union[SecretToken, UsernamePassword]


def normalize_credential_id(credential_id: str) -> str:
    """Turn an identifier like ``docker-hub`` into ``DOCKER_HUB``."""
    return re.sub(r"[^A-Za-z0-9]", "_", credential_id).upper()


# ---------------------------------------------------------------------------
# Stores
# ---------------------------------------------------------------------------


class CredentialStore(ABC):
    """Looks up credentials by identifier. Must never log resolved values."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Store identifier."""

    @abstractmethod
    def lookup(self, credential_id: str) -> Optional[Credential]:
        """Return the credential for ``credential_id`` or None if unknown."""

    def reserves(self, key: str) -> bool:
        """Whether the environment variable ``key`` holds a stored secret.

        Reserved keys are kept out of inherited step environments.
        """
        return False


class DictCredentialStore(CredentialStore):
    """In-memory store. Values are either a token string or a
    ``{"username": ..., "password": ...}`` mapping."""

    def __init__(self, credentials: Optional[Mapping[str, object]] = None) -> None:
        self._credentials = dict(credentials or {})

    @property
    def name(self) -> str:
        return "dict"

    def lookup(self, credential_id: str) -> Optional[Credential]:
        if credential_id not in self._credentials:
            return None
        return _to_credential(credential_id, self._credentials[credential_id])


class EnvCredentialStore(CredentialStore):
    """Reads credentials from prefixed environment variables.

    For identifier ``docker-hub`` and the default prefix:
    - ``SECPIPE_CRED_DOCKER_HUB`` holds a secret token, or
    - ``SECPIPE_CRED_DOCKER_HUB_USERNAME`` / ``..._PASSWORD`` hold a pair.
    """

    def __init__(
        self,
        prefix: str = DEFAULT_ENV_PREFIX,
        environ: Optional[Mapping[str, str]] = None,
    ) -> None:
        self._prefix = prefix
        self._environ = environ

    @property
    def name(self) -> str:
        return "env"

    def reserves(self, key: str) -> bool:
        return bool(self._prefix) and key.startswith(self._prefix)

    def lookup(self, credential_id: str) -> Optional[Credential]:
        environ = self._environ if self._environ is not None else os.environ
        key = self._prefix + normalize_credential_id(credential_id)
        username = environ.get(f"{key}_USERNAME")
        password = environ.get(f"{key}_PASSWORD")
        if username is not None and password is not None:
            return UsernamePassword(SecretValue(username), SecretValue(password))
        token = environ.get(key)
        if token is not None:
            return SecretToken(SecretValue(token))
        return None


class FileCredentialStore(CredentialStore):
    """Reads credentials from a directory of files.

    ``<base>/<id>`` holds a token (whitespace stripped); ``<base>/<id>.yml``
    (or ``.yaml``) holds a mapping with ``token`` or ``username``/``password``.
    """

    def __init__(self, base_path: Path) -> None:
        self._base_path = Path(base_path)

    @property
    def name(self) -> str:
        return "file"

    def lookup(self, credential_id: str) -> Optional[Credential]:
        for suffix in (".yml", ".yaml"):
            path = self._base_path / f"{credential_id}{suffix}"
            if path.is_file():
                with open(path, "r", encoding="utf-8") as f:
                    data = yaml.safe_load(f)
                return _to_credential(credential_id, data)

        path = self._base_path / credential_id
        if path.is_file():
            return SecretToken(SecretValue(path.read_text(encoding="utf-8").strip()))
        return None


class ChainCredentialStore(CredentialStore):
    """Tries each store in order; the first hit wins."""

    def __init__(self, stores: Sequence[CredentialStore]) -> None:
        self._stores = list(stores)

    @property
    def name(self) -> str:
        return "chain(" + ",".join(store.name for store in self._stores) + ")"

    def reserves(self, key: str) -> bool:
        return any(store.reserves(key) for store in self._stores)

    def lookup(self, credential_id: str) -> Optional[Credential]:
        for store in self._stores:
            credential = store.lookup(credential_id)
            if credential is not None:
                return credential
        return None


def _to_credential(credential_id: str, data: object) -> Credential:
    if isinstance(data, str):
        return SecretToken(SecretValue(data))
    if isinstance(data, dict):
        if "token" in data:
            return SecretToken(SecretValue(str(data["token"])))
        if "username" in data and "password" in data:
            return UsernamePassword(
                SecretValue(str(data["username"])),
                SecretValue(str(data["password"])),
            )
    raise CredentialError(
        credential_id,
        f"Credential '{credential_id}' must be a token or a username/password mapping",
    )


# ---------------------------------------------------------------------------
# Binding
# ---------------------------------------------------------------------------


class CredentialBinding(Mapping[str, str]):
    """Variable name to secret value mapping, valid only inside ``bind()``."""

    def __init__(
        self,
        values: Dict[str, SecretValue],
        extra_masks: Optional[List[SecretValue]] = None,
    ) -> None:
        self._values = values
        self._extra_masks = list(extra_masks or [])
        self._released = False

    @property
    def released(self) -> bool:
        return self._released

    def secret_values(self) -> List[str]:
        secrets = list(self._values.values()) + self._extra_masks
        return [v.get_secret() for v in secrets if v]

    def release(self) -> None:
        for value in list(self._values.values()) + self._extra_masks:
            value.clear()
        self._values.clear()
        self._extra_masks.clear()
        self._released = True

    def __getitem__(self, key: str) -> str:
        if self._released:
            raise KeyError(key)
        return self._values[key].get_secret()

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"CredentialBinding(variables={sorted(self._values)!r}, released={self._released})"


class CredentialVault:
    """Resolves credential requests into scoped bindings and masks their values."""

    def __init__(self, store: CredentialStore, placeholder: str = MASK_PLACEHOLDER) -> None:
        self._store = store
        self._placeholder = placeholder
        self._active: Dict[int, CredentialBinding] = {}
        self._lock = threading.Lock()

    @property
    def store(self) -> CredentialStore:
        return self._store

    @property
    def active_bindings(self) -> int:
        with self._lock:
            return len(self._active)

    @contextmanager
    def bind(
        self, requests: Iterable[Union[str, CredentialRequest]]
    ) -> Iterator[CredentialBinding]:
        """Materialize ``requests`` for the duration of the block.

        Raises:
            CredentialError: If an identifier does not resolve.
        """
        values, extra_masks = self._materialize(requests)
        binding = CredentialBinding(values, extra_masks)
        with self._lock:
            self._active[id(binding)] = binding
        try:
            yield binding
        finally:
            with self._lock:
                self._active.pop(id(binding), None)
            binding.release()
            LOGGER.debug("Released credential binding")

    def mask(self, text: str) -> str:
        """Replace every value of every active binding in ``text``."""
        if not text:
            return text
        with self._lock:
            secrets = {
                value
                for binding in self._active.values()
                for value in binding.secret_values()
            }
        for secret in sorted(secrets, key=len, reverse=True):
            text = text.replace(secret, self._placeholder)
        return text

    def _materialize(
        self, requests: Iterable[Union[str, CredentialRequest]]
    ) -> Tuple[Dict[str, SecretValue], List[SecretValue]]:
        values: Dict[str, SecretValue] = {}
        extra_masks: List[SecretValue] = []
        for request in requests:
            if isinstance(request, str):
                request = CredentialRequest(
                    id=request, variable=normalize_credential_id(request)
                )
            credential = self._store.lookup(request.id)
            if credential is None:
                raise CredentialError(request.id)

            if isinstance(credential, UsernamePassword):
                if request.username_variable:
                    values[request.username_variable] = credential.username
                if request.password_variable:
                    values[request.password_variable] = credential.password
                if request.variable:
                    # user:password form, as a single variable
                    values[request.variable] = SecretValue(
                        f"{credential.username.get_secret()}:{credential.password.get_secret()}"
                    )
                    extra_masks.extend([credential.username, credential.password])
            else:
                if not request.variable:
                    raise CredentialError(
                        request.id,
                        f"Credential '{request.id}' is a secret token; "
                        "bind it with 'variable'",
                    )
                values[request.variable] = credential.token
            LOGGER.debug(f"Bound credential '{request.id}' to {request.variables}")
        return values, extra_masks

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Mapping, Protocol

logger = logging.getLogger(__name__)


class SecretStore(Protocol):
    def get(self, key: str) -> str | None: ...
    def set(self, key: str, value: str) -> None: ...
    def delete(self, key: str) -> None: ...


@dataclass(slots=True)
class InMemorySecretStore:
    items: dict[str, str] = field(default_factory=dict)

    def get(self, key: str) -> str | None:
        return self.items.get(key)

    def set(self, key: str, value: str) -> None:
        self.items[key] = value

    def delete(self, key: str) -> None:
        self.items.pop(key, None)


@dataclass(slots=True)
class EnvSecretStore:
    """Secrets read from process environment variables.

    ``names`` maps a secret key to its variable; unmapped keys use the
    upper-cased key. Writes only affect the current process.
    """

    names: Mapping[str, str] = field(default_factory=dict)

    def env_var(self, key: str) -> str:
        return self.names.get(key, key.upper())

    def get(self, key: str) -> str | None:
        return os.environ.get(self.env_var(key)) or None

    def set(self, key: str, value: str) -> None:
        os.environ[self.env_var(key)] = value

    def delete(self, key: str) -> None:
        os.environ.pop(self.env_var(key), None)


@dataclass(slots=True)
class KeyringSecretStore:
    """Secrets kept in the OS credential store (Keychain, Secret Service, Credential Locker)."""

    service_name: str = "voicewin"

    def get(self, key: str) -> str | None:
        import keyring  # type: ignore

        return keyring.get_password(self.service_name, key)

    def set(self, key: str, value: str) -> None:
        import keyring  # type: ignore

        keyring.set_password(self.service_name, key, value)
        logger.info("Stored %s in keyring service %s", key, self.service_name)

    def delete(self, key: str) -> None:
        import keyring  # type: ignore
        from keyring.errors import PasswordDeleteError  # type: ignore

        try:
            keyring.delete_password(self.service_name, key)
        except PasswordDeleteError:
            logger.debug("No stored secret for %s", key)


def mask_secret(value: str, *, unmasked_prefix: int = 3) -> str:
    if len(value) <= unmasked_prefix:
        return "*" * len(value)
    return value[:unmasked_prefix] + "****"

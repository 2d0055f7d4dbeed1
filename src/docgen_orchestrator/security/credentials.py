"""
docgen-orchestrator — provider credential store

File: src/docgen_orchestrator/security/credentials.py
Last updated: 2026-02-20

Purpose
- Hold the provider API key behind validate/get/set/has/clear operations.

What should be included in this file
- Key format validation with stable human-readable messages.
- Storage in the OS keychain through ``keyring``, keyed by service and provider.
- Fernet sealing of the stored value so a modified record is detected on read.
- Environment-variable fallback when nothing has been stored.

Functional requirements
- A tampered record must never be returned as a usable credential.
- Invalid keys must not be stored.
- A record written by one store must be readable by any store over the same backend.

Non-functional requirements
- Credential values must never be logged.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Final, Protocol

import keyring
import keyring.errors
import structlog
from cryptography.fernet import Fernet, InvalidToken

from docgen_orchestrator.constants import DEFAULT_API_KEY_ENV

KEYRING_SERVICE: Final[str] = "docgen-orchestrator"
DEFAULT_PROVIDER: Final[str] = "claude"
_SEAL_KEY_SUFFIX: Final[str] = ".fernet-key"

MIN_KEY_LENGTH: Final[int] = 10
MAX_KEY_LENGTH: Final[int] = 200
KEY_PREFIX: Final[str] = "sk-"


class PasswordBackend(Protocol):
    """The slice of the ``keyring`` API the store relies on."""

    def get_password(self, service_name: str, username: str) -> str | None: ...

    def set_password(self, service_name: str, username: str, password: str) -> None: ...

    def delete_password(self, service_name: str, username: str) -> None: ...


class InMemoryPasswordBackend:
    """Process-local backend with keyring semantics, for tests and embedding."""

    def __init__(self) -> None:
        self._entries: dict[tuple[str, str], str] = {}

    def get_password(self, service_name: str, username: str) -> str | None:
        return self._entries.get((service_name, username))

    def set_password(self, service_name: str, username: str, password: str) -> None:
        self._entries[(service_name, username)] = password

    def delete_password(self, service_name: str, username: str) -> None:
        if self._entries.pop((service_name, username), None) is None:
            raise keyring.errors.PasswordDeleteError(f"no entry for {service_name}/{username}")

    def usernames(self, service_name: str) -> list[str]:
        return sorted(user for service, user in self._entries if service == service_name)


@dataclass(frozen=True, slots=True)
class CredentialValidation:
    is_valid: bool
    message: str


def validate_api_key(api_key: str | None) -> CredentialValidation:
    """Check key format; the first failing rule determines the message."""

    if not api_key:
        return CredentialValidation(False, "API key cannot be empty")
    if len(api_key) < MIN_KEY_LENGTH:
        return CredentialValidation(False, "API key appears to be too short")
    if not api_key.startswith(KEY_PREFIX):
        return CredentialValidation(False, "API key should start with 'sk-'")
    if any(char.isspace() for char in api_key):
        return CredentialValidation(False, "API key contains invalid whitespace characters")
    if len(api_key) > MAX_KEY_LENGTH:
        return CredentialValidation(False, "API key appears to be too long")
    return CredentialValidation(True, "API key format is valid")


class CredentialStore:
    """Provider credential over a keyring-compatible backend.

    ``backend`` defaults to the ``keyring`` module itself, i.e. the OS keychain. The
    sealing key comes from ``encryption_key`` when given; otherwise it is created on the
    first ``set_credential`` and kept in the backend next to the sealed value.
    """

    def __init__(
        self,
        *,
        backend: PasswordBackend | None = None,
        service: str = KEYRING_SERVICE,
        provider: str = DEFAULT_PROVIDER,
        encryption_key: bytes | None = None,
        env_var: str | None = DEFAULT_API_KEY_ENV,
        environ: Mapping[str, str] | None = None,
        logger: Any | None = None,
    ) -> None:
        if not service.strip() or not provider.strip():
            raise ValueError("service and provider must be non-empty")
        self._backend: PasswordBackend = backend if backend is not None else keyring
        self._service = service
        self._provider = provider
        self._fernet = Fernet(encryption_key) if encryption_key is not None else None
        self._key_from_backend = False
        self._env_var = env_var
        self._environ = environ if environ is not None else os.environ
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    def get_credential(self) -> str | None:
        try:
            sealed = self._backend.get_password(self._service, self._provider)
            fernet = self._resolve_fernet(create=False) if sealed else None
        except keyring.errors.KeyringError as exc:
            self._logger.warning("credential_backend_unavailable", error=type(exc).__name__)
            sealed, fernet = None, None

        if sealed:
            if fernet is None:
                self._logger.warning("credential_integrity_check_failed", reason="no_key")
                return None
            try:
                return fernet.decrypt(sealed.encode("ascii")).decode("utf-8")
            except (InvalidToken, UnicodeError):
                self._logger.warning("credential_integrity_check_failed", reason="bad_token")
                return None

        if self._env_var:
            from_env = self._environ.get(self._env_var, "").strip()
            if from_env:
                return from_env
        return None

    def set_credential(self, api_key: str) -> CredentialValidation:
        validation = validate_api_key(api_key)
        if not validation.is_valid:
            self._logger.info("credential_rejected", reason=validation.message)
            return validation

        try:
            fernet = self._resolve_fernet(create=True)
            if fernet is None:
                return CredentialValidation(False, "Stored sealing key is invalid")
            sealed = fernet.encrypt(api_key.encode("utf-8")).decode("ascii")
            self._backend.set_password(self._service, self._provider, sealed)
        except keyring.errors.KeyringError as exc:
            self._logger.warning("credential_store_failed", error=type(exc).__name__)
            return CredentialValidation(False, f"Credential backend unavailable: {exc}")

        self._logger.info("credential_stored", provider=self._provider, length=len(api_key))
        return CredentialValidation(True, "API key stored successfully")

    def has_credential(self) -> bool:
        return self.get_credential() is not None

    def clear_credential(self) -> None:
        for username in (self._provider, self._seal_key_name):
            try:
                self._backend.delete_password(self._service, username)
            except keyring.errors.PasswordDeleteError:
                continue
        if self._key_from_backend:
            self._fernet = None
            self._key_from_backend = False
        self._logger.info("credential_cleared", provider=self._provider)

    @property
    def _seal_key_name(self) -> str:
        return self._provider + _SEAL_KEY_SUFFIX

    def _resolve_fernet(self, *, create: bool) -> Fernet | None:
        if self._fernet is not None:
            return self._fernet
        stored_key = self._backend.get_password(self._service, self._seal_key_name)
        if stored_key:
            try:
                self._fernet = Fernet(stored_key.encode("ascii"))
            except ValueError:
                self._logger.warning("credential_seal_key_invalid")
                return None
            self._key_from_backend = True
            return self._fernet
        if not create:
            return None
        generated = Fernet.generate_key()
        self._backend.set_password(self._service, self._seal_key_name, generated.decode("ascii"))
        self._fernet = Fernet(generated)
        self._key_from_backend = True
        return self._fernet


__all__ = [
    "DEFAULT_PROVIDER",
    "KEYRING_SERVICE",
    "KEY_PREFIX",
    "MAX_KEY_LENGTH",
    "MIN_KEY_LENGTH",
    "CredentialStore",
    "CredentialValidation",
    "InMemoryPasswordBackend",
    "PasswordBackend",
    "validate_api_key",
]

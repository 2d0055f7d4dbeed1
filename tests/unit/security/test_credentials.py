"""
docgen-orchestrator — unit tests for the credential store

File: tests/unit/security/test_credentials.py
Last updated: 2026-02-20

Purpose
- Validate key format checks and the Fernet-sealed keyring record.

What this test file should cover
- Ordered validation messages.
- Store/get/has/clear lifecycle and environment fallback.
- Reads across separate store instances over one backend.
- Tamper detection, unavailable backends and secret-free logging.

Functional requirements
- No OS keychain or network access; backends are in-memory.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import keyring.errors
import pytest
from cryptography.fernet import Fernet

from docgen_orchestrator.security.credentials import (
    KEYRING_SERVICE,
    CredentialStore,
    InMemoryPasswordBackend,
    validate_api_key,
)

VALID_KEY = "sk-ant-test-0123456789"


@dataclass(slots=True)
class RecordingLogger:
    events: list[tuple[str, dict[str, object]]] = field(default_factory=list)

    def _record(self, event: str, **kwargs: object) -> None:
        self.events.append((event, kwargs))

    info = _record
    warning = _record
    debug = _record
    error = _record


class _UnavailableKeyring:
    def get_password(self, service_name: str, username: str) -> str | None:
        raise keyring.errors.NoKeyringError("no recommended backend")

    def set_password(self, service_name: str, username: str, password: str) -> None:
        raise keyring.errors.NoKeyringError("no recommended backend")

    def delete_password(self, service_name: str, username: str) -> None:
        raise keyring.errors.NoKeyringError("no recommended backend")


def _store(
    backend: InMemoryPasswordBackend | None = None,
    *,
    environ: dict[str, str] | None = None,
    logger: RecordingLogger | None = None,
) -> CredentialStore:
    return CredentialStore(
        backend=backend if backend is not None else InMemoryPasswordBackend(),
        env_var="ANTHROPIC_API_KEY",
        environ=environ if environ is not None else {},
        logger=logger,
    )


@pytest.mark.parametrize(
    ("key", "message"),
    [
        ("", "API key cannot be empty"),
        (None, "API key cannot be empty"),
        ("sk-short", "API key appears to be too short"),
        ("pk-0123456789", "API key should start with 'sk-'"),
        ("sk-0123 456789", "API key contains invalid whitespace characters"),
        ("sk-" + "a" * 198, "API key appears to be too long"),
        (VALID_KEY, "API key format is valid"),
    ],
)
def test_validate_api_key_messages(key: str | None, message: str) -> None:
    result = validate_api_key(key)

    assert result.message == message
    assert result.is_valid is (message == "API key format is valid")


def test_store_round_trip_keeps_only_sealed_value() -> None:
    backend = InMemoryPasswordBackend()
    store = _store(backend)

    outcome = store.set_credential(VALID_KEY)

    assert outcome.is_valid
    assert outcome.message == "API key stored successfully"
    assert backend.usernames(KEYRING_SERVICE) == ["claude", "claude.fernet-key"]
    sealed = backend.get_password(KEYRING_SERVICE, "claude")
    assert sealed is not None and VALID_KEY not in sealed
    assert store.get_credential() == VALID_KEY
    assert store.has_credential()


def test_second_store_reads_credential_written_by_first() -> None:
    backend = InMemoryPasswordBackend()
    _store(backend).set_credential(VALID_KEY)

    reader = _store(backend)

    assert reader.get_credential() == VALID_KEY


def test_caller_supplied_key_is_shared_across_stores() -> None:
    backend = InMemoryPasswordBackend()
    key = Fernet.generate_key()
    CredentialStore(backend=backend, encryption_key=key, environ={}).set_credential(VALID_KEY)

    reader = CredentialStore(backend=backend, encryption_key=key, environ={})

    assert backend.usernames(KEYRING_SERVICE) == ["claude"]
    assert reader.get_credential() == VALID_KEY


def test_providers_are_stored_under_separate_entries() -> None:
    backend = InMemoryPasswordBackend()
    CredentialStore(backend=backend, provider="claude", environ={}).set_credential(VALID_KEY)

    other = CredentialStore(backend=backend, provider="local", environ={})

    assert other.get_credential() is None


def test_invalid_key_is_not_stored() -> None:
    backend = InMemoryPasswordBackend()
    store = _store(backend)

    outcome = store.set_credential("not-a-key")

    assert not outcome.is_valid
    assert backend.usernames(KEYRING_SERVICE) == []
    assert not store.has_credential()


def test_tampered_record_is_rejected() -> None:
    backend = InMemoryPasswordBackend()
    logger = RecordingLogger()
    store = _store(backend, logger=logger)
    store.set_credential(VALID_KEY)

    sealed = backend.get_password(KEYRING_SERVICE, "claude")
    assert sealed is not None
    flipped = "A" if sealed[-5] != "A" else "B"
    backend.set_password(KEYRING_SERVICE, "claude", sealed[:-5] + flipped + sealed[-4:])

    assert store.get_credential() is None
    assert ("credential_integrity_check_failed", {"reason": "bad_token"}) in logger.events


def test_record_sealed_with_other_key_is_rejected() -> None:
    backend = InMemoryPasswordBackend()
    _store(backend).set_credential(VALID_KEY)

    other = CredentialStore(backend=backend, encryption_key=Fernet.generate_key(), environ={})

    assert other.get_credential() is None


def test_record_without_sealing_key_is_rejected() -> None:
    backend = InMemoryPasswordBackend()
    logger = RecordingLogger()
    _store(backend).set_credential(VALID_KEY)
    backend.delete_password(KEYRING_SERVICE, "claude.fernet-key")

    assert _store(backend, logger=logger).get_credential() is None
    assert ("credential_integrity_check_failed", {"reason": "no_key"}) in logger.events


def test_environment_fallback_when_nothing_stored() -> None:
    store = _store(environ={"ANTHROPIC_API_KEY": "  sk-from-environment  "})

    assert store.get_credential() == "sk-from-environment"


def test_stored_credential_wins_over_environment() -> None:
    store = _store(environ={"ANTHROPIC_API_KEY": "sk-from-environment"})
    store.set_credential(VALID_KEY)

    assert store.get_credential() == VALID_KEY


def test_unavailable_keyring_falls_back_to_environment() -> None:
    logger = RecordingLogger()
    store = CredentialStore(
        backend=_UnavailableKeyring(),
        environ={"ANTHROPIC_API_KEY": "sk-from-environment"},
        logger=logger,
    )

    assert store.get_credential() == "sk-from-environment"
    outcome = store.set_credential(VALID_KEY)
    assert not outcome.is_valid
    assert outcome.message.startswith("Credential backend unavailable")
    assert [event for event, _ in logger.events] == [
        "credential_backend_unavailable",
        "credential_store_failed",
    ]


def test_clear_removes_record_and_sealing_key() -> None:
    backend = InMemoryPasswordBackend()
    store = _store(backend)
    store.set_credential(VALID_KEY)

    store.clear_credential()
    store.clear_credential()

    assert backend.usernames(KEYRING_SERVICE) == []
    assert store.get_credential() is None


def test_credential_value_never_logged() -> None:
    logger = RecordingLogger()
    store = _store(logger=logger)

    store.set_credential(VALID_KEY)
    store.get_credential()
    store.clear_credential()

    assert [event for event, _ in logger.events] == ["credential_stored", "credential_cleared"]
    assert VALID_KEY not in repr(logger.events)


def test_blank_provider_is_refused() -> None:
    with pytest.raises(ValueError, match="provider"):
        CredentialStore(backend=InMemoryPasswordBackend(), provider="  ")

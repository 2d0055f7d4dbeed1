"""
docgen-orchestrator — public security utilities

File: src/docgen_orchestrator/security/__init__.py
Last updated: 2026-02-13

Purpose
- Keyring-backed credential storage and format validation for the provider API key.
"""

from docgen_orchestrator.security.credentials import (
    CredentialStore,
    CredentialValidation,
    InMemoryPasswordBackend,
    PasswordBackend,
    validate_api_key,
)

__all__ = [
    "CredentialStore",
    "CredentialValidation",
    "InMemoryPasswordBackend",
    "PasswordBackend",
    "validate_api_key",
]

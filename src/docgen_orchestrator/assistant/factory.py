"""Construct a fully wired ``DocumentationAssistant`` from an effective config mapping."""

from __future__ import annotations

import os
from collections.abc import Mapping
from datetime import timedelta
from pathlib import Path
from typing import Any

from docgen_orchestrator.assistant.orchestrator import DocumentationAssistant
from docgen_orchestrator.assistant.statistics import UsageTracker
from docgen_orchestrator.config.schema import default_config
from docgen_orchestrator.conversation.manager import ConversationConfig, ConversationManager
from docgen_orchestrator.domain.models import GenerationConfig
from docgen_orchestrator.fallback.manager import FallbackConfig, OfflineFallbackManager
from docgen_orchestrator.fallback.templates import TemplateLibrary
from docgen_orchestrator.providers.base import ProviderProtocol, ProviderRegistry
from docgen_orchestrator.providers.claude import ClaudeProvider
from docgen_orchestrator.providers.rate_limit import RateLimiter
from docgen_orchestrator.providers.transport import Transport
from docgen_orchestrator.security.credentials import CredentialStore, PasswordBackend


def generation_config_from(config: Mapping[str, Any]) -> GenerationConfig:
    provider = config["provider"]
    return GenerationConfig(
        model=provider["model"],
        max_tokens=provider["max_tokens"],
        temperature=provider["temperature"],
        timeout_seconds=provider["timeout_seconds"],
        max_retries=provider["max_retries"],
    )


def build_provider_registry(
    config: Mapping[str, Any],
    *,
    credentials: CredentialStore,
    transport: Transport | None = None,
) -> ProviderRegistry:
    provider_cfg = config["provider"]
    limits = config["rate_limit"]

    def claude() -> ProviderProtocol:
        return ClaudeProvider(
            credentials=credentials,
            transport=transport,
            rate_limiter=RateLimiter(
                requests_per_window=limits["requests_per_minute"],
                tokens_per_window=limits["tokens_per_minute"],
                max_wait_seconds=limits["max_wait_seconds"],
            ),
            api_url=provider_cfg["api_url"],
            api_version=provider_cfg["api_version"],
            default_model=provider_cfg["model"],
            retry_base_delay_seconds=provider_cfg["retry_base_delay_seconds"],
            retry_max_delay_seconds=provider_cfg["retry_max_delay_seconds"],
        )

    registry = ProviderRegistry()
    registry.register("claude", claude)
    return registry


def build_assistant(
    config: Mapping[str, Any] | None = None,
    *,
    transport: Transport | None = None,
    credential_backend: PasswordBackend | None = None,
    environ: Mapping[str, str] | None = None,
    template_library: TemplateLibrary | None = None,
    logger: Any | None = None,
) -> DocumentationAssistant:
    """Wire every component from ``config`` (defaults when omitted).

    ``transport``, ``credential_backend``, ``environ`` and ``template_library`` are
    injection points for tests and embedding applications. Without a
    ``credential_backend`` the API key is read from the OS keychain via ``keyring``.
    """

    effective = config if config is not None else default_config()
    provider_cfg = effective["provider"]
    conversations_cfg = effective["conversations"]
    fallback_cfg = effective["fallback"]

    credentials = CredentialStore(
        backend=credential_backend,
        provider=provider_cfg["name"],
        env_var=provider_cfg["api_key_env"],
        environ=environ if environ is not None else os.environ,
    )
    registry = build_provider_registry(effective, credentials=credentials, transport=transport)
    provider = registry.create(provider_cfg["name"])

    conversations = ConversationManager(
        max_conversations=conversations_cfg["max_conversations"],
        eviction_batch=conversations_cfg["eviction_batch"],
        default_config=ConversationConfig(
            max_messages=conversations_cfg["max_messages"],
            max_tokens_per_message=conversations_cfg["max_tokens_per_message"],
            inactivity_timeout=timedelta(minutes=conversations_cfg["inactivity_timeout_minutes"]),
        ),
        sweep_interval=timedelta(minutes=conversations_cfg["sweep_interval_minutes"]),
    )
    fallback = OfflineFallbackManager(
        config=FallbackConfig(
            cache_reads=fallback_cfg["cache_reads"],
            cache_generated_content=fallback_cfg["cache_generated_content"],
            max_cache_entries=fallback_cfg["max_cache_entries"],
            cache_path=Path(fallback_cfg["cache_path"]),
        ),
        library=template_library,
    )

    return DocumentationAssistant(
        provider=provider,
        conversations=conversations,
        fallback=fallback,
        usage=UsageTracker(),
        default_configuration=generation_config_from(effective),
        auto_fallback=fallback_cfg["auto_activate"],
        failure_threshold=fallback_cfg["failure_threshold"],
        logger=logger,
    )


__all__ = ["build_assistant", "build_provider_registry", "generation_config_from"]

"""
docgen-orchestrator — documentation assistant

File: src/docgen_orchestrator/assistant/orchestrator.py
Last updated: 2026-02-13

Purpose
- Compose prompt building, the provider client, content validation, conversation
  state, offline fallback and usage statistics into one generation pipeline.

What should be included in this file
- ``generate_content``, ``enhance_content``, ``analyze_project`` and
  ``generate_suggestions``, all funnelled through a single ``_run`` pipeline that is
  parameterized only by prompt construction and post-processing.
- Content validation of every live success; analysis and suggestions are scored against
  the general product description rules.
- Offline deferral when fallback mode is active, and automatic activation after
  consecutive transient failures when enabled.
- A caller deadline covering the whole live call.

Functional requirements
- Expected failures come back as failed ``OperationResult`` values, never exceptions.
- Post-processing can only lower confidence.
- Cancellation of the caller propagates; it is never converted into a result.

Non-functional requirements
- Holds no long-lived state besides references to its collaborators and counters.
"""

from __future__ import annotations

import asyncio
import functools
import time
import uuid
from collections.abc import Awaitable, Callable
from types import TracebackType
from typing import Any, Final

import structlog

from docgen_orchestrator.assistant.statistics import UsageStatistics, UsageTracker
from docgen_orchestrator.conversation.manager import ConversationManager, MessageRole
from docgen_orchestrator.domain.models import (
    EnhancementRequest,
    EnhancementType,
    ErrorKind,
    GenerationConfig,
    GenerationRequest,
    OperationResult,
    ProjectContext,
    ResultSource,
    SectionKind,
    SuggestionType,
)
from docgen_orchestrator.fallback.manager import OfflineFallbackManager
from docgen_orchestrator.observability.logging import correlation_scope
from docgen_orchestrator.prompts.optimizer import OptimizationGoal, PromptOptimizer
from docgen_orchestrator.prompts.sections import (
    build_analysis_prompt,
    build_enhancement_prompt,
    build_generation_prompt,
    build_suggestion_prompt,
    suggestion_category,
)
from docgen_orchestrator.providers.base import (
    ChatMessage,
    ProgressCallback,
    ProviderProtocol,
    ProviderRequest,
)
from docgen_orchestrator.validation.validator import ContentValidator, count_words

VALIDATION_PENALTY: Final[float] = 0.7
WORD_TARGET_PENALTY: Final[float] = 0.8
LENGTH_DIRECTION_PENALTY: Final[float] = 0.7
WORD_TARGET_TOLERANCE: Final[float] = 0.5
DEADLINE_EXCEEDED_MESSAGE: Final[str] = "Generation deadline exceeded"

FALLBACK_TRIGGER_KINDS: Final[frozenset[ErrorKind]] = frozenset(
    {
        ErrorKind.RATE_LIMIT_ERROR,
        ErrorKind.HTTP_ERROR,
        ErrorKind.SERVER_ERROR,
        ErrorKind.TIMEOUT,
        ErrorKind.OVERLOADED_ERROR,
    }
)

OfflineHandler = Callable[[], Awaitable[OperationResult]]
PostProcessor = Callable[[OperationResult], OperationResult]


class DocumentationAssistant:
    """Single generation pipeline shared by every assistant operation."""

    def __init__(
        self,
        *,
        provider: ProviderProtocol,
        conversations: ConversationManager | None = None,
        validator: ContentValidator | None = None,
        fallback: OfflineFallbackManager | None = None,
        optimizer: PromptOptimizer | None = None,
        usage: UsageTracker | None = None,
        default_configuration: GenerationConfig | None = None,
        auto_fallback: bool = False,
        failure_threshold: int = 1,
        monotonic: Callable[[], float] = time.perf_counter,
        logger: Any | None = None,
    ) -> None:
        if failure_threshold <= 0:
            raise ValueError("failure_threshold must be > 0")
        self._provider = provider
        self._conversations = conversations if conversations is not None else ConversationManager()
        self._validator = validator if validator is not None else ContentValidator()
        self._fallback = fallback
        self._optimizer = optimizer if optimizer is not None else PromptOptimizer()
        self._usage = usage if usage is not None else UsageTracker()
        self._default_configuration = (
            default_configuration if default_configuration is not None else GenerationConfig()
        )
        self._auto_fallback = auto_fallback
        self._failure_threshold = failure_threshold
        self._consecutive_failures = 0
        self._monotonic = monotonic
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    @property
    def conversations(self) -> ConversationManager:
        return self._conversations

    @property
    def fallback(self) -> OfflineFallbackManager | None:
        return self._fallback

    @property
    def default_configuration(self) -> GenerationConfig:
        return self._default_configuration

    @property
    def is_fallback_mode(self) -> bool:
        return self._fallback is not None and self._fallback.is_fallback_mode

    async def __aenter__(self) -> DocumentationAssistant:
        self._conversations.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def generate_content(
        self,
        request: GenerationRequest,
        *,
        deadline_seconds: float | None = None,
        progress: ProgressCallback | None = None,
    ) -> OperationResult:
        problems = _request_problems(request.prompt, request.configuration, "Prompt")
        if problems:
            return self._reject(problems, operation="generate_content", request=request)

        conversation_context = ""
        system_prompt = ""
        if request.conversation_id:
            conversation_context = await self._conversations.get_conversation_context(
                request.conversation_id
            )
            system_prompt = await self._conversations.get_system_prompt(request.conversation_id)

        prompt = build_generation_prompt(
            request.prompt,
            request.section_kind,
            request.project_context,
            conversation_context,
        )
        offline: OfflineHandler | None = None
        if self._fallback is not None:
            offline = functools.partial(self._fallback.generate_offline_content, request)

        result = await self._run(
            "generate_content",
            prompt,
            configuration=request.configuration,
            section_kind=request.section_kind,
            validate_as=request.section_kind or SectionKind.GENERAL_PRODUCT_DESCRIPTION,
            system=system_prompt,
            deadline_seconds=deadline_seconds,
            progress=progress,
            offline=offline,
            post=None,
        )

        if result.success and result.metadata.get("source") == ResultSource.LIVE.value:
            if self._fallback is not None:
                await self._fallback.cache_response(request, result)
        if result.success and request.conversation_id:
            await self._record_turn(request.conversation_id, request.prompt, result.content)
        return result

    async def enhance_content(
        self,
        request: EnhancementRequest,
        *,
        deadline_seconds: float | None = None,
        progress: ProgressCallback | None = None,
    ) -> OperationResult:
        problems = _request_problems(request.content, request.configuration, "Content")
        if problems:
            return self._reject(problems, operation="enhance_content", request=None)

        original_words = count_words(request.content)

        def post(result: OperationResult) -> OperationResult:
            enhanced_words = count_words(result.content)
            result = result.with_metadata(
                enhancement_type=request.enhancement_type.value,
                original_word_count=original_words,
                enhanced_word_count=enhanced_words,
            )
            target = request.target_word_count
            if target and abs(enhanced_words - target) / target > WORD_TARGET_TOLERANCE:
                result = result.with_confidence_penalty(
                    WORD_TARGET_PENALTY, word_target_missed=True
                )
            if (
                request.enhancement_type is EnhancementType.SUMMARIZE
                and enhanced_words >= original_words
            ):
                result = result.with_confidence_penalty(
                    LENGTH_DIRECTION_PENALTY, length_direction_unexpected=True
                )
            if (
                request.enhancement_type is EnhancementType.EXPAND
                and enhanced_words <= original_words
            ):
                result = result.with_confidence_penalty(
                    LENGTH_DIRECTION_PENALTY, length_direction_unexpected=True
                )
            return result

        # Enhancement has no offline form; it always takes the live path.
        return await self._run(
            "enhance_content",
            build_enhancement_prompt(request),
            configuration=request.configuration,
            section_kind=request.section_kind,
            validate_as=request.section_kind or SectionKind.GENERAL_PRODUCT_DESCRIPTION,
            deadline_seconds=deadline_seconds,
            progress=progress,
            offline=None,
            post=post,
        )

    async def analyze_project(
        self,
        context: ProjectContext,
        *,
        configuration: GenerationConfig | None = None,
        deadline_seconds: float | None = None,
    ) -> OperationResult:
        config = configuration if configuration is not None else self._default_configuration

        offline: OfflineHandler | None = None
        if self._fallback is not None:
            offline = functools.partial(self._fallback.analyze_project_offline, context)

        result = await self._run(
            "analyze_project",
            build_analysis_prompt(context),
            configuration=config,
            section_kind=None,
            validate_as=SectionKind.GENERAL_PRODUCT_DESCRIPTION,
            deadline_seconds=deadline_seconds,
            offline=offline,
            post=lambda live: live.with_metadata(analysis_type="project_analysis"),
        )
        if result.success:
            result = result.with_metadata(project_name=context.project_name)
        return result

    async def generate_suggestions(
        self,
        context: ProjectContext,
        suggestion_type: SuggestionType,
        *,
        configuration: GenerationConfig | None = None,
        deadline_seconds: float | None = None,
    ) -> OperationResult:
        config = configuration if configuration is not None else self._default_configuration

        offline: OfflineHandler | None = None
        if self._fallback is not None:
            offline = functools.partial(
                self._fallback.get_offline_suggestions, suggestion_type
            )

        result = await self._run(
            "generate_suggestions",
            build_suggestion_prompt(suggestion_type, context),
            configuration=config,
            section_kind=None,
            validate_as=SectionKind.GENERAL_PRODUCT_DESCRIPTION,
            deadline_seconds=deadline_seconds,
            offline=offline,
            post=None,
        )
        if result.success:
            result = result.with_metadata(
                suggestion_type=suggestion_type.value,
                suggestion_category=suggestion_category(suggestion_type),
            )
        return result

    async def start_conversation(
        self, owner_id: str | None = None, initial_context: str | None = None
    ) -> str:
        return await self._conversations.start_conversation(owner_id, initial_context)

    async def end_conversation(self, conversation_id: str, preserve: bool = False) -> bool:
        return await self._conversations.end_conversation(conversation_id, preserve)

    async def activate_fallback(self, reason: str = "Manually activated") -> bool:
        if self._fallback is None:
            return False
        return await self._fallback.activate(reason)

    async def deactivate_fallback(self) -> bool:
        if self._fallback is None:
            return False
        self._consecutive_failures = 0
        return await self._fallback.deactivate()

    async def test_connection(self) -> OperationResult:
        """Ask the provider for a minimal reply; a success ends fallback mode."""

        result = await self._provider.test_connection()
        self._logger.info(
            "connection_tested",
            success=result.success,
            error_kind=result.error_kind.value if result.error_kind else None,
        )
        if result.success:
            self._consecutive_failures = 0
            if self.is_fallback_mode:
                await self.deactivate_fallback()
        return result

    def statistics(self) -> UsageStatistics:
        return self._usage.snapshot()

    def reset_statistics(self) -> None:
        self._usage.reset()
        self._logger.info("usage_statistics_reset")

    def status(self) -> dict[str, object]:
        capabilities = self._provider.capabilities()
        return {
            "provider": capabilities.name,
            "models": list(capabilities.models),
            "default_model": self._default_configuration.model,
            "fallback": self._fallback.status().to_dict() if self._fallback else None,
            "auto_fallback": self._auto_fallback,
            "consecutive_failures": self._consecutive_failures,
            "active_conversations": self._conversations.active_count,
            "usage": self._usage.snapshot().to_dict(),
        }

    async def aclose(self) -> None:
        await self._conversations.stop()
        if self._fallback is not None:
            await self._fallback.save_cache()
        close = getattr(self._provider, "aclose", None)
        if close is not None:
            await close()

    async def _run(
        self,
        operation: str,
        prompt: str,
        *,
        configuration: GenerationConfig,
        section_kind: SectionKind | None,
        validate_as: SectionKind,
        system: str = "",
        deadline_seconds: float | None = None,
        progress: ProgressCallback | None = None,
        offline: OfflineHandler | None,
        post: PostProcessor | None,
    ) -> OperationResult:
        started = self._monotonic()
        request_id = uuid.uuid4().hex[:12]
        with correlation_scope(request_id=request_id):
            if offline is not None and self.is_fallback_mode:
                result = await offline()
                return self._finish(operation, result, section_kind, started)

            optimized = self._optimizer.optimize(
                prompt, OptimizationGoal.TOKEN_REDUCTION, target_tokens=configuration.max_tokens
            )
            provider_request = ProviderRequest(
                model=configuration.model,
                messages=(ChatMessage(role=MessageRole.USER.value, content=optimized),),
                max_tokens=configuration.max_tokens,
                temperature=configuration.temperature,
                system=system,
                timeout_seconds=configuration.timeout_seconds,
                max_retries=configuration.max_retries,
            )
            self._logger.info(
                "assistant_operation_started",
                operation=operation,
                section_kind=section_kind.value if section_kind else None,
                prompt_chars=len(prompt),
                optimized_chars=len(optimized),
            )

            result = await self._send(provider_request, deadline_seconds, progress)

            if result.success:
                self._consecutive_failures = 0
                result = self._apply_validation(result, validate_as)
                if post is not None:
                    result = post(result)
                return self._finish(operation, result, section_kind, started)

            if result.error_kind in FALLBACK_TRIGGER_KINDS and not result.metadata.get(
                "deadline_exceeded"
            ):
                self._consecutive_failures += 1
                if (
                    offline is not None
                    and self._fallback is not None
                    and self._auto_fallback
                    and self._consecutive_failures >= self._failure_threshold
                ):
                    activated = await self._fallback.activate(result.error_message)
                    if activated:
                        offline_result = await offline()
                        offline_result = offline_result.with_metadata(
                            fallback_reason=result.error_message,
                            live_error_kind=(
                                result.error_kind.value if result.error_kind else None
                            ),
                        )
                        return self._finish(operation, offline_result, section_kind, started)
            return self._finish(operation, result, section_kind, started)

    async def _send(
        self,
        request: ProviderRequest,
        deadline_seconds: float | None,
        progress: ProgressCallback | None,
    ) -> OperationResult:
        try:
            if deadline_seconds is None:
                return await self._provider.send(request, progress=progress)
            async with asyncio.timeout(deadline_seconds):
                return await self._provider.send(request, progress=progress)
        except TimeoutError:
            self._logger.warning("assistant_deadline_exceeded", deadline_seconds=deadline_seconds)
            return OperationResult.failure(
                ErrorKind.TIMEOUT,
                DEADLINE_EXCEEDED_MESSAGE,
                metadata={"deadline_exceeded": True, "deadline_seconds": deadline_seconds},
            )
        except Exception as exc:  # noqa: BLE001 - provider boundary normalization.
            self._logger.exception("assistant_provider_crashed", exc_type=type(exc).__name__)
            return OperationResult.failure(
                ErrorKind.CLIENT_ERROR, f"Unexpected error: {type(exc).__name__}: {exc}"
            )

    def _apply_validation(self, result: OperationResult, section: SectionKind) -> OperationResult:
        validation = self._validator.validate(result.content, section)
        result = result.with_metadata(
            validation_score=round(validation.overall_score, 4),
            validation_valid=validation.is_valid,
        )
        if validation.is_valid:
            return result
        return result.with_confidence_penalty(
            VALIDATION_PENALTY,
            validation_issues=[issue.message for issue in validation.issues],
        )

    async def _record_turn(self, conversation_id: str, prompt: str, content: str) -> None:
        stored = await self._conversations.add_exchange(conversation_id, prompt, content)
        if not stored:
            self._logger.warning("conversation_turn_not_recorded", conversation_id=conversation_id)

    def _reject(
        self,
        problems: tuple[str, ...],
        *,
        operation: str,
        request: GenerationRequest | None,
    ) -> OperationResult:
        result = OperationResult.failure(ErrorKind.VALIDATION_ERROR, "; ".join(problems))
        section = request.section_kind if request is not None else None
        self._usage.record(result, operation=operation, section_kind=section)
        self._logger.warning("assistant_request_rejected", operation=operation, problems=problems)
        return result

    def _finish(
        self,
        operation: str,
        result: OperationResult,
        section_kind: SectionKind | None,
        started: float,
    ) -> OperationResult:
        result = result.with_processing_time(self._monotonic() - started)
        self._usage.record(result, operation=operation, section_kind=section_kind)
        self._logger.info(
            "assistant_operation_finished",
            operation=operation,
            success=result.success,
            provider=result.provider.value,
            error_kind=result.error_kind.value if result.error_kind else None,
            confidence=round(result.confidence, 4),
            tokens_used=result.tokens_used,
        )
        return result


def _request_problems(
    text: str, configuration: GenerationConfig, label: str
) -> tuple[str, ...]:
    if not text or not text.strip():
        return (f"{label} cannot be empty",)
    config_problems = configuration.problems()
    if config_problems:
        return (f"Invalid configuration: {', '.join(config_problems)}",)
    return ()


__all__ = [
    "DEADLINE_EXCEEDED_MESSAGE",
    "FALLBACK_TRIGGER_KINDS",
    "DocumentationAssistant",
]

"""Command-line interface router for docgen-orchestrator."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
import uuid
from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Final

from docgen_orchestrator.assistant import (
    DocumentationAssistant,
    build_assistant,
    generation_config_from,
)
from docgen_orchestrator.config import (
    ConfigLoadError,
    ConfigValidationError,
    effective_config,
    load_config,
)
from docgen_orchestrator.domain.models import (
    ErrorKind,
    GenerationRequest,
    OperationResult,
    ProjectContext,
    SectionKind,
    SuggestionType,
)
from docgen_orchestrator.observability.logging import (
    configure_structlog,
    setup_logging,
    shutdown_logging,
)
from docgen_orchestrator.ui.render import CLIRenderer, create_renderer
from docgen_orchestrator.validation.rules import section_label
from docgen_orchestrator.validation.validator import ContentValidator

EXIT_SUCCESS: Final[int] = 0
EXIT_GENERATION_FAILED: Final[int] = 1
EXIT_CONFIG_ERROR: Final[int] = 2
EXIT_PROVIDER_ERROR: Final[int] = 3

OFFLINE_REQUEST_REASON: Final[str] = "Offline mode requested"

# Failures the caller caused or that never reached the provider.
_LOCAL_FAILURE_KINDS: Final[frozenset[ErrorKind]] = frozenset(
    {ErrorKind.VALIDATION_ERROR, ErrorKind.CLIENT_ERROR}
)


@dataclass(frozen=True, slots=True)
class CLIError(RuntimeError):
    """Typed CLI failure with an explicit process exit code."""

    message: str
    exit_code: int = EXIT_GENERATION_FAILED

    def __str__(self) -> str:
        return self.message


AssistantFactory = Callable[[Mapping[str, Any]], DocumentationAssistant]


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse command router for all supported CLI workflows."""

    parser = argparse.ArgumentParser(
        prog="docgen",
        description=(
            "docgen-orchestrator: resilient LLM documentation generation.\n\n"
            "Common workflows:\n"
            "  docgen generate \"Describe the save system\" --section data_model\n"
            "  docgen validate docs/architecture.md --section system_architecture\n"
            "  docgen offline user_stories --project-name Demo\n"
            "  docgen check                 Test the provider connection\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--config",
        dest="config_path",
        default=None,
        help="Path to docgen TOML config (default: ./docgen.toml if present).",
    )
    common.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        default=False,
        help="Show detailed output and write structured logs.",
    )
    common.add_argument("--json", action="store_true", help="Emit deterministic JSON output")

    section_choices = [kind.value for kind in SectionKind]
    subparsers = parser.add_subparsers(dest="command", required=True)

    # generate ------------------------------------------------------------
    generate_parser = subparsers.add_parser(
        "generate",
        parents=[common],
        help="Generate documentation content",
        description=(
            "Generate content for a prompt, optionally as a documentation section.\n\n"
            "Examples:\n"
            "  docgen generate \"Summarize the inventory system\"\n"
            "  docgen generate \"Focus on networking\" --section system_architecture\n"
            "  docgen generate \"Outline the API\" --offline\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    generate_parser.add_argument("prompt", help="Prompt or additional instructions")
    generate_parser.add_argument("--section", choices=section_choices, default=None)
    generate_parser.add_argument("--project-name", default="", help="Project name for context")
    generate_parser.add_argument(
        "--offline", action="store_true", help="Serve from templates and cache only"
    )
    generate_parser.add_argument(
        "--deadline",
        type=float,
        default=None,
        metavar="SECONDS",
        help="Upper bound for the whole call, retries included",
    )
    generate_parser.set_defaults(handler=_cmd_generate)

    # validate ------------------------------------------------------------
    validate_parser = subparsers.add_parser(
        "validate",
        parents=[common],
        help="Validate an existing document offline",
    )
    validate_parser.add_argument("file", help="Markdown or text file to validate")
    validate_parser.add_argument("--section", choices=section_choices, default=None)
    validate_parser.set_defaults(handler=_cmd_validate)

    # offline -------------------------------------------------------------
    offline_parser = subparsers.add_parser(
        "offline",
        parents=[common],
        help="Render a section from the offline templates (no network)",
    )
    offline_parser.add_argument("section", choices=section_choices)
    offline_parser.add_argument("--project-name", default="", help="Project name for context")
    offline_parser.set_defaults(handler=_cmd_offline)

    # suggest -------------------------------------------------------------
    suggest_parser = subparsers.add_parser(
        "suggest",
        parents=[common],
        help="Suggest project improvements",
    )
    suggest_parser.add_argument("type", choices=[kind.value for kind in SuggestionType])
    suggest_parser.add_argument("--project-name", default="", help="Project name for context")
    suggest_parser.add_argument(
        "--offline", action="store_true", help="Use the built-in suggestion lists"
    )
    suggest_parser.set_defaults(handler=_cmd_suggest)

    # check ---------------------------------------------------------------
    check_parser = subparsers.add_parser(
        "check",
        parents=[common],
        help="Test the connection to the provider",
    )
    check_parser.set_defaults(handler=_cmd_check)

    # config --------------------------------------------------------------
    config_parser = subparsers.add_parser(
        "config",
        parents=[common],
        help="Show effective configuration (redacted)",
        description=(
            "Display the effective config after merging defaults, file and env.\n"
            "Sensitive values are redacted.\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    config_parser.set_defaults(handler=_cmd_config)

    return parser


def run_cli(
    argv: Sequence[str] | None = None,
    *,
    assistant_factory: AssistantFactory | None = None,
) -> int:
    """Parse argv, route to a command handler, and return process exit code."""

    parser = build_parser()
    namespace = parser.parse_args(list(argv) if argv is not None else None)
    handler = getattr(namespace, "handler", None)
    if not callable(handler):
        parser.print_help(sys.stderr)
        return EXIT_CONFIG_ERROR
    namespace.assistant_factory = (
        assistant_factory if assistant_factory is not None else build_assistant
    )

    try:
        result = handler(namespace)
    except CLIError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return exc.exit_code
    return int(result)


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


def _cmd_generate(args: argparse.Namespace) -> int:
    config = _load_effective_config(args)
    section = SectionKind(args.section) if args.section else None
    request = GenerationRequest(
        prompt=args.prompt,
        section_kind=section,
        project_context=ProjectContext(project_name=args.project_name),
        configuration=generation_config_from(config),
    )

    async def operation(assistant: DocumentationAssistant) -> OperationResult:
        if args.offline:
            await assistant.activate_fallback(OFFLINE_REQUEST_REASON)
        return await assistant.generate_content(request, deadline_seconds=args.deadline)

    result = _run_with_assistant(args, config, operation)
    return _emit_result(args, "generate", result)


def _cmd_validate(args: argparse.Namespace) -> int:
    path = Path(args.file).expanduser()
    try:
        content = path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise CLIError(f"file not found: {path}", exit_code=EXIT_CONFIG_ERROR) from exc
    except (OSError, UnicodeDecodeError) as exc:
        raise CLIError(f"unable to read {path}: {exc}", exit_code=EXIT_CONFIG_ERROR) from exc

    configure_structlog()
    section = SectionKind(args.section) if args.section else None
    report = ContentValidator().validate(content, section)

    if _flag(args, "json"):
        _emit_json(
            {
                "command": "validate",
                "file": path.as_posix(),
                "section": section.value if section else None,
                "report": report.to_dict(),
            }
        )
    else:
        renderer = _get_renderer(args)
        renderer.heading(f"{section_label(section) if section else 'General'}: {path}")
        renderer.validation(report)
    return EXIT_SUCCESS if report.is_valid else EXIT_GENERATION_FAILED


def _cmd_offline(args: argparse.Namespace) -> int:
    config = _load_effective_config(args)
    section = SectionKind(args.section)
    request = GenerationRequest(
        prompt=f"Generate the {section_label(section)} section",
        section_kind=section,
        project_context=ProjectContext(project_name=args.project_name),
        configuration=generation_config_from(config),
    )

    async def operation(assistant: DocumentationAssistant) -> OperationResult:
        await assistant.activate_fallback(OFFLINE_REQUEST_REASON)
        return await assistant.generate_content(request)

    result = _run_with_assistant(args, config, operation)
    return _emit_result(args, "offline", result)


def _cmd_suggest(args: argparse.Namespace) -> int:
    config = _load_effective_config(args)
    suggestion_type = SuggestionType(args.type)
    context = ProjectContext(project_name=args.project_name)

    async def operation(assistant: DocumentationAssistant) -> OperationResult:
        if args.offline:
            await assistant.activate_fallback(OFFLINE_REQUEST_REASON)
        return await assistant.generate_suggestions(context, suggestion_type)

    result = _run_with_assistant(args, config, operation)
    return _emit_result(args, "suggest", result)


def _cmd_check(args: argparse.Namespace) -> int:
    config = _load_effective_config(args)

    async def operation(assistant: DocumentationAssistant) -> OperationResult:
        return await assistant.test_connection()

    result = _run_with_assistant(args, config, operation)
    if _flag(args, "json"):
        _emit_json({"command": "check", "result": result.to_dict()})
    else:
        renderer = _get_renderer(args)
        if result.success:
            renderer.ok(f"provider reachable ({config['provider']['model']})")
        else:
            renderer.result(result)
    return _exit_code_for(result)


def _cmd_config(args: argparse.Namespace) -> int:
    config = _load_effective_config(args)
    redacted = effective_config(config)

    if _flag(args, "json"):
        _emit_json({"command": "config", "config": redacted})
        return EXIT_SUCCESS

    renderer = _get_renderer(args)
    renderer.text(json.dumps(redacted, indent=2, sort_keys=True, ensure_ascii=False))
    return EXIT_SUCCESS


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run_with_assistant(
    args: argparse.Namespace,
    config: Mapping[str, Any],
    operation: Callable[[DocumentationAssistant], Awaitable[OperationResult]],
) -> OperationResult:
    factory: AssistantFactory = args.assistant_factory

    async def runner() -> OperationResult:
        async with factory(config) as assistant:
            return await operation(assistant)

    configure_structlog()
    if not _flag(args, "verbose"):
        return asyncio.run(runner())

    setup_logging(config["observability"], run_id=uuid.uuid4().hex[:12])
    try:
        return asyncio.run(runner())
    finally:
        shutdown_logging()


def _emit_result(args: argparse.Namespace, command: str, result: OperationResult) -> int:
    if _flag(args, "json"):
        _emit_json({"command": command, "result": result.to_dict()})
    else:
        _get_renderer(args).result(result)
    return _exit_code_for(result)


def _exit_code_for(result: OperationResult) -> int:
    if result.success:
        return EXIT_SUCCESS
    if result.error_kind is None or result.error_kind in _LOCAL_FAILURE_KINDS:
        return EXIT_GENERATION_FAILED
    return EXIT_PROVIDER_ERROR


def _emit_json(payload: Mapping[str, object]) -> None:
    """Emit a JSON payload to stdout with deterministic formatting."""

    print(
        json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str)
    )


def _get_renderer(args: argparse.Namespace) -> CLIRenderer:
    return create_renderer(verbose=_flag(args, "verbose"))


def _load_effective_config(args: argparse.Namespace) -> dict[str, Any]:
    config_path = getattr(args, "config_path", None)
    try:
        return load_config(config_path)
    except (ConfigLoadError, ConfigValidationError) as exc:
        raise CLIError(str(exc), exit_code=EXIT_CONFIG_ERROR) from exc


def _flag(args: argparse.Namespace, name: str) -> bool:
    return bool(getattr(args, name, False))


__all__ = ["CLIError", "build_parser", "run_cli"]

"""Stable constants shared across the orchestrator components."""

from __future__ import annotations

from pathlib import PurePosixPath
from typing import Final

# Schema version for the configuration file.
CONFIG_SCHEMA_VERSION: Final[int] = 1

# Upstream text-generation API wire defaults.
DEFAULT_API_URL: Final[str] = "https://api.anthropic.com/v1/messages"
DEFAULT_API_VERSION: Final[str] = "2023-06-01"
DEFAULT_API_KEY_ENV: Final[str] = "ANTHROPIC_API_KEY"

MODEL_HAIKU: Final[str] = "claude-3-haiku-20240307"
MODEL_SONNET: Final[str] = "claude-3-sonnet-20240229"
MODEL_OPUS: Final[str] = "claude-3-opus-20240229"
MODEL_SONNET_35: Final[str] = "claude-3-5-sonnet-20240620"
DEFAULT_MODEL: Final[str] = MODEL_SONNET
SUPPORTED_MODELS: Final[tuple[str, ...]] = (MODEL_HAIKU, MODEL_SONNET, MODEL_OPUS, MODEL_SONNET_35)
MODEL_CONTEXT_TOKENS: Final[int] = 200_000

# Request bounds.
MAX_OUTPUT_TOKENS: Final[int] = 4096
DEFAULT_MAX_TOKENS: Final[int] = 2048
DEFAULT_TEMPERATURE: Final[float] = 0.7
DEFAULT_TIMEOUT_SECONDS: Final[float] = 30.0
DEFAULT_MAX_RETRIES: Final[int] = 3
DEFAULT_RETRY_BASE_DELAY_SECONDS: Final[float] = 1.0
DEFAULT_RETRY_MAX_DELAY_SECONDS: Final[float] = 30.0

# Rate-limit window defaults (per minute).
DEFAULT_REQUESTS_PER_MINUTE: Final[int] = 50
DEFAULT_TOKENS_PER_MINUTE: Final[int] = 40_000
RATE_LIMIT_WINDOW_SECONDS: Final[float] = 60.0
DEFAULT_RATE_LIMIT_MAX_WAIT_SECONDS: Final[float] = 60.0

# Characters per token heuristic used for all estimates.
CHARS_PER_TOKEN: Final[int] = 4

# Default runtime paths (relative to the config file unless overridden).
DEFAULT_CACHE_PATH: Final[PurePosixPath] = PurePosixPath(".docgen/offline_cache.json")
DEFAULT_LOG_DIR: Final[PurePosixPath] = PurePosixPath("logs")
DEFAULT_CONFIG_FILENAME: Final[str] = "docgen.toml"
ENV_PREFIX: Final[str] = "DOCGEN_"

# Shown in place of template variables nothing could resolve.
UNRESOLVED_PLACEHOLDER: Final[str] = "[Content to be defined]"

__all__ = [
    "CHARS_PER_TOKEN",
    "CONFIG_SCHEMA_VERSION",
    "DEFAULT_API_KEY_ENV",
    "DEFAULT_API_URL",
    "DEFAULT_API_VERSION",
    "DEFAULT_CACHE_PATH",
    "DEFAULT_CONFIG_FILENAME",
    "DEFAULT_LOG_DIR",
    "DEFAULT_MAX_RETRIES",
    "DEFAULT_MAX_TOKENS",
    "DEFAULT_MODEL",
    "DEFAULT_RATE_LIMIT_MAX_WAIT_SECONDS",
    "DEFAULT_REQUESTS_PER_MINUTE",
    "DEFAULT_RETRY_BASE_DELAY_SECONDS",
    "DEFAULT_RETRY_MAX_DELAY_SECONDS",
    "DEFAULT_TEMPERATURE",
    "DEFAULT_TIMEOUT_SECONDS",
    "DEFAULT_TOKENS_PER_MINUTE",
    "ENV_PREFIX",
    "MAX_OUTPUT_TOKENS",
    "MODEL_CONTEXT_TOKENS",
    "MODEL_HAIKU",
    "MODEL_OPUS",
    "MODEL_SONNET",
    "MODEL_SONNET_35",
    "RATE_LIMIT_WINDOW_SECONDS",
    "SUPPORTED_MODELS",
    "UNRESOLVED_PLACEHOLDER",
]

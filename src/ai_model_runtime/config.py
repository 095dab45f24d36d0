# ai_model_runtime/config.py
from __future__ import annotations

import logging
import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field

load_dotenv()

# Central runtime defaults: each can be overridden by environment variable
DEFAULT_CONTEXT_LIMIT = int(os.getenv("AI_RUNTIME_CONTEXT_LIMIT", "2048"))
DEFAULT_MAX_NEW_TOKENS = int(os.getenv("AI_RUNTIME_MAX_NEW_TOKENS", "512"))
DEFAULT_TEMPERATURE = float(os.getenv("AI_RUNTIME_TEMPERATURE", "0.7"))
DEFAULT_TOP_K = int(os.getenv("AI_RUNTIME_TOP_K", "40"))
DEFAULT_TOP_P = float(os.getenv("AI_RUNTIME_TOP_P", "0.9"))
DEFAULT_MODELS_DIR = os.getenv("AI_RUNTIME_MODELS_DIR", "models")
DEFAULT_THREADS = int(os.getenv("AI_RUNTIME_THREADS", str(min(os.cpu_count() or 1, 4))))
DEFAULT_USE_ACCELERATOR = os.getenv("AI_RUNTIME_USE_ACCELERATOR", "false").lower() in ("1", "true", "yes")
DEFAULT_IDLE_TIMEOUT_SECONDS = float(os.getenv("AI_RUNTIME_IDLE_TIMEOUT_SECONDS", "300"))
DEFAULT_LOG_LEVEL = os.getenv("AI_RUNTIME_LOG_LEVEL", "INFO")


class RuntimeConfig(BaseModel):
    """Runtime-wide settings, passed explicitly to the registry and facade."""

    context_limit: int = Field(default=DEFAULT_CONTEXT_LIMIT, gt=0, description="Tokens per forward window")
    max_new_tokens: int = Field(default=DEFAULT_MAX_NEW_TOKENS, gt=0, description="Default generation budget")
    temperature: float = Field(default=DEFAULT_TEMPERATURE, gt=0.0)
    top_k: int = Field(default=DEFAULT_TOP_K, ge=1)
    top_p: float = Field(default=DEFAULT_TOP_P, gt=0.0, le=1.0)
    models_dir: str = Field(default=DEFAULT_MODELS_DIR, description="Where artifacts are resolved from")
    threads: int = Field(default=DEFAULT_THREADS, ge=1, description="Backend CPU threads")
    use_accelerator: bool = Field(default=DEFAULT_USE_ACCELERATOR, description="Try GPU/NPU delegate first")
    idle_timeout_seconds: float = Field(default=DEFAULT_IDLE_TIMEOUT_SECONDS, gt=0.0)
    log_level: str = Field(default=DEFAULT_LOG_LEVEL)


def configure_logging(level: str | int | None = None) -> logging.Logger:
    """
    Set the level of the ``ai_model_runtime`` logger.

    Handlers are left to the application. ``level`` defaults to
    AI_RUNTIME_LOG_LEVEL; unknown names fall back to INFO.
    """
    if isinstance(level, int):
        resolved = level
    else:
        name = str(level or DEFAULT_LOG_LEVEL).upper()
        resolved = getattr(logging, name, logging.INFO)
        if not isinstance(resolved, int):
            resolved = logging.INFO

    package_logger = logging.getLogger("ai_model_runtime")
    package_logger.setLevel(resolved)
    return package_logger

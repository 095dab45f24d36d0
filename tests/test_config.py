# tests/test_config.py
"""
Tests for runtime configuration and logging setup.
"""

import importlib
import logging

import pytest
from pydantic import ValidationError

from ai_model_runtime import config as config_module
from ai_model_runtime.config import RuntimeConfig, configure_logging


class TestRuntimeConfig:
    def test_defaults_match_module_constants(self):
        cfg = RuntimeConfig()
        assert cfg.context_limit == config_module.DEFAULT_CONTEXT_LIMIT
        assert cfg.max_new_tokens == config_module.DEFAULT_MAX_NEW_TOKENS
        assert cfg.top_k == config_module.DEFAULT_TOP_K
        assert cfg.models_dir == config_module.DEFAULT_MODELS_DIR
        assert cfg.threads >= 1

    @pytest.mark.parametrize(
        "field,value",
        [
            ("context_limit", 0),
            ("max_new_tokens", -1),
            ("temperature", 0.0),
            ("top_k", 0),
            ("top_p", 1.5),
            ("threads", 0),
            ("idle_timeout_seconds", 0),
        ],
    )
    def test_rejects_out_of_range(self, field, value):
        with pytest.raises(ValidationError):
            RuntimeConfig(**{field: value})

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("AI_RUNTIME_CONTEXT_LIMIT", "4096")
        monkeypatch.setenv("AI_RUNTIME_USE_ACCELERATOR", "true")
        monkeypatch.setenv("AI_RUNTIME_MODELS_DIR", "/data/models")
        try:
            reloaded = importlib.reload(config_module)
            cfg = reloaded.RuntimeConfig()
            assert cfg.context_limit == 4096
            assert cfg.use_accelerator is True
            assert cfg.models_dir == "/data/models"
        finally:
            monkeypatch.undo()
            importlib.reload(config_module)


class TestConfigureLogging:
    @pytest.fixture(autouse=True)
    def restore_level(self):
        package_logger = logging.getLogger("ai_model_runtime")
        level = package_logger.level
        yield
        package_logger.setLevel(level)

    def test_named_level(self):
        assert configure_logging("warning").level == logging.WARNING

    def test_numeric_level(self):
        assert configure_logging(logging.ERROR).level == logging.ERROR

    def test_unknown_name_falls_back_to_info(self):
        assert configure_logging("chatty").level == logging.INFO

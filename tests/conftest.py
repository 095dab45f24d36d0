# tests/conftest.py
"""
Shared pytest fixtures and configuration for ai_model_runtime tests.

Test doubles live in fakes.py so test modules can import them directly.
"""

import logging

import pytest

from fakes import FakeBackend, FakeTokenizer, StaticSnapshotProvider, roomy_snapshot, write_artifact

# Configure logging for tests
logging.basicConfig(level=logging.WARNING)
logging.getLogger("ai_model_runtime").setLevel(logging.DEBUG)


@pytest.fixture
def tokenizer():
    return FakeTokenizer()


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def snapshot_provider():
    return StaticSnapshotProvider(roomy_snapshot())


@pytest.fixture
def models_dir(tmp_path):
    """A models directory with a valid artifact for every slot."""
    directory = tmp_path / "models"
    write_artifact(directory / "chat.gguf")
    write_artifact(directory / "speech.tflite", header=b"\x1c\x00\x00\x00TFL3", size=4096)
    write_artifact(directory / "gesture.tflite", header=b"\x1c\x00\x00\x00TFL3", size=4096)
    write_artifact(directory / "vision.onnx", header=b"\x08\x07\x12\x04", size=4096)
    return directory

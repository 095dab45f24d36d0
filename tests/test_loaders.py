# tests/test_loaders.py
"""
Tests for slot loaders and backend opening.
"""

import pytest

from ai_model_runtime.delegates import BackendOptions
from ai_model_runtime.exceptions import ArtifactInvalid, BackendLoadFailed, BackendStepFailed, SessionNotReady
from ai_model_runtime.loaders import (
    FormatDispatchLoader,
    GenerativeLoader,
    OneShotLoader,
    OneShotSession,
    open_backend,
)
from ai_model_runtime.models.artifact import ModelArtifact
from ai_model_runtime.models.enums import ArtifactFormat, SlotName
from ai_model_runtime.runtime.session import InferenceSession
from fakes import FakeBackend, FakeTokenizer


def artifact(fmt=ArtifactFormat.GGUF, name="model.gguf"):
    return ModelArtifact(path=f"/models/{name}", format=fmt, observed_size=4096)


class ExplodingBackend(FakeBackend):
    def infer(self, handle, inputs):
        raise RuntimeError("bad input tensor")


# ===========================================================================
# open_backend
# ===========================================================================


class TestOpenBackend:
    @pytest.mark.asyncio
    async def test_plain_load(self):
        backend = FakeBackend()
        handle = await open_backend(backend, artifact(), BackendOptions(threads=2))

        assert handle["path"].endswith("model.gguf")
        assert len(backend.load_calls) == 1

    @pytest.mark.asyncio
    async def test_accelerator_failure_retries_on_cpu(self):
        backend = FakeBackend(accelerator_fails=True)
        handle = await open_backend(backend, artifact(), BackendOptions(use_accelerator=True))

        assert handle["options"].use_accelerator is False
        assert len(backend.load_calls) == 2

    @pytest.mark.asyncio
    async def test_cpu_failure_is_not_retried(self):
        backend = FakeBackend(load_error=RuntimeError("corrupt"))
        with pytest.raises(BackendLoadFailed) as exc_info:
            await open_backend(backend, artifact(), BackendOptions())

        assert isinstance(exc_info.value.cause, RuntimeError)
        assert len(backend.load_calls) == 1

    @pytest.mark.asyncio
    async def test_both_attempts_fail(self):
        backend = FakeBackend(load_error=RuntimeError("corrupt"))
        with pytest.raises(BackendLoadFailed):
            await open_backend(backend, artifact(), BackendOptions(use_accelerator=True))
        assert len(backend.load_calls) == 2


# ===========================================================================
# OneShotSession
# ===========================================================================


class TestOneShotSession:
    @pytest.mark.asyncio
    async def test_infer_and_close(self):
        backend = FakeBackend()
        session = await OneShotLoader(backend).load(SlotName.SPEECH, artifact(ArtifactFormat.TFLITE), BackendOptions())

        assert isinstance(session, OneShotSession)
        assert session.slot == SlotName.SPEECH
        assert await session.infer("frame") == {"echo": "frame"}

        await session.close()
        await session.close()
        assert backend.unload_calls == 1
        with pytest.raises(SessionNotReady):
            await session.infer("frame")

    @pytest.mark.asyncio
    async def test_backend_error_wrapped(self):
        session = OneShotSession(ExplodingBackend(), handle={}, slot=SlotName.VISION)
        with pytest.raises(BackendStepFailed):
            await session.infer([1, 2, 3])
        assert not session.is_closed


# ===========================================================================
# FormatDispatchLoader
# ===========================================================================


class TestFormatDispatchLoader:
    @pytest.mark.asyncio
    async def test_routes_by_format(self):
        gguf_backend = FakeBackend()
        tflite_backend = FakeBackend()
        loader = FormatDispatchLoader(
            {
                ArtifactFormat.GGUF: GenerativeLoader(gguf_backend, FakeTokenizer(), context_limit=64, max_new_tokens=8, hidden_size=4),
                ArtifactFormat.TFLITE: GenerativeLoader(tflite_backend, FakeTokenizer(), context_limit=64, max_new_tokens=8, hidden_size=4),
            }
        )

        session = await loader.load(SlotName.CHAT, artifact(ArtifactFormat.TFLITE, "chat.tflite"), BackendOptions())

        assert isinstance(session, InferenceSession)
        assert len(tflite_backend.load_calls) == 1
        assert gguf_backend.load_calls == []
        assert loader.formats == {ArtifactFormat.GGUF, ArtifactFormat.TFLITE}

        await loader.release(session)
        assert tflite_backend.unload_calls == 1

    @pytest.mark.asyncio
    async def test_unsupported_format(self):
        loader = FormatDispatchLoader({ArtifactFormat.GGUF: OneShotLoader(FakeBackend())})
        with pytest.raises(ArtifactInvalid) as exc_info:
            await loader.load(SlotName.VISION, artifact(ArtifactFormat.ONNX, "vision.onnx"), BackendOptions())
        assert exc_info.value.reason == "format_mismatch"

    @pytest.mark.asyncio
    async def test_release_unknown_runtime(self):
        loader = FormatDispatchLoader({})
        with pytest.raises(ValueError):
            await loader.release(object())

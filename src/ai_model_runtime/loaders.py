# ai_model_runtime/loaders.py
"""
Slot loaders - one capability {load, run, release} with per-kind variants.

- GenerativeLoader: builds an InferenceSession (chat)
- OneShotLoader: builds a OneShotSession with ``infer`` (speech, gesture, vision)
- FormatDispatchLoader: picks a variant by the artifact's format tag

All variants open the backend the same way: accelerator first when asked,
CPU-only retry if that fails.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Protocol

import numpy as np

from ai_model_runtime.config import DEFAULT_CONTEXT_LIMIT, DEFAULT_MAX_NEW_TOKENS
from ai_model_runtime.delegates import Backend, BackendOptions, Tokenizer
from ai_model_runtime.exceptions import ArtifactInvalid, BackendLoadFailed, BackendStepFailed, SessionNotReady
from ai_model_runtime.models.artifact import ModelArtifact
from ai_model_runtime.models.enums import ArtifactFormat, SlotName, ValidationFailure
from ai_model_runtime.models.sampling import SampleParams
from ai_model_runtime.runtime.kv_cache import DEFAULT_HIDDEN_SIZE, DEFAULT_NUM_LAYERS
from ai_model_runtime.runtime.sampler import Sampler
from ai_model_runtime.runtime.session import InferenceSession

logger = logging.getLogger(__name__)


class SlotLoader(Protocol):
    """Protocol for turning a validated artifact into a live runtime."""

    async def load(self, slot: SlotName, artifact: ModelArtifact, options: BackendOptions) -> Any:
        """Open the artifact and return the slot's runtime object."""
        ...

    async def release(self, runtime: Any) -> None:
        """Free everything ``load`` returned."""
        ...


async def open_backend(backend: Backend, artifact: ModelArtifact, options: BackendOptions) -> Any:
    """Load through the backend, falling back to CPU if the accelerator fails."""
    try:
        return await asyncio.to_thread(backend.load, artifact.path, options)
    except Exception as e:
        if not options.use_accelerator:
            raise BackendLoadFailed(e) from e
        logger.warning(f"Accelerated load of {artifact.name} failed ({e}), retrying on CPU")

    try:
        return await asyncio.to_thread(backend.load, artifact.path, options.cpu_only())
    except Exception as e:
        raise BackendLoadFailed(e) from e


# =============================================================================
# Generative
# =============================================================================


class GenerativeLoader:
    """Loads autoregressive models into an InferenceSession."""

    def __init__(
        self,
        backend: Backend,
        tokenizer: Tokenizer,
        context_limit: int = DEFAULT_CONTEXT_LIMIT,
        max_new_tokens: int = DEFAULT_MAX_NEW_TOKENS,
        params: SampleParams | None = None,
        num_layers: int = DEFAULT_NUM_LAYERS,
        hidden_size: int = DEFAULT_HIDDEN_SIZE,
        rng: np.random.Generator | None = None,
    ) -> None:
        self._backend = backend
        self._tokenizer = tokenizer
        self._context_limit = context_limit
        self._max_new_tokens = max_new_tokens
        self._params = params
        self._num_layers = num_layers
        self._hidden_size = hidden_size
        self._rng = rng

    async def load(self, slot: SlotName, artifact: ModelArtifact, options: BackendOptions) -> InferenceSession:
        handle = await open_backend(self._backend, artifact, options)
        return InferenceSession(
            self._backend,
            handle,
            self._tokenizer,
            context_limit=self._context_limit,
            max_new_tokens=self._max_new_tokens,
            params=self._params,
            sampler=Sampler(rng=self._rng),
            num_layers=self._num_layers,
            hidden_size=self._hidden_size,
            slot=slot,
        )

    async def release(self, runtime: InferenceSession) -> None:
        await runtime.close()


# =============================================================================
# One-shot
# =============================================================================


class OneShotSession:
    """A loaded non-generative model: one input in, one output out."""

    def __init__(self, backend: Backend, handle: Any, slot: SlotName) -> None:
        self._backend = backend
        self._handle = handle
        self._slot = slot
        self._lock = asyncio.Lock()
        self._closed = False

    @property
    def slot(self) -> SlotName:
        return self._slot

    @property
    def is_closed(self) -> bool:
        return self._closed

    async def infer(self, inputs: Any) -> Any:
        async with self._lock:
            if self._closed:
                raise SessionNotReady(self._slot.value, "closed")
            try:
                return await asyncio.to_thread(self._backend.infer, self._handle, inputs)
            except Exception as e:
                logger.warning(f"[{self._slot.value}] inference failed: {e}")
                raise BackendStepFailed(e) from e

    async def close(self) -> None:
        async with self._lock:
            if self._closed:
                return
            self._closed = True
            handle, self._handle = self._handle, None
            await asyncio.to_thread(self._backend.unload, handle)


class OneShotLoader:
    """Loads speech, gesture and vision models."""

    def __init__(self, backend: Backend) -> None:
        self._backend = backend

    async def load(self, slot: SlotName, artifact: ModelArtifact, options: BackendOptions) -> OneShotSession:
        handle = await open_backend(self._backend, artifact, options)
        return OneShotSession(self._backend, handle, slot)

    async def release(self, runtime: OneShotSession) -> None:
        await runtime.close()


# =============================================================================
# Dispatch by format
# =============================================================================


class FormatDispatchLoader:
    """
    Routes to a loader by artifact format.

    Usage::

        loader = FormatDispatchLoader({
            ArtifactFormat.GGUF: GenerativeLoader(llama_backend, tokenizer),
            ArtifactFormat.TFLITE: GenerativeLoader(tflite_backend, tokenizer),
        })
    """

    def __init__(self, by_format: dict[ArtifactFormat, SlotLoader]) -> None:
        self._by_format = dict(by_format)
        self._owners: dict[int, SlotLoader] = {}

    @property
    def formats(self) -> set[ArtifactFormat]:
        return set(self._by_format)

    async def load(self, slot: SlotName, artifact: ModelArtifact, options: BackendOptions) -> Any:
        loader = self._by_format.get(artifact.format)
        if loader is None:
            raise ArtifactInvalid(
                ValidationFailure.FORMAT_MISMATCH.value,
                f"no loader for {artifact.format.value} in slot '{slot.value}'",
            )
        runtime = await loader.load(slot, artifact, options)
        self._owners[id(runtime)] = loader
        return runtime

    async def release(self, runtime: Any) -> None:
        loader = self._owners.pop(id(runtime), None)
        if loader is None:
            raise ValueError("runtime was not loaded by this dispatcher")
        await loader.release(runtime)

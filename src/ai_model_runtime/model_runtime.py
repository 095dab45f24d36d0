# ai_model_runtime/model_runtime.py
"""
ModelRuntime - High-level API for on-device model inference.

This module provides the ModelRuntime class which offers:
- Lazy, budget-checked loading of model slots
- Chat generation, whole or streamed
- One-shot inference for speech, gesture and vision slots
- Slot status for UI and diagnostics
- Orderly shutdown
"""

from __future__ import annotations

import contextlib
import logging
from collections.abc import AsyncIterator, Mapping
from typing import Any

from ai_model_runtime.config import RuntimeConfig
from ai_model_runtime.delegates import Backend, ModelSourceResolver, Tokenizer
from ai_model_runtime.exceptions import InvalidSampleParams, SessionNotReady
from ai_model_runtime.loaders import GenerativeLoader, OneShotLoader, OneShotSession, SlotLoader
from ai_model_runtime.models.enums import SlotName, SlotPriority
from ai_model_runtime.models.sampling import SampleParams
from ai_model_runtime.models.slot import SlotStatus
from ai_model_runtime.models.stream import StreamEvent
from ai_model_runtime.registry import ModelSlotRegistry
from ai_model_runtime.resource_advisor import ResourceBudgetAdvisor
from ai_model_runtime.runtime.session import CancellationToken, InferenceSession
from ai_model_runtime.validator import ArtifactValidator

logger = logging.getLogger(__name__)


def default_loaders(
    backend: Backend,
    tokenizer: Tokenizer | None,
    config: RuntimeConfig,
) -> dict[SlotName, SlotLoader]:
    """Chat gets a generative loader (when a tokenizer is given); the rest are one-shot."""
    loaders: dict[SlotName, SlotLoader] = {
        SlotName.SPEECH: OneShotLoader(backend),
        SlotName.GESTURE: OneShotLoader(backend),
        SlotName.VISION: OneShotLoader(backend),
    }
    if tokenizer is not None:
        loaders[SlotName.CHAT] = GenerativeLoader(
            backend,
            tokenizer,
            context_limit=config.context_limit,
            max_new_tokens=config.max_new_tokens,
            params=SampleParams(temperature=config.temperature, top_k=config.top_k, top_p=config.top_p),
        )
    return loaders


class ModelRuntime:
    """
    High-level entry point for the model runtime.

    Examples:
        Chat:
        ```python
        async with ModelRuntime(backend=llama, tokenizer=tok) as rt:
            reply = await rt.generate(SlotName.CHAT, "Hello!")
        ```

        Streaming:
        ```python
        async for event in rt.generate_streaming(SlotName.CHAT, "Tell me a story"):
            print(event.delta, end="")
        ```

        One-shot:
        ```python
        transcript = await rt.infer(SlotName.SPEECH, audio_frames)
        ```
    """

    def __init__(
        self,
        backend: Backend | None = None,
        tokenizer: Tokenizer | None = None,
        loaders: Mapping[SlotName, SlotLoader] | None = None,
        resolver: ModelSourceResolver | None = None,
        advisor: ResourceBudgetAdvisor | None = None,
        validator: ArtifactValidator | None = None,
        config: RuntimeConfig | None = None,
        priorities: Mapping[SlotName, SlotPriority] | None = None,
        perform_load_test: bool = False,
        registry: ModelSlotRegistry | None = None,
    ):
        """
        Initialize a ModelRuntime.

        Args:
            backend: Inference engine used by the default loaders and load tests.
            tokenizer: Tokenizer for the chat slot. Without one, chat has no loader.
            loaders: Explicit per-slot loaders. Overrides the defaults built from backend.
            resolver: Where artifacts live. Defaults to a DirectoryResolver over config.models_dir.
            advisor: Resource budget advisor. Defaults to reading the host via psutil.
            validator: Artifact validator. Defaults to one using ``backend`` for load tests.
            config: Runtime settings. Defaults to RuntimeConfig() (environment driven).
            priorities: Per-slot unload priorities, merged over the defaults.
            perform_load_test: Open and close each artifact once before the real load.
            registry: A pre-built registry; all other wiring arguments are then ignored.
        """
        self._config = config or RuntimeConfig()

        if registry is None:
            if loaders is None:
                if backend is None:
                    raise ValueError("ModelRuntime needs either loaders or a backend")
                loaders = default_loaders(backend, tokenizer, self._config)
            registry = ModelSlotRegistry(
                loaders=loaders,
                resolver=resolver,
                advisor=advisor,
                validator=validator or ArtifactValidator(backend=backend),
                config=self._config,
                priorities=priorities,
                perform_load_test=perform_load_test,
            )
        self._registry = registry
        self._closed = False

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def registry(self) -> ModelSlotRegistry:
        return self._registry

    @property
    def config(self) -> RuntimeConfig:
        return self._config

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def ensure_loaded(self, slot: SlotName | str) -> Any:
        return await self._registry.ensure_loaded(slot)

    async def unload(self, slot: SlotName | str) -> None:
        await self._registry.unload(slot)

    async def unload_all(self) -> None:
        await self._registry.unload_all()

    async def preload(self, priority: SlotPriority = SlotPriority.CRITICAL) -> dict[SlotName, Any]:
        return await self._registry.preload(priority)

    def status(self, slot: SlotName | str) -> SlotStatus:
        return self._registry.status(slot)

    def statuses(self) -> dict[SlotName, SlotStatus]:
        return self._registry.statuses()

    async def aclose(self) -> None:
        """Unload everything. Safe to call twice."""
        if self._closed:
            return
        self._closed = True
        await self._registry.unload_all()
        logger.info("Model runtime closed")

    async def __aenter__(self) -> ModelRuntime:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    def _check_request(self, slot: SlotName | str, max_new_tokens: int | None, params: SampleParams | None) -> None:
        """Reject bad sampling settings before any load or backend work."""
        if params is not None:
            params.check()
        if max_new_tokens is not None:
            loaded = self._registry.runtime(slot)
            limit = loaded.context_limit if isinstance(loaded, InferenceSession) else self._config.context_limit
            if not 1 <= max_new_tokens < limit:
                raise InvalidSampleParams("max_new_tokens", max_new_tokens)

    async def _session(self, slot: SlotName | str) -> InferenceSession:
        runtime = await self._registry.ensure_loaded(slot)
        if not isinstance(runtime, InferenceSession):
            raise SessionNotReady(SlotName(slot).value, "not a generative slot")
        return runtime

    async def generate(
        self,
        slot: SlotName | str,
        prompt: str,
        system_prompt: str | None = None,
        max_new_tokens: int | None = None,
        params: SampleParams | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> str:
        """Load the slot if needed and return the full reply."""
        self._check_request(slot, max_new_tokens, params)
        session = await self._session(slot)
        try:
            return await session.generate(prompt, system_prompt, max_new_tokens, params, cancel_token)
        finally:
            self._registry.touch(slot)

    async def generate_streaming(
        self,
        slot: SlotName | str,
        prompt: str,
        system_prompt: str | None = None,
        max_new_tokens: int | None = None,
        params: SampleParams | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> AsyncIterator[StreamEvent]:
        """Load the slot if needed and stream the reply as StreamEvents."""
        self._check_request(slot, max_new_tokens, params)
        session = await self._session(slot)
        stream = session.generate_streaming(prompt, system_prompt, max_new_tokens, params, cancel_token)
        try:
            async with contextlib.aclosing(stream):
                async for event in stream:
                    yield event
        finally:
            self._registry.touch(slot)

    async def clear_history(self, slot: SlotName | str = SlotName.CHAT) -> None:
        """Reset history and KV cache. No-op when the slot is not loaded."""
        runtime = self._registry.runtime(slot)
        if isinstance(runtime, InferenceSession):
            await runtime.clear_history()

    # ------------------------------------------------------------------
    # One-shot inference
    # ------------------------------------------------------------------

    async def infer(self, slot: SlotName | str, inputs: Any) -> Any:
        """Run a speech, gesture or vision model once."""
        runtime = await self._registry.ensure_loaded(slot)
        if not isinstance(runtime, OneShotSession):
            raise SessionNotReady(SlotName(slot).value, "not a one-shot slot")
        try:
            return await runtime.infer(inputs)
        finally:
            self._registry.touch(slot)

# ai_model_runtime/runtime/session.py
"""
InferenceSession - autoregressive generation over a loaded backend handle.

One session per generative slot. It owns the turn history and the KV cache
and serialises decode loops with a per-session lock, so history and cache
always change together.

Decode loop for one call:
1. append the USER turn
2. assemble input within ``context_limit - max_new_tokens``
3. reuse the cached prefix, feed the rest to the backend
4. sample, stop on EOS or after ``max_new_tokens`` steps
5. append the ASSISTANT turn

Backend steps run in worker threads. Cancellation is checked between steps.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from typing import Any

from ai_model_runtime.config import DEFAULT_CONTEXT_LIMIT, DEFAULT_MAX_NEW_TOKENS
from ai_model_runtime.delegates import Backend, Tokenizer
from ai_model_runtime.exceptions import BackendStepFailed, GenerationCancelled, SessionNotReady
from ai_model_runtime.models.conversation import ConversationTurn
from ai_model_runtime.models.enums import Role, SlotName, StreamEventKind
from ai_model_runtime.models.sampling import SampleParams
from ai_model_runtime.models.stream import StreamEvent
from ai_model_runtime.runtime.context_window import ContextWindowManager
from ai_model_runtime.runtime.kv_cache import DEFAULT_HIDDEN_SIZE, DEFAULT_NUM_LAYERS, KVCache
from ai_model_runtime.runtime.sampler import Sampler

logger = logging.getLogger(__name__)


class CancellationToken:
    """Caller-held flag checked by the decode loop between steps."""

    def __init__(self) -> None:
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class InferenceSession:
    """
    Generation state for one loaded generative model.

    Usage::

        session = InferenceSession(backend, handle, tokenizer)
        reply = await session.generate("Hello")

        async with contextlib.aclosing(session.generate_streaming("Hi")) as stream:
            async for event in stream:
                print(event.delta, end="")
    """

    def __init__(
        self,
        backend: Backend,
        handle: Any,
        tokenizer: Tokenizer,
        context_limit: int = DEFAULT_CONTEXT_LIMIT,
        max_new_tokens: int = DEFAULT_MAX_NEW_TOKENS,
        params: SampleParams | None = None,
        sampler: Sampler | None = None,
        kv_cache: KVCache | None = None,
        num_layers: int = DEFAULT_NUM_LAYERS,
        hidden_size: int = DEFAULT_HIDDEN_SIZE,
        slot: SlotName = SlotName.CHAT,
    ) -> None:
        self._backend = backend
        self._handle = handle
        self._tokenizer = tokenizer
        self._slot = slot
        self._default_params = params or SampleParams()
        self._max_new_tokens = max_new_tokens
        self._sampler = sampler or Sampler()
        self._window = ContextWindowManager(tokenizer, context_limit)
        self._cache = kv_cache or KVCache(context_limit, hidden_size=hidden_size, num_layers=num_layers)
        if self._cache.capacity < context_limit:
            raise ValueError(f"KV cache capacity {self._cache.capacity} is below context limit {context_limit}")

        self._history: list[ConversationTurn] = []
        self._lock = asyncio.Lock()
        self._closed = False

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def slot(self) -> SlotName:
        return self._slot

    @property
    def history(self) -> list[ConversationTurn]:
        return list(self._history)

    @property
    def kv_cache(self) -> KVCache:
        return self._cache

    @property
    def context_limit(self) -> int:
        return self._window.context_limit

    @property
    def max_new_tokens(self) -> int:
        return self._max_new_tokens

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def is_busy(self) -> bool:
        return self._lock.locked()

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    async def generate(
        self,
        prompt: str,
        system_prompt: str | None = None,
        max_new_tokens: int | None = None,
        params: SampleParams | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> str:
        """
        Generate a complete reply.

        Raises GenerationCancelled if ``cancel_token`` fires; the partial
        reply is still recorded in the history.
        """
        final: StreamEvent | None = None
        async for event in self.generate_streaming(prompt, system_prompt, max_new_tokens, params, cancel_token):
            final = event

        if final is not None and final.kind == StreamEventKind.CANCELLED:
            raise GenerationCancelled(final.text, final.tokens_generated)
        return final.text if final is not None else ""

    async def generate_streaming(
        self,
        prompt: str,
        system_prompt: str | None = None,
        max_new_tokens: int | None = None,
        params: SampleParams | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> AsyncIterator[StreamEvent]:
        """
        Yield one TOKEN event per decoded token, then COMPLETED or CANCELLED.

        Not restartable. The session lock is held until the stream ends, so
        close it (``contextlib.aclosing``) when abandoning it early.
        """
        params = (params or self._default_params).check()
        budget = max_new_tokens if max_new_tokens is not None else self._max_new_tokens
        self._window.budget(budget)
        token = cancel_token or CancellationToken()
        eos = self._tokenizer.eos_token_id

        async with self._lock:
            self._ensure_open()
            self._history.append(ConversationTurn(role=Role.USER, text=prompt))
            context = self._window.assemble(self._history, budget, system_prompt)
            logger.debug(
                f"[{self._slot.value}] input {context.token_count}/{context.budget} tokens, "
                f"{context.turns_omitted} turns omitted"
            )

            generated: list[int] = []
            text = ""
            cancelled = False
            feed = self._prepare_cache(context.token_ids)
            # Prefix shared with the previous call
            kept = self._cache.length
            try:
                for step in range(budget):
                    if token.cancelled:
                        cancelled = True
                        break

                    logits = await self._forward(feed, step)
                    token_id = self._sampler.sample(logits, params)
                    if token_id == eos:
                        break

                    generated.append(token_id)
                    decoded = self._tokenizer.decode(generated)
                    delta = decoded[len(text):] if decoded.startswith(text) else decoded
                    text = decoded
                    yield StreamEvent(
                        kind=StreamEventKind.TOKEN,
                        text=text,
                        delta=delta,
                        token_id=token_id,
                        tokens_generated=len(generated),
                    )
                    feed = [token_id]
            except BackendStepFailed:
                # Failed calls leave history and cache as they were
                self._history.pop()
                self._cache.truncate(kept)
                raise
            except (GeneratorExit, asyncio.CancelledError):
                self._cache.rollback()
                self._record_reply(text)
                raise

            self._record_reply(text)

        if cancelled:
            logger.debug(f"[{self._slot.value}] generation cancelled after {len(generated)} tokens")
            kind = StreamEventKind.CANCELLED
        else:
            kind = StreamEventKind.COMPLETED
        yield StreamEvent(kind=kind, text=text, tokens_generated=len(generated))

    async def clear_history(self) -> None:
        """Empty history and KV cache together."""
        async with self._lock:
            self._history.clear()
            self._cache.reset()
        logger.debug(f"[{self._slot.value}] history cleared")

    async def close(self) -> None:
        """Release the backend handle and the KV cache. Idempotent."""
        async with self._lock:
            if self._closed:
                return
            self._closed = True
            self._history.clear()
            self._cache.reset()
            handle, self._handle = self._handle, None
            await asyncio.to_thread(self._backend.unload, handle)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _ensure_open(self) -> None:
        if self._closed:
            raise SessionNotReady(self._slot.value, "closed")

    def _prepare_cache(self, input_ids: list[int]) -> list[int]:
        """Drop cached positions past the shared prefix; return what must be fed."""
        if not input_ids:
            raise ValueError("assembled input is empty")
        reuse = min(self._cache.common_prefix(input_ids), len(input_ids) - 1)
        self._cache.truncate(reuse)
        if reuse:
            logger.debug(f"[{self._slot.value}] reusing {reuse} cached positions")
        return input_ids[reuse:]

    async def _forward(self, tokens: list[int], step: int) -> Any:
        try:
            logits = await asyncio.to_thread(self._backend.forward_step, self._handle, tokens, self._cache)
        except Exception as e:
            self._cache.rollback()
            logger.warning(f"[{self._slot.value}] backend step {step} failed: {e}")
            raise BackendStepFailed(e, step) from e
        self._cache.commit(tokens)
        return logits

    def _record_reply(self, text: str) -> None:
        self._history.append(ConversationTurn(role=Role.ASSISTANT, text=text))

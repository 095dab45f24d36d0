# ai_model_runtime/runtime/context_window.py
"""
Context window assembly.

Fits the system prompt and as much recent history as possible into the
input budget ``context_limit - max_new_tokens``:

- the generation prompt (assistant marker) is reserved first
- the system prompt goes in next, when given and it fits
- turns are added newest to oldest; the first turn that does not fit stops
  the walk so the kept history stays contiguous
- the newest turn is always kept; if it alone overflows, the assembled
  sequence is right-truncated to its last ``budget`` tokens
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from pydantic import BaseModel, Field

from ai_model_runtime.delegates import Tokenizer
from ai_model_runtime.exceptions import InvalidSampleParams
from ai_model_runtime.models.conversation import GENERATION_PROMPT, ConversationTurn
from ai_model_runtime.models.enums import Role

logger = logging.getLogger(__name__)


class AssembledContext(BaseModel):
    """Token input for one generation call."""

    token_ids: list[int] = Field(default_factory=list)
    budget: int = Field(..., description="context_limit - max_new_tokens")
    turns_included: int = Field(default=0, description="History turns that made it in")
    turns_omitted: int = Field(default=0, description="Oldest turns dropped for budget")
    system_included: bool = False
    truncated: bool = Field(default=False, description="Newest turn was cut to fit")

    @property
    def token_count(self) -> int:
        return len(self.token_ids)


class ContextWindowManager:
    """Assembles model input from history within a token budget."""

    def __init__(self, tokenizer: Tokenizer, context_limit: int) -> None:
        if context_limit <= 0:
            raise ValueError("context_limit must be positive")
        self._tokenizer = tokenizer
        self._context_limit = context_limit
        self._generation_prompt_ids: list[int] | None = None

    @property
    def context_limit(self) -> int:
        return self._context_limit

    def budget(self, max_new_tokens: int) -> int:
        if max_new_tokens < 1 or max_new_tokens >= self._context_limit:
            raise InvalidSampleParams("max_new_tokens", max_new_tokens)
        return self._context_limit - max_new_tokens

    def assemble(
        self,
        history: Sequence[ConversationTurn],
        max_new_tokens: int,
        system_prompt: str | None = None,
    ) -> AssembledContext:
        budget = self.budget(max_new_tokens)
        suffix = self._generation_prompt()
        used = len(suffix)

        system_ids: list[int] = []
        if system_prompt:
            candidate = ConversationTurn(role=Role.SYSTEM, text=system_prompt).token_ids(self._tokenizer)
            if used + len(candidate) <= budget:
                system_ids = candidate
                used += len(candidate)
            else:
                logger.debug(f"System prompt ({len(candidate)} tokens) does not fit budget {budget}")

        # Newest to oldest
        kept: list[list[int]] = []
        for index, turn in enumerate(reversed(history)):
            ids = turn.token_ids(self._tokenizer)
            if index > 0 and used + len(ids) > budget:
                break
            kept.append(ids)
            used += len(ids)

        token_ids = list(system_ids)
        for ids in reversed(kept):
            token_ids.extend(ids)
        token_ids.extend(suffix)

        truncated = len(token_ids) > budget
        if truncated:
            token_ids = token_ids[-budget:]
            logger.debug(f"Input right-truncated to the last {budget} tokens")

        return AssembledContext(
            token_ids=token_ids,
            budget=budget,
            turns_included=len(kept),
            turns_omitted=len(history) - len(kept),
            system_included=bool(system_ids),
            truncated=truncated,
        )

    def _generation_prompt(self) -> list[int]:
        if self._generation_prompt_ids is None:
            self._generation_prompt_ids = list(self._tokenizer.encode(GENERATION_PROMPT))
        return self._generation_prompt_ids

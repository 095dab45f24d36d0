# ai_model_runtime/models/conversation.py
"""Conversation turns and the chat template used to render them."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import BaseModel, Field, PrivateAttr

from ai_model_runtime.models.enums import Role

if TYPE_CHECKING:
    from ai_model_runtime.delegates import Tokenizer

ROLE_MARKERS: dict[Role, str] = {
    Role.SYSTEM: "<|system|>",
    Role.USER: "<|user|>",
    Role.ASSISTANT: "<|assistant|>",
}

# Appended after the history so the model continues as the assistant
GENERATION_PROMPT = f"{ROLE_MARKERS[Role.ASSISTANT]}\n"


class ConversationTurn(BaseModel):
    """One message in a session's history."""

    role: Role
    text: str = Field(default="")

    _token_ids: list[int] | None = PrivateAttr(default=None)

    def render(self) -> str:
        """Render the turn with its role marker."""
        return f"{ROLE_MARKERS[self.role]}\n{self.text}\n"

    def token_ids(self, tokenizer: Tokenizer) -> list[int]:
        """Tokenize the rendered turn; computed once, then memoised."""
        if self._token_ids is None:
            self._token_ids = list(tokenizer.encode(self.render()))
        return self._token_ids

    def token_count(self, tokenizer: Tokenizer) -> int:
        return len(self.token_ids(tokenizer))

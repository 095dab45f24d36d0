# ai_model_runtime/models/stream.py
"""Events emitted by streaming generation."""

from __future__ import annotations

from pydantic import BaseModel, Field

from ai_model_runtime.models.enums import StreamEventKind


class StreamEvent(BaseModel):
    """
    One step of a streaming generation.

    TOKEN events carry the newly decoded text in ``delta`` and the running
    output in ``text``. The stream always ends with exactly one COMPLETED or
    CANCELLED event whose ``text`` is the final output.
    """

    kind: StreamEventKind
    text: str = Field(default="", description="Accumulated output so far")
    delta: str = Field(default="", description="Text newly available at this step")
    token_id: int | None = None
    tokens_generated: int = 0

    @property
    def is_final(self) -> bool:
        return self.kind != StreamEventKind.TOKEN

# ai_model_runtime/models/slot.py
"""Model slot state and the status view exposed to callers."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from ai_model_runtime.base_models import DictCompatModel
from ai_model_runtime.models.artifact import ModelArtifact
from ai_model_runtime.models.enums import ModelTier, SlotName, SlotPriority, SlotState


class ModelSlot(BaseModel):
    """
    Registry-owned record for one slot.

    Exactly one instance exists per SlotName for the life of the registry.
    Only the registry mutates it.
    """

    model_config = {"arbitrary_types_allowed": True}

    name: SlotName
    state: SlotState = SlotState.UNLOADED
    priority: SlotPriority = SlotPriority.NORMAL

    # Loader and live runtime (not serialisable)
    loader: Any = Field(default=None, exclude=True)
    runtime: Any = Field(default=None, exclude=True)

    artifact: ModelArtifact | None = None
    tier: ModelTier | None = None
    last_loaded_at: datetime | None = None
    last_used_at: datetime | None = None
    retry_count: int = Field(default=0, description="Failed loads since the last success")
    failure_reason: str | None = None
    resource_reason: str | None = None


class SlotStatus(DictCompatModel):
    """Read-only view of a slot for status screens."""

    slot: SlotName
    state: SlotState
    priority: SlotPriority
    resource_reason: str | None = None
    failure_reason: str | None = None
    tier: ModelTier | None = None
    retry_count: int = 0
    artifact_path: str | None = None
    last_loaded_at: datetime | None = None
    last_used_at: datetime | None = None

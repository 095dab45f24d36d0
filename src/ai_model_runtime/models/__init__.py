# ai_model_runtime/models/__init__.py
"""Data model for the model runtime."""

from ai_model_runtime.models.artifact import ArtifactMetadata, ModelArtifact, ValidationResult
from ai_model_runtime.models.conversation import GENERATION_PROMPT, ROLE_MARKERS, ConversationTurn
from ai_model_runtime.models.enums import (
    DEFAULT_SLOT_PRIORITIES,
    EXTENSION_FORMATS,
    MB,
    MIN_ARTIFACT_BYTES,
    TIER_BUDGETS,
    TIER_ORDER,
    ArtifactFormat,
    MemoryPressure,
    ModelTier,
    Role,
    SlotName,
    SlotPriority,
    SlotState,
    StreamEventKind,
    ValidationFailure,
)
from ai_model_runtime.models.resources import ResourceDecision, ResourceSnapshot
from ai_model_runtime.models.sampling import SampleParams
from ai_model_runtime.models.slot import ModelSlot, SlotStatus
from ai_model_runtime.models.stream import StreamEvent

__all__ = [
    # Enums
    "ArtifactFormat",
    "MemoryPressure",
    "ModelTier",
    "Role",
    "SlotName",
    "SlotPriority",
    "SlotState",
    "StreamEventKind",
    "ValidationFailure",
    # Constants
    "DEFAULT_SLOT_PRIORITIES",
    "EXTENSION_FORMATS",
    "GENERATION_PROMPT",
    "MB",
    "MIN_ARTIFACT_BYTES",
    "ROLE_MARKERS",
    "TIER_BUDGETS",
    "TIER_ORDER",
    # Models
    "ConversationTurn",
    "ArtifactMetadata",
    "ModelArtifact",
    "ModelSlot",
    "ResourceDecision",
    "ResourceSnapshot",
    "SampleParams",
    "SlotStatus",
    "StreamEvent",
    "ValidationResult",
]

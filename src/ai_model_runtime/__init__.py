# ai_model_runtime/__init__.py
"""
On-device model runtime.

Loads speech, chat, gesture and vision models within a device resource
budget and runs autoregressive generation with a KV cache and
temperature/top-k/top-p sampling.
"""

from .config import RuntimeConfig, configure_logging
from .delegates import ArtifactSource, Backend, BackendOptions, DirectoryResolver, ModelSourceResolver, Tokenizer
from .exceptions import (
    ArtifactInvalid,
    BackendLoadFailed,
    BackendStepFailed,
    GenerationCancelled,
    InsufficientResources,
    InvalidSampleParams,
    KVCacheOverflow,
    LoaderNotRegistered,
    ModelRuntimeError,
    SessionNotReady,
)
from .loaders import FormatDispatchLoader, GenerativeLoader, OneShotLoader, OneShotSession, SlotLoader
from .model_runtime import ModelRuntime
from .models import (
    ArtifactFormat,
    ArtifactMetadata,
    ConversationTurn,
    MemoryPressure,
    ModelArtifact,
    ModelTier,
    ResourceDecision,
    ResourceSnapshot,
    Role,
    SampleParams,
    SlotName,
    SlotPriority,
    SlotState,
    SlotStatus,
    StreamEvent,
    StreamEventKind,
    ValidationFailure,
    ValidationResult,
)
from .registry import ModelSlotRegistry
from .resource_advisor import PsutilSnapshotProvider, ResourceBudgetAdvisor, SnapshotProvider
from .runtime import CancellationToken, InferenceSession, KVCache, Sampler
from .validator import ArtifactValidator, detect_format

__version__ = "0.1.0"

__all__ = [
    # Facade
    "ModelRuntime",
    "ModelSlotRegistry",
    "RuntimeConfig",
    "configure_logging",
    # Components
    "ArtifactValidator",
    "CancellationToken",
    "FormatDispatchLoader",
    "GenerativeLoader",
    "InferenceSession",
    "KVCache",
    "OneShotLoader",
    "OneShotSession",
    "PsutilSnapshotProvider",
    "ResourceBudgetAdvisor",
    "Sampler",
    "detect_format",
    # Delegates
    "ArtifactSource",
    "Backend",
    "BackendOptions",
    "DirectoryResolver",
    "ModelSourceResolver",
    "SlotLoader",
    "SnapshotProvider",
    "Tokenizer",
    # Models
    "ArtifactFormat",
    "ArtifactMetadata",
    "ConversationTurn",
    "MemoryPressure",
    "ModelArtifact",
    "ModelTier",
    "ResourceDecision",
    "ResourceSnapshot",
    "Role",
    "SampleParams",
    "SlotName",
    "SlotPriority",
    "SlotState",
    "SlotStatus",
    "StreamEvent",
    "StreamEventKind",
    "ValidationFailure",
    "ValidationResult",
    # Errors
    "ArtifactInvalid",
    "BackendLoadFailed",
    "BackendStepFailed",
    "GenerationCancelled",
    "InsufficientResources",
    "InvalidSampleParams",
    "KVCacheOverflow",
    "LoaderNotRegistered",
    "ModelRuntimeError",
    "SessionNotReady",
]

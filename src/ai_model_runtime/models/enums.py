# ai_model_runtime/models/enums.py
"""Enums and constants for the model runtime."""

from enum import Enum, IntEnum

# =============================================================================
# Enums
# =============================================================================


class SlotName(str, Enum):
    """Logical model roles. Each hosts at most one loaded model."""

    SPEECH = "speech"
    CHAT = "chat"
    GESTURE = "gesture"
    VISION = "vision"


class SlotState(str, Enum):
    """Lifecycle state of a model slot."""

    UNLOADED = "unloaded"
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"
    UNLOADING = "unloading"


class SlotPriority(IntEnum):
    """
    Unload priority under memory pressure.

    Lower value = unloaded first.
    """

    OPTIONAL = 0  # Unloaded under low memory
    NORMAL = 1  # Unloaded after inactivity or under critical memory
    HIGH = 2  # Like NORMAL, but preloaded ahead of it
    CRITICAL = 3  # Never unloaded automatically


class MemoryPressure(str, Enum):
    """Coarse memory pressure level derived from available RAM."""

    NORMAL = "normal"
    LOW = "low"
    CRITICAL = "critical"


class ModelTier(str, Enum):
    """
    Resource-requirement classes, ordered TINY < LITE < STANDARD < PRO < ULTRA.

    Budgets live in TIER_BUDGETS so the ordering stays total and explicit.
    """

    TINY = "tiny"
    LITE = "lite"
    STANDARD = "standard"
    PRO = "pro"
    ULTRA = "ultra"

    @property
    def rank(self) -> int:
        return TIER_ORDER.index(self)

    @property
    def size_budget(self) -> int:
        return TIER_BUDGETS[self][0]

    @property
    def memory_budget(self) -> int:
        return TIER_BUDGETS[self][1]

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, ModelTier):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: object) -> bool:
        if not isinstance(other, ModelTier):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, ModelTier):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, ModelTier):
            return NotImplemented
        return self.rank >= other.rank


class Role(str, Enum):
    """Conversation turn roles."""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class ArtifactFormat(str, Enum):
    """On-disk model formats the backends understand."""

    GGUF = "gguf"  # Modern llama.cpp
    GGML = "ggml"  # Legacy llama.cpp
    TFLITE = "tflite"
    ONNX = "onnx"
    UNKNOWN = "unknown"


class ValidationFailure(str, Enum):
    """Why an artifact was rejected."""

    NOT_FOUND = "not_found"
    TOO_SMALL = "too_small"
    FORMAT_MISMATCH = "format_mismatch"
    SIZE_MISMATCH = "size_mismatch"
    CHECKSUM_MISMATCH = "checksum_mismatch"
    LOAD_TEST_FAILED = "load_test_failed"


class StreamEventKind(str, Enum):
    """Kinds of events emitted by streaming generation."""

    TOKEN = "token"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# =============================================================================
# Constants
# =============================================================================

MB = 1024 * 1024

TIER_ORDER: list[ModelTier] = [
    ModelTier.TINY,
    ModelTier.LITE,
    ModelTier.STANDARD,
    ModelTier.PRO,
    ModelTier.ULTRA,
]

# tier -> (artifact size budget, memory budget), bytes
TIER_BUDGETS: dict[ModelTier, tuple[int, int]] = {
    ModelTier.TINY: (50 * MB, 256 * MB),
    ModelTier.LITE: (150 * MB, 512 * MB),
    ModelTier.STANDARD: (400 * MB, 1024 * MB),
    ModelTier.PRO: (1000 * MB, 1536 * MB),
    ModelTier.ULTRA: (2500 * MB, 4096 * MB),
}

DEFAULT_SLOT_PRIORITIES: dict[SlotName, SlotPriority] = {
    SlotName.SPEECH: SlotPriority.CRITICAL,
    SlotName.CHAT: SlotPriority.HIGH,
    SlotName.GESTURE: SlotPriority.HIGH,
    SlotName.VISION: SlotPriority.NORMAL,
}

# Smallest plausible artifact per format, bytes
MIN_ARTIFACT_BYTES: dict[ArtifactFormat, int] = {
    ArtifactFormat.GGUF: 1 * MB,
    ArtifactFormat.GGML: 1 * MB,
    ArtifactFormat.TFLITE: 1024,
    ArtifactFormat.ONNX: 1024,
    ArtifactFormat.UNKNOWN: 1,
}

EXTENSION_FORMATS: dict[str, ArtifactFormat] = {
    ".gguf": ArtifactFormat.GGUF,
    ".ggml": ArtifactFormat.GGML,
    ".bin": ArtifactFormat.GGML,
    ".tflite": ArtifactFormat.TFLITE,
    ".onnx": ArtifactFormat.ONNX,
}

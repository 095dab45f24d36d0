# ai_model_runtime/exceptions.py
"""Exception hierarchy for the model runtime."""

from __future__ import annotations


class ModelRuntimeError(Exception):
    """Base exception for all model runtime errors."""


class InsufficientResources(ModelRuntimeError):
    """The device budget does not allow loading a model right now."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Insufficient resources: {reason}")


class ArtifactInvalid(ModelRuntimeError):
    """A model artifact failed validation."""

    def __init__(self, reason: str, detail: str = "") -> None:
        self.reason = reason
        self.detail = detail
        message = f"Artifact invalid ({reason})"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class BackendLoadFailed(ModelRuntimeError):
    """The inference backend could not load an artifact."""

    def __init__(self, cause: BaseException | str) -> None:
        self.cause = cause
        super().__init__(f"Backend load failed: {cause}")


class BackendStepFailed(ModelRuntimeError):
    """A single forward step failed; the whole generation is aborted."""

    def __init__(self, cause: BaseException | str, step: int = 0) -> None:
        self.cause = cause
        self.step = step
        super().__init__(f"Backend step {step} failed: {cause}")


class SessionNotReady(ModelRuntimeError):
    """The slot has no usable session (not loaded, or wrong kind)."""

    def __init__(self, slot: str, state: str = "") -> None:
        self.slot = slot
        self.state = state
        suffix = f" (state: {state})" if state else ""
        super().__init__(f"Session for slot '{slot}' is not ready{suffix}")


class InvalidSampleParams(ModelRuntimeError):
    """A sampling parameter is out of range."""

    def __init__(self, field: str, value: object) -> None:
        self.field = field
        self.value = value
        super().__init__(f"Invalid sample parameter {field}={value!r}")


class GenerationCancelled(ModelRuntimeError):
    """Generation was stopped by the caller between decode steps."""

    def __init__(self, partial_text: str = "", tokens_generated: int = 0) -> None:
        self.partial_text = partial_text
        self.tokens_generated = tokens_generated
        super().__init__(f"Generation cancelled after {tokens_generated} tokens")


class LoaderNotRegistered(ModelRuntimeError):
    """No loader is registered for the requested slot."""

    def __init__(self, slot: str) -> None:
        self.slot = slot
        super().__init__(f"No loader registered for slot '{slot}'")


class KVCacheOverflow(ModelRuntimeError):
    """A write addressed a position beyond the fixed cache capacity."""

    def __init__(self, position: int, capacity: int) -> None:
        self.position = position
        self.capacity = capacity
        super().__init__(f"KV cache position {position} exceeds capacity {capacity}")

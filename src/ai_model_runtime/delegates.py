# ai_model_runtime/delegates.py
"""
External collaborators the runtime depends on but does not implement.

- Backend: the neural-network engine (llama.cpp, TFLite, ONNX Runtime, ...)
- Tokenizer: encode/decode for the loaded model
- ModelSourceResolver: where a slot's artifact lives on disk

Backend methods are synchronous and may block; the runtime calls them from
worker threads.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from pydantic import BaseModel, Field

from ai_model_runtime.config import DEFAULT_MODELS_DIR, DEFAULT_THREADS
from ai_model_runtime.exceptions import ArtifactInvalid
from ai_model_runtime.models.enums import EXTENSION_FORMATS, ArtifactFormat, SlotName, ValidationFailure

if TYPE_CHECKING:
    import numpy as np

    from ai_model_runtime.runtime.kv_cache import KVCache

logger = logging.getLogger(__name__)


class BackendOptions(BaseModel):
    """Options passed to Backend.load()."""

    threads: int = Field(default=DEFAULT_THREADS, ge=1)
    use_accelerator: bool = Field(default=False, description="GPU/NPU delegate")

    def cpu_only(self) -> BackendOptions:
        return self.model_copy(update={"use_accelerator": False})


@runtime_checkable
class Backend(Protocol):
    """Protocol for inference engines."""

    def load(self, path: Path, options: BackendOptions) -> Any:
        """Load an artifact and return an opaque handle."""
        ...

    def forward_step(self, handle: Any, tokens: Sequence[int], kv_cache: KVCache) -> np.ndarray:
        """
        Run the model over ``tokens``, writing their keys/values into
        ``kv_cache`` starting at ``kv_cache.length``, and return the logits
        for the token that follows.
        """
        ...

    def infer(self, handle: Any, inputs: Any) -> Any:
        """One-shot inference for non-generative models."""
        ...

    def unload(self, handle: Any) -> None:
        """Release everything the handle owns."""
        ...


@runtime_checkable
class Tokenizer(Protocol):
    """Protocol for a tokenizer/detokenizer pair."""

    @property
    def eos_token_id(self) -> int: ...

    @property
    def vocab_size(self) -> int: ...

    def encode(self, text: str) -> list[int]:
        """Text to token ids."""
        ...

    def decode(self, token_ids: Sequence[int]) -> str:
        """Token ids to text."""
        ...


class ArtifactSource(BaseModel):
    """Where a slot's artifact lives and what it is expected to be."""

    path: Path
    format: ArtifactFormat | None = Field(default=None, description="Declared format, if known")
    expected_size: int | None = Field(default=None, description="Advertised size in bytes")
    sha256: str | None = Field(default=None, description="Expected checksum, hex")


class ModelSourceResolver(Protocol):
    """Protocol for locating a slot's artifact."""

    def resolve(self, slot: SlotName) -> ArtifactSource | Path:
        """Return the artifact for ``slot``."""
        ...


class DirectoryResolver:
    """
    Resolves ``<models_dir>/<slot>.<ext>`` for the known artifact extensions.

    When several files match, the extension order in EXTENSION_FORMATS
    decides (gguf first).
    """

    def __init__(self, models_dir: str | Path = DEFAULT_MODELS_DIR) -> None:
        self._models_dir = Path(models_dir)

    @property
    def models_dir(self) -> Path:
        return self._models_dir

    def resolve(self, slot: SlotName) -> ArtifactSource:
        for extension, fmt in EXTENSION_FORMATS.items():
            candidate = self._models_dir / f"{slot.value}{extension}"
            if candidate.is_file():
                logger.debug(f"Resolved {slot.value} -> {candidate}")
                return ArtifactSource(path=candidate, format=fmt)

        raise ArtifactInvalid(
            ValidationFailure.NOT_FOUND.value,
            f"No artifact for slot '{slot.value}' in {self._models_dir}",
        )

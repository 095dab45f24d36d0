# ai_model_runtime/models/artifact.py
"""Model artifact and validation result models."""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field

from ai_model_runtime.exceptions import ArtifactInvalid
from ai_model_runtime.models.enums import ArtifactFormat, ValidationFailure


class ModelArtifact(BaseModel):
    """
    An on-disk model file backing a slot.

    Immutable once validated. The slot's loader holds it until unload and
    then drops the reference; the file itself is never deleted.
    """

    model_config = {"frozen": True}

    path: Path
    format: ArtifactFormat = ArtifactFormat.UNKNOWN
    declared_size: int | None = Field(default=None, description="Size the source advertised, bytes")
    observed_size: int = Field(default=0, description="Size found on disk, bytes")
    sha256: str | None = Field(default=None, description="Verified checksum, if one was checked")

    @property
    def name(self) -> str:
        return self.path.name


class ArtifactMetadata(BaseModel):
    """What can be read from a model file without loading it."""

    file_name: str
    size_bytes: int
    format: ArtifactFormat = ArtifactFormat.UNKNOWN
    version: int | None = Field(default=None, description="Container version (GGUF only)")
    tensor_count: int | None = Field(default=None, description="Tensors declared in the header (GGUF only)")
    metadata_count: int | None = Field(default=None, description="Key/value entries in the header (GGUF only)")


class ValidationResult(BaseModel):
    """Outcome of ArtifactValidator.validate()."""

    ok: bool
    failure: ValidationFailure | None = None
    detail: str = ""
    artifact: ModelArtifact | None = None

    @classmethod
    def success(cls, artifact: ModelArtifact) -> ValidationResult:
        return cls(ok=True, artifact=artifact)

    @classmethod
    def failed(cls, failure: ValidationFailure, detail: str = "") -> ValidationResult:
        return cls(ok=False, failure=failure, detail=detail)

    def raise_for_failure(self) -> ModelArtifact:
        """Return the artifact, or raise ArtifactInvalid if validation failed."""
        if not self.ok or self.artifact is None:
            failure = self.failure.value if self.failure else "unknown"
            raise ArtifactInvalid(failure, self.detail)
        return self.artifact

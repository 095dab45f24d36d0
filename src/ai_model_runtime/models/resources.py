# ai_model_runtime/models/resources.py
"""Resource snapshot and budget decision models."""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, Field

from ai_model_runtime.base_models import DictCompatModel
from ai_model_runtime.models.enums import ModelTier


class ResourceSnapshot(BaseModel):
    """
    Point-in-time view of device memory, storage and CPU.

    Recomputed for every load decision; never cached across decisions.
    All sizes are bytes.
    """

    model_config = {"frozen": True}

    total_memory: int = Field(..., gt=0)
    available_memory: int = Field(..., ge=0)
    total_storage: int = Field(..., gt=0)
    available_storage: int = Field(..., ge=0)
    cpu_count: int = Field(default=1, ge=1)
    cpu_load: float = Field(default=0.0, ge=0.0, le=100.0, description="Approximate CPU load, percent")
    taken_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_usage(
        cls,
        total_memory: int,
        used_memory: int,
        total_storage: int,
        used_storage: int,
        cpu_count: int = 1,
        cpu_load: float = 0.0,
    ) -> ResourceSnapshot:
        """Build a snapshot from used (rather than available) amounts."""
        return cls(
            total_memory=total_memory,
            available_memory=max(total_memory - used_memory, 0),
            total_storage=total_storage,
            available_storage=max(total_storage - used_storage, 0),
            cpu_count=cpu_count,
            cpu_load=cpu_load,
        )

    @property
    def used_memory(self) -> int:
        return max(self.total_memory - self.available_memory, 0)

    @property
    def used_storage(self) -> int:
        return max(self.total_storage - self.available_storage, 0)

    @property
    def used_memory_pct(self) -> float:
        return self.used_memory / self.total_memory

    @property
    def used_storage_pct(self) -> float:
        return self.used_storage / self.total_storage


class ResourceDecision(DictCompatModel):
    """Outcome of a budget assessment: go/no-go plus the tier that fits."""

    allowed: bool
    tier: ModelTier = ModelTier.TINY
    max_artifact_bytes: int = 0
    max_memory_bytes: int = 0
    reason: str = ""
    used_memory_pct: float = 0.0
    used_storage_pct: float = 0.0

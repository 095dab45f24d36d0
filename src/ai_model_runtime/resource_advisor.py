# ai_model_runtime/resource_advisor.py
"""
ResourceBudgetAdvisor - go/no-go and tier choice before any model load.

Rules:
- if used memory or used storage is above USAGE_CEILING of its total, no
  load is allowed
- otherwise the AI budget for each resource is ``total * BUDGET_FRACTION -
  used``, and the highest tier whose memory and artifact-size budgets both
  fit is chosen (TINY when none does)

For a fixed snapshot the decision is pure. Snapshots are taken fresh for
every decision.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Protocol

import psutil

from ai_model_runtime.config import DEFAULT_MODELS_DIR
from ai_model_runtime.models.enums import MB, TIER_ORDER, MemoryPressure, ModelTier
from ai_model_runtime.models.resources import ResourceDecision, ResourceSnapshot

logger = logging.getLogger(__name__)

USAGE_CEILING = 0.5
BUDGET_FRACTION = 0.6

LOW_MEMORY_BYTES = 200 * MB
CRITICAL_MEMORY_BYTES = 100 * MB


class SnapshotProvider(Protocol):
    """Protocol for reading the device's current resources."""

    def snapshot(self) -> ResourceSnapshot:
        """Return a fresh snapshot."""
        ...


class PsutilSnapshotProvider:
    """Reads host memory, disk and CPU via psutil."""

    def __init__(self, storage_path: str | Path = DEFAULT_MODELS_DIR) -> None:
        self._storage_path = Path(storage_path)

    def _existing_storage_path(self) -> Path:
        # disk_usage needs an existing path; walk up until one exists
        path = self._storage_path.resolve()
        while not path.exists() and path != path.parent:
            path = path.parent
        return path

    def snapshot(self) -> ResourceSnapshot:
        memory = psutil.virtual_memory()
        disk = psutil.disk_usage(str(self._existing_storage_path()))
        return ResourceSnapshot(
            total_memory=memory.total,
            available_memory=memory.available,
            total_storage=disk.total,
            available_storage=disk.free,
            cpu_count=psutil.cpu_count(logical=True) or 1,
            cpu_load=psutil.cpu_percent(interval=None),
        )


class ResourceBudgetAdvisor:
    """
    Decides whether loading is safe and which model tier fits.

    Usage::

        advisor = ResourceBudgetAdvisor()
        decision = advisor.assess()
        if decision.allowed:
            print(decision.tier)
    """

    def __init__(
        self,
        provider: SnapshotProvider | None = None,
        usage_ceiling: float = USAGE_CEILING,
        budget_fraction: float = BUDGET_FRACTION,
        low_memory_bytes: int = LOW_MEMORY_BYTES,
        critical_memory_bytes: int = CRITICAL_MEMORY_BYTES,
    ) -> None:
        self._provider = provider or PsutilSnapshotProvider()
        self._usage_ceiling = usage_ceiling
        self._budget_fraction = budget_fraction
        self._low_memory_bytes = low_memory_bytes
        self._critical_memory_bytes = critical_memory_bytes

    def snapshot(self) -> ResourceSnapshot:
        return self._provider.snapshot()

    def assess(self, snapshot: ResourceSnapshot | None = None) -> ResourceDecision:
        snap = snapshot if snapshot is not None else self._provider.snapshot()
        memory_pct = snap.used_memory_pct
        storage_pct = snap.used_storage_pct

        offenders: list[str] = []
        if memory_pct > self._usage_ceiling:
            offenders.append(f"RAM {memory_pct * 100:.1f}%")
        if storage_pct > self._usage_ceiling:
            offenders.append(f"storage {storage_pct * 100:.1f}%")

        if offenders:
            reason = f"Current usage too high ({', '.join(offenders)}; ceiling {self._usage_ceiling * 100:.0f}%)"
            logger.info(f"Load refused: {reason}")
            return ResourceDecision(
                allowed=False,
                tier=ModelTier.TINY,
                reason=reason,
                used_memory_pct=memory_pct,
                used_storage_pct=storage_pct,
            )

        memory_budget = int(snap.total_memory * self._budget_fraction) - snap.used_memory
        storage_budget = int(snap.total_storage * self._budget_fraction) - snap.used_storage

        tier = self._pick_tier(memory_budget, storage_budget)
        allowed = storage_budget >= tier.size_budget and memory_budget >= tier.memory_budget

        if allowed:
            reason = f"{tier.value} fits (memory budget {memory_budget // MB} MB, storage budget {storage_budget // MB} MB)"
        else:
            reason = (
                f"Not enough headroom for {tier.value} "
                f"(memory budget {memory_budget // MB} MB, storage budget {storage_budget // MB} MB)"
            )
            logger.info(f"Load refused: {reason}")

        return ResourceDecision(
            allowed=allowed,
            tier=tier,
            max_artifact_bytes=max(storage_budget, 0),
            max_memory_bytes=max(memory_budget, 0),
            reason=reason,
            used_memory_pct=memory_pct,
            used_storage_pct=storage_pct,
        )

    def memory_pressure(self, snapshot: ResourceSnapshot | None = None) -> MemoryPressure:
        snap = snapshot if snapshot is not None else self._provider.snapshot()
        if snap.available_memory < self._critical_memory_bytes:
            return MemoryPressure.CRITICAL
        if snap.available_memory < self._low_memory_bytes:
            return MemoryPressure.LOW
        return MemoryPressure.NORMAL

    @staticmethod
    def _pick_tier(memory_budget: int, storage_budget: int) -> ModelTier:
        for tier in reversed(TIER_ORDER):
            if memory_budget >= tier.memory_budget and storage_budget >= tier.size_budget:
                return tier
        return ModelTier.TINY

# ai_model_runtime/registry.py
"""
ModelSlotRegistry - lifecycle owner for every model slot.

State machine per slot:

    UNLOADED -> LOADING -> READY -> UNLOADING -> UNLOADED
                LOADING -> FAILED -> (retry) UNLOADED -> LOADING

A load runs: budget check -> artifact resolution -> validation -> loader.
Concurrent ensure_loaded() calls for the same slot share one in-flight
load and see the same outcome. Every mutation of a slot happens under that
slot's lock.

The registry is constructed once and passed to consumers; there is no
module-level instance.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from ai_model_runtime.config import RuntimeConfig
from ai_model_runtime.delegates import ArtifactSource, BackendOptions, DirectoryResolver, ModelSourceResolver
from ai_model_runtime.exceptions import InsufficientResources, LoaderNotRegistered
from ai_model_runtime.loaders import SlotLoader
from ai_model_runtime.models.enums import DEFAULT_SLOT_PRIORITIES, MemoryPressure, SlotName, SlotPriority, SlotState
from ai_model_runtime.models.slot import ModelSlot, SlotStatus
from ai_model_runtime.resource_advisor import ResourceBudgetAdvisor
from ai_model_runtime.validator import ArtifactValidator

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ModelSlotRegistry:
    """
    Owns one ModelSlot per SlotName and drives its lifecycle.

    Usage::

        registry = ModelSlotRegistry(
            loaders={SlotName.CHAT: GenerativeLoader(backend, tokenizer)},
            resolver=DirectoryResolver("models"),
        )
        session = await registry.ensure_loaded(SlotName.CHAT)
        await registry.unload(SlotName.CHAT)
    """

    def __init__(
        self,
        loaders: Mapping[SlotName, SlotLoader],
        resolver: ModelSourceResolver | None = None,
        advisor: ResourceBudgetAdvisor | None = None,
        validator: ArtifactValidator | None = None,
        config: RuntimeConfig | None = None,
        priorities: Mapping[SlotName, SlotPriority] | None = None,
        perform_load_test: bool = False,
    ) -> None:
        self._config = config or RuntimeConfig()
        self._resolver = resolver or DirectoryResolver(self._config.models_dir)
        self._advisor = advisor or ResourceBudgetAdvisor()
        self._validator = validator or ArtifactValidator()
        self._perform_load_test = perform_load_test
        self._options = BackendOptions(
            threads=self._config.threads,
            use_accelerator=self._config.use_accelerator,
        )

        merged_priorities = dict(DEFAULT_SLOT_PRIORITIES)
        if priorities:
            merged_priorities.update(priorities)

        self._slots: dict[SlotName, ModelSlot] = {
            name: ModelSlot(
                name=name,
                priority=merged_priorities[name],
                loader=loaders.get(name),
            )
            for name in SlotName
        }
        self._locks: dict[SlotName, asyncio.Lock] = {name: asyncio.Lock() for name in SlotName}
        self._inflight: dict[SlotName, asyncio.Task[Any]] = {}

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def config(self) -> RuntimeConfig:
        return self._config

    @property
    def advisor(self) -> ResourceBudgetAdvisor:
        return self._advisor

    def slot(self, name: SlotName | str) -> ModelSlot:
        return self._slots[SlotName(name)]

    def state(self, name: SlotName | str) -> SlotState:
        return self._slots[SlotName(name)].state

    def runtime(self, name: SlotName | str) -> Any | None:
        """The live runtime for a READY slot, else None. Does not load."""
        record = self._slots[SlotName(name)]
        return record.runtime if record.state == SlotState.READY else None

    def touch(self, name: SlotName | str) -> None:
        """Mark a slot as used now (idle unloading looks at this)."""
        self._slots[SlotName(name)].last_used_at = _utcnow()

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    async def ensure_loaded(self, name: SlotName | str) -> Any:
        """Return the slot's runtime, loading it first if needed."""
        slot_name = SlotName(name)
        record = self._slots[slot_name]
        if record.state == SlotState.READY:
            record.last_used_at = _utcnow()
            return record.runtime

        task = self._inflight.get(slot_name)
        # A finished task whose callback has not run yet is a stale failure
        if task is None or task.done():
            task = asyncio.get_running_loop().create_task(self._load(slot_name))
            self._inflight[slot_name] = task
            task.add_done_callback(lambda done: self._forget_inflight(slot_name, done))

        # Shielded so one caller's cancellation does not abort the shared load
        return await asyncio.shield(task)

    def _forget_inflight(self, name: SlotName, task: asyncio.Task[Any]) -> None:
        if self._inflight.get(name) is task:
            del self._inflight[name]
        if not task.cancelled():
            # Mark retrieved; every awaiting caller re-raises it
            task.exception()

    async def _load(self, name: SlotName) -> Any:
        async with self._locks[name]:
            record = self._slots[name]
            if record.state == SlotState.READY:
                return record.runtime
            if record.loader is None:
                raise LoaderNotRegistered(name.value)

            if record.state == SlotState.FAILED:
                logger.info(f"[{name.value}] retrying after {record.retry_count} failed load(s)")
                record.state = SlotState.UNLOADED

            record.state = SlotState.LOADING
            record.failure_reason = None
            logger.info(f"[{name.value}] loading")

            try:
                runtime = await self._load_runtime(record)
            except asyncio.CancelledError:
                record.state = SlotState.UNLOADED
                record.artifact = None
                raise
            except Exception as e:
                record.state = SlotState.FAILED
                record.artifact = None
                record.retry_count += 1
                record.failure_reason = str(e)
                logger.warning(f"[{name.value}] load failed ({type(e).__name__}): {e}")
                raise

            now = _utcnow()
            record.runtime = runtime
            record.state = SlotState.READY
            record.retry_count = 0
            record.last_loaded_at = now
            record.last_used_at = now
            logger.info(f"[{name.value}] ready (tier {record.tier.value if record.tier else '-'})")
            return runtime

    async def _load_runtime(self, record: ModelSlot) -> Any:
        decision = self._advisor.assess()
        if not decision.allowed:
            record.resource_reason = decision.reason
            raise InsufficientResources(decision.reason)
        record.resource_reason = None
        record.tier = decision.tier

        source = self._resolver.resolve(record.name)
        if isinstance(source, Path):
            source = ArtifactSource(path=source)

        result = await self._validator.validate(
            source.path,
            declared_format=source.format,
            expected_size=source.expected_size,
            sha256=source.sha256,
            perform_load_test=self._perform_load_test,
        )
        artifact = result.raise_for_failure()
        record.artifact = artifact

        return await record.loader.load(record.name, artifact, self._options)

    async def preload(self, priority: SlotPriority = SlotPriority.CRITICAL) -> dict[SlotName, SlotState]:
        """
        Load every slot with a loader at or above ``priority``.

        Best effort: failures are logged and reflected in the returned
        states rather than raised.
        """
        names = [
            name
            for name, record in self._slots.items()
            if record.loader is not None and record.priority >= priority
        ]
        names.sort(key=lambda n: self._slots[n].priority, reverse=True)

        results = await asyncio.gather(*(self.ensure_loaded(n) for n in names), return_exceptions=True)
        for name, result in zip(names, results):
            if isinstance(result, BaseException):
                logger.warning(f"[{name.value}] preload failed: {result}")
        return {name: self._slots[name].state for name in names}

    # ------------------------------------------------------------------
    # Unloading
    # ------------------------------------------------------------------

    async def unload(self, name: SlotName | str) -> None:
        """Release the slot's runtime. No-op when nothing is loaded."""
        slot_name = SlotName(name)
        async with self._locks[slot_name]:
            record = self._slots[slot_name]
            if record.state == SlotState.UNLOADED:
                return
            if record.state == SlotState.FAILED:
                # Nothing was opened; clear the failure
                record.state = SlotState.UNLOADED
                return

            record.state = SlotState.UNLOADING
            runtime = record.runtime
            try:
                await record.loader.release(runtime)
            finally:
                record.runtime = None
                record.artifact = None
                record.state = SlotState.UNLOADED
            logger.info(f"[{slot_name.value}] unloaded")

    async def unload_all(self) -> None:
        """Unload every slot, lowest priority first."""
        order = sorted(self._slots.values(), key=lambda r: r.priority)
        for record in order:
            await self.unload(record.name)

    async def unload_idle(self, max_idle_seconds: float | None = None, now: datetime | None = None) -> list[SlotName]:
        """Unload non-CRITICAL slots unused for longer than ``max_idle_seconds``."""
        limit = max_idle_seconds if max_idle_seconds is not None else self._config.idle_timeout_seconds
        current = now or _utcnow()

        idle = [
            record.name
            for record in self._slots.values()
            if record.state == SlotState.READY
            and record.priority < SlotPriority.CRITICAL
            and record.last_used_at is not None
            and (current - record.last_used_at).total_seconds() > limit
        ]
        for name in idle:
            logger.info(f"[{name.value}] idle for more than {limit:.0f}s, unloading")
            await self.unload(name)
        return idle

    async def relieve_pressure(self, pressure: MemoryPressure | None = None) -> list[SlotName]:
        """
        Unload slots according to memory pressure.

        LOW unloads OPTIONAL slots; CRITICAL unloads every non-CRITICAL slot.
        """
        level = pressure if pressure is not None else self._advisor.memory_pressure()
        if level == MemoryPressure.CRITICAL:
            ceiling = SlotPriority.HIGH
        elif level == MemoryPressure.LOW:
            ceiling = SlotPriority.OPTIONAL
        else:
            return []

        victims = [
            record.name
            for record in sorted(self._slots.values(), key=lambda r: r.priority)
            if record.state == SlotState.READY and record.priority <= ceiling
        ]
        for name in victims:
            logger.warning(f"[{name.value}] unloading under {level.value} memory pressure")
            await self.unload(name)
        return victims

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def status(self, name: SlotName | str) -> SlotStatus:
        record = self._slots[SlotName(name)]
        return SlotStatus(
            slot=record.name,
            state=record.state,
            priority=record.priority,
            resource_reason=record.resource_reason,
            failure_reason=record.failure_reason,
            tier=record.tier,
            retry_count=record.retry_count,
            artifact_path=str(record.artifact.path) if record.artifact else None,
            last_loaded_at=record.last_loaded_at,
            last_used_at=record.last_used_at,
        )

    def statuses(self) -> dict[SlotName, SlotStatus]:
        return {name: self.status(name) for name in SlotName}

# tests/test_models.py
"""
Tests for the pydantic models and enums in ai_model_runtime.models.
"""

from datetime import datetime, timezone
from pathlib import Path

import pytest
from pydantic import ValidationError

from ai_model_runtime.exceptions import ArtifactInvalid
from ai_model_runtime.models import (
    ArtifactFormat,
    ConversationTurn,
    ModelArtifact,
    ModelTier,
    ResourceDecision,
    ResourceSnapshot,
    Role,
    SlotName,
    SlotPriority,
    SlotState,
    SlotStatus,
    StreamEvent,
    StreamEventKind,
    ValidationFailure,
    ValidationResult,
)
from ai_model_runtime.models.enums import MB, TIER_ORDER
from fakes import GB


# ===========================================================================
# Enums
# ===========================================================================


class TestModelTier:
    def test_ordering_follows_rank(self):
        assert ModelTier.TINY < ModelTier.LITE < ModelTier.STANDARD < ModelTier.PRO < ModelTier.ULTRA
        assert max(TIER_ORDER) == ModelTier.ULTRA
        # Not alphabetical
        assert ModelTier.PRO < ModelTier.ULTRA
        assert ModelTier.LITE > ModelTier.TINY

    def test_budgets_grow_with_tier(self):
        sizes = [t.size_budget for t in TIER_ORDER]
        memories = [t.memory_budget for t in TIER_ORDER]
        assert sizes == sorted(sizes)
        assert memories == sorted(memories)
        assert ModelTier.TINY.size_budget == 50 * MB

    def test_compare_with_other_type(self):
        with pytest.raises(TypeError):
            ModelTier.PRO < 3  # noqa: B015


class TestSlotEnums:
    def test_slot_names(self):
        assert {s.value for s in SlotName} == {"speech", "chat", "gesture", "vision"}
        assert SlotName("chat") is SlotName.CHAT

    def test_priority_order(self):
        assert SlotPriority.OPTIONAL < SlotPriority.NORMAL < SlotPriority.HIGH < SlotPriority.CRITICAL


# ===========================================================================
# Resources
# ===========================================================================


class TestResourceSnapshot:
    def test_from_usage(self):
        snap = ResourceSnapshot.from_usage(
            total_memory=6 * GB,
            used_memory=2 * GB,
            total_storage=100 * GB,
            used_storage=30 * GB,
            cpu_count=4,
        )
        assert snap.available_memory == 4 * GB
        assert snap.used_memory == 2 * GB
        assert snap.used_memory_pct == pytest.approx(1 / 3)
        assert snap.used_storage_pct == pytest.approx(0.3)
        assert snap.taken_at.tzinfo is not None

    def test_frozen(self):
        snap = ResourceSnapshot(total_memory=GB, available_memory=GB, total_storage=GB, available_storage=GB)
        with pytest.raises(ValidationError):
            snap.total_memory = 1

    def test_rejects_zero_totals(self):
        with pytest.raises(ValidationError):
            ResourceSnapshot(total_memory=0, available_memory=0, total_storage=GB, available_storage=GB)


class TestDictCompat:
    def test_item_access(self):
        decision = ResourceDecision(allowed=True, tier=ModelTier.PRO, reason="fits")
        assert decision["allowed"] is True
        assert decision["tier"] == ModelTier.PRO
        assert "reason" in decision
        assert "nope" not in decision
        assert 1 not in decision

    def test_missing_key(self):
        with pytest.raises(KeyError):
            ResourceDecision(allowed=False)["nope"]

    def test_equals_dict(self):
        decision = ResourceDecision(allowed=False)
        assert decision == decision.model_dump()

    def test_status_to_display(self):
        status = SlotStatus(
            slot=SlotName.CHAT,
            state=SlotState.READY,
            priority=SlotPriority.HIGH,
            tier=ModelTier.PRO,
            last_loaded_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
        )
        display = status.to_display()

        assert display["slot"] == "chat"
        assert display["state"] == "ready"
        assert display["priority"] == "2"
        assert display["tier"] == "pro"
        assert display["failure_reason"] == ""
        assert display["last_loaded_at"].startswith("2024-01-01")


# ===========================================================================
# Artifacts
# ===========================================================================


class TestValidationResult:
    def test_success_returns_artifact(self):
        artifact = ModelArtifact(path=Path("/m/chat.gguf"), format=ArtifactFormat.GGUF, observed_size=2 * MB)
        result = ValidationResult.success(artifact)

        assert result.ok
        assert result.raise_for_failure() is artifact
        assert artifact.name == "chat.gguf"

    def test_failure_raises(self):
        result = ValidationResult.failed(ValidationFailure.TOO_SMALL, "12 bytes")
        with pytest.raises(ArtifactInvalid) as exc_info:
            result.raise_for_failure()

        assert exc_info.value.reason == "too_small"
        assert exc_info.value.detail == "12 bytes"


# ===========================================================================
# Conversation and streaming
# ===========================================================================


class TestConversationTurn:
    def test_render(self):
        assert ConversationTurn(role=Role.USER, text="Hi").render() == "<|user|>\nHi\n"
        assert ConversationTurn(role=Role.SYSTEM, text="Be kind.").render() == "<|system|>\nBe kind.\n"

    def test_role_from_string(self):
        assert ConversationTurn(role="assistant", text="ok").role == Role.ASSISTANT


class TestStreamEvent:
    def test_is_final(self):
        assert not StreamEvent(kind=StreamEventKind.TOKEN, delta="a").is_final
        assert StreamEvent(kind=StreamEventKind.COMPLETED).is_final
        assert StreamEvent(kind=StreamEventKind.CANCELLED).is_final

# tests/test_context_window.py
"""
Tests for ContextWindowManager: history assembly within the input budget.
"""

import pytest

from ai_model_runtime.exceptions import InvalidSampleParams
from ai_model_runtime.models.conversation import GENERATION_PROMPT, ConversationTurn
from ai_model_runtime.models.enums import Role
from ai_model_runtime.runtime.context_window import ContextWindowManager
from fakes import FakeTokenizer


def turn(role, text):
    return ConversationTurn(role=role, text=text)


def rendered_len(role, text):
    return len(turn(role, text).render())


def make_history(n, text="message"):
    roles = [Role.USER, Role.ASSISTANT]
    return [turn(roles[i % 2], f"{text} {i}") for i in range(n)]


class TestBudget:
    def test_budget(self):
        manager = ContextWindowManager(FakeTokenizer(), context_limit=2048)
        assert manager.budget(512) == 1536

    @pytest.mark.parametrize("max_new", [0, 2048, 5000])
    def test_budget_rejects_bad_max_new_tokens(self, max_new):
        manager = ContextWindowManager(FakeTokenizer(), context_limit=2048)
        with pytest.raises(InvalidSampleParams) as exc_info:
            manager.budget(max_new)
        assert exc_info.value.field == "max_new_tokens"


class TestAssemble:
    def test_single_prompt(self):
        """Empty history + "Hello" with 2048/512 stays within 1536 tokens."""
        tokenizer = FakeTokenizer()
        manager = ContextWindowManager(tokenizer, context_limit=2048)
        ctx = manager.assemble([turn(Role.USER, "Hello")], max_new_tokens=512)

        assert ctx.token_count <= 1536
        assert ctx.token_ids == tokenizer.encode(turn(Role.USER, "Hello").render() + GENERATION_PROMPT)
        assert not ctx.truncated

    @pytest.mark.parametrize("n_turns", [0, 1, 5, 40, 200])
    @pytest.mark.parametrize("max_new", [1, 16, 100, 255])
    def test_never_exceeds_budget(self, n_turns, max_new):
        manager = ContextWindowManager(FakeTokenizer(), context_limit=256)
        history = make_history(n_turns) + [turn(Role.USER, "latest question")]
        ctx = manager.assemble(history, max_new_tokens=max_new, system_prompt="Be brief.")
        assert ctx.token_count <= 256 - max_new

    def test_drops_oldest_first(self):
        manager = ContextWindowManager(FakeTokenizer(), context_limit=120)
        history = [
            turn(Role.USER, "oldest " * 5),
            turn(Role.ASSISTANT, "middle"),
            turn(Role.USER, "newest"),
        ]
        ctx = manager.assemble(history, max_new_tokens=60)
        text = "".join(chr(t - 10) for t in ctx.token_ids)

        assert "newest" in text
        assert "middle" in text
        assert "oldest" not in text
        assert ctx.turns_omitted == 1

    def test_history_stays_contiguous(self):
        # A short old turn must not sneak in after a longer one was dropped
        manager = ContextWindowManager(FakeTokenizer(), context_limit=100)
        history = [
            turn(Role.USER, "hi"),
            turn(Role.ASSISTANT, "x" * 60),
            turn(Role.USER, "now"),
        ]
        ctx = manager.assemble(history, max_new_tokens=40)
        assert ctx.turns_included == 1

    def test_system_prompt_first(self):
        tokenizer = FakeTokenizer()
        manager = ContextWindowManager(tokenizer, context_limit=512)
        ctx = manager.assemble([turn(Role.USER, "Hi")], max_new_tokens=64, system_prompt="Be kind.")

        system_ids = tokenizer.encode(turn(Role.SYSTEM, "Be kind.").render())
        assert ctx.system_included
        assert ctx.token_ids[: len(system_ids)] == system_ids

    def test_system_prompt_skipped_when_too_big(self):
        manager = ContextWindowManager(FakeTokenizer(), context_limit=64)
        ctx = manager.assemble([turn(Role.USER, "Hi")], max_new_tokens=16, system_prompt="s" * 100)
        assert not ctx.system_included
        assert ctx.token_count <= 48

    def test_oversized_prompt_right_truncated(self):
        tokenizer = FakeTokenizer()
        manager = ContextWindowManager(tokenizer, context_limit=64)
        ctx = manager.assemble([turn(Role.USER, "y" * 500)], max_new_tokens=16)

        assert ctx.truncated
        assert ctx.token_count == 48
        # The tail survives: the generation prompt is always last
        suffix = tokenizer.encode(GENERATION_PROMPT)
        assert ctx.token_ids[-len(suffix):] == suffix


class TestTurnTokenCount:
    def test_lazy_and_memoised(self):
        calls = []

        class CountingTokenizer(FakeTokenizer):
            def encode(self, text):
                calls.append(text)
                return super().encode(text)

        tokenizer = CountingTokenizer()
        t = turn(Role.USER, "hello")
        assert calls == []

        assert t.token_count(tokenizer) == rendered_len(Role.USER, "hello")
        assert t.token_count(tokenizer) == rendered_len(Role.USER, "hello")
        assert len(calls) == 1

# ai_model_runtime/runtime/sampler.py
"""
Token sampling over a logits vector.

Pipeline, in order:
1. scale by 1/temperature
2. top-k: keep the k largest logits, others become -inf
3. softmax
4. top-p: keep the smallest descending prefix whose mass reaches top_p
5. renormalise and draw by inverse CDF with a uniform from the injected rng
"""

from __future__ import annotations

import math

import numpy as np

from ai_model_runtime.exceptions import InvalidSampleParams
from ai_model_runtime.models.sampling import SampleParams


def softmax(logits: np.ndarray) -> np.ndarray:
    """Numerically stable softmax; -inf entries get probability 0."""
    finite = logits[np.isfinite(logits)]
    if finite.size == 0:
        raise ValueError("softmax needs at least one finite logit")
    shifted = np.exp(logits - finite.max())
    return shifted / shifted.sum()


def distribution(
    logits: np.ndarray | list[float],
    temperature: float,
    top_k: int,
    top_p: float,
) -> np.ndarray:
    """The filtered, renormalised distribution that ``sample`` draws from."""
    if not math.isfinite(temperature) or temperature <= 0.0:
        raise InvalidSampleParams("temperature", temperature)
    if top_k < 1:
        raise InvalidSampleParams("top_k", top_k)
    if not math.isfinite(top_p) or not 0.0 < top_p <= 1.0:
        raise InvalidSampleParams("top_p", top_p)

    scaled = np.asarray(logits, dtype=np.float64)
    if scaled.ndim != 1 or scaled.size == 0:
        raise ValueError(f"logits must be a non-empty 1-D vector, got shape {scaled.shape}")
    scaled = scaled / temperature
    vocab = scaled.size

    # top_k >= vocab is a no-op
    if top_k < vocab:
        keep = np.argpartition(scaled, -top_k)[-top_k:]
        masked = np.full(vocab, -np.inf)
        masked[keep] = scaled[keep]
        scaled = masked

    probs = softmax(scaled)

    if top_p < 1.0:
        order = np.argsort(-probs, kind="stable")
        cumulative = np.cumsum(probs[order])
        cutoff = min(int(np.searchsorted(cumulative, top_p)) + 1, vocab)
        nucleus = np.zeros(vocab)
        nucleus[order[:cutoff]] = probs[order[:cutoff]]
        probs = nucleus / nucleus.sum()

    return probs


def sample(
    logits: np.ndarray | list[float],
    temperature: float,
    top_k: int,
    top_p: float,
    rng: np.random.Generator,
) -> int:
    """Pick one token index from ``logits``."""
    probs = distribution(logits, temperature, top_k, top_p)
    cdf = np.cumsum(probs)
    u = rng.random() * cdf[-1]
    return min(int(np.searchsorted(cdf, u, side="right")), probs.size - 1)


class Sampler:
    """Holds the random generator for one session."""

    def __init__(self, rng: np.random.Generator | None = None, seed: int | None = None) -> None:
        self._rng = rng if rng is not None else np.random.default_rng(seed)

    @property
    def rng(self) -> np.random.Generator:
        return self._rng

    def sample(self, logits: np.ndarray | list[float], params: SampleParams) -> int:
        return sample(logits, params.temperature, params.top_k, params.top_p, self._rng)

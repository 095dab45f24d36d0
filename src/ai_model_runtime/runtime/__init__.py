# ai_model_runtime/runtime/__init__.py
"""
Autoregressive decoding engine.

- KVCache: fixed-capacity key/value arena addressed by (layer, position)
- Sampler: temperature, top-k and top-p token selection
- ContextWindowManager: fits history into the input budget
- InferenceSession: decode loop, streaming and cancellation
"""

from .context_window import AssembledContext, ContextWindowManager
from .kv_cache import KVCache
from .sampler import Sampler, distribution, sample, softmax
from .session import CancellationToken, InferenceSession

__all__ = [
    "AssembledContext",
    "CancellationToken",
    "ContextWindowManager",
    "InferenceSession",
    "KVCache",
    "Sampler",
    "distribution",
    "sample",
    "softmax",
]

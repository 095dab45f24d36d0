# ai_model_runtime/runtime/kv_cache.py
"""
KVCache - fixed-capacity key/value arena for autoregressive decoding.

Two equally sized numpy buffers of shape (num_layers, capacity, hidden_size)
addressed by (layer, position). Capacity is fixed at construction; the
buffers are never resized.

Positions move through two stages:
- pending: written by the backend during a forward step
- committed: accepted after the step succeeded

A failed step rolls back to the last committed position so a half-written
step never leaks into the next call.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

import numpy as np

from ai_model_runtime.exceptions import KVCacheOverflow

logger = logging.getLogger(__name__)

DEFAULT_NUM_LAYERS = 1
DEFAULT_HIDDEN_SIZE = 2048


class KVCache:
    """
    Per-session key/value store for prior decode steps.

    Usage::

        cache = KVCache(capacity=2048, hidden_size=64, num_layers=2)
        pos = cache.length
        cache.write(0, pos, k, v)       # backend, during forward_step
        cache.commit([token_id])        # session, after the step succeeded
    """

    def __init__(
        self,
        capacity: int,
        hidden_size: int = DEFAULT_HIDDEN_SIZE,
        num_layers: int = DEFAULT_NUM_LAYERS,
        dtype: np.dtype | type = np.float32,
    ) -> None:
        if capacity <= 0 or hidden_size <= 0 or num_layers <= 0:
            raise ValueError("capacity, hidden_size and num_layers must be positive")

        shape = (num_layers, capacity, hidden_size)
        self._keys = np.zeros(shape, dtype=dtype)
        self._values = np.zeros(shape, dtype=dtype)
        self._capacity = capacity
        self._length = 0
        self._pending_end = 0
        self._token_ids: list[int] = []

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def num_layers(self) -> int:
        return self._keys.shape[0]

    @property
    def hidden_size(self) -> int:
        return self._keys.shape[2]

    @property
    def length(self) -> int:
        """Committed positions; also the next position a step writes to."""
        return self._length

    @property
    def remaining(self) -> int:
        return self._capacity - self._length

    @property
    def is_empty(self) -> bool:
        return self._length == 0 and not self._token_ids

    @property
    def token_ids(self) -> list[int]:
        """Token ids whose keys/values are committed, in position order."""
        return list(self._token_ids)

    @property
    def nbytes(self) -> int:
        return self._keys.nbytes + self._values.nbytes

    @property
    def keys(self) -> np.ndarray:
        return self._keys

    @property
    def values(self) -> np.ndarray:
        return self._values

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def write(self, layer: int, position: int, key: np.ndarray, value: np.ndarray) -> None:
        """Store one position's key/value for a layer."""
        if position < 0 or position >= self._capacity:
            raise KVCacheOverflow(position, self._capacity)
        if position < self._length:
            raise ValueError(f"Position {position} is already committed (length {self._length})")

        self._keys[layer, position] = key
        self._values[layer, position] = value
        self._pending_end = max(self._pending_end, position + 1)

    def commit(self, token_ids: Sequence[int]) -> None:
        """Accept the positions written for ``token_ids`` by the last step."""
        new_length = self._length + len(token_ids)
        if new_length > self._capacity:
            raise KVCacheOverflow(new_length - 1, self._capacity)

        self._length = new_length
        self._pending_end = max(self._pending_end, new_length)
        self._token_ids.extend(int(t) for t in token_ids)

        # Anything written past the committed tail is stale
        if self._pending_end > self._length:
            self._clear(self._length, self._pending_end)
        self._pending_end = self._length

    def rollback(self) -> None:
        """Discard pending writes from a failed step."""
        if self._pending_end > self._length:
            logger.debug(f"KV rollback: discarding positions {self._length}..{self._pending_end - 1}")
            self._clear(self._length, self._pending_end)
        self._pending_end = self._length

    # ------------------------------------------------------------------
    # Prefix reuse and reset
    # ------------------------------------------------------------------

    def common_prefix(self, token_ids: Sequence[int]) -> int:
        """Length of the longest shared prefix between the cache and ``token_ids``."""
        limit = min(len(self._token_ids), len(token_ids))
        for i in range(limit):
            if self._token_ids[i] != token_ids[i]:
                return i
        return limit

    def truncate(self, length: int) -> None:
        """Keep only the first ``length`` committed positions."""
        if length < 0:
            raise ValueError("length must be >= 0")
        if length >= self._length:
            self.rollback()
            return

        self._clear(length, max(self._pending_end, self._length))
        self._length = length
        self._pending_end = length
        del self._token_ids[length:]

    def reset(self) -> None:
        """Empty the cache. Buffers keep their capacity."""
        self._keys.fill(0)
        self._values.fill(0)
        self._length = 0
        self._pending_end = 0
        self._token_ids.clear()

    def _clear(self, start: int, end: int) -> None:
        self._keys[:, start:end] = 0
        self._values[:, start:end] = 0

    def __repr__(self) -> str:
        return (
            f"KVCache(length={self._length}, capacity={self._capacity}, "
            f"layers={self.num_layers}, hidden={self.hidden_size})"
        )

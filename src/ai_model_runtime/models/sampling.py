# ai_model_runtime/models/sampling.py
"""Sampling parameters."""

from __future__ import annotations

import math

from pydantic import BaseModel, Field

from ai_model_runtime.config import DEFAULT_TEMPERATURE, DEFAULT_TOP_K, DEFAULT_TOP_P
from ai_model_runtime.exceptions import InvalidSampleParams


class SampleParams(BaseModel):
    """
    Token-selection settings for one generation call.

    Ranges are not enforced by pydantic so that bad values surface as
    InvalidSampleParams at the call boundary, before any backend work.
    """

    temperature: float = Field(default=DEFAULT_TEMPERATURE, description="> 0")
    top_k: int = Field(default=DEFAULT_TOP_K, description=">= 1")
    top_p: float = Field(default=DEFAULT_TOP_P, description="in (0, 1]")

    def check(self) -> SampleParams:
        """Raise InvalidSampleParams for the first out-of-range field."""
        if not math.isfinite(self.temperature) or self.temperature <= 0.0:
            raise InvalidSampleParams("temperature", self.temperature)
        if self.top_k < 1:
            raise InvalidSampleParams("top_k", self.top_k)
        if not math.isfinite(self.top_p) or not 0.0 < self.top_p <= 1.0:
            raise InvalidSampleParams("top_p", self.top_p)
        return self

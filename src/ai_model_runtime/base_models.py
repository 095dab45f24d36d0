# ai_model_runtime/base_models.py
"""Base model for results handed to the surrounding application."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel


class DictCompatModel(BaseModel):
    """Result model that also reads like a plain dict.

    Status and decision objects cross into UI code that renders them as
    key/value tables, so ``obj["state"]`` and ``"state" in obj`` are
    supported alongside attribute access.
    """

    def __getitem__(self, key: str) -> Any:
        if key not in type(self).model_fields:
            raise KeyError(key)
        return getattr(self, key)

    def __contains__(self, key: object) -> bool:
        if isinstance(key, str):
            return key in type(self).model_fields
        return False

    def __eq__(self, other: object) -> bool:
        if isinstance(other, dict):
            return self.model_dump() == other
        return super().__eq__(other)

    def to_display(self) -> dict[str, str]:
        """Flatten to string values for status screens."""
        out: dict[str, str] = {}
        for key, value in self.model_dump(mode="json").items():
            out[key] = "" if value is None else str(value)
        return out

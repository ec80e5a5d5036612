"""Progress event model."""

from __future__ import annotations

from pydantic import Field, model_validator

from .base import DomainModel


class ProgressEvent(DomainModel):
    """Ordered notification that another unit of work has settled."""

    sequence: int = Field(ge=1)
    completed: int = Field(ge=0)
    total: int = Field(ge=0)
    label: str = ""

    @model_validator(mode="after")
    def _completed_within_total(self) -> ProgressEvent:
        if self.completed > self.total:
            raise ValueError(f"completed ({self.completed}) exceeds total ({self.total})")
        return self

    @property
    def fraction(self) -> float:
        if self.total == 0:
            return 1.0
        return self.completed / self.total


__all__ = ["ProgressEvent"]

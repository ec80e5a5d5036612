"""Pydantic bases shared by the Switchboard domain models."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class DomainModel(BaseModel):
    """Base for requests, results and progress events, which never change once built."""

    model_config = ConfigDict(frozen=True, extra="forbid", validate_assignment=True)


class MutableDomainModel(BaseModel):
    """Base for the job record, which the poller updates in place."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True)

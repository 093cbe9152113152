# WorkLog/models.py

import logging
from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

log = logging.getLogger(__name__)

UNKNOWN_CLIENT = "Unknown"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _to_utc(v):
    if isinstance(v, str):
        v = datetime.fromisoformat(v.replace('Z', '+00:00'))
    if isinstance(v, datetime):
        # Naive values come back from the database and are stored as UTC.
        return v.replace(tzinfo=timezone.utc) if v.tzinfo is None else v.astimezone(timezone.utc)
    raise ValueError("Invalid datetime format")


class WIPEntry(BaseModel):
    """
    A work-in-progress ledger entry: one observation or a consolidated
    block of work for a client/project.

    Unknown extra fields (retainer flags, adjustments, entities) are kept
    so they survive being copied from the most recent record of a cluster.
    """
    model_config = ConfigDict(extra="allow")

    id: str
    client_name: str = UNKNOWN_CLIENT
    project_name: str = ""
    description: str = ""
    time_in_minutes: int = Field(default=0, ge=0)
    hourly_rate: float = 0.0
    date: datetime = Field(default_factory=utc_now)
    client_id: str = ""
    client_address: str = ""
    partner: str = "Unknown"
    category: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @field_validator('date', 'created_at', 'updated_at', mode='before')
    @classmethod
    def ensure_utc(cls, v):
        return _to_utc(v)

    @field_validator('client_name', mode='before')
    @classmethod
    def default_client(cls, v):
        return v or UNKNOWN_CLIENT

    @property
    def has_known_client(self) -> bool:
        return self.client_name != UNKNOWN_CLIENT


class ScreenAnalysis(BaseModel):
    """One minute of screen activity as described by the capture layer."""
    client_name: str = UNKNOWN_CLIENT
    project_name: str = ""
    activity_description: str
    detailed_description: Optional[str] = None
    confidence_score: float = 0.0
    partner: Optional[str] = None
    hourly_rate: Optional[float] = Field(default=None, alias="hourlyRate")

    model_config = ConfigDict(populate_by_name=True)


class DescriptionComparison(BaseModel):
    should_update: bool
    updated_description: Optional[str] = None
    explanation: str = ""
    same_task: bool = False


class MergeDecision(BaseModel):
    should_merge: bool
    confidence: float
    client_match: bool = False
    project_match: bool = False
    description_match: bool = False

    def passes(self, threshold: float) -> bool:
        return self.should_merge and self.confidence > threshold


class LedgerUpdate(BaseModel):
    """Rows to upsert and ids to retire after an aggregation pass."""
    upserts: List[WIPEntry] = Field(default_factory=list)
    retired_ids: List[str] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.upserts and not self.retired_ids

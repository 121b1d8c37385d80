"""
Pydantic Schemas - Data Validation Models

Defines all Pydantic schemas for data validation throughout the crawler:
- User records returned by the remote API
- Checkpoint state
- Per-identifier fetch outcomes and batch results
- Crawl run summaries

Usage:
    from utils.schemas import UserRecord

    user = UserRecord(id=42, **payload)
    key = user.dedup_key
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class UserRecord(BaseModel):
    """User record schema with validation rules.

    Validates against requirements:
    - id: integer
    - address: string, non-empty (the dedup key, compared case-insensitively)
    - twitterUsername / twitterName: passed through as returned by the API
    """

    model_config = ConfigDict(frozen=True)

    id: int = Field(..., description="Sequential user identifier")
    address: str = Field(..., min_length=1, description="Wallet address")
    twitterUsername: Optional[str] = Field(default=None, description="Twitter handle")
    twitterName: Optional[str] = Field(default=None, description="Twitter display name")

    @field_validator("address")
    @classmethod
    def validate_address(cls, v: str) -> str:
        """Validate address is a non-blank string."""
        v = v.strip()
        if not v:
            raise ValueError("address must be a non-empty string")
        return v

    @property
    def dedup_key(self) -> str:
        return self.address.lower()


class CrawlState(BaseModel):
    """Checkpoint payload.

    lastProcessedId: highest identifier whose fetch attempt completed
    lastFoundId: highest identifier that returned a user, if any
    """

    lastProcessedId: int = Field(..., ge=0)
    lastFoundId: Optional[int] = Field(default=None, ge=0)


class OutcomeStatus(str, Enum):
    FOUND = "found"
    ABSENT = "absent"
    FAILED = "failed"


class FetchOutcome(BaseModel):
    """Result of resolving a single identifier."""

    id: int
    status: OutcomeStatus
    record: Optional[UserRecord] = None
    error: Optional[str] = None
    attempts: int = 1

    @classmethod
    def found(cls, record: UserRecord, attempts: int = 1) -> "FetchOutcome":
        return cls(id=record.id, status=OutcomeStatus.FOUND, record=record, attempts=attempts)

    @classmethod
    def absent(cls, user_id: int, attempts: int = 1) -> "FetchOutcome":
        return cls(id=user_id, status=OutcomeStatus.ABSENT, attempts=attempts)

    @classmethod
    def failed(cls, user_id: int, error: str, attempts: int) -> "FetchOutcome":
        return cls(id=user_id, status=OutcomeStatus.FAILED, error=error, attempts=attempts)


class BatchResult(BaseModel):
    """All outcomes of one batch, keeping absent and failed ids apart."""

    ids: list[int]
    outcomes: list[FetchOutcome] = Field(default_factory=list)

    @property
    def records(self) -> list[UserRecord]:
        return [o.record for o in self.outcomes if o.status is OutcomeStatus.FOUND and o.record]

    @property
    def absent_ids(self) -> list[int]:
        return [o.id for o in self.outcomes if o.status is OutcomeStatus.ABSENT]

    @property
    def failed_ids(self) -> list[int]:
        return [o.id for o in self.outcomes if o.status is OutcomeStatus.FAILED]


class CrawlSummary(BaseModel):
    """Totals reported when a crawl run stops."""

    start_id: int
    last_processed_id: int
    last_found_id: Optional[int] = None
    batches: int = 0
    found: int = 0
    appended: int = 0
    absent: int = 0
    failed: int = 0
    faulted_batches: int = 0
    elapsed_seconds: float = 0.0
    ids_per_minute: float = 0.0

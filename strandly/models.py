"""
strandly/models.py
──────────────────
SQLModel table definitions.

Each class that carries  table=True  maps to a database table.
Fields without defaults are required on INSERT.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel


def utcnow() -> datetime:
    """Return the current UTC time (timezone-aware)."""
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return uuid.uuid4().hex


class SubmissionStatus(str, Enum):
    """Lifecycle of one paid analysis: pending → paid → analyzed → emailed."""

    PENDING = "pending"
    PAID = "paid"
    ANALYZED = "analyzed"
    EMAILED = "emailed"


class QuizSubmission(SQLModel, table=True):
    """
    One quiz submission and the state of its payment, analysis and delivery.
    Status transitions go through SubmissionRepository.compare_and_swap().
    """

    __tablename__ = "quiz_submissions"

    id: str = Field(default_factory=_new_id, primary_key=True, max_length=32)

    email: str = Field(index=True, max_length=320)

    # Raw quiz answers exactly as submitted
    answers: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))

    status: SubmissionStatus = Field(default=SubmissionStatus.PENDING, index=True)

    # Payment processor session / charge id
    payment_reference: Optional[str] = Field(default=None, max_length=255)

    # Serialised HairAnalysis, set once analysis has run
    analysis: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSON, nullable=True))

    # Audit timestamps
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

"""
strandly/schemas.py
───────────────────
Pydantic v2 request / response schemas (DTOs).

Kept separate from the SQLModel table so that the API contract can
evolve independently of how submissions are stored.
"""

import re
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator

from strandly.engine.analysis import HairAnalysis
from strandly.models import SubmissionStatus

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def _normalise_email(v: str) -> str:
    val = v.strip().lower()
    if not _EMAIL_RE.match(val):
        raise ValueError(f"'{v}' is not a valid email address.")
    return val


def _optional_email(v: Optional[str]) -> Optional[str]:
    """Blank means "use the quiz email"; anything else must be a valid address."""
    if v is None or not v.strip():
        return None
    return _normalise_email(v)


class FulfillmentOutcome(str, Enum):
    DELIVERED = "delivered"
    DUPLICATE = "duplicate"
    DELIVERY_FAILED = "delivery_failed"


class QuizSubmissionRequest(BaseModel):
    """Request body for /quiz/submit."""

    email: str = Field(max_length=320, examples=["jane@example.com"])
    answers: Dict[str, Any] = Field(
        default_factory=dict,
        description="Raw quiz answers. Unknown or missing answers are defaulted during analysis.",
        examples=[{"hairType": "3b", "thickness": "fine", "porosity": "high"}],
    )

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        return _normalise_email(v)


class QuizSubmissionResponse(BaseModel):
    submission_id: str
    status: SubmissionStatus
    message: str


class SubmissionStatusResponse(BaseModel):
    """Public representation of a stored QuizSubmission."""

    submission_id: str
    status: SubmissionStatus
    created_at: datetime
    updated_at: datetime
    analysis: Optional[HairAnalysis] = Field(
        default=None,
        description="Present once the submission has been paid for and analysed.",
    )


class PaymentCompletedEvent(BaseModel):
    """Payment-completion callback from the payment processor."""

    submission_id: str = Field(min_length=1, max_length=64)
    payer_email: Optional[str] = Field(
        default=None,
        description="Checkout email. Falls back to the email stored with the quiz.",
    )
    payment_reference: Optional[str] = Field(default=None, max_length=255)

    @field_validator("payer_email")
    @classmethod
    def validate_payer_email(cls, v: Optional[str]) -> Optional[str]:
        return _optional_email(v)


class MockPaymentRequest(BaseModel):
    """Request body for the mock checkout endpoint."""

    submission_id: str = Field(min_length=1, max_length=64)
    payer_email: Optional[str] = None

    @field_validator("payer_email")
    @classmethod
    def validate_payer_email(cls, v: Optional[str]) -> Optional[str]:
        return _optional_email(v)


class FulfillmentResponse(BaseModel):
    received: bool = True
    outcome: FulfillmentOutcome


class HealthResponse(BaseModel):
    status: str
    version: str
    environment: str
    database: Optional[str] = None

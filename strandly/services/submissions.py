"""
strandly/services/submissions.py
────────────────────────────────
Repository for QuizSubmission rows.

compare_and_swap() is a conditional UPDATE on the status column, so when
a payment callback is delivered more than once only the first caller
wins the pending → paid transition and runs analysis and delivery.
"""

import logging
from typing import Any, Optional

from fastapi import Depends
from sqlalchemy import update
from sqlmodel import Session

from strandly.database import get_session
from strandly.models import QuizSubmission, SubmissionStatus, utcnow

logger = logging.getLogger(__name__)


class SubmissionRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, submission_id: str) -> Optional[QuizSubmission]:
        return self.session.get(QuizSubmission, submission_id)

    def put(self, submission: QuizSubmission) -> QuizSubmission:
        """Insert or update a submission and return the refreshed row."""
        submission.updated_at = utcnow()
        self.session.add(submission)
        self.session.commit()
        self.session.refresh(submission)
        return submission

    def compare_and_swap(
        self,
        submission_id: str,
        expected: SubmissionStatus,
        new: SubmissionStatus,
        **changes: Any,
    ) -> bool:
        """
        Move a submission from ``expected`` to ``new`` status, applying
        ``changes`` in the same statement. Returns False, and changes
        nothing, when the stored status is not ``expected``.
        """
        statement = (
            update(QuizSubmission)
            .where(QuizSubmission.id == submission_id)
            .where(QuizSubmission.status == expected)
            .values(status=new, updated_at=utcnow(), **changes)
        )
        result = self.session.connection().execute(statement)
        self.session.commit()

        swapped = result.rowcount == 1
        if swapped:
            logger.info("Submission %s: %s → %s", submission_id, expected.value, new.value)
        else:
            logger.info(
                "Submission %s: %s → %s skipped (status changed concurrently)",
                submission_id,
                expected.value,
                new.value,
            )
        return swapped


def get_repository(db: Session = Depends(get_session)) -> SubmissionRepository:
    """FastAPI dependency — repository bound to the request's session."""
    return SubmissionRepository(db)

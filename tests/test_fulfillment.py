"""
Fulfillment Workflow Tests

Tests validate:
- pending → paid → analyzed → emailed on first callback
- Repeated callbacks deliver exactly once
- Delivery failure leaves the stored analysis in place
- Recipient fallback and unknown submissions
"""

import asyncio

import pytest

from strandly.core.exceptions import SubmissionNotFoundError
from strandly.engine.analysis import HairAnalysis
from strandly.models import QuizSubmission, SubmissionStatus
from strandly.schemas import FulfillmentOutcome, PaymentCompletedEvent
from strandly.services.fulfillment import process_payment_completion

from conftest import RecordingMailer


@pytest.fixture
def submission(repo):
    return repo.put(
        QuizSubmission(
            email="quiz@example.com",
            answers={"hairType": "3c", "porosity": "high", "damage_indicators": "none"},
        )
    )


def complete(repo, mailer, catalog, knowledge_base, submission_id, **event_fields):
    event = PaymentCompletedEvent(submission_id=submission_id, **event_fields)
    return asyncio.run(
        process_payment_completion(repo, mailer, event, catalog, knowledge_base, amount_paid="$29.00")
    )


class TestFulfillment:
    def test_first_callback_delivers(self, repo, mailer, catalog, knowledge_base, submission):
        outcome = complete(
            repo,
            mailer,
            catalog,
            knowledge_base,
            submission.id,
            payer_email="payer@example.com",
            payment_reference="cs_123",
        )

        stored = repo.get(submission.id)
        assert outcome == FulfillmentOutcome.DELIVERED
        assert stored.status == SubmissionStatus.EMAILED
        assert stored.payment_reference == "cs_123"
        assert len(mailer.sent) == 1
        assert mailer.sent[0].to == ["payer@example.com"]
        assert f"Order ID: {submission.id}" in mailer.sent[0].text

    def test_stored_analysis_validates(self, repo, mailer, catalog, knowledge_base, submission):
        complete(repo, mailer, catalog, knowledge_base, submission.id)

        analysis = HairAnalysis.model_validate(repo.get(submission.id).analysis)

        assert analysis.profile.curl_pattern == "3c"
        assert analysis.recommendations.catalog_version == catalog.version

    def test_falls_back_to_quiz_email(self, repo, mailer, catalog, knowledge_base, submission):
        complete(repo, mailer, catalog, knowledge_base, submission.id)

        assert mailer.sent[0].to == ["quiz@example.com"]

    def test_duplicate_callback_sends_once(self, repo, mailer, catalog, knowledge_base, submission):
        first = complete(repo, mailer, catalog, knowledge_base, submission.id, payment_reference="cs_1")
        second = complete(repo, mailer, catalog, knowledge_base, submission.id, payment_reference="cs_2")

        assert first == FulfillmentOutcome.DELIVERED
        assert second == FulfillmentOutcome.DUPLICATE
        assert len(mailer.sent) == 1
        assert repo.get(submission.id).payment_reference == "cs_1"

    def test_delivery_failure_keeps_analysis(self, repo, catalog, knowledge_base, submission):
        failing = RecordingMailer(fail=True)

        outcome = complete(repo, failing, catalog, knowledge_base, submission.id)

        stored = repo.get(submission.id)
        assert outcome == FulfillmentOutcome.DELIVERY_FAILED
        assert stored.status == SubmissionStatus.ANALYZED
        assert stored.analysis is not None

    def test_callback_after_failed_delivery_is_duplicate(self, repo, mailer, catalog, knowledge_base, submission):
        complete(repo, RecordingMailer(fail=True), catalog, knowledge_base, submission.id)

        outcome = complete(repo, mailer, catalog, knowledge_base, submission.id)

        assert outcome == FulfillmentOutcome.DUPLICATE
        assert mailer.sent == []

    def test_unknown_submission(self, repo, mailer, catalog, knowledge_base):
        with pytest.raises(SubmissionNotFoundError):
            complete(repo, mailer, catalog, knowledge_base, "missing")

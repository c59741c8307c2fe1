"""
strandly/api/routes.py
──────────────────────
Strandly API v1 endpoints.

Endpoints
─────────
POST /quiz/submit
    • Accepts the customer's email and raw quiz answers.
    • Stores a pending QuizSubmission and returns its id for checkout.
    • Limited per client address (RATE_LIMIT_QUIZ).

GET /quiz/{submission_id}
    • Returns the submission's status and, once paid, the stored analysis.

POST /payments/completed
    • Payment-completion callback from the payment processor.
    • Claims the submission, runs the analysis and emails the report.
    • Repeated callbacks for the same submission are acknowledged as
      duplicates and change nothing.
    • One global quota for all callers (RATE_LIMIT_PAYMENT_CALLBACK).

POST /test/complete-payment
    • Mock checkout: simulates the payment callback for a submission.
    • Only served when ENABLE_TEST_ENDPOINTS is on; 404 otherwise.
    • Limited per client address (RATE_LIMIT_CHECKOUT).
"""

import logging
import uuid

from fastapi import APIRouter, Depends, Request, status

from strandly.core.config import Settings, get_settings
from strandly.core.exceptions import MockCheckoutDisabledError, SubmissionNotFoundError
from strandly.core.rate_limit import (
    checkout_limit,
    limiter,
    payment_callback_key,
    payment_callback_limit,
    quiz_limit,
)
from strandly.engine.catalog import Catalog, KnowledgeBase, get_catalog, get_knowledge_base
from strandly.models import QuizSubmission
from strandly.schemas import (
    FulfillmentResponse,
    MockPaymentRequest,
    PaymentCompletedEvent,
    QuizSubmissionRequest,
    QuizSubmissionResponse,
    SubmissionStatusResponse,
)
from strandly.services.delivery import Mailer, get_mailer
from strandly.services.fulfillment import process_payment_completion
from strandly.services.submissions import SubmissionRepository, get_repository

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Strandly"])


@router.post(
    "/quiz/submit",
    response_model=QuizSubmissionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Submit a hair quiz",
    description=(
        "Stores the quiz answers against the customer's email as a pending "
        "submission. The returned submission_id is passed to checkout."
    ),
)
@limiter.limit(quiz_limit)
async def submit_quiz(
    request: Request,
    payload: QuizSubmissionRequest,
    repo: SubmissionRepository = Depends(get_repository),
    settings: Settings = Depends(get_settings),
) -> QuizSubmissionResponse:
    submission = repo.put(QuizSubmission(email=payload.email, answers=payload.answers))
    logger.info(
        "Quiz submitted: id=%s answers=%d",
        submission.id,
        len(payload.answers),
    )
    return QuizSubmissionResponse(
        submission_id=submission.id,
        status=submission.status,
        message=(
            f"Quiz received. Complete the {settings.analysis_price_display} checkout "
            "to receive your analysis by email."
        ),
    )


@router.get(
    "/quiz/{submission_id}",
    response_model=SubmissionStatusResponse,
    status_code=status.HTTP_200_OK,
    summary="Get a submission's status",
)
async def get_submission(
    submission_id: str,
    repo: SubmissionRepository = Depends(get_repository),
) -> SubmissionStatusResponse:
    submission = repo.get(submission_id)
    if submission is None:
        raise SubmissionNotFoundError(submission_id)
    return SubmissionStatusResponse(
        submission_id=submission.id,
        status=submission.status,
        created_at=submission.created_at,
        updated_at=submission.updated_at,
        analysis=submission.analysis,
    )


@router.post(
    "/payments/completed",
    response_model=FulfillmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Payment-completion callback",
    description=(
        "Called by the payment processor once checkout succeeds. Runs the "
        "analysis and emails the report. Safe to deliver more than once."
    ),
)
@limiter.limit(payment_callback_limit, key_func=payment_callback_key)
async def payment_completed(
    request: Request,
    event: PaymentCompletedEvent,
    repo: SubmissionRepository = Depends(get_repository),
    mailer: Mailer = Depends(get_mailer),
    catalog: Catalog = Depends(get_catalog),
    knowledge_base: KnowledgeBase = Depends(get_knowledge_base),
    settings: Settings = Depends(get_settings),
) -> FulfillmentResponse:
    logger.info(
        "payment_completed: submission_id=%s reference=%s",
        event.submission_id,
        event.payment_reference,
    )
    outcome = await process_payment_completion(
        repo,
        mailer,
        event,
        catalog,
        knowledge_base,
        products_per_category=settings.PRODUCTS_PER_CATEGORY,
        amount_paid=settings.analysis_price_display,
    )
    return FulfillmentResponse(outcome=outcome)


@router.post(
    "/test/complete-payment",
    response_model=FulfillmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Simulate a completed payment (mock checkout)",
    include_in_schema=False,
)
@limiter.limit(checkout_limit)
async def mock_complete_payment(
    request: Request,
    payload: MockPaymentRequest,
    repo: SubmissionRepository = Depends(get_repository),
    mailer: Mailer = Depends(get_mailer),
    catalog: Catalog = Depends(get_catalog),
    knowledge_base: KnowledgeBase = Depends(get_knowledge_base),
    settings: Settings = Depends(get_settings),
) -> FulfillmentResponse:
    if not settings.ENABLE_TEST_ENDPOINTS:
        raise MockCheckoutDisabledError()

    event = PaymentCompletedEvent(
        submission_id=payload.submission_id,
        payer_email=payload.payer_email,
        payment_reference=f"mock_{uuid.uuid4().hex[:16]}",
    )
    logger.info("Mock checkout completed for submission %s", event.submission_id)
    outcome = await process_payment_completion(
        repo,
        mailer,
        event,
        catalog,
        knowledge_base,
        products_per_category=settings.PRODUCTS_PER_CATEGORY,
        amount_paid=settings.analysis_price_display,
    )
    return FulfillmentResponse(outcome=outcome)

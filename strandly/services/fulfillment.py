"""
strandly/services/fulfillment.py
────────────────────────────────
Payment-completion workflow.

Steps
─────
1. Load the submission (404 when unknown).
2. Claim it: pending → paid. A callback that loses this race, or arrives
   after the order was already handled, is reported as a duplicate and
   does nothing else.
3. Run the analysis on the stored answers and persist it: paid → analyzed.
4. Render and send the report, then mark it: analyzed → emailed.

A delivery failure leaves the submission in ``analyzed`` with the stored
result intact and is reported in-band as ``delivery_failed``.
"""

import logging
from typing import Optional

from strandly.core.exceptions import DeliveryError, SubmissionNotFoundError
from strandly.engine.analysis import analyze
from strandly.engine.catalog import Catalog, KnowledgeBase
from strandly.engine.resolver import DEFAULT_PRODUCTS_PER_CATEGORY
from strandly.models import SubmissionStatus
from strandly.schemas import FulfillmentOutcome, PaymentCompletedEvent
from strandly.services.delivery import Mailer, render_report
from strandly.services.submissions import SubmissionRepository

logger = logging.getLogger(__name__)


async def process_payment_completion(
    repo: SubmissionRepository,
    mailer: Mailer,
    event: PaymentCompletedEvent,
    catalog: Catalog,
    knowledge_base: KnowledgeBase,
    products_per_category: int = DEFAULT_PRODUCTS_PER_CATEGORY,
    amount_paid: Optional[str] = None,
) -> FulfillmentOutcome:
    submission = repo.get(event.submission_id)
    if submission is None:
        raise SubmissionNotFoundError(event.submission_id)

    claimed = repo.compare_and_swap(
        submission.id,
        SubmissionStatus.PENDING,
        SubmissionStatus.PAID,
        payment_reference=event.payment_reference,
    )
    if not claimed:
        logger.info(
            "Duplicate payment callback for submission %s (status=%s)",
            submission.id,
            submission.status.value,
        )
        return FulfillmentOutcome.DUPLICATE

    result = analyze(
        submission.answers,
        catalog,
        knowledge_base,
        products_per_category=products_per_category,
    )
    repo.compare_and_swap(
        submission.id,
        SubmissionStatus.PAID,
        SubmissionStatus.ANALYZED,
        analysis=result.model_dump(mode="json"),
    )

    recipient = event.payer_email or submission.email
    email = render_report(result, submission.id, recipient, amount_paid=amount_paid)
    try:
        await mailer.send(email)
    except DeliveryError as exc:
        logger.error(
            "Report for submission %s not delivered to %s: %s",
            submission.id,
            recipient,
            exc.detail,
        )
        return FulfillmentOutcome.DELIVERY_FAILED

    repo.compare_and_swap(submission.id, SubmissionStatus.ANALYZED, SubmissionStatus.EMAILED)
    return FulfillmentOutcome.DELIVERED

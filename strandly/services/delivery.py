"""
strandly/services/delivery.py
─────────────────────────────
Report rendering and email delivery.

Design principles
─────────────────
• render_report() turns a HairAnalysis into a plain-text email; it has no
  I/O and is safe to call repeatedly.
• Mailers share one async send() signature. ResendMailer talks to the
  Resend HTTP API through httpx; LogMailer only logs, for local and mock
  checkout runs.
• Transport failures surface as DeliveryError (HTTP 502); callers never
  see raw httpx exceptions.
"""

import logging
import uuid
from typing import List, Optional, Protocol, runtime_checkable

import httpx
from pydantic import BaseModel, Field

from strandly.core.config import Settings, get_settings
from strandly.core.exceptions import DeliveryError
from strandly.engine.analysis import HairAnalysis
from strandly.engine.catalog import PRICE_TIER_RANGES, ProductRecord
from strandly.engine.resolver import RecommendationCategory

logger = logging.getLogger(__name__)

REPORT_SUBJECT = "Your Strandly Hair Analysis Results"

_CATEGORY_HEADINGS = {
    RecommendationCategory.CLEANSING: "SHAMPOO & CLEANSING",
    RecommendationCategory.CONDITIONING: "CONDITIONING & MOISTURE",
    RecommendationCategory.STYLING: "STYLING & PROTECTION",
    RecommendationCategory.TREATMENTS: "TREATMENTS & MAINTENANCE",
}


class OutgoingEmail(BaseModel):
    to: List[str] = Field(min_length=1)
    subject: str
    text: str


@runtime_checkable
class Mailer(Protocol):
    async def send(self, email: OutgoingEmail) -> str:
        """Send one message and return the provider's message id."""
        ...


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


def _product_line(product: ProductRecord) -> str:
    tier = product.price_tier.value.replace("_", "-")
    line = (
        f"• {product.brand} {product.name} ({product.price_range}, "
        f"{tier} tier {PRICE_TIER_RANGES[product.price_tier]}, rated {product.rating:.1f})"
    )
    if product.usage_frequency:
        line += f"\n  Use: {product.usage_frequency}"
    return line


def render_report(
    analysis: HairAnalysis,
    submission_id: str,
    recipient: str,
    amount_paid: Optional[str] = None,
) -> OutgoingEmail:
    profile = analysis.profile
    damage = analysis.damage
    bundle = analysis.recommendations
    confidence = analysis.confidence

    lines: List[str] = [
        "Hi there!",
        "",
        "Thank you for your Strandly hair analysis purchase! "
        "Here's your personalized hair care report:",
        "",
        "YOUR HAIR PROFILE",
        f"• Texture: {profile.texture.value} ({profile.curl_pattern})",
        f"• Thickness: {profile.thickness.value}",
        f"• Porosity: {profile.porosity.value}",
        f"• Scalp: {', '.join(sorted(s.value for s in profile.scalp_type))}",
        f"• Damage level: {damage.level.value} (score {damage.score}, {damage.priority})",
        "",
    ]

    for category in RecommendationCategory:
        lines.append(_CATEGORY_HEADINGS[category])
        products = bundle.products(category)
        if products:
            lines.extend(_product_line(p) for p in products)
        else:
            lines.append(
                "• We don't yet carry a product we can confidently recommend here. "
                "Our team will follow up."
            )
        lines.append("")

    routine = bundle.routine
    lines.append("YOUR CUSTOM ROUTINE")
    lines.append(f"Wash frequency: {routine.wash_frequency}")
    for label, actions in (
        ("Daily", routine.daily),
        ("Weekly", routine.weekly),
        ("Monthly", routine.monthly),
    ):
        if actions:
            lines.append(f"{label}: " + "; ".join(actions))
    lines.append("")

    if bundle.interactions:
        lines.append("INGREDIENT BALANCE")
        for flag in bundle.interactions:
            lines.append(f"• {flag.warning}. {flag.solution}")
        lines.append("")

    if bundle.safety_warnings:
        lines.append("SAFETY NOTES")
        lines.extend(f"• {w}" for w in bundle.safety_warnings)
        lines.append("")

    lines.append(f"CONFIDENCE: {confidence.overall_confidence}/100")
    lines.append(confidence.interpretation)
    if confidence.consultation_triggers:
        lines.append("")
        lines.append("WHEN TO SEE A PROFESSIONAL")
        for trigger in confidence.consultation_triggers:
            lines.append(f"• {trigger.reason}: {trigger.professional} ({trigger.urgency})")
    lines += [
        "",
        "Questions? Reply to this email for personalized follow-up advice!",
        "",
        "Best regards,",
        "The Strandly Hair Experts",
        "",
        "---",
        f"Order ID: {submission_id}",
    ]
    if amount_paid:
        lines.append(f"Amount paid: {amount_paid}")

    return OutgoingEmail(to=[recipient], subject=REPORT_SUBJECT, text="\n".join(lines))


# ---------------------------------------------------------------------------
# Mailers
# ---------------------------------------------------------------------------


class LogMailer:
    """Logs messages instead of sending them."""

    async def send(self, email: OutgoingEmail) -> str:
        message_id = f"log-{uuid.uuid4().hex[:12]}"
        logger.info(
            "Email (not sent) id=%s to=%s subject=%r (%d chars)",
            message_id,
            ", ".join(email.to),
            email.subject,
            len(email.text),
        )
        return message_id


class ResendMailer:
    """Sends through the Resend REST API."""

    def __init__(
        self,
        api_key: str,
        sender: str,
        base_url: str = "https://api.resend.com",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.api_key = api_key
        self.sender = sender
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    async def send(self, email: OutgoingEmail) -> str:
        payload = {
            "from": self.sender,
            "to": email.to,
            "subject": email.subject,
            "text": email.text,
        }
        headers = {"Authorization": f"Bearer {self.api_key}"}

        try:
            async with httpx.AsyncClient(
                base_url=self.base_url, timeout=self.timeout, transport=self._transport
            ) as client:
                response = await client.post("/emails", json=payload, headers=headers)
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as exc:
            logger.error(
                "Resend rejected email to %s: %s %s",
                ", ".join(email.to),
                exc.response.status_code,
                exc.response.text[:200],
            )
            raise DeliveryError(
                f"Email provider returned HTTP {exc.response.status_code}."
            ) from exc
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("Resend request failed for %s: %s", ", ".join(email.to), exc)
            raise DeliveryError(f"Email delivery failed: {exc}") from exc

        message_id = str(data.get("id", ""))
        logger.info("Analysis email sent to %s (id=%s)", ", ".join(email.to), message_id)
        return message_id


def build_mailer(settings: Settings) -> Mailer:
    if settings.DELIVERY_BACKEND == "resend":
        return ResendMailer(
            api_key=settings.RESEND_API_KEY or "",
            sender=settings.EMAIL_SENDER,
            base_url=settings.RESEND_API_URL,
            timeout=settings.EMAIL_TIMEOUT_SECONDS,
        )
    return LogMailer()


def get_mailer() -> Mailer:
    """FastAPI dependency — mailer for the configured delivery backend."""
    return build_mailer(get_settings())

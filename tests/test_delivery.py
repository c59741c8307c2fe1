"""
Delivery Tests

Tests validate:
- Plain-text report rendering
- Resend request shape and error mapping (httpx MockTransport)
- Mailer selection by configuration
"""

import asyncio
import json

import httpx
import pytest
from pydantic import ValidationError

from strandly.core.config import Settings
from strandly.core.exceptions import DeliveryError
from strandly.engine.analysis import analyze
from strandly.engine.catalog import PRICE_TIER_RANGES
from strandly.services.delivery import (
    REPORT_SUBJECT,
    LogMailer,
    OutgoingEmail,
    ResendMailer,
    build_mailer,
    render_report,
)


@pytest.fixture
def analysis(catalog, knowledge_base):
    return analyze(
        {"texture": "curly", "porosity": "high", "damage_indicators": ["bleaching", "heat"]},
        catalog,
        knowledge_base,
    )


@pytest.fixture
def email():
    return OutgoingEmail(to=["jane@example.com"], subject=REPORT_SUBJECT, text="hello")


def make_mailer(handler) -> ResendMailer:
    return ResendMailer(
        api_key="re_test_key",
        sender="Strandly <analysis@strandly.shop>",
        base_url="https://resend.test",
        transport=httpx.MockTransport(handler),
    )


class TestRenderReport:
    def test_contains_profile_and_products(self, analysis):
        email = render_report(analysis, "sub123", "jane@example.com", amount_paid="$29.00")

        assert email.to == ["jane@example.com"]
        assert email.subject == REPORT_SUBJECT
        assert "Texture: curly (3b)" in email.text
        assert "Porosity: high" in email.text
        assert "Order ID: sub123" in email.text
        assert "Amount paid: $29.00" in email.text
        for product in analysis.recommendations.cleansing:
            assert product.name in email.text

    def test_lists_consultation_triggers(self, catalog, knowledge_base):
        severe = analyze(
            {"damage_indicators": ["bleaching", "heat_styling", "chemical_relaxing"]},
            catalog,
            knowledge_base,
        )

        text = render_report(severe, "sub1", "a@b.co").text

        assert "WHEN TO SEE A PROFESSIONAL" in text
        assert "Severe hair damage detected" in text

    def test_product_lines_show_tier_price_band(self, analysis):
        text = render_report(analysis, "sub123", "jane@example.com").text

        for product in analysis.recommendations.cleansing:
            tier = product.price_tier.value.replace("_", "-")
            assert f"{tier} tier {PRICE_TIER_RANGES[product.price_tier]}" in text

    def test_rendering_is_deterministic(self, analysis):
        first = render_report(analysis, "sub123", "jane@example.com")
        second = render_report(analysis, "sub123", "jane@example.com")

        assert first == second


class TestResendMailer:
    def test_posts_to_emails_endpoint(self, email):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["url"] = str(request.url)
            captured["auth"] = request.headers["Authorization"]
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json={"id": "email_abc"})

        message_id = asyncio.run(make_mailer(handler).send(email))

        assert message_id == "email_abc"
        assert captured["url"] == "https://resend.test/emails"
        assert captured["auth"] == "Bearer re_test_key"
        assert captured["body"] == {
            "from": "Strandly <analysis@strandly.shop>",
            "to": ["jane@example.com"],
            "subject": REPORT_SUBJECT,
            "text": "hello",
        }

    def test_provider_error_raises_delivery_error(self, email):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(422, json={"message": "invalid from address"})

        with pytest.raises(DeliveryError) as exc_info:
            asyncio.run(make_mailer(handler).send(email))

        assert exc_info.value.status_code == 502
        assert "422" in exc_info.value.detail

    def test_transport_error_raises_delivery_error(self, email):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(DeliveryError):
            asyncio.run(make_mailer(handler).send(email))


class TestMailerSelection:
    def test_log_backend(self, email):
        mailer = build_mailer(Settings(_env_file=None, DELIVERY_BACKEND="log"))

        assert isinstance(mailer, LogMailer)
        assert asyncio.run(mailer.send(email)).startswith("log-")

    def test_resend_backend(self):
        mailer = build_mailer(
            Settings(_env_file=None, DELIVERY_BACKEND="resend", RESEND_API_KEY="re_live")
        )

        assert isinstance(mailer, ResendMailer)
        assert mailer.api_key == "re_live"

    def test_resend_backend_requires_key(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, DELIVERY_BACKEND="resend", RESEND_API_KEY="  ")

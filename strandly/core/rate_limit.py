"""
strandly/core/rate_limit.py
───────────────────────────
Per-route request quotas (slowapi).

• Quiz submissions and mock checkouts are limited per client address.
• The payment callback shares one global quota, since every call comes
  from the payment processor.

Limits are read from Settings on each request, written in the
"<count>/<period>" notation ("3/30minutes", "100/minute").
"""

from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from strandly.core.config import get_settings

PAYMENT_CALLBACK_KEY = "payment-callbacks"


def quiz_limit() -> str:
    return get_settings().RATE_LIMIT_QUIZ


def checkout_limit() -> str:
    return get_settings().RATE_LIMIT_CHECKOUT


def payment_callback_limit() -> str:
    return get_settings().RATE_LIMIT_PAYMENT_CALLBACK


def payment_callback_key(request: Request) -> str:
    return PAYMENT_CALLBACK_KEY


limiter = Limiter(key_func=get_remote_address, enabled=get_settings().RATE_LIMIT_ENABLED)

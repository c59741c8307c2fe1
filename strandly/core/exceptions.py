"""
strandly/core/exceptions.py
───────────────────────────
Custom application exceptions with HTTP status mappings.
Raised inside services/routes; caught and formatted by FastAPI or by
the global exception handler registered in main.py.
"""

from fastapi import HTTPException, status


class SubmissionNotFoundError(HTTPException):
    def __init__(self, submission_id: str) -> None:
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Quiz submission '{submission_id}' was not found.",
        )


class DeliveryError(HTTPException):
    def __init__(self, detail: str = "Email delivery failed.") -> None:
        super().__init__(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=detail,
        )


class MockCheckoutDisabledError(HTTPException):
    def __init__(self) -> None:
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Not Found",
        )

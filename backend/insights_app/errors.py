"""Failures surfaced by insight generation.

Malformed model output is deliberately absent: it degrades to a fallback
result instead of raising.
"""

from __future__ import annotations


class InsightGenerationError(Exception):
    """Base class for every generation failure the caller is expected to handle."""


class MissingConfiguration(InsightGenerationError, RuntimeError):
    pass


class EmptyInput(InsightGenerationError, ValueError):
    def __init__(self, message: str = "No feedback provided") -> None:
        super().__init__(message)


class RateLimited(InsightGenerationError):
    def __init__(self, message: str = "Rate limits exceeded, please try again later.") -> None:
        super().__init__(message)


class PaymentRequired(InsightGenerationError):
    def __init__(self, message: str = "Payment required, please add funds to your workspace.") -> None:
        super().__init__(message)


class GatewayError(InsightGenerationError):
    def __init__(self, status: int, body: str = "") -> None:
        self.status = status
        self.body = body
        super().__init__(f"AI gateway error: {status}")


class EmptyResponse(InsightGenerationError):
    def __init__(self, message: str = "No content in AI response") -> None:
        super().__init__(message)

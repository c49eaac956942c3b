"""Kiyoh review platform integration."""

from review_buddy.kiyoh.client import (
    KiyohAPIError,
    KiyohClient,
    KiyohNotConfiguredError,
    KiyohRateLimitError,
)
from review_buddy.kiyoh.models import KiyohReview, KiyohReviewPage

__all__ = [
    "KiyohClient",
    "KiyohAPIError",
    "KiyohNotConfiguredError",
    "KiyohRateLimitError",
    "KiyohReview",
    "KiyohReviewPage",
]

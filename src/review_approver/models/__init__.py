"""Data models for review-approver.

Provides Pydantic models for:
- ProductReview: A submitted product review
- ReviewJob: A queued review plus its attempt counter
"""

from review_approver.models.job import ReviewJob
from review_approver.models.review import ProductReview

__all__ = [
    "ProductReview",
    "ReviewJob",
]

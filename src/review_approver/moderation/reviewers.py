"""Content-policy reviewers.

A reviewer looks at a single review and either approves or denies it. The
worker runs its reviewers in a fixed order and a review is approved only
when every reviewer approves it.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from typing import Iterable

from review_approver.config import DEFAULT_DENYLIST, DEFAULT_SPLIT_PATTERN, ReviewerSettings
from review_approver.logging import get_logger
from review_approver.models.review import ProductReview

logger = get_logger(__name__)


class Reviewer(ABC):
    """Abstract base class for content-policy checks.

    New policies are added as new subclasses; the chain logic in
    `approve_review` never changes.
    """

    @property
    def name(self) -> str:
        """Short name used in logs."""
        return type(self).__name__

    @abstractmethod
    def review(self, review: ProductReview) -> bool:
        """Decide whether the review may be published.

        Args:
            review: The review to check

        Returns:
            True to approve, False to deny
        """
        pass


class DenylistReviewer(Reviewer):
    """Denies reviews that use a denylisted word.

    The text is split on a delimiter pattern and each token is compared to
    the denylist exactly. Matching is case-sensitive and whole-token, so
    "cruul!" is denied but "cruulty" is not.

    Matching runs on `ProductReview.plain_text`, so reviews sanitized before
    they were queued are judged on what the author actually wrote.
    """

    def __init__(self, denylist: Iterable[str], split_pattern: str | re.Pattern[str]):
        self.denylist = frozenset(denylist)
        self.split_regex = re.compile(split_pattern) if isinstance(split_pattern, str) else split_pattern

    @classmethod
    def default(cls) -> "DenylistReviewer":
        """Reviewer with the stock denylist and punctuation-aware splitting."""
        return cls(DEFAULT_DENYLIST, DEFAULT_SPLIT_PATTERN)

    def review(self, review: ProductReview) -> bool:
        for token in self.split_regex.split(review.plain_text()):
            if token in self.denylist:
                logger.info(
                    f"Review by {review.email} denied approval due to usage of denylisted term",
                    extra={"reviewer": self.name, "product_id": review.product_id},
                )
                return False
        return True


def approve_review(review: ProductReview, reviewers: Iterable[Reviewer]) -> bool:
    """Run reviewers in order, stopping at the first denial.

    Args:
        review: Review to vet
        reviewers: Ordered reviewers

    Returns:
        True if every reviewer approved
    """
    for reviewer in reviewers:
        if not reviewer.review(review):
            logger.debug(f"{reviewer.name} denied review", extra={"product_id": review.product_id})
            return False
    return True


def build_reviewers(settings: ReviewerSettings) -> list[Reviewer]:
    """Construct the configured reviewer chain."""
    return [DenylistReviewer(settings.denylist, settings.split_pattern)]

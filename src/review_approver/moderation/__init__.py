"""Moderation policies.

Reviewers decide whether a review is published; notifiers report the
decision back to its author.
"""

from review_approver.moderation.notifiers import (
    ApprovalStatusNotifier,
    Notifier,
    build_notifiers,
    notify_client,
)
from review_approver.moderation.reviewers import (
    DenylistReviewer,
    Reviewer,
    approve_review,
    build_reviewers,
)

__all__ = [
    "Reviewer",
    "DenylistReviewer",
    "approve_review",
    "build_reviewers",
    "Notifier",
    "ApprovalStatusNotifier",
    "notify_client",
    "build_notifiers",
]

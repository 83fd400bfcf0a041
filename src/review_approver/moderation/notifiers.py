"""Outcome notifiers.

Notifiers tell a submitter whether their review was published. Delivery is
best effort: every notifier runs even if an earlier one failed, and failures
never change what happens to the job.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Iterable

from review_approver.config import NotifierSettings
from review_approver.errors import NotificationError
from review_approver.logging import get_logger
from review_approver.models.review import ProductReview

logger = get_logger(__name__)


class Notifier(ABC):
    """Abstract base class for outcome-reporting sinks."""

    @property
    def name(self) -> str:
        """Short name used in logs."""
        return type(self).__name__

    @abstractmethod
    def notify(self, review: ProductReview, approved: bool, message: str) -> None:
        """Report the moderation outcome to the review's author.

        Args:
            review: The moderated review
            approved: Whether it was approved
            message: Caller-supplied detail appended to the notice

        Raises:
            NotificationError: If the message could not be delivered
        """
        pass


class ApprovalStatusNotifier(Notifier):
    """Writes the approval notice an email would contain to the log.

    Attributes:
        sender: Name the notice is signed with
        company: Company the sender writes on behalf of
        guidelines_url: Where denied submitters can read the policy
    """

    def __init__(
        self,
        sender: str = "Bob",
        company: str = "Foo Incorporated",
        guidelines_url: str = "foo.inc/guidelines/community-practices.html",
    ):
        self.sender = sender
        self.company = company
        self.guidelines_url = guidelines_url

    @classmethod
    def from_settings(cls, settings: NotifierSettings) -> "ApprovalStatusNotifier":
        return cls(settings.sender, settings.company, settings.guidelines_url)

    def compose(self, approved: bool, message: str) -> str:
        """Build the notice text."""
        lines = [f"Hello, this is {self.sender} from {self.company}."]
        if approved:
            lines.append(
                "Thank you for your review. It has been approved and will be on our site shortly!"
            )
        else:
            lines.append(
                "Your review has been denied due to not meeting our corporate policies "
                "regarding language. "
                f"Please see our policies listed here: {self.guidelines_url}"
            )
        if message:
            lines.append(message)
        return "\n".join(lines)

    def notify(self, review: ProductReview, approved: bool, message: str) -> None:
        if not review.email:
            raise NotificationError("Review has no email address", notifier=self.name)

        logger.info(
            f"Notifying client: {self.compose(approved, message)}",
            extra={"email": review.email, "approved": approved},
        )


def notify_client(
    review: ProductReview,
    approved: bool,
    message: str,
    notifiers: Iterable[Notifier],
) -> list[Exception]:
    """Run every notifier, collecting failures instead of stopping.

    Args:
        review: The moderated review
        approved: Outcome to report
        message: Detail appended by each notifier
        notifiers: Notifiers to run, in order

    Returns:
        Errors raised by notifiers, in the order they occurred
    """
    errors: list[Exception] = []
    for notifier in notifiers:
        try:
            notifier.notify(review, approved, message)
        except Exception as e:
            logger.warning(
                f"Notifier {notifier.name} failed: {e}",
                extra={"notifier": notifier.name, "error_type": type(e).__name__},
            )
            errors.append(e)
    return errors


def build_notifiers(settings: NotifierSettings) -> list[Notifier]:
    """Construct the configured notifier chain."""
    return [ApprovalStatusNotifier.from_settings(settings)]

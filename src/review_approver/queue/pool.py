"""Worker pool: claims review jobs and moves them to their final state.

Processing one job follows a fixed sequence:

1. Claim: move the oldest job from the request list to the processing list.
2. Decode the claimed bytes into a ReviewJob.
3. Evaluate the review with the reviewer chain.
4. Resolve:
   - approved: notify, then remove from the processing list
   - denied with no attempts left: notify, then remove
   - denied with attempts left: swap the processing-list entry for a copy
     with attempts + 1 pushed back onto the request list

Every transition is one atomic store call, so overlapping calls to
`process_next` never evaluate the same claim twice.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Sequence

from review_approver.errors import ConfigurationError, JobDecodeError, ResolutionMismatchError
from review_approver.logging import get_logger
from review_approver.models.job import ReviewJob
from review_approver.models.review import ProductReview
from review_approver.moderation.notifiers import Notifier, notify_client
from review_approver.moderation.reviewers import Reviewer, approve_review
from review_approver.queue.store import QueueStore

logger = get_logger(__name__)

ACCEPT_MESSAGE = "Your review passed moderation."
REJECT_MESSAGE = "Your review could not be approved after {attempts} attempt(s)."


class JobDecision(str, Enum):
    """How a claimed job was resolved."""

    ACCEPTED = "accepted"  # Approved and removed
    REJECTED = "rejected"  # Denied with no attempts left and removed
    REQUEUED = "requeued"  # Denied and returned to the request list


@dataclass
class ProcessOutcome:
    """Result of processing one claimed job.

    Attributes:
        job: The job as it was claimed
        decision: How it was resolved
        notification_errors: Failures from notifiers (never affect the decision)
    """

    job: ReviewJob
    decision: JobDecision
    notification_errors: list[Exception] = field(default_factory=list)

    @property
    def terminal(self) -> bool:
        """Whether the job has left the queue for good."""
        return self.decision != JobDecision.REQUEUED


@dataclass
class QueueStats:
    """Lengths of the lists a worker uses."""

    request: int
    processing: int
    dead_letter: int

    def to_dict(self) -> dict[str, int]:
        return {
            "request": self.request,
            "processing": self.processing,
            "dead_letter": self.dead_letter,
        }


class WorkerPool:
    """Moderates queued review jobs against a QueueStore.

    Attributes:
        store: Broker holding the lists
        reviewers: Ordered content-policy checks
        notifiers: Outcome sinks
        max_attempts: A denied job is dropped once attempts + 1 reaches this
    """

    def __init__(
        self,
        store: QueueStore,
        reviewers: Sequence[Reviewer],
        notifiers: Sequence[Notifier] = (),
        max_attempts: int = 1,
    ):
        if max_attempts < 1:
            raise ConfigurationError(
                "max_attempts must be at least 1",
                context={"max_attempts": max_attempts},
            )
        self.store = store
        self.reviewers = list(reviewers)
        self.notifiers = list(notifiers)
        self.max_attempts = max_attempts

    def push_review(self, review: ProductReview, list_name: str, attempts: int = 0) -> int:
        """Enqueue a review as a new job.

        Args:
            review: Validated review
            list_name: Request list to push onto
            attempts: Starting attempt count

        Returns:
            Length of the list after the push
        """
        job = ReviewJob(review=review, attempts=attempts)
        length = self.store.push(list_name, job.to_bytes())
        logger.debug(
            "Queued review job",
            extra={"list": list_name, "product_id": review.product_id, "queue_length": length},
        )
        return length

    def process_next(self, request_list: str, processing_list: str) -> ProcessOutcome | None:
        """Claim and resolve the next job.

        Args:
            request_list: List new and retried jobs wait on
            processing_list: List claimed jobs sit on while being moderated

        Returns:
            The outcome, or None if the request list was empty

        Raises:
            StoreError: A store call failed; nothing changed for the job
            JobDecodeError: The claimed entry is malformed and left in
                the processing list
            ResolutionMismatchError: The claimed entry was not found exactly
                once when resolving it
        """
        payload = self.store.move(request_list, processing_list)
        if payload is None:
            return None

        try:
            job = ReviewJob.from_bytes(payload)
        except JobDecodeError as e:
            logger.error(
                f"Stranded malformed job in {processing_list}: {e.message}",
                extra={"list": processing_list, "payload_size": len(payload)},
            )
            raise

        log = logger.with_context(product_id=job.review.product_id, attempts=job.attempts)

        if approve_review(job.review, self.reviewers):
            errors = notify_client(job.review, True, ACCEPT_MESSAGE, self.notifiers)
            self._resolve(processing_list, payload)
            log.info("Review accepted")
            return ProcessOutcome(job, JobDecision.ACCEPTED, errors)

        if job.attempts + 1 >= self.max_attempts:
            message = REJECT_MESSAGE.format(attempts=job.attempts + 1)
            errors = notify_client(job.review, False, message, self.notifiers)
            self._resolve(processing_list, payload)
            log.info("Review rejected")
            return ProcessOutcome(job, JobDecision.REJECTED, errors)

        retry = job.with_next_attempt()
        removed = self.store.requeue(processing_list, request_list, payload, retry.to_bytes())
        if removed != 1:
            raise ResolutionMismatchError(processing_list, removed, {"decision": "requeue"})
        log.info("Review requeued", extra={"next_attempt": retry.attempts})
        return ProcessOutcome(job, JobDecision.REQUEUED)

    def _resolve(self, processing_list: str, payload: bytes) -> None:
        """Remove exactly one copy of a finished job from the processing list."""
        removed = self.store.remove(processing_list, payload)
        if removed != 1:
            raise ResolutionMismatchError(processing_list, removed)

    def sweep_stranded(self, processing_list: str, dead_letter_list: str) -> int:
        """Move undecodable entries off the processing list.

        Well-formed entries are left alone since another worker may be
        moderating them.

        Returns:
            Number of entries moved to the dead-letter list
        """
        moved = 0
        for payload in self.store.items(processing_list):
            try:
                ReviewJob.from_bytes(payload)
            except JobDecodeError:
                pass
            else:
                continue

            if self.store.requeue(processing_list, dead_letter_list, payload, payload) == 1:
                moved += 1

        if moved:
            logger.warning(
                f"Moved {moved} malformed job(s) to {dead_letter_list}",
                extra={"list": processing_list},
            )
        return moved

    def stats(self, request_list: str, processing_list: str, dead_letter_list: str) -> QueueStats:
        return QueueStats(
            request=self.store.length(request_list),
            processing=self.store.length(processing_list),
            dead_letter=self.store.length(dead_letter_list),
        )

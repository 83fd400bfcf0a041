"""ReviewJob model for review-approver.

A ReviewJob is the unit of work on the broker lists: a review plus the number
of times moderation has already denied it.
"""

from __future__ import annotations

import json

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from review_approver.errors import JobDecodeError
from review_approver.models.review import ProductReview


class ReviewJob(BaseModel):
    """A queued product review.

    Jobs are located on the processing list by comparing serialized bytes, so
    `to_bytes` must produce identical output for equal jobs.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    review: ProductReview
    attempts: int = Field(default=0, ge=0)

    def to_bytes(self) -> bytes:
        """Serialize to canonical JSON (sorted keys, compact, UTF-8)."""
        return json.dumps(
            self.model_dump(by_alias=True),
            sort_keys=True,
            separators=(",", ":"),
            ensure_ascii=False,
        ).encode("utf-8")

    @classmethod
    def from_bytes(cls, data: bytes | str) -> "ReviewJob":
        """Decode a job claimed from the broker.

        Raises:
            JobDecodeError: If the payload is not a well-formed job
        """
        try:
            return cls.model_validate_json(data)
        except ValidationError as e:
            raise JobDecodeError(
                f"Malformed job payload: {e.error_count()} error(s)",
                payload=data,
                context={"errors": [err["msg"] for err in e.errors()][:3]},
            ) from e

    def with_next_attempt(self) -> "ReviewJob":
        """Return a copy with the attempt counter advanced by one."""
        return self.model_copy(update={"attempts": self.attempts + 1})

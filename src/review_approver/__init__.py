"""Review Approver - Asynchronous moderation of product reviews.

Product reviews are queued on a list-oriented broker, claimed one at a time
by a worker pool, run through a chain of content-policy reviewers and
reported back to the submitter through a chain of notifiers.
"""

__version__ = "0.1.0"

"""Tests for review and job models."""

import json

import pytest

from review_approver.errors import JobDecodeError
from review_approver.models import ProductReview, ReviewJob

from conftest import make_review


class TestProductReviewValidation:
    """Tests for ProductReview.validate_fields."""

    def test_valid_review(self):
        """A complete review has no errors."""
        assert make_review().validate_fields() == []

    def test_missing_params_reported_together(self):
        """All missing fields appear in one message."""
        errors = ProductReview().validate_fields()

        assert errors == [
            "Missing param(s): Product ID, Review Text, Reviewer Name, Email Address, Rating"
        ]

    def test_invalid_reviewer_name(self):
        """Names with symbols are rejected."""
        errors = make_review(reviewer_name="<script>").validate_fields()
        assert any("reviewer name" in e for e in errors)

    def test_invalid_email(self):
        """Malformed emails are rejected."""
        errors = make_review(email="not-an-email").validate_fields()
        assert errors == ["Invalid email address format"]

    def test_email_too_long(self):
        """Emails over 50 characters are rejected."""
        errors = make_review(email="a" * 45 + "@example.com").validate_fields()
        assert errors == ["Email address exceeds max limit of 50 characters"]

    @pytest.mark.parametrize("rating", [-1, 6, 10])
    def test_rating_out_of_range(self, rating):
        """Ratings must be 1 to 5."""
        errors = make_review(rating=rating).validate_fields()
        assert errors == ["Rating must be a value in the range of 1 to 5"]

    def test_text_too_long(self):
        """Text is limited to 3850 characters."""
        errors = make_review(text="a" * 3851).validate_fields()
        assert errors == ["Review length is limited to 3850 characters"]


class TestProductReviewSanitize:
    """Tests for ProductReview.sanitized."""

    def test_escapes_html(self):
        """HTML is escaped, then the entity ampersands for script strings."""
        review = make_review(text='<script>alert("x")</script>')
        clean = review.sanitized()

        assert "<" not in clean.text
        assert '"' not in clean.text
        assert clean.text.startswith("\\u0026lt;script\\u0026gt;")
        assert review.text.startswith("<script>")  # Original untouched

    def test_escapes_backslash(self):
        """Backslashes are escaped for script contexts."""
        assert make_review(text="a\\b").sanitized().text == "a\\\\b"

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("a\nb", "a\\u000Ab"),
            ("a\rb", "a\\u000Db"),
            ("a\x00b", "a\\u0000b"),
            ("x=1", "x\\u003D1"),
            ("a\u2028b", "a\\u2028b"),
        ],
    )
    def test_escapes_control_characters_and_equals(self, text, expected):
        """Line breaks, NUL and '=' never reach a script string raw."""
        assert make_review(text=text).sanitized().text == expected

    def test_script_breakout_neutralized(self):
        """A newline and closing tag are both escaped."""
        clean = make_review(text="a\nb</script>=x").sanitized().text

        assert "\n" not in clean
        assert "=" not in clean
        assert "</script>" not in clean

    def test_plain_text_unchanged(self):
        """Ordinary text passes through."""
        assert make_review(text="great buy").sanitized().text == "great buy"
        assert make_review(text="ünïcode ok").sanitized().text == "ünïcode ok"


class TestProductReviewPlainText:
    """Tests for ProductReview.plain_text."""

    @pytest.mark.parametrize(
        "text",
        ["it's <b>nee</b> & more", 'say "x=1"\n\tok', "a\\b", "emoji \U0001F600 and \U000E0001 tag"],
    )
    def test_reverses_sanitizing(self, text):
        """plain_text recovers what was submitted."""
        assert make_review(text=text).sanitized().plain_text() == text

    def test_unescaped_text_unchanged(self):
        """Text with nothing escaped reads as-is."""
        assert make_review(text="great buy").plain_text() == "great buy"


class TestReviewJob:
    """Tests for ReviewJob serialization."""

    def test_default_attempts(self):
        """New jobs start with zero attempts."""
        assert ReviewJob(review=make_review()).attempts == 0

    def test_negative_attempts_rejected(self):
        """Attempts can't be negative."""
        with pytest.raises(ValueError):
            ReviewJob(review=make_review(), attempts=-1)

    def test_wire_format(self):
        """Serialized jobs use the queue field names."""
        data = json.loads(ReviewJob(review=make_review(), attempts=2).to_bytes())

        assert data == {
            "attempts": 2,
            "review": {
                "email": "jane@example.com",
                "productID": 709,
                "rating": 5,
                "reviewerName": "Jane Doe",
                "text": "great buy, would recommend",
            },
        }

    def test_canonical_bytes(self):
        """Independently built equal jobs serialize identically."""
        a = ReviewJob(review=make_review(), attempts=1)
        b = ReviewJob.from_bytes(
            b'{"review": {"text": "great buy, would recommend", "rating": 5, '
            b'"email": "jane@example.com", "reviewerName": "Jane Doe", "productID": 709}, '
            b'"attempts": 1}'
        )

        assert a == b
        assert a.to_bytes() == b.to_bytes()

    def test_roundtrip(self):
        """Serialize(deserialize(x)) == x for canonical bytes."""
        payload = ReviewJob(review=make_review(text="ünïcode ok"), attempts=3).to_bytes()
        assert ReviewJob.from_bytes(payload).to_bytes() == payload

    def test_from_str(self):
        """Decoding accepts str as well as bytes."""
        payload = ReviewJob(review=make_review()).to_bytes().decode("utf-8")
        assert ReviewJob.from_bytes(payload).review.product_id == 709

    @pytest.mark.parametrize(
        "payload",
        [b"not json", b"{}", b'{"review": {"productID": "abc"}, "attempts": 0}', b'{"review": {}, "attempts": -2}'],
    )
    def test_decode_errors(self, payload):
        """Malformed payloads raise JobDecodeError."""
        with pytest.raises(JobDecodeError) as exc_info:
            ReviewJob.from_bytes(payload)

        assert exc_info.value.payload == payload

    def test_with_next_attempt(self):
        """Advancing attempts returns a new job."""
        job = ReviewJob(review=make_review(), attempts=1)
        retry = job.with_next_attempt()

        assert retry.attempts == 2
        assert job.attempts == 1
        assert retry.review == job.review

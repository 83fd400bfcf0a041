"""ProductReview model for review-approver.

A ProductReview is what a customer submits about a product. It is validated
and sanitized before being enqueued; the moderation pipeline only reads it.
"""

from __future__ import annotations

import html
import re

from pydantic import BaseModel, ConfigDict, Field

EMAIL_PATTERN = re.compile(r"^[A-Za-z0-9._%-]+@[A-Za-z0-9.-]+[.][A-Za-z]+$")
NAME_PATTERN = re.compile(r"^[A-Za-z0-9 ]+$")

MAX_EMAIL_LENGTH = 50
MAX_TEXT_LENGTH = 3850
MIN_RATING = 1
MAX_RATING = 5

# Characters rewritten for safe embedding in a script string literal; other
# ASCII controls become \u00XX and unprintable non-ASCII runes \uXXXX.
_JS_ESCAPES = {
    "\\": "\\\\",
    "'": "\\'",
    '"': '\\"',
    "<": "\\u003C",
    ">": "\\u003E",
    "&": "\\u0026",
    "=": "\\u003D",
}

_JS_ESCAPE_SEQUENCE = re.compile(r"\\(u[0-9A-Fa-f]{4}|.)", re.DOTALL)


def _js_escape_char(ch: str) -> str:
    if ch in _JS_ESCAPES:
        return _JS_ESCAPES[ch]
    code = ord(ch)
    if code < 0x20:
        return f"\\u{code:04X}"
    if code < 0x80 or ch.isprintable():
        return ch
    if code > 0xFFFF:
        # Surrogate pair, as a script engine reads it
        code -= 0x10000
        return f"\\u{0xD800 + (code >> 10):04X}\\u{0xDC00 + (code & 0x3FF):04X}"
    return f"\\u{code:04X}"


def _js_escape(text: str) -> str:
    return "".join(_js_escape_char(ch) for ch in text)


def _js_unescape(text: str) -> str:
    def replace(match: re.Match[str]) -> str:
        seq = match.group(1)
        if len(seq) == 5:
            return chr(int(seq[1:], 16))
        return seq

    decoded = _JS_ESCAPE_SEQUENCE.sub(replace, text)
    # Join any surrogate pairs produced above
    return decoded.encode("utf-16", "surrogatepass").decode("utf-16", "surrogatepass")


class ProductReview(BaseModel):
    """A customer's review of a product.

    Field aliases match the wire format used on the queue
    (productID, text, reviewerName, email, rating).
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    product_id: int = Field(default=0, alias="productID")
    text: str = ""
    reviewer_name: str = Field(default="", alias="reviewerName")
    email: str = ""
    rating: int = 0

    def validate_fields(self) -> list[str]:
        """Check the review for missing or malformed input.

        Returns:
            Every problem found; empty when the review is valid
        """
        errors: list[str] = []

        missing = []
        if self.product_id == 0:
            missing.append("Product ID")
        if not self.text:
            missing.append("Review Text")
        if not self.reviewer_name:
            missing.append("Reviewer Name")
        if not self.email:
            missing.append("Email Address")
        if self.rating == 0:
            missing.append("Rating")
        if missing:
            errors.append(f"Missing param(s): {', '.join(missing)}")

        if self.reviewer_name and not NAME_PATTERN.match(self.reviewer_name):
            errors.append(
                "Invalid reviewer name format: please use only characters and digits"
            )

        if self.email:
            if not EMAIL_PATTERN.match(self.email):
                errors.append("Invalid email address format")
            elif len(self.email) > MAX_EMAIL_LENGTH:
                errors.append(
                    f"Email address exceeds max limit of {MAX_EMAIL_LENGTH} characters"
                )

        if self.rating != 0 and not MIN_RATING <= self.rating <= MAX_RATING:
            errors.append(f"Rating must be a value in the range of {MIN_RATING} to {MAX_RATING}")

        if len(self.text) > MAX_TEXT_LENGTH:
            errors.append(f"Review length is limited to {MAX_TEXT_LENGTH} characters")

        return errors

    def sanitized(self) -> "ProductReview":
        """Return a copy whose text is HTML-escaped, then escaped for script strings."""
        return self.model_copy(update={"text": _js_escape(html.escape(self.text))})

    def plain_text(self) -> str:
        """Text with the escaping applied by `sanitized` undone.

        Content policies match words against this, so delimiters inside
        entities and escape sequences don't hide a denylisted word.
        """
        return html.unescape(_js_unescape(self.text))

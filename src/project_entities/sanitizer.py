"""Input sanitization for free-text, owner and tag fields."""

import html
import re
import unicodedata

from project_entities.errors import ValidationError

DEFAULT_MAX_LENGTH = 1000

MAX_LENGTHS: dict[str, int] = {
    "id": 50,
    "title": 200,
    "description": 5000,
    "statement": 2000,
    "rationale": 5000,
    "context": 5000,
    "owner": 100,
}

RICH_TEXT_FIELDS = frozenset({"description", "rationale", "statement", "context"})

MAX_TAGS = 10
MAX_TAG_LENGTH = 20
MAX_OWNER_LENGTH = 100

_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")
_KEPT_CONTROL_CHARS = frozenset("\n\r\t")


class Sanitizer:
    """Validates and normalizes field values before they are persisted."""

    def __init__(self, max_lengths: dict[str, int] | None = None) -> None:
        self.max_lengths = dict(MAX_LENGTHS)
        if max_lengths:
            self.max_lengths.update(max_lengths)

    def sanitize_string(self, field: str, value: str) -> str:
        """Sanitize one free-text field.

        Steps: length cap, control character removal (newline, carriage
        return and tab survive), HTML escaping for rich-text fields, NFC
        normalization.

        Args:
            field: Field name, selects the length cap and escaping
            value: Raw value

        Returns:
            Sanitized value

        Raises:
            ValidationError: If the value is not a string or exceeds its cap
        """
        if not isinstance(value, str):
            raise ValidationError(field, "must be a string")

        max_length = self.max_lengths.get(field, DEFAULT_MAX_LENGTH)
        if len(value) > max_length:
            raise ValidationError(field, f"exceeds maximum length of {max_length} characters")

        value = "".join(
            ch for ch in value if ch in _KEPT_CONTROL_CHARS or unicodedata.category(ch) != "Cc"
        )

        if field in RICH_TEXT_FIELDS:
            value = html.escape(value, quote=True)

        return unicodedata.normalize("NFC", value)

    def sanitize_owner(self, value: str) -> str:
        """Restrict owner names to letters, digits, hyphen and underscore."""
        if not isinstance(value, str) or not _NAME_PATTERN.fullmatch(value):
            raise ValidationError("owner", "contains invalid characters (allowed: a-z, A-Z, 0-9, -, _)")
        if len(value) > MAX_OWNER_LENGTH:
            raise ValidationError("owner", f"exceeds maximum length of {MAX_OWNER_LENGTH} characters")
        return value

    def sanitize_tags(self, tags: list[str]) -> list[str]:
        """Validate a tag list and fold every tag to lowercase."""
        if len(tags) > MAX_TAGS:
            raise ValidationError("tags", f"exceeds maximum of {MAX_TAGS} tags")

        result = []
        for tag in tags:
            if not isinstance(tag, str):
                raise ValidationError("tags", f"tag {tag!r} must be a string")
            if len(tag) > MAX_TAG_LENGTH:
                raise ValidationError("tags", f"tag '{tag}' exceeds maximum length of {MAX_TAG_LENGTH} characters")
            if not _NAME_PATTERN.fullmatch(tag):
                raise ValidationError("tags", f"tag '{tag}' contains invalid characters")
            result.append(tag.lower())
        return result

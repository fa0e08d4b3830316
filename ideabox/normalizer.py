"""Clean raw model output into stored field values."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence, Tuple


@dataclass(frozen=True)
class Category:
    """Canonical label of a closed-set field and the keywords that identify it."""

    label: str
    keywords: Tuple[str, ...]

    def matches(self, text: str) -> bool:
        lowered = text.lower()
        return all(keyword in lowered for keyword in self.keywords)


CLASSIFICATIONS: Tuple[Category, ...] = (
    Category("Product & Engineering", ("product", "engineering")),
    Category("Marketing & Growth", ("marketing", "growth")),
    Category("Strategy & Vision", ("strategy", "vision")),
    Category("Team & Operations", ("team", "operations")),
    Category("People & Relationships", ("people", "relationships")),
    Category("Personal Development", ("personal", "development")),
)


def _strip_boundary(text: str) -> str:
    """Drop leading and trailing characters that are not letters, digits or spaces."""

    start = 0
    end = len(text)
    while start < end and not (text[start].isalnum() or text[start] == " "):
        start += 1
    while end > start and not (text[end - 1].isalnum() or text[end - 1] == " "):
        end -= 1
    return text[start:end]


def clean_text(raw: str) -> str:
    """Trim whitespace and stray quotes, bullets or punctuation around a value.

    Trimming and boundary stripping are repeated until nothing changes so that
    ``clean_text(clean_text(x)) == clean_text(x)`` holds for inputs such as
    ``"- - idea"`` where a pass uncovers a new boundary character.
    """

    text = raw or ""
    while True:
        cleaned = _strip_boundary(text.strip()).strip()
        if cleaned == text:
            return cleaned
        text = cleaned


def canonicalize(text: str, categories: Sequence[Category]) -> str:
    """Return the first matching canonical label, or ``text`` unchanged."""

    for category in categories:
        if category.matches(text):
            return category.label
    return text


def normalize(raw: str, categories: Sequence[Category] | None = None) -> str:
    """Clean ``raw`` and, for closed-set fields, snap it onto a canonical label."""

    cleaned = clean_text(raw)
    if categories:
        return canonicalize(cleaned, categories)
    return cleaned


def is_canonical(value: str, categories: Sequence[Category]) -> bool:
    return any(value == category.label for category in categories)

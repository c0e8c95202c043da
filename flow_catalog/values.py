"""Immutable value types for human-facing identifiers."""

import re
from dataclasses import dataclass

from .constants import SLUG_MAX_LENGTH, SLUG_MIN_LENGTH
from .exceptions import ValidationError

SLUG_RE = re.compile(r"^[a-z0-9-]+$")
EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


@dataclass(frozen=True)
class Slug:
    """URL-safe identifier: lowercase letters, digits and hyphens."""
    value: str

    @classmethod
    def create(cls, value: str) -> "Slug":
        if not value or not value.strip():
            raise ValidationError("Slug is required", field="slug")
        if not SLUG_RE.match(value.lower()):
            raise ValidationError(
                "Slug must contain only lowercase letters, numbers, and hyphens",
                field="slug",
            )
        if len(value) < SLUG_MIN_LENGTH:
            raise ValidationError(f"Slug must be at least {SLUG_MIN_LENGTH} characters", field="slug")
        if len(value) > SLUG_MAX_LENGTH:
            raise ValidationError(f"Slug must be at most {SLUG_MAX_LENGTH} characters", field="slug")
        return cls(value.lower().strip())

    @classmethod
    def reconstruct(cls, value: str) -> "Slug":
        """Rebuild from storage; the value was validated when first created."""
        return cls(value.lower().strip())

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Email:
    value: str

    @classmethod
    def create(cls, value: str) -> "Email":
        if not value or not value.strip():
            raise ValidationError("Email is required", field="email")
        if not EMAIL_RE.match(value):
            raise ValidationError("Invalid email format", field="email")
        return cls(value.lower().strip())

    @classmethod
    def reconstruct(cls, value: str) -> "Email":
        return cls(value.lower().strip())

    @property
    def domain(self) -> str:
        return self.value.split("@", 1)[1]

    def __str__(self) -> str:
        return self.value

"""Validation errors and the pattern checks shared by the workflow model."""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass

_ISO8601_DURATION = re.compile(
    r"P(\d+Y)?(\d+M)?(\d+D)?(T(\d+H)?(\d+M)?(\d+S)?)?", re.ASCII
)
_SEMANTIC_VERSION = re.compile(
    r"(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)"
    r"(?:-((?:0|[1-9]\d*|\d*[a-zA-Z-][0-9a-zA-Z-]*)"
    r"(?:\.(?:0|[1-9]\d*|\d*[a-zA-Z-][0-9a-zA-Z-]*))*))?"
    r"(?:\+([0-9a-zA-Z-]+(?:\.[0-9a-zA-Z-]+)*))?",
    re.ASCII,
)
_HOSTNAME_RFC1123 = re.compile(
    r"(([a-zA-Z0-9]([a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?\.)*[a-zA-Z]{2,63}"
    r"|[a-zA-Z0-9]([a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)",
    re.ASCII,
)


@dataclass(frozen=True)
class FieldError:
    """A single failed rule on one field, located by its namespace."""

    namespace: str
    tag: str
    param: str = ""

    @property
    def field(self) -> str:
        """The last component of the namespace."""
        return self.namespace.rsplit(".", 1)[-1]

    def __str__(self) -> str:
        return (
            f"Key: '{self.namespace}' Error:Field validation for "
            f"'{self.field}' failed on the '{self.tag}' tag"
        )


class ValidationError(ValueError):
    """Raised when a model fails one or more validation rules."""

    def __init__(self, errors: Iterable[FieldError]) -> None:
        self.errors = list(errors)
        super().__init__(str(self))

    def __str__(self) -> str:
        return "\n".join(str(error) for error in self.errors)


def is_iso8601_duration_valid(value: str) -> bool:
    """Return True if *value* is a non-empty ISO 8601 duration."""
    if _ISO8601_DURATION.fullmatch(value) is None:
        return False
    rest = value[1:]
    return rest not in ("", "T")


def is_semantic_version_valid(value: str) -> bool:
    """Return True if *value* is a semantic version such as 1.2.3-beta+build."""
    return _SEMANTIC_VERSION.fullmatch(value) is not None


def is_hostname_valid(value: str) -> bool:
    """Return True if *value* is an RFC 1123 host name."""
    return _HOSTNAME_RFC1123.fullmatch(value) is not None


def raise_if_errors(errors: Iterable[FieldError]) -> None:
    """Raise ValidationError if *errors* holds anything."""
    collected = list(errors)
    if collected:
        raise ValidationError(collected)
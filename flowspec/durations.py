"""Durations, timeouts and timeout references."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Union

from .validation import FieldError, is_iso8601_duration_valid

_INLINE_KEYS = ("days", "hours", "minutes", "seconds", "milliseconds")
_INT32_MIN = -(2**31)
_INT32_MAX = 2**31 - 1


@dataclass
class DurationInline:
    """A duration given as separate day, hour, minute, second and millisecond parts."""

    days: int = 0
    hours: int = 0
    minutes: int = 0
    seconds: int = 0
    milliseconds: int = 0

    @classmethod
    def from_json(cls, data: Any) -> DurationInline:
        if not isinstance(data, dict):
            raise ValueError("failed to unmarshal DurationInline: expected an object")
        parts = {}
        for key in _INLINE_KEYS:
            value = data.get(key)
            if value is None:
                continue
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValueError(
                    f"failed to unmarshal DurationInline: '{key}' must be an integer"
                )
            if not _INT32_MIN <= value <= _INT32_MAX:
                raise ValueError(
                    f"failed to unmarshal DurationInline: '{key}' is out of range"
                )
            parts[key] = value
        return cls(**parts)

    def to_json(self) -> dict[str, int]:
        return {
            key: getattr(self, key) for key in _INLINE_KEYS if getattr(self, key) != 0
        }


@dataclass
class DurationExpression:
    """A duration given as an ISO 8601 expression such as PT5S."""

    expression: str = ""

    def __str__(self) -> str:
        return self.expression

    def to_json(self) -> str:
        return self.expression


DurationValue = Union[DurationInline, DurationExpression, str]


@dataclass
class Duration:
    """A duration that is either inline parts or an ISO 8601 expression."""

    value: DurationValue | Any = None

    def as_expression(self) -> str:
        if isinstance(self.value, str):
            return self.value
        if isinstance(self.value, DurationExpression):
            return str(self.value)
        return ""

    def as_inline(self) -> DurationInline | None:
        if isinstance(self.value, DurationInline):
            return self.value
        return None

    @classmethod
    def from_json(cls, data: Any) -> Duration:
        if isinstance(data, dict):
            for key in data:
                if key not in _INLINE_KEYS:
                    raise ValueError(f"unexpected key '{key}' in duration object")
            return cls(DurationInline.from_json(data))
        if isinstance(data, str):
            return cls(DurationExpression(data))
        raise ValueError("data must be a valid duration string or object")

    def to_json(self) -> dict[str, int] | str:
        if isinstance(self.value, DurationInline):
            return self.value.to_json()
        if isinstance(self.value, DurationExpression):
            return self.value.expression
        if isinstance(self.value, str):
            return self.value
        raise TypeError("unknown Duration type")

    def validate(self, path: str) -> list[FieldError]:
        if isinstance(self.value, DurationExpression):
            namespace = f"{path}.Expression"
            if not self.value.expression:
                return [FieldError(namespace, "required")]
            if not is_iso8601_duration_valid(self.value.expression):
                return [FieldError(namespace, "iso8601_duration")]
        return []


def new_duration_expr(expression: str) -> Duration:
    """Create a Duration from an ISO 8601 expression."""
    return Duration(DurationExpression(expression))


@dataclass
class Timeout:
    """A time limit for a task or workflow."""

    after: Duration | None = None

    @classmethod
    def from_json(cls, data: Any) -> Timeout:
        if not isinstance(data, dict):
            raise ValueError("invalid Timeout: expected an object")
        if "after" not in data:
            raise ValueError("missing 'after' key in Timeout JSON")
        after = data["after"]
        return cls(None if after is None else Duration.from_json(after))

    def to_json(self) -> dict[str, Any]:
        if self.after is None:
            raise ValueError("unknown Duration type in Timeout")
        value = self.after.value
        if isinstance(value, DurationInline):
            return {"after": value.to_json()}
        if isinstance(value, DurationExpression):
            return {"after": value.expression}
        if isinstance(value, str):
            return {"after": value}
        raise TypeError("unknown Duration type in Timeout")

    def validate(self, path: str) -> list[FieldError]:
        if self.after is None:
            return [FieldError(f"{path}.After", "required")]
        return self.after.validate(f"{path}.After")


@dataclass
class TimeoutOrReference:
    """Either an inline Timeout or the name of a reusable one."""

    timeout: Timeout | None = None
    reference: str | None = None

    @classmethod
    def from_json(cls, data: Any) -> TimeoutOrReference:
        try:
            return cls(timeout=Timeout.from_json(data))
        except ValueError:
            pass
        if isinstance(data, str):
            return cls(reference=data)
        raise ValueError(
            "invalid TimeoutOrReference: must be a Timeout or a string reference"
        )

    def to_json(self) -> dict[str, Any] | str:
        if self.timeout is not None:
            return self.timeout.to_json()
        if self.reference is not None:
            return self.reference
        raise ValueError("invalid TimeoutOrReference: neither Timeout nor Ref is set")

    def validate(self, path: str) -> list[FieldError]:
        if self.timeout is None and self.reference is None:
            return [
                FieldError(f"{path}.Timeout", "required_without", "Ref"),
                FieldError(f"{path}.Reference", "required_without", "Timeout"),
            ]
        if self.timeout is not None:
            return self.timeout.validate(f"{path}.Timeout")
        return []
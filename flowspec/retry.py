"""Retry policies: when to retry, how long to wait and when to give up."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any

from .durations import Duration
from .validation import FieldError

_BACKOFF_KINDS = ("constant", "exponential", "linear")
_BACKOFF_REQUIRED = (
    "RetryBackoff must have one of 'constant', 'exponential', or 'linear' defined"
)


def _require_object(data: Any, what: str) -> dict[str, Any]:
    if not isinstance(data, dict):
        raise ValueError(f"failed to unmarshal {what}: expected an object")
    return data


def _optional_duration(data: dict[str, Any], key: str) -> Duration | None:
    value = data.get(key)
    return None if value is None else Duration.from_json(value)


def _optional_expression(data: dict[str, Any], key: str) -> str | None:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError(f"'{key}' must be a runtime expression string")
    return value


def _duration_json(duration: Duration | None) -> Any:
    return None if duration is None else duration.to_json()


@dataclass
class BackoffDefinition:
    """The settings of one backoff strategy."""

    definition: dict[str, Any] | None = None


@dataclass
class RetryBackoff:
    """The backoff strategy; exactly one of its kinds is used."""

    constant: BackoffDefinition | None = None
    exponential: BackoffDefinition | None = None
    linear: BackoffDefinition | None = None

    @classmethod
    def from_json(cls, data: Any) -> RetryBackoff:
        obj = _require_object(data, "RetryBackoff")
        for kind in _BACKOFF_KINDS:
            if kind in obj:
                definition = obj[kind]
                if definition is not None and not isinstance(definition, dict):
                    raise ValueError(
                        f"failed to unmarshal {kind} backoff: expected an object"
                    )
                return cls(**{kind: BackoffDefinition(definition)})
        raise ValueError(_BACKOFF_REQUIRED)

    def to_json(self) -> dict[str, Any]:
        for kind in _BACKOFF_KINDS:
            chosen = getattr(self, kind)
            if chosen is not None:
                return {kind: chosen.definition}
        raise ValueError(_BACKOFF_REQUIRED)


@dataclass
class RetryLimitAttempt:
    """How many attempts are allowed and how long each may take."""

    count: int = 0
    duration: Duration | None = None

    @classmethod
    def from_json(cls, data: Any) -> RetryLimitAttempt:
        obj = _require_object(data, "RetryLimitAttempt")
        count = obj.get("count")
        if count is None:
            count = 0
        elif isinstance(count, bool) or not isinstance(count, int):
            raise ValueError("failed to unmarshal RetryLimitAttempt: 'count' must be an integer")
        return cls(count=count, duration=_optional_duration(obj, "duration"))

    def to_json(self) -> dict[str, Any]:
        result: dict[str, Any] = {}
        if self.count:
            result["count"] = self.count
        if self.duration is not None:
            result["duration"] = self.duration.to_json()
        return result


@dataclass
class RetryLimit:
    """Limits on attempts and on the total time spent retrying."""

    attempt: RetryLimitAttempt | None = None
    duration: Duration | None = None

    @classmethod
    def from_json(cls, data: Any) -> RetryLimit:
        obj = _require_object(data, "RetryLimit")
        attempt = obj.get("attempt")
        return cls(
            attempt=None if attempt is None else RetryLimitAttempt.from_json(attempt),
            duration=_optional_duration(obj, "duration"),
        )

    def to_json(self) -> dict[str, Any]:
        result: dict[str, Any] = {}
        if self.attempt is not None:
            result["attempt"] = self.attempt.to_json()
        if self.duration is not None:
            result["duration"] = self.duration.to_json()
        return result


@dataclass
class RetryPolicyJitter:
    """The range of random variation added to retry delays."""

    from_: Duration | None = None
    to: Duration | None = None

    @classmethod
    def from_json(cls, data: Any) -> RetryPolicyJitter:
        obj = _require_object(data, "RetryPolicyJitter")
        return cls(
            from_=_optional_duration(obj, "from"), to=_optional_duration(obj, "to")
        )

    def to_json(self) -> dict[str, Any]:
        return {"from": _duration_json(self.from_), "to": _duration_json(self.to)}

    def validate(self, path: str) -> list[FieldError]:
        errors: list[FieldError] = []
        for name, value in (("From", self.from_), ("To", self.to)):
            if value is None:
                errors.append(FieldError(f"{path}.{name}", "required"))
            else:
                errors.extend(value.validate(f"{path}.{name}"))
        return errors


@dataclass
class RetryPolicy:
    """A retry policy, given inline or as a reference to a reusable one."""

    when: str | None = None
    except_when: str | None = None
    delay: Duration | None = None
    backoff: RetryBackoff | None = None
    limit: RetryLimit = field(default_factory=RetryLimit)
    jitter: RetryPolicyJitter | None = None
    ref: str = ""

    @classmethod
    def from_json(cls, data: Any) -> RetryPolicy:
        if isinstance(data, str):
            return cls(ref=data)
        if not isinstance(data, dict):
            raise ValueError(f"invalid RetryPolicy type: {type(data).__name__}")
        try:
            backoff = data.get("backoff")
            limit = data.get("limit")
            jitter = data.get("jitter")
            return cls(
                when=_optional_expression(data, "when"),
                except_when=_optional_expression(data, "exceptWhen"),
                delay=_optional_duration(data, "delay"),
                backoff=None if backoff is None else RetryBackoff.from_json(backoff),
                limit=RetryLimit() if limit is None else RetryLimit.from_json(limit),
                jitter=None if jitter is None else RetryPolicyJitter.from_json(jitter),
            )
        except ValueError as exc:
            raise ValueError(f"failed to unmarshal RetryPolicy object: {exc}") from exc

    def to_json(self) -> dict[str, Any]:
        result: dict[str, Any] = {}
        if self.when is not None:
            result["when"] = self.when
        if self.except_when is not None:
            result["exceptWhen"] = self.except_when
        if self.delay is not None:
            result["delay"] = self.delay.to_json()
        if self.backoff is not None:
            result["backoff"] = self.backoff.to_json()
        result["limit"] = self.limit.to_json()
        if self.jitter is not None:
            result["jitter"] = self.jitter.to_json()
        return result

    def resolve_reference(self, retries: dict[str, RetryPolicy]) -> None:
        """Replace a reference by the named policy from *retries*."""
        if not self.ref:
            return
        resolved = retries.get(self.ref)
        if resolved is None:
            raise ValueError(f'retry policy reference "{self.ref}" not found')
        for item in fields(resolved):
            setattr(self, item.name, getattr(resolved, item.name))
        self.ref = ""

    def validate(self, path: str) -> list[FieldError]:
        errors: list[FieldError] = []
        if self.delay is not None:
            errors.extend(self.delay.validate(f"{path}.Delay"))
        attempt = self.limit.attempt
        if attempt is not None and attempt.duration is not None:
            errors.extend(attempt.duration.validate(f"{path}.Limit.Attempt.Duration"))
        if self.limit.duration is not None:
            errors.extend(self.limit.duration.validate(f"{path}.Limit.Duration"))
        if self.jitter is not None:
            errors.extend(self.jitter.validate(f"{path}.Jitter"))
        return errors
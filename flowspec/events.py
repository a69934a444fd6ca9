"""Event tasks: emitting events and listening for them."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .common import TaskBase
from .validation import FieldError

_KNOWN_EVENT_KEYS = frozenset(
    {"id", "source", "type", "time", "subject", "datacontenttype", "dataschema"}
)


def _require_object(data: Any, what: str) -> dict[str, Any]:
    if not isinstance(data, dict):
        raise ValueError(f"failed to unmarshal {what}: expected an object")
    return data


def _string(obj: dict[str, Any], key: str, what: str) -> str:
    value = obj.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"invalid {what}: '{key}' must be a string")
    return value


def _uri_or_expression(obj: dict[str, Any], key: str, label: str) -> str | None:
    value = obj.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError(
            f"invalid {label}: must be a valid URI template or runtime expression"
        )
    return value


@dataclass
class EventProperties:
    """The attributes of a cloud event, with any extension attributes kept aside."""

    id: str = ""
    source: str | None = None
    type: str = ""
    time: str | None = None
    subject: str = ""
    data_content_type: str = ""
    data_schema: str | None = None
    additional: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_json(cls, data: Any) -> EventProperties:
        obj = _require_object(data, "EventProperties")
        time = obj.get("time")
        if time is not None and not isinstance(time, str):
            raise ValueError(
                "invalid Time: must be a date-time string or runtime expression"
            )
        return cls(
            id=_string(obj, "id", "EventProperties"),
            source=_uri_or_expression(obj, "source", "Source"),
            type=_string(obj, "type", "EventProperties"),
            time=time,
            subject=_string(obj, "subject", "EventProperties"),
            data_content_type=_string(obj, "datacontenttype", "EventProperties"),
            data_schema=_uri_or_expression(obj, "dataschema", "DataSchema"),
            additional={
                key: value
                for key, value in obj.items()
                if key not in _KNOWN_EVENT_KEYS
            },
        )

    def to_json(self) -> dict[str, Any]:
        result: dict[str, Any] = {}
        if self.id:
            result["id"] = self.id
        if self.source is not None:
            result["source"] = self.source
        if self.type:
            result["type"] = self.type
        if self.time is not None:
            result["time"] = self.time
        if self.subject:
            result["subject"] = self.subject
        if self.data_content_type:
            result["datacontenttype"] = self.data_content_type
        if self.data_schema is not None:
            result["dataschema"] = self.data_schema
        result.update(self.additional)
        return result

    def _validate(self, path: str) -> list[FieldError]:
        if self.time is not None and not self.time:
            return [FieldError(f"{path}.Time", "string_or_runtime_expr")]
        return []


@dataclass
class Correlation:
    """How an event attribute is extracted and matched for correlation."""

    from_: str = ""
    expect: str = ""

    @classmethod
    def from_json(cls, data: Any) -> Correlation:
        obj = _require_object(data, "Correlation")
        return cls(
            from_=_string(obj, "from", "Correlation"),
            expect=_string(obj, "expect", "Correlation"),
        )

    def to_json(self) -> dict[str, Any]:
        result: dict[str, Any] = {"from": self.from_}
        if self.expect:
            result["expect"] = self.expect
        return result


@dataclass
class EventFilter:
    """Selects events by their attributes and optional correlation rules."""

    with_: EventProperties | None = None
    correlate: dict[str, Correlation] | None = None

    @classmethod
    def from_json(cls, data: Any) -> EventFilter:
        obj = _require_object(data, "EventFilter")
        with_data = obj.get("with")
        correlate_data = obj.get("correlate")
        correlate = None
        if correlate_data is not None:
            correlate = {
                key: Correlation.from_json(value)
                for key, value in _require_object(
                    correlate_data, "EventFilter correlate"
                ).items()
            }
        return cls(
            with_=None if with_data is None else EventProperties.from_json(with_data),
            correlate=correlate,
        )

    def to_json(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "with": None if self.with_ is None else self.with_.to_json()
        }
        if self.correlate:
            result["correlate"] = {
                key: value.to_json() for key, value in self.correlate.items()
            }
        return result

    def validate(self, path: str) -> list[FieldError]:
        errors: list[FieldError] = []
        if self.with_ is None:
            errors.append(FieldError(f"{path}.With", "required"))
        else:
            errors.extend(self.with_._validate(f"{path}.With"))
        for key, correlation in (self.correlate or {}).items():
            if not correlation.from_:
                errors.append(FieldError(f"{path}.Correlate[{key}].From", "required"))
        return errors


@dataclass
class EventConsumptionUntil:
    """When to stop consuming events: a condition, a nested strategy, or never."""

    condition: str | None = None
    strategy: EventConsumptionStrategy | None = None
    is_disabled: bool = False

    @classmethod
    def from_json(cls, data: Any) -> EventConsumptionUntil:
        if isinstance(data, bool):
            if data:
                raise ValueError("invalid value for 'until': true is not supported")
            return cls(is_disabled=True)
        if isinstance(data, str):
            return cls(condition=data)
        if isinstance(data, dict):
            try:
                strategy = EventConsumptionStrategy.from_json(data)
            except ValueError as exc:
                raise ValueError(
                    f"failed to unmarshal 'until' strategy: {exc}"
                ) from exc
            return cls(strategy=strategy)
        raise ValueError("invalid type for 'until'")

    def to_json(self) -> Any:
        if self.is_disabled:
            return False
        if self.condition is not None:
            return self.condition
        if self.strategy is not None:
            return self.strategy.to_json()
        return None


def _filter_list(obj: dict[str, Any], key: str) -> list[EventFilter] | None:
    value = obj.get(key)
    if value is None:
        return None
    if not isinstance(value, list):
        raise ValueError(f"invalid EventConsumptionStrategy: '{key}' must be a list")
    return [EventFilter.from_json(item) for item in value]


@dataclass
class EventConsumptionStrategy:
    """Which events to consume: all of, any of, or exactly one filter."""

    all_: list[EventFilter] | None = None
    any_: list[EventFilter] | None = None
    one: EventFilter | None = None
    until: EventConsumptionUntil | None = None

    @classmethod
    def from_json(cls, data: Any) -> EventConsumptionStrategy:
        obj = _require_object(data, "EventConsumptionStrategy")
        all_ = _filter_list(obj, "all")
        any_ = _filter_list(obj, "any")
        one_data = obj.get("one")
        one = None if one_data is None else EventFilter.from_json(one_data)
        until_data = obj.get("until")
        until = (
            None if until_data is None else EventConsumptionUntil.from_json(until_data)
        )

        strategy = cls()
        count = 0
        if all_:
            count += 1
            strategy.all_ = all_
        if any_ or until is not None:
            count += 1
            strategy.any_ = any_
            strategy.until = until
        if one is not None:
            count += 1
            strategy.one = one
        if count > 1:
            raise ValueError(
                "invalid EventConsumptionStrategy: only one primary strategy type "
                "(all, any, or one) must be specified"
            )
        return strategy

    def to_json(self) -> dict[str, Any]:
        result: dict[str, Any] = {}
        if self.all_:
            result["all"] = [item.to_json() for item in self.all_]
        if self.any_:
            result["any"] = [item.to_json() for item in self.any_]
        if self.one is not None:
            result["one"] = self.one.to_json()
        if self.until is not None:
            result["until"] = self.until.to_json()
        return result

    def validate(self, path: str) -> list[FieldError]:
        errors: list[FieldError] = []
        for name, filters in (("All", self.all_), ("Any", self.any_)):
            for index, item in enumerate(filters or []):
                errors.extend(item.validate(f"{path}.{name}[{index}]"))
        if self.one is not None:
            errors.extend(self.one.validate(f"{path}.One"))
        if self.until is not None and self.until.strategy is not None:
            errors.extend(self.until.strategy.validate(f"{path}.Until.Strategy"))
        return errors


@dataclass
class EmitEventDefinition:
    """The event an emit task sends."""

    with_: EventProperties | None = None


@dataclass
class EmitTaskConfiguration:
    """The configuration of an emit task."""

    event: EmitEventDefinition = field(default_factory=EmitEventDefinition)


@dataclass(kw_only=True)
class EmitTask(TaskBase):
    """A task that emits an event."""

    emit: EmitTaskConfiguration = field(default_factory=EmitTaskConfiguration)

    @classmethod
    def from_json(cls, data: Any) -> EmitTask:
        obj = _require_object(data, "EmitTask")
        emit = EmitTaskConfiguration()
        emit_data = obj.get("emit")
        if emit_data is not None:
            event_data = _require_object(emit_data, "EmitTaskConfiguration").get(
                "event"
            )
            if event_data is not None:
                with_data = _require_object(event_data, "EmitEventDefinition").get(
                    "with"
                )
                if with_data is not None:
                    emit.event.with_ = EventProperties.from_json(with_data)
        return cls(**TaskBase._base_fields(obj), emit=emit)

    def to_json(self) -> dict[str, Any]:
        properties = self.emit.event.with_
        result = self._base_json()
        result["emit"] = {
            "event": {"with": None if properties is None else properties.to_json()}
        }
        return result

    def validate(self, path: str) -> list[FieldError]:
        errors = super().validate(path)
        properties = self.emit.event.with_
        namespace = f"{path}.Emit.Event.With"
        if properties is None:
            errors.append(FieldError(namespace, "required"))
        else:
            errors.extend(properties._validate(namespace))
        return errors


@dataclass
class ListenTaskConfiguration:
    """The configuration of a listen task."""

    to: EventConsumptionStrategy | None = None


@dataclass(kw_only=True)
class ListenTask(TaskBase):
    """A task that waits for events."""

    listen: ListenTaskConfiguration = field(default_factory=ListenTaskConfiguration)

    @classmethod
    def from_json(cls, data: Any) -> ListenTask:
        obj = _require_object(data, "ListenTask")
        listen = ListenTaskConfiguration()
        listen_data = obj.get("listen")
        if listen_data is not None:
            to_data = _require_object(listen_data, "ListenTaskConfiguration").get("to")
            if to_data is not None:
                listen.to = EventConsumptionStrategy.from_json(to_data)
        return cls(**TaskBase._base_fields(obj), listen=listen)

    def to_json(self) -> dict[str, Any]:
        result = self._base_json()
        to = self.listen.to
        result["listen"] = {"to": None if to is None else to.to_json()}
        return result

    def validate(self, path: str) -> list[FieldError]:
        errors = super().validate(path)
        namespace = f"{path}.Listen.To"
        if self.listen.to is None:
            errors.append(FieldError(namespace, "required"))
        else:
            errors.extend(self.listen.to.validate(namespace))
        return errors
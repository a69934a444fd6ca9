"""The root of a workflow definition: its document, reusable components and tasks."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

from .common import Input, Output
from .durations import Duration, Timeout, TimeoutOrReference
from .events import EventConsumptionStrategy
from .retry import RetryPolicy
from .tasks import TaskList, parse_named_tasks
from .common import TaskBase
from .validation import (
    FieldError,
    is_hostname_valid,
    is_semantic_version_valid,
    raise_if_errors,
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


def _object(obj: dict[str, Any], key: str, what: str) -> dict[str, Any] | None:
    value = obj.get(key)
    if value is None:
        return None
    if not isinstance(value, dict):
        raise ValueError(f"invalid {what}: '{key}' must be an object")
    return dict(value)


def _string_map(obj: dict[str, Any], key: str, what: str) -> dict[str, str] | None:
    mapping = _object(obj, key, what)
    if mapping is not None and not all(isinstance(v, str) for v in mapping.values()):
        raise ValueError(f"invalid {what}: values of '{key}' must be strings")
    return mapping


def _pattern_errors(
    value: str, namespace: str, check: Any, tag: str
) -> list[FieldError]:
    if not value:
        return [FieldError(namespace, "required")]
    if not check(value):
        return [FieldError(namespace, tag)]
    return []


@dataclass
class Document:
    """Metadata that identifies a workflow."""

    dsl: str = ""
    namespace: str = ""
    name: str = ""
    version: str = ""
    title: str = ""
    summary: str = ""
    tags: dict[str, str] | None = None
    metadata: dict[str, Any] | None = None

    @classmethod
    def from_json(cls, data: Any) -> Document:
        obj = _require_object(data, "Document")
        return cls(
            dsl=_string(obj, "dsl", "Document"),
            namespace=_string(obj, "namespace", "Document"),
            name=_string(obj, "name", "Document"),
            version=_string(obj, "version", "Document"),
            title=_string(obj, "title", "Document"),
            summary=_string(obj, "summary", "Document"),
            tags=_string_map(obj, "tags", "Document"),
            metadata=_object(obj, "metadata", "Document"),
        )

    def to_json(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "dsl": self.dsl,
            "namespace": self.namespace,
            "name": self.name,
            "version": self.version,
        }
        for key in ("title", "summary", "tags", "metadata"):
            value = getattr(self, key)
            if value:
                result[key] = value
        return result

    def validate(self, path: str) -> list[FieldError]:
        errors = _pattern_errors(
            self.dsl, f"{path}.DSL", is_semantic_version_valid, "semver_pattern"
        )
        errors.extend(
            _pattern_errors(
                self.namespace, f"{path}.Namespace", is_hostname_valid,
                "hostname_rfc1123",
            )
        )
        errors.extend(
            _pattern_errors(
                self.name, f"{path}.Name", is_hostname_valid, "hostname_rfc1123"
            )
        )
        errors.extend(
            _pattern_errors(
                self.version, f"{path}.Version", is_semantic_version_valid,
                "semver_pattern",
            )
        )
        return errors


@dataclass
class Catalog:
    """A catalog of reusable functions reachable through an endpoint."""

    endpoint: Any = None


@dataclass
class Use:
    """The reusable components a workflow defines."""

    authentications: dict[str, Any] | None = None
    errors: dict[str, Any] | None = None
    extensions: list[Any] | None = None
    functions: dict[str, TaskBase] | None = None
    retries: dict[str, RetryPolicy] | None = None
    secrets: list[str] | None = None
    timeouts: dict[str, Timeout] | None = None
    catalogs: dict[str, Catalog] | None = None

    @classmethod
    def from_json(cls, data: Any) -> Use:
        obj = _require_object(data, "Use")
        use = cls(
            authentications=_object(obj, "authentications", "Use"),
            errors=_object(obj, "errors", "Use"),
        )
        extensions = obj.get("extensions")
        if extensions is not None:
            if not isinstance(extensions, list):
                raise ValueError("invalid Use: 'extensions' must be a list")
            use.extensions = list(extensions)
        functions = obj.get("functions")
        if functions is not None:
            use.functions = parse_named_tasks(functions)
        retries = _object(obj, "retries", "Use")
        if retries is not None:
            use.retries = {
                name: RetryPolicy.from_json(raw) for name, raw in retries.items()
            }
        secrets = obj.get("secrets")
        if secrets is not None:
            if not isinstance(secrets, list) or not all(
                isinstance(s, str) for s in secrets
            ):
                raise ValueError("invalid Use: 'secrets' must be a list of strings")
            use.secrets = list(secrets)
        timeouts = _object(obj, "timeouts", "Use")
        if timeouts is not None:
            use.timeouts = {
                name: Timeout.from_json(raw) for name, raw in timeouts.items()
            }
        catalogs = _object(obj, "catalogs", "Use")
        if catalogs is not None:
            use.catalogs = {
                name: Catalog(
                    endpoint=_require_object(raw, "Catalog").get("endpoint")
                )
                for name, raw in catalogs.items()
            }
        return use

    def to_json(self) -> dict[str, Any]:
        result: dict[str, Any] = {}
        if self.authentications:
            result["authentications"] = self.authentications
        if self.errors:
            result["errors"] = self.errors
        if self.extensions:
            result["extensions"] = self.extensions
        if self.functions:
            result["functions"] = {
                name: task.to_json() for name, task in self.functions.items()
            }
        if self.retries:
            result["retries"] = {
                name: policy.to_json() for name, policy in self.retries.items()
            }
        if self.secrets:
            result["secrets"] = self.secrets
        if self.timeouts:
            result["timeouts"] = {
                name: timeout.to_json() for name, timeout in self.timeouts.items()
            }
        if self.catalogs:
            result["catalogs"] = {
                name: {"endpoint": catalog.endpoint}
                for name, catalog in self.catalogs.items()
            }
        return result

    def validate(self, path: str) -> list[FieldError]:
        errors: list[FieldError] = []
        for name, task in (self.functions or {}).items():
            errors.extend(task.validate(f"{path}.Functions[{name}]"))
        for name, policy in (self.retries or {}).items():
            errors.extend(policy.validate(f"{path}.Retries[{name}]"))
        for name, timeout in (self.timeouts or {}).items():
            errors.extend(timeout.validate(f"{path}.Timeouts[{name}]"))
        for name, catalog in (self.catalogs or {}).items():
            if catalog.endpoint is None:
                errors.append(
                    FieldError(f"{path}.Catalogs[{name}].Endpoint", "required")
                )
        return errors


@dataclass
class Schedule:
    """When a workflow starts on its own: periodically, by cron, after a delay or on events."""

    every: Duration | None = None
    cron: str = ""
    after: Duration | None = None
    on: EventConsumptionStrategy | None = None

    @classmethod
    def from_json(cls, data: Any) -> Schedule:
        obj = _require_object(data, "Schedule")
        every = obj.get("every")
        after = obj.get("after")
        on = obj.get("on")
        return cls(
            every=None if every is None else Duration.from_json(every),
            cron=_string(obj, "cron", "Schedule"),
            after=None if after is None else Duration.from_json(after),
            on=None if on is None else EventConsumptionStrategy.from_json(on),
        )

    def to_json(self) -> dict[str, Any]:
        result: dict[str, Any] = {}
        if self.every is not None:
            result["every"] = self.every.to_json()
        if self.cron:
            result["cron"] = self.cron
        if self.after is not None:
            result["after"] = self.after.to_json()
        if self.on is not None:
            result["on"] = self.on.to_json()
        return result

    def _validate(self, path: str) -> list[FieldError]:
        errors: list[FieldError] = []
        if self.every is not None:
            errors.extend(self.every.validate(f"{path}.Every"))
        if self.after is not None:
            errors.extend(self.after.validate(f"{path}.After"))
        if self.on is not None:
            errors.extend(self.on.validate(f"{path}.On"))
        return errors


@dataclass
class Workflow:
    """A complete workflow definition."""

    document: Document = field(default_factory=Document)
    input: Input | None = None
    use: Use | None = None
    do: TaskList | None = None
    timeout: TimeoutOrReference | None = None
    output: Output | None = None
    schedule: Schedule | None = None

    @classmethod
    def from_json(cls, data: Any) -> Workflow:
        obj = _require_object(data, "Workflow")
        document = obj.get("document")
        parsers = {
            "input": Input.from_json,
            "use": Use.from_json,
            "do": TaskList.from_json,
            "timeout": TimeoutOrReference.from_json,
            "output": Output.from_json,
            "schedule": Schedule.from_json,
        }
        fields = {
            key: parse(obj[key])
            for key, parse in parsers.items()
            if obj.get(key) is not None
        }
        return cls(
            document=Document() if document is None else Document.from_json(document),
            **fields,
        )

    def to_json(self) -> dict[str, Any]:
        result: dict[str, Any] = {"document": self.document.to_json()}
        if self.input is not None:
            result["input"] = self.input.to_json()
        if self.use is not None:
            result["use"] = self.use.to_json()
        result["do"] = None if self.do is None else self.do.to_json()
        for key in ("timeout", "output", "schedule"):
            value = getattr(self, key)
            if value is not None:
                result[key] = value.to_json()
        return result

    def as_map(self) -> dict[str, Any]:
        """Return the workflow as plain JSON data."""
        return json.loads(json.dumps(self.to_json()))

    def validate(self) -> None:
        """Raise ValidationError if the workflow breaks any rule."""
        path = "Workflow"
        errors = self.document.validate(f"{path}.Document")
        if self.input is not None:
            errors.extend(self.input.validate(f"{path}.Input"))
        if self.use is not None:
            errors.extend(self.use.validate(f"{path}.Use"))
        if self.do is None:
            errors.append(FieldError(f"{path}.Do", "required"))
        else:
            errors.extend(self.do.validate(f"{path}.Do"))
        if self.timeout is not None:
            errors.extend(self.timeout.validate(f"{path}.Timeout"))
        if self.output is not None:
            errors.extend(self.output.validate(f"{path}.Output"))
        if self.schedule is not None:
            errors.extend(self.schedule._validate(f"{path}.Schedule"))
        raise_if_errors(errors)
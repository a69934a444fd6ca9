"""Building blocks shared by workflows and tasks: flow directives, schemas and data filters."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from .durations import TimeoutOrReference
from .validation import FieldError

_DEFAULT_SCHEMA_FORMAT = "json"


def _require_object(data: Any, what: str) -> dict[str, Any]:
    if not isinstance(data, dict):
        raise ValueError(f"invalid {what}: expected an object")
    return data


def _optional_str(data: dict[str, Any], key: str, what: str) -> str | None:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError(f"invalid {what}: '{key}' must be a string")
    return value


class FlowDirectiveType(str, Enum):
    """The enumerated flow directives."""

    CONTINUE = "continue"
    EXIT = "exit"
    END = "end"


_ENUM_DIRECTIVES = frozenset(directive.value for directive in FlowDirectiveType)
_TERMINATING_DIRECTIVES = frozenset(
    {FlowDirectiveType.EXIT.value, FlowDirectiveType.END.value}
)


@dataclass
class FlowDirective:
    """What to do after a task: an enumerated directive or the name of a task."""

    value: str = ""

    def is_enum(self) -> bool:
        """Return True if the directive is continue, exit or end."""
        return self.value in _ENUM_DIRECTIVES

    def is_termination(self) -> bool:
        """Return True if the directive is exit or end."""
        return self.value in _TERMINATING_DIRECTIVES

    @classmethod
    def from_json(cls, data: Any) -> FlowDirective:
        if not isinstance(data, str):
            raise ValueError("invalid FlowDirective: expected a string")
        return cls(data)

    def to_json(self) -> str:
        return self.value

    def validate(self, path: str) -> list[FieldError]:
        if not self.value:
            return [FieldError(f"{path}.Value", "required")]
        return []


@dataclass
class ExternalResource:
    """A named resource reachable through an endpoint."""

    name: str = ""
    endpoint: Any = None

    @classmethod
    def from_json(cls, data: Any) -> ExternalResource:
        obj = _require_object(data, "ExternalResource")
        name = _optional_str(obj, "name", "ExternalResource") or ""
        return cls(name=name, endpoint=obj.get("endpoint"))

    def to_json(self) -> dict[str, Any]:
        result: dict[str, Any] = {}
        if self.name:
            result["name"] = self.name
        result["endpoint"] = self.endpoint
        return result

    def validate(self, path: str) -> list[FieldError]:
        if self.endpoint is None:
            return [FieldError(f"{path}.Endpoint", "required")]
        return []


@dataclass
class Schema:
    """A schema given either inline as a document or as an external resource."""

    format: str = ""
    document: Any = None
    resource: ExternalResource | None = None

    def apply_defaults(self) -> None:
        """Set the format to json when none is given."""
        if not self.format:
            self.format = _DEFAULT_SCHEMA_FORMAT

    @classmethod
    def from_json(cls, data: Any) -> Schema:
        schema = cls()
        schema.apply_defaults()
        obj = _require_object(data, "Schema")
        if "document" in obj:
            document = obj["document"]
            if not isinstance(document, (str, dict)):
                raise ValueError(
                    "invalid Schema: 'document' must be a string or an object"
                )
            schema.document = document
        if "resource" in obj:
            try:
                schema.resource = ExternalResource.from_json(obj["resource"])
            except ValueError as exc:
                raise ValueError(
                    f"invalid Schema: failed to parse 'resource': {exc}"
                ) from exc
        if (schema.document is None) == (schema.resource is None):
            raise ValueError(
                "invalid Schema: must specify either 'document' or 'resource', "
                "but not both"
            )
        return schema

    def to_json(self) -> dict[str, Any]:
        self.apply_defaults()
        if self.document is not None:
            return {"format": self.format, "document": self.document}
        if self.resource is not None:
            return {"format": self.format, "resource": self.resource.to_json()}
        raise ValueError("invalid Schema: no valid field to marshal")

    def validate(self, path: str) -> list[FieldError]:
        if self.resource is not None:
            return self.resource.validate(f"{path}.Resource")
        return []


def _schema_from(obj: dict[str, Any]) -> Schema | None:
    value = obj.get("schema")
    return None if value is None else Schema.from_json(value)


def _object_or_expression_from(obj: dict[str, Any], key: str, what: str) -> Any:
    value = obj.get(key)
    if value is None:
        return None
    if not isinstance(value, (dict, str)):
        raise ValueError(
            f"invalid {what}: '{key}' must be an object or a runtime expression"
        )
    return value


def _validate_object_or_expression(value: Any, namespace: str) -> list[FieldError]:
    if isinstance(value, (dict, str)) and value:
        return []
    return [FieldError(namespace, "object_or_runtime_expr")]


def _filter_json(schema: Schema | None, key: str, value: Any) -> dict[str, Any]:
    result: dict[str, Any] = {}
    if schema is not None:
        result["schema"] = schema.to_json()
    if value is not None:
        result[key] = value
    return result


def _filter_errors(
    schema: Schema | None, value: Any, path: str, field_name: str
) -> list[FieldError]:
    errors: list[FieldError] = []
    if schema is not None:
        errors.extend(schema.validate(f"{path}.Schema"))
    if value is not None:
        errors.extend(_validate_object_or_expression(value, f"{path}.{field_name}"))
    return errors


@dataclass
class Input:
    """How the input of a workflow or task is checked and shaped."""

    schema: Schema | None = None
    from_: Any = None

    @classmethod
    def from_json(cls, data: Any) -> Input:
        obj = _require_object(data, "Input")
        return cls(
            schema=_schema_from(obj),
            from_=_object_or_expression_from(obj, "from", "Input"),
        )

    def to_json(self) -> dict[str, Any]:
        return _filter_json(self.schema, "from", self.from_)

    def validate(self, path: str) -> list[FieldError]:
        return _filter_errors(self.schema, self.from_, path, "From")


@dataclass
class Output:
    """How the output of a workflow or task is checked and shaped."""

    schema: Schema | None = None
    as_: Any = None

    @classmethod
    def from_json(cls, data: Any) -> Output:
        obj = _require_object(data, "Output")
        return cls(
            schema=_schema_from(obj),
            as_=_object_or_expression_from(obj, "as", "Output"),
        )

    def to_json(self) -> dict[str, Any]:
        return _filter_json(self.schema, "as", self.as_)

    def validate(self, path: str) -> list[FieldError]:
        return _filter_errors(self.schema, self.as_, path, "As")


@dataclass
class Export:
    """What a task writes into the workflow context."""

    schema: Schema | None = None
    as_: Any = None

    @classmethod
    def from_json(cls, data: Any) -> Export:
        obj = _require_object(data, "Export")
        return cls(
            schema=_schema_from(obj),
            as_=_object_or_expression_from(obj, "as", "Export"),
        )

    def to_json(self) -> dict[str, Any]:
        return _filter_json(self.schema, "as", self.as_)

    def validate(self, path: str) -> list[FieldError]:
        return _filter_errors(self.schema, self.as_, path, "As")


@dataclass(kw_only=True)
class TaskBase:
    """Settings every task shares: condition, data filters, timeout and flow."""

    if_: str | None = None
    input: Input | None = None
    output: Output | None = None
    export: Export | None = None
    timeout: TimeoutOrReference | None = None
    then: FlowDirective | None = None
    metadata: dict[str, Any] | None = None

    @staticmethod
    def _base_fields(data: dict[str, Any]) -> dict[str, Any]:
        """Parse the shared task keys of *data* into constructor arguments."""
        fields: dict[str, Any] = {}
        condition = _optional_str(data, "if", "task")
        if condition is not None:
            fields["if_"] = condition
        parsers = (
            ("input", Input.from_json),
            ("output", Output.from_json),
            ("export", Export.from_json),
            ("timeout", TimeoutOrReference.from_json),
            ("then", FlowDirective.from_json),
        )
        for key, parse in parsers:
            value = data.get(key)
            if value is not None:
                fields[key] = parse(value)
        metadata = data.get("metadata")
        if metadata is not None:
            fields["metadata"] = dict(_require_object(metadata, "task metadata"))
        return fields

    def _base_json(self) -> dict[str, Any]:
        """Serialise the shared task keys, leaving out those that are unset."""
        result: dict[str, Any] = {}
        if self.if_ is not None:
            result["if"] = self.if_
        for key in ("input", "output", "export", "timeout", "then"):
            value = getattr(self, key)
            if value is not None:
                result[key] = value.to_json()
        if self.metadata:
            result["metadata"] = self.metadata
        return result

    def validate(self, path: str) -> list[FieldError]:
        errors: list[FieldError] = []
        for name in ("input", "output", "export", "timeout", "then"):
            value = getattr(self, name)
            if value is not None:
                errors.extend(value.validate(f"{path}.{name.capitalize()}"))
        return errors
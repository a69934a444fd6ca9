"""Tasks that act directly: raising errors, running processes, setting data and waiting."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .common import ExternalResource, TaskBase
from .durations import Duration
from .validation import FieldError, is_hostname_valid, is_semantic_version_valid

_RUN_CHOICE_ERROR = (
    "invalid RunTaskConfiguration: only one of 'container', 'script', 'shell', "
    "or 'workflow' must be specified"
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


def _optional_string(obj: dict[str, Any], key: str, what: str) -> str | None:
    value = obj.get(key)
    if value is None:
        return None
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


def _add_if(result: dict[str, Any], key: str, value: Any) -> None:
    if value:
        result[key] = value


def _name_errors(value: str, namespace: str) -> list[FieldError]:
    if not value:
        return [FieldError(namespace, "required")]
    if not is_hostname_valid(value):
        return [FieldError(namespace, "hostname_rfc1123")]
    return []


@dataclass
class RaiseTaskError:
    """The error to raise: an inline definition or the name of a reusable one."""

    definition: dict[str, Any] | None = None
    ref: str | None = None

    @classmethod
    def from_json(cls, data: Any) -> RaiseTaskError:
        if isinstance(data, str):
            return cls(ref=data)
        if isinstance(data, dict):
            return cls(definition=dict(data))
        raise ValueError(
            "invalid RaiseTaskError: data must be either a string (reference) "
            "or an object (definition)"
        )

    def to_json(self) -> dict[str, Any] | str:
        if self.definition is not None:
            return self.definition
        if self.ref is not None:
            return self.ref
        raise ValueError(
            "invalid RaiseTaskError: neither 'definition' nor 'reference' is set"
        )


@dataclass
class RaiseTaskConfiguration:
    """The configuration of a raise task."""

    error: RaiseTaskError = field(default_factory=RaiseTaskError)


@dataclass(kw_only=True)
class RaiseTask(TaskBase):
    """A task that raises an error."""

    raise_: RaiseTaskConfiguration = field(default_factory=RaiseTaskConfiguration)

    @classmethod
    def from_json(cls, data: Any) -> RaiseTask:
        obj = _require_object(data, "RaiseTask")
        configuration = RaiseTaskConfiguration()
        raise_data = obj.get("raise")
        if raise_data is not None:
            error_data = _require_object(raise_data, "RaiseTaskConfiguration").get(
                "error"
            )
            if error_data is not None:
                configuration.error = RaiseTaskError.from_json(error_data)
        return cls(**TaskBase._base_fields(obj), raise_=configuration)

    def to_json(self) -> dict[str, Any]:
        result = self._base_json()
        result["raise"] = {"error": self.raise_.error.to_json()}
        return result

    def validate(self, path: str) -> list[FieldError]:
        return super().validate(path)


@dataclass
class Container:
    """A container image to run."""

    image: str = ""
    command: str = ""
    ports: dict[str, Any] | None = None
    volumes: dict[str, Any] | None = None
    environment: dict[str, str] | None = None

    @classmethod
    def _from_json(cls, data: Any) -> Container:
        obj = _require_object(data, "Container")
        return cls(
            image=_string(obj, "image", "Container"),
            command=_string(obj, "command", "Container"),
            ports=_object(obj, "ports", "Container"),
            volumes=_object(obj, "volumes", "Container"),
            environment=_string_map(obj, "environment", "Container"),
        )

    def _to_json(self) -> dict[str, Any]:
        result: dict[str, Any] = {"image": self.image}
        _add_if(result, "command", self.command)
        _add_if(result, "ports", self.ports)
        _add_if(result, "volumes", self.volumes)
        _add_if(result, "environment", self.environment)
        return result

    def _validate(self, path: str) -> list[FieldError]:
        if not self.image:
            return [FieldError(f"{path}.Image", "required")]
        return []


@dataclass
class Script:
    """A script to run, given inline or from an external source."""

    language: str = ""
    arguments: dict[str, Any] | None = None
    environment: dict[str, str] | None = None
    inline_code: str | None = None
    external: ExternalResource | None = None

    @classmethod
    def _from_json(cls, data: Any) -> Script:
        obj = _require_object(data, "Script")
        source = obj.get("source")
        return cls(
            language=_string(obj, "language", "Script"),
            arguments=_object(obj, "arguments", "Script"),
            environment=_string_map(obj, "environment", "Script"),
            inline_code=_optional_string(obj, "code", "Script"),
            external=None if source is None else ExternalResource.from_json(source),
        )

    def _to_json(self) -> dict[str, Any]:
        result: dict[str, Any] = {"language": self.language}
        _add_if(result, "arguments", self.arguments)
        _add_if(result, "environment", self.environment)
        if self.inline_code is not None:
            result["code"] = self.inline_code
        if self.external is not None:
            result["source"] = self.external.to_json()
        return result

    def _validate(self, path: str) -> list[FieldError]:
        errors: list[FieldError] = []
        if not self.language:
            errors.append(FieldError(f"{path}.Language", "required"))
        if self.external is not None:
            errors.extend(self.external.validate(f"{path}.External"))
        return errors


@dataclass
class Shell:
    """A shell command to run."""

    command: str = ""
    arguments: dict[str, Any] | None = None
    environment: dict[str, str] | None = None

    @classmethod
    def _from_json(cls, data: Any) -> Shell:
        obj = _require_object(data, "Shell")
        return cls(
            command=_string(obj, "command", "Shell"),
            arguments=_object(obj, "arguments", "Shell"),
            environment=_string_map(obj, "environment", "Shell"),
        )

    def _to_json(self) -> dict[str, Any]:
        result: dict[str, Any] = {"command": self.command}
        _add_if(result, "arguments", self.arguments)
        _add_if(result, "environment", self.environment)
        return result

    def _validate(self, path: str) -> list[FieldError]:
        if not self.command:
            return [FieldError(f"{path}.Command", "required")]
        return []


@dataclass
class RunWorkflow:
    """Another workflow to run, named by namespace, name and version."""

    namespace: str = ""
    name: str = ""
    version: str = ""
    input: dict[str, Any] | None = None

    @classmethod
    def _from_json(cls, data: Any) -> RunWorkflow:
        obj = _require_object(data, "RunWorkflow")
        return cls(
            namespace=_string(obj, "namespace", "RunWorkflow"),
            name=_string(obj, "name", "RunWorkflow"),
            version=_string(obj, "version", "RunWorkflow"),
            input=_object(obj, "input", "RunWorkflow"),
        )

    def _to_json(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "namespace": self.namespace,
            "name": self.name,
            "version": self.version,
        }
        _add_if(result, "input", self.input)
        return result

    def _validate(self, path: str) -> list[FieldError]:
        errors = _name_errors(self.namespace, f"{path}.Namespace")
        errors.extend(_name_errors(self.name, f"{path}.Name"))
        if not self.version:
            errors.append(FieldError(f"{path}.Version", "required"))
        elif not is_semantic_version_valid(self.version):
            errors.append(FieldError(f"{path}.Version", "semver_pattern"))
        return errors


_RUN_KINDS: tuple[tuple[str, Any], ...] = (
    ("container", Container),
    ("script", Script),
    ("shell", Shell),
    ("workflow", RunWorkflow),
)


@dataclass
class RunTaskConfiguration:
    """What a run task executes: exactly one of container, script, shell or workflow."""

    await_: bool | None = None
    container: Container | None = None
    script: Script | None = None
    shell: Shell | None = None
    workflow: RunWorkflow | None = None

    @classmethod
    def from_json(cls, data: Any) -> RunTaskConfiguration:
        obj = _require_object(data, "RunTaskConfiguration")
        await_ = obj.get("await")
        if await_ is not None and not isinstance(await_, bool):
            raise ValueError("invalid RunTaskConfiguration: 'await' must be a boolean")
        chosen = {
            key: kind._from_json(obj[key])
            for key, kind in _RUN_KINDS
            if obj.get(key) is not None
        }
        if len(chosen) != 1:
            raise ValueError(_RUN_CHOICE_ERROR)
        return cls(await_=await_, **chosen)

    def to_json(self) -> dict[str, Any]:
        result: dict[str, Any] = {}
        if self.await_ is not None:
            result["await"] = self.await_
        for key, _ in _RUN_KINDS:
            value = getattr(self, key)
            if value is not None:
                result[key] = value._to_json()
        return result

    def validate(self, path: str) -> list[FieldError]:
        errors: list[FieldError] = []
        for key, _ in _RUN_KINDS:
            value = getattr(self, key)
            if value is not None:
                errors.extend(value._validate(f"{path}.{key.capitalize()}"))
        return errors


@dataclass(kw_only=True)
class RunTask(TaskBase):
    """A task that runs an external process."""

    run: RunTaskConfiguration = field(default_factory=RunTaskConfiguration)

    @classmethod
    def from_json(cls, data: Any) -> RunTask:
        obj = _require_object(data, "RunTask")
        run_data = obj.get("run")
        run = (
            RunTaskConfiguration()
            if run_data is None
            else RunTaskConfiguration.from_json(run_data)
        )
        return cls(**TaskBase._base_fields(obj), run=run)

    def to_json(self) -> dict[str, Any]:
        result = self._base_json()
        result["run"] = self.run.to_json()
        return result

    def validate(self, path: str) -> list[FieldError]:
        errors = super().validate(path)
        errors.extend(self.run.validate(f"{path}.Run"))
        return errors


@dataclass(kw_only=True)
class SetTask(TaskBase):
    """A task that sets data."""

    set_: dict[str, Any] | None = None

    @classmethod
    def from_json(cls, data: Any) -> SetTask:
        obj = _require_object(data, "SetTask")
        return cls(**TaskBase._base_fields(obj), set_=_object(obj, "set", "SetTask"))

    def to_json(self) -> dict[str, Any]:
        result = self._base_json()
        result["set"] = self.set_
        return result

    def validate(self, path: str) -> list[FieldError]:
        errors = super().validate(path)
        if self.set_ is None:
            errors.append(FieldError(f"{path}.Set", "required"))
        elif len(self.set_) < 1:
            errors.append(FieldError(f"{path}.Set", "min", "1"))
        return errors


@dataclass(kw_only=True)
class WaitTask(TaskBase):
    """A task that delays execution for a duration."""

    wait: Duration | None = None

    @classmethod
    def from_json(cls, data: Any) -> WaitTask:
        obj = _require_object(data, "WaitTask")
        if "wait" not in obj:
            raise ValueError("failed to unmarshal Wait field: missing 'wait' key")
        wait_data = obj["wait"]
        try:
            wait = None if wait_data is None else Duration.from_json(wait_data)
        except ValueError as exc:
            raise ValueError(f"failed to unmarshal Wait field: {exc}") from exc
        return cls(**TaskBase._base_fields(obj), wait=wait)

    def to_json(self) -> dict[str, Any]:
        result = self._base_json()
        result["wait"] = None if self.wait is None else self.wait.to_json()
        return result

    def validate(self, path: str) -> list[FieldError]:
        errors = super().validate(path)
        if self.wait is None:
            errors.append(FieldError(f"{path}.Wait", "required"))
        else:
            errors.extend(self.wait.validate(f"{path}.Wait"))
        return errors
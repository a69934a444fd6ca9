"""Task lists and the tasks that hold other tasks: do, for, fork, switch and try."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .actions import RaiseTask, RunTask, SetTask, WaitTask
from .call import CallAsyncAPI, CallFunction, CallGRPC, CallHTTP, CallOpenAPI
from .common import FlowDirective, TaskBase
from .events import EmitTask, ListenTask
from .retry import RetryPolicy
from .validation import FieldError


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


def _task_list(obj: dict[str, Any], key: str) -> TaskList | None:
    value = obj.get(key)
    return None if value is None else TaskList.from_json(value)


def _task_list_json(tasks: TaskList | None) -> Any:
    return None if tasks is None else tasks.to_json()


def _required_tasks(tasks: TaskList | None, namespace: str) -> list[FieldError]:
    if tasks is None:
        return [FieldError(namespace, "required")]
    return tasks.validate(namespace)


@dataclass
class TaskItem:
    """A task together with the name it is listed under."""

    key: str = ""
    task: TaskBase | None = None

    def to_json(self) -> dict[str, Any]:
        """Serialise as a single-key object mapping the name to the task."""
        if self.task is None:
            raise ValueError("cannot marshal a TaskItem without a task")
        return {self.key: self.task.to_json()}

    def validate(self, path: str) -> list[FieldError]:
        if not self.key:
            return [FieldError(f"{path}.Key", "required")]
        if self.task is None:
            return [FieldError(f"{path}.Task", "required")]
        if not isinstance(self.task, _KNOWN_TASK_TYPES):
            return [FieldError(f"{path}.Task", "unknown_task", "unrecognized task type")]
        return self.task.validate(f"{path}.Task")


class TaskList(list):
    """An ordered list of named tasks."""

    def next(self, current_index: int) -> tuple[int, TaskItem | None]:
        """Return the index and item that follow *current_index*, or (-1, None)."""
        if current_index < 0 or current_index >= len(self):
            return -1, None
        current = self[current_index]
        then = None if current.task is None else current.task.then
        if then is not None:
            if then.is_termination():
                return -1, None
            return self.key_and_index(then.value)
        following = current_index + 1
        if following < len(self):
            return following, self[following]
        return -1, None

    def key(self, key: str) -> TaskItem | None:
        """Return the item named *key*, or None."""
        return self.key_and_index(key)[1]

    def key_and_index(self, key: str) -> tuple[int, TaskItem | None]:
        """Return the position and item named *key*, or (-1, None)."""
        return next(
            ((index, item) for index, item in enumerate(self) if item.key == key),
            (-1, None),
        )

    @classmethod
    def from_json(cls, data: Any) -> TaskList:
        if not isinstance(data, list):
            raise ValueError("failed to unmarshal TaskList: expected a list")
        tasks = cls()
        for raw in data:
            entry = _require_object(raw, "TaskItem")
            if len(entry) != 1:
                raise ValueError("each TaskItem must have exactly one key")
            (key, task_data), = entry.items()
            tasks.append(TaskItem(key=key, task=parse_task(key, task_data)))
        return tasks

    def to_json(self) -> list[dict[str, Any]]:
        return [item.to_json() for item in self]

    def validate(self, path: str) -> list[FieldError]:
        errors: list[FieldError] = []
        for index, item in enumerate(self):
            errors.extend(item.validate(f"{path}[{index}]"))
        return errors


@dataclass(kw_only=True)
class DoTask(TaskBase):
    """A task that runs its subtasks in sequence."""

    do: TaskList | None = None

    @classmethod
    def from_json(cls, data: Any) -> DoTask:
        obj = _require_object(data, "DoTask")
        return cls(**TaskBase._base_fields(obj), do=_task_list(obj, "do"))

    def to_json(self) -> dict[str, Any]:
        result = self._base_json()
        result["do"] = _task_list_json(self.do)
        return result

    def validate(self, path: str) -> list[FieldError]:
        errors = super().validate(path)
        errors.extend(_required_tasks(self.do, f"{path}.Do"))
        return errors


@dataclass
class ForTaskConfiguration:
    """The collection a for task iterates and the names of its loop variables."""

    each: str = ""
    in_: str = ""
    at: str = ""

    @classmethod
    def _from_json(cls, data: Any) -> ForTaskConfiguration:
        obj = _require_object(data, "ForTaskConfiguration")
        return cls(
            each=_string(obj, "each", "ForTaskConfiguration"),
            in_=_string(obj, "in", "ForTaskConfiguration"),
            at=_string(obj, "at", "ForTaskConfiguration"),
        )

    def _to_json(self) -> dict[str, Any]:
        result: dict[str, Any] = {}
        if self.each:
            result["each"] = self.each
        result["in"] = self.in_
        if self.at:
            result["at"] = self.at
        return result


@dataclass(kw_only=True)
class ForTask(TaskBase):
    """A task that runs its subtasks once for each item of a collection."""

    for_: ForTaskConfiguration = field(default_factory=ForTaskConfiguration)
    while_: str = ""
    do: TaskList | None = None

    @classmethod
    def from_json(cls, data: Any) -> ForTask:
        obj = _require_object(data, "ForTask")
        for_data = obj.get("for")
        return cls(
            **TaskBase._base_fields(obj),
            for_=(
                ForTaskConfiguration()
                if for_data is None
                else ForTaskConfiguration._from_json(for_data)
            ),
            while_=_string(obj, "while", "ForTask"),
            do=_task_list(obj, "do"),
        )

    def to_json(self) -> dict[str, Any]:
        result = self._base_json()
        result["for"] = self.for_._to_json()
        if self.while_:
            result["while"] = self.while_
        result["do"] = _task_list_json(self.do)
        return result

    def validate(self, path: str) -> list[FieldError]:
        errors = super().validate(path)
        if not self.for_.in_:
            errors.append(FieldError(f"{path}.For.In", "required"))
        errors.extend(_required_tasks(self.do, f"{path}.Do"))
        return errors


@dataclass
class ForkTaskConfiguration:
    """The branches a fork task runs concurrently."""

    branches: TaskList | None = None
    compete: bool = False


@dataclass(kw_only=True)
class ForkTask(TaskBase):
    """A task that runs several branches concurrently."""

    fork: ForkTaskConfiguration = field(default_factory=ForkTaskConfiguration)

    @classmethod
    def from_json(cls, data: Any) -> ForkTask:
        obj = _require_object(data, "ForkTask")
        fork = ForkTaskConfiguration()
        fork_data = obj.get("fork")
        if fork_data is not None:
            fork_obj = _require_object(fork_data, "ForkTaskConfiguration")
            compete = fork_obj.get("compete", False)
            if not isinstance(compete, bool):
                raise ValueError(
                    "invalid ForkTaskConfiguration: 'compete' must be a boolean"
                )
            fork = ForkTaskConfiguration(
                branches=_task_list(fork_obj, "branches"), compete=compete
            )
        return cls(**TaskBase._base_fields(obj), fork=fork)

    def to_json(self) -> dict[str, Any]:
        configuration: dict[str, Any] = {
            "branches": _task_list_json(self.fork.branches)
        }
        if self.fork.compete:
            configuration["compete"] = True
        result = self._base_json()
        result["fork"] = configuration
        return result

    def validate(self, path: str) -> list[FieldError]:
        errors = super().validate(path)
        errors.extend(_required_tasks(self.fork.branches, f"{path}.Fork.Branches"))
        return errors


@dataclass
class SwitchCase:
    """A condition and the flow directive followed when it holds."""

    when: str | None = None
    then: FlowDirective | None = None

    @classmethod
    def _from_json(cls, data: Any) -> SwitchCase:
        obj = _require_object(data, "SwitchCase")
        then = obj.get("then")
        return cls(
            when=_optional_string(obj, "when", "SwitchCase"),
            then=None if then is None else FlowDirective.from_json(then),
        )

    def _to_json(self) -> dict[str, Any]:
        result: dict[str, Any] = {}
        if self.when is not None:
            result["when"] = self.when
        result["then"] = None if self.then is None else self.then.to_json()
        return result


@dataclass(kw_only=True)
class SwitchTask(TaskBase):
    """A task that branches on the first matching case."""

    switch: list[dict[str, SwitchCase]] | None = None

    @classmethod
    def from_json(cls, data: Any) -> SwitchTask:
        obj = _require_object(data, "SwitchTask")
        switch_data = obj.get("switch")
        switch = None
        if switch_data is not None:
            if not isinstance(switch_data, list):
                raise ValueError("invalid SwitchTask: 'switch' must be a list")
            switch = [
                {
                    name: SwitchCase._from_json(case)
                    for name, case in _require_object(item, "SwitchItem").items()
                }
                for item in switch_data
            ]
        return cls(**TaskBase._base_fields(obj), switch=switch)

    def to_json(self) -> dict[str, Any]:
        result = self._base_json()
        result["switch"] = (
            None
            if self.switch is None
            else [
                {name: case._to_json() for name, case in item.items()}
                for item in self.switch
            ]
        )
        return result

    def validate(self, path: str) -> list[FieldError]:
        errors = super().validate(path)
        namespace = f"{path}.Switch"
        if self.switch is None:
            errors.append(FieldError(namespace, "required"))
        elif not self.switch:
            errors.append(FieldError(namespace, "min", "1"))
        else:
            errors.extend(
                FieldError(f"{namespace}[{index}]", "switch_item")
                for index, item in enumerate(self.switch)
                if len(item) != 1
            )
        return errors


@dataclass
class TryTaskCatch:
    """Which errors a try task catches and how it handles them."""

    errors_with: dict[str, Any] | None = None
    as_: str = ""
    when: str | None = None
    except_when: str | None = None
    retry: RetryPolicy | None = None
    do: TaskList | None = None

    @classmethod
    def from_json(cls, data: Any) -> TryTaskCatch:
        obj = _require_object(data, "TryTaskCatch")
        errors_with = None
        errors_data = obj.get("errors")
        if errors_data is not None:
            with_data = _require_object(errors_data, "TryTaskCatch errors").get("with")
            if with_data is not None:
                errors_with = dict(_require_object(with_data, "ErrorFilter"))
        retry_data = obj.get("retry")
        return cls(
            errors_with=errors_with,
            as_=_string(obj, "as", "TryTaskCatch"),
            when=_optional_string(obj, "when", "TryTaskCatch"),
            except_when=_optional_string(obj, "exceptWhen", "TryTaskCatch"),
            retry=None if retry_data is None else RetryPolicy.from_json(retry_data),
            do=_task_list(obj, "do"),
        )

    def to_json(self) -> dict[str, Any]:
        errors: dict[str, Any] = {}
        if self.errors_with is not None:
            errors["with"] = self.errors_with
        result: dict[str, Any] = {"errors": errors}
        if self.as_:
            result["as"] = self.as_
        if self.when is not None:
            result["when"] = self.when
        if self.except_when is not None:
            result["exceptWhen"] = self.except_when
        if self.retry is not None:
            result["retry"] = self.retry.to_json()
        if self.do is not None:
            result["do"] = self.do.to_json()
        return result

    def _validate(self, path: str) -> list[FieldError]:
        errors: list[FieldError] = []
        if self.retry is not None:
            errors.extend(self.retry.validate(f"{path}.Retry"))
        if self.do is not None:
            errors.extend(self.do.validate(f"{path}.Do"))
        return errors


@dataclass(kw_only=True)
class TryTask(TaskBase):
    """A task that runs subtasks and catches the errors they raise."""

    try_: TaskList | None = None
    catch: TryTaskCatch | None = None

    @classmethod
    def from_json(cls, data: Any) -> TryTask:
        obj = _require_object(data, "TryTask")
        catch_data = obj.get("catch")
        return cls(
            **TaskBase._base_fields(obj),
            try_=_task_list(obj, "try"),
            catch=None if catch_data is None else TryTaskCatch.from_json(catch_data),
        )

    def to_json(self) -> dict[str, Any]:
        result = self._base_json()
        result["try"] = _task_list_json(self.try_)
        result["catch"] = None if self.catch is None else self.catch.to_json()
        return result

    def validate(self, path: str) -> list[FieldError]:
        errors = super().validate(path)
        errors.extend(_required_tasks(self.try_, f"{path}.Try"))
        if self.catch is None:
            errors.append(FieldError(f"{path}.Catch", "required"))
        else:
            errors.extend(self.catch._validate(f"{path}.Catch"))
        return errors


def resolve_retry_policies(
    catches: list[TryTaskCatch], retries: dict[str, RetryPolicy]
) -> None:
    """Replace every retry reference in *catches* with the named policy."""
    for catch in catches:
        if catch.retry is None:
            continue
        try:
            catch.retry.resolve_reference(retries)
        except (KeyError, ValueError) as exc:
            raise ValueError(
                f'failed to resolve retry policy for task "{catch.as_}": {exc}'
            ) from exc


_TASK_REGISTRY: dict[str, Any] = {
    "call_http": CallHTTP,
    "call_openapi": CallOpenAPI,
    "call_grpc": CallGRPC,
    "call_asyncapi": CallAsyncAPI,
    "call": CallFunction,
    "do": DoTask,
    "fork": ForkTask,
    "emit": EmitTask,
    "for": ForTask,
    "listen": ListenTask,
    "raise": RaiseTask,
    "run": RunTask,
    "set": SetTask,
    "switch": SwitchTask,
    "try": TryTask,
    "wait": WaitTask,
}

_KNOWN_TASK_TYPES = tuple(_TASK_REGISTRY.values())


def _task_type(data: dict[str, Any]) -> Any:
    call = data.get("call")
    if isinstance(call, str):
        return _TASK_REGISTRY.get(f"call_{call}", CallFunction)
    if "for" in data:
        return ForTask
    return next(
        (_TASK_REGISTRY[key] for key in data if key in _TASK_REGISTRY), None
    )


def parse_task(key: str, data: Any) -> TaskBase:
    """Build the task named *key* from its JSON object, choosing its type by its keys."""
    if not isinstance(data, dict):
        raise ValueError(f"failed to parse task type for key '{key}': expected an object")
    task_type = _task_type(data)
    if task_type is None:
        raise ValueError(f"unknown task type for key '{key}'")
    try:
        return task_type.from_json(data)
    except ValueError as exc:
        raise ValueError(f"failed to unmarshal task '{key}': {exc}") from exc


def parse_named_tasks(data: Any) -> dict[str, TaskBase]:
    """Build a mapping of names to tasks from a JSON object."""
    obj = _require_object(data, "NamedTaskMap")
    return {name: parse_task(name, raw) for name, raw in obj.items()}
import pytest
import yaml

from flowspec.actions import SetTask
from flowspec.call import (
    CallFunction,
    CallHTTP,
    CallOpenAPI,
    HTTPArguments,
    OpenAPIArguments,
)
from flowspec.common import ExternalResource, FlowDirective
from flowspec.durations import Duration
from flowspec.events import ListenTask
from flowspec.retry import RetryPolicy
from flowspec.tasks import (
    DoTask,
    ForkTask,
    ForkTaskConfiguration,
    ForTask,
    ForTaskConfiguration,
    SwitchCase,
    SwitchTask,
    TaskItem,
    TaskList,
    TryTask,
    TryTaskCatch,
    parse_named_tasks,
    parse_task,
    resolve_retry_policies,
)
from flowspec.validation import FieldError

TWO_TASKS_JSON = [
    {"task1": {"call": "http", "with": {"method": "GET", "endpoint": "http://example.com"}}},
    {"task2": {"call": "openapi", "with": {"document": {"name": "doc1"}, "operationId": "op1"}}},
]

TWO_TASKS_MARSHALLED = [
    {"task1": {"call": "http", "with": {"method": "GET", "endpoint": "http://example.com"}}},
    {
        "task2": {
            "call": "openapi",
            "with": {
                "document": {"name": "doc1", "endpoint": "http://example.com"},
                "operationId": "op1",
            },
        }
    },
]


def _two_tasks(with_endpoint=True):
    return TaskList(
        [
            TaskItem(
                key="task1",
                task=CallHTTP(
                    call="http",
                    with_=HTTPArguments(method="GET", endpoint="http://example.com"),
                ),
            ),
            TaskItem(
                key="task2",
                task=CallOpenAPI(
                    call="openapi",
                    with_=OpenAPIArguments(
                        document=ExternalResource(
                            name="doc1",
                            endpoint="http://example.com" if with_endpoint else None,
                        ),
                        operation_id="op1",
                    ),
                ),
            ),
        ]
    )


def _assert_two_tasks(tasks):
    task1 = tasks.key("task1").task
    assert isinstance(task1, CallHTTP)
    assert task1.call == "http"
    assert task1.with_.method == "GET"
    assert task1.with_.endpoint == "http://example.com"
    task2 = tasks.key("task2").task
    assert isinstance(task2, CallOpenAPI)
    assert task2.call == "openapi"
    assert task2.with_.document.name == "doc1"
    assert task2.with_.operation_id == "op1"


def _set_task(key, value, then=None):
    return TaskItem(
        key=key,
        task=SetTask(
            then=None if then is None else FlowDirective(then), set_={key: value}
        ),
    )


def test_task_list_unmarshal():
    data = [
        {"task1": {"call": "http", "with": {"method": "GET", "endpoint": "http://example.com"}}},
        {"task2": {"do": [{"task3": {"call": "openapi", "with": {"document": {"name": "doc1"}, "operationId": "op1"}}}]}},
    ]
    tasks = TaskList.from_json(data)
    assert len(tasks) == 2
    task1 = tasks.key("task1").task
    assert isinstance(task1, CallHTTP)
    assert task1.with_.method == "GET"
    assert task1.with_.endpoint == "http://example.com"
    task2 = tasks.key("task2").task
    assert isinstance(task2, DoTask)
    assert len(task2.do) == 1
    task3 = task2.do.key("task3").task
    assert isinstance(task3, CallOpenAPI)
    assert task3.with_.document.name == "doc1"
    assert task3.with_.operation_id == "op1"


def test_task_list_marshal():
    tasks = TaskList(
        [
            _two_tasks()[0],
            TaskItem(key="task2", task=DoTask(do=TaskList([TaskItem(key="task3", task=_two_tasks()[1].task)]))),
        ]
    )
    assert tasks.to_json() == [
        TWO_TASKS_MARSHALLED[0],
        {"task2": {"do": [{"task3": TWO_TASKS_MARSHALLED[1]["task2"]}]}},
    ]


def test_task_list_validation_passes():
    tasks = TaskList(
        [
            _two_tasks()[0],
            TaskItem(key="task2", task=DoTask(do=TaskList([TaskItem(key="task3", task=_two_tasks()[1].task)]))),
        ]
    )
    assert [item.validate("TaskItem") for item in tasks] == [[], []]


def test_task_item_requires_key_and_task():
    assert TaskItem(key="", task=SetTask(set_={"a": 1})).validate("T") == [
        FieldError("T.Key", "required")
    ]
    assert TaskItem(key="k").validate("T") == [FieldError("T.Task", "required")]


def test_task_item_to_json():
    item = _set_task("t", "v")
    assert item.to_json() == {"t": {"set": {"t": "v"}}}


def test_task_list_rejects_items_with_several_keys():
    with pytest.raises(ValueError, match="exactly one key"):
        TaskList.from_json([{"a": {"set": {"x": 1}}, "b": {"set": {"y": 2}}}])


def test_task_list_rejects_unknown_task_type():
    with pytest.raises(ValueError, match="unknown task type for key 'mystery'"):
        TaskList.from_json([{"mystery": {"something": 1}}])


def test_next_sequential():
    tasks = TaskList([_set_task("task1", "value1"), _set_task("task2", "value2"), _set_task("task3", "value3")])
    index, current = tasks.next(0)
    assert (index, current.key) == (1, "task2")
    index, current = tasks.next(index)
    assert (index, current.key) == (2, "task3")
    assert tasks.next(index) == (-1, None)


def test_next_with_then_directive():
    tasks = TaskList([
        _set_task("task1", "value1", then="task3"),
        _set_task("task2", "value2"),
        _set_task("task3", "value3"),
    ])
    index, current = tasks.next(0)
    assert (index, current.key) == (2, "task3")
    assert tasks.next(index) == (-1, None)


def test_next_termination():
    tasks = TaskList([_set_task("task1", "value1", then="end"), _set_task("task2", "value2")])
    assert tasks.next(0) == (-1, None)


def test_next_invalid_then_reference():
    tasks = TaskList([_set_task("task1", "value1", then="unknown"), _set_task("task2", "value2")])
    assert tasks.next(0) == (-1, None)


def test_next_out_of_range():
    tasks = TaskList([_set_task("task1", "value1")])
    assert tasks.next(-1) == (-1, None)
    assert tasks.next(5) == (-1, None)


def test_key_and_index():
    tasks = TaskList([_set_task("a", 1), _set_task("b", 2)])
    assert tasks.key_and_index("b") == (1, tasks[1])
    assert tasks.key_and_index("zzz") == (-1, None)
    assert tasks.key("zzz") is None


def test_parse_task_type_selection():
    assert isinstance(parse_task("f", {"call": "custom", "with": {"a": 1}}), CallFunction)
    assert isinstance(parse_task("h", {"call": "http", "with": {}}), CallHTTP)
    loop = parse_task("l", {"for": {"in": ".items"}, "do": []})
    assert isinstance(loop, ForTask)
    assert loop.for_.in_ == ".items"


def test_parse_task_rejects_non_object():
    with pytest.raises(ValueError, match="failed to parse task type for key 'x'"):
        parse_task("x", "not an object")


def test_parse_named_tasks():
    tasks = parse_named_tasks({"func1": {"call": "http", "with": {"endpoint": "http://example.com"}}})
    assert list(tasks) == ["func1"]
    assert isinstance(tasks["func1"], CallHTTP)
    assert tasks["func1"].with_.endpoint == "http://example.com"


def test_do_task_unmarshal():
    do_task = DoTask.from_json({"do": TWO_TASKS_JSON})
    _assert_two_tasks(do_task.do)


def test_do_task_marshal():
    assert DoTask(do=_two_tasks()).to_json() == {"do": TWO_TASKS_MARSHALLED}


def test_do_task_validation():
    errors = DoTask(do=_two_tasks(with_endpoint=False)).validate("DoTask")
    assert FieldError("DoTask.Do[1].Task.With.Document.Endpoint", "required") in errors


def test_do_task_requires_do():
    assert DoTask().validate("DoTask") == [FieldError("DoTask.Do", "required")]


def test_for_task_unmarshal():
    data = {
        "for": {"each": "item", "in": "${items}", "at": "index"},
        "while": "${condition}",
        "do": TWO_TASKS_JSON,
    }
    for_task = ForTask.from_json(data)
    assert for_task.for_ == ForTaskConfiguration(each="item", in_="${items}", at="index")
    assert for_task.while_ == "${condition}"
    _assert_two_tasks(for_task.do)


def test_for_task_marshal():
    for_task = ForTask(
        for_=ForTaskConfiguration(each="item", in_="${items}", at="index"),
        while_="${condition}",
        do=_two_tasks(),
    )
    assert for_task.to_json() == {
        "for": {"each": "item", "in": "${items}", "at": "index"},
        "while": "${condition}",
        "do": TWO_TASKS_MARSHALLED,
    }


def test_for_task_validation_fails_on_missing_endpoint():
    for_task = ForTask(
        for_=ForTaskConfiguration(each="item", in_="${items}", at="index"),
        while_="${condition}",
        do=_two_tasks(with_endpoint=False),
    )
    assert for_task.validate("ForTask") == [
        FieldError("ForTask.Do[1].Task.With.Document.Endpoint", "required")
    ]


def test_for_task_from_yaml_validates():
    raw = """
for:
  each: pet
  in: .pets
  at: index
while: .vet != null
do:
  - waitForCheckup:
      listen:
        to:
          one:
            with:
              type: com.fake.petclinic.pets.checkup.completed.v2
      output:
        as: '.pets + [{ "id": $pet.id }]'
"""
    for_task = ForTask.from_json(yaml.safe_load(raw))
    assert for_task.for_.each == "pet"
    assert isinstance(for_task.do.key("waitForCheckup").task, ListenTask)
    assert for_task.validate("ForTask") == []


def test_fork_task_unmarshal():
    fork_task = ForkTask.from_json({"fork": {"branches": TWO_TASKS_JSON, "compete": True}})
    assert fork_task.fork.compete is True
    _assert_two_tasks(fork_task.fork.branches)


def test_fork_task_marshal():
    fork_task = ForkTask(fork=ForkTaskConfiguration(branches=_two_tasks(), compete=True))
    assert fork_task.to_json() == {
        "fork": {"branches": TWO_TASKS_MARSHALLED, "compete": True}
    }


def test_fork_task_validation():
    fork_task = ForkTask(
        fork=ForkTaskConfiguration(branches=_two_tasks(with_endpoint=False), compete=True)
    )
    assert FieldError(
        "ForkTask.Fork.Branches[1].Task.With.Document.Endpoint", "required"
    ) in fork_task.validate("ForkTask")


SWITCH_JSON = {
    "if": "${condition}",
    "input": {"from": {"key": "value"}},
    "output": {"as": {"result": "output"}},
    "timeout": {"after": "10s"},
    "then": "continue",
    "metadata": {"meta": "data"},
    "switch": [
        {"case1": {"when": "${condition1}", "then": "next"}},
        {"case2": {"when": "${condition2}", "then": "end"}},
    ],
}


def test_switch_task_unmarshal():
    switch_task = SwitchTask.from_json(SWITCH_JSON)
    assert switch_task.if_ == "${condition}"
    assert switch_task.input.from_ == {"key": "value"}
    assert switch_task.output.as_ == {"result": "output"}
    assert switch_task.then == FlowDirective("continue")
    assert switch_task.metadata == {"meta": "data"}
    assert len(switch_task.switch) == 2
    assert switch_task.switch[0]["case1"] == SwitchCase(when="${condition1}", then=FlowDirective("next"))
    assert switch_task.switch[1]["case2"] == SwitchCase(when="${condition2}", then=FlowDirective("end"))


def test_switch_task_round_trip():
    assert SwitchTask.from_json(SWITCH_JSON).to_json() == SWITCH_JSON


def test_switch_task_marshal():
    switch_task = SwitchTask(
        switch=[
            {"case1": SwitchCase(when="${condition1}", then=FlowDirective("next"))},
            {"case2": SwitchCase(when="${condition2}", then=FlowDirective("end"))},
        ]
    )
    assert switch_task.to_json() == {"switch": SWITCH_JSON["switch"]}


def test_switch_task_validation():
    valid = SwitchTask(switch=[{"case1": SwitchCase(when="${condition1}", then=FlowDirective("next"))}])
    assert valid.validate("SwitchTask") == []
    empty = SwitchTask(switch=[])
    assert empty.validate("SwitchTask") == [FieldError("SwitchTask.Switch", "min", "1")]
    several = SwitchTask(
        switch=[
            {
                "case1": SwitchCase(when="${condition1}", then=FlowDirective("next")),
                "case2": SwitchCase(when="${condition2}", then=FlowDirective("end")),
            }
        ]
    )
    assert several.validate("SwitchTask") == [FieldError("SwitchTask.Switch[0]", "switch_item")]


def test_try_catch_retry_reference_resolution():
    retries = {
        "default": RetryPolicy.from_json(
            {"delay": {"seconds": 3}, "backoff": {"exponential": {}}, "limit": {"attempt": {"count": 5}}}
        )
    }
    catch = TryTaskCatch.from_json({"retry": "default"})
    catch.retry.resolve_reference(retries)
    assert catch.retry.delay == retries["default"].delay
    assert catch.retry.to_json() == retries["default"].to_json()


def test_try_catch_retry_inline():
    catch = TryTaskCatch.from_json(
        {"retry": {"delay": {"seconds": 3}, "backoff": {"exponential": {}}, "limit": {"attempt": {"count": 5}}}}
    )
    assert catch.retry.delay == Duration.from_json({"seconds": 3})
    assert catch.retry.backoff.exponential is not None
    assert catch.retry.limit.attempt.count == 5


def test_resolve_retry_policies_reports_missing_reference():
    catches = [TryTaskCatch(as_="handler", retry=RetryPolicy.from_json("missing"))]
    with pytest.raises(ValueError, match='failed to resolve retry policy for task "handler"'):
        resolve_retry_policies(catches, {})


def test_resolve_retry_policies_replaces_reference():
    policy = RetryPolicy.from_json({"delay": "PT5S", "limit": {"attempt": {"count": 3}}})
    catches = [TryTaskCatch(retry=RetryPolicy.from_json("retry1")), TryTaskCatch()]
    resolve_retry_policies(catches, {"retry1": policy})
    assert catches[0].retry.to_json() == policy.to_json()
    assert catches[1].retry is None


def test_try_task_round_trip_and_validation():
    data = {
        "try": [{"step": {"set": {"a": 1}}}],
        "catch": {"errors": {"with": {"status": 503}}, "as": "err", "do": [{"recover": {"set": {"b": 2}}}]},
    }
    task = parse_task("guarded", data)
    assert isinstance(task, TryTask)
    assert task.catch.as_ == "err"
    assert task.catch.errors_with == {"status": 503}
    assert task.to_json() == data
    assert task.validate("TryTask") == []


def test_try_task_requires_try_and_catch():
    assert TryTask().validate("TryTask") == [
        FieldError("TryTask.Try", "required"),
        FieldError("TryTask.Catch", "required"),
    ]
import pytest

from flowspec.common import FlowDirective, Input, Output
from flowspec.durations import Timeout, TimeoutOrReference, new_duration_expr
from flowspec.events import (
    Correlation,
    EmitEventDefinition,
    EmitTask,
    EmitTaskConfiguration,
    EventConsumptionStrategy,
    EventConsumptionUntil,
    EventFilter,
    EventProperties,
    ListenTask,
    ListenTaskConfiguration,
)

BASE_JSON = {
    "if": "${condition}",
    "input": {"from": {"key": "value"}},
    "output": {"as": {"result": "output"}},
    "timeout": {"after": "10s"},
    "then": "continue",
    "metadata": {"meta": "data"},
}


def _base_kwargs():
    return {
        "if_": "${condition}",
        "input": Input(from_={"key": "value"}),
        "output": Output(as_={"result": "output"}),
        "timeout": TimeoutOrReference(timeout=Timeout(after=new_duration_expr("10s"))),
        "then": FlowDirective("continue"),
        "metadata": {"meta": "data"},
    }


def _assert_base(task):
    assert task.if_ == "${condition}"
    assert task.input == Input(from_={"key": "value"})
    assert task.output == Output(as_={"result": "output"})
    assert task.timeout == TimeoutOrReference(
        timeout=Timeout(after=new_duration_expr("10s"))
    )
    assert task.then == FlowDirective("continue")
    assert task.metadata == {"meta": "data"}


EMIT_WITH = {
    "id": "event-id",
    "source": "http://example.com/source",
    "type": "example.event.type",
    "time": "2023-01-01T00:00:00Z",
    "subject": "example.subject",
    "datacontenttype": "application/json",
    "dataschema": "http://example.com/schema",
    "extra": "value",
}


def test_emit_task_to_json():
    task = EmitTask(
        **_base_kwargs(),
        emit=EmitTaskConfiguration(
            event=EmitEventDefinition(
                with_=EventProperties(
                    id="event-id",
                    source="http://example.com/source",
                    type="example.event.type",
                    time="2023-01-01T00:00:00Z",
                    subject="example.subject",
                    data_content_type="application/json",
                    data_schema="http://example.com/schema",
                    additional={"extra": "value"},
                )
            )
        ),
    )
    assert task.to_json() == {**BASE_JSON, "emit": {"event": {"with": EMIT_WITH}}}


def test_emit_task_from_json():
    task = EmitTask.from_json({**BASE_JSON, "emit": {"event": {"with": EMIT_WITH}}})
    _assert_base(task)
    properties = task.emit.event.with_
    assert properties.id == "event-id"
    assert properties.source == "http://example.com/source"
    assert properties.type == "example.event.type"
    assert properties.time == "2023-01-01T00:00:00Z"
    assert properties.subject == "example.subject"
    assert properties.data_content_type == "application/json"
    assert properties.data_schema == "http://example.com/schema"
    assert properties.additional == {"extra": "value"}


def test_listen_task_to_json_with_until_condition():
    task = ListenTask(
        **_base_kwargs(),
        listen=ListenTaskConfiguration(
            to=EventConsumptionStrategy(
                any_=[
                    EventFilter(
                        with_=EventProperties(
                            type="example.event.type",
                            source="http://example.com/source",
                        )
                    )
                ],
                until=EventConsumptionUntil(
                    condition="workflow.data.condition == true"
                ),
            )
        ),
    )
    assert task.to_json() == {
        **BASE_JSON,
        "listen": {
            "to": {
                "any": [
                    {
                        "with": {
                            "type": "example.event.type",
                            "source": "http://example.com/source",
                        }
                    }
                ],
                "until": "workflow.data.condition == true",
            }
        },
    }


@pytest.mark.parametrize(
    ("until", "expected"),
    [
        (EventConsumptionUntil(is_disabled=True), False),
        (
            EventConsumptionUntil(condition="workflow.data.condition == true"),
            "workflow.data.condition == true",
        ),
        (
            EventConsumptionUntil(
                strategy=EventConsumptionStrategy(
                    one=EventFilter(with_=EventProperties(type="example.event.type"))
                )
            ),
            {"one": {"with": {"type": "example.event.type"}}},
        ),
        (EventConsumptionUntil(), None),
    ],
)
def test_event_consumption_until_to_json(until, expected):
    assert until.to_json() == expected


def test_until_from_json_variants():
    assert EventConsumptionUntil.from_json(False).is_disabled is True
    assert EventConsumptionUntil.from_json("${ done }").condition == "${ done }"
    nested = EventConsumptionUntil.from_json({"one": {"with": {"type": "t"}}})
    assert nested.strategy.one.with_.type == "t"


@pytest.mark.parametrize("value", [True, 5, ["x"]])
def test_until_from_json_rejects(value):
    with pytest.raises(ValueError):
        EventConsumptionUntil.from_json(value)


def test_strategy_rejects_more_than_one_kind():
    with pytest.raises(ValueError, match="only one primary strategy"):
        EventConsumptionStrategy.from_json(
            {"all": [{"with": {"type": "a"}}], "one": {"with": {"type": "b"}}}
        )


def test_strategy_any_with_until_is_accepted():
    strategy = EventConsumptionStrategy.from_json(
        {"any": [{"with": {"type": "a"}}], "until": False}
    )
    assert strategy.until.is_disabled is True
    assert strategy.any_[0].with_.type == "a"
    assert strategy.to_json() == {"any": [{"with": {"type": "a"}}], "until": False}


def test_event_properties_rejects_invalid_source():
    with pytest.raises(ValueError, match="invalid Source"):
        EventProperties.from_json({"source": 42})


def test_event_properties_round_trip():
    properties = EventProperties.from_json(EMIT_WITH)
    assert properties.to_json() == EMIT_WITH


def test_listen_task_round_trip():
    data = {
        "listen": {
            "to": {
                "all": [
                    {
                        "with": {"type": "a"},
                        "correlate": {"id": {"from": ".id", "expect": "1"}},
                    }
                ]
            }
        }
    }
    task = ListenTask.from_json(data)
    assert task.listen.to.all_[0].correlate == {"id": Correlation(".id", "1")}
    assert task.to_json() == data


def test_listen_task_validate_requires_to():
    errors = ListenTask().validate("ListenTask")
    assert [(e.namespace, e.tag) for e in errors] == [("ListenTask.Listen.To", "required")]


def test_event_filter_validation():
    errors = EventFilter(correlate={"k": Correlation()}).validate("F")
    assert {(e.namespace, e.tag) for e in errors} == {
        ("F.With", "required"),
        ("F.Correlate[k].From", "required"),
    }


def test_emit_task_validate():
    assert EmitTask().validate("EmitTask")[0].namespace == "EmitTask.Emit.Event.With"
    valid = EmitTask(
        emit=EmitTaskConfiguration(
            event=EmitEventDefinition(with_=EventProperties(type="t"))
        )
    )
    assert valid.validate("EmitTask") == []


def test_strategy_validation_dives_into_filters():
    strategy = EventConsumptionStrategy(one=EventFilter())
    errors = strategy.validate("S")
    assert [e.namespace for e in errors] == ["S.One.With"]
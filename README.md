# flowspec

`flowspec` reads workflow definitions written in the Serverless Workflow DSL.
It turns JSON or YAML documents into Python dataclasses, checks them against
the rules of the specification, and turns them back into JSON-ready data.

## Installation

```
pip install flowspec
```

## Parsing a workflow

```python
from flowspec.parser import from_yaml_source, from_json_source, from_file

workflow = from_yaml_source(b"""
document:
  dsl: 1.0.0
  namespace: examples
  name: example-workflow
  version: 1.0.0
do:
  - task1:
      call: http
      with:
        method: GET
        endpoint: http://example.com
""")

print(workflow.document.name)   # example-workflow
```

`from_file` accepts paths ending in `.json`, `.yaml` or `.yml` and picks the
decoder from the extension; `check_file_path` performs the same path checks on
their own. Each of the three loading functions validates the document before it
returns it. A malformed document raises `ValueError`; a missing file raises an
`OSError`.

A document that parses but breaks a rule raises
`flowspec.validation.ValidationError`, a subclass of `ValueError`. Its `errors`
attribute lists every failure as a `FieldError` with a `namespace` (such as
`Workflow.Document.DSL`) and a `tag` naming the rule (such as `required` or
`semver_pattern`). You can also call `Workflow.validate()` yourself on a
workflow you built in code.

The pattern checks are available directly:

```python
from flowspec.validation import (
    is_hostname_valid,
    is_iso8601_duration_valid,
    is_semantic_version_valid,
)

is_semantic_version_valid("1.2.3-beta.1")   # True
is_iso8601_duration_valid("P1DT12H30M")     # True
is_hostname_valid("example.com.")           # False
```

## Working with tasks

A workflow's `do` block is a `flowspec.tasks.TaskList`, a list of `TaskItem`s,
each holding a `key` and a `task`:

```python
tasks = workflow.do
item = tasks.key("task1")          # TaskItem or None
index, following = tasks.next(0)   # honours each task's "then" directive
```

`then: end` and `then: exit` end the walk, returning `(-1, None)`. A `then`
that names another task jumps to it, and a name that matches no task also gives
`(-1, None)`. Without a `then`, the walk moves on to the next task in order.

Task types are chosen from a task's keys by `parse_task`: `call: http`,
`openapi`, `grpc` and `asyncapi` give `CallHTTP`, `CallOpenAPI`, `CallGRPC` and
`CallAsyncAPI`, any other `call` gives `CallFunction`, and `do`, `for`, `fork`,
`emit`, `listen`, `raise`, `run`, `set`, `switch`, `try` and `wait` give the
matching task classes from `flowspec.tasks`, `flowspec.events` and
`flowspec.actions`.

Retry policies given by name can be filled in from a workflow's reusable
retries with `RetryPolicy.resolve_reference` or, for several catch blocks at
once, `flowspec.tasks.resolve_retry_policies`.

## Serialising

The workflow, its document, the task classes, durations, timeouts, retry
policies, event strategies and schemas each have a `from_json(data)` class
method, which takes already-decoded JSON data, and a `to_json()` method, which
returns plain dicts, lists and scalars. `Workflow.as_map()` gives the whole
workflow as a dictionary.

Durations can be ISO 8601 expressions or inline objects:

```python
from flowspec.durations import Duration, new_duration_expr

new_duration_expr("PT5S").to_json()                  # "PT5S"
Duration.from_json({"seconds": 3}).as_inline().seconds   # 3
```

## Checking a directory of workflows

The `flowspec-validate` command walks a directory and validates every `.json`,
`.yaml` and `.yml` file it finds:

```
flowspec-validate path/to/examples
```

It prints a line for each file it checks and a summary at the end, and exits
with status 1 if any file fails or the directory cannot be read.

## What it does not do

- It does not run workflows; it only reads, checks and writes their definitions.
  Runtime expressions are kept as strings and never evaluated.
- Endpoints, authentication policies, error definitions and extensions are kept
  as the plain JSON data they were given as. They are not turned into classes
  and their contents are not validated.
- It writes JSON-ready data only; producing YAML text is left to the caller.

## Running the tests

```
pip install flowspec[test]
pytest
```
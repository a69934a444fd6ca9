"""Call tasks: HTTP, OpenAPI, gRPC, AsyncAPI and custom functions."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .common import ExternalResource, TaskBase
from .durations import Duration
from .validation import FieldError, is_hostname_valid

_HTTP_METHODS = frozenset({"GET", "POST", "PUT", "DELETE", "PATCH"})
_OUTPUT_FORMATS = ("raw", "content", "response")
_ASYNCAPI_PROTOCOLS = (
    "amqp amqp1 anypointmq googlepubsub http ibmmq jms kafka mercure mqtt mqtt5 "
    "nats pulsar redis sns solace sqs stomp ws"
)
_ASYNCAPI_PROTOCOL_SET = frozenset(_ASYNCAPI_PROTOCOLS.split())


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


def _integer(obj: dict[str, Any], key: str, what: str) -> int:
    value = obj.get(key)
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"invalid {what}: '{key}' must be an integer")
    return value


def _resource(obj: dict[str, Any], key: str) -> ExternalResource | None:
    value = obj.get(key)
    return None if value is None else ExternalResource.from_json(value)


def _resource_json(resource: ExternalResource | None) -> Any:
    return None if resource is None else resource.to_json()


def _resource_errors(
    resource: ExternalResource | None, namespace: str
) -> list[FieldError]:
    if resource is None:
        return [FieldError(namespace, "required")]
    return resource.validate(namespace)


def _output_errors(output: str, namespace: str) -> list[FieldError]:
    if output and output not in _OUTPUT_FORMATS:
        return [FieldError(namespace, "oneof", " ".join(_OUTPUT_FORMATS))]
    return []


def _call_errors(call: str, expected: str, namespace: str) -> list[FieldError]:
    if not call:
        return [FieldError(namespace, "required")]
    if call != expected:
        return [FieldError(namespace, "eq", expected)]
    return []


def _arguments(obj: dict[str, Any], cls: Any) -> Any:
    value = obj.get("with")
    return cls() if value is None else cls._from_json(value)


@dataclass
class HTTPArguments:
    """The request an HTTP call sends."""

    method: str = ""
    endpoint: Any = None
    headers: dict[str, str] | None = None
    body: Any = None
    query: dict[str, Any] | None = None
    output: str = ""

    @classmethod
    def _from_json(cls, data: Any) -> HTTPArguments:
        obj = _require_object(data, "HTTPArguments")
        return cls(
            method=_string(obj, "method", "HTTPArguments"),
            endpoint=obj.get("endpoint"),
            headers=_string_map(obj, "headers", "HTTPArguments"),
            body=obj.get("body"),
            query=_object(obj, "query", "HTTPArguments"),
            output=_string(obj, "output", "HTTPArguments"),
        )

    def _to_json(self) -> dict[str, Any]:
        result: dict[str, Any] = {"method": self.method, "endpoint": self.endpoint}
        if self.headers:
            result["headers"] = self.headers
        if self.body is not None:
            result["body"] = self.body
        if self.query:
            result["query"] = self.query
        if self.output:
            result["output"] = self.output
        return result

    def _validate(self, path: str) -> list[FieldError]:
        errors: list[FieldError] = []
        if not self.method:
            errors.append(FieldError(f"{path}.Method", "required"))
        elif self.method.upper() not in _HTTP_METHODS:
            errors.append(
                FieldError(f"{path}.Method", "oneofci", "GET POST PUT DELETE PATCH")
            )
        if self.endpoint is None:
            errors.append(FieldError(f"{path}.Endpoint", "required"))
        errors.extend(_output_errors(self.output, f"{path}.Output"))
        return errors


@dataclass(kw_only=True)
class CallHTTP(TaskBase):
    """A task that performs an HTTP request."""

    call: str = "http"
    with_: HTTPArguments = field(default_factory=HTTPArguments)

    @classmethod
    def from_json(cls, data: Any) -> CallHTTP:
        obj = _require_object(data, "CallHTTP")
        return cls(
            **TaskBase._base_fields(obj),
            call=_string(obj, "call", "CallHTTP"),
            with_=_arguments(obj, HTTPArguments),
        )

    def to_json(self) -> dict[str, Any]:
        return {**self._base_json(), "call": self.call, "with": self.with_._to_json()}

    def validate(self, path: str) -> list[FieldError]:
        errors = super().validate(path)
        errors.extend(_call_errors(self.call, "http", f"{path}.Call"))
        errors.extend(self.with_._validate(f"{path}.With"))
        return errors


@dataclass
class OpenAPIArguments:
    """The operation an OpenAPI call invokes."""

    document: ExternalResource | None = None
    operation_id: str = ""
    parameters: dict[str, Any] | None = None
    authentication: Any = None
    output: str = ""

    @classmethod
    def _from_json(cls, data: Any) -> OpenAPIArguments:
        obj = _require_object(data, "OpenAPIArguments")
        return cls(
            document=_resource(obj, "document"),
            operation_id=_string(obj, "operationId", "OpenAPIArguments"),
            parameters=_object(obj, "parameters", "OpenAPIArguments"),
            authentication=obj.get("authentication"),
            output=_string(obj, "output", "OpenAPIArguments"),
        )

    def _to_json(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "document": _resource_json(self.document),
            "operationId": self.operation_id,
        }
        if self.parameters:
            result["parameters"] = self.parameters
        if self.authentication is not None:
            result["authentication"] = self.authentication
        if self.output:
            result["output"] = self.output
        return result

    def _validate(self, path: str) -> list[FieldError]:
        errors = _resource_errors(self.document, f"{path}.Document")
        if not self.operation_id:
            errors.append(FieldError(f"{path}.OperationID", "required"))
        errors.extend(_output_errors(self.output, f"{path}.Output"))
        return errors


@dataclass(kw_only=True)
class CallOpenAPI(TaskBase):
    """A task that invokes an operation described by an OpenAPI document."""

    call: str = "openapi"
    with_: OpenAPIArguments = field(default_factory=OpenAPIArguments)

    @classmethod
    def from_json(cls, data: Any) -> CallOpenAPI:
        obj = _require_object(data, "CallOpenAPI")
        return cls(
            **TaskBase._base_fields(obj),
            call=_string(obj, "call", "CallOpenAPI"),
            with_=_arguments(obj, OpenAPIArguments),
        )

    def to_json(self) -> dict[str, Any]:
        return {**self._base_json(), "call": self.call, "with": self.with_._to_json()}

    def validate(self, path: str) -> list[FieldError]:
        errors = super().validate(path)
        errors.extend(_call_errors(self.call, "openapi", f"{path}.Call"))
        errors.extend(self.with_._validate(f"{path}.With"))
        return errors


@dataclass
class GRPCService:
    """The gRPC service a call connects to."""

    name: str = ""
    host: str = ""
    port: int = 0
    authentication: Any = None

    @classmethod
    def _from_json(cls, data: Any) -> GRPCService:
        obj = _require_object(data, "GRPCService")
        return cls(
            name=_string(obj, "name", "GRPCService"),
            host=_string(obj, "host", "GRPCService"),
            port=_integer(obj, "port", "GRPCService"),
            authentication=obj.get("authentication"),
        )

    def _to_json(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "name": self.name,
            "host": self.host,
            "port": self.port,
        }
        if self.authentication is not None:
            result["authentication"] = self.authentication
        return result

    def _validate(self, path: str) -> list[FieldError]:
        errors: list[FieldError] = []
        if not self.name:
            errors.append(FieldError(f"{path}.Name", "required"))
        if not self.host:
            errors.append(FieldError(f"{path}.Host", "required"))
        elif not is_hostname_valid(self.host):
            errors.append(FieldError(f"{path}.Host", "hostname_rfc1123"))
        if self.port == 0:
            errors.append(FieldError(f"{path}.Port", "required"))
        elif self.port < 0:
            errors.append(FieldError(f"{path}.Port", "min", "0"))
        elif self.port > 65535:
            errors.append(FieldError(f"{path}.Port", "max", "65535"))
        return errors


@dataclass
class GRPCArguments:
    """The method a gRPC call invokes and its arguments."""

    proto: ExternalResource | None = None
    service: GRPCService = field(default_factory=GRPCService)
    method: str = ""
    arguments: dict[str, Any] | None = None
    authentication: Any = None

    @classmethod
    def _from_json(cls, data: Any) -> GRPCArguments:
        obj = _require_object(data, "GRPCArguments")
        service = obj.get("service")
        return cls(
            proto=_resource(obj, "proto"),
            service=GRPCService() if service is None else GRPCService._from_json(service),
            method=_string(obj, "method", "GRPCArguments"),
            arguments=_object(obj, "arguments", "GRPCArguments"),
            authentication=obj.get("authentication"),
        )

    def _to_json(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "proto": _resource_json(self.proto),
            "service": self.service._to_json(),
            "method": self.method,
        }
        if self.arguments:
            result["arguments"] = self.arguments
        if self.authentication is not None:
            result["authentication"] = self.authentication
        return result

    def _validate(self, path: str) -> list[FieldError]:
        errors = _resource_errors(self.proto, f"{path}.Proto")
        errors.extend(self.service._validate(f"{path}.Service"))
        if not self.method:
            errors.append(FieldError(f"{path}.Method", "required"))
        return errors


@dataclass(kw_only=True)
class CallGRPC(TaskBase):
    """A task that invokes a gRPC method."""

    call: str = "grpc"
    with_: GRPCArguments = field(default_factory=GRPCArguments)

    @classmethod
    def from_json(cls, data: Any) -> CallGRPC:
        obj = _require_object(data, "CallGRPC")
        return cls(
            **TaskBase._base_fields(obj),
            call=_string(obj, "call", "CallGRPC"),
            with_=_arguments(obj, GRPCArguments),
        )

    def to_json(self) -> dict[str, Any]:
        return {**self._base_json(), "call": self.call, "with": self.with_._to_json()}

    def validate(self, path: str) -> list[FieldError]:
        errors = super().validate(path)
        errors.extend(_call_errors(self.call, "grpc", f"{path}.Call"))
        errors.extend(self.with_._validate(f"{path}.With"))
        return errors


@dataclass
class AsyncAPIServer:
    """The AsyncAPI server to use, with its variables."""

    name: str = ""
    variables: dict[str, Any] | None = None

    @classmethod
    def _from_json(cls, data: Any) -> AsyncAPIServer:
        obj = _require_object(data, "AsyncAPIServer")
        return cls(
            name=_string(obj, "name", "AsyncAPIServer"),
            variables=_object(obj, "variables", "AsyncAPIServer"),
        )

    def _to_json(self) -> dict[str, Any]:
        result: dict[str, Any] = {"name": self.name}
        if self.variables:
            result["variables"] = self.variables
        return result

    def _validate(self, path: str) -> list[FieldError]:
        if not self.name:
            return [FieldError(f"{path}.Name", "required")]
        return []


@dataclass
class AsyncAPIOutboundMessage:
    """A message to publish."""

    payload: dict[str, Any] | None = None
    headers: dict[str, Any] | None = None

    @classmethod
    def _from_json(cls, data: Any) -> AsyncAPIOutboundMessage:
        obj = _require_object(data, "AsyncAPIOutboundMessage")
        return cls(
            payload=_object(obj, "payload", "AsyncAPIOutboundMessage"),
            headers=_object(obj, "headers", "AsyncAPIOutboundMessage"),
        )

    def _to_json(self) -> dict[str, Any]:
        result: dict[str, Any] = {}
        if self.payload:
            result["payload"] = self.payload
        if self.headers:
            result["headers"] = self.headers
        return result


@dataclass
class AsyncAPIMessageConsumptionPolicy:
    """How many messages to consume, or while or until what."""

    for_: Duration | None = None
    amount: int = 0
    while_: str | None = None
    until: str | None = None

    @classmethod
    def _from_json(cls, data: Any) -> AsyncAPIMessageConsumptionPolicy:
        what = "AsyncAPIMessageConsumptionPolicy"
        obj = _require_object(data, what)
        duration = obj.get("for")
        return cls(
            for_=None if duration is None else Duration.from_json(duration),
            amount=_integer(obj, "amount", what),
            while_=_optional_string(obj, "while", what),
            until=_optional_string(obj, "until", what),
        )

    def _to_json(self) -> dict[str, Any]:
        result: dict[str, Any] = {}
        if self.for_ is not None:
            result["for"] = self.for_.to_json()
        if self.amount:
            result["amount"] = self.amount
        if self.while_ is not None:
            result["while"] = self.while_
        if self.until is not None:
            result["until"] = self.until
        return result

    def _validate(self, path: str) -> list[FieldError]:
        errors: list[FieldError] = []
        if self.for_ is not None:
            errors.extend(self.for_.validate(f"{path}.For"))
        if not self.amount and self.while_ is None and self.until is None:
            errors.extend(
                [
                    FieldError(f"{path}.Amount", "required_without_all", "While Until"),
                    FieldError(f"{path}.While", "required_without_all", "Amount Until"),
                    FieldError(f"{path}.Until", "required_without_all", "Amount While"),
                ]
            )
        return errors


@dataclass
class AsyncAPISubscription:
    """A subscription to messages, with an optional filter."""

    filter: str | None = None
    consume: AsyncAPIMessageConsumptionPolicy | None = None

    @classmethod
    def _from_json(cls, data: Any) -> AsyncAPISubscription:
        obj = _require_object(data, "AsyncAPISubscription")
        consume = obj.get("consume")
        return cls(
            filter=_optional_string(obj, "filter", "AsyncAPISubscription"),
            consume=(
                None
                if consume is None
                else AsyncAPIMessageConsumptionPolicy._from_json(consume)
            ),
        )

    def _to_json(self) -> dict[str, Any]:
        result: dict[str, Any] = {}
        if self.filter is not None:
            result["filter"] = self.filter
        result["consume"] = None if self.consume is None else self.consume._to_json()
        return result

    def _validate(self, path: str) -> list[FieldError]:
        if self.consume is None:
            return [FieldError(f"{path}.Consume", "required")]
        return self.consume._validate(f"{path}.Consume")


@dataclass
class AsyncAPIArguments:
    """The operation an AsyncAPI call performs."""

    document: ExternalResource | None = None
    channel: str = ""
    operation: str = ""
    server: AsyncAPIServer | None = None
    protocol: str = ""
    message: AsyncAPIOutboundMessage | None = None
    subscription: AsyncAPISubscription | None = None
    authentication: Any = None

    @classmethod
    def _from_json(cls, data: Any) -> AsyncAPIArguments:
        what = "AsyncAPIArguments"
        obj = _require_object(data, what)
        server = obj.get("server")
        message = obj.get("message")
        subscription = obj.get("subscription")
        return cls(
            document=_resource(obj, "document"),
            channel=_string(obj, "channel", what),
            operation=_string(obj, "operation", what),
            server=None if server is None else AsyncAPIServer._from_json(server),
            protocol=_string(obj, "protocol", what),
            message=(
                None if message is None else AsyncAPIOutboundMessage._from_json(message)
            ),
            subscription=(
                None
                if subscription is None
                else AsyncAPISubscription._from_json(subscription)
            ),
            authentication=obj.get("authentication"),
        )

    def _to_json(self) -> dict[str, Any]:
        result: dict[str, Any] = {"document": _resource_json(self.document)}
        if self.channel:
            result["channel"] = self.channel
        if self.operation:
            result["operation"] = self.operation
        if self.server is not None:
            result["server"] = self.server._to_json()
        if self.protocol:
            result["protocol"] = self.protocol
        if self.message is not None:
            result["message"] = self.message._to_json()
        if self.subscription is not None:
            result["subscription"] = self.subscription._to_json()
        if self.authentication is not None:
            result["authentication"] = self.authentication
        return result

    def _validate(self, path: str) -> list[FieldError]:
        errors = _resource_errors(self.document, f"{path}.Document")
        if self.server is not None:
            errors.extend(self.server._validate(f"{path}.Server"))
        if self.protocol and self.protocol not in _ASYNCAPI_PROTOCOL_SET:
            errors.append(FieldError(f"{path}.Protocol", "oneof", _ASYNCAPI_PROTOCOLS))
        if self.subscription is not None:
            errors.extend(self.subscription._validate(f"{path}.Subscription"))
        return errors


@dataclass(kw_only=True)
class CallAsyncAPI(TaskBase):
    """A task that publishes or subscribes through an AsyncAPI operation."""

    call: str = "asyncapi"
    with_: AsyncAPIArguments = field(default_factory=AsyncAPIArguments)

    @classmethod
    def from_json(cls, data: Any) -> CallAsyncAPI:
        obj = _require_object(data, "CallAsyncAPI")
        return cls(
            **TaskBase._base_fields(obj),
            call=_string(obj, "call", "CallAsyncAPI"),
            with_=_arguments(obj, AsyncAPIArguments),
        )

    def to_json(self) -> dict[str, Any]:
        return {**self._base_json(), "call": self.call, "with": self.with_._to_json()}

    def validate(self, path: str) -> list[FieldError]:
        errors = super().validate(path)
        errors.extend(_call_errors(self.call, "asyncapi", f"{path}.Call"))
        errors.extend(self.with_._validate(f"{path}.With"))
        return errors


@dataclass(kw_only=True)
class CallFunction(TaskBase):
    """A task that calls a named function with arguments."""

    call: str = ""
    with_: dict[str, Any] | None = None

    @classmethod
    def from_json(cls, data: Any) -> CallFunction:
        obj = _require_object(data, "CallFunction")
        return cls(
            **TaskBase._base_fields(obj),
            call=_string(obj, "call", "CallFunction"),
            with_=_object(obj, "with", "CallFunction"),
        )

    def to_json(self) -> dict[str, Any]:
        result = {**self._base_json(), "call": self.call}
        if self.with_:
            result["with"] = self.with_
        return result

    def validate(self, path: str) -> list[FieldError]:
        errors = super().validate(path)
        if not self.call:
            errors.append(FieldError(f"{path}.Call", "required"))
        return errors
"""Wire envelope of the panerelay protocol.

Clients send JSON text frames shaped like JSON-RPC requests::

    {"id": 7, "method": "capture_pane", "params": {"target": "main"}}

and receive exactly one response per request::

    {"id": 7, "result": {"output": "..."}}
    {"id": 7, "error": {"code": -32602, "message": "missing required param: target"}}

The server also pushes id-less notifications (``pane_output``) on the same
connection. Responses and notifications are the two members of
:data:`OutboundMessage`; :func:`encode_message` is the only serializer.
"""

from __future__ import annotations

import json
from typing import Any, Union

from pydantic import (
    BaseModel,
    Field,
    StrictInt,
    StrictStr,
    ValidationError,
    field_validator,
    model_validator,
)

# Error codes
ERR_PARSE = -32700
ERR_METHOD_NOT_FOUND = -32601
ERR_INVALID_PARAMS = -32602
ERR_INTERNAL = -32603
ERR_AUTH = -32000

PANE_OUTPUT = "pane_output"


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class ProtocolError(Exception):
    """Base class for errors reported to the client as an error response."""

    code: int = ERR_INTERNAL

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ParseError(ProtocolError):
    code = ERR_PARSE


class MethodNotFound(ProtocolError):
    code = ERR_METHOD_NOT_FOUND


class InvalidParams(ProtocolError):
    code = ERR_INVALID_PARAMS


class InternalError(ProtocolError):
    code = ERR_INTERNAL


class AuthError(ProtocolError):
    code = ERR_AUTH


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------


class Request(BaseModel):
    """An inbound request.

    ``params`` stays untyped until dispatch so that a request with a
    malformed ``params`` value still has its id and method, and is
    answered as an invalid-params error rather than a parse error.
    """

    id: StrictInt | None = None
    method: StrictStr
    params: Any = Field(default_factory=dict)

    @field_validator("params", mode="before")
    @classmethod
    def _null_params(cls, value: Any) -> Any:
        return {} if value is None else value


class ErrorInfo(BaseModel):
    code: int
    message: str


class Response(BaseModel):
    """Outcome of one request: a result XOR an error."""

    id: int | None = None
    result: Any = None
    error: ErrorInfo | None = None

    @model_validator(mode="after")
    def _result_xor_error(self) -> Response:
        if (self.result is None) == (self.error is None):
            raise ValueError("a response carries exactly one of result or error")
        return self

    @classmethod
    def ok(cls, id: int | None, result: Any) -> Response:
        return cls(id=id, result=result)

    @classmethod
    def fail(cls, id: int | None, code: int, message: str) -> Response:
        return cls(id=id, error=ErrorInfo(code=code, message=message))

    @classmethod
    def from_error(cls, id: int | None, error: ProtocolError) -> Response:
        return cls.fail(id, error.code, error.message)

    @property
    def is_error(self) -> bool:
        return self.error is not None

    def to_wire(self) -> dict[str, Any]:
        if self.error is not None:
            return {"id": self.id, "error": self.error.model_dump()}
        return {"id": self.id, "result": self.result}


class Notification(BaseModel):
    """A server push. Always serialized with a null id."""

    method: str
    params: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def pane_output(cls, target: str, content: str) -> Notification:
        return cls(method=PANE_OUTPUT, params={"target": target, "content": content})

    def to_wire(self) -> dict[str, Any]:
        return {"id": None, "method": self.method, "params": self.params}


OutboundMessage = Union[Response, Notification]


def decode_request(text: str | bytes) -> Request:
    """Decode one text frame into a :class:`Request`.

    Raises:
        ParseError: If the frame is not JSON or not a request object.
    """
    try:
        return Request.model_validate_json(text)
    except ValidationError as e:
        detail = e.errors()[0]
        where = ".".join(str(part) for part in detail["loc"])
        reason = f"{where}: {detail['msg']}" if where else detail["msg"]
        raise ParseError(f"invalid JSON: {reason}") from e


def encode_message(message: OutboundMessage) -> str:
    """Serialize a response or notification into one text frame."""
    return json.dumps(message.to_wire(), ensure_ascii=False)

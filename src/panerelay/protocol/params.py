"""Typed parameter models, one per protocol method.

Request params arrive as an arbitrary JSON object. Each handler declares
the model it needs and receives a validated instance, so handlers never
look into the raw dict.
"""

from __future__ import annotations

from typing import Annotated, Any, TypeVar

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    NonNegativeInt,
    StrictBool,
    StrictStr,
    StringConstraints,
    ValidationError,
)

from panerelay.protocol.messages import InvalidParams

# A string param that must be present and non-empty
RequiredStr = Annotated[StrictStr, StringConstraints(min_length=1)]

P = TypeVar("P", bound="MethodParams")


class MethodParams(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)

    @classmethod
    def parse(cls: type[P], params: Any) -> P:
        """Validate ``params`` into an instance of this model.

        Raises:
            InvalidParams: Naming the first offending parameter. Absent,
                non-string or empty required strings are reported as
                ``missing required param: <name>``; a ``params`` value
                that is not an object as ``invalid param: params``.
        """
        if not isinstance(params, dict):
            raise InvalidParams("invalid param: params")
        try:
            return cls.model_validate(params)
        except ValidationError as e:
            loc = e.errors()[0]["loc"]
            name = str(loc[0]) if loc else "params"
            if cls._is_required(name):
                raise InvalidParams(f"missing required param: {name}") from e
            raise InvalidParams(f"invalid param: {name}") from e

    @classmethod
    def _is_required(cls, name: str) -> bool:
        for field_name, field in cls.model_fields.items():
            if name in (field_name, field.alias):
                return field.is_required()
        return False


class NoParams(MethodParams):
    pass


class AuthParams(MethodParams):
    token: StrictStr = ""


class TargetParams(MethodParams):
    """Params of ``subscribe`` and ``unsubscribe``."""

    target: RequiredStr


class SessionParams(MethodParams):
    session: RequiredStr


class CapturePaneParams(MethodParams):
    target: RequiredStr
    lines: NonNegativeInt | None = None


class SendKeysParams(MethodParams):
    target: RequiredStr
    keys: RequiredStr
    literal: StrictBool = False


class SendCommandParams(MethodParams):
    target: RequiredStr
    command: RequiredStr


class NewSessionParams(MethodParams):
    name: StrictStr | None = None


class NameParams(MethodParams):
    name: RequiredStr


class PathParams(MethodParams):
    path: RequiredStr


class ListDirParams(MethodParams):
    path: RequiredStr
    show_hidden: StrictBool = False


class WriteFileParams(MethodParams):
    path: RequiredStr
    content: RequiredStr


class RenameParams(MethodParams):
    source: RequiredStr = Field(alias="from")
    to: RequiredStr


class UploadParams(MethodParams):
    path: RequiredStr
    # base64 of an empty file is ""
    data: StrictStr

from __future__ import annotations

import base64
import binascii
from collections.abc import Mapping
from dataclasses import fields
from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from lifecycle_report.domain.messages import (
    Attachment,
    HookEnd,
    HookKind,
    HookStart,
    Label,
    LifecycleMessage,
    MessageKind,
    Metadata,
    Parameter,
    Stage,
    Status,
    StatusDetails,
    StepStart,
    StepStop,
    SuiteEnd,
    SuiteStart,
    TestEnd,
    TestInfo,
    TestStart,
)

# Event records are {"cid": ..., "type": ..., "data": {...}}; data keys accept snake_case and camelCase.


class EventDecodeError(ValueError):
    # Raised for event records that do not describe a valid lifecycle message.
    pass


class _Data(BaseModel):
    model_config = ConfigDict(extra="ignore")


class _StatusDetailsData(_Data):
    message: str | None = None
    trace: str | None = None


class _NameValueData(_Data):
    name: str
    value: str


class _SuiteStartData(_Data):
    name: str
    is_feature: bool = Field(False, validation_alias=AliasChoices("is_feature", "isFeature", "feature"))


class _SuiteEndData(_Data):
    pass


class _TestStartData(_Data):
    name: str
    start: int = Field(validation_alias=AliasChoices("start", "startTime"))


class _TestInfoData(_Data):
    full_name: str = Field(validation_alias=AliasChoices("full_name", "fullName"))


class _TestEndData(_Data):
    status: Status
    stop: int = Field(validation_alias=AliasChoices("stop", "stopTime"))
    stage: Stage | None = None
    duration: int | None = None
    status_details: _StatusDetailsData | None = Field(
        None, validation_alias=AliasChoices("status_details", "statusDetails")
    )


class _HookStartData(_Data):
    name: str
    hook_kind: HookKind = Field(validation_alias=AliasChoices("hook_kind", "kind", "type"))
    start: int = Field(validation_alias=AliasChoices("start", "startTime"))


class _HookEndData(_Data):
    status: Status
    stop: int = Field(validation_alias=AliasChoices("stop", "stopTime"))
    duration: int | None = None
    status_details: _StatusDetailsData | None = Field(
        None, validation_alias=AliasChoices("status_details", "statusDetails")
    )


class _StepStartData(_Data):
    name: str
    start: int = Field(validation_alias=AliasChoices("start", "startTime"))


class _StepStopData(_Data):
    status: Status
    stop: int = Field(validation_alias=AliasChoices("stop", "stopTime"))
    status_details: _StatusDetailsData | None = Field(
        None, validation_alias=AliasChoices("status_details", "statusDetails")
    )


class _MetadataData(_Data):
    labels: list[_NameValueData] = Field(default_factory=list)
    parameters: list[_NameValueData] = Field(default_factory=list)


class _AttachmentData(_Data):
    name: str
    content: str
    content_type: str = Field(validation_alias=AliasChoices("content_type", "contentType"))
    encoding: str = "base64"


class _EventRecord(BaseModel):
    model_config = ConfigDict(extra="forbid")
    cid: str | None = None
    type: MessageKind
    data: dict[str, Any] = Field(default_factory=dict)


_DATA_MODELS: dict[MessageKind, tuple[type[_Data], type]] = {
    MessageKind.SUITE_START: (_SuiteStartData, SuiteStart),
    MessageKind.SUITE_END: (_SuiteEndData, SuiteEnd),
    MessageKind.TEST_START: (_TestStartData, TestStart),
    MessageKind.TEST_INFO: (_TestInfoData, TestInfo),
    MessageKind.TEST_END: (_TestEndData, TestEnd),
    MessageKind.HOOK_START: (_HookStartData, HookStart),
    MessageKind.HOOK_END: (_HookEndData, HookEnd),
    MessageKind.STEP_START: (_StepStartData, StepStart),
    MessageKind.STEP_STOP: (_StepStopData, StepStop),
    MessageKind.METADATA: (_MetadataData, Metadata),
    MessageKind.ATTACHMENT: (_AttachmentData, Attachment),
}


def decode_event(payload: Mapping[str, Any]) -> tuple[str | None, LifecycleMessage]:
    """Decode one event record into its context id and lifecycle message.

    A missing ``cid`` decodes to ``None``; the registry maps it to the default
    context. Any schema or value problem raises ``EventDecodeError``.
    """
    try:
        record = _EventRecord.model_validate(payload)
        data_model, message_cls = _DATA_MODELS[record.type]
        data = data_model.model_validate(record.data)
    except ValidationError as exc:
        raise EventDecodeError(f"invalid event record: {exc.errors()[0]['msg']}") from exc

    values = data.model_dump()
    if "status_details" in values and values["status_details"] is not None:
        values["status_details"] = StatusDetails(**values["status_details"])
    if message_cls is Metadata:
        values["labels"] = tuple(Label(**item) for item in values["labels"])
        values["parameters"] = tuple(Parameter(**item) for item in values["parameters"])
    if message_cls is Attachment:
        values["content"] = _decode_content(values["content"], values["encoding"])

    try:
        return record.cid, message_cls(**values)
    except ValueError as exc:
        raise EventDecodeError(str(exc)) from exc


def encode_event(context_id: str | None, message: LifecycleMessage) -> dict[str, object]:
    # Inverse of decode_event using snake_case keys; unset optional fields are omitted.
    data: dict[str, object] = {}
    for item in fields(message):
        value = _encode_value(getattr(message, item.name))
        if value is not None:
            data[item.name] = value
    if isinstance(message, Attachment):
        data["content"] = _encode_content(message.content, message.encoding)
    record: dict[str, object] = {"type": message.kind.value, "data": data}
    if context_id is not None:
        record["cid"] = context_id
    return record


def _encode_value(value: object) -> object:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (StatusDetails, Label, Parameter)):
        return {item.name: getattr(value, item.name) for item in fields(value)}
    if isinstance(value, tuple):
        return [_encode_value(item) for item in value]
    return value


def _decode_content(content: str, encoding: str) -> bytes:
    if encoding == "base64":
        try:
            return base64.b64decode(content, validate=True)
        except binascii.Error as exc:
            raise EventDecodeError("attachment content is not valid base64") from exc
    try:
        return content.encode(encoding)
    except (LookupError, UnicodeError) as exc:
        raise EventDecodeError(f"attachment content cannot be encoded as {encoding}") from exc


def _encode_content(content: bytes, encoding: str) -> str:
    if encoding == "base64":
        return base64.b64encode(content).decode("ascii")
    return content.decode(encoding)

"""Handler Synthesizer — one Interceptor definition per member.

A definition says which counters, argument stores and override slots the
generated interceptor class carries. Rendering turns it into source without
making any further decisions.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from .defaults import default_expression, resolve
from .model import (
    EventMember,
    EventShape,
    MethodMember,
    ParameterKind,
    ParameterModel,
    PropertyMember,
    TypeRef,
    VOID,
)

logger = logging.getLogger(__name__)


class TrackingShape(str, Enum):
    NONE = "none"
    SINGLE = "single"
    TUPLE = "tuple"


def tracking_shape(count: int) -> TrackingShape:
    if count == 0:
        return TrackingShape.NONE
    if count == 1:
        return TrackingShape.SINGLE
    return TrackingShape.TUPLE


@dataclass(frozen=True)
class CallbackSlot:
    """An overridable behavior hook: ``(owner, *parameters) -> return_type``."""

    name: str
    owner: str
    parameters: tuple[ParameterModel, ...]
    return_type: TypeRef
    is_async: bool = False


@dataclass(frozen=True)
class FieldSpec:
    name: str
    annotation: str
    initial: str
    resettable: bool = True
    slot: CallbackSlot | None = None


@dataclass(frozen=True)
class InterceptorDefinition:
    class_name: str
    attribute: str
    member_label: str
    fields: tuple[FieldSpec, ...]

    def field_names(self) -> list[str]:
        return [f.name for f in self.fields]

    def slots(self) -> list[CallbackSlot]:
        return [f.slot for f in self.fields if f.slot is not None]


@dataclass(frozen=True)
class PropertyInterceptor(InterceptorDefinition):
    value_type: TypeRef
    has_getter: bool
    has_setter: bool


@dataclass(frozen=True)
class IndexerInterceptor(InterceptorDefinition):
    key_params: tuple[ParameterModel, ...]
    key_annotation: str
    value_type: TypeRef
    has_getter: bool
    has_setter: bool

    @property
    def key_shape(self) -> TrackingShape:
        return tracking_shape(len(self.key_params))


@dataclass(frozen=True)
class MethodInterceptor(InterceptorDefinition):
    parameters: tuple[ParameterModel, ...]
    tracked: tuple[ParameterModel, ...]
    return_type: TypeRef
    is_async: bool
    overload_index: int = 0

    @property
    def tracking(self) -> TrackingShape:
        return tracking_shape(len(self.tracked))


@dataclass(frozen=True)
class EventInterceptor(InterceptorDefinition):
    payload: tuple[ParameterModel, ...]
    shape: EventShape
    return_type: TypeRef | None
    default_result: str

    @property
    def tracking(self) -> TrackingShape:
        return tracking_shape(len(self.payload))


# ── annotations ──────────────────────────────────────────────────


def tracked_annotation(param: ParameterModel) -> str:
    """Annotation of the value recorded for *param* (a cell records its content)."""
    text = param.type.display()
    if param.kind == ParameterKind.VAR_POSITIONAL:
        return f"tuple[{text}, ...]"
    if param.kind == ParameterKind.VAR_KEYWORD:
        return f"dict[str, {text}]"
    return text


def tuple_annotation(params: tuple[ParameterModel, ...]) -> str:
    if len(params) == 1:
        return tracked_annotation(params[0])
    return "tuple[" + ", ".join(tracked_annotation(p) for p in params) + "]"


def _optional(annotation: str) -> str:
    return annotation if annotation.endswith("| None") else f"{annotation} | None"


def _argument_store(params: tuple[ParameterModel, ...], single: str, multiple: str) -> list[FieldSpec]:
    shape = tracking_shape(len(params))
    if shape == TrackingShape.NONE:
        return []
    name = single if shape == TrackingShape.SINGLE else multiple
    annotation = tuple_annotation(params)
    return [
        FieldSpec(name, _optional(annotation), "None"),
        FieldSpec("_calls", f"list[{annotation}]", "[]"),
    ]


# ── synthesis ────────────────────────────────────────────────────


def synthesize_property(
    member: PropertyMember, class_name: str, attribute: str, owner: str, member_label: str
) -> PropertyInterceptor:
    fields: list[FieldSpec] = []
    if member.has_getter:
        fields.append(FieldSpec("get_count", "int", "0"))
    if member.has_setter:
        fields.append(FieldSpec("set_count", "int", "0"))
        fields.append(FieldSpec("last_set_value", _optional(member.type.display()), "None"))
    if member.has_getter:
        slot = CallbackSlot("on_get", owner, (), member.type)
        fields.append(FieldSpec("on_get", "", "None", slot=slot))
    if member.has_setter:
        value = ParameterModel(name="value", type=member.type)
        slot = CallbackSlot("on_set", owner, (value,), VOID)
        fields.append(FieldSpec("on_set", "", "None", slot=slot))
    logger.debug("Property interceptor %s: %s", member_label, [f.name for f in fields])
    return PropertyInterceptor(
        class_name=class_name,
        attribute=attribute,
        member_label=member_label,
        fields=tuple(fields),
        value_type=member.type,
        has_getter=member.has_getter,
        has_setter=member.has_setter,
    )


def synthesize_indexer(
    member: PropertyMember, class_name: str, attribute: str, owner: str, member_label: str
) -> IndexerInterceptor:
    keys = tuple(p for p in member.index_params if not p.is_output)
    key_annotation = tuple_annotation(keys)
    fields: list[FieldSpec] = []
    if member.has_getter:
        fields.append(FieldSpec("get_count", "int", "0"))
        fields.append(FieldSpec("last_get_key", _optional(key_annotation), "None"))
        fields.append(FieldSpec("_get_keys", f"list[{key_annotation}]", "[]"))
    if member.has_setter:
        entry = f"tuple[{key_annotation}, {member.type.display()}]"
        fields.append(FieldSpec("set_count", "int", "0"))
        fields.append(FieldSpec("last_set_entry", _optional(entry), "None"))
        fields.append(FieldSpec("_set_entries", f"list[{entry}]", "[]"))
    if member.has_getter:
        slot = CallbackSlot("on_get", owner, keys, member.type)
        fields.append(FieldSpec("on_get", "", "None", slot=slot))
    if member.has_setter:
        value = ParameterModel(name="value", type=member.type)
        slot = CallbackSlot("on_set", owner, keys + (value,), VOID)
        fields.append(FieldSpec("on_set", "", "None", slot=slot))
    return IndexerInterceptor(
        class_name=class_name,
        attribute=attribute,
        member_label=member_label,
        fields=tuple(fields),
        key_params=keys,
        key_annotation=key_annotation,
        value_type=member.type,
        has_getter=member.has_getter,
        has_setter=member.has_setter,
    )


def synthesize_method(
    method: MethodMember,
    class_name: str,
    attribute: str,
    owner: str,
    member_label: str,
    overload_index: int = 0,
) -> MethodInterceptor:
    """Interceptor for exactly one overload.

    Output parameters are left out of tracking but stay in the override
    slot, as cells, so an override can assign them.
    """
    tracked = method.input_parameters
    fields = [FieldSpec("call_count", "int", "0")]
    fields.extend(_argument_store(tracked, "last_call_arg", "last_call_args"))
    slot = CallbackSlot("on_call", owner, method.parameters, method.return_type, method.is_async)
    fields.append(FieldSpec("on_call", "", "None", slot=slot))
    logger.debug(
        "Method interceptor %s (overload %d): tracking %s",
        member_label,
        overload_index,
        tracking_shape(len(tracked)).value,
    )
    return MethodInterceptor(
        class_name=class_name,
        attribute=attribute,
        member_label=member_label,
        fields=tuple(fields),
        parameters=method.parameters,
        tracked=tracked,
        return_type=method.return_type,
        is_async=method.is_async,
        overload_index=overload_index,
    )


def synthesize_event(
    event: EventMember, class_name: str, attribute: str, member_label: str
) -> EventInterceptor:
    payload = event.payload_params
    fields = [
        FieldSpec("_handlers", "list[Callable[..., Any]]", "[]", resettable=False),
        FieldSpec("subscribe_count", "int", "0"),
        FieldSpec("unsubscribe_count", "int", "0"),
    ]
    if payload:
        fields.append(FieldSpec("_raises", f"list[{tuple_annotation(payload)}]", "[]"))
    else:
        fields.append(FieldSpec("raise_count", "int", "0"))

    default_result = "None"
    if event.shape_kind == EventShape.RESULT and event.return_type is not None:
        expression = default_expression(resolve(event.return_type), event.return_type)
        default_result = expression if expression is not None else "None"
    return EventInterceptor(
        class_name=class_name,
        attribute=attribute,
        member_label=member_label,
        fields=tuple(fields),
        payload=payload,
        shape=event.shape_kind,
        return_type=event.return_type,
        default_result=default_result,
    )

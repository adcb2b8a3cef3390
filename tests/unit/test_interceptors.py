"""Tests for the Handler Synthesizer — interceptor definitions per member kind."""

from __future__ import annotations

from stubsmith.interceptors import (
    TrackingShape,
    synthesize_event,
    synthesize_indexer,
    synthesize_method,
    synthesize_property,
    tracking_shape,
)
from stubsmith.model import (
    EventMember,
    EventShape,
    MethodMember,
    ParameterKind,
    ParameterModel,
    PassingMode,
    PropertyMember,
    TypeKind,
    TypeRef,
    value_type,
)

INT = value_type("int")
STR = value_type("str")


def _param(name: str, type_ref: TypeRef = INT, **kwargs) -> ParameterModel:
    return ParameterModel(name=name, type=type_ref, **kwargs)


def _method_interceptor(method: MethodMember):
    return synthesize_method(method, "PingInterceptor", method.name, "PingerStub", f"Pinger.{method.name}")


class TestTrackingShape:
    def test_shapes_by_count(self):
        assert tracking_shape(0) == TrackingShape.NONE
        assert tracking_shape(1) == TrackingShape.SINGLE
        assert tracking_shape(2) == TrackingShape.TUPLE
        assert tracking_shape(5) == TrackingShape.TUPLE


class TestMethodInterceptor:
    def test_zero_parameters_only_count(self):
        definition = _method_interceptor(MethodMember(name="ping"))
        assert definition.field_names() == ["call_count", "on_call"]
        assert definition.tracking == TrackingShape.NONE

    def test_single_parameter_tracks_last_arg(self):
        definition = _method_interceptor(MethodMember(name="find", parameters=(_param("id"),)))
        assert definition.field_names() == ["call_count", "last_call_arg", "_calls", "on_call"]
        assert definition.tracking == TrackingShape.SINGLE

    def test_several_parameters_track_a_tuple(self):
        method = MethodMember(name="move", parameters=(_param("x"), _param("y", STR)))
        definition = _method_interceptor(method)
        assert "last_call_args" in definition.field_names()
        last = next(f for f in definition.fields if f.name == "last_call_args")
        assert last.annotation == "tuple[int, str] | None"

    def test_output_parameters_are_not_tracked(self):
        method = MethodMember(
            name="try_get",
            return_type=value_type("bool"),
            parameters=(_param("key", STR), _param("value", passing_mode=PassingMode.OUT)),
        )
        definition = _method_interceptor(method)
        assert [p.name for p in definition.tracked] == ["key"]
        assert definition.tracking == TrackingShape.SINGLE

    def test_callback_slot_keeps_every_parameter(self):
        method = MethodMember(
            name="try_get",
            return_type=value_type("bool"),
            parameters=(_param("key", STR), _param("value", passing_mode=PassingMode.OUT)),
        )
        (slot,) = _method_interceptor(method).slots()
        assert slot.name == "on_call"
        assert slot.owner == "PingerStub"
        assert [p.name for p in slot.parameters] == ["key", "value"]
        assert slot.return_type == value_type("bool")

    def test_by_ref_parameter_is_tracked(self):
        method = MethodMember(name="bump", parameters=(_param("counter", passing_mode=PassingMode.BY_REF),))
        definition = _method_interceptor(method)
        assert [p.name for p in definition.tracked] == ["counter"]

    def test_var_positional_tracks_tuple_annotation(self):
        method = MethodMember(name="log", parameters=(_param("args", STR, kind=ParameterKind.VAR_POSITIONAL),))
        definition = _method_interceptor(method)
        last = next(f for f in definition.fields if f.name == "last_call_arg")
        assert last.annotation == "tuple[str, ...] | None"

    def test_async_slot_is_marked(self):
        method = MethodMember(name="load", return_type=INT, is_async=True)
        (slot,) = _method_interceptor(method).slots()
        assert slot.is_async


class TestPropertyInterceptor:
    def test_read_write_property(self):
        prop = PropertyMember(name="name", type=STR, has_setter=True)
        definition = synthesize_property(prop, "NameInterceptor", "name", "UserStub", "User.name")
        assert definition.field_names() == ["get_count", "set_count", "last_set_value", "on_get", "on_set"]

    def test_read_only_property_has_no_setter_state(self):
        prop = PropertyMember(name="id", type=INT)
        definition = synthesize_property(prop, "IdInterceptor", "id", "UserStub", "User.id")
        assert definition.field_names() == ["get_count", "on_get"]
        assert not definition.has_setter

    def test_write_only_property(self):
        prop = PropertyMember(name="password", type=STR, has_getter=False, has_setter=True)
        definition = synthesize_property(prop, "PasswordInterceptor", "password", "UserStub", "User.password")
        assert "get_count" not in definition.field_names()
        assert [s.name for s in definition.slots()] == ["on_set"]


class TestIndexerInterceptor:
    def test_single_key_indexer(self):
        indexer = PropertyMember(
            name="indexer", type=STR, has_setter=True, is_indexer=True, index_params=(_param("index"),)
        )
        definition = synthesize_indexer(indexer, "IndexerInterceptor", "indexer", "ListStub", "List.indexer")
        assert definition.key_annotation == "int"
        assert definition.key_shape == TrackingShape.SINGLE
        assert definition.field_names() == [
            "get_count",
            "last_get_key",
            "_get_keys",
            "set_count",
            "last_set_entry",
            "_set_entries",
            "on_get",
            "on_set",
        ]

    def test_multi_key_indexer_tracks_tuples(self):
        indexer = PropertyMember(
            name="indexer", type=value_type("float"), is_indexer=True, index_params=(_param("row"), _param("col"))
        )
        definition = synthesize_indexer(indexer, "GridInterceptor", "indexer", "GridStub", "Grid.indexer")
        assert definition.key_annotation == "tuple[int, int]"
        assert definition.key_shape == TrackingShape.TUPLE
        (slot,) = definition.slots()
        assert [p.name for p in slot.parameters] == ["row", "col"]


class TestEventInterceptor:
    def test_payloadless_event_counts_raises(self):
        event = EventMember(name="closed")
        definition = synthesize_event(event, "ClosedInterceptor", "closed", "Window.closed")
        assert definition.field_names() == ["_handlers", "subscribe_count", "unsubscribe_count", "raise_count"]

    def test_payload_event_stores_raises(self):
        event = EventMember(name="moved", payload_params=(_param("arg1"), _param("arg2")))
        definition = synthesize_event(event, "MovedInterceptor", "moved", "Window.moved")
        assert "_raises" in definition.field_names()
        assert definition.tracking == TrackingShape.TUPLE

    def test_handler_list_survives_reset(self):
        definition = synthesize_event(EventMember(name="closed"), "ClosedInterceptor", "closed", "Window.closed")
        handlers = next(f for f in definition.fields if f.name == "_handlers")
        assert not handlers.resettable

    def test_result_event_defaults_its_result(self):
        event = EventMember(
            name="validating",
            payload_params=(_param("arg1", STR),),
            return_type=value_type("bool"),
            shape_kind=EventShape.RESULT,
        )
        definition = synthesize_event(event, "ValidatingInterceptor", "validating", "Form.validating")
        assert definition.default_result == "False"

    def test_result_event_with_unresolvable_result_defaults_to_none(self):
        event = EventMember(
            name="resolving",
            return_type=TypeRef(name="Service", kind=TypeKind.INTERFACE),
            shape_kind=EventShape.RESULT,
        )
        definition = synthesize_event(event, "ResolvingInterceptor", "resolving", "Container.resolving")
        assert definition.default_result == "None"

"""Tests for the Default Value Resolver — strategies and their expressions."""

from __future__ import annotations

import pytest

from stubsmith.defaults import (
    DefaultKind,
    UNRESOLVABLE,
    USE_TYPE_DEFAULT,
    default_expression,
    element_default,
    resolve,
    resolve_return,
)
from stubsmith.model import (
    ANY,
    VOID,
    MethodMember,
    TypeKind,
    TypeRef,
    type_parameter,
    value_type,
)

INT = value_type("int")
STR = value_type("str")


def _ref(name: str, *args: TypeRef, **kwargs) -> TypeRef:
    return TypeRef(name=name, args=args, **kwargs)


def _interface(name: str, *args: TypeRef) -> TypeRef:
    return TypeRef(name=name, args=args, kind=TypeKind.INTERFACE, module="typing")


def _future(*args: TypeRef) -> TypeRef:
    return TypeRef(name="Awaitable", module="typing", args=args, kind=TypeKind.FUTURE)


class TestResolve:
    @pytest.mark.parametrize(
        "type_ref",
        [VOID, ANY, INT, STR, value_type("bool"), _ref("Widget", nullable=True)],
    )
    def test_type_default(self, type_ref):
        assert resolve(type_ref) == USE_TYPE_DEFAULT

    def test_constructible_class_is_constructed(self):
        widget = _ref("Widget", has_default_constructor=True)
        strategy = resolve(widget)
        assert strategy.kind == DefaultKind.CONSTRUCT_CONCRETE
        assert strategy.concrete == widget

    @pytest.mark.parametrize(
        "abstraction, concrete",
        [
            (_interface("Sequence", INT), "list"),
            (_interface("Iterable", STR), "list"),
            (_interface("Mapping", STR, INT), "dict"),
            (_interface("AbstractSet", INT), "set"),
        ],
    )
    def test_collection_abstraction_maps_to_container(self, abstraction, concrete):
        strategy = resolve(abstraction)
        assert strategy.kind == DefaultKind.CONSTRUCT_CONCRETE
        assert strategy.concrete.name == concrete
        assert strategy.concrete.args == abstraction.args

    def test_unknown_interface_is_unresolvable(self):
        assert resolve(_interface("Repository")) == UNRESOLVABLE

    def test_class_without_default_constructor_is_unresolvable(self):
        assert resolve(_ref("Connection")) == UNRESOLVABLE

    def test_bare_type_parameter_is_unresolvable(self):
        assert resolve(type_parameter("T")) == UNRESOLVABLE

    def test_nullable_type_parameter_defaults_to_none(self):
        assert resolve(type_parameter("T").with_nullable()) == USE_TYPE_DEFAULT

    def test_future_resolves_its_payload(self):
        assert resolve(_future(_interface("Repository"))) == UNRESOLVABLE
        assert resolve(_future(INT)) == USE_TYPE_DEFAULT

    def test_payloadless_future_uses_type_default(self):
        assert resolve(_future()) == USE_TYPE_DEFAULT
        assert resolve(_future(VOID)) == USE_TYPE_DEFAULT

    def test_resolution_is_deterministic(self):
        sequence = _interface("Sequence", INT)
        assert resolve(sequence) == resolve(sequence.model_copy())

    def test_async_method_resolves_declared_return(self):
        method = MethodMember(name="load", return_type=INT, is_async=True)
        assert resolve_return(method) == USE_TYPE_DEFAULT


class TestDefaultExpression:
    @pytest.mark.parametrize(
        "type_ref, expected",
        [
            (INT, "0"),
            (value_type("float"), "0.0"),
            (value_type("bool"), "False"),
            (STR, '""'),
            (value_type("bytes"), 'b""'),
            (VOID, "None"),
            (ANY, "None"),
            (INT.with_nullable(), "None"),
        ],
    )
    def test_type_defaults(self, type_ref, expected):
        assert default_expression(resolve(type_ref), type_ref) == expected

    def test_fixed_tuple_defaults_each_element(self):
        pair = TypeRef(name="tuple", args=(INT, STR), kind=TypeKind.VALUE)
        assert default_expression(resolve(pair), pair) == '(0, "")'

    def test_single_tuple_keeps_trailing_comma(self):
        single = TypeRef(name="tuple", args=(INT,), kind=TypeKind.VALUE)
        assert default_expression(resolve(single), single) == "(0,)"

    def test_containers_construct_fresh_literals(self):
        mapping = _interface("Mapping", STR, INT)
        assert default_expression(resolve(mapping), mapping) == "{}"
        sequence = _interface("Sequence", INT)
        assert default_expression(resolve(sequence), sequence) == "[]"
        tags = _interface("AbstractSet", STR)
        assert default_expression(resolve(tags), tags) == "set()"

    def test_constructible_class_is_called(self):
        widget = _ref("Widget", has_default_constructor=True)
        assert default_expression(resolve(widget), widget) == "Widget()"

    def test_unresolvable_has_no_expression(self):
        repo = _interface("Repository")
        assert default_expression(resolve(repo), repo) is None

    def test_future_expression_is_payload_default(self):
        future = _future(INT)
        assert default_expression(resolve(future), future) == "0"


class TestElementDefault:
    def test_unresolvable_element_becomes_none(self):
        assert element_default(_interface("Repository")) == "None"

    def test_resolvable_element_keeps_default(self):
        assert element_default(INT) == "0"

"""Default Value Resolver — what a member produces when nothing is configured."""

from __future__ import annotations

import logging
from enum import Enum

from .model import FrozenModel, MethodMember, TypeKind, TypeRef
from . import constants

logger = logging.getLogger(__name__)


class DefaultKind(str, Enum):
    USE_TYPE_DEFAULT = "use_type_default"
    CONSTRUCT_CONCRETE = "construct_concrete"
    UNRESOLVABLE = "unresolvable"


class DefaultValueStrategy(FrozenModel):
    kind: DefaultKind
    concrete: TypeRef | None = None

    @property
    def is_resolvable(self) -> bool:
        return self.kind != DefaultKind.UNRESOLVABLE

    def __str__(self) -> str:
        if self.kind == DefaultKind.CONSTRUCT_CONCRETE and self.concrete is not None:
            return f"construct({self.concrete.display()})"
        return self.kind.value


USE_TYPE_DEFAULT = DefaultValueStrategy(kind=DefaultKind.USE_TYPE_DEFAULT)
UNRESOLVABLE = DefaultValueStrategy(kind=DefaultKind.UNRESOLVABLE)


def construct_concrete(concrete: TypeRef) -> DefaultValueStrategy:
    return DefaultValueStrategy(kind=DefaultKind.CONSTRUCT_CONCRETE, concrete=concrete)


def _short_name(type_ref: TypeRef) -> str:
    return type_ref.name.rsplit(".", 1)[-1]


def collection_container(type_ref: TypeRef) -> TypeRef | None:
    """Growable container standing in for a collection abstraction, if any."""
    name = _short_name(type_ref)
    arity = len(type_ref.args)
    if name in constants.SEQUENCE_ABSTRACTIONS and arity == 1:
        concrete = constants.CONCRETE_SEQUENCE
    elif name in constants.MAPPING_ABSTRACTIONS and arity == 2:
        concrete = constants.CONCRETE_MAPPING
    elif name in constants.SET_ABSTRACTIONS and arity == 1:
        concrete = constants.CONCRETE_SET
    else:
        return None
    return TypeRef(
        name=concrete,
        args=type_ref.args,
        kind=TypeKind.REFERENCE,
        has_default_constructor=True,
    )


def future_payload(type_ref: TypeRef) -> TypeRef | None:
    """Payload of a future-wrapping type; None when it carries no value."""
    if type_ref.kind != TypeKind.FUTURE or not type_ref.args:
        return None
    # Coroutine[Y, S, R] carries its result last
    payload = type_ref.args[-1]
    return None if payload.is_void else payload


def resolve(type_ref: TypeRef) -> DefaultValueStrategy:
    """Classify *type_ref* into a default-production strategy.

    Total and deterministic: every type maps to exactly one strategy and the
    same type always maps to the same one.
    """
    if type_ref.kind == TypeKind.FUTURE:
        payload = future_payload(type_ref)
        # A payload-less future always completes immediately with no value
        return USE_TYPE_DEFAULT if payload is None else resolve(payload)
    if type_ref.kind in (TypeKind.VOID, TypeKind.ANY, TypeKind.VALUE):
        return USE_TYPE_DEFAULT
    if type_ref.nullable:
        return USE_TYPE_DEFAULT
    if type_ref.kind == TypeKind.REFERENCE and type_ref.has_default_constructor:
        return construct_concrete(type_ref)
    if type_ref.kind in (TypeKind.REFERENCE, TypeKind.INTERFACE):
        container = collection_container(type_ref)
        if container is not None:
            return construct_concrete(container)
    return UNRESOLVABLE


def resolve_return(method: MethodMember) -> DefaultValueStrategy:
    """Strategy for a method's result; an async method resolves its declared payload."""
    return resolve(method.return_type)


# ── expressions ──────────────────────────────────────────────────


def type_default_literal(type_ref: TypeRef) -> str:
    """Python expression for the "no value" of *type_ref*."""
    if type_ref.nullable or type_ref.kind in (TypeKind.VOID, TypeKind.ANY):
        return "None"
    name = _short_name(type_ref)
    if name == "tuple" and type_ref.args and not any(
        a.name == "..." for a in type_ref.args
    ):
        elements = [element_default(a) for a in type_ref.args]
        return "(" + ", ".join(elements) + ("," if len(elements) == 1 else "") + ")"
    if name in constants.VALUE_TYPE_DEFAULTS:
        return constants.VALUE_TYPE_DEFAULTS[name]
    if type_ref.kind == TypeKind.VALUE:
        return f"{type_ref.name}()"
    return "None"


def element_default(type_ref: TypeRef) -> str:
    """Default for a nested position, where an unresolvable type becomes None."""
    expression = default_expression(resolve(type_ref), type_ref)
    return "None" if expression is None else expression


def construct_expression(concrete: TypeRef) -> str:
    name = _short_name(concrete)
    if name == constants.CONCRETE_SEQUENCE:
        return "[]"
    if name == constants.CONCRETE_MAPPING:
        return "{}"
    if name == constants.CONCRETE_SET:
        return "set()"
    return f"{concrete.name}()"


def default_expression(strategy: DefaultValueStrategy, type_ref: TypeRef) -> str | None:
    """Expression producing *type_ref*'s default under *strategy*.

    Returns None for an unresolvable strategy; the caller decides how to fail.
    For future types the expression is the payload's default; wrapping it in a
    completed awaitable is the caller's business.
    """
    if strategy.kind == DefaultKind.UNRESOLVABLE:
        return None
    if strategy.kind == DefaultKind.CONSTRUCT_CONCRETE and strategy.concrete is not None:
        return construct_expression(strategy.concrete)
    if type_ref.kind == TypeKind.FUTURE:
        payload = future_payload(type_ref)
        return "None" if payload is None else type_default_literal(payload)
    return type_default_literal(type_ref)

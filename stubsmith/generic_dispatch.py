"""Generic Dispatch Synthesizer — registries for generic methods.

Type arguments of a generic method are only known when it is called, so
the generated interceptor is a registry keyed by the tuple of type
arguments. Each key lazily gets its own fully typed nested interceptor,
built from the Handler Synthesizer's definition.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from .interceptors import MethodInterceptor, synthesize_method
from .model import MethodMember, ParameterKind, ParameterModel, PassingMode, TypeRef

logger = logging.getLogger(__name__)

NESTED_CLASS = "Typed"


class InferenceMode(str, Enum):
    CLASS = "class"  # parameter annotated type[T]: the argument is T
    INSTANCE = "instance"  # parameter annotated T: type(argument)
    UNKNOWN = "unknown"  # nothing in the call carries T


@dataclass(frozen=True)
class TypeArgumentSource:
    type_parameter: str
    parameter: str | None
    mode: InferenceMode

    def expression(self) -> str:
        if self.mode == InferenceMode.CLASS:
            return str(self.parameter)
        if self.mode == InferenceMode.INSTANCE:
            return f"type({self.parameter})"
        return "object"


@dataclass(frozen=True)
class GenericMethodRegistry:
    class_name: str
    attribute: str
    member_label: str
    method: MethodMember
    nested: MethodInterceptor
    sources: tuple[TypeArgumentSource, ...]

    @property
    def arity(self) -> int:
        return len(self.sources)

    def key_expression(self) -> str:
        """Arguments passed to ``of(...)`` at the call site."""
        return ", ".join(s.expression() for s in self.sources)

    def source_for(self, type_parameter: str) -> TypeArgumentSource | None:
        for source in self.sources:
            if source.type_parameter == type_parameter:
                return source
        return None


def _is_class_of(type_ref: TypeRef, name: str) -> bool:
    return (
        type_ref.name in ("type", "Type")
        and len(type_ref.args) == 1
        and type_ref.args[0].is_type_parameter
        and type_ref.args[0].name == name
        and not type_ref.nullable
    )


def _carries_value(param: ParameterModel) -> bool:
    return (
        param.passing_mode in (PassingMode.BY_VALUE, PassingMode.IN)
        and param.kind in (ParameterKind.POSITIONAL, ParameterKind.KEYWORD_ONLY)
    )


def infer_type_argument_sources(method: MethodMember) -> tuple[TypeArgumentSource, ...]:
    """Decide, per type parameter, which call argument determines it.

    A ``type[T]`` parameter wins over a bare ``T`` parameter; an optional
    ``T | None`` parameter cannot say anything about ``T`` when it is None, so
    it is not used.
    """
    sources: list[TypeArgumentSource] = []
    for tp in method.type_parameters:
        candidates = [p for p in method.parameters if _carries_value(p)]
        by_class = next((p for p in candidates if _is_class_of(p.type, tp.name)), None)
        if by_class is not None:
            sources.append(TypeArgumentSource(tp.name, by_class.name, InferenceMode.CLASS))
            continue
        by_instance = next(
            (
                p
                for p in candidates
                if p.type.is_type_parameter and p.type.name == tp.name and not p.type.nullable
            ),
            None,
        )
        if by_instance is not None:
            sources.append(TypeArgumentSource(tp.name, by_instance.name, InferenceMode.INSTANCE))
            continue
        sources.append(TypeArgumentSource(tp.name, None, InferenceMode.UNKNOWN))
    return tuple(sources)


def synthesize_generic(
    method: MethodMember, class_name: str, attribute: str, owner: str, member_label: str
) -> GenericMethodRegistry:
    nested = synthesize_method(method, NESTED_CLASS, attribute, owner, member_label)
    sources = infer_type_argument_sources(method)
    unknown = [s.type_parameter for s in sources if s.mode == InferenceMode.UNKNOWN]
    if unknown:
        logger.debug("%s: type arguments %s cannot be inferred and key as object", member_label, unknown)
    return GenericMethodRegistry(
        class_name=class_name,
        attribute=attribute,
        member_label=member_label,
        method=method,
        nested=nested,
        sources=sources,
    )

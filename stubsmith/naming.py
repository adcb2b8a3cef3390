"""Deterministic naming for generated constructs."""

from __future__ import annotations

import re
from dataclasses import dataclass

from .model import InterfaceModel, ClassModel, TypeRef
from . import constants

_WORD_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")


def snake_case(name: str) -> str:
    return _WORD_BOUNDARY.sub("_", name.strip("_")).lower()


def pascal_case(name: str) -> str:
    parts = [p for p in snake_case(name).split("_") if p]
    return "".join(p[0].upper() + p[1:] for p in parts)


def type_suffix(type_ref: TypeRef) -> str:
    """Identifier-safe suffix for a type, e.g. ``dict[str, int]`` → ``dict_str_int``."""
    parts = [snake_case(type_ref.name.split(".")[-1]) or "unknown"]
    parts.extend(type_suffix(a) for a in type_ref.args)
    text = "_".join(parts)
    return f"optional_{text}" if type_ref.nullable else text


@dataclass(frozen=True)
class NameAccumulator:
    """Names already claimed within one generated scope.

    Threaded through calls and replaced, never mutated, so independent
    units never share bookkeeping.
    """

    seen: frozenset[str] = frozenset()

    def __contains__(self, name: str) -> bool:
        return name in self.seen

    def claim(
        self, name: str, suffix: str = constants.BUNDLE_COLLISION_SUFFIX
    ) -> tuple[str, NameAccumulator]:
        candidate = name
        while candidate in self.seen:
            candidate += suffix
        return candidate, NameAccumulator(self.seen | {candidate})

    def reserve(self, *names: str) -> NameAccumulator:
        return NameAccumulator(self.seen | frozenset(names))


def bundle_name(
    declaration: InterfaceModel | ClassModel,
    suffix: str = constants.BUNDLE_COLLISION_SUFFIX,
) -> str:
    """Name of the attribute grouping a declaration's interceptors.

    The simple name, with exactly one suffix character appended when it
    collides with one of the declaration's own member names.
    """
    name = declaration.simple_name
    if name in declaration.member_names():
        return name + suffix
    return name


def overload_attr(name: str, index: int) -> str:
    return f"{name}_{index}"


def generic_group_attr(name: str) -> str:
    return f"{name}_{constants.GENERIC_GROUP_SUFFIX}"


def indexer_attr(key_types: tuple[TypeRef, ...], indexer_count: int) -> str:
    if indexer_count <= 1:
        return constants.INDEXER_ATTR
    suffix = "_".join(type_suffix(t) for t in key_types) or "unknown"
    return f"{constants.INDEXER_ATTR}_{suffix}"


def bundle_class_name(stub_name: str, bundle: str) -> str:
    return f"{stub_name}{pascal_case(bundle)}Interceptors"


def interceptor_class_name(stub_name: str, bundle: str, attr: str) -> str:
    return f"{stub_name}{pascal_case(bundle)}{pascal_case(attr)}Interceptor"


def view_class_name(stub_name: str, bundle: str) -> str:
    return f"{stub_name}As{pascal_case(bundle)}"


def as_method_name(declaration: InterfaceModel | ClassModel) -> str:
    return constants.AS_METHOD_PREFIX + snake_case(declaration.simple_name)


def qualified_member_name(bundle: str, member: str) -> str:
    return f"{constants.QUALIFIED_PREFIX}{snake_case(bundle)}_{member.strip('_')}"


def backing_field_name(bundle: str, member: str) -> str:
    return f"{constants.BACKING_PREFIX}{snake_case(bundle)}_{member}"


def indexer_backing_name(bundle: str, attr: str) -> str:
    return f"{snake_case(bundle)}_{attr}{constants.INDEXER_BACKING_SUFFIX}"


def overload_table_name(stub_name: str, bundle: str, member: str) -> str:
    scope = "_".join((snake_case(stub_name), snake_case(bundle), member.strip("_")))
    return constants.OVERLOAD_TABLE_PREFIX + scope.upper()


def user_impl_name(member: str) -> str:
    return constants.USER_IMPL_PREFIX + member

"""Annotation reader — tree-sitter type expressions → TypeRef."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable

from .. import constants
from ..model import ANY, VOID, TypeKind, TypeRef, type_parameter

logger = logging.getLogger(__name__)

_CONCRETE_CONTAINERS = frozenset(
    {constants.CONCRETE_SEQUENCE, constants.CONCRETE_MAPPING, constants.CONCRETE_SET}
)
_ABSTRACTIONS = (
    constants.SEQUENCE_ABSTRACTIONS | constants.MAPPING_ABSTRACTIONS | constants.SET_ABSTRACTIONS
)
ELLIPSIS = TypeRef(name="...", kind=TypeKind.ANY)


@dataclass
class TypeContext:
    """Names an annotation may refer to, as known from the surrounding source."""

    module: str = ""
    imports: dict[str, str] = field(default_factory=dict)
    interfaces: frozenset[str] = frozenset()
    # Local class name → whether it can be constructed without arguments
    classes: dict[str, bool] = field(default_factory=dict)
    type_vars: frozenset[str] = frozenset()


class AnnotationReader:
    """Reads annotation nodes of one source buffer against a TypeContext.

    *reparse* turns the text of a string annotation into a fresh reader and
    type node, so forward references resolve like any other annotation.
    """

    def __init__(
        self,
        source: bytes,
        context: TypeContext,
        reparse: Callable[[str], tuple[AnnotationReader, object] | None] | None = None,
    ):
        self._source = source
        self.context = context
        self._reparse = reparse

    def text(self, node) -> str:
        return self._source[node.start_byte : node.end_byte].decode("utf-8")

    @staticmethod
    def _named(node) -> list:
        return [c for c in node.children if c.is_named and c.type != "comment"]

    # ── entry point ──────────────────────────────────────────────

    def read(self, node, scope: frozenset[str] = frozenset()) -> TypeRef:
        if node is None:
            return ANY
        kind = node.type
        if kind in ("type", "parenthesized_expression"):
            inner = self._named(node)
            return self.read(inner[0], scope) if len(inner) == 1 else ANY
        if kind == "none":
            return VOID
        if kind == "ellipsis":
            return ELLIPSIS
        if kind in ("identifier", "attribute", "member_type", "dotted_name"):
            return self.named(self.text(node), (), scope)
        if kind == "generic_type":
            children = self._named(node)
            base = children[0]
            params = next((c for c in children[1:] if c.type == "type_parameter"), None)
            args = tuple(self.read(a, scope) for a in self._named(params)) if params else ()
            return self.named(self.text(base), args, scope)
        if kind == "subscript":
            base = node.child_by_field_name("value")
            args = tuple(self.read(a, scope) for a in node.children_by_field_name("subscript"))
            return self.named(self.text(base), args, scope)
        if kind in ("union_type", "binary_operator"):
            return self.union([self.read(p, scope) for p in self._union_parts(node)])
        if kind in ("list", "type_parameter"):
            return TypeRef(
                name="",
                kind=TypeKind.PARAM_LIST,
                args=tuple(self.read(a, scope) for a in self._named(node)),
            )
        if kind == "string":
            return self._read_string(node, scope)
        logger.debug("Unrecognised annotation node %s: %s", kind, self.text(node))
        return TypeRef(name=self.text(node))

    def _union_parts(self, node) -> list:
        if node.type == "binary_operator":
            operator = node.child_by_field_name("operator")
            if operator is None or self.text(operator) != "|":
                return [node]
            sides = [node.child_by_field_name("left"), node.child_by_field_name("right")]
        elif node.type == "union_type":
            sides = self._named(node)
        else:
            return [node]
        parts = []
        for side in sides:
            inner = side
            if inner.type == "type" and len(self._named(inner)) == 1:
                inner = self._named(inner)[0]
            if inner.type in ("union_type", "binary_operator"):
                parts.extend(self._union_parts(inner))
            else:
                parts.append(side)
        return parts

    def _read_string(self, node, scope: frozenset[str]) -> TypeRef:
        text = self.text(node).strip("\"'")
        if self._reparse is None or not text:
            return TypeRef(name=text or "Any")
        parsed = self._reparse(text)
        if parsed is None:
            return TypeRef(name=text)
        reader, type_node = parsed
        return reader.read(type_node, scope)

    # ── construction ─────────────────────────────────────────────

    def union(self, parts: list[TypeRef]) -> TypeRef:
        concrete = [p for p in parts if not p.is_void]
        nullable = len(concrete) < len(parts)
        if not concrete:
            return VOID
        if len(concrete) == 1:
            return concrete[0].with_nullable() if nullable else concrete[0]
        return TypeRef(name="Union", module="typing", args=tuple(concrete), nullable=nullable)

    def named(self, name: str, args: tuple[TypeRef, ...], scope: frozenset[str]) -> TypeRef:
        short = name.rsplit(".", 1)[-1]
        context = self.context
        if name in scope or name in context.type_vars:
            return type_parameter(name)
        if short in constants.OPTIONAL_NAMES and args:
            return args[0].with_nullable()
        if short in constants.UNION_NAMES:
            return self.union(list(args))
        if short in constants.ANY_NAMES:
            return ANY
        if short in ("None", "NoneType"):
            return VOID

        module = context.imports.get(name.split(".")[0], "")
        if short in constants.FUTURE_NAMES:
            return TypeRef(name=short, module=module or "typing", args=args, kind=TypeKind.FUTURE)
        if short in constants.CALLABLE_NAMES:
            return TypeRef(name=short, module=module or "typing", args=args, kind=TypeKind.CALLABLE)
        if short in constants.VALUE_TYPE_DEFAULTS:
            return TypeRef(name=short, args=args, kind=TypeKind.VALUE)
        if short in _CONCRETE_CONTAINERS:
            return TypeRef(name=short, args=args, has_default_constructor=True)
        if short in _ABSTRACTIONS:
            return TypeRef(name=short, module=module or "typing", args=args, kind=TypeKind.INTERFACE)
        if name in context.interfaces:
            return TypeRef(name=name, module=context.module, args=args, kind=TypeKind.INTERFACE)
        if name in context.classes:
            return TypeRef(
                name=name,
                module=context.module,
                args=args,
                has_default_constructor=context.classes[name],
            )
        return TypeRef(name=name, module=module, args=args)

"""Member Model — the neutral description of a stubbable surface.

Every record here is frozen and compares by value, so two models built from
the same declaration are interchangeable (and hashable, for caching keyed on
the model by whoever drives the generator).
"""

from __future__ import annotations

from enum import Enum
from typing import Iterator, Literal

from pydantic import BaseModel, ConfigDict


class FrozenModel(BaseModel):
    model_config = ConfigDict(frozen=True)


# ── types ────────────────────────────────────────────────────────


class TypeKind(str, Enum):
    VALUE = "value"
    REFERENCE = "reference"
    INTERFACE = "interface"
    TYPE_PARAMETER = "type_parameter"
    VOID = "void"
    FUTURE = "future"
    CALLABLE = "callable"
    ANY = "any"
    # The bracketed argument list of Callable[[A, B], R]
    PARAM_LIST = "param_list"


class TypeRef(FrozenModel):
    """A type as written in a declaration, plus the facts the resolver needs."""

    name: str
    module: str = ""
    args: tuple[TypeRef, ...] = ()
    kind: TypeKind = TypeKind.REFERENCE
    nullable: bool = False
    has_default_constructor: bool = False

    @property
    def is_void(self) -> bool:
        return self.kind == TypeKind.VOID

    @property
    def is_type_parameter(self) -> bool:
        return self.kind == TypeKind.TYPE_PARAMETER

    def display(self) -> str:
        if self.kind == TypeKind.PARAM_LIST:
            return "[" + ", ".join(a.display() for a in self.args) + "]"
        if self.kind == TypeKind.VOID:
            return "None"
        text = self.name
        if self.args:
            text += "[" + ", ".join(a.display() for a in self.args) + "]"
        if self.nullable and self.kind != TypeKind.ANY and self.name != "None":
            text += " | None"
        return text

    def with_nullable(self) -> TypeRef:
        if self.nullable or self.kind in (TypeKind.VOID, TypeKind.ANY):
            return self
        return self.model_copy(update={"nullable": True})

    def walk(self) -> Iterator[TypeRef]:
        """Yield this type and every type nested in its arguments."""
        yield self
        for arg in self.args:
            yield from arg.walk()

    def __str__(self) -> str:
        return self.display()


VOID = TypeRef(name="None", kind=TypeKind.VOID)
ANY = TypeRef(name="Any", module="typing", kind=TypeKind.ANY)


def value_type(name: str, nullable: bool = False) -> TypeRef:
    return TypeRef(name=name, kind=TypeKind.VALUE, nullable=nullable)


def type_parameter(name: str) -> TypeRef:
    return TypeRef(name=name, kind=TypeKind.TYPE_PARAMETER)


# ── parameters ───────────────────────────────────────────────────


class PassingMode(str, Enum):
    BY_VALUE = "by_value"
    BY_REF = "by_ref"
    OUT = "out"
    IN = "in"


class ParameterKind(str, Enum):
    POSITIONAL = "positional"
    KEYWORD_ONLY = "keyword_only"
    VAR_POSITIONAL = "var_positional"
    VAR_KEYWORD = "var_keyword"


class ParameterModel(FrozenModel):
    name: str
    type: TypeRef
    passing_mode: PassingMode = PassingMode.BY_VALUE
    kind: ParameterKind = ParameterKind.POSITIONAL
    default: str | None = None

    @property
    def is_output(self) -> bool:
        return self.passing_mode == PassingMode.OUT

    @property
    def is_cell(self) -> bool:
        """True when the argument arrives wrapped in a runtime Ref cell."""
        return self.passing_mode in (PassingMode.OUT, PassingMode.BY_REF)

    def signature_key(self) -> tuple[str, str, str]:
        return (self.type.display(), self.passing_mode.value, self.kind.value)


class ConstraintKind(str, Enum):
    REFERENCE = "reference"
    VALUE = "value"
    UNMANAGED = "unmanaged"
    DEFAULT_CONSTRUCTOR = "default_constructor"
    BOUND = "bound"


class TypeParameterModel(FrozenModel):
    name: str
    constraints: tuple[ConstraintKind, ...] = ()
    bound: TypeRef | None = None


class Accessibility(str, Enum):
    PUBLIC = "public"
    PROTECTED = "protected"
    PRIVATE = "private"


# ── members ──────────────────────────────────────────────────────


class PropertyMember(FrozenModel):
    kind: Literal["property"] = "property"
    name: str
    type: TypeRef
    has_getter: bool = True
    has_setter: bool = False
    is_indexer: bool = False
    index_params: tuple[ParameterModel, ...] = ()
    is_abstract: bool = True
    accessibility: Accessibility = Accessibility.PUBLIC


class MethodMember(FrozenModel):
    kind: Literal["method"] = "method"
    name: str
    return_type: TypeRef = VOID
    parameters: tuple[ParameterModel, ...] = ()
    type_parameters: tuple[TypeParameterModel, ...] = ()
    is_async: bool = False
    is_abstract: bool = True
    accessibility: Accessibility = Accessibility.PUBLIC

    @property
    def is_generic(self) -> bool:
        return bool(self.type_parameters)

    @property
    def input_parameters(self) -> tuple[ParameterModel, ...]:
        """Parameters recorded by call tracking (everything but outputs)."""
        return tuple(p for p in self.parameters if not p.is_output)

    @property
    def output_parameters(self) -> tuple[ParameterModel, ...]:
        return tuple(p for p in self.parameters if p.is_output)

    def signature_key(self) -> tuple:
        return (
            self.name,
            tuple(p.signature_key() for p in self.parameters),
            self.return_type.display(),
            self.is_async,
        )


class EventShape(str, Enum):
    VOID = "void"
    RESULT = "result"
    ASYNC = "async"


class EventMember(FrozenModel):
    kind: Literal["event"] = "event"
    name: str
    payload_params: tuple[ParameterModel, ...] = ()
    return_type: TypeRef | None = None
    is_async_kind: bool = False
    shape_kind: EventShape = EventShape.VOID
    is_abstract: bool = True
    accessibility: Accessibility = Accessibility.PUBLIC


Member = PropertyMember | MethodMember


# ── declarations ─────────────────────────────────────────────────


class _Declaration(FrozenModel):
    full_name: str
    simple_name: str
    module: str = ""
    members: tuple[PropertyMember | MethodMember, ...] = ()
    events: tuple[EventMember, ...] = ()

    def properties(self) -> list[PropertyMember]:
        return [
            m for m in self.members if isinstance(m, PropertyMember) and not m.is_indexer
        ]

    def indexers(self) -> list[PropertyMember]:
        return [m for m in self.members if isinstance(m, PropertyMember) and m.is_indexer]

    def methods(self) -> list[MethodMember]:
        return [m for m in self.members if isinstance(m, MethodMember)]

    def member_names(self) -> frozenset[str]:
        return frozenset(m.name for m in self.members) | frozenset(
            e.name for e in self.events
        )


class InterfaceModel(_Declaration):
    kind: Literal["interface"] = "interface"
    type_parameters: tuple[TypeParameterModel, ...] = ()


class ConstructorModel(FrozenModel):
    parameters: tuple[ParameterModel, ...] = ()
    accessibility: Accessibility = Accessibility.PUBLIC


class ClassModel(_Declaration):
    kind: Literal["class"] = "class"
    constructors: tuple[ConstructorModel, ...] = ()
    base: ClassModel | None = None
    is_sealed: bool = False

    def accessible_constructors(self) -> list[ConstructorModel]:
        if not self.constructors:
            return [ConstructorModel()]
        return [c for c in self.constructors if c.accessibility != Accessibility.PRIVATE]


class CallableModel(FrozenModel):
    kind: Literal["callable"] = "callable"
    full_name: str
    simple_name: str
    module: str = ""
    parameters: tuple[ParameterModel, ...] = ()
    return_type: TypeRef = VOID
    is_async: bool = False


# ── requests ─────────────────────────────────────────────────────


class UserMethodModel(FrozenModel):
    """A restricted-visibility implementation supplied by the requesting type."""

    name: str
    return_type: TypeRef = VOID
    parameters: tuple[ParameterModel, ...] = ()
    is_async: bool = False

    def signature_key(self) -> tuple:
        return (
            self.name,
            tuple(p.signature_key() for p in self.parameters),
            self.return_type.display(),
            self.is_async,
        )


class StubRequest(FrozenModel):
    stub_name: str
    interfaces: tuple[InterfaceModel, ...] = ()
    base_class: ClassModel | None = None
    callable_type: CallableModel | None = None
    user_methods: tuple[UserMethodModel, ...] = ()
    # True when the requester declared an empty shell class the stub extends
    shell: bool = False

    @property
    def target_families(self) -> int:
        return sum(
            (
                bool(self.interfaces),
                self.base_class is not None,
                self.callable_type is not None,
            )
        )


class GenerationUnit(FrozenModel):
    requester: str
    module: str = ""
    requests: tuple[StubRequest, ...] = ()
    inline: bool = False


ClassModel.model_rebuild()
TypeRef.model_rebuild()

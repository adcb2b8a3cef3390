"""Implementation Assembler — turns stub requests into a ModulePlan.

Every decision about the generated companion is made here: which names the
members get, which interceptor each member routes to, and the fallback
chain each member follows when invoked:

1. record the invocation;
2. the override callback, when set;
3. a matching user implementation (for class stubs, the base implementation
   of a non-abstract member);
4. the default strategy, or UnconfiguredMemberError.

The renderer only turns the plan into text.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Union

from . import constants
from .defaults import default_expression, element_default, future_payload, resolve
from .diagnostics import DiagnosticBag, Descriptors
from .generation_types import GenerationStats, GeneratorConfig
from .generic_dispatch import GenericMethodRegistry, InferenceMode, synthesize_generic
from .hierarchy import flatten_class
from .interceptors import (
    InterceptorDefinition,
    MethodInterceptor,
    synthesize_event,
    synthesize_indexer,
    synthesize_method,
    synthesize_property,
)
from .model import (
    ClassModel,
    EventMember,
    GenerationUnit,
    InterfaceModel,
    MethodMember,
    ParameterKind,
    ParameterModel,
    PassingMode,
    PropertyMember,
    StubRequest,
    TypeKind,
    TypeRef,
    UserMethodModel,
)
from .naming import (
    NameAccumulator,
    as_method_name,
    backing_field_name,
    bundle_class_name,
    bundle_name,
    generic_group_attr,
    indexer_attr,
    indexer_backing_name,
    interceptor_class_name,
    overload_attr,
    overload_table_name,
    qualified_member_name,
    user_impl_name,
    view_class_name,
)
from .overloads import group_overloads

logger = logging.getLogger(__name__)

Declaration = Union[InterfaceModel, ClassModel]
BundleEntry = Union[InterceptorDefinition, GenericMethodRegistry]


class GenerationError(Exception):
    """Synthesis of a generation unit could not complete."""


# ── plan records ─────────────────────────────────────────────────


@dataclass(frozen=True)
class DefaultPlan:
    """Step 4 of a fallback chain.

    ``expression`` is a compile-time default; ``runtime_type`` an expression
    yielding the type handed to the runtime default provider. Neither set
    means the member raises. ``completed`` wraps the value in an already
    finished awaitable.
    """

    expression: str | None = None
    runtime_type: str | None = None
    completed: bool = False

    @property
    def is_resolvable(self) -> bool:
        return self.expression is not None or self.runtime_type is not None


@dataclass(frozen=True)
class FallbackChain:
    member_label: str
    slot: str
    default: DefaultPlan
    user_impl: str | None = None
    base_call: bool = False
    implementation_hint: str = ""


@dataclass(frozen=True)
class MethodRoute:
    name: str
    member: MethodMember
    interceptor_path: str
    record_args: tuple[str, ...]
    out_defaults: tuple[tuple[str, str], ...]
    chain: FallbackChain
    registry: GenericMethodRegistry | None = None


class DispatchMode(str, Enum):
    CALL = "call"
    GET = "get"
    SET = "set"


@dataclass(frozen=True)
class SignatureRow:
    names: tuple[str, ...]
    checks: tuple[str, ...]
    required: tuple[bool, ...]
    kinds: tuple[str, ...]


@dataclass(frozen=True)
class DispatchPlan:
    """A public entry point routing each call to one private overload body."""

    name: str
    member_label: str
    table_name: str
    rows: tuple[SignatureRow, ...]
    targets: tuple[str, ...]
    mode: DispatchMode = DispatchMode.CALL
    known_keywords: tuple[str, ...] = ()
    overloads: tuple[MethodMember, ...] = ()


@dataclass(frozen=True)
class PropertyRoute:
    name: str
    member: PropertyMember
    interceptor_path: str
    member_label: str
    backing_field: str | None
    getter: FallbackChain | None
    setter: FallbackChain | None = None
    base_property: bool = False


@dataclass(frozen=True)
class IndexerRoute:
    member: PropertyMember
    interceptor_path: str
    member_label: str
    keys: tuple[ParameterModel, ...]
    backing_map: str
    get_name: str | None
    set_name: str | None
    getter: FallbackChain | None
    base_call: bool = False


@dataclass(frozen=True)
class EventRoute:
    name: str
    member: EventMember
    interceptor_path: str
    member_label: str


@dataclass(frozen=True)
class BackingField:
    name: str
    annotation: str
    initial: str


@dataclass(frozen=True)
class BundlePlan:
    attribute: str
    class_name: str
    declaration: str
    interceptors: tuple[BundleEntry, ...]


class ViewKind(str, Enum):
    METHOD = "method"
    PROPERTY = "property"
    EVENT = "event"
    GETITEM = "getitem"
    SETITEM = "setitem"


@dataclass(frozen=True)
class ViewMember:
    kind: ViewKind
    name: str
    target: str
    settable: bool = False


@dataclass(frozen=True)
class ViewPlan:
    class_name: str
    stub_name: str
    interface: str
    members: tuple[ViewMember, ...]


@dataclass(frozen=True)
class AsMethod:
    name: str
    interface: str
    view_class: str | None


@dataclass(frozen=True)
class ConstructorPlan:
    # None forwards *args/**kwargs to one of several base constructors
    parameters: tuple[ParameterModel, ...] | None


@dataclass(frozen=True)
class StubPlan:
    name: str
    bases: tuple[str, ...]
    shell: bool = False
    is_class_stub: bool = False
    bundles: tuple[BundlePlan, ...] = ()
    backing_fields: tuple[BackingField, ...] = ()
    properties: tuple[PropertyRoute, ...] = ()
    indexers: tuple[IndexerRoute, ...] = ()
    methods: tuple[MethodRoute, ...] = ()
    dispatches: tuple[DispatchPlan, ...] = ()
    events: tuple[EventRoute, ...] = ()
    views: tuple[ViewPlan, ...] = ()
    as_methods: tuple[AsMethod, ...] = ()
    callable_interceptor: MethodInterceptor | None = None
    constructor: ConstructorPlan | None = None


@dataclass(frozen=True)
class ModulePlan:
    requester: str
    module: str
    inline: bool
    stubs: tuple[StubPlan, ...]
    imports: tuple[tuple[str, str], ...]
    type_variables: tuple[str, ...]


# ── helpers ──────────────────────────────────────────────────────


def _runtime_checks(type_ref: TypeRef) -> list[str] | None:
    """Class names isinstance() can test for *type_ref*; None when unchecked."""
    if type_ref.kind in (
        TypeKind.ANY,
        TypeKind.TYPE_PARAMETER,
        TypeKind.CALLABLE,
        TypeKind.FUTURE,
        TypeKind.PARAM_LIST,
        TypeKind.INTERFACE,
    ):
        return None
    if type_ref.kind == TypeKind.VOID:
        return ["type(None)"]
    short = type_ref.name.rsplit(".", 1)[-1]
    if short == "float":
        return ["float", "int"]
    if short == "complex":
        return ["complex", "float", "int"]
    if short in constants.CHECKABLE_BUILTINS:
        return [short]
    if short in ("None", "NoneType"):
        return ["type(None)"]
    if (
        short in constants.SEQUENCE_ABSTRACTIONS
        or short in constants.MAPPING_ABSTRACTIONS
        or short in constants.SET_ABSTRACTIONS
    ):
        return None
    if type_ref.kind == TypeKind.VALUE:
        return None
    return [type_ref.name]


def check_expression(param: ParameterModel, runtime_alias: str) -> str:
    """Tuple-of-classes expression an overload router tests *param* against."""
    if param.is_cell:
        return f"({runtime_alias}.Ref,)"
    if param.kind in (ParameterKind.VAR_POSITIONAL, ParameterKind.VAR_KEYWORD):
        return "(object,)"
    names = _runtime_checks(param.type)
    if names is None:
        return "(object,)"
    if param.type.nullable:
        names.append("type(None)")
    return "(" + ", ".join(names) + ",)"


def signature_row(params: Iterable[ParameterModel], runtime_alias: str) -> SignatureRow:
    params = tuple(params)
    return SignatureRow(
        names=tuple(p.name for p in params),
        checks=tuple(check_expression(p, runtime_alias) for p in params),
        required=tuple(
            p.default is None
            and p.kind in (ParameterKind.POSITIONAL, ParameterKind.KEYWORD_ONLY)
            for p in params
        ),
        kinds=tuple(f"{runtime_alias}.{p.kind.value.upper()}" for p in params),
    )


def _call_shape(params: tuple[ParameterModel, ...]) -> tuple:
    # Keyword-only parameters are passed by name, so their names must match too
    return tuple(
        (p.name if p.kind == ParameterKind.KEYWORD_ONLY else "",) + p.signature_key()
        for p in params
    )


def matches_user_method(method: MethodMember, user: UserMethodModel) -> bool:
    return (
        _call_shape(method.parameters) == _call_shape(user.parameters)
        and method.return_type.display() == user.return_type.display()
        and method.is_async == user.is_async
    )


def find_user_method(
    method: MethodMember, user_methods: tuple[UserMethodModel, ...]
) -> str | None:
    if method.name.startswith("_"):
        return None
    wanted = user_impl_name(method.name)
    for user in user_methods:
        if user.name == wanted and matches_user_method(method, user):
            return user.name
    return None


def record_arguments(method: MethodMember) -> tuple[str, ...]:
    return tuple(
        f"{p.name}.value" if p.passing_mode == PassingMode.BY_REF else p.name
        for p in method.input_parameters
    )


def method_default(method: MethodMember, registry: GenericMethodRegistry | None) -> DefaultPlan:
    return_type = method.return_type
    completed = False
    if return_type.kind == TypeKind.FUTURE and not method.is_async:
        completed = True
        payload = future_payload(return_type)
        if payload is None:
            return DefaultPlan(expression="None", completed=True)
        return_type = payload
    if return_type.is_void:
        return DefaultPlan(expression="None", completed=completed)
    if return_type.is_type_parameter and not return_type.nullable and registry is not None:
        source = registry.source_for(return_type.name)
        if source is not None and source.mode != InferenceMode.UNKNOWN:
            return DefaultPlan(runtime_type=source.expression(), completed=completed)
    return DefaultPlan(
        expression=default_expression(resolve(return_type), return_type),
        completed=completed,
    )


def declarations_of(request: StubRequest) -> list[Declaration]:
    if request.base_class is not None:
        return [flatten_class(request.base_class)]
    return list(request.interfaces)


# ── per-stub builder ─────────────────────────────────────────────


@dataclass
class _StubBuilder:
    """Mutable collection state for one stub; discarded once its plan is built."""

    stub_name: str
    is_class_stub: bool
    user_methods: tuple[UserMethodModel, ...]
    names: NameAccumulator
    bundles: list[BundlePlan] = field(default_factory=list)
    backing_fields: list[BackingField] = field(default_factory=list)
    properties: list[PropertyRoute] = field(default_factory=list)
    indexers: list[IndexerRoute] = field(default_factory=list)
    methods: list[MethodRoute] = field(default_factory=list)
    dispatches: list[DispatchPlan] = field(default_factory=list)
    events: list[EventRoute] = field(default_factory=list)
    views: list[ViewPlan] = field(default_factory=list)
    as_methods: list[AsMethod] = field(default_factory=list)

    def claim(self, name: str) -> str:
        claimed, self.names = self.names.claim(name)
        return claimed

    def claim_member(self, name: str, bundle: str) -> tuple[str, bool]:
        """Public name for a member, or a qualified one when already taken."""
        if name not in self.names:
            return self.claim(name), False
        return self.claim(qualified_member_name(bundle, name)), True


class ImplementationAssembler:
    """Builds a ModulePlan for one GenerationUnit."""

    def __init__(self, config: GeneratorConfig | None = None):
        self.config = config or GeneratorConfig()

    # ── validation ───────────────────────────────────────────────

    def validate(self, request: StubRequest, bag: DiagnosticBag) -> None:
        location = request.stub_name
        families = request.target_families
        if families == 0:
            bag.report(Descriptors.NOT_STUBBABLE, request.stub_name, location=location)
            return
        if families > 1:
            bag.report(Descriptors.MIXED_TARGETS, request.stub_name, location=location)
            return

        base = request.base_class
        if base is not None:
            if base.is_sealed:
                bag.report(Descriptors.SEALED_CLASS, base.full_name, location=location)
            if not base.accessible_constructors():
                bag.report(
                    Descriptors.NO_ACCESSIBLE_CONSTRUCTOR, base.full_name, location=location
                )

        declarations = declarations_of(request)
        all_names = frozenset().union(*(d.member_names() for d in declarations)) if declarations else frozenset()
        for declaration in declarations:
            if not declaration.members and not declaration.events:
                bag.report(Descriptors.NO_MEMBERS, declaration.full_name, location=location)
            for name in sorted(declaration.member_names() & constants.RESERVED_STUB_NAMES):
                bag.report(
                    Descriptors.RESERVED_NAME, name, declaration.full_name, location=location
                )
            helper = as_method_name(declaration)
            if helper in all_names:
                bag.report(
                    Descriptors.NAME_COLLISION,
                    helper,
                    declaration.full_name,
                    "the generated interface accessor",
                    location=location,
                )

        for user in request.user_methods:
            target = user.name[len(constants.USER_IMPL_PREFIX):]
            candidates = [
                m for d in declarations for m in d.methods() if m.name == target
            ]
            if candidates and not any(matches_user_method(m, user) for m in candidates):
                owner = next(d for d in declarations if target in d.member_names())
                bag.report(
                    Descriptors.USER_METHOD_MISMATCH,
                    user.name,
                    f"{owner.simple_name}.{target}",
                    location=location,
                )

    # ── planning ─────────────────────────────────────────────────

    def assemble(
        self, unit: GenerationUnit, bag: DiagnosticBag, stats: GenerationStats
    ) -> ModulePlan | None:
        """Plan every stub of *unit*; None when any request is invalid."""
        for request in unit.requests:
            self.validate(request, bag)
        if bag.has_errors:
            logger.warning(
                "Skipping %s: %d error(s) reported", unit.requester, len(bag.errors())
            )
            return None

        stubs = tuple(self.plan_stub(request, bag, stats) for request in unit.requests)
        plan = ModulePlan(
            requester=unit.requester,
            module=unit.module,
            inline=unit.inline,
            stubs=stubs,
            imports=self._imports(unit),
            type_variables=self._type_variables(unit),
        )
        logger.info("Planned %d stub(s) for %s", len(stubs), unit.requester)
        return plan

    def plan_stub(
        self, request: StubRequest, bag: DiagnosticBag, stats: GenerationStats
    ) -> StubPlan:
        stats.stubs += 1
        if request.callable_type is not None:
            return self._plan_callable(request, request.callable_type, stats)

        builder = _StubBuilder(
            stub_name=request.stub_name,
            is_class_stub=request.base_class is not None,
            user_methods=request.user_methods,
            names=NameAccumulator().reserve(
                *constants.RESERVED_STUB_NAMES,
                *(u.name for u in request.user_methods),
            ),
        )
        declarations = declarations_of(request)
        stats.interfaces += len(declarations)
        for declaration in declarations:
            self._plan_declaration(builder, declaration, bag, stats)

        constructor = None
        if request.base_class is not None:
            accessible = request.base_class.accessible_constructors()
            constructor = ConstructorPlan(
                parameters=accessible[0].parameters if len(accessible) == 1 else None
            )
        bases = tuple(d.simple_name for d in declarations)
        if request.base_class is not None:
            bases = (request.base_class.simple_name,)

        return StubPlan(
            name=request.stub_name,
            bases=bases,
            shell=request.shell,
            is_class_stub=request.base_class is not None,
            bundles=tuple(builder.bundles),
            backing_fields=tuple(builder.backing_fields),
            properties=tuple(builder.properties),
            indexers=tuple(builder.indexers),
            methods=tuple(builder.methods),
            dispatches=tuple(builder.dispatches),
            events=tuple(builder.events),
            views=tuple(builder.views),
            as_methods=tuple(builder.as_methods),
            constructor=constructor,
        )

    def _plan_callable(
        self, request: StubRequest, target: CallableModel, stats: GenerationStats
    ) -> StubPlan:
        method = MethodMember(
            name=constants.CALLABLE_INVOKE,
            return_type=target.return_type,
            parameters=target.parameters,
            is_async=target.is_async,
        )
        interceptor = synthesize_method(
            method,
            f"{request.stub_name}Interceptor",
            constants.INTERCEPTOR_ATTR,
            request.stub_name,
            target.simple_name,
        )
        route = MethodRoute(
            name=constants.CALLABLE_INVOKE,
            member=method,
            interceptor_path=f"self.{constants.INTERCEPTOR_ATTR}",
            record_args=record_arguments(method),
            out_defaults=tuple(
                (p.name, element_default(p.type)) for p in method.output_parameters
            ),
            chain=FallbackChain(
                member_label=target.simple_name,
                slot="on_call",
                default=method_default(method, None),
            ),
        )
        stats.interceptors += 1
        return StubPlan(
            name=request.stub_name,
            bases=(),
            shell=request.shell,
            methods=(route,),
            callable_interceptor=interceptor,
        )

    def _plan_declaration(
        self,
        builder: _StubBuilder,
        declaration: Declaration,
        bag: DiagnosticBag,
        stats: GenerationStats,
    ) -> None:
        stub = builder.stub_name
        bundle = builder.claim(
            bundle_name(declaration, self.config.bundle_collision_suffix)
        )
        path = f"self.{bundle}"
        attrs = NameAccumulator().reserve("reset")
        entries: list[BundleEntry] = []
        view_members: list[ViewMember] = []
        qualified = 0

        def label(member: str) -> str:
            return f"{declaration.simple_name}.{member}"

        def claim_attr(name: str) -> str:
            nonlocal attrs
            claimed, attrs = attrs.claim(name)
            return claimed

        # properties
        for prop in declaration.properties():
            attr = claim_attr(prop.name)
            entries.append(
                synthesize_property(
                    prop, interceptor_class_name(stub, bundle, attr), attr, stub, label(prop.name)
                )
            )
            name, was_qualified = builder.claim_member(prop.name, bundle)
            qualified += was_qualified
            base_property = builder.is_class_stub and not prop.is_abstract
            backing = None
            getter = None
            setter = None
            if not base_property:
                strategy = resolve(prop.type)
                initial = default_expression(strategy, prop.type)
                backing = builder.claim(backing_field_name(bundle, prop.name))
                builder.backing_fields.append(
                    BackingField(
                        name=backing,
                        annotation=prop.type.display(),
                        initial=initial if initial is not None else f"{self.config.runtime_alias}.UNSET",
                    )
                )
                if prop.has_getter:
                    getter = FallbackChain(
                        member_label=label(prop.name),
                        slot="on_get",
                        default=DefaultPlan(expression=initial),
                    )
                if prop.has_setter:
                    setter = FallbackChain(
                        member_label=label(prop.name),
                        slot="on_set",
                        default=DefaultPlan(expression="None"),
                    )
            builder.properties.append(
                PropertyRoute(
                    name=name,
                    member=prop,
                    interceptor_path=f"{path}.{attr}",
                    member_label=label(prop.name),
                    backing_field=backing,
                    getter=getter,
                    setter=setter,
                    base_property=base_property,
                )
            )
            view_members.append(
                ViewMember(ViewKind.PROPERTY, prop.name, name, settable=prop.has_setter)
            )

        # indexers
        indexers = declaration.indexers()
        if indexers:
            qualified += self._plan_indexers(
                builder, declaration, bundle, indexers, entries, view_members, claim_attr, label
            )

        # methods
        groups = group_overloads(declaration.methods())
        stats.overload_groups += len(groups)
        for group in groups:
            public, was_qualified = builder.claim_member(group.name, bundle)
            qualified += was_qualified
            view_members.append(ViewMember(ViewKind.METHOD, group.name, public))
            member_label = label(group.name)

            if not group.is_overloaded:
                method = group.overloads[0]
                attr = claim_attr(group.name)
                entry, registry = self._method_entry(
                    method, interceptor_class_name(stub, bundle, attr), attr, stub, member_label
                )
                entries.append(entry)
                builder.methods.append(
                    self._method_route(builder, public, method, f"{path}.{attr}", member_label, registry)
                )
                continue

            generic_count = sum(1 for m in group.overloads if m.is_generic)
            if group.is_mixed_generic:
                registry_name = generic_group_attr(group.name)
                bag.report(
                    Descriptors.MIXED_GENERIC_GROUP,
                    declaration.simple_name,
                    group.name,
                    registry_name,
                    location=stub,
                )
            targets: list[str] = []
            for index, method in group.numbered():
                if method.is_generic:
                    base_attr = generic_group_attr(group.name)
                    attr = claim_attr(base_attr if generic_count == 1 else f"{base_attr}_{index}")
                else:
                    attr = claim_attr(overload_attr(group.name, index))
                entry, registry = self._method_entry(
                    method, interceptor_class_name(stub, bundle, attr), attr, stub, member_label
                )
                entries.append(entry)
                body = builder.claim(
                    f"{public}_{index}" if public.startswith("_") else f"_{public}_{index}"
                )
                targets.append(body)
                builder.methods.append(
                    self._method_route(builder, body, method, f"{path}.{attr}", member_label, registry)
                )
            builder.dispatches.append(
                DispatchPlan(
                    name=public,
                    member_label=member_label,
                    table_name=builder.claim(overload_table_name(stub, bundle, public)),
                    rows=tuple(
                        signature_row(m.parameters, self.config.runtime_alias)
                        for m in group.overloads
                    ),
                    targets=tuple(targets),
                    mode=DispatchMode.CALL,
                    known_keywords=self._known_keywords(group.overloads, group.combined_names()),
                    overloads=group.overloads,
                )
            )

        # events
        for event in declaration.events:
            attr = claim_attr(event.name)
            entries.append(
                synthesize_event(
                    event, interceptor_class_name(stub, bundle, attr), attr, label(event.name)
                )
            )
            name, was_qualified = builder.claim_member(event.name, bundle)
            qualified += was_qualified
            builder.events.append(
                EventRoute(
                    name=name,
                    member=event,
                    interceptor_path=f"{path}.{attr}",
                    member_label=label(event.name),
                )
            )
            view_members.append(ViewMember(ViewKind.EVENT, event.name, name, settable=True))
            stats.events += 1

        builder.bundles.append(
            BundlePlan(
                attribute=bundle,
                class_name=bundle_class_name(stub, bundle),
                declaration=declaration.simple_name,
                interceptors=tuple(entries),
            )
        )
        stats.interceptors += sum(
            1 for e in entries if isinstance(e, InterceptorDefinition)
        )
        stats.generic_registries += sum(
            1 for e in entries if isinstance(e, GenericMethodRegistry)
        )
        stats.qualified_members += qualified

        view_class = None
        if qualified:
            view_class = view_class_name(stub, bundle)
            builder.views.append(
                ViewPlan(
                    class_name=view_class,
                    stub_name=stub,
                    interface=declaration.simple_name,
                    members=tuple(view_members),
                )
            )
        builder.as_methods.append(
            AsMethod(
                name=builder.claim(as_method_name(declaration)),
                interface=declaration.simple_name,
                view_class=view_class,
            )
        )
        logger.debug(
            "%s: bundle %s with %d interceptor(s), %d qualified member(s)",
            stub,
            bundle,
            len(entries),
            qualified,
        )

    def _plan_indexers(
        self,
        builder: _StubBuilder,
        declaration: Declaration,
        bundle: str,
        indexers: list[PropertyMember],
        entries: list[BundleEntry],
        view_members: list[ViewMember],
        claim_attr,
        label,
    ) -> int:
        stub = builder.stub_name
        alias = self.config.runtime_alias
        get_public = set_public = None
        qualified = 0
        if any(ix.has_getter for ix in indexers):
            get_public, was_qualified = builder.claim_member(constants.INDEXER_GET, bundle)
            qualified += was_qualified
        if any(ix.has_setter for ix in indexers):
            set_public, was_qualified = builder.claim_member(constants.INDEXER_SET, bundle)
            qualified += was_qualified
        single = len(indexers) == 1

        get_targets: list[str] = []
        get_rows: list[SignatureRow] = []
        set_targets: list[str] = []
        set_rows: list[SignatureRow] = []
        for indexer in indexers:
            keys = tuple(p for p in indexer.index_params if not p.is_output)
            attr = claim_attr(indexer_attr(tuple(k.type for k in keys), len(indexers)))
            member_label = label(attr)
            entries.append(
                synthesize_indexer(
                    indexer, interceptor_class_name(stub, bundle, attr), attr, stub, member_label
                )
            )
            key_row = signature_row(keys[:1], alias) if len(keys) == 1 else SignatureRow(
                names=("key",), checks=("(tuple,)",), required=(True,), kinds=(f"{alias}.POSITIONAL",)
            )
            get_name = set_name = None
            if indexer.has_getter:
                get_name = get_public if single else builder.claim(f"_get_{attr}")
                get_targets.append(get_name)
                get_rows.append(key_row)
            if indexer.has_setter:
                set_name = set_public if single else builder.claim(f"_set_{attr}")
                set_targets.append(set_name)
                set_rows.append(key_row)

            base_call = builder.is_class_stub and not indexer.is_abstract
            getter = None
            if indexer.has_getter:
                getter = FallbackChain(
                    member_label=member_label,
                    slot="on_get",
                    default=DefaultPlan(
                        expression=default_expression(resolve(indexer.type), indexer.type)
                    ),
                    base_call=base_call,
                )
            builder.indexers.append(
                IndexerRoute(
                    member=indexer,
                    interceptor_path=f"self.{bundle}.{attr}",
                    member_label=member_label,
                    keys=keys,
                    backing_map=builder.claim(indexer_backing_name(bundle, attr)),
                    get_name=get_name,
                    set_name=set_name,
                    getter=getter,
                    base_call=base_call,
                )
            )

        if not single:
            if get_public is not None:
                builder.dispatches.append(
                    DispatchPlan(
                        name=get_public,
                        member_label=label(constants.INDEXER_ATTR),
                        table_name=builder.claim(overload_table_name(stub, bundle, "getitem")),
                        rows=tuple(get_rows),
                        targets=tuple(get_targets),
                        mode=DispatchMode.GET,
                    )
                )
            if set_public is not None:
                builder.dispatches.append(
                    DispatchPlan(
                        name=set_public,
                        member_label=label(constants.INDEXER_ATTR),
                        table_name=builder.claim(overload_table_name(stub, bundle, "setitem")),
                        rows=tuple(set_rows),
                        targets=tuple(set_targets),
                        mode=DispatchMode.SET,
                    )
                )
        if get_public is not None:
            view_members.append(ViewMember(ViewKind.GETITEM, constants.INDEXER_GET, get_public))
        if set_public is not None:
            view_members.append(ViewMember(ViewKind.SETITEM, constants.INDEXER_SET, set_public))
        return qualified

    def _method_entry(
        self, method: MethodMember, class_name: str, attr: str, stub: str, member_label: str
    ) -> tuple[BundleEntry, GenericMethodRegistry | None]:
        if method.is_generic:
            registry = synthesize_generic(method, class_name, attr, stub, member_label)
            return registry, registry
        return synthesize_method(method, class_name, attr, stub, member_label), None

    def _method_route(
        self,
        builder: _StubBuilder,
        name: str,
        method: MethodMember,
        interceptor_path: str,
        member_label: str,
        registry: GenericMethodRegistry | None,
    ) -> MethodRoute:
        if registry is not None:
            interceptor_path = f"{interceptor_path}.of({registry.key_expression()})"
        hint = "" if method.name.startswith("_") else user_impl_name(method.name)
        chain = FallbackChain(
            member_label=member_label,
            slot="on_call",
            default=method_default(method, registry),
            user_impl=find_user_method(method, builder.user_methods),
            base_call=builder.is_class_stub and not method.is_abstract,
            implementation_hint=hint,
        )
        return MethodRoute(
            name=name,
            member=method,
            interceptor_path=interceptor_path,
            record_args=record_arguments(method),
            out_defaults=tuple(
                (p.name, element_default(p.type)) for p in method.output_parameters
            ),
            chain=chain,
            registry=registry,
        )

    @staticmethod
    def _known_keywords(
        overloads: tuple[MethodMember, ...], combined: frozenset[str]
    ) -> tuple[str, ...]:
        # Any overload taking **kwargs accepts arbitrary keywords
        for method in overloads:
            if any(p.kind == ParameterKind.VAR_KEYWORD for p in method.parameters):
                return ()
        keyword_capable = {
            p.name
            for method in overloads
            for p in method.parameters
            if p.kind in (ParameterKind.POSITIONAL, ParameterKind.KEYWORD_ONLY)
        }
        return tuple(sorted(combined & keyword_capable))

    # ── module-level facts ───────────────────────────────────────

    @staticmethod
    def _all_type_refs(unit: GenerationUnit) -> Iterable[TypeRef]:
        for request in unit.requests:
            declarations: list[Declaration] = list(request.interfaces)
            if request.base_class is not None:
                declarations.append(flatten_class(request.base_class))
                for ctor in request.base_class.accessible_constructors():
                    for param in ctor.parameters:
                        yield from param.type.walk()
            for declaration in declarations:
                for member in declaration.members:
                    if isinstance(member, PropertyMember):
                        yield from member.type.walk()
                        for param in member.index_params:
                            yield from param.type.walk()
                    else:
                        yield from member.return_type.walk()
                        for param in member.parameters:
                            yield from param.type.walk()
                for event in declaration.events:
                    if event.return_type is not None:
                        yield from event.return_type.walk()
                    for param in event.payload_params:
                        yield from param.type.walk()
            if request.callable_type is not None:
                yield from request.callable_type.return_type.walk()
                for param in request.callable_type.parameters:
                    yield from param.type.walk()

    def _imports(self, unit: GenerationUnit) -> tuple[tuple[str, str], ...]:
        """(module, name) pairs the generated module imports, first-seen order."""
        seen: dict[tuple[str, str], None] = {}
        for request in unit.requests:
            targets = list(request.interfaces)
            if request.base_class is not None:
                targets.append(request.base_class)
            for target in targets:
                if target.module:
                    seen.setdefault((target.module, target.simple_name), None)
        for type_ref in self._all_type_refs(unit):
            if not type_ref.module or type_ref.module == "builtins":
                continue
            if type_ref.kind in (TypeKind.TYPE_PARAMETER, TypeKind.VOID, TypeKind.PARAM_LIST):
                continue
            seen.setdefault((type_ref.module, type_ref.name.split(".")[0]), None)
        return tuple(seen)

    def _type_variables(self, unit: GenerationUnit) -> tuple[str, ...]:
        names: dict[str, None] = {}
        for request in unit.requests:
            for interface in request.interfaces:
                for tp in interface.type_parameters:
                    names.setdefault(tp.name, None)
        for type_ref in self._all_type_refs(unit):
            if type_ref.is_type_parameter:
                names.setdefault(type_ref.name, None)
        return tuple(names)

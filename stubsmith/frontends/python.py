"""PythonModelExtractor — tree-sitter Python declarations → Member Model."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from ._base import Declaration, ExtractionResult, ModelExtractor
from .annotations import AnnotationReader, TypeContext
from ..diagnostics import DiagnosticBag, Descriptors
from ..hierarchy import flatten_class
from ..model import (
    ANY,
    Accessibility,
    CallableModel,
    ClassModel,
    ConstructorModel,
    EventMember,
    EventShape,
    GenerationUnit,
    InterfaceModel,
    MethodMember,
    ParameterKind,
    ParameterModel,
    PassingMode,
    PropertyMember,
    StubRequest,
    TypeKind,
    TypeParameterModel,
    TypeRef,
    UserMethodModel,
    VOID,
)
from ..parser import Parser
from .. import constants

logger = logging.getLogger(__name__)

_PASSING_MARKERS = {
    constants.OUT_MARKER: PassingMode.OUT,
    constants.REF_MARKER: PassingMode.BY_REF,
    constants.IN_MARKER: PassingMode.IN,
}
_SKIPPED_DECORATORS = frozenset({"staticmethod", "classmethod", constants.FINAL_DECORATOR})
_NON_TARGET_BASES = frozenset({"Generic", "object", "ABC", constants.PROTOCOL_BASE})


@dataclass
class _ClassEntry:
    node: object
    decorators: list = field(default_factory=list)


@dataclass
class _PropertyDraft:
    name: str
    type: TypeRef
    has_getter: bool
    has_setter: bool
    is_abstract: bool
    accessibility: Accessibility


@dataclass
class _IndexerDraft:
    key_params: tuple[ParameterModel, ...]
    type: TypeRef
    has_getter: bool = False
    has_setter: bool = False
    is_abstract: bool = True


def _accessibility(name: str) -> Accessibility:
    if name.startswith("__") and not name.endswith("__"):
        return Accessibility.PRIVATE
    if name.startswith("_") and not name.endswith("__"):
        return Accessibility.PROTECTED
    return Accessibility.PUBLIC


def _is_user_method(name: str) -> bool:
    return (
        name.startswith(constants.USER_IMPL_PREFIX)
        and not name.startswith("__")
        and len(name) > 1
    )


class PythonModelExtractor(ModelExtractor):
    """Extracts Member Models and stub requests from Python source."""

    def __init__(self, parser: Parser | None = None):
        super().__init__()
        self._parser = parser or Parser()
        self._reset()

    def _reset(self) -> None:
        self._classes: dict[str, _ClassEntry] = {}
        self._aliases: dict[str, object] = {}
        self._imports: dict[str, str] = {}
        self._type_vars: dict[str, TypeParameterModel] = {}
        self._models: dict[str, Declaration] = {}
        self._building: set[str] = set()
        self._reader: AnnotationReader | None = None

    # ── entry point ──────────────────────────────────────────────

    def extract(self, root) -> ExtractionResult:
        self._reset()
        self._index_block(root)
        self._reader = AnnotationReader(self._source, self._type_context(), self._reparse)

        result = ExtractionResult()
        for name, entry in self._classes.items():
            if self._request_kind(entry) is not None:
                continue
            result.declarations[name] = self._declaration(name)
        for name in self._aliases:
            result.declarations[name] = self._callable(name)

        for name, entry in self._classes.items():
            kind = self._request_kind(entry)
            if kind is None:
                continue
            bag = DiagnosticBag()
            unit = (
                self._standalone_unit(name, entry, bag)
                if kind == constants.STUB_DECORATOR
                else self._inline_unit(name, entry, bag)
            )
            result.units.append(unit)
            result.unit_diagnostics[name] = list(bag)
            result.diagnostics.extend(bag)
        return result

    def extract_model(self, name: str) -> Declaration | None:
        model = self._models.get(name)
        if model is None and (name in self._classes or name in self._aliases):
            model = self._callable(name) if name in self._aliases else self._declaration(name)
        if isinstance(model, ClassModel):
            flat = flatten_class(model)
            return model if flat.members or flat.events else None
        if isinstance(model, InterfaceModel):
            return model if model.members or model.events else None
        return model

    # ── indexing ─────────────────────────────────────────────────

    def _index_block(self, node) -> None:
        for child in self._named_children(node):
            kind = child.type
            if kind == "class_definition":
                self._classes[self._class_name(child)] = _ClassEntry(child)
            elif kind == "decorated_definition":
                definition = child.child_by_field_name("definition")
                if definition is not None and definition.type == "class_definition":
                    decorators = [c for c in child.children if c.type == "decorator"]
                    self._classes[self._class_name(definition)] = _ClassEntry(definition, decorators)
            elif kind == "expression_statement":
                for statement in self._named_children(child):
                    if statement.type == "assignment":
                        self._index_assignment(statement)
            elif kind == "import_from_statement":
                self._index_import(child)
            elif kind == "if_statement":
                # TYPE_CHECKING blocks carry imports too
                consequence = child.child_by_field_name("consequence")
                if consequence is not None:
                    self._index_block(consequence)

    def _index_import(self, node) -> None:
        module_node = node.child_by_field_name("module_name")
        if module_node is None:
            return
        module = self._node_text(module_node)
        for name_node in node.children_by_field_name("name"):
            if name_node.type == "dotted_name":
                self._imports[self._node_text(name_node)] = module

    def _index_assignment(self, node) -> None:
        left = node.child_by_field_name(self.ASSIGN_LEFT_FIELD)
        right = node.child_by_field_name(self.ASSIGN_RIGHT_FIELD)
        if left is None or right is None or left.type != "identifier":
            return
        name = self._node_text(left)
        if right.type == "call":
            function = right.child_by_field_name("function")
            if function is not None and self._node_text(function).rsplit(".", 1)[-1] == "TypeVar":
                bound = None
                arguments = right.child_by_field_name("arguments")
                for argument in self._named_children(arguments) if arguments is not None else []:
                    if argument.type != "keyword_argument":
                        continue
                    if self._node_text(argument.child_by_field_name("name")) == "bound":
                        bound = TypeRef(name=self._node_text(argument.child_by_field_name("value")).strip("\"'"))
                self._type_vars[name] = TypeParameterModel(name=name, bound=bound)
            return
        if right.type in ("subscript", "generic_type"):
            base = right.child_by_field_name("value") or self._named_children(right)[0]
            if self._node_text(base).rsplit(".", 1)[-1] in constants.CALLABLE_NAMES:
                self._aliases[name] = right

    def _type_context(self) -> TypeContext:
        interfaces = frozenset(n for n in self._classes if self._is_protocol(n))
        return TypeContext(
            module=self._module,
            imports=dict(self._imports),
            interfaces=interfaces,
            classes={
                n: self._constructible(n)
                for n, entry in self._classes.items()
                if n not in interfaces and self._request_kind(entry) is None
            },
            type_vars=frozenset(self._type_vars),
        )

    def _reparse(self, text: str) -> tuple[AnnotationReader, object] | None:
        parsed = self._parser.parse(f"_: {text}\n")
        statement = self._named_children(parsed.root)
        if not statement or statement[0].type != "expression_statement":
            return None
        assignment = self._named_children(statement[0])[0]
        type_node = assignment.child_by_field_name(self.ASSIGN_TYPE_FIELD)
        if type_node is None:
            return None
        return AnnotationReader(parsed.source, self._annotations.context, self._reparse), type_node

    # ── small node helpers ───────────────────────────────────────

    def _class_name(self, node) -> str:
        return self._node_text(node.child_by_field_name(self.CLASS_NAME_FIELD))

    def _decorator_name(self, decorator) -> str:
        expression = self._named_children(decorator)[0]
        if expression.type == "call":
            expression = expression.child_by_field_name("function")
        return self._node_text(expression)

    def _short_decorators(self, decorators: list) -> list[str]:
        return [self._decorator_name(d).rsplit(".", 1)[-1] for d in decorators]

    def _request_kind(self, entry: _ClassEntry) -> str | None:
        for name in self._short_decorators(entry.decorators):
            if name in (constants.STUB_DECORATOR, constants.INLINE_STUBS_DECORATOR):
                return name
        return None

    def _base_nodes(self, class_node) -> list:
        bases = class_node.child_by_field_name(self.CLASS_BASES_FIELD)
        if bases is None:
            return []
        return [b for b in self._named_children(bases) if b.type != "keyword_argument"]

    def _base_name(self, node) -> str:
        if node.type in ("subscript", "generic_type"):
            node = node.child_by_field_name("value") or self._named_children(node)[0]
        return self._node_text(node)

    def _base_names(self, class_node) -> list[str]:
        return [self._base_name(b) for b in self._base_nodes(class_node)]

    def _is_protocol(self, name: str) -> bool:
        entry = self._classes.get(name)
        if entry is None:
            return False
        return any(
            b.rsplit(".", 1)[-1] == constants.PROTOCOL_BASE for b in self._base_names(entry.node)
        )

    def _body_definitions(self, class_node):
        """(definition node, decorator nodes) for each statement of a class body."""
        body = class_node.child_by_field_name(self.CLASS_BODY_FIELD)
        if body is None:
            return
        for child in self._named_children(body):
            if child.type == "decorated_definition":
                definition = child.child_by_field_name("definition")
                yield definition, [c for c in child.children if c.type == "decorator"]
            else:
                yield child, []

    def _function_name(self, node) -> str:
        return self._node_text(node.child_by_field_name(self.FUNC_NAME_FIELD))

    def _constructible(self, name: str, seen: frozenset[str] = frozenset()) -> bool:
        """True when the class can be instantiated with no arguments."""
        entry = self._classes.get(name)
        if entry is None or name in seen:
            return False
        init_found = False
        for definition, decorators in self._body_definitions(entry.node):
            if definition is None or definition.type != "function_definition":
                continue
            short = self._short_decorators(decorators)
            if constants.ABSTRACT_DECORATOR in short:
                return False
            if self._function_name(definition) == "__init__" and constants.OVERLOAD_DECORATOR not in short:
                init_found = True
                params = self._parameters(definition, frozenset())
                if any(
                    p.default is None
                    and p.kind in (ParameterKind.POSITIONAL, ParameterKind.KEYWORD_ONLY)
                    for p in params
                ):
                    return False
        if init_found:
            return True
        local_bases = [b for b in self._base_names(entry.node) if b in self._classes]
        if local_bases:
            return self._constructible(local_bases[0], seen | {name})
        return True

    # ── type parameters ──────────────────────────────────────────

    def _declared_type_parameters(self, node) -> list[TypeParameterModel]:
        """PEP 695 ``[T, U: Bound]`` parameters of a class or function."""
        params_node = node.child_by_field_name(self.FUNC_TYPE_PARAMS_FIELD)
        if params_node is None:
            return []
        result = []
        for child in self._named_children(params_node):
            text = self._node_text(child)
            name, _, bound = text.partition(":")
            name = name.strip().lstrip("*")
            bound_ref = None
            if bound.strip():
                bound_ref = TypeRef(name=bound.strip())
            result.append(TypeParameterModel(name=name, bound=bound_ref))
        return result

    def _class_type_parameters(self, class_node) -> list[TypeParameterModel]:
        params = self._declared_type_parameters(class_node)
        names = {p.name for p in params}
        for base in self._base_nodes(class_node):
            if base.type not in ("subscript", "generic_type"):
                continue
            for node in base.children_by_field_name("subscript") or self._named_children(base)[1:]:
                for candidate in [node] + self._named_children(node):
                    text = self._node_text(candidate)
                    if text in self._type_vars and text not in names:
                        names.add(text)
                        params.append(self._type_vars[text])
        return params

    # ── parameters and types ─────────────────────────────────────

    @property
    def _annotations(self) -> AnnotationReader:
        if self._reader is None:
            raise ValueError("Annotations cannot be read before the module is indexed")
        return self._reader

    def _read(self, node, scope: frozenset[str]) -> TypeRef:
        return self._annotations.read(node, scope)

    def _peel(self, type_ref: TypeRef) -> tuple[TypeRef, PassingMode]:
        marker = type_ref.name.rsplit(".", 1)[-1]
        if marker in _PASSING_MARKERS and len(type_ref.args) == 1:
            return type_ref.args[0], _PASSING_MARKERS[marker]
        return type_ref, PassingMode.BY_VALUE

    def _parameters(
        self, function_node, scope: frozenset[str], skip_first: bool = True
    ) -> tuple[ParameterModel, ...]:
        params_node = function_node.child_by_field_name(self.FUNC_PARAMS_FIELD)
        if params_node is None:
            return ()
        reader_ready = self._reader is not None
        result: list[ParameterModel] = []
        kind = ParameterKind.POSITIONAL
        skipping = skip_first
        for child in self._named_children(params_node):
            node_type = child.type
            if node_type == "keyword_separator":
                kind = ParameterKind.KEYWORD_ONLY
                continue
            if node_type == "positional_separator":
                continue
            if skipping:
                skipping = False
                continue

            name, annotation, default, param_kind = None, None, None, kind
            if node_type == "identifier":
                name = self._node_text(child)
            elif node_type in ("typed_parameter", "list_splat_pattern", "dictionary_splat_pattern"):
                target = child if node_type != "typed_parameter" else self._named_children(child)[0]
                annotation = child.child_by_field_name("type") if node_type == "typed_parameter" else None
                if target.type == "list_splat_pattern":
                    param_kind = ParameterKind.VAR_POSITIONAL
                    name = self._node_text(self._named_children(target)[0])
                    kind = ParameterKind.KEYWORD_ONLY
                elif target.type == "dictionary_splat_pattern":
                    param_kind = ParameterKind.VAR_KEYWORD
                    name = self._node_text(self._named_children(target)[0])
                else:
                    name = self._node_text(target)
            elif node_type in ("default_parameter", "typed_default_parameter"):
                name = self._node_text(child.child_by_field_name("name"))
                annotation = child.child_by_field_name("type")
                default = self._node_text(child.child_by_field_name("value"))
            else:
                continue

            if annotation is not None and reader_ready:
                type_ref, mode = self._peel(self._read(annotation, scope))
            else:
                type_ref, mode = ANY, PassingMode.BY_VALUE
            result.append(
                ParameterModel(
                    name=name, type=type_ref, passing_mode=mode, kind=param_kind, default=default
                )
            )
        return tuple(result)

    def _return_type(self, function_node, scope: frozenset[str]) -> TypeRef:
        node = function_node.child_by_field_name(self.FUNC_RETURN_FIELD)
        if node is None:
            return ANY
        return self._read(node, scope)

    @staticmethod
    def _is_async(function_node) -> bool:
        return any(c.type == "async" for c in function_node.children)

    def _method(self, node, decorators: list[str], scope: frozenset[str], is_abstract: bool) -> MethodMember:
        own = self._declared_type_parameters(node)
        method_scope = scope | frozenset(p.name for p in own)
        parameters = self._parameters(node, method_scope)
        return_type = self._return_type(node, method_scope)

        type_parameters = list(own)
        seen = {p.name for p in own} | set(scope)
        for type_ref in [return_type] + [p.type for p in parameters]:
            for nested in type_ref.walk():
                if nested.is_type_parameter and nested.name not in seen:
                    seen.add(nested.name)
                    type_parameters.append(
                        self._type_vars.get(nested.name, TypeParameterModel(name=nested.name))
                    )
        name = self._function_name(node)
        return MethodMember(
            name=name,
            return_type=return_type,
            parameters=parameters,
            type_parameters=tuple(type_parameters),
            is_async=self._is_async(node),
            is_abstract=is_abstract,
            accessibility=_accessibility(name),
        )

    # ── events ───────────────────────────────────────────────────

    def _callable_signature(self, callable_ref: TypeRef) -> tuple[tuple[ParameterModel, ...], TypeRef]:
        if callable_ref.kind != TypeKind.CALLABLE or len(callable_ref.args) != 2:
            return (), ANY
        params_ref, return_ref = callable_ref.args
        params: tuple[ParameterModel, ...] = ()
        if params_ref.kind == TypeKind.PARAM_LIST:
            params = tuple(
                ParameterModel(name=f"arg{i}", type=self._peel(t)[0], passing_mode=self._peel(t)[1])
                for i, t in enumerate(params_ref.args, start=1)
            )
        elif params_ref.name == "...":
            params = (
                ParameterModel(name="args", type=ANY, kind=ParameterKind.VAR_POSITIONAL),
            )
        return params, return_ref

    def _event(self, name: str, event_ref: TypeRef, is_abstract: bool) -> EventMember:
        handler = event_ref.args[0] if event_ref.args else ANY
        payload, returns = self._callable_signature(handler)
        if returns.kind == TypeKind.FUTURE:
            shape, return_type, is_async = EventShape.ASYNC, None, True
        elif returns.is_void:
            shape, return_type, is_async = EventShape.VOID, None, False
        else:
            shape, return_type, is_async = EventShape.RESULT, returns, False
        return EventMember(
            name=name,
            payload_params=payload,
            return_type=return_type,
            is_async_kind=is_async,
            shape_kind=shape,
            is_abstract=is_abstract,
            accessibility=_accessibility(name),
        )

    # ── members ──────────────────────────────────────────────────

    def _members(
        self, class_node, scope: frozenset[str], is_protocol: bool
    ) -> tuple[list[PropertyMember | MethodMember], list[EventMember]]:
        order: list[tuple[str, object]] = []
        properties: dict[str, _PropertyDraft] = {}
        indexers: dict[str, _IndexerDraft] = {}
        overloaded: set[str] = set()
        events: list[EventMember] = []

        for definition, decorator_nodes in self._body_definitions(class_node):
            if definition is None:
                continue
            if definition.type == "expression_statement":
                for statement in self._named_children(definition):
                    if statement.type == "assignment":
                        self._annotated_attribute(statement, scope, properties, order, events)
                continue
            if definition.type != "function_definition":
                continue

            decorators = [self._decorator_name(d) for d in decorator_nodes]
            short = [d.rsplit(".", 1)[-1] for d in decorators]
            name = self._function_name(definition)
            if any(d in _SKIPPED_DECORATORS for d in short):
                continue
            if _accessibility(name) == Accessibility.PRIVATE:
                continue
            is_abstract = is_protocol or constants.ABSTRACT_DECORATOR in short
            is_overload = constants.OVERLOAD_DECORATOR in short
            if name in overloaded and not is_overload:
                # The implementation behind a set of @overload declarations
                continue
            if is_overload:
                overloaded.add(name)

            if constants.PROPERTY_DECORATOR in short:
                returns = self._return_type(definition, scope)
                properties[name] = _PropertyDraft(
                    name, returns, True, False, is_abstract, _accessibility(name)
                )
                order.append(("property", name))
                continue
            if any(d.endswith(".setter") for d in decorators):
                if name in properties:
                    properties[name].has_setter = True
                continue
            if any(d.endswith(".deleter") for d in decorators):
                continue

            if name in (constants.INDEXER_GET, constants.INDEXER_SET):
                self._indexer_method(definition, name, scope, is_abstract, indexers, order)
                continue
            if name.startswith("__") and name not in constants.STUBBABLE_DUNDERS:
                continue
            order.append(("method", self._method(definition, short, scope, is_abstract)))

        members: list[PropertyMember | MethodMember] = []
        for kind, payload in order:
            if kind == "method":
                members.append(payload)
            elif kind == "property":
                draft = properties[payload]
                members.append(
                    PropertyMember(
                        name=draft.name,
                        type=draft.type,
                        has_getter=draft.has_getter,
                        has_setter=draft.has_setter,
                        is_abstract=draft.is_abstract,
                        accessibility=draft.accessibility,
                    )
                )
            elif kind == "indexer":
                draft = indexers[payload]
                members.append(
                    PropertyMember(
                        name=constants.INDEXER_ATTR,
                        type=draft.type,
                        has_getter=draft.has_getter,
                        has_setter=draft.has_setter,
                        is_indexer=True,
                        index_params=draft.key_params,
                        is_abstract=draft.is_abstract,
                    )
                )
        return members, events

    def _annotated_attribute(self, statement, scope, properties, order, events) -> None:
        left = statement.child_by_field_name(self.ASSIGN_LEFT_FIELD)
        annotation = statement.child_by_field_name(self.ASSIGN_TYPE_FIELD)
        if left is None or annotation is None or left.type != "identifier":
            return
        name = self._node_text(left)
        if _accessibility(name) == Accessibility.PRIVATE:
            return
        type_ref = self._read(annotation, scope)
        marker = type_ref.name.rsplit(".", 1)[-1]
        if marker == "ClassVar":
            return
        if marker == constants.EVENT_MARKER:
            events.append(self._event(name, type_ref, True))
            return
        # Annotated attributes are instance state the stub owns
        properties[name] = _PropertyDraft(name, type_ref, True, True, True, _accessibility(name))
        order.append(("property", name))

    def _indexer_method(self, definition, name, scope, is_abstract, indexers, order) -> None:
        parameters = self._parameters(definition, scope)
        if not parameters:
            return
        if name == constants.INDEXER_GET:
            keys, value_type = parameters, self._return_type(definition, scope)
        else:
            keys, value_type = parameters[:-1], parameters[-1].type
        key_types = tuple(k.type for k in keys)
        # Subscripts always receive one key object, a tuple for several keys
        key_id = "|".join(t.display() for t in key_types)
        draft = indexers.get(key_id)
        if draft is None:
            draft = indexers[key_id] = _IndexerDraft(key_params=keys, type=value_type, is_abstract=is_abstract)
            order.append(("indexer", key_id))
        if name == constants.INDEXER_GET:
            draft.has_getter = True
            draft.type = value_type
        else:
            draft.has_setter = True

    # ── declarations ─────────────────────────────────────────────

    def _full_name(self, name: str) -> str:
        return f"{self._module}.{name}" if self._module else name

    def _declaration(self, name: str) -> InterfaceModel | ClassModel:
        if name in self._models:
            return self._models[name]  # type: ignore[return-value]
        if self._is_protocol(name):
            model: InterfaceModel | ClassModel = self._interface(name)
        else:
            model = self._class(name)
        self._models[name] = model
        return model

    def _interface(self, name: str) -> InterfaceModel:
        entry = self._classes[name]
        self._building.add(name)
        type_parameters = self._class_type_parameters(entry.node)
        scope = frozenset(p.name for p in type_parameters)
        members, events = self._members(entry.node, scope, is_protocol=True)

        names = {m.name for m in members} | {e.name for e in events}
        for base in self._base_names(entry.node):
            if base in self._building or not self._is_protocol(base):
                continue
            parent = self._declaration(base)
            for member in parent.members:
                if member.name not in names:
                    members.append(member)
            for event in parent.events:
                if event.name not in names:
                    events.append(event)
            names |= parent.member_names()
        self._building.discard(name)
        logger.debug("Interface %s: %d member(s), %d event(s)", name, len(members), len(events))
        return InterfaceModel(
            full_name=self._full_name(name),
            simple_name=name,
            module=self._module,
            members=tuple(members),
            events=tuple(events),
            type_parameters=tuple(type_parameters),
        )

    def _constructors(self, class_node, scope: frozenset[str]) -> list[ConstructorModel]:
        overloads: list[ConstructorModel] = []
        implementation: list[ConstructorModel] = []
        for definition, decorator_nodes in self._body_definitions(class_node):
            if definition is None or definition.type != "function_definition":
                continue
            if self._function_name(definition) != "__init__":
                continue
            ctor = ConstructorModel(parameters=self._parameters(definition, scope))
            if constants.OVERLOAD_DECORATOR in self._short_decorators(decorator_nodes):
                overloads.append(ctor)
            else:
                implementation = [ctor]
        return overloads or implementation

    def _class(self, name: str) -> ClassModel:
        entry = self._classes[name]
        self._building.add(name)
        scope = frozenset(p.name for p in self._class_type_parameters(entry.node))
        members, events = self._members(entry.node, scope, is_protocol=False)
        constructors = self._constructors(entry.node, scope)

        base = None
        for base_name in self._base_names(entry.node):
            if base_name in self._classes and base_name not in self._building and not self._is_protocol(base_name):
                candidate = self._declaration(base_name)
                if isinstance(candidate, ClassModel):
                    base = candidate
                    break
        if not constructors and base is not None:
            constructors = list(base.constructors)
        self._building.discard(name)
        return ClassModel(
            full_name=self._full_name(name),
            simple_name=name,
            module=self._module,
            members=tuple(members),
            events=tuple(events),
            constructors=tuple(constructors),
            base=base,
            is_sealed=constants.FINAL_DECORATOR in self._short_decorators(entry.decorators),
        )

    def _callable(self, name: str) -> CallableModel:
        if name in self._models:
            return self._models[name]  # type: ignore[return-value]
        callable_ref = self._read(self._aliases[name], frozenset())
        parameters, returns = self._callable_signature(callable_ref)
        model = CallableModel(
            full_name=self._full_name(name),
            simple_name=name,
            module=self._module,
            parameters=parameters,
            return_type=VOID if returns.is_void else returns,
        )
        self._models[name] = model
        return model

    # ── stub requests ────────────────────────────────────────────

    def _request(self, stub_name: str, targets: list[tuple[str, object]], bag: DiagnosticBag, shell: bool,
                 user_methods: tuple[UserMethodModel, ...] = ()) -> StubRequest:
        interfaces: list[InterfaceModel] = []
        base_class: ClassModel | None = None
        callable_type: CallableModel | None = None
        for target, node in targets:
            if target in self._aliases:
                callable_type = self._callable(target)
            elif target in self._classes and self._request_kind(self._classes[target]) is None:
                model = self._declaration(target)
                if isinstance(model, InterfaceModel):
                    interfaces.append(model)
                elif base_class is None:
                    base_class = model
                else:
                    bag.report(Descriptors.MIXED_TARGETS, stub_name, location=self._location(node))
            else:
                bag.report(
                    Descriptors.UNKNOWN_DECLARATION, stub_name, target, location=self._location(node)
                )
        return StubRequest(
            stub_name=stub_name,
            interfaces=tuple(interfaces),
            base_class=base_class,
            callable_type=callable_type,
            user_methods=user_methods,
            shell=shell,
        )

    def _user_methods(self, class_node) -> tuple[UserMethodModel, ...]:
        methods = []
        for definition, decorator_nodes in self._body_definitions(class_node):
            if definition is None or definition.type != "function_definition":
                continue
            name = self._function_name(definition)
            if not _is_user_method(name):
                continue
            if any(d in _SKIPPED_DECORATORS for d in self._short_decorators(decorator_nodes)):
                continue
            methods.append(
                UserMethodModel(
                    name=name,
                    return_type=self._return_type(definition, frozenset()),
                    parameters=self._parameters(definition, frozenset()),
                    is_async=self._is_async(definition),
                )
            )
        return tuple(methods)

    def _standalone_unit(self, name: str, entry: _ClassEntry, bag: DiagnosticBag) -> GenerationUnit:
        targets = [
            (self._base_name(b), b)
            for b in self._base_nodes(entry.node)
            if self._base_name(b).rsplit(".", 1)[-1] not in _NON_TARGET_BASES
        ]
        request = self._request(name, targets, bag, shell=True, user_methods=self._user_methods(entry.node))
        return GenerationUnit(requester=name, module=self._module, requests=(request,), inline=False)

    def _inline_unit(self, name: str, entry: _ClassEntry, bag: DiagnosticBag) -> GenerationUnit:
        decorator = next(
            d for d in entry.decorators
            if self._decorator_name(d).rsplit(".", 1)[-1] == constants.INLINE_STUBS_DECORATOR
        )
        call = self._named_children(decorator)[0]
        arguments = call.child_by_field_name("arguments") if call.type == "call" else None
        requests = []
        for argument in self._named_children(arguments) if arguments is not None else []:
            if argument.type == "keyword_argument":
                continue
            target = self._base_name(argument)
            simple = target.rsplit(".", 1)[-1]
            requests.append(self._request(f"{simple}Stub", [(target, argument)], bag, shell=False))
        return GenerationUnit(requester=name, module=self._module, requests=tuple(requests), inline=True)

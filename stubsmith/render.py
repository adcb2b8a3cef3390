"""Renders a ModulePlan as Python source text.

All decisions were taken by the assembler; this module only lays them out.
The layout of the output is not a contract beyond being valid Python that
imports and runs.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from .assembler import (
    AsMethod,
    BackingField,
    BundlePlan,
    DispatchMode,
    DispatchPlan,
    EventRoute,
    FallbackChain,
    IndexerRoute,
    MethodRoute,
    ModulePlan,
    PropertyRoute,
    SignatureRow,
    StubPlan,
    ViewKind,
    ViewPlan,
)
from .generation_types import GeneratorConfig
from .generic_dispatch import GenericMethodRegistry
from .interceptors import (
    CallbackSlot,
    EventInterceptor,
    FieldSpec,
    IndexerInterceptor,
    InterceptorDefinition,
    MethodInterceptor,
    PropertyInterceptor,
    TrackingShape,
    tracked_annotation,
)
from .model import EventShape, MethodMember, ParameterKind, ParameterModel, PassingMode
from .naming import NameAccumulator

logger = logging.getLogger(__name__)


class CodeWriter:
    """Accumulates indented source lines."""

    def __init__(self, indent: str = "    "):
        self._indent = indent
        self._level = 0
        self._lines: list[str] = []

    def line(self, text: str = "") -> None:
        self._lines.append(self._indent * self._level + text if text else "")

    def lines(self, texts: list[str]) -> None:
        for text in texts:
            self.line(text)

    def blank(self, count: int = 1) -> None:
        for _ in range(count):
            self.line()

    @contextmanager
    def block(self, header: str) -> Iterator[None]:
        self.line(header)
        self._level += 1
        try:
            yield
        finally:
            self._level -= 1

    def text(self) -> str:
        return "\n".join(self._lines).rstrip() + "\n"


def _tuple_literal(items: list[str] | tuple[str, ...]) -> str:
    if len(items) == 1:
        return f"({items[0]},)"
    return "(" + ", ".join(items) + ")"


def _locals(parameters: list[str] | tuple[str, ...], *wanted: str) -> tuple[str, ...]:
    """Names for generated locals that cannot shadow any of *parameters*."""
    taken = NameAccumulator().reserve("self", *parameters)
    chosen: list[str] = []
    for name in wanted:
        claimed, taken = taken.claim(name)
        chosen.append(claimed)
    return tuple(chosen)


def call_arguments(params: tuple[ParameterModel, ...]) -> list[str]:
    arguments = []
    for p in params:
        if p.kind == ParameterKind.VAR_POSITIONAL:
            arguments.append(f"*{p.name}")
        elif p.kind == ParameterKind.VAR_KEYWORD:
            arguments.append(f"**{p.name}")
        elif p.kind == ParameterKind.KEYWORD_ONLY:
            arguments.append(f"{p.name}={p.name}")
        else:
            arguments.append(p.name)
    return arguments


class StubRenderer:
    def __init__(self, config: GeneratorConfig | None = None):
        self.config = config or GeneratorConfig()
        self.rt = self.config.runtime_alias

    # ── annotations ──────────────────────────────────────────────

    def param_annotation(self, param: ParameterModel) -> str:
        text = param.type.display()
        if param.passing_mode == PassingMode.OUT:
            return f"{self.rt}.Out[{text}]"
        if param.passing_mode == PassingMode.BY_REF:
            return f"{self.rt}.Ref[{text}]"
        return text

    def parameter_list(self, params: tuple[ParameterModel, ...]) -> list[str]:
        rendered: list[str] = []
        star_seen = False
        for p in params:
            annotation = self.param_annotation(p)
            if p.kind == ParameterKind.VAR_POSITIONAL:
                rendered.append(f"*{p.name}: {annotation}")
                star_seen = True
                continue
            if p.kind == ParameterKind.VAR_KEYWORD:
                rendered.append(f"**{p.name}: {annotation}")
                continue
            if p.kind == ParameterKind.KEYWORD_ONLY and not star_seen:
                rendered.append("*")
                star_seen = True
            default = f" = {p.default}" if p.default is not None else ""
            rendered.append(f"{p.name}: {annotation}{default}")
        return rendered

    def signature(self, name: str, params: tuple[ParameterModel, ...], returns: str, is_async: bool = False) -> str:
        prefix = "async def" if is_async else "def"
        joined = ", ".join(["self"] + self.parameter_list(params))
        return f"{prefix} {name}({joined}) -> {returns}:"

    def slot_annotation(self, slot: CallbackSlot, owner: str) -> str:
        args = [owner] + [self.param_annotation(p) for p in slot.parameters]
        returns = slot.return_type.display()
        if slot.is_async:
            returns = f"Awaitable[{returns}] | {returns}"
        return f"Callable[[{', '.join(args)}], {returns}] | None"

    # ── module ───────────────────────────────────────────────────

    def render(self, plan: ModulePlan) -> str:
        out = CodeWriter(self.config.indent)
        out.line(self.config.header)
        if self.config.emit_docstrings:
            out.line(f'"""Stubs generated for {plan.requester}."""')
        out.blank()
        out.line("from __future__ import annotations")
        out.blank()
        out.lines(self._import_lines(plan))
        out.blank(2)

        if plan.type_variables:
            for name in plan.type_variables:
                out.line(f'{name} = TypeVar("{name}")')
            out.blank(2)

        for stub in plan.stubs:
            self._render_support(out, plan, stub)

        if plan.inline:
            with out.block(f"class {self.config.inline_container}:"):
                if self.config.emit_docstrings:
                    out.line(f'"""Inline stubs requested by {plan.requester}."""')
                for index, stub in enumerate(plan.stubs):
                    if index or self.config.emit_docstrings:
                        out.blank()
                    self._render_stub(out, plan, stub)
        else:
            for index, stub in enumerate(plan.stubs):
                if index:
                    out.blank(2)
                self._render_stub(out, plan, stub)

        source = out.text()
        logger.debug("Rendered %d line(s) for %s", source.count("\n"), plan.requester)
        return source

    def _import_lines(self, plan: ModulePlan) -> list[str]:
        typing_names = {"Any", "Callable"}
        if plan.type_variables:
            typing_names.add("TypeVar")
        if any(d.mode == DispatchMode.CALL for s in plan.stubs for d in s.dispatches):
            typing_names.add("overload")
        if any(r.member.is_async for s in plan.stubs for r in s.methods) or any(
            e.member.shape_kind == EventShape.ASYNC for s in plan.stubs for e in s.events
        ):
            typing_names.add("Awaitable")

        by_module: dict[str, list[str]] = {}
        for module, name in plan.imports:
            if module == "typing":
                typing_names.add(name)
                continue
            names = by_module.setdefault(module, [])
            if name not in names:
                names.append(name)

        lines = [f"from typing import {', '.join(sorted(typing_names))}", ""]
        package, _, leaf = self.config.runtime_module.rpartition(".")
        if package:
            lines.append(f"from {package} import {leaf} as {self.rt}")
        else:
            lines.append(f"import {leaf} as {self.rt}")
        for module, names in by_module.items():
            lines.append(f"from {module} import {', '.join(names)}")
        for stub in plan.stubs:
            if stub.shell and plan.module:
                lines.append(f"from {plan.module} import {stub.name} as {self._shell_alias(stub)}")
        return lines

    def _shell_alias(self, stub: StubPlan) -> str:
        return f"_{stub.name}Shell"

    def _owner(self, plan: ModulePlan, stub_name: str) -> str:
        if plan.inline:
            return f"{self.config.inline_container}.{stub_name}"
        return stub_name

    # ── support classes ──────────────────────────────────────────

    def _render_support(self, out: CodeWriter, plan: ModulePlan, stub: StubPlan) -> None:
        owner = self._owner(plan, stub.name)
        if stub.callable_interceptor is not None:
            self._render_interceptor(out, stub.callable_interceptor, owner)
            out.blank(2)
        for bundle in stub.bundles:
            for entry in bundle.interceptors:
                if isinstance(entry, GenericMethodRegistry):
                    self._render_registry(out, entry, owner)
                else:
                    self._render_interceptor(out, entry, owner)
                out.blank(2)
            self._render_bundle(out, bundle)
            out.blank(2)
        for view in stub.views:
            self._render_view(out, view, owner)
            out.blank(2)
        for dispatch in stub.dispatches:
            self._render_table(out, dispatch)
            out.blank(2)

    def _render_interceptor(self, out: CodeWriter, definition: InterceptorDefinition, owner: str) -> None:
        with out.block(f"class {definition.class_name}:"):
            if self.config.emit_docstrings:
                out.line(f'"""{self._interceptor_doc(definition)}"""')
                out.blank()
            self._render_fields(out, definition.fields, owner)
            if isinstance(definition, MethodInterceptor):
                self._render_method_interceptor(out, definition)
            elif isinstance(definition, PropertyInterceptor):
                self._render_property_interceptor(out, definition)
            elif isinstance(definition, IndexerInterceptor):
                self._render_indexer_interceptor(out, definition)
            elif isinstance(definition, EventInterceptor):
                self._render_event_interceptor(out, definition)
            out.blank()
            self._render_reset(out, definition.fields)
            if isinstance(definition, EventInterceptor):
                out.blank()
                with out.block("def clear(self) -> None:"):
                    out.line("self._handlers.clear()")
                    out.line("self.reset()")

    @staticmethod
    def _interceptor_doc(definition: InterceptorDefinition) -> str:
        if isinstance(definition, PropertyInterceptor):
            return f"Tracks reads and writes of {definition.member_label}."
        if isinstance(definition, IndexerInterceptor):
            return f"Tracks keyed access through {definition.member_label}."
        if isinstance(definition, EventInterceptor):
            return f"Tracks subscriptions to and raises of {definition.member_label}."
        return f"Tracks calls to {definition.member_label}."

    def _render_fields(self, out: CodeWriter, fields: tuple[FieldSpec, ...], owner: str) -> None:
        with out.block("def __init__(self) -> None:"):
            if not fields:
                out.line("pass")
            for f in fields:
                annotation = self.slot_annotation(f.slot, owner) if f.slot is not None else f.annotation
                out.line(f"self.{f.name}: {annotation} = {f.initial}")

    @staticmethod
    def _render_reset(out: CodeWriter, fields: tuple[FieldSpec, ...]) -> None:
        with out.block("def reset(self) -> None:"):
            resettable = [f for f in fields if f.resettable]
            if not resettable:
                out.line("pass")
            for f in resettable:
                out.line(f"self.{f.name} = {f.initial}")

    def _verify(self, out: CodeWriter, name: str, label: str, counter: str) -> None:
        out.blank()
        with out.block(f"def {name}(self, times: {self.rt}.Times) -> None:"):
            out.line(f'{self.rt}.check_times("{label}", self.{counter}, times)')

    def _render_method_interceptor(self, out: CodeWriter, definition: MethodInterceptor) -> None:
        out.blank()
        out.line("@property")
        with out.block("def was_called(self) -> bool:"):
            out.line("return self.call_count > 0")

        tracked = definition.tracked
        if definition.tracking != TrackingShape.NONE:
            annotation = (
                tracked_annotation(tracked[0])
                if definition.tracking == TrackingShape.SINGLE
                else "tuple[" + ", ".join(tracked_annotation(p) for p in tracked) + "]"
            )
            out.blank()
            out.line("@property")
            with out.block(f"def all_calls(self) -> list[{annotation}]:"):
                out.line("return list(self._calls)")

        params = ", ".join(["self"] + [f"{p.name}: {tracked_annotation(p)}" for p in tracked])
        out.blank()
        with out.block(f"def record_call({params}) -> None:"):
            out.line("self.call_count += 1")
            if definition.tracking == TrackingShape.SINGLE:
                out.line(f"self.last_call_arg = {tracked[0].name}")
                out.line(f"self._calls.append({tracked[0].name})")
            elif definition.tracking == TrackingShape.TUPLE:
                out.line(f"self.last_call_args = {_tuple_literal([p.name for p in tracked])}")
                out.line("self._calls.append(self.last_call_args)")
        self._verify(out, "verify", definition.member_label, "call_count")

    def _render_property_interceptor(self, out: CodeWriter, definition: PropertyInterceptor) -> None:
        if definition.has_getter:
            out.blank()
            with out.block("def record_get(self) -> None:"):
                out.line("self.get_count += 1")
            self._verify(out, "verify_get", definition.member_label, "get_count")
        if definition.has_setter:
            out.blank()
            with out.block(f"def record_set(self, value: {definition.value_type.display()}) -> None:"):
                out.line("self.set_count += 1")
                out.line("self.last_set_value = value")
            self._verify(out, "verify_set", definition.member_label, "set_count")

    def _render_indexer_interceptor(self, out: CodeWriter, definition: IndexerInterceptor) -> None:
        key = definition.key_annotation
        value = definition.value_type.display()
        if definition.has_getter:
            out.blank()
            out.line("@property")
            with out.block(f"def all_get_keys(self) -> list[{key}]:"):
                out.line("return list(self._get_keys)")
            out.blank()
            with out.block(f"def record_get(self, key: {key}) -> None:"):
                out.line("self.get_count += 1")
                out.line("self.last_get_key = key")
                out.line("self._get_keys.append(key)")
            self._verify(out, "verify_get", definition.member_label, "get_count")
        if definition.has_setter:
            out.blank()
            out.line("@property")
            with out.block(f"def all_set_entries(self) -> list[tuple[{key}, {value}]]:"):
                out.line("return list(self._set_entries)")
            out.blank()
            with out.block(f"def record_set(self, key: {key}, value: {value}) -> None:"):
                out.line("self.set_count += 1")
                out.line("self.last_set_entry = (key, value)")
                out.line("self._set_entries.append(self.last_set_entry)")
            self._verify(out, "verify_set", definition.member_label, "set_count")

    def _render_event_interceptor(self, out: CodeWriter, definition: EventInterceptor) -> None:
        payload = definition.payload
        out.blank()
        out.line("@property")
        with out.block("def has_subscribers(self) -> bool:"):
            out.line("return bool(self._handlers)")
        if payload:
            annotation = (
                tracked_annotation(payload[0])
                if len(payload) == 1
                else "tuple[" + ", ".join(tracked_annotation(p) for p in payload) + "]"
            )
            out.blank()
            out.line("@property")
            with out.block("def raise_count(self) -> int:"):
                out.line("return len(self._raises)")
            out.blank()
            out.line("@property")
            with out.block(f"def last_raise_args(self) -> {annotation} | None:"):
                out.line("return self._raises[-1] if self._raises else None")
            out.blank()
            out.line("@property")
            with out.block(f"def all_raises(self) -> list[{annotation}]:"):
                out.line("return list(self._raises)")
        out.blank()
        out.line("@property")
        with out.block("def was_raised(self) -> bool:"):
            out.line("return self.raise_count > 0")
        out.blank()
        with out.block("def add(self, handler: Callable[..., Any]) -> None:"):
            out.line("self.subscribe_count += 1")
            out.line("self._handlers.append(handler)")
        out.blank()
        with out.block("def remove(self, handler: Callable[..., Any]) -> None:"):
            out.line("self.unsubscribe_count += 1")
            with out.block("if handler in self._handlers:"):
                out.line("self._handlers.remove(handler)")

        params = ", ".join(["self"] + [f"{p.name}: {self.param_annotation(p)}" for p in payload])
        arguments = ", ".join(p.name for p in payload)
        if definition.shape == EventShape.ASYNC:
            header = f"async def raise_event_async({params}) -> None:"
        elif definition.shape == EventShape.RESULT and definition.return_type is not None:
            header = f"def raise_event({params}) -> {definition.return_type.display()}:"
        else:
            header = f"def raise_event({params}) -> None:"
        handler, result = _locals([p.name for p in payload], "_handler", "_result")
        out.blank()
        with out.block(header):
            if not payload:
                out.line("self.raise_count += 1")
            elif len(payload) == 1:
                out.line(f"self._raises.append({payload[0].name})")
            else:
                out.line(f"self._raises.append({_tuple_literal([p.name for p in payload])})")
            if definition.shape == EventShape.RESULT:
                out.line(f"{result} = {definition.default_result}")
                with out.block(f"for {handler} in list(self._handlers):"):
                    out.line(f"{result} = {handler}({arguments})")
                out.line(f"return {result}")
            elif definition.shape == EventShape.ASYNC:
                with out.block(f"for {handler} in list(self._handlers):"):
                    out.line(f"await {handler}({arguments})")
            else:
                with out.block(f"for {handler} in list(self._handlers):"):
                    out.line(f"{handler}({arguments})")

    def _render_registry(self, out: CodeWriter, registry: GenericMethodRegistry, owner: str) -> None:
        typed = f"{registry.class_name}.{registry.nested.class_name}"
        with out.block(f"class {registry.class_name}:"):
            if self.config.emit_docstrings:
                out.line(f'"""Per-type-argument interceptors for {registry.member_label}."""')
                out.blank()
            self._render_interceptor(out, registry.nested, owner)
            out.blank()
            with out.block("def __init__(self) -> None:"):
                out.line(f"self._typed: dict[tuple[type, ...], {typed}] = {{}}")
            out.blank()
            with out.block(f"def of(self, *type_args: type) -> {typed}:"):
                out.line('"""Interceptor for one combination of type arguments, created on first use."""')
                with out.block(f"if len(type_args) != {registry.arity}:"):
                    out.line(
                        f'raise TypeError(f"{registry.member_label} takes {registry.arity} '
                        f'type argument(s), got {{len(type_args)}}")'
                    )
                out.line("typed = self._typed.get(type_args)")
                with out.block("if typed is None:"):
                    out.line("typed = self._typed[type_args] = self.Typed()")
                out.line("return typed")
            out.blank()
            out.line("@property")
            with out.block("def total_call_count(self) -> int:"):
                out.line("return sum(typed.call_count for typed in self._typed.values())")
            out.blank()
            out.line("@property")
            with out.block("def was_called(self) -> bool:"):
                out.line("return self.total_call_count > 0")
            out.blank()
            out.line("@property")
            with out.block("def called_type_arguments(self) -> list[tuple[type, ...]]:"):
                out.line("return [key for key, typed in self._typed.items() if typed.call_count > 0]")
            out.blank()
            with out.block("def reset(self) -> None:"):
                with out.block("for typed in self._typed.values():"):
                    out.line("typed.reset()")
                out.line("self._typed.clear()")

    def _render_bundle(self, out: CodeWriter, bundle: BundlePlan) -> None:
        with out.block(f"class {bundle.class_name}:"):
            if self.config.emit_docstrings:
                out.line(f'"""Interceptors for {bundle.declaration} members."""')
                out.blank()
            with out.block("def __init__(self) -> None:"):
                if not bundle.interceptors:
                    out.line("pass")
                for entry in bundle.interceptors:
                    out.line(f"self.{entry.attribute} = {entry.class_name}()")
            out.blank()
            with out.block("def reset(self) -> None:"):
                if not bundle.interceptors:
                    out.line("pass")
                for entry in bundle.interceptors:
                    out.line(f"self.{entry.attribute}.reset()")

    def _render_view(self, out: CodeWriter, view: ViewPlan, owner: str) -> None:
        with out.block(f"class {view.class_name}:"):
            if self.config.emit_docstrings:
                out.line(f'"""{view.interface} members of {view.stub_name}, by their declared names."""')
                out.blank()
            with out.block(f"def __init__(self, stub: {owner}) -> None:"):
                out.line("self._stub = stub")
            for member in view.members:
                out.blank()
                if member.kind == ViewKind.METHOD:
                    with out.block(f"def {member.name}(self, *args: Any, **kwargs: Any) -> Any:"):
                        out.line(f"return self._stub.{member.target}(*args, **kwargs)")
                elif member.kind in (ViewKind.PROPERTY, ViewKind.EVENT):
                    out.line("@property")
                    with out.block(f"def {member.name}(self) -> Any:"):
                        out.line(f"return self._stub.{member.target}")
                    if member.settable:
                        out.blank()
                        out.line(f"@{member.name}.setter")
                        with out.block(f"def {member.name}(self, value: Any) -> None:"):
                            out.line(f"self._stub.{member.target} = value")
                elif member.kind == ViewKind.GETITEM:
                    with out.block("def __getitem__(self, key: Any) -> Any:"):
                        if member.target == "__getitem__":
                            out.line("return self._stub[key]")
                        else:
                            out.line(f"return self._stub.{member.target}(key)")
                else:
                    with out.block("def __setitem__(self, key: Any, value: Any) -> None:"):
                        if member.target == "__setitem__":
                            out.line("self._stub[key] = value")
                        else:
                            out.line(f"self._stub.{member.target}(key, value)")

    def _signature_expression(self, row: SignatureRow) -> str:
        return (
            f"{self.rt}.OverloadSignature("
            f"{_tuple_literal([repr(n) for n in row.names])}, "
            f"{_tuple_literal(list(row.checks))}, "
            f"{_tuple_literal([str(r) for r in row.required])}, "
            f"{_tuple_literal(list(row.kinds))})"
        )

    def _render_table(self, out: CodeWriter, dispatch: DispatchPlan) -> None:
        with out.block(f"{dispatch.table_name} = ("):
            for row in dispatch.rows:
                out.line(self._signature_expression(row) + ",")
        out.line(")")

    # ── stub class ───────────────────────────────────────────────

    def _bases(self, plan: ModulePlan, stub: StubPlan) -> str:
        if stub.shell:
            return self._shell_alias(stub) if plan.module else stub.name
        return ", ".join(stub.bases)

    def _render_stub(self, out: CodeWriter, plan: ModulePlan, stub: StubPlan) -> None:
        bases = self._bases(plan, stub)
        header = f"class {stub.name}({bases}):" if bases else f"class {stub.name}:"
        with out.block(header):
            if self.config.emit_docstrings:
                out.line(f'"""{self._stub_doc(stub)}"""')
                out.blank()
            self._render_init(out, stub)
            out.blank()
            with out.block("def reset_interceptors(self) -> None:"):
                if stub.callable_interceptor is not None:
                    out.line(f"self.{stub.callable_interceptor.attribute}.reset()")
                for bundle in stub.bundles:
                    out.line(f"self.{bundle.attribute}.reset()")
                if stub.callable_interceptor is None and not stub.bundles:
                    out.line("pass")
            for as_method in stub.as_methods:
                out.blank()
                self._render_as_method(out, as_method)
            for prop in stub.properties:
                out.blank()
                self._render_property(out, prop)
            for indexer in stub.indexers:
                self._render_indexer(out, indexer)
            for dispatch in stub.dispatches:
                out.blank()
                self._render_dispatch(out, dispatch)
            for route in stub.methods:
                out.blank()
                self._render_method(out, route)
            for event in stub.events:
                out.blank()
                self._render_event(out, event)

    @staticmethod
    def _stub_doc(stub: StubPlan) -> str:
        if stub.callable_interceptor is not None:
            return f"Callable stub recording every invocation in '{stub.callable_interceptor.attribute}'."
        if stub.is_class_stub:
            return f"Stub subclass of {', '.join(stub.bases)} with interceptable members."
        return f"Stub implementing {', '.join(stub.bases)}."

    def _render_init(self, out: CodeWriter, stub: StubPlan) -> None:
        strict = "strict: bool = False"
        forward = ""
        constructor = stub.constructor
        if constructor is not None and constructor.parameters is None:
            params = ["*args: Any", strict, "**kwargs: Any"]
            forward = "*args, **kwargs"
        elif constructor is not None and constructor.parameters:
            params = self.parameter_list(constructor.parameters)
            var_keyword = [p for p in params if p.startswith("**")]
            params = [p for p in params if not p.startswith("**")]
            if not any(p == "*" or p.startswith("*") for p in params):
                params.append("*")
            params += [strict] + var_keyword
            forward = ", ".join(call_arguments(constructor.parameters))
        else:
            params = ["*", strict]

        with out.block(f"def __init__({', '.join(['self'] + params)}) -> None:"):
            if stub.callable_interceptor is not None:
                interceptor = stub.callable_interceptor
                out.line(f"self.{interceptor.attribute} = {interceptor.class_name}()")
            for bundle in stub.bundles:
                out.line(f"self.{bundle.attribute} = {bundle.class_name}()")
            out.line("self.strict = strict")
            for backing in stub.backing_fields:
                self._render_backing(out, backing)
            for indexer in stub.indexers:
                key = indexer.keys[0].type.display() if len(indexer.keys) == 1 else (
                    "tuple[" + ", ".join(k.type.display() for k in indexer.keys) + "]"
                )
                out.line(f"self.{indexer.backing_map}: dict[{key}, {indexer.member.type.display()}] = {{}}")
            if constructor is not None:
                out.line(f"super().__init__({forward})")

    @staticmethod
    def _render_backing(out: CodeWriter, backing: BackingField) -> None:
        out.line(f"self.{backing.name}: {backing.annotation} = {backing.initial}")

    def _render_as_method(self, out: CodeWriter, as_method: AsMethod) -> None:
        with out.block(f"def {as_method.name}(self) -> {as_method.interface}:"):
            if as_method.view_class is None:
                out.line("return self")
            else:
                out.line(f"return {as_method.view_class}(self)  # type: ignore[return-value]")

    def _unconfigured(self, chain: FallbackChain) -> str:
        args = [f'"{chain.member_label}"', f'"{chain.slot}"']
        if chain.implementation_hint:
            args.append(f'"{chain.implementation_hint}"')
        return f"raise {self.rt}.UnconfiguredMemberError.for_member({', '.join(args)})"

    def _render_property(self, out: CodeWriter, route: PropertyRoute) -> None:
        member = route.member
        type_text = member.type.display()
        interceptor, value = _locals((), "_interceptor", "_value")
        out.line("@property")
        with out.block(f"def {route.name}(self) -> {type_text}:"):
            if not member.has_getter:
                out.line(f'raise AttributeError("{route.member_label} cannot be read")')
            else:
                out.line(f"{interceptor} = {route.interceptor_path}")
                out.line(f"{interceptor}.record_get()")
                with out.block(f"if {interceptor}.on_get is not None:"):
                    out.line(f"return {interceptor}.on_get(self)")
                if route.base_property:
                    out.line(f"return super().{member.name}")
                else:
                    if route.getter is not None:
                        with out.block("if self.strict:"):
                            out.line(self._unconfigured(route.getter))
                    out.line(f"{value} = self.{route.backing_field}")
                    if route.getter is not None and not route.getter.default.is_resolvable:
                        with out.block(f"if {value} is {self.rt}.UNSET:"):
                            out.line(self._unconfigured(route.getter))
                    out.line(f"return {value}")
        if not member.has_setter:
            return
        out.blank()
        out.line(f"@{route.name}.setter")
        with out.block(f"def {route.name}(self, value: {type_text}) -> None:"):
            out.line(f"{interceptor} = {route.interceptor_path}")
            out.line(f"{interceptor}.record_set(value)")
            with out.block(f"if {interceptor}.on_set is not None:"):
                out.line(f"{interceptor}.on_set(self, value)")
                out.line("return")
            if route.base_property:
                out.line(f'{self.rt}.base_attribute(super(), "{member.name}").__set__(self, value)')
            else:
                if route.setter is not None:
                    with out.block("if self.strict:"):
                        out.line(self._unconfigured(route.setter))
                out.line(f"self.{route.backing_field} = value")

    def _key_parts(self, route: IndexerRoute) -> tuple[str, str, str, str | None]:
        """(signature parameter, key expression, callback arguments, unpack line)."""
        keys = route.keys
        if len(keys) == 1:
            key = keys[0]
            return f"{key.name}: {key.type.display()}", key.name, key.name, None
        names = [k.name for k in keys]
        packed = "key" if "key" not in names else "index"
        annotation = "tuple[" + ", ".join(k.type.display() for k in keys) + "]"
        return (
            f"{packed}: {annotation}",
            packed,
            ", ".join(names),
            f"{', '.join(names)} = {packed}",
        )

    def _render_indexer(self, out: CodeWriter, route: IndexerRoute) -> None:
        parameter, key, arguments, unpack = self._key_parts(route)
        value_type = route.member.type.display()
        taken = [k.name for k in route.keys] + [key]
        interceptor, value = _locals(taken, "_interceptor", "value")
        if route.get_name is not None and route.getter is not None:
            chain = route.getter
            out.blank()
            with out.block(f"def {route.get_name}(self, {parameter}) -> {value_type}:"):
                if unpack:
                    out.line(unpack)
                out.line(f"{interceptor} = {route.interceptor_path}")
                out.line(f"{interceptor}.record_get({key})")
                with out.block(f"if {interceptor}.on_get is not None:"):
                    out.line(f"return {interceptor}.on_get(self, {arguments})")
                if route.base_call:
                    out.line(f'return {self.rt}.base_attribute(super(), "__getitem__")(self, {key})')
                else:
                    with out.block(f"if {key} in self.{route.backing_map}:"):
                        out.line(f"return self.{route.backing_map}[{key}]")
                    self._render_default(out, chain, is_async=False)
        if route.set_name is not None:
            out.blank()
            with out.block(f"def {route.set_name}(self, {parameter}, {value}: {value_type}) -> None:"):
                if unpack:
                    out.line(unpack)
                out.line(f"{interceptor} = {route.interceptor_path}")
                out.line(f"{interceptor}.record_set({key}, {value})")
                with out.block(f"if {interceptor}.on_set is not None:"):
                    out.line(f"{interceptor}.on_set(self, {arguments}, {value})")
                    out.line("return")
                if route.base_call:
                    out.line(f'{self.rt}.base_attribute(super(), "__setitem__")(self, {key}, {value})')
                else:
                    out.line(f"self.{route.backing_map}[{key}] = {value}")

    def _render_default(self, out: CodeWriter, chain: FallbackChain, is_async: bool) -> None:
        """Step 4 of the chain: strict check, then the default or an error."""
        with out.block("if self.strict:"):
            out.line(self._unconfigured(chain))
        default = chain.default
        if default.runtime_type is not None:
            value = f'{self.rt}.default_for_type({default.runtime_type}, "{chain.member_label}")'
        elif default.expression is not None:
            value = default.expression
        else:
            out.line(self._unconfigured(chain))
            return
        if default.completed:
            value = f"{self.rt}.Completed({value})"
        if value == "None":
            return
        out.line(f"return {value}")

    def _render_method(self, out: CodeWriter, route: MethodRoute) -> None:
        member = route.member
        chain = route.chain
        is_async = member.is_async
        returns = member.return_type.display()
        is_void = member.return_type.is_void
        arguments = ", ".join(["self"] + call_arguments(member.parameters))
        forwarded = ", ".join(call_arguments(member.parameters))
        awaiting = "await " if is_async else ""

        interceptor, result = _locals([p.name for p in member.parameters], "_interceptor", "_result")

        with out.block(self.signature(route.name, member.parameters, returns, is_async)):
            for name, default in route.out_defaults:
                out.line(f"{name}.value = {default}")
            out.line(f"{interceptor} = {route.interceptor_path}")
            out.line(f"{interceptor}.record_call({', '.join(route.record_args)})")
            with out.block(f"if {interceptor}.on_call is not None:"):
                if is_async:
                    out.line(f"{result} = {interceptor}.on_call({arguments})")
                    with out.block(f"if {self.rt}.is_awaitable({result}):"):
                        out.line(f"{result} = await {result}")
                    out.line("return" if is_void else f"return {result}")
                elif is_void:
                    out.line(f"{interceptor}.on_call({arguments})")
                    out.line("return")
                else:
                    out.line(f"return {interceptor}.on_call({arguments})")
            if chain.user_impl is not None:
                out.line(f"return {awaiting}self.{chain.user_impl}({forwarded})")
                return
            if chain.base_call:
                out.line(f"return {awaiting}super().{member.name}({forwarded})")
                return
            self._render_default(out, chain, is_async)

    def _render_dispatch(self, out: CodeWriter, dispatch: DispatchPlan) -> None:
        if dispatch.mode == DispatchMode.CALL:
            for overload in dispatch.overloads:
                self._render_overload_signature(out, dispatch.name, overload)
            header = f"def {dispatch.name}(self, *args: Any, **kwargs: Any) -> Any:"
            selected = "args, kwargs"
            forward = "*args, **kwargs"
        elif dispatch.mode == DispatchMode.GET:
            header = f"def {dispatch.name}(self, key: Any) -> Any:"
            selected = "(key,), {}"
            forward = "key"
        else:
            header = f"def {dispatch.name}(self, key: Any, value: Any) -> None:"
            selected = "(key,), {}"
            forward = "key, value"

        call = f'{self.rt}.select_overload({dispatch.table_name}, {selected}, "{dispatch.member_label}"'
        if dispatch.known_keywords:
            call += f", frozenset({_tuple_literal([repr(k) for k in dispatch.known_keywords])})"
        call += ")"
        keyword = "" if dispatch.mode == DispatchMode.SET else "return "
        with out.block(header):
            out.line(f"index = {call}")
            last = len(dispatch.targets)
            for index, target in enumerate(dispatch.targets, start=1):
                if index == last:
                    out.line(f"{keyword}self.{target}({forward})")
                else:
                    with out.block(f"if index == {index}:"):
                        if keyword:
                            out.line(f"{keyword}self.{target}({forward})")
                        else:
                            out.line(f"self.{target}({forward})")
                            out.line("return")

    def _render_overload_signature(self, out: CodeWriter, name: str, overload: MethodMember) -> None:
        out.line("@overload")
        header = self.signature(name, overload.parameters, overload.return_type.display(), overload.is_async)
        out.line(f"{header} ...")

    def _render_event(self, out: CodeWriter, route: EventRoute) -> None:
        member = route.member
        payload = ", ".join(self.param_annotation(p) for p in member.payload_params)
        returns = member.return_type.display() if member.return_type is not None else "None"
        if member.shape_kind == EventShape.ASYNC:
            returns = f"Awaitable[{returns}]"
        handler = f"Callable[[{payload}], {returns}]"
        out.line("@property")
        with out.block(f"def {route.name}(self) -> {self.rt}.EventAccessor[{handler}]:"):
            out.line(f"return {self.rt}.EventAccessor({route.interceptor_path}.add, {route.interceptor_path}.remove)")
        out.blank()
        out.line(f"@{route.name}.setter")
        with out.block(f"def {route.name}(self, value: {self.rt}.EventAccessor[Any]) -> None:"):
            out.line(f'{self.rt}.require_accessor("{route.member_label}", value)')

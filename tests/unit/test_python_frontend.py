"""Tests for PythonModelExtractor — tree-sitter Python declarations to Member Models."""

from __future__ import annotations

import pytest

from stubsmith.frontends import ExtractionResult, PythonModelExtractor, get_model_extractor
from stubsmith.model import (
    Accessibility,
    CallableModel,
    ClassModel,
    EventShape,
    InterfaceModel,
    ParameterKind,
    PassingMode,
    TypeKind,
)
from stubsmith.parser import Parser

HEADER = """\
from typing import Any, Callable, ClassVar, Optional, Protocol, Sequence, TypeVar, final, overload
from abc import ABC, abstractmethod
from stubsmith import Event, Out, Ref, inline_stubs, stub

T = TypeVar("T")
"""


def _extract(source: str, module: str = "") -> tuple[ExtractionResult, PythonModelExtractor]:
    extractor = PythonModelExtractor()
    result = extractor.extract_source(Parser().parse(HEADER + source), module)
    return result, extractor


def _declaration(source: str, name: str):
    result, _ = _extract(source)
    return result.declarations[name]


def _member(declaration, name: str):
    return next(m for m in declaration.members if m.name == name)


class TestProtocolMembers:
    def test_protocol_becomes_interface(self):
        pinger = _declaration("class Pinger(Protocol):\n    def ping(self) -> None: ...\n", "Pinger")
        assert isinstance(pinger, InterfaceModel)
        (ping,) = pinger.members
        assert ping.name == "ping"
        assert ping.return_type.is_void
        assert ping.is_abstract

    def test_parameters_keep_names_types_and_defaults(self):
        source = "class Log(Protocol):\n    def write(self, text: str, level: int = 0, *args: Any, flush: bool) -> None: ...\n"
        write = _member(_declaration(source, "Log"), "write")
        assert [p.name for p in write.parameters] == ["text", "level", "args", "flush"]
        assert write.parameters[0].type.name == "str"
        assert write.parameters[1].default == "0"
        assert write.parameters[2].kind == ParameterKind.VAR_POSITIONAL
        assert write.parameters[3].kind == ParameterKind.KEYWORD_ONLY

    def test_overload_declarations_become_separate_members(self):
        source = (
            "class Repository(Protocol):\n"
            "    @overload\n"
            "    def find(self, id: int) -> str: ...\n"
            "    @overload\n"
            "    def find(self, name: str) -> str: ...\n"
            "    def find(self, *args: Any) -> str: ...\n"
        )
        repository = _declaration(source, "Repository")
        assert [m.name for m in repository.members] == ["find", "find"]
        assert [m.parameters[0].name for m in repository.members] == ["id", "name"]

    def test_annotated_attribute_is_settable_property(self):
        user = _declaration("class User(Protocol):\n    name: str\n", "User")
        (name,) = user.members
        assert name.kind == "property"
        assert name.has_getter and name.has_setter

    def test_property_with_and_without_setter(self):
        source = (
            "class User(Protocol):\n"
            "    @property\n"
            "    def id(self) -> int: ...\n"
            "    @property\n"
            "    def name(self) -> str: ...\n"
            "    @name.setter\n"
            "    def name(self, value: str) -> None: ...\n"
        )
        user = _declaration(source, "User")
        assert [(m.name, m.has_setter) for m in user.members] == [("id", False), ("name", True)]

    def test_subscript_methods_become_one_indexer(self):
        source = (
            "class Registry(Protocol):\n"
            "    def __getitem__(self, key: str) -> int: ...\n"
            "    def __setitem__(self, key: str, value: int) -> None: ...\n"
        )
        (indexer,) = _declaration(source, "Registry").members
        assert indexer.is_indexer
        assert indexer.has_getter and indexer.has_setter
        assert indexer.type.name == "int"
        assert [p.name for p in indexer.index_params] == ["key"]

    def test_events(self):
        source = (
            "class Window(Protocol):\n"
            "    closed: Event[Callable[[], None]]\n"
            "    moved: Event[Callable[[int, int], None]]\n"
            "    validating: Event[Callable[[str], bool]]\n"
        )
        window = _declaration(source, "Window")
        assert window.members == ()
        closed, moved, validating = window.events
        assert closed.payload_params == ()
        assert closed.shape_kind == EventShape.VOID
        assert [p.name for p in moved.payload_params] == ["arg1", "arg2"]
        assert validating.shape_kind == EventShape.RESULT
        assert validating.return_type.name == "bool"

    def test_generic_method_collects_type_variable(self):
        source = "class Store(Protocol):\n    def get(self, kind: type[T]) -> T: ...\n"
        get = _member(_declaration(source, "Store"), "get")
        assert get.is_generic
        assert [tp.name for tp in get.type_parameters] == ["T"]
        assert get.return_type.is_type_parameter
        assert get.parameters[0].type.args[0].name == "T"

    def test_cell_markers_set_passing_mode(self):
        source = (
            "class Repository(Protocol):\n"
            "    def try_get(self, key: str, value: Out[int]) -> bool: ...\n"
            "    def bump(self, counter: Ref[int]) -> None: ...\n"
        )
        repository = _declaration(source, "Repository")
        value = _member(repository, "try_get").parameters[1]
        assert value.passing_mode == PassingMode.OUT
        assert value.type.name == "int"
        assert _member(repository, "bump").parameters[0].passing_mode == PassingMode.BY_REF

    def test_async_method(self):
        load = _member(_declaration("class Loader(Protocol):\n    async def load(self) -> int: ...\n", "Loader"), "load")
        assert load.is_async

    def test_skipped_members(self):
        source = (
            "class Service(Protocol):\n"
            "    limit: ClassVar[int] = 3\n"
            "    __secret: int\n"
            "    @staticmethod\n"
            "    def create() -> Any: ...\n"
            "    def __repr__(self) -> str: ...\n"
            "    def __secret_method(self) -> None: ...\n"
            "    def run(self) -> None: ...\n"
        )
        assert [m.name for m in _declaration(source, "Service").members] == ["run"]

    def test_callable_dunder_is_kept(self):
        source = "class Handler(Protocol):\n    def __call__(self, event: str) -> None: ...\n"
        assert [m.name for m in _declaration(source, "Handler").members] == ["__call__"]

    def test_protected_member_accessibility(self):
        source = "class Hooks(Protocol):\n    def _before(self) -> None: ...\n"
        assert _member(_declaration(source, "Hooks"), "_before").accessibility == Accessibility.PROTECTED

    def test_inherited_protocol_members_are_flattened(self):
        source = (
            "class Closeable(Protocol):\n    def close(self) -> None: ...\n"
            "class Stream(Closeable, Protocol):\n    def read(self) -> bytes: ...\n"
        )
        assert [m.name for m in _declaration(source, "Stream").members] == ["read", "close"]


class TestAnnotations:
    def _return_of(self, annotation: str):
        source = f"class Source(Protocol):\n    def value(self) -> {annotation}: ...\n"
        return _member(_declaration(source, "Source"), "value").return_type

    def test_optional_is_nullable(self):
        assert self._return_of("Optional[str]").nullable
        assert self._return_of("str | None").nullable

    def test_collection_abstraction(self):
        ref = self._return_of("Sequence[int]")
        assert ref.kind == TypeKind.INTERFACE
        assert ref.module == "typing"
        assert ref.args[0].name == "int"

    def test_forward_reference_to_local_protocol(self):
        source = (
            "class Factory(Protocol):\n    def build(self) -> 'Widget': ...\n"
            "class Widget(Protocol):\n    def show(self) -> None: ...\n"
        )
        build = _member(_declaration(source, "Factory"), "build")
        assert build.return_type.name == "Widget"
        assert build.return_type.kind == TypeKind.INTERFACE

    def test_local_class_records_constructibility(self):
        source = (
            "class Options:\n    def __init__(self, verbose: bool = False): ...\n"
            "class Connection:\n    def __init__(self, url: str): ...\n"
            "class Client(Protocol):\n"
            "    def options(self) -> Options: ...\n"
            "    def connect(self) -> Connection: ...\n"
        )
        client = _declaration(source, "Client")
        assert _member(client, "options").return_type.has_default_constructor
        assert not _member(client, "connect").return_type.has_default_constructor


class TestClasses:
    SERVICE = (
        "class Service(ABC):\n"
        "    def __init__(self, port: int):\n"
        "        self.port = port\n"
        "    def start(self) -> None:\n"
        "        pass\n"
        "    @abstractmethod\n"
        "    def stop(self) -> None: ...\n"
    )

    def test_class_model(self):
        service = _declaration(self.SERVICE, "Service")
        assert isinstance(service, ClassModel)
        assert {m.name: m.is_abstract for m in service.members} == {"start": False, "stop": True}
        (constructor,) = service.constructors
        assert [p.name for p in constructor.parameters] == ["port"]

    def test_subclass_links_base_and_inherits_constructor(self):
        source = self.SERVICE + "class WebService(Service):\n    def route(self) -> None:\n        pass\n"
        web = _declaration(source, "WebService")
        assert web.base is not None
        assert web.base.simple_name == "Service"
        assert [p.name for p in web.constructors[0].parameters] == ["port"]

    def test_final_class_is_sealed(self):
        source = "@final\nclass Locked:\n    def run(self) -> None:\n        pass\n"
        assert _declaration(source, "Locked").is_sealed

    def test_callable_alias(self):
        validator = _declaration("Validator = Callable[[str], bool]\n", "Validator")
        assert isinstance(validator, CallableModel)
        assert [p.type.name for p in validator.parameters] == ["str"]
        assert validator.return_type.name == "bool"

    def test_module_qualifies_full_name(self):
        result, _ = _extract("class Pinger(Protocol):\n    def ping(self) -> None: ...\n", module="app.ports")
        pinger = result.declarations["Pinger"]
        assert pinger.full_name == "app.ports.Pinger"
        assert pinger.module == "app.ports"


class TestExtractModel:
    def test_declaration_without_members(self):
        _, extractor = _extract("class Marker(Protocol):\n    pass\n")
        assert extractor.extract_model("Marker") is None

    def test_unknown_name(self):
        _, extractor = _extract("")
        assert extractor.extract_model("Missing") is None

    def test_class_with_only_inherited_members(self):
        source = TestClasses.SERVICE + "class Quiet(Service):\n    pass\n"
        _, extractor = _extract(source)
        assert extractor.extract_model("Quiet").simple_name == "Quiet"


class TestStubRequests:
    def test_standalone_stub_targets_its_bases(self):
        source = (
            "class Pinger(Protocol):\n    def ping(self) -> None: ...\n"
            "@stub\n"
            "class PingerStub(Pinger):\n"
            "    def _ping(self) -> None:\n"
            "        pass\n"
        )
        result, _ = _extract(source)
        assert "PingerStub" not in result.declarations
        (unit,) = result.units
        assert unit.requester == "PingerStub"
        assert not unit.inline
        (request,) = unit.requests
        assert request.shell
        assert [i.simple_name for i in request.interfaces] == ["Pinger"]
        assert [u.name for u in request.user_methods] == ["_ping"]
        assert result.diagnostics_for("PingerStub") == []

    def test_inline_stubs_name_each_target(self):
        source = (
            "class Pinger(Protocol):\n    def ping(self) -> None: ...\n"
            "Validator = Callable[[str], bool]\n"
            "@inline_stubs(Pinger, Validator)\n"
            "class CheckoutTests:\n"
            "    pass\n"
        )
        result, _ = _extract(source)
        (unit,) = result.units
        assert unit.inline
        assert [r.stub_name for r in unit.requests] == ["PingerStub", "ValidatorStub"]
        assert unit.requests[1].callable_type is not None

    def test_class_target(self):
        source = TestClasses.SERVICE + "@stub\nclass ServiceStub(Service):\n    pass\n"
        result, _ = _extract(source)
        (request,) = result.units[0].requests
        assert request.base_class.simple_name == "Service"

    def test_unknown_target_is_reported(self):
        result, _ = _extract("@stub\nclass MissingStub(Missing):\n    pass\n")
        (diagnostic,) = result.diagnostics_for("MissingStub")
        assert diagnostic.id == "SS008"
        assert "Missing" in diagnostic.message

    def test_two_classes_are_reported(self):
        source = (
            "class First:\n    def a(self) -> None:\n        pass\n"
            "class Second:\n    def b(self) -> None:\n        pass\n"
            "@stub\nclass BothStub(First, Second):\n    pass\n"
        )
        result, _ = _extract(source)
        assert [d.id for d in result.diagnostics_for("BothStub")] == ["SS007"]


class TestExtractorRegistry:
    def test_python_is_registered(self):
        assert isinstance(get_model_extractor("python"), PythonModelExtractor)

    def test_unknown_language(self):
        with pytest.raises(ValueError, match="Unsupported language"):
            get_model_extractor("cobol")


class TestExtractorState:
    def test_annotations_need_an_indexed_module(self):
        extractor = PythonModelExtractor()
        with pytest.raises(ValueError, match="before the module is indexed"):
            extractor._read(None, frozenset())

    def test_reader_is_rebuilt_per_extraction(self):
        extractor = PythonModelExtractor()
        parser = Parser()
        first = extractor.extract_source(parser.parse(HEADER + "class A(Protocol):\n    x: int\n"))
        second = extractor.extract_source(parser.parse(HEADER + "class B(Protocol):\n    y: str\n"))
        assert set(first.declarations) == {"A"}
        assert set(second.declarations) == {"B"}

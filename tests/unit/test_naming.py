"""Tests for deterministic naming and the name accumulator."""

from __future__ import annotations

from stubsmith.model import InterfaceModel, MethodMember, PropertyMember, TypeKind, TypeRef, value_type
from stubsmith.naming import (
    NameAccumulator,
    as_method_name,
    bundle_class_name,
    bundle_name,
    indexer_attr,
    interceptor_class_name,
    overload_table_name,
    qualified_member_name,
    snake_case,
    type_suffix,
)


def _interface(name: str, *member_names: str) -> InterfaceModel:
    return InterfaceModel(
        full_name=name,
        simple_name=name,
        members=tuple(MethodMember(name=m) for m in member_names),
    )


class TestBundleName:
    def test_plain_simple_name(self):
        assert bundle_name(_interface("Repository", "save")) == "Repository"

    def test_collision_appends_one_suffix(self):
        assert bundle_name(_interface("Value", "Value", "other")) == "Value_"

    def test_collision_with_property(self):
        declaration = InterfaceModel(
            full_name="Name",
            simple_name="Name",
            members=(PropertyMember(name="Name", type=value_type("str")),),
        )
        assert bundle_name(declaration) == "Name_"

    def test_custom_suffix(self):
        assert bundle_name(_interface("Value", "Value"), suffix="X") == "ValueX"


class TestNameAccumulator:
    def test_claim_returns_name_when_free(self):
        name, names = NameAccumulator().claim("ping")
        assert name == "ping"
        assert "ping" in names

    def test_claim_suffixes_until_free(self):
        names = NameAccumulator().reserve("ping", "ping_")
        name, names = names.claim("ping")
        assert name == "ping__"
        assert "ping__" in names

    def test_accumulator_is_not_mutated(self):
        original = NameAccumulator()
        original.claim("ping")
        assert "ping" not in original


class TestGeneratedNames:
    def test_snake_case(self):
        assert snake_case("UserRepository") == "user_repository"
        assert snake_case("HTTPClient") == "http_client"
        assert snake_case("_private") == "private"

    def test_as_method_name(self):
        assert as_method_name(_interface("UserRepository")) == "as_user_repository"

    def test_interceptor_class_name(self):
        assert (
            interceptor_class_name("RepoStub", "Repository", "find_1")
            == "RepoStubRepositoryFind1Interceptor"
        )

    def test_bundle_class_name(self):
        assert bundle_class_name("RepoStub", "Repository") == "RepoStubRepositoryInterceptors"

    def test_qualified_member_name(self):
        assert qualified_member_name("Reader", "read") == "_via_reader_read"
        assert qualified_member_name("Reader", "__getitem__") == "_via_reader_getitem"

    def test_overload_table_name(self):
        assert overload_table_name("RepoStub", "Repository", "find") == "_OVERLOADS_REPO_STUB_REPOSITORY_FIND"

    def test_single_indexer_attr(self):
        assert indexer_attr((value_type("int"),), 1) == "indexer"

    def test_multiple_indexer_attrs_by_key_type(self):
        keys = (value_type("str"), TypeRef(name="Mapping", args=(value_type("str"), value_type("int")), kind=TypeKind.INTERFACE))
        assert indexer_attr(keys, 2) == "indexer_str_mapping_str_int"

    def test_type_suffix_of_nullable(self):
        assert type_suffix(value_type("int", nullable=True)) == "optional_int"

"""Tests for base-class member walking."""

from __future__ import annotations

from stubsmith.hierarchy import collect_overridable_members, flatten_class
from stubsmith.model import (
    Accessibility,
    ClassModel,
    EventMember,
    MethodMember,
    ParameterModel,
    PropertyMember,
    value_type,
)

INT = value_type("int")
STR = value_type("str")


def _cls(name: str, *members, base: ClassModel | None = None, events=()) -> ClassModel:
    return ClassModel(full_name=name, simple_name=name, members=members, events=events, base=base)


class TestCollectOverridableMembers:
    def test_single_class(self):
        cls = _cls("Service", MethodMember(name="start", is_abstract=False))
        members, events = collect_overridable_members(cls)
        assert [m.name for m in members] == ["start"]
        assert events == []

    def test_inherited_members_follow_own_members(self):
        base = _cls("Base", MethodMember(name="stop", is_abstract=False))
        derived = _cls("Derived", MethodMember(name="start", is_abstract=False), base=base)
        members, _ = collect_overridable_members(derived)
        assert [m.name for m in members] == ["start", "stop"]

    def test_nearest_declaration_hides_base(self):
        base = _cls("Base", MethodMember(name="run", parameters=(ParameterModel(name="x", type=INT),)))
        derived = _cls("Derived", MethodMember(name="run", is_abstract=False), base=base)
        members, _ = collect_overridable_members(derived)
        assert len(members) == 1
        assert members[0].parameters == ()

    def test_deep_chain(self):
        root = _cls("Root", MethodMember(name="a"))
        middle = _cls("Middle", MethodMember(name="b"), base=root)
        leaf = _cls("Leaf", MethodMember(name="c"), base=middle)
        members, _ = collect_overridable_members(leaf)
        assert [m.name for m in members] == ["c", "b", "a"]

    def test_overloads_in_one_class_are_all_kept(self):
        cls = _cls(
            "Finder",
            MethodMember(name="find", parameters=(ParameterModel(name="id", type=INT),)),
            MethodMember(name="find", parameters=(ParameterModel(name="name", type=STR),)),
        )
        members, _ = collect_overridable_members(cls)
        assert len(members) == 2

    def test_private_members_are_skipped(self):
        cls = _cls(
            "Service",
            MethodMember(name="__secret", accessibility=Accessibility.PRIVATE),
            MethodMember(name="_hook", accessibility=Accessibility.PROTECTED),
        )
        members, _ = collect_overridable_members(cls)
        assert [m.name for m in members] == ["_hook"]

    def test_indexer_and_method_with_same_name_do_not_hide_each_other(self):
        indexer = PropertyMember(name="indexer", type=STR, is_indexer=True, index_params=(ParameterModel(name="i", type=INT),))
        base = _cls("Base", indexer)
        derived = _cls("Derived", MethodMember(name="indexer"), base=base)
        members, _ = collect_overridable_members(derived)
        assert len(members) == 2

    def test_events_are_collected_from_bases(self):
        base = _cls("Base", events=(EventMember(name="changed"),))
        derived = _cls("Derived", MethodMember(name="run"), base=base)
        _, events = collect_overridable_members(derived)
        assert [e.name for e in events] == ["changed"]

    def test_repeated_class_is_visited_once(self):
        base = _cls("Base", MethodMember(name="a"))
        same_name = _cls("Base", MethodMember(name="b"), base=base)
        members, _ = collect_overridable_members(same_name)
        assert [m.name for m in members] == ["b"]


class TestFlattenClass:
    def test_flattened_copy_carries_inherited_members(self):
        base = _cls("Base", PropertyMember(name="name", type=STR, has_setter=True))
        derived = _cls("Derived", MethodMember(name="run"), base=base)
        flat = flatten_class(derived)
        assert [m.name for m in flat.members] == ["run", "name"]
        assert flat.base == base
        assert derived.members == (MethodMember(name="run"),)

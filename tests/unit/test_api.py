"""Tests for the composable API functions in stubsmith.api."""

from __future__ import annotations

import pytest

from stubsmith import runtime as rt
from stubsmith.api import (
    GenerationResult,
    extract_source,
    generate,
    generate_batch,
    generate_from_source,
    total_stats,
)
from stubsmith.diagnostics import Descriptors
from stubsmith.generation_types import GenerationStats, GeneratorConfig
from stubsmith.model import GenerationUnit, InterfaceModel, MethodMember, StubRequest

PINGER = InterfaceModel(full_name="Pinger", simple_name="Pinger", members=(MethodMember(name="ping"),))

SOURCE = """\
from typing import Protocol
from stubsmith import inline_stubs, stub


class Pinger(Protocol):
    def ping(self) -> None: ...


@stub
class PingerStub(Pinger):
    pass


@inline_stubs(Pinger)
class PingerTests:
    pass


@stub
class BrokenStub(Missing):
    pass
"""


def _unit(requester: str, *requests: StubRequest) -> GenerationUnit:
    return GenerationUnit(requester=requester, requests=requests)


def _pinger_unit(requester: str = "Tests") -> GenerationUnit:
    return _unit(requester, StubRequest(stub_name="PingerStub", interfaces=(PINGER,)))


class TestGenerate:
    def test_returns_source_with_header(self):
        result = generate(_pinger_unit())
        assert isinstance(result, GenerationResult)
        assert result.succeeded
        assert result.source.startswith("# <auto-generated by stubsmith/>")
        assert "from __future__ import annotations" in result.source
        assert "class PingerStub(Pinger):" in result.source

    def test_source_compiles(self):
        result = generate(_pinger_unit())
        compile(result.source, "<generated>", "exec")

    def test_stats_are_filled(self):
        result = generate(_pinger_unit())
        assert result.stats.unit == "Tests"
        assert result.stats.stubs == 1
        assert result.stats.source_lines > 0
        assert "Generation Statistics: Tests" in result.stats.report()

    def test_invalid_unit_has_no_source(self):
        result = generate(_unit("Tests", StubRequest(stub_name="EmptyStub")))
        assert not result.succeeded
        assert [d.id for d in result.errors] == ["SS001"]

    def test_front_end_errors_skip_generation(self):
        reported = Descriptors.UNKNOWN_DECLARATION.create("PingerStub", "Missing")
        result = generate(_pinger_unit(), extra_diagnostics=[reported])
        assert not result.succeeded
        assert result.diagnostics == [reported]

    def test_unexpected_failure_is_reported(self, monkeypatch):
        def explode(self, plan):
            raise RuntimeError("boom")

        monkeypatch.setattr("stubsmith.api.StubRenderer.render", explode)
        result = generate(_pinger_unit())
        assert not result.succeeded
        (diagnostic,) = result.errors
        assert diagnostic.id == "SS010"
        assert "boom" in diagnostic.message

    def test_config_controls_output(self):
        config = GeneratorConfig(emit_docstrings=False, header="# generated")
        result = generate(_pinger_unit(), config)
        assert result.source.startswith("# generated\n")
        assert '"""' not in result.source

    def test_generation_is_deterministic(self):
        assert generate(_pinger_unit()).source == generate(_pinger_unit()).source


class TestGenerateBatch:
    def test_results_follow_input_order(self):
        units = [_pinger_unit(f"Unit{i}") for i in range(6)]
        results = generate_batch(units, max_workers=4)
        assert [r.requester for r in results] == [f"Unit{i}" for i in range(6)]
        assert all(r.succeeded for r in results)

    def test_failing_unit_does_not_affect_others(self):
        units = [
            _pinger_unit("Good"),
            _unit("Bad", StubRequest(stub_name="EmptyStub")),
            _pinger_unit("AlsoGood"),
        ]
        results = generate_batch(units)
        assert [r.succeeded for r in results] == [True, False, True]
        assert results[0].source.replace("Good", "") == results[2].source.replace("AlsoGood", "")

    def test_parallel_matches_sequential(self):
        units = [_pinger_unit(f"Unit{i}") for i in range(4)]
        sequential = [r.source for r in generate_batch(units)]
        parallel = [r.source for r in generate_batch(units, max_workers=3)]
        assert sequential == parallel

    def test_diagnostics_are_routed_by_requester(self):
        reported = Descriptors.UNKNOWN_DECLARATION.create("PingerStub", "Missing")
        results = generate_batch(
            [_pinger_unit("Skipped"), _pinger_unit("Kept")],
            diagnostics={"Skipped": [reported]},
        )
        assert [r.succeeded for r in results] == [False, True]


class TestTotalStats:
    def test_sums_counts_lines_and_timings(self):
        results = generate_batch([_pinger_unit("First"), _pinger_unit("Second")])
        totals = total_stats(results)
        assert totals.unit == "batch"
        assert totals.stubs == 2
        assert totals.interfaces == 2
        assert totals.source_lines == sum(r.stats.source_lines for r in results)
        assert totals.plan_time == pytest.approx(sum(r.stats.plan_time for r in results))

    def test_skipped_units_add_nothing(self):
        results = generate_batch([_pinger_unit("Good"), _unit("Bad", StubRequest(stub_name="EmptyStub"))])
        totals = total_stats(results, label="mixed")
        assert totals.unit == "mixed"
        assert totals.stubs == results[0].stats.stubs
        assert totals.source_lines == results[0].stats.source_lines

    def test_merge_leaves_the_other_untouched(self):
        first = GenerationStats(unit="a", stubs=1, events=2, source_lines=10)
        second = GenerationStats(unit="b", stubs=3, events=1, source_lines=5)
        first.merge(second)
        assert (first.unit, first.stubs, first.events, first.source_lines) == ("a", 4, 3, 15)
        assert (second.stubs, second.events, second.source_lines) == (3, 1, 5)


class TestExtractSource:
    def test_declarations_and_units(self):
        extraction = extract_source(SOURCE, module="app.ports")
        assert set(extraction.declarations) == {"Pinger"}
        assert [u.requester for u in extraction.units] == ["PingerStub", "PingerTests", "BrokenStub"]

    def test_unknown_language(self):
        with pytest.raises(ValueError):
            extract_source(SOURCE, language="cobol")


class TestGenerateFromSource:
    def test_each_requester_gets_a_result(self):
        results = generate_from_source(SOURCE, module="app.ports")
        by_requester = {r.requester: r for r in results}
        assert by_requester["PingerStub"].succeeded
        assert by_requester["PingerTests"].succeeded
        assert not by_requester["BrokenStub"].succeeded
        assert [d.id for d in by_requester["BrokenStub"].errors] == ["SS008"]

    def test_standalone_stub_extends_its_shell(self):
        (result, *_) = generate_from_source(SOURCE, module="app.ports")
        assert "from app.ports import PingerStub as _PingerStubShell" in result.source
        assert "class PingerStub(_PingerStubShell):" in result.source
        assert "from app.ports import Pinger" in result.source

    def test_inline_stubs_are_nested(self):
        results = generate_from_source(SOURCE, module="app.ports")
        inline = next(r for r in results if r.requester == "PingerTests")
        assert "class Stubs:" in inline.source

    def test_generated_inline_stub_runs(self):
        results = generate_from_source(SOURCE)
        inline = next(r for r in results if r.requester == "PingerTests")

        class Pinger:
            def ping(self) -> None: ...

        scope = {"__name__": "generated_stubs", "Pinger": Pinger}
        exec(compile(inline.source, "<generated>", "exec"), scope)
        stub = scope["Stubs"].PingerStub(strict=True)
        with pytest.raises(rt.UnconfiguredMemberError):
            stub.ping()
        assert stub.Pinger.ping.call_count == 1

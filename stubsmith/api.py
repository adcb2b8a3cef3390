"""Composable API functions for the stub generation pipeline.

Each function runs some prefix of the pipeline and is callable on its own:
``generate`` plans and renders one unit, ``generate_batch`` does the same for
many units in isolation, and ``generate_from_source`` starts from Python text.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Iterable, Sequence

from .assembler import GenerationError, ImplementationAssembler
from .diagnostics import Descriptors, Diagnostic, DiagnosticBag
from .frontends import ExtractionResult, get_model_extractor
from .generation_types import GenerationStats, GeneratorConfig
from .model import GenerationUnit
from .parser import Parser
from .render import StubRenderer

logger = logging.getLogger(__name__)


@dataclass
class GenerationResult:
    """Outcome of one generation unit; ``source`` is None when it was skipped."""

    requester: str
    source: str | None = None
    diagnostics: list[Diagnostic] = field(default_factory=list)
    stats: GenerationStats = field(default_factory=GenerationStats)

    @property
    def succeeded(self) -> bool:
        return self.source is not None

    @property
    def errors(self) -> list[Diagnostic]:
        return [d for d in self.diagnostics if d.is_error]


def generate(
    unit: GenerationUnit,
    config: GeneratorConfig | None = None,
    extra_diagnostics: Iterable[Diagnostic] = (),
) -> GenerationResult:
    """Plan and render every stub *unit* requests.

    Args:
        unit: The stub requests of one requester.
        config: Generator configuration; defaults apply when omitted.
        extra_diagnostics: Diagnostics already reported for this unit, e.g.
            by a front end. Any error among them skips the unit.

    Returns:
        A GenerationResult carrying the source text, or None in ``source``
        when the unit was skipped.
    """
    config = config or GeneratorConfig()
    bag = DiagnosticBag()
    bag.extend(extra_diagnostics)
    stats = GenerationStats(unit=unit.requester)
    result = GenerationResult(requester=unit.requester, stats=stats)

    if bag.has_errors:
        logger.warning("Skipping %s: front end reported errors", unit.requester)
        result.diagnostics = list(bag)
        return result

    try:
        t0 = time.perf_counter()
        plan = ImplementationAssembler(config).assemble(unit, bag, stats)
        stats.plan_time = time.perf_counter() - t0
        if plan is not None:
            t0 = time.perf_counter()
            source = StubRenderer(config).render(plan)
            stats.render_time = time.perf_counter() - t0
            stats.source_lines = source.count("\n")
            result.source = source
    except GenerationError as exc:
        logger.warning("Generation of %s failed: %s", unit.requester, exc)
        bag.report(Descriptors.GENERATION_FAILED, unit.requester, exc)
    except Exception as exc:
        logger.exception("Unexpected failure generating %s", unit.requester)
        bag.report(Descriptors.GENERATION_FAILED, unit.requester, f"{type(exc).__name__}: {exc}")

    result.diagnostics = list(bag)
    if result.succeeded:
        logger.info(
            "Generated %s: %d stub(s), %d line(s)",
            unit.requester,
            stats.stubs,
            stats.source_lines,
        )
    return result


def generate_batch(
    units: Sequence[GenerationUnit],
    config: GeneratorConfig | None = None,
    max_workers: int | None = None,
    diagnostics: dict[str, list[Diagnostic]] | None = None,
) -> list[GenerationResult]:
    """Generate each unit independently; results follow the order of *units*.

    A failing unit never affects the others. ``max_workers`` above one runs
    units on a thread pool.
    """
    diagnostics = diagnostics or {}

    def run(unit: GenerationUnit) -> GenerationResult:
        return generate(unit, config, diagnostics.get(unit.requester, ()))

    if max_workers is None or max_workers <= 1 or len(units) <= 1:
        results = [run(unit) for unit in units]
    else:
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            results = list(pool.map(run, units))

    totals = total_stats(results)
    logger.info(
        "Batch finished: %d of %d unit(s) generated, %d stub(s), %d line(s)",
        sum(1 for r in results if r.succeeded),
        len(results),
        totals.stubs,
        totals.source_lines,
    )
    return results


def total_stats(results: Iterable[GenerationResult], label: str = "batch") -> GenerationStats:
    """Sum the statistics of several results into one ``GenerationStats``."""
    totals = GenerationStats(unit=label)
    for result in results:
        totals.merge(result.stats)
    return totals


def extract_source(source: str, module: str = "", language: str = "python") -> ExtractionResult:
    """Parse *source* and extract its declarations and stub requests."""
    extractor = get_model_extractor(language)
    parsed = Parser().parse(source, language)
    if parsed.has_errors:
        logger.warning(
            "Source for %s contains syntax errors at line(s) %s",
            module or "<source>",
            ", ".join(str(n) for n in parsed.error_lines()),
        )
    return extractor.extract_source(parsed, module)


def generate_from_source(
    source: str,
    module: str = "",
    config: GeneratorConfig | None = None,
    max_workers: int | None = None,
) -> list[GenerationResult]:
    """Run the front end over Python *source*, then generate every unit it declares."""
    extraction = extract_source(source, module)
    return generate_batch(
        extraction.units,
        config,
        max_workers=max_workers,
        diagnostics=extraction.unit_diagnostics,
    )

"""Generation pipeline data types (pure data, no business logic)."""

from __future__ import annotations

from dataclasses import dataclass

from . import constants


@dataclass(frozen=True)
class GeneratorConfig:
    """Groups generator configuration."""

    runtime_module: str = constants.RUNTIME_MODULE
    runtime_alias: str = constants.RUNTIME_ALIAS
    inline_container: str = constants.INLINE_CONTAINER
    bundle_collision_suffix: str = constants.BUNDLE_COLLISION_SUFFIX
    indent: str = "    "
    emit_docstrings: bool = True
    header: str = constants.GENERATED_HEADER


@dataclass
class GenerationStats:
    """Size and timing statistics for one generation unit."""

    unit: str = ""
    stubs: int = 0
    interfaces: int = 0
    overload_groups: int = 0
    interceptors: int = 0
    generic_registries: int = 0
    events: int = 0
    qualified_members: int = 0
    source_lines: int = 0

    plan_time: float = 0.0
    render_time: float = 0.0

    def merge(self, other: GenerationStats) -> None:
        self.stubs += other.stubs
        self.interfaces += other.interfaces
        self.overload_groups += other.overload_groups
        self.interceptors += other.interceptors
        self.generic_registries += other.generic_registries
        self.events += other.events
        self.qualified_members += other.qualified_members
        self.source_lines += other.source_lines
        self.plan_time += other.plan_time
        self.render_time += other.render_time

    def report(self) -> str:
        lines = [
            f"═══ Generation Statistics: {self.unit} ═══",
            f"  {'Stubs':<22} {self.stubs:>6}",
            f"  {'Interfaces':<22} {self.interfaces:>6}",
            f"  {'Overload groups':<22} {self.overload_groups:>6}",
            f"  {'Interceptors':<22} {self.interceptors:>6}",
            f"  {'Generic registries':<22} {self.generic_registries:>6}",
            f"  {'Events':<22} {self.events:>6}",
            f"  {'Qualified members':<22} {self.qualified_members:>6}",
            f"  {'─' * 22} {'─' * 6}",
            f"  Plan {self.plan_time * 1000:.1f}ms, render {self.render_time * 1000:.1f}ms,"
            f" {self.source_lines} lines emitted",
        ]
        return "\n".join(lines)

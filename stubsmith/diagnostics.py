"""Structured generation-time diagnostics."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Iterator


class Severity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class Diagnostic:
    id: str
    message_template: str
    severity: Severity
    args: tuple[str, ...] = ()
    location: str = ""

    @property
    def message(self) -> str:
        return self.message_template.format(*self.args)

    @property
    def is_error(self) -> bool:
        return self.severity == Severity.ERROR

    def __str__(self) -> str:
        where = f" [{self.location}]" if self.location else ""
        return f"{self.severity.value} {self.id}{where}: {self.message}"


@dataclass(frozen=True)
class DiagnosticDescriptor:
    id: str
    title: str
    message_template: str
    severity: Severity

    def create(self, *args: object, location: str = "") -> Diagnostic:
        return Diagnostic(
            id=self.id,
            message_template=self.message_template,
            severity=self.severity,
            args=tuple(str(a) for a in args),
            location=location,
        )


class Descriptors:
    """Catalog of every diagnostic the generator can report."""

    NOT_STUBBABLE = DiagnosticDescriptor(
        "SS001",
        "Type cannot be stubbed",
        "'{0}' is not an interface, class or callable type and cannot be stubbed",
        Severity.ERROR,
    )
    SEALED_CLASS = DiagnosticDescriptor(
        "SS002",
        "Sealed base class",
        "Class '{0}' is final and cannot be stubbed",
        Severity.ERROR,
    )
    NO_ACCESSIBLE_CONSTRUCTOR = DiagnosticDescriptor(
        "SS003",
        "No accessible constructor",
        "Class '{0}' has no accessible constructor",
        Severity.ERROR,
    )
    NAME_COLLISION = DiagnosticDescriptor(
        "SS004",
        "Name collision",
        "Name '{0}' in '{1}' collides with {2}",
        Severity.ERROR,
    )
    RESERVED_NAME = DiagnosticDescriptor(
        "SS005",
        "Reserved name conflict",
        "Member '{0}' of '{1}' conflicts with the generated member of the same name",
        Severity.ERROR,
    )
    NO_MEMBERS = DiagnosticDescriptor(
        "SS006",
        "Nothing to stub",
        "'{0}' declares no stubbable members",
        Severity.WARNING,
    )
    MIXED_TARGETS = DiagnosticDescriptor(
        "SS007",
        "Mixed stub targets",
        "Stub '{0}' must target interfaces, one class, or one callable type",
        Severity.ERROR,
    )
    UNKNOWN_DECLARATION = DiagnosticDescriptor(
        "SS008",
        "Unknown declaration",
        "Stub '{0}' references '{1}', which is not declared in this source",
        Severity.ERROR,
    )
    MIXED_GENERIC_GROUP = DiagnosticDescriptor(
        "SS009",
        "Mixed generic overload group",
        "Method group '{0}.{1}' mixes generic and non-generic overloads; "
        "generic overloads share the '{2}' registry",
        Severity.INFO,
    )
    GENERATION_FAILED = DiagnosticDescriptor(
        "SS010",
        "Generation failed",
        "Generation of '{0}' failed: {1}",
        Severity.ERROR,
    )
    USER_METHOD_MISMATCH = DiagnosticDescriptor(
        "SS011",
        "User implementation ignored",
        "'{0}' is named like an implementation of '{1}' but its signature "
        "does not match, so it is not used",
        Severity.WARNING,
    )


@dataclass
class DiagnosticBag:
    """Accumulates diagnostics for one generation unit."""

    items: list[Diagnostic] = field(default_factory=list)

    def add(self, diagnostic: Diagnostic) -> None:
        self.items.append(diagnostic)

    def report(
        self, descriptor: DiagnosticDescriptor, *args: object, location: str = ""
    ) -> Diagnostic:
        diagnostic = descriptor.create(*args, location=location)
        self.items.append(diagnostic)
        return diagnostic

    def extend(self, diagnostics: Iterable[Diagnostic]) -> None:
        self.items.extend(diagnostics)

    @property
    def has_errors(self) -> bool:
        return any(d.is_error for d in self.items)

    def errors(self) -> list[Diagnostic]:
        return [d for d in self.items if d.is_error]

    def __iter__(self) -> Iterator[Diagnostic]:
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)

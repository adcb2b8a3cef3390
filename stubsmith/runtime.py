"""Support library imported by generated stubs.

Everything here runs inside test processes, on the stub's hot path, so it is
kept small and free of locking: a stub is driven by one test thread at a time.
"""

from __future__ import annotations

import inspect
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Generator, Generic, Mapping, Sequence, TypeVar

T = TypeVar("T")
H = TypeVar("H")


# ── errors ───────────────────────────────────────────────────────


class StubError(Exception):
    """Base class for failures raised by generated stubs."""


class UnconfiguredMemberError(StubError):
    """A member was invoked with no override, no implementation and no safe default."""

    def __init__(self, member: str, hint: str):
        self.member = member
        self.hint = hint
        super().__init__(f"{member} has no configured behavior. {hint}")

    @classmethod
    def for_member(
        cls, member: str, slot: str, implementation: str = ""
    ) -> UnconfiguredMemberError:
        hint = f"Set '{slot}' on its interceptor"
        if implementation:
            hint += f" or define '{implementation}' on the stub class"
        return cls(member, hint + " before invoking it.")


class VerificationError(StubError):
    """An interceptor's call count did not satisfy the expected Times."""


# ── parameter cells and markers ──────────────────────────────────


class Ref(Generic[T]):
    """Mutable cell carrying a by-reference or output argument."""

    __slots__ = ("value",)

    def __init__(self, value: Any = None):
        self.value = value

    def __repr__(self) -> str:
        return f"Ref({self.value!r})"


# Output parameters travel in the same cell type.
Out = Ref


class In(Generic[T]):
    """Annotation marker for read-only by-reference parameters."""


class Completed(Generic[T]):
    """An awaitable that is already finished with *value*."""

    __slots__ = ("value",)

    def __init__(self, value: Any = None):
        self.value = value

    def __await__(self) -> Generator[Any, None, Any]:
        yield from ()
        return self.value


class EventAccessor(Generic[H]):
    """Subscription surface of an event member: ``stub.changed += handler``."""

    __slots__ = ("_add", "_remove")

    def __init__(self, add: Callable[[H], None], remove: Callable[[H], None]):
        self._add = add
        self._remove = remove

    def subscribe(self, handler: H) -> None:
        self._add(handler)

    def unsubscribe(self, handler: H) -> None:
        self._remove(handler)

    def __iadd__(self, handler: H) -> EventAccessor[H]:
        self._add(handler)
        return self

    def __isub__(self, handler: H) -> EventAccessor[H]:
        self._remove(handler)
        return self


# Declarations annotate event members as ``Event[Callable[..., R]]``.
Event = EventAccessor


def require_accessor(member: str, value: Any) -> None:
    """Guard for event setters, which only accept the result of += / -=."""
    if not isinstance(value, EventAccessor):
        raise AttributeError(f"{member} is an event; use += or -= to change handlers")


class _Unset(Enum):
    UNSET = "UNSET"

    def __repr__(self) -> str:
        return "UNSET"


UNSET = _Unset.UNSET


# ── verification ─────────────────────────────────────────────────


class _TimesKind(str, Enum):
    EXACTLY = "exactly"
    FOREVER = "forever"
    AT_LEAST = "at_least"
    AT_MOST = "at_most"
    NEVER = "never"


@dataclass(frozen=True)
class Times:
    """How many times a member is expected to have been called."""

    count: int
    kind: _TimesKind

    @classmethod
    def once(cls) -> Times:
        return cls(1, _TimesKind.EXACTLY)

    @classmethod
    def twice(cls) -> Times:
        return cls(2, _TimesKind.EXACTLY)

    @classmethod
    def exactly(cls, count: int) -> Times:
        return cls(count, _TimesKind.EXACTLY)

    @classmethod
    def at_least(cls, count: int) -> Times:
        return cls(count, _TimesKind.AT_LEAST)

    @classmethod
    def at_most(cls, count: int) -> Times:
        return cls(count, _TimesKind.AT_MOST)

    @classmethod
    def never(cls) -> Times:
        return cls(0, _TimesKind.NEVER)

    @classmethod
    def forever(cls) -> Times:
        return cls(0, _TimesKind.FOREVER)

    def verify(self, actual: int) -> bool:
        if self.kind == _TimesKind.EXACTLY:
            return actual == self.count
        if self.kind == _TimesKind.AT_LEAST:
            return actual >= self.count
        if self.kind == _TimesKind.AT_MOST:
            return actual <= self.count
        if self.kind == _TimesKind.NEVER:
            return actual == 0
        return True

    def __str__(self) -> str:
        if self.kind in (_TimesKind.NEVER, _TimesKind.FOREVER):
            return self.kind.value
        return f"{self.kind.value.replace('_', ' ')} {self.count}"


def check_times(member: str, actual: int, times: Times) -> None:
    if not times.verify(actual):
        raise VerificationError(
            f"{member} was expected to be called {times} time(s) but was called {actual}"
        )


# ── overload routing ─────────────────────────────────────────────

POSITIONAL = "positional"
KEYWORD_ONLY = "keyword_only"
VAR_POSITIONAL = "var_positional"
VAR_KEYWORD = "var_keyword"


@dataclass(frozen=True)
class OverloadSignature:
    """Runtime shape of one overload, used to route a call to it."""

    names: tuple[str, ...]
    checks: tuple[tuple[type, ...], ...]
    required: tuple[bool, ...]
    kinds: tuple[str, ...]

    def _index(self, name: str) -> int:
        for i, candidate in enumerate(self.names):
            if candidate == name and self.kinds[i] in (POSITIONAL, KEYWORD_ONLY):
                return i
        return -1

    def accepts(self, args: Sequence[Any], kwargs: Mapping[str, Any]) -> bool:
        positional = [i for i, kind in enumerate(self.kinds) if kind == POSITIONAL]
        var_positional = [i for i, kind in enumerate(self.kinds) if kind == VAR_POSITIONAL]
        var_keyword = [i for i, kind in enumerate(self.kinds) if kind == VAR_KEYWORD]

        if len(args) > len(positional) and not var_positional:
            return False
        bound: dict[int, Any] = dict(zip(positional, args))
        for key, value in kwargs.items():
            index = self._index(key)
            if index < 0:
                if not var_keyword:
                    return False
                continue
            if index in bound:
                return False
            bound[index] = value

        for i, kind in enumerate(self.kinds):
            if kind in (POSITIONAL, KEYWORD_ONLY) and self.required[i] and i not in bound:
                return False
        return all(_matches(value, self.checks[i]) for i, value in bound.items())


def _matches(value: Any, checks: tuple[type, ...]) -> bool:
    try:
        return isinstance(value, checks)
    except TypeError:
        # Protocols that are not runtime-checkable cannot be tested
        return True


def select_overload(
    table: Sequence[OverloadSignature],
    args: Sequence[Any],
    kwargs: Mapping[str, Any],
    member: str,
    known: frozenset[str] | None = None,
) -> int:
    """1-based index of the first overload in *table* accepting the call."""
    if known is not None:
        unexpected = [k for k in kwargs if k not in known]
        if unexpected:
            raise TypeError(f"{member} got an unexpected keyword argument '{unexpected[0]}'")
    for index, signature in enumerate(table, start=1):
        if signature.accepts(args, kwargs):
            return index
    shown = ", ".join(
        [repr(a) for a in args] + [f"{k}={v!r}" for k, v in kwargs.items()]
    )
    raise TypeError(f"No overload of {member} accepts ({shown})")


# ── runtime default-value provider ───────────────────────────────


def _needs_arguments(tp: type) -> bool:
    try:
        signature = inspect.signature(tp)
    except (TypeError, ValueError):
        # Builtins without introspectable signatures construct with no arguments
        return False
    return any(
        p.default is p.empty
        and p.kind
        in (
            inspect.Parameter.POSITIONAL_ONLY,
            inspect.Parameter.POSITIONAL_OR_KEYWORD,
            inspect.Parameter.KEYWORD_ONLY,
        )
        for p in signature.parameters.values()
    )


def default_for_type(tp: Any, member: str, slot: str = "on_call") -> Any:
    """Last-resort default for a type only known at call time.

    ``None`` for the none type, a fresh instance for a concrete class whose
    constructor takes no arguments, otherwise UnconfiguredMemberError.
    """
    if tp is None or tp is type(None):
        return None
    if not isinstance(tp, type):
        raise UnconfiguredMemberError.for_member(member, slot)
    if inspect.isabstract(tp) or getattr(tp, "_is_protocol", False):
        raise UnconfiguredMemberError.for_member(member, slot)
    if _needs_arguments(tp):
        raise UnconfiguredMemberError.for_member(member, slot)
    return tp()


# ── class-stub support ───────────────────────────────────────────


def base_attribute(proxy: Any, name: str) -> Any:
    """Raw class attribute *name* as the base classes behind *proxy* define it.

    *proxy* is the zero-argument ``super()`` of a stub method; the result is
    the descriptor itself (a property, say), not its bound value.
    """
    mro = proxy.__self_class__.__mro__
    start = mro.index(proxy.__thisclass__) + 1
    for klass in mro[start:]:
        if name in vars(klass):
            return vars(klass)[name]
    raise AttributeError(f"No base class of {proxy.__thisclass__.__name__} defines {name!r}")


is_awaitable = inspect.isawaitable


# ── declaration markers ──────────────────────────────────────────


def stub(cls: type[T]) -> type[T]:
    """Marks a class as a standalone stub request for the generator."""
    return cls


def inline_stubs(*targets: Any) -> Callable[[type[T]], type[T]]:
    """Marks a class as requesting inline stubs for *targets*."""

    def mark(cls: type[T]) -> type[T]:
        cls.__stubsmith_targets__ = targets  # type: ignore[attr-defined]
        return cls

    return mark

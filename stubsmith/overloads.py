"""Overload Grouper — partitions method members by name."""

from __future__ import annotations

import logging
from typing import Iterable

from .model import FrozenModel, MethodMember, TypeRef

logger = logging.getLogger(__name__)


class CombinedParam(FrozenModel):
    name: str
    type: TypeRef
    present_in_all_overloads: bool


class OverloadGroup(FrozenModel):
    name: str
    overloads: tuple[MethodMember, ...]
    combined_parameters: tuple[CombinedParam, ...] = ()

    @property
    def is_overloaded(self) -> bool:
        return len(self.overloads) > 1

    @property
    def is_mixed_generic(self) -> bool:
        generic = [o.is_generic for o in self.overloads]
        return any(generic) and not all(generic)

    def numbered(self) -> list[tuple[int, MethodMember]]:
        """Overloads paired with their 1-based declaration-order index."""
        return list(enumerate(self.overloads, start=1))

    def combined_names(self) -> frozenset[str]:
        return frozenset(p.name for p in self.combined_parameters)


def combine_parameters(overloads: tuple[MethodMember, ...]) -> tuple[CombinedParam, ...]:
    """Union of parameter names across *overloads*.

    A name missing from at least one overload keeps its first-seen type,
    widened to nullable, and is marked optional.
    """
    first_type: dict[str, TypeRef] = {}
    occurrences: dict[str, int] = {}
    for overload in overloads:
        for param in overload.parameters:
            if param.name not in first_type:
                first_type[param.name] = param.type
            occurrences[param.name] = occurrences.get(param.name, 0) + 1

    total = len(overloads)
    return tuple(
        CombinedParam(
            name=name,
            type=param_type if occurrences[name] == total else param_type.with_nullable(),
            present_in_all_overloads=occurrences[name] == total,
        )
        for name, param_type in first_type.items()
    )


def group_overloads(methods: Iterable[MethodMember]) -> tuple[OverloadGroup, ...]:
    """Partition *methods* by name, keeping declaration order everywhere.

    Groups appear in order of each name's first occurrence and overloads
    inside a group keep input order; downstream names embed the 1-based
    position, so nothing is re-sorted.
    """
    by_name: dict[str, list[MethodMember]] = {}
    for method in methods:
        by_name.setdefault(method.name, []).append(method)

    groups = tuple(
        OverloadGroup(
            name=name,
            overloads=tuple(overloads),
            combined_parameters=combine_parameters(tuple(overloads)),
        )
        for name, overloads in by_name.items()
    )
    logger.debug(
        "Grouped %d methods into %d groups",
        sum(len(g.overloads) for g in groups),
        len(groups),
    )
    return groups

"""Base-class member walker for class-based stubs."""

from __future__ import annotations

import logging
from collections import deque

from .model import (
    Accessibility,
    ClassModel,
    EventMember,
    MethodMember,
    PropertyMember,
)

logger = logging.getLogger(__name__)


def override_key(member: PropertyMember | MethodMember | EventMember) -> tuple[str, str]:
    """Key under which a derived declaration hides a base one.

    Python resolves attributes by name through the MRO, so the nearest
    definition of a name hides every base definition of it, whatever its
    parameters are. Indexers all live under the subscript protocol.
    """
    if isinstance(member, PropertyMember) and member.is_indexer:
        return ("indexer", member.name)
    return ("member", member.name)


def collect_overridable_members(
    cls: ClassModel,
) -> tuple[list[PropertyMember | MethodMember], list[EventMember]]:
    """Every non-private member reachable from *cls* up its base chain.

    Walks with an explicit worklist, most-derived class first, keeping the
    first declaration seen under each key. Several declarations of one name
    in the same class (overloads) are all kept.
    """
    seen: set[tuple[str, str]] = set()
    members: list[PropertyMember | MethodMember] = []
    events: list[EventMember] = []
    visited: set[str] = set()
    worklist: deque[ClassModel] = deque([cls])

    while worklist:
        current = worklist.popleft()
        if current.full_name in visited:
            continue
        visited.add(current.full_name)

        declared_here: set[tuple[str, str]] = set()
        for member in current.members:
            key = override_key(member)
            if member.accessibility == Accessibility.PRIVATE or key in seen:
                continue
            declared_here.add(key)
            members.append(member)
        for event in current.events:
            key = override_key(event)
            if event.accessibility == Accessibility.PRIVATE or key in seen:
                continue
            declared_here.add(key)
            events.append(event)
        seen |= declared_here

        if current.base is not None:
            worklist.append(current.base)

    logger.debug(
        "Collected %d members and %d events for %s", len(members), len(events), cls.full_name
    )
    return members, events


def flatten_class(cls: ClassModel) -> ClassModel:
    """A copy of *cls* carrying the inherited members directly."""
    members, events = collect_overridable_members(cls)
    return cls.model_copy(update={"members": tuple(members), "events": tuple(events)})

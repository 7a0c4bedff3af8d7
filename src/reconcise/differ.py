"""Diff engine for declarative reconciliation.

Classifies wanted specs and actual resources by join key into three
disjoint buckets with a single ascending co-traversal (sorted merge):

- ``to_add``: key only in wanted
- ``to_remove``: key only in actual
- ``to_sync``: key in both (content is never inspected here)
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any, Generic, Protocol, TypeVar

from .exceptions import DuplicateKeyError, UnorderedKeysError


class _Keyed(Protocol):
    @property
    def id(self) -> str: ...


K = TypeVar("K", bound=_Keyed)
WS = TypeVar("WS")
AR = TypeVar("AR")


@dataclass(frozen=True)
class Change:
    """A single action to apply."""

    action: str  # "create", "destroy", "sync"
    type_name: str
    target: str  # join key


@dataclass
class Diff(Generic[WS, AR]):
    """Result of classifying wanted against actual state."""

    to_add: list[WS] = field(default_factory=list)
    to_remove: list[AR] = field(default_factory=list)
    to_sync: list[tuple[WS, AR]] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        """True when nothing needs to be created or destroyed."""
        return not self.to_add and not self.to_remove

    def changes(self) -> list[Change]:
        """Flatten into a list of Change objects (create, destroy, then sync)."""
        changes = [Change("create", _type_name(s), _key(s)) for s in self.to_add]
        changes += [Change("destroy", _type_name(r), _key(r)) for r in self.to_remove]
        changes += [Change("sync", _type_name(s), _key(s)) for s, _ in self.to_sync]
        return changes

    def summary(self) -> dict[str, int]:
        return {
            "create": len(self.to_add),
            "destroy": len(self.to_remove),
            "sync": len(self.to_sync),
        }


def _key(item: Any) -> str:
    return item.id


def _type_name(item: Any) -> str:
    return getattr(item, "type_name", "")


def index_by_id(items: Iterable[K], side: str) -> dict[str, K]:
    """
    Project items into a mapping keyed by ``id``, ascending by key.

    Args:
        items: Specs or resources
        side: "wanted" or "actual" (used in error messages)

    Raises:
        DuplicateKeyError: If two items share a key
    """
    indexed: dict[str, K] = {}
    for item in items:
        key = item.id
        if key in indexed:
            raise DuplicateKeyError(key, side)
        indexed[key] = item
    return {key: indexed[key] for key in sorted(indexed)}


def _cursor(mapping: Mapping[str, Any], side: str) -> Iterator[tuple[str, Any]]:
    """Iterate a mapping, checking that keys are strictly ascending."""
    previous: str | None = None
    for key, value in mapping.items():
        if previous is not None and key <= previous:
            if key == previous:
                raise DuplicateKeyError(key, side)
            raise UnorderedKeysError(previous, key, side)
        previous = key
        yield key, value


def compute_diff(
    wanted: Mapping[str, WS],
    actual: Mapping[str, AR],
) -> Diff[WS, AR]:
    """
    Classify wanted specs against actual resources.

    Both mappings must be ordered ascending by key (see ``index_by_id``).
    An exhausted side compares greater than any key, so the other side
    drains into its own bucket.

    Args:
        wanted: Join key -> spec, ascending
        actual: Join key -> resource, ascending

    Returns:
        Diff with disjoint to_add / to_remove / to_sync lists, each in
        ascending key order.

    Raises:
        InvariantViolation: If either side is not strictly ascending
    """
    diff: Diff[WS, AR] = Diff()

    wanted_iter = _cursor(wanted, "wanted")
    actual_iter = _cursor(actual, "actual")
    wanted_item = next(wanted_iter, None)
    actual_item = next(actual_iter, None)

    while wanted_item is not None or actual_item is not None:
        if actual_item is None or (wanted_item is not None and wanted_item[0] < actual_item[0]):
            # Only wanted: create
            assert wanted_item is not None
            diff.to_add.append(wanted_item[1])
            wanted_item = next(wanted_iter, None)
        elif wanted_item is None or wanted_item[0] > actual_item[0]:
            # Only actual: destroy
            diff.to_remove.append(actual_item[1])
            actual_item = next(actual_iter, None)
        else:
            # Join
            diff.to_sync.append((wanted_item[1], actual_item[1]))
            wanted_item = next(wanted_iter, None)
            actual_item = next(actual_iter, None)

    return diff


def diff_resources(wanted: Iterable[Any], actual: Iterable[Any]) -> Diff[Any, Any]:
    """Index both sides by id and compute the diff."""
    return compute_diff(index_by_id(wanted, "wanted"), index_by_id(actual, "actual"))

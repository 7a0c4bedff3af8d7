"""Reconciliation pass: fetch, diff, apply.

A pass is a small state machine::

    START -> FETCHING -> DIFFING -> APPLYING -> DONE
                 \\          \\          \\
                  +----------+----------+--> ERROR

Fetching must complete (all pages) before diffing, and diffing must complete
before any provider mutation is issued. The first failed operation stops the
pass; operations already issued are not rolled back. Re-running the pass is
the recovery path: the next fetch observes the provider's true state.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from .differ import Diff, compute_diff, index_by_id
from .exceptions import (
    CreateError,
    DestroyError,
    ProviderError,
    ReconciseError,
    UpdateError,
    ValidationError,
)
from .fetcher import fetch_all

if TYPE_CHECKING:
    from .models import Resource
    from .naming import Scope
    from .provider_protocol import ProviderProtocol

logger = logging.getLogger(__name__)


class Phase(Enum):
    """Where a reconciliation pass currently is."""

    START = "start"
    FETCHING = "fetching"
    DIFFING = "diffing"
    APPLYING = "applying"
    DONE = "done"
    ERROR = "error"


@dataclass
class ReconcileResult:
    """Outcome of a successful reconciliation pass."""

    type_name: str
    diff: Diff[Any, Any]
    resources: list[Resource[Any, Any]] = field(default_factory=list)
    created: list[str] = field(default_factory=list)
    destroyed: list[str] = field(default_factory=list)
    synced: list[str] = field(default_factory=list)
    updated: list[str] = field(default_factory=list)

    def summary(self) -> dict[str, int]:
        return {
            "created": len(self.created),
            "destroyed": len(self.destroyed),
            "synced": len(self.synced),
            "updated": len(self.updated),
            "total": len(self.resources),
        }


class Reconciler:
    """
    Converges one resource kind toward a wanted set of specs.

    Example:
        provider = InMemoryProvider("server")
        reconciler = Reconciler(provider, [ServerSpec(name="web-1")])
        result = await reconciler.reconcile()
        print(result.summary())

    Attributes:
        provider: Adapter for the resource kind
        scope: Ownership filter used when fetching
        phase: Current (or final) phase of the last pass
    """

    def __init__(
        self,
        provider: ProviderProtocol[Any, Any],
        wanted: Iterable[Any],
        *,
        scope: Scope | None = None,
    ) -> None:
        self.provider = provider
        self.scope = scope if scope is not None else provider.scope
        wanted = list(wanted)
        for spec in wanted:
            if spec.type_name != provider.type_name:
                raise ValidationError(
                    "spec",
                    spec.id,
                    f"Kind {spec.type_name!r} does not match provider kind "
                    f"{provider.type_name!r}",
                )
        # Fails fast on duplicate names, before anything is fetched
        self._wanted = index_by_id(wanted, "wanted")
        self.phase = Phase.START
        self._lock = asyncio.Lock()

    @property
    def type_name(self) -> str:
        return self.provider.type_name

    @property
    def wanted(self) -> list[Any]:
        """Wanted specs in key order."""
        return list(self._wanted.values())

    async def plan(self) -> Diff[Any, Any]:
        """
        Fetch actual state and classify it, without mutating anything.

        Raises:
            FetchError: If listing fails
            InvariantViolation: If the provider reports duplicate names
        """
        async with self._exclusive():
            return await self._fetch_and_diff()

    async def reconcile(self) -> ReconcileResult:
        """
        Run one full pass: fetch, diff, then apply creates, destroys and syncs.

        Returns:
            ReconcileResult describing every resource now believed to exist.

        Raises:
            FetchError: If listing fails (nothing was mutated)
            CreateError / DestroyError / UpdateError: On the first failed
                operation; earlier operations of this pass stay applied
            InvariantViolation: If the provider reports duplicate names
        """
        async with self._exclusive():
            diff = await self._fetch_and_diff()
            return await self._apply_diff(diff)

    async def apply(self, diff: Diff[Any, Any]) -> ReconcileResult:
        """
        Apply a diff returned by ``plan()`` without fetching again.

        Only the changes in ``diff`` are issued, so what runs is exactly
        what was reviewed. Resources that appeared or vanished since the
        plan are left to the next pass.

        Raises:
            CreateError / DestroyError / UpdateError: On the first failed
                operation; earlier operations stay applied
        """
        async with self._exclusive():
            return await self._apply_diff(diff)

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    async def _apply_diff(self, diff: Diff[Any, Any]) -> ReconcileResult:
        try:
            self.phase = Phase.APPLYING
            result = await self._apply(diff)
        except BaseException:
            self.phase = Phase.ERROR
            raise
        self.phase = Phase.DONE
        logger.info("Reconciled %s: %s", self.type_name, result.summary())
        return result

    def _exclusive(self) -> asyncio.Lock:
        if self._lock.locked():
            raise RuntimeError(f"A {self.type_name} pass is already running on this reconciler")
        return self._lock

    async def _fetch_and_diff(self) -> Diff[Any, Any]:
        try:
            self.phase = Phase.FETCHING
            actual = await fetch_all(self.provider, self.scope)
            self.phase = Phase.DIFFING
            diff = compute_diff(self._wanted, index_by_id(actual, "actual"))
        except BaseException:
            self.phase = Phase.ERROR
            raise
        logger.info("Planned %s: %s", self.type_name, diff.summary())
        return diff

    async def _apply(self, diff: Diff[Any, Any]) -> ReconcileResult:
        result = ReconcileResult(type_name=self.type_name, diff=diff)
        resources: dict[str, Resource[Any, Any]] = {}

        for spec in diff.to_add:
            created = await self._call(CreateError, spec.id, self.provider.create(spec))
            logger.info("Created %s %s", self.type_name, spec.id)
            resources[spec.id] = created
            result.created.append(spec.id)

        for resource in diff.to_remove:
            await self._call(DestroyError, resource.id, self.provider.destroy(resource))
            logger.info("Destroyed %s %s", self.type_name, resource.id)
            result.destroyed.append(resource.id)

        for spec, resource in diff.to_sync:
            synced = await self._call(UpdateError, spec.id, self.provider.sync(spec, resource))
            if synced != resource:
                logger.info("Updated %s %s", self.type_name, spec.id)
                result.updated.append(spec.id)
            else:
                logger.debug("%s %s is up to date", self.type_name, spec.id)
            resources[spec.id] = synced
            result.synced.append(spec.id)

        result.resources = [resources[key] for key in sorted(resources)]
        return result

    async def _call(
        self,
        error_class: type[ProviderError],
        resource_id: str,
        operation: Any,
    ) -> Any:
        """Await a provider operation, mapping failures into the error taxonomy."""
        try:
            return await operation
        except ReconciseError as e:
            logger.warning(
                "Failed to %s %s %s: %s", error_class.operation, self.type_name, resource_id, e
            )
            raise
        except Exception as e:
            logger.warning(
                "Failed to %s %s %s: %s", error_class.operation, self.type_name, resource_id, e
            )
            raise error_class(
                f"Failed to {error_class.operation}",
                e,
                type_name=self.type_name,
                resource_id=resource_id,
            ) from e


async def reconcile_many(
    reconcilers: Iterable[Reconciler],
    plans: Mapping[str, Diff[Any, Any]] | None = None,
) -> dict[str, ReconcileResult]:
    """
    Run independent passes (one per kind) concurrently.

    Passes share no state; the first failure is raised once every pass
    has finished or failed.

    Args:
        reconcilers: One reconciler per kind
        plans: Diffs from ``plan()`` keyed by type name. When given, each
            reconciler applies its diff instead of fetching again.

    Raises:
        ValidationError: If two reconcilers manage the same kind, or a
            kind has no entry in ``plans``
    """
    reconcilers = list(reconcilers)
    type_names = [r.type_name for r in reconcilers]
    duplicates = sorted({t for t in type_names if type_names.count(t) > 1})
    if duplicates:
        raise ValidationError("kind", duplicates[0], "Reconciled more than once in one run")

    if plans is None:
        passes = [r.reconcile() for r in reconcilers]
    else:
        missing = [t for t in type_names if t not in plans]
        if missing:
            raise ValidationError("kind", missing[0], "No plan to apply")
        passes = [r.apply(plans[r.type_name]) for r in reconcilers]

    outcomes = await asyncio.gather(*passes, return_exceptions=True)
    results: dict[str, ReconcileResult] = {}
    for type_name, outcome in zip(type_names, outcomes, strict=True):
        if isinstance(outcome, BaseException):
            raise outcome
        results[type_name] = outcome
    return results


class SyncReconciler:
    """
    Synchronous facade over Reconciler.

    Runs async operations in an event loop owned by this instance.
    """

    def __init__(
        self,
        provider: ProviderProtocol[Any, Any],
        wanted: Iterable[Any],
        *,
        scope: Scope | None = None,
    ) -> None:
        self._reconciler = Reconciler(provider, wanted, scope=scope)
        self._loop: asyncio.AbstractEventLoop | None = None

    @property
    def phase(self) -> Phase:
        return self._reconciler.phase

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        """Get or create the event loop."""
        if self._loop is None or self._loop.is_closed():
            self._loop = asyncio.new_event_loop()
        return self._loop

    def _run(self, coro: Any) -> Any:
        """Run a coroutine in the event loop."""
        return self._get_loop().run_until_complete(coro)

    def plan(self) -> Diff[Any, Any]:
        """Fetch and diff without applying."""
        return self._run(self._reconciler.plan())

    def reconcile(self) -> ReconcileResult:
        """Run one full pass."""
        return self._run(self._reconciler.reconcile())

    def apply(self, diff: Diff[Any, Any]) -> ReconcileResult:
        """Apply a diff returned by ``plan()``."""
        return self._run(self._reconciler.apply(diff))

    def close(self) -> None:
        """Close the provider and the event loop."""
        self._run(self._reconciler.provider.close())
        if self._loop is not None:
            self._loop.close()
            self._loop = None

    def __enter__(self) -> SyncReconciler:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

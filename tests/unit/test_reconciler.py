"""Tests for the reconciliation pass."""

import asyncio
from dataclasses import dataclass
from typing import ClassVar
from unittest.mock import AsyncMock, patch

import pytest

from reconcise import InMemoryProvider, SpecBase
from reconcise.exceptions import (
    CreateError,
    DestroyError,
    DuplicateKeyError,
    FetchError,
    ProviderUnavailableError,
    UpdateError,
    ValidationError,
)
from reconcise.naming import Scope
from reconcise.reconciler import Phase, Reconciler, SyncReconciler, reconcile_many


@dataclass(frozen=True)
class DiskSpec(SpecBase):
    type_name: ClassVar[str] = "disk"


def names(provider: InMemoryProvider) -> list[str]:
    return sorted(r.id for r in provider.resources())


class TestReconcilerInit:
    """Tests for Reconciler construction."""

    def test_rejects_duplicate_wanted_names(self, provider, make_spec):
        with pytest.raises(DuplicateKeyError):
            Reconciler(provider, [make_spec("a"), make_spec("a", size="large")])

    def test_rejects_spec_of_other_kind(self, make_spec):
        with pytest.raises(ValidationError, match="does not match provider kind"):
            Reconciler(InMemoryProvider("volume"), [make_spec("a")])

    def test_wanted_sorted_by_name(self, provider, make_spec):
        reconciler = Reconciler(provider, [make_spec("c"), make_spec("a")])

        assert [s.id for s in reconciler.wanted] == ["a", "c"]
        assert reconciler.phase == Phase.START

    def test_scope_defaults_to_provider_scope(self, provider):
        assert Reconciler(provider, []).scope == provider.scope


class TestPlan:
    """Tests for Reconciler.plan."""

    @pytest.mark.asyncio
    async def test_plan_does_not_mutate(self, provider, make_spec):
        provider.seed(make_spec("b"))
        provider.seed(make_spec("c"))
        reconciler = Reconciler(provider, [make_spec("a"), make_spec("c")])

        diff = await reconciler.plan()

        assert [s.id for s in diff.to_add] == ["a"]
        assert [r.id for r in diff.to_remove] == ["b"]
        assert [s.id for s, _ in diff.to_sync] == ["c"]
        assert provider.calls == []
        assert names(provider) == ["b", "c"]

    @pytest.mark.asyncio
    async def test_plan_duplicate_actual_names(self, provider, make_spec):
        """Two live resources with one name is an invariant violation."""
        provider.seed(make_spec("a"))
        provider.seed(make_spec("a"))
        reconciler = Reconciler(provider, [])

        with pytest.raises(DuplicateKeyError) as exc_info:
            await reconciler.plan()

        assert exc_info.value.side == "actual"
        assert reconciler.phase == Phase.ERROR


class TestReconcile:
    """Tests for Reconciler.reconcile."""

    @pytest.mark.asyncio
    async def test_converges_empty_provider(self, provider, make_spec):
        reconciler = Reconciler(provider, [make_spec("b"), make_spec("a")])

        result = await reconciler.reconcile()

        assert result.created == ["a", "b"]
        assert result.destroyed == []
        assert [r.id for r in result.resources] == ["a", "b"]
        assert names(provider) == ["a", "b"]
        assert reconciler.phase == Phase.DONE

    @pytest.mark.asyncio
    async def test_create_destroy_sync(self, provider, make_spec):
        provider.seed(make_spec("b"))
        provider.seed(make_spec("c", size="small"))
        provider.seed(make_spec("d"))
        wanted = [make_spec("a"), make_spec("c", size="large"), make_spec("e")]

        result = await Reconciler(provider, wanted).reconcile()

        assert result.created == ["a", "e"]
        assert result.destroyed == ["b", "d"]
        assert result.synced == ["c"]
        assert result.updated == ["c"]
        assert names(provider) == ["a", "c", "e"]
        assert {r.id: r.spec.size for r in provider.resources()}["c"] == "large"
        assert result.summary() == {
            "created": 2,
            "destroyed": 2,
            "synced": 1,
            "updated": 1,
            "total": 3,
        }

    @pytest.mark.asyncio
    async def test_operation_order(self, provider, make_spec):
        """Creates, then destroys, then syncs, each in key order."""
        provider.seed(make_spec("y"))
        provider.seed(make_spec("x"))
        provider.seed(make_spec("m"))
        wanted = [make_spec("n"), make_spec("m"), make_spec("b")]

        await Reconciler(provider, wanted).reconcile()

        assert provider.calls == [
            ("create", "b"),
            ("create", "n"),
            ("destroy", "x"),
            ("destroy", "y"),
            ("sync", "m"),
        ]

    @pytest.mark.asyncio
    async def test_second_pass_is_noop(self, provider, make_spec):
        """Re-running against converged state only syncs, without changes."""
        wanted = [make_spec("a"), make_spec("b"), make_spec("c")]
        reconciler = Reconciler(provider, wanted)
        await reconciler.reconcile()
        provider.calls.clear()

        result = await reconciler.reconcile()

        assert result.diff.is_empty
        assert result.created == [] and result.destroyed == []
        assert result.synced == ["a", "b", "c"]
        assert result.updated == []
        assert [op for op, _ in provider.calls] == ["sync", "sync", "sync"]

    @pytest.mark.asyncio
    async def test_empty_wanted_destroys_all_in_scope(self, provider, make_spec):
        provider.seed(make_spec("a"))
        provider.seed(make_spec("b"))

        result = await Reconciler(provider, []).reconcile()

        assert result.destroyed == ["a", "b"]
        assert provider.resources() == []

    @pytest.mark.asyncio
    async def test_out_of_scope_resources_untouched(self, provider, make_spec):
        """Resources without the ownership tag are never listed or destroyed."""
        provider.seed(make_spec("foreign"), labels={"owner": "someone-else"})
        provider.seed(make_spec("mine"))

        result = await Reconciler(provider, [make_spec("new")]).reconcile()

        assert result.destroyed == ["mine"]
        assert ("destroy", "foreign") not in provider.calls
        assert [r.id for r in provider.resources(Scope("owner", "someone-else"))] == ["foreign"]

    @pytest.mark.asyncio
    async def test_explicit_scope_overrides_provider(self, provider, make_spec):
        team = Scope("team", "blue")
        provider.seed(make_spec("blue-1"), labels={"team": "blue"})
        provider.seed(make_spec("default-1"))

        diff = await Reconciler(provider, [], scope=team).plan()

        assert [r.id for r in diff.to_remove] == ["blue-1"]

    @pytest.mark.asyncio
    async def test_large_paginated_state(self, provider, make_spec):
        for i in range(24):
            provider.seed(make_spec(f"srv-{i:02d}"))
        wanted = [make_spec(f"srv-{i:02d}") for i in range(4, 30)]

        result = await Reconciler(provider, wanted).reconcile()

        assert len(result.created) == 6
        assert len(result.destroyed) == 4
        assert len(result.synced) == 20
        assert len(provider.resources()) == 26


class TestApply:
    """Tests for applying a reviewed plan."""

    @pytest.mark.asyncio
    async def test_applies_planned_diff_without_refetching(self, provider, make_spec):
        """Resources that appear after planning are left for the next pass."""
        provider.seed(make_spec("old"))
        reconciler = Reconciler(provider, [make_spec("new")])
        diff = await reconciler.plan()
        provider.seed(make_spec("late"))

        result = await reconciler.apply(diff)

        assert result.created == ["new"]
        assert result.destroyed == ["old"]
        assert names(provider) == ["late", "new"]
        assert reconciler.phase == Phase.DONE

        next_pass = await reconciler.reconcile()
        assert next_pass.destroyed == ["late"]

    @pytest.mark.asyncio
    async def test_apply_failure_sets_error_phase(self, provider, make_spec):
        reconciler = Reconciler(provider, [make_spec("a")])
        diff = await reconciler.plan()
        provider.fail_on_create.add("a")

        with pytest.raises(ProviderUnavailableError):
            await reconciler.apply(diff)

        assert reconciler.phase == Phase.ERROR


class TestReconcileFailures:
    """Fail-fast behavior and error mapping."""

    @pytest.mark.asyncio
    async def test_create_failure_stops_pass(self, provider, make_spec):
        """Earlier creates stay, later operations are not issued."""
        provider.seed(make_spec("z"))
        provider.fail_on_create.add("b")
        reconciler = Reconciler(provider, [make_spec("a"), make_spec("b"), make_spec("c")])

        with pytest.raises(ProviderUnavailableError):
            await reconciler.reconcile()

        assert reconciler.phase == Phase.ERROR
        assert names(provider) == ["a", "z"]
        assert provider.calls == [("create", "a"), ("create", "b")]

    @pytest.mark.asyncio
    async def test_destroy_failure_keeps_creates(self, provider, make_spec):
        provider.seed(make_spec("old"))
        provider.fail_on_destroy.add("old")
        reconciler = Reconciler(provider, [make_spec("new")])

        with pytest.raises(ProviderUnavailableError):
            await reconciler.reconcile()

        assert names(provider) == ["new", "old"]
        assert reconciler.phase == Phase.ERROR

    @pytest.mark.asyncio
    async def test_fetch_failure_mutates_nothing(self, provider, make_spec):
        for i in range(15):
            provider.seed(make_spec(f"srv-{i:02d}"))
        provider.fail_on_page.add(2)
        reconciler = Reconciler(provider, [make_spec("new")])

        with pytest.raises(FetchError):
            await reconciler.reconcile()

        assert provider.calls == []
        assert reconciler.phase == Phase.ERROR

    @pytest.mark.asyncio
    async def test_recovers_on_rerun(self, provider, make_spec):
        """After a failed pass, a second pass finishes the job."""
        provider.fail_on_create.add("b")
        reconciler = Reconciler(provider, [make_spec("a"), make_spec("b")])
        with pytest.raises(ProviderUnavailableError):
            await reconciler.reconcile()

        provider.fail_on_create.clear()
        result = await reconciler.reconcile()

        assert result.created == ["b"]
        assert result.synced == ["a"]
        assert names(provider) == ["a", "b"]
        assert reconciler.phase == Phase.DONE

    @pytest.mark.asyncio
    async def test_foreign_exception_wrapped_as_create_error(self, provider, make_spec):
        reconciler = Reconciler(provider, [make_spec("a")])

        with patch.object(provider, "create", AsyncMock(side_effect=OSError("boom"))):
            with pytest.raises(CreateError) as exc_info:
                await reconciler.reconcile()

        err = exc_info.value
        assert err.resource_id == "a"
        assert err.type_name == "server"
        assert isinstance(err.cause, OSError)
        assert str(err) == "Failed to create [kind=server, resource=a] caused by OSError: boom"

    @pytest.mark.asyncio
    async def test_foreign_exception_wrapped_as_destroy_error(self, provider, make_spec):
        provider.seed(make_spec("a"))
        reconciler = Reconciler(provider, [])

        with patch.object(provider, "destroy", AsyncMock(side_effect=KeyError("gone"))):
            with pytest.raises(DestroyError):
                await reconciler.reconcile()

    @pytest.mark.asyncio
    async def test_foreign_exception_wrapped_as_update_error(self, provider, make_spec):
        provider.seed(make_spec("a"))
        reconciler = Reconciler(provider, [make_spec("a", size="large")])

        with patch.object(provider, "sync", AsyncMock(side_effect=RuntimeError("no"))):
            with pytest.raises(UpdateError) as exc_info:
                await reconciler.reconcile()

        assert exc_info.value.operation == "sync"

    @pytest.mark.asyncio
    async def test_adapter_error_passes_through(self, provider, make_spec):
        """Library errors raised by the adapter are not wrapped again."""
        provider.seed(make_spec("a"))
        provider.fail_on_sync.add("a")

        with pytest.raises(ProviderUnavailableError):
            await Reconciler(provider, [make_spec("a")]).reconcile()

    @pytest.mark.asyncio
    async def test_concurrent_pass_rejected(self, provider, make_spec):
        started = asyncio.Event()
        release = asyncio.Event()
        real_list_page = provider.list_page

        async def slow_list_page(scope, token):
            started.set()
            await release.wait()
            return await real_list_page(scope, token)

        provider.list_page = slow_list_page
        reconciler = Reconciler(provider, [make_spec("a")])

        first = asyncio.create_task(reconciler.reconcile())
        await started.wait()
        with pytest.raises(RuntimeError, match="already running"):
            await reconciler.plan()
        release.set()
        result = await first

        assert result.created == ["a"]


class TestReconcileMany:
    """Tests for reconcile_many."""

    @pytest.mark.asyncio
    async def test_runs_each_kind(self, make_spec):
        servers = InMemoryProvider("server")
        disks = InMemoryProvider("disk")

        results = await reconcile_many(
            [
                Reconciler(servers, [make_spec("a")]),
                Reconciler(disks, [DiskSpec(name="b")]),
            ]
        )

        assert sorted(results) == ["disk", "server"]
        assert results["server"].created == ["a"]
        assert results["disk"].created == ["b"]

    @pytest.mark.asyncio
    async def test_failure_raised_after_all_finish(self, make_spec):
        failing = InMemoryProvider("server")
        failing.fail_on_create.add("a")
        healthy = InMemoryProvider("disk")

        with pytest.raises(ProviderUnavailableError):
            await reconcile_many(
                [
                    Reconciler(failing, [make_spec("a")]),
                    Reconciler(healthy, [DiskSpec(name="b")]),
                ]
            )

        assert [r.id for r in healthy.resources()] == ["b"]

    @pytest.mark.asyncio
    async def test_applies_given_plans(self, make_spec):
        servers = InMemoryProvider("server")
        reconciler = Reconciler(servers, [make_spec("a")])
        plans = {"server": await reconciler.plan()}
        servers.seed(make_spec("late"))

        results = await reconcile_many([reconciler], plans)

        assert results["server"].created == ["a"]
        assert results["server"].destroyed == []
        assert names(servers) == ["a", "late"]

    @pytest.mark.asyncio
    async def test_missing_plan_rejected(self, make_spec):
        reconciler = Reconciler(InMemoryProvider("server"), [make_spec("a")])

        with pytest.raises(ValidationError, match="No plan to apply"):
            await reconcile_many([reconciler], {})

    @pytest.mark.asyncio
    async def test_duplicate_kind_rejected(self, make_spec):
        with pytest.raises(ValidationError, match="more than once"):
            await reconcile_many(
                [
                    Reconciler(InMemoryProvider("server"), [make_spec("a")]),
                    Reconciler(InMemoryProvider("server"), [make_spec("b")]),
                ]
            )


class TestSyncReconciler:
    """Tests for the synchronous facade."""

    def test_reconcile_and_plan(self, provider, make_spec):
        with SyncReconciler(provider, [make_spec("a")]) as reconciler:
            assert [s.id for s in reconciler.plan().to_add] == ["a"]
            result = reconciler.reconcile()
            assert result.created == ["a"]
            assert reconciler.phase == Phase.DONE
            assert reconciler.plan().is_empty

        assert provider.closed

    def test_apply_plan(self, provider, make_spec):
        with SyncReconciler(provider, [make_spec("a")]) as reconciler:
            diff = reconciler.plan()
            provider.seed(make_spec("late"))

            result = reconciler.apply(diff)

        assert result.created == ["a"]
        assert names(provider) == ["a", "late"]

    def test_errors_propagate(self, provider, make_spec):
        provider.fail_on_create.add("a")
        reconciler = SyncReconciler(provider, [make_spec("a")])
        try:
            with pytest.raises(ProviderUnavailableError):
                reconciler.reconcile()
            assert reconciler.phase == Phase.ERROR
        finally:
            reconciler.close()

"""Command-line interface for reconcise."""

from __future__ import annotations

import asyncio
import logging
import sys
from collections.abc import Callable
from typing import Any, NoReturn

import click

from .differ import Diff
from .exceptions import ReconciseError, ValidationError
from .fetcher import fetch_all
from .formatters import OutputFormat, format_plan, format_resources, format_results
from .manifest import Manifest
from .models import ProviderOptions
from .naming import (
    ENDPOINT_ENV_VAR,
    PAGE_SIZE_ENV_VAR,
    REGION_ENV_VAR,
    SCOPE_ENV_VAR,
    Scope,
    default_scope,
)
from .reconciler import Reconciler, ReconcileResult, reconcile_many
from .registry import KindRegistry, default_registry

logger = logging.getLogger(__name__)


def _connection_options(f: Callable[..., Any]) -> Callable[..., Any]:
    """Options shared by every command that talks to a provider."""
    f = click.option(
        "--page-size",
        type=click.IntRange(1, 1000),
        envvar=PAGE_SIZE_ENV_VAR,
        default=100,
        show_default=True,
        help="Items requested per listing page.",
    )(f)
    f = click.option(
        "--scope",
        help=(
            "Ownership tag as key=value "
            f"(default: manifest scope, then ${SCOPE_ENV_VAR}, then managed_by=reconcise)."
        ),
    )(f)
    f = click.option(
        "--endpoint-url",
        envvar=ENDPOINT_ENV_VAR,
        help="Provider endpoint URL (e.g., http://localhost:4566 for LocalStack).",
    )(f)
    f = click.option(
        "--region",
        envvar=REGION_ENV_VAR,
        help="Provider region (default: use boto3 defaults).",
    )(f)
    return f


_manifest_option = click.option(
    "--file",
    "-f",
    "file_path",
    required=True,
    type=click.Path(exists=True, dir_okay=False),
    help="YAML manifest of wanted resources.",
)

_kind_option = click.option(
    "--kind",
    "-k",
    "kinds",
    multiple=True,
    help="Only handle this kind (repeatable; default: every kind in the manifest).",
)


@click.group()
@click.version_option(package_name="reconcise")
@click.option("--verbose", "-v", is_flag=True, help="Log provider calls (DEBUG).")
def cli(verbose: bool) -> None:
    """reconcise: converge provider resources toward a declared manifest."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(message)s",
    )


@cli.command("plan")
@_manifest_option
@_kind_option
@_connection_options
@click.option(
    "--output",
    "-o",
    type=click.Choice([f.value for f in OutputFormat]),
    default=OutputFormat.TABLE.value,
    help="Output format.",
)
def plan_cmd(
    file_path: str,
    kinds: tuple[str, ...],
    region: str | None,
    endpoint_url: str | None,
    scope: str | None,
    page_size: int,
    output: str,
) -> None:
    """Preview changes without applying them (like terraform plan)."""
    registry = default_registry()
    manifest = _load_manifest(file_path, registry)
    options = ProviderOptions(region=region, endpoint_url=endpoint_url, page_size=page_size)
    reconcilers = _build_reconcilers(registry, manifest, kinds, options, scope)

    diffs = _run(_plan_all(reconcilers))
    click.echo(format_plan(diffs, OutputFormat(output)))


@cli.command("apply")
@_manifest_option
@_kind_option
@_connection_options
@click.option("--yes", "-y", is_flag=True, help="Skip the confirmation prompt.")
def apply_cmd(
    file_path: str,
    kinds: tuple[str, ...],
    region: str | None,
    endpoint_url: str | None,
    scope: str | None,
    page_size: int,
    yes: bool,
) -> None:
    """Create, destroy and update resources to match the manifest."""
    registry = default_registry()
    manifest = _load_manifest(file_path, registry)
    options = ProviderOptions(region=region, endpoint_url=endpoint_url, page_size=page_size)
    reconcilers = _build_reconcilers(registry, manifest, kinds, options, scope)

    plans: dict[str, Diff[Any, Any]] | None = None
    if not yes:
        plans = _run(_plan_all(reconcilers))
        click.echo(format_plan(plans))
        click.confirm("\nApply these changes?", abort=True)

    # Applying the approved plans never fetches again; providers closed after
    # planning reopen their clients on first use
    results = _run(_apply_all(reconcilers, plans))
    click.echo(format_results(results))


@cli.command("inspect")
@click.option("--kind", "-k", "kind", required=True, help="Resource kind to list.")
@_connection_options
@click.option(
    "--output",
    "-o",
    type=click.Choice([f.value for f in OutputFormat]),
    default=OutputFormat.TABLE.value,
    help="Output format.",
)
def inspect_cmd(
    kind: str,
    region: str | None,
    endpoint_url: str | None,
    scope: str | None,
    page_size: int,
    output: str,
) -> None:
    """List resources of one kind owned by the scope."""
    registry = default_registry()
    options = ProviderOptions(region=region, endpoint_url=endpoint_url, page_size=page_size)
    resolved = _resolve_scope(scope, None)
    provider = _guard(lambda: registry.create_provider(kind, options, resolved))

    async def _inspect() -> list[Any]:
        try:
            return await fetch_all(provider)
        finally:
            await provider.close()

    resources = _run(_inspect())
    click.echo(format_resources(resources, OutputFormat(output)))


@cli.command("kinds")
def kinds_cmd() -> None:
    """List the resource kinds this installation can reconcile."""
    for kind in default_registry().kinds():
        click.echo(f"{kind.type_name:<16} {kind.description}")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _fail(message: str) -> NoReturn:
    click.echo(f"Error: {message}", err=True)
    sys.exit(1)


def _guard(fn: Callable[[], Any]) -> Any:
    """Call ``fn``, turning library errors into a one-line message and exit 1."""
    try:
        return fn()
    except ReconciseError as e:
        _fail(str(e))


def _run(coro: Any) -> Any:
    """Run a coroutine to completion, turning library errors into exit 1."""
    try:
        return asyncio.run(coro)
    except ReconciseError as e:
        logger.debug("Pass failed", exc_info=True)
        _fail(str(e))


def _load_manifest(file_path: str, registry: KindRegistry) -> Manifest:
    return _guard(lambda: Manifest.from_file(file_path, registry))


def _resolve_scope(cli_scope: str | None, manifest: Manifest | None) -> Scope:
    """CLI option, then manifest, then environment/default."""
    if cli_scope:
        return _guard(lambda: Scope.parse(cli_scope))
    if manifest is not None:
        return manifest.scope
    return default_scope()


def _build_reconcilers(
    registry: KindRegistry,
    manifest: Manifest,
    kinds: tuple[str, ...],
    options: ProviderOptions,
    cli_scope: str | None,
) -> list[Reconciler]:
    scope = _resolve_scope(cli_scope, manifest)
    selected = list(kinds) or manifest.type_names

    def build() -> list[Reconciler]:
        reconcilers = []
        for type_name in selected:
            if type_name not in manifest.resources:
                raise ValidationError("kind", type_name, "Not declared in the manifest")
            provider = registry.create_provider(type_name, options, scope)
            reconcilers.append(
                Reconciler(provider, manifest.specs_for(type_name), scope=scope)
            )
        return reconcilers

    return _guard(build)


async def _plan_all(reconcilers: list[Reconciler]) -> dict[str, Diff[Any, Any]]:
    try:
        # Let every plan finish before providers are closed
        outcomes = await asyncio.gather(
            *(r.plan() for r in reconcilers),
            return_exceptions=True,
        )
    finally:
        for r in reconcilers:
            await r.provider.close()

    diffs: dict[str, Diff[Any, Any]] = {}
    for r, outcome in zip(reconcilers, outcomes, strict=True):
        if isinstance(outcome, BaseException):
            raise outcome
        diffs[r.type_name] = outcome
    return diffs


async def _apply_all(
    reconcilers: list[Reconciler],
    plans: dict[str, Diff[Any, Any]] | None = None,
) -> dict[str, ReconcileResult]:
    try:
        return await reconcile_many(reconcilers, plans)
    finally:
        for r in reconcilers:
            await r.provider.close()

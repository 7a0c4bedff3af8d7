"""In-memory provider adapter.

Keeps resources in a dict and serves them through the same paginated
listing contract as a remote provider. Useful for local dry runs and as a
test double; failures can be injected per page or per resource.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from ..exceptions import CreateError, DestroyError, ProviderUnavailableError
from ..models import OutputBase, Page, Resource
from ..naming import DEFAULT_SCOPE, Scope

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MemoryOutput(OutputBase):
    """Observed state of an in-memory resource."""

    serial: int
    labels: dict[str, str] = field(default_factory=dict)


@dataclass
class _Row:
    spec: Any
    labels: dict[str, str]


class InMemoryProvider:
    """
    Provider adapter backed by a dict.

    Listing returns rows in insertion order, ``page_size`` at a time, with the
    offset of the next row as page token.

    Attributes:
        fail_on_page: 1-based page numbers whose listing raises
        fail_on_create: Resource ids whose create raises
        fail_on_destroy: Resource ids whose destroy raises
        fail_on_sync: Resource ids whose sync raises
        calls: Log of (operation, id) for every mutation issued
    """

    def __init__(
        self,
        type_name: str,
        *,
        scope: Scope = DEFAULT_SCOPE,
        page_size: int = 100,
    ) -> None:
        if page_size < 1:
            raise ValueError("page_size must be positive")
        self._type_name = type_name
        self._scope = scope
        self.page_size = page_size
        self._rows: dict[int, _Row] = {}
        self._next_serial = 1
        self.fail_on_page: set[int] = set()
        self.fail_on_create: set[str] = set()
        self.fail_on_destroy: set[str] = set()
        self.fail_on_sync: set[str] = set()
        self.calls: list[tuple[str, str]] = []
        self.closed = False

    @property
    def type_name(self) -> str:
        return self._type_name

    @property
    def scope(self) -> Scope:
        return self._scope

    # -------------------------------------------------------------------------
    # State helpers
    # -------------------------------------------------------------------------

    def seed(self, spec: Any, labels: dict[str, str] | None = None) -> Resource[Any, MemoryOutput]:
        """
        Insert a resource directly, bypassing ``create``.

        Args:
            spec: Spec of the existing resource
            labels: Labels to attach (default: this provider's scope)
        """
        if labels is None:
            labels = {self._scope.key: self._scope.value}
        return self._insert(spec, dict(labels))

    def resources(self, scope: Scope | None = None) -> list[Resource[Any, MemoryOutput]]:
        """Current resources carrying ``scope`` (default: own scope), in insertion order."""
        scope = scope if scope is not None else self._scope
        return [
            self._to_resource(serial, row)
            for serial, row in self._rows.items()
            if scope.matches(row.labels)
        ]

    def _insert(self, spec: Any, labels: dict[str, str]) -> Resource[Any, MemoryOutput]:
        serial = self._next_serial
        self._next_serial += 1
        row = _Row(spec=spec, labels=labels)
        self._rows[serial] = row
        return self._to_resource(serial, row)

    def _to_resource(self, serial: int, row: _Row) -> Resource[Any, MemoryOutput]:
        return Resource(spec=row.spec, output=MemoryOutput(serial=serial, labels=dict(row.labels)))

    # -------------------------------------------------------------------------
    # ProviderProtocol
    # -------------------------------------------------------------------------

    async def list_page(
        self,
        scope: Scope,
        page_token: str | None,
    ) -> Page[Resource[Any, MemoryOutput]]:
        offset = int(page_token) if page_token else 0
        page_number = offset // self.page_size + 1
        if page_number in self.fail_on_page:
            raise ProviderUnavailableError(
                f"Injected failure listing page {page_number}",
                type_name=self._type_name,
            )

        matching = self.resources(scope)
        items = matching[offset : offset + self.page_size]
        end = offset + len(items)
        next_token = str(end) if end < len(matching) else None
        return Page(items=items, next_token=next_token)

    async def create(self, spec: Any) -> Resource[Any, MemoryOutput]:
        self.calls.append(("create", spec.id))
        if spec.id in self.fail_on_create:
            raise ProviderUnavailableError(
                "Injected failure on create", type_name=self._type_name, resource_id=spec.id
            )
        if any(r.id == spec.id for r in self.resources()):
            raise CreateError(
                "Resource already exists", type_name=self._type_name, resource_id=spec.id
            )
        resource = self._insert(spec, {self._scope.key: self._scope.value})
        logger.debug(
            "Created in-memory %s %s (serial %d)",
            self._type_name,
            spec.id,
            resource.output.serial,
        )
        return resource

    async def destroy(self, resource: Resource[Any, MemoryOutput]) -> None:
        self.calls.append(("destroy", resource.id))
        if resource.id in self.fail_on_destroy:
            raise ProviderUnavailableError(
                "Injected failure on destroy", type_name=self._type_name, resource_id=resource.id
            )
        if self._rows.pop(resource.output.serial, None) is None:
            raise DestroyError(
                "Resource not found", type_name=self._type_name, resource_id=resource.id
            )

    async def sync(
        self,
        spec: Any,
        resource: Resource[Any, MemoryOutput],
    ) -> Resource[Any, MemoryOutput]:
        self.calls.append(("sync", spec.id))
        if spec.id in self.fail_on_sync:
            raise ProviderUnavailableError(
                "Injected failure on sync", type_name=self._type_name, resource_id=spec.id
            )
        if resource.spec == spec:
            return resource
        row = self._rows[resource.output.serial]
        row.spec = spec
        return self._to_resource(resource.output.serial, row)

    async def close(self) -> None:
        self.closed = True

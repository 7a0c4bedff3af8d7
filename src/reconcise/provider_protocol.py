"""Provider protocol for resource kinds.

This module defines the ProviderProtocol that every resource kind's adapter
must implement. The protocol uses Python's typing.Protocol with the
@runtime_checkable decorator, enabling duck typing and isinstance() checks
at runtime.

One generic reconciler drives any adapter satisfying this protocol, so a new
resource kind only supplies its spec/output types and these operations.
"""

from typing import TYPE_CHECKING, Protocol, runtime_checkable

from .models import O, S

if TYPE_CHECKING:
    from .models import Page, Resource
    from .naming import Scope


@runtime_checkable
class ProviderProtocol(Protocol[S, O]):
    """
    Protocol for provider adapters (one per resource kind).

    The protocol is divided into:

    - **Properties**: Kind identification and ownership scope
    - **Listing**: Paginated retrieval of actual state
    - **Mutations**: create / destroy / sync of single resources
    - **Lifecycle**: Connection management

    Example:
        class BucketProvider:
            @property
            def type_name(self) -> str:
                return "bucket"

            async def list_page(self, scope, page_token):
                ...

        provider = BucketProvider()
        assert isinstance(provider, ProviderProtocol)  # True at runtime
    """

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def type_name(self) -> str:
        """Resource kind this adapter manages (e.g., "ec2_instance")."""
        ...

    @property
    def scope(self) -> "Scope":
        """Ownership tag applied to every resource this adapter creates."""
        ...

    # -------------------------------------------------------------------------
    # Listing
    # -------------------------------------------------------------------------

    async def list_page(
        self,
        scope: "Scope",
        page_token: str | None,
    ) -> "Page[Resource[S, O]]":
        """
        Fetch one page of resources carrying ``scope``.

        Args:
            scope: Ownership filter
            page_token: Token from the previous page, or None for the first

        Returns:
            Page of resources; ``next_token`` is None once exhausted.
            Order within and across pages is provider-defined.
        """
        ...

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    async def create(self, spec: S) -> "Resource[S, O]":
        """
        Create a resource from ``spec``, tagged with ``self.scope``.

        Returns:
            The new resource with freshly observed output.
        """
        ...

    async def destroy(self, resource: "Resource[S, O]") -> None:
        """Destroy ``resource``. Leaves no state behind in the engine."""
        ...

    async def sync(self, spec: S, resource: "Resource[S, O]") -> "Resource[S, O]":
        """
        Converge an existing resource toward ``spec``.

        The adapter decides whether drift is a no-op, an in-place update,
        a replacement, or an error for its kind.

        Returns:
            The resource as it exists after the call (``resource`` itself
            when nothing changed).
        """
        ...

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def close(self) -> None:
        """
        Release connections. Safe to call multiple times.
        """
        ...

"""Paginated retrieval of actual state from a provider."""

import logging
from typing import TYPE_CHECKING, Any

from .exceptions import FetchError

if TYPE_CHECKING:
    from .models import Resource
    from .naming import Scope
    from .provider_protocol import ProviderProtocol

logger = logging.getLogger(__name__)


async def fetch_all(
    provider: "ProviderProtocol[Any, Any]",
    scope: "Scope | None" = None,
    *,
    max_pages: int | None = None,
) -> "list[Resource[Any, Any]]":
    """
    Fetch every resource the provider lists under ``scope``.

    Follows ``next_token`` until the provider stops returning one and
    concatenates the pages in the order received. The call is atomic from
    the caller's point of view: a failure on any page fails the whole fetch
    and nothing fetched so far is returned.

    Args:
        provider: Adapter for the resource kind
        scope: Ownership filter (default: the provider's own scope)
        max_pages: Optional safety cap on the number of pages

    Returns:
        All resources, in provider order (not sorted).

    Raises:
        FetchError: On any listing failure, a repeated page token,
            or when ``max_pages`` is exceeded
    """
    scope = scope if scope is not None else provider.scope
    type_name = provider.type_name

    resources: list[Resource[Any, Any]] = []
    seen_tokens: set[str] = set()
    next_token: str | None = None
    page_number = 0

    # Paginate until the provider stops handing out tokens
    while True:
        page_number += 1
        if max_pages is not None and page_number > max_pages:
            raise FetchError(
                f"Listing exceeded {max_pages} page(s)",
                type_name=type_name,
                page=page_number,
            )

        try:
            page = await provider.list_page(scope, next_token)
        except FetchError:
            raise
        except Exception as e:
            raise FetchError("Listing failed", e, type_name=type_name, page=page_number) from e

        resources.extend(page.items)
        logger.debug(
            "Fetched page %d of %s (%d item(s), scope %s)",
            page_number,
            type_name,
            len(page.items),
            scope,
        )

        next_token = page.next_token
        if not next_token:
            break
        if next_token in seen_tokens:
            raise FetchError(
                f"Provider repeated page token {next_token!r}",
                type_name=type_name,
                page=page_number,
            )
        seen_tokens.add(next_token)

    logger.info(
        "Fetched %d %s resource(s) in %d page(s)",
        len(resources),
        type_name,
        page_number,
    )
    return resources

"""Shared plumbing for AWS-backed provider adapters."""

from typing import Any

import aioboto3  # type: ignore[import-untyped]

from ..models import ProviderOptions
from ..naming import DEFAULT_SCOPE, Scope

NAME_TAG_KEY = "Name"


class AwsProvider:
    """
    Base class for adapters talking to one AWS service through aioboto3.

    Subclasses set ``service_name`` and implement the ProviderProtocol
    operations using ``await self._get_client()``.

    Example:
        async with Ec2InstanceProvider(options, scope) as provider:
            resources = await fetch_all(provider)
    """

    service_name = ""
    type_name = ""

    def __init__(
        self,
        options: ProviderOptions | None = None,
        scope: Scope = DEFAULT_SCOPE,
    ) -> None:
        self.options = options or ProviderOptions()
        self._scope = scope
        self._session: aioboto3.Session | None = None
        self._client: Any = None

    @property
    def scope(self) -> Scope:
        return self._scope

    @property
    def page_size(self) -> int:
        return self.options.page_size

    async def _get_client(self) -> Any:
        """Get or create the service client."""
        if self._client is not None:
            return self._client

        if self._session is None:
            self._session = aioboto3.Session()

        kwargs: dict[str, Any] = {}
        if self.options.region:
            kwargs["region_name"] = self.options.region
        if self.options.endpoint_url:
            kwargs["endpoint_url"] = self.options.endpoint_url

        self._client = await self._session.client(self.service_name, **kwargs).__aenter__()
        return self._client

    async def close(self) -> None:
        """Close the underlying client. Safe to call multiple times."""
        if self._client is not None:
            try:
                await self._client.__aexit__(None, None, None)
            finally:
                self._client = None
        self._session = None

    async def __aenter__(self) -> "AwsProvider":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        await self.close()

    # -------------------------------------------------------------------------
    # Tag helpers
    # -------------------------------------------------------------------------

    def _tags_for(self, name: str) -> list[dict[str, str]]:
        """Tags applied at creation: Name plus the ownership scope."""
        return [{"Key": NAME_TAG_KEY, "Value": name}, self._scope.as_tag()]

    def _scope_filter(self, scope: Scope) -> dict[str, Any]:
        return {"Name": f"tag:{scope.key}", "Values": [scope.value]}


def tags_to_dict(tags: list[dict[str, str]] | None) -> dict[str, str]:
    """Convert AWS ``[{"Key": ..., "Value": ...}]`` tags to a dict."""
    return {tag["Key"]: tag["Value"] for tag in tags or []}

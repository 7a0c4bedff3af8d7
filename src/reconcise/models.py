"""Core models for reconcise.

A resource is split in two halves:

- the *spec* is what the caller wants (identity plus parameters),
- the *output* is what the provider reports once the resource exists.

The diff engine compares specs only; the apply phase produces and consumes
full ``Resource`` objects carrying provider-observed attributes.
"""

import dataclasses
import os
from dataclasses import dataclass, field
from typing import Any, ClassVar, Generic, Protocol, TypeVar, runtime_checkable

from .exceptions import ValidationError
from .naming import ENDPOINT_ENV_VAR, PAGE_SIZE_ENV_VAR, REGION_ENV_VAR, validate_name

# ---------------------------------------------------------------------------
# Contracts
# ---------------------------------------------------------------------------


@runtime_checkable
class ResourceSpec(Protocol):
    """
    Desired-state description of one resource instance.

    Specs are immutable and compared structurally; two specs with the same
    ``id`` but different parameters are the same resource with drift.
    """

    type_name: ClassVar[str]

    @property
    def id(self) -> str:
        """Join key, unique within one reconciliation pass."""
        ...

    def to_dict(self) -> dict[str, Any]:
        """JSON-like representation for diagnostics."""
        ...


@runtime_checkable
class Output(Protocol):
    """Observed-state description attached to an existing resource."""

    def to_dict(self) -> dict[str, Any]:
        """Lossless JSON-like representation."""
        ...


@runtime_checkable
class InspectableResource(Protocol):
    """Diagnostic view of a resource for tooling. Never used to reconcile."""

    @property
    def id(self) -> str: ...

    def spec_json(self) -> dict[str, Any]: ...

    def output_json(self) -> dict[str, Any]: ...


S = TypeVar("S", bound=ResourceSpec)
O = TypeVar("O", bound=Output)  # noqa: E741


# ---------------------------------------------------------------------------
# Base implementations
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SpecBase:
    """
    Convenience base for concrete specs.

    Subclasses are frozen dataclasses that set ``type_name`` and add their
    own parameter fields after ``name``.

    Example:
        @dataclass(frozen=True)
        class BucketSpec(SpecBase):
            type_name: ClassVar[str] = "bucket"
            region: str = "us-east-1"
    """

    type_name: ClassVar[str] = ""

    name: str

    def __post_init__(self) -> None:
        validate_name(self.name)

    @property
    def id(self) -> str:
        return self.name

    def to_dict(self) -> dict[str, Any]:
        return dataclasses.asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Any:
        """
        Build a spec from a manifest mapping.

        Raises:
            ValidationError: On unknown or missing fields, or an invalid name
        """
        if not isinstance(data, dict):
            raise ValidationError(cls.type_name or cls.__name__, data, "Expected a mapping")

        known = {f.name: f for f in dataclasses.fields(cls)}
        unknown = sorted(set(data) - set(known))
        if unknown:
            raise ValidationError(
                cls.type_name or cls.__name__,
                data.get("name"),
                f"Unknown field(s): {', '.join(unknown)}",
            )

        missing = sorted(
            name
            for name, f in known.items()
            if name not in data
            and f.default is dataclasses.MISSING
            and f.default_factory is dataclasses.MISSING
        )
        if missing:
            raise ValidationError(
                cls.type_name or cls.__name__,
                data.get("name"),
                f"Missing field(s): {', '.join(missing)}",
            )

        return cls(**data)


@dataclass(frozen=True)
class OutputBase:
    """Convenience base for concrete outputs (frozen, so copies are safe to share)."""

    def to_dict(self) -> dict[str, Any]:
        return dataclasses.asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Any:
        return cls(**data)

    def clone(self) -> Any:
        """Return an equal, independent copy."""
        return dataclasses.replace(self)


@dataclass(frozen=True)
class Resource(Generic[S, O]):
    """
    One concrete, existing (or just created) resource.

    Has no identity beyond ``spec.id``.
    """

    spec: S
    output: O

    @property
    def id(self) -> str:
        return self.spec.id

    @property
    def type_name(self) -> str:
        return self.spec.type_name

    def spec_json(self) -> dict[str, Any]:
        return self.spec.to_dict()

    def output_json(self) -> dict[str, Any]:
        return self.output.to_dict()

    def to_dict(self) -> dict[str, Any]:
        """Serialize for inspection output."""
        return {
            "type": self.type_name,
            "id": self.id,
            "spec": self.spec_json(),
            "output": self.output_json(),
        }


R = TypeVar("R")


@dataclass(frozen=True)
class Page(Generic[R]):
    """
    One page of a provider listing.

    ``next_token`` is None (or empty) once no further pages exist.
    """

    items: list[R] = field(default_factory=list)
    next_token: str | None = None

    @property
    def is_last(self) -> bool:
        return not self.next_token


def inspect_resources(resources: list[InspectableResource]) -> list[dict[str, Any]]:
    """Render resources as inspection documents, sorted by id."""
    docs = []
    for resource in sorted(resources, key=lambda r: r.id):
        doc: dict[str, Any] = {"id": resource.id}
        type_name = getattr(resource, "type_name", None)
        if type_name:
            doc = {"type": type_name, **doc}
        doc["spec"] = resource.spec_json()
        doc["output"] = resource.output_json()
        docs.append(doc)
    return docs


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ProviderOptions:
    """
    Connection settings shared by provider adapters.

    Attributes:
        region: Provider region (None = SDK default)
        endpoint_url: Custom endpoint (e.g., LocalStack)
        page_size: Items requested per listing page
    """

    region: str | None = None
    endpoint_url: str | None = None
    page_size: int = 100

    def __post_init__(self) -> None:
        if not 1 <= self.page_size <= 1000:
            raise ValidationError("page_size", self.page_size, "Must be between 1 and 1000")

    @classmethod
    def from_env(cls) -> "ProviderOptions":
        """Build options from ``RECONCISE_*`` variables, falling back to ``AWS_*``."""
        page_size = os.environ.get(PAGE_SIZE_ENV_VAR)
        try:
            size = int(page_size) if page_size else 100
        except ValueError:
            raise ValidationError("page_size", page_size, "Must be an integer") from None
        return cls(
            region=os.environ.get(REGION_ENV_VAR) or os.environ.get("AWS_REGION"),
            endpoint_url=os.environ.get(ENDPOINT_ENV_VAR) or os.environ.get("AWS_ENDPOINT_URL"),
            page_size=size,
        )

"""Registry of resource kinds.

Maps each ``type_name`` to its spec class and a factory building its
provider adapter. Dispatch on kind goes through a registry instead of
string comparisons scattered around the code, so the set of handled kinds
stays explicit.
"""

from collections.abc import Callable, Iterator
from dataclasses import dataclass
from typing import Any

from .exceptions import UnknownKindError, ValidationError
from .models import ProviderOptions
from .naming import Scope
from .providers.ebs import EbsVolumeProvider, VolumeSpec
from .providers.ec2 import Ec2InstanceProvider, InstanceSpec

ProviderFactory = Callable[[ProviderOptions, Scope], Any]


@dataclass(frozen=True)
class ResourceKind:
    """
    One reconcilable resource kind.

    Attributes:
        type_name: Kind identifier used in manifests and on the CLI
        spec_class: Spec type; must provide ``from_dict``
        provider_factory: Builds the adapter from options and scope
        description: One-line help text
    """

    type_name: str
    spec_class: type
    provider_factory: ProviderFactory
    description: str = ""

    def parse_spec(self, data: dict[str, Any]) -> Any:
        """Build a spec of this kind from a manifest mapping."""
        return self.spec_class.from_dict(data)  # type: ignore[attr-defined]


class KindRegistry:
    """
    Closed set of resource kinds keyed by type name.

    Example:
        registry = KindRegistry()
        registry.register(ResourceKind("bucket", BucketSpec, make_bucket_provider))
        provider = registry.create_provider("bucket", ProviderOptions(), DEFAULT_SCOPE)
    """

    def __init__(self) -> None:
        self._kinds: dict[str, ResourceKind] = {}

    def register(self, kind: ResourceKind) -> None:
        """
        Add a kind.

        Raises:
            ValidationError: If the type name is empty, already registered,
                or does not match the spec class
        """
        if not kind.type_name:
            raise ValidationError("kind", kind.type_name, "Type name cannot be empty")
        if kind.type_name in self._kinds:
            raise ValidationError("kind", kind.type_name, "Already registered")
        spec_type_name = getattr(kind.spec_class, "type_name", None)
        if spec_type_name != kind.type_name:
            raise ValidationError(
                "kind",
                kind.type_name,
                f"Spec class {kind.spec_class.__name__} declares type_name {spec_type_name!r}",
            )
        self._kinds[kind.type_name] = kind

    def get(self, type_name: str) -> ResourceKind:
        """
        Look up a kind.

        Raises:
            UnknownKindError: If the kind is not registered
        """
        try:
            return self._kinds[type_name]
        except KeyError:
            raise UnknownKindError(type_name, list(self._kinds)) from None

    def kinds(self) -> list[ResourceKind]:
        """Registered kinds, sorted by type name."""
        return [self._kinds[name] for name in sorted(self._kinds)]

    def create_provider(
        self,
        type_name: str,
        options: ProviderOptions,
        scope: Scope,
    ) -> Any:
        """Build the provider adapter for ``type_name``."""
        return self.get(type_name).provider_factory(options, scope)

    def __contains__(self, type_name: object) -> bool:
        return type_name in self._kinds

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._kinds))

    def __len__(self) -> int:
        return len(self._kinds)


# ---------------------------------------------------------------------------
# Built-in kinds
# ---------------------------------------------------------------------------


def default_registry() -> KindRegistry:
    """Return a new registry holding the built-in kinds."""
    registry = KindRegistry()
    registry.register(
        ResourceKind(
            type_name=InstanceSpec.type_name,
            spec_class=InstanceSpec,
            provider_factory=Ec2InstanceProvider,
            description="EC2 compute instances, matched by Name tag",
        )
    )
    registry.register(
        ResourceKind(
            type_name=VolumeSpec.type_name,
            spec_class=VolumeSpec,
            provider_factory=EbsVolumeProvider,
            description="EBS block volumes, matched by Name tag",
        )
    )
    return registry

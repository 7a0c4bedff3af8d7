"""
reconcise: declarative reconciliation of provider resources.

Given the wanted specs of one resource kind and a provider adapter, a
reconciliation pass:
- fetches every resource carrying the ownership scope (following pagination)
- classifies wanted vs. actual by name into create / destroy / sync
- applies the changes through the adapter, stopping at the first failure

Example:
    from reconcise import InMemoryProvider, Reconciler, SpecBase

    @dataclass(frozen=True)
    class ServerSpec(SpecBase):
        type_name: ClassVar[str] = "server"
        size: str = "small"

    provider = InMemoryProvider("server")
    result = await Reconciler(provider, [ServerSpec(name="web-1")]).reconcile()
    print(result.summary())
"""

# ---------------------------------------------------------------------------
# Lazy imports for the AWS adapters
# ---------------------------------------------------------------------------
# Ec2InstanceProvider, EbsVolumeProvider, KindRegistry and default_registry
# are imported lazily via __getattr__ below, so that ``import reconcise``
# (the engine plus the in-memory adapter) does not import aioboto3.
# ---------------------------------------------------------------------------
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as _package_version
from typing import TYPE_CHECKING

from .differ import Change, Diff, compute_diff, diff_resources, index_by_id
from .exceptions import (
    CreateError,
    DestroyError,
    DuplicateKeyError,
    FetchError,
    InvariantViolation,
    ProviderError,
    ProviderUnavailableError,
    ReconciseError,
    UnknownKindError,
    UnorderedKeysError,
    UpdateError,
    ValidationError,
)
from .fetcher import fetch_all
from .manifest import Manifest
from .models import (
    InspectableResource,
    Output,
    OutputBase,
    Page,
    ProviderOptions,
    Resource,
    ResourceSpec,
    SpecBase,
    inspect_resources,
)
from .naming import DEFAULT_SCOPE, Scope, default_scope, validate_name
from .provider_protocol import ProviderProtocol
from .providers.memory import InMemoryProvider, MemoryOutput
from .reconciler import Phase, ReconcileResult, Reconciler, SyncReconciler, reconcile_many

if TYPE_CHECKING:
    from .providers.ebs import EbsVolumeProvider as EbsVolumeProvider
    from .providers.ec2 import Ec2InstanceProvider as Ec2InstanceProvider
    from .registry import KindRegistry as KindRegistry
    from .registry import ResourceKind as ResourceKind
    from .registry import default_registry as default_registry

try:
    __version__ = _package_version("reconcise")
except PackageNotFoundError:
    __version__ = "0.0.0+unknown"

__all__ = [
    # Version
    "__version__",
    # Engine
    "Reconciler",
    "SyncReconciler",
    "ReconcileResult",
    "Phase",
    "reconcile_many",
    "fetch_all",
    "compute_diff",
    "diff_resources",
    "index_by_id",
    "Diff",
    "Change",
    "Manifest",
    # Models
    "ResourceSpec",
    "Output",
    "Resource",
    "InspectableResource",
    "SpecBase",
    "OutputBase",
    "Page",
    "ProviderOptions",
    "inspect_resources",
    # Naming
    "Scope",
    "DEFAULT_SCOPE",
    "default_scope",
    "validate_name",
    # Providers
    "ProviderProtocol",
    "InMemoryProvider",
    "MemoryOutput",
    "Ec2InstanceProvider",
    "EbsVolumeProvider",
    # Registry
    "KindRegistry",
    "ResourceKind",
    "default_registry",
    # Exceptions - Base
    "ReconciseError",
    # Exceptions - Categories
    "ValidationError",
    "InvariantViolation",
    "ProviderError",
    # Exceptions - Validation
    "UnknownKindError",
    # Exceptions - Invariants
    "DuplicateKeyError",
    "UnorderedKeysError",
    # Exceptions - Provider
    "FetchError",
    "CreateError",
    "DestroyError",
    "UpdateError",
    "ProviderUnavailableError",
]


def __getattr__(name: str) -> object:
    """Lazy import for names that require aioboto3.

    See Also:
        PEP 562 -- Module __getattr__ and __dir__
    """
    if name == "Ec2InstanceProvider":
        from .providers.ec2 import Ec2InstanceProvider

        return Ec2InstanceProvider
    if name == "EbsVolumeProvider":
        from .providers.ebs import EbsVolumeProvider

        return EbsVolumeProvider
    if name in ("KindRegistry", "ResourceKind", "default_registry"):
        from . import registry

        return getattr(registry, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")

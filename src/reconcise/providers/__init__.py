"""Provider adapters, one per resource kind.

AWS adapters live in ``providers.ec2`` and ``providers.ebs`` and pull in
aioboto3 when imported; ``providers.memory`` has no third-party imports.
"""

from .memory import InMemoryProvider, MemoryOutput

__all__ = ["InMemoryProvider", "MemoryOutput"]

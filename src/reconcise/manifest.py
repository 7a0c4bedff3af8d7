"""YAML manifest parsing and validation for wanted state."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import yaml

from .differ import index_by_id
from .exceptions import ValidationError
from .naming import Scope, default_scope

if TYPE_CHECKING:
    from .registry import KindRegistry


@dataclass(frozen=True)
class Manifest:
    """
    Parsed manifest: wanted specs per resource kind.

    Example YAML:
        scope: managed_by=reconcise
        resources:
          ec2_instance:
            - name: web-1
              image_id: ami-0123456789abcdef0
              instance_type: t3.micro
    """

    scope: Scope
    resources: dict[str, list[Any]] = field(default_factory=dict)

    @property
    def type_names(self) -> list[str]:
        return sorted(self.resources)

    def specs_for(self, type_name: str) -> list[Any]:
        """Wanted specs of one kind (empty if the kind is absent)."""
        return list(self.resources.get(type_name, []))

    @classmethod
    def from_dict(cls, d: dict[str, Any], registry: KindRegistry) -> Manifest:
        """
        Build a manifest from a parsed YAML mapping.

        Raises:
            ValidationError: On a malformed document or spec
            UnknownKindError: On an unregistered kind
            DuplicateKeyError: If a name repeats within one kind
        """
        if not isinstance(d, dict):
            raise ValidationError("manifest", d, "Manifest must be a mapping")

        unknown = sorted(set(d) - {"scope", "resources"})
        if unknown:
            raise ValidationError("manifest", unknown, "Unknown top-level key(s)")

        raw_scope = d.get("scope")
        scope = Scope.parse(str(raw_scope)) if raw_scope else default_scope()

        raw_resources = d.get("resources") or {}
        if not isinstance(raw_resources, dict):
            raise ValidationError("resources", raw_resources, "Must map kind -> list of specs")

        resources: dict[str, list[Any]] = {}
        for type_name, entries in raw_resources.items():
            kind = registry.get(type_name)
            if entries is None:
                entries = []
            if not isinstance(entries, list):
                raise ValidationError(type_name, entries, "Must be a list of specs")
            specs = [kind.parse_spec(entry) for entry in entries]
            # Reject duplicate names here, before any provider is contacted
            resources[type_name] = list(index_by_id(specs, "wanted").values())

        return cls(scope=scope, resources=resources)

    @classmethod
    def from_yaml(cls, yaml_str: str, registry: KindRegistry) -> Manifest:
        try:
            data = yaml.safe_load(yaml_str)
        except yaml.YAMLError as e:
            raise ValidationError("manifest", "<yaml>", f"Not valid YAML: {e}") from e
        return cls.from_dict(data or {}, registry)

    @classmethod
    def from_file(cls, path: str, registry: KindRegistry) -> Manifest:
        with open(path) as f:
            return cls.from_yaml(f.read(), registry)

    def to_dict(self) -> dict[str, Any]:
        return {
            "scope": str(self.scope),
            "resources": {
                type_name: [spec.to_dict() for spec in self.resources[type_name]]
                for type_name in self.type_names
            },
        }

"""Ownership scope and resource naming utilities.

Every resource reconcise creates carries an ownership tag (the *scope*), and
every listing is filtered by the same tag, so a pass only ever sees and
touches resources it manages.

Resource names are the join key between wanted and actual state. They must
satisfy the most restrictive provider rules we target (currently AWS tags
and Hetzner/DNS-style labels):
- Letters, digits, hyphens, underscores and periods
- Must start with a letter or digit
- Maximum 63 characters
"""

import os
import re
from dataclasses import dataclass

from .exceptions import ValidationError

SCOPE_ENV_VAR = "RECONCISE_SCOPE"
"""Environment variable for overriding the default ownership scope."""

REGION_ENV_VAR = "RECONCISE_REGION"
"""Environment variable for the provider region."""

ENDPOINT_ENV_VAR = "RECONCISE_ENDPOINT_URL"
"""Environment variable for a custom provider endpoint (e.g., LocalStack)."""

PAGE_SIZE_ENV_VAR = "RECONCISE_PAGE_SIZE"
"""Environment variable for the listing page size."""

MAX_NAME_LENGTH = 63

NAME_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")

# Tag keys: AWS allows a wider set, but '=' would break "key=value" parsing
SCOPE_KEY_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._:/-]*$")


@dataclass(frozen=True)
class Scope:
    """
    Ownership marker applied at creation and used to filter listings.

    Attributes:
        key: Tag/label key (e.g., "managed_by")
        value: Tag/label value (e.g., "reconcise")
    """

    key: str
    value: str

    def __post_init__(self) -> None:
        if not self.key or not SCOPE_KEY_PATTERN.match(self.key):
            raise ValidationError("scope", str(self), "Key must be a non-empty tag key")
        if not self.value:
            raise ValidationError("scope", str(self), "Value cannot be empty")

    def __str__(self) -> str:
        return f"{self.key}={self.value}"

    @classmethod
    def parse(cls, text: str) -> "Scope":
        """
        Parse a ``key=value`` scope selector.

        Raises:
            ValidationError: If the text is not of the form key=value
        """
        key, sep, value = text.strip().partition("=")
        if not sep:
            raise ValidationError("scope", text, "Expected the form key=value")
        return cls(key=key.strip(), value=value.strip())

    def as_tag(self) -> dict[str, str]:
        """Scope as an AWS-style ``{"Key": ..., "Value": ...}`` tag."""
        return {"Key": self.key, "Value": self.value}

    def matches(self, labels: dict[str, str]) -> bool:
        """True if ``labels`` carry this scope."""
        return labels.get(self.key) == self.value


DEFAULT_SCOPE = Scope("managed_by", "reconcise")
"""Scope used when neither the manifest, the CLI nor the environment sets one."""


def default_scope() -> Scope:
    """Return the scope from ``RECONCISE_SCOPE``, or ``DEFAULT_SCOPE``."""
    env = os.environ.get(SCOPE_ENV_VAR)
    if env:
        return Scope.parse(env)
    return DEFAULT_SCOPE


def validate_name(name: str) -> None:
    """
    Validate a resource name (join key).

    Args:
        name: The user-provided name

    Raises:
        ValidationError: If the name is empty, too long or has invalid characters
    """
    if not isinstance(name, str) or not name:
        raise ValidationError("name", name, "Name cannot be empty")

    if len(name) > MAX_NAME_LENGTH:
        raise ValidationError(
            "name",
            name,
            f"Exceeds maximum length of {MAX_NAME_LENGTH} characters",
        )

    if " " in name:
        raise ValidationError(
            "name",
            name,
            "Contains spaces. Use hyphens instead (e.g., 'web-1' not 'web 1')",
        )

    if not NAME_PATTERN.match(name):
        raise ValidationError(
            "name",
            name,
            "Must start with a letter or digit and contain only "
            "letters, digits, '-', '_' or '.'",
        )

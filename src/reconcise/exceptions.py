"""Exceptions for reconcise."""

from typing import Any

# ---------------------------------------------------------------------------
# Base Exception
# ---------------------------------------------------------------------------


class ReconciseError(Exception):
    """
    Base exception for all reconcise errors.

    All exceptions raised by this library inherit from this class,
    allowing callers to catch all library-specific errors with a single
    except clause.
    """

    pass


# ---------------------------------------------------------------------------
# Category Exceptions
# ---------------------------------------------------------------------------


class ValidationError(ReconciseError):
    """
    Raised when caller-supplied input is malformed.

    Attributes:
        field: Name of the offending field
        value: The rejected value
        reason: Human-readable explanation
    """

    def __init__(self, field: str, value: Any, reason: str) -> None:
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid {field} {value!r}: {reason}")


class InvariantViolation(ReconciseError):  # noqa: N818
    """
    Base exception for broken reconciliation invariants.

    These signal a bug in how the wanted or actual sets were built
    upstream, not a provider failure.
    """

    pass


class ProviderError(ReconciseError):
    """
    Base exception for failures reported by a provider adapter.

    Attributes:
        operation: Provider operation that failed (list, create, destroy, sync)
        type_name: Resource kind the operation was issued for
        resource_id: Join key of the resource involved (if any)
        cause: The underlying exception raised by the adapter
    """

    operation = "provider"

    def __init__(
        self,
        message: str,
        cause: BaseException | None = None,
        *,
        type_name: str | None = None,
        resource_id: str | None = None,
    ) -> None:
        self.cause = cause
        self.type_name = type_name
        self.resource_id = resource_id
        super().__init__(self._format_message(message))

    def _context(self) -> list[str]:
        context = []
        if self.type_name:
            context.append(f"kind={self.type_name}")
        if self.resource_id:
            context.append(f"resource={self.resource_id}")
        return context

    def _format_message(self, message: str) -> str:
        parts = [message]
        context = self._context()
        if context:
            parts.append(f"[{', '.join(context)}]")
        if self.cause is not None:
            parts.append(f"caused by {type(self.cause).__name__}: {self.cause}")
        return " ".join(parts)


# ---------------------------------------------------------------------------
# Validation Exceptions
# ---------------------------------------------------------------------------


class UnknownKindError(ValidationError):
    """Raised when a resource kind is not registered."""

    def __init__(self, type_name: str, known: list[str] | None = None) -> None:
        self.type_name = type_name
        self.known = sorted(known or [])
        reason = "not a registered resource kind"
        if self.known:
            reason += f" (known: {', '.join(self.known)})"
        super().__init__("kind", type_name, reason)


# ---------------------------------------------------------------------------
# Invariant Exceptions
# ---------------------------------------------------------------------------


class DuplicateKeyError(InvariantViolation):
    """
    Raised when a join key appears twice on one side of a diff.

    Attributes:
        key: The duplicated join key
        side: "wanted" or "actual"
    """

    def __init__(self, key: str, side: str) -> None:
        self.key = key
        self.side = side
        super().__init__(f"Duplicate key {key!r} in {side} set")


class UnorderedKeysError(InvariantViolation):
    """Raised when diff input is not strictly ascending by key."""

    def __init__(self, previous: str, key: str, side: str) -> None:
        self.previous = previous
        self.key = key
        self.side = side
        super().__init__(f"Keys of {side} set not strictly ascending: {previous!r} then {key!r}")


# ---------------------------------------------------------------------------
# Provider Exceptions
# ---------------------------------------------------------------------------


class FetchError(ProviderError):
    """
    Raised when listing actual state fails.

    The whole fetch fails; pages retrieved before the failure are discarded.

    Attributes:
        page: 1-based page number being requested when the failure occurred
    """

    operation = "list"

    def __init__(
        self,
        message: str,
        cause: BaseException | None = None,
        *,
        type_name: str | None = None,
        page: int | None = None,
    ) -> None:
        self.page = page
        super().__init__(message, cause, type_name=type_name)

    def _context(self) -> list[str]:
        context = super()._context()
        if self.page is not None:
            context.append(f"page={self.page}")
        return context


class CreateError(ProviderError):
    """Raised when the provider rejects or fails a create call."""

    operation = "create"


class DestroyError(ProviderError):
    """Raised when the provider rejects or fails a destroy call."""

    operation = "destroy"


class UpdateError(ProviderError):
    """
    Raised when a matched resource cannot be brought in line with its spec.

    Covers both failed provider update calls and drift the adapter refuses
    to converge automatically (e.g. shrinking a volume).
    """

    operation = "sync"


class ProviderUnavailableError(ProviderError):
    """Raised by adapters when the provider cannot be reached."""

    operation = "transport"

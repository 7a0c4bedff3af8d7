"""Unit test fixtures backed by the in-memory provider."""

from collections.abc import Callable
from dataclasses import dataclass
from typing import ClassVar

import pytest

from reconcise import InMemoryProvider, SpecBase


@dataclass(frozen=True)
class ServerSpec(SpecBase):
    """Minimal spec used throughout the unit tests."""

    type_name: ClassVar[str] = "server"

    size: str = "small"


@pytest.fixture
def make_spec() -> Callable[..., ServerSpec]:
    """Factory for server specs."""

    def _make(name: str, size: str = "small") -> ServerSpec:
        return ServerSpec(name=name, size=size)

    return _make


@pytest.fixture
def provider() -> InMemoryProvider:
    """In-memory server provider with small pages."""
    return InMemoryProvider("server", page_size=10)
